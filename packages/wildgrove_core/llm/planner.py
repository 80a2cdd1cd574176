"""Non-blocking planner client used by agents.

Prompts are rendered on the calling (tick) thread from a consistent world
snapshot; only the HTTP round trip and response parsing run on the worker
pool. Callers receive a ``concurrent.futures.Future`` and poll it.
"""

from __future__ import annotations

from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
from time import perf_counter
from typing import TYPE_CHECKING, Any, Callable, Mapping
import logging
import threading
import uuid

from ..sim.actions import InvalidActionError, MalformedActionError, PlannedAction, parse_planned_action
from .credentials import CredentialPool
from .policy import PlannerPolicy, default_policy_for_task
from .prompt import fit_chat_prompt, fit_plan_prompt
from .providers import (
    HttpTransport,
    MalformedResponseError,
    PlannerError,
    PlannerUnavailableError,
    ProviderConfig,
    ProviderExecutionResult,
    execute_planner_call,
    extract_json_object,
    load_provider_config,
)

if TYPE_CHECKING:
    from ..sim.agent import Agent
    from ..sim.entities import Character


logger = logging.getLogger("wildgrove_core.llm.planner")

LogSink = Callable[[dict[str, Any]], None]
MAX_REPLY_CHARS = 400
RECENT_LOG_LIMIT = 200


class PlannerClient:
    """Asynchronous planner calls over one provider config and credential pool."""

    def __init__(
        self,
        *,
        config: ProviderConfig | None = None,
        pool: CredentialPool | None = None,
        policy: PlannerPolicy | None = None,
        chat_policy: PlannerPolicy | None = None,
        transport: HttpTransport | None = None,
        log_sink: LogSink | None = None,
        max_workers: int = 4,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._config_error: PlannerUnavailableError | None = None
        if config is None:
            try:
                config = load_provider_config(env)
            except PlannerUnavailableError as exc:
                self._config_error = exc
                logger.warning("[PLANNER] Planner unavailable (%s): %s", exc.error_code, exc)
        self.config = config
        self.pool = pool or CredentialPool(config.api_keys if config else ())
        self.policy = policy or default_policy_for_task("plan_action")
        self.chat_policy = chat_policy or default_policy_for_task("chat_reply")
        self._transport = transport
        self._log_sink = log_sink
        self._recent_logs: deque[dict[str, Any]] = deque(maxlen=RECENT_LOG_LIMIT)
        self._logs_lock = threading.Lock()
        self._executor = ThreadPoolExecutor(
            max_workers=max(1, int(max_workers)),
            thread_name_prefix="wildgrove-planner",
        )

    @property
    def available(self) -> bool:
        return self.config is not None and self._config_error is None

    def request_plan(self, agent: "Agent") -> "Future[PlannedAction]":
        """Render the prompt now and run the call on the worker pool."""
        inputs = agent.prompt_inputs()
        bounded, trimmed, prompt_tokens = fit_plan_prompt(policy=self.policy, **inputs)
        agent_id = agent.character.entity_id
        if not self.available:
            return self._unavailable_future(agent_id, self.policy, prompt_tokens)
        logger.debug("[PLANNER] Plan request for %s (%d tokens, trimmed=%s)", agent_id, prompt_tokens, trimmed)
        return self._executor.submit(self._run_plan, agent_id, bounded, prompt_tokens)

    def request_chat_reply(self, responder: "Character", speaker: "Character", message: str) -> "Future[str]":
        bounded, _, prompt_tokens = fit_chat_prompt(
            responder_name=responder.name,
            persona=responder.persona,
            speaker_name=speaker.name,
            message=message,
            event_lines=responder.event_log.recent_lines(self.chat_policy.event_log_lines),
            policy=self.chat_policy,
        )
        if not self.available:
            return self._unavailable_future(responder.entity_id, self.chat_policy, prompt_tokens)
        return self._executor.submit(self._run_chat, responder.entity_id, bounded, prompt_tokens)

    def _unavailable_future(self, agent_id: str, policy: PlannerPolicy, prompt_tokens: int) -> Future:
        exc = self._config_error or PlannerUnavailableError(
            "Planner is not configured",
            error_code="planner_unavailable",
        )
        self._emit_log(
            agent_id=agent_id,
            task_name=policy.task_name,
            model_name=exc.model_name or "unconfigured",
            credential_slot=None,
            prompt_tokens=prompt_tokens,
            completion_tokens=0,
            latency_ms=0,
            success=False,
            error_code=exc.error_code,
        )
        future: Future = Future()
        future.set_exception(exc)
        return future

    def _call(
        self, agent_id: str, prompt: str, policy: PlannerPolicy, prompt_tokens: int
    ) -> tuple[ProviderExecutionResult, float]:
        assert self.config is not None
        start = perf_counter()
        try:
            result = execute_planner_call(
                config=self.config,
                pool=self.pool,
                prompt=prompt,
                policy=policy,
                transport=self._transport,
            )
        except PlannerError as exc:
            self._emit_log(
                agent_id=agent_id,
                task_name=policy.task_name,
                model_name=exc.model_name or self.config.model_name(),
                credential_slot=None,
                prompt_tokens=prompt_tokens,
                completion_tokens=0,
                latency_ms=int((perf_counter() - start) * 1000),
                success=False,
                error_code=exc.error_code,
            )
            logger.info("[PLANNER] %s call for %s failed: %s", policy.task_name, agent_id, exc.error_code)
            raise
        return result, start

    def _run_plan(self, agent_id: str, prompt: str, prompt_tokens: int) -> PlannedAction:
        result, start = self._call(agent_id, prompt, self.policy, prompt_tokens)
        error_code: str | None = None
        try:
            payload = extract_json_object(result.text)
            return parse_planned_action(payload)
        except MalformedResponseError as exc:
            exc.model_name = result.model_name
            error_code = exc.error_code
            raise
        except MalformedActionError as exc:
            error_code = exc.error_code
            raise MalformedResponseError(
                str(exc),
                error_code=exc.error_code,
                model_name=result.model_name,
            ) from exc
        except InvalidActionError as exc:
            error_code = exc.error_code
            raise
        except Exception as exc:
            error_code = f"parse_exception:{exc.__class__.__name__}"
            raise
        finally:
            self._emit_log(
                agent_id=agent_id,
                task_name=self.policy.task_name,
                model_name=result.model_name,
                credential_slot=result.credential_slot,
                prompt_tokens=int(result.prompt_tokens or prompt_tokens),
                completion_tokens=int(result.completion_tokens or 0),
                latency_ms=int((perf_counter() - start) * 1000),
                success=error_code is None,
                error_code=error_code,
            )

    def _run_chat(self, agent_id: str, prompt: str, prompt_tokens: int) -> str:
        result, start = self._call(agent_id, prompt, self.chat_policy, prompt_tokens)
        try:
            payload = extract_json_object(result.text)
            reply = str(payload.get("reply") or payload.get("message") or "").strip()
        except MalformedResponseError:
            reply = result.text.strip()
        success = bool(reply)
        self._emit_log(
            agent_id=agent_id,
            task_name=self.chat_policy.task_name,
            model_name=result.model_name,
            credential_slot=result.credential_slot,
            prompt_tokens=int(result.prompt_tokens or prompt_tokens),
            completion_tokens=int(result.completion_tokens or 0),
            latency_ms=int((perf_counter() - start) * 1000),
            success=success,
            error_code=None if success else "empty_reply",
        )
        if not success:
            raise MalformedResponseError(
                "Chat reply was empty",
                error_code="empty_reply",
                model_name=result.model_name,
            )
        return reply[:MAX_REPLY_CHARS]

    def _emit_log(
        self,
        *,
        agent_id: str | None,
        task_name: str,
        model_name: str,
        credential_slot: int | None,
        prompt_tokens: int,
        completion_tokens: int,
        latency_ms: int,
        success: bool,
        error_code: str | None,
    ) -> None:
        row = {
            "id": str(uuid.uuid4()),
            "agent_id": agent_id,
            "task_name": task_name,
            "model_name": model_name,
            "credential_slot": credential_slot,
            "prompt_tokens": int(prompt_tokens),
            "completion_tokens": int(completion_tokens),
            "latency_ms": int(latency_ms),
            "success": bool(success),
            "error_code": error_code,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        with self._logs_lock:
            self._recent_logs.append(row)
        if self._log_sink:
            self._log_sink(row)

    def recent_logs(self, limit: int = 50) -> list[dict[str, Any]]:
        with self._logs_lock:
            rows = list(self._recent_logs)
        if limit <= 0:
            return []
        return list(reversed(rows[-limit:]))

    def status(self) -> dict[str, Any]:
        return {
            "available": self.available,
            "provider": self.config.provider if self.config else None,
            "model": self.config.model if self.config else None,
            "error_code": self._config_error.error_code if self._config_error else None,
            "policy": self.policy.as_dict(),
            "chat_policy": self.chat_policy.as_dict(),
            "credentials": self.pool.status(),
        }

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
