"""Provider adapters for planner calls.

The default integration path is the OpenAI-compatible Chat Completions
contract; Gemini ``generateContent`` is supported as a second provider.
Transport is injectable so callers and tests can swap out ``urllib``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping
from urllib import error, parse, request
import json
import os
import re

from .credentials import Credential, CredentialPool
from .policy import PlannerPolicy, estimate_token_count


DEFAULT_OPENAI_COMPATIBLE_BASE_URL = "https://api.openai.com/v1"
DEFAULT_GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_MODEL_BY_PROVIDER = {
    "openai_compatible": "gpt-4o-mini",
    "gemini": "gemini-2.0-flash",
}
SUPPORTED_PROVIDERS = set(DEFAULT_MODEL_BY_PROVIDER)
RATE_LIMIT_STATUS = 429
_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*(.*?)```", re.DOTALL)


def _truthy_env(env: Mapping[str, str], name: str, default: bool = False) -> bool:
    raw = env.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _first_non_empty(*values: str | None) -> str | None:
    for value in values:
        if value and value.strip():
            return value.strip()
    return None


class PlannerError(RuntimeError):
    def __init__(self, message: str, *, error_code: str, model_name: str | None = None) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.model_name = model_name


class PlannerUnavailableError(PlannerError):
    pass


class PlannerTransportError(PlannerError):
    pass


class PlannerRateLimitedError(PlannerError):
    def __init__(self, message: str, *, model_name: str | None = None, rotated: bool = False) -> None:
        super().__init__(message, error_code="rate_limited", model_name=model_name)
        self.rotated = rotated


class MalformedResponseError(PlannerError):
    pass


@dataclass(frozen=True)
class ProviderConfig:
    provider: str
    model: str
    base_url: str
    api_keys: tuple[str, ...] = ()

    def model_name(self) -> str:
        return f"{self.provider}:{self.model}"


@dataclass(frozen=True)
class HttpRequest:
    url: str
    body: bytes
    headers: dict[str, str] = field(default_factory=dict)
    timeout_s: float = 10.0


@dataclass(frozen=True)
class HttpResponse:
    status: int
    body: str


HttpTransport = Callable[[HttpRequest], HttpResponse]


@dataclass(frozen=True)
class ProviderExecutionResult:
    text: str
    model_name: str
    credential_slot: int
    prompt_tokens: int | None = None
    completion_tokens: int | None = None


def load_provider_config(env: Mapping[str, str] | None = None) -> ProviderConfig:
    env = os.environ if env is None else env
    provider = (_first_non_empty(env.get("WILDGROVE_LLM_PROVIDER")) or "openai_compatible").lower()
    if provider not in SUPPORTED_PROVIDERS:
        raise PlannerUnavailableError(f"Unsupported provider: {provider}", error_code="unsupported_provider")

    model = _first_non_empty(env.get("WILDGROVE_LLM_MODEL")) or DEFAULT_MODEL_BY_PROVIDER[provider]
    default_base = DEFAULT_GEMINI_BASE_URL if provider == "gemini" else DEFAULT_OPENAI_COMPATIBLE_BASE_URL
    base_url = _first_non_empty(env.get("WILDGROVE_LLM_BASE_URL")) or default_base

    keys: list[str] = []
    listed = _first_non_empty(env.get("WILDGROVE_LLM_API_KEYS"))
    if listed:
        keys.extend(part.strip() for part in listed.split(",") if part.strip())
    for name in ("WILDGROVE_LLM_API_KEY", "WILDGROVE_LLM_API_KEY_2", "OPENAI_API_KEY"):
        value = _first_non_empty(env.get(name))
        if value and value not in keys:
            keys.append(value)
    if not keys and not _truthy_env(env, "WILDGROVE_LLM_ALLOW_EMPTY_API_KEY", False):
        raise PlannerUnavailableError("No API key configured for the planner", error_code="missing_api_key")

    return ProviderConfig(provider=provider, model=model, base_url=base_url.rstrip("/"), api_keys=tuple(keys))


def urllib_transport(req: HttpRequest) -> HttpResponse:
    http_req = request.Request(req.url, method="POST", data=req.body, headers=dict(req.headers))
    try:
        with request.urlopen(http_req, timeout=req.timeout_s) as response:
            return HttpResponse(status=int(response.status), body=response.read().decode("utf-8", errors="replace"))
    except error.HTTPError as exc:
        detail = ""
        try:
            detail = exc.read().decode("utf-8", errors="replace")
        except Exception:
            detail = ""
        return HttpResponse(status=int(exc.code), body=detail)
    except Exception as exc:
        raise PlannerTransportError(f"Planner network error: {exc}", error_code="network_error") from exc


def _system_instruction() -> str:
    return (
        "You decide the next action of a game character. "
        "Return a strict JSON object only, without markdown or commentary."
    )


def _build_http_request(
    *,
    config: ProviderConfig,
    credential: Credential,
    prompt: str,
    policy: PlannerPolicy,
) -> HttpRequest:
    timeout_s = max(0.2, float(policy.timeout_ms) / 1000.0)
    headers = {"Content-Type": "application/json"}
    if config.provider == "gemini":
        payload: dict[str, Any] = {
            "contents": [{"parts": [{"text": f"{_system_instruction()}\n\n{prompt}"}]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "temperature": float(policy.temperature),
                "maxOutputTokens": int(policy.max_output_tokens),
            },
        }
        url = f"{config.base_url}/models/{parse.quote(config.model)}:generateContent"
        if credential.api_key:
            url = f"{url}?key={parse.quote(credential.api_key)}"
    else:
        payload = {
            "model": config.model,
            "messages": [
                {"role": "system", "content": _system_instruction()},
                {"role": "user", "content": prompt},
            ],
            "temperature": float(policy.temperature),
            "max_tokens": int(policy.max_output_tokens),
        }
        url = f"{config.base_url}/chat/completions"
        if credential.api_key:
            headers["Authorization"] = f"Bearer {credential.api_key}"
    body = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    return HttpRequest(url=url, body=body, headers=headers, timeout_s=timeout_s)


def _parse_content_text(message: Any) -> str:
    if isinstance(message, str):
        return message
    if isinstance(message, list):
        chunks: list[str] = []
        for item in message:
            if isinstance(item, dict):
                text = item.get("text")
                if text:
                    chunks.append(str(text))
        return "".join(chunks)
    return str(message or "")


def _extract_text(config: ProviderConfig, envelope: dict[str, Any]) -> str:
    if config.provider == "gemini":
        candidates = envelope.get("candidates") or []
        first = candidates[0] if candidates else {}
        parts = ((first or {}).get("content") or {}).get("parts") or []
        return _parse_content_text(parts)
    choices = envelope.get("choices") or []
    first = choices[0] if choices else {}
    return _parse_content_text(((first or {}).get("message") or {}).get("content"))


def extract_json_object(text: str) -> dict[str, Any]:
    """Decode the first JSON object in ``text``.

    Accepts raw JSON, JSON fenced in a code block, or an object embedded in
    surrounding prose.
    """
    candidate = str(text or "").strip()
    if not candidate:
        raise MalformedResponseError("Empty model response", error_code="empty_response")

    fenced = _FENCE_RE.search(candidate)
    if fenced:
        candidate = fenced.group(1).strip()

    try:
        parsed = json.loads(candidate)
        if isinstance(parsed, dict):
            return parsed
    except Exception:
        pass

    in_string = False
    escape = False
    depth = 0
    start = None
    for idx, char in enumerate(candidate):
        if in_string:
            if escape:
                escape = False
            elif char == "\\":
                escape = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
            continue
        if char == "{":
            if depth == 0:
                start = idx
            depth += 1
            continue
        if char == "}":
            if depth <= 0:
                continue
            depth -= 1
            if depth == 0 and start is not None:
                blob = candidate[start : idx + 1]
                try:
                    parsed = json.loads(blob)
                except Exception:
                    continue
                if isinstance(parsed, dict):
                    return parsed
                break

    raise MalformedResponseError(
        "Response does not contain a valid JSON object",
        error_code="invalid_json_output",
    )


def execute_planner_call(
    *,
    config: ProviderConfig,
    pool: CredentialPool,
    prompt: str,
    policy: PlannerPolicy,
    transport: HttpTransport | None = None,
) -> ProviderExecutionResult:
    """Run one planner call. No retries: a 429 rotates the pool and fails."""
    send = transport or urllib_transport
    credential = pool.current()
    http_req = _build_http_request(config=config, credential=credential, prompt=prompt, policy=policy)

    try:
        response = send(http_req)
    except PlannerError as exc:
        if exc.model_name is None:
            exc.model_name = config.model_name()
        raise
    except Exception as exc:
        raise PlannerTransportError(
            f"Planner network error: {exc}",
            error_code="network_error",
            model_name=config.model_name(),
        ) from exc

    if response.status == RATE_LIMIT_STATUS:
        rotated = pool.rotate_on_rate_limit(credential)
        raise PlannerRateLimitedError(
            f"Planner rate limited on credential slot {credential.slot}",
            model_name=config.model_name(),
            rotated=rotated,
        )
    if response.status < 200 or response.status >= 300:
        raise PlannerTransportError(
            f"Planner HTTP error {response.status}: {response.body[:240]}",
            error_code=f"http_{response.status}",
            model_name=config.model_name(),
        )

    try:
        envelope = json.loads(response.body)
    except Exception as exc:
        raise PlannerTransportError(
            "Planner returned non-JSON envelope",
            error_code="invalid_provider_response",
            model_name=config.model_name(),
        ) from exc
    if not isinstance(envelope, dict):
        raise PlannerTransportError(
            "Planner envelope is not an object",
            error_code="invalid_provider_response",
            model_name=config.model_name(),
        )

    text = _extract_text(config, envelope)
    if not text.strip():
        raise MalformedResponseError(
            "Planner response has no text payload",
            error_code="empty_response",
            model_name=config.model_name(),
        )

    usage = envelope.get("usage") or envelope.get("usageMetadata") or {}
    prompt_tokens = usage.get("prompt_tokens", usage.get("promptTokenCount"))
    completion_tokens = usage.get("completion_tokens", usage.get("candidatesTokenCount"))
    try:
        prompt_count = int(prompt_tokens) if prompt_tokens is not None else estimate_token_count(prompt)
    except (TypeError, ValueError):
        prompt_count = estimate_token_count(prompt)
    try:
        completion_count = int(completion_tokens) if completion_tokens is not None else estimate_token_count(text)
    except (TypeError, ValueError):
        completion_count = estimate_token_count(text)

    return ProviderExecutionResult(
        text=text,
        model_name=str(envelope.get("model") or config.model_name()),
        credential_slot=credential.slot,
        prompt_tokens=prompt_count,
        completion_tokens=completion_count,
    )
