"""Planner call policy: budgets, timeouts and prompt size caps."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any


@dataclass(frozen=True)
class PlannerPolicy:
    task_name: str
    max_input_tokens: int
    max_output_tokens: int
    temperature: float
    timeout_ms: int
    event_log_lines: int = 7
    max_objects_per_type: int = 3
    max_characters: int = 8

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


DEFAULT_TASK_POLICIES: dict[str, PlannerPolicy] = {
    "plan_action": PlannerPolicy(
        task_name="plan_action",
        max_input_tokens=1200,
        max_output_tokens=160,
        temperature=0.4,
        timeout_ms=8000,
    ),
    "chat_reply": PlannerPolicy(
        task_name="chat_reply",
        max_input_tokens=600,
        max_output_tokens=120,
        temperature=0.7,
        timeout_ms=6000,
        event_log_lines=5,
    ),
}


def default_policy_for_task(task_name: str) -> PlannerPolicy:
    key = str(task_name).strip()
    if key in DEFAULT_TASK_POLICIES:
        return DEFAULT_TASK_POLICIES[key]
    return PlannerPolicy(
        task_name=key or "unknown_task",
        max_input_tokens=900,
        max_output_tokens=160,
        temperature=0.2,
        timeout_ms=5000,
    )


def estimate_token_count(text: str) -> int:
    # Cheap estimate that keeps budgeting deterministic and provider-agnostic.
    return max(1, len(text) // 4)

