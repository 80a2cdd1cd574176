"""Per-agent rate limit on planner calls."""

from __future__ import annotations


def cooldown_permits(now_ms: int, last_plan_ms: int | None, cooldown_ms: int) -> bool:
    if last_plan_ms is None:
        return True
    return int(now_ms) - int(last_plan_ms) >= int(cooldown_ms)


class CooldownGovernor:
    """Tracks when this agent last issued a plan request.

    ``mark_issued`` is called when a request is sent, not when it resolves.
    """

    def __init__(self, cooldown_ms: int) -> None:
        self.cooldown_ms = max(0, int(cooldown_ms))
        self.last_plan_ms: int | None = None

    def permits(self, now_ms: int) -> bool:
        return cooldown_permits(now_ms, self.last_plan_ms, self.cooldown_ms)

    def mark_issued(self, now_ms: int) -> None:
        self.last_plan_ms = int(now_ms)

    def remaining_ms(self, now_ms: int) -> int:
        if self.last_plan_ms is None:
            return 0
        return max(0, self.cooldown_ms - (int(now_ms) - self.last_plan_ms))
