"""Agent and world tuning, with environment overrides."""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Mapping
import os


DEFAULT_PLAN_COOLDOWN_MS = 10_000
DEFAULT_GATHER_MS = 2_000
DEFAULT_RESOURCE_RESPAWN_MS = 15_000
INTERACTION_DISTANCE = 3.0
RESPAWN_HEALTH_FACTOR = 0.75
NPC_ATTACK_DAMAGE = 5.0


@dataclass(frozen=True)
class AgentConfig:
    plan_cooldown_ms: int = DEFAULT_PLAN_COOLDOWN_MS
    idle_timer_base_s: float = 5.0
    idle_timer_random_s: float = 5.0
    post_action_timer_base_s: float = 3.0
    post_action_timer_random_s: float = 4.0
    move_speed: float = 4.0
    arrival_epsilon: float = 0.5
    interaction_distance: float = INTERACTION_DISTANCE
    search_radius: float = 30.0
    roam_radius: float = 10.0
    default_gather_ms: int = DEFAULT_GATHER_MS
    default_resource_respawn_ms: int = DEFAULT_RESOURCE_RESPAWN_MS
    attack_damage: float = NPC_ATTACK_DAMAGE

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)

    def with_overrides(self, **overrides: Any) -> "AgentConfig":
        return replace(self, **overrides)


def _coerce(raw: str, current: Any) -> Any:
    if isinstance(current, bool):
        return raw.strip().lower() in {"1", "true", "yes", "on"}
    if isinstance(current, int):
        return int(float(raw))
    if isinstance(current, float):
        return float(raw)
    return raw


def load_agent_config(env: Mapping[str, str] | None = None, *, prefix: str = "WILDGROVE_AGENT_") -> AgentConfig:
    """Defaults overlaid with ``WILDGROVE_AGENT_<FIELD>`` variables.

    Example: ``WILDGROVE_AGENT_PLAN_COOLDOWN_MS=15000``.
    """
    env = os.environ if env is None else env
    base = AgentConfig()
    overrides: dict[str, Any] = {}
    for item in fields(AgentConfig):
        raw = env.get(f"{prefix}{item.name.upper()}")
        if raw is None or not str(raw).strip():
            continue
        try:
            overrides[item.name] = _coerce(str(raw), getattr(base, item.name))
        except ValueError as exc:
            raise ValueError(f"Invalid value for {prefix}{item.name.upper()}: {raw!r}") from exc
    if "plan_cooldown_ms" in overrides and int(overrides["plan_cooldown_ms"]) < 0:
        raise ValueError("plan_cooldown_ms must be >= 0")
    return replace(base, **overrides)
