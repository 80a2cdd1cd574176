"""Process-wide world and planner singletons."""

from __future__ import annotations

import logging
import os
import threading

from packages.wildgrove_core.llm.planner import PlannerClient
from packages.wildgrove_core.sim.config import load_agent_config
from packages.wildgrove_core.sim.starter import build_starter_world
from packages.wildgrove_core.sim.world import World


logger = logging.getLogger("wildgrove_api.state")

_LOCK = threading.Lock()
_WORLD: World | None = None
_PLANNER: PlannerClient | None = None


def _seed_from_env() -> int | None:
    raw = str(os.environ.get("WILDGROVE_WORLD_SEED") or "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        logger.warning("[STARTUP] Ignoring invalid WILDGROVE_WORLD_SEED=%r", raw)
        return None


def get_planner() -> PlannerClient:
    global _PLANNER
    with _LOCK:
        if _PLANNER is None:
            _PLANNER = PlannerClient()
        return _PLANNER


def get_world() -> World:
    global _WORLD
    planner = get_planner()
    with _LOCK:
        if _WORLD is None:
            _WORLD = build_starter_world(planner=planner, config=load_agent_config(), seed=_seed_from_env())
            logger.info("[STARTUP] Starter world created with %d agents", len(_WORLD.agents))
        return _WORLD


def reset_world_for_tests(*, world: World | None = None, planner: PlannerClient | None = None) -> None:
    global _WORLD, _PLANNER
    with _LOCK:
        if _WORLD is not None:
            _WORLD.close()
        if _PLANNER is not None and _PLANNER is not planner:
            _PLANNER.close()
        _WORLD = world
        _PLANNER = planner if planner is not None else (world.planner if world is not None else None)


def shutdown_world() -> None:
    reset_world_for_tests()
