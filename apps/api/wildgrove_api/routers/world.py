"""World inspection and control endpoints."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Query
from pydantic import BaseModel, Field

from ..services.runtime_scheduler import (
    start_world_runtime_scheduler,
    stop_world_runtime_scheduler,
    world_runtime_scheduler_status,
)
from ..state import get_world


router = APIRouter(prefix="/api/v1/world", tags=["world"])


class TickWorldRequest(BaseModel):
    steps: int = Field(default=1, ge=1, le=600)
    dt_s: float = Field(default=0.1, gt=0.0, le=5.0)


class RuntimeStartRequest(BaseModel):
    tick_hz: Optional[float] = Field(default=None, gt=0.0, le=60.0)


@router.get("/state")
def get_world_state() -> dict:
    return get_world().snapshot()


@router.post("/tick")
def tick_world(req: TickWorldRequest) -> dict:
    world = get_world()
    for _ in range(req.steps):
        world.tick(req.dt_s)
    with world.lock:
        return {
            "ok": True,
            "steps": req.steps,
            "dt_s": req.dt_s,
            "clock_ms": world.clock_ms,
            "agents": [agent.as_dict() for agent in world.agents.values()],
        }


@router.get("/events")
def get_world_events(
    limit: int = Query(default=50, ge=1, le=400),
    kind: Optional[str] = Query(default=None),
) -> dict:
    world = get_world()
    with world.lock:
        entries = world.journal.by_kind(kind) if kind else world.journal.entries
    rows = [entry.as_dict() for entry in entries[-limit:]]
    return {"count": len(rows), "events": rows}


@router.get("/runtime")
def get_runtime_status() -> dict:
    return world_runtime_scheduler_status()


@router.post("/runtime/start")
def start_runtime(req: Optional[RuntimeStartRequest] = None) -> dict:
    started = start_world_runtime_scheduler(tick_hz=req.tick_hz if req else None)
    return {"ok": True, "started": started, "runtime": world_runtime_scheduler_status()}


@router.post("/runtime/stop")
def stop_runtime() -> dict:
    stopped = stop_world_runtime_scheduler()
    return {"ok": True, "stopped": stopped, "runtime": world_runtime_scheduler_status()}
