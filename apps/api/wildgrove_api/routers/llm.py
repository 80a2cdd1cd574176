"""Planner control-plane endpoints."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Query

from ..state import get_planner


router = APIRouter(prefix="/api/v1/llm", tags=["llm"])


@router.get("/policy")
def get_policy() -> dict:
    status = get_planner().status()
    return {
        "available": status["available"],
        "provider": status["provider"],
        "model": status["model"],
        "error_code": status["error_code"],
        "policy": status["policy"],
        "chat_policy": status["chat_policy"],
    }


@router.get("/logs")
def get_logs(
    limit: int = Query(default=50, ge=1, le=200),
    task_name: Optional[str] = Query(default=None),
    agent_id: Optional[str] = Query(default=None),
) -> dict:
    rows = get_planner().recent_logs(limit=200)
    if task_name:
        rows = [row for row in rows if row["task_name"] == task_name]
    if agent_id:
        rows = [row for row in rows if row["agent_id"] == agent_id]
    rows = rows[:limit]
    return {"count": len(rows), "logs": rows}


@router.get("/credentials")
def get_credentials() -> dict:
    return get_planner().pool.status()
