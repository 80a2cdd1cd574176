"""Agent inspection and respawn endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException

from ..state import get_world


router = APIRouter(prefix="/api/v1/agents", tags=["agents"])


@router.get("")
def list_agents() -> dict:
    world = get_world()
    with world.lock:
        agents = [agent.as_dict() for agent in world.agents.values()]
    return {"count": len(agents), "agents": agents}


@router.get("/{agent_id}")
def get_agent(agent_id: str) -> dict:
    world = get_world()
    with world.lock:
        agent = world.agents.get(agent_id)
        if agent is None:
            raise HTTPException(status_code=404, detail=f"Agent not found: {agent_id}")
        return {"agent": agent.as_dict(include_observation=True)}


@router.post("/{agent_id}/respawn")
def respawn_agent(agent_id: str) -> dict:
    world = get_world()
    with world.lock:
        if world.get_character(agent_id) is None:
            raise HTTPException(status_code=404, detail=f"Character not found: {agent_id}")
        respawned = world.respawn_character(agent_id)
        if not respawned:
            raise HTTPException(status_code=409, detail=f"Character is not dead: {agent_id}")
        agent = world.agents.get(agent_id)
        character = world.get_character(agent_id)
        return {
            "ok": True,
            "agent": agent.as_dict() if agent else None,
            "character": character.summary_dict() if character else None,
        }
