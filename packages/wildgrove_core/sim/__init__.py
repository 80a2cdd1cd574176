"""Agent decision loop and the in-memory world it runs in."""

from .actions import ActionParseError, InvalidActionError, MalformedActionError, parse_planned_action
from .agent import Agent, AgentState
from .config import AgentConfig, load_agent_config
from .entities import Character, WorldObject
from .events import EventEntry, EventLog
from .geometry import Vec3
from .inventory import Inventory
from .observation import Observation, has_significant_change, sample_observation
from .world import World, flat_terrain

__all__ = [
    "ActionParseError",
    "InvalidActionError",
    "MalformedActionError",
    "parse_planned_action",
    "Agent",
    "AgentState",
    "AgentConfig",
    "load_agent_config",
    "Character",
    "WorldObject",
    "EventEntry",
    "EventLog",
    "Vec3",
    "Inventory",
    "Observation",
    "has_significant_change",
    "sample_observation",
    "World",
    "flat_terrain",
]
