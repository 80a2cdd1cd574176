"""Starter village used by the API process and headless runs."""

from __future__ import annotations

from typing import TYPE_CHECKING
import math
import random

from .config import AgentConfig
from .entities import Character, WorldObject
from .geometry import Vec3
from .world import World

if TYPE_CHECKING:
    from ..llm.planner import PlannerClient


PLAYER_ID = "player"

STARTER_NPCS = (
    {
        "entity_id": "npc_bjorn",
        "name": "Bjorn",
        "persona": "A gruff woodcutter who values hard work and keeps a stockpile of wood for winter.",
        "home": Vec3(-6.0, 0.0, 4.0),
    },
    {
        "entity_id": "npc_mira",
        "name": "Mira",
        "persona": "A curious herbalist who gathers plants and loves to gossip with anyone nearby.",
        "home": Vec3(5.0, 0.0, -3.0),
    },
    {
        "entity_id": "npc_kael",
        "name": "Kael",
        "persona": "A restless young guard, quick to anger, suspicious of strangers.",
        "home": Vec3(0.0, 0.0, 8.0),
    },
)

STARTER_OBJECTS = (
    ("tree", "wood", 8, 14.0, 2_500),
    ("rock", "stone", 5, 12.0, 3_000),
    ("herb", "herb", 6, 10.0, 1_500),
)


def rolling_terrain(x: float, z: float) -> float:
    return 0.6 * math.sin(x * 0.12) * math.cos(z * 0.09)


def build_starter_world(
    *,
    planner: "PlannerClient | None" = None,
    config: AgentConfig | None = None,
    seed: int | None = None,
) -> World:
    rng = random.Random(seed)
    world = World(planner=planner, config=config, terrain_height=rolling_terrain, rng=rng)

    world.add_character(Character(entity_id=PLAYER_ID, name="Player", position=Vec3(0.0, 0.0, 0.0), is_player=True))
    for row in STARTER_NPCS:
        world.add_character(
            Character(
                entity_id=row["entity_id"],
                name=row["name"],
                persona=row["persona"],
                position=row["home"],
                search_radius=world.config.search_radius,
                roam_radius=world.config.roam_radius,
            )
        )

    for object_type, resource, count, spread, gather_ms in STARTER_OBJECTS:
        for idx in range(count):
            angle = rng.random() * math.pi * 2.0
            distance = 4.0 + rng.random() * spread
            world.add_object(
                WorldObject(
                    entity_id=f"{object_type}_{idx + 1}",
                    name=f"{object_type.title()} {idx + 1}",
                    position=Vec3(math.cos(angle) * distance, 0.0, math.sin(angle) * distance),
                    object_type=object_type,
                    resource=resource,
                    gather_ms=gather_ms,
                )
            )
    return world
