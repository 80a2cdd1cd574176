"""Bounded snapshots of an agent's surroundings and change detection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from .entities import Character, Entity, WorldObject
from .geometry import Vec3


PLAYER_CONTROLLED = "player_controlled"


@dataclass(frozen=True)
class SelfSummary:
    id: str
    position: Vec3
    health: float
    dead: bool
    current_state: str


@dataclass(frozen=True)
class CharacterSummary:
    id: str
    name: str
    position: Vec3
    health: float
    dead: bool
    current_action: str


@dataclass(frozen=True)
class ObjectSummary:
    id: str
    type: str
    position: Vec3
    interactable: bool
    resource: str | None = None


@dataclass(frozen=True)
class Observation:
    timestamp_ms: int
    self_summary: SelfSummary
    nearby_characters: tuple[CharacterSummary, ...] = ()
    nearby_objects: tuple[ObjectSummary, ...] = ()

    def find_character(self, character_id: str) -> CharacterSummary | None:
        for summary in self.nearby_characters:
            if summary.id == character_id:
                return summary
        return None

    def find_object(self, object_id: str) -> ObjectSummary | None:
        for summary in self.nearby_objects:
            if summary.id == object_id:
                return summary
        return None

    def as_dict(self) -> dict[str, Any]:
        return {
            "timestamp_ms": self.timestamp_ms,
            "self": {
                "id": self.self_summary.id,
                "position": self.self_summary.position.as_dict(),
                "health": self.self_summary.health,
                "dead": self.self_summary.dead,
                "current_state": self.self_summary.current_state,
            },
            "nearby_characters": [
                {
                    "id": c.id,
                    "name": c.name,
                    "position": c.position.as_dict(),
                    "health": c.health,
                    "dead": c.dead,
                    "current_action": c.current_action,
                }
                for c in self.nearby_characters
            ],
            "nearby_objects": [
                {
                    "id": o.id,
                    "type": o.type,
                    "position": o.position.as_dict(),
                    "interactable": o.interactable,
                    "resource": o.resource,
                }
                for o in self.nearby_objects
            ],
        }


def action_label_for(character: Character) -> str:
    if character.agent is not None:
        return character.agent.state.value
    if character.is_player:
        return PLAYER_CONTROLLED
    if character.dead:
        return "dead"
    return "unknown"


def sample_observation(
    *,
    self_character: Character,
    entities: Iterable[Entity],
    search_radius: float,
    now_ms: int,
    self_state: str,
) -> Observation:
    """Snapshot everything within ``search_radius`` of ``self_character``."""
    origin = self_character.position or Vec3()
    radius_sq = float(search_radius) * float(search_radius)
    characters: list[CharacterSummary] = []
    objects: list[ObjectSummary] = []

    for entity in entities:
        if entity is self_character or entity.entity_id == self_character.entity_id:
            continue
        position = entity.position
        if position is None:
            continue
        if origin.distance_sq(position) > radius_sq:
            continue
        if isinstance(entity, Character):
            characters.append(
                CharacterSummary(
                    id=entity.entity_id,
                    name=entity.name,
                    position=position,
                    health=entity.health,
                    dead=entity.dead,
                    current_action=action_label_for(entity),
                )
            )
        elif isinstance(entity, WorldObject) and entity.visible and entity.interactable:
            objects.append(
                ObjectSummary(
                    id=entity.entity_id,
                    type=entity.object_type,
                    position=position,
                    interactable=entity.interactable,
                    resource=entity.resource,
                )
            )

    return Observation(
        timestamp_ms=int(now_ms),
        self_summary=SelfSummary(
            id=self_character.entity_id,
            position=origin,
            health=self_character.health,
            dead=self_character.dead,
            current_state=self_state,
        ),
        nearby_characters=tuple(characters),
        nearby_objects=tuple(objects),
    )


def has_significant_change(current: Observation | None, previous: Observation | None) -> bool:
    """Reactive trigger: someone arrived, got hurt, died or revived, or we got hurt.

    Action-label changes are deliberately ignored.
    """
    if current is None or previous is None:
        return False
    if current.self_summary.health < previous.self_summary.health:
        return True
    before = {summary.id: summary for summary in previous.nearby_characters}
    for summary in current.nearby_characters:
        earlier = before.get(summary.id)
        if earlier is None:
            return True
        if summary.health < earlier.health:
            return True
        if summary.dead != earlier.dead:
            return True
    return False
