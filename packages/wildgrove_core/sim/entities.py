"""Reference world entities: characters and interactable objects."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .events import EventLog
from .geometry import Vec3
from .inventory import Inventory

if TYPE_CHECKING:
    from .agent import Agent
    from .world import World


@dataclass(eq=False)
class Entity:
    entity_id: str
    name: str
    position: Vec3 | None = None

    def __post_init__(self) -> None:
        self.world: World | None = None

    @property
    def in_world(self) -> bool:
        return self.world is not None and self.world.get_entity(self.entity_id) is self


@dataclass(eq=False)
class Character(Entity):
    """A humanoid in the world, either player-driven or run by an ``Agent``."""

    health: float = 100.0
    max_health: float = 100.0
    dead: bool = False
    is_player: bool = False
    persona: str = ""
    search_radius: float = 30.0
    roam_radius: float = 10.0
    inventory: Inventory = field(default_factory=Inventory)
    event_log: EventLog = field(default_factory=EventLog)
    facing: Vec3 = field(default_factory=lambda: Vec3(0.0, 0.0, 1.0))
    intent: str = ""
    message: str | None = None

    def __post_init__(self) -> None:
        super().__post_init__()
        self.agent: Agent | None = None
        self.messages: deque[str] = deque(maxlen=20)
        self.interactions: deque[tuple[str, Any]] = deque(maxlen=20)

    def look_at(self, point: Vec3) -> None:
        if self.position is None:
            return
        direction = (point - self.position).flat().normalized()
        if direction.length() > 0.0:
            self.facing = direction

    def translate(self, delta: Vec3) -> None:
        if self.position is None:
            return
        moved = self.position + delta.flat()
        if self.world is not None:
            moved = moved.with_y(self.world.terrain_height(moved.x, moved.z))
        self.position = moved

    def show_message(self, text: str) -> None:
        self.message = text
        self.messages.append(text)

    def set_intent(self, text: str) -> None:
        self.intent = text

    def trigger_interaction(self, kind: str, payload: Any = None) -> None:
        self.interactions.append((kind, payload))
        if kind == "attack" and self.world is not None and isinstance(payload, Character):
            self.world.resolve_attack(self, payload)

    def take_damage(self, amount: float) -> bool:
        """Apply damage; returns True when this hit killed the character."""
        if self.dead or amount <= 0:
            return False
        self.health = max(0.0, self.health - float(amount))
        if self.health <= 0.0:
            self.dead = True
            return True
        return False

    def summary_dict(self) -> dict[str, Any]:
        return {
            "id": self.entity_id,
            "name": self.name,
            "position": self.position.as_dict() if self.position else None,
            "health": round(self.health, 2),
            "max_health": self.max_health,
            "dead": self.dead,
            "is_player": self.is_player,
            "intent": self.intent,
            "message": self.message,
            "inventory": self.inventory.as_list(),
        }


@dataclass(eq=False)
class WorldObject(Entity):
    """A static interactable such as a tree, rock or herb patch."""

    object_type: str = "interactable_object"
    resource: str | None = None
    visible: bool = True
    interactable: bool = True
    depletable: bool = True
    gather_ms: int | None = None
    respawn_ms: int | None = None

    @property
    def available(self) -> bool:
        return self.visible and self.interactable and self.in_world

    def summary_dict(self) -> dict[str, Any]:
        return {
            "id": self.entity_id,
            "type": self.object_type,
            "name": self.name,
            "position": self.position.as_dict() if self.position else None,
            "resource": self.resource,
            "visible": self.visible,
            "interactable": self.interactable,
        }
