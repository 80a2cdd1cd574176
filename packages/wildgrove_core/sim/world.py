"""In-memory world: entity registry, clock, journal and tick driver."""

from __future__ import annotations

from concurrent.futures import Future
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable
import logging
import random
import threading

from .agent import Agent, AgentState
from .config import AgentConfig, RESPAWN_HEALTH_FACTOR
from .entities import Character, Entity, WorldObject
from .events import EventEntry, EventLog
from .fallback import FallbackPolicy
from .geometry import Vec3
from .interpreter import ActionInterpreter
from .schedule import Schedule, ScheduledEntry

if TYPE_CHECKING:
    from ..llm.planner import PlannerClient


logger = logging.getLogger("wildgrove_core.sim.world")

JOURNAL_SIZE = 400
CHAT_FALLBACK_REPLY = "Hmm...."

TerrainFn = Callable[[float, float], float]


def flat_terrain(x: float, z: float) -> float:
    return 0.0


@dataclass
class _PendingReply:
    future: Future
    responder: Character
    speaker: Character
    issued_ms: int


class World:
    """Owns every entity and drives all agents from a single tick thread."""

    def __init__(
        self,
        *,
        planner: "PlannerClient | None" = None,
        config: AgentConfig | None = None,
        terrain_height: TerrainFn | None = None,
        rng: random.Random | None = None,
        seed: int | None = None,
        journal_size: int = JOURNAL_SIZE,
    ) -> None:
        self.planner = planner
        self.config = config or AgentConfig()
        self._terrain = terrain_height or flat_terrain
        self.rng = rng or random.Random(seed)
        self.clock_ms = 0
        self.ticks = 0
        self.lock = threading.RLock()
        self.schedule = Schedule()
        self.journal = EventLog(journal_size)
        self.interpreter = ActionInterpreter()
        self.fallback = FallbackPolicy(terrain_height=self.terrain_height, rng=self.rng)
        self.agents: dict[str, Agent] = {}
        self._entities: dict[str, Entity] = {}
        self._respawns: dict[str, ScheduledEntry] = {}
        self._pending_replies: list[_PendingReply] = []
        self.closed = False

    # Registry

    def terrain_height(self, x: float, z: float) -> float:
        return float(self._terrain(x, z))

    def _snap(self, position: Vec3 | None) -> Vec3 | None:
        if position is None:
            return None
        return position.with_y(self.terrain_height(position.x, position.z))

    def _register(self, entity: Entity) -> None:
        if entity.entity_id in self._entities:
            raise ValueError(f"Duplicate entity id: {entity.entity_id}")
        entity.position = self._snap(entity.position)
        entity.world = self
        self._entities[entity.entity_id] = entity

    def add_character(self, character: Character, *, autonomous: bool | None = None) -> Agent | None:
        with self.lock:
            self._register(character)
            agent = None
            if autonomous is None:
                autonomous = not character.is_player
            if autonomous:
                agent = Agent(
                    character,
                    self,
                    planner=self.planner,
                    config=self.config,
                    interpreter=self.interpreter,
                    fallback=self.fallback,
                    rng=self.rng,
                )
                character.agent = agent
                self.agents[character.entity_id] = agent
            logger.info("[WORLD] Spawned %s (%s)", character.entity_id, "agent" if agent else "no agent")
            self.log_event(character, "spawn", f"{character.name} arrived")
            return agent

    def add_object(self, obj: WorldObject) -> WorldObject:
        with self.lock:
            self._register(obj)
            return obj

    def remove_entity(self, entity_id: str) -> Entity | None:
        with self.lock:
            entity = self._entities.pop(entity_id, None)
            if entity is None:
                return None
            agent = self.agents.pop(entity_id, None)
            if agent is not None:
                agent.shutdown()
                if isinstance(entity, Character):
                    entity.agent = None
            entry = self._respawns.pop(entity_id, None)
            if entry is not None:
                Schedule.cancel(entry)
            entity.world = None
            logger.info("[WORLD] Removed %s", entity_id)
            return entity

    def get_entity(self, entity_id: str) -> Entity | None:
        return self._entities.get(entity_id)

    def get_character(self, entity_id: str) -> Character | None:
        entity = self._entities.get(entity_id)
        return entity if isinstance(entity, Character) else None

    def get_object(self, entity_id: str) -> WorldObject | None:
        entity = self._entities.get(entity_id)
        return entity if isinstance(entity, WorldObject) else None

    def entities(self) -> list[Entity]:
        return list(self._entities.values())

    def characters(self) -> list[Character]:
        return [entity for entity in self._entities.values() if isinstance(entity, Character)]

    def objects(self) -> list[WorldObject]:
        return [entity for entity in self._entities.values() if isinstance(entity, WorldObject)]

    # Events

    def log_event(
        self,
        actor: Entity | str,
        kind: str,
        message: str,
        target: Entity | str | None = None,
        details: dict[str, Any] | None = None,
        position: Vec3 | None = None,
    ) -> EventEntry:
        """Record an event in the journal and in every character's own log."""
        actor_id = actor if isinstance(actor, str) else actor.entity_id
        target_id = target.entity_id if isinstance(target, Entity) else target
        if position is None and isinstance(actor, Entity):
            position = actor.position
        entry = EventEntry(
            timestamp_ms=self.clock_ms,
            actor_id=actor_id,
            kind=kind,
            message=message,
            target_id=target_id,
            details=dict(details or {}),
            position=position,
        )
        self.journal.add_entry(entry)
        for character in self.characters():
            character.event_log.add_entry(entry)
        logger.debug("[WORLD] %s %s: %s", kind, actor_id, message)
        return entry

    # Simulation

    def tick(self, dt_s: float) -> int:
        """Advance the clock by ``dt_s`` seconds and run every agent once."""
        with self.lock:
            if self.closed:
                return self.clock_ms
            self.clock_ms += max(0, int(round(float(dt_s) * 1000)))
            self.ticks += 1
            self.schedule.run_due(self.clock_ms)
            self._poll_chat_replies()
            for agent in list(self.agents.values()):
                try:
                    agent.tick(dt_s, self.clock_ms)
                except Exception:
                    logger.exception("[WORLD] Agent %s failed during tick", agent.agent_id)
                    try:
                        agent.recover("tick_exception")
                    except Exception:
                        logger.exception("[WORLD] Agent %s could not recover", agent.agent_id)
            return self.clock_ms

    def run(self, seconds: float, dt_s: float = 0.1) -> int:
        steps = max(0, int(round(float(seconds) / float(dt_s))))
        for _ in range(steps):
            self.tick(dt_s)
        return self.clock_ms

    def resolve_attack(self, attacker: Character, target: Character, damage: float | None = None) -> bool:
        if target.dead or not target.in_world:
            return False
        amount = float(self.config.attack_damage if damage is None else damage)
        killed = target.take_damage(amount)
        self.log_event(
            attacker,
            "attack_hit",
            f"{attacker.name} hit {target.name} for {amount:g} damage",
            target=target,
            details={"damage": amount, "target_health": round(target.health, 2)},
        )
        if killed:
            self.log_event(target, "death", f"{target.name} died", target=attacker)
            if target.agent is not None:
                target.agent.enter_dead()
        return True

    def deplete_object(self, obj: WorldObject) -> None:
        obj.visible = False
        obj.interactable = False
        delay_ms = int(obj.respawn_ms or self.config.default_resource_respawn_ms)
        self._respawns[obj.entity_id] = self.schedule.schedule(
            self.clock_ms + delay_ms,
            lambda: self._restore_object(obj),
            label=f"respawn:{obj.entity_id}",
        )
        self.log_event(obj, "resource_depleted", f"{obj.name} was depleted", details={"respawn_in_ms": delay_ms})

    def _restore_object(self, obj: WorldObject) -> None:
        self._respawns.pop(obj.entity_id, None)
        if self.get_object(obj.entity_id) is not obj:
            return
        obj.visible = True
        obj.interactable = True
        self.log_event(obj, "resource_respawn", f"{obj.name} grew back")

    def respawn_character(self, character_id: str) -> bool:
        """Bring a dead character back home at reduced health. Returns False if alive."""
        with self.lock:
            character = self.get_character(character_id)
            if character is None:
                raise KeyError(character_id)
            if not character.dead:
                return False
            agent = character.agent
            home = agent.home if agent is not None else (character.position or Vec3())
            character.dead = False
            character.health = character.max_health * RESPAWN_HEALTH_FACTOR
            character.position = self._snap(home)
            character.message = None
            if agent is not None:
                agent.respawn()
            self.log_event(character, "respawn", f"{character.name} respawned at home")
            return True

    def request_chat_reply(self, responder: Character, speaker: Character, message: str) -> None:
        if responder.agent is None or responder.dead or self.planner is None:
            return
        try:
            future = self.planner.request_chat_reply(responder, speaker, message)
        except Exception:
            logger.exception("[WORLD] Chat reply request for %s failed", responder.entity_id)
            self._show_reply_fallback(responder, speaker, "request_exception")
            return
        self._pending_replies.append(
            _PendingReply(future=future, responder=responder, speaker=speaker, issued_ms=self.clock_ms)
        )

    def _poll_chat_replies(self) -> None:
        still_pending: list[_PendingReply] = []
        for pending in self._pending_replies:
            if not pending.future.done():
                still_pending.append(pending)
                continue
            responder = pending.responder
            if responder.dead or not responder.in_world:
                continue
            try:
                reply = pending.future.result()
            except Exception as exc:
                self._show_reply_fallback(responder, pending.speaker, getattr(exc, "error_code", None) or "chat_failed")
                continue
            responder.show_message(reply)
            self.log_event(
                responder,
                "chat_reply",
                f'{responder.name} replied to {pending.speaker.name}: "{reply}"',
                target=pending.speaker,
                details={"message": reply},
            )
        self._pending_replies = still_pending

    def _show_reply_fallback(self, responder: Character, speaker: Character, error_code: str) -> None:
        responder.show_message(CHAT_FALLBACK_REPLY)
        self.log_event(
            responder,
            "chat_error",
            f"{responder.name} could not think of a reply to {speaker.name}",
            target=speaker,
            details={"error_code": error_code, "message": CHAT_FALLBACK_REPLY},
        )

    def close(self) -> None:
        with self.lock:
            self.closed = True
            self.schedule.clear()
            self._respawns.clear()
            for pending in self._pending_replies:
                pending.future.cancel()
            self._pending_replies.clear()
            for agent in self.agents.values():
                agent.shutdown()
            logger.info("[WORLD] Closed at clock %d ms", self.clock_ms)

    def snapshot(self) -> dict[str, Any]:
        with self.lock:
            characters = []
            for character in self.characters():
                row = character.summary_dict()
                row["state"] = character.agent.state.value if character.agent else None
                characters.append(row)
            states: dict[str, int] = {}
            for agent in self.agents.values():
                states[agent.state.value] = states.get(agent.state.value, 0) + 1
            return {
                "clock_ms": self.clock_ms,
                "ticks": self.ticks,
                "closed": self.closed,
                "counts": {
                    "characters": len(characters),
                    "agents": len(self.agents),
                    "objects": len(self.objects()),
                    "dead": sum(1 for c in characters if c["dead"]),
                    "by_state": {state.value: states.get(state.value, 0) for state in AgentState},
                },
                "characters": characters,
                "objects": [obj.summary_dict() for obj in self.objects()],
                "scheduled": self.schedule.pending_labels(),
            }
