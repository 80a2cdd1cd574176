"""Per-character decision loop and local state machine.

An ``Agent`` owns nothing in the world; it drives its ``Character`` through
the character primitives (``look_at``, ``translate``, ``show_message``,
``trigger_interaction``). Planner calls are issued as futures and polled on
later ticks, stamped with a generation so stale results are dropped.
"""

from __future__ import annotations

from collections import deque
from concurrent.futures import CancelledError, Future
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any
import logging
import random

from .actions import InvalidActionError
from .config import AgentConfig
from .cooldown import CooldownGovernor
from .entities import Character, WorldObject
from .fallback import FallbackPolicy
from .geometry import Vec3
from .interpreter import ActionInterpreter
from .observation import Observation, has_significant_change, sample_observation

if TYPE_CHECKING:
    from ..llm.planner import PlannerClient
    from .world import World


logger = logging.getLogger("wildgrove_core.sim.agent")

HISTORY_LIMIT = 50


class AgentState(str, Enum):
    IDLE = "idle"
    ROAMING = "roaming"
    MOVING_TO_RESOURCE = "movingToResource"
    GATHERING = "gathering"
    MOVING_TO_TARGET = "movingToTarget"
    DEAD = "dead"


@dataclass
class ResourceTarget:
    obj: WorldObject
    gather_ms: int
    elapsed_ms: int = 0


@dataclass
class InteractionTarget:
    character: Character
    kind: str
    message: str | None = None


@dataclass(frozen=True)
class PendingPlan:
    future: Future
    generation: int
    issued_ms: int
    deadline_ms: int


class Agent:
    def __init__(
        self,
        character: Character,
        world: "World",
        *,
        planner: "PlannerClient | None" = None,
        config: AgentConfig | None = None,
        interpreter: ActionInterpreter | None = None,
        fallback: FallbackPolicy | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.character = character
        self.world = world
        self.planner = planner
        self.config = config or AgentConfig()
        self.interpreter = interpreter or ActionInterpreter()
        self.rng = rng or random.Random()
        self.fallback = fallback or FallbackPolicy(terrain_height=world.terrain_height, rng=self.rng)

        self.state = AgentState.IDLE
        self.previous_state: AgentState | None = None
        self.home: Vec3 = character.position or Vec3()
        self.destination: Vec3 | None = None
        self.resource_target: ResourceTarget | None = None
        self.interaction_target: InteractionTarget | None = None
        self.persona = character.persona
        self.intent = character.intent
        self.search_radius = float(character.search_radius or self.config.search_radius)
        self.roam_radius = float(character.roam_radius or self.config.roam_radius)
        self.interaction_distance = float(self.config.interaction_distance)

        self.cooldown = CooldownGovernor(self.config.plan_cooldown_ms)
        self.pending: PendingPlan | None = None
        self.generation = 0
        self.idle_timer_s = self._roll_idle_timer()
        self.observation: Observation | None = None
        self.previous_observation: Observation | None = None
        self.last_error: str | None = None
        self.plans_issued = 0
        self.history: deque[dict[str, Any]] = deque(maxlen=HISTORY_LIMIT)

    @property
    def agent_id(self) -> str:
        return self.character.entity_id

    @property
    def last_plan_ms(self) -> int | None:
        return self.cooldown.last_plan_ms

    def _roll_idle_timer(self) -> float:
        return self.config.idle_timer_base_s + self.rng.random() * self.config.idle_timer_random_s

    def _roll_post_action_timer(self) -> float:
        return self.config.post_action_timer_base_s + self.rng.random() * self.config.post_action_timer_random_s

    def sample_observation(self, now_ms: int | None = None) -> Observation:
        return sample_observation(
            self_character=self.character,
            entities=self.world.entities(),
            search_radius=self.search_radius,
            now_ms=self.world.clock_ms if now_ms is None else now_ms,
            self_state=self.state.value,
        )

    def tick(self, dt_s: float, now_ms: int) -> None:
        if self.character.dead:
            if self.state is not AgentState.DEAD:
                self.enter_dead()
            return
        if self.state is AgentState.DEAD:
            return

        self.previous_observation = self.observation
        self.observation = self.sample_observation(now_ms)

        if self.pending is not None:
            self._poll_pending(now_ms)
            # A resolved plan that leaves us idle waits one tick before the idle timer runs.
            if self.pending is None and self.state is AgentState.IDLE:
                return

        handler = {
            AgentState.IDLE: self._tick_idle,
            AgentState.ROAMING: self._tick_roaming,
            AgentState.MOVING_TO_RESOURCE: self._tick_moving_to_resource,
            AgentState.GATHERING: self._tick_gathering,
            AgentState.MOVING_TO_TARGET: self._tick_moving_to_target,
        }.get(self.state)
        if handler is not None:
            handler(dt_s, now_ms)

    # Planning

    def _issue_plan(self, now_ms: int, reason: str) -> None:
        if self.planner is None:
            self.last_error = "planner_unavailable"
            self.fallback.apply(self, "planner_unavailable")
            return
        self.cooldown.mark_issued(now_ms)
        self.idle_timer_s = self._roll_idle_timer()
        try:
            future = self.planner.request_plan(self)
        except Exception as exc:
            logger.exception("[AGENT] %s could not issue plan request", self.agent_id)
            self.last_error = f"request_exception:{exc.__class__.__name__}"
            self.fallback.apply(self, self.last_error)
            return
        idle_window_ms = int((self.config.idle_timer_base_s + self.config.idle_timer_random_s) * 1000)
        deadline_ms = int(now_ms) + int(self.planner.policy.timeout_ms) + idle_window_ms
        self.pending = PendingPlan(
            future=future,
            generation=self.generation,
            issued_ms=int(now_ms),
            deadline_ms=deadline_ms,
        )
        self.plans_issued += 1
        logger.debug("[AGENT] %s issued plan (%s, generation %d)", self.agent_id, reason, self.generation)
        self.world.log_event(
            self.character,
            "plan_request",
            f"{self.character.name} is thinking",
            details={"reason": reason, "generation": self.generation},
        )

    def _poll_pending(self, now_ms: int) -> None:
        pending = self.pending
        if pending is None:
            return
        if pending.generation != self.generation:
            pending.future.cancel()
            self.pending = None
            return
        if not pending.future.done():
            if now_ms >= pending.deadline_ms:
                pending.future.cancel()
                self.pending = None
                self.generation += 1
                self.last_error = "deadline_expired"
                logger.info("[AGENT] %s plan deadline expired", self.agent_id)
                self.fallback.apply(self, "deadline_expired")
            return

        self.pending = None
        try:
            action = pending.future.result()
        except CancelledError:
            self.last_error = "cancelled"
            self.fallback.apply(self, "cancelled")
            return
        except InvalidActionError as exc:
            self.last_error = exc.error_code
            self.interpreter.reject(self, exc.action_kind or "action", str(exc), intent=exc.intent)
            return
        except Exception as exc:
            code = getattr(exc, "error_code", None) or f"planner_exception:{exc.__class__.__name__}"
            self.last_error = code
            logger.info("[AGENT] %s planner call failed: %s", self.agent_id, code)
            self.fallback.apply(self, code)
            return

        self.last_error = None
        self.interpreter.apply(self, action, self.observation)

    # State handlers

    def _tick_idle(self, dt_s: float, now_ms: int) -> None:
        if self.pending is not None:
            return
        if has_significant_change(self.observation, self.previous_observation) and self.cooldown.permits(now_ms):
            self._issue_plan(now_ms, "change")
            return
        self.idle_timer_s -= dt_s
        if self.idle_timer_s > 0:
            return
        if self.cooldown.permits(now_ms):
            self._issue_plan(now_ms, "idle_timer")
        else:
            self.fallback.apply(self, "cooldown")

    def _step_toward(self, target: Vec3, dt_s: float, stop_distance: float = 0.0) -> float:
        """Move in a straight line toward ``target``; returns remaining planar distance."""
        position = self.character.position
        if position is None:
            return 0.0
        remaining = position.planar_distance(target)
        if remaining <= max(stop_distance, 1e-6):
            return remaining
        self.character.look_at(target)
        step = min(remaining - stop_distance, self.config.move_speed * max(0.0, dt_s))
        direction = (target - position).flat().normalized()
        self.character.translate(direction.scaled(step))
        return self.character.position.planar_distance(target) if self.character.position else 0.0

    def _tick_roaming(self, dt_s: float, now_ms: int) -> None:
        if self.destination is None:
            self.go_idle()
            return
        remaining = self._step_toward(self.destination, dt_s)
        if remaining < self.config.arrival_epsilon:
            self.go_idle()

    def _resource_valid(self, obj: WorldObject) -> bool:
        return obj.available and self.world.get_object(obj.entity_id) is obj

    def _tick_moving_to_resource(self, dt_s: float, now_ms: int) -> None:
        target = self.resource_target
        if target is None or not self._resource_valid(target.obj):
            self._abort("gather", target.obj.entity_id if target else None, "resource is no longer available")
            return
        obj_position = target.obj.position or self.home
        position = self.character.position or self.home
        if position.planar_distance(obj_position) > self.interaction_distance:
            self._step_toward(obj_position, dt_s, stop_distance=self.interaction_distance * 0.9)
            position = self.character.position or self.home
        if position.planar_distance(obj_position) <= self.interaction_distance:
            self.character.look_at(obj_position)
            self.destination = None
            target.elapsed_ms = 0
            self._set_state(AgentState.GATHERING)
            self.world.log_event(
                self.character,
                "gather_start",
                f"{self.character.name} started gathering {target.obj.name}",
                target=target.obj.entity_id,
            )

    def _tick_gathering(self, dt_s: float, now_ms: int) -> None:
        target = self.resource_target
        if target is None or not self._resource_valid(target.obj):
            self._abort("gather", target.obj.entity_id if target else None, "resource vanished mid-gather")
            return
        target.elapsed_ms += int(round(dt_s * 1000))
        if target.elapsed_ms < target.gather_ms:
            return

        obj = target.obj
        item = obj.resource or obj.object_type
        if self.character.inventory.add_item(item, 1):
            self.world.log_event(
                self.character,
                "gather_complete",
                f"{self.character.name} gathered 1 {item} from {obj.name}",
                target=obj.entity_id,
                details={"item": item, "count": 1},
            )
            if obj.depletable:
                self.world.deplete_object(obj)
        else:
            self.world.log_event(
                self.character,
                "gather_fail",
                f"{self.character.name} could not carry more {item}",
                target=obj.entity_id,
                details={"item": item, "reason": "inventory_full"},
            )
        self.go_idle(timer_s=self._roll_post_action_timer())

    def _tick_moving_to_target(self, dt_s: float, now_ms: int) -> None:
        interaction = self.interaction_target
        if interaction is None:
            self.go_idle()
            return
        target = interaction.character
        if target.dead or not target.in_world or target.position is None:
            self._abort(interaction.kind, target.entity_id, "target is gone")
            return
        self.destination = target.position
        position = self.character.position or self.home
        if position.planar_distance(target.position) > self.interaction_distance:
            self._step_toward(target.position, dt_s, stop_distance=self.interaction_distance * 0.9)
            position = self.character.position or self.home
        if position.planar_distance(target.position) <= self.interaction_distance:
            self._perform_interaction(interaction)

    def _perform_interaction(self, interaction: InteractionTarget) -> None:
        target = interaction.character
        if target.position is not None:
            self.character.look_at(target.position)
        if interaction.kind == "chat" and interaction.message:
            self.character.show_message(interaction.message)
            self.character.trigger_interaction("chat", target)
            self.world.log_event(
                self.character,
                "chat",
                f'{self.character.name} said to {target.name}: "{interaction.message}"',
                target=target.entity_id,
                details={"message": interaction.message},
            )
            self.world.request_chat_reply(target, self.character, interaction.message)
        elif interaction.kind == "attack":
            self.character.trigger_interaction("attack", target)
        self.go_idle(timer_s=self._roll_post_action_timer())

    def _abort(self, kind: str, target_id: str | None, reason: str) -> None:
        logger.info("[AGENT] %s aborted %s: %s", self.agent_id, kind, reason)
        self.world.log_event(
            self.character,
            f"{kind}_abort",
            f"{self.character.name} gave up on {kind}: {reason}",
            target=target_id,
            details={"reason": reason},
        )
        self.go_idle()

    # Transitions used by the interpreter and fallback policy

    def _set_intent(self, text: str | None) -> None:
        if text is None:
            return
        self.intent = text
        self.character.set_intent(text)

    def _clear_targets(self) -> None:
        self.destination = None
        self.resource_target = None
        self.interaction_target = None

    def _drop_pending(self) -> None:
        if self.pending is not None:
            self.pending.future.cancel()
            self.pending = None
            self.generation += 1

    def go_idle(self, *, intent: str | None = None, timer_s: float | None = None) -> None:
        self._clear_targets()
        self._set_intent(intent)
        self.idle_timer_s = self._roll_idle_timer() if timer_s is None else max(0.0, float(timer_s))
        self._set_state(AgentState.IDLE)

    def begin_move(self, destination: Vec3, *, intent: str = "") -> None:
        self._clear_targets()
        self.destination = destination
        self._set_intent(intent or None)
        self._set_state(AgentState.ROAMING)

    def begin_gather(self, obj: WorldObject, *, intent: str = "") -> None:
        self._clear_targets()
        gather_ms = int(obj.gather_ms or self.config.default_gather_ms)
        self.resource_target = ResourceTarget(obj=obj, gather_ms=gather_ms)
        self.destination = obj.position
        self._set_intent(intent or None)
        self._set_state(AgentState.MOVING_TO_RESOURCE)

    def begin_interaction(
        self,
        target: Character,
        kind: str,
        *,
        message: str | None = None,
        intent: str = "",
    ) -> None:
        self._clear_targets()
        self.interaction_target = InteractionTarget(character=target, kind=kind, message=message)
        self.destination = target.position
        self._set_intent(intent or None)
        self._set_state(AgentState.MOVING_TO_TARGET)

    def begin_fallback_roam(self, destination: Vec3, *, intent: str, reason: str) -> None:
        self._drop_pending()
        self._clear_targets()
        self.destination = destination
        self._set_intent(intent)
        self._set_state(AgentState.ROAMING)
        self.world.log_event(
            self.character,
            "fallback",
            f"{self.character.name} wanders off ({reason})",
            details={"reason": reason, "destination": destination.as_dict()},
        )

    def enter_dead(self) -> None:
        self._drop_pending()
        self.generation += 1
        self._clear_targets()
        self._set_state(AgentState.DEAD)

    def respawn(self) -> None:
        """Reset to idle at home; only meaningful after ``enter_dead``."""
        self._drop_pending()
        self.generation += 1
        self._clear_targets()
        self.observation = None
        self.previous_observation = None
        self.last_error = None
        self.idle_timer_s = self._roll_idle_timer()
        self._set_intent("")
        self._set_state(AgentState.IDLE)

    def recover(self, reason: str) -> None:
        if self.character.dead:
            self.enter_dead()
            return
        self.last_error = reason
        self.fallback.apply(self, reason)

    def shutdown(self) -> None:
        self._drop_pending()

    def _set_state(self, new_state: AgentState) -> None:
        if new_state is self.state:
            return
        previous = self.state
        self.previous_state = previous
        self.state = new_state
        self.history.append(
            {
                "at_ms": self.world.clock_ms,
                "from": previous.value,
                "to": new_state.value,
                "intent": self.intent,
            }
        )
        logger.info("[AGENT] %s: %s -> %s", self.agent_id, previous.value, new_state.value)

    # Inspection

    def prompt_inputs(self) -> dict[str, Any]:
        observation = self.observation or self.sample_observation()
        return {
            "name": self.character.name,
            "persona": self.persona,
            "observation": observation,
            "inventory_summary": self.character.inventory.summary(),
            "intent": self.intent,
            "event_lines": self.character.event_log.recent_lines(len(self.character.event_log)),
        }

    def as_dict(self, *, include_observation: bool = False) -> dict[str, Any]:
        now_ms = self.world.clock_ms
        data: dict[str, Any] = {
            "id": self.agent_id,
            "name": self.character.name,
            "state": self.state.value,
            "previous_state": self.previous_state.value if self.previous_state else None,
            "intent": self.intent,
            "health": round(self.character.health, 2),
            "dead": self.character.dead,
            "position": self.character.position.as_dict() if self.character.position else None,
            "home": self.home.as_dict(),
            "destination": self.destination.as_dict() if self.destination else None,
            "resource_target": self.resource_target.obj.entity_id if self.resource_target else None,
            "interaction_target": (
                {
                    "id": self.interaction_target.character.entity_id,
                    "kind": self.interaction_target.kind,
                    "message": self.interaction_target.message,
                }
                if self.interaction_target
                else None
            ),
            "last_plan_ms": self.last_plan_ms,
            "cooldown_remaining_ms": self.cooldown.remaining_ms(now_ms),
            "plan_pending": self.pending is not None,
            "plans_issued": self.plans_issued,
            "generation": self.generation,
            "last_error": self.last_error,
            "inventory": self.character.inventory.as_list(),
        }
        if include_observation:
            data["observation"] = self.observation.as_dict() if self.observation else None
            data["history"] = list(self.history)
        return data
