"""Turns a validated planner action into a state transition.

References are re-checked against the agent's freshly sampled observation
and the live world, since the world has moved on while the call was in
flight.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
import logging

from .actions import (
    AttackAction,
    ChatAction,
    GatherAction,
    HOME_TARGET,
    IdleAction,
    MoveToAction,
    PlannedAction,
)
from .observation import Observation

if TYPE_CHECKING:
    from .agent import Agent


logger = logging.getLogger("wildgrove_core.sim.interpreter")


class StaleReferenceError(LookupError):
    def __init__(self, message: str, *, target_id: str | None = None) -> None:
        super().__init__(message)
        self.target_id = target_id


class ActionInterpreter:
    def apply(self, agent: "Agent", action: PlannedAction, observation: Observation | None) -> None:
        if observation is None:
            observation = agent.sample_observation()
        try:
            self._dispatch(agent, action, observation)
        except StaleReferenceError as exc:
            self.reject(agent, action.kind, str(exc), target_id=exc.target_id, intent=action.intent)
            return
        self._log_decision(agent, action)

    def _dispatch(self, agent: "Agent", action: PlannedAction, observation: Observation) -> None:
        world = agent.world
        intent = action.intent

        if isinstance(action, IdleAction):
            agent.go_idle(intent=intent or None)
            return

        if isinstance(action, GatherAction):
            summary = observation.find_object(action.object_id)
            if summary is None or not summary.interactable:
                raise StaleReferenceError(f"{action.object_id} is not nearby", target_id=action.object_id)
            obj = world.get_object(action.object_id)
            if obj is None or not obj.available:
                raise StaleReferenceError(f"{action.object_id} is gone", target_id=action.object_id)
            agent.begin_gather(obj, intent=intent)
            return

        if isinstance(action, (MoveToAction, AttackAction, ChatAction)):
            if action.target_id.lower() == HOME_TARGET:
                agent.begin_move(agent.home, intent=intent)
                return
            summary = observation.find_character(action.target_id)
            if summary is None:
                raise StaleReferenceError(f"{action.target_id} is not nearby", target_id=action.target_id)
            if summary.dead:
                raise StaleReferenceError(f"{action.target_id} is dead", target_id=action.target_id)
            target = world.get_character(action.target_id)
            if target is None or target.dead or target.position is None:
                raise StaleReferenceError(f"{action.target_id} is gone", target_id=action.target_id)

            if isinstance(action, MoveToAction):
                agent.begin_move(target.position, intent=intent)
            elif isinstance(action, AttackAction):
                agent.begin_interaction(target, "attack", intent=intent)
            else:
                agent.begin_interaction(target, "chat", message=action.message, intent=intent)
            return

        agent.go_idle(intent=intent or None)

    def _log_decision(self, agent: "Agent", action: PlannedAction) -> None:
        character = agent.character
        target = action.target_ref
        suffix = f": {action.intent}" if action.intent else ""
        agent.world.log_event(
            character,
            "decision",
            f"{character.name} decided to {action.describe()}{suffix}",
            target=target,
            details={"action": action.kind, "target_id": target, "intent": action.intent},
        )

    def reject(
        self,
        agent: "Agent",
        kind: str,
        diagnostic: str,
        *,
        target_id: str | None = None,
        intent: str | None = None,
    ) -> None:
        """Local idle with the diagnostic appended to the intent; the next idle tick falls back."""
        character = agent.character
        note = f"{kind or 'action'} failed: {diagnostic}"
        logger.info("[AGENT] %s rejected planner action: %s", character.entity_id, note)
        annotated = f"{intent} ({note})" if intent else note
        agent.go_idle(intent=annotated, timer_s=0.0)
        agent.world.log_event(
            character,
            "decision_rejected",
            f"{character.name} could not {kind or 'act'}: {diagnostic}",
            target=target_id,
            details={"action": kind, "target_id": target_id, "diagnostic": diagnostic},
        )
