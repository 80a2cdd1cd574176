"""Shared fakes and world builders for the test suite."""

from __future__ import annotations

from concurrent.futures import Future
from typing import Any

from packages.wildgrove_core.llm.policy import PlannerPolicy, default_policy_for_task
from packages.wildgrove_core.llm.prompt import fit_plan_prompt
from packages.wildgrove_core.llm.providers import MalformedResponseError
from packages.wildgrove_core.sim.actions import ActionParseError, MalformedActionError, parse_planned_action
from packages.wildgrove_core.sim.config import AgentConfig
from packages.wildgrove_core.sim.entities import Character, WorldObject
from packages.wildgrove_core.sim.geometry import Vec3
from packages.wildgrove_core.sim.world import World


HOLD = object()
IDLE_PLAN = {"action": "idle", "intent": "resting"}


def fast_config(**overrides: Any) -> AgentConfig:
    base = AgentConfig(
        idle_timer_base_s=1.0,
        idle_timer_random_s=0.0,
        post_action_timer_base_s=1.0,
        post_action_timer_random_s=0.0,
    )
    return base.with_overrides(**overrides)


def still_config(**overrides: Any) -> AgentConfig:
    """Agents never move or arrive, so a roaming state persists across ticks."""
    return fast_config(move_speed=0.0, arrival_epsilon=0.0, **overrides)


class FakePlanner:
    """Scripted stand-in for ``PlannerClient`` that resolves futures synchronously.

    ``plans`` maps agent id to a queue of dict payloads, exceptions or ``HOLD``
    (an unresolved future kept in ``held``). Unscripted agents get an idle plan.
    """

    def __init__(
        self,
        plans: dict[str, list[Any]] | None = None,
        *,
        replies: list[Any] | None = None,
        policy: PlannerPolicy | None = None,
    ) -> None:
        self.plans = {key: list(value) for key, value in (plans or {}).items()}
        self.replies = list(replies or [])
        self.policy = policy or default_policy_for_task("plan_action")
        self.calls: list[tuple[str, int]] = []
        self.chat_calls: list[tuple[str, str, str]] = []
        self.held: list[Future] = []
        self.prompts: dict[str, str] = {}

    def request_plan(self, agent) -> Future:
        agent_id = agent.character.entity_id
        self.calls.append((agent_id, agent.world.clock_ms))
        self.prompts[agent_id], _, _ = fit_plan_prompt(policy=self.policy, **agent.prompt_inputs())
        queue = self.plans.get(agent_id) or []
        item = queue.pop(0) if queue else IDLE_PLAN
        future: Future = Future()
        if item is HOLD:
            self.held.append(future)
            return future
        if isinstance(item, BaseException):
            future.set_exception(item)
            return future
        try:
            future.set_result(parse_planned_action(item))
        except MalformedActionError as exc:
            future.set_exception(MalformedResponseError(str(exc), error_code=exc.error_code))
        except ActionParseError as exc:
            future.set_exception(exc)
        return future

    def request_chat_reply(self, responder, speaker, message: str) -> Future:
        self.chat_calls.append((responder.entity_id, speaker.entity_id, message))
        item = self.replies.pop(0) if self.replies else "Nice weather."
        future: Future = Future()
        if isinstance(item, BaseException):
            future.set_exception(item)
        else:
            future.set_result(item)
        return future

    def call_times(self, agent_id: str) -> list[int]:
        return [at for who, at in self.calls if who == agent_id]


def make_world(planner: Any = None, *, config: AgentConfig | None = None, seed: int = 1, terrain=None) -> World:
    return World(planner=planner, config=config or fast_config(), seed=seed, terrain_height=terrain)


def add_npc(world: World, entity_id: str, x: float = 0.0, z: float = 0.0, **kwargs: Any) -> Character:
    name = kwargs.pop("name", entity_id.title())
    character = Character(
        entity_id=entity_id,
        name=name,
        position=Vec3(x, 0.0, z),
        **kwargs,
    )
    world.add_character(character)
    return character


def add_player(world: World, x: float = 0.0, z: float = 0.0) -> Character:
    player = Character(entity_id="player", name="Player", position=Vec3(x, 0.0, z), is_player=True)
    world.add_character(player)
    return player


def add_tree(world: World, entity_id: str = "tree_1", x: float = 2.0, z: float = 0.0, **kwargs: Any) -> WorldObject:
    kwargs.setdefault("gather_ms", 1000)
    return world.add_object(
        WorldObject(
            entity_id=entity_id,
            name=entity_id.replace("_", " ").title(),
            position=Vec3(x, 0.0, z),
            object_type="tree",
            resource="wood",
            **kwargs,
        )
    )


def tick_until(world: World, predicate, *, dt_s: float = 0.1, max_ticks: int = 500) -> int:
    for count in range(1, max_ticks + 1):
        world.tick(dt_s)
        if predicate():
            return count
    raise AssertionError(f"condition not reached within {max_ticks} ticks")
