"""Prompt rendering for planner and chat-reply calls.

Prompts are fitted to the policy's input budget section by section. The
persona, self state and response contract are always kept; over budget, the
oldest event lines go first, then the farthest objects, then the farthest
characters.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable

from ..sim.geometry import Vec3
from ..sim.observation import CharacterSummary, Observation, ObjectSummary
from .policy import PlannerPolicy, estimate_token_count


OUTPUT_CONTRACT = """Respond with ONE JSON object and nothing else. Allowed shapes:
{"action": "idle", "intent": "<why>"}
{"action": "gather", "object_id": "<nearby object id>", "intent": "<why>"}
{"action": "moveTo", "target_id": "<nearby character id or home>", "intent": "<why>"}
{"action": "attack", "target_id": "<nearby character id>", "intent": "<why>"}
{"action": "chat", "target_id": "<nearby character id>", "message": "<what you say>", "intent": "<why>"}
Only use ids listed above. Example:
{"action": "gather", "object_id": "tree_7", "intent": "need wood for the fire"}"""

CHAT_CONTRACT = 'Respond with ONE JSON object and nothing else: {"reply": "<what you say>"}'


def _cap_objects_per_type(objects: Iterable[ObjectSummary], cap: int) -> list[ObjectSummary]:
    seen: dict[str, int] = defaultdict(int)
    kept: list[ObjectSummary] = []
    for item in objects:
        if seen[item.type] >= cap:
            continue
        seen[item.type] += 1
        kept.append(item)
    return kept


def _recent(event_lines: list[str], count: int) -> list[str]:
    return list(event_lines[-count:]) if count > 0 else []


def _render_plan(
    header: list[str],
    origin: Vec3,
    characters: list[CharacterSummary],
    objects: list[ObjectSummary],
    events: list[str],
) -> str:
    lines = [*header, "", "## Nearby characters"]
    for other in characters:
        status = "dead" if other.dead else f"health {other.health:.0f}"
        lines.append(
            f"- {other.id} ({other.name}) at {other.position.label()}, "
            f"{origin.distance(other.position):.1f}m away, {status}, doing {other.current_action}"
        )
    if not characters:
        lines.append("- none")

    lines.extend(["", "## Nearby objects"])
    for item in objects:
        resource = f", yields {item.resource}" if item.resource else ""
        lines.append(
            f"- {item.id} ({item.type}{resource}) at {item.position.label()}, "
            f"{origin.distance(item.position):.1f}m away"
        )
    if not objects:
        lines.append("- none")

    lines.extend(["", "## Recent events"])
    lines.extend(events or ["- nothing notable"])
    lines.extend(["", OUTPUT_CONTRACT])
    return "\n".join(lines)


def fit_plan_prompt(
    *,
    name: str,
    persona: str,
    observation: Observation,
    inventory_summary: str,
    intent: str,
    event_lines: list[str],
    policy: PlannerPolicy,
) -> tuple[str, bool, int]:
    """Render the plan prompt within ``policy.max_input_tokens``.

    Returns ``(prompt, trimmed, estimated_tokens)``. Characters and objects
    are ordered nearest first, so dropping from the end drops the farthest.
    If the fixed header alone exceeds the budget it is sent as is.
    """
    me = observation.self_summary
    origin = me.position
    header = [
        f"You are {name}. {persona}".strip(),
        "",
        "## Your state",
        f"- id: {me.id}",
        f"- position: {me.position.label()}",
        f"- health: {me.health:.0f}",
        f"- current state: {me.current_state}",
        f"- current intent: {intent or 'none'}",
        f"- inventory: {inventory_summary}",
    ]
    characters = sorted(observation.nearby_characters, key=lambda c: origin.distance_sq(c.position))
    characters = characters[: policy.max_characters]
    objects = sorted(observation.nearby_objects, key=lambda o: origin.distance_sq(o.position))
    objects = _cap_objects_per_type(objects, policy.max_objects_per_type)
    events = _recent(event_lines, policy.event_log_lines)

    text = _render_plan(header, origin, characters, objects, events)
    trimmed = False
    while estimate_token_count(text) > policy.max_input_tokens:
        if events:
            events.pop(0)
        elif objects:
            objects.pop()
        elif characters:
            characters.pop()
        else:
            break
        trimmed = True
        text = _render_plan(header, origin, characters, objects, events)
    return text, trimmed, estimate_token_count(text)


def _render_chat(responder_name: str, persona: str, speaker_name: str, message: str, events: list[str]) -> str:
    lines = [
        f"You are {responder_name}. {persona}".strip(),
        "",
        "## Recent events",
        *(events or ["- nothing notable"]),
        "",
        f'{speaker_name} says to you: "{message}"',
        "",
        "Reply in character with one or two short sentences.",
        CHAT_CONTRACT,
    ]
    return "\n".join(lines)


def fit_chat_prompt(
    *,
    responder_name: str,
    persona: str,
    speaker_name: str,
    message: str,
    event_lines: list[str],
    policy: PlannerPolicy,
) -> tuple[str, bool, int]:
    events = _recent(event_lines, policy.event_log_lines)
    text = _render_chat(responder_name, persona, speaker_name, message, events)
    trimmed = False
    while events and estimate_token_count(text) > policy.max_input_tokens:
        events.pop(0)
        trimmed = True
        text = _render_chat(responder_name, persona, speaker_name, message, events)
    return text, trimmed, estimate_token_count(text)

