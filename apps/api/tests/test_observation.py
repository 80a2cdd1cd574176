#!/usr/bin/env python3

from __future__ import annotations

import random
import unittest

from packages.wildgrove_core.sim.entities import Character, WorldObject
from packages.wildgrove_core.sim.geometry import Vec3
from packages.wildgrove_core.sim.observation import (
    PLAYER_CONTROLLED,
    CharacterSummary,
    Observation,
    SelfSummary,
    has_significant_change,
    sample_observation,
)

from apps.api.tests.support import add_npc, add_player, add_tree, make_world


def _obs(characters: list[CharacterSummary], *, self_health: float = 100.0) -> Observation:
    return Observation(
        timestamp_ms=0,
        self_summary=SelfSummary(id="me", position=Vec3(), health=self_health, dead=False, current_state="idle"),
        nearby_characters=tuple(characters),
    )


def _char(char_id: str, *, health: float = 100.0, dead: bool = False, action: str = "idle") -> CharacterSummary:
    return CharacterSummary(id=char_id, name=char_id, position=Vec3(1, 0, 1), health=health, dead=dead, current_action=action)


class ObservationSamplerTests(unittest.TestCase):
    def test_every_nearby_entry_is_within_search_radius(self) -> None:
        rng = random.Random(42)
        for trial in range(20):
            me = Character(entity_id="me", name="Me", position=Vec3(rng.uniform(-20, 20), rng.uniform(-2, 2), rng.uniform(-20, 20)))
            others = []
            for idx in range(30):
                position = Vec3(rng.uniform(-60, 60), rng.uniform(-5, 5), rng.uniform(-60, 60))
                if idx % 2:
                    others.append(Character(entity_id=f"c{idx}", name=f"C{idx}", position=position))
                else:
                    others.append(WorldObject(entity_id=f"o{idx}", name=f"O{idx}", position=position, object_type="rock"))
            radius = rng.uniform(5, 40)
            observation = sample_observation(
                self_character=me,
                entities=[me, *others],
                search_radius=radius,
                now_ms=trial,
                self_state="idle",
            )
            for entry in [*observation.nearby_characters, *observation.nearby_objects]:
                self.assertLessEqual(me.position.distance(entry.position), radius + 1e-9)
            self.assertIsNone(observation.find_character("me"))

            expected = {
                other.entity_id
                for other in others
                if me.position.distance_sq(other.position) <= radius * radius
            }
            seen = {c.id for c in observation.nearby_characters} | {o.id for o in observation.nearby_objects}
            self.assertEqual(seen, expected)

    def test_hidden_or_non_interactable_objects_are_skipped(self) -> None:
        me = Character(entity_id="me", name="Me", position=Vec3())
        visible = WorldObject(entity_id="tree_1", name="Tree", position=Vec3(1, 0, 0), object_type="tree", resource="wood")
        hidden = WorldObject(entity_id="tree_2", name="Tree", position=Vec3(1, 0, 1), object_type="tree", visible=False)
        inert = WorldObject(entity_id="rock_1", name="Rock", position=Vec3(0, 0, 1), object_type="rock", interactable=False)
        unplaced = WorldObject(entity_id="herb_1", name="Herb", position=None, object_type="herb")

        observation = sample_observation(
            self_character=me,
            entities=[visible, hidden, inert, unplaced],
            search_radius=10,
            now_ms=0,
            self_state="idle",
        )

        self.assertEqual([o.id for o in observation.nearby_objects], ["tree_1"])
        self.assertEqual(observation.nearby_objects[0].resource, "wood")

    def test_action_labels_for_player_agent_and_dead(self) -> None:
        world = make_world()
        add_player(world, x=2.0)
        npc = add_npc(world, "npc_a")
        add_npc(world, "npc_b", x=3.0)
        add_tree(world)
        lone = Character(entity_id="npc_c", name="Lone", position=Vec3(1, 0, 1), dead=True)
        world.add_character(lone, autonomous=False)

        observation = npc.agent.sample_observation()

        self.assertEqual(observation.find_character("player").current_action, PLAYER_CONTROLLED)
        self.assertEqual(observation.find_character("npc_b").current_action, "idle")
        self.assertEqual(observation.find_character("npc_c").current_action, "dead")
        self.assertEqual(observation.self_summary.current_state, "idle")
        self.assertIsNotNone(observation.find_object("tree_1"))


class ChangeDetectorTests(unittest.TestCase):
    def test_no_previous_observation_is_not_a_change(self) -> None:
        self.assertFalse(has_significant_change(_obs([_char("a")]), None))

    def test_new_character_triggers(self) -> None:
        self.assertTrue(has_significant_change(_obs([_char("a"), _char("b")]), _obs([_char("a")])))

    def test_health_drop_and_death_flip_trigger(self) -> None:
        self.assertTrue(has_significant_change(_obs([_char("a", health=80)]), _obs([_char("a")])))
        self.assertTrue(has_significant_change(_obs([_char("a", dead=True)]), _obs([_char("a")])))
        self.assertTrue(has_significant_change(_obs([_char("a")]), _obs([_char("a", dead=True)])))

    def test_own_health_drop_triggers(self) -> None:
        self.assertTrue(has_significant_change(_obs([], self_health=90), _obs([], self_health=100)))

    def test_action_label_change_and_departure_do_not_trigger(self) -> None:
        self.assertFalse(has_significant_change(_obs([_char("a", action="roaming")]), _obs([_char("a")])))
        self.assertFalse(has_significant_change(_obs([]), _obs([_char("a")])))
        self.assertFalse(has_significant_change(_obs([_char("a", health=100)]), _obs([_char("a", health=90)])))


if __name__ == "__main__":
    unittest.main()
