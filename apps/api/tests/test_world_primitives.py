#!/usr/bin/env python3

from __future__ import annotations

import unittest

from packages.wildgrove_core.sim.config import AgentConfig, load_agent_config
from packages.wildgrove_core.sim.cooldown import CooldownGovernor, cooldown_permits
from packages.wildgrove_core.sim.events import EventEntry, EventLog
from packages.wildgrove_core.sim.inventory import Inventory
from packages.wildgrove_core.sim.schedule import Schedule
from packages.wildgrove_core.sim.starter import build_starter_world

from apps.api.tests.support import add_npc, add_player, add_tree, make_world


class ScheduleTests(unittest.TestCase):
    def test_runs_due_callbacks_in_time_order(self) -> None:
        schedule = Schedule()
        ran: list[str] = []
        schedule.schedule(300, lambda: ran.append("c"), label="c")
        schedule.schedule(100, lambda: ran.append("a"), label="a")
        schedule.schedule(100, lambda: ran.append("b"), label="b")

        self.assertEqual(schedule.run_due(50), 0)
        self.assertEqual(schedule.run_due(100), 2)
        self.assertEqual(ran, ["a", "b"])
        self.assertEqual(schedule.pending_labels(), ["c"])

    def test_cancel_and_clear(self) -> None:
        schedule = Schedule()
        ran: list[str] = []
        entry = schedule.schedule(10, lambda: ran.append("x"), label="x")
        schedule.schedule(20, lambda: ran.append("y"), label="y")
        Schedule.cancel(entry)
        self.assertEqual(len(schedule), 1)

        schedule.clear()
        self.assertEqual(schedule.run_due(100), 0)
        self.assertEqual(ran, [])

    def test_failing_callback_is_logged_and_others_run(self) -> None:
        schedule = Schedule()
        ran: list[str] = []

        def boom() -> None:
            raise RuntimeError("bad callback")

        schedule.schedule(1, boom, label="boom")
        schedule.schedule(2, lambda: ran.append("ok"), label="ok")
        with self.assertLogs("wildgrove_core.sim.schedule", level="ERROR"):
            schedule.run_due(5)
        self.assertEqual(ran, ["ok"])


class InventoryTests(unittest.TestCase):
    def test_stacks_before_new_slots_and_respects_limits(self) -> None:
        inventory = Inventory(size=3)
        self.assertTrue(inventory.add_item("herb", 25))
        self.assertTrue(inventory.add_item("herb", 10))
        self.assertEqual([slot.count for slot in inventory.slots if slot], [30, 5])
        self.assertTrue(inventory.add_item("wood", 1))
        self.assertEqual(inventory.summary(), "herb: 35, wood: 1")

    def test_add_is_all_or_nothing(self) -> None:
        inventory = Inventory(size=1)
        self.assertTrue(inventory.add_item("stone", 98))
        self.assertFalse(inventory.add_item("stone", 2))
        self.assertEqual(inventory.count_item("stone"), 98)
        self.assertTrue(inventory.is_full_for("wood"))

    def test_remove_item(self) -> None:
        inventory = Inventory(size=2)
        inventory.add_item("feather", 3)
        self.assertFalse(inventory.remove_item("feather", 4))
        self.assertTrue(inventory.remove_item("feather", 3))
        self.assertEqual(inventory.summary(), "Empty")


class EventLogTests(unittest.TestCase):
    def test_bounded_and_formats_prompt_lines(self) -> None:
        log = EventLog(max_entries=3)
        for idx in range(5):
            log.add_entry(EventEntry(timestamp_ms=3_723_000 + idx, actor_id="a", kind="note", message=f"m{idx}"))

        self.assertEqual(len(log), 3)
        self.assertEqual([entry.message for entry in log.entries], ["m2", "m3", "m4"])
        self.assertEqual(log.recent_lines(1), ["[01:02:03] m4"])
        self.assertEqual(log.recent(0), [])

    def test_world_events_reach_every_character(self) -> None:
        world = make_world()
        first = add_npc(world, "npc_a")
        second = add_npc(world, "npc_b", x=50.0)
        player = add_player(world, x=-50.0)

        entry = world.log_event(first, "note", "something happened", target="npc_b", details={"k": 1})

        for character in (first, second, player):
            self.assertIs(character.event_log.entries[-1], entry)
        self.assertEqual(world.journal.entries[-1].as_dict()["target_id"], "npc_b")


class ConfigTests(unittest.TestCase):
    def test_env_overrides(self) -> None:
        config = load_agent_config(
            {
                "WILDGROVE_AGENT_PLAN_COOLDOWN_MS": "15000",
                "WILDGROVE_AGENT_MOVE_SPEED": "2.5",
                "WILDGROVE_AGENT_ROAM_RADIUS": "",
            }
        )
        self.assertEqual(config.plan_cooldown_ms, 15000)
        self.assertEqual(config.move_speed, 2.5)
        self.assertEqual(config.roam_radius, AgentConfig().roam_radius)

    def test_invalid_env_value_raises(self) -> None:
        with self.assertRaises(ValueError):
            load_agent_config({"WILDGROVE_AGENT_MOVE_SPEED": "fast"})
        with self.assertRaises(ValueError):
            load_agent_config({"WILDGROVE_AGENT_PLAN_COOLDOWN_MS": "-1"})

    def test_cooldown_governor(self) -> None:
        self.assertTrue(cooldown_permits(0, None, 10_000))
        governor = CooldownGovernor(10_000)
        governor.mark_issued(1_000)
        self.assertFalse(governor.permits(10_999))
        self.assertEqual(governor.remaining_ms(6_000), 5_000)
        self.assertTrue(governor.permits(11_000))


class WorldTests(unittest.TestCase):
    def test_starter_world_layout(self) -> None:
        world = build_starter_world(seed=3)
        snapshot = world.snapshot()

        self.assertEqual(snapshot["counts"]["agents"], 3)
        self.assertEqual(snapshot["counts"]["characters"], 4)
        self.assertEqual(snapshot["counts"]["objects"], 19)
        self.assertNotIn("player", world.agents)
        for obj in world.objects():
            self.assertAlmostEqual(obj.position.y, world.terrain_height(obj.position.x, obj.position.z))

    def test_fallback_only_world_keeps_agents_near_home(self) -> None:
        world = build_starter_world(seed=5)
        world.run(seconds=60.0, dt_s=0.1)

        self.assertEqual(world.clock_ms, 60_000)
        for agent in world.agents.values():
            self.assertLessEqual(agent.character.position.planar_distance(agent.home), agent.roam_radius + 1e-6)
        self.assertGreater(len(world.journal.by_kind("fallback")), 0)

    def test_close_clears_schedule_and_stops_ticking(self) -> None:
        world = make_world()
        npc = add_npc(world, "npc_a")
        tree = add_tree(world)
        npc.agent.begin_gather(tree)
        world.run(seconds=1.2)
        self.assertEqual(len(world.schedule), 1)

        world.close()
        clock = world.clock_ms
        world.tick(0.1)

        self.assertEqual(len(world.schedule), 0)
        self.assertEqual(world.clock_ms, clock)
        self.assertFalse(tree.available)

    def test_duplicate_entity_id_is_rejected(self) -> None:
        world = make_world()
        add_npc(world, "npc_a")
        with self.assertRaises(ValueError):
            add_npc(world, "npc_a")


if __name__ == "__main__":
    unittest.main()
