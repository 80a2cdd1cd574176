#!/usr/bin/env python3

from __future__ import annotations

from dataclasses import replace
import unittest

from packages.wildgrove_core.llm.policy import default_policy_for_task, estimate_token_count
from packages.wildgrove_core.llm.prompt import OUTPUT_CONTRACT, fit_chat_prompt, fit_plan_prompt

from apps.api.tests.support import add_npc, add_tree, make_world


PERSONA = "PERSONA_MARKER A careful forager who distrusts strangers and hums while working."


def _long_events(count: int) -> list[str]:
    return [f"[00:00:{idx:02d}] EVENT_{idx} " + ("said something rather long " * 14) for idx in range(count)]


class PlanPromptBudgetTests(unittest.TestCase):
    def setUp(self) -> None:
        self.world = make_world()
        self.npc = add_npc(self.world, "npc_self", name="Self", persona=PERSONA)
        self.char_ids = [f"npc_{idx}_with_a_longer_identifier" for idx in range(8)]
        for idx, char_id in enumerate(self.char_ids):
            add_npc(self.world, char_id, x=float(idx + 1), z=0.5, name=f"Villager Number {idx}")
        for idx in range(4):
            add_tree(self.world, f"tree_{idx}", x=0.0, z=float(idx + 2))
        self.agent = self.npc.agent
        self.inputs = self.agent.prompt_inputs()
        self.inputs["observation"] = self.agent.sample_observation()

    def _fit(self, max_input_tokens: int, events: list[str]):
        policy = replace(default_policy_for_task("plan_action"), max_input_tokens=max_input_tokens)
        inputs = dict(self.inputs, event_lines=events)
        return fit_plan_prompt(policy=policy, **inputs)

    def test_over_budget_keeps_persona_state_and_contract(self) -> None:
        events = _long_events(7)
        text, trimmed, tokens = self._fit(500, events)

        self.assertTrue(trimmed)
        self.assertLessEqual(tokens, 500)
        self.assertEqual(tokens, estimate_token_count(text))
        self.assertTrue(text.startswith("You are Self. PERSONA_MARKER"))
        self.assertIn("## Your state", text)
        self.assertIn("- id: npc_self", text)
        self.assertTrue(text.endswith(OUTPUT_CONTRACT))

    def test_drops_oldest_events_before_farthest_entries(self) -> None:
        events = _long_events(7)
        text, _, _ = self._fit(500, events)

        kept_events = [idx for idx in range(7) if f"EVENT_{idx} " in text]
        kept_chars = [idx for idx, char_id in enumerate(self.char_ids) if char_id in text]

        self.assertEqual(kept_events, list(range(7 - len(kept_events), 7)))
        self.assertEqual(kept_chars, list(range(len(kept_chars))))
        if kept_events:
            self.assertEqual(len(kept_chars), len(self.char_ids))

    def test_within_budget_is_untouched(self) -> None:
        events = [f"[00:00:{idx:02d}] short event {idx}" for idx in range(10)]
        text, trimmed, _ = self._fit(5000, events)

        self.assertFalse(trimmed)
        self.assertNotIn("short event 2\n", text)
        for idx in range(3, 10):
            self.assertIn(f"short event {idx}", text)
        for char_id in self.char_ids:
            self.assertIn(char_id, text)
        self.assertEqual(sum(1 for line in text.splitlines() if line.startswith("- tree_")), 3)

    def test_header_larger_than_budget_is_sent_whole(self) -> None:
        text, trimmed, tokens = self._fit(10, _long_events(3))

        self.assertTrue(trimmed)
        self.assertGreater(tokens, 10)
        self.assertIn("PERSONA_MARKER", text)
        self.assertNotIn("EVENT_", text)
        for char_id in self.char_ids:
            self.assertNotIn(char_id, text)
        self.assertIn("- nothing notable", text)


class ChatPromptBudgetTests(unittest.TestCase):
    def test_over_budget_drops_events_but_keeps_persona_and_message(self) -> None:
        policy = replace(default_policy_for_task("chat_reply"), max_input_tokens=200)
        text, trimmed, tokens = fit_chat_prompt(
            responder_name="Mira",
            persona=PERSONA,
            speaker_name="Bjorn",
            message="Have you seen my axe?",
            event_lines=_long_events(5),
            policy=policy,
        )

        self.assertTrue(trimmed)
        self.assertLessEqual(tokens, 200)
        self.assertTrue(text.startswith("You are Mira. PERSONA_MARKER"))
        self.assertIn('Bjorn says to you: "Have you seen my axe?"', text)
        self.assertIn('{"reply"', text)


if __name__ == "__main__":
    unittest.main()
