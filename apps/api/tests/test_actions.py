#!/usr/bin/env python3

from __future__ import annotations

import unittest

from packages.wildgrove_core.sim.actions import (
    AttackAction,
    ChatAction,
    GatherAction,
    IdleAction,
    InvalidActionError,
    MAX_CHAT_MESSAGE_CHARS,
    MalformedActionError,
    MoveToAction,
    parse_planned_action,
)


class ParsePlannedActionTests(unittest.TestCase):
    def test_each_variant_parses(self) -> None:
        self.assertIsInstance(parse_planned_action({"action": "idle", "intent": "rest"}), IdleAction)

        gather = parse_planned_action({"action": "gather", "object_id": "tree_7", "intent": "need wood"})
        self.assertIsInstance(gather, GatherAction)
        self.assertEqual(gather.object_id, "tree_7")
        self.assertEqual(gather.intent, "need wood")

        move = parse_planned_action({"action": "moveTo", "target_id": "home", "intent": "tired"})
        self.assertIsInstance(move, MoveToAction)
        self.assertEqual(move.target_ref, "home")

        attack = parse_planned_action({"action": "attack", "target_id": "npc_b", "intent": "revenge"})
        self.assertIsInstance(attack, AttackAction)

        chat = parse_planned_action(
            {"action": "chat", "target_id": "npc_b", "message": "  Hello!  ", "intent": "be friendly"}
        )
        self.assertIsInstance(chat, ChatAction)
        self.assertEqual(chat.message, "Hello!")
        self.assertEqual(chat.describe(), "chat npc_b")

    def test_long_chat_message_is_capped_not_rejected(self) -> None:
        chat = parse_planned_action(
            {"action": "chat", "target_id": "npc_b", "message": "la" * 300, "intent": "sing"}
        )
        self.assertIsInstance(chat, ChatAction)
        self.assertEqual(len(chat.message), MAX_CHAT_MESSAGE_CHARS)
        self.assertEqual(chat.message, ("la" * 300)[:MAX_CHAT_MESSAGE_CHARS])

    def test_invalid_action_carries_planner_intent(self) -> None:
        with self.assertRaises(InvalidActionError) as raised:
            parse_planned_action({"action": "gather", "intent": "need wood"})
        self.assertEqual(raised.exception.intent, "need wood")

    def test_kind_aliases_and_extra_fields(self) -> None:
        move = parse_planned_action({"action": "move_to", "target_id": "npc_b", "intent": "", "mood": "happy"})
        self.assertEqual(move.kind, "moveTo")
        self.assertEqual(parse_planned_action({"action": "WAIT", "intent": ""}).kind, "idle")

    def test_non_object_or_missing_fields_are_malformed(self) -> None:
        for payload in (["idle"], "idle", None, {"intent": "x"}, {"action": "idle"}, {"action": "", "intent": "x"}):
            with self.assertRaises(MalformedActionError) as raised:
                parse_planned_action(payload)
            self.assertEqual(raised.exception.error_code, "malformed_response")

    def test_unknown_kind_is_invalid(self) -> None:
        with self.assertRaises(InvalidActionError) as raised:
            parse_planned_action({"action": "dance", "intent": "party"})
        self.assertEqual(raised.exception.error_code, "unknown_action")
        self.assertEqual(raised.exception.action_kind, "dance")

    def test_missing_ids_or_message_are_invalid(self) -> None:
        cases = (
            {"action": "gather", "intent": "wood"},
            {"action": "gather", "object_id": "   ", "intent": "wood"},
            {"action": "attack", "intent": "angry"},
            {"action": "chat", "target_id": "npc_b", "intent": "talk"},
            {"action": "moveTo", "target_id": None, "intent": "go"},
        )
        for payload in cases:
            with self.assertRaises(InvalidActionError) as raised:
                parse_planned_action(payload)
            self.assertEqual(raised.exception.error_code, "invalid_action")
            self.assertEqual(raised.exception.action_kind, payload["action"])


if __name__ == "__main__":
    unittest.main()
