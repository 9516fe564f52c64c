from __future__ import annotations

import math
import sys
import unittest

from previewshell.messages import (
    COUNTDOWN_CANCELLED,
    EDIT_MODE,
    PREVIEW_CANCELLED,
    MessageLog,
    SystemMessage,
    auto_execute_message,
    confidence_percent,
    countdown_seconds,
    execution_failed_message,
    low_confidence_message,
    timeout_message,
)


class TestFormatters(unittest.TestCase):
    def test_confidence_rounds_half_up(self) -> None:
        self.assertEqual(98, confidence_percent(0.975))
        self.assertEqual(95, confidence_percent(0.954))
        self.assertEqual(96, confidence_percent(0.955))
        self.assertEqual(100, confidence_percent(1))
        self.assertEqual(0, confidence_percent(0.004))

    def test_confidence_handles_non_finite_and_negative(self) -> None:
        self.assertEqual(0, confidence_percent(math.nan))
        self.assertEqual(sys.maxsize, confidence_percent(math.inf))
        self.assertEqual(-sys.maxsize, confidence_percent(-math.inf))
        self.assertEqual(-50, confidence_percent(-0.5))
        # half toward +inf, so -0.005 lands on 0 rather than -1
        self.assertEqual(0, confidence_percent(-0.005))

    def test_confidence_ignores_non_numbers(self) -> None:
        for value in (None, "0.9", True, [0.9]):
            with self.subTest(value=value):
                self.assertEqual(0, confidence_percent(value))

    def test_auto_execute_message(self) -> None:
        self.assertEqual("Auto-executing (confidence: 98% ≥ 95%)", auto_execute_message(0.98))
        self.assertEqual("Auto-executing (confidence: 0% ≥ 95%)", auto_execute_message(math.nan))

    def test_timeout_message_uses_whole_seconds(self) -> None:
        self.assertEqual("Auto-executing after 2s timeout", timeout_message(2000))
        self.assertEqual("Auto-executing after 3s timeout", timeout_message(2001))
        self.assertEqual("Auto-executing after 0s timeout", timeout_message(0))

    def test_fixed_messages(self) -> None:
        self.assertEqual("Auto-execute cancelled.", COUNTDOWN_CANCELLED)
        self.assertEqual("Preview cancelled.", PREVIEW_CANCELLED)
        self.assertEqual("Returning to edit mode...", EDIT_MODE)

    def test_low_confidence_and_failure_messages(self) -> None:
        self.assertEqual("Interpreting as task (confidence: 42%)", low_confidence_message("task", 0.42))
        self.assertEqual("Execution failed: boom", execution_failed_message(RuntimeError("boom")))
        self.assertEqual("Execution failed: KeyError", execution_failed_message(KeyError()))

    def test_countdown_seconds(self) -> None:
        self.assertIsNone(countdown_seconds(None))
        self.assertEqual(2, countdown_seconds(2000))
        self.assertEqual(2, countdown_seconds(1100))
        self.assertEqual(1, countdown_seconds(1000))
        self.assertEqual(1, countdown_seconds(100))


class TestMessageLog(unittest.TestCase):
    def test_append_is_ordered_and_notifies(self) -> None:
        log = MessageLog()
        seen: list[str] = []
        log.subscribe(lambda message: seen.append(message.content))

        log.system("one")
        log.error("two")
        log.assistant("three")

        self.assertEqual(["one", "two", "three"], log.contents())
        self.assertEqual(["one", "two", "three"], seen)
        self.assertEqual(["system", "error", "assistant"], [entry.type for entry in log])
        self.assertEqual(3, len(log))

    def test_message_ids_are_unique(self) -> None:
        log = MessageLog()
        first = log.system("a")
        second = log.system("a")
        self.assertNotEqual(first.id, second.id)
        self.assertTrue(first.id.startswith("msg-"))

    def test_unknown_type_is_rejected(self) -> None:
        log = MessageLog()
        with self.assertRaises(ValueError):
            log.append(SystemMessage(content="x", type="debug"))
        self.assertEqual(0, len(log))

    def test_failing_listener_does_not_block_append(self) -> None:
        log = MessageLog()
        seen: list[str] = []

        def _boom(_message: SystemMessage) -> None:
            raise RuntimeError("listener failed")

        log.subscribe(_boom)
        log.subscribe(lambda message: seen.append(message.content))
        log.system("still here")

        self.assertEqual(["still here"], log.contents())
        self.assertEqual(["still here"], seen)

    def test_clear_view_keeps_entries(self) -> None:
        log = MessageLog()
        log.system("old")
        log.clear_view()
        log.system("new")

        self.assertEqual(["old", "new"], log.contents())
        self.assertEqual(["new"], [entry.content for entry in log.visible()])

    def test_entries_snapshot_is_immutable(self) -> None:
        log = MessageLog()
        log.system("a")
        snapshot = log.entries
        log.system("b")
        self.assertEqual(1, len(snapshot))


if __name__ == "__main__":
    unittest.main()
