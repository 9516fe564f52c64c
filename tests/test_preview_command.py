from __future__ import annotations

import unittest

from previewshell.config import PreviewConfig
from previewshell.preview_command import AUTO_USAGE, USAGE, format_preview_settings, handle_preview_command

DEFAULTS = PreviewConfig()


def _contents(result) -> list[str]:
    return [message.content for message in result.messages]


class TestPreviewCommand(unittest.TestCase):
    def test_mode_switches(self) -> None:
        on = handle_preview_command(["on"], False, DEFAULTS)
        self.assertTrue(on.preview_mode)
        self.assertTrue(on.mode_changed)
        self.assertEqual(["Preview mode enabled. You will see a preview before each execution."], _contents(on))

        off = handle_preview_command(["OFF"], True, DEFAULTS)
        self.assertFalse(off.preview_mode)
        self.assertEqual(["Preview mode disabled."], _contents(off))

    def test_bare_command_toggles(self) -> None:
        result = handle_preview_command([], True, DEFAULTS)
        self.assertFalse(result.preview_mode)
        self.assertEqual(["Preview mode disabled."], _contents(result))
        result = handle_preview_command(["toggle"], False, DEFAULTS)
        self.assertEqual(["Preview mode enabled."], _contents(result))

    def test_confidence_accepts_fraction_and_percent(self) -> None:
        fraction = handle_preview_command(["confidence", "0.8"], True, DEFAULTS)
        self.assertEqual(0.8, fraction.config.confidence_threshold)
        self.assertEqual(["Preview confidence threshold set to 80%."], _contents(fraction))

        percent = handle_preview_command(["confidence", "65"], True, DEFAULTS)
        self.assertAlmostEqual(0.65, percent.config.confidence_threshold)
        self.assertTrue(percent.config_changed)
        self.assertFalse(percent.mode_changed)

    def test_confidence_rejects_bad_values(self) -> None:
        garbage = handle_preview_command(["confidence", "lots"], True, DEFAULTS)
        self.assertFalse(garbage.ok)
        self.assertEqual(
            ["Confidence must be a number between 0-1 (e.g., 0.7) or 0-100 (e.g., 70)."],
            _contents(garbage),
        )
        out_of_range = handle_preview_command(["confidence", "250"], True, DEFAULTS)
        self.assertEqual(["Confidence threshold must be between 0-1 (or 0-100)."], _contents(out_of_range))
        self.assertIs(DEFAULTS, out_of_range.config)

    def test_confidence_without_value_reports_current(self) -> None:
        result = handle_preview_command(["confidence"], True, DEFAULTS)
        self.assertEqual(["Preview confidence threshold: 70%"], _contents(result))
        self.assertEqual("assistant", result.messages[0].type)

    def test_timeout(self) -> None:
        result = handle_preview_command(["timeout", "10"], True, DEFAULTS)
        self.assertEqual(10_000, result.config.timeout_ms)
        self.assertEqual(["Preview timeout set to 10s."], _contents(result))

        current = handle_preview_command(["timeout"], True, DEFAULTS)
        self.assertEqual(["Preview timeout: 5s"], _contents(current))

        for bad in ("0", "-3", "soon", "1.5"):
            with self.subTest(value=bad):
                rejected = handle_preview_command(["timeout", bad], True, DEFAULTS)
                self.assertEqual(["Timeout must be a positive number (in seconds)."], _contents(rejected))

    def test_auto(self) -> None:
        on = handle_preview_command(["auto", "true"], True, DEFAULTS)
        self.assertTrue(on.config.auto_execute_high_confidence)
        self.assertEqual(["Auto-execute for high confidence inputs enabled."], _contents(on))

        off = handle_preview_command(["auto", "off"], True, on.config)
        self.assertFalse(off.config.auto_execute_high_confidence)

        current = handle_preview_command(["auto"], True, DEFAULTS)
        self.assertEqual(["Auto-execute high confidence: disabled"], _contents(current))

        bad = handle_preview_command(["auto", "maybe"], True, DEFAULTS)
        self.assertEqual([AUTO_USAGE], _contents(bad))

    def test_status_and_unknown(self) -> None:
        status = handle_preview_command(["settings"], True, DEFAULTS)
        self.assertEqual([format_preview_settings(True, DEFAULTS)], _contents(status))
        self.assertIn("• Timeout: 5s", status.messages[0].content)
        self.assertIn("• Confidence threshold: 70%", status.messages[0].content)

        unknown = handle_preview_command(["sideways"], True, DEFAULTS)
        self.assertEqual([USAGE], _contents(unknown))
        self.assertEqual("error", unknown.messages[0].type)


if __name__ == "__main__":
    unittest.main()
