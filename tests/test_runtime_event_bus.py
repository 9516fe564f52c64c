from __future__ import annotations

import json
from pathlib import Path
from tempfile import TemporaryDirectory
import unittest

from previewshell.runtime.events import PENDING_EVENTS_MAX, EventBus


class TestEventBus(unittest.TestCase):
    def test_publish_flushes_pending_events_when_log_path_is_set(self) -> None:
        with TemporaryDirectory() as tmp:
            event_log = Path(tmp) / "state" / "events.jsonl"
            captured: list[dict[str, object]] = []

            bus = EventBus()
            bus.subscribe(lambda event: captured.append(event))
            event = bus.publish_event("preview.entered", "held", metadata={"input": "ship it"})

            self.assertEqual(1, len(captured))
            self.assertEqual("shell", captured[0]["source"])
            self.assertEqual(0, bus.events_written)
            self.assertEqual(1, bus.events_published)
            self.assertTrue(str(event.get("id", "")).startswith("evt-"))

            bus.set_log_path(event_log)
            bus.publish_event("preview.timeout", "expired")

            self.assertEqual(2, bus.events_written)
            rows = [json.loads(line) for line in event_log.read_text(encoding="utf-8").splitlines()]
            self.assertEqual(["preview.entered", "preview.timeout"], [row["type"] for row in rows])
            self.assertEqual({"input": "ship it"}, rows[0]["metadata"])

    def test_unknown_severity_is_normalized(self) -> None:
        bus = EventBus()
        event = bus.publish_event("execution.failed", "boom", severity="CRITICAL")
        self.assertEqual("info", event["severity"])
        event = bus.publish_event("execution.failed", "boom", severity="ERROR")
        self.assertEqual("error", event["severity"])

    def test_unlogged_bus_keeps_only_newest_events(self) -> None:
        bus = EventBus()
        for index in range(PENDING_EVENTS_MAX + 100):
            bus.publish_event("config.changed", f"update {index}")

        self.assertEqual(PENDING_EVENTS_MAX + 100, bus.events_published)
        with TemporaryDirectory() as tmp:
            event_log = Path(tmp) / "events.jsonl"
            bus.set_log_path(event_log)
            rows = [json.loads(line) for line in event_log.read_text(encoding="utf-8").splitlines()]

        self.assertEqual(PENDING_EVENTS_MAX, bus.events_written)
        self.assertEqual("update 100", rows[0]["message"])
        self.assertEqual(f"update {PENDING_EVENTS_MAX + 99}", rows[-1]["message"])

    def test_failing_handler_does_not_reach_publisher(self) -> None:
        bus = EventBus()
        seen: list[str] = []

        def _boom(_event: dict[str, object]) -> None:
            raise RuntimeError("handler failed")

        bus.subscribe(_boom)
        unsubscribe = bus.subscribe(lambda event: seen.append(str(event["type"])))
        bus.publish_event("config.changed", "updated")
        unsubscribe()
        bus.publish_event("config.changed", "updated again")

        self.assertEqual(["config.changed"], seen)


if __name__ == "__main__":
    unittest.main()
