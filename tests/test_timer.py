from __future__ import annotations

import asyncio
import unittest

from previewshell.timer import AsyncioTickTimer, IntervalTickTimer, ManualTickTimer


class _FakeHandle:
    def __init__(self, seconds: float, callback) -> None:
        self.seconds = seconds
        self.callback = callback
        self.stopped = False

    def stop(self) -> None:
        self.stopped = True


class TestManualTickTimer(unittest.TestCase):
    def test_advance_fires_whole_periods(self) -> None:
        ticks: list[int] = []
        timer = ManualTickTimer(lambda: ticks.append(1))
        timer.start(1000)

        self.assertEqual(0, timer.advance(50))
        self.assertEqual(1, timer.advance(50))
        self.assertEqual(3, timer.advance(320))
        self.assertEqual(4, len(ticks))
        self.assertEqual([1000], timer.starts)

    def test_cancel_is_idempotent_and_stops_ticks(self) -> None:
        ticks: list[int] = []
        timer = ManualTickTimer(lambda: ticks.append(1))
        timer.start(500)
        timer.cancel()
        timer.cancel()

        self.assertEqual(0, timer.advance(1000))
        self.assertEqual([], ticks)
        self.assertFalse(timer.active)

    def test_callback_can_cancel_mid_advance(self) -> None:
        timer: ManualTickTimer
        ticks: list[int] = []

        def _on_tick() -> None:
            ticks.append(1)
            if len(ticks) == 2:
                timer.cancel()

        timer = ManualTickTimer(_on_tick)
        timer.start(1000)
        self.assertEqual(2, timer.advance(1000))


class TestAsyncioTickTimer(unittest.TestCase):
    def test_ticks_on_running_loop_until_cancelled(self) -> None:
        async def _run() -> int:
            ticks: list[int] = []
            timer: AsyncioTickTimer

            def _on_tick() -> None:
                ticks.append(1)
                if len(ticks) == 3:
                    timer.cancel()

            timer = AsyncioTickTimer(_on_tick, period_ms=5)
            timer.start(1000)
            self.assertTrue(timer.active)
            await asyncio.sleep(0.2)
            self.assertFalse(timer.active)
            return len(ticks)

        self.assertEqual(3, asyncio.run(_run()))

    def test_restart_supersedes_previous_chain(self) -> None:
        async def _run() -> int:
            ticks: list[int] = []
            timer = AsyncioTickTimer(lambda: ticks.append(1), period_ms=50)
            timer.start(1000)
            timer.start(1000)
            await asyncio.sleep(0.075)
            timer.cancel()
            return len(ticks)

        self.assertEqual(1, asyncio.run(_run()))

    def test_start_requires_running_loop(self) -> None:
        timer = AsyncioTickTimer(lambda: None)
        with self.assertRaises(RuntimeError):
            timer.start(100)


class TestIntervalTickTimer(unittest.TestCase):
    def test_wraps_set_interval_handle(self) -> None:
        handles: list[_FakeHandle] = []

        def _set_interval(seconds: float, callback) -> _FakeHandle:
            handle = _FakeHandle(seconds, callback)
            handles.append(handle)
            return handle

        ticks: list[int] = []
        timer = IntervalTickTimer(lambda: ticks.append(1), set_interval=_set_interval)
        timer.start(2000)

        self.assertTrue(timer.active)
        self.assertEqual(0.1, handles[0].seconds)
        handles[0].callback()
        self.assertEqual(1, len(ticks))

        timer.cancel()
        self.assertTrue(handles[0].stopped)
        self.assertFalse(timer.active)
        # a late callback from the stopped interval is ignored
        handles[0].callback()
        self.assertEqual(1, len(ticks))


if __name__ == "__main__":
    unittest.main()
