from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any, Protocol

TICK_MS = 100

TickCallback = Callable[[], None]


class TickTimer(Protocol):
    @property
    def active(self) -> bool: ...

    def start(self, initial_ms: int) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[TickCallback], TickTimer]


class AsyncioTickTimer:
    """Repeating tick on the running asyncio loop via call_later chaining."""

    def __init__(self, on_tick: TickCallback, *, period_ms: int = TICK_MS) -> None:
        self.on_tick = on_tick
        self.period_ms = max(1, int(period_ms))
        self.initial_ms: int | None = None
        self._handle: asyncio.TimerHandle | None = None
        self._generation = 0
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    def start(self, initial_ms: int) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        self.initial_ms = int(initial_ms)
        self._active = True
        self._schedule(loop, self._generation)

    def cancel(self) -> None:
        self._generation += 1
        self._active = False
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _schedule(self, loop: asyncio.AbstractEventLoop, generation: int) -> None:
        self._handle = loop.call_later(self.period_ms / 1000.0, self._fire, loop, generation)

    def _fire(self, loop: asyncio.AbstractEventLoop, generation: int) -> None:
        if generation != self._generation:
            return
        self._handle = None
        self.on_tick()
        # on_tick may have cancelled or restarted us
        if generation == self._generation and self._active:
            self._schedule(loop, generation)


class IntervalTickTimer:
    """Adapter over a Textual-style `set_interval(seconds, callback)`.

    The returned handle only needs a `stop()` method.
    """

    def __init__(
        self,
        on_tick: TickCallback,
        *,
        set_interval: Callable[[float, Callable[[], Any]], Any],
        period_ms: int = TICK_MS,
    ) -> None:
        self.on_tick = on_tick
        self.set_interval = set_interval
        self.period_ms = max(1, int(period_ms))
        self.initial_ms: int | None = None
        self._handle: Any = None
        self._generation = 0

    @property
    def active(self) -> bool:
        return self._handle is not None

    def start(self, initial_ms: int) -> None:
        self.cancel()
        self.initial_ms = int(initial_ms)
        generation = self._generation
        self._handle = self.set_interval(self.period_ms / 1000.0, lambda: self._fire(generation))

    def cancel(self) -> None:
        self._generation += 1
        handle, self._handle = self._handle, None
        if handle is not None:
            handle.stop()

    def _fire(self, generation: int) -> None:
        if generation != self._generation:
            return
        self.on_tick()


class ManualTickTimer:
    """Deterministic timer driven by `advance(ms)`; no event loop involved."""

    def __init__(self, on_tick: TickCallback, *, period_ms: int = TICK_MS) -> None:
        self.on_tick = on_tick
        self.period_ms = max(1, int(period_ms))
        self.initial_ms: int | None = None
        self.starts: list[int] = []
        self.cancels = 0
        self.elapsed_ms = 0
        self._carry_ms = 0
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    def start(self, initial_ms: int) -> None:
        self.cancel()
        self.initial_ms = int(initial_ms)
        self.starts.append(self.initial_ms)
        self._carry_ms = 0
        self._active = True

    def cancel(self) -> None:
        self.cancels += 1
        self._active = False
        self._carry_ms = 0

    def advance(self, ms: int) -> int:
        """Move the clock forward, firing every due tick. Returns ticks fired."""

        fired = 0
        self.elapsed_ms += ms
        if not self._active:
            return fired
        self._carry_ms += ms
        while self._active and self._carry_ms >= self.period_ms:
            self._carry_ms -= self.period_ms
            fired += 1
            self.on_tick()
        return fired
