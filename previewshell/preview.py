"""Preview/countdown state machine.

`reduce` is pure: it maps (state, event) to (state, effects) and never raises.
`PreviewController` owns the current state and the tick timer, applies the
timer effects itself and hands everything else to its effect sink.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Union

from .intent import Intent
from .messages import COUNTDOWN_CANCELLED, EDIT_MODE, PREVIEW_CANCELLED, countdown_seconds, timeout_message
from .timer import TICK_MS, AsyncioTickTimer, TimerFactory


class PreviewKey(str, Enum):
    CONFIRM = "confirm"
    CANCEL = "cancel"
    EDIT = "edit"
    OTHER = "other"


class PreviewPhase(str, Enum):
    IDLE = "idle"
    COUNTING = "counting"
    PAUSED = "paused"


@dataclass(frozen=True)
class PendingPreview:
    input: str
    intent: Intent
    timestamp: datetime


@dataclass(frozen=True)
class PreviewState:
    pending_preview: PendingPreview | None = None
    remaining_ms: int | None = None
    timeout_ms: int = 0

    @property
    def phase(self) -> PreviewPhase:
        if self.pending_preview is None:
            return PreviewPhase.IDLE
        if self.remaining_ms is None:
            return PreviewPhase.PAUSED
        return PreviewPhase.COUNTING


# Events


@dataclass(frozen=True)
class EnterPreview:
    input: str
    intent: Intent
    timeout_ms: int
    timestamp: datetime | None = None


@dataclass(frozen=True)
class KeyPressed:
    key: PreviewKey


@dataclass(frozen=True)
class Tick:
    pass


PreviewEvent = Union[EnterPreview, KeyPressed, Tick]


# Effects


@dataclass(frozen=True)
class ExecuteTask:
    input: str
    intent_type: str = "task"


@dataclass(frozen=True)
class ExecuteCommand:
    command: str
    args: tuple[str, ...] = ()


@dataclass(frozen=True)
class EmitMessage:
    content: str


@dataclass(frozen=True)
class StartTimer:
    initial_ms: int


@dataclass(frozen=True)
class CancelTimer:
    pass


@dataclass(frozen=True)
class RestoreInput:
    text: str


Effect = Union[ExecuteTask, ExecuteCommand, EmitMessage, StartTimer, CancelTimer, RestoreInput]
EffectSink = Callable[[PreviewEvent, list[Effect]], None]

IDLE = PreviewState()


def execution_effect(input: str, intent: Intent) -> ExecuteTask | ExecuteCommand:
    if intent.type != "command":
        return ExecuteTask(input=input, intent_type=intent.type)
    if intent.command:
        return ExecuteCommand(command=intent.command, args=tuple(intent.args))
    parts = input.strip().lstrip("/").split()
    if not parts:
        return ExecuteTask(input=input, intent_type=intent.type)
    return ExecuteCommand(command=parts[0].lower(), args=tuple(parts[1:]))


def _timeout_ms(value: object) -> int:
    try:
        return max(0, int(value))  # type: ignore[call-overload]
    except (TypeError, ValueError, OverflowError):
        return 0


def reduce(state: PreviewState, event: object) -> tuple[PreviewState, list[Effect]]:
    phase = state.phase

    if isinstance(event, EnterPreview):
        if phase is not PreviewPhase.IDLE:
            return state, []
        timeout_ms = _timeout_ms(event.timeout_ms)
        pending = PendingPreview(
            input=event.input,
            intent=event.intent,
            timestamp=event.timestamp or datetime.now(tz=timezone.utc),
        )
        return (
            PreviewState(pending_preview=pending, remaining_ms=timeout_ms, timeout_ms=timeout_ms),
            [StartTimer(initial_ms=timeout_ms)],
        )

    if isinstance(event, KeyPressed):
        pending = state.pending_preview
        if pending is None:
            return state, []
        key = event.key if isinstance(event.key, PreviewKey) else PreviewKey.OTHER
        if key is PreviewKey.CONFIRM:
            return IDLE, [CancelTimer(), execution_effect(pending.input, pending.intent)]
        if key is PreviewKey.CANCEL:
            return IDLE, [CancelTimer(), EmitMessage(PREVIEW_CANCELLED)]
        if key is PreviewKey.EDIT:
            return IDLE, [CancelTimer(), EmitMessage(EDIT_MODE), RestoreInput(pending.input)]
        if phase is PreviewPhase.PAUSED:
            return state, []
        return replace(state, remaining_ms=None), [CancelTimer(), EmitMessage(COUNTDOWN_CANCELLED)]

    if isinstance(event, Tick):
        if phase is not PreviewPhase.COUNTING or state.pending_preview is None or state.remaining_ms is None:
            return state, []
        remaining = state.remaining_ms - TICK_MS
        if remaining > 0:
            return replace(state, remaining_ms=remaining), []
        pending = state.pending_preview
        return IDLE, [
            CancelTimer(),
            execution_effect(pending.input, pending.intent),
            EmitMessage(timeout_message(state.timeout_ms)),
        ]

    return state, []


class PreviewController:
    def __init__(
        self,
        *,
        timer_factory: TimerFactory = AsyncioTickTimer,
        on_effects: EffectSink | None = None,
    ) -> None:
        self.state = IDLE
        self.timer = timer_factory(self._on_tick)
        self.on_effects = on_effects

    @property
    def pending_preview(self) -> PendingPreview | None:
        return self.state.pending_preview

    @property
    def remaining_ms(self) -> int | None:
        return self.state.remaining_ms

    @property
    def phase(self) -> PreviewPhase:
        return self.state.phase

    @property
    def countdown_seconds(self) -> int | None:
        return countdown_seconds(self.state.remaining_ms)

    def dispatch(self, event: PreviewEvent) -> list[Effect]:
        next_state, effects = reduce(self.state, event)
        if any(isinstance(effect, CancelTimer) for effect in effects):
            self.timer.cancel()
        # A timer that cannot start leaves the state untouched.
        for effect in effects:
            if isinstance(effect, StartTimer):
                self.timer.start(effect.initial_ms)
        self.state = next_state
        if effects and self.on_effects is not None:
            self.on_effects(event, effects)
        return effects

    def enter(self, input: str, intent: Intent, timeout_ms: int) -> list[Effect]:
        return self.dispatch(EnterPreview(input=input, intent=intent, timeout_ms=timeout_ms))

    def press(self, key: PreviewKey) -> list[Effect]:
        return self.dispatch(KeyPressed(key=key))

    def reset(self) -> None:
        """Drop any pending preview without emitting messages."""

        self.timer.cancel()
        self.state = IDLE

    def _on_tick(self) -> None:
        self.dispatch(Tick())
