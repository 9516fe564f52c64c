"""Boundary between the preview state machine and the hosting shell.

The adapter turns raw keypresses into preview keys, runs submitted input
through the confidence gate, and carries out the effects the state machine
emits: launching work on the task/command collaborators, appending to the
message log and handing edited text back to the input box.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from enum import Enum
import inspect
import math
import re
from typing import Any

from .config import PreviewConfig, ShellConfig
from .gate import should_auto_execute
from .intent import Intent, IntentDetector, detect_intent, parse_slash_command, safe_detect_intent, with_command_fields
from .messages import (
    MessageLog,
    auto_execute_message,
    execution_failed_message,
    low_confidence_message,
)
from .preview import (
    Effect,
    EmitMessage,
    EnterPreview,
    ExecuteCommand,
    ExecuteTask,
    KeyPressed,
    PendingPreview,
    PreviewController,
    PreviewEvent,
    PreviewKey,
    PreviewPhase,
    RestoreInput,
    Tick,
    execution_effect,
)
from .preview_command import handle_preview_command
from .runtime.events import EventBus
from .timer import AsyncioTickTimer, TimerFactory

LOW_CONFIDENCE_NOTICE = 0.7
QUESTION_TASK_PREFIX = "Answer this question: "
EXIT_COMMANDS = {"exit", "quit", "q"}

ANSI_CSI_RE = re.compile(r"\x1B\[[0-?]*[ -/]*[@-~]")
ANSI_OSC_RE = re.compile(r"\x1B\][^\x07\x1B]*(?:\x07|\x1B\\)")
CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b-\x1f\x7f]")

TaskHandler = Callable[[str], Any]
CommandHandler = Callable[[str, list[str]], Any]

_KEY_EVENT_TYPES = {
    PreviewKey.CONFIRM: ("preview.confirmed", "Preview confirmed."),
    PreviewKey.CANCEL: ("preview.cancelled", "Preview cancelled."),
    PreviewKey.EDIT: ("preview.edit", "Preview returned to edit mode."),
    PreviewKey.OTHER: ("preview.paused", "Auto-execute countdown cancelled by keypress."),
}


class SubmitOutcome(str, Enum):
    IGNORED = "ignored"
    HANDLED = "handled"
    REJECTED = "rejected"
    AUTO_EXECUTED = "auto_executed"
    PREVIEWED = "previewed"
    EXECUTED = "executed"
    EXIT = "exit"


def sanitize_input(value: object) -> str:
    if not isinstance(value, str):
        return ""
    cleaned = ANSI_CSI_RE.sub("", value)
    cleaned = ANSI_OSC_RE.sub("", cleaned)
    cleaned = CONTROL_CHARS_RE.sub("", cleaned)
    return " ".join(cleaned.split())


def translate_key(character: object = None, *, return_: bool = False, escape: bool = False) -> PreviewKey:
    if return_:
        return PreviewKey.CONFIRM
    if escape:
        return PreviewKey.CANCEL
    if isinstance(character, str) and character in {"e", "E"}:
        return PreviewKey.EDIT
    return PreviewKey.OTHER


async def _await(awaitable: Awaitable[Any]) -> Any:
    return await awaitable


class ShellAdapter:
    def __init__(
        self,
        *,
        on_task: TaskHandler,
        on_command: CommandHandler,
        detect_intent: IntentDetector = detect_intent,
        config: ShellConfig | None = None,
        message_log: MessageLog | None = None,
        event_bus: EventBus | None = None,
        timer_factory: TimerFactory = AsyncioTickTimer,
        on_restore_input: Callable[[str], None] | None = None,
        on_exit: Callable[[], None] | None = None,
    ) -> None:
        config = config or ShellConfig()
        self.on_task = on_task
        self.on_command = on_command
        self.detect_intent = detect_intent
        self.preview_mode = config.preview_mode
        self.preview_config = config.preview
        self.messages = message_log if message_log is not None else MessageLog()
        self.event_bus = event_bus if event_bus is not None else EventBus()
        self.on_restore_input = on_restore_input
        self.on_exit = on_exit
        self.controller = PreviewController(timer_factory=timer_factory, on_effects=self._on_transition)
        self._executions: set[asyncio.Future[Any]] = set()

    @property
    def pending_preview(self) -> PendingPreview | None:
        return self.controller.pending_preview

    @property
    def remaining_ms(self) -> int | None:
        return self.controller.remaining_ms

    @property
    def countdown_seconds(self) -> int | None:
        return self.controller.countdown_seconds

    @property
    def phase(self) -> PreviewPhase:
        return self.controller.phase

    @property
    def running_executions(self) -> int:
        return sum(1 for task in self._executions if not task.done())

    def handle_key(self, character: object = None, *, return_: bool = False, escape: bool = False) -> bool:
        """Feed a raw keypress to the preview. Returns True when it was consumed."""

        if self.controller.pending_preview is None:
            return False
        self.controller.press(translate_key(character, return_=return_, escape=escape))
        return True

    def submit(self, text: object) -> SubmitOutcome:
        cleaned = sanitize_input(text)
        if not cleaned:
            return SubmitOutcome.IGNORED

        slash = parse_slash_command(cleaned)
        if slash is not None:
            command, args = slash
            if command == "preview":
                self._run_preview_command(args)
                return SubmitOutcome.HANDLED
            if command in EXIT_COMMANDS:
                self.controller.reset()
                if self.on_exit is not None:
                    self.on_exit()
                return SubmitOutcome.EXIT
            if command == "clear":
                self.messages.clear_view()
                return SubmitOutcome.HANDLED

        if self.controller.pending_preview is not None:
            self.event_bus.publish_event(
                "preview.rejected",
                "Input ignored while a preview is pending.",
                severity="warn",
                metadata={"input": cleaned[:120]},
            )
            return SubmitOutcome.REJECTED

        intent, error = safe_detect_intent(self.detect_intent, cleaned)
        if error:
            self.event_bus.publish_event(
                "intent.classifier_failed",
                f"Intent classifier failed; using fallback intent: {error}",
                severity="warn",
            )
        intent = with_command_fields(intent, cleaned)

        if should_auto_execute(intent, self.preview_mode, self.preview_config, cleaned):
            self.messages.system(auto_execute_message(intent.confidence))
            self.event_bus.publish_event(
                "execution.auto",
                "High-confidence input executed without preview.",
                metadata=_intent_metadata(cleaned, intent),
            )
            self._execute(execution_effect(cleaned, intent))
            return SubmitOutcome.AUTO_EXECUTED

        if self.preview_mode:
            try:
                self.controller.dispatch(
                    EnterPreview(input=cleaned, intent=intent, timeout_ms=self.preview_config.timeout_ms)
                )
            except RuntimeError as exc:
                self.messages.error(f"Preview unavailable: {exc}")
                self.event_bus.publish_event(
                    "preview.unavailable",
                    f"Preview countdown could not start: {exc}",
                    severity="error",
                    metadata=_intent_metadata(cleaned, intent),
                )
                return SubmitOutcome.REJECTED
            return SubmitOutcome.PREVIEWED

        if intent.confidence < LOW_CONFIDENCE_NOTICE:
            self.messages.system(low_confidence_message(intent.type, intent.confidence))
        self._execute(execution_effect(cleaned, intent))
        return SubmitOutcome.EXECUTED

    async def drain(self) -> None:
        """Wait for launched executions to settle. Used by hosts on shutdown and by tests."""

        while self._executions:
            pending = [task for task in self._executions if not task.done()]
            if not pending:
                break
            await asyncio.gather(*pending, return_exceptions=True)
        # let done-callbacks run
        await asyncio.sleep(0)

    def close(self) -> None:
        self.controller.reset()
        for task in list(self._executions):
            task.cancel()

    def _run_preview_command(self, args: list[str]) -> None:
        result = handle_preview_command(args, self.preview_mode, self.preview_config)
        if result.mode_changed:
            self.controller.reset()
        self.preview_mode = result.preview_mode
        self.preview_config = result.config
        for message in result.messages:
            if message.type == "error":
                self.messages.error(message.content)
            elif message.type == "assistant":
                self.messages.assistant(message.content)
            else:
                self.messages.system(message.content)
        if result.mode_changed or result.config_changed:
            self.event_bus.publish_event(
                "config.changed",
                "Preview settings updated.",
                metadata=_config_metadata(self.preview_mode, self.preview_config),
            )

    def _on_transition(self, event: PreviewEvent, effects: list[Effect]) -> None:
        pending = self.controller.pending_preview
        if isinstance(event, EnterPreview):
            self.event_bus.publish_event(
                "preview.entered",
                "Input held for preview.",
                metadata={**_intent_metadata(event.input, event.intent), "timeout_ms": self.controller.remaining_ms},
            )
        elif isinstance(event, KeyPressed):
            event_type, message = _KEY_EVENT_TYPES.get(event.key, _KEY_EVENT_TYPES[PreviewKey.OTHER])
            self.event_bus.publish_event(event_type, message, metadata={"pending": pending is not None})
        elif isinstance(event, Tick):
            self.event_bus.publish_event("preview.timeout", "Preview countdown expired; executing.")

        for effect in effects:
            if isinstance(effect, (ExecuteTask, ExecuteCommand)):
                self._execute(effect)
            elif isinstance(effect, EmitMessage):
                self.messages.system(effect.content)
            elif isinstance(effect, RestoreInput) and self.on_restore_input is not None:
                self.on_restore_input(effect.text)

    def _execute(self, effect: ExecuteTask | ExecuteCommand) -> None:
        if isinstance(effect, ExecuteCommand):
            self._launch(self.on_command, effect.command, list(effect.args))
            return
        payload = effect.input
        if effect.intent_type == "question":
            payload = f"{QUESTION_TASK_PREFIX}{effect.input}"
        self._launch(self.on_task, payload)

    def _launch(self, handler: Callable[..., Any], *args: Any) -> None:
        try:
            result = handler(*args)
        except Exception as exc:  # noqa: BLE001
            self._report_failure(exc)
            return
        if not inspect.isawaitable(result):
            return
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # Headless caller without a loop: run the work to completion here.
            try:
                asyncio.run(_await(result))
            except Exception as exc:  # noqa: BLE001
                self._report_failure(exc)
            return
        task = asyncio.ensure_future(result)
        self._executions.add(task)
        task.add_done_callback(self._on_execution_done)

    def _on_execution_done(self, task: asyncio.Future[Any]) -> None:
        self._executions.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._report_failure(exc)

    def _report_failure(self, exc: BaseException) -> None:
        self.messages.error(execution_failed_message(exc))
        self.event_bus.publish_event(
            "execution.failed",
            execution_failed_message(exc),
            severity="error",
            metadata={"error_type": type(exc).__name__},
        )


def _intent_metadata(text: str, intent: Intent) -> dict[str, Any]:
    return {
        "input": text[:120],
        "intent_type": intent.type,
        "confidence": None if math.isnan(intent.confidence) else intent.confidence,
        "command": intent.command,
    }


def _config_metadata(preview_mode: bool, config: PreviewConfig) -> dict[str, Any]:
    return {
        "preview_mode": preview_mode,
        "confidence_threshold": config.confidence_threshold,
        "auto_execute_high_confidence": config.auto_execute_high_confidence,
        "timeout_ms": config.timeout_ms,
    }
