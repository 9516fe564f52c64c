from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_FLOOR, Decimal, InvalidOperation
import math
import secrets
import sys
import time

COUNTDOWN_CANCELLED = "Auto-execute cancelled."
PREVIEW_CANCELLED = "Preview cancelled."
EDIT_MODE = "Returning to edit mode..."
HIGH_CONFIDENCE_LABEL = "95%"

MESSAGE_TYPES = ("system", "error", "assistant")

MessageListener = Callable[["SystemMessage"], None]


def confidence_percent(confidence: object) -> int:
    """Integer percent, half rounded toward +inf like a JS Math.round.

    Rounds on the decimal text of the value so 0.955 gives 96, not 95.
    NaN maps to 0 and infinities clamp to +/- sys.maxsize.
    """

    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        return 0
    if isinstance(confidence, float):
        if math.isnan(confidence):
            return 0
        if math.isinf(confidence):
            return sys.maxsize if confidence > 0 else -sys.maxsize
    try:
        scaled = Decimal(repr(confidence)) * 100
    except InvalidOperation:
        return 0
    return int((scaled + Decimal("0.5")).to_integral_value(rounding=ROUND_FLOOR))


def countdown_seconds(remaining_ms: int | None) -> int | None:
    if remaining_ms is None:
        return None
    return math.ceil(remaining_ms / 1000)


def auto_execute_message(confidence: object) -> str:
    return f"Auto-executing (confidence: {confidence_percent(confidence)}% ≥ {HIGH_CONFIDENCE_LABEL})"


def timeout_message(timeout_ms: int) -> str:
    return f"Auto-executing after {math.ceil(timeout_ms / 1000)}s timeout"


def low_confidence_message(intent_type: str, confidence: object) -> str:
    return f"Interpreting as {intent_type} (confidence: {confidence_percent(confidence)}%)"


def execution_failed_message(error: BaseException) -> str:
    detail = str(error).strip() or type(error).__name__
    return f"Execution failed: {detail}"


def new_message_id() -> str:
    stamp = int(time.time() * 1000)
    return f"msg-{stamp}-{secrets.token_hex(4)}"


@dataclass(frozen=True)
class SystemMessage:
    content: str
    type: str = "system"
    id: str = field(default_factory=new_message_id)
    timestamp: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))


class MessageLog:
    """Ordered, append-only message log shared by the shell and its host."""

    def __init__(self) -> None:
        self._entries: list[SystemMessage] = []
        self._listeners: list[MessageListener] = []
        self._view_offset = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[SystemMessage]:
        return iter(tuple(self._entries))

    @property
    def entries(self) -> tuple[SystemMessage, ...]:
        return tuple(self._entries)

    def contents(self) -> list[str]:
        return [entry.content for entry in self._entries]

    def visible(self) -> tuple[SystemMessage, ...]:
        return tuple(self._entries[self._view_offset :])

    def clear_view(self) -> None:
        # Entries are never removed; the host only renders past the offset.
        self._view_offset = len(self._entries)

    def subscribe(self, listener: MessageListener) -> None:
        self._listeners.append(listener)

    def append(self, message: SystemMessage) -> SystemMessage:
        if message.type not in MESSAGE_TYPES:
            raise ValueError(f"unknown message type: {message.type}")
        self._entries.append(message)
        for listener in list(self._listeners):
            try:
                listener(message)
            except Exception:
                continue
        return message

    def system(self, content: str) -> SystemMessage:
        return self.append(SystemMessage(content=content))

    def error(self, content: str) -> SystemMessage:
        return self.append(SystemMessage(content=content, type="error"))

    def assistant(self, content: str) -> SystemMessage:
        return self.append(SystemMessage(content=content, type="assistant"))
