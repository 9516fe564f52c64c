from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
import math
import re
from typing import Any

INTENT_TYPES = ("command", "task", "question", "clarification")
FALLBACK_INTENT_TYPE = "task"
SLASH_COMMAND_CONFIDENCE = 0.98
QUESTION_CONFIDENCE = 0.85
TASK_CONFIDENCE = 0.75
CLARIFICATION_CONFIDENCE = 0.5

_QUESTION_WORDS = {"what", "why", "how", "when", "where", "who", "which", "is", "are", "can", "does", "do", "should"}
_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class Intent:
    type: str
    confidence: float
    command: str | None = None
    args: tuple[str, ...] = ()
    metadata: dict[str, Any] = field(default_factory=dict, compare=False)


IntentDetector = Callable[[str], Any]


def read_confidence(value: object) -> float:
    """Numeric confidence or NaN. Bools and numeric strings are not numbers here."""

    if isinstance(value, bool):
        return math.nan
    if isinstance(value, (int, float)):
        try:
            return float(value)
        except OverflowError:
            return math.inf if value > 0 else -math.inf
    return math.nan


def intent_field(intent: object, name: str, default: Any = None) -> Any:
    if intent is None:
        return default
    if isinstance(intent, Mapping):
        return intent.get(name, default)
    try:
        return getattr(intent, name, default)
    except Exception:  # noqa: BLE001
        return default


def coerce_intent(value: object) -> Intent:
    if isinstance(value, Intent):
        return value

    raw_type = intent_field(value, "type")
    intent_type = raw_type if isinstance(raw_type, str) and raw_type in INTENT_TYPES else FALLBACK_INTENT_TYPE
    raw_command = intent_field(value, "command")
    command = raw_command if isinstance(raw_command, str) and raw_command else None
    raw_args = intent_field(value, "args")
    args: tuple[str, ...] = ()
    if isinstance(raw_args, (list, tuple)):
        args = tuple(str(item) for item in raw_args if item is not None)
    raw_metadata = intent_field(value, "metadata")
    metadata = dict(raw_metadata) if isinstance(raw_metadata, Mapping) else {}
    return Intent(
        type=intent_type,
        confidence=read_confidence(intent_field(value, "confidence")),
        command=command,
        args=args,
        metadata=metadata,
    )


def parse_slash_command(text: str) -> tuple[str, list[str]] | None:
    if not text.startswith("/"):
        return None
    parts = _WHITESPACE_RE.split(text[1:].strip())
    command = parts[0].lower() if parts else ""
    return command, [part for part in parts[1:] if part]


def with_command_fields(intent: Intent, text: str) -> Intent:
    parsed = parse_slash_command(text)
    if parsed is None:
        return intent
    command, args = parsed
    return replace(intent, type="command", command=command, args=tuple(args))


def detect_intent(text: str) -> Intent:
    """Rule-based stand-in classifier used by the bundled terminal app."""

    cleaned = " ".join(text.split())
    if cleaned.startswith("/"):
        command, args = parse_slash_command(cleaned) or ("", [])
        return Intent(type="command", confidence=SLASH_COMMAND_CONFIDENCE, command=command, args=tuple(args))

    words = cleaned.lower().split()
    if cleaned.endswith("?") or (words and words[0] in _QUESTION_WORDS):
        return Intent(type="question", confidence=QUESTION_CONFIDENCE)
    if len(words) < 2:
        return Intent(type="clarification", confidence=CLARIFICATION_CONFIDENCE)
    return Intent(type="task", confidence=TASK_CONFIDENCE)


def safe_detect_intent(detector: IntentDetector, text: str) -> tuple[Intent, str]:
    """Run the classifier, falling back to a zero-confidence task.

    Returns (intent, error). Error is empty when the classifier succeeded.
    """

    try:
        raw = detector(text)
    except Exception as exc:  # noqa: BLE001
        return Intent(type=FALLBACK_INTENT_TYPE, confidence=0.0), f"{type(exc).__name__}: {exc}"
    return coerce_intent(raw), ""
