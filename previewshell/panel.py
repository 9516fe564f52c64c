from __future__ import annotations

import math

from .intent import intent_field, read_confidence
from .messages import confidence_percent, countdown_seconds
from .preview import PendingPreview

INTENT_ICONS = {
    "command": "⚡",
    "task": "📝",
    "question": "❓",
    "clarification": "💬",
}
DEFAULT_INTENT_ICON = "🔍"
KEY_HINTS = "[Enter] confirm  [Esc] cancel  [e] edit  [any key] stop countdown"


def intent_icon(intent_type: object) -> str:
    if not isinstance(intent_type, str):
        return DEFAULT_INTENT_ICON
    return INTENT_ICONS.get(intent_type, DEFAULT_INTENT_ICON)


def describe_intent(intent: object, workflow: str | None = None) -> str:
    intent_type = intent_field(intent, "type")
    if intent_type == "command":
        raw_args = intent_field(intent, "args") or ()
        args = [str(arg) for arg in raw_args] if isinstance(raw_args, (list, tuple)) else []
        command = intent_field(intent, "command")
        suffix = f" {' '.join(args)}" if args else ""
        return f"Execute command: /{command}{suffix}"
    if intent_type == "task":
        return f"Create task ({workflow} workflow)" if workflow else "Create task"
    if intent_type == "question":
        return "Answer question"
    if intent_type == "clarification":
        return "Provide clarification"
    return "Process input"


def confidence_band(confidence: object) -> str:
    value = read_confidence(confidence)
    if math.isnan(value):
        return "red"
    if value >= 0.8:
        return "green"
    if value >= 0.6:
        return "yellow"
    return "red"


def countdown_text(remaining_ms: int | None) -> str:
    seconds = countdown_seconds(remaining_ms)
    if seconds is None:
        return "countdown stopped; press Enter to run"
    return f"auto-executing in {seconds}s"


def preview_panel_text(pending: PendingPreview | None, remaining_ms: int | None) -> str:
    if pending is None:
        return "Preview\n\n(no pending input)"
    intent = pending.intent
    workflow = intent.metadata.get("suggestedWorkflow") if intent.metadata else None
    band = confidence_band(intent.confidence)
    description = describe_intent(intent, workflow if isinstance(workflow, str) else None)
    lines = [
        "Preview",
        "",
        f"{intent_icon(intent.type)} {escape_markup(description)}",
        f"input: {escape_markup(pending.input)}",
        f"confidence: [{band}]{confidence_percent(intent.confidence)}%[/{band}]",
        countdown_text(remaining_ms),
        "",
        KEY_HINTS.replace("[", r"\["),
    ]
    return "\n".join(lines)


def escape_markup(value: str) -> str:
    return value.replace("[", r"\[")
