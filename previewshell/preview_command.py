"""The `/preview` control command.

Handling is pure: the caller gets back the new mode/config and the messages to
append, and applies them itself. Changes live in memory only.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
import math

from .config import PreviewConfig, normalize_confidence

USAGE = "Usage: /preview [on|off|toggle|status|settings|confidence|timeout|auto]"
AUTO_USAGE = "Usage: /preview auto [on|off]"


@dataclass(frozen=True)
class CommandMessage:
    type: str
    content: str


@dataclass(frozen=True)
class PreviewCommandResult:
    preview_mode: bool
    config: PreviewConfig
    messages: list[CommandMessage] = field(default_factory=list)
    mode_changed: bool = False
    config_changed: bool = False

    @property
    def ok(self) -> bool:
        return not any(message.type == "error" for message in self.messages)


def _enabled(value: bool) -> str:
    return "enabled" if value else "disabled"


def _percent(value: float) -> str:
    return f"{value * 100:.0f}"


def _seconds(timeout_ms: int) -> str:
    seconds = timeout_ms / 1000
    return f"{seconds:g}"


def format_preview_settings(preview_mode: bool, config: PreviewConfig) -> str:
    return "\n".join(
        [
            "Preview Settings:",
            f"• Mode: {_enabled(preview_mode)}",
            f"• Confidence threshold: {_percent(config.confidence_threshold)}%",
            f"• Auto-execute high confidence: {_enabled(config.auto_execute_high_confidence)}",
            f"• Timeout: {_seconds(config.timeout_ms)}s",
        ]
    )


def handle_preview_command(args: list[str], preview_mode: bool, config: PreviewConfig) -> PreviewCommandResult:
    action = args[0].lower() if args else None
    value = args[1] if len(args) > 1 else None

    def _mode(enabled: bool, content: str) -> PreviewCommandResult:
        return PreviewCommandResult(
            preview_mode=enabled,
            config=config,
            messages=[CommandMessage("system", content)],
            mode_changed=True,
        )

    def _reply(kind: str, content: str) -> PreviewCommandResult:
        return PreviewCommandResult(preview_mode=preview_mode, config=config, messages=[CommandMessage(kind, content)])

    def _updated(new_config: PreviewConfig, content: str) -> PreviewCommandResult:
        return PreviewCommandResult(
            preview_mode=preview_mode,
            config=new_config,
            messages=[CommandMessage("system", content)],
            config_changed=True,
        )

    if action == "on":
        return _mode(True, "Preview mode enabled. You will see a preview before each execution.")
    if action == "off":
        return _mode(False, "Preview mode disabled.")
    if action in {None, "toggle"}:
        enabled = not preview_mode
        return _mode(enabled, f"Preview mode {_enabled(enabled)}.")

    if action == "confidence":
        if value is None:
            return _reply("assistant", f"Preview confidence threshold: {_percent(config.confidence_threshold)}%")
        try:
            parsed = float(value)
        except ValueError:
            parsed = float("nan")
        if math.isnan(parsed):
            return _reply("error", "Confidence must be a number between 0-1 (e.g., 0.7) or 0-100 (e.g., 70).")
        threshold = normalize_confidence(parsed)
        if threshold < 0 or threshold > 1:
            return _reply("error", "Confidence threshold must be between 0-1 (or 0-100).")
        return _updated(
            replace(config, confidence_threshold=threshold),
            f"Preview confidence threshold set to {_percent(threshold)}%.",
        )

    if action == "timeout":
        if value is None:
            return _reply("assistant", f"Preview timeout: {_seconds(config.timeout_ms)}s")
        try:
            seconds = int(value)
        except ValueError:
            seconds = 0
        if seconds < 1:
            return _reply("error", "Timeout must be a positive number (in seconds).")
        return _updated(replace(config, timeout_ms=seconds * 1000), f"Preview timeout set to {seconds}s.")

    if action == "auto":
        if value is None:
            return _reply("assistant", f"Auto-execute high confidence: {_enabled(config.auto_execute_high_confidence)}")
        if value in {"on", "true"}:
            return _updated(
                replace(config, auto_execute_high_confidence=True),
                "Auto-execute for high confidence inputs enabled.",
            )
        if value in {"off", "false"}:
            return _updated(
                replace(config, auto_execute_high_confidence=False),
                "Auto-execute for high confidence inputs disabled.",
            )
        return _reply("error", AUTO_USAGE)

    if action in {"status", "settings"}:
        return _reply("assistant", format_preview_settings(preview_mode, config))

    return _reply("error", USAGE)
