"""Auto-execute decision for classified input.

High-confidence input skips the preview entirely when the operator has opted
in. The threshold is fixed; the configurable preview confidence does not take
part in this decision.
"""

from __future__ import annotations

from collections.abc import Mapping
import math

from .intent import intent_field, read_confidence

HIGH_CONFIDENCE_THRESHOLD = 0.95
PREVIEW_COMMAND_PREFIX = "/preview"

_AUTO_EXECUTE_KEYS = ("auto_execute_high_confidence", "autoExecuteHighConfidence")


def coerce_flag(value: object) -> bool:
    """Loose truthiness for flags arriving from config or callers.

    None, False, 0, 0.0, NaN and "" are false. Every other value is true,
    including "false", "0", empty lists and empty dicts.
    """

    if value is None or value is False:
        return False
    if isinstance(value, str):
        return value != ""
    if isinstance(value, (int, float)):
        return not (value == 0 or (isinstance(value, float) and math.isnan(value)))
    return True


def _auto_execute_flag(preview_config: object) -> object:
    if preview_config is None:
        return None
    for key in _AUTO_EXECUTE_KEYS:
        if isinstance(preview_config, Mapping):
            if key in preview_config:
                return preview_config[key]
            continue
        try:
            value = getattr(preview_config, key)
        except Exception:  # noqa: BLE001
            continue
        return value
    return None


def should_auto_execute(intent: object, preview_mode: object, preview_config: object, input: object) -> bool:
    if not coerce_flag(preview_mode):
        return False
    text = input if isinstance(input, str) else ""
    if text.startswith(PREVIEW_COMMAND_PREFIX):
        return False
    if not coerce_flag(_auto_execute_flag(preview_config)):
        return False
    confidence = read_confidence(intent_field(intent, "confidence"))
    # NaN compares false
    return confidence >= HIGH_CONFIDENCE_THRESHOLD
