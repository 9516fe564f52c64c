from __future__ import annotations

from dataclasses import dataclass, field
import math
from pathlib import Path
import tomllib

CONFIG_FILENAME = "previewshell.toml"
DEFAULT_STATE_DIRNAME = ".previewshell"


def _clamp01(value: float) -> float:
    if value < 0.0:
        return 0.0
    if value > 1.0:
        return 1.0
    return value


def _as_float(value, *, default: float) -> float:
    if isinstance(value, bool):
        return float(default)
    try:
        parsed = float(value)
    except Exception:  # noqa: BLE001
        return float(default)
    return parsed if math.isfinite(parsed) else float(default)


def _as_int(value, *, default: int) -> int:
    if isinstance(value, bool):
        return int(default)
    try:
        return int(value)
    except Exception:  # noqa: BLE001
        return int(default)


def _as_bool(value, *, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "y", "on"}:
            return True
        if lowered in {"0", "false", "no", "n", "off"}:
            return False
    return bool(default)


def normalize_confidence(value: float) -> float:
    """Accept 0..1 or 0..100 (percent) and return a 0..1 fraction."""

    return value / 100.0 if value > 1.0 else value


@dataclass(frozen=True)
class PreviewConfig:
    confidence_threshold: float = 0.7
    auto_execute_high_confidence: bool = False
    timeout_ms: int = 5000


@dataclass(frozen=True)
class LoggingConfig:
    state_dir: str = ""
    events: bool = True


@dataclass(frozen=True)
class ShellConfig:
    preview_mode: bool = True
    preview: PreviewConfig = field(default_factory=PreviewConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_shell_toml(path: Path) -> tuple[ShellConfig, str]:
    """Load shell settings from previewshell.toml.

    Returns (config, warning). Warning is empty on success.
    """

    if not path.exists():
        return ShellConfig(), ""

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except Exception as exc:  # noqa: BLE001
        return ShellConfig(), f"{path.name} parse failed: {exc}"

    preview = data.get("preview") if isinstance(data.get("preview"), dict) else {}
    logging = data.get("logging") if isinstance(data.get("logging"), dict) else {}

    confidence = normalize_confidence(
        _as_float(preview.get("confidence"), default=PreviewConfig.confidence_threshold)
    )
    cfg = ShellConfig(
        preview_mode=_as_bool(preview.get("enabled"), default=ShellConfig.preview_mode),
        preview=PreviewConfig(
            confidence_threshold=_clamp01(confidence),
            auto_execute_high_confidence=_as_bool(
                preview.get("auto_execute_high_confidence"),
                default=PreviewConfig.auto_execute_high_confidence,
            ),
            timeout_ms=max(0, _as_int(preview.get("timeout_ms"), default=PreviewConfig.timeout_ms)),
        ),
        logging=LoggingConfig(
            state_dir=str(logging.get("state_dir") or LoggingConfig.state_dir).strip(),
            events=_as_bool(logging.get("events"), default=LoggingConfig.events),
        ),
    )
    return cfg, ""


def resolve_state_dir(config: ShellConfig, *, config_path: Path | None = None) -> Path:
    base = config_path.parent if config_path is not None else Path.cwd()
    if config.logging.state_dir:
        candidate = Path(config.logging.state_dir).expanduser()
        return candidate if candidate.is_absolute() else base / candidate
    return base / DEFAULT_STATE_DIRNAME


def explain_shell_toml(config: ShellConfig, *, path: Path | None = None) -> str:
    location = str(path) if path is not None else CONFIG_FILENAME
    preview = config.preview
    lines = [
        f"{CONFIG_FILENAME} guide ({location})",
        "",
        "[preview]",
        f"- enabled: hold input in a preview before executing (current: {'true' if config.preview_mode else 'false'})",
        f"- confidence: preview confidence threshold, 0..1 or 0..100 (current: {preview.confidence_threshold * 100:.0f}%)",
        "- auto_execute_high_confidence: run input scoring >= 95% without a preview "
        f"(current: {'true' if preview.auto_execute_high_confidence else 'false'})",
        f"- timeout_ms: countdown before a preview auto-executes (current: {preview.timeout_ms})",
        "",
        "[logging]",
        f"- state_dir: where events.jsonl and app.log are written (current: {config.logging.state_dir or DEFAULT_STATE_DIRNAME})",
        f"- events: write the JSONL event log (current: {'true' if config.logging.events else 'false'})",
    ]
    return "\n".join(lines)
