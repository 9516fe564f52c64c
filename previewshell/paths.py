from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .config import CONFIG_FILENAME, ShellConfig, resolve_state_dir


def find_config_file(start: Path | None = None) -> Path | None:
    """Nearest previewshell.toml at or above `start` (default: cwd)."""

    probe = (start or Path.cwd()).resolve()
    for candidate in [probe, *probe.parents]:
        path = candidate / CONFIG_FILENAME
        if path.is_file():
            return path
    return None


@dataclass(frozen=True)
class ShellPaths:
    state_dir: Path
    events_jsonl: Path
    app_log: Path


def shell_paths(config: ShellConfig, *, config_path: Path | None = None) -> ShellPaths:
    state_dir = resolve_state_dir(config, config_path=config_path)
    return ShellPaths(
        state_dir=state_dir,
        events_jsonl=state_dir / "events.jsonl",
        app_log=state_dir / "app.log",
    )


def ensure_state_dir(paths: ShellPaths) -> ShellPaths:
    paths.state_dir.mkdir(parents=True, exist_ok=True)
    return paths
