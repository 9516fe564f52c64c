from __future__ import annotations

import argparse
from dataclasses import replace
import math
from pathlib import Path
import sys

from . import __version__
from .config import ShellConfig, explain_shell_toml, load_shell_toml
from .paths import find_config_file, shell_paths


def _timeout_seconds(value: str) -> float:
    try:
        seconds = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid timeout: {value!r}") from None
    if not math.isfinite(seconds) or seconds < 0:
        raise argparse.ArgumentTypeError(f"timeout must be a finite number of seconds >= 0, got {value!r}")
    return seconds


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="previewshell",
        description="Preview shell: hold interpreted input in a cancellable countdown before it runs",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", help="Path to previewshell.toml (default: nearest one above the cwd)")

    sub = parser.add_subparsers(dest="cmd", required=False)

    app = sub.add_parser("app", help="Start the interactive terminal shell.")
    app.add_argument("--no-preview", action="store_true", help="Start with preview mode disabled")
    app.add_argument("--timeout", type=_timeout_seconds, help="Preview countdown in seconds (overrides config)")

    sub.add_parser("config", help="Explain previewshell.toml options and current values.")

    return parser


def _resolve_config(args: argparse.Namespace) -> tuple[ShellConfig, Path | None, str]:
    raw = getattr(args, "config", None)
    path = Path(raw).expanduser() if raw else find_config_file()
    if path is None:
        return ShellConfig(), None, ""
    config, warning = load_shell_toml(path)
    return config, path, warning


def _apply_overrides(config: ShellConfig, args: argparse.Namespace) -> ShellConfig:
    if getattr(args, "no_preview", False):
        config = replace(config, preview_mode=False)
    timeout = getattr(args, "timeout", None)
    if timeout is not None and math.isfinite(float(timeout)):
        timeout_ms = max(0, int(float(timeout) * 1000))
        config = replace(config, preview=replace(config.preview, timeout_ms=timeout_ms))
    return config


def _run_terminal_app_entry(*, config: ShellConfig, config_path: Path | None) -> int:
    from .app import run_terminal_app

    return run_terminal_app(config=config, paths=shell_paths(config, config_path=config_path))


def cmd_app(args: argparse.Namespace) -> int:
    config, path, warning = _resolve_config(args)
    if warning:
        print(f"warning: {warning}", file=sys.stderr)
    config = _apply_overrides(config, args)
    try:
        return _run_terminal_app_entry(config=config, config_path=path)
    except ModuleNotFoundError as exc:
        if exc.name == "textual":
            print(
                "Interactive shell requires `textual`. Install it with `pip install textual`, then retry.",
                file=sys.stderr,
            )
            return 1
        raise


def cmd_config(args: argparse.Namespace) -> int:
    config, path, warning = _resolve_config(args)
    print(explain_shell_toml(config, path=path))
    if warning:
        print(f"\nwarning: {warning}")
        return 1
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    argv = list(argv) if argv is not None else list(sys.argv[1:])
    args = parser.parse_args(argv)
    if args.cmd is None:
        args.cmd = "app"

    if args.cmd == "app":
        return cmd_app(args)
    if args.cmd == "config":
        return cmd_config(args)

    parser.error(f"Unknown command: {args.cmd}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
