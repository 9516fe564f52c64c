from __future__ import annotations

import asyncio
from collections import deque
import contextlib
from datetime import datetime, timezone
from pathlib import Path
import time
from typing import Any, Callable

from textual import events
from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical
from textual.widgets import Footer, Input, Static, TextArea

from .config import ShellConfig
from .intent import IntentDetector, detect_intent
from .messages import SystemMessage
from .panel import escape_markup, preview_panel_text
from .paths import ShellPaths, ensure_state_dir
from .runtime.events import EventBus
from .shell import ShellAdapter, SubmitOutcome, sanitize_input
from .timer import IntervalTickTimer, TickCallback

ACTIVITY_LOG_MAX = 80
TRANSCRIPT_LOG_MAX = 2000
STATUS_REFRESH_S = 0.1
SIMULATED_WORK_S = 0.2

_MESSAGE_PREFIXES = {
    "system": "System",
    "error": "Error",
    "assistant": "Shell",
}


class PreviewShellApp(App[None]):
    CSS = """
    Screen {
        layout: vertical;
    }

    #status-bar {
        height: 1;
        padding: 0 1;
        background: $boost;
        color: $text;
    }

    #main {
        height: 1fr;
    }

    #transcript {
        width: 2fr;
        border: solid $accent;
        padding: 0 1;
    }

    #sidebar {
        width: 1fr;
        border: solid $secondary;
        padding: 0 1;
    }

    #panel-preview {
        height: 12;
        border: solid $primary;
        margin: 0 0 1 0;
        padding: 0 1;
    }

    .panel {
        height: 1fr;
        border: solid $primary;
        margin: 0 0 1 0;
        padding: 0 1;
    }

    #input-box {
        margin: 0;
        border: solid $border-blurred;
    }

    #input-box:focus {
        border: solid $border;
    }

    Footer {
        dock: none;
    }
    """

    BINDINGS = [
        ("ctrl+c", "request_quit", "Quit"),
        ("f2", "toggle_preview_mode", "Preview Mode"),
    ]

    def __init__(
        self,
        *,
        config: ShellConfig | None = None,
        paths: ShellPaths | None = None,
        detect_intent: IntentDetector = detect_intent,
        on_task: Callable[[str], Any] | None = None,
        on_command: Callable[[str, list[str]], Any] | None = None,
    ) -> None:
        super().__init__()
        self.shell_config = config or ShellConfig()
        self.state_paths = paths
        self.app_log_path: Path | None = paths.app_log if paths is not None else None
        self.event_bus = EventBus()
        self.activity_entries: deque[str] = deque(maxlen=ACTIVITY_LOG_MAX)
        self.transcript_lines: deque[str] = deque(maxlen=TRANSCRIPT_LOG_MAX)
        self.started_at = time.monotonic()
        self.shell = ShellAdapter(
            on_task=on_task or self._run_task,
            on_command=on_command or self._run_command,
            detect_intent=detect_intent,
            config=self.shell_config,
            event_bus=self.event_bus,
            timer_factory=self._tick_timer,
            on_restore_input=self._restore_input,
            on_exit=self.exit,
        )
        self.shell.messages.subscribe(self._on_message)
        self.event_bus.subscribe(self._on_event)
        self.status_bar: Static
        self.transcript: TextArea
        self.input_box: Input
        self.preview_panel: Static
        self.activity_panel: Static

    def compose(self) -> ComposeResult:
        yield Static("", id="status-bar")
        with Horizontal(id="main"):
            yield TextArea(
                "",
                id="transcript",
                read_only=True,
                show_cursor=False,
                highlight_cursor_line=False,
                show_line_numbers=False,
                language=None,
            )
            with Vertical(id="sidebar"):
                yield Static("", id="panel-preview")
                yield Static("", id="panel-activity", classes="panel")
        yield Input(id="input-box", placeholder="Describe a task or type /help, /preview status ...")
        yield Footer()

    def on_mount(self) -> None:
        self.status_bar = self.query_one("#status-bar", Static)
        self.transcript = self.query_one("#transcript", TextArea)
        self.input_box = self.query_one("#input-box", Input)
        self.preview_panel = self.query_one("#panel-preview", Static)
        self.activity_panel = self.query_one("#panel-activity", Static)
        if self.state_paths is not None and self.shell_config.logging.events:
            with contextlib.suppress(OSError):
                ensure_state_dir(self.state_paths)
                self.event_bus.set_log_path(self.state_paths.events_jsonl)
        self.event_bus.publish_event("shell.started", "Preview shell started.", source="app")
        self._ensure_input_focus()
        self.set_interval(STATUS_REFRESH_S, self._refresh_status)
        self._refresh_status()

    def on_resize(self, _: events.Resize) -> None:
        self.call_after_refresh(self._ensure_input_focus)

    async def on_unmount(self) -> None:
        self.shell.close()

    async def action_request_quit(self) -> None:
        self.shell.close()
        self.exit()

    def action_toggle_preview_mode(self) -> None:
        self.shell.submit("/preview toggle")
        self._refresh_status()

    def on_key(self, event: events.Key) -> None:
        if self.shell.pending_preview is None:
            return
        if event.key in {"ctrl+c", "f2"}:
            return
        event.stop()
        event.prevent_default()
        self.shell.handle_key(
            event.character,
            return_=event.key == "enter",
            escape=event.key == "escape",
        )
        self._refresh_status()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        text = sanitize_input(event.value)
        event.input.value = ""
        if not text:
            self._ensure_input_focus()
            return
        self._write_user(text)
        outcome = self.shell.submit(text)
        if outcome is SubmitOutcome.PREVIEWED:
            self._add_activity("preview", f"holding `{text}`")
        self._refresh_status()

    async def _run_task(self, description: str) -> None:
        self._add_activity("task", description)
        await asyncio.sleep(SIMULATED_WORK_S)
        self._write_line("Task", f"dispatched: {description}")

    async def _run_command(self, command: str, args: list[str]) -> None:
        rendered = " ".join([f"/{command}", *args])
        self._add_activity("command", rendered)
        await asyncio.sleep(SIMULATED_WORK_S)
        self._write_line("Command", f"dispatched: {rendered}")

    def _tick_timer(self, on_tick: TickCallback) -> IntervalTickTimer:
        return IntervalTickTimer(on_tick, set_interval=self.set_interval)

    def _restore_input(self, text: str) -> None:
        input_box = getattr(self, "input_box", None)
        if input_box is None:
            return
        input_box.disabled = False
        input_box.value = text
        input_box.cursor_position = len(text)
        self._ensure_input_focus()

    def _on_message(self, message: SystemMessage) -> None:
        self._write_line(_MESSAGE_PREFIXES.get(message.type, "System"), message.content)

    def _on_event(self, event: dict[str, Any]) -> None:
        event_type = str(event.get("type") or "")
        if event_type.startswith(("preview.", "execution.", "intent.", "config.")):
            self._add_activity(event_type, str(event.get("message") or ""))

    def _ensure_input_focus(self) -> None:
        input_box = getattr(self, "input_box", None)
        if input_box is None or input_box.disabled:
            return
        with contextlib.suppress(Exception):
            input_box.focus()

    def _refresh_status(self) -> None:
        if not hasattr(self, "status_bar"):
            return
        # Keys must reach the app, not the input box, while a preview is pending.
        holding = self.shell.pending_preview is not None
        if self.input_box.disabled != holding:
            self.input_box.disabled = holding
            if not holding:
                self._ensure_input_focus()

        uptime_s = int(time.monotonic() - self.started_at)
        preview = "on" if self.shell.preview_mode else "off"
        auto = "on" if self.shell.preview_config.auto_execute_high_confidence else "off"
        seconds = self.shell.countdown_seconds
        countdown = f"{seconds}s" if seconds is not None else "-"
        self.status_bar.update(
            f"state={self.shell.phase.value} | countdown={countdown} | preview={preview} | auto={auto} | "
            f"timeout={self.shell.preview_config.timeout_ms}ms | running={self.shell.running_executions} | uptime={uptime_s}s"
        )
        self.preview_panel.update(preview_panel_text(self.shell.pending_preview, self.shell.remaining_ms))
        self.activity_panel.update(_activity_text(list(self.activity_entries)))

    def _write_user(self, text: str) -> None:
        self._write_line("You", text)

    def _write_line(self, channel: str, text: str) -> None:
        for index, part in enumerate(text.splitlines() or [""]):
            prefix = f"{channel}: " if index == 0 else "  "
            self._append_transcript_line(f"{prefix}{part}")
        self._append_app_log(channel, text)

    def _append_transcript_line(self, line: str) -> None:
        self.transcript_lines.append(line)
        transcript = getattr(self, "transcript", None)
        if transcript is None:
            return
        transcript.load_text("\n".join(self.transcript_lines))
        transcript.scroll_end(animate=False)

    def _append_app_log(self, channel: str, message: str) -> None:
        if self.app_log_path is None:
            return
        stamp = datetime.now(tz=timezone.utc).replace(microsecond=0).isoformat()
        safe_channel = channel.strip().lower() or "system"
        safe_message = " ".join(message.split())
        with contextlib.suppress(Exception):
            self.app_log_path.parent.mkdir(parents=True, exist_ok=True)
            with self.app_log_path.open("a", encoding="utf-8") as handle:
                handle.write(f"{stamp} [{safe_channel}] {safe_message}\n")

    def _add_activity(self, kind: str, detail: str) -> None:
        stamp = datetime.now().strftime("%H:%M:%S")
        entry = f"{stamp} {kind}: {_summarize_text(detail)}"
        self.activity_entries.appendleft(entry)


def run_terminal_app(*, config: ShellConfig | None = None, paths: ShellPaths | None = None) -> int:
    app = PreviewShellApp(config=config, paths=paths)
    app.run(mouse=False)
    return 0


def _summarize_text(text: str) -> str:
    cleaned = " ".join(text.split())
    if len(cleaned) <= 90:
        return cleaned
    return cleaned[:87] + "..."


def _activity_text(entries: list[str]) -> str:
    if not entries:
        return "Activity\n- idle"
    lines = ["Activity"]
    for entry in entries[:10]:
        lines.append(f"- {escape_markup(entry)}")
    return "\n".join(lines)
