"""Textual TUI for sendme-tui."""

from __future__ import annotations

import logging
from pathlib import Path

from rich.text import Text as RichText
from textual import on, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, ScrollableContainer, Vertical
from textual.css.query import NoMatches
from textual.message import Message
from textual.screen import ModalScreen
from textual.widgets import Button, DirectoryTree, Footer, Input, Label, Static

from .models import SessionSnapshot, TransferMode
from .session import GUARD_REASON, SessionController

logger = logging.getLogger(__name__)

APP_TITLE = "Sendme - Secure File Transfer"

# CSS Styles
CSS = """
Screen {
    layout: vertical;
}

#header {
    height: auto;
    border: solid $primary;
    padding: 0 1;
    margin-bottom: 1;
}

#mode-tabs {
    height: auto;
}

#mode-tabs Button {
    margin-right: 1;
}

#mode-tabs Button.active-tab {
    text-style: bold reverse;
}

.pane {
    height: auto;
    border: solid $secondary;
    padding: 0 1;
}

.pane-title {
    text-style: bold;
}

.input-row {
    height: auto;
}

.input-row Input {
    width: 1fr;
}

#ticket-panel {
    height: auto;
    border: solid $success;
    padding: 0 1;
    margin-top: 1;
}

#ticket-text {
    width: 1fr;
}

#output-view {
    height: 1fr;
    border: solid $surface;
    margin-top: 1;
}

#status-bar {
    height: auto;
    margin-top: 1;
}

#status {
    width: 1fr;
}

#status.error {
    color: $error;
}

#status.success {
    color: $success;
}
"""


class FileBrowserScreen(ModalScreen[Path | None]):
    """Popup picker for the file or directory to send."""

    DEFAULT_CSS = """
    FileBrowserScreen {
        align: center middle;
    }

    FileBrowserScreen #browser-container {
        width: 80%;
        height: 80%;
        border: solid $primary;
        background: $surface;
    }

    FileBrowserScreen DirectoryTree {
        height: 1fr;
    }

    FileBrowserScreen #browser-buttons {
        height: auto;
        dock: bottom;
    }
    """

    BINDINGS = [
        Binding("escape", "cancel", "Cancel"),
    ]

    def __init__(self, root_path: Path) -> None:
        super().__init__()
        self.root_path = root_path

    def compose(self) -> ComposeResult:
        with Vertical(id="browser-container"):
            yield Label("Select File or Directory", classes="pane-title")
            yield DirectoryTree(str(self.root_path), id="browser-tree")
            with Horizontal(id="browser-buttons"):
                yield Button("Select", id="browser-select", variant="primary")
                yield Button("Cancel", id="browser-cancel", variant="error")

    def on_directory_tree_file_selected(self, event: DirectoryTree.FileSelected) -> None:
        self.dismiss(Path(event.path))

    @on(Button.Pressed, "#browser-select")
    def _select_highlighted(self) -> None:
        """Accept the highlighted node, so directories can be sent too."""
        tree = self.query_one("#browser-tree", DirectoryTree)
        node = tree.cursor_node
        if node is None or node.data is None:
            return
        self.dismiss(Path(node.data.path))

    @on(Button.Pressed, "#browser-cancel")
    def action_cancel(self) -> None:
        self.dismiss(None)


class SendmeApp(App):
    """Textual TUI driving a single transfer session."""

    CSS = CSS
    TITLE = APP_TITLE

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("ctrl+s", "mode_send", "Send tab"),
        Binding("ctrl+r", "mode_receive", "Receive tab"),
        Binding("ctrl+b", "browse", "Browse"),
        Binding("ctrl+y", "copy_ticket", "Copy ticket"),
        Binding("ctrl+x", "stop", "Stop"),
    ]

    class SessionChanged(Message):
        """Posted from background threads when session state changes."""

    def __init__(
        self,
        controller: SessionController,
        refresh_interval: float = 0.5,
        start_dir: str | None = None,
    ) -> None:
        super().__init__()
        self.controller = controller
        self._refresh_interval = refresh_interval
        self._start_dir = Path(start_dir) if start_dir else None
        self._mode = TransferMode.SEND
        self._last_output: str | None = None

    @property
    def mode(self) -> TransferMode:
        return self._mode

    def compose(self) -> ComposeResult:
        yield Static(RichText(APP_TITLE, style="bold"), id="header")
        with Horizontal(id="mode-tabs"):
            yield Button("📤 Send", id="send-tab")
            yield Button("📥 Receive", id="receive-tab")
        with Vertical(id="send-pane", classes="pane"):
            yield Label("Select File or Directory", classes="pane-title")
            with Horizontal(classes="input-row"):
                yield Input(placeholder="Enter path or press Browse...", id="path-input")
                yield Button("Browse...", id="browse")
            with Vertical(id="ticket-panel"):
                yield Label("🎟️ Your Transfer Ticket - share it with the receiver:")
                with Horizontal(classes="input-row"):
                    yield Static("", id="ticket-text")
                    yield Button("📋 Copy", id="copy")
            yield Button("📤 Send File", id="send", variant="success")
        with Vertical(id="receive-pane", classes="pane"):
            yield Label("Enter Transfer Ticket", classes="pane-title")
            with Horizontal(classes="input-row"):
                yield Input(placeholder="Paste the ticket here...", id="ticket-input")
                yield Button("📥 Receive", id="receive", variant="primary")
        with ScrollableContainer(id="output-view"):
            yield Static("", id="output-text")
        with Horizontal(id="status-bar"):
            yield Static("", id="status")
            yield Button("⏹ Stop", id="stop", variant="error")
        yield Footer()

    def on_mount(self) -> None:
        self.controller.add_listener(self._on_session_change)
        self._refresh_state()
        self.set_interval(self._refresh_interval, self._refresh_state)

    def on_unmount(self) -> None:
        self.controller.remove_listener(self._on_session_change)
        self.controller.teardown()

    def _on_session_change(self) -> None:
        """Called from reader threads - post message for thread safety."""
        self.post_message(self.SessionChanged())

    @on(SessionChanged)
    def handle_session_changed(self, message: SessionChanged) -> None:
        self._refresh_state()

    # Rendering

    def _refresh_state(self) -> None:
        """Snapshot the session, apply the mode guard and re-render."""
        snap = self.controller.snapshot()
        self._mode = self.controller.enforce_mode(self._mode)
        try:
            self._render_tabs(snap)
            self._render_send_pane(snap)
            self._render_receive_pane(snap)
            self._render_output(snap)
            self._render_status(snap)
        except NoMatches:
            # Main screen not active (file picker open, or shutting down)
            pass

    def _render_tabs(self, snap: SessionSnapshot) -> None:
        send_tab = self.query_one("#send-tab", Button)
        receive_tab = self.query_one("#receive-tab", Button)
        send_tab.set_class(self._mode is TransferMode.SEND, "active-tab")
        receive_tab.set_class(self._mode is TransferMode.RECEIVE, "active-tab")
        receive_tab.disabled = snap.is_sending
        receive_tab.tooltip = GUARD_REASON if snap.is_sending else "Receive a file with a ticket"

    def _render_send_pane(self, snap: SessionSnapshot) -> None:
        self.query_one("#send-pane").display = self._mode is TransferMode.SEND
        self.query_one("#send", Button).display = not snap.running
        self.query_one("#browse", Button).disabled = snap.running
        self.query_one("#ticket-panel").display = snap.ticket_ready
        if snap.ticket_ready:
            self.query_one("#ticket-text", Static).update(RichText(snap.ticket, style="bold"))

    def _render_receive_pane(self, snap: SessionSnapshot) -> None:
        self.query_one("#receive-pane").display = self._mode is TransferMode.RECEIVE
        self.query_one("#receive", Button).disabled = snap.running

    def _render_output(self, snap: SessionSnapshot) -> None:
        if snap.output == self._last_output:
            return
        self._last_output = snap.output
        self.query_one("#output-text", Static).update(RichText("\n".join(snap.lines)))
        self.query_one("#output-view", ScrollableContainer).scroll_end(animate=False)

    def _render_status(self, snap: SessionSnapshot) -> None:
        status = self.query_one("#status", Static)
        status.update(RichText(snap.status_message))
        is_error = "Error" in snap.status_message or "❌" in snap.status_message
        status.set_class(is_error, "error")
        status.set_class(not is_error and "✅" in snap.status_message, "success")
        self.query_one("#stop", Button).display = snap.running

    # Actions

    def action_mode_send(self) -> None:
        self._mode, _ = self.controller.request_mode(self._mode, TransferMode.SEND)
        self._refresh_state()

    def action_mode_receive(self) -> None:
        self._mode, reason = self.controller.request_mode(self._mode, TransferMode.RECEIVE)
        if reason:
            self.notify(reason, severity="warning", timeout=3)
        self._refresh_state()

    def action_browse(self) -> None:
        if self.controller.snapshot().running:
            return
        root = self._start_dir if self._start_dir and self._start_dir.is_dir() else Path.cwd()
        self.push_screen(FileBrowserScreen(root), callback=self._on_file_picked)

    def _on_file_picked(self, path: Path | None) -> None:
        if path is None:
            return
        logger.debug(f"Picked {path}")
        self.query_one("#path-input", Input).value = str(path)

    def action_copy_ticket(self) -> None:
        self._copy_ticket_worker()

    @work(thread=True, exclusive=True, group="clipboard")
    def _copy_ticket_worker(self) -> None:
        # The copy utility is an external process; keep it off the UI loop
        self.controller.copy_ticket()

    def action_stop(self) -> None:
        self.controller.stop()

    def action_start_send(self) -> None:
        path = self.query_one("#path-input", Input).value
        self.controller.start_send(path)

    def action_start_receive(self) -> None:
        ticket = self.query_one("#ticket-input", Input).value
        self.controller.start_receive(ticket)

    # Widget events

    @on(Button.Pressed, "#send-tab")
    def _send_tab_pressed(self) -> None:
        self.action_mode_send()

    @on(Button.Pressed, "#receive-tab")
    def _receive_tab_pressed(self) -> None:
        self.action_mode_receive()

    @on(Button.Pressed, "#browse")
    def _browse_pressed(self) -> None:
        self.action_browse()

    @on(Button.Pressed, "#copy")
    def _copy_pressed(self) -> None:
        self.action_copy_ticket()

    @on(Button.Pressed, "#stop")
    def _stop_pressed(self) -> None:
        self.action_stop()

    @on(Button.Pressed, "#send")
    @on(Input.Submitted, "#path-input")
    def _send_pressed(self) -> None:
        self.action_start_send()

    @on(Button.Pressed, "#receive")
    @on(Input.Submitted, "#ticket-input")
    def _receive_pressed(self) -> None:
        self.action_start_receive()
