"""Tests for the Textual TUI (mode guard, start/stop wiring, file picker)."""

import threading
from unittest.mock import patch

import pytest
from textual.widgets import Button, Input

from sendme_tui.models import SessionPhase, TransferMode
from sendme_tui.session import STATUS_COPIED, SessionController
from sendme_tui.tui_textual import FileBrowserScreen, SendmeApp


def _make_app(tmp_path=None) -> SendmeApp:
    controller = SessionController(command=["unused"])
    return SendmeApp(controller, refresh_interval=0.1, start_dir=str(tmp_path) if tmp_path else None)


def _publish_ticket(app: SendmeApp, ticket: str = "XYZ987") -> None:
    """Put the controller into a live send session with a ticket."""
    state = app.controller._state
    state.mode = TransferMode.SEND
    state.running = True
    state.ticket_ready = True
    state.ticket = ticket
    state.phase = SessionPhase.TICKET_READY


@pytest.mark.asyncio
async def test_starts_in_send_mode():
    app = _make_app()
    async with app.run_test(size=(100, 40)) as pilot:
        await pilot.pause()
        assert app.mode is TransferMode.SEND
        assert app.query_one("#send-pane").display is True
        assert app.query_one("#receive-pane").display is False
        assert app.query_one("#stop", Button).display is False


@pytest.mark.asyncio
async def test_switch_to_receive_when_idle():
    app = _make_app()
    async with app.run_test(size=(100, 40)) as pilot:
        await pilot.pause()
        app.action_mode_receive()
        await pilot.pause()
        assert app.mode is TransferMode.RECEIVE
        assert app.query_one("#receive-pane").display is True


@pytest.mark.asyncio
async def test_refresh_forces_send_mode_while_sending():
    app = _make_app()
    async with app.run_test(size=(100, 40)) as pilot:
        await pilot.pause()
        app.action_mode_receive()
        _publish_ticket(app)
        app._refresh_state()
        await pilot.pause()

        assert app.mode is TransferMode.SEND
        assert app.query_one("#receive-tab", Button).disabled is True
        assert app.query_one("#ticket-panel").display is True
        assert app.query_one("#stop", Button).display is True


@pytest.mark.asyncio
async def test_receive_request_rejected_while_sending():
    app = _make_app()
    async with app.run_test(size=(100, 40)) as pilot:
        await pilot.pause()
        _publish_ticket(app)
        app.action_mode_receive()
        await pilot.pause()
        assert app.mode is TransferMode.SEND


@pytest.mark.asyncio
async def test_send_with_missing_path_reports_error():
    app = _make_app()
    async with app.run_test(size=(100, 40)) as pilot:
        await pilot.pause()
        app.query_one("#path-input", Input).value = "/tmp/missing-sendme-tui-test"
        app.action_start_send()
        await pilot.pause()

        snap = app.controller.snapshot()
        assert snap.running is False
        assert "/tmp/missing-sendme-tui-test" in snap.status_message
        assert "Error" in snap.status_message
        assert app.query_one("#status").has_class("error")


@pytest.mark.asyncio
async def test_stop_button_returns_to_idle():
    app = _make_app()
    async with app.run_test(size=(100, 40)) as pilot:
        await pilot.pause()
        _publish_ticket(app)
        app._refresh_state()
        await pilot.pause()

        app.action_stop()
        await pilot.pause()
        snap = app.controller.snapshot()
        assert snap.running is False
        assert snap.ticket_ready is False
        assert app.query_one("#stop", Button).display is False


@pytest.mark.asyncio
async def test_cancelled_file_pick_changes_nothing(tmp_path):
    (tmp_path / "a.txt").write_text("x")
    app = _make_app(tmp_path)
    async with app.run_test(size=(100, 40)) as pilot:
        await pilot.pause()
        app.query_one("#path-input", Input).value = "/keep/me"
        app.action_browse()
        await pilot.pause()
        assert isinstance(app.screen, FileBrowserScreen)

        await pilot.press("escape")
        await pilot.pause()
        assert not isinstance(app.screen, FileBrowserScreen)
        assert app.query_one("#path-input", Input).value == "/keep/me"
        assert app.controller.snapshot().status_message == "Ready"


@pytest.mark.asyncio
async def test_picked_file_fills_path(tmp_path):
    app = _make_app(tmp_path)
    async with app.run_test(size=(100, 40)) as pilot:
        await pilot.pause()
        app._on_file_picked(tmp_path / "a.txt")
        assert app.query_one("#path-input", Input).value == str(tmp_path / "a.txt")


@pytest.mark.asyncio
async def test_unmount_tears_down_controller():
    app = _make_app()
    async with app.run_test(size=(100, 40)) as pilot:
        await pilot.pause()
    assert app.controller._torn_down is True


@pytest.mark.asyncio
async def test_copy_ticket_runs_off_the_ui_thread():
    app = _make_app()
    copied = []

    def fake_copy(text):
        copied.append((text, threading.current_thread() is threading.main_thread()))

    async with app.run_test(size=(100, 40)) as pilot:
        await pilot.pause()
        _publish_ticket(app)
        with patch("sendme_tui.session.clipboard.set_text", side_effect=fake_copy):
            app.action_copy_ticket()
            await app.workers.wait_for_complete()
        await pilot.pause()

        assert copied == [("XYZ987", False)]
        assert app.controller.snapshot().status_message == STATUS_COPIED
