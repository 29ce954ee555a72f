"""Transfer session orchestration.

SessionController spawns the transfer process, follows its output on
background threads and keeps a single SessionState that the UI snapshots on
every refresh. One lock guards the state; process I/O, kills and listener
callbacks always run outside it.
"""

import logging
import subprocess
import sys
import threading
from pathlib import Path
from typing import Callable

from . import clipboard
from .errors import (
    ClipboardError,
    ProcessWaitError,
    SpawnError,
    TerminationError,
    TransferError,
    ValidationError,
)
from .models import (
    TICKET_MARKER,
    SessionPhase,
    SessionSnapshot,
    SessionState,
    TransferMode,
)
from .watcher import CompletionWatcher, LineReader

logger = logging.getLogger(__name__)

STATUS_STOPPED = "⏹ Transfer stopped"
STATUS_TICKET_READY = "🎟️ Ticket ready - share it with the receiver"
STATUS_RECEIVING = "📥 Receiving file..."
STATUS_SUCCESS = "✅ Transfer complete"
STATUS_COPIED = "✅ Ticket copied to clipboard"
GUARD_REASON = "Cannot switch to Receive mode while a sending session is active"

# Seconds teardown waits for a killed child to be reaped
TEARDOWN_REAP_TIMEOUT = 2.0

CONSOLE_SCRIPT = "sendme-tui"

# Windows has no exec hand-off, so the engine runs as a grandchild there
IS_WINDOWS = sys.platform == "win32"


def resolve_self_command() -> list[str]:
    """Return the argv prefix that re-invokes this application.

    Uses the console script when we were launched through it, otherwise the
    running interpreter with ``-m sendme_tui``.
    """
    argv0 = sys.argv[0] if sys.argv else ""
    if argv0:
        script = Path(argv0)
        if script.stem == CONSOLE_SCRIPT and script.exists():
            return [str(script.resolve())]
    if sys.executable:
        return [sys.executable, "-m", "sendme_tui"]
    return [CONSOLE_SCRIPT]


def failure_status(returncode: int | None) -> str:
    if returncode is None:
        return "❌ Transfer failed (exit code unknown)"
    return f"❌ Transfer failed (exit code {returncode})"


def kill_process_tree(process: subprocess.Popen) -> None:
    """Kill ``process`` together with every process it started.

    Uses ``taskkill /T``. Falls back to killing only ``process`` when taskkill
    is missing or reports nothing to kill (the process already exited).
    """
    try:
        result = subprocess.run(
            ["taskkill", "/F", "/T", "/PID", str(process.pid)],
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
    except FileNotFoundError:
        logger.warning("taskkill not found, killing the wrapper process only")
        process.kill()
        return
    if result.returncode != 0:
        logger.debug(f"taskkill exited with code {result.returncode} for pid={process.pid}")
        process.kill()


class SessionController:
    """Single entry point the UI uses to drive transfer sessions.

    Only one session exists at a time. The controller exclusively owns the
    process handle: background units observe stream closure and exit status
    but never terminate the child.
    """

    def __init__(self, command: list[str] | None = None) -> None:
        self._command = list(command) if command is not None else resolve_self_command()
        self._state = SessionState()
        self._lock = threading.Lock()
        self._listeners: list[Callable[[], None]] = []
        self._torn_down = False
        self._completion: CompletionWatcher | None = None

    @property
    def command(self) -> list[str]:
        return list(self._command)

    # Listeners

    def add_listener(self, listener: Callable[[], None]) -> None:
        """Register a callback fired after every state change (from any thread)."""
        self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[], None]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self) -> None:
        # Always called without the lock held
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.debug("Session listener failed", exc_info=True)

    # Public contract

    def start_send(self, path: str) -> bool:
        """Start sending ``path``. Returns True if a process was spawned."""
        try:
            if not path:
                raise ValidationError("No file or directory selected", path)
            if not Path(path).exists():
                raise ValidationError(f"Path '{path}' does not exist", path)
        except ValidationError as e:
            logger.info(f"Send rejected: {e}")
            self._set_status(e.status)
            return False
        return self._start(TransferMode.SEND, path, f"📤 Sending {path}...")

    def start_receive(self, ticket: str) -> bool:
        """Start receiving with ``ticket``. Returns True if a process was spawned."""
        if not ticket:
            error = ValidationError("Ticket is empty", ticket)
            logger.info(f"Receive rejected: {error}")
            self._set_status(error.status)
            return False
        return self._start(TransferMode.RECEIVE, ticket, STATUS_RECEIVING)

    def stop(self) -> None:
        """Force-terminate the current process, if any. Safe to call repeatedly."""
        with self._lock:
            process = self._state.process
            sid = self._state.session_id
            was_active = process is not None or self._state.running
            self._state.process = None
            self._state.running = False
            self._state.ticket_ready = False
            self._state.clear_output()
            if was_active:
                self._state.phase = SessionPhase.STOPPED
                self._state.status_message = STATUS_STOPPED
            elif not self._state.status_message.startswith(STATUS_STOPPED):
                # An already stopped session keeps its stop status, failure note included
                self._state.status_message = STATUS_STOPPED

        if process is not None:
            try:
                self._terminate(process)
            except TerminationError as e:
                logger.error(f"Stop: {e}")
                with self._lock:
                    if self._state.session_id == sid:
                        self._state.status_message = f"{STATUS_STOPPED} ({e})"
            else:
                logger.info(f"Stopped transfer process pid={process.pid}")
                self._reap_in_background(process)
        self._notify()

    def snapshot(self) -> SessionSnapshot:
        """Return an immutable copy of the session state."""
        with self._lock:
            return self._state.snapshot()

    def teardown(self) -> None:
        """Release any live process on application exit. Runs at most once."""
        with self._lock:
            if self._torn_down:
                return
            self._torn_down = True
            process = self._state.process
            was_active = process is not None or self._state.running
            self._state.process = None
            self._state.running = False
            self._state.ticket_ready = False
            if was_active:
                self._state.phase = SessionPhase.STOPPED
                self._state.status_message = STATUS_STOPPED

        if process is None:
            return
        try:
            self._terminate(process)
        except TerminationError as e:
            logger.error(f"Teardown: {e}")
            return
        try:
            process.wait(timeout=TEARDOWN_REAP_TIMEOUT)
        except subprocess.TimeoutExpired:
            logger.warning(f"Transfer process pid={process.pid} still running after teardown kill")
        logger.info(f"Teardown released transfer process pid={process.pid}")

    def __enter__(self) -> "SessionController":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.teardown()

    def copy_ticket(self, copy: Callable[[str], None] | None = None) -> bool:
        """Copy the extracted ticket to the clipboard, reporting via status."""
        if copy is None:
            copy = clipboard.set_text
        snap = self.snapshot()
        if not snap.ticket_ready:
            self._set_status("❌ No ticket to copy yet")
            return False
        try:
            copy(snap.ticket)
        except ClipboardError as e:
            logger.warning(f"Clipboard copy failed: {e}")
            self._set_status(e.status)
            return False
        self._set_status(STATUS_COPIED)
        return True

    # Mode guard

    def enforce_mode(self, current: TransferMode) -> TransferMode:
        """Force Send mode while a send session with a ticket is live."""
        if self.snapshot().is_sending:
            return TransferMode.SEND
        return current

    def request_mode(self, current: TransferMode, requested: TransferMode) -> tuple[TransferMode, str | None]:
        """Resolve a user mode switch. Returns (mode, reason if rejected)."""
        if requested is TransferMode.RECEIVE and self.snapshot().is_sending:
            return self.enforce_mode(current), GUARD_REASON
        return requested, None

    # Session start

    def _start(self, mode: TransferMode, argument: str, status: str) -> bool:
        with self._lock:
            if self._torn_down:
                busy: TransferError | None = ValidationError("Application is shutting down")
            elif self._state.running:
                busy = ValidationError("A transfer is already in progress")
            else:
                busy = None
                self._state.reset_for_start(mode)
                self._state.status_message = status
                sid = self._state.session_id
            if busy is not None:
                self._state.status_message = busy.status
        if busy is not None:
            logger.info(f"{mode.label} rejected: {busy}")
            self._notify()
            return False
        self._notify()

        argv = self._command + [mode.value, argument]
        logger.debug(f"Spawning transfer process: {argv}")
        try:
            process = self._spawn(argv)
        except SpawnError as e:
            logger.error(str(e))
            with self._lock:
                if self._state.session_id == sid:
                    self._state.running = False
                    self._state.phase = SessionPhase.IDLE
                    self._state.status_message = e.status
            self._notify()
            return False

        with self._lock:
            orphaned = (
                self._torn_down
                or self._state.session_id != sid
                or self._state.phase is not SessionPhase.STARTING
            )
            if not orphaned:
                self._state.process = process
                self._state.phase = SessionPhase.RUNNING
        if orphaned:
            # stop() or teardown ran while we were spawning
            logger.info(f"Session {sid} cancelled during spawn, killing pid={process.pid}")
            try:
                self._terminate(process)
            except TerminationError as e:
                logger.error(str(e))
            else:
                self._reap_in_background(process)
            return False

        logger.info(f"Started {mode.value} session {sid} pid={process.pid}")
        self._launch_followers(sid, mode, process)
        self._notify()
        return True

    def _spawn(self, argv: list[str]) -> subprocess.Popen:
        try:
            return subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            reason = e.strerror or str(e)
            raise SpawnError(f"Failed to start transfer process: {reason}") from e

    def _launch_followers(self, sid: int, mode: TransferMode, process: subprocess.Popen) -> None:
        stdout_reader = LineReader(
            process.stdout,
            on_line=lambda line: self._on_output_line(sid, line),
            name=f"stdout-{sid}",
        )
        stderr_reader = LineReader(
            process.stderr,
            on_line=lambda line: logger.debug(f"[session {sid} stderr] {line}"),
            name=f"stderr-{sid}",
        )
        stdout_reader.start()
        stderr_reader.start()

        self._completion = None
        if mode is TransferMode.RECEIVE:
            self._completion = CompletionWatcher(
                stdout_reader,
                acquire=lambda: self._acquire_process(sid),
                on_exit=lambda code, error: self._on_process_exit(sid, code, error),
                name=f"completion-{sid}",
            )
            self._completion.start()

    # Background callbacks

    def _on_output_line(self, sid: int, line: str) -> None:
        with self._lock:
            state = self._state
            if state.session_id != sid or not state.running:
                return
            state.append_line(line)
            if (
                state.mode is TransferMode.SEND
                and not state.ticket_ready
                and line.startswith(TICKET_MARKER)
            ):
                state.ticket = line[len(TICKET_MARKER):]
                state.ticket_ready = True
                state.phase = SessionPhase.TICKET_READY
                state.status_message = STATUS_TICKET_READY
                logger.info(f"Ticket extracted for session {sid}")
        self._notify()

    def _acquire_process(self, sid: int) -> subprocess.Popen | None:
        with self._lock:
            if self._state.session_id != sid:
                return None
            return self._state.process

    def _on_process_exit(self, sid: int, returncode: int | None, error: ProcessWaitError | None) -> None:
        with self._lock:
            state = self._state
            if state.session_id != sid or state.process is None:
                # stop() won the race and already finalised the session
                return
            state.process = None
            state.running = False
            state.ticket_ready = False
            state.phase = SessionPhase.COMPLETED
            if error is None and returncode == 0:
                state.status_message = STATUS_SUCCESS
            else:
                state.status_message = failure_status(returncode)
        self._notify()

    # Helpers

    def _set_status(self, message: str) -> None:
        with self._lock:
            self._state.status_message = message
        self._notify()

    @staticmethod
    def _terminate(process: subprocess.Popen) -> None:
        try:
            if IS_WINDOWS:
                kill_process_tree(process)
            else:
                process.kill()
        except OSError as e:
            raise TerminationError(f"failed to terminate process: {e}") from e

    @staticmethod
    def _reap_in_background(process: subprocess.Popen) -> None:
        threading.Thread(target=process.wait, name=f"reap-{process.pid}", daemon=True).start()
