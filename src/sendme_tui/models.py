"""Data models for sendme-tui."""

import subprocess
from dataclasses import dataclass, field
from enum import Enum

# Prefix the transfer engine prints in front of the ticket on stdout.
TICKET_MARKER = "sendme receive "


class TransferMode(Enum):
    """Which side of a transfer the session drives."""
    SEND = "send"
    RECEIVE = "receive"

    @property
    def label(self) -> str:
        return "Send" if self is TransferMode.SEND else "Receive"


class SessionPhase(Enum):
    """Lifecycle phase of the current transfer session."""
    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    TICKET_READY = "ticket_ready"  # Send mode only
    STOPPED = "stopped"
    COMPLETED = "completed"  # Receive mode only


@dataclass
class SessionState:
    """Shared mutable record for the single transfer session.

    Owned by SessionController and only touched while holding its lock.
    """

    running: bool = False
    ticket_ready: bool = False
    ticket: str = ""
    output_lines: list[str] = field(default_factory=list)
    process: subprocess.Popen | None = field(default=None, repr=False)
    status_message: str = "Ready"
    phase: SessionPhase = SessionPhase.IDLE
    mode: TransferMode | None = None
    session_id: int = 0  # Bumped on every start; background units compare against it

    def reset_for_start(self, mode: TransferMode) -> None:
        """Clear per-session buffers and flags ahead of a new spawn."""
        self.session_id += 1
        self.mode = mode
        self.output_lines = []
        self.ticket = ""
        self.ticket_ready = False
        self.running = True
        self.phase = SessionPhase.STARTING

    @property
    def output(self) -> str:
        # Each line is preceded by a newline
        return "".join(f"\n{line}" for line in self.output_lines)

    def append_line(self, line: str) -> None:
        self.output_lines.append(line)

    def clear_output(self) -> None:
        self.output_lines = []

    def snapshot(self) -> "SessionSnapshot":
        return SessionSnapshot(
            running=self.running,
            ticket_ready=self.ticket_ready,
            ticket=self.ticket,
            output=self.output,
            status_message=self.status_message,
            phase=self.phase,
            mode=self.mode,
            session_id=self.session_id,
            has_process=self.process is not None,
        )


@dataclass(frozen=True)
class SessionSnapshot:
    """Immutable copy of SessionState handed to the UI for rendering."""

    running: bool
    ticket_ready: bool
    ticket: str
    output: str
    status_message: str
    phase: SessionPhase
    mode: TransferMode | None
    session_id: int
    has_process: bool

    @property
    def is_sending(self) -> bool:
        """A send session with a published ticket is live."""
        return self.running and self.ticket_ready

    @property
    def lines(self) -> list[str]:
        """Output lines in arrival order (without the leading separator)."""
        if not self.output:
            return []
        return self.output.split("\n")[1:]
