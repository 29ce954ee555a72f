"""Error taxonomy for transfer sessions.

None of these escape SessionController: each is turned into a status message
at that boundary.
"""


class TransferError(Exception):
    """Base class for session-level errors."""

    @property
    def status(self) -> str:
        """Status line shown to the user for this error."""
        return f"❌ Error: {self}"


class ValidationError(TransferError):
    """Raised when start input is rejected before any process is spawned."""

    def __init__(self, message: str, value: str = "") -> None:
        super().__init__(message)
        self.value = value


class SpawnError(TransferError):
    """Raised when the OS refuses to start the transfer process."""


class StreamDecodeError(TransferError):
    """Raised when a line of child output is not valid text."""

    def __init__(self, raw: bytes, reason: str) -> None:
        super().__init__(f"undecodable output line ({len(raw)} bytes): {reason}")
        self.raw = raw


class ProcessWaitError(TransferError):
    """Raised when the exit status of the child cannot be obtained."""


class TerminationError(TransferError):
    """Raised when forced termination of the child fails."""


class ClipboardError(TransferError):
    """Raised when the ticket cannot be copied to the system clipboard."""

    @property
    def status(self) -> str:
        return f"❌ Failed to copy to clipboard: {self}"
