"""Background units that follow a spawned transfer process."""

import logging
import subprocess
import threading
from typing import IO, Callable

from .errors import ProcessWaitError, StreamDecodeError

logger = logging.getLogger(__name__)


def decode_line(raw: bytes) -> str:
    """Decode one raw output line, dropping only the line terminator.

    Raises:
        StreamDecodeError: If the bytes are not valid UTF-8.
    """
    if raw.endswith(b"\n"):
        raw = raw[:-1]
        if raw.endswith(b"\r"):
            raw = raw[:-1]
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise StreamDecodeError(raw, e.reason) from e


class LineReader:
    """Read a child's output stream line by line on a daemon thread.

    Lines that are not valid text are skipped. The thread ends when the
    stream closes (child exited or was killed).
    """

    def __init__(
        self,
        stream: IO[bytes],
        on_line: Callable[[str], None],
        on_eof: Callable[[], None] | None = None,
        name: str = "line-reader",
    ) -> None:
        self._stream = stream
        self._on_line = on_line
        self._on_eof = on_eof
        self._name = name
        self._thread: threading.Thread | None = None
        self._done = threading.Event()
        self.lines_read = 0
        self.lines_skipped = 0

    def start(self) -> None:
        """Start reading in the background."""
        self._thread = threading.Thread(target=self._read_loop, name=self._name, daemon=True)
        self._thread.start()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the stream has been fully consumed."""
        return self._done.wait(timeout)

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def _read_loop(self) -> None:
        try:
            for raw in iter(self._stream.readline, b""):
                try:
                    line = decode_line(raw)
                except StreamDecodeError as e:
                    self.lines_skipped += 1
                    logger.warning(f"{self._name}: skipping {e}")
                    continue
                self.lines_read += 1
                try:
                    self._on_line(line)
                except Exception as e:
                    logger.error(f"{self._name}: line handler failed: {e}", exc_info=True)
        except (OSError, ValueError) as e:
            # Pipe torn down underneath us (kill on stop, closed file)
            logger.debug(f"{self._name}: stream closed while reading: {e}")
        finally:
            try:
                self._stream.close()
            except OSError:
                pass
            logger.debug(f"{self._name}: stream ended after {self.lines_read} lines ({self.lines_skipped} skipped)")
            self._done.set()
            if self._on_eof:
                try:
                    self._on_eof()
                except Exception as e:
                    logger.error(f"{self._name}: eof handler failed: {e}", exc_info=True)


class CompletionWatcher:
    """Finalise a receive session once its output stream has closed.

    The watcher never owns the process: ``acquire`` hands it the live handle
    only if the session it was started for is still current, and returns None
    once stop() has released it.
    """

    def __init__(
        self,
        reader: LineReader,
        acquire: Callable[[], subprocess.Popen | None],
        on_exit: Callable[[int | None, ProcessWaitError | None], None],
        name: str = "completion-watcher",
    ) -> None:
        self._reader = reader
        self._acquire = acquire
        self._on_exit = on_exit
        self._name = name
        self._thread: threading.Thread | None = None
        self._fired = False

    def start(self) -> None:
        self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
        self._thread.start()

    def join(self, timeout: float | None = None) -> None:
        if self._thread:
            self._thread.join(timeout)

    @property
    def fired(self) -> bool:
        """True once the exit status has been reported."""
        return self._fired

    def _run(self) -> None:
        try:
            self._reader.wait()
            process = self._acquire()
            if process is None:
                logger.debug(f"{self._name}: session already released, nothing to finalise")
                return

            returncode, error = self._wait_for_exit(process)
            self._fired = True
            self._on_exit(returncode, error)
        except Exception as e:
            logger.error(f"{self._name}: unexpected failure: {e}", exc_info=True)

    def _wait_for_exit(self, process: subprocess.Popen) -> tuple[int | None, ProcessWaitError | None]:
        try:
            returncode = process.wait()
        except OSError as e:
            error = ProcessWaitError(f"could not read exit status: {e}")
            error.__cause__ = e
            logger.warning(f"{self._name}: {error}")
            return None, error

        if returncode < 0:
            # Terminated by a signal: no exit code to report
            logger.info(f"{self._name}: process killed by signal {-returncode}")
            return None, None
        logger.info(f"{self._name}: process exited with code {returncode}")
        return returncode, None
