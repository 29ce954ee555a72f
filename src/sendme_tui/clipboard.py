"""System clipboard access through the platform's copy utility."""

import logging
import platform
import shutil
import subprocess

from .errors import ClipboardError

logger = logging.getLogger(__name__)

# Candidate copy commands on Linux/BSD, in order of preference
_UNIX_COMMANDS = [
    ["wl-copy"],
    ["xclip", "-selection", "clipboard"],
    ["xsel", "--clipboard", "--input"],
]


def _copy_command() -> list[str] | None:
    system = platform.system()
    if system == "Darwin":
        return ["pbcopy"]
    if system == "Windows":
        return ["clip"]
    for cmd in _UNIX_COMMANDS:
        if shutil.which(cmd[0]):
            return cmd
    return None


# Seconds to wait for the copy utility to take the text
COPY_TIMEOUT = 5


def set_text(text: str) -> None:
    """Put ``text`` on the system clipboard.

    The utility's stdout and stderr go to DEVNULL: xclip and wl-copy fork a
    background owner of the selection that would otherwise hold our pipes open.

    Raises:
        ClipboardError: If no clipboard utility is available or it fails.
    """
    cmd = _copy_command()
    if cmd is None:
        raise ClipboardError("Clipboard not available")
    try:
        process = subprocess.Popen(
            cmd,
            stdin=subprocess.PIPE,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            shell=platform.system() == "Windows",
        )
    except OSError as e:
        raise ClipboardError(f"{cmd[0]}: {e}") from e
    try:
        process.communicate(text.encode("utf-8"), timeout=COPY_TIMEOUT)
    except subprocess.TimeoutExpired as e:
        process.kill()
        process.wait()
        raise ClipboardError(f"{cmd[0]} did not finish within {COPY_TIMEOUT}s") from e
    except OSError as e:
        raise ClipboardError(f"{cmd[0]}: {e}") from e
    if process.returncode != 0:
        raise ClipboardError(f"{cmd[0]} exited with code {process.returncode}")
    logger.debug(f"Copied {len(text)} chars via {cmd[0]}")
