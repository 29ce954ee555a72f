"""Tests for sendme_tui.clipboard."""

import os
import subprocess
import sys
import time
from unittest.mock import MagicMock, patch

import pytest

from sendme_tui import clipboard
from sendme_tui.errors import ClipboardError


def _popen(returncode: int = 0) -> MagicMock:
    process = MagicMock(returncode=returncode)
    process.communicate.return_value = (None, None)
    return process


@patch("sendme_tui.clipboard.platform.system", return_value="Darwin")
@patch("sendme_tui.clipboard.subprocess.Popen")
def test_macos_uses_pbcopy(mock_popen, _system):
    mock_popen.return_value = _popen()
    clipboard.set_text("XYZ987")
    assert mock_popen.call_args[0][0] == ["pbcopy"]
    assert mock_popen.call_args[1]["stdin"] == subprocess.PIPE
    assert mock_popen.call_args[1]["stdout"] == subprocess.DEVNULL
    assert mock_popen.call_args[1]["stderr"] == subprocess.DEVNULL
    assert mock_popen.return_value.communicate.call_args[0][0] == b"XYZ987"


@patch("sendme_tui.clipboard.platform.system", return_value="Linux")
@patch("sendme_tui.clipboard.shutil.which", side_effect=lambda name: "/usr/bin/xclip" if name == "xclip" else None)
@patch("sendme_tui.clipboard.subprocess.Popen")
def test_linux_picks_available_tool(mock_popen, _which, _system):
    mock_popen.return_value = _popen()
    clipboard.set_text("XYZ987")
    assert mock_popen.call_args[0][0] == ["xclip", "-selection", "clipboard"]


@patch("sendme_tui.clipboard.platform.system", return_value="Linux")
@patch("sendme_tui.clipboard.shutil.which", return_value=None)
def test_no_tool_raises(_which, _system):
    with pytest.raises(ClipboardError, match="not available"):
        clipboard.set_text("XYZ987")


@patch("sendme_tui.clipboard.platform.system", return_value="Darwin")
@patch("sendme_tui.clipboard.subprocess.Popen")
def test_tool_failure_raises(mock_popen, _system):
    mock_popen.return_value = _popen(returncode=1)
    with pytest.raises(ClipboardError, match="exited with code 1"):
        clipboard.set_text("XYZ987")


@patch("sendme_tui.clipboard.platform.system", return_value="Darwin")
@patch("sendme_tui.clipboard.subprocess.Popen")
def test_timeout_kills_tool_and_raises(mock_popen, _system):
    process = _popen()
    process.communicate.side_effect = subprocess.TimeoutExpired(cmd="pbcopy", timeout=5)
    mock_popen.return_value = process
    with pytest.raises(ClipboardError, match="did not finish"):
        clipboard.set_text("XYZ987")
    process.kill.assert_called_once()


@patch("sendme_tui.clipboard.platform.system", return_value="Darwin")
@patch("sendme_tui.clipboard.subprocess.Popen", side_effect=FileNotFoundError(2, "No such file"))
def test_missing_executable_raises(_popen_cls, _system):
    with pytest.raises(ClipboardError, match="pbcopy"):
        clipboard.set_text("XYZ987")


@pytest.mark.skipif(sys.platform == "win32", reason="shell script copy tool")
def test_tool_that_forks_a_selection_owner_returns_promptly(tmp_path, monkeypatch):
    """xclip-style tools leave a child running after the foreground process exits."""
    out = tmp_path / "clipboard.txt"
    tool = tmp_path / "xclip"
    tool.write_text('#!/bin/sh\ncat > "$CLIP_OUT"\n(sleep 8) &\nexit 0\n')
    tool.chmod(0o755)
    monkeypatch.setenv("CLIP_OUT", str(out))
    monkeypatch.setenv("PATH", f"{tmp_path}{os.pathsep}{os.environ.get('PATH', '')}")

    with patch("sendme_tui.clipboard.platform.system", return_value="Linux"), \
            patch("sendme_tui.clipboard.shutil.which", side_effect=lambda name: str(tool) if name == "xclip" else None):
        started = time.monotonic()
        clipboard.set_text("XYZ987")
        elapsed = time.monotonic() - started

    assert elapsed < 3
    assert out.read_text() == "XYZ987"
