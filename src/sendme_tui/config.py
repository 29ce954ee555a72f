"""Configuration management for sendme-tui."""

import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

# Use tomllib on Python 3.11+, fall back to tomli for 3.10
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

import tomli_w

logger = logging.getLogger(__name__)

DEFAULT_BACKEND = "sendme"
DEFAULT_REFRESH_INTERVAL = 0.5
MIN_REFRESH_INTERVAL = 0.05
MAX_REFRESH_INTERVAL = 5.0


@dataclass
class Config:
    """sendme-tui configuration."""

    backend: str = field(default=DEFAULT_BACKEND)  # Transfer engine the send/receive subcommands run
    refresh_interval: float = field(default=DEFAULT_REFRESH_INTERVAL)  # UI polling cadence (seconds)
    start_dir: str | None = field(default=None)  # File picker root, cwd when unset
    debug_logging: bool = field(default=False)  # Enable debug logging to file (opt-in)


# Config file path
CONFIG_DIR = Path.home() / ".sendme-tui"
CONFIG_FILE = CONFIG_DIR / "config.toml"
LOG_FILE = Path.home() / ".cache" / "sendme-tui" / "debug.log"


def _parse_bool(value: str) -> bool:
    return value.lower() in ("true", "1", "yes")


def _coerce_refresh_interval(value: Any) -> float:
    """Clamp a refresh interval, falling back to the default on bad input."""
    try:
        interval = float(value)
    except (TypeError, ValueError):
        logger.debug(f"Invalid refresh_interval {value!r}, using default")
        return DEFAULT_REFRESH_INTERVAL
    if interval != interval:  # NaN
        return DEFAULT_REFRESH_INTERVAL
    return min(max(interval, MIN_REFRESH_INTERVAL), MAX_REFRESH_INTERVAL)


def load_config(config_file: Path | None = None) -> Config:
    """Load configuration from environment, file, or defaults.

    Priority (highest to lowest):
    1. Environment variables (SENDME_TUI_*)
    2. Config file (~/.sendme-tui/config.toml)
    3. Hardcoded defaults
    """
    path = config_file or CONFIG_FILE

    backend = DEFAULT_BACKEND
    refresh_interval: Any = DEFAULT_REFRESH_INTERVAL
    start_dir = None
    debug_logging = False

    data = None
    if path.exists():
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.debug(f"Ignoring unreadable config file {path}: {e}")

    if data is not None:
        backend = data.get("backend", backend)
        refresh_interval = data.get("refresh_interval", refresh_interval)
        start_dir = data.get("start_dir", start_dir)
        debug_logging = bool(data.get("debug_logging", debug_logging))

    # Environment variables override everything
    backend = os.getenv("SENDME_TUI_BACKEND", backend)
    refresh_interval = os.getenv("SENDME_TUI_REFRESH_INTERVAL", refresh_interval)
    start_dir = os.getenv("SENDME_TUI_START_DIR", start_dir)
    debug_logging_env = os.getenv("SENDME_TUI_DEBUG_LOGGING")
    if debug_logging_env is not None:
        debug_logging = _parse_bool(debug_logging_env)

    return Config(
        backend=backend or DEFAULT_BACKEND,
        refresh_interval=_coerce_refresh_interval(refresh_interval),
        start_dir=start_dir or None,
        debug_logging=debug_logging,
    )


def save_config(config: Config, config_file: Path | None = None) -> None:
    """Save configuration to file, omitting optional keys left at their defaults."""
    path = config_file or CONFIG_FILE
    path.parent.mkdir(parents=True, exist_ok=True)

    data: dict[str, Any] = {
        "backend": config.backend,
        "debug_logging": config.debug_logging,
    }
    if config.refresh_interval != DEFAULT_REFRESH_INTERVAL:
        data["refresh_interval"] = config.refresh_interval
    if config.start_dir:
        data["start_dir"] = config.start_dir

    with open(path, "wb") as f:
        tomli_w.dump(data, f)
