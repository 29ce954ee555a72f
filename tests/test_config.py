"""Tests for sendme-tui configuration loading and saving."""

import sys

import pytest

from sendme_tui.config import (
    DEFAULT_BACKEND,
    DEFAULT_REFRESH_INTERVAL,
    MAX_REFRESH_INTERVAL,
    MIN_REFRESH_INTERVAL,
    Config,
    load_config,
    save_config,
)

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in (
        "SENDME_TUI_BACKEND",
        "SENDME_TUI_REFRESH_INTERVAL",
        "SENDME_TUI_START_DIR",
        "SENDME_TUI_DEBUG_LOGGING",
    ):
        monkeypatch.delenv(name, raising=False)


class TestLoadConfig:
    def test_defaults_without_file(self, tmp_path):
        config = load_config(tmp_path / "missing.toml")
        assert config == Config()
        assert config.backend == DEFAULT_BACKEND
        assert config.refresh_interval == DEFAULT_REFRESH_INTERVAL

    def test_reads_file(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text(
            'backend = "/opt/sendme/bin/sendme"\n'
            "refresh_interval = 0.25\n"
            'start_dir = "/srv/outgoing"\n'
            "debug_logging = true\n"
        )
        config = load_config(path)
        assert config.backend == "/opt/sendme/bin/sendme"
        assert config.refresh_interval == 0.25
        assert config.start_dir == "/srv/outgoing"
        assert config.debug_logging is True

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        path = tmp_path / "config.toml"
        path.write_text('backend = "from-file"\ndebug_logging = true\n')
        monkeypatch.setenv("SENDME_TUI_BACKEND", "from-env")
        monkeypatch.setenv("SENDME_TUI_DEBUG_LOGGING", "no")
        monkeypatch.setenv("SENDME_TUI_REFRESH_INTERVAL", "1.5")

        config = load_config(path)
        assert config.backend == "from-env"
        assert config.debug_logging is False
        assert config.refresh_interval == 1.5

    def test_malformed_file_falls_back_to_defaults(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text("this is = = not toml")
        assert load_config(path) == Config()

    @pytest.mark.parametrize("raw, expected", [
        ("0", MIN_REFRESH_INTERVAL),
        ("100", MAX_REFRESH_INTERVAL),
        ("soon", DEFAULT_REFRESH_INTERVAL),
        ("nan", DEFAULT_REFRESH_INTERVAL),
    ])
    def test_refresh_interval_clamped(self, tmp_path, monkeypatch, raw, expected):
        monkeypatch.setenv("SENDME_TUI_REFRESH_INTERVAL", raw)
        assert load_config(tmp_path / "missing.toml").refresh_interval == expected


class TestSaveConfig:
    def test_omits_default_optionals(self, tmp_path):
        path = tmp_path / "nested" / "config.toml"
        save_config(Config(), path)
        with open(path, "rb") as f:
            data = tomllib.load(f)
        assert data == {"backend": DEFAULT_BACKEND, "debug_logging": False}

    def test_round_trips_custom_values(self, tmp_path):
        path = tmp_path / "config.toml"
        config = Config(backend="custom", refresh_interval=1.0, start_dir="/data", debug_logging=True)
        save_config(config, path)
        assert load_config(path) == config
