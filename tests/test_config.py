from __future__ import annotations

import pytest

from sandterm.sandbox.lifecycle import sweep_interval_for
from sandterm.server.config import get_settings, reset_settings
from sandterm.terminal.config import TerminalConfig


def test_defaults() -> None:
    config = TerminalConfig()
    assert config.session_timeout_seconds == 1800
    assert config.session_timeout_ms == 1_800_000
    assert config.cleanup_interval_seconds == 300
    assert config.heartbeat_interval_seconds == 30
    assert config.max_history == 100
    assert config.max_sessions == 50
    assert config.home_dir == "/home"


@pytest.mark.parametrize(
    "timeout_ms,expected",
    [
        (None, 30),
        (120_000, 120),
        (1_000, 1),
        (1_500, 2),
        # Out of range values are clamped
        (10, 1),
        (900_000, 300),
    ],
)
def test_timeout_seconds(timeout_ms, expected) -> None:
    assert TerminalConfig().timeout_seconds(timeout_ms) == expected


def test_sweep_interval_defaults_to_fraction_of_timeout() -> None:
    assert sweep_interval_for(1800) == 360
    assert sweep_interval_for(1800, 300) == 300
    assert sweep_interval_for(2, None) == 1.0


def test_settings_from_env(monkeypatch) -> None:
    monkeypatch.setenv("SANDTERM_PORT", "9001")
    monkeypatch.setenv("SANDTERM_MAX_SESSIONS", "3")
    monkeypatch.setenv("SANDTERM_SESSION_TIMEOUT_SECONDS", "60")
    monkeypatch.setenv("SANDTERM_HOME_DIR", "/workspace")
    reset_settings()

    settings = get_settings()
    assert settings.port == 9001
    assert settings.auth_required is False

    config = TerminalConfig.from_settings(settings)
    assert config.max_sessions == 3
    assert config.session_timeout_seconds == 60
    assert config.home_dir == "/workspace"
    assert config.cleanup_interval_seconds == 300


def test_settings_are_cached_until_reset(monkeypatch) -> None:
    first = get_settings()
    assert get_settings() is first

    monkeypatch.setenv("SANDTERM_API_KEY", "secret")
    assert get_settings().api_key is None

    reset_settings()
    assert get_settings().auth_required is True
