"""Pytest configuration and shared fixtures."""

import sys
from pathlib import Path

import pytest

# Ensure the project root is in sys.path for proper imports with pytest-xdist
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from sandterm.server.config import reset_settings  # noqa: E402
from sandterm.terminal import TerminalConfig, TerminalSessionManager  # noqa: E402
from sandterm.terminal.manager import reset_terminal_manager  # noqa: E402
from tests.sandboxes.fake_sandbox import FakeSandboxAdapter  # noqa: E402


@pytest.fixture(autouse=True)
def _isolated_globals(monkeypatch):
    """Fresh settings and no leaked global manager for every test."""
    monkeypatch.delenv("SANDTERM_API_KEY", raising=False)
    monkeypatch.setenv("SANDTERM_LOGFIRE", "0")
    reset_settings()
    reset_terminal_manager()
    yield
    reset_settings()
    reset_terminal_manager()


@pytest.fixture
def adapter():
    return FakeSandboxAdapter()


@pytest.fixture
def config():
    return TerminalConfig()


@pytest.fixture
def manager(adapter, config):
    return TerminalSessionManager(adapter, config)
