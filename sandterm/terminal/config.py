"""
Tunables for the terminal session manager.

Defaults match the service's documented behavior; the HTTP server builds a
TerminalConfig from its environment settings.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from sandterm.sandbox.lifecycle import sweep_interval_for

if TYPE_CHECKING:
    from sandterm.server.config import Settings


@dataclass
class TerminalConfig:
    # Sessions idle longer than this are destroyed (default: 30 minutes)
    session_timeout_seconds: float = 1800.0

    # Inactivity sweep frequency (default: 5 minutes)
    cleanup_interval_seconds: float = 300.0

    # Keep-alive frequency for subscribers (default: 30s)
    heartbeat_interval_seconds: float = 30.0

    # Per-session history cap, oldest evicted first
    max_history: int = 100

    # Hard ceiling on live sessions
    max_sessions: int = 50

    # Command timeout when the caller gives none, and bounds for caller values
    default_command_timeout_ms: int = 30_000
    min_command_timeout_ms: int = 1_000
    max_command_timeout_ms: int = 300_000

    # Timeout for the `<cd> && pwd` follow-up
    cd_probe_timeout_seconds: int = 5

    # Initial working directory of every session
    home_dir: str = "/home"

    # Buffered events per subscriber before it is disconnected
    subscriber_queue_size: int = 256

    @property
    def session_timeout_ms(self) -> int:
        return int(self.session_timeout_seconds * 1000)

    def timeout_seconds(self, timeout_ms: Optional[int]) -> int:
        """
        Convert a caller timeout to whole seconds for the sandbox.

        Missing values use the default; others are clamped to the configured
        bounds. Rounds up, never below one second.
        """
        if timeout_ms is None:
            timeout_ms = self.default_command_timeout_ms
        timeout_ms = min(max(timeout_ms, self.min_command_timeout_ms), self.max_command_timeout_ms)
        return max(math.ceil(timeout_ms / 1000), 1)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "TerminalConfig":
        return cls(
            session_timeout_seconds=settings.session_timeout_seconds,
            cleanup_interval_seconds=sweep_interval_for(
                settings.session_timeout_seconds, settings.cleanup_interval_seconds
            ),
            heartbeat_interval_seconds=settings.heartbeat_interval_seconds,
            max_history=settings.max_history,
            max_sessions=settings.max_sessions,
            default_command_timeout_ms=settings.default_command_timeout_ms,
            min_command_timeout_ms=settings.min_command_timeout_ms,
            max_command_timeout_ms=settings.max_command_timeout_ms,
            home_dir=settings.home_dir,
            subscriber_queue_size=settings.subscriber_queue_size,
        )
