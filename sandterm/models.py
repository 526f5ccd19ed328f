"""
Shared data types for terminal sessions.

Sessions, shell state and history entries are plain dataclasses owned by the
terminal manager; events carry the SSE wire vocabulary.
"""
from __future__ import annotations

import json
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Deque, Dict, List, Optional


class SessionStatus(str, Enum):
    """Terminal session state machine: active -> idle -> destroyed."""

    ACTIVE = "active"
    IDLE = "idle"
    DESTROYED = "destroyed"


class CommandStatus(str, Enum):
    """Lifecycle of a single submitted command."""

    STARTED = "started"
    COMPLETED = "completed"
    FAILED = "failed"


class EventType(str, Enum):
    """Event kinds pushed to subscribers. The set is exhaustive."""

    CONNECTED = "connected"
    OUTPUT = "output"
    ERROR = "error"
    COMPLETE = "complete"
    HEARTBEAT = "heartbeat"
    SESSION_DESTROYED = "session_destroyed"


def now_ms() -> int:
    return int(time.time() * 1000)


def to_iso(timestamp: float) -> str:
    """Render a unix timestamp as an ISO-8601 UTC string."""
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


@dataclass
class CommandRequest:
    """A command submitted to a session."""

    command: str
    language: str = "bash"
    # Caller-requested timeout; None means the configured default
    timeout_ms: Optional[int] = None


@dataclass
class CommandHistoryEntry:
    """
    One submitted command, appended on submission and updated in place
    when execution finishes.
    """

    command_id: str
    command: str
    submitted_at: float
    language: str = "bash"
    status: CommandStatus = CommandStatus.STARTED
    exit_code: Optional[int] = None
    duration_ms: Optional[int] = None

    def complete(self, exit_code: int, duration_ms: int) -> None:
        self.status = CommandStatus.COMPLETED
        self.exit_code = exit_code
        self.duration_ms = duration_ms

    def fail(self, duration_ms: int) -> None:
        self.status = CommandStatus.FAILED
        self.duration_ms = duration_ms

    def to_dict(self) -> Dict[str, Any]:
        return {
            "command_id": self.command_id,
            "command": self.command,
            "language": self.language,
            "submitted_at": to_iso(self.submitted_at),
            "status": self.status.value,
            "exit_code": self.exit_code,
            "duration_ms": self.duration_ms,
        }


@dataclass
class ShellState:
    """
    Shell state a session must remember across stateless sandbox calls.

    working_dir is re-sent on every call; env mirrors what has been pushed
    into the sandbox's global environment.
    """

    working_dir: str
    env: Dict[str, str] = field(default_factory=dict)


@dataclass
class TerminalSession:
    """A logical terminal bound 1:1 to a dedicated sandbox."""

    session_id: str
    sandbox_id: str
    created_at: float
    last_activity_at: float
    status: SessionStatus = SessionStatus.ACTIVE
    command_history: Deque[CommandHistoryEntry] = field(default_factory=deque)

    # Commands scheduled or executing; an in-flight command keeps the session active
    running_commands: int = 0

    @property
    def is_destroyed(self) -> bool:
        return self.status == SessionStatus.DESTROYED

    def touch(self) -> None:
        """Record activity and leave the idle state."""
        self.last_activity_at = time.time()
        if self.status == SessionStatus.IDLE:
            self.status = SessionStatus.ACTIVE

    def uptime_ms(self) -> int:
        return int((time.time() - self.created_at) * 1000)

    def history(self) -> List[Dict[str, Any]]:
        return [entry.to_dict() for entry in self.command_history]


@dataclass
class SessionEvent:
    """A typed event delivered to session subscribers."""

    type: EventType
    data: Dict[str, Any]
    timestamp: int = field(default_factory=now_ms)

    def to_sse(self) -> str:
        """Frame as a Server-Sent Events message."""
        return f"event: {self.type.value}\ndata: {json.dumps(self.data)}\n\n"


@dataclass
class CleanupResult:
    """Outcome of an inactivity sweep."""

    cleaned_sessions: int = 0
    errors: List[Dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"cleaned_sessions": self.cleaned_sessions, "errors": list(self.errors)}


@dataclass
class SessionStats:
    """Aggregate counters across all sessions."""

    total_sessions: int
    active_sessions: int
    idle_sessions: int
    destroyed_sessions: int
    total_commands: int
    connected_clients: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "total_sessions": self.total_sessions,
            "active_sessions": self.active_sessions,
            "idle_sessions": self.idle_sessions,
            "destroyed_sessions": self.destroyed_sessions,
            "total_commands": self.total_commands,
            "connected_clients": self.connected_clients,
        }
