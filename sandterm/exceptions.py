"""
Typed exceptions for sandterm.

Provides structured error handling with:
- TerminalError: Base exception for all terminal session errors
- SessionNotFoundError: Unknown session id (permanent)
- SessionDestroyedError: Session existed but is being torn down
- CapacityExceededError: Session ceiling reached even after a reclaim sweep
- SessionCreationError: Sandbox provisioning failed
- CommandExecutionError: Sandbox-level failure while running a command
- SandboxMissingError: Registered session without a sandbox binding
- ChannelClosedError: Subscriber channel can no longer accept events

All exceptions include structured attributes for programmatic handling.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class TerminalError(Exception):
    """Base exception for all sandterm errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code for programmatic handling
        status_code: HTTP status the API layer answers with
        details: Additional context as key-value pairs
    """

    status_code: int = 500
    default_code: str = "terminal_error"

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging or API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class SessionNotFoundError(TerminalError):
    """Session id was never registered, or its record is already removed."""

    status_code = 404
    default_code = "session_not_found"

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(
            f"Terminal session '{session_id}' not found",
            details={"session_id": session_id},
        )


class SessionDestroyedError(TerminalError):
    """Session existed but has been destroyed.

    Distinct from SessionNotFoundError so clients can tell "never existed"
    from "was valid, no longer is".
    """

    status_code = 410
    default_code = "session_destroyed"

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(
            f"Terminal session '{session_id}' has been destroyed",
            details={"session_id": session_id},
        )


class CapacityExceededError(TerminalError):
    """Session creation refused: live sessions at the configured maximum.

    Attributes:
        max_sessions: The configured ceiling
        live_sessions: Live session count when the request was refused
    """

    status_code = 503
    default_code = "capacity_exceeded"

    def __init__(self, max_sessions: int, live_sessions: int) -> None:
        self.max_sessions = max_sessions
        self.live_sessions = live_sessions
        super().__init__(
            f"Maximum concurrent sessions reached ({live_sessions}/{max_sessions})",
            details={"max_sessions": max_sessions, "live_sessions": live_sessions},
        )


class SessionCreationError(TerminalError):
    """The sandbox adapter could not provision a sandbox for a new session."""

    status_code = 502
    default_code = "session_creation_failed"


class CommandExecutionError(TerminalError):
    """Sandbox-level failure while executing a command.

    Non-zero exit codes are not errors; this covers transport failures,
    timeouts and adapter exceptions.

    Attributes:
        command_id: Identifier of the failed command, when known
    """

    status_code = 500
    default_code = "command_execution_failed"

    def __init__(
        self,
        message: str,
        *,
        command_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if command_id:
            details["command_id"] = command_id
        self.command_id = command_id
        super().__init__(f"Command execution failed: {message}", details=details)


class SandboxMissingError(TerminalError):
    """A registered session has no sandbox binding (internal inconsistency)."""

    status_code = 500
    default_code = "sandbox_missing"

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(
            f"Sandbox not found for session '{session_id}'",
            details={"session_id": session_id},
        )


class ChannelClosedError(TerminalError):
    """Subscriber channel is closed or its buffer is full."""

    default_code = "channel_closed"


__all__ = [
    "TerminalError",
    "SessionNotFoundError",
    "SessionDestroyedError",
    "CapacityExceededError",
    "SessionCreationError",
    "CommandExecutionError",
    "SandboxMissingError",
    "ChannelClosedError",
]
