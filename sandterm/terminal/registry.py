"""
Session registry: the table of live terminal sessions.

Owns, per session id:
- the TerminalSession record
- the binding to its dedicated sandbox
- the ShellState carried across stateless sandbox calls
- the execution lock that serializes commands of that session

Table mutations happen under one asyncio.Lock; every other component reads
through this interface and never touches the tables directly.
"""
from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections import deque
from typing import Awaitable, Callable, Dict, Iterator, List, Optional, Set

from sandterm import telemetry
from sandterm.exceptions import (
    CapacityExceededError,
    SandboxMissingError,
    SessionCreationError,
    SessionDestroyedError,
    SessionNotFoundError,
)
from sandterm.models import CleanupResult, SessionStatus, ShellState, TerminalSession
from sandterm.sandbox.adapter import SandboxAdapter, SandboxHandle
from sandterm.terminal.config import TerminalConfig

logger = logging.getLogger(__name__)

DestroyListener = Callable[[TerminalSession], Awaitable[None]]


class SessionRegistry:
    """
    In-memory registry of terminal sessions.

    Sessions are removed outright once destroyed; a destroyed id then reads
    as not found.
    """

    def __init__(self, adapter: SandboxAdapter, config: TerminalConfig) -> None:
        self._adapter = adapter
        self._config = config
        self._sessions: Dict[str, TerminalSession] = {}
        self._sandboxes: Dict[str, SandboxHandle] = {}
        self._shell_states: Dict[str, ShellState] = {}
        self._exec_locks: Dict[str, asyncio.Lock] = {}
        # Every sandbox id ever bound, so none is handed to a second session
        self._bound_sandbox_ids: Set[str] = set()
        self._lock = asyncio.Lock()
        self._destroy_listeners: List[DestroyListener] = []

    def add_destroy_listener(self, listener: DestroyListener) -> None:
        """Register a coroutine called with the session while it is being destroyed."""
        self._destroy_listeners.append(listener)

    @property
    def live_count(self) -> int:
        return sum(1 for s in self._sessions.values() if not s.is_destroyed)

    def sessions(self) -> List[TerminalSession]:
        return list(self._sessions.values())

    def session_ids(self) -> Iterator[str]:
        return iter(list(self._sessions))

    # =========================================================================
    # Session lifecycle
    # =========================================================================

    async def create_session(self) -> TerminalSession:
        """
        Create a session with its own sandbox.

        Raises:
            CapacityExceededError: Ceiling reached even after a reclaim sweep.
            SessionCreationError: The adapter could not provision a sandbox.
        """
        if self.live_count >= self._config.max_sessions:
            logger.warning(
                "Max sessions reached (%d), sweeping inactive sessions", self._config.max_sessions
            )
            await self.cleanup_inactive_sessions()
            if self.live_count >= self._config.max_sessions:
                raise CapacityExceededError(self._config.max_sessions, self.live_count)

        session_id = str(uuid.uuid4())
        handle: Optional[SandboxHandle] = None

        try:
            with telemetry.span("sandterm.create_session", session_id=session_id):
                handle = await self._adapter.create_isolated_sandbox()
        except Exception as e:
            logger.error("Failed to create terminal session %s: %s", session_id, e)
            if isinstance(e, SessionCreationError):
                raise
            raise SessionCreationError(f"Failed to create session: {e}") from e

        async with self._lock:
            if handle.sandbox_id in self._bound_sandbox_ids:
                # The sandbox belongs to another session; it must not be torn down here.
                raise SessionCreationError(
                    f"Adapter returned sandbox '{handle.sandbox_id}' that was already bound"
                )
            if self.live_count >= self._config.max_sessions:
                capacity_error: Optional[CapacityExceededError] = CapacityExceededError(
                    self._config.max_sessions, self.live_count
                )
            else:
                capacity_error = None
                now = time.time()
                session = TerminalSession(
                    session_id=session_id,
                    sandbox_id=handle.sandbox_id,
                    created_at=now,
                    last_activity_at=now,
                    command_history=deque(maxlen=self._config.max_history),
                )
                self._sessions[session_id] = session
                self._sandboxes[session_id] = handle
                self._shell_states[session_id] = ShellState(working_dir=self._config.home_dir)
                self._exec_locks[session_id] = asyncio.Lock()
                self._bound_sandbox_ids.add(handle.sandbox_id)

        if capacity_error is not None:
            # Lost a race for the last slot while provisioning
            await self._rollback_sandbox(handle)
            raise capacity_error

        logger.info(
            "Terminal session created: session_id=%s sandbox_id=%s total=%d",
            session_id,
            handle.sandbox_id,
            len(self._sessions),
        )
        return session

    def get_session(self, session_id: str) -> TerminalSession:
        """
        Get a live session.

        Raises:
            SessionNotFoundError: Unknown id, or record already removed.
            SessionDestroyedError: Session is being torn down.
        """
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        if session.is_destroyed:
            raise SessionDestroyedError(session_id)
        return session

    def peek(self, session_id: str) -> Optional[TerminalSession]:
        """Session record in any state, or None."""
        return self._sessions.get(session_id)

    async def destroy_session(self, session_id: str) -> None:
        """
        Destroy a session: notify listeners, tear down the sandbox, drop
        every table entry.

        Sandbox teardown failures are logged, not raised.

        Raises:
            SessionNotFoundError: Unknown id (including a second destroy).
            SessionDestroyedError: Another destroy is already in progress.
        """
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFoundError(session_id)
            if session.is_destroyed:
                raise SessionDestroyedError(session_id)
            session.status = SessionStatus.DESTROYED

        try:
            for listener in self._destroy_listeners:
                try:
                    await listener(session)
                except Exception as e:
                    logger.error("Destroy listener failed for session %s: %s", session_id, e)

            handle = self._sandboxes.get(session_id)
            if handle is not None:
                try:
                    await self._adapter.destroy(handle.sandbox, handle.sandbox_id)
                except Exception as e:
                    logger.error(
                        "Failed to destroy sandbox %s for session %s: %s",
                        handle.sandbox_id,
                        session_id,
                        e,
                    )
        finally:
            async with self._lock:
                self._sessions.pop(session_id, None)
                self._sandboxes.pop(session_id, None)
                self._shell_states.pop(session_id, None)
                self._exec_locks.pop(session_id, None)

        logger.info(
            "Terminal session destroyed: session_id=%s remaining=%d",
            session_id,
            len(self._sessions),
        )

    async def cleanup_inactive_sessions(self) -> CleanupResult:
        """Destroy every session idle past the session timeout."""
        cutoff = time.time() - self._config.session_timeout_seconds
        stale = [
            sid
            for sid, session in list(self._sessions.items())
            if not session.is_destroyed and session.last_activity_at < cutoff
        ]

        logger.info(
            "Starting session cleanup: total=%d to_clean=%d", len(self._sessions), len(stale)
        )

        result = CleanupResult()
        for session_id in stale:
            try:
                await self.destroy_session(session_id)
                result.cleaned_sessions += 1
            except Exception as e:
                logger.error("Failed to cleanup session %s: %s", session_id, e)
                result.errors.append({"session_id": session_id, "error": str(e)})

        logger.info(
            "Session cleanup completed: cleaned=%d errors=%d",
            result.cleaned_sessions,
            len(result.errors),
        )
        return result

    # =========================================================================
    # Bindings
    # =========================================================================

    def sandbox_for(self, session_id: str) -> SandboxHandle:
        """
        Raises:
            SandboxMissingError: The session has no sandbox binding.
        """
        handle = self._sandboxes.get(session_id)
        if handle is None:
            raise SandboxMissingError(session_id)
        return handle

    def shell_state(self, session_id: str) -> ShellState:
        """
        Raises:
            SandboxMissingError: The session has no shell state.
        """
        state = self._shell_states.get(session_id)
        if state is None:
            raise SandboxMissingError(session_id)
        return state

    def exec_lock(self, session_id: str) -> Optional[asyncio.Lock]:
        return self._exec_locks.get(session_id)

    async def _rollback_sandbox(self, handle: SandboxHandle) -> None:
        try:
            await self._adapter.destroy(handle.sandbox, handle.sandbox_id)
        except Exception as e:
            logger.warning("Rollback of sandbox %s failed: %s", handle.sandbox_id, e)
