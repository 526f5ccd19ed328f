"""
TerminalSessionManager: the single authority over terminal sessions.

Composes the session registry, the command pipeline, the broadcast hub and the
background lifecycle jobs behind one interface. One manager per process.

Usage:
    from sandterm.terminal import TerminalSessionManager

    manager = TerminalSessionManager(adapter)
    await manager.start()
    session = await manager.create_session()
    command_id = await manager.submit_command(session.session_id, CommandRequest("ls"))
    ...
    await manager.shutdown()
"""
from __future__ import annotations

import logging
from typing import Optional

from sandterm.models import (
    CleanupResult,
    CommandRequest,
    SessionEvent,
    SessionStats,
    SessionStatus,
    TerminalSession,
)
from sandterm.sandbox.adapter import SandboxAdapter
from sandterm.sandbox.container import ContainerAdapterConfig, ContainerSandboxAdapter
from sandterm.sandbox.lifecycle import LifecycleConfig, LifecycleScheduler
from sandterm.sandbox.runtime import resolve_runtime
from sandterm.terminal.config import TerminalConfig
from sandterm.terminal.hub import BroadcastHub, Subscriber, SubscriberChannel
from sandterm.terminal.pipeline import CommandPipeline
from sandterm.terminal.registry import SessionRegistry

logger = logging.getLogger(__name__)

# Seconds shutdown waits for in-flight commands before cancelling them
_SHUTDOWN_GRACE_SECONDS = 5.0


class TerminalSessionManager:
    def __init__(self, adapter: SandboxAdapter, config: Optional[TerminalConfig] = None) -> None:
        self.config = config or TerminalConfig()
        self.adapter = adapter
        self.registry = SessionRegistry(adapter, self.config)
        self.hub = BroadcastHub(self.registry)
        self.pipeline = CommandPipeline(self.registry, self.hub, adapter, self.config)
        self._scheduler = LifecycleScheduler(
            LifecycleConfig(
                cleanup_interval_seconds=self.config.cleanup_interval_seconds,
                heartbeat_interval_seconds=self.config.heartbeat_interval_seconds,
            ),
            sweep=self.cleanup_inactive_sessions,
            heartbeat=self.send_heartbeat,
        )

    @property
    def running(self) -> bool:
        return self._scheduler.running

    async def start(self) -> None:
        """Start the inactivity sweep and heartbeat jobs."""
        self._scheduler.start()
        logger.info(
            "Terminal session manager started (timeout=%.0fs, max_sessions=%d)",
            self.config.session_timeout_seconds,
            self.config.max_sessions,
        )

    async def shutdown(self) -> None:
        """Stop background jobs and destroy every session."""
        await self._scheduler.stop()
        await self.pipeline.drain(timeout=_SHUTDOWN_GRACE_SECONDS)

        for session_id in list(self.registry.session_ids()):
            try:
                await self.registry.destroy_session(session_id)
            except Exception as e:
                logger.debug("Ignoring error destroying session %s at shutdown: %s", session_id, e)

        logger.info("Terminal session manager shut down")

    # =========================================================================
    # Sessions
    # =========================================================================

    async def create_session(self) -> TerminalSession:
        return await self.registry.create_session()

    def get_session(self, session_id: str) -> TerminalSession:
        return self.registry.get_session(session_id)

    async def destroy_session(self, session_id: str) -> None:
        await self.registry.destroy_session(session_id)

    async def cleanup_inactive_sessions(self) -> CleanupResult:
        return await self.registry.cleanup_inactive_sessions()

    # =========================================================================
    # Commands
    # =========================================================================

    async def submit_command(self, session_id: str, request: CommandRequest) -> str:
        return await self.pipeline.submit_command(session_id, request)

    # =========================================================================
    # Subscribers
    # =========================================================================

    def register_subscriber(
        self, session_id: str, channel: SubscriberChannel, client_id: Optional[str] = None
    ) -> Subscriber:
        return self.hub.register_subscriber(session_id, channel, client_id)

    def unregister_subscriber(self, session_id: str, client_id: str) -> None:
        self.hub.unregister_subscriber(session_id, client_id)

    def broadcast(self, session_id: str, event: SessionEvent) -> int:
        return self.hub.broadcast(session_id, event)

    def send_heartbeat(self) -> None:
        self.hub.send_heartbeat()

    # =========================================================================
    # Stats
    # =========================================================================

    def get_stats(self) -> SessionStats:
        sessions = self.registry.sessions()
        by_status = {status: 0 for status in SessionStatus}
        for session in sessions:
            by_status[session.status] += 1
        return SessionStats(
            total_sessions=len(sessions),
            active_sessions=by_status[SessionStatus.ACTIVE],
            idle_sessions=by_status[SessionStatus.IDLE],
            destroyed_sessions=by_status[SessionStatus.DESTROYED],
            total_commands=sum(len(s.command_history) for s in sessions),
            connected_clients=self.hub.connected_clients,
        )


# Global manager singleton
_terminal_manager: Optional[TerminalSessionManager] = None


def get_terminal_manager() -> TerminalSessionManager:
    """Get the global terminal manager, backed by containers as configured."""
    global _terminal_manager
    if _terminal_manager is None:
        from sandterm.server.config import get_settings

        settings = get_settings()
        adapter = ContainerSandboxAdapter(
            ContainerAdapterConfig(
                image=settings.sandbox_image,
                runtime=resolve_runtime(settings.container_runtime),
                home_dir=settings.home_dir,
            )
        )
        _terminal_manager = TerminalSessionManager(adapter, TerminalConfig.from_settings(settings))
    return _terminal_manager


def reset_terminal_manager() -> None:
    """Reset global terminal manager. For testing only."""
    global _terminal_manager
    _terminal_manager = None
