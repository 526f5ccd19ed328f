"""
LifecycleScheduler: periodic background jobs for terminal sessions.

Runs two independent asyncio tasks for the lifetime of the terminal manager:
- Inactivity sweep: destroys sessions idle past the session timeout
- Heartbeat: keeps subscriber connections alive

Both are started together and cancelled together.

Usage:
    from sandterm.sandbox.lifecycle import LifecycleConfig, LifecycleScheduler

    scheduler = LifecycleScheduler(
        LifecycleConfig(cleanup_interval_seconds=300, heartbeat_interval_seconds=30),
        sweep=manager.cleanup_inactive_sessions,
        heartbeat=manager.send_heartbeat,
    )
    scheduler.start()
    ...
    await scheduler.stop()
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Union

logger = logging.getLogger(__name__)

Job = Callable[[], Union[Awaitable[Any], Any]]


@dataclass
class LifecycleConfig:
    """
    Intervals for the background jobs, in seconds.

    The sweep interval should be shorter than the session timeout so idle
    sessions are reclaimed close to their deadline.
    """

    # Interval between inactivity sweeps (default: 5 minutes)
    cleanup_interval_seconds: float = 300.0

    # Interval between heartbeats (default: 30s)
    heartbeat_interval_seconds: float = 30.0


class LifecycleScheduler:
    """
    Owns the sweep and heartbeat tasks.

    A job that raises is logged and retried on the next tick; only stop()
    ends the loops.
    """

    def __init__(self, config: LifecycleConfig, sweep: Job, heartbeat: Job) -> None:
        self._config = config
        self._sweep = sweep
        self._heartbeat = heartbeat
        self._tasks: List[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def start(self) -> None:
        """Spawn both periodic tasks on the running event loop."""
        if self.running:
            return
        self._tasks = [
            asyncio.create_task(
                self._periodic("cleanup", self._config.cleanup_interval_seconds, self._sweep)
            ),
            asyncio.create_task(
                self._periodic("heartbeat", self._config.heartbeat_interval_seconds, self._heartbeat)
            ),
        ]
        logger.info(
            "Lifecycle scheduler started (cleanup every %.0fs, heartbeat every %.0fs)",
            self._config.cleanup_interval_seconds,
            self._config.heartbeat_interval_seconds,
        )

    async def stop(self) -> None:
        """Cancel both tasks and wait for them to exit."""
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("Lifecycle scheduler stopped")

    async def _periodic(self, name: str, interval: float, job: Job) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                result = job()
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error("%s job error: %s", name, e)


def sweep_interval_for(session_timeout_seconds: float, requested: Optional[float] = None) -> float:
    """
    Pick the sweep interval: the requested value if given, otherwise a fifth
    of the session timeout.
    """
    if requested is not None and requested > 0:
        return requested
    return max(session_timeout_seconds / 5, 1.0)
