"""
Command execution pipeline.

Submission records the command and schedules a background task; the task
runs the command in the session's sandbox, keeps the session's shell state in
step with `cd` and `export`, and reports the outcome through the broadcast hub.
"""
from __future__ import annotations

import asyncio
import logging
import time
import uuid
from typing import Optional, Set

from sandterm import telemetry
from sandterm.exceptions import SandboxMissingError, TerminalError
from sandterm.models import (
    CommandHistoryEntry,
    CommandRequest,
    EventType,
    SessionEvent,
    SessionStatus,
    ShellState,
    TerminalSession,
)
from sandterm.sandbox.adapter import CommandResult, SandboxAdapter, SandboxHandle
from sandterm.terminal.config import TerminalConfig
from sandterm.terminal.hub import BroadcastHub
from sandterm.terminal.registry import SessionRegistry
from sandterm.terminal.shell import is_cd, parse_export, pwd_probe

logger = logging.getLogger(__name__)


class CommandPipeline:
    def __init__(
        self,
        registry: SessionRegistry,
        hub: BroadcastHub,
        adapter: SandboxAdapter,
        config: TerminalConfig,
    ) -> None:
        self._registry = registry
        self._hub = hub
        self._adapter = adapter
        self._config = config
        self._tasks: Set[asyncio.Task] = set()

    async def submit_command(self, session_id: str, request: CommandRequest) -> str:
        """
        Record a command and schedule its execution.

        Returns the command id immediately; results arrive as stream events.

        Raises:
            SessionNotFoundError: Unknown session.
            SessionDestroyedError: Session is being destroyed.
        """
        session = self._registry.get_session(session_id)
        session.touch()

        command_id = str(uuid.uuid4())
        entry = CommandHistoryEntry(
            command_id=command_id,
            command=request.command,
            submitted_at=time.time(),
            language=request.language,
        )
        # Bounded deque evicts the oldest entry
        session.command_history.append(entry)
        session.running_commands += 1

        task = asyncio.create_task(self._execute(session, entry, request))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        logger.info(
            "Command submitted: session_id=%s command_id=%s language=%s",
            session_id,
            command_id,
            request.language,
        )
        return command_id

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for scheduled commands to finish, cancelling stragglers after timeout."""
        if not self._tasks:
            return
        tasks = list(self._tasks)
        _, pending = await asyncio.wait(tasks, timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    # =========================================================================
    # Background execution
    # =========================================================================

    async def _execute(
        self, session: TerminalSession, entry: CommandHistoryEntry, request: CommandRequest
    ) -> None:
        session_id = session.session_id
        started = time.monotonic()
        try:
            lock = self._registry.exec_lock(session_id)
            if lock is None or session.is_destroyed:
                # Destroyed between submission and scheduling
                entry.fail(self._elapsed_ms(started))
                return

            async with lock:
                if session.is_destroyed:
                    entry.fail(self._elapsed_ms(started))
                    return
                with telemetry.span(
                    "sandterm.execute", session_id=session_id, command_id=entry.command_id
                ):
                    result = await self._run(session_id, request)
        except Exception as e:
            self._report_failure(session_id, entry, e, self._elapsed_ms(started))
        else:
            self._report_result(session_id, entry, result, self._elapsed_ms(started))
        finally:
            session.running_commands = max(session.running_commands - 1, 0)
            if (
                session.running_commands == 0
                and not session.is_destroyed
                and self._hub.subscriber_count(session_id) == 0
            ):
                session.status = SessionStatus.IDLE

    def _report_result(
        self,
        session_id: str,
        entry: CommandHistoryEntry,
        result: CommandResult,
        duration_ms: int,
    ) -> None:
        entry.complete(result.exit_code, duration_ms)

        output = {
            "command_id": entry.command_id,
            "stdout": result.stdout,
            "stderr": result.stderr,
            "exit_code": result.exit_code,
            "duration_ms": duration_ms,
        }
        if result.exit_code != 0:
            output["error"] = result.stderr
        self._hub.broadcast(session_id, SessionEvent(type=EventType.OUTPUT, data=output))
        self._hub.broadcast(
            session_id,
            SessionEvent(
                type=EventType.COMPLETE,
                data={
                    "command_id": entry.command_id,
                    "exit_code": result.exit_code,
                    "duration_ms": duration_ms,
                },
            ),
        )
        logger.info(
            "Command executed: session_id=%s command_id=%s exit_code=%d duration_ms=%d",
            session_id,
            entry.command_id,
            result.exit_code,
            duration_ms,
        )

    def _report_failure(
        self, session_id: str, entry: CommandHistoryEntry, error: Exception, duration_ms: int
    ) -> None:
        entry.fail(duration_ms)
        if isinstance(error, SandboxMissingError):
            logger.error("Inconsistent session state for %s: %s", session_id, error)
        else:
            logger.error(
                "Command execution failed: session_id=%s command_id=%s error=%s",
                session_id,
                entry.command_id,
                error,
            )
        message = error.message if isinstance(error, TerminalError) else str(error)
        self._hub.broadcast(
            session_id,
            SessionEvent(
                type=EventType.ERROR,
                data={
                    "command_id": entry.command_id,
                    "error": message,
                    "duration_ms": duration_ms,
                },
            ),
        )

    async def _run(self, session_id: str, request: CommandRequest) -> CommandResult:
        handle = self._registry.sandbox_for(session_id)
        state = self._registry.shell_state(session_id)

        await self._apply_export(session_id, handle, state, request.command)

        previous_dir = state.working_dir
        result = await self._adapter.run(
            handle.sandbox,
            request.command,
            timeout_seconds=self._config.timeout_seconds(request.timeout_ms),
            working_dir=previous_dir,
        )

        if is_cd(request.command):
            await self._track_cd(session_id, handle, state, request.command, previous_dir)

        return result

    async def _apply_export(
        self, session_id: str, handle: SandboxHandle, state: ShellState, command: str
    ) -> None:
        assignment = parse_export(command)
        if assignment is None:
            return
        name, value = assignment
        try:
            await self._adapter.update_env(handle.sandbox, {name: value})
        except Exception as e:
            logger.warning(
                "Failed to update environment for session %s (%s): %s", session_id, name, e
            )
            return
        state.env[name] = value
        telemetry.log("info", "env_exported", session_id=session_id, name=name)

    async def _track_cd(
        self,
        session_id: str,
        handle: SandboxHandle,
        state: ShellState,
        command: str,
        previous_dir: str,
    ) -> None:
        try:
            probe = await self._adapter.run(
                handle.sandbox,
                pwd_probe(command),
                timeout_seconds=self._config.cd_probe_timeout_seconds,
                working_dir=previous_dir,
            )
        except Exception as e:
            logger.warning("Failed to update working directory for session %s: %s", session_id, e)
            return

        new_dir = probe.stdout.strip()
        if probe.exit_code == 0 and new_dir:
            # `cd -` also prints the directory; pwd's line is last
            state.working_dir = new_dir.splitlines()[-1].strip()
        else:
            telemetry.log(
                "warning",
                "cd_not_applied",
                session_id=session_id,
                exit_code=probe.exit_code,
                working_dir=previous_dir,
            )

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.monotonic() - started) * 1000)
