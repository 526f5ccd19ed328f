"""
Container-backed sandbox adapter.

Each terminal session gets its own long-running container (`sleep infinity`).
Every command is a fresh `exec` inside it, started in the working directory the
caller passes, so the container keeps files between commands but no shell
state. Variables pushed through update_env are kept on the sandbox and injected
into every later exec, which makes them global for the sandbox's lifetime.

Usage:
    from sandterm.sandbox.container import ContainerSandboxAdapter, ContainerAdapterConfig

    adapter = ContainerSandboxAdapter(ContainerAdapterConfig(image="python:3.11-slim"))
    handle = await adapter.create_isolated_sandbox()
"""
from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional

from sandterm.exceptions import CommandExecutionError, SessionCreationError
from sandterm.sandbox.adapter import CommandResult, SandboxHandle
from sandterm.sandbox.runtime import ContainerRuntime, resolve_runtime

logger = logging.getLogger(__name__)


@dataclass
class ContainerAdapterConfig:
    image: str = "python:3.11-slim"
    # Runtime will be auto-detected if None
    runtime: Optional[ContainerRuntime] = None
    memory: str = "512m"
    pids_limit: int = 128
    # "none" isolates the sandbox from the network entirely
    network_mode: str = "none"
    user: str = "1000:1000"
    home_dir: str = "/home"
    # Upper bound for container start/stop CLI calls
    cli_timeout_seconds: float = 60.0


class ContainerSandbox:
    """
    Handle for one running sandbox container.

    Holds the container id and the sandbox's global environment.
    """

    def __init__(self, container_id: str, name: str) -> None:
        self.id = container_id
        self.name = name
        self.env: Dict[str, str] = {}
        self.created_at = time.monotonic()
        self.exec_count = 0


class ContainerSandboxAdapter:
    """
    SandboxAdapter implementation on top of the Podman/Docker CLI.
    """

    def __init__(self, config: Optional[ContainerAdapterConfig] = None) -> None:
        self._config = config or ContainerAdapterConfig()
        self._runtime = self._config.runtime or resolve_runtime(None)

    @property
    def runtime(self) -> ContainerRuntime:
        return self._runtime

    async def _cli(self, *args: str, timeout: float) -> tuple[int, str, str]:
        proc = await asyncio.create_subprocess_exec(
            self._runtime.value,
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise
        return (
            proc.returncode if proc.returncode is not None else -1,
            stdout.decode("utf-8", errors="replace"),
            stderr.decode("utf-8", errors="replace"),
        )

    def _run_args(self, name: str) -> List[str]:
        return [
            "run", "-d",
            "--name", name,
            f"--user={self._config.user}",
            f"--network={self._config.network_mode}",
            "--cap-drop=ALL",
            "--security-opt=no-new-privileges",
            f"--memory={self._config.memory}",
            f"--pids-limit={self._config.pids_limit}",
            "-w", self._config.home_dir,
            self._config.image,
            "sh", "-c", "sleep infinity",
        ]

    async def create_isolated_sandbox(self) -> SandboxHandle:
        """Start a dedicated container for one session."""
        name = f"sandterm-{uuid.uuid4().hex[:12]}"
        try:
            code, stdout, stderr = await self._cli(
                *self._run_args(name), timeout=self._config.cli_timeout_seconds
            )
        except asyncio.TimeoutError:
            await self._remove_quietly(name)
            raise SessionCreationError(
                f"Timed out starting sandbox container {name}"
            ) from None

        if code != 0:
            # A failed `run` may still leave a created container behind
            await self._remove_quietly(name)
            raise SessionCreationError(
                f"Failed to start sandbox container: {stderr.strip()}"
            )

        container_id = stdout.strip()
        logger.info("Started sandbox container %s (%s)", name, container_id[:12])
        sandbox = ContainerSandbox(container_id, name)
        return SandboxHandle(sandbox=sandbox, sandbox_id=name)

    async def run(
        self,
        sandbox: ContainerSandbox,
        command: str,
        *,
        timeout_seconds: int,
        working_dir: str,
    ) -> CommandResult:
        """Run a command via `exec` in a fresh shell inside the container."""
        sandbox.exec_count += 1
        args = ["exec", "-w", working_dir]
        for key, value in sandbox.env.items():
            args.extend(["-e", f"{key}={value}"])
        args.extend([sandbox.id, "sh", "-c", command])

        try:
            code, stdout, stderr = await self._cli(*args, timeout=timeout_seconds)
        except asyncio.TimeoutError:
            raise CommandExecutionError(
                f"Command timed out after {timeout_seconds}s"
            ) from None
        except OSError as e:
            raise CommandExecutionError(f"Could not invoke container runtime: {e}") from e

        return CommandResult(stdout=stdout, stderr=stderr, exit_code=code)

    async def update_env(self, sandbox: ContainerSandbox, env: Dict[str, str]) -> None:
        sandbox.env.update(env)

    async def destroy(self, sandbox: ContainerSandbox, sandbox_id: str) -> None:
        """Force-remove the container."""
        code, _, stderr = await self._cli(
            "rm", "-f", sandbox.id, timeout=self._config.cli_timeout_seconds
        )
        if code != 0:
            raise RuntimeError(f"Failed to remove sandbox {sandbox_id}: {stderr.strip()}")
        logger.info(
            "Removed sandbox container %s after %d commands", sandbox_id, sandbox.exec_count
        )

    async def _remove_quietly(self, name: str) -> None:
        try:
            await self._cli("rm", "-f", name, timeout=self._config.cli_timeout_seconds)
        except (OSError, asyncio.TimeoutError) as e:
            logger.warning("Rollback of sandbox container %s failed: %s", name, e)
