"""
Sandbox adapter contract consumed by the terminal manager.

The terminal core never provisions compute itself. It talks to an adapter
that can create an isolated sandbox, run one command in it, push variables
into its global environment, and destroy it. Every call may raise.

Usage:
    adapter = ContainerSandboxAdapter(ContainerAdapterConfig())

    handle = await adapter.create_isolated_sandbox()
    result = await adapter.run(
        handle.sandbox, "ls", timeout_seconds=30, working_dir="/home"
    )
    await adapter.destroy(handle.sandbox, handle.sandbox_id)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Protocol


@dataclass
class CommandResult:
    """Result of one command run inside a sandbox."""

    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0


@dataclass
class SandboxHandle:
    """A provisioned sandbox and its backend identifier."""

    # Backend object passed back into run/update_env/destroy
    sandbox: Any

    sandbox_id: str


class SandboxAdapter(Protocol):
    """
    Protocol for sandbox backends.

    The run primitive is stateless: each call starts from working_dir and
    remembers nothing of earlier calls. update_env is the one piece of state
    the backend persists for the sandbox's lifetime.
    """

    async def create_isolated_sandbox(self) -> SandboxHandle:
        """Provision a dedicated sandbox."""
        ...

    async def run(
        self,
        sandbox: Any,
        command: str,
        *,
        timeout_seconds: int,
        working_dir: str,
    ) -> CommandResult:
        """Run a shell command; raise on transport failure or timeout."""
        ...

    async def update_env(self, sandbox: Any, env: Dict[str, str]) -> None:
        """Merge variables into the sandbox's global environment."""
        ...

    async def destroy(self, sandbox: Any, sandbox_id: str) -> None:
        """Tear the sandbox down and release its resources."""
        ...
