"""
Sandbox module: the adapter contract, the container-backed adapter, and the
background lifecycle jobs.

Provides:
- SandboxAdapter: Protocol the terminal manager consumes
- ContainerSandboxAdapter: One Podman/Docker container per session
- LifecycleScheduler: Inactivity sweep and heartbeat tasks

Usage:
    from sandterm.sandbox import ContainerSandboxAdapter, ContainerAdapterConfig

    adapter = ContainerSandboxAdapter(ContainerAdapterConfig(image="python:3.11-slim"))
"""
from sandterm.sandbox.adapter import CommandResult, SandboxAdapter, SandboxHandle
from sandterm.sandbox.container import (
    ContainerAdapterConfig,
    ContainerSandbox,
    ContainerSandboxAdapter,
)
from sandterm.sandbox.lifecycle import LifecycleConfig, LifecycleScheduler
from sandterm.sandbox.runtime import ContainerRuntime, detect_runtime, resolve_runtime

__all__ = [
    # Adapter contract
    "CommandResult",
    "SandboxAdapter",
    "SandboxHandle",
    # Container backend
    "ContainerAdapterConfig",
    "ContainerSandbox",
    "ContainerSandboxAdapter",
    "ContainerRuntime",
    "detect_runtime",
    "resolve_runtime",
    # Background jobs
    "LifecycleConfig",
    "LifecycleScheduler",
]
