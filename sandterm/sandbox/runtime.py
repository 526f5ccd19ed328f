"""
Container runtime detection.

Sandboxes are containers driven through the Podman or Docker CLI. This module
picks which binary to call.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class ContainerRuntime(Enum):
    PODMAN = "podman"
    DOCKER = "docker"


def _runtime_works(binary: str) -> bool:
    """Verify the runtime CLI can reach its engine."""
    if shutil.which(binary) is None:
        return False
    try:
        subprocess.run([binary, "info"], capture_output=True, check=True, timeout=5)
        return True
    except (subprocess.SubprocessError, OSError):
        return False


def detect_runtime() -> ContainerRuntime:
    """
    Detect available container runtime.

    Priority:
    1. Podman (rootless, daemonless)
    2. Docker

    Raises:
        RuntimeError: If no supported runtime is found/working.
    """
    for runtime in (ContainerRuntime.PODMAN, ContainerRuntime.DOCKER):
        if _runtime_works(runtime.value):
            logger.info("Detected container runtime: %s", runtime.value)
            return runtime

    raise RuntimeError(
        "No container runtime available. Install Podman or Docker to run sandboxes."
    )


def resolve_runtime(name: Optional[str] = None) -> ContainerRuntime:
    """
    Resolve a configured runtime name, or auto-detect when unset.

    Raises:
        ValueError: If the name is not a supported runtime.
    """
    if not name or name == "auto":
        return detect_runtime()
    try:
        return ContainerRuntime(name.lower())
    except ValueError:
        raise ValueError(
            f"Unsupported container runtime '{name}' (expected podman, docker or auto)"
        ) from None
