"""
Server configuration from environment variables.

Usage:
    from sandterm.server.config import get_settings

    settings = get_settings()
    print(settings.host, settings.port)
"""

from functools import lru_cache
from typing import Optional
import os


class Settings:
    """Server configuration loaded from environment variables."""

    def __init__(self) -> None:
        # Server
        self.host: str = os.getenv("SANDTERM_HOST", "0.0.0.0")
        self.port: int = int(os.getenv("SANDTERM_PORT", "8000"))

        # Authentication
        self.api_key: Optional[str] = os.getenv("SANDTERM_API_KEY")

        # Session lifecycle
        self.session_timeout_seconds: float = float(
            os.getenv("SANDTERM_SESSION_TIMEOUT_SECONDS", "1800")
        )
        self.cleanup_interval_seconds: float = float(
            os.getenv("SANDTERM_CLEANUP_INTERVAL_SECONDS", "300")
        )
        self.heartbeat_interval_seconds: float = float(
            os.getenv("SANDTERM_HEARTBEAT_INTERVAL_SECONDS", "30")
        )
        self.max_history: int = int(os.getenv("SANDTERM_MAX_HISTORY", "100"))
        self.max_sessions: int = int(os.getenv("SANDTERM_MAX_SESSIONS", "50"))

        # Command timeouts
        self.default_command_timeout_ms: int = int(
            os.getenv("SANDTERM_DEFAULT_COMMAND_TIMEOUT_MS", "30000")
        )
        self.min_command_timeout_ms: int = int(
            os.getenv("SANDTERM_MIN_COMMAND_TIMEOUT_MS", "1000")
        )
        self.max_command_timeout_ms: int = int(
            os.getenv("SANDTERM_MAX_COMMAND_TIMEOUT_MS", "300000")
        )

        # Sandbox
        self.home_dir: str = os.getenv("SANDTERM_HOME_DIR", "/home")
        self.sandbox_image: str = os.getenv("SANDTERM_SANDBOX_IMAGE", "python:3.11-slim")
        self.container_runtime: Optional[str] = os.getenv("SANDTERM_CONTAINER_RUNTIME")

        # Streaming
        self.subscriber_queue_size: int = int(
            os.getenv("SANDTERM_SUBSCRIBER_QUEUE_SIZE", "256")
        )

    @property
    def auth_required(self) -> bool:
        """Authentication is required if SANDTERM_API_KEY is set."""
        return self.api_key is not None


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def reset_settings() -> None:
    """Clear settings cache. For testing only."""
    get_settings.cache_clear()
