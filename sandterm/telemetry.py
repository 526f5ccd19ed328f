"""Optional Logfire integration for tracing terminal activity."""
from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from typing import Any, Iterator, Optional

logger = logging.getLogger("sandterm.telemetry")

_logfire = None
_configured = False


def _load_logfire():
    global _logfire
    if _logfire is not None:
        return _logfire
    try:
        import logfire
    except ImportError:
        _logfire = False
        return _logfire
    _logfire = logfire
    return _logfire


def _env_truthy(value: Optional[str]) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def enabled() -> bool:
    logfire = _load_logfire()
    if not logfire:
        return False
    flag = os.getenv("SANDTERM_LOGFIRE")
    if flag is not None:
        return _env_truthy(flag)
    return True


def configure() -> bool:
    logfire = _load_logfire()
    if not logfire or not enabled():
        return False
    global _configured
    if not _configured:
        try:
            # Only ship spans when a token is configured; local runs stay local.
            logfire.configure(send_to_logfire="if-token-present")
        except Exception as e:
            logger.warning("Logfire configuration failed: %s", e)
            return False
        _configured = True
    return True


@contextmanager
def span(name: str, **attrs: Any) -> Iterator[None]:
    """Trace the enclosed block when Logfire is active; no-op otherwise."""
    if not configure():
        yield
        return
    with _logfire.span(name, **attrs):
        yield


def log(level: str, message: str, **attrs: Any) -> None:
    """Emit a structured event to Logfire, or to the standard logger."""
    if not configure():
        logger.log(logging.getLevelName(level.upper()), "%s %s", message, attrs)
        return
    fn = getattr(_logfire, level, None) or _logfire.info
    fn(message, **attrs)
