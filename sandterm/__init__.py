"""
sandterm - Persistent terminal sessions over isolated sandboxes.

Each session owns one sandbox for its lifetime. Commands run asynchronously;
`cd` and `export` are remembered across commands even though every sandbox
call is stateless, and results are pushed to subscribers as SSE events.

Embedding the manager:
    from sandterm import TerminalSessionManager, CommandRequest
    from sandterm.sandbox import ContainerSandboxAdapter

    manager = TerminalSessionManager(ContainerSandboxAdapter())
    await manager.start()
    session = await manager.create_session()
    await manager.submit_command(session.session_id, CommandRequest("cd /tmp"))

Serving over HTTP:
    sandterm --port 8000
    # or: uvicorn sandterm.server:app
"""

__version__ = "0.1.0"

from sandterm.exceptions import (  # noqa: E402
    CapacityExceededError,
    ChannelClosedError,
    CommandExecutionError,
    SandboxMissingError,
    SessionCreationError,
    SessionDestroyedError,
    SessionNotFoundError,
    TerminalError,
)
from sandterm.models import (  # noqa: E402
    CleanupResult,
    CommandHistoryEntry,
    CommandRequest,
    EventType,
    SessionEvent,
    SessionStats,
    SessionStatus,
    ShellState,
    TerminalSession,
)
from sandterm.terminal import TerminalConfig, TerminalSessionManager  # noqa: E402

__all__ = [
    "__version__",
    "TerminalSessionManager",
    "TerminalConfig",
    "CommandRequest",
    "CommandHistoryEntry",
    "CleanupResult",
    "EventType",
    "SessionEvent",
    "SessionStats",
    "SessionStatus",
    "ShellState",
    "TerminalSession",
    "TerminalError",
    "SessionNotFoundError",
    "SessionDestroyedError",
    "CapacityExceededError",
    "SessionCreationError",
    "CommandExecutionError",
    "SandboxMissingError",
    "ChannelClosedError",
]
