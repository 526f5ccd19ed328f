"""
Terminal session endpoints.

POST /api/terminal/sessions - Create session
GET /api/terminal/sessions/{id} - Get session state and history
DELETE /api/terminal/sessions/{id} - Destroy session
POST /api/terminal/{id}/execute - Submit a command (results arrive on the stream)
GET /api/terminal/{id}/stream - SSE stream of session events
GET /api/terminal/stats - Aggregate counters
POST /api/terminal/cleanup - Run the inactivity sweep now

There is no resize endpoint: commands run without a pseudo-terminal.
"""
import logging
from typing import AsyncGenerator, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from sandterm.exceptions import TerminalError
from sandterm.models import CommandRequest, to_iso
from sandterm.server.auth import get_api_key
from sandterm.server.exceptions import ValidationError
from sandterm.server.middleware import get_request_id
from sandterm.server.schemas import (
    CleanupResponse,
    CommandHistoryItem,
    CreateSessionResponse,
    DeleteSessionResponse,
    ExecuteCommandRequest,
    ExecuteCommandResponse,
    SessionStateResponse,
    StatsResponse,
)
from sandterm.server.sse import SSE_HEADERS, QueueChannel
from sandterm.terminal.manager import TerminalSessionManager, get_terminal_manager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/terminal", tags=["terminal"])


def get_manager(request: Request) -> TerminalSessionManager:
    """FastAPI dependency returning the app's terminal manager."""
    manager = request.app.state.manager
    if manager is None:
        manager = get_terminal_manager()
        request.app.state.manager = manager
    return manager


@router.post("/sessions", response_model=CreateSessionResponse, status_code=201)
async def create_session(
    manager: TerminalSessionManager = Depends(get_manager),
    api_key: Optional[str] = Depends(get_api_key),
) -> CreateSessionResponse:
    """
    Create a terminal session with its own sandbox.

    Headers:
    - X-API-Key: Required if authentication is enabled
    """
    session = await manager.create_session()
    return CreateSessionResponse(
        session_id=session.session_id,
        sandbox_id=session.sandbox_id,
        status=session.status.value,
        created_at=to_iso(session.created_at),
        expires_in_ms=manager.config.session_timeout_ms,
    )


@router.get("/sessions/{session_id}", response_model=SessionStateResponse)
async def get_session(
    session_id: str,
    manager: TerminalSessionManager = Depends(get_manager),
    api_key: Optional[str] = Depends(get_api_key),
) -> SessionStateResponse:
    """
    Get session state and command history.

    404 for unknown sessions, 410 for sessions being destroyed.
    """
    session = manager.get_session(session_id)
    return SessionStateResponse(
        session_id=session.session_id,
        sandbox_id=session.sandbox_id,
        status=session.status.value,
        created_at=to_iso(session.created_at),
        last_activity_at=to_iso(session.last_activity_at),
        command_history=[CommandHistoryItem(**item) for item in session.history()],
        uptime_ms=session.uptime_ms(),
    )


@router.delete("/sessions/{session_id}", response_model=DeleteSessionResponse)
async def delete_session(
    session_id: str,
    manager: TerminalSessionManager = Depends(get_manager),
    api_key: Optional[str] = Depends(get_api_key),
) -> DeleteSessionResponse:
    """
    Destroy a session and its sandbox. Open streams receive
    `session_destroyed` and are closed.
    """
    await manager.destroy_session(session_id)
    return DeleteSessionResponse(
        message="Terminal session destroyed successfully",
        session_id=session_id,
    )


@router.post("/{session_id}/execute", response_model=ExecuteCommandResponse, status_code=202)
async def execute_command(
    session_id: str,
    request_body: ExecuteCommandRequest,
    manager: TerminalSessionManager = Depends(get_manager),
    api_key: Optional[str] = Depends(get_api_key),
) -> ExecuteCommandResponse:
    """
    Submit a command for asynchronous execution.

    Returns immediately with the command id; output, completion and errors
    are delivered on GET /api/terminal/{id}/stream.
    """
    if not request_body.command.strip():
        raise ValidationError("command must not be blank", request_id=get_request_id())

    command_id = await manager.submit_command(
        session_id,
        CommandRequest(
            command=request_body.command,
            language=request_body.language,
            timeout_ms=request_body.timeout_ms,
        ),
    )
    return ExecuteCommandResponse(
        command_id=command_id,
        status="started",
        message="Command execution started. Subscribe to the stream for output.",
    )


@router.get("/{session_id}/stream")
async def stream_session(
    session_id: str,
    manager: TerminalSessionManager = Depends(get_manager),
    api_key: Optional[str] = Depends(get_api_key),
) -> StreamingResponse:
    """
    Stream session events via Server-Sent Events (SSE).

    Event types: connected, output, error, complete, heartbeat,
    session_destroyed. The stream stays open until the session is destroyed
    or the client disconnects.
    """
    # Raises not-found/destroyed before any stream is opened
    manager.get_session(session_id)
    channel = QueueChannel(maxsize=manager.config.subscriber_queue_size)

    return StreamingResponse(
        _subscribed_frames(manager, session_id, channel),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


async def _subscribed_frames(
    manager: TerminalSessionManager, session_id: str, channel: QueueChannel
) -> AsyncGenerator[str, None]:
    """Subscribe only once the response body starts streaming."""
    try:
        manager.register_subscriber(session_id, channel)
    except TerminalError as e:
        logger.info("Stream for session %s ended before subscribing: %s", session_id, e)
        return
    try:
        async for frame in channel.frames():
            yield frame
    finally:
        channel.close()


@router.get("/stats", response_model=StatsResponse)
async def get_stats(
    manager: TerminalSessionManager = Depends(get_manager),
    api_key: Optional[str] = Depends(get_api_key),
) -> StatsResponse:
    """Aggregate session and subscriber counters."""
    return StatsResponse(**manager.get_stats().to_dict())


@router.post("/cleanup", response_model=CleanupResponse)
async def cleanup_sessions(
    manager: TerminalSessionManager = Depends(get_manager),
    api_key: Optional[str] = Depends(get_api_key),
) -> CleanupResponse:
    """Run the inactivity sweep immediately."""
    result = await manager.cleanup_inactive_sessions()
    return CleanupResponse(message="Cleanup completed", **result.to_dict())
