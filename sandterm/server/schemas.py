"""
Pydantic models for API request/response schemas.
"""
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


Language = Literal["bash", "python", "javascript", "typescript", "go"]


# =============================================================================
# Session Endpoint Schemas
# =============================================================================


class CreateSessionResponse(BaseModel):
    """Response body for POST /api/terminal/sessions."""

    session_id: str = Field(..., description="Unique session identifier")
    sandbox_id: str = Field(..., description="Sandbox bound to this session")
    status: str = Field(..., description="Session status")
    created_at: str = Field(..., description="ISO timestamp of creation")
    expires_in_ms: int = Field(..., description="Inactivity window before the session is reclaimed")


class CommandHistoryItem(BaseModel):
    """One entry of a session's command history."""

    command_id: str
    command: str
    language: str
    submitted_at: str = Field(..., description="ISO timestamp of submission")
    status: str = Field(..., description="started, completed or failed")
    exit_code: Optional[int] = None
    duration_ms: Optional[int] = None


class SessionStateResponse(BaseModel):
    """Response body for GET /api/terminal/sessions/{id}."""

    session_id: str = Field(..., description="Session identifier")
    sandbox_id: str = Field(..., description="Sandbox bound to this session")
    status: str = Field(..., description="active, idle or destroyed")
    created_at: str = Field(..., description="ISO timestamp of creation")
    last_activity_at: str = Field(..., description="ISO timestamp of last activity")
    command_history: List[CommandHistoryItem] = Field(default_factory=list)
    uptime_ms: int = Field(..., description="Milliseconds since creation")


class DeleteSessionResponse(BaseModel):
    """Response body for DELETE /api/terminal/sessions/{id}."""

    message: str
    session_id: str


# =============================================================================
# Command Endpoint Schemas
# =============================================================================


class ExecuteCommandRequest(BaseModel):
    """Request body for POST /api/terminal/{id}/execute."""

    command: str = Field(..., description="Shell command to run", min_length=1, max_length=10000)
    language: Language = Field("bash", description="Language of the command")
    timeout_ms: Optional[int] = Field(
        None, description="Execution timeout in milliseconds", ge=1000, le=300000
    )


class ExecuteCommandResponse(BaseModel):
    """Response body for POST /api/terminal/{id}/execute."""

    command_id: str = Field(..., description="Identifier to match stream events against")
    status: str = Field("started", description="Always 'started'; results arrive on the stream")
    message: str


# =============================================================================
# Admin Schemas
# =============================================================================


class StatsResponse(BaseModel):
    """Response body for GET /api/terminal/stats."""

    total_sessions: int
    active_sessions: int
    idle_sessions: int
    destroyed_sessions: int
    total_commands: int
    connected_clients: int


class CleanupError(BaseModel):
    session_id: str
    error: str


class CleanupResponse(BaseModel):
    """Response body for POST /api/terminal/cleanup."""

    message: str
    cleaned_sessions: int
    errors: List[CleanupError] = Field(default_factory=list)


# =============================================================================
# Health Schemas
# =============================================================================


class HealthResponse(BaseModel):
    """Response body for GET /health."""

    status: str = Field(..., description="Health status")
    version: str = Field(..., description="API version")


# =============================================================================
# Error Schemas
# =============================================================================


class ErrorDetail(BaseModel):
    """Error detail."""

    code: str = Field(..., description="Error code")
    message: str = Field(..., description="Error message")
    request_id: Optional[str] = Field(None, description="Request ID for tracing")


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: ErrorDetail
