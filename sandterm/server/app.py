"""
FastAPI application factory.

Usage:
    from sandterm.server.app import create_app

    app = create_app()

Or run directly:
    uvicorn sandterm.server:app --reload
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from sandterm import __version__
from sandterm.exceptions import TerminalError
from sandterm.server.config import get_settings
from sandterm.server.exceptions import APIError
from sandterm.server.middleware import RequestTrackingMiddleware
from sandterm.server.routers import health, terminal
from sandterm.server.schemas import ErrorDetail, ErrorResponse
from sandterm.terminal.manager import TerminalSessionManager, get_terminal_manager

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    # Startup
    if app.state.manager is None:
        # Runtime detection shells out; keep it off the event loop
        app.state.manager = await asyncio.to_thread(get_terminal_manager)
    manager: TerminalSessionManager = app.state.manager
    await manager.start()

    yield

    # Shutdown
    await manager.shutdown()


def _error_response(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    request_id: Optional[str] = None,
) -> JSONResponse:
    state_request_id = getattr(request.state, "request_id", "unknown")
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=code,
                message=message,
                request_id=request_id or state_request_id,
            )
        ).model_dump(),
        headers={"X-Request-ID": state_request_id},
    )


def create_app(manager: Optional[TerminalSessionManager] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        manager: Terminal manager to serve; defaults to the process-wide
            container-backed manager, created at startup.

    Returns:
        Configured FastAPI application instance.
    """
    # Settings loaded for validation; app configuration is static.
    get_settings()

    app = FastAPI(
        title="sandterm API",
        description="Persistent terminal sessions over isolated sandboxes",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.manager = manager

    # Add middleware
    app.add_middleware(RequestTrackingMiddleware)

    # Exception handlers
    @app.exception_handler(TerminalError)
    async def terminal_error_handler(request: Request, exc: TerminalError) -> JSONResponse:
        """Handle session and execution errors."""
        if exc.status_code >= 500:
            logger.error("Terminal error on %s: %s", request.url.path, exc.to_dict())
        return _error_response(request, exc.status_code, exc.code, exc.message)

    @app.exception_handler(APIError)
    async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
        """Handle custom API errors."""
        return _error_response(
            request, exc.status_code, exc.code, exc.message, request_id=exc.request_id
        )

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected errors."""
        logger.exception("Unhandled error on %s", request.url.path)
        return _error_response(request, 500, "internal_error", "An internal error occurred")

    # Include routers
    app.include_router(health.router)
    app.include_router(terminal.router)

    return app


# Default app instance for uvicorn
app = create_app()
