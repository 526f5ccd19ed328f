"""
Health check endpoint.

Provides basic health status for load balancers and monitoring.
"""
from fastapi import APIRouter

from sandterm import __version__
from sandterm.server.schemas import HealthResponse


router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """
    Health check endpoint.

    Does not require authentication.
    """
    return HealthResponse(
        status="healthy",
        version=__version__,
    )
