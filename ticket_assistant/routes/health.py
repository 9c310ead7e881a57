"""
Health check endpoint

- GET /api/v1/health - Basic liveness check with uptime
"""
import time
from datetime import datetime, timezone

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from ticket_assistant import __version__

router = APIRouter(prefix="/api/v1/health", tags=["health"])

# Application start time for uptime calculation
APP_START_TIME = time.time()


class HealthResponse(BaseModel):
    """Basic health check response"""
    status: str = Field(..., description="Overall status")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), description="Check timestamp")
    version: str = Field(..., description="Application version")
    uptime_seconds: float = Field(..., description="Application uptime in seconds")


@router.get(
    "",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
    description="Returns application health status and uptime"
)
async def basic_health_check() -> HealthResponse:
    """
    Basic health check endpoint

    Always returns 200 OK. Does not contact the helpdesks or the language model.
    """
    uptime = time.time() - APP_START_TIME

    return HealthResponse(
        status="healthy",
        version=__version__,
        uptime_seconds=round(uptime, 2)
    )
