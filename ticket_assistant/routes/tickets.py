"""
Ticket cache endpoints

- GET  /api/v1/tickets/{backend}/stats - Cached statistics (formatted + raw aggregates)
- POST /api/v1/tickets/{backend}/refresh - Invalidate and rebuild the cache
"""
from fastapi import APIRouter, Depends, HTTPException, status

from ticket_assistant.deps import get_pipeline
from ticket_assistant.models.schemas import RefreshResponse, StatsResponse
from ticket_assistant.services.classifier import format_ticket_stats
from ticket_assistant.services.errors import TicketAssistantError
from ticket_assistant.services.pipeline import QueryPipeline
from ticket_assistant.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1/tickets", tags=["tickets"])


@router.get("/{backend}/stats", response_model=StatsResponse)
async def ticket_stats(backend: str, pipeline: QueryPipeline = Depends(get_pipeline)) -> StatsResponse:
    """
    Statistics for the backend's cached tickets (refetches if the cache is stale)

    Raises:
        HTTPException: 502 if the helpdesk cannot be reached
    """
    try:
        snapshot = await pipeline.ctx.cache.get()
    except TicketAssistantError as e:
        logger.error(f"[{backend}] stats unavailable: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)) from e

    return StatsResponse(
        backend=backend,
        total=snapshot.total,
        fetched_at=snapshot.fetched_at,
        aggregates=snapshot.aggregates,
        formatted=format_ticket_stats(snapshot),
    )


@router.post("/{backend}/refresh", response_model=RefreshResponse)
async def refresh_tickets(backend: str, pipeline: QueryPipeline = Depends(get_pipeline)) -> RefreshResponse:
    """
    Drop the cached snapshot and fetch every ticket again

    A failed fetch is reported with success=False rather than an HTTP error,
    and leaves the cache empty.
    """
    cache = pipeline.ctx.cache
    cache.invalidate()
    try:
        snapshot = await cache.refresh()
    except TicketAssistantError as e:
        logger.error(f"[{backend}] refresh failed: {e}")
        return RefreshResponse(
            backend=backend,
            success=False,
            message="Refresh failed",
            error=str(e),
        )

    return RefreshResponse(
        backend=backend,
        success=True,
        ticket_count=snapshot.total,
        message=f"Loaded {snapshot.total} tickets",
    )
