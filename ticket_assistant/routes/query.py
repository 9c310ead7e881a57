"""
Natural-language query endpoint
"""
from fastapi import APIRouter, Depends

from ticket_assistant.deps import get_pipeline
from ticket_assistant.models.schemas import QueryAnswer, QueryRequest
from ticket_assistant.services.pipeline import QueryPipeline
from ticket_assistant.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1/query", tags=["query"])


@router.post("/{backend}", response_model=QueryAnswer)
async def query_tickets(
    backend: str,
    request: QueryRequest,
    pipeline: QueryPipeline = Depends(get_pipeline)
) -> QueryAnswer:
    """
    Answer a natural-language question or command about the backend's tickets

    Always returns 200: failures are reported in the answer text (❌) with
    kind ERROR / FALLBACK_FAILURE and confidence 0.

    Args:
        backend: "zendesk" or "intercom"
        request: Query text plus the previous turn's results, if any

    Returns:
        QueryAnswer
    """
    logger.info(f"[{backend}] query: {request.query[:100]}")
    return await pipeline.handle_query(request.query, request.context)
