"""
FastAPI dependencies

One pipeline per backend, built lazily and reused for the process lifetime.
"""
from functools import lru_cache

from fastapi import HTTPException, status

from ticket_assistant.config import get_settings
from ticket_assistant.services.errors import ConfigurationError
from ticket_assistant.services.history import ConversationHistoryLog
from ticket_assistant.services.intercom import IntercomStore
from ticket_assistant.services.llm_service import CompletionClient
from ticket_assistant.services.pipeline import PipelineContext, QueryPipeline
from ticket_assistant.services.store import TicketStore
from ticket_assistant.services.ticket_cache import TicketCache
from ticket_assistant.services.zendesk import ZendeskStore
from ticket_assistant.utils.logger import get_logger

logger = get_logger(__name__)

SUPPORTED_BACKENDS = ("zendesk", "intercom")


@lru_cache(maxsize=1)
def get_completion_client() -> CompletionClient:
    return CompletionClient()


def build_store(backend: str) -> TicketStore:
    """
    Instantiate the ticket store for a backend name

    Raises:
        ConfigurationError: If the backend's credentials are missing
        ValueError: If the backend is unknown
    """
    if backend == "zendesk":
        return ZendeskStore()
    if backend == "intercom":
        return IntercomStore()
    raise ValueError(f"Unknown backend: {backend}")


@lru_cache(maxsize=None)
def _build_pipeline(backend: str) -> QueryPipeline:
    settings = get_settings()
    store = build_store(backend)
    ttl = (
        settings.zendesk_cache_ttl_seconds if backend == "zendesk"
        else settings.intercom_cache_ttl_seconds
    )
    ctx = PipelineContext(
        store=store,
        cache=TicketCache(store, ttl_seconds=ttl),
        history=ConversationHistoryLog.for_backend(backend),
        completion=get_completion_client(),
        settings=settings,
    )
    logger.info(f"Pipeline ready for {backend} (cache TTL {ttl:.0f}s)")
    return QueryPipeline(ctx)


def get_pipeline(backend: str) -> QueryPipeline:
    """Resolve the ``{backend}`` path parameter to its pipeline"""
    if backend not in SUPPORTED_BACKENDS:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown backend '{backend}'. Supported: {', '.join(SUPPORTED_BACKENDS)}"
        )
    try:
        return _build_pipeline(backend)
    except ConfigurationError as e:
        logger.error(f"Backend {backend} is not configured: {e}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)) from e
