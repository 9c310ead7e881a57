"""
Business Logic Services
"""
from .errors import CompletionError, ConfigurationError, StoreUnavailable, TicketAssistantError
from .store import TicketStore
from .zendesk import ZendeskStore
from .intercom import IntercomStore
from .ticket_cache import TicketCache, build_snapshot
from .classifier import format_ticket_stats, try_classify
from .llm_service import CompletionClient
from .history import ConversationHistoryLog
from .dispatcher import OperationDispatcher
from .fallback import ContextGroundedFallback
from .pipeline import PipelineContext, QueryPipeline

__all__ = [
    "TicketAssistantError",
    "StoreUnavailable",
    "CompletionError",
    "ConfigurationError",
    "TicketStore",
    "ZendeskStore",
    "IntercomStore",
    "TicketCache",
    "build_snapshot",
    "try_classify",
    "format_ticket_stats",
    "CompletionClient",
    "ConversationHistoryLog",
    "OperationDispatcher",
    "ContextGroundedFallback",
    "PipelineContext",
    "QueryPipeline",
]
