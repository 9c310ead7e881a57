"""
Pydantic models for Ticket Assistant
"""

from ticket_assistant.models.ticket import (
    TicketId,
    TicketRecord,
    TicketPatch,
    HelpdeskUser,
    AgeBuckets,
    TicketAggregates,
    TicketCacheSnapshot,
)
from ticket_assistant.models.schemas import (
    # Enums
    AnswerSource,
    AnswerKind,
    Intent,

    # Pipeline Models
    QueryContext,
    StageAnswer,
    QueryAnswer,
    ConversationHistoryEntry,

    # API Models
    QueryRequest,
    StatsResponse,
    RefreshResponse,
    ErrorResponse,
)

__all__ = [
    # Ticket Models
    "TicketId",
    "TicketRecord",
    "TicketPatch",
    "HelpdeskUser",
    "AgeBuckets",
    "TicketAggregates",
    "TicketCacheSnapshot",

    # Enums
    "AnswerSource",
    "AnswerKind",
    "Intent",

    # Pipeline Models
    "QueryContext",
    "StageAnswer",
    "QueryAnswer",
    "ConversationHistoryEntry",

    # API Models
    "QueryRequest",
    "StatsResponse",
    "RefreshResponse",
    "ErrorResponse",
]
