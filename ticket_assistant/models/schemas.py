"""
Pydantic models for the ticket query pipeline

Answer, context and history shapes exchanged between pipeline stages and
returned to HTTP callers.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, Any, List

from pydantic import BaseModel, Field

from ticket_assistant.models.ticket import TicketAggregates, TicketRecord


# ============================================================================
# Enums
# ============================================================================

class AnswerSource(str, Enum):
    """Which kind of data produced the answer"""
    CACHE = "cache"
    LIVE = "live"
    AI = "ai"


class AnswerKind(str, Enum):
    """Outcome category of an answer"""
    ANSWER = "answer"
    MISSING_CONTEXT = "missing_context"
    AMBIGUOUS_ENTITY = "ambiguous_entity"
    CONFIRMATION_REQUIRED = "confirmation_required"
    UNSUPPORTED = "unsupported"
    FALLBACK_FAILURE = "fallback_failure"
    ERROR = "error"


class Intent(str, Enum):
    """Operations the dispatcher recognizes"""
    REFRESH = "refresh"
    GENERATE_REPLY = "generate_reply"
    CREATE = "create"
    CONFIRM_DELETE = "confirm_delete"
    CONFIRM_SPAM = "confirm_spam"
    CONFIRM_MERGE = "confirm_merge"
    DELETE = "delete"
    SPAM = "spam"
    RESTORE = "restore"
    MERGE = "merge"
    UPDATE_STATUS = "update_status"
    UPDATE_PRIORITY = "update_priority"
    ASSIGN = "assign"
    TAG_ADD = "tag_add"
    TAG_REMOVE = "tag_remove"
    LIST_USERS = "list_users"


# ============================================================================
# Pipeline Models
# ============================================================================

class QueryContext(BaseModel):
    """Previous turn, used for ordinal references like "the second ticket" """
    last_results: List[TicketRecord] = Field(default_factory=list)
    last_query: Optional[str] = None


class StageAnswer(BaseModel):
    """Terminal answer produced by one pipeline stage"""
    answer: str
    source: AnswerSource
    confidence: float = Field(..., ge=0.0, le=1.0)
    kind: AnswerKind = AnswerKind.ANSWER
    results: Optional[List[TicketRecord]] = None


class QueryAnswer(StageAnswer):
    """Answer returned from ``QueryPipeline.handle_query``"""
    processing_time_ms: int = 0


class ConversationHistoryEntry(BaseModel):
    """One query/answer exchange kept in the history log"""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    query: str
    response: str
    source: AnswerSource
    confidence: float = Field(..., ge=0.0, le=1.0)


# ============================================================================
# API Models
# ============================================================================

class QueryRequest(BaseModel):
    """Natural-language query from the chat terminal"""
    query: str = Field("", max_length=2000)
    context: Optional[QueryContext] = None


class StatsResponse(BaseModel):
    """Cached ticket statistics"""
    backend: str
    total: int
    fetched_at: float
    aggregates: TicketAggregates
    formatted: str


class RefreshResponse(BaseModel):
    """Result of a forced cache refresh"""
    backend: str
    success: bool
    ticket_count: int = 0
    message: str
    error: Optional[str] = None


class ErrorResponse(BaseModel):
    """Standard error body"""
    detail: str
    meta: Dict[str, Any] = Field(default_factory=dict)
