"""
Query Pipeline

Entry point for natural-language ticket queries. Each query runs through:

1. Help / small talk
2. Fast-Path Classifier (cached aggregates, no network)
3. Operation Dispatcher (store mutations)
4. Context-Grounded Fallback (language model)

Every answer is appended to the conversation history. Nothing raises past
``handle_query``.
"""
import re
import time
from typing import List, Optional

from ticket_assistant.config import Settings, get_settings
from ticket_assistant.models.schemas import (
    AnswerKind,
    AnswerSource,
    ConversationHistoryEntry,
    Intent,
    QueryAnswer,
    QueryContext,
    StageAnswer,
)
from ticket_assistant.models.ticket import TicketCacheSnapshot
from ticket_assistant.services.classifier import try_classify
from ticket_assistant.services.dispatcher import OperationDispatcher
from ticket_assistant.services.errors import TicketAssistantError
from ticket_assistant.services.fallback import ContextGroundedFallback
from ticket_assistant.services.history import ConversationHistoryLog
from ticket_assistant.services.llm_service import CompletionClient
from ticket_assistant.services.query_patterns import classify_intent
from ticket_assistant.services.store import TicketStore
from ticket_assistant.services.ticket_cache import TicketCache
from ticket_assistant.utils.logger import get_logger
from ticket_assistant.utils.validators import sanitize_input

logger = get_logger(__name__)

HELP_RE = re.compile(r"^\s*(help|\?|commands|what can you do\??)\s*$", re.IGNORECASE)
GREETING_RE = re.compile(r"^\s*(hi|hello|hey|yo|good\s+(morning|afternoon|evening))\b[\s!.]*$", re.IGNORECASE)
THANKS_RE = re.compile(r"^\s*(thanks|thank\s+you|thx|cheers)\b[\s!.]*$", re.IGNORECASE)

HELP_TEXT = """✅ **Ticket Assistant**

**Statistics (instant):**
• "how many tickets do we have?"
• "how many tickets are open?"
• "priority breakdown"
• "how many tickets were created in the last 7 days?"
• "how many tickets are tagged billing?"

**Browse:**
• "show top 5 tickets"
• "list recent tickets"

**Operations (after listing tickets):**
• "close the first ticket"
• "set priority to high for the second ticket"
• "assign ticket #42 to agent@example.com"
• "add tag billing to the first ticket"
• "delete ticket #42" (asks for confirmation)
• "build a reply for the first ticket"
• "create a ticket about login failures for bob@example.com"

**Data:**
• "refresh" reloads tickets from the helpdesk
• "list users" shows agents and customers

Anything else is answered by the AI assistant using the current ticket data."""


class PipelineContext:
    """
    Everything one backend's pipeline needs; no module-level state
    """

    def __init__(
        self,
        store: TicketStore,
        cache: TicketCache,
        history: ConversationHistoryLog,
        completion: CompletionClient,
        settings: Optional[Settings] = None
    ):
        self.store = store
        self.cache = cache
        self.history = history
        self.completion = completion
        self.settings = settings or get_settings()


class QueryPipeline:
    """
    Fast path -> dispatcher -> fallback over one ticket store
    """

    def __init__(self, ctx: PipelineContext):
        self.ctx = ctx
        self.dispatcher = OperationDispatcher(ctx.store, ctx.cache, ctx.completion)
        self.fallback = ContextGroundedFallback(
            ctx.completion,
            ticket_limit=ctx.settings.fallback_ticket_limit,
            listing_default=ctx.settings.listing_default_count,
        )

    @staticmethod
    def _canned(query: str) -> Optional[StageAnswer]:
        if not query or HELP_RE.match(query):
            return StageAnswer(answer=HELP_TEXT, source=AnswerSource.CACHE, confidence=1.0)
        if GREETING_RE.match(query):
            return StageAnswer(
                answer='✅ Hello! Ask me about your tickets, e.g. "how many tickets are open?" or type "help".',
                source=AnswerSource.CACHE,
                confidence=1.0,
            )
        if THANKS_RE.match(query):
            return StageAnswer(
                answer="✅ You're welcome! Anything else about your tickets?",
                source=AnswerSource.CACHE,
                confidence=1.0,
            )
        return None

    @staticmethod
    def _is_refresh(query: str) -> bool:
        classification = classify_intent(query)
        return classification is not None and classification.intent == Intent.REFRESH

    async def _load_snapshot(self) -> Optional[TicketCacheSnapshot]:
        try:
            return await self.ctx.cache.get()
        except TicketAssistantError as e:
            logger.error(f"Ticket snapshot unavailable for {self.ctx.store.name}: {e}")
            return None

    async def _answer(self, query: str, context: QueryContext) -> StageAnswer:
        canned = self._canned(query)
        if canned is not None:
            return canned

        # A refresh rebuilds the cache itself; preloading it would fetch twice
        if self._is_refresh(query):
            refreshed = await self.dispatcher.try_dispatch(query, context)
            if refreshed is not None:
                return refreshed

        snapshot = await self._load_snapshot()

        if snapshot is not None:
            fast = try_classify(query, snapshot)
            if fast is not None:
                return fast

        dispatched = await self.dispatcher.try_dispatch(query, context)
        if dispatched is not None:
            return dispatched

        recent = await self._recent_history()
        return await self.fallback.answer(query, snapshot, recent, context)

    async def _recent_history(self) -> List[ConversationHistoryEntry]:
        try:
            return await self.ctx.history.recent(self.ctx.settings.history_context_entries)
        except OSError as e:
            logger.warning(f"Could not read conversation history: {e}")
            return []

    async def _record(self, query: str, answer: StageAnswer) -> None:
        entry = ConversationHistoryEntry(
            query=query,
            response=answer.answer,
            source=answer.source,
            confidence=answer.confidence,
        )
        try:
            await self.ctx.history.append(entry)
        except OSError as e:
            logger.error(f"Failed to append conversation history: {e}")

    async def handle_query(self, text: str, context: Optional[QueryContext] = None) -> QueryAnswer:
        """
        Answer a natural-language ticket query

        Args:
            text: Raw user query
            context: Previous turn's results and query (for "the second ticket")

        Returns:
            QueryAnswer with answer text, source, confidence, kind,
            optional results and processing time
        """
        start_time = time.perf_counter()
        query = sanitize_input(text or "")
        context = context or QueryContext()

        try:
            answer = await self._answer(query, context)
        except Exception as e:
            logger.exception(f"Unexpected error handling query: {e}")
            answer = StageAnswer(
                answer=f"❌ Error processing query\n\nError: {e}\n\nPlease try again or ask for help with 'help'.",
                source=AnswerSource.LIVE,
                confidence=0.0,
                kind=AnswerKind.ERROR,
            )

        await self._record(query, answer)

        processing_time_ms = int((time.perf_counter() - start_time) * 1000)
        logger.info(
            f"Query answered by {answer.source.value} "
            f"(kind={answer.kind.value}, confidence={answer.confidence}, {processing_time_ms}ms)"
        )
        return QueryAnswer(**answer.model_dump(), processing_time_ms=processing_time_ms)
