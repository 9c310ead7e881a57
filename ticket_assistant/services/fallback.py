"""
Context-Grounded Fallback

Answers anything the fast path and the dispatcher did not handle by asking
the language model, grounded in:
- Aggregate statistics from the cache snapshot
- One-line summaries of the first N tickets
- The previous turn's result list
- Recent conversation history
"""
import time
from datetime import datetime
from typing import Callable, List, Optional

from ticket_assistant.config import get_settings
from ticket_assistant.models.schemas import (
    AnswerKind,
    AnswerSource,
    ConversationHistoryEntry,
    QueryContext,
    StageAnswer,
)
from ticket_assistant.models.ticket import TicketCacheSnapshot, TicketRecord
from ticket_assistant.services.errors import CompletionError
from ticket_assistant.services.llm_service import CompletionClient
from ticket_assistant.services.query_patterns import extract_listing_count, is_listing_request
from ticket_assistant.utils.logger import get_logger

settings = get_settings()
logger = get_logger(__name__)

FALLBACK_CONFIDENCE = 0.85

PERSONA = """You are a helpful support analytics assistant. Answer questions about support tickets based on the provided data.

Be concise and direct. If asked for statistics, provide specific numbers. If asked to analyze, provide actionable insights.

INSTRUCTIONS:
- Answer only from the ticket data below; if the data cannot answer the question, say so clearly
- Be accurate with numbers and count carefully
- Reference specific ticket IDs (#id) when discussing individual tickets
- Use markdown (**, bullets) and keep lines under 250 characters
- Say "ticket" rather than "record", and do not mention caches, APIs or JSON
- Start with the answer immediately, without preambles"""

EMPTY_CACHE_NOTICE = (
    "There are no tickets in cache. Do not invent tickets, ids or counts; "
    "tell the user there are currently no tickets to report on."
)


def format_time_ago(timestamp: datetime, now: float) -> str:
    """Human-readable age of a history entry ("3 minutes ago")"""
    minutes = int((now - timestamp.timestamp()) // 60)
    if minutes < 1:
        return "Just now"
    if minutes == 1:
        return "1 minute ago"
    if minutes < 60:
        return f"{minutes} minutes ago"

    hours = minutes // 60
    if hours == 1:
        return "1 hour ago"
    if hours < 24:
        return f"{hours} hours ago"

    days = hours // 24
    return "1 day ago" if days == 1 else f"{days} days ago"


def summarize_ticket(record: TicketRecord) -> str:
    description = record.description.replace("\n", " ")
    word_count = len(record.description.split())
    line = f"#{record.id} [{record.priority}/{record.status}] {record.subject} | {word_count} words"
    if description:
        line += f' | "{description[:100]}"'
    if record.tags:
        line += f" | tags: {', '.join(record.tags)}"
    return line


def _format_counts(counts: dict) -> str:
    return " | ".join(f"{k}:{v}" for k, v in counts.items()) or "none"


class ContextGroundedFallback:
    """
    Builds the grounded prompt and makes a single completion call
    """

    def __init__(
        self,
        completion: CompletionClient,
        ticket_limit: Optional[int] = None,
        listing_default: Optional[int] = None,
        clock: Callable[[], float] = time.time
    ):
        self.completion = completion
        self.ticket_limit = ticket_limit if ticket_limit is not None else settings.fallback_ticket_limit
        self.listing_default = (
            listing_default if listing_default is not None else settings.listing_default_count
        )
        self._clock = clock

    def build_system_prompt(
        self,
        snapshot: TicketCacheSnapshot,
        recent_history: List[ConversationHistoryEntry],
        context: Optional[QueryContext] = None
    ) -> str:
        """
        Assemble persona, statistics, ticket summaries, prior results and history

        Args:
            snapshot: Cache snapshot the answer must be grounded in
            recent_history: Newest history entries, oldest first
            context: Previous turn (results and query), if any

        Returns:
            System prompt text
        """
        sections = [PERSONA]

        if snapshot.total == 0:
            sections.append(f"CURRENT TICKET DATA:\n{EMPTY_CACHE_NOTICE}")
        else:
            age = snapshot.aggregates.by_age
            sections.append(
                "CURRENT TICKET DATA:\n"
                f"- Total: {snapshot.total}\n"
                f"- By Status: {_format_counts(snapshot.aggregates.by_status)}\n"
                f"- By Priority: {_format_counts(snapshot.aggregates.by_priority)}\n"
                f"- By Age: <24h:{age.less_than_24h} | <7d:{age.less_than_7d} | "
                f"<30d:{age.less_than_30d} | >30d:{age.older_than_30d}"
            )

            shown = snapshot.records[:self.ticket_limit]
            header = f"TICKETS (first {len(shown)} of {snapshot.total}):"
            sections.append("\n".join([header, *(summarize_ticket(r) for r in shown)]))

        if context and context.last_results:
            lines = [summarize_ticket(r) for r in context.last_results]
            label = "PREVIOUS RESULTS"
            if context.last_query:
                label += f' (for "{context.last_query}")'
            sections.append("\n".join([f"{label}:", *lines]))

        if recent_history:
            now = self._clock()
            turns = []
            for index, entry in enumerate(recent_history, start=1):
                turns.append(
                    f"[{index}] {format_time_ago(entry.timestamp, now)}\n"
                    f"User: {entry.query}\n"
                    f"Assistant ({entry.source.value}, {entry.confidence * 100:.0f}%): "
                    f"{entry.response[:200]}"
                )
            sections.append(
                f"RECENT CONVERSATION HISTORY (Last {len(recent_history)} interactions):\n\n"
                + "\n\n".join(turns)
            )

        return "\n\n".join(sections)

    def _listing_results(self, query: str, snapshot: TicketCacheSnapshot) -> Optional[List[TicketRecord]]:
        if not is_listing_request(query):
            return None
        count = extract_listing_count(query, default=self.listing_default)
        return list(snapshot.records[:count])

    async def answer(
        self,
        query: str,
        snapshot: Optional[TicketCacheSnapshot],
        recent_history: List[ConversationHistoryEntry],
        context: Optional[QueryContext] = None
    ) -> StageAnswer:
        """
        Answer a query with the language model

        Never raises: a missing snapshot or a failed completion becomes a ❌ answer.
        """
        if snapshot is None:
            return StageAnswer(
                answer="❌ Ticket store unavailable. Ticket data could not be loaded, please try again shortly.",
                source=AnswerSource.LIVE,
                confidence=0.0,
                kind=AnswerKind.ERROR,
            )

        system_prompt = self.build_system_prompt(snapshot, recent_history, context)
        logger.info(f"Fallback prompt built ({len(system_prompt)} chars, {snapshot.total} tickets)")

        try:
            text = await self.completion.complete(system_prompt, query)
        except CompletionError as e:
            logger.error(f"Fallback completion failed: {e}")
            return StageAnswer(
                answer=f"❌ Error processing query\n\nError: {e}\n\nPlease try again or ask for help with 'help'.",
                source=AnswerSource.AI,
                confidence=0.0,
                kind=AnswerKind.FALLBACK_FAILURE,
            )

        return StageAnswer(
            answer=f"✅ {text}",
            source=AnswerSource.AI,
            confidence=FALLBACK_CONFIDENCE,
            results=self._listing_results(query, snapshot),
        )
