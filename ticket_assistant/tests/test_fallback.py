"""
Unit tests for the Context-Grounded Fallback

Tests:
- Prompt contents (statistics, ticket summaries, previous results, history)
- Empty cache notice
- Completion failure answer
- Listing results attached to the answer
"""
from datetime import datetime, timezone

import pytest

from ticket_assistant.models.schemas import (
    AnswerKind,
    AnswerSource,
    ConversationHistoryEntry,
    QueryContext,
)
from ticket_assistant.services.errors import CompletionError
from ticket_assistant.services.fallback import (
    ContextGroundedFallback,
    format_time_ago,
    summarize_ticket,
)
from ticket_assistant.services.ticket_cache import build_snapshot
from ticket_assistant.tests.conftest import NOW, make_record


@pytest.fixture
def snapshot(sample_records):
    return build_snapshot(sample_records, NOW)


@pytest.fixture
def fallback(completion):
    """Fallback showing at most three tickets in the prompt"""
    return ContextGroundedFallback(completion, ticket_limit=3, listing_default=2, clock=lambda: NOW)


class TestBuildSystemPrompt:
    """Test prompt assembly"""

    def test_statistics_and_tickets(self, fallback, snapshot):
        """Test aggregates and the first N ticket summaries"""
        prompt = fallback.build_system_prompt(snapshot, [])

        assert "- Total: 5" in prompt
        assert "open:2" in prompt
        assert "TICKETS (first 3 of 5):" in prompt
        assert "#42 [high/open] Cannot log in" in prompt
        assert "#45" not in prompt

    def test_empty_cache_notice(self, fallback):
        """Test the model is told there is nothing to report"""
        prompt = fallback.build_system_prompt(build_snapshot([], NOW), [])

        assert "There are no tickets in cache" in prompt
        assert "TICKETS (" not in prompt

    def test_previous_results(self, fallback, snapshot, sample_records):
        """Test the previous turn's results are included"""
        context = QueryContext(last_results=sample_records[3:], last_query="show old tickets")

        prompt = fallback.build_system_prompt(snapshot, [], context)

        assert 'PREVIOUS RESULTS (for "show old tickets"):' in prompt
        assert "#46 [normal/closed] Feature request" in prompt

    def test_history(self, fallback, snapshot):
        """Test history turns with relative time and truncated response"""
        entry = ConversationHistoryEntry(
            timestamp=datetime.fromtimestamp(NOW - 180, tz=timezone.utc),
            query="how many open?",
            response="y" * 300,
            source=AnswerSource.CACHE,
            confidence=0.95,
        )

        prompt = fallback.build_system_prompt(snapshot, [entry])

        assert "RECENT CONVERSATION HISTORY (Last 1 interactions):" in prompt
        assert "[1] 3 minutes ago" in prompt
        assert "Assistant (cache, 95%): " + "y" * 200 in prompt
        assert "y" * 201 not in prompt


class TestAnswer:
    """Test the completion call"""

    @pytest.mark.asyncio
    async def test_success(self, fallback, snapshot, completion):
        """Test answer text, source and confidence"""
        answer = await fallback.answer("which customers are unhappy?", snapshot, [])

        assert answer.answer == "✅ There are 2 open tickets: #42 and #44."
        assert answer.source == AnswerSource.AI
        assert answer.confidence == 0.85
        assert answer.results is None
        system_prompt, user_message = completion.complete.call_args.args
        assert "CURRENT TICKET DATA" in system_prompt
        assert user_message == "which customers are unhappy?"

    @pytest.mark.asyncio
    async def test_listing_results(self, fallback, snapshot):
        """Test listing requests carry the first N records as results"""
        answer = await fallback.answer("show top 3 tickets", snapshot, [])
        assert [r.id for r in answer.results] == [42, 43, 44]

        answer = await fallback.answer("list recent tickets", snapshot, [])
        assert [r.id for r in answer.results] == [42, 43]

    @pytest.mark.asyncio
    async def test_completion_failure(self, fallback, snapshot, completion):
        """Test a failed completion becomes a fallback-failure answer"""
        completion.complete.side_effect = CompletionError("rate limited")

        answer = await fallback.answer("summarize", snapshot, [])

        assert answer.answer.startswith("❌")
        assert answer.kind == AnswerKind.FALLBACK_FAILURE
        assert answer.confidence == 0.0

    @pytest.mark.asyncio
    async def test_no_snapshot(self, fallback, completion):
        """Test an unavailable store is reported without calling the model"""
        answer = await fallback.answer("summarize", None, [])

        assert answer.answer.startswith("❌ Ticket store unavailable")
        assert answer.kind == AnswerKind.ERROR
        completion.complete.assert_not_called()


class TestHelpers:
    """Test formatting helpers"""

    @pytest.mark.parametrize("seconds_ago,expected", [
        (10, "Just now"),
        (60, "1 minute ago"),
        (600, "10 minutes ago"),
        (3600, "1 hour ago"),
        (3 * 3600, "3 hours ago"),
        (86400, "1 day ago"),
        (5 * 86400, "5 days ago"),
    ])
    def test_format_time_ago(self, seconds_ago, expected):
        timestamp = datetime.fromtimestamp(NOW - seconds_ago, tz=timezone.utc)
        assert format_time_ago(timestamp, NOW) == expected

    def test_summarize_ticket(self):
        record = make_record(7, "Login", description="one two three", tags=["a", "b"])
        assert summarize_ticket(record) == '#7 [normal/open] Login | 3 words | "one two three" | tags: a, b'
