"""
Integration tests for the Query Pipeline (fake store, mocked completion)

Tests:
- Help and small talk
- Stage order: fast path -> dispatcher -> fallback
- Snapshot and history failures never raise
- Every answer is recorded in the history log
- Processing time is reported
"""
from unittest.mock import AsyncMock, patch

import pytest

from ticket_assistant.models.schemas import AnswerKind, AnswerSource, QueryContext


class TestCanned:
    """Test help and small talk"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("query", ["help", "  ", "what can you do?"])
    async def test_help(self, pipeline, fake_store, query):
        answer = await pipeline.handle_query(query)

        assert "**Ticket Assistant**" in answer.answer
        assert answer.confidence == 1.0
        assert fake_store.fetch_count == 0

    @pytest.mark.asyncio
    async def test_greeting(self, pipeline):
        answer = await pipeline.handle_query("Hello!")
        assert answer.answer.startswith("✅ Hello!")


class TestStageOrder:
    """Test which stage answers"""

    @pytest.mark.asyncio
    async def test_fast_path(self, pipeline, completion):
        """Test counting questions never reach the model"""
        answer = await pipeline.handle_query("how many tickets are tagged billing?")

        assert answer.answer == "✅ **3** tickets are tagged **billing**."
        assert answer.source == AnswerSource.CACHE
        completion.complete.assert_not_called()

    @pytest.mark.asyncio
    async def test_dispatcher(self, pipeline, fake_store, sample_records):
        """Test commands are dispatched with the previous results"""
        context = QueryContext(last_results=sample_records[:2])

        answer = await pipeline.handle_query("close the second ticket", context)

        assert "**New Status:** closed" in answer.answer
        assert fake_store.calls_named("mutate")[0][1] == 43

    @pytest.mark.asyncio
    async def test_refresh_on_cold_cache_fetches_once(self, pipeline, fake_store):
        """Test a refresh does not preload the snapshot it is about to rebuild"""
        answer = await pipeline.handle_query("refresh")

        assert "Loaded **5** tickets" in answer.answer
        assert fake_store.fetch_count == 1

    @pytest.mark.asyncio
    async def test_fallback(self, pipeline, completion):
        """Test everything else goes to the model"""
        answer = await pipeline.handle_query("what is the most common complaint?")

        assert answer.source == AnswerSource.AI
        assert answer.confidence == 0.85
        completion.complete.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_fallback_listing(self, pipeline):
        answer = await pipeline.handle_query("show top 2 tickets")
        assert [r.id for r in answer.results] == [42, 43]


class TestFailures:
    """Test failures are answers, never exceptions"""

    @pytest.mark.asyncio
    async def test_store_down(self, pipeline, fake_store, completion):
        """Test an unavailable store skips the fast path and reports ❌"""
        fake_store.fail_fetch = True

        answer = await pipeline.handle_query("how many tickets do we have?")

        assert answer.answer.startswith("❌ Ticket store unavailable")
        assert answer.confidence == 0.0
        completion.complete.assert_not_called()

    @pytest.mark.asyncio
    async def test_store_down_still_dispatches(self, pipeline, fake_store):
        """Test confirmations do not need the snapshot"""
        fake_store.fail_fetch = True

        answer = await pipeline.handle_query("confirm delete ticket #43")

        assert answer.answer.startswith("✅ **Ticket Deleted**")

    @pytest.mark.asyncio
    async def test_history_write_failure(self, pipeline):
        """Test a failing history append does not fail the query"""
        with patch.object(pipeline.ctx.history, "append", new_callable=AsyncMock, side_effect=OSError("disk full")):
            answer = await pipeline.handle_query("how many tickets do we have?")

        assert "**5** tickets" in answer.answer

    @pytest.mark.asyncio
    async def test_unexpected_error(self, pipeline):
        """Test unexpected exceptions become ❌ answers"""
        with patch.object(pipeline.dispatcher, "try_dispatch", new_callable=AsyncMock, side_effect=KeyError("boom")):
            answer = await pipeline.handle_query("close the first ticket")

        assert answer.answer.startswith("❌ Error processing query")
        assert answer.kind == AnswerKind.ERROR
        assert answer.confidence == 0.0


class TestHistory:
    """Test answers are recorded"""

    @pytest.mark.asyncio
    async def test_every_answer_recorded(self, pipeline, history, fake_store):
        await pipeline.handle_query("how many tickets do we have?")
        fake_store.fail_fetch = True
        await pipeline.handle_query("refresh")

        entries = await history.recent(10)

        assert [e.query for e in entries] == ["how many tickets do we have?", "refresh"]
        assert entries[0].source == AnswerSource.CACHE
        assert entries[1].response.startswith("❌")

    @pytest.mark.asyncio
    async def test_history_in_fallback_prompt(self, pipeline, completion):
        await pipeline.handle_query("how many tickets do we have?")
        await pipeline.handle_query("what should we work on?")

        system_prompt = completion.complete.call_args.args[0]
        assert "User: how many tickets do we have?" in system_prompt


class TestProcessingTime:
    """Test timing metadata"""

    @pytest.mark.asyncio
    async def test_processing_time_reported(self, pipeline):
        answer = await pipeline.handle_query("how many tickets do we have?")
        assert answer.processing_time_ms >= 0
