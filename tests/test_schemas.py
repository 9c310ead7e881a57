"""
Tests for Pydantic schemas to verify validation logic
"""
import pytest
from pydantic import ValidationError

from ticket_assistant.models.schemas import (
    AnswerKind,
    AnswerSource,
    ConversationHistoryEntry,
    QueryAnswer,
    QueryContext,
    QueryRequest,
    StageAnswer,
)
from ticket_assistant.models.ticket import (
    AgeBuckets,
    TicketCacheSnapshot,
    TicketPatch,
    TicketRecord,
)


def _record(**overrides):
    data = {"id": 1, "status": "open", "created_at": 0.0, "updated_at": 0.0}
    data.update(overrides)
    return TicketRecord(**data)


class TestTicketRecord:
    """Test TicketRecord model validation"""

    def test_defaults(self):
        """Test optional fields default sensibly"""
        record = _record()
        assert record.priority == "normal"
        assert record.subject == ""
        assert record.tags == []
        assert record.assignee_id is None

    def test_tags_deduplicated_in_order(self):
        """Test tags behave as a set but keep first-seen order"""
        record = _record(tags=["vip", "billing", "vip", " ", "billing"])
        assert record.tags == ["vip", "billing"]

    def test_frozen(self):
        """Test records cannot be modified in place"""
        record = _record()
        with pytest.raises(ValidationError):
            record.status = "closed"

    def test_string_ids(self):
        """Test Intercom-style string ids are kept"""
        assert _record(id="215").id == "215"


class TestTicketPatch:
    """Test TicketPatch helpers"""

    def test_empty(self):
        assert TicketPatch().is_empty()

    def test_not_empty(self):
        assert not TicketPatch(add_tags=["billing"]).is_empty()
        assert not TicketPatch(status="closed").is_empty()


class TestSnapshot:
    """Test snapshot models"""

    def test_age_bucket_total(self):
        buckets = AgeBuckets(less_than_24h=1, less_than_7d=2, less_than_30d=3, older_than_30d=4)
        assert buckets.total == 10

    def test_snapshot_total_and_find(self):
        snapshot = TicketCacheSnapshot(fetched_at=0.0, records=(_record(id=1), _record(id="2")))
        assert snapshot.total == 2
        assert snapshot.find("1").id == 1
        assert snapshot.find(2).id == "2"


class TestAnswers:
    """Test answer models"""

    def test_confidence_bounds(self):
        """Test confidence must be within [0, 1]"""
        with pytest.raises(ValidationError):
            StageAnswer(answer="✅ ok", source=AnswerSource.CACHE, confidence=1.5)
        with pytest.raises(ValidationError):
            StageAnswer(answer="✅ ok", source=AnswerSource.CACHE, confidence=-0.1)

    def test_default_kind(self):
        answer = StageAnswer(answer="✅ ok", source=AnswerSource.AI, confidence=0.85)
        assert answer.kind == AnswerKind.ANSWER
        assert answer.results is None

    def test_query_answer_from_stage_answer(self):
        """Test pipeline answers carry processing time"""
        stage = StageAnswer(answer="✅ ok", source=AnswerSource.LIVE, confidence=1.0, results=[_record()])
        answer = QueryAnswer(**stage.model_dump(), processing_time_ms=12)
        assert answer.processing_time_ms == 12
        assert answer.results[0].id == 1

    def test_history_entry_timestamp(self):
        entry = ConversationHistoryEntry(query="q", response="r", source=AnswerSource.CACHE, confidence=0.9)
        assert entry.timestamp.tzinfo is not None


class TestQueryRequest:
    """Test request validation"""

    def test_context_optional(self):
        request = QueryRequest(query="how many tickets?")
        assert request.context is None

    def test_max_length(self):
        with pytest.raises(ValidationError):
            QueryRequest(query="x" * 2001)

    def test_context_parses_records(self):
        request = QueryRequest(
            query="close the first ticket",
            context={"last_results": [{"id": 7, "status": "open", "created_at": 0, "updated_at": 0}]},
        )
        assert isinstance(request.context, QueryContext)
        assert request.context.last_results[0].id == 7
