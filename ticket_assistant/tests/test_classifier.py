"""
Unit tests for the Fast-Path Classifier

Tests:
- Total count matches the snapshot
- Tag, status, priority and age counts
- Breakdown answers
- Operation, analytical and listing queries are left alone
- Statistics block formatting
"""
import pytest

from ticket_assistant.models.schemas import AnswerKind, AnswerSource
from ticket_assistant.services.classifier import format_ticket_stats, try_classify
from ticket_assistant.services.ticket_cache import build_snapshot
from ticket_assistant.tests.conftest import NOW


@pytest.fixture
def snapshot(sample_records):
    """Snapshot of the five sample records"""
    return build_snapshot(sample_records, NOW)


class TestCounts:
    """Test single-number answers"""

    def test_total(self, snapshot):
        """Test total equals the number of cached records"""
        answer = try_classify("how many tickets do we have?", snapshot)

        assert answer.answer == "✅ There are **5** tickets in total."
        assert answer.source == AnswerSource.CACHE
        assert answer.kind == AnswerKind.ANSWER
        assert answer.confidence == 0.99

    def test_total_empty_cache(self):
        """Test empty cache answers zero instead of falling through"""
        answer = try_classify("how many tickets do we have?", build_snapshot([], NOW))
        assert "**0** tickets" in answer.answer

    def test_tag_count(self, snapshot):
        """Test tagged-count questions are not answered with the total"""
        answer = try_classify("How many tickets are tagged billing?", snapshot)
        assert answer.answer == "✅ **3** tickets are tagged **billing**."

    def test_unknown_tag_is_zero(self, snapshot):
        answer = try_classify("how many tickets are tagged refund?", snapshot)
        assert "**0** tickets are tagged **refund**" in answer.answer

    def test_status_count(self, snapshot):
        """Test status counts with aliases"""
        assert "**2** tickets are **open**" in try_classify("how many tickets are open?", snapshot).answer
        assert "**1** ticket is **solved**" in try_classify("how many tickets are resolved?", snapshot).answer

    def test_priority_count(self, snapshot):
        answer = try_classify("how many high priority tickets?", snapshot)
        assert "**1** ticket with **high** priority" in answer.answer

    def test_age_window_is_cumulative(self, snapshot):
        """Test "last 7 days" includes the last-24h bucket"""
        answer = try_classify("how many tickets were created in the last 7 days?", snapshot)
        assert "**2** tickets created in the last 7 days" in answer.answer

    def test_older_than_30_days(self, snapshot):
        answer = try_classify("how many tickets are older than 30 days?", snapshot)
        assert "**2** tickets created more than 30 days ago" in answer.answer

    @pytest.mark.parametrize("query,expected", [
        ("how many tickets are older than 7 days?", "**3** tickets created more than 7 days ago"),
        ("how many tickets are more than 7 days old?", "**3** tickets created more than 7 days ago"),
        ("count tickets over 7 days", "**3** tickets created more than 7 days ago"),
        ("how many tickets are older than a week?", "**3** tickets created more than 7 days ago"),
        ("how many tickets are older than 24 hours?", "**4** tickets created more than 24 hours ago"),
        ("how many tickets are older than a month?", "**2** tickets created more than 30 days ago"),
    ])
    def test_older_than_counts_outside_window(self, snapshot, query, expected):
        """Test "older than N" is the complement of the last-N window"""
        answer = try_classify(query, snapshot)
        assert expected in answer.answer


class TestBreakdowns:
    """Test multi-line breakdown answers"""

    def test_status_breakdown(self, snapshot):
        answer = try_classify("status breakdown", snapshot)

        assert "Status breakdown (5 tickets):" in answer.answer
        assert "- **open**: 2" in answer.answer
        assert answer.confidence == 0.95

    def test_priority_breakdown(self, snapshot):
        answer = try_classify("priority breakdown", snapshot)
        assert "- **normal**: 2" in answer.answer

    def test_tag_breakdown(self, snapshot):
        answer = try_classify("show me the top tags", snapshot)
        assert "- **billing**: 3" in answer.answer

    def test_age_breakdown(self, snapshot):
        answer = try_classify("age breakdown", snapshot)
        assert "- Older than 30 days: 2" in answer.answer


class TestGuards:
    """Test queries the fast path must not answer"""

    @pytest.mark.parametrize("query", [
        "close the first ticket",
        "add tag billing to the first ticket",
        "which ones need attention?",
        "how many tickets mention refunds?",
        "show top 5 open tickets",
        "what is the most common complaint?",
    ])
    def test_not_answered(self, snapshot, query):
        assert try_classify(query, snapshot) is None


class TestFormatTicketStats:
    """Test the statistics block"""

    def test_sections(self, snapshot):
        text = format_ticket_stats(snapshot)

        assert text.startswith("📊 **Ticket statistics** (5 total)")
        assert "**By status:**" in text
        assert "- **billing**: 3" in text
        assert "- Last 24 hours: 1" in text
        assert text.endswith("Last updated: 2023-11-14 22:13:20 UTC")

    def test_empty(self):
        text = format_ticket_stats(build_snapshot([], NOW))
        assert "(0 total)" in text
        assert "- (no tickets in cache)" in text
