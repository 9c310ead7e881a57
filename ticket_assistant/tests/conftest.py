"""
pytest configuration and shared fixtures

Provides an in-memory ticket store that records every call, so pipeline,
dispatcher and cache tests run without any helpdesk or language model.
"""
from typing import Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from ticket_assistant.models.ticket import HelpdeskUser, TicketId, TicketPatch, TicketRecord
from ticket_assistant.services.errors import StoreUnavailable
from ticket_assistant.services.history import ConversationHistoryLog
from ticket_assistant.services.pipeline import PipelineContext, QueryPipeline
from ticket_assistant.services.store import TicketStore
from ticket_assistant.services.ticket_cache import TicketCache

NOW = 1_700_000_000.0
DAY = 24 * 60 * 60


def make_record(
    ticket_id: TicketId,
    subject: str = "Cannot log in",
    status: str = "open",
    priority: str = "normal",
    age_days: float = 0.5,
    tags: Optional[List[str]] = None,
    assignee_id: Optional[TicketId] = None,
    description: str = "I reset my password and still cannot log in.",
) -> TicketRecord:
    """Build a record created ``age_days`` before NOW"""
    created = NOW - age_days * DAY
    return TicketRecord(
        id=ticket_id,
        subject=subject,
        description=description,
        status=status,
        priority=priority,
        created_at=created,
        updated_at=created,
        assignee_id=assignee_id,
        tags=tags or [],
    )


class FakeTicketStore(TicketStore):
    """In-memory TicketStore; every call is appended to ``calls``"""

    name = "fakedesk"

    STATUSES = {"new", "open", "pending", "hold", "solved", "closed"}
    PRIORITIES = {"urgent", "high", "normal", "low"}

    def __init__(self, records: Optional[List[TicketRecord]] = None, **capabilities):
        super().__init__("https://fake.example.com/api", timeout=1.0, rate_limit_wait=0.0)
        self.records: Dict[str, TicketRecord] = {str(r.id): r for r in (records or [])}
        self.users: List[HelpdeskUser] = []
        self.calls: List[tuple] = []
        self.fetch_count = 0
        self.fail_fetch = False
        self.fail_mutations = False
        self.fail_after_write = False
        for flag in ("create", "reply", "delete", "spam", "restore", "merge"):
            setattr(self, f"supports_{flag}", capabilities.get(flag, True))

    def _check(self) -> None:
        if self.fail_mutations:
            raise StoreUnavailable("fakedesk API returned 500", status_code=500)

    async def fetch_all(self) -> List[TicketRecord]:
        self.fetch_count += 1
        if self.fail_fetch:
            raise StoreUnavailable("fakedesk request failed: connection refused")
        return list(self.records.values())

    async def get_record(self, ticket_id: TicketId) -> TicketRecord:
        self.calls.append(("get_record", ticket_id))
        record = self.records.get(str(ticket_id))
        if record is None:
            raise StoreUnavailable(f"fakedesk API returned 404 for ticket {ticket_id}", status_code=404)
        return record

    async def mutate(self, ticket_id: TicketId, patch: TicketPatch) -> TicketRecord:
        self.calls.append(("mutate", ticket_id, patch))
        self._check()
        record = await self.get_record(ticket_id)

        update = {}
        if patch.status:
            update["status"] = patch.status
        if patch.priority:
            update["priority"] = patch.priority
        if patch.assignee_email:
            update["assignee_id"] = patch.assignee_email
        tags = [t for t in record.tags if t not in patch.remove_tags]
        tags.extend(t for t in patch.add_tags if t not in tags)
        update["tags"] = tags

        updated = record.model_copy(update=update)
        self.records[str(ticket_id)] = updated
        if self.fail_after_write:
            raise StoreUnavailable(f"fakedesk API returned 502 reading back ticket {ticket_id}", status_code=502)
        return updated

    async def list_users(self) -> List[HelpdeskUser]:
        self.calls.append(("list_users",))
        return self.users

    def record_url(self, ticket_id: TicketId) -> str:
        return f"https://fake.example.com/tickets/{ticket_id}"

    def map_status(self, status: str) -> Optional[str]:
        return status if status in self.STATUSES else None

    def map_priority(self, priority: str) -> Optional[str]:
        return priority if priority in self.PRIORITIES else None

    async def create(self, subject, description, priority="normal", requester_email=None) -> TicketRecord:
        self.calls.append(("create", subject, description, priority, requester_email))
        self._check()
        record = make_record(900, subject=subject, description=description, priority=priority, status="new")
        self.records["900"] = record
        return record

    async def post_reply(self, ticket_id: TicketId, body: str) -> None:
        self.calls.append(("post_reply", ticket_id, body))
        self._check()

    async def delete(self, ticket_id: TicketId) -> None:
        self.calls.append(("delete", ticket_id))
        self._check()

    async def mark_spam(self, ticket_id: TicketId) -> None:
        self.calls.append(("mark_spam", ticket_id))
        self._check()

    async def restore(self, ticket_id: TicketId) -> TicketRecord:
        self.calls.append(("restore", ticket_id))
        self._check()
        return await self.get_record(ticket_id)

    async def merge(self, target_id: TicketId, source_ids: List[TicketId]) -> TicketRecord:
        self.calls.append(("merge", target_id, source_ids))
        self._check()
        return await self.get_record(target_id)

    def calls_named(self, name: str) -> List[tuple]:
        return [call for call in self.calls if call[0] == name]


@pytest.fixture
def sample_records() -> List[TicketRecord]:
    """Five records with mixed status, priority, age and tags"""
    return [
        make_record(42, "Cannot log in", status="open", priority="high", age_days=0.5, tags=["billing", "vip"]),
        make_record(43, "Refund request", status="pending", priority="normal", age_days=3, tags=["billing"]),
        make_record(44, "App crashes on start", status="open", priority="urgent", age_days=10, tags=["bug"]),
        make_record(45, "Invoice address", status="solved", priority="low", age_days=45, tags=["billing"]),
        make_record(46, "Feature request", status="closed", priority="normal", age_days=90),
    ]


@pytest.fixture
def fake_store(sample_records) -> FakeTicketStore:
    return FakeTicketStore(sample_records)


@pytest.fixture
def cache(fake_store) -> TicketCache:
    return TicketCache(fake_store, ttl_seconds=3600, clock=lambda: NOW)


@pytest.fixture
def completion() -> MagicMock:
    """Completion client double with async complete / complete_json"""
    client = MagicMock()
    client.complete = AsyncMock(return_value="There are 2 open tickets: #42 and #44.")
    client.complete_json = AsyncMock(return_value={})
    return client


@pytest.fixture
def history(tmp_path) -> ConversationHistoryLog:
    return ConversationHistoryLog(tmp_path / "history" / "fakedesk.json", max_entries=50, response_chars=500)


@pytest.fixture
def pipeline(fake_store, cache, history, completion) -> QueryPipeline:
    return QueryPipeline(PipelineContext(fake_store, cache, history, completion))
