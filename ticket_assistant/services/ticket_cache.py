"""
Ticket Cache

Holds the latest snapshot of a store's records with lazy TTL expiry.
Aggregates are rebuilt from the records on every snapshot build.
"""
import time
from collections import Counter
from typing import Callable, Iterable, Optional

from ticket_assistant.models.ticket import (
    AgeBuckets,
    TicketAggregates,
    TicketCacheSnapshot,
    TicketRecord,
)
from ticket_assistant.services.store import TicketStore
from ticket_assistant.utils.logger import get_logger

logger = get_logger(__name__)

DAY_SECONDS = 24 * 60 * 60


def _age_buckets(records: Iterable[TicketRecord], now: float) -> AgeBuckets:
    counts = [0, 0, 0, 0]
    for record in records:
        age_days = (now - record.created_at) / DAY_SECONDS
        if age_days < 1:
            counts[0] += 1
        elif age_days < 7:
            counts[1] += 1
        elif age_days < 30:
            counts[2] += 1
        else:
            counts[3] += 1

    return AgeBuckets(
        less_than_24h=counts[0],
        less_than_7d=counts[1],
        less_than_30d=counts[2],
        older_than_30d=counts[3],
    )


def build_snapshot(records: Iterable[TicketRecord], fetched_at: float) -> TicketCacheSnapshot:
    """
    Build an immutable snapshot and derive every aggregate from its records

    Args:
        records: Normalized records in fetch order
        fetched_at: Epoch seconds the records were fetched; ages are measured against it

    Returns:
        TicketCacheSnapshot
    """
    records = tuple(records)

    by_tag: Counter = Counter()
    for record in records:
        by_tag.update(record.tags)

    aggregates = TicketAggregates(
        by_status=dict(Counter(r.status for r in records)),
        by_priority=dict(Counter(r.priority for r in records)),
        by_age=_age_buckets(records, fetched_at),
        by_tag=dict(by_tag),
        by_assignee=dict(Counter(
            str(r.assignee_id) if r.assignee_id is not None else "unassigned"
            for r in records
        )),
    )
    return TicketCacheSnapshot(fetched_at=fetched_at, records=records, aggregates=aggregates)


class TicketCache:
    """
    One live snapshot per store

    Concurrent misses may fetch twice; the last completed fetch wins.
    """

    def __init__(
        self,
        store: TicketStore,
        ttl_seconds: float,
        clock: Callable[[], float] = time.time
    ):
        self.store = store
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._snapshot: Optional[TicketCacheSnapshot] = None

    def _is_fresh(self, snapshot: TicketCacheSnapshot) -> bool:
        return self._clock() - snapshot.fetched_at < self.ttl_seconds

    async def get(self) -> TicketCacheSnapshot:
        """
        Return the live snapshot, refetching when missing or expired

        Raises:
            StoreUnavailable: If the store fetch fails
        """
        snapshot = self._snapshot
        if snapshot is not None and self._is_fresh(snapshot):
            return snapshot
        return await self.refresh()

    async def refresh(self) -> TicketCacheSnapshot:
        """Fetch all records from the store and replace the snapshot"""
        logger.info(f"Refreshing {self.store.name} ticket cache")
        records = await self.store.fetch_all()
        snapshot = build_snapshot(records, self._clock())
        self._snapshot = snapshot
        logger.info(f"Cached {snapshot.total} {self.store.name} tickets")
        return snapshot

    def invalidate(self) -> None:
        """Discard the snapshot; the next get() refetches"""
        if self._snapshot is not None:
            logger.info(f"Invalidating {self.store.name} ticket cache")
        self._snapshot = None

    def peek(self) -> Optional[TicketCacheSnapshot]:
        """Current snapshot without refreshing (may be None or stale)"""
        return self._snapshot
