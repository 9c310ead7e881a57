"""
Ticket data models

Normalized helpdesk records shared by every backend adapter, and the
immutable cache snapshot built from them.
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Dict, List, Optional, Tuple, Union

TicketId = Union[int, str]


class TicketRecord(BaseModel):
    """
    Normalized ticket or conversation

    Timestamps are epoch seconds regardless of the backend format.
    Records are never mutated in place; updates replace the cached copy.
    """
    model_config = ConfigDict(frozen=True)

    id: TicketId
    subject: str = ""
    description: str = ""
    status: str
    priority: str = "normal"
    created_at: float
    updated_at: float
    assignee_id: Optional[TicketId] = None
    tags: List[str] = Field(default_factory=list)

    @field_validator("tags")
    @classmethod
    def dedupe_tags(cls, v: List[str]) -> List[str]:
        """Tags behave as a set but keep first-seen order"""
        cleaned = [tag.strip() for tag in v if tag and tag.strip()]
        return list(dict.fromkeys(cleaned))


class TicketPatch(BaseModel):
    """Field changes requested by the operation dispatcher"""
    status: Optional[str] = None
    priority: Optional[str] = None
    assignee_email: Optional[str] = None
    add_tags: List[str] = Field(default_factory=list)
    remove_tags: List[str] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not (
            self.status
            or self.priority
            or self.assignee_email
            or self.add_tags
            or self.remove_tags
        )


class HelpdeskUser(BaseModel):
    """Agent, admin or end user known to the helpdesk"""
    id: TicketId
    name: str = ""
    email: str = ""
    role: str = "end-user"
    active: bool = True


class AgeBuckets(BaseModel):
    """Record counts by age; every record falls in exactly one bucket"""
    model_config = ConfigDict(frozen=True)

    less_than_24h: int = 0
    less_than_7d: int = 0
    less_than_30d: int = 0
    older_than_30d: int = 0

    @property
    def total(self) -> int:
        return self.less_than_24h + self.less_than_7d + self.less_than_30d + self.older_than_30d


class TicketAggregates(BaseModel):
    """Counts precomputed from the snapshot records"""
    model_config = ConfigDict(frozen=True)

    by_status: Dict[str, int] = Field(default_factory=dict)
    by_priority: Dict[str, int] = Field(default_factory=dict)
    by_age: AgeBuckets = Field(default_factory=AgeBuckets)
    by_tag: Dict[str, int] = Field(default_factory=dict)
    by_assignee: Dict[str, int] = Field(default_factory=dict)


class TicketCacheSnapshot(BaseModel):
    """
    Immutable point-in-time view of all records plus derived aggregates.

    Aggregates are always rebuilt from ``records`` (see
    ``ticket_assistant.services.ticket_cache.build_snapshot``).
    """
    model_config = ConfigDict(frozen=True)

    fetched_at: float
    records: Tuple[TicketRecord, ...] = ()
    aggregates: TicketAggregates = Field(default_factory=TicketAggregates)

    @property
    def total(self) -> int:
        return len(self.records)

    def find(self, ticket_id: TicketId) -> Optional[TicketRecord]:
        """Look up a record by id, comparing ids as strings"""
        wanted = str(ticket_id)
        for record in self.records:
            if str(record.id) == wanted:
                return record
        return None
