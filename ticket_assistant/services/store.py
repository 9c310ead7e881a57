"""
Ticket Store Adapter base

Common HTTP plumbing and the capability interface implemented by every
helpdesk backend:
- One request helper with a single rate-limit retry
- Timestamp normalization to epoch seconds
- Capability flags for operations a backend may not offer
"""
import asyncio
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Union

import httpx
from dateutil import parser as date_parser

from ticket_assistant.config import get_settings
from ticket_assistant.models.ticket import HelpdeskUser, TicketId, TicketPatch, TicketRecord
from ticket_assistant.services.errors import StoreUnavailable
from ticket_assistant.utils.logger import get_logger

settings = get_settings()
logger = get_logger(__name__)


def to_epoch(value: Union[None, int, float, str, datetime]) -> float:
    """
    Normalize a backend timestamp to epoch seconds

    Args:
        value: Unix seconds, ISO-8601 string or datetime (None -> 0.0)

    Returns:
        Seconds since the epoch as float
    """
    if value is None or value == "":
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        value = date_parser.isoparse(value)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


class TicketStore(ABC):
    """
    Helpdesk backend adapter

    Subclasses know the backend's field names and endpoints; nothing
    outside the adapter sees store-specific payloads.
    """

    name: str = "helpdesk"

    supports_create: bool = True
    supports_reply: bool = True
    supports_delete: bool = False
    supports_spam: bool = False
    supports_restore: bool = False
    supports_merge: bool = False

    def __init__(
        self,
        base_url: str,
        timeout: Optional[float] = None,
        rate_limit_wait: Optional[float] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.headers = {
            "Content-Type": "application/json"
        }
        self.timeout = timeout if timeout is not None else settings.http_timeout
        self.rate_limit_wait = (
            rate_limit_wait if rate_limit_wait is not None
            else settings.rate_limit_default_wait_seconds
        )

    def _auth(self) -> Optional[Tuple[str, str]]:
        """Basic auth tuple, or None when auth travels in headers"""
        return None

    def _retry_after(self, response: httpx.Response) -> float:
        """Seconds to wait before retrying a rate-limited request"""
        try:
            value = response.headers.get("Retry-After")
            return float(value) if value is not None else self.rate_limit_wait
        except (TypeError, ValueError):
            return self.rate_limit_wait

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        **kwargs
    ) -> Dict[str, Any]:
        """
        Make HTTP request, retrying once on a rate-limit response

        Args:
            method: HTTP method (GET, POST, PUT, DELETE)
            endpoint: API path relative to base_url, or an absolute URL
            **kwargs: Additional arguments for httpx

        Returns:
            Response JSON ({} for empty bodies)

        Raises:
            StoreUnavailable: On HTTP or network errors, or a second 429
        """
        if endpoint.startswith("http"):
            url = endpoint
        else:
            url = f"{self.base_url}/{endpoint.lstrip('/')}"

        for attempt in range(2):
            try:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.request(
                        method=method,
                        url=url,
                        auth=self._auth(),
                        headers=self.headers,
                        **kwargs
                    )
                    response.raise_for_status()
                    if response.status_code == 204 or not response.content:
                        return {}
                    return response.json()

            except httpx.HTTPStatusError as e:
                status_code = e.response.status_code
                if status_code == 429 and attempt == 0:
                    wait_time = self._retry_after(e.response)
                    logger.warning(
                        f"{self.name} rate limit hit on {method} {endpoint}, "
                        f"retrying once in {wait_time}s"
                    )
                    await asyncio.sleep(wait_time)
                    continue
                logger.error(f"{self.name} request failed: {method} {endpoint} -> {status_code}")
                raise StoreUnavailable(
                    f"{self.name} API returned {status_code} for {method} {endpoint}",
                    status_code=status_code
                ) from e
            except httpx.HTTPError as e:
                logger.error(f"{self.name} request failed: {method} {endpoint}: {e}")
                raise StoreUnavailable(f"{self.name} request failed: {e}") from e

        # Unreachable: the loop either returns or raises
        raise StoreUnavailable(f"{self.name} request failed: {method} {endpoint}")

    # ------------------------------------------------------------------
    # Required operations
    # ------------------------------------------------------------------

    @abstractmethod
    async def fetch_all(self) -> List[TicketRecord]:
        """Fetch every record, following pagination until exhausted"""

    @abstractmethod
    async def get_record(self, ticket_id: TicketId) -> TicketRecord:
        """Fetch one record by id"""

    @abstractmethod
    async def mutate(self, ticket_id: TicketId, patch: TicketPatch) -> TicketRecord:
        """Apply a patch and return the authoritative post-mutation record"""

    @abstractmethod
    async def list_users(self) -> List[HelpdeskUser]:
        """List agents, admins and end users"""

    @abstractmethod
    def record_url(self, ticket_id: TicketId) -> str:
        """Deep link to the record in the helpdesk web UI"""

    @abstractmethod
    def map_status(self, status: str) -> Optional[str]:
        """Canonical status keyword -> backend status, None if unsupported"""

    @abstractmethod
    def map_priority(self, priority: str) -> Optional[str]:
        """Canonical priority keyword -> backend priority, None if unsupported"""

    # ------------------------------------------------------------------
    # Optional operations (guarded by capability flags)
    # ------------------------------------------------------------------

    async def create(
        self,
        subject: str,
        description: str,
        priority: str = "normal",
        requester_email: Optional[str] = None
    ) -> TicketRecord:
        raise NotImplementedError(f"{self.name} does not support creating tickets")

    async def post_reply(self, ticket_id: TicketId, body: str) -> None:
        raise NotImplementedError(f"{self.name} does not support replies")

    async def delete(self, ticket_id: TicketId) -> None:
        raise NotImplementedError(f"{self.name} does not support deleting tickets")

    async def mark_spam(self, ticket_id: TicketId) -> None:
        raise NotImplementedError(f"{self.name} does not support marking spam")

    async def restore(self, ticket_id: TicketId) -> TicketRecord:
        raise NotImplementedError(f"{self.name} does not support restoring tickets")

    async def merge(self, target_id: TicketId, source_ids: List[TicketId]) -> TicketRecord:
        raise NotImplementedError(f"{self.name} does not support merging tickets")
