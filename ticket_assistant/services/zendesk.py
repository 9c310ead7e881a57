"""
Zendesk Ticket Store

Zendesk REST API integration for:
- Ticket fetching with cursor pagination (next_page)
- Status, priority, assignee and tag updates
- Ticket creation, replies, soft delete, spam, restore and merge
- User listing
"""
from typing import Any, Dict, List, Optional, Tuple

from ticket_assistant.config import get_settings
from ticket_assistant.models.ticket import HelpdeskUser, TicketId, TicketPatch, TicketRecord
from ticket_assistant.services.errors import ConfigurationError, StoreUnavailable
from ticket_assistant.services.store import TicketStore, to_epoch
from ticket_assistant.utils.logger import get_logger

settings = get_settings()
logger = get_logger(__name__)

ZENDESK_STATUSES = {"new", "open", "pending", "hold", "solved", "closed"}
ZENDESK_PRIORITIES = {"urgent", "high", "normal", "low"}


class ZendeskStore(TicketStore):
    """
    Zendesk API integration with rate-limit retry and record normalization
    """

    name = "Zendesk"

    supports_delete = True
    supports_spam = True
    supports_restore = True
    supports_merge = True

    def __init__(
        self,
        subdomain: Optional[str] = None,
        email: Optional[str] = None,
        api_token: Optional[str] = None,
        **kwargs
    ):
        self.subdomain = subdomain if subdomain is not None else settings.zendesk_subdomain
        self.email = email if email is not None else settings.zendesk_email
        self.api_token = api_token if api_token is not None else settings.zendesk_api_token

        if not (self.subdomain and self.email and self.api_token):
            raise ConfigurationError(
                "Zendesk is not configured (set ZENDESK_SUBDOMAIN, ZENDESK_EMAIL, ZENDESK_API_TOKEN)"
            )

        super().__init__(f"https://{self.subdomain}.zendesk.com/api/v2", **kwargs)
        self.per_page = 100

    def _auth(self) -> Optional[Tuple[str, str]]:
        return (f"{self.email}/token", self.api_token)

    @staticmethod
    def _normalize(ticket: Dict[str, Any]) -> TicketRecord:
        """Convert a Zendesk ticket payload into a TicketRecord"""
        return TicketRecord(
            id=ticket["id"],
            subject=ticket.get("subject") or "",
            description=ticket.get("description") or "",
            status=ticket.get("status") or "new",
            priority=ticket.get("priority") or "normal",
            created_at=to_epoch(ticket.get("created_at")),
            updated_at=to_epoch(ticket.get("updated_at")),
            assignee_id=ticket.get("assignee_id"),
            tags=ticket.get("tags") or [],
        )

    async def fetch_all(self) -> List[TicketRecord]:
        """
        Fetch all tickets, following next_page until it is empty

        Returns:
            Normalized records in fetch order

        Raises:
            StoreUnavailable: If any page fails
        """
        records: List[TicketRecord] = []
        next_page: Optional[str] = "tickets.json"
        params: Optional[Dict[str, Any]] = {"per_page": self.per_page}
        page = 0

        while next_page:
            page += 1
            logger.info(f"Fetching Zendesk tickets (page={page})")
            data = await self._make_request("GET", next_page, params=params)

            tickets = data.get("tickets") or []
            records.extend(self._normalize(t) for t in tickets)
            logger.info(f"Fetched page {page}: {len(tickets)} tickets (total: {len(records)})")

            # next_page already carries the query string
            next_page = data.get("next_page")
            params = None

        logger.info(f"Successfully fetched total {len(records)} Zendesk tickets")
        return records

    async def get_record(self, ticket_id: TicketId) -> TicketRecord:
        data = await self._make_request("GET", f"tickets/{ticket_id}.json")
        return self._normalize(data["ticket"])

    async def _find_user_id(self, email: str) -> int:
        data = await self._make_request(
            "GET",
            "users/search.json",
            params={"query": email}
        )
        users = data.get("users") or []
        if not users:
            raise StoreUnavailable(f"No Zendesk user found for {email}", status_code=404)
        return users[0]["id"]

    async def mutate(self, ticket_id: TicketId, patch: TicketPatch) -> TicketRecord:
        """
        Apply each requested change as its own API call

        Args:
            ticket_id: Zendesk ticket ID
            patch: Requested changes (status/priority already backend values)

        Returns:
            Ticket as re-read from Zendesk after the last change
        """
        logger.info(f"Updating Zendesk ticket {ticket_id}")
        if patch.is_empty():
            return await self.get_record(ticket_id)

        if patch.status:
            await self._make_request(
                "PUT", f"tickets/{ticket_id}.json",
                json={"ticket": {"status": patch.status}}
            )
        if patch.priority:
            await self._make_request(
                "PUT", f"tickets/{ticket_id}.json",
                json={"ticket": {"priority": patch.priority}}
            )
        if patch.assignee_email:
            assignee_id = await self._find_user_id(patch.assignee_email)
            await self._make_request(
                "PUT", f"tickets/{ticket_id}.json",
                json={"ticket": {"assignee_id": assignee_id}}
            )
        if patch.add_tags:
            await self._make_request(
                "PUT", f"tickets/{ticket_id}/tags.json",
                json={"tags": patch.add_tags}
            )
        if patch.remove_tags:
            await self._make_request(
                "DELETE", f"tickets/{ticket_id}/tags.json",
                json={"tags": patch.remove_tags}
            )

        return await self.get_record(ticket_id)

    async def create(
        self,
        subject: str,
        description: str,
        priority: str = "normal",
        requester_email: Optional[str] = None
    ) -> TicketRecord:
        payload: Dict[str, Any] = {
            "subject": subject,
            "comment": {"body": description},
            "priority": self.map_priority(priority) or "normal",
        }
        if requester_email:
            payload["requester"] = {
                "email": requester_email,
                "name": requester_email.split("@")[0],
            }

        logger.info(f"Creating Zendesk ticket: {subject[:50]}")
        data = await self._make_request("POST", "tickets.json", json={"ticket": payload})
        return self._normalize(data["ticket"])

    async def post_reply(self, ticket_id: TicketId, body: str) -> None:
        logger.info(f"Posting public reply to Zendesk ticket {ticket_id}")
        await self._make_request(
            "PUT", f"tickets/{ticket_id}.json",
            json={"ticket": {"comment": {"body": body, "public": True}}}
        )

    async def delete(self, ticket_id: TicketId) -> None:
        logger.info(f"Soft-deleting Zendesk ticket {ticket_id}")
        await self._make_request("DELETE", f"tickets/{ticket_id}.json")

    async def mark_spam(self, ticket_id: TicketId) -> None:
        logger.info(f"Marking Zendesk ticket {ticket_id} as spam")
        await self._make_request("PUT", f"tickets/{ticket_id}/mark_as_spam.json")

    async def restore(self, ticket_id: TicketId) -> TicketRecord:
        logger.info(f"Restoring Zendesk ticket {ticket_id}")
        await self._make_request("PUT", f"deleted_tickets/{ticket_id}/restore.json")
        return await self.get_record(ticket_id)

    async def merge(self, target_id: TicketId, source_ids: List[TicketId]) -> TicketRecord:
        logger.info(f"Merging Zendesk tickets {source_ids} into {target_id}")
        await self._make_request(
            "POST", f"tickets/{target_id}/merge.json",
            json={"ids": list(source_ids)}
        )
        return await self.get_record(target_id)

    async def list_users(self) -> List[HelpdeskUser]:
        users: List[HelpdeskUser] = []
        next_page: Optional[str] = "users.json"
        params: Optional[Dict[str, Any]] = {"per_page": self.per_page}

        while next_page:
            data = await self._make_request("GET", next_page, params=params)
            for user in data.get("users") or []:
                users.append(HelpdeskUser(
                    id=user["id"],
                    name=user.get("name") or "",
                    email=user.get("email") or "",
                    role=user.get("role") or "end-user",
                    active=bool(user.get("active", True)),
                ))
            next_page = data.get("next_page")
            params = None

        logger.info(f"Fetched {len(users)} Zendesk users")
        return users

    def record_url(self, ticket_id: TicketId) -> str:
        return f"https://{self.subdomain}.zendesk.com/agent/tickets/{ticket_id}"

    def map_status(self, status: str) -> Optional[str]:
        if status == "snoozed":
            return "pending"
        return status if status in ZENDESK_STATUSES else None

    def map_priority(self, priority: str) -> Optional[str]:
        return priority if priority in ZENDESK_PRIORITIES else None
