"""
Intercom Ticket Store

Intercom REST API integration for:
- Conversation fetching with starting_after pagination
- State (open/close/snooze), priority, assignment and tag updates
- Conversation creation and admin replies
- Admin and contact listing

Intercom has no delete, spam, restore or merge for conversations.
"""
import re
import time
from typing import Any, Dict, List, Optional

from ticket_assistant.config import get_settings
from ticket_assistant.models.ticket import HelpdeskUser, TicketId, TicketPatch, TicketRecord
from ticket_assistant.services.errors import ConfigurationError, StoreUnavailable
from ticket_assistant.services.store import TicketStore, to_epoch
from ticket_assistant.utils.logger import get_logger

settings = get_settings()
logger = get_logger(__name__)

INTERCOM_API_VERSION = "2.14"

# Canonical keyword -> Intercom conversation state
STATUS_MAP = {
    "new": "open",
    "open": "open",
    "pending": "snoozed",
    "hold": "snoozed",
    "snoozed": "snoozed",
    "solved": "closed",
    "closed": "closed",
}

# Intercom only distinguishes prioritized / not prioritized
PRIORITY_MAP = {
    "urgent": "high",
    "high": "high",
    "normal": "normal",
    "low": "normal",
}

# State change -> message_type for POST /conversations/{id}/parts
STATE_MESSAGE_TYPES = {
    "open": "open",
    "closed": "close",
    "snoozed": "snoozed",
}

SNOOZE_SECONDS = 24 * 60 * 60

_TAG_RE = re.compile(r"<[^>]+>")


def _strip_html(text: str) -> str:
    return _TAG_RE.sub("", text or "").strip()


class IntercomStore(TicketStore):
    """
    Intercom conversations exposed as tickets
    """

    name = "Intercom"

    def __init__(
        self,
        access_token: Optional[str] = None,
        base_url: Optional[str] = None,
        workspace_id: Optional[str] = None,
        admin_id: Optional[str] = None,
        **kwargs
    ):
        self.access_token = access_token if access_token is not None else settings.intercom_access_token
        if not self.access_token:
            raise ConfigurationError("Intercom is not configured (set INTERCOM_ACCESS_TOKEN)")

        super().__init__(base_url or settings.INTERCOM_BASE_URL, **kwargs)
        self.headers.update({
            "Authorization": f"Bearer {self.access_token}",
            "Accept": "application/json",
            "Intercom-Version": INTERCOM_API_VERSION,
        })
        self.workspace_id = workspace_id if workspace_id is not None else settings.intercom_workspace_id
        self._admin_id = admin_id or settings.intercom_admin_id or None
        self.per_page = 150

    @staticmethod
    def _normalize(conversation: Dict[str, Any]) -> TicketRecord:
        """
        Convert an Intercom conversation payload into a TicketRecord

        Titles fall back to the first line of the opening message.
        Priority is boolean on some API versions and "priority"/"not_priority"
        on others; both collapse to high/normal.
        """
        source = conversation.get("source") or {}
        body = _strip_html(source.get("body") or "")
        title = conversation.get("title") or source.get("subject") or ""
        if not title and body:
            title = body.splitlines()[0][:120]

        raw_priority = conversation.get("priority")
        priority = "high" if raw_priority in (True, "priority") else "normal"

        tag_block = conversation.get("tags") or {}
        tag_items = tag_block.get("tags", []) if isinstance(tag_block, dict) else tag_block
        tags = [t.get("name", "") for t in tag_items if isinstance(t, dict)]

        return TicketRecord(
            id=str(conversation["id"]),
            subject=title,
            description=body,
            status=conversation.get("state") or "open",
            priority=priority,
            created_at=to_epoch(conversation.get("created_at")),
            updated_at=to_epoch(conversation.get("updated_at")),
            assignee_id=conversation.get("admin_assignee_id"),
            tags=tags,
        )

    async def _fetch_pages(self, endpoint: str, key: str) -> List[Dict[str, Any]]:
        """Follow pages.next.starting_after until no cursor is returned"""
        items: List[Dict[str, Any]] = []
        starting_after: Optional[str] = None

        while True:
            params: Dict[str, Any] = {"per_page": self.per_page}
            if starting_after:
                params["starting_after"] = starting_after

            data = await self._make_request("GET", endpoint, params=params)
            items.extend(data.get(key) or data.get("data") or [])

            next_page = (data.get("pages") or {}).get("next") or {}
            starting_after = next_page.get("starting_after") if isinstance(next_page, dict) else None
            if not starting_after:
                break

        return items

    async def fetch_all(self) -> List[TicketRecord]:
        logger.info("Fetching Intercom conversations")
        conversations = await self._fetch_pages("conversations", "conversations")
        records = [self._normalize(c) for c in conversations]
        logger.info(f"Successfully fetched total {len(records)} Intercom conversations")
        return records

    async def get_record(self, ticket_id: TicketId) -> TicketRecord:
        data = await self._make_request("GET", f"conversations/{ticket_id}")
        return self._normalize(data)

    async def _get_admin_id(self) -> str:
        """Admin acting on conversations; first workspace admin if unset"""
        if self._admin_id:
            return self._admin_id

        data = await self._make_request("GET", "admins")
        admins = data.get("admins") or []
        if not admins:
            raise StoreUnavailable("Intercom workspace has no admins")
        self._admin_id = str(admins[0]["id"])
        return self._admin_id

    async def _find_admin_id(self, email: str) -> str:
        data = await self._make_request("GET", "admins")
        for admin in data.get("admins") or []:
            if (admin.get("email") or "").lower() == email.lower():
                return str(admin["id"])
        raise StoreUnavailable(f"No Intercom admin found for {email}", status_code=404)

    async def _tag_ids_by_name(self) -> Dict[str, str]:
        data = await self._make_request("GET", "tags")
        return {
            (tag.get("name") or "").lower(): str(tag["id"])
            for tag in data.get("data") or data.get("tags") or []
        }

    async def mutate(self, ticket_id: TicketId, patch: TicketPatch) -> TicketRecord:
        """
        Apply each requested change as its own API call

        Args:
            ticket_id: Intercom conversation ID
            patch: Requested changes (status/priority already Intercom values)

        Returns:
            Conversation as re-read from Intercom after the last change
        """
        logger.info(f"Updating Intercom conversation {ticket_id}")
        if patch.is_empty():
            return await self.get_record(ticket_id)
        admin_id = await self._get_admin_id()

        if patch.status:
            message_type = STATE_MESSAGE_TYPES.get(patch.status)
            if message_type is None:
                raise StoreUnavailable(f"Intercom has no conversation state '{patch.status}'")
            part: Dict[str, Any] = {
                "message_type": message_type,
                "type": "admin",
                "admin_id": admin_id,
            }
            if message_type == "snoozed":
                part["snoozed_until"] = int(time.time()) + SNOOZE_SECONDS
            await self._make_request("POST", f"conversations/{ticket_id}/parts", json=part)

        if patch.priority:
            value = "priority" if patch.priority == "high" else "not_priority"
            await self._make_request(
                "PUT", f"conversations/{ticket_id}",
                json={"priority": value}
            )

        if patch.assignee_email:
            assignee_id = await self._find_admin_id(patch.assignee_email)
            await self._make_request(
                "POST", f"conversations/{ticket_id}/parts",
                json={
                    "message_type": "assignment",
                    "type": "admin",
                    "admin_id": admin_id,
                    "assignee_id": assignee_id,
                }
            )

        for tag_name in patch.add_tags:
            tag = await self._make_request("POST", "tags", json={"name": tag_name})
            await self._make_request(
                "POST", f"conversations/{ticket_id}/tags",
                json={"id": str(tag["id"]), "admin_id": admin_id}
            )

        if patch.remove_tags:
            tag_ids = await self._tag_ids_by_name()
            for tag_name in patch.remove_tags:
                tag_id = tag_ids.get(tag_name.lower())
                if tag_id is None:
                    logger.warning(f"Tag '{tag_name}' not found in Intercom, skipping removal")
                    continue
                await self._make_request(
                    "DELETE", f"conversations/{ticket_id}/tags/{tag_id}",
                    json={"admin_id": admin_id}
                )

        return await self.get_record(ticket_id)

    async def _find_or_create_contact(self, email: str) -> str:
        data = await self._make_request(
            "POST", "contacts/search",
            json={"query": {"field": "email", "operator": "=", "value": email}}
        )
        contacts = data.get("data") or []
        if contacts:
            return str(contacts[0]["id"])

        logger.info(f"Creating Intercom contact for {email}")
        contact = await self._make_request(
            "POST", "contacts",
            json={"role": "user", "email": email, "name": email.split("@")[0]}
        )
        return str(contact["id"])

    async def create(
        self,
        subject: str,
        description: str,
        priority: str = "normal",
        requester_email: Optional[str] = None
    ) -> TicketRecord:
        if not requester_email:
            raise StoreUnavailable("Intercom needs a requester email to start a conversation")

        contact_id = await self._find_or_create_contact(requester_email)
        logger.info(f"Creating Intercom conversation: {subject[:50]}")
        data = await self._make_request(
            "POST", "conversations",
            json={
                "from": {"type": "user", "id": contact_id},
                "body": f"{subject}\n\n{description}" if subject else description,
            }
        )
        conversation_id = data.get("conversation_id") or data.get("id")

        if self.map_priority(priority) == "high":
            await self._make_request(
                "PUT", f"conversations/{conversation_id}",
                json={"priority": "priority"}
            )
        return await self.get_record(conversation_id)

    async def post_reply(self, ticket_id: TicketId, body: str) -> None:
        admin_id = await self._get_admin_id()
        logger.info(f"Posting admin reply to Intercom conversation {ticket_id}")
        await self._make_request(
            "POST", f"conversations/{ticket_id}/reply",
            json={
                "message_type": "comment",
                "type": "admin",
                "admin_id": admin_id,
                "body": body,
            }
        )

    async def list_users(self) -> List[HelpdeskUser]:
        data = await self._make_request("GET", "admins")
        users = [
            HelpdeskUser(
                id=str(admin["id"]),
                name=admin.get("name") or "",
                email=admin.get("email") or "",
                role="admin",
                active=not admin.get("away_mode_enabled", False),
            )
            for admin in data.get("admins") or []
        ]

        contacts = await self._fetch_pages("contacts", "data")
        users.extend(
            HelpdeskUser(
                id=str(contact["id"]),
                name=contact.get("name") or "",
                email=contact.get("email") or "",
                role="end-user",
            )
            for contact in contacts
        )
        logger.info(f"Fetched {len(users)} Intercom admins and contacts")
        return users

    def record_url(self, ticket_id: TicketId) -> str:
        return (
            f"https://app.intercom.com/a/inbox/{self.workspace_id}"
            f"/inbox/conversation/{ticket_id}"
        )

    def map_status(self, status: str) -> Optional[str]:
        return STATUS_MAP.get(status)

    def map_priority(self, priority: str) -> Optional[str]:
        return PRIORITY_MAP.get(priority)
