"""
Operation Dispatcher

Turns natural-language commands into ticket store operations:
- Intent classification by rule specificity (ties answer as ambiguous)
- Target resolution from explicit ids or ordinals over the previous results
- Entity extraction (status, priority, email, tags)
- Two-step confirmation for delete, spam and merge
- Cache invalidation after every successful mutation

Store and completion failures are answered with a ❌ message; nothing is raised.
"""
from functools import partial
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from ticket_assistant.models.schemas import (
    AnswerKind,
    AnswerSource,
    Intent,
    QueryContext,
    StageAnswer,
)
from ticket_assistant.models.ticket import HelpdeskUser, TicketId, TicketPatch, TicketRecord
from ticket_assistant.services.errors import TicketAssistantError
from ticket_assistant.services.llm_service import CompletionClient
from ticket_assistant.services.query_patterns import (
    INTENT_RULES,
    ORDINAL_RE,
    ORDINALS,
    IntentRule,
    classify_intent,
    extract_confirmation,
    extract_email,
    extract_merge_confirmation,
    extract_merge_ids,
    extract_ordinal,
    extract_priority,
    extract_status,
    extract_tags,
    extract_ticket_ids,
)
from ticket_assistant.services.store import TicketStore
from ticket_assistant.services.ticket_cache import TicketCache
from ticket_assistant.utils.logger import get_logger

logger = get_logger(__name__)

USER_CORRECTABLE_CONFIDENCE = 0.5
MUTATION_CONFIDENCE = 0.95
CONFIRMED_CONFIDENCE = 1.0
REPLY_PREVIEW_CHARS = 300

INTENT_LABELS: Dict[Intent, str] = {
    Intent.REFRESH: "refreshing ticket data",
    Intent.GENERATE_REPLY: "drafting a reply",
    Intent.CREATE: "creating a ticket",
    Intent.CONFIRM_DELETE: "confirming a deletion",
    Intent.CONFIRM_SPAM: "confirming a spam report",
    Intent.CONFIRM_MERGE: "confirming a merge",
    Intent.DELETE: "deleting a ticket",
    Intent.SPAM: "marking a ticket as spam",
    Intent.RESTORE: "restoring a ticket",
    Intent.MERGE: "merging tickets",
    Intent.UPDATE_STATUS: "changing a ticket status",
    Intent.UPDATE_PRIORITY: "changing a ticket priority",
    Intent.ASSIGN: "assigning a ticket",
    Intent.TAG_ADD: "adding tags",
    Intent.TAG_REMOVE: "removing tags",
    Intent.LIST_USERS: "listing users",
}

# Intent -> (capability flag, human description of the operation)
REQUIRED_CAPABILITY: Dict[Intent, Tuple[str, str]] = {
    Intent.CREATE: ("supports_create", "creating tickets"),
    Intent.GENERATE_REPLY: ("supports_reply", "posting replies"),
    Intent.DELETE: ("supports_delete", "deleting tickets"),
    Intent.CONFIRM_DELETE: ("supports_delete", "deleting tickets"),
    Intent.SPAM: ("supports_spam", "marking tickets as spam"),
    Intent.CONFIRM_SPAM: ("supports_spam", "marking tickets as spam"),
    Intent.RESTORE: ("supports_restore", "restoring deleted tickets"),
    Intent.MERGE: ("supports_merge", "merging tickets"),
    Intent.CONFIRM_MERGE: ("supports_merge", "merging tickets"),
}

CONTEXT_EXAMPLES = (
    'First show me some tickets:\n'
    '• "show top 5 tickets"\n'
    '• "list recent tickets"\n\n'
    'Then refer to them by position or id:\n'
    '• "close the first ticket"\n'
    '• "assign ticket #42 to agent@example.com"'
)

CREATE_PROMPT = """You are a ticket parameter extractor. Extract ticket creation parameters from natural language.

Output ONLY a JSON object with exactly these keys:
{
  "subject": "Clear, concise subject line (max 100 chars)",
  "description": "Detailed description of the issue",
  "priority": "urgent" | "high" | "normal" | "low",
  "requester_email": "email@example.com or null if not specified"
}

Rules:
- Default priority to "normal" unless specified
- Keep the user's wording for the issue where possible
- Do not invent an email address"""

REPLY_PROMPT = """You are a friendly, professional customer support agent.
Write a reply to the customer for the ticket below.

- Address the customer's issue directly and propose concrete next steps
- Keep it under 200 words
- Plain text only, no subject line, no placeholders like [Name]
- Sign off as "Support Team\""""


def _coerce_id(raw: str) -> TicketId:
    return int(raw) if raw.isdigit() else raw


class ResolvedTarget:
    """Ticket referenced by a command; ``record`` is None for a bare id"""

    def __init__(self, ticket_id: TicketId, record: Optional[TicketRecord] = None):
        self.ticket_id = ticket_id
        self.record = record

    @property
    def label(self) -> str:
        if self.record is not None and self.record.subject:
            return f"#{self.ticket_id} - {self.record.subject}"
        return f"#{self.ticket_id}"


class OperationDispatcher:
    """
    Pattern-based command handler over one ticket store
    """

    def __init__(
        self,
        store: TicketStore,
        cache: TicketCache,
        completion: CompletionClient,
        rules: Sequence[IntentRule] = INTENT_RULES
    ):
        self.store = store
        self.cache = cache
        self.completion = completion
        self.rules = rules
        self._handlers: Dict[Intent, Callable[[str, QueryContext], Awaitable[StageAnswer]]] = {
            Intent.REFRESH: self._refresh,
            Intent.GENERATE_REPLY: self._generate_reply,
            Intent.CREATE: self._create,
            Intent.CONFIRM_DELETE: self._confirm_destructive,
            Intent.CONFIRM_SPAM: self._confirm_destructive,
            Intent.CONFIRM_MERGE: self._confirm_merge,
            Intent.DELETE: partial(self._request_destructive, is_spam=False),
            Intent.SPAM: partial(self._request_destructive, is_spam=True),
            Intent.RESTORE: self._restore,
            Intent.MERGE: self._request_merge,
            Intent.UPDATE_STATUS: self._update_status,
            Intent.UPDATE_PRIORITY: self._update_priority,
            Intent.ASSIGN: self._assign,
            Intent.TAG_ADD: partial(self._modify_tags, adding=True),
            Intent.TAG_REMOVE: partial(self._modify_tags, adding=False),
            Intent.LIST_USERS: self._list_users,
        }

    async def try_dispatch(
        self,
        query: str,
        context: Optional[QueryContext] = None
    ) -> Optional[StageAnswer]:
        """
        Handle the query if it is a recognized command

        Args:
            query: Raw user query
            context: Previous turn's results and query

        Returns:
            StageAnswer, or None when no intent matches
        """
        classification = classify_intent(query, self.rules)
        if classification is None:
            return None

        if classification.is_ambiguous:
            options = " or ".join(INTENT_LABELS[i] for i in classification.candidates)
            logger.warning(f"Ambiguous command, candidates: {[i.value for i in classification.candidates]}")
            return self._user_correctable(
                f"⚠️ **Ambiguous Request**\n\nThis could mean {options}.\n\n"
                "Please rephrase so it asks for exactly one operation.",
                AnswerKind.AMBIGUOUS_ENTITY,
            )

        intent = classification.intent
        logger.info(f"Dispatching intent '{intent.value}' on {self.store.name}")

        capability = REQUIRED_CAPABILITY.get(intent)
        if capability and not getattr(self.store, capability[0]):
            return self._user_correctable(
                f"⚠️ **Not Supported**\n\n{self.store.name} does not support {capability[1]}.",
                AnswerKind.UNSUPPORTED,
            )

        return await self._handlers[intent](query, context or QueryContext())

    # ------------------------------------------------------------------
    # Answer helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _user_correctable(text: str, kind: AnswerKind) -> StageAnswer:
        return StageAnswer(
            answer=text,
            source=AnswerSource.CACHE,
            confidence=USER_CORRECTABLE_CONFIDENCE,
            kind=kind,
        )

    @staticmethod
    def _failure(title: str, detail: str, error: Exception) -> StageAnswer:
        logger.error(f"{title}: {detail}: {error}")
        return StageAnswer(
            answer=f"❌ **{title}**\n\n{detail}\n\nError: {error}",
            source=AnswerSource.LIVE,
            confidence=0.0,
            kind=AnswerKind.ERROR,
        )

    @staticmethod
    def _success(
        text: str,
        source: AnswerSource = AnswerSource.LIVE,
        confidence: float = MUTATION_CONFIDENCE
    ) -> StageAnswer:
        return StageAnswer(answer=text, source=source, confidence=confidence)

    def _missing_context(self, action: str, examples: str, context: QueryContext, query: str) -> StageAnswer:
        results = context.last_results
        if not results:
            return self._user_correctable(
                f"⚠️ **Cannot {action}**\n\nNo tickets in context.\n\n{CONTEXT_EXAMPLES}",
                AnswerKind.MISSING_CONTEXT,
            )

        index = extract_ordinal(query)
        position = (index if index is not None else 0) + 1
        return self._user_correctable(
            f"⚠️ **Cannot {action}**\n\n"
            f"Ticket at position {position} not found. "
            f"Only {len(results)} tickets available in context.\n\nExamples:\n{examples}",
            AnswerKind.MISSING_CONTEXT,
        )

    def _link(self, ticket_id: TicketId) -> str:
        return self.store.record_url(ticket_id)

    # ------------------------------------------------------------------
    # Target resolution
    # ------------------------------------------------------------------

    def _lookup(self, ticket_id: str, context: QueryContext) -> ResolvedTarget:
        for record in context.last_results:
            if str(record.id) == ticket_id:
                return ResolvedTarget(record.id, record)

        snapshot = self.cache.peek()
        if snapshot is not None:
            record = snapshot.find(ticket_id)
            if record is not None:
                return ResolvedTarget(record.id, record)

        return ResolvedTarget(_coerce_id(ticket_id))

    def _resolve_target(self, query: str, context: QueryContext) -> Optional[ResolvedTarget]:
        """
        Explicit "#id" references first, then an ordinal into the previous results

        Returns:
            ResolvedTarget, or None when the ordinal has nothing to point at
        """
        ids = extract_ticket_ids(query)
        if ids:
            return self._lookup(ids[0], context)

        index = extract_ordinal(query)
        if index is None:
            index = 0
        if index < len(context.last_results):
            record = context.last_results[index]
            return ResolvedTarget(record.id, record)
        return None

    # ------------------------------------------------------------------
    # Field updates
    # ------------------------------------------------------------------

    async def _mutate(self, target: ResolvedTarget, patch: TicketPatch) -> TicketRecord:
        # Adapters write before reading the ticket back, so a failure may follow a landed write
        try:
            return await self.store.mutate(target.ticket_id, patch)
        finally:
            self.cache.invalidate()

    async def _update_status(self, query: str, context: QueryContext) -> StageAnswer:
        examples = '• "close the first ticket"\n• "mark second ticket as solved"\n• "set status of ticket #42 to pending"'
        target = self._resolve_target(query, context)
        if target is None:
            return self._missing_context("Update Status", examples, context, query)

        status = extract_status(query)
        if status is None:
            return self._user_correctable(
                f"⚠️ **Cannot Update Status**\n\nCould not determine the target status.\n\nExamples:\n{examples}",
                AnswerKind.AMBIGUOUS_ENTITY,
            )
        backend_status = self.store.map_status(status)
        if backend_status is None:
            return self._user_correctable(
                f"⚠️ **Cannot Update Status**\n\n{self.store.name} has no '{status}' status.",
                AnswerKind.AMBIGUOUS_ENTITY,
            )

        try:
            updated = await self._mutate(target, TicketPatch(status=backend_status))
        except TicketAssistantError as e:
            return self._failure("Error Updating Status", f"Failed to update ticket #{target.ticket_id}", e)

        previous = target.record.status if target.record is not None else "unknown"
        return self._success(
            f"✅ **Status Updated Successfully**\n\n"
            f"**Ticket:** #{updated.id} - {updated.subject}\n"
            f"**Previous Status:** {previous}\n"
            f"**New Status:** {updated.status}\n\n"
            f"**Direct Link:** {self._link(updated.id)}"
        )

    async def _update_priority(self, query: str, context: QueryContext) -> StageAnswer:
        examples = '• "set priority to high for the first ticket"\n• "make ticket #42 urgent"'
        target = self._resolve_target(query, context)
        if target is None:
            return self._missing_context("Update Priority", examples, context, query)

        priority = extract_priority(query)
        if priority is None:
            return self._user_correctable(
                "⚠️ **Cannot Update Priority**\n\n"
                f"Could not determine the target priority (urgent/high/normal/low).\n\nExamples:\n{examples}",
                AnswerKind.AMBIGUOUS_ENTITY,
            )
        backend_priority = self.store.map_priority(priority)
        if backend_priority is None:
            return self._user_correctable(
                f"⚠️ **Cannot Update Priority**\n\n{self.store.name} has no '{priority}' priority.",
                AnswerKind.AMBIGUOUS_ENTITY,
            )

        try:
            updated = await self._mutate(target, TicketPatch(priority=backend_priority))
        except TicketAssistantError as e:
            return self._failure("Error Updating Priority", f"Failed to update ticket #{target.ticket_id}", e)

        previous = target.record.priority if target.record is not None else "unknown"
        return self._success(
            f"✅ **Priority Updated**\n\n"
            f"**Ticket:** #{updated.id} - {updated.subject}\n"
            f"**Previous:** {previous}\n"
            f"**New:** {updated.priority}\n\n"
            f"**Direct Link:** {self._link(updated.id)}"
        )

    async def _assign(self, query: str, context: QueryContext) -> StageAnswer:
        examples = '• "assign the first ticket to sarah@example.com"\n• "reassign ticket #42 to john@example.com"'
        target = self._resolve_target(query, context)
        if target is None:
            return self._missing_context("Assign Ticket", examples, context, query)

        email = extract_email(query)
        if email is None:
            return self._user_correctable(
                f"⚠️ **Cannot Assign Ticket**\n\nCould not find an assignee email in the request.\n\nExamples:\n{examples}",
                AnswerKind.AMBIGUOUS_ENTITY,
            )

        try:
            updated = await self._mutate(target, TicketPatch(assignee_email=email))
        except TicketAssistantError as e:
            return self._failure("Error Assigning Ticket", f"Failed to update ticket #{target.ticket_id}", e)

        return self._success(
            f"✅ **Ticket Assigned Successfully**\n\n"
            f"**Ticket:** #{updated.id} - {updated.subject}\n"
            f"**Assigned To:** {email}\n\n"
            f"**Direct Link:** {self._link(updated.id)}"
        )

    async def _modify_tags(self, query: str, context: QueryContext, adding: bool) -> StageAnswer:
        examples = (
            '• "add tag billing to the first ticket"\n'
            '• "remove the spam tag from ticket #42"\n'
            '• "add tags billing, refund to the second ticket"'
        )
        target = self._resolve_target(query, context)
        if target is None:
            return self._missing_context("Modify Tags", examples, context, query)

        tags = extract_tags(query)
        if not tags:
            return self._user_correctable(
                f"⚠️ **Cannot Modify Tags**\n\nCould not find tag names in the request.\n\nExamples:\n{examples}",
                AnswerKind.AMBIGUOUS_ENTITY,
            )

        patch = TicketPatch(add_tags=tags) if adding else TicketPatch(remove_tags=tags)
        try:
            updated = await self._mutate(target, patch)
        except TicketAssistantError as e:
            return self._failure("Error Modifying Tags", f"Failed to update ticket #{target.ticket_id}", e)

        operation = "Added" if adding else "Removed"
        return self._success(
            f"✅ **Tags {operation} Successfully**\n\n"
            f"**Ticket:** #{updated.id} - {updated.subject}\n"
            f"**Tags {operation}:** {', '.join(tags)}\n"
            f"**Current Tags:** {', '.join(updated.tags) or '(none)'}\n\n"
            f"**Direct Link:** {self._link(updated.id)}"
        )

    # ------------------------------------------------------------------
    # Destructive operations (confirmation gate)
    # ------------------------------------------------------------------

    async def _request_destructive(self, query: str, context: QueryContext, is_spam: bool) -> StageAnswer:
        action = "Mark as Spam" if is_spam else "Delete"
        target = self._resolve_target(query, context)
        if target is None:
            return self._missing_context(
                action, '• "delete the first ticket"\n• "mark ticket #42 as spam"', context, query
            )

        verb = "spam" if is_spam else "delete"
        effect = (
            "This will mark the ticket as spam and suspend the requester."
            if is_spam else
            "This will soft-delete the ticket (it can be restored later)."
        )
        return StageAnswer(
            answer=(
                f"⚠️ **{'Spam Report' if is_spam else 'Deletion'} Requested**\n\n"
                f"**Ticket:** {target.label}\n\n{effect}\n\n"
                f"✋ **Confirmation Required**\n\nTo proceed, reply exactly:\n"
                f"• \"confirm {verb} ticket #{target.ticket_id}\""
            ),
            source=AnswerSource.CACHE,
            confidence=MUTATION_CONFIDENCE,
            kind=AnswerKind.CONFIRMATION_REQUIRED,
        )

    async def _confirm_destructive(self, query: str, context: QueryContext) -> StageAnswer:
        verb, raw_id = extract_confirmation(query)
        ticket_id = _coerce_id(raw_id)

        try:
            if verb == "spam":
                await self.store.mark_spam(ticket_id)
            else:
                await self.store.delete(ticket_id)
        except TicketAssistantError as e:
            action = "mark as spam" if verb == "spam" else "delete"
            return self._failure("Error", f"Failed to {action} ticket #{ticket_id}", e)
        finally:
            self.cache.invalidate()

        if verb == "spam":
            text = (
                f"✅ **Ticket Marked as Spam**\n\n**Ticket:** #{ticket_id}\n\n"
                "The ticket has been marked as spam and the requester has been suspended."
            )
        else:
            text = (
                f"✅ **Ticket Deleted**\n\n**Ticket:** #{ticket_id}\n\n"
                "The ticket has been soft-deleted (can be restored later).\n\n"
                f"To restore: \"restore ticket #{ticket_id}\"\n\n"
                f"**Link:** {self._link(ticket_id)}"
            )
        return self._success(text, confidence=CONFIRMED_CONFIDENCE)

    def _merge_pair(
        self, query: str, context: QueryContext
    ) -> Optional[Tuple[ResolvedTarget, ResolvedTarget]]:
        """(source, target) ResolvedTargets from ids or two ordinals"""
        ids = extract_merge_ids(query)
        if ids is not None:
            return self._lookup(ids[0], context), self._lookup(ids[1], context)

        explicit = extract_ticket_ids(query)
        if len(explicit) >= 2:
            return self._lookup(explicit[0], context), self._lookup(explicit[1], context)

        positions = [ORDINALS[word.lower()] for word in ORDINAL_RE.findall(query)]
        if len(positions) >= 2 and all(p < len(context.last_results) for p in positions[:2]):
            source = context.last_results[positions[0]]
            target = context.last_results[positions[1]]
            return ResolvedTarget(source.id, source), ResolvedTarget(target.id, target)
        return None

    async def _request_merge(self, query: str, context: QueryContext) -> StageAnswer:
        pair = self._merge_pair(query, context)
        if pair is None:
            return self._missing_context(
                "Merge Tickets",
                '• "merge ticket #43 into #42"\n• "merge the second ticket into the first"',
                context,
                query,
            )

        source, target = pair
        return StageAnswer(
            answer=(
                f"⚠️ **Merge Requested**\n\n"
                f"**Source:** {source.label} (will be closed)\n"
                f"**Target:** {target.label} (receives the comments)\n\n"
                f"✋ **Confirmation Required**\n\nTo proceed, reply exactly:\n"
                f"• \"confirm merge ticket #{source.ticket_id} into #{target.ticket_id}\""
            ),
            source=AnswerSource.CACHE,
            confidence=MUTATION_CONFIDENCE,
            kind=AnswerKind.CONFIRMATION_REQUIRED,
        )

    async def _confirm_merge(self, query: str, context: QueryContext) -> StageAnswer:
        raw_source, raw_target = extract_merge_confirmation(query)
        source_id, target_id = _coerce_id(raw_source), _coerce_id(raw_target)

        try:
            merged = await self.store.merge(target_id, [source_id])
        except TicketAssistantError as e:
            return self._failure("Error Merging Tickets", f"Failed to merge #{source_id} into #{target_id}", e)
        finally:
            self.cache.invalidate()

        return self._success(
            f"✅ **Tickets Merged**\n\n"
            f"**Merged:** #{source_id} → #{merged.id} - {merged.subject}\n\n"
            f"**Direct Link:** {self._link(merged.id)}",
            confidence=CONFIRMED_CONFIDENCE,
        )

    async def _restore(self, query: str, context: QueryContext) -> StageAnswer:
        target = self._resolve_target(query, context)
        if target is None:
            return self._missing_context("Restore Ticket", '• "restore ticket #42"', context, query)

        try:
            restored = await self.store.restore(target.ticket_id)
        except TicketAssistantError as e:
            return self._failure("Error Restoring Ticket", f"Failed to restore ticket #{target.ticket_id}", e)
        finally:
            self.cache.invalidate()

        return self._success(
            f"✅ **Ticket Restored**\n\n"
            f"**Ticket:** #{restored.id} - {restored.subject}\n"
            f"**Status:** {restored.status}\n"
            f"**Priority:** {restored.priority}\n\n"
            f"**Direct Link:** {self._link(restored.id)}",
            confidence=CONFIRMED_CONFIDENCE,
        )

    # ------------------------------------------------------------------
    # Create / reply / refresh / users
    # ------------------------------------------------------------------

    async def _create(self, query: str, context: QueryContext) -> StageAnswer:
        try:
            params = await self.completion.complete_json(
                CREATE_PROMPT,
                f'Extract ticket parameters from: "{query}"'
            )
            subject = str(params.get("subject") or "").strip()
            if not subject:
                return self._user_correctable(
                    "⚠️ **Cannot Create Ticket**\n\nCould not work out a subject for the ticket.\n\n"
                    'Example: "create a ticket about login failures for bob@example.com with high priority"',
                    AnswerKind.AMBIGUOUS_ENTITY,
                )
            description = str(params.get("description") or subject)
            priority = extract_priority(str(params.get("priority") or "")) or "normal"
            requester = params.get("requester_email") or extract_email(query)

            created = await self.store.create(
                subject=subject,
                description=description,
                priority=priority,
                requester_email=requester,
            )
        except TicketAssistantError as e:
            return self._failure("Error Creating Ticket", "Failed to create ticket from the request.", e)

        self.cache.invalidate()
        return self._success(
            f"✅ **Ticket Created Successfully**\n\n"
            f"**Ticket #{created.id}**\n\n"
            f"**Subject:** {created.subject}\n"
            f"**Priority:** {created.priority}\n"
            f"**Status:** {created.status}\n\n"
            f"**Description:**\n{description}\n\n"
            f"**Direct Link:** {self._link(created.id)}"
        )

    async def _generate_reply(self, query: str, context: QueryContext) -> StageAnswer:
        target = self._resolve_target(query, context)
        if target is None:
            return self._missing_context(
                "Generate Reply",
                '• "build a reply for the first ticket"\n• "draft a response to ticket #42"',
                context,
                query,
            )

        try:
            record = target.record or await self.store.get_record(target.ticket_id)
            reply = await self.completion.complete(
                REPLY_PROMPT,
                f"Subject: {record.subject}\n\nCustomer message:\n{record.description}"
            )
            await self.store.post_reply(record.id, reply)
        except TicketAssistantError as e:
            return self._failure(
                "Error Generating Reply", f"Failed to create reply for ticket #{target.ticket_id}", e
            )

        self.cache.invalidate()
        preview = reply[:REPLY_PREVIEW_CHARS] + ("..." if len(reply) > REPLY_PREVIEW_CHARS else "")
        return self._success(
            f"✅ **Reply Generated and Posted**\n\n"
            f"**Ticket:** #{record.id} - {record.subject}\n\n"
            f"**Reply Preview:**\n{preview}\n\n"
            f"**Direct Link:** {self._link(record.id)}",
            source=AnswerSource.AI,
        )

    async def _refresh(self, query: str, context: QueryContext) -> StageAnswer:
        self.cache.invalidate()
        try:
            snapshot = await self.cache.get()
        except TicketAssistantError as e:
            return self._failure("Refresh Failed", f"Could not reload tickets from {self.store.name}.", e)

        return self._success(
            f"✅ **Ticket Data Refreshed**\n\nLoaded **{snapshot.total}** tickets from {self.store.name}.",
            confidence=CONFIRMED_CONFIDENCE,
        )

    async def _list_users(self, query: str, context: QueryContext) -> StageAnswer:
        try:
            users = await self.store.list_users()
        except TicketAssistantError as e:
            return self._failure("Error Listing Users", f"Failed to fetch users from {self.store.name}.", e)

        by_role: Dict[str, List[HelpdeskUser]] = {}
        for user in users:
            by_role.setdefault(user.role, []).append(user)

        sections = [f"✅ **Users & Customers**\n\n**Total Users:** {len(users)}"]
        for role, title, limit in (
            ("admin", "Admins", 10),
            ("agent", "Agents", 10),
            ("end-user", "End Users / Customers", 15),
        ):
            members = by_role.get(role, [])
            if not members:
                continue
            lines = [f"**{title}** ({len(members)}):"]
            lines.extend(
                f"  • {u.name} ({u.email}) {'✓' if u.active else '✗'}" for u in members[:limit]
            )
            if len(members) > limit:
                lines.append(f"  ... and {len(members) - limit} more")
            sections.append("\n".join(lines))

        sections.append("✓ Active  ✗ Inactive")
        return self._success("\n\n".join(sections))
