"""
Query pattern library

Intent rules for ticket operations plus the entity extractors shared by the
classifier and the dispatcher:
- Intent classification by rule specificity with explicit tie detection
- Ordinal ("the second ticket") and explicit id ("#42") references
- Status / priority keyword maps
- Tag phrasing patterns (quoted, simple, comma-list, "the X tag")
- Listing, operation-verb and analytical guards
"""
import re
from typing import Dict, List, Optional, Pattern, Sequence, Tuple

from ticket_assistant.models.schemas import Intent
from ticket_assistant.utils.validators import find_emails

_I = re.IGNORECASE


def _compile(*patterns: str) -> Tuple[Pattern, ...]:
    return tuple(re.compile(p, _I) for p in patterns)


# ============================================================================
# Intent rules
# ============================================================================

class IntentRule:
    """
    A set of patterns for one intent

    Higher specificity wins when several rules match the same query.
    """

    def __init__(self, intent: Intent, specificity: int, patterns: Tuple[Pattern, ...]):
        self.intent = intent
        self.specificity = specificity
        self.patterns = patterns

    def matches(self, query: str) -> bool:
        return any(p.search(query) for p in self.patterns)

    def __repr__(self) -> str:
        return f"IntentRule({self.intent.value}, specificity={self.specificity})"


INTENT_RULES: List[IntentRule] = [
    IntentRule(Intent.CONFIRM_DELETE, 100, _compile(
        r"^\s*confirm\s+delete\s+ticket\s+#?\d+\s*[.!]?\s*$",
    )),
    IntentRule(Intent.CONFIRM_SPAM, 100, _compile(
        r"^\s*confirm\s+spam\s+ticket\s+#?\d+\s*[.!]?\s*$",
    )),
    IntentRule(Intent.CONFIRM_MERGE, 100, _compile(
        r"^\s*confirm\s+merge\s+ticket\s+#?\d+\s+into\s+#?\d+\s*[.!]?\s*$",
    )),
    IntentRule(Intent.REFRESH, 90, _compile(
        r"^\s*(refresh|sync|reload|fetch|pull)\b",
        r"\bupdate\s+(the\s+)?(cache|data)\b",
    )),
    IntentRule(Intent.TAG_ADD, 80, _compile(
        r"\b(add|attach|apply)\b.*\b(tags?|labels?)\b",
        r"\btag\s+(it|this|that|the\s+\w+\s+ticket|ticket\s*#?\d+|#\d+)\s+(as|with)\b",
    )),
    IntentRule(Intent.TAG_REMOVE, 80, _compile(
        r"\b(remove|delete|drop|clear)\b.*\b(tags?|labels?)\b",
        r"\buntag\b",
    )),
    IntentRule(Intent.GENERATE_REPLY, 75, _compile(
        r"\b(build|create|generate|write|compose|draft|send|post)\s+(a\s+|an\s+)?(reply|response|answer)\b",
        r"\b(reply|respond)\s+to\b",
    )),
    IntentRule(Intent.CREATE, 70, _compile(
        r"\b(create|make|submit|file|log|open)\s+(a\s+|an\s+)?(new\s+)?(support\s+)?(ticket|issue|conversation)\b"
        r"(?!\s*(?:#|id\b|\d))",
        r"\bnew\s+(support\s+)?ticket\s+(for|about|from)\b",
    )),
    IntentRule(Intent.RESTORE, 70, _compile(
        r"\b(restore|undelete|recover)\s+(the\s+)?(\w+\s+)?(ticket|issue)\b",
        r"\b(restore|undelete)\s+#\d+\b",
    )),
    IntentRule(Intent.MERGE, 70, _compile(
        r"\b(merge|combine|consolidate)\b.*\b(tickets?|into|#\d+)\b",
    )),
    IntentRule(Intent.DELETE, 65, _compile(
        r"\b(delete|trash|discard)\s+(the\s+)?(\w+\s+)?(ticket|issue|conversation)\b",
        r"\bremove\s+(the\s+)?(\w+\s+)?(ticket|issue)\s*(#?\d+)?\s*$",
        r"\bdelete\s+#\d+\b",
    )),
    IntentRule(Intent.SPAM, 65, _compile(
        r"\b(mark|flag|report)\b.*\bas\s+spam\b",
        r"\bspam\s+(it|this|ticket\s*#?\d+|the\s+\w+\s+ticket)\b",
        r"\bis\s+spam\b",
    )),
    IntentRule(Intent.ASSIGN, 60, _compile(
        r"\b(assign|reassign)\b",
        r"\b(give|hand|transfer)\s+(it|this|that|the\s+\w+\s+ticket|ticket\s*#?\d+)\s+to\b",
    )),
    IntentRule(Intent.UPDATE_PRIORITY, 50, _compile(
        r"\b(set|change|update|raise|lower|bump)\b.*\bpriority\b",
        r"\bpriority\s+(to|as)\s+\w+",
        r"\b(make|mark)\s+(it|this|that|the\s+\w+\s+ticket|ticket\s*#?\d+|#\d+)\s+(as\s+)?"
        r"(urgent|critical|high|normal|medium|low)\b",
    )),
    IntentRule(Intent.UPDATE_STATUS, 50, _compile(
        r"\b(close|solve|resolve|reopen|re-open|snooze)\s+(it|this|that|the|ticket|conversation|#\d+)\b",
        r"\b(mark|set|change|update|move)\b.*\b(as|to)\s+"
        r"(closed|solved|resolved|open|pending|on\s+hold|hold|snoozed|new)\b",
        r"\bstatus\s+(to|as)\s+\w+",
    )),
    IntentRule(Intent.LIST_USERS, 40, _compile(
        r"\b(show|list|display|get|view)\s+(me\s+)?(all\s+|the\s+)?(users?|agents?|admins?|customers?|people|team\s+members?)\b",
        r"\bwho\s+(are|is)\s+(the\s+|our\s+)?(users?|agents?|admins?)\b",
    )),
]


class IntentClassification:
    """
    Outcome of running every intent rule over a query

    ``intent`` is set when exactly one intent holds the top specificity;
    ``candidates`` lists every intent tied at that specificity.
    """

    def __init__(self, candidates: List[Intent], specificity: int):
        self.candidates = candidates
        self.specificity = specificity

    @property
    def is_ambiguous(self) -> bool:
        return len(self.candidates) > 1

    @property
    def intent(self) -> Optional[Intent]:
        return None if self.is_ambiguous else self.candidates[0]


def classify_intent(
    query: str,
    rules: Sequence[IntentRule] = INTENT_RULES
) -> Optional[IntentClassification]:
    """
    Evaluate all rules; the highest specificity wins

    Args:
        query: Raw user query
        rules: Intent rules to evaluate

    Returns:
        IntentClassification, or None when no rule matches
    """
    matched = [rule for rule in rules if rule.matches(query)]
    if not matched:
        return None

    top = max(rule.specificity for rule in matched)
    candidates: List[Intent] = []
    for rule in matched:
        if rule.specificity == top and rule.intent not in candidates:
            candidates.append(rule.intent)
    return IntentClassification(candidates, top)


# ============================================================================
# Ticket references
# ============================================================================

ORDINALS: Dict[str, int] = {
    "first": 0, "1st": 0,
    "second": 1, "2nd": 1,
    "third": 2, "3rd": 2,
    "fourth": 3, "4th": 3,
    "fifth": 4, "5th": 4,
}

ORDINAL_RE = re.compile(r"\b(first|1st|second|2nd|third|3rd|fourth|4th|fifth|5th)\b", _I)

# Explicit ids only: "#42", "ticket 42", "ticket id 42", "conversation 42"
TICKET_ID_RE = re.compile(r"(?:#|\b(?:ticket|conversation)\s+(?:id\s+)?#?)(\d+)\b", _I)

# Confirmations must be the whole message, not a phrase inside a longer sentence
CONFIRM_RE = re.compile(r"^\s*confirm\s+(delete|spam)\s+ticket\s+#?(\d+)\s*[.!]?\s*$", _I)
CONFIRM_MERGE_RE = re.compile(r"^\s*confirm\s+merge\s+ticket\s+#?(\d+)\s+into\s+#?(\d+)\s*[.!]?\s*$", _I)
MERGE_INTO_RE = re.compile(r"#?(\d+)\s+(?:into|with)\s+(?:ticket\s+)?#?(\d+)\b", _I)


def extract_ordinal(query: str) -> Optional[int]:
    """Zero-based index for the first ordinal word in the query, if any"""
    match = ORDINAL_RE.search(query)
    if not match:
        return None
    return ORDINALS[match.group(1).lower()]


def extract_ticket_ids(query: str) -> List[str]:
    """Explicitly referenced ticket ids in order of appearance"""
    ids: List[str] = []
    for match in TICKET_ID_RE.finditer(query):
        if match.group(1) not in ids:
            ids.append(match.group(1))
    return ids


def extract_confirmation(query: str) -> Optional[Tuple[str, str]]:
    """("delete" | "spam", ticket id) for a literal confirmation phrase"""
    match = CONFIRM_RE.search(query)
    if not match:
        return None
    return match.group(1).lower(), match.group(2)


def extract_merge_confirmation(query: str) -> Optional[Tuple[str, str]]:
    """(source id, target id) for "confirm merge ticket #S into #T" """
    match = CONFIRM_MERGE_RE.search(query)
    if not match:
        return None
    return match.group(1), match.group(2)


def extract_merge_ids(query: str) -> Optional[Tuple[str, str]]:
    """(source id, target id) for "merge #S into #T" """
    match = MERGE_INTO_RE.search(query)
    if not match:
        return None
    return match.group(1), match.group(2)


# ============================================================================
# Entities
# ============================================================================

STATUS_KEYWORDS: List[Tuple[Pattern, str]] = [
    (re.compile(r"\b(close|closed)\b", _I), "closed"),
    (re.compile(r"\b(solve|solved|resolve|resolved)\b", _I), "solved"),
    (re.compile(r"\b(reopen|re-open|reopened)\b", _I), "open"),
    (re.compile(r"\bpending\b", _I), "pending"),
    (re.compile(r"\b(on\s+hold|hold)\b", _I), "hold"),
    (re.compile(r"\b(snooze|snoozed)\b", _I), "snoozed"),
    (re.compile(r"\bopen\b", _I), "open"),
    (re.compile(r"\bnew\b", _I), "new"),
]

PRIORITY_KEYWORDS: List[Tuple[Pattern, str]] = [
    (re.compile(r"\b(urgent|critical)\b", _I), "urgent"),
    (re.compile(r"\bhigh\b", _I), "high"),
    (re.compile(r"\b(normal|medium)\b", _I), "normal"),
    (re.compile(r"\blow\b", _I), "low"),
]


def extract_status(query: str) -> Optional[str]:
    for pattern, status in STATUS_KEYWORDS:
        if pattern.search(query):
            return status
    return None


def extract_priority(query: str) -> Optional[str]:
    for pattern, priority in PRIORITY_KEYWORDS:
        if pattern.search(query):
            return priority
    return None


def extract_email(query: str) -> Optional[str]:
    emails = find_emails(query)
    return emails[0] if emails else None


TAG_STOPWORDS = {
    "a", "an", "the", "to", "from", "on", "for", "of", "in", "it", "this",
    "that", "as", "with", "and", "or", "ticket", "tickets", "add", "remove",
    "delete", "attach", "apply", "clear", "drop", "untag", "new",
}

_QUOTED_TAG_PATTERNS = _compile(
    r"\b(?:tags?|labels?)\s+(?:it\s+|this\s+)?(?:as\s+|with\s+)?[\"']([^\"']+)[\"']",
    r"[\"']([^\"']+)[\"']\s+(?:tag|label)\b",
)
_SIMPLE_TAG_PATTERNS = _compile(
    r"\b(?:tags?|labels?)\s+(?:it\s+|this\s+|that\s+)?(?:as\s+|with\s+)?([\w-]+)\b(?!\s*,)",
    r"\buntag\s+[\"']?([\w-]+)\b(?!\s*,)",
)
_LIST_TAG_RE = re.compile(
    r"\b(?:tags?|labels?)\s+(?:it\s+|this\s+)?(?:as\s+|with\s+)?([\w-]+(?:\s*,\s*(?:and\s+)?[\w-]+)+)", _I
)
_NAMED_TAG_RE = re.compile(r"\b(?:the\s+)?([\w-]+)\s+(?:tag|label)\b", _I)


def _clean_tags(values: List[str]) -> List[str]:
    tags: List[str] = []
    for value in values:
        tag = value.strip().lower()
        if tag.startswith("and "):
            tag = tag[4:].strip()
        if tag and tag not in TAG_STOPWORDS and tag not in tags:
            tags.append(tag)
    return tags


def extract_tags(query: str) -> List[str]:
    """
    Extract tag names, trying phrasings in order; first non-empty wins

    Order: quoted ("tag with 'vip customer'"), simple ("tag it as billing"),
    comma-list ("tags billing, refund"), named ("remove the spam tag").
    """
    for pattern in _QUOTED_TAG_PATTERNS:
        match = pattern.search(query)
        if match:
            tags = _clean_tags([match.group(1)])
            if tags:
                return tags

    for pattern in _SIMPLE_TAG_PATTERNS:
        match = pattern.search(query)
        if match:
            tags = _clean_tags([match.group(1)])
            if tags:
                return tags

    match = _LIST_TAG_RE.search(query)
    if match:
        tags = _clean_tags(match.group(1).split(","))
        if tags:
            return tags

    for match in _NAMED_TAG_RE.finditer(query):
        tags = _clean_tags([match.group(1)])
        if tags:
            return tags

    return []


# ============================================================================
# Guards and listing detection
# ============================================================================

OPERATION_VERB_RE = re.compile(
    r"\b(close|solve|resolve|reopen|re-open|snooze|assign|reassign|delete|remove|trash|"
    r"restore|undelete|merge|mark|set|change|update|add|untag|create|reply|respond|"
    r"draft|generate|confirm|refresh|sync|reload)\b",
    _I,
)

ANALYTICAL_RE = re.compile(
    r"\b(review|analy[sz]e|analysis|prioriti[sz]e|which\s+ones?|tell\s+me\s+which|"
    r"recommend\w*|need\w*\s+attention|suggest\w*|why)\b",
    _I,
)

LISTING_RE = re.compile(
    r"\b(show|list|display|top|recent|latest|first)\s+(\d+\s+)?(\w+\s+)?(tickets?|issues?|conversations?)\b", _I
)
LISTING_COUNT_RE = re.compile(
    r"\b(top|first|show|list|latest|recent)\s+(\d+)\s+(?:\w+\s+)?(tickets?|issues?|conversations?)\b", _I
)


def has_operation_verb(query: str) -> bool:
    return bool(OPERATION_VERB_RE.search(query))


def is_analytical(query: str) -> bool:
    return bool(ANALYTICAL_RE.search(query))


def is_listing_request(query: str) -> bool:
    return bool(LISTING_RE.search(query))


def extract_listing_count(query: str, default: int = 5) -> int:
    """Requested number of tickets for "show top N tickets" style queries"""
    match = LISTING_COUNT_RE.search(query)
    if not match:
        return default
    count = int(match.group(2))
    return count if count > 0 else default
