"""
Fast-Path Classifier

Answers a fixed set of counting questions straight from the cached
aggregates, without the store or the language model:
- Total ticket count
- Tag counts and tag breakdown
- Status breakdown
- Priority breakdown
- Age buckets
"""
import re
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from ticket_assistant.models.schemas import AnswerSource, StageAnswer
from ticket_assistant.models.ticket import TicketCacheSnapshot
from ticket_assistant.services.query_patterns import (
    has_operation_verb,
    is_analytical,
    is_listing_request,
)
from ticket_assistant.utils.logger import get_logger

logger = get_logger(__name__)

_I = re.IGNORECASE

TOTAL_CONFIDENCE = 0.99
BREAKDOWN_CONFIDENCE = 0.95

# ============================================================================
# Recognizer patterns
# ============================================================================

TOTAL_RE = re.compile(
    r"\b(total|how\s+many|count|number\s+of|altogether)\b.*\b(tickets?|issues?|conversations?|cases?)\b"
    r"|\b(ticket|conversation)\s+count\b",
    _I,
)

STATUS_WORDS_RE = re.compile(
    r"\b(open|opened|closed|pending|solved|resolved|new|hold|snoozed|status)\b", _I
)
PRIORITY_WORDS_RE = re.compile(r"\b(urgent|critical|high|normal|medium|low|priority)\b", _I)
TAG_WORDS_RE = re.compile(r"\b(tags?|tagged|labels?|labelled|labeled)\b", _I)
AGE_WORDS_RE = re.compile(
    r"\b(today|yesterday|hours?|days?|week|weeks|month|months|old|older|age|aging|recent|recently|stale)\b",
    _I,
)
COMPLEX_CONDITION_RE = re.compile(
    r"\b(words?|characters?|contains?|containing|mentions?|mentioning|longer|shorter|"
    r"more\s+than|less\s+than|fewer\s+than)\b",
    _I,
)

COUNT_QUESTION_RE = re.compile(r"\b(how\s+many|count|number\s+of)\b", _I)

TAG_BREAKDOWN_RE = re.compile(
    r"\b(tags?)\s+(breakdown|summary|distribution|stats|statistics|counts?)\b"
    r"|\bcount\s+by\s+tag\b|\b(top|most\s+common|popular)\s+tags\b",
    _I,
)
TAG_NAME_PATTERNS = [
    re.compile(r"\btagged\s+(?:with\s+|as\s+)?[\"']?([\w-]+)", _I),
    re.compile(r"\b(?:with|has|have)\s+(?:the\s+)?tag\s+[\"']?([\w-]+)", _I),
    re.compile(r"\b(?:with|has|have)\s+(?:the\s+|a\s+)?[\"']?([\w-]+)[\"']?\s+tag\b", _I),
]

STATUS_BREAKDOWN_RE = re.compile(
    r"\bstatus\s+(breakdown|summary|distribution|stats|statistics|counts?)\b"
    r"|\bcount\s+by\s+status\b|\b(ticket|conversation)\s+(stats|statistics|breakdown)\b",
    _I,
)
STATUS_COUNT_RE = re.compile(
    r"\bhow\s+many\s+(?:tickets?\s+|conversations?\s+)?(?:are\s+|is\s+)?(?:currently\s+)?"
    r"(open|closed|pending|solved|resolved|new|on\s+hold|snoozed)\b",
    _I,
)

PRIORITY_BREAKDOWN_RE = re.compile(
    r"\bpriority\s+(breakdown|summary|distribution|stats|statistics|counts?)\b|\bcount\s+by\s+priority\b",
    _I,
)
PRIORITY_COUNT_RE = re.compile(
    r"\bhow\s+many\s+(?:tickets?\s+|conversations?\s+)?(?:are\s+|have\s+)?"
    r"(urgent|critical|high|normal|medium|low)\b",
    _I,
)

AGE_BREAKDOWN_RE = re.compile(
    r"\b(age|aging)\s+(breakdown|analysis|report|summary|distribution)\b"
    r"|\bhow\s+old\s+are\b|\b(old|stale|aging)\s+tickets?\b|\btickets?\s+older\s+than\b",
    _I,
)
# "older than N" / "more than N days old" / "over N days" ask for the complement of a window
OLDER_THAN_RE = re.compile(
    r"\b(?:older\s+than|more\s+than|over)\s+"
    r"(a\s+day|24\s*h(?:ours)?|1\s+day|a\s+week|7\s+days|a\s+month|30\s+days)\b",
    _I,
)
OLDER_THAN_WINDOWS = {
    "a day": "24h", "1 day": "24h",
    "a week": "7d", "7 days": "7d",
    "a month": "30d", "30 days": "30d",
}
# First match wins
AGE_WINDOWS = [
    (re.compile(r"\b(today|last\s+24\s*h(ours)?|past\s+24\s*h(ours)?|24\s+hours|last\s+day|past\s+day)\b", _I), "24h"),
    (re.compile(r"\b(this\s+week|last\s+week|past\s+week|last\s+7\s+days|past\s+7\s+days|7\s+days)\b", _I), "7d"),
    (re.compile(r"\b(this\s+month|last\s+month|past\s+month|last\s+30\s+days|past\s+30\s+days|30\s+days)\b", _I), "30d"),
]

STATUS_ALIASES = {"resolved": "solved", "on hold": "hold"}
PRIORITY_ALIASES = {"critical": "urgent", "medium": "normal"}


# ============================================================================
# Formatting helpers
# ============================================================================

def _format_counts(counts: Dict[str, int]) -> List[str]:
    if not counts:
        return ["- (no tickets in cache)"]
    ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [f"- **{key}**: {value}" for key, value in ordered]


def _plural(count: int) -> str:
    return "ticket" if count == 1 else "tickets"


def format_ticket_stats(snapshot: TicketCacheSnapshot) -> str:
    """
    Render the full statistics block for a snapshot

    Args:
        snapshot: Cached snapshot

    Returns:
        Markdown text with status, priority, age and tag sections
    """
    aggregates = snapshot.aggregates
    age = aggregates.by_age
    updated = datetime.fromtimestamp(snapshot.fetched_at, tz=timezone.utc)
    top_tags = dict(sorted(aggregates.by_tag.items(), key=lambda i: (-i[1], i[0]))[:10])

    lines = [
        f"📊 **Ticket statistics** ({snapshot.total} total)",
        "",
        "**By status:**",
        *_format_counts(aggregates.by_status),
        "",
        "**By priority:**",
        *_format_counts(aggregates.by_priority),
        "",
        "**By age:**",
        f"- Last 24 hours: {age.less_than_24h}",
        f"- 1-7 days: {age.less_than_7d}",
        f"- 7-30 days: {age.less_than_30d}",
        f"- Older than 30 days: {age.older_than_30d}",
        "",
        "**Top tags:**",
        *_format_counts(top_tags),
        "",
        f"Last updated: {updated.strftime('%Y-%m-%d %H:%M:%S')} UTC",
    ]
    return "\n".join(lines)


def _answer(text: str, confidence: float) -> StageAnswer:
    return StageAnswer(answer=f"✅ {text}", source=AnswerSource.CACHE, confidence=confidence)


# ============================================================================
# Recognizers
# ============================================================================

def _total_count(query: str, snapshot: TicketCacheSnapshot) -> Optional[StageAnswer]:
    if not TOTAL_RE.search(query):
        return None
    for guard in (STATUS_WORDS_RE, PRIORITY_WORDS_RE, TAG_WORDS_RE, AGE_WORDS_RE, COMPLEX_CONDITION_RE):
        if guard.search(query):
            return None

    total = snapshot.total
    return _answer(f"There are **{total}** {_plural(total)} in total.", TOTAL_CONFIDENCE)


def _tag_name(query: str) -> Optional[str]:
    for pattern in TAG_NAME_PATTERNS:
        match = pattern.search(query)
        if match:
            return match.group(1).lower()
    return None


def _tag_breakdown(query: str, snapshot: TicketCacheSnapshot) -> Optional[StageAnswer]:
    by_tag = snapshot.aggregates.by_tag

    if COUNT_QUESTION_RE.search(query):
        tag = _tag_name(query)
        if tag:
            count = next((v for k, v in by_tag.items() if k.lower() == tag), 0)
            verb = "is" if count == 1 else "are"
            return _answer(
                f"**{count}** {_plural(count)} {verb} tagged **{tag}**.",
                BREAKDOWN_CONFIDENCE,
            )

    if TAG_BREAKDOWN_RE.search(query):
        top_tags = dict(sorted(by_tag.items(), key=lambda i: (-i[1], i[0]))[:15])
        lines = [f"Tag breakdown ({snapshot.total} tickets):", *_format_counts(top_tags)]
        return _answer("\n".join(lines), BREAKDOWN_CONFIDENCE)

    return None


def _status_breakdown(query: str, snapshot: TicketCacheSnapshot) -> Optional[StageAnswer]:
    by_status = snapshot.aggregates.by_status

    match = STATUS_COUNT_RE.search(query)
    if match:
        status = re.sub(r"\s+", " ", match.group(1).lower())
        status = STATUS_ALIASES.get(status, status)
        count = by_status.get(status, 0)
        verb = "is" if count == 1 else "are"
        return _answer(f"**{count}** {_plural(count)} {verb} **{status}**.", BREAKDOWN_CONFIDENCE)

    if STATUS_BREAKDOWN_RE.search(query):
        lines = [f"Status breakdown ({snapshot.total} tickets):", *_format_counts(by_status)]
        return _answer("\n".join(lines), BREAKDOWN_CONFIDENCE)

    return None


def _priority_breakdown(query: str, snapshot: TicketCacheSnapshot) -> Optional[StageAnswer]:
    by_priority = snapshot.aggregates.by_priority

    match = PRIORITY_COUNT_RE.search(query)
    if match:
        priority = match.group(1).lower()
        priority = PRIORITY_ALIASES.get(priority, priority)
        count = by_priority.get(priority, 0)
        return _answer(
            f"**{count}** {_plural(count)} with **{priority}** priority.",
            BREAKDOWN_CONFIDENCE,
        )

    if PRIORITY_BREAKDOWN_RE.search(query):
        lines = [f"Priority breakdown ({snapshot.total} tickets):", *_format_counts(by_priority)]
        return _answer("\n".join(lines), BREAKDOWN_CONFIDENCE)

    return None


def _age_breakdown(query: str, snapshot: TicketCacheSnapshot) -> Optional[StageAnswer]:
    age = snapshot.aggregates.by_age
    asks_count = COUNT_QUESTION_RE.search(query) or AGE_BREAKDOWN_RE.search(query)

    older = OLDER_THAN_RE.search(query)
    if older is not None and asks_count:
        unit = re.sub(r"\s+", " ", older.group(1).lower())
        window = "24h" if unit.startswith("24") else OLDER_THAN_WINDOWS[unit]
        # Everything outside the window
        if window == "24h":
            count = age.less_than_7d + age.less_than_30d + age.older_than_30d
            label = "more than 24 hours ago"
        elif window == "7d":
            count, label = age.less_than_30d + age.older_than_30d, "more than 7 days ago"
        else:
            count, label = age.older_than_30d, "more than 30 days ago"
        return _answer(f"**{count}** {_plural(count)} created {label}.", BREAKDOWN_CONFIDENCE)

    window = None
    for pattern, name in AGE_WINDOWS:
        if pattern.search(query):
            window = name
            break

    if window is not None and asks_count:
        # Windows are cumulative over the disjoint buckets
        if window == "24h":
            count, label = age.less_than_24h, "in the last 24 hours"
        elif window == "7d":
            count, label = age.less_than_24h + age.less_than_7d, "in the last 7 days"
        else:
            count = age.less_than_24h + age.less_than_7d + age.less_than_30d
            label = "in the last 30 days"
        return _answer(f"**{count}** {_plural(count)} created {label}.", BREAKDOWN_CONFIDENCE)

    if AGE_BREAKDOWN_RE.search(query):
        lines = [
            f"Age breakdown ({snapshot.total} tickets):",
            f"- Last 24 hours: {age.less_than_24h}",
            f"- 1-7 days: {age.less_than_7d}",
            f"- 7-30 days: {age.less_than_30d}",
            f"- Older than 30 days: {age.older_than_30d}",
        ]
        return _answer("\n".join(lines), BREAKDOWN_CONFIDENCE)

    return None


Recognizer = Callable[[str, TicketCacheSnapshot], Optional[StageAnswer]]

# Order matters: first match wins
RECOGNIZERS: List[Recognizer] = [
    _total_count,
    _tag_breakdown,
    _status_breakdown,
    _priority_breakdown,
    _age_breakdown,
]

# Listing requests ("show top 5 open tickets") belong to the fallback
LISTING_SENSITIVE = {_tag_breakdown, _status_breakdown, _priority_breakdown, _age_breakdown}


def try_classify(query: str, snapshot: TicketCacheSnapshot) -> Optional[StageAnswer]:
    """
    Try to answer a query from cached aggregates

    Args:
        query: Raw user query
        snapshot: Current cache snapshot

    Returns:
        StageAnswer with source "cache", or None when no recognizer fires
    """
    if has_operation_verb(query) or is_analytical(query):
        return None

    listing = is_listing_request(query)
    for recognizer in RECOGNIZERS:
        if listing and recognizer in LISTING_SENSITIVE:
            continue
        answer = recognizer(query, snapshot)
        if answer is not None:
            logger.info(f"Fast path answered via {recognizer.__name__.lstrip('_')}")
            return answer
    return None
