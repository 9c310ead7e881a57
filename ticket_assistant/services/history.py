"""
Conversation History Log

Bounded log of past query/answer pairs persisted as one JSON document per
backend. Recent entries are injected into the fallback prompt.

File layout:
    {"entries": [...], "max_entries": 50, "last_updated": "<iso8601>"}
"""
import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from ticket_assistant.config import get_settings
from ticket_assistant.models.schemas import ConversationHistoryEntry
from ticket_assistant.utils.logger import get_logger

settings = get_settings()
logger = get_logger(__name__)


class ConversationHistoryLog:
    """
    Append-only FIFO log backed by a JSON file

    Every append reads and rewrites the whole file in a worker thread.
    Writes from one process are serialized by an asyncio.Lock; separate
    processes sharing the file can still lose entries.
    """

    def __init__(
        self,
        path: Path,
        max_entries: Optional[int] = None,
        response_chars: Optional[int] = None
    ):
        self.path = Path(path)
        self.max_entries = max_entries if max_entries is not None else settings.history_max_entries
        self.response_chars = (
            response_chars if response_chars is not None else settings.history_response_chars
        )
        self._lock = asyncio.Lock()

    @classmethod
    def for_backend(cls, backend: str) -> "ConversationHistoryLog":
        """History log stored as ``<history_dir>/<backend>.json``"""
        return cls(Path(settings.history_dir) / f"{backend}.json")

    # ------------------------------------------------------------------
    # Blocking file I/O (runs in a worker thread)
    # ------------------------------------------------------------------

    def _read_entries(self) -> List[ConversationHistoryEntry]:
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return [ConversationHistoryEntry(**raw) for raw in data.get("entries", [])]
        except (OSError, ValueError, TypeError, AttributeError, ValidationError) as e:
            logger.warning(f"History file {self.path} unreadable, treating as empty: {e}")
            return []

    def _write_entries(self, entries: List[ConversationHistoryEntry]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        document: Dict[str, Any] = {
            "entries": [entry.model_dump(mode="json") for entry in entries],
            "max_entries": self.max_entries,
            "last_updated": datetime.now(timezone.utc).isoformat(),
        }
        self.path.write_text(json.dumps(document, indent=2, ensure_ascii=False), encoding="utf-8")

    def _append_sync(self, entry: ConversationHistoryEntry) -> None:
        entries = self._read_entries()
        entries.append(entry)
        self._write_entries(entries[-self.max_entries:])

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def append(self, entry: ConversationHistoryEntry) -> None:
        """
        Append an entry, truncating its response and evicting the oldest entries

        Raises:
            OSError: If the history file cannot be written
        """
        if len(entry.response) > self.response_chars:
            entry = entry.model_copy(update={"response": entry.response[:self.response_chars]})

        async with self._lock:
            await asyncio.to_thread(self._append_sync, entry)

    async def recent(self, n: int) -> List[ConversationHistoryEntry]:
        """Newest ``n`` entries, oldest first"""
        if n <= 0:
            return []
        entries = await asyncio.to_thread(self._read_entries)
        return entries[-n:]

    async def clear(self) -> None:
        async with self._lock:
            await asyncio.to_thread(self._write_entries, [])
        logger.info(f"History log {self.path} cleared")

    async def stats(self) -> Dict[str, Any]:
        """Entry count plus oldest/newest timestamps (None when empty)"""
        entries = await asyncio.to_thread(self._read_entries)
        return {
            "total_entries": len(entries),
            "oldest_entry": entries[0].timestamp if entries else None,
            "newest_entry": entries[-1].timestamp if entries else None,
        }
