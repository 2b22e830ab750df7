import datetime as dt
import logging
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Any

from clipstash.models import ClipboardEntry, ClipboardHistory, ItemType, Metadata, utcnow

logger = logging.getLogger(__name__)


class Storage(ABC):
    """Asynchronous persistence for clipboard entries.

    Implementations catch their own backend errors, log them, and return the
    operation's sentinel (None, -1 or an empty list) instead of raising.
    Only ``init`` may raise, when the backend cannot be made usable at all.
    """

    @abstractmethod
    async def init(self) -> None: ...

    @abstractmethod
    async def list_all(self) -> list[ClipboardEntry]:
        """All entries, newest first."""

    @abstractmethod
    async def insert(self, item_type: ItemType, content: str, metadata: Metadata | None = None) -> ClipboardEntry | None:
        """Store a new entry, or return None when ``(type, content)`` already exists."""

    @abstractmethod
    async def select_conflict(self, item_type: ItemType, content: str) -> int | None: ...

    @abstractmethod
    async def update_field(self, entry_id: int, field: str, value: Any) -> int:
        """Update one field and return -1, or the id of the entry a key change collides with."""

    @abstractmethod
    async def delete(self, entry_id: int) -> None: ...

    @abstractmethod
    async def delete_oldest(self, keep_count: int, older_than_minutes: int) -> list[int]:
        """Evict unpinned, untagged entries beyond ``keep_count`` or older than the cutoff."""

    @abstractmethod
    async def clear(self, policy: ClipboardHistory) -> list[int]: ...

    @abstractmethod
    async def close(self) -> None: ...


def history_cutoff(older_than_minutes: int, now: dt.datetime | None = None) -> dt.datetime | None:
    if older_than_minutes <= 0:
        return None
    return (now or utcnow()) - dt.timedelta(minutes=older_than_minutes)


class MemoryStore(Storage):
    """Transient store used when the database is disabled or unavailable."""

    def __init__(self):
        self._entries: dict[str, ClipboardEntry] = {}
        self._keys: dict[int, str] = {}
        self._next_id = 0

    @staticmethod
    def _key(item_type: ItemType, content: str) -> str:
        return f"{item_type.value}:{content}"

    async def init(self) -> None:
        pass

    async def list_all(self) -> list[ClipboardEntry]:
        entries = sorted(self._entries.values(), key=lambda e: (e.datetime, e.id), reverse=True)
        return [replace(e) for e in entries]

    async def insert(self, item_type: ItemType, content: str, metadata: Metadata | None = None) -> ClipboardEntry | None:
        key = self._key(item_type, content)
        if key in self._entries:
            return None

        entry = ClipboardEntry(id=self._next_id, type=item_type, content=content, metadata=metadata)
        self._next_id += 1
        self._entries[key] = entry
        self._keys[entry.id] = key
        return replace(entry)

    async def select_conflict(self, item_type: ItemType, content: str) -> int | None:
        entry = self._entries.get(self._key(item_type, content))
        return entry.id if entry is not None else None

    async def update_field(self, entry_id: int, field: str, value: Any) -> int:
        key = self._keys.get(entry_id)
        if key is None:
            return -1
        entry = self._entries[key]

        if field == "content":
            new_key = self._key(entry.type, value)
            existing = self._entries.get(new_key)
            if existing is not None and existing.id != entry_id:
                return existing.id
            del self._entries[key]
            self._entries[new_key] = entry
            self._keys[entry_id] = new_key

        setattr(entry, field, value)
        return -1

    async def delete(self, entry_id: int) -> None:
        key = self._keys.pop(entry_id, None)
        if key is not None:
            self._entries.pop(key, None)

    async def delete_oldest(self, keep_count: int, older_than_minutes: int) -> list[int]:
        unprotected = [e for e in await self.list_all() if not e.is_protected]
        deleted = [e.id for e in unprotected[keep_count:]]

        cutoff = history_cutoff(older_than_minutes)
        if cutoff is not None:
            seen = set(deleted)
            deleted += [e.id for e in unprotected if e.datetime < cutoff and e.id not in seen]

        for entry_id in deleted:
            await self.delete(entry_id)
        return deleted

    async def clear(self, policy: ClipboardHistory) -> list[int]:
        if policy == ClipboardHistory.CLEAR:
            deleted = list(self._keys)
        elif policy == ClipboardHistory.KEEP_PINNED_AND_TAGGED:
            deleted = [e.id for e in self._entries.values() if not e.is_protected]
        else:
            deleted = []

        for entry_id in deleted:
            await self.delete(entry_id)
        return deleted

    async def close(self) -> None:
        await self.clear(ClipboardHistory.CLEAR)
