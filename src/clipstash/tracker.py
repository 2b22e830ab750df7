import asyncio
import datetime as dt
import logging
from collections.abc import Callable

from clipstash.config import Settings
from clipstash.models import (
    MUTABLE_FIELDS,
    ClipboardEntry,
    ClipboardHistory,
    ItemType,
    LinkMetadata,
    Metadata,
    SearchQuery,
    Tag,
    utcnow,
)
from clipstash.storage import MemoryStore, Storage, history_cutoff
from clipstash.utils import delete_file, link_image_path, uri_to_path

logger = logging.getLogger(__name__)

StoreFactory = Callable[[Settings], Storage]


def sqlite_store_factory(settings: Settings) -> Storage:
    from clipstash.database import SQLiteStore

    return SQLiteStore.from_settings(settings)


class EntryTracker:
    """Live index of clipboard entries mirroring what the store holds.

    All mutations of a tracked entry go through the tracker so the store and
    listeners stay in sync. The tracker never raises into its callers;
    storage failures surface as None or empty results.
    """

    def __init__(
        self,
        settings: Settings,
        store_factory: StoreFactory | None = None,
        on_entry_added: Callable[[ClipboardEntry], None] | None = None,
        on_entry_removed: Callable[[int], None] | None = None,
        on_entry_changed: Callable[[int, str], None] | None = None,
        on_warning: Callable[[str, str], None] | None = None,
    ):
        self._settings = settings
        self._store_factory = store_factory or sqlite_store_factory
        self._store: Storage | None = None
        self._entries: dict[int, ClipboardEntry] = {}
        self.on_entry_added = on_entry_added
        self.on_entry_removed = on_entry_removed
        self.on_entry_changed = on_entry_changed
        self.on_warning = on_warning

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def store(self) -> Storage | None:
        return self._store

    async def init(self, store_factory: StoreFactory | None = None) -> list[ClipboardEntry]:
        if store_factory is not None:
            self._store_factory = store_factory

        if self._store is not None:
            await self.clear()
            await self.destroy()

        try:
            store = self._store_factory(self._settings)
            await store.init()
        except Exception:
            logger.exception("Failed to initialize clipboard database")
            self._emit(self.on_warning, "Failed to load database", "Clipboard history will not be saved")
        else:
            logger.info("Using %s for clipboard history", type(store).__name__)
            self._store = store
            for entry in await store.list_all():
                self._entries[entry.id] = entry
            # Evict right away so cache files of entries that expired while closed are removed
            await self.delete_oldest()
            return self.entries()

        logger.info("Using in-memory clipboard history")
        self._store = MemoryStore()
        await self._store.init()
        return []

    async def destroy(self) -> None:
        if self._store is not None:
            await self._store.close()
        self._store = None
        self._entries.clear()

    def get(self, entry_id: int) -> ClipboardEntry | None:
        return self._entries.get(entry_id)

    def entries(self) -> list[ClipboardEntry]:
        return sorted(self._entries.values(), key=lambda e: (e.datetime, e.id), reverse=True)

    def search(self, query: SearchQuery) -> list[ClipboardEntry]:
        return [entry for entry in self.entries() if query.matches(entry)]

    async def insert(
        self, item_type: ItemType, content: str, metadata: Metadata | None = None
    ) -> ClipboardEntry | None:
        """Add a new entry, or refresh the tracked entry with the same type and content.

        Returns the new entry, or None when nothing was added.
        """
        if self._store is None:
            return None

        conflict = await self._store.select_conflict(item_type, content)
        if conflict is not None:
            existing = self._entries.get(conflict)
            if existing is not None:
                await self.touch(existing)
                return None

        entry = await self._store.insert(item_type, content, metadata)
        if entry is None:
            return None

        self._entries[entry.id] = entry
        self._emit(self.on_entry_added, entry)
        await self.delete_oldest()
        return entry

    async def set_content(self, entry: ClipboardEntry, content: str) -> int:
        entry.content = content
        return await self.update_field(entry, "content")

    async def set_pinned(self, entry: ClipboardEntry, pinned: bool) -> int:
        entry.pinned = pinned
        return await self.update_field(entry, "pinned")

    async def set_tag(self, entry: ClipboardEntry, tag: Tag | None) -> int:
        entry.tag = tag
        return await self.update_field(entry, "tag")

    async def set_title(self, entry: ClipboardEntry, title: str) -> int:
        entry.title = title
        return await self.update_field(entry, "title")

    async def set_metadata(self, entry: ClipboardEntry, metadata: Metadata | None) -> int:
        entry.metadata = metadata
        return await self.update_field(entry, "metadata")

    async def touch(self, entry: ClipboardEntry, when: dt.datetime | None = None) -> int:
        entry.datetime = when or utcnow()
        return await self.update_field(entry, "datetime")

    async def update_field(self, entry: ClipboardEntry, field: str) -> int:
        """Push one field of ``entry`` to the store.

        When a content change collides with another entry, ``entry`` is
        merged into it: ``entry`` is deleted and the other entry takes over
        its timestamp. Returns the id of that entry, or -1.
        """
        if field not in MUTABLE_FIELDS:
            raise ValueError(f"Unknown field: {field}")
        if self._store is None:
            return -1

        conflict = await self._store.update_field(entry.id, field, getattr(entry, field))
        if conflict < 0 or conflict == entry.id:
            self._emit(self.on_entry_changed, entry.id, field)
            return -1

        # The winner shares the content, so cached files must survive
        await self._delete(entry, delete_files=False)
        winner = self._entries.get(conflict)
        if winner is not None:
            await self.touch(winner, entry.datetime)
        return conflict

    async def delete(self, entry: ClipboardEntry) -> None:
        await self._delete(entry, delete_files=True)

    async def _delete(self, entry: ClipboardEntry, delete_files: bool) -> None:
        if delete_files:
            await self._delete_files(entry)
        if entry.id in self._entries:
            if self._store is not None:
                await self._store.delete(entry.id)
            del self._entries[entry.id]
            self._emit(self.on_entry_removed, entry.id)

    async def _forget(self, entry_ids: list[int]) -> None:
        # The store already removed these rows
        for entry_id in entry_ids:
            entry = self._entries.pop(entry_id, None)
            if entry is None:
                continue
            await self._delete_files(entry)
            self._emit(self.on_entry_removed, entry_id)

    async def _delete_files(self, entry: ClipboardEntry) -> None:
        path = None
        if entry.type == ItemType.IMAGE:
            path = uri_to_path(entry.content)
        elif entry.type == ItemType.LINK and isinstance(entry.metadata, LinkMetadata) and entry.metadata.image:
            path = link_image_path(self._settings.cache_dir, entry.metadata.image)
        if path is None:
            return

        try:
            await asyncio.to_thread(delete_file, path)
        except Exception:
            logger.exception("Failed to delete cached file for entry %d", entry.id)

    async def delete_oldest(self) -> list[int]:
        if self._store is None:
            return []
        deleted = await self._store.delete_oldest(self._settings.history_length, self._settings.history_time)
        await self._forget(deleted)
        return deleted

    def check_oldest(self) -> bool:
        """Whether any unprotected entry has outlived the configured history time."""
        cutoff = history_cutoff(self._settings.history_time)
        if cutoff is None:
            return False
        return any(not e.is_protected and e.datetime < cutoff for e in self._entries.values())

    async def clear(self, policy: ClipboardHistory | None = None) -> list[int]:
        if self._store is None:
            return []
        if policy is None:
            policy = self._settings.clipboard_history
        deleted = await self._store.clear(policy)
        await self._forget(deleted)
        return deleted

    @staticmethod
    def _emit(callback: Callable | None, *args) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            logger.exception("Clipboard listener failed")
