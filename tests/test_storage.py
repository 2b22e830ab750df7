import asyncio
import datetime as dt

import pytest

from clipstash.models import ClipboardHistory, FileMetadata, ItemType, Tag, utcnow
from clipstash.storage import MemoryStore, history_cutoff


@pytest.fixture
def store():
    memory = MemoryStore()
    asyncio.run(memory.init())
    return memory


def insert_texts(store: MemoryStore, *texts: str) -> list[int]:
    return [asyncio.run(store.insert(ItemType.TEXT, text)).id for text in texts]


def age(store: MemoryStore, entry_id: int, minutes: int) -> None:
    asyncio.run(store.update_field(entry_id, "datetime", utcnow() - dt.timedelta(minutes=minutes)))


class TestInsert:
    def test_ids_start_at_zero(self, store):
        assert insert_texts(store, "a", "b", "c") == [0, 1, 2]

    def test_returns_entry(self, store):
        metadata = FileMetadata()
        entry = asyncio.run(store.insert(ItemType.FILE, "file:///a", metadata))
        assert entry.type == ItemType.FILE
        assert entry.content == "file:///a"
        assert entry.metadata == metadata
        assert entry.pinned is False

    def test_duplicate_key_returns_none(self, store):
        insert_texts(store, "a")
        assert asyncio.run(store.insert(ItemType.TEXT, "a")) is None

    def test_same_content_different_type(self, store):
        insert_texts(store, "a")
        assert asyncio.run(store.insert(ItemType.CODE, "a")) is not None

    def test_ids_not_reused(self, store):
        insert_texts(store, "a")
        asyncio.run(store.delete(0))
        assert insert_texts(store, "b") == [1]


class TestSelectConflict:
    def test_first_entry_id_zero(self, store):
        insert_texts(store, "a")
        assert asyncio.run(store.select_conflict(ItemType.TEXT, "a")) == 0

    def test_no_conflict(self, store):
        assert asyncio.run(store.select_conflict(ItemType.TEXT, "a")) is None


class TestUpdateField:
    def test_content_rekeys(self, store):
        insert_texts(store, "a")
        assert asyncio.run(store.update_field(0, "content", "b")) == -1
        assert asyncio.run(store.select_conflict(ItemType.TEXT, "a")) is None
        assert asyncio.run(store.select_conflict(ItemType.TEXT, "b")) == 0

    def test_content_collision_returns_other_id(self, store):
        insert_texts(store, "a", "b")
        assert asyncio.run(store.update_field(1, "content", "a")) == 0
        # Nothing changed
        assert asyncio.run(store.select_conflict(ItemType.TEXT, "b")) == 1
        assert {e.content for e in asyncio.run(store.list_all())} == {"a", "b"}

    def test_same_content_is_not_a_collision(self, store):
        insert_texts(store, "a")
        assert asyncio.run(store.update_field(0, "content", "a")) == -1

    def test_non_key_fields_applied(self, store):
        insert_texts(store, "a")
        asyncio.run(store.update_field(0, "pinned", True))
        asyncio.run(store.update_field(0, "tag", Tag.RED))
        asyncio.run(store.update_field(0, "title", "Greeting"))
        entry = asyncio.run(store.list_all())[0]
        assert entry.pinned is True
        assert entry.tag == Tag.RED
        assert entry.title == "Greeting"

    def test_unknown_id(self, store):
        assert asyncio.run(store.update_field(42, "pinned", True)) == -1


class TestListAll:
    def test_newest_first(self, store):
        insert_texts(store, "a", "b", "c")
        age(store, 1, 10)
        age(store, 2, 5)
        assert [e.content for e in asyncio.run(store.list_all())] == ["a", "c", "b"]

    def test_returns_copies(self, store):
        insert_texts(store, "a")
        entry = asyncio.run(store.list_all())[0]
        entry.pinned = True
        assert asyncio.run(store.list_all())[0].pinned is False


class TestDeleteOldest:
    def test_count_bound(self, store):
        insert_texts(store, "a", "b", "c", "d")
        for entry_id, minutes in ((0, 4), (1, 3), (2, 2), (3, 1)):
            age(store, entry_id, minutes)
        assert sorted(asyncio.run(store.delete_oldest(2, 0))) == [0, 1]
        assert [e.content for e in asyncio.run(store.list_all())] == ["d", "c"]

    def test_protected_entries_not_counted(self, store):
        insert_texts(store, "a", "b", "c")
        age(store, 0, 3)
        age(store, 1, 2)
        age(store, 2, 1)
        asyncio.run(store.update_field(0, "pinned", True))
        asyncio.run(store.update_field(1, "tag", Tag.BLUE))
        assert asyncio.run(store.delete_oldest(1, 0)) == []
        assert asyncio.run(store.delete_oldest(0, 0)) == [2]

    def test_age_bound(self, store):
        insert_texts(store, "old", "new")
        age(store, 0, 120)
        assert asyncio.run(store.delete_oldest(10, 60)) == [0]

    def test_union_without_duplicates(self, store):
        insert_texts(store, "a", "b", "c")
        age(store, 0, 120)
        age(store, 1, 90)
        deleted = asyncio.run(store.delete_oldest(1, 60))
        assert sorted(deleted) == [0, 1]

    def test_age_zero_means_unlimited(self, store):
        insert_texts(store, "a")
        age(store, 0, 100_000)
        assert asyncio.run(store.delete_oldest(10, 0)) == []

    def test_old_pinned_entry_survives(self, store):
        insert_texts(store, "a")
        age(store, 0, 120)
        asyncio.run(store.update_field(0, "pinned", True))
        assert asyncio.run(store.delete_oldest(0, 60)) == []


class TestClear:
    def _populate(self, store):
        insert_texts(store, "plain", "pinned", "tagged")
        asyncio.run(store.update_field(1, "pinned", True))
        asyncio.run(store.update_field(2, "tag", Tag.GREEN))

    def test_clear_all(self, store):
        self._populate(store)
        assert sorted(asyncio.run(store.clear(ClipboardHistory.CLEAR))) == [0, 1, 2]
        assert asyncio.run(store.list_all()) == []

    def test_keep_pinned_and_tagged(self, store):
        self._populate(store)
        assert asyncio.run(store.clear(ClipboardHistory.KEEP_PINNED_AND_TAGGED)) == [0]
        assert {e.content for e in asyncio.run(store.list_all())} == {"pinned", "tagged"}

    def test_keep_all(self, store):
        self._populate(store)
        assert asyncio.run(store.clear(ClipboardHistory.KEEP_ALL)) == []
        assert len(asyncio.run(store.list_all())) == 3

    def test_close_removes_everything(self, store):
        self._populate(store)
        asyncio.run(store.close())
        asyncio.run(store.close())
        assert asyncio.run(store.list_all()) == []


class TestHistoryCutoff:
    def test_disabled(self):
        assert history_cutoff(0) is None

    def test_minutes_before_now(self):
        now = dt.datetime(2024, 1, 1, 12, 0, tzinfo=dt.timezone.utc)
        assert history_cutoff(30, now) == dt.datetime(2024, 1, 1, 11, 30, tzinfo=dt.timezone.utc)
