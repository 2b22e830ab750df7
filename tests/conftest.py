import asyncio

import pytest

from clipstash.classify import Detection
from clipstash.config import Settings
from clipstash.database import SQLiteStore
from clipstash.storage import MemoryStore
from clipstash.tracker import EntryTracker


class FakeSource:
    """In-memory selection source: a dict of MIME type to bytes."""

    def __init__(self):
        self.contents: dict[str, bytes] = {}
        self.callbacks = []
        self.written: list[tuple[str, bytes]] = []
        self.app: str | None = None

    def on_owner_changed(self, callback) -> None:
        self.callbacks.append(callback)

    def list_mime_types(self) -> list[str]:
        return list(self.contents)

    async def read_bytes(self, mimetype: str) -> bytes | None:
        return self.contents.get(mimetype)

    def set_text(self, text: str) -> None:
        self.set_content("text/plain;charset=utf-8", text.encode("utf-8"))

    def set_content(self, mimetype: str, data: bytes) -> None:
        self.contents = {mimetype: data}
        self.written.append((mimetype, data))

    def owner_app(self) -> str | None:
        return self.app

    def offer_text(self, text: str) -> None:
        self.contents = {"text/plain": text.encode("utf-8")}

    async def change(self):
        results = []
        for callback in self.callbacks:
            results.append(await callback())
        return results


class FakeDetector:
    def __init__(self, language: str | None = "javascript", relevance: float = 5, names: dict | None = None):
        self.language = language
        self.relevance = relevance
        self.names = names if names is not None else {"javascript": "JavaScript"}
        self.samples: list[str] = []

    def detect(self, text: str) -> Detection:
        self.samples.append(text)
        return Detection(self.language, self.relevance)

    def language_name(self, language_id: str) -> str | None:
        return self.names.get(language_id)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_location=tmp_path / "data" / "clipboard.db",
        image_dir=tmp_path / "images",
        cache_dir=tmp_path / "cache",
    )


@pytest.fixture
def memory_tracker(settings):
    tracker = EntryTracker(settings, store_factory=lambda _settings: MemoryStore())
    asyncio.run(tracker.init())
    yield tracker
    asyncio.run(tracker.destroy())


@pytest.fixture
def sqlite_tracker(settings):
    tracker = EntryTracker(settings, store_factory=SQLiteStore.from_settings)
    asyncio.run(tracker.init())
    yield tracker
    asyncio.run(tracker.destroy())


@pytest.fixture
def sqlite_store(tmp_path):
    store = SQLiteStore(tmp_path / "clipboard.db")
    asyncio.run(store.init())
    yield store
    asyncio.run(store.close())


@pytest.fixture
def fake_source():
    return FakeSource()


@pytest.fixture
def make_detector():
    return FakeDetector
