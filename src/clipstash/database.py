import asyncio
import datetime as dt
import logging
import sqlite3
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any

from clipstash.config import DB_PATH, Settings
from clipstash.models import (
    ClipboardEntry,
    ClipboardHistory,
    ItemType,
    Metadata,
    Tag,
    metadata_from_json,
    metadata_to_json,
    utcnow,
)
from clipstash.storage import Storage, history_cutoff

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2

CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS clipboard (
    id       INTEGER PRIMARY KEY AUTOINCREMENT,
    type     TEXT NOT NULL,
    content  TEXT NOT NULL,
    pinned   BOOLEAN NOT NULL,
    tag      TEXT,
    datetime TIMESTAMP NOT NULL,
    metadata TEXT,
    title    TEXT,
    UNIQUE (type, content)
)
"""

UNPROTECTED = "NOT (pinned = 1 OR tag IS NOT NULL)"
COLUMNS = ("type", "content", "pinned", "tag", "datetime", "metadata", "title")
DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S.%f"


def escape_content(content: str) -> str:
    # Databases written by earlier releases hold every backslash doubled
    return content.replace("\\", "\\\\")


def unescape_content(content: str) -> str:
    return content.replace("\\\\", "\\")


def format_datetime(value: dt.datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(dt.timezone.utc)
    return value.strftime(DATETIME_FORMAT)


def parse_datetime(value: str) -> dt.datetime:
    parsed = dt.datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=dt.timezone.utc)
    return parsed.astimezone(dt.timezone.utc)


class SQLiteStore(Storage):
    """Durable history in a SQLite database.

    Every query runs on one dedicated worker thread, which owns the
    connection, so calls never block the event loop and execute in the
    order they were awaited.
    """

    def __init__(self, db_path: str | Path | None = None, in_memory: bool = False):
        self._db_path = Path(db_path) if db_path else DB_PATH
        self._in_memory = in_memory
        self._conn: sqlite3.Connection | None = None
        self._executor: ThreadPoolExecutor | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "SQLiteStore":
        return cls(settings.database_location, in_memory=settings.in_memory_database)

    async def _run(self, func, *args):
        if self._executor is None:
            raise RuntimeError("Database is not open")
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, func, *args)

    async def init(self) -> None:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="clipstash-db")
        try:
            await self._run(self._open)
        except Exception:
            await self.close()
            raise

    def _open(self) -> None:
        if self._in_memory:
            target = ":memory:"
        else:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            target = str(self._db_path)

        self._conn = sqlite3.connect(target)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._migrate()

    def _migrate(self) -> None:
        version = self._conn.execute("PRAGMA user_version").fetchone()[0]
        with self._conn:
            if version < 1:
                self._conn.execute(CREATE_TABLE)
            if version < 2:
                columns = {row[1] for row in self._conn.execute("PRAGMA table_info(clipboard)")}
                if "title" not in columns:
                    self._conn.execute("ALTER TABLE clipboard ADD COLUMN title TEXT")
        if version != SCHEMA_VERSION:
            self._conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
            logger.info("Migrated clipboard database from version %d to %d", version, SCHEMA_VERSION)

    async def list_all(self) -> list[ClipboardEntry]:
        try:
            return await self._run(self._list_all)
        except Exception:
            logger.exception("Failed to load clipboard entries")
            return []

    def _list_all(self) -> list[ClipboardEntry]:
        rows = self._conn.execute(
            f"SELECT id, {', '.join(COLUMNS)} FROM clipboard ORDER BY datetime DESC, id DESC"
        ).fetchall()
        entries = []
        for row in rows:
            entry = self._row_to_entry(row)
            if entry is not None:
                entries.append(entry)
        return entries

    async def insert(self, item_type: ItemType, content: str, metadata: Metadata | None = None) -> ClipboardEntry | None:
        try:
            return await self._run(self._insert, item_type, content, metadata)
        except sqlite3.IntegrityError:
            logger.warning("Entry already exists, not inserting %s", item_type.value)
        except Exception:
            logger.exception("Failed to insert entry")
        return None

    def _insert(self, item_type: ItemType, content: str, metadata: Metadata | None) -> ClipboardEntry:
        now = utcnow()
        with self._conn:
            cursor = self._conn.execute(
                """INSERT INTO clipboard (type, content, pinned, tag, datetime, metadata, title)
                   VALUES (?, ?, 0, NULL, ?, ?, NULL)""",
                (item_type.value, escape_content(content), format_datetime(now), metadata_to_json(metadata)),
            )
        return ClipboardEntry(
            id=cursor.lastrowid,
            type=item_type,
            content=content,
            datetime=now,
            metadata=metadata,
        )

    async def select_conflict(self, item_type: ItemType, content: str) -> int | None:
        try:
            return await self._run(self._select_conflict, item_type.value, content)
        except Exception:
            logger.exception("Failed to select conflicting entry")
            return None

    def _select_conflict(self, item_type: str, content: str) -> int | None:
        row = self._conn.execute(
            "SELECT id FROM clipboard WHERE type = ? AND content = ? LIMIT 1",
            (item_type, escape_content(content)),
        ).fetchone()
        return row["id"] if row else None

    async def update_field(self, entry_id: int, field: str, value: Any) -> int:
        try:
            return await self._run(self._update_field, entry_id, field, value)
        except Exception:
            logger.exception("Failed to update %s of entry %d", field, entry_id)
            return -1

    def _update_field(self, entry_id: int, field: str, value: Any) -> int:
        if field not in COLUMNS:
            raise ValueError(f"Unknown field: {field}")

        try:
            with self._conn:
                self._conn.execute(
                    f"UPDATE clipboard SET {field} = ? WHERE id = ?",
                    (self._to_column(field, value), entry_id),
                )
        except sqlite3.IntegrityError:
            if field not in ("type", "content"):
                raise
            row = self._conn.execute("SELECT type, content FROM clipboard WHERE id = ?", (entry_id,)).fetchone()
            if row is None:
                return -1
            item_type = ItemType(value).value if field == "type" else row["type"]
            content = value if field == "content" else unescape_content(row["content"])
            conflict = self._select_conflict(item_type, content)
            return conflict if conflict is not None else -1
        return -1

    @staticmethod
    def _to_column(field: str, value: Any) -> Any:
        if field == "type":
            return ItemType(value).value
        if field == "content":
            return escape_content(value)
        if field == "pinned":
            return int(bool(value))
        if field == "tag":
            return Tag(value).value if value is not None else None
        if field == "datetime":
            return format_datetime(value)
        if field == "metadata":
            return metadata_to_json(value)
        return value or None

    async def delete(self, entry_id: int) -> None:
        try:
            await self._run(self._delete_ids, [entry_id])
        except Exception:
            logger.exception("Failed to delete entry %d", entry_id)

    def _delete_ids(self, ids: list[int]) -> None:
        with self._conn:
            self._conn.executemany("DELETE FROM clipboard WHERE id = ?", [(i,) for i in ids])

    async def delete_oldest(self, keep_count: int, older_than_minutes: int) -> list[int]:
        try:
            return await self._run(self._delete_oldest, keep_count, history_cutoff(older_than_minutes))
        except Exception:
            logger.exception("Failed to delete oldest entries")
            return []

    def _delete_oldest(self, keep_count: int, cutoff: dt.datetime | None) -> list[int]:
        rows = self._conn.execute(
            f"SELECT id FROM clipboard WHERE {UNPROTECTED} ORDER BY datetime DESC, id DESC LIMIT -1 OFFSET ?",
            (keep_count,),
        ).fetchall()
        deleted = [row["id"] for row in rows]

        if cutoff is not None:
            rows = self._conn.execute(
                f"SELECT id FROM clipboard WHERE {UNPROTECTED} AND datetime < ?",
                (format_datetime(cutoff),),
            ).fetchall()
            seen = set(deleted)
            deleted += [row["id"] for row in rows if row["id"] not in seen]

        if deleted:
            self._delete_ids(deleted)
        return deleted

    async def clear(self, policy: ClipboardHistory) -> list[int]:
        if policy == ClipboardHistory.KEEP_ALL:
            return []
        try:
            return await self._run(self._clear, policy == ClipboardHistory.KEEP_PINNED_AND_TAGGED)
        except Exception:
            logger.exception("Failed to clear clipboard history")
            return []

    def _clear(self, keep_protected: bool) -> list[int]:
        where = f" WHERE {UNPROTECTED}" if keep_protected else ""
        deleted = [row["id"] for row in self._conn.execute(f"SELECT id FROM clipboard{where}")]
        if deleted:
            with self._conn:
                self._conn.execute(f"DELETE FROM clipboard{where}")
        return deleted

    async def close(self) -> None:
        if self._executor is None:
            return
        try:
            await self._run(self._close)
        except Exception:
            logger.exception("Failed to close clipboard database")
        finally:
            self._executor.shutdown(wait=False)
            self._executor = None

    def _close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> ClipboardEntry | None:
        try:
            item_type = ItemType(row["type"])
        except ValueError:
            logger.warning("Skipping entry %d with unknown type %r", row["id"], row["type"])
            return None

        try:
            tag = Tag(row["tag"]) if row["tag"] else None
        except ValueError:
            tag = None

        try:
            timestamp = parse_datetime(row["datetime"])
        except (TypeError, ValueError):
            # Every row must load, otherwise its (type, content) can never be captured again
            logger.warning("Entry %d has unreadable datetime %r, using now", row["id"], row["datetime"])
            timestamp = utcnow()

        return ClipboardEntry(
            id=row["id"],
            type=item_type,
            content=unescape_content(row["content"]),
            pinned=bool(row["pinned"]),
            tag=tag,
            datetime=timestamp,
            metadata=metadata_from_json(item_type, row["metadata"]),
            title=row["title"] or "",
        )
