import os
from dataclasses import dataclass, field
from pathlib import Path

from clipstash.models import ClipboardHistory

DATA_DIR = Path(os.environ.get("CLIPSTASH_DATA_DIR", Path.home() / ".local" / "share" / "clipstash"))
CACHE_DIR = Path(os.environ.get("CLIPSTASH_CACHE_DIR", Path.home() / ".cache" / "clipstash"))
DB_PATH = DATA_DIR / "clipboard.db"
IMAGE_DIR = DATA_DIR / "images"
LOG_PATH = DATA_DIR / "clipstash.log"

POLL_INTERVAL = 0.5  # seconds between clipboard checks
HISTORY_CHECK_INTERVAL = 60  # seconds between age-based eviction checks
PREVIEW_LENGTH = 60  # characters shown in menu item
CODE_SAMPLE_LENGTH = 10_000  # characters handed to the code detector


def _parse_int(name: str, default: int, minimum: int, maximum: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return max(minimum, min(maximum, value))


def _parse_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _parse_list(name: str) -> tuple[str, ...]:
    raw = os.environ.get(name, "")
    return tuple(item.strip() for item in raw.split(",") if item.strip())


def _parse_menu_display_count() -> int:
    return _parse_int("CLIPSTASH_MENU_DISPLAY_COUNT", 10, 5, 50)


MENU_DISPLAY_COUNT = _parse_menu_display_count()


@dataclass
class Settings:
    history_length: int = 500  # unpinned, untagged entries kept
    history_time: int = 0  # minutes, 0 keeps entries regardless of age
    database_location: Path = DB_PATH
    in_memory_database: bool = False
    character_max_characters: int = 1
    update_date_on_copy: bool = True
    clipboard_history: ClipboardHistory = ClipboardHistory.KEEP_ALL
    incognito: bool = False
    excluded_apps: tuple[str, ...] = ()  # bundle ids whose copies are never saved
    image_dir: Path = field(default=IMAGE_DIR)
    cache_dir: Path = field(default=CACHE_DIR)

    @classmethod
    def from_env(cls) -> "Settings":
        db_path = os.environ.get("CLIPSTASH_DB_PATH")
        return cls(
            history_length=_parse_int("CLIPSTASH_HISTORY_LENGTH", 500, 1, 10_000),
            history_time=_parse_int("CLIPSTASH_HISTORY_TIME", 0, 0, 525_600),
            database_location=Path(db_path) if db_path else DB_PATH,
            in_memory_database=_parse_bool("CLIPSTASH_IN_MEMORY_DATABASE", False),
            character_max_characters=_parse_int("CLIPSTASH_CHARACTER_MAX", 1, 1, 10),
            update_date_on_copy=_parse_bool("CLIPSTASH_UPDATE_DATE_ON_COPY", True),
            incognito=_parse_bool("CLIPSTASH_INCOGNITO", False),
            excluded_apps=_parse_list("CLIPSTASH_EXCLUDED_APPS"),
        )
