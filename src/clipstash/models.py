import datetime as dt
import json
import logging
from dataclasses import dataclass, field
from enum import Enum, IntEnum

logger = logging.getLogger(__name__)


class ItemType(str, Enum):
    TEXT = "Text"
    CODE = "Code"
    IMAGE = "Image"
    FILE = "File"
    FILES = "Files"
    LINK = "Link"
    CHARACTER = "Character"
    COLOR = "Color"


class Tag(str, Enum):
    BLUE = "blue"
    TEAL = "teal"
    GREEN = "green"
    YELLOW = "yellow"
    ORANGE = "orange"
    RED = "red"
    PINK = "pink"
    PURPLE = "purple"
    SLATE = "slate"


class FileOperation(str, Enum):
    COPY = "COPY"
    CUT = "CUT"


class ClipboardHistory(IntEnum):
    """Which entries survive a clear."""

    CLEAR = 0
    KEEP_PINNED_AND_TAGGED = 1
    KEEP_ALL = 2


@dataclass(frozen=True)
class Language:
    id: str
    name: str


@dataclass(frozen=True)
class CodeMetadata:
    language: Language | None = None


@dataclass(frozen=True)
class FileMetadata:
    operation: FileOperation = FileOperation.COPY


@dataclass(frozen=True)
class LinkMetadata:
    title: str | None = None
    description: str | None = None
    image: str | None = None


Metadata = CodeMetadata | FileMetadata | LinkMetadata

# Fields that make up the uniqueness key of an entry
KEY_FIELDS = ("type", "content")
MUTABLE_FIELDS = ("content", "pinned", "tag", "datetime", "metadata", "title")


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


@dataclass
class ClipboardEntry:
    id: int
    type: ItemType
    content: str
    pinned: bool = False
    tag: Tag | None = None
    datetime: dt.datetime = field(default_factory=utcnow)
    metadata: Metadata | None = None
    title: str = ""

    @property
    def is_protected(self) -> bool:
        """Pinned and tagged entries are exempt from eviction."""
        return self.pinned or self.tag is not None


def metadata_to_dict(metadata: Metadata | None) -> dict | None:
    if metadata is None:
        return None
    if isinstance(metadata, CodeMetadata):
        language = metadata.language
        return {"language": {"id": language.id, "name": language.name} if language else None}
    if isinstance(metadata, FileMetadata):
        return {"operation": metadata.operation.value}
    if isinstance(metadata, LinkMetadata):
        return {"title": metadata.title, "description": metadata.description, "image": metadata.image}
    raise TypeError(f"Unknown metadata type: {type(metadata).__name__}")


def metadata_from_dict(item_type: ItemType, data: dict | None) -> Metadata | None:
    """Build the metadata variant that belongs to ``item_type``."""
    if not isinstance(data, dict):
        return None

    if item_type == ItemType.CODE:
        language = data.get("language")
        if isinstance(language, dict) and language.get("id"):
            return CodeMetadata(Language(str(language["id"]), str(language.get("name") or language["id"])))
        return CodeMetadata()

    if item_type in (ItemType.FILE, ItemType.FILES):
        try:
            return FileMetadata(FileOperation(str(data.get("operation", "COPY")).upper()))
        except ValueError:
            return FileMetadata()

    if item_type == ItemType.LINK:
        return LinkMetadata(
            title=data.get("title"),
            description=data.get("description"),
            image=data.get("image"),
        )

    return None


def metadata_to_json(metadata: Metadata | None) -> str | None:
    data = metadata_to_dict(metadata)
    return json.dumps(data) if data is not None else None


def metadata_from_json(item_type: ItemType, raw: str | None) -> Metadata | None:
    if not raw:
        return None
    try:
        data = json.loads(raw)
    except ValueError:
        logger.error("Failed to parse metadata for %s entry", item_type.value)
        return None
    return metadata_from_dict(item_type, data)


# Labels shown when an entry has no user-assigned title
DEFAULT_TITLES = {
    ItemType.TEXT: "Text",
    ItemType.CODE: "Code",
    ItemType.IMAGE: "Image",
    ItemType.FILE: "File",
    ItemType.FILES: "Files",
    ItemType.LINK: "Link",
    ItemType.CHARACTER: "Char",
    ItemType.COLOR: "Color",
}


def display_title(entry: ClipboardEntry) -> str:
    if entry.title:
        return entry.title
    if entry.type == ItemType.CODE and isinstance(entry.metadata, CodeMetadata) and entry.metadata.language:
        return entry.metadata.language.name
    return DEFAULT_TITLES[entry.type]


@dataclass(frozen=True)
class SearchQuery:
    query: str = ""
    pinned: bool = False
    exclude_pinned: bool = False
    tag: Tag | None = None
    exclude_tagged: bool = False
    type: ItemType | None = None

    def matches_pinned(self, pinned: bool) -> bool:
        return (not self.pinned and not self.exclude_pinned) or self.pinned == pinned

    def matches_tag(self, tag: Tag | None) -> bool:
        return (self.tag is None and not self.exclude_tagged) or self.tag == tag

    def matches_type(self, item_type: ItemType) -> bool:
        return self.type is None or self.type == item_type

    def matches_query(self, *texts: str) -> bool:
        if not self.query:
            return True
        needle = self.query.casefold()
        return any(needle in text.casefold() for text in texts if text)

    def matches(self, entry: ClipboardEntry) -> bool:
        return (
            self.matches_pinned(entry.pinned)
            and self.matches_tag(entry.tag)
            and self.matches_type(entry.type)
            and self.matches_query(entry.content, entry.title)
        )
