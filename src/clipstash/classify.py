import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol
from urllib.parse import urlsplit

import regex

from clipstash.color import parse_color
from clipstash.config import CODE_SAMPLE_LENGTH
from clipstash.models import CodeMetadata, FileMetadata, FileOperation, ItemType, Language, Metadata
from clipstash.utils import compute_checksum, paths_checksum

logger = logging.getLogger(__name__)

_GRAPHEME_RE = regex.compile(r"\X")

# Relevance needed per 100 characters of sample before text counts as code
CODE_RELEVANCE_THRESHOLD = 3


class ContentKind(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    FILE = "file"


@dataclass(frozen=True)
class TextContent:
    text: str

    @property
    def kind(self) -> ContentKind:
        return ContentKind.TEXT


@dataclass(frozen=True)
class ImageContent:
    mimetype: str
    data: bytes = field(repr=False)
    checksum: str | None = None

    @property
    def kind(self) -> ContentKind:
        return ContentKind.IMAGE

    @property
    def extension(self) -> str:
        return self.mimetype.split("/", 1)[-1]


@dataclass(frozen=True)
class FileContent:
    paths: tuple[str, ...]
    operation: FileOperation = FileOperation.COPY

    @property
    def kind(self) -> ContentKind:
        return ContentKind.FILE


ClipboardContent = TextContent | ImageContent | FileContent


@dataclass(frozen=True)
class Classification:
    item_type: ItemType
    content: str
    metadata: Metadata | None = None
    image: ImageContent | None = None


@dataclass(frozen=True)
class Detection:
    language: str | None
    relevance: float = 0.0


class CodeDetector(Protocol):
    def detect(self, text: str) -> Detection: ...

    def language_name(self, language_id: str) -> str | None: ...


def fingerprint(content: ClipboardContent) -> str | None:
    if isinstance(content, TextContent):
        return compute_checksum(content.text)
    if isinstance(content, ImageContent):
        return content.checksum if content.checksum is not None else compute_checksum(content.data)
    if isinstance(content, FileContent):
        return paths_checksum(list(content.paths))
    raise TypeError(f"Unknown clipboard content: {type(content).__name__}")


def parse_file_list(text: str) -> FileContent | None:
    """Decode a copied-files payload: an optional copy/cut line, then one URI per line."""
    lines = [line.strip() for line in text.splitlines()]
    lines = [line for line in lines if line]
    if not lines:
        return None

    operation = FileOperation.COPY
    if lines[0].lower() in ("copy", "cut"):
        operation = FileOperation(lines.pop(0).upper())

    paths = tuple(line for line in lines if not line.startswith("#"))
    if not paths:
        return None
    return FileContent(paths, operation)


def is_valid_uri(text: str) -> bool:
    """Raises ValueError for text urlsplit cannot parse."""
    if any(c.isspace() for c in text):
        return False
    parts = urlsplit(text)
    return bool(parts.scheme and parts.netloc)


def grapheme_count(text: str) -> int:
    return len(_GRAPHEME_RE.findall(text))


def language_display_name(language_id: str, name: str | None) -> str:
    name = name or language_id
    # Prefer a short id like "js" over a verbose name like "JavaScript (JSX)"
    if len(language_id) < len(name) - 3:
        return language_id[:1].upper() + language_id[1:]
    return name


class ContentClassifier:
    def __init__(
        self,
        code_detector: CodeDetector | None = None,
        uri_validator: Callable[[str], bool] = is_valid_uri,
        max_characters: int = 1,
    ):
        self._code_detector = code_detector
        self._uri_validator = uri_validator
        self.max_characters = max_characters

    @property
    def max_characters(self) -> int:
        return self._max_characters

    @max_characters.setter
    def max_characters(self, value: int) -> None:
        self._max_characters = max(1, value)

    def classify(self, content: ClipboardContent) -> Classification | None:
        try:
            if isinstance(content, TextContent):
                return self._classify_text(content.text)
            if isinstance(content, ImageContent):
                return self._classify_image(content)
            if isinstance(content, FileContent):
                return self._classify_files(content)
        except Exception:
            logger.exception("Failed to classify clipboard content")
            return None
        logger.warning("Unsupported clipboard content: %s", type(content).__name__)
        return None

    def _classify_text(self, text: str) -> Classification | None:
        trimmed = text.strip()
        if not trimmed:
            return None

        if self._is_link(trimmed):
            return Classification(ItemType.LINK, text)
        if grapheme_count(trimmed) <= self._max_characters:
            return Classification(ItemType.CHARACTER, text)
        if parse_color(trimmed) is not None:
            return Classification(ItemType.COLOR, text)

        language = self._detect_language(trimmed)
        if language is not None:
            return Classification(ItemType.CODE, text, CodeMetadata(language))

        return Classification(ItemType.TEXT, text)

    def _classify_image(self, image: ImageContent) -> Classification | None:
        if not image.data or image.checksum is None:
            return None
        # Content becomes the cached file URI once the capture pipeline writes it
        return Classification(ItemType.IMAGE, "", image=image)

    def _classify_files(self, files: FileContent) -> Classification | None:
        if not files.paths:
            return None
        metadata = FileMetadata(files.operation)
        if len(files.paths) == 1:
            return Classification(ItemType.FILE, files.paths[0], metadata)
        return Classification(ItemType.FILES, "\n".join(files.paths), metadata)

    def _is_link(self, text: str) -> bool:
        if not text.startswith("http"):
            return False
        try:
            return bool(self._uri_validator(text))
        except Exception:
            return False

    def _detect_language(self, text: str) -> Language | None:
        if self._code_detector is None:
            return None

        sample = text[:CODE_SAMPLE_LENGTH]
        try:
            detection = self._code_detector.detect(sample)
            if not detection.language:
                return None
            hundreds = max(1.0, len(sample) / 100)
            if detection.relevance / hundreds < CODE_RELEVANCE_THRESHOLD:
                return None
            name = self._code_detector.language_name(detection.language)
        except Exception:
            logger.exception("Code detection failed")
            return None

        return Language(detection.language, language_display_name(detection.language, name))
