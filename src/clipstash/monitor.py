import asyncio
import logging
import mimetypes
from collections.abc import Awaitable, Callable, Iterable
from pathlib import Path
from typing import Protocol

from clipstash.classify import (
    ClipboardContent,
    ContentClassifier,
    ContentKind,
    FileContent,
    ImageContent,
    TextContent,
    fingerprint,
    parse_file_list,
)
from clipstash.config import Settings
from clipstash.models import ClipboardEntry, FileOperation, ItemType
from clipstash.tracker import EntryTracker
from clipstash.utils import compute_checksum, path_to_uri, uri_to_path

logger = logging.getLogger(__name__)

GNOME_COPIED_FILES = "x-special/gnome-copied-files"
URI_LIST = "text/uri-list"

TEXT_MIME_TYPES = ("text/plain;charset=utf-8", "text/plain", "UTF8_STRING", "STRING")
IMAGE_MIME_TYPES = ("image/png", "image/jxl", "image/webp", "image/avif", "image/jpeg", "image/tiff")
FILE_MIME_TYPES = (GNOME_COPIED_FILES, URI_LIST)
# Set by password managers on secrets they place on the clipboard
SENSITIVE_MIME_TYPES = ("x-kde-passwordManagerHint", "org.nspasteboard.ConcealedType")

TEXT_ITEM_TYPES = (ItemType.TEXT, ItemType.CODE, ItemType.LINK, ItemType.CHARACTER, ItemType.COLOR)


class SelectionSource(Protocol):
    def on_owner_changed(self, callback: Callable[[], Awaitable[object]]) -> None: ...

    def list_mime_types(self) -> list[str]: ...

    async def read_bytes(self, mimetype: str) -> bytes | None: ...

    def set_text(self, text: str) -> None: ...

    def set_content(self, mimetype: str, data: bytes) -> None: ...

    def owner_app(self) -> str | None:
        """Identifier of the application that owns the selection, if known."""


def _first_available(wanted: Iterable[str], available: list[str]) -> str | None:
    return next((mime for mime in wanted if mime in available), None)


class ClipboardMonitor:
    def __init__(
        self,
        tracker: EntryTracker,
        source: SelectionSource,
        settings: Settings | None = None,
        classifier: ContentClassifier | None = None,
        on_change: Callable[[], None] | None = None,
    ):
        self._tracker = tracker
        self._source = source
        self._settings = settings or tracker.settings
        self._classifier = classifier or ContentClassifier(max_characters=self._settings.character_max_characters)
        self._on_change = on_change
        self._previous: tuple[ContentKind, str] | None = None
        source.on_owner_changed(self.owner_changed)

    async def owner_changed(self) -> ClipboardEntry | None:
        try:
            return await self._capture()
        except Exception:
            logger.exception("Error reading clipboard")
            return None

    async def _capture(self) -> ClipboardEntry | None:
        available = self._source.list_mime_types()
        content = await self.read_content(available)
        if content is None:
            return None

        checksum = fingerprint(content)
        if checksum is None:
            return None
        if self._is_own_content(content.kind, checksum):
            return None

        # Remembered before the incognito check so leaving incognito does not save the current clipboard
        self._previous = (content.kind, checksum)
        if not self._should_save(available):
            return None

        classification = self._classifier.classify(content)
        if classification is None:
            return None

        text = classification.content
        if classification.image is not None:
            path = await asyncio.to_thread(self._save_image, classification.image)
            text = path_to_uri(path)

        entry = await self._tracker.insert(classification.item_type, text, classification.metadata)
        if entry is not None and self._on_change:
            self._on_change()
        return entry

    def _is_own_content(self, kind: ContentKind, checksum: str) -> bool:
        if self._previous is None:
            return False
        previous_kind, previous_checksum = self._previous
        if previous_checksum != checksum:
            return False
        # A file manager that loses clipboard ownership leaves the paths behind as text
        return previous_kind == kind or (previous_kind == ContentKind.FILE and kind == ContentKind.TEXT)

    def _should_save(self, available: list[str]) -> bool:
        if any(mime in available for mime in SENSITIVE_MIME_TYPES):
            return False
        if self._settings.excluded_apps and self._source.owner_app() in self._settings.excluded_apps:
            return False
        return not self._settings.incognito

    async def read_content(self, available: list[str]) -> ClipboardContent | None:
        file_type = _first_available(FILE_MIME_TYPES, available)
        if file_type:
            data = await self._source.read_bytes(file_type)
            if not data:
                return None
            return parse_file_list(data.decode("utf-8", errors="replace"))

        image_type = _first_available(IMAGE_MIME_TYPES, available)
        if image_type:
            data = await self._source.read_bytes(image_type)
            if not data:
                return None
            checksum = compute_checksum(data)
            if checksum is None:
                return None
            return ImageContent(image_type, data, checksum)

        text_type = _first_available(TEXT_MIME_TYPES, available)
        if text_type:
            data = await self._source.read_bytes(text_type)
            text = data.decode("utf-8", errors="replace") if data else ""
            return TextContent(text) if text.strip() else None

        return None

    def _save_image(self, image: ImageContent) -> Path:
        image_dir = self._settings.image_dir
        image_dir.mkdir(parents=True, exist_ok=True)
        path = image_dir / f"{image.checksum}.{image.extension}"
        if not path.exists():
            path.write_bytes(image.data)
        return path

    def copy_content(self, content: ClipboardContent) -> None:
        checksum = fingerprint(content)
        if checksum is None:
            return
        self._previous = (content.kind, checksum)

        if isinstance(content, TextContent):
            self._source.set_text(content.text)
        elif isinstance(content, ImageContent):
            self._source.set_content(content.mimetype, content.data)
        else:
            payload = "\n".join([FileOperation.COPY.value, *content.paths])
            self._source.set_content(GNOME_COPIED_FILES, payload.encode("utf-8"))

    def copy_text(self, text: str) -> None:
        self.copy_content(TextContent(text))

    async def paste_entry(self, entry: ClipboardEntry) -> bool:
        """Put ``entry`` back on the clipboard. Returns False if its content is unavailable."""
        if self._settings.update_date_on_copy:
            await self._tracker.touch(entry)

        content = await self.entry_content(entry)
        if content is None:
            return False
        self.copy_content(content)
        return True

    async def entry_content(self, entry: ClipboardEntry) -> ClipboardContent | None:
        if entry.type in TEXT_ITEM_TYPES:
            return TextContent(entry.content)

        if entry.type == ItemType.IMAGE:
            path = uri_to_path(entry.content)
            mimetype, _ = mimetypes.guess_type(path.name)
            if mimetype is None:
                logger.warning("Unknown image type for %s", path.name)
                return None
            try:
                data = await asyncio.to_thread(path.read_bytes)
            except OSError:
                logger.exception("Failed to read image %s", path)
                return None
            return ImageContent(mimetype, data, compute_checksum(data))

        return FileContent(tuple(entry.content.split("\n")), FileOperation.COPY)
