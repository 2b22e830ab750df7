"""Selection source backed by the macOS general pasteboard."""

import logging
from collections.abc import Awaitable, Callable

from AppKit import (
    NSFilenamesPboardType,
    NSPasteboard,
    NSPasteboardTypePNG,
    NSPasteboardTypeString,
    NSPasteboardTypeTIFF,
    NSWorkspace,
)
from Foundation import NSData, NSURL

from clipstash.classify import parse_file_list
from clipstash.monitor import FILE_MIME_TYPES, URI_LIST
from clipstash.utils import path_to_uri

logger = logging.getLogger(__name__)

TEXT_MIME = "text/plain;charset=utf-8"

# Pasteboard types (UTIs) and the MIME types the capture pipeline understands
UTI_TO_MIME = {
    NSPasteboardTypeString: TEXT_MIME,
    NSPasteboardTypePNG: "image/png",
    NSPasteboardTypeTIFF: "image/tiff",
    "public.jpeg": "image/jpeg",
    "org.webmproject.webp": "image/webp",
    "public.avif": "image/avif",
    NSFilenamesPboardType: URI_LIST,
}
MIME_TO_UTI = {mime: uti for uti, mime in UTI_TO_MIME.items()}


class PasteboardSource:
    def __init__(self, pasteboard=None):
        self._pasteboard = pasteboard or NSPasteboard.generalPasteboard()
        self._last_change_count = self._pasteboard.changeCount()
        self._callbacks: list[Callable[[], Awaitable[object]]] = []

    def on_owner_changed(self, callback: Callable[[], Awaitable[object]]) -> None:
        self._callbacks.append(callback)

    async def poll(self) -> bool:
        """Notify listeners if the pasteboard changed since the last poll."""
        current_count = self._pasteboard.changeCount()
        if current_count == self._last_change_count:
            return False

        self._last_change_count = current_count
        for callback in self._callbacks:
            await callback()
        return True

    def sync_change_count(self) -> None:
        self._last_change_count = self._pasteboard.changeCount()

    def owner_app(self) -> str | None:
        # The pasteboard does not record its writer; the frontmost app is the one that copied
        app = NSWorkspace.sharedWorkspace().frontmostApplication()
        if app is None:
            return None
        bundle_id = app.bundleIdentifier()
        return str(bundle_id) if bundle_id else None

    def list_mime_types(self) -> list[str]:
        types = self._pasteboard.types()
        if types is None:
            return []

        mime_types = []
        for uti in types:
            # Unknown types pass through so hints like org.nspasteboard.ConcealedType stay visible
            mime = UTI_TO_MIME.get(str(uti), str(uti))
            if mime not in mime_types:
                mime_types.append(mime)
        return mime_types

    async def read_bytes(self, mimetype: str) -> bytes | None:
        if mimetype == URI_LIST:
            filenames = self._pasteboard.propertyListForType_(NSFilenamesPboardType)
            if not filenames:
                return None
            return "\n".join(path_to_uri(str(f)) for f in filenames).encode("utf-8")

        if mimetype == TEXT_MIME:
            text = self._pasteboard.stringForType_(NSPasteboardTypeString)
            return str(text).encode("utf-8") if text else None

        uti = MIME_TO_UTI.get(mimetype)
        if uti is None:
            return None
        data = self._pasteboard.dataForType_(uti)
        return bytes(data) if data is not None else None

    def set_text(self, text: str) -> None:
        self._pasteboard.clearContents()
        self._pasteboard.setString_forType_(text, NSPasteboardTypeString)
        self.sync_change_count()

    def set_content(self, mimetype: str, data: bytes) -> None:
        if mimetype in FILE_MIME_TYPES:
            files = parse_file_list(data.decode("utf-8"))
            if files is None:
                return
            urls = [NSURL.URLWithString_(uri) for uri in files.paths]
            self._pasteboard.clearContents()
            self._pasteboard.writeObjects_([url for url in urls if url is not None])
            self.sync_change_count()
            return

        uti = MIME_TO_UTI.get(mimetype)
        if uti is None:
            logger.warning("Cannot place %s on the pasteboard", mimetype)
            return
        self._pasteboard.clearContents()
        self._pasteboard.setData_forType_(NSData.dataWithBytes_length_(data, len(data)), uti)
        self.sync_change_count()
