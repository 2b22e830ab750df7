import hashlib
import logging
from pathlib import Path
from urllib.parse import unquote, urlparse
from urllib.request import url2pathname

from clipstash.config import CACHE_DIR, DATA_DIR, IMAGE_DIR

logger = logging.getLogger(__name__)

FILE_SCHEME = "file://"


def compute_checksum(data: str | bytes) -> str | None:
    """MD5 fingerprint of text or raw bytes, or None if MD5 is unavailable."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    try:
        return hashlib.md5(data, usedforsecurity=False).hexdigest()
    except ValueError:
        # FIPS builds refuse MD5
        logger.warning("MD5 checksum unavailable")
        return None


def paths_checksum(paths: list[str]) -> str | None:
    normalized = []
    for path in paths:
        decoded = unquote(path)
        if decoded.startswith(FILE_SCHEME):
            decoded = decoded[len(FILE_SCHEME):]
        normalized.append(decoded)
    return compute_checksum("\n".join(normalized))


def truncate_text(text: str, max_len: int) -> str:
    single_line = " ".join(text.split())
    if len(single_line) <= max_len:
        return single_line
    return single_line[: max_len - 3] + "..."


def ensure_dirs() -> None:
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    IMAGE_DIR.mkdir(parents=True, exist_ok=True)
    CACHE_DIR.mkdir(parents=True, exist_ok=True)


def path_to_uri(path: str | Path) -> str:
    return Path(path).resolve().as_uri()


def uri_to_path(uri: str) -> Path:
    if not uri.startswith(FILE_SCHEME):
        return Path(uri)
    return Path(url2pathname(urlparse(uri).path))


def link_image_path(cache_dir: Path, url: str) -> Path | None:
    """Location of the cached thumbnail for a link preview image."""
    checksum = compute_checksum(url)
    if checksum is None:
        return None
    return cache_dir / checksum


def delete_file(path: Path) -> bool:
    try:
        if path.exists():
            path.unlink()
            return True
    except OSError:
        logger.exception("Failed to delete %s", path)
    return False
