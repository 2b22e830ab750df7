from pathlib import Path
from unittest.mock import patch

from clipstash.utils import (
    compute_checksum,
    delete_file,
    ensure_dirs,
    link_image_path,
    path_to_uri,
    paths_checksum,
    truncate_text,
    uri_to_path,
)


class TestComputeChecksum:
    def test_known_md5(self):
        assert compute_checksum("hello") == "5d41402abc4b2a76b9719d911017c592"

    def test_bytes_input(self):
        checksum = compute_checksum(b"hello")
        assert isinstance(checksum, str)
        assert len(checksum) == 32

    def test_string_and_bytes_same_checksum(self):
        assert compute_checksum("hello") == compute_checksum(b"hello")

    def test_different_content_different_checksum(self):
        assert compute_checksum("abc") != compute_checksum("xyz")

    def test_unavailable_md5_returns_none(self):
        with patch("clipstash.utils.hashlib.md5", side_effect=ValueError("disabled for FIPS")):
            assert compute_checksum("hello") is None


class TestPathsChecksum:
    def test_strips_scheme_and_decodes(self):
        assert paths_checksum(["file:///tmp/a%20b.txt"]) == compute_checksum("/tmp/a b.txt")

    def test_joins_with_newlines(self):
        expected = compute_checksum("/tmp/a\n/tmp/b")
        assert paths_checksum(["file:///tmp/a", "file:///tmp/b"]) == expected

    def test_order_matters(self):
        assert paths_checksum(["file:///a", "file:///b"]) != paths_checksum(["file:///b", "file:///a"])


class TestTruncateText:
    def test_short_text_unchanged(self):
        assert truncate_text("hello", 60) == "hello"

    def test_long_text_truncated(self):
        result = truncate_text("a" * 100, 60)
        assert len(result) == 60
        assert result.endswith("...")

    def test_multiline_collapsed(self):
        assert truncate_text("hello\nworld\nfoo", 60) == "hello world foo"

    def test_exact_length_not_truncated(self):
        text = "a" * 60
        assert truncate_text(text, 60) == text


class TestUris:
    def test_round_trip(self, tmp_path):
        path = tmp_path / "with space.png"
        uri = path_to_uri(path)
        assert uri.startswith("file://")
        assert "%20" in uri
        assert uri_to_path(uri) == path.resolve()

    def test_plain_path_passes_through(self):
        assert uri_to_path("/tmp/file.txt") == Path("/tmp/file.txt")


class TestLinkImagePath:
    def test_named_by_url_checksum(self, tmp_path):
        url = "https://example.org/preview.png"
        assert link_image_path(tmp_path, url) == tmp_path / compute_checksum(url)

    def test_none_without_checksum(self, tmp_path):
        with patch("clipstash.utils.compute_checksum", return_value=None):
            assert link_image_path(tmp_path, "https://example.org") is None


class TestDeleteFile:
    def test_deletes_existing(self, tmp_path):
        path = tmp_path / "image.png"
        path.write_bytes(b"png")
        assert delete_file(path) is True
        assert not path.exists()

    def test_missing_file(self, tmp_path):
        assert delete_file(tmp_path / "missing.png") is False

    def test_os_error_is_logged_not_raised(self, tmp_path):
        path = tmp_path / "image.png"
        path.write_bytes(b"png")
        with patch.object(Path, "unlink", side_effect=PermissionError("denied")):
            assert delete_file(path) is False


class TestEnsureDirs:
    def test_creates_directories(self, tmp_path):
        data_dir = tmp_path / "data"
        image_dir = data_dir / "images"
        cache_dir = tmp_path / "cache"
        with (
            patch("clipstash.utils.DATA_DIR", data_dir),
            patch("clipstash.utils.IMAGE_DIR", image_dir),
            patch("clipstash.utils.CACHE_DIR", cache_dir),
        ):
            ensure_dirs()
        assert data_dir.is_dir()
        assert image_dir.is_dir()
        assert cache_dir.is_dir()
