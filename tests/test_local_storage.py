"""Tests for local recording storage."""

import pytest

from sessionhub.domain.exceptions import UploadTooLargeError
from sessionhub.infrastructure.storage import LocalRecordingStorage


async def stream(*parts: bytes):
    for part in parts:
        yield part


class TestLocalRecordingStorage:
    """Test suite for the recordings directory."""

    def test_generated_names_are_unique(self, storage: LocalRecordingStorage):
        first = storage.generate_filename("abc")
        second = storage.generate_filename("abc", "webm")

        assert first.startswith("session_abc_")
        assert first.endswith(".mp4")
        assert second.endswith(".webm")
        assert first != storage.generate_filename("abc")

    def test_url_for(self, storage: LocalRecordingStorage):
        assert storage.url_for("a.mp4") == "/recordings/a.mp4"

    def test_path_escape_is_refused(self, storage: LocalRecordingStorage):
        with pytest.raises(ValueError):
            storage.path_for("../outside.mp4")
        with pytest.raises(ValueError):
            storage.path_for("nested/file.mp4")

    @pytest.mark.asyncio
    async def test_save_stream(self, storage: LocalRecordingStorage):
        written = await storage.save_stream("a.mp4", stream(b"abc", b"def"))

        assert written == 6
        assert storage.exists("a.mp4")
        assert storage.path_for("a.mp4").read_bytes() == b"abcdef"

    @pytest.mark.asyncio
    async def test_save_stream_over_limit_removes_partial_file(self, storage: LocalRecordingStorage):
        with pytest.raises(UploadTooLargeError) as exc_info:
            await storage.save_stream("big.mp4", stream(b"x" * 600, b"x" * 600), max_bytes=1000)

        assert exc_info.value.error_code == "UPLOAD_TOO_LARGE"
        assert not storage.exists("big.mp4")

    @pytest.mark.asyncio
    async def test_delete_removes_backup(self, storage: LocalRecordingStorage):
        await storage.save_stream("a.mp4", stream(b"data"))
        backup = storage.path_for("a.mp4").with_name("a.mp4.backup")
        backup.write_bytes(b"original")

        assert await storage.delete("a.mp4") is True
        assert not storage.exists("a.mp4")
        assert not backup.exists()
        assert await storage.delete("a.mp4") is False
