"""Local filesystem storage for recording files."""

import secrets
from datetime import datetime
from pathlib import Path
from typing import (
    AsyncIterator,
    Optional,
)

import aiofiles

from sessionhub.core.logging import logger
from sessionhub.domain.exceptions import UploadTooLargeError
from sessionhub.domain.providers import RecordingStorageInterface

BACKUP_SUFFIX = ".backup"


class LocalRecordingStorage(RecordingStorageInterface):
    """Stores recordings in a directory served under a public path."""

    def __init__(self, root: str, public_path: str = "/recordings"):
        """Initialize local storage.

        Args:
            root: Directory that holds the recording files
            public_path: URL prefix the directory is served under
        """
        self.root = Path(root).resolve()
        self.public_path = "/" + public_path.strip("/")
        self.root.mkdir(parents=True, exist_ok=True)

    def generate_filename(self, session_id: str, extension: str = ".mp4") -> str:
        if not extension.startswith("."):
            extension = f".{extension}"
        stamp = datetime.now().strftime("%Y%m%d%H%M%S")
        return f"session_{session_id}_{stamp}_{secrets.token_hex(4)}{extension}"

    def path_for(self, filename: str) -> Path:
        # Filenames are generated here; refuse anything that escapes the root
        path = (self.root / filename).resolve()
        if path.parent != self.root:
            raise ValueError(f"invalid recording filename: {filename}")
        return path

    def url_for(self, filename: str) -> str:
        return f"{self.public_path}/{filename}"

    def exists(self, filename: str) -> bool:
        return self.path_for(filename).is_file()

    async def save_stream(
        self,
        filename: str,
        chunks: AsyncIterator[bytes],
        max_bytes: Optional[int] = None,
    ) -> int:
        """Write chunks to disk, enforcing the size limit as they arrive.

        Raises:
            UploadTooLargeError: If the stream exceeds ``max_bytes``; the
                partial file is removed
        """
        path = self.path_for(filename)
        written = 0
        try:
            async with aiofiles.open(path, "wb") as output:
                async for chunk in chunks:
                    written += len(chunk)
                    if max_bytes is not None and written > max_bytes:
                        raise UploadTooLargeError(
                            round(written / (1024 * 1024), 2), round(max_bytes / (1024 * 1024), 2)
                        )
                    await output.write(chunk)
        except Exception:
            path.unlink(missing_ok=True)
            raise

        logger.info("recording_file_saved", filename=filename, bytes=written)
        return written

    async def delete(self, filename: str) -> bool:
        path = self.path_for(filename)
        backup = path.with_name(path.name + BACKUP_SUFFIX)
        backup.unlink(missing_ok=True)
        if not path.exists():
            return False
        path.unlink()
        logger.info("recording_file_deleted", filename=filename)
        return True
