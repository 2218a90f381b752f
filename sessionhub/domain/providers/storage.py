"""Recording storage interface for SessionHub."""

from abc import (
    ABC,
    abstractmethod,
)
from pathlib import Path
from typing import (
    AsyncIterator,
    Optional,
)


class RecordingStorageInterface(ABC):
    """Stores recordings as opaque byte streams under generated filenames."""

    @abstractmethod
    def generate_filename(self, session_id: str, extension: str = ".mp4") -> str:
        """Build a fresh, collision free filename for a session artifact."""
        pass

    @abstractmethod
    def path_for(self, filename: str) -> Path:
        """Absolute path of a stored artifact."""
        pass

    @abstractmethod
    def url_for(self, filename: str) -> str:
        """Public URL path under which the artifact is served."""
        pass

    @abstractmethod
    def exists(self, filename: str) -> bool:
        """Whether the artifact is present on disk."""
        pass

    @abstractmethod
    async def save_stream(
        self,
        filename: str,
        chunks: AsyncIterator[bytes],
        max_bytes: Optional[int] = None,
    ) -> int:
        """Write a stream of chunks to a new artifact.

        Returns:
            int: Number of bytes written
        """
        pass

    @abstractmethod
    async def delete(self, filename: str) -> bool:
        """Remove an artifact and its backup sibling."""
        pass
