"""Recording repository interface for SessionHub."""

from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    List,
    Optional,
)

from sessionhub.domain.entities import RecordingEntity


class RecordingRepositoryInterface(ABC):
    """Abstract repository interface for Recording operations."""

    @abstractmethod
    async def create_if_absent(self, recording: RecordingEntity) -> bool:
        """Insert a recording unless one with the same ID already exists.

        Args:
            recording: Recording entity to insert

        Returns:
            bool: True if inserted, False if it was already stored
        """
        pass

    @abstractmethod
    async def get_by_id(self, recording_id: str) -> Optional[RecordingEntity]:
        """Get recording by ID."""
        pass

    @abstractmethod
    async def get_by_provider_recording_id(
        self, provider_recording_id: str
    ) -> Optional[RecordingEntity]:
        """Get the recording ingested from a given provider file."""
        pass

    @abstractmethod
    async def update(self, recording: RecordingEntity) -> RecordingEntity:
        """Persist changes to an existing recording."""
        pass

    @abstractmethod
    async def delete(self, recording_id: str) -> bool:
        """Delete a recording record."""
        pass

    @abstractmethod
    async def list_recordings(
        self,
        session_id: Optional[str] = None,
        course_id: Optional[str] = None,
        public_only: bool = False,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[RecordingEntity]:
        """List recordings, newest first.

        Args:
            session_id: Restrict to a session
            course_id: Restrict to a course
            public_only: Hide recordings that are not public
            limit: Page size
            offset: Number of matches to skip

        Returns:
            List[RecordingEntity]: Matching recordings
        """
        pass

    @abstractmethod
    async def count_recordings(
        self,
        session_id: Optional[str] = None,
        course_id: Optional[str] = None,
        public_only: bool = False,
    ) -> int:
        """Count recordings matching the filters."""
        pass

    @abstractmethod
    async def increment_view_count(self, recording_id: str) -> None:
        """Atomically add one to the view counter."""
        pass
