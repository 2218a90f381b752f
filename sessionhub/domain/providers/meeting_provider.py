"""Meeting provider interface for SessionHub.

This module defines the contract for the external video-conferencing
service. Implementations translate these calls into provider API requests
and raise :class:`~sessionhub.domain.exceptions.ProviderUnavailableError`
on failure.
"""

from abc import (
    ABC,
    abstractmethod,
)
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import (
    List,
    Optional,
)

VIDEO_FILE_TYPES = frozenset({"MP4"})


@dataclass(frozen=True)
class ProviderMeeting:
    """Meeting as returned by the provider."""

    meeting_id: str
    join_url: str
    start_url: Optional[str] = None
    password: Optional[str] = None


@dataclass(frozen=True)
class ProviderRecording:
    """One recording file attached to a provider meeting."""

    recording_id: str
    meeting_id: str
    file_type: str
    recording_start: Optional[datetime] = None
    recording_end: Optional[datetime] = None
    file_size: int = 0
    play_url: Optional[str] = None
    download_url: Optional[str] = None
    topic: Optional[str] = None

    @property
    def is_video(self) -> bool:
        """Whether this file is a playable video."""
        return self.file_type.upper() in VIDEO_FILE_TYPES

    @property
    def duration_seconds(self) -> int:
        """Length derived from the start and end stamps, 0 when unknown."""
        if not self.recording_start or not self.recording_end:
            return 0
        return max(0, int((self.recording_end - self.recording_start).total_seconds()))


class MeetingProviderInterface(ABC):
    """Abstract client for the external meeting provider."""

    @abstractmethod
    async def create_meeting(
        self,
        topic: str,
        start_time: datetime,
        duration: int,
        timezone: str = "UTC",
        agenda: str = "",
    ) -> ProviderMeeting:
        """Create a scheduled meeting.

        Args:
            topic: Meeting topic
            start_time: Scheduled start
            duration: Length in minutes
            timezone: Timezone name for the provider UI
            agenda: Optional agenda text

        Returns:
            ProviderMeeting: The created meeting
        """
        pass

    @abstractmethod
    async def get_meeting(self, meeting_id: str) -> ProviderMeeting:
        """Fetch a meeting to confirm it exists and read its URLs."""
        pass

    @abstractmethod
    async def update_meeting(
        self,
        meeting_id: str,
        topic: Optional[str] = None,
        start_time: Optional[datetime] = None,
        duration: Optional[int] = None,
        timezone: Optional[str] = None,
    ) -> None:
        """Push new meeting details to the provider."""
        pass

    @abstractmethod
    async def delete_meeting(self, meeting_id: str) -> None:
        """Release the meeting. Deleting an already missing meeting succeeds."""
        pass

    @abstractmethod
    async def end_meeting(self, meeting_id: str) -> None:
        """End a running meeting for all participants."""
        pass

    @abstractmethod
    async def list_recordings(self, meeting_id: str) -> List[ProviderRecording]:
        """List recording files of a meeting. No recordings yields an empty list."""
        pass

    @abstractmethod
    async def download_recording(self, download_url: str, destination: Path) -> int:
        """Stream a recording file to ``destination``.

        Returns:
            int: Number of bytes written
        """
        pass
