"""In-memory meeting provider used when Zoom credentials are absent."""

import random
from datetime import (
    datetime,
    timedelta,
)
from pathlib import Path
from typing import (
    Dict,
    List,
    Optional,
)

from sessionhub.core.logging import logger
from sessionhub.domain.exceptions import ProviderUnavailableError
from sessionhub.domain.providers import (
    MeetingProviderInterface,
    ProviderMeeting,
    ProviderRecording,
)

MOCK_PASSWORD = "mock123"


class InMemoryMeetingProvider(MeetingProviderInterface):
    """Meeting provider that keeps meetings and recordings in process memory.

    Recordings are only listed once they are added with :meth:`add_recording`,
    and only files registered through it can be downloaded.
    """

    def __init__(self):
        self.meetings: Dict[str, ProviderMeeting] = {}
        self.ended: set = set()
        self.recordings: Dict[str, List[ProviderRecording]] = {}
        self.files: Dict[str, bytes] = {}
        self.calls: List[str] = []

    def _new_meeting_id(self) -> str:
        while True:
            meeting_id = str(random.randint(10**10, 10**11 - 1))
            if meeting_id not in self.meetings:
                return meeting_id

    async def create_meeting(
        self,
        topic: str,
        start_time: datetime,
        duration: int,
        timezone: str = "UTC",
        agenda: str = "",
    ) -> ProviderMeeting:
        self.calls.append("create_meeting")
        meeting_id = self._new_meeting_id()
        meeting = ProviderMeeting(
            meeting_id=meeting_id,
            join_url=f"https://zoom.us/j/{meeting_id}",
            start_url=f"https://zoom.us/s/{meeting_id}?role=1",
            password=MOCK_PASSWORD,
        )
        self.meetings[meeting_id] = meeting
        logger.info("mock_meeting_created", meeting_id=meeting_id, topic=topic)
        return meeting

    async def get_meeting(self, meeting_id: str) -> ProviderMeeting:
        self.calls.append("get_meeting")
        meeting = self.meetings.get(meeting_id)
        if meeting is None:
            raise ProviderUnavailableError("get_meeting", "meeting not found", status_code=404)
        return meeting

    async def update_meeting(
        self,
        meeting_id: str,
        topic: Optional[str] = None,
        start_time: Optional[datetime] = None,
        duration: Optional[int] = None,
        timezone: Optional[str] = None,
    ) -> None:
        self.calls.append("update_meeting")
        if meeting_id not in self.meetings:
            raise ProviderUnavailableError("update_meeting", "meeting not found", status_code=404)

    async def delete_meeting(self, meeting_id: str) -> None:
        self.calls.append("delete_meeting")
        self.meetings.pop(meeting_id, None)

    async def end_meeting(self, meeting_id: str) -> None:
        self.calls.append("end_meeting")
        self.ended.add(meeting_id)

    async def list_recordings(self, meeting_id: str) -> List[ProviderRecording]:
        self.calls.append("list_recordings")
        return list(self.recordings.get(meeting_id, []))

    async def download_recording(self, download_url: str, destination: Path) -> int:
        self.calls.append("download_recording")
        content = self.files.get(download_url)
        if content is None:
            raise ProviderUnavailableError("download_recording", "file not found", status_code=404)
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_bytes(content)
        return len(content)

    def add_recording(
        self,
        meeting_id: str,
        recording_id: Optional[str] = None,
        file_type: str = "MP4",
        started_at: Optional[datetime] = None,
        duration_seconds: int = 3600,
        content: Optional[bytes] = None,
    ) -> ProviderRecording:
        """Attach a recording file to a meeting, optionally downloadable."""
        recording_id = recording_id or f"file_{meeting_id}_{len(self.recordings.get(meeting_id, []))}"
        started_at = started_at or datetime.now().astimezone()
        download_url = f"https://zoom.us/rec/download/mock_{recording_id}"
        recording = ProviderRecording(
            recording_id=recording_id,
            meeting_id=meeting_id,
            file_type=file_type,
            recording_start=started_at,
            recording_end=started_at + timedelta(seconds=duration_seconds),
            file_size=len(content) if content is not None else 0,
            play_url=f"https://zoom.us/rec/play/mock_{recording_id}",
            download_url=download_url,
        )
        self.recordings.setdefault(meeting_id, []).append(recording)
        if content is not None:
            self.files[download_url] = content
        return recording
