"""Recording domain entity for SessionHub.

A recording is a persisted media artifact produced by (pull path) or for
(push path) a completed session.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import (
    Dict,
    Optional,
)

from sessionhub.domain.entities.session_entity import utcnow
from sessionhub.domain.exceptions import ValidationError

TITLE_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 1000


class RecordingSource(str, Enum):
    """How the recording entered the system."""

    PROVIDER = "provider"
    UPLOAD = "upload"


class RepairStatus(str, Enum):
    """State of the container repair for a locally stored file."""

    PENDING = "pending"
    NOT_NEEDED = "not_needed"
    FIXED = "fixed"
    FAILED = "failed"


class RecordingEntity:
    """Pure domain entity for a session recording."""

    def __init__(
        self,
        session_id: str,
        course_id: str,
        provider_recording_id: str,
        title: str,
        duration: int,
        recorded_at: datetime,
        storage_url: str,
        source: RecordingSource = RecordingSource.PROVIDER,
        description: str = "",
        play_url: Optional[str] = None,
        download_url: Optional[str] = None,
        local_filename: Optional[str] = None,
        file_size: int = 0,
        fallback_url: Optional[str] = None,
        repair_status: Optional[RepairStatus] = None,
        repair_note: Optional[str] = None,
        view_count: int = 0,
        is_public: bool = True,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
        recording_id: Optional[str] = None,
    ):
        """Initialize a Recording entity.

        Args:
            session_id: Owning session
            course_id: Course of the owning session
            provider_recording_id: Dedupe key, provider file id or ``upload_<uuid>``
            title: Display title
            duration: Length in seconds, must be positive
            recorded_at: Recording start time
            storage_url: Where the artifact can be fetched
            source: Pull or push origin
            description: Optional description
            play_url: Provider playback URL
            download_url: Provider download URL
            local_filename: Generated filename under the recordings directory
            file_size: Size in bytes
            fallback_url: Original-form URL kept when repair fails
            repair_status: Container repair state for local files
            repair_note: Human readable repair caveat
            view_count: Number of downloads served
            is_public: Visible to enrolled students
            created_at: Creation timestamp
            updated_at: Last update timestamp
            recording_id: Unique recording identifier

        Raises:
            ValidationError: If duration or storage URL is unusable
        """
        if not isinstance(duration, int) or isinstance(duration, bool) or duration <= 0:
            raise ValidationError("duration", "recording duration must be a positive number of seconds")
        if not storage_url:
            raise ValidationError("storage_url", "recording must have a resolvable storage URL")

        self.id = recording_id or str(uuid.uuid4())
        self.session_id = session_id
        self.course_id = course_id
        self.provider_recording_id = provider_recording_id
        self.title = title[:TITLE_MAX_LENGTH]
        self.description = description or ""
        self.duration = duration
        self.recorded_at = recorded_at
        self.storage_url = storage_url
        self.source = source
        self.play_url = play_url
        self.download_url = download_url
        self.local_filename = local_filename
        self.file_size = file_size
        self.fallback_url = fallback_url
        self.repair_status = repair_status
        self.repair_note = repair_note
        self.view_count = view_count
        self.is_public = is_public
        self.created_at = created_at or utcnow()
        self.updated_at = updated_at or utcnow()

    @property
    def is_local(self) -> bool:
        """Whether the artifact lives on this server."""
        return bool(self.local_filename)

    def update_metadata(self, updates: Dict) -> None:
        """Update editable metadata."""
        if updates.get("title") is not None:
            title = updates["title"].strip()
            if not title or len(title) > TITLE_MAX_LENGTH:
                raise ValidationError("title", f"must be 1 to {TITLE_MAX_LENGTH} characters")
            self.title = title
        if updates.get("description") is not None:
            if len(updates["description"]) > DESCRIPTION_MAX_LENGTH:
                raise ValidationError(
                    "description", f"cannot exceed {DESCRIPTION_MAX_LENGTH} characters"
                )
            self.description = updates["description"]
        if updates.get("is_public") is not None:
            self.is_public = bool(updates["is_public"])
        self.updated_at = utcnow()

    def record_repair(
        self,
        status: RepairStatus,
        note: Optional[str] = None,
        fallback_url: Optional[str] = None,
    ) -> None:
        """Store the outcome of a container repair."""
        self.repair_status = status
        self.repair_note = note
        if fallback_url:
            self.fallback_url = fallback_url
        self.updated_at = utcnow()

    def __repr__(self) -> str:
        """Detailed representation of the recording."""
        return (
            f"RecordingEntity(id='{self.id}', session_id='{self.session_id}', "
            f"provider_recording_id='{self.provider_recording_id}', source={self.source.value})"
        )
