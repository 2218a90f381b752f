"""Recording schemas for the API."""

from datetime import datetime
from typing import (
    List,
    Optional,
)

from pydantic import BaseModel

from sessionhub.domain.entities import (
    RecordingEntity,
    RecordingSource,
    RepairStatus,
)
from sessionhub.domain.providers import RepairReport
from sessionhub.domain.services import (
    BulkSyncResult,
    SessionSyncResult,
)


class RecordingUpdate(BaseModel):
    """Request model for editing recording metadata."""

    title: Optional[str] = None
    description: Optional[str] = None
    is_public: Optional[bool] = None


class RecordingResponse(BaseModel):
    """A recording as returned to clients."""

    id: str
    session_id: str
    course_id: str
    title: str
    description: str
    duration: int
    recorded_at: datetime
    storage_url: str
    source: RecordingSource
    play_url: Optional[str] = None
    file_size: int
    fallback_url: Optional[str] = None
    repair_status: Optional[RepairStatus] = None
    repair_note: Optional[str] = None
    view_count: int
    is_public: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, recording: RecordingEntity) -> "RecordingResponse":
        return cls(
            id=recording.id,
            session_id=recording.session_id,
            course_id=recording.course_id,
            title=recording.title,
            description=recording.description,
            duration=recording.duration,
            recorded_at=recording.recorded_at,
            storage_url=recording.storage_url,
            source=recording.source,
            play_url=recording.play_url,
            file_size=recording.file_size,
            fallback_url=recording.fallback_url,
            repair_status=recording.repair_status,
            repair_note=recording.repair_note,
            view_count=recording.view_count,
            is_public=recording.is_public,
            created_at=recording.created_at,
            updated_at=recording.updated_at,
        )


class UploadResponse(BaseModel):
    """Result of a pushed recording."""

    recording: RecordingResponse
    needs_repair: bool


class SyncResultResponse(BaseModel):
    """Result of pulling one session's recordings."""

    session_id: str
    found: int
    created: int
    skipped: int
    downloaded: int
    pending_repair: List[str]
    recordings: List[RecordingResponse]
    error: Optional[str] = None

    @classmethod
    def from_result(cls, result: SessionSyncResult) -> "SyncResultResponse":
        return cls(
            session_id=result.session_id,
            found=result.found,
            created=len(result.created),
            skipped=result.skipped,
            downloaded=result.downloaded,
            pending_repair=result.pending_repair,
            recordings=[RecordingResponse.from_entity(r) for r in result.created],
            error=result.error,
        )


class BulkSyncResponse(BaseModel):
    """Result of pulling recordings for every eligible session."""

    sessions_processed: int
    successful_sessions: int
    total_recordings: int
    results: List[SyncResultResponse]

    @classmethod
    def from_result(cls, result: BulkSyncResult) -> "BulkSyncResponse":
        return cls(
            sessions_processed=result.sessions_processed,
            successful_sessions=result.successful_sessions,
            total_recordings=result.total_recordings,
            results=[SyncResultResponse.from_result(r) for r in result.results],
        )


class RepairResponse(BaseModel):
    """Outcome of a container repair."""

    recording: RecordingResponse
    needed: bool
    fixed_by: Optional[str] = None
    note: str
    attempts: List[dict]

    @classmethod
    def from_report(cls, recording: RecordingEntity, report: RepairReport) -> "RepairResponse":
        return cls(
            recording=RecordingResponse.from_entity(recording),
            needed=report.needed,
            fixed_by=report.fixed_by,
            note=report.note,
            attempts=[
                {"strategy": a.strategy, "outcome": a.outcome.value, "note": a.note}
                for a in report.attempts
            ],
        )
