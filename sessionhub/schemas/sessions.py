"""Live session schemas for the API.

Bounds on titles and durations are enforced by the domain, so malformed
values surface as ``VALIDATION_ERROR`` responses.
"""

from datetime import datetime
from typing import Optional

from pydantic import (
    BaseModel,
    Field,
)

from sessionhub.domain.entities import (
    ComputedStatus,
    SessionEntity,
    SessionStatus,
    SessionType,
)
from sessionhub.domain.services import JoinInfo
from sessionhub.schemas.attendance import AttendanceResponse


class SessionCreate(BaseModel):
    """Request model for scheduling a session."""

    course_id: str = Field(..., description="Owning course")
    title: str = Field(..., description="Session title")
    scheduled_at: datetime = Field(..., description="Scheduled start")
    duration: int = Field(..., description="Length in minutes")
    description: str = Field(default="", description="Optional description")
    session_type: SessionType = Field(default=SessionType.LIVE_CLASS)
    max_participants: int = Field(default=100)
    timezone: Optional[str] = Field(default=None, description="Timezone shown by the provider")


class SessionUpdate(BaseModel):
    """Request model for editing or rescheduling a session."""

    title: Optional[str] = None
    description: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    duration: Optional[int] = None
    session_type: Optional[SessionType] = None
    max_participants: Optional[int] = None


class SessionResponse(BaseModel):
    """A session as returned to clients."""

    id: str
    course_id: str
    instructor_id: str
    title: str
    description: str
    scheduled_at: datetime
    end_time: datetime
    duration: int
    session_type: SessionType
    status: SessionStatus
    computed_status: ComputedStatus
    meeting_id: Optional[str] = None
    join_url: Optional[str] = None
    timezone: str
    max_participants: int
    has_recording: bool
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, session: SessionEntity, now: Optional[datetime] = None) -> "SessionResponse":
        """Build the response, deriving the read-time status."""
        return cls(
            id=session.id,
            course_id=session.course_id,
            instructor_id=session.instructor_id,
            title=session.title,
            description=session.description,
            scheduled_at=session.scheduled_at,
            end_time=session.end_time,
            duration=session.duration,
            session_type=session.session_type,
            status=session.status,
            computed_status=session.computed_status(now),
            meeting_id=session.meeting_id,
            join_url=session.join_url,
            timezone=session.timezone,
            max_participants=session.max_participants,
            has_recording=session.has_recording,
            started_at=session.started_at,
            ended_at=session.ended_at,
            cancelled_at=session.cancelled_at,
            created_at=session.created_at,
            updated_at=session.updated_at,
        )


class HostSessionResponse(SessionResponse):
    """A session with the host-only start URL and passcode."""

    start_url: Optional[str] = None
    meeting_password: Optional[str] = None

    @classmethod
    def from_entity(cls, session: SessionEntity, now: Optional[datetime] = None) -> "HostSessionResponse":
        base = SessionResponse.from_entity(session, now).model_dump()
        return cls(**base, start_url=session.start_url, meeting_password=session.meeting_password)


class JoinResponse(BaseModel):
    """What a participant needs to enter a live session."""

    session_id: str
    join_url: str
    start_url: Optional[str] = None
    password: Optional[str] = None
    attendance: AttendanceResponse

    @classmethod
    def from_join_info(cls, info: JoinInfo) -> "JoinResponse":
        return cls(
            session_id=info.session.id,
            join_url=info.join_url,
            start_url=info.start_url,
            password=info.password,
            attendance=AttendanceResponse.from_entity(info.attendance),
        )
