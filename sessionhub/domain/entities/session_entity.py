"""Session domain entity for SessionHub.

This module contains the pure domain model for live sessions and the
lifecycle state machine that governs them. It is independent of any
external dependencies or frameworks.

Lifecycle::

    scheduled --start--> live --end--> completed
        |                  |
        +-----cancel-------+--> cancelled

The persisted ``status`` may lag behind the clock (a live session whose
window has passed is still ``live`` until someone ends or reconciles it),
so readers should use :meth:`SessionEntity.computed_status`.
"""

import uuid
from datetime import (
    UTC,
    datetime,
    timedelta,
)
from enum import Enum
from typing import (
    Dict,
    Optional,
)

from sessionhub.domain.exceptions import (
    InvalidTransitionError,
    ValidationError,
)

TITLE_MIN_LENGTH = 3
TITLE_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500
DURATION_MIN_MINUTES = 15
DURATION_MAX_MINUTES = 480

HOST_ROLES = ("admin", "super_admin")


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC, treating naive values as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class SessionStatus(str, Enum):
    """Persisted session status."""

    SCHEDULED = "scheduled"
    LIVE = "live"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ComputedStatus(str, Enum):
    """Status derived on read from the clock and the persisted status."""

    UPCOMING = "upcoming"
    LIVE = "live"
    ENDED = "ended"
    CANCELLED = "cancelled"


class SessionType(str, Enum):
    """Kind of live session."""

    LIVE_CLASS = "live-class"
    OFFICE_HOURS = "office-hours"
    REVIEW = "review"
    QUIZ = "quiz"
    ASSIGNMENT = "assignment"
    DISCUSSION = "discussion"
    RESIDENCY = "residency"


class SessionEntity:
    """Pure domain entity for a scheduled live session.

    This class holds the lifecycle rules: which transitions are legal,
    when a session may start, and how its status reads at a given time.
    """

    def __init__(
        self,
        course_id: str,
        instructor_id: str,
        title: str,
        scheduled_at: datetime,
        duration: int,
        description: str = "",
        session_type: SessionType = SessionType.LIVE_CLASS,
        status: SessionStatus = SessionStatus.SCHEDULED,
        meeting_id: Optional[str] = None,
        join_url: Optional[str] = None,
        start_url: Optional[str] = None,
        meeting_password: Optional[str] = None,
        timezone: str = "UTC",
        max_participants: int = 100,
        has_recording: bool = False,
        started_at: Optional[datetime] = None,
        ended_at: Optional[datetime] = None,
        cancelled_at: Optional[datetime] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
        session_id: Optional[str] = None,
    ):
        """Initialize a Session entity.

        Args:
            course_id: Course the session belongs to
            instructor_id: User hosting the session
            title: Session title
            scheduled_at: Scheduled start time
            duration: Length in minutes
            description: Optional description
            session_type: Kind of session
            status: Persisted lifecycle status
            meeting_id: External meeting identifier
            join_url: Participant join URL
            start_url: Host start URL
            meeting_password: Meeting passcode, if any
            timezone: Display timezone sent to the provider
            max_participants: Participant cap
            has_recording: Whether at least one recording is stored
            started_at: When the session went live
            ended_at: When the session was ended
            cancelled_at: When the session was cancelled
            created_at: Creation timestamp
            updated_at: Last update timestamp
            session_id: Unique session identifier
        """
        self.id = session_id or str(uuid.uuid4())
        self.course_id = course_id
        self.instructor_id = instructor_id
        self.title = title
        self.description = description or ""
        self.scheduled_at = ensure_utc(scheduled_at)
        self.duration = duration
        self.session_type = session_type
        self.status = status
        self.meeting_id = meeting_id
        self.join_url = join_url
        self.start_url = start_url
        self.meeting_password = meeting_password
        self.timezone = timezone
        self.max_participants = max_participants
        self.has_recording = has_recording
        self.started_at = started_at
        self.ended_at = ended_at
        self.cancelled_at = cancelled_at
        self.created_at = created_at or utcnow()
        self.updated_at = updated_at or utcnow()

    @staticmethod
    def validate_schedule(
        title: Optional[str] = None,
        description: Optional[str] = None,
        duration: Optional[int] = None,
        max_participants: Optional[int] = None,
    ) -> None:
        """Validate user supplied schedule fields.

        Only the fields that are passed are checked, so this serves both
        creation and partial updates.

        Raises:
            ValidationError: If any field is out of bounds
        """
        if title is not None:
            stripped = title.strip()
            if not TITLE_MIN_LENGTH <= len(stripped) <= TITLE_MAX_LENGTH:
                raise ValidationError(
                    "title",
                    f"must be between {TITLE_MIN_LENGTH} and {TITLE_MAX_LENGTH} characters",
                )
        if description is not None and len(description) > DESCRIPTION_MAX_LENGTH:
            raise ValidationError(
                "description", f"cannot exceed {DESCRIPTION_MAX_LENGTH} characters"
            )
        if duration is not None:
            if isinstance(duration, bool) or not isinstance(duration, int):
                raise ValidationError("duration", "must be a whole number of minutes")
            if not DURATION_MIN_MINUTES <= duration <= DURATION_MAX_MINUTES:
                raise ValidationError(
                    "duration",
                    f"must be between {DURATION_MIN_MINUTES} and {DURATION_MAX_MINUTES} minutes",
                )
        if max_participants is not None and max_participants < 1:
            raise ValidationError("max_participants", "must be at least 1")

    @property
    def end_time(self) -> datetime:
        """Derived end of the session window."""
        return self.scheduled_at + timedelta(minutes=self.duration)

    def computed_status(self, now: Optional[datetime] = None) -> ComputedStatus:
        """Status as it reads at ``now``.

        Explicit transitions win over the clock: a session started early is
        live, and a completed session is ended even before its window closes.
        """
        now = ensure_utc(now or utcnow())
        if self.status == SessionStatus.CANCELLED:
            return ComputedStatus.CANCELLED
        if self.status == SessionStatus.COMPLETED:
            return ComputedStatus.ENDED
        if now > self.end_time:
            return ComputedStatus.ENDED
        if self.status == SessionStatus.LIVE or now >= self.scheduled_at:
            return ComputedStatus.LIVE
        return ComputedStatus.UPCOMING

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        """Whether a live session has run past its window without being ended."""
        now = ensure_utc(now or utcnow())
        return self.status == SessionStatus.LIVE and now > self.end_time

    def check_can_start(self, now: datetime, grace: timedelta) -> None:
        """Ensure the session may go live at ``now``.

        Raises:
            InvalidTransitionError: If not scheduled or outside the start window
        """
        now = ensure_utc(now)
        if self.status != SessionStatus.SCHEDULED:
            raise InvalidTransitionError(self.id, self.status.value, "start")
        if now < self.scheduled_at - grace:
            raise InvalidTransitionError(
                self.id,
                self.status.value,
                "start",
                f"start window opens at {(self.scheduled_at - grace).isoformat()}",
            )
        if now > self.end_time:
            raise InvalidTransitionError(
                self.id, self.status.value, "start", "session window has already ended"
            )

    def mark_live(self, now: datetime, join_url: Optional[str] = None) -> None:
        """Move the session to live."""
        if self.status != SessionStatus.SCHEDULED:
            raise InvalidTransitionError(self.id, self.status.value, "start")
        if join_url:
            self.join_url = join_url
        self.status = SessionStatus.LIVE
        self.started_at = ensure_utc(now)
        self.updated_at = utcnow()

    def mark_completed(self, now: datetime) -> None:
        """Move a live session to completed."""
        if self.status != SessionStatus.LIVE:
            raise InvalidTransitionError(self.id, self.status.value, "end")
        self.status = SessionStatus.COMPLETED
        self.ended_at = ensure_utc(now)
        self.updated_at = utcnow()

    def mark_cancelled(self, now: datetime) -> None:
        """Cancel a scheduled or live session. Irreversible."""
        if self.status not in (SessionStatus.SCHEDULED, SessionStatus.LIVE):
            raise InvalidTransitionError(self.id, self.status.value, "cancel")
        self.status = SessionStatus.CANCELLED
        self.cancelled_at = ensure_utc(now)
        self.updated_at = utcnow()

    def reschedule(
        self,
        scheduled_at: Optional[datetime] = None,
        duration: Optional[int] = None,
    ) -> None:
        """Change the time window. Only allowed while scheduled."""
        if self.status != SessionStatus.SCHEDULED:
            raise InvalidTransitionError(self.id, self.status.value, "reschedule")
        self.validate_schedule(duration=duration)
        if scheduled_at is not None:
            self.scheduled_at = ensure_utc(scheduled_at)
        if duration is not None:
            self.duration = duration
        self.updated_at = utcnow()

    def update_details(self, updates: Dict) -> None:
        """Update descriptive fields."""
        self.validate_schedule(
            title=updates.get("title"),
            description=updates.get("description"),
            max_participants=updates.get("max_participants"),
        )
        if updates.get("title") is not None:
            self.title = updates["title"].strip()
        if updates.get("description") is not None:
            self.description = updates["description"]
        if updates.get("session_type") is not None:
            self.session_type = SessionType(updates["session_type"])
        if updates.get("max_participants") is not None:
            self.max_participants = updates["max_participants"]
        self.updated_at = utcnow()

    def attach_meeting(
        self,
        meeting_id: str,
        join_url: str,
        start_url: Optional[str] = None,
        password: Optional[str] = None,
    ) -> None:
        """Record the provider meeting backing this session."""
        self.meeting_id = meeting_id
        self.join_url = join_url
        self.start_url = start_url
        self.meeting_password = password
        self.updated_at = utcnow()

    def is_hosted_by(self, user_id: str, user_role: str = "student") -> bool:
        """Check if a user may manage this session."""
        return self.instructor_id == user_id or user_role in HOST_ROLES

    def __str__(self) -> str:
        """String representation of the session."""
        return f"Session(id={self.id}, title='{self.title}', status={self.status.value})"

    def __repr__(self) -> str:
        """Detailed representation of the session."""
        return (
            f"SessionEntity(id='{self.id}', course_id='{self.course_id}', "
            f"scheduled_at={self.scheduled_at.isoformat()}, duration={self.duration}, "
            f"status={self.status.value})"
        )
