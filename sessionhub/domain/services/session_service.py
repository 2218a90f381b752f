"""Session domain service for SessionHub.

This module contains the session lifecycle operations. Each state changing
operation on a session runs under a per-session lock and is persisted with
a write conditioned on the status it started from, so concurrent start,
end and cancel requests for the same session cannot lose updates.
"""

from dataclasses import dataclass
from datetime import (
    datetime,
    timedelta,
)
from typing import (
    Callable,
    Dict,
    Iterable,
    List,
    Optional,
    Tuple,
)

from sessionhub.domain.entities import (
    AttendanceEntity,
    SessionEntity,
    SessionStatus,
    SessionType,
    ensure_utc,
    utcnow,
)
from sessionhub.domain.exceptions import (
    BusinessRuleViolationError,
    ConcurrentModificationError,
    InsufficientPermissionsError,
    InvalidTransitionError,
    SessionNotFoundError,
    ValidationError,
)
from sessionhub.domain.providers import (
    MeetingProviderInterface,
    RecordingStorageInterface,
)
from sessionhub.domain.repositories import (
    RecordingRepositoryInterface,
    SessionRepositoryInterface,
)
from sessionhub.domain.services.attendance_service import AttendanceDomainService
from sessionhub.domain.services.locks import KeyedLock

MANAGER_ROLES = ("instructor", "admin", "super_admin")
SCHEDULE_FIELDS = ("scheduled_at", "duration")


@dataclass
class JoinInfo:
    """What a participant needs to enter a live session."""

    session: SessionEntity
    join_url: str
    attendance: AttendanceEntity
    start_url: Optional[str] = None
    password: Optional[str] = None


class SessionDomainService:
    """Domain service for the session lifecycle.

    This service encapsulates scheduling, the start/end/cancel state
    machine and the coordination with the meeting provider. Provider
    failures leave the persisted session untouched.
    """

    def __init__(
        self,
        session_repository: SessionRepositoryInterface,
        recording_repository: RecordingRepositoryInterface,
        attendance_service: AttendanceDomainService,
        meeting_provider: MeetingProviderInterface,
        storage: RecordingStorageInterface,
        start_grace: timedelta = timedelta(minutes=15),
        clock: Callable[[], datetime] = utcnow,
        locks: Optional[KeyedLock] = None,
    ):
        """Initialize the session domain service.

        Args:
            session_repository: Repository for session data access
            recording_repository: Repository used to guard and cascade deletes
            attendance_service: Service recording joins and leaves
            meeting_provider: External meeting provider client
            storage: Recording file store, for cascading deletes
            start_grace: How early before the scheduled start a session may go live
            clock: Source of the current time
            locks: Per-session lock registry
        """
        self.session_repository = session_repository
        self.recording_repository = recording_repository
        self.attendance_service = attendance_service
        self.meeting_provider = meeting_provider
        self.storage = storage
        self.start_grace = start_grace
        self.clock = clock
        self.locks = locks or KeyedLock()

    @staticmethod
    def _require_manager(action: str, actor_id: str, actor_role: str) -> None:
        if actor_role not in MANAGER_ROLES:
            raise InsufficientPermissionsError(action, actor_id)

    @staticmethod
    def _require_host(session: SessionEntity, action: str, actor_id: str, actor_role: str) -> None:
        if actor_role not in MANAGER_ROLES or not session.is_hosted_by(actor_id, actor_role):
            raise InsufficientPermissionsError(action, actor_id)

    async def create_session(
        self,
        actor_id: str,
        actor_role: str,
        course_id: str,
        title: str,
        scheduled_at: datetime,
        duration: int,
        description: str = "",
        session_type: SessionType = SessionType.LIVE_CLASS,
        max_participants: int = 100,
        timezone: str = "UTC",
    ) -> SessionEntity:
        """Schedule a session and create its provider meeting.

        Args:
            actor_id: User scheduling the session, becomes its host
            actor_role: Role of that user
            course_id: Owning course
            title: Session title
            scheduled_at: Scheduled start
            duration: Length in minutes
            description: Optional description
            session_type: Kind of session
            max_participants: Participant cap
            timezone: Timezone shown by the provider

        Returns:
            SessionEntity: The persisted, scheduled session

        Raises:
            InsufficientPermissionsError: If the actor may not schedule sessions
            ValidationError: If the schedule is malformed
            ProviderUnavailableError: If the provider meeting could not be created
        """
        self._require_manager("create_session", actor_id, actor_role)
        SessionEntity.validate_schedule(
            title=title,
            description=description,
            duration=duration,
            max_participants=max_participants,
        )
        if not course_id:
            raise ValidationError("course_id", "is required")

        session = SessionEntity(
            course_id=course_id,
            instructor_id=actor_id,
            title=title.strip(),
            description=description,
            scheduled_at=scheduled_at,
            duration=duration,
            session_type=session_type,
            max_participants=max_participants,
            timezone=timezone,
        )
        if session.end_time <= self.clock():
            raise ValidationError("scheduled_at", "the session window has already passed")

        meeting = await self.meeting_provider.create_meeting(
            topic=session.title,
            start_time=session.scheduled_at,
            duration=session.duration,
            timezone=session.timezone,
            agenda=session.description,
        )
        session.attach_meeting(
            meeting.meeting_id, meeting.join_url, meeting.start_url, meeting.password
        )

        try:
            return await self.session_repository.create(session)
        except Exception:
            # Do not leak a provider meeting nobody can reach
            await self.meeting_provider.delete_meeting(meeting.meeting_id)
            raise

    async def get_session(self, session_id: str) -> SessionEntity:
        """Get a session by ID.

        Raises:
            SessionNotFoundError: If session doesn't exist
        """
        session = await self.session_repository.get_by_id(session_id)
        if not session:
            raise SessionNotFoundError(session_id)
        return session

    async def list_sessions(
        self,
        course_id: Optional[str] = None,
        instructor_id: Optional[str] = None,
        statuses: Optional[Iterable[SessionStatus]] = None,
        start_from: Optional[datetime] = None,
        start_to: Optional[datetime] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[SessionEntity], int]:
        """List sessions with pagination.

        Returns:
            Tuple[List[SessionEntity], int]: One page of sessions and the total count
        """
        if page < 1 or limit < 1:
            raise ValidationError("page", "page and limit must be positive")
        statuses = list(statuses) if statuses else None
        filters = dict(
            course_id=course_id,
            instructor_id=instructor_id,
            statuses=statuses,
            start_from=ensure_utc(start_from) if start_from else None,
            start_to=ensure_utc(start_to) if start_to else None,
        )
        sessions = await self.session_repository.list_sessions(
            limit=limit, offset=(page - 1) * limit, **filters
        )
        total = await self.session_repository.count_sessions(**filters)
        return sessions, total

    async def update_session(
        self, session_id: str, actor_id: str, actor_role: str, updates: Dict
    ) -> SessionEntity:
        """Edit or reschedule a session. Only allowed while scheduled.

        A changed time window or title is pushed to the provider before the
        record is saved.

        Raises:
            SessionNotFoundError: If session doesn't exist
            InsufficientPermissionsError: If the actor does not host the session
            InvalidTransitionError: If the session is no longer scheduled
            ValidationError: If new values are malformed
            ProviderUnavailableError: If the provider rejected the change
        """
        async with self.locks.hold(session_id):
            session = await self.get_session(session_id)
            self._require_host(session, "update_session", actor_id, actor_role)
            if session.status != SessionStatus.SCHEDULED:
                raise InvalidTransitionError(session.id, session.status.value, "update")

            old_title = session.title
            old_window = (session.scheduled_at, session.duration)
            session.update_details(updates)
            if any(updates.get(field) is not None for field in SCHEDULE_FIELDS):
                session.reschedule(updates.get("scheduled_at"), updates.get("duration"))
                if session.end_time <= self.clock():
                    raise ValidationError("scheduled_at", "the session window has already passed")

            window_changed = (session.scheduled_at, session.duration) != old_window
            if session.meeting_id and (window_changed or session.title != old_title):
                await self.meeting_provider.update_meeting(
                    session.meeting_id,
                    topic=session.title,
                    start_time=session.scheduled_at if window_changed else None,
                    duration=session.duration if window_changed else None,
                    timezone=session.timezone,
                )

            return await self.session_repository.save_if_status(
                session, SessionStatus.SCHEDULED, "update"
            )

    async def delete_session(
        self, session_id: str, actor_id: str, actor_role: str, cascade: bool = False
    ) -> None:
        """Delete a session.

        A session that owns recordings is only deleted when ``cascade`` is
        set, in which case its recordings and their files go first. Its
        attendance records are always removed with it, and an active
        provider meeting is released.

        Raises:
            SessionNotFoundError: If session doesn't exist
            InsufficientPermissionsError: If the actor does not host the session
            BusinessRuleViolationError: If recordings exist and cascade is off
            ProviderUnavailableError: If the provider meeting could not be released
        """
        async with self.locks.hold(session_id):
            session = await self.get_session(session_id)
            self._require_host(session, "delete_session", actor_id, actor_role)

            recordings = await self.recording_repository.list_recordings(session_id=session_id)
            if recordings and not cascade:
                raise BusinessRuleViolationError(
                    "sessions with recordings cannot be deleted",
                    f"session {session_id} owns {len(recordings)} recording(s); "
                    "delete them first or request a cascading delete",
                )

            if session.meeting_id and session.status in (
                SessionStatus.SCHEDULED,
                SessionStatus.LIVE,
            ):
                await self.meeting_provider.delete_meeting(session.meeting_id)

            for recording in recordings:
                if recording.local_filename:
                    await self.storage.delete(recording.local_filename)
                await self.recording_repository.delete(recording.id)

            await self.attendance_service.clear_session(session_id)
            await self.session_repository.delete(session_id)

    async def start_session(self, session_id: str, actor_id: str, actor_role: str) -> SessionEntity:
        """Take a session live.

        Starting an already live session returns it unchanged, with the
        join URL that was assigned by the first start.

        Raises:
            SessionNotFoundError: If session doesn't exist
            InsufficientPermissionsError: If the actor does not host the session
            InvalidTransitionError: If the session is not scheduled or outside its window
            ProviderUnavailableError: If the provider could not confirm the meeting
            ConcurrentModificationError: If the session changed underneath us
        """
        async with self.locks.hold(session_id):
            session = await self.get_session(session_id)
            self._require_host(session, "start_session", actor_id, actor_role)
            if session.status == SessionStatus.LIVE:
                return session

            now = self.clock()
            session.check_can_start(now, self.start_grace)

            if session.meeting_id:
                meeting = await self.meeting_provider.get_meeting(session.meeting_id)
            else:
                meeting = await self.meeting_provider.create_meeting(
                    topic=session.title,
                    start_time=session.scheduled_at,
                    duration=session.duration,
                    timezone=session.timezone,
                    agenda=session.description,
                )
            session.attach_meeting(
                meeting.meeting_id,
                meeting.join_url,
                meeting.start_url or session.start_url,
                meeting.password or session.meeting_password,
            )
            session.mark_live(now)
            return await self.session_repository.save_if_status(
                session, SessionStatus.SCHEDULED, "start"
            )

    async def end_session(self, session_id: str, actor_id: str, actor_role: str) -> SessionEntity:
        """End a live session. Ending a completed session is a no-op.

        Raises:
            SessionNotFoundError: If session doesn't exist
            InsufficientPermissionsError: If the actor does not host the session
            InvalidTransitionError: If the session is not live
            ProviderUnavailableError: If the provider could not end the meeting
            ConcurrentModificationError: If the session changed underneath us
        """
        async with self.locks.hold(session_id):
            session = await self.get_session(session_id)
            self._require_host(session, "end_session", actor_id, actor_role)
            if session.status == SessionStatus.COMPLETED:
                return session
            if session.status != SessionStatus.LIVE:
                raise InvalidTransitionError(session.id, session.status.value, "end")

            if session.meeting_id:
                await self.meeting_provider.end_meeting(session.meeting_id)
            session.mark_completed(self.clock())
            return await self.session_repository.save_if_status(
                session, SessionStatus.LIVE, "end"
            )

    async def cancel_session(self, session_id: str, actor_id: str, actor_role: str) -> SessionEntity:
        """Cancel a scheduled or live session and release its provider meeting.

        Raises:
            SessionNotFoundError: If session doesn't exist
            InsufficientPermissionsError: If the actor does not host the session
            InvalidTransitionError: If the session is completed or already cancelled
            ProviderUnavailableError: If the provider meeting could not be released
            ConcurrentModificationError: If the session changed underneath us
        """
        async with self.locks.hold(session_id):
            session = await self.get_session(session_id)
            self._require_host(session, "cancel_session", actor_id, actor_role)
            previous_status = session.status
            if previous_status not in (SessionStatus.SCHEDULED, SessionStatus.LIVE):
                raise InvalidTransitionError(session.id, previous_status.value, "cancel")

            if session.meeting_id:
                await self.meeting_provider.delete_meeting(session.meeting_id)
            session.mark_cancelled(self.clock())
            return await self.session_repository.save_if_status(
                session, previous_status, "cancel"
            )

    async def apply_provider_event(self, meeting_id: str, event: str) -> Optional[SessionEntity]:
        """Apply a lifecycle event reported by the provider.

        ``meeting.started`` takes a scheduled session live regardless of the
        clock, ``meeting.ended`` completes a live one. Events for unknown
        meetings or sessions already past that state are ignored.

        Returns:
            Optional[SessionEntity]: The affected session, if any
        """
        session = await self.session_repository.find_by_meeting_id(meeting_id)
        if not session:
            return None

        async with self.locks.hold(session.id):
            session = await self.get_session(session.id)
            now = self.clock()
            if event == "meeting.started" and session.status == SessionStatus.SCHEDULED:
                session.mark_live(now)
                return await self.session_repository.save_if_status(
                    session, SessionStatus.SCHEDULED, "start"
                )
            if event == "meeting.ended" and session.status == SessionStatus.LIVE:
                session.mark_completed(now)
                return await self.session_repository.save_if_status(
                    session, SessionStatus.LIVE, "end"
                )
            return session

    async def reconcile(self, session: SessionEntity) -> SessionEntity:
        """Persist the completion of a live session whose window has passed.

        Returns:
            SessionEntity: The session as stored after reconciliation
        """
        if not session.is_overdue(self.clock()):
            return session

        async with self.locks.hold(session.id):
            current = await self.get_session(session.id)
            if not current.is_overdue(self.clock()):
                return current
            current.mark_completed(current.end_time)
            try:
                return await self.session_repository.save_if_status(
                    current, SessionStatus.LIVE, "end"
                )
            except ConcurrentModificationError:
                return await self.get_session(session.id)

    async def join_session(self, session_id: str, user_id: str, user_role: str) -> JoinInfo:
        """Hand out the join URL of a live session and record attendance.

        The session itself is not modified, so repeated joins are harmless.
        Hosts also receive the start URL.

        Raises:
            SessionNotFoundError: If session doesn't exist
            InvalidTransitionError: If the session is not live
        """
        session = await self.get_session(session_id)
        if session.status != SessionStatus.LIVE or session.is_overdue(self.clock()):
            raise InvalidTransitionError(
                session.id, session.status.value, "join", "only live sessions can be joined"
            )
        if not session.join_url:
            raise BusinessRuleViolationError(
                "live sessions must have a join URL", f"session {session_id} has none"
            )

        attendance = await self.attendance_service.record_join(session, user_id)
        is_host = session.is_hosted_by(user_id, user_role)
        return JoinInfo(
            session=session,
            join_url=session.join_url,
            attendance=attendance,
            start_url=session.start_url if is_host else None,
            password=session.meeting_password,
        )

    async def leave_session(self, session_id: str, user_id: str) -> AttendanceEntity:
        """Record that a user left a session.

        Raises:
            SessionNotFoundError: If session doesn't exist
            ArtifactMissingError: If the user never joined
        """
        await self.get_session(session_id)
        return await self.attendance_service.record_leave(session_id, user_id)

    async def mark_recordings_present(self, session: SessionEntity, present: bool) -> SessionEntity:
        """Update the has-recording flag without changing the status."""
        if session.has_recording == present:
            return session
        async with self.locks.hold(session.id):
            current = await self.get_session(session.id)
            current.has_recording = present
            current.updated_at = utcnow()
            return await self.session_repository.save_if_status(
                current, current.status, "update recordings flag"
            )
