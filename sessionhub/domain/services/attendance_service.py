"""Attendance domain service for SessionHub.

This module contains the rules for recording who joined a session.
"""

from datetime import datetime
from typing import (
    Callable,
    List,
    Optional,
)

from sessionhub.core.logging import logger
from sessionhub.domain.entities import (
    AttendanceEntity,
    SessionEntity,
    SessionStatus,
    utcnow,
)
from sessionhub.domain.exceptions import (
    ArtifactMissingError,
    InsufficientPermissionsError,
    InvalidTransitionError,
    SessionNotFoundError,
)
from sessionhub.domain.repositories import (
    AttendanceRepositoryInterface,
    SessionRepositoryInterface,
)

ATTENDABLE_STATUSES = (SessionStatus.LIVE, SessionStatus.COMPLETED)


class AttendanceDomainService:
    """Domain service for attendance tracking.

    The first join of a user in a session wins: later joins return the
    existing record instead of moving ``joined_at``.
    """

    def __init__(
        self,
        attendance_repository: AttendanceRepositoryInterface,
        session_repository: SessionRepositoryInterface,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize the attendance domain service.

        Args:
            attendance_repository: Repository for attendance records
            session_repository: Repository for session lookups
            clock: Source of the current time
        """
        self.attendance_repository = attendance_repository
        self.session_repository = session_repository
        self.clock = clock

    async def _get_session(self, session_id: str) -> SessionEntity:
        session = await self.session_repository.get_by_id(session_id)
        if not session:
            raise SessionNotFoundError(session_id)
        return session

    @staticmethod
    def _check_attendable(session: SessionEntity, action: str) -> None:
        if session.status not in ATTENDABLE_STATUSES:
            raise InvalidTransitionError(
                session.id,
                session.status.value,
                action,
                "attendance is recorded only for live or completed sessions",
            )

    async def record_join(self, session: SessionEntity, user_id: str) -> AttendanceEntity:
        """Record that a user joined a session.

        Args:
            session: The joined session
            user_id: The joining user

        Returns:
            AttendanceEntity: The stored record, the first one if already present

        Raises:
            InvalidTransitionError: If the session is neither live nor completed
        """
        self._check_attendable(session, "record attendance for")
        attendance = AttendanceEntity(
            session_id=session.id, user_id=user_id, joined_at=self.clock()
        )
        return await self.attendance_repository.create_if_absent(attendance)

    async def record_leave(self, session_id: str, user_id: str) -> AttendanceEntity:
        """Stamp the leave time of a user.

        Raises:
            ArtifactMissingError: If the user never joined
        """
        attendance = await self.attendance_repository.get(session_id, user_id)
        if not attendance:
            raise ArtifactMissingError("Attendance", AttendanceEntity.key(session_id, user_id))
        attendance.mark_left(self.clock())
        return await self.attendance_repository.update(attendance)

    async def mark_attendance(
        self,
        session_id: str,
        actor_id: str,
        actor_role: str,
        user_id: str,
        present: bool,
    ) -> Optional[AttendanceEntity]:
        """Let a host mark a user present or absent.

        Args:
            session_id: Session ID
            actor_id: Host performing the change
            actor_role: Role of the host
            user_id: User being marked
            present: True to mark present, False to clear the record

        Returns:
            Optional[AttendanceEntity]: The record when present, None when cleared

        Raises:
            SessionNotFoundError: If session doesn't exist
            InsufficientPermissionsError: If the actor does not host the session
            InvalidTransitionError: If the session is neither live nor completed
        """
        session = await self._get_session(session_id)
        if not session.is_hosted_by(actor_id, actor_role):
            raise InsufficientPermissionsError("mark_attendance", actor_id)
        self._check_attendable(session, "mark attendance for")

        if not present:
            await self.attendance_repository.delete(session_id, user_id)
            return None

        attendance = AttendanceEntity(
            session_id=session_id,
            user_id=user_id,
            joined_at=self.clock(),
            marked_by=actor_id,
        )
        return await self.attendance_repository.create_if_absent(attendance)

    async def get_attendance(
        self, session_id: str, actor_id: str, actor_role: str
    ) -> List[AttendanceEntity]:
        """Read attendance of one session.

        Hosts see every record, other users only their own.
        """
        session = await self._get_session(session_id)
        records = await self.attendance_repository.list_by_session(session_id)
        if session.is_hosted_by(actor_id, actor_role):
            return records
        return [record for record in records if record.user_id == actor_id]

    async def clear_session(self, session_id: str) -> int:
        """Drop all attendance of a session that is being deleted."""
        removed = await self.attendance_repository.delete_by_session(session_id)
        if removed:
            logger.info("session_attendance_cleared", session_id=session_id, removed=removed)
        return removed
