"""Attendance domain entity for SessionHub."""

from datetime import datetime
from typing import Optional

from sessionhub.domain.entities.session_entity import (
    ensure_utc,
    utcnow,
)


class AttendanceEntity:
    """A user's presence in a session. At most one per (session, user)."""

    def __init__(
        self,
        session_id: str,
        user_id: str,
        joined_at: Optional[datetime] = None,
        left_at: Optional[datetime] = None,
        marked_by: Optional[str] = None,
    ):
        """Initialize an Attendance entity.

        Args:
            session_id: Attended session
            user_id: Attending user
            joined_at: First join time
            left_at: Last leave time
            marked_by: Host who marked attendance manually, if any
        """
        self.session_id = session_id
        self.user_id = user_id
        self.joined_at = ensure_utc(joined_at) if joined_at else utcnow()
        self.left_at = ensure_utc(left_at) if left_at else None
        self.marked_by = marked_by

    @property
    def id(self) -> str:
        """Natural key of the record."""
        return self.key(self.session_id, self.user_id)

    @staticmethod
    def key(session_id: str, user_id: str) -> str:
        """Build the natural key for a (session, user) pair."""
        return f"{session_id}_{user_id}"

    def mark_left(self, now: datetime) -> None:
        """Stamp the leave time."""
        self.left_at = ensure_utc(now)

    def __repr__(self) -> str:
        """Detailed representation of the attendance record."""
        return f"AttendanceEntity(session_id='{self.session_id}', user_id='{self.user_id}')"
