"""Attendance schemas for the API."""

from datetime import datetime
from typing import (
    List,
    Optional,
)

from pydantic import (
    BaseModel,
    Field,
)

from sessionhub.domain.entities import AttendanceEntity


class AttendanceMark(BaseModel):
    """Request model for a host marking a user present or absent."""

    user_id: str = Field(..., description="User being marked")
    present: bool = Field(default=True, description="False clears the record")


class AttendanceResponse(BaseModel):
    """One attendance record."""

    session_id: str
    user_id: str
    joined_at: datetime
    left_at: Optional[datetime] = None
    marked_by: Optional[str] = None

    @classmethod
    def from_entity(cls, attendance: AttendanceEntity) -> "AttendanceResponse":
        return cls(
            session_id=attendance.session_id,
            user_id=attendance.user_id,
            joined_at=attendance.joined_at,
            left_at=attendance.left_at,
            marked_by=attendance.marked_by,
        )


class AttendanceListResponse(BaseModel):
    """Attendance of one session with counts."""

    session_id: str
    total: int
    present_now: int
    records: List[AttendanceResponse]

    @classmethod
    def from_entities(cls, session_id: str, records: List[AttendanceEntity]) -> "AttendanceListResponse":
        return cls(
            session_id=session_id,
            total=len(records),
            present_now=sum(1 for record in records if record.left_at is None),
            records=[AttendanceResponse.from_entity(record) for record in records],
        )
