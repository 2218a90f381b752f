"""Domain entities for SessionHub.

This module contains pure domain entities that represent
the core business objects without any external dependencies.
"""

from .attendance_entity import AttendanceEntity
from .recording_entity import (
    RecordingEntity,
    RecordingSource,
    RepairStatus,
)
from .session_entity import (
    ComputedStatus,
    SessionEntity,
    SessionStatus,
    SessionType,
    ensure_utc,
    utcnow,
)

__all__ = [
    # Session
    "SessionEntity",
    "SessionStatus",
    "SessionType",
    "ComputedStatus",
    "ensure_utc",
    "utcnow",
    # Recording
    "RecordingEntity",
    "RecordingSource",
    "RepairStatus",
    # Attendance
    "AttendanceEntity",
]
