"""Repository interfaces for SessionHub.

This module contains abstract repository interfaces that define
the contract for data access without implementation details.
"""

from .attendance_repository import AttendanceRepositoryInterface
from .recording_repository import RecordingRepositoryInterface
from .session_repository import SessionRepositoryInterface

__all__ = [
    "SessionRepositoryInterface",
    "RecordingRepositoryInterface",
    "AttendanceRepositoryInterface",
]
