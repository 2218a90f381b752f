"""Firestore infrastructure package."""

from .attendance_repository import FirestoreAttendanceRepository
from .base_repository import BaseFirestoreRepository
from .recording_repository import FirestoreRecordingRepository
from .session_repository import FirestoreSessionRepository

__all__ = [
    "BaseFirestoreRepository",
    "FirestoreSessionRepository",
    "FirestoreRecordingRepository",
    "FirestoreAttendanceRepository",
]
