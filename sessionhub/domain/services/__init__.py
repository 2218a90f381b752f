"""Domain services for SessionHub.

This module contains domain services that encapsulate
business logic that doesn't naturally fit within entities.
"""

from .attendance_service import AttendanceDomainService
from .locks import KeyedLock
from .recording_service import (
    BulkSyncResult,
    DownloadTarget,
    RecordingDomainService,
    SessionSyncResult,
)
from .session_service import (
    JoinInfo,
    SessionDomainService,
)

__all__ = [
    "SessionDomainService",
    "RecordingDomainService",
    "AttendanceDomainService",
    "KeyedLock",
    "JoinInfo",
    "SessionSyncResult",
    "BulkSyncResult",
    "DownloadTarget",
]
