"""Recording file storage."""

from .local_storage import (
    BACKUP_SUFFIX,
    LocalRecordingStorage,
)

__all__ = ["BACKUP_SUFFIX", "LocalRecordingStorage"]
