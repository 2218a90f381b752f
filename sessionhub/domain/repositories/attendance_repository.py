"""Attendance repository interface for SessionHub."""

from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    List,
    Optional,
)

from sessionhub.domain.entities import AttendanceEntity


class AttendanceRepositoryInterface(ABC):
    """Abstract repository interface for Attendance operations.

    Records are keyed on (session, user), so at most one exists per pair.
    """

    @abstractmethod
    async def get(self, session_id: str, user_id: str) -> Optional[AttendanceEntity]:
        """Get the attendance record of a user in a session."""
        pass

    @abstractmethod
    async def create_if_absent(self, attendance: AttendanceEntity) -> AttendanceEntity:
        """Insert the record unless one already exists.

        Returns:
            AttendanceEntity: The stored record, which is the earlier one if
            the pair was already present
        """
        pass

    @abstractmethod
    async def update(self, attendance: AttendanceEntity) -> AttendanceEntity:
        """Persist changes to an existing record."""
        pass

    @abstractmethod
    async def delete(self, session_id: str, user_id: str) -> bool:
        """Remove the record of a user in a session."""
        pass

    @abstractmethod
    async def list_by_session(self, session_id: str) -> List[AttendanceEntity]:
        """All attendance records of a session, earliest join first."""
        pass

    @abstractmethod
    async def delete_by_session(self, session_id: str) -> int:
        """Remove every record of a session.

        Returns:
            int: Number of records removed
        """
        pass
