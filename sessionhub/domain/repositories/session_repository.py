"""Session repository interface for SessionHub.

This module defines the contract for session data access operations
without specifying implementation details.
"""

from abc import (
    ABC,
    abstractmethod,
)
from datetime import datetime
from typing import (
    Iterable,
    List,
    Optional,
)

from sessionhub.domain.entities import (
    SessionEntity,
    SessionStatus,
)


class SessionRepositoryInterface(ABC):
    """Abstract repository interface for Session operations.

    This interface defines all the operations that can be performed
    on session data without coupling to any specific database implementation.
    """

    @abstractmethod
    async def create(self, session: SessionEntity) -> SessionEntity:
        """Create a new session.

        Args:
            session: Session entity to create

        Returns:
            SessionEntity: Created session
        """
        pass

    @abstractmethod
    async def get_by_id(self, session_id: str) -> Optional[SessionEntity]:
        """Get session by ID.

        Args:
            session_id: Session ID to lookup

        Returns:
            SessionEntity or None if not found
        """
        pass

    @abstractmethod
    async def save_if_status(
        self, session: SessionEntity, expected_status: SessionStatus, transition: str
    ) -> SessionEntity:
        """Persist a session only if its stored status still equals ``expected_status``.

        Args:
            session: Session entity carrying the new state
            expected_status: Status the stored record must have
            transition: Name of the attempted transition, for error context

        Returns:
            SessionEntity: The saved session

        Raises:
            SessionNotFoundError: If the session no longer exists
            ConcurrentModificationError: If the stored status changed meanwhile
        """
        pass

    @abstractmethod
    async def delete(self, session_id: str) -> bool:
        """Delete a session record.

        Args:
            session_id: Session ID

        Returns:
            bool: True if a record was deleted
        """
        pass

    @abstractmethod
    async def find_by_meeting_id(self, meeting_id: str) -> Optional[SessionEntity]:
        """Get the session backed by a provider meeting."""
        pass

    @abstractmethod
    async def list_sessions(
        self,
        course_id: Optional[str] = None,
        instructor_id: Optional[str] = None,
        statuses: Optional[Iterable[SessionStatus]] = None,
        start_from: Optional[datetime] = None,
        start_to: Optional[datetime] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[SessionEntity]:
        """List sessions ordered by scheduled start.

        Args:
            course_id: Restrict to a course
            instructor_id: Restrict to a host
            statuses: Restrict to persisted statuses
            start_from: Earliest scheduled start, inclusive
            start_to: Latest scheduled start, inclusive
            limit: Page size
            offset: Number of matches to skip

        Returns:
            List[SessionEntity]: Matching sessions
        """
        pass

    @abstractmethod
    async def count_sessions(
        self,
        course_id: Optional[str] = None,
        instructor_id: Optional[str] = None,
        statuses: Optional[Iterable[SessionStatus]] = None,
        start_from: Optional[datetime] = None,
        start_to: Optional[datetime] = None,
    ) -> int:
        """Count sessions matching the same filters as :meth:`list_sessions`."""
        pass
