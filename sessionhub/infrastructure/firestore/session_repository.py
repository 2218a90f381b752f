"""Firestore Session Repository.

This module provides the Firestore implementation for live sessions,
including the conditional write used by lifecycle transitions.
"""

from datetime import datetime
from typing import (
    Any,
    Dict,
    Iterable,
    List,
    Optional,
)

from google.api_core.exceptions import (
    FailedPrecondition,
    NotFound,
)
from google.cloud.firestore import Client

from sessionhub.domain.entities import (
    SessionEntity,
    SessionStatus,
    SessionType,
    utcnow,
)
from sessionhub.domain.exceptions import (
    ConcurrentModificationError,
    SessionNotFoundError,
)
from sessionhub.domain.repositories import SessionRepositoryInterface
from sessionhub.infrastructure.firestore.base_repository import (
    BaseFirestoreRepository,
    Filter,
)


class FirestoreSessionRepository(BaseFirestoreRepository, SessionRepositoryInterface):
    """Firestore implementation of Session Repository."""

    def __init__(self, client: Optional[Client] = None):
        """Initialize Firestore Session Repository."""
        super().__init__("live_sessions", client)

    async def create(self, session: SessionEntity) -> SessionEntity:
        """Create a new session.

        Args:
            session: Session entity to create

        Returns:
            SessionEntity: Created session entity
        """
        await self.create_document(self.from_entity(session), session.id)
        return session

    async def get_by_id(self, session_id: str) -> Optional[SessionEntity]:
        """Get session by ID.

        Args:
            session_id: Session ID

        Returns:
            Optional[SessionEntity]: Session entity or None if not found
        """
        data = await self.get_document(session_id)
        return self.to_entity(data) if data else None

    async def save_if_status(
        self, session: SessionEntity, expected_status: SessionStatus, transition: str
    ) -> SessionEntity:
        """Persist a session only if its stored status is still ``expected_status``.

        The write is guarded by the snapshot's update time, so a concurrent
        writer between our read and our write makes Firestore reject it.

        Raises:
            SessionNotFoundError: If the session no longer exists
            ConcurrentModificationError: If the stored record changed meanwhile
        """
        doc_ref = self.collection.document(session.id)
        snapshot = doc_ref.get()
        if not snapshot.exists:
            raise SessionNotFoundError(session.id)

        stored_status = snapshot.to_dict().get("status")
        if stored_status != expected_status.value:
            raise ConcurrentModificationError(
                session.id,
                expected_status.value,
                transition,
                f"stored status is {stored_status}",
            )

        data = self.from_entity(session)
        data.pop("created_at", None)
        data["updated_at"] = utcnow()
        try:
            doc_ref.update(
                data, option=self.db.write_option(last_update_time=snapshot.update_time)
            )
        except FailedPrecondition as e:
            raise ConcurrentModificationError(
                session.id, expected_status.value, transition, str(e)
            ) from e
        except NotFound as e:
            raise SessionNotFoundError(session.id) from e

        session.updated_at = data["updated_at"]
        return session

    async def delete(self, session_id: str) -> bool:
        """Delete a session document."""
        return await self.delete_document(session_id)

    async def find_by_meeting_id(self, meeting_id: str) -> Optional[SessionEntity]:
        """Get the session backed by a provider meeting."""
        docs = await self.query_documents([("meeting_id", "==", str(meeting_id))], limit=1)
        return self.to_entity(docs[0]) if docs else None

    @staticmethod
    def _filters(
        course_id: Optional[str],
        instructor_id: Optional[str],
        statuses: Optional[Iterable[SessionStatus]],
        start_from: Optional[datetime],
        start_to: Optional[datetime],
    ) -> List[Filter]:
        filters: List[Filter] = []
        if course_id:
            filters.append(("course_id", "==", course_id))
        if instructor_id:
            filters.append(("instructor_id", "==", instructor_id))
        if statuses:
            filters.append(("status", "in", [s.value for s in statuses]))
        if start_from:
            filters.append(("scheduled_at", ">=", start_from))
        if start_to:
            filters.append(("scheduled_at", "<=", start_to))
        return filters

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
        """List sessions ordered by scheduled start."""
        docs = await self.query_documents(
            self._filters(course_id, instructor_id, statuses, start_from, start_to),
            order_by="scheduled_at",
            limit=limit,
            offset=offset,
        )
        return [self.to_entity(doc) for doc in docs]

    async def count_sessions(
        self,
        course_id: Optional[str] = None,
        instructor_id: Optional[str] = None,
        statuses: Optional[Iterable[SessionStatus]] = None,
        start_from: Optional[datetime] = None,
        start_to: Optional[datetime] = None,
    ) -> int:
        """Count sessions matching the filters."""
        return await self.count_documents(
            self._filters(course_id, instructor_id, statuses, start_from, start_to)
        )

    def to_entity(self, data: Dict[str, Any]) -> SessionEntity:
        """Convert Firestore document to SessionEntity.

        Args:
            data: Document data from Firestore

        Returns:
            SessionEntity: Session entity
        """
        return SessionEntity(
            session_id=data["id"],
            course_id=data["course_id"],
            instructor_id=data["instructor_id"],
            title=data["title"],
            description=data.get("description", ""),
            scheduled_at=self._as_datetime(data["scheduled_at"]),
            duration=int(data["duration"]),
            session_type=SessionType(data.get("session_type", SessionType.LIVE_CLASS.value)),
            status=SessionStatus(data.get("status", SessionStatus.SCHEDULED.value)),
            meeting_id=data.get("meeting_id"),
            join_url=data.get("join_url"),
            start_url=data.get("start_url"),
            meeting_password=data.get("meeting_password"),
            timezone=data.get("timezone", "UTC"),
            max_participants=data.get("max_participants", 100),
            has_recording=data.get("has_recording", False),
            started_at=self._as_datetime(data.get("started_at")),
            ended_at=self._as_datetime(data.get("ended_at")),
            cancelled_at=self._as_datetime(data.get("cancelled_at")),
            created_at=self._as_datetime(data.get("created_at")),
            updated_at=self._as_datetime(data.get("updated_at")),
        )

    def from_entity(self, session: SessionEntity) -> Dict[str, Any]:
        """Convert SessionEntity to Firestore document.

        Args:
            session: Session entity

        Returns:
            Dict[str, Any]: Document data for Firestore
        """
        return {
            "course_id": session.course_id,
            "instructor_id": session.instructor_id,
            "title": session.title,
            "description": session.description,
            "scheduled_at": session.scheduled_at,
            "duration": session.duration,
            "session_type": session.session_type.value,
            "status": session.status.value,
            "meeting_id": session.meeting_id,
            "join_url": session.join_url,
            "start_url": session.start_url,
            "meeting_password": session.meeting_password,
            "timezone": session.timezone,
            "max_participants": session.max_participants,
            "has_recording": session.has_recording,
            "started_at": session.started_at,
            "ended_at": session.ended_at,
            "cancelled_at": session.cancelled_at,
            "created_at": session.created_at,
            "updated_at": session.updated_at,
        }
