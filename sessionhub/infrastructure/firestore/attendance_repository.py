"""Firestore Attendance Repository.

Documents are keyed ``<session_id>_<user_id>``, which makes the
one-record-per-pair rule a property of the collection itself.
"""

from typing import (
    Any,
    Dict,
    List,
    Optional,
)

from google.cloud.firestore import Client

from sessionhub.domain.entities import AttendanceEntity
from sessionhub.domain.repositories import AttendanceRepositoryInterface
from sessionhub.infrastructure.firestore.base_repository import BaseFirestoreRepository


class FirestoreAttendanceRepository(BaseFirestoreRepository, AttendanceRepositoryInterface):
    """Firestore implementation of Attendance Repository."""

    def __init__(self, client: Optional[Client] = None):
        """Initialize Firestore Attendance Repository."""
        super().__init__("attendance", client)

    async def get(self, session_id: str, user_id: str) -> Optional[AttendanceEntity]:
        """Get the attendance record of a user in a session."""
        data = await self.get_document(AttendanceEntity.key(session_id, user_id))
        return self.to_entity(data) if data else None

    async def create_if_absent(self, attendance: AttendanceEntity) -> AttendanceEntity:
        """Insert the record, or return the one stored first."""
        created = await self.create_document(
            self.from_entity(attendance), attendance.id, exclusive=True
        )
        if created:
            return attendance
        return await self.get(attendance.session_id, attendance.user_id)

    async def update(self, attendance: AttendanceEntity) -> AttendanceEntity:
        """Persist changes to an existing record."""
        await self.set_document(attendance.id, self.from_entity(attendance))
        return attendance

    async def delete(self, session_id: str, user_id: str) -> bool:
        """Remove the record of a user in a session."""
        return await self.delete_document(AttendanceEntity.key(session_id, user_id))

    async def delete_by_session(self, session_id: str) -> int:
        """Remove every attendance record of a session."""
        docs = await self.query_documents([("session_id", "==", session_id)])
        for doc in docs:
            self.collection.document(doc["id"]).delete()
        return len(docs)

    async def list_by_session(self, session_id: str) -> List[AttendanceEntity]:
        """All attendance records of a session, earliest join first."""
        docs = await self.query_documents(
            [("session_id", "==", session_id)], order_by="joined_at"
        )
        return [self.to_entity(doc) for doc in docs]

    def to_entity(self, data: Dict[str, Any]) -> AttendanceEntity:
        """Convert Firestore document to AttendanceEntity."""
        return AttendanceEntity(
            session_id=data["session_id"],
            user_id=data["user_id"],
            joined_at=self._as_datetime(data.get("joined_at")),
            left_at=self._as_datetime(data.get("left_at")),
            marked_by=data.get("marked_by"),
        )

    def from_entity(self, attendance: AttendanceEntity) -> Dict[str, Any]:
        """Convert AttendanceEntity to Firestore document."""
        return {
            "session_id": attendance.session_id,
            "user_id": attendance.user_id,
            "joined_at": attendance.joined_at,
            "left_at": attendance.left_at,
            "marked_by": attendance.marked_by,
        }
