"""Firestore Recording Repository."""

from typing import (
    Any,
    Dict,
    List,
    Optional,
)

from google.api_core.exceptions import NotFound
from google.cloud.firestore import (
    Client,
    Increment,
)

from sessionhub.domain.entities import (
    RecordingEntity,
    RecordingSource,
    RepairStatus,
    utcnow,
)
from sessionhub.domain.exceptions import RecordingNotFoundError
from sessionhub.domain.repositories import RecordingRepositoryInterface
from sessionhub.infrastructure.firestore.base_repository import (
    BaseFirestoreRepository,
    Filter,
)


class FirestoreRecordingRepository(BaseFirestoreRepository, RecordingRepositoryInterface):
    """Firestore implementation of Recording Repository."""

    def __init__(self, client: Optional[Client] = None):
        """Initialize Firestore Recording Repository."""
        super().__init__("recordings", client)

    async def create_if_absent(self, recording: RecordingEntity) -> bool:
        """Insert a recording unless its ID is already taken."""
        doc_id = await self.create_document(
            self.from_entity(recording), recording.id, exclusive=True
        )
        return doc_id is not None

    async def get_by_id(self, recording_id: str) -> Optional[RecordingEntity]:
        """Get recording by ID."""
        data = await self.get_document(recording_id)
        return self.to_entity(data) if data else None

    async def get_by_provider_recording_id(
        self, provider_recording_id: str
    ) -> Optional[RecordingEntity]:
        """Get the recording ingested from a provider file."""
        docs = await self.query_documents(
            [("provider_recording_id", "==", provider_recording_id)], limit=1
        )
        return self.to_entity(docs[0]) if docs else None

    async def update(self, recording: RecordingEntity) -> RecordingEntity:
        """Persist changes to an existing recording.

        Raises:
            RecordingNotFoundError: If the recording was deleted meanwhile
        """
        data = self.from_entity(recording)
        # The counter is only ever changed through increment_view_count
        data.pop("view_count")
        data.pop("created_at")
        data["updated_at"] = utcnow()
        try:
            self.collection.document(recording.id).update(data)
        except NotFound as e:
            raise RecordingNotFoundError(recording.id) from e
        recording.updated_at = data["updated_at"]
        return recording

    async def delete(self, recording_id: str) -> bool:
        """Delete a recording document."""
        return await self.delete_document(recording_id)

    @staticmethod
    def _filters(
        session_id: Optional[str], course_id: Optional[str], public_only: bool
    ) -> List[Filter]:
        filters: List[Filter] = []
        if session_id:
            filters.append(("session_id", "==", session_id))
        if course_id:
            filters.append(("course_id", "==", course_id))
        if public_only:
            filters.append(("is_public", "==", True))
        return filters

    async def list_recordings(
        self,
        session_id: Optional[str] = None,
        course_id: Optional[str] = None,
        public_only: bool = False,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[RecordingEntity]:
        """List recordings, newest first."""
        docs = await self.query_documents(
            self._filters(session_id, course_id, public_only),
            order_by="recorded_at",
            direction="desc",
            limit=limit,
            offset=offset,
        )
        return [self.to_entity(doc) for doc in docs]

    async def count_recordings(
        self,
        session_id: Optional[str] = None,
        course_id: Optional[str] = None,
        public_only: bool = False,
    ) -> int:
        """Count recordings matching the filters."""
        return await self.count_documents(self._filters(session_id, course_id, public_only))

    async def increment_view_count(self, recording_id: str) -> None:
        """Atomically add one to the view counter."""
        self.collection.document(recording_id).update({"view_count": Increment(1)})

    def to_entity(self, data: Dict[str, Any]) -> RecordingEntity:
        """Convert Firestore document to RecordingEntity."""
        repair_status = data.get("repair_status")
        return RecordingEntity(
            recording_id=data["id"],
            session_id=data["session_id"],
            course_id=data.get("course_id", ""),
            provider_recording_id=data["provider_recording_id"],
            title=data.get("title", ""),
            description=data.get("description", ""),
            duration=int(data["duration"]),
            recorded_at=self._as_datetime(data.get("recorded_at")),
            storage_url=data["storage_url"],
            source=RecordingSource(data.get("source", RecordingSource.PROVIDER.value)),
            play_url=data.get("play_url"),
            download_url=data.get("download_url"),
            local_filename=data.get("local_filename"),
            file_size=data.get("file_size", 0),
            fallback_url=data.get("fallback_url"),
            repair_status=RepairStatus(repair_status) if repair_status else None,
            repair_note=data.get("repair_note"),
            view_count=data.get("view_count", 0),
            is_public=data.get("is_public", True),
            created_at=self._as_datetime(data.get("created_at")),
            updated_at=self._as_datetime(data.get("updated_at")),
        )

    def from_entity(self, recording: RecordingEntity) -> Dict[str, Any]:
        """Convert RecordingEntity to Firestore document."""
        return {
            "session_id": recording.session_id,
            "course_id": recording.course_id,
            "provider_recording_id": recording.provider_recording_id,
            "title": recording.title,
            "description": recording.description,
            "duration": recording.duration,
            "recorded_at": recording.recorded_at,
            "storage_url": recording.storage_url,
            "source": recording.source.value,
            "play_url": recording.play_url,
            "download_url": recording.download_url,
            "local_filename": recording.local_filename,
            "file_size": recording.file_size,
            "fallback_url": recording.fallback_url,
            "repair_status": recording.repair_status.value if recording.repair_status else None,
            "repair_note": recording.repair_note,
            "view_count": recording.view_count,
            "is_public": recording.is_public,
            "created_at": recording.created_at,
            "updated_at": recording.updated_at,
        }
