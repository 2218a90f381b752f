"""Recording domain service for SessionHub.

This module contains the two ingestion paths for session recordings:

* pull: list the provider's recording files for a completed session and
  insert the ones not stored yet, optionally downloading them here;
* push: accept an uploaded file, store it verbatim and queue a container
  repair when its index box sits after the media data.
"""

import asyncio
import mimetypes
import uuid
from dataclasses import (
    dataclass,
    field,
)
from datetime import datetime
from pathlib import (
    Path,
    PurePosixPath,
)
from typing import (
    AsyncIterator,
    Awaitable,
    Callable,
    Dict,
    Iterable,
    List,
    Optional,
    Tuple,
)

from sessionhub.core.logging import logger
from sessionhub.domain.entities import (
    RecordingEntity,
    RecordingSource,
    RepairStatus,
    SessionEntity,
    SessionStatus,
    utcnow,
)
from sessionhub.domain.exceptions import (
    ArtifactMissingError,
    DomainError,
    InsufficientPermissionsError,
    InvalidTransitionError,
    ProviderUnavailableError,
    RecordingFileMissingError,
    RecordingNotFoundError,
    RepairFailedError,
    UnsupportedMediaTypeError,
    ValidationError,
)
from sessionhub.domain.providers import (
    ContainerRepairInterface,
    MeetingProviderInterface,
    ProviderRecording,
    RecordingStorageInterface,
    RepairReport,
)
from sessionhub.domain.repositories import RecordingRepositoryInterface
from sessionhub.domain.services.locks import KeyedLock
from sessionhub.domain.services.session_service import (
    MANAGER_ROLES,
    SessionDomainService,
)

RECORDING_ID_NAMESPACE = uuid.UUID("5b0c4e1e-2f7a-4c55-9d0e-7c1b8a1f3e42")
DEFAULT_VIDEO_EXTENSION = ".mp4"


def recording_id_for(provider_recording_id: str) -> str:
    """Stable record ID for a provider file, used as the dedupe key."""
    return str(uuid.uuid5(RECORDING_ID_NAMESPACE, provider_recording_id))


@dataclass
class SessionSyncResult:
    """Outcome of a pull for one session."""

    session_id: str
    found: int = 0
    created: List[RecordingEntity] = field(default_factory=list)
    skipped: int = 0
    downloaded: int = 0
    pending_repair: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        """Whether the pull ran without error."""
        return self.error is None


@dataclass
class BulkSyncResult:
    """Outcome of a pull across every eligible session."""

    results: List[SessionSyncResult] = field(default_factory=list)

    @property
    def sessions_processed(self) -> int:
        """Number of sessions attempted."""
        return len(self.results)

    @property
    def successful_sessions(self) -> int:
        """Number of sessions pulled without error."""
        return sum(1 for r in self.results if r.success)

    @property
    def total_recordings(self) -> int:
        """Number of new recordings stored."""
        return sum(len(r.created) for r in self.results)


@dataclass
class DownloadTarget:
    """Where a recording download should be served from."""

    recording: RecordingEntity
    path: Optional[Path] = None
    redirect_url: Optional[str] = None
    media_type: str = "video/mp4"


class RecordingDomainService:
    """Domain service for recording ingestion and management."""

    def __init__(
        self,
        recording_repository: RecordingRepositoryInterface,
        session_service: SessionDomainService,
        meeting_provider: MeetingProviderInterface,
        storage: RecordingStorageInterface,
        repair: ContainerRepairInterface,
        max_upload_bytes: Optional[int] = None,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize the recording domain service.

        Args:
            recording_repository: Repository for recording data access
            session_service: Session lifecycle service
            meeting_provider: External meeting provider client
            storage: Recording file store
            repair: Container repair pipeline
            max_upload_bytes: Upper bound for pushed files
            clock: Source of the current time
            sleep: Awaitable used between pull retries
        """
        self.recording_repository = recording_repository
        self.session_service = session_service
        self.meeting_provider = meeting_provider
        self.storage = storage
        self.repair = repair
        self.max_upload_bytes = max_upload_bytes
        self.clock = clock
        self.sleep = sleep
        self._sync_locks = KeyedLock()

    async def get_recording(self, recording_id: str) -> RecordingEntity:
        """Get a recording by ID.

        Raises:
            RecordingNotFoundError: If recording doesn't exist
        """
        recording = await self.recording_repository.get_by_id(recording_id)
        if not recording:
            raise RecordingNotFoundError(recording_id)
        return recording

    async def list_recordings(
        self,
        session_id: Optional[str] = None,
        course_id: Optional[str] = None,
        public_only: bool = False,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[RecordingEntity], int]:
        """List recordings with pagination."""
        if page < 1 or limit < 1:
            raise ValidationError("page", "page and limit must be positive")
        if session_id:
            await self.session_service.get_session(session_id)
        recordings = await self.recording_repository.list_recordings(
            session_id=session_id,
            course_id=course_id,
            public_only=public_only,
            limit=limit,
            offset=(page - 1) * limit,
        )
        total = await self.recording_repository.count_recordings(
            session_id=session_id, course_id=course_id, public_only=public_only
        )
        return recordings, total

    async def _require_host(
        self, recording: RecordingEntity, action: str, actor_id: str, actor_role: str
    ) -> SessionEntity:
        session = await self.session_service.get_session(recording.session_id)
        if actor_role not in MANAGER_ROLES or not session.is_hosted_by(actor_id, actor_role):
            raise InsufficientPermissionsError(action, actor_id)
        return session

    async def update_recording(
        self, recording_id: str, actor_id: str, actor_role: str, updates: Dict
    ) -> RecordingEntity:
        """Edit title, description or visibility of a recording."""
        recording = await self.get_recording(recording_id)
        await self._require_host(recording, "update_recording", actor_id, actor_role)
        recording.update_metadata(updates)
        return await self.recording_repository.update(recording)

    async def delete_recording(self, recording_id: str, actor_id: str, actor_role: str) -> None:
        """Delete a recording and its stored file."""
        recording = await self.get_recording(recording_id)
        session = await self._require_host(recording, "delete_recording", actor_id, actor_role)

        if recording.local_filename:
            await self.storage.delete(recording.local_filename)
        await self.recording_repository.delete(recording_id)

        remaining = await self.recording_repository.count_recordings(session_id=session.id)
        if remaining == 0:
            await self.session_service.mark_recordings_present(session, False)

    async def _completed_session(self, session_id: str, action: str) -> SessionEntity:
        session = await self.session_service.get_session(session_id)
        session = await self.session_service.reconcile(session)
        if session.status != SessionStatus.COMPLETED:
            raise InvalidTransitionError(
                session.id,
                session.status.value,
                action,
                "recordings are ingested only for completed sessions",
            )
        return session

    def _entity_from_provider(
        self, session: SessionEntity, item: ProviderRecording, index: int
    ) -> Optional[RecordingEntity]:
        storage_url = item.play_url or item.download_url
        duration = item.duration_seconds
        if not storage_url or duration <= 0:
            logger.warning(
                "provider_recording_skipped",
                session_id=session.id,
                provider_recording_id=item.recording_id,
                has_url=bool(storage_url),
                duration=duration,
            )
            return None

        title = session.title if index == 0 else f"{session.title} (part {index + 1})"
        return RecordingEntity(
            recording_id=recording_id_for(item.recording_id),
            session_id=session.id,
            course_id=session.course_id,
            provider_recording_id=item.recording_id,
            title=title,
            duration=duration,
            recorded_at=item.recording_start or session.scheduled_at,
            storage_url=storage_url,
            source=RecordingSource.PROVIDER,
            play_url=item.play_url,
            download_url=item.download_url,
            file_size=item.file_size,
            fallback_url=item.play_url,
        )

    async def _download_into(self, recording: RecordingEntity, result: SessionSyncResult) -> None:
        filename = self.storage.generate_filename(recording.session_id, DEFAULT_VIDEO_EXTENSION)
        path = self.storage.path_for(filename)
        size = await self.meeting_provider.download_recording(recording.download_url, path)

        recording.local_filename = filename
        recording.storage_url = self.storage.url_for(filename)
        recording.file_size = size
        if await self.repair.needs_repair(path):
            recording.record_repair(RepairStatus.PENDING)
            result.pending_repair.append(recording.id)
        else:
            recording.record_repair(RepairStatus.NOT_NEEDED)
        result.downloaded += 1

    async def _ingest(
        self,
        session: SessionEntity,
        item: ProviderRecording,
        index: int,
        download: bool,
        result: SessionSyncResult,
    ) -> None:
        existing = await self.recording_repository.get_by_provider_recording_id(item.recording_id)
        if existing:
            if download and not existing.is_local and existing.download_url:
                await self._download_into(existing, result)
                await self.recording_repository.update(existing)
            result.skipped += 1
            return

        recording = self._entity_from_provider(session, item, index)
        if recording is None:
            result.skipped += 1
            return
        if download and recording.download_url:
            await self._download_into(recording, result)

        if await self.recording_repository.create_if_absent(recording):
            result.created.append(recording)
            return

        # Another pull stored this file first; drop our copy of it
        if recording.local_filename:
            await self.storage.delete(recording.local_filename)
            result.downloaded -= 1
            if recording.id in result.pending_repair:
                result.pending_repair.remove(recording.id)
        result.skipped += 1

    async def sync_session_recordings(
        self, session_id: str, download: bool = False
    ) -> SessionSyncResult:
        """Pull the provider's recordings of one completed session.

        Recordings already stored (same provider recording ID) are skipped,
        so pulling twice never duplicates a recording.

        Args:
            session_id: Session ID
            download: Also fetch each file into local storage

        Returns:
            SessionSyncResult: What was found and stored

        Raises:
            SessionNotFoundError: If session doesn't exist
            InvalidTransitionError: If the session is not completed
            ProviderUnavailableError: If the provider could not be queried
        """
        session = await self._completed_session(session_id, "sync recordings for")
        result = SessionSyncResult(session_id=session.id)
        if not session.meeting_id:
            return result

        items = await self.meeting_provider.list_recordings(session.meeting_id)
        videos = [item for item in items if item.is_video]
        result.found = len(videos)

        async with self._sync_locks.hold(session.id):
            try:
                for index, item in enumerate(videos):
                    await self._ingest(session, item, index, download, result)
            finally:
                # Records stored before a failure still count
                if result.created:
                    await self.session_service.mark_recordings_present(session, True)

        logger.info(
            "session_recordings_synced",
            session_id=session.id,
            found=result.found,
            created=len(result.created),
            skipped=result.skipped,
            downloaded=result.downloaded,
        )
        return result

    async def sync_all_recordings(self) -> BulkSyncResult:
        """Pull recordings for every completed session with a provider meeting.

        Live sessions whose window has passed are reconciled first. A
        failure for one session is recorded in its result and does not stop
        the others.
        """
        bulk = BulkSyncResult()
        sessions = await self.session_service.session_repository.list_sessions(
            statuses=[SessionStatus.LIVE, SessionStatus.COMPLETED]
        )
        for session in sessions:
            if not session.meeting_id:
                continue
            session = await self.session_service.reconcile(session)
            if session.status != SessionStatus.COMPLETED:
                continue
            try:
                bulk.results.append(await self.sync_session_recordings(session.id))
            except DomainError as e:
                logger.warning(
                    "session_recording_sync_failed",
                    session_id=session.id,
                    error_code=e.error_code,
                    error=e.message,
                )
                bulk.results.append(SessionSyncResult(session_id=session.id, error=e.message))

        logger.info(
            "all_recordings_synced",
            sessions_processed=bulk.sessions_processed,
            successful_sessions=bulk.successful_sessions,
            total_recordings=bulk.total_recordings,
        )
        return bulk

    async def sync_with_retry(
        self,
        session_id: str,
        max_attempts: int = 6,
        base_delay: float = 30.0,
        download: bool = False,
    ) -> Optional[SessionSyncResult]:
        """Poll the provider after a session ends until its recordings show up.

        The provider needs time to process recordings, so attempt ``n``
        waits ``base_delay * n`` seconds before trying again.

        Returns:
            Optional[SessionSyncResult]: The first pull that found video files,
            or None if every attempt came back empty or failed
        """
        for attempt in range(1, max_attempts + 1):
            try:
                result = await self.sync_session_recordings(session_id, download=download)
                if result.found:
                    return result
                logger.info("recordings_not_ready", session_id=session_id, attempt=attempt)
            except ProviderUnavailableError as e:
                logger.warning(
                    "recording_sync_attempt_failed",
                    session_id=session_id,
                    attempt=attempt,
                    error=e.message,
                )
            if attempt < max_attempts:
                await self.sleep(base_delay * attempt)

        logger.warning("recordings_not_found_after_retries", session_id=session_id, attempts=max_attempts)
        return None

    async def upload_recording(
        self,
        session_id: str,
        actor_id: str,
        actor_role: str,
        original_filename: str,
        content_type: str,
        chunks: AsyncIterator[bytes],
        title: Optional[str] = None,
        description: str = "",
        duration: Optional[int] = None,
    ) -> Tuple[RecordingEntity, bool]:
        """Store an uploaded recording for a completed session.

        The bytes are kept verbatim; a container whose index box sits after
        the media data is marked for repair rather than rewritten inline.

        Returns:
            Tuple[RecordingEntity, bool]: The stored recording and whether it
            needs a container repair

        Raises:
            InsufficientPermissionsError: If the actor does not host the session
            UnsupportedMediaTypeError: If the file is not a video
            UploadTooLargeError: If the file exceeds the size limit
            InvalidTransitionError: If the session is not completed
            ValidationError: If no positive duration can be determined
        """
        if not content_type or not content_type.startswith("video/"):
            raise UnsupportedMediaTypeError(content_type or "unknown")

        session = await self.session_service.get_session(session_id)
        if actor_role not in MANAGER_ROLES or not session.is_hosted_by(actor_id, actor_role):
            raise InsufficientPermissionsError("upload_recording", actor_id)
        session = await self._completed_session(session_id, "upload a recording for")

        extension = PurePosixPath(original_filename or "").suffix.lower()
        if not extension:
            extension = mimetypes.guess_extension(content_type) or DEFAULT_VIDEO_EXTENSION
        filename = self.storage.generate_filename(session.id, extension)
        path = self.storage.path_for(filename)

        size = await self.storage.save_stream(filename, chunks, self.max_upload_bytes)
        try:
            if duration is None:
                duration = await self.repair.probe_duration(path)
            if not duration or duration <= 0:
                raise ValidationError(
                    "duration", "could not be read from the file and was not provided"
                )

            needs_repair = await self.repair.needs_repair(path)
            recording = RecordingEntity(
                session_id=session.id,
                course_id=session.course_id,
                provider_recording_id=f"upload_{uuid.uuid4().hex}",
                title=title or session.title,
                description=description,
                duration=duration,
                recorded_at=session.started_at or session.scheduled_at,
                storage_url=self.storage.url_for(filename),
                source=RecordingSource.UPLOAD,
                local_filename=filename,
                file_size=size,
                repair_status=RepairStatus.PENDING if needs_repair else RepairStatus.NOT_NEEDED,
            )
            await self.recording_repository.create_if_absent(recording)
        except Exception:
            await self.storage.delete(filename)
            raise

        await self.session_service.mark_recordings_present(session, True)
        logger.info(
            "recording_uploaded",
            session_id=session.id,
            recording_id=recording.id,
            file_size=size,
            needs_repair=needs_repair,
        )
        return recording, needs_repair

    async def repair_recording(self, recording_id: str) -> Tuple[RecordingEntity, RepairReport]:
        """Run the container repair chain on a locally stored recording.

        The outcome is stored on the recording. A failed repair keeps the
        original file reachable through the fallback URL.

        Raises:
            RecordingNotFoundError: If recording doesn't exist
            RecordingFileMissingError: If the recording has no local file
            RepairFailedError: If every strategy was exhausted
        """
        recording = await self.get_recording(recording_id)
        if not recording.local_filename or not self.storage.exists(recording.local_filename):
            raise RecordingFileMissingError(recording_id)

        path = self.storage.path_for(recording.local_filename)
        report = await self.repair.repair(path)

        if not report.needed:
            recording.record_repair(RepairStatus.NOT_NEEDED, report.note)
        elif report.fixed:
            recording.record_repair(RepairStatus.FIXED, report.note)
            recording.file_size = path.stat().st_size
        elif report.succeeded:
            recording.record_repair(RepairStatus.NOT_NEEDED, report.note)
        else:
            recording.record_repair(
                RepairStatus.FAILED,
                report.note,
                fallback_url=recording.play_url or recording.storage_url,
            )
        await self.recording_repository.update(recording)

        logger.info(
            "recording_repair_finished",
            recording_id=recording.id,
            needed=report.needed,
            fixed_by=report.fixed_by,
            status=recording.repair_status.value,
        )
        if recording.repair_status == RepairStatus.FAILED:
            raise RepairFailedError(recording.id, report.note, recording.fallback_url)
        return recording, report

    async def repair_pending(self, recording_ids: Iterable[str]) -> Dict[str, RepairStatus]:
        """Repair several recordings, keeping going when one fails.

        Returns:
            Dict[str, RepairStatus]: Final repair status per recording attempted
        """
        outcomes: Dict[str, RepairStatus] = {}
        for recording_id in recording_ids:
            try:
                recording, _ = await self.repair_recording(recording_id)
                outcomes[recording_id] = recording.repair_status
            except RepairFailedError:
                outcomes[recording_id] = RepairStatus.FAILED
            except ArtifactMissingError as e:
                logger.warning("recording_repair_skipped", recording_id=recording_id, error=e.message)
        return outcomes

    async def collect_after_end(
        self,
        session_id: str,
        max_attempts: int = 6,
        base_delay: float = 30.0,
        download: bool = False,
    ) -> Optional[SessionSyncResult]:
        """Follow-up run after a session ends: poll for recordings, then repair downloads."""
        try:
            result = await self.sync_with_retry(
                session_id, max_attempts=max_attempts, base_delay=base_delay, download=download
            )
        except DomainError as e:
            logger.warning(
                "post_end_recording_sync_aborted",
                session_id=session_id,
                error_code=e.error_code,
                error=e.message,
            )
            return None
        if result and result.pending_repair:
            await self.repair_pending(result.pending_repair)
        return result

    async def get_download(self, recording_id: str) -> DownloadTarget:
        """Resolve where to serve a recording from and count the view.

        Local files are served directly; otherwise the caller is redirected
        to the provider download URL.

        Raises:
            RecordingNotFoundError: If recording doesn't exist
            RecordingFileMissingError: If neither a file nor a remote URL exists
        """
        recording = await self.get_recording(recording_id)
        if recording.local_filename and self.storage.exists(recording.local_filename):
            path = self.storage.path_for(recording.local_filename)
            media_type = mimetypes.guess_type(path.name)[0] or "video/mp4"
            await self.recording_repository.increment_view_count(recording_id)
            return DownloadTarget(recording=recording, path=path, media_type=media_type)

        remote = recording.download_url or recording.play_url
        if not remote:
            raise RecordingFileMissingError(recording_id)
        await self.recording_repository.increment_view_count(recording_id)
        return DownloadTarget(recording=recording, redirect_url=remote)
