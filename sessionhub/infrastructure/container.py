"""Dependency injection container for SessionHub.

This module wires repositories, the meeting provider, recording storage,
the repair pipeline and the domain services. Services hold the in-process
session locks, so the container keeps one instance of each.
"""

from datetime import timedelta
from typing import Optional

from google.cloud.firestore import Client

from sessionhub.core.config import (
    Settings,
    settings,
)
from sessionhub.core.logging import logger
from sessionhub.domain.providers import (
    ContainerRepairInterface,
    MeetingProviderInterface,
    RecordingStorageInterface,
)
from sessionhub.domain.services import (
    AttendanceDomainService,
    RecordingDomainService,
    SessionDomainService,
)
from sessionhub.infrastructure.firestore import (
    FirestoreAttendanceRepository,
    FirestoreRecordingRepository,
    FirestoreSessionRepository,
)
from sessionhub.infrastructure.meeting_provider import (
    InMemoryMeetingProvider,
    ZoomMeetingProvider,
)
from sessionhub.infrastructure.repair import (
    ContainerRepairPipeline,
    default_strategies,
)
from sessionhub.infrastructure.storage import LocalRecordingStorage


def build_meeting_provider(config: Settings) -> MeetingProviderInterface:
    """Zoom when credentials are configured, the in-memory provider otherwise."""
    if not config.ZOOM_CONFIGURED:
        logger.warning("zoom_not_configured", provider="in_memory")
        return InMemoryMeetingProvider()
    return ZoomMeetingProvider(
        account_id=config.ZOOM_ACCOUNT_ID,
        client_id=config.ZOOM_CLIENT_ID,
        client_secret=config.ZOOM_CLIENT_SECRET,
        base_url=config.ZOOM_API_BASE_URL,
        token_url=config.ZOOM_TOKEN_URL,
        timeout=config.PROVIDER_TIMEOUT_SECONDS,
        max_retries=config.PROVIDER_MAX_RETRIES,
        retry_base_delay=config.PROVIDER_RETRY_BASE_DELAY,
    )


class Container:
    """Dependency injection container for managing application dependencies."""

    def __init__(
        self,
        config: Settings = settings,
        firestore_client: Optional[Client] = None,
        meeting_provider: Optional[MeetingProviderInterface] = None,
        storage: Optional[RecordingStorageInterface] = None,
        repair: Optional[ContainerRepairInterface] = None,
    ):
        """Initialize the container.

        Args:
            config: Application settings
            firestore_client: Firestore client, resolved from Firebase when omitted
            meeting_provider: Meeting provider, chosen from settings when omitted
            storage: Recording storage, a local directory when omitted
            repair: Container repair pipeline, the default chain when omitted
        """
        self.config = config
        self.session_repository = FirestoreSessionRepository(firestore_client)
        self.recording_repository = FirestoreRecordingRepository(firestore_client)
        self.attendance_repository = FirestoreAttendanceRepository(firestore_client)

        self.meeting_provider = meeting_provider or build_meeting_provider(config)
        self.storage = storage or LocalRecordingStorage(
            config.RECORDINGS_DIR, config.RECORDINGS_PUBLIC_PATH
        )
        self.repair = repair or ContainerRepairPipeline(
            default_strategies(
                config.METADATA_TOOL_BINARY,
                config.REMUX_TOOL_BINARY,
                config.REPAIR_TOOL_TIMEOUT_SECONDS,
            )
        )

        self.attendance_service = AttendanceDomainService(
            self.attendance_repository, self.session_repository
        )
        self.session_service = SessionDomainService(
            self.session_repository,
            self.recording_repository,
            self.attendance_service,
            self.meeting_provider,
            self.storage,
            start_grace=timedelta(minutes=config.SESSION_START_GRACE_MINUTES),
        )
        self.recording_service = RecordingDomainService(
            self.recording_repository,
            self.session_service,
            self.meeting_provider,
            self.storage,
            self.repair,
            max_upload_bytes=config.MAX_UPLOAD_SIZE_MB * 1024 * 1024,
        )

    async def aclose(self) -> None:
        """Release network clients held by the provider."""
        if isinstance(self.meeting_provider, ZoomMeetingProvider):
            await self.meeting_provider.aclose()


# Global container instance
_container: Optional[Container] = None


def get_container() -> Container:
    """Get the global container instance."""
    global _container
    if _container is None:
        _container = Container()
        logger.info("container_initialized", provider=type(_container.meeting_provider).__name__)
    return _container


def set_container(container: Optional[Container]) -> None:
    """Replace the global container, e.g. with one wired to test doubles."""
    global _container
    _container = container


def get_session_service() -> SessionDomainService:
    """Get session domain service for FastAPI dependency injection."""
    return get_container().session_service


def get_recording_service() -> RecordingDomainService:
    """Get recording domain service for FastAPI dependency injection."""
    return get_container().recording_service


def get_attendance_service() -> AttendanceDomainService:
    """Get attendance domain service for FastAPI dependency injection."""
    return get_container().attendance_service


async def cleanup_container() -> None:
    """Clean up the dependency injection container."""
    global _container
    if _container:
        await _container.aclose()
        _container = None
        logger.info("container_cleaned_up")
