"""Configuration for pytest tests.

This file contains fixtures and setup configuration for all tests.
"""

import os
import struct
import tempfile
from datetime import (
    UTC,
    datetime,
    timedelta,
)
from typing import (
    Callable,
    Dict,
    Generator,
)

import pytest
from fastapi.testclient import TestClient

# Set test environment before the application reads its settings
os.environ["APP_ENV"] = "test"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-sessionhub"
os.environ["ZOOM_ACCOUNT_ID"] = ""
os.environ["ZOOM_WEBHOOK_SECRET_TOKEN"] = ""
os.environ["RECORDINGS_DIR"] = tempfile.mkdtemp(prefix="sessionhub-recordings-")

from sessionhub.infrastructure.container import (  # noqa: E402
    Container,
    set_container,
)
from sessionhub.infrastructure.meeting_provider import InMemoryMeetingProvider  # noqa: E402
from sessionhub.infrastructure.repair import (  # noqa: E402
    ContainerRepairPipeline,
    StructuralInspectionStrategy,
)
from sessionhub.infrastructure.storage import LocalRecordingStorage  # noqa: E402
from sessionhub.main import app  # noqa: E402
from sessionhub.shared.utils.auth import create_access_token  # noqa: E402
from tests.mocks import MockFirestore  # noqa: E402

SESSION_START = datetime(2025, 3, 3, 10, 0, tzinfo=UTC)
INSTRUCTOR_ID = "instructor-1"
OTHER_INSTRUCTOR_ID = "instructor-2"
STUDENT_ID = "student-1"
ADMIN_ID = "admin-1"


class FrozenClock:
    """Clock the services read instead of the wall clock."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now

    def advance(self, **delta: float) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


async def no_sleep(seconds: float) -> None:
    """Stand-in for ``asyncio.sleep`` in retry loops."""
    return None


def _box(box_type: bytes, payload: bytes) -> bytes:
    return struct.pack(">I4s", 8 + len(payload), box_type) + payload


def build_mp4(fast_start: bool = True, media_size: int = 2048, duration_seconds: int = 60) -> bytes:
    """Build a minimal ISO media file with an ``mvhd`` duration."""
    ftyp = _box(b"ftyp", b"isom\x00\x00\x02\x00isommp41")
    mvhd_payload = (
        b"\x00\x00\x00\x00"
        + b"\x00" * 8
        + struct.pack(">II", 1000, duration_seconds * 1000)
        + b"\x00" * 80
    )
    moov = _box(b"moov", _box(b"mvhd", mvhd_payload))
    mdat = _box(b"mdat", b"\x00" * media_size)
    if fast_start:
        return ftyp + moov + mdat
    return ftyp + mdat + moov


@pytest.fixture
def mp4_factory() -> Callable[..., bytes]:
    """Factory for in-memory MP4 files."""
    return build_mp4


@pytest.fixture
def clock() -> FrozenClock:
    """Clock frozen one day before ``SESSION_START``."""
    return FrozenClock(SESSION_START - timedelta(days=1))


@pytest.fixture
def firestore() -> MockFirestore:
    return MockFirestore()


@pytest.fixture
def provider() -> InMemoryMeetingProvider:
    return InMemoryMeetingProvider()


@pytest.fixture
def storage(tmp_path) -> LocalRecordingStorage:
    return LocalRecordingStorage(str(tmp_path / "recordings"), "/recordings")


@pytest.fixture
def repair() -> ContainerRepairPipeline:
    """Pipeline that never shells out."""
    return ContainerRepairPipeline([StructuralInspectionStrategy()])


@pytest.fixture
def container(firestore, provider, storage, repair, clock) -> Container:
    """Container wired to in-memory doubles and the frozen clock."""
    container = Container(
        firestore_client=firestore,
        meeting_provider=provider,
        storage=storage,
        repair=repair,
    )
    container.session_service.clock = clock
    container.attendance_service.clock = clock
    container.recording_service.clock = clock
    container.recording_service.sleep = no_sleep
    return container


@pytest.fixture
def session_repository(container):
    return container.session_repository


@pytest.fixture
def recording_repository(container):
    return container.recording_repository


@pytest.fixture
def attendance_repository(container):
    return container.attendance_repository


@pytest.fixture
def session_service(container):
    return container.session_service


@pytest.fixture
def recording_service(container):
    return container.recording_service


@pytest.fixture
def attendance_service(container):
    return container.attendance_service


@pytest.fixture
def client(container) -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI app."""
    set_container(container)
    with TestClient(app) as test_client:
        yield test_client
    set_container(None)


def auth_headers(user_id: str, role: str) -> Dict[str, str]:
    """Bearer header for a freshly issued access token."""
    token = create_access_token(user_id, role)
    return {"Authorization": f"Bearer {token.access_token}"}


@pytest.fixture
def instructor_headers() -> Dict[str, str]:
    return auth_headers(INSTRUCTOR_ID, "instructor")


@pytest.fixture
def other_instructor_headers() -> Dict[str, str]:
    return auth_headers(OTHER_INSTRUCTOR_ID, "instructor")


@pytest.fixture
def student_headers() -> Dict[str, str]:
    return auth_headers(STUDENT_ID, "student")


@pytest.fixture
def admin_headers() -> Dict[str, str]:
    return auth_headers(ADMIN_ID, "admin")


@pytest.fixture
def schedule_session(session_service):
    """Create a scheduled 60 minute session hosted by ``INSTRUCTOR_ID``."""

    async def _schedule(**overrides):
        values = dict(
            actor_id=INSTRUCTOR_ID,
            actor_role="instructor",
            course_id="course-1",
            title="Week 1: Introductions",
            scheduled_at=SESSION_START,
            duration=60,
        )
        values.update(overrides)
        return await session_service.create_session(**values)

    return _schedule
