"""Tests for recording ingestion, repair and download."""

from datetime import timedelta
from typing import (
    AsyncIterator,
    List,
)

import pytest
import pytest_asyncio

from sessionhub.domain.entities import (
    RepairStatus,
    SessionStatus,
)
from sessionhub.domain.exceptions import (
    InsufficientPermissionsError,
    InvalidTransitionError,
    ProviderUnavailableError,
    RecordingFileMissingError,
    RepairFailedError,
    UnsupportedMediaTypeError,
    UploadTooLargeError,
    ValidationError,
)
from sessionhub.domain.services.recording_service import recording_id_for
from tests.conftest import (
    INSTRUCTOR_ID,
    OTHER_INSTRUCTOR_ID,
    SESSION_START,
)


async def chunked(content: bytes, size: int = 512) -> AsyncIterator[bytes]:
    for start in range(0, len(content), size):
        yield content[start:start + size]


@pytest_asyncio.fixture
async def completed_session(schedule_session, session_service, clock):
    session = await schedule_session()
    clock.set(SESSION_START + timedelta(minutes=2))
    await session_service.start_session(session.id, INSTRUCTOR_ID, "instructor")
    clock.set(SESSION_START + timedelta(minutes=62))
    return await session_service.end_session(session.id, INSTRUCTOR_ID, "instructor")


class TestPullSync:
    """Test suite for pulling recordings from the provider."""

    @pytest.mark.asyncio
    async def test_pulling_twice_stores_one_record(
        self, completed_session, recording_service, recording_repository, provider
    ):
        provider.add_recording(completed_session.meeting_id, recording_id="rec-1", started_at=SESSION_START)

        first = await recording_service.sync_session_recordings(completed_session.id)
        second = await recording_service.sync_session_recordings(completed_session.id)

        assert len(first.created) == 1
        assert first.created[0].id == recording_id_for("rec-1")
        assert second.created == []
        assert second.skipped == 1
        stored = await recording_repository.list_recordings(session_id=completed_session.id)
        assert len(stored) == 1
        assert stored[0].duration == 3600

    @pytest.mark.asyncio
    async def test_marks_session_as_having_recordings(
        self, completed_session, recording_service, session_service, provider
    ):
        provider.add_recording(completed_session.meeting_id, started_at=SESSION_START)
        await recording_service.sync_session_recordings(completed_session.id)

        session = await session_service.get_session(completed_session.id)
        assert session.has_recording
        assert session.status == SessionStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_only_video_files_are_ingested(self, completed_session, recording_service, provider):
        provider.add_recording(completed_session.meeting_id, file_type="M4A", started_at=SESSION_START)
        provider.add_recording(completed_session.meeting_id, file_type="MP4", started_at=SESSION_START)

        result = await recording_service.sync_session_recordings(completed_session.id)
        assert result.found == 1
        assert len(result.created) == 1

    @pytest.mark.asyncio
    async def test_zero_length_file_is_skipped(self, completed_session, recording_service, provider):
        provider.add_recording(completed_session.meeting_id, duration_seconds=0, started_at=SESSION_START)
        result = await recording_service.sync_session_recordings(completed_session.id)
        assert result.created == []
        assert result.skipped == 1

    @pytest.mark.asyncio
    async def test_scheduled_session_is_rejected(self, schedule_session, recording_service):
        session = await schedule_session()
        with pytest.raises(InvalidTransitionError):
            await recording_service.sync_session_recordings(session.id)

    @pytest.mark.asyncio
    async def test_overdue_live_session_is_reconciled_first(
        self, schedule_session, session_service, recording_service, provider, clock
    ):
        session = await schedule_session()
        clock.set(SESSION_START)
        await session_service.start_session(session.id, INSTRUCTOR_ID, "instructor")
        provider.add_recording(session.meeting_id, started_at=SESSION_START)
        clock.set(SESSION_START + timedelta(hours=4))

        bulk = await recording_service.sync_all_recordings()

        assert bulk.sessions_processed == 1
        assert bulk.total_recordings == 1
        stored = await session_service.get_session(session.id)
        assert stored.status == SessionStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_bulk_sync_keeps_going_after_failure(
        self, schedule_session, session_service, recording_service, provider, clock
    ):
        sessions = []
        for _ in range(2):
            session = await schedule_session()
            clock.set(SESSION_START)
            await session_service.start_session(session.id, INSTRUCTOR_ID, "instructor")
            await session_service.end_session(session.id, INSTRUCTOR_ID, "instructor")
            sessions.append(session)
        provider.add_recording(sessions[1].meeting_id, started_at=SESSION_START)

        original = provider.list_recordings

        async def flaky(meeting_id):
            if meeting_id == sessions[0].meeting_id:
                raise ProviderUnavailableError("list_recordings", "rate limited", status_code=429)
            return await original(meeting_id)

        provider.list_recordings = flaky
        bulk = await recording_service.sync_all_recordings()

        assert bulk.sessions_processed == 2
        assert bulk.successful_sessions == 1
        assert bulk.total_recordings == 1


class TestDownloadAndRepair:
    """Test suite for fetching provider files into local storage."""

    @pytest.mark.asyncio
    async def test_fast_start_download_needs_no_repair(
        self, completed_session, recording_service, provider, storage, mp4_factory
    ):
        provider.add_recording(
            completed_session.meeting_id, started_at=SESSION_START, content=mp4_factory(fast_start=True)
        )

        result = await recording_service.sync_session_recordings(completed_session.id, download=True)

        recording = result.created[0]
        assert result.downloaded == 1
        assert result.pending_repair == []
        assert recording.repair_status == RepairStatus.NOT_NEEDED
        assert storage.exists(recording.local_filename)
        assert recording.storage_url == storage.url_for(recording.local_filename)

    @pytest.mark.asyncio
    async def test_failed_download_still_flags_stored_recordings(
        self, completed_session, recording_service, recording_repository, session_service, provider, mp4_factory
    ):
        provider.add_recording(
            completed_session.meeting_id, recording_id="rec-1", started_at=SESSION_START,
            content=mp4_factory(fast_start=True),
        )
        provider.add_recording(completed_session.meeting_id, recording_id="rec-2", started_at=SESSION_START)

        with pytest.raises(ProviderUnavailableError):
            await recording_service.sync_session_recordings(completed_session.id, download=True)

        stored = await recording_repository.list_recordings(session_id=completed_session.id)
        assert [r.provider_recording_id for r in stored] == ["rec-1"]
        assert (await session_service.get_session(completed_session.id)).has_recording

    @pytest.mark.asyncio
    async def test_download_losing_dedupe_race_is_discarded(
        self, completed_session, recording_service, recording_repository, provider, storage, mp4_factory, monkeypatch
    ):
        provider.add_recording(
            completed_session.meeting_id, started_at=SESSION_START, content=mp4_factory(fast_start=False)
        )

        async def already_stored(recording):
            return False

        monkeypatch.setattr(recording_repository, "create_if_absent", already_stored)

        result = await recording_service.sync_session_recordings(completed_session.id, download=True)

        assert result.created == []
        assert result.skipped == 1
        assert result.downloaded == 0
        assert result.pending_repair == []
        assert list(storage.root.iterdir()) == []

    @pytest.mark.asyncio
    async def test_slow_start_download_is_queued_and_falls_back(
        self, completed_session, recording_service, provider, mp4_factory
    ):
        provider.add_recording(
            completed_session.meeting_id, started_at=SESSION_START, content=mp4_factory(fast_start=False)
        )

        result = await recording_service.sync_session_recordings(completed_session.id, download=True)
        assert result.pending_repair == [result.created[0].id]

        outcomes = await recording_service.repair_pending(result.pending_repair)
        assert outcomes == {result.created[0].id: RepairStatus.FAILED}

        recording = await recording_service.get_recording(result.created[0].id)
        assert recording.repair_status == RepairStatus.FAILED
        assert recording.fallback_url == recording.play_url
        assert "remux" in recording.repair_note

    @pytest.mark.asyncio
    async def test_repair_recording_raises_with_fallback(
        self, completed_session, recording_service, provider, mp4_factory
    ):
        provider.add_recording(
            completed_session.meeting_id, started_at=SESSION_START, content=mp4_factory(fast_start=False)
        )
        result = await recording_service.sync_session_recordings(completed_session.id, download=True)

        with pytest.raises(RepairFailedError) as exc_info:
            await recording_service.repair_recording(result.created[0].id)
        assert exc_info.value.fallback_url

    @pytest.mark.asyncio
    async def test_repair_requires_local_file(self, completed_session, recording_service, provider):
        provider.add_recording(completed_session.meeting_id, started_at=SESSION_START)
        result = await recording_service.sync_session_recordings(completed_session.id)
        with pytest.raises(RecordingFileMissingError):
            await recording_service.repair_recording(result.created[0].id)

    @pytest.mark.asyncio
    async def test_existing_record_is_downloaded_later(
        self, completed_session, recording_service, provider, mp4_factory
    ):
        provider.add_recording(
            completed_session.meeting_id, started_at=SESSION_START, content=mp4_factory()
        )
        await recording_service.sync_session_recordings(completed_session.id)
        result = await recording_service.sync_session_recordings(completed_session.id, download=True)

        assert result.created == []
        assert result.downloaded == 1
        recordings, total = await recording_service.list_recordings(session_id=completed_session.id)
        assert total == 1
        assert recordings[0].is_local


class TestSyncWithRetry:
    """Test suite for post-session polling."""

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, completed_session, recording_service):
        delays: List[float] = []

        async def record_sleep(seconds):
            delays.append(seconds)

        recording_service.sleep = record_sleep
        result = await recording_service.sync_with_retry(
            completed_session.id, max_attempts=3, base_delay=10
        )

        assert result is None
        assert delays == [10, 20]

    @pytest.mark.asyncio
    async def test_returns_once_recordings_appear(self, completed_session, recording_service, provider):
        async def recording_arrives(seconds):
            provider.add_recording(completed_session.meeting_id, started_at=SESSION_START)

        recording_service.sleep = recording_arrives
        result = await recording_service.sync_with_retry(completed_session.id, max_attempts=4)

        assert result.found == 1
        assert provider.calls.count("list_recordings") == 2

    @pytest.mark.asyncio
    async def test_provider_errors_are_retried(self, completed_session, recording_service, provider):
        original = provider.list_recordings
        failures = iter([True, False])

        async def flaky(meeting_id):
            if next(failures, False):
                raise ProviderUnavailableError("list_recordings", "timeout")
            return await original(meeting_id)

        provider.add_recording(completed_session.meeting_id, started_at=SESSION_START)
        provider.list_recordings = flaky

        result = await recording_service.sync_with_retry(completed_session.id, max_attempts=3)
        assert len(result.created) == 1

    @pytest.mark.asyncio
    async def test_collect_after_end_repairs_downloads(
        self, completed_session, recording_service, provider, mp4_factory
    ):
        provider.add_recording(
            completed_session.meeting_id, started_at=SESSION_START, content=mp4_factory(fast_start=False)
        )

        result = await recording_service.collect_after_end(
            completed_session.id, max_attempts=1, download=True
        )

        recording = await recording_service.get_recording(result.created[0].id)
        assert recording.repair_status == RepairStatus.FAILED

    @pytest.mark.asyncio
    async def test_collect_after_end_swallows_domain_errors(self, schedule_session, recording_service):
        session = await schedule_session()
        assert await recording_service.collect_after_end(session.id, max_attempts=1) is None


class TestUpload:
    """Test suite for pushed recordings."""

    async def upload(self, recording_service, session_id, content, **overrides):
        values = dict(
            session_id=session_id,
            actor_id=INSTRUCTOR_ID,
            actor_role="instructor",
            original_filename="lecture.mp4",
            content_type="video/mp4",
            chunks=chunked(content),
        )
        values.update(overrides)
        return await recording_service.upload_recording(**values)

    @pytest.mark.asyncio
    async def test_upload_fast_start(self, completed_session, recording_service, session_service, storage, mp4_factory):
        content = mp4_factory(fast_start=True, duration_seconds=300)

        recording, needs_repair = await self.upload(recording_service, completed_session.id, content)

        assert needs_repair is False
        assert recording.duration == 300
        assert recording.repair_status == RepairStatus.NOT_NEEDED
        assert recording.provider_recording_id.startswith("upload_")
        assert recording.local_filename.endswith(".mp4")
        assert storage.path_for(recording.local_filename).read_bytes() == content
        assert (await session_service.get_session(completed_session.id)).has_recording

    @pytest.mark.asyncio
    async def test_upload_is_stored_verbatim_and_flagged(self, completed_session, recording_service, storage, mp4_factory):
        content = mp4_factory(fast_start=False)

        recording, needs_repair = await self.upload(recording_service, completed_session.id, content)

        assert needs_repair is True
        assert recording.repair_status == RepairStatus.PENDING
        assert storage.path_for(recording.local_filename).read_bytes() == content

    @pytest.mark.asyncio
    async def test_duration_parameter_wins(self, completed_session, recording_service, mp4_factory):
        recording, _ = await self.upload(
            recording_service, completed_session.id, mp4_factory(duration_seconds=60), duration=75
        )
        assert recording.duration == 75

    @pytest.mark.asyncio
    async def test_unknown_duration_is_rejected(self, completed_session, recording_service, storage):
        with pytest.raises(ValidationError):
            await self.upload(recording_service, completed_session.id, b"\x00" * 64)
        assert list(storage.root.iterdir()) == []

    @pytest.mark.asyncio
    async def test_non_video_is_rejected(self, completed_session, recording_service, mp4_factory):
        with pytest.raises(UnsupportedMediaTypeError):
            await self.upload(
                recording_service, completed_session.id, mp4_factory(), content_type="text/plain"
            )

    @pytest.mark.asyncio
    async def test_oversized_upload_is_rejected(self, completed_session, recording_service, storage, mp4_factory):
        recording_service.max_upload_bytes = 1024
        with pytest.raises(UploadTooLargeError):
            await self.upload(recording_service, completed_session.id, mp4_factory(media_size=4096))
        assert list(storage.root.iterdir()) == []

    @pytest.mark.asyncio
    async def test_session_must_be_completed(self, schedule_session, recording_service, mp4_factory):
        session = await schedule_session()
        with pytest.raises(InvalidTransitionError):
            await self.upload(recording_service, session.id, mp4_factory())

    @pytest.mark.asyncio
    async def test_only_host_uploads(self, completed_session, recording_service, mp4_factory):
        with pytest.raises(InsufficientPermissionsError):
            await self.upload(
                recording_service, completed_session.id, mp4_factory(), actor_id=OTHER_INSTRUCTOR_ID
            )


class TestDownloadAndManage:
    """Test suite for serving, editing and deleting recordings."""

    @pytest.mark.asyncio
    async def test_local_download_counts_views(
        self, completed_session, recording_service, provider, mp4_factory
    ):
        provider.add_recording(
            completed_session.meeting_id, started_at=SESSION_START, content=mp4_factory()
        )
        result = await recording_service.sync_session_recordings(completed_session.id, download=True)
        recording_id = result.created[0].id

        target = await recording_service.get_download(recording_id)
        await recording_service.get_download(recording_id)

        assert target.path is not None
        assert target.media_type == "video/mp4"
        assert (await recording_service.get_recording(recording_id)).view_count == 2

    @pytest.mark.asyncio
    async def test_remote_download_redirects(self, completed_session, recording_service, provider):
        item = provider.add_recording(completed_session.meeting_id, started_at=SESSION_START)
        result = await recording_service.sync_session_recordings(completed_session.id)

        target = await recording_service.get_download(result.created[0].id)
        assert target.path is None
        assert target.redirect_url == item.download_url

    @pytest.mark.asyncio
    async def test_update_metadata(self, completed_session, recording_service, provider):
        provider.add_recording(completed_session.meeting_id, started_at=SESSION_START)
        result = await recording_service.sync_session_recordings(completed_session.id)

        updated = await recording_service.update_recording(
            result.created[0].id, INSTRUCTOR_ID, "instructor", {"title": "Week 1", "is_public": False}
        )
        assert updated.title == "Week 1"
        assert updated.is_public is False

    @pytest.mark.asyncio
    async def test_deleting_last_recording_clears_flag(
        self, completed_session, recording_service, session_service, provider, storage, mp4_factory
    ):
        provider.add_recording(
            completed_session.meeting_id, started_at=SESSION_START, content=mp4_factory()
        )
        result = await recording_service.sync_session_recordings(completed_session.id, download=True)
        recording = result.created[0]

        await recording_service.delete_recording(recording.id, INSTRUCTOR_ID, "instructor")

        assert not storage.exists(recording.local_filename)
        assert not (await session_service.get_session(completed_session.id)).has_recording
