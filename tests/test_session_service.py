"""Tests for the session lifecycle service."""

import asyncio
from datetime import timedelta

import pytest

from sessionhub.domain.entities import (
    ComputedStatus,
    RecordingEntity,
    RecordingSource,
    SessionStatus,
)
from sessionhub.domain.exceptions import (
    ArtifactMissingError,
    BusinessRuleViolationError,
    ConcurrentModificationError,
    InsufficientPermissionsError,
    InvalidTransitionError,
    ProviderUnavailableError,
    SessionNotFoundError,
    ValidationError,
)
from tests.conftest import (
    ADMIN_ID,
    INSTRUCTOR_ID,
    OTHER_INSTRUCTOR_ID,
    SESSION_START,
    STUDENT_ID,
)


async def start_live(session_service, clock, session):
    clock.set(SESSION_START + timedelta(minutes=5))
    return await session_service.start_session(session.id, INSTRUCTOR_ID, "instructor")


class TestCreateSession:
    """Test suite for scheduling sessions."""

    @pytest.mark.asyncio
    async def test_creates_scheduled_session_with_meeting(self, schedule_session, provider):
        session = await schedule_session()

        assert session.status == SessionStatus.SCHEDULED
        assert session.instructor_id == INSTRUCTOR_ID
        assert session.meeting_id in provider.meetings
        assert session.join_url == f"https://zoom.us/j/{session.meeting_id}"
        assert provider.calls == ["create_meeting"]

    @pytest.mark.asyncio
    async def test_students_cannot_schedule(self, schedule_session, provider):
        with pytest.raises(InsufficientPermissionsError):
            await schedule_session(actor_id=STUDENT_ID, actor_role="student")
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_rejects_past_window(self, schedule_session, clock):
        clock.set(SESSION_START + timedelta(hours=2))
        with pytest.raises(ValidationError) as exc_info:
            await schedule_session()
        assert exc_info.value.field == "scheduled_at"

    @pytest.mark.asyncio
    async def test_rejects_bad_duration(self, schedule_session):
        with pytest.raises(ValidationError):
            await schedule_session(duration=5)

    @pytest.mark.asyncio
    async def test_provider_failure_persists_nothing(self, schedule_session, provider, firestore):
        async def unavailable(**kwargs):
            raise ProviderUnavailableError("create_meeting", "service down", status_code=503)

        provider.create_meeting = unavailable
        with pytest.raises(ProviderUnavailableError):
            await schedule_session()
        assert firestore.documents("live_sessions") == {}


class TestStartAndEnd:
    """Test suite for the start and end transitions."""

    @pytest.mark.asyncio
    async def test_start_then_repeat_then_end(self, schedule_session, session_service, provider, clock):
        session = await schedule_session()

        live = await start_live(session_service, clock, session)
        assert live.status == SessionStatus.LIVE
        assert live.join_url
        creates = provider.calls.count("create_meeting")

        again = await session_service.start_session(session.id, INSTRUCTOR_ID, "instructor")
        assert again.status == SessionStatus.LIVE
        assert again.join_url == live.join_url
        assert provider.calls.count("create_meeting") == creates

        clock.set(SESSION_START + timedelta(minutes=65))
        ended = await session_service.end_session(session.id, INSTRUCTOR_ID, "instructor")
        assert ended.status == SessionStatus.COMPLETED
        assert ended.ended_at == SESSION_START + timedelta(minutes=65)
        assert session.meeting_id in provider.ended

    @pytest.mark.asyncio
    async def test_concurrent_starts_yield_one_live_session(
        self, schedule_session, session_service, provider, clock
    ):
        session = await schedule_session()
        clock.set(SESSION_START)

        results = await asyncio.gather(
            *[
                session_service.start_session(session.id, INSTRUCTOR_ID, "instructor")
                for _ in range(5)
            ]
        )

        assert {result.status for result in results} == {SessionStatus.LIVE}
        assert len({result.join_url for result in results}) == 1
        assert provider.calls.count("get_meeting") == 1
        stored = await session_service.get_session(session.id)
        assert stored.started_at == SESSION_START

    @pytest.mark.asyncio
    async def test_start_too_early_is_rejected(self, schedule_session, session_service, clock):
        session = await schedule_session()
        clock.set(SESSION_START - timedelta(minutes=30))
        with pytest.raises(InvalidTransitionError):
            await session_service.start_session(session.id, INSTRUCTOR_ID, "instructor")

    @pytest.mark.asyncio
    async def test_start_within_grace(self, schedule_session, session_service, clock):
        session = await schedule_session()
        clock.set(SESSION_START - timedelta(minutes=10))
        live = await session_service.start_session(session.id, INSTRUCTOR_ID, "instructor")
        assert live.computed_status(clock()) == ComputedStatus.LIVE

    @pytest.mark.asyncio
    async def test_provider_failure_leaves_status_unchanged(
        self, schedule_session, session_service, provider, clock
    ):
        session = await schedule_session()

        async def unavailable(meeting_id):
            raise ProviderUnavailableError("get_meeting", "timeout", session_id=session.id)

        provider.get_meeting = unavailable
        clock.set(SESSION_START)
        with pytest.raises(ProviderUnavailableError):
            await session_service.start_session(session.id, INSTRUCTOR_ID, "instructor")

        stored = await session_service.get_session(session.id)
        assert stored.status == SessionStatus.SCHEDULED
        assert stored.started_at is None

    @pytest.mark.asyncio
    async def test_other_instructor_cannot_start(self, schedule_session, session_service, clock):
        session = await schedule_session()
        clock.set(SESSION_START)
        with pytest.raises(InsufficientPermissionsError):
            await session_service.start_session(session.id, OTHER_INSTRUCTOR_ID, "instructor")

    @pytest.mark.asyncio
    async def test_admin_can_start(self, schedule_session, session_service, clock):
        session = await schedule_session()
        clock.set(SESSION_START)
        live = await session_service.start_session(session.id, ADMIN_ID, "admin")
        assert live.status == SessionStatus.LIVE

    @pytest.mark.asyncio
    async def test_end_is_idempotent_on_completed(self, schedule_session, session_service, provider, clock):
        session = await schedule_session()
        await start_live(session_service, clock, session)
        await session_service.end_session(session.id, INSTRUCTOR_ID, "instructor")
        ends = provider.calls.count("end_meeting")

        again = await session_service.end_session(session.id, INSTRUCTOR_ID, "instructor")
        assert again.status == SessionStatus.COMPLETED
        assert provider.calls.count("end_meeting") == ends

    @pytest.mark.asyncio
    async def test_end_requires_live(self, schedule_session, session_service):
        session = await schedule_session()
        with pytest.raises(InvalidTransitionError):
            await session_service.end_session(session.id, INSTRUCTOR_ID, "instructor")

    @pytest.mark.asyncio
    async def test_unknown_session(self, session_service):
        with pytest.raises(SessionNotFoundError):
            await session_service.start_session("missing", INSTRUCTOR_ID, "instructor")

    @pytest.mark.asyncio
    async def test_stale_write_is_rejected(self, schedule_session, session_service, session_repository):
        session = await schedule_session()
        stale = await session_service.get_session(session.id)
        await session_service.cancel_session(session.id, INSTRUCTOR_ID, "instructor")

        stale.mark_live(SESSION_START)
        with pytest.raises(ConcurrentModificationError):
            await session_repository.save_if_status(stale, SessionStatus.SCHEDULED, "start")


class TestCancel:
    """Test suite for cancellation."""

    @pytest.mark.asyncio
    async def test_cancel_scheduled_releases_meeting(self, schedule_session, session_service, provider):
        session = await schedule_session()
        cancelled = await session_service.cancel_session(session.id, INSTRUCTOR_ID, "instructor")

        assert cancelled.status == SessionStatus.CANCELLED
        assert session.meeting_id not in provider.meetings

    @pytest.mark.asyncio
    async def test_cancel_live(self, schedule_session, session_service, clock):
        session = await schedule_session()
        await start_live(session_service, clock, session)
        cancelled = await session_service.cancel_session(session.id, INSTRUCTOR_ID, "instructor")
        assert cancelled.status == SessionStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_cancel_completed_is_rejected(self, schedule_session, session_service, clock):
        session = await schedule_session()
        await start_live(session_service, clock, session)
        await session_service.end_session(session.id, INSTRUCTOR_ID, "instructor")

        with pytest.raises(InvalidTransitionError):
            await session_service.cancel_session(session.id, INSTRUCTOR_ID, "instructor")
        stored = await session_service.get_session(session.id)
        assert stored.status == SessionStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_cancelled_session_cannot_start(self, schedule_session, session_service, clock):
        session = await schedule_session()
        await session_service.cancel_session(session.id, INSTRUCTOR_ID, "instructor")
        clock.set(SESSION_START)
        with pytest.raises(InvalidTransitionError):
            await session_service.start_session(session.id, INSTRUCTOR_ID, "instructor")


class TestUpdateAndDelete:
    """Test suite for editing and deleting sessions."""

    @pytest.mark.asyncio
    async def test_reschedule_pushes_to_provider(self, schedule_session, session_service, provider):
        session = await schedule_session()
        new_start = SESSION_START + timedelta(days=2)

        updated = await session_service.update_session(
            session.id,
            INSTRUCTOR_ID,
            "instructor",
            {"scheduled_at": new_start, "duration": 90},
        )

        assert updated.scheduled_at == new_start
        assert updated.end_time == new_start + timedelta(minutes=90)
        assert "update_meeting" in provider.calls

    @pytest.mark.asyncio
    async def test_description_only_change_skips_provider(self, schedule_session, session_service, provider):
        session = await schedule_session()
        await session_service.update_session(
            session.id, INSTRUCTOR_ID, "instructor", {"description": "Bring questions"}
        )
        assert "update_meeting" not in provider.calls

    @pytest.mark.asyncio
    async def test_update_live_session_is_rejected(self, schedule_session, session_service, clock):
        session = await schedule_session()
        await start_live(session_service, clock, session)
        with pytest.raises(InvalidTransitionError):
            await session_service.update_session(
                session.id, INSTRUCTOR_ID, "instructor", {"title": "Renamed"}
            )

    @pytest.mark.asyncio
    async def test_delete_without_recordings(self, schedule_session, session_service, provider):
        session = await schedule_session()
        await session_service.delete_session(session.id, INSTRUCTOR_ID, "instructor")

        assert session.meeting_id not in provider.meetings
        with pytest.raises(SessionNotFoundError):
            await session_service.get_session(session.id)

    @pytest.mark.asyncio
    async def test_delete_with_recordings_requires_cascade(
        self, schedule_session, session_service, recording_repository, attendance_repository, storage, clock
    ):
        session = await schedule_session()
        await start_live(session_service, clock, session)
        await session_service.join_session(session.id, STUDENT_ID, "student")
        filename = storage.generate_filename(session.id, ".mp4")
        storage.path_for(filename).write_bytes(b"video")
        await recording_repository.create_if_absent(
            RecordingEntity(
                session_id=session.id,
                course_id=session.course_id,
                provider_recording_id="upload_test",
                title="Recording",
                duration=120,
                recorded_at=SESSION_START,
                storage_url=storage.url_for(filename),
                source=RecordingSource.UPLOAD,
                local_filename=filename,
            )
        )

        with pytest.raises(BusinessRuleViolationError):
            await session_service.delete_session(session.id, INSTRUCTOR_ID, "instructor")

        await session_service.delete_session(session.id, INSTRUCTOR_ID, "instructor", cascade=True)
        assert await recording_repository.list_recordings(session_id=session.id) == []
        assert not storage.path_for(filename).exists()
        assert await attendance_repository.list_by_session(session.id) == []

    @pytest.mark.asyncio
    async def test_delete_removes_attendance(
        self, schedule_session, session_service, attendance_repository, firestore, clock
    ):
        session = await schedule_session()
        other = await schedule_session()
        await start_live(session_service, clock, session)
        await start_live(session_service, clock, other)
        await session_service.join_session(session.id, STUDENT_ID, "student")
        await session_service.join_session(other.id, STUDENT_ID, "student")

        await session_service.delete_session(session.id, INSTRUCTOR_ID, "instructor")

        assert await attendance_repository.list_by_session(session.id) == []
        assert list(firestore.documents("attendance")) == [f"{other.id}_{STUDENT_ID}"]


class TestJoinAndLeave:
    """Test suite for participant join and leave."""

    @pytest.mark.asyncio
    async def test_join_live_session(self, schedule_session, session_service, clock):
        session = await schedule_session()
        live = await start_live(session_service, clock, session)

        info = await session_service.join_session(session.id, STUDENT_ID, "student")
        assert info.join_url == live.join_url
        assert info.start_url is None
        assert info.attendance.user_id == STUDENT_ID

        host = await session_service.join_session(session.id, INSTRUCTOR_ID, "instructor")
        assert host.start_url == live.start_url

    @pytest.mark.asyncio
    async def test_repeated_join_keeps_first_join_time(self, schedule_session, session_service, clock):
        session = await schedule_session()
        await start_live(session_service, clock, session)
        first = await session_service.join_session(session.id, STUDENT_ID, "student")
        clock.advance(minutes=10)
        second = await session_service.join_session(session.id, STUDENT_ID, "student")
        assert second.attendance.joined_at == first.attendance.joined_at

    @pytest.mark.asyncio
    async def test_join_scheduled_session_is_rejected(self, schedule_session, session_service):
        session = await schedule_session()
        with pytest.raises(InvalidTransitionError):
            await session_service.join_session(session.id, STUDENT_ID, "student")

    @pytest.mark.asyncio
    async def test_join_overdue_session_is_rejected(self, schedule_session, session_service, clock):
        session = await schedule_session()
        await start_live(session_service, clock, session)
        clock.set(SESSION_START + timedelta(minutes=90))
        with pytest.raises(InvalidTransitionError):
            await session_service.join_session(session.id, STUDENT_ID, "student")

    @pytest.mark.asyncio
    async def test_leave_records_time(self, schedule_session, session_service, clock):
        session = await schedule_session()
        await start_live(session_service, clock, session)
        await session_service.join_session(session.id, STUDENT_ID, "student")
        clock.advance(minutes=20)

        attendance = await session_service.leave_session(session.id, STUDENT_ID)
        assert attendance.left_at == clock()

    @pytest.mark.asyncio
    async def test_leave_without_join(self, schedule_session, session_service):
        session = await schedule_session()
        with pytest.raises(ArtifactMissingError):
            await session_service.leave_session(session.id, STUDENT_ID)


class TestProviderEventsAndReconcile:
    """Test suite for provider-driven and clock-driven transitions."""

    @pytest.mark.asyncio
    async def test_meeting_started_event_takes_session_live(self, schedule_session, session_service):
        session = await schedule_session()
        updated = await session_service.apply_provider_event(session.meeting_id, "meeting.started")
        assert updated.status == SessionStatus.LIVE

    @pytest.mark.asyncio
    async def test_meeting_ended_event_completes_session(self, schedule_session, session_service, clock):
        session = await schedule_session()
        await start_live(session_service, clock, session)
        updated = await session_service.apply_provider_event(session.meeting_id, "meeting.ended")
        assert updated.status == SessionStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_event_for_unknown_meeting_is_ignored(self, session_service):
        assert await session_service.apply_provider_event("999", "meeting.ended") is None

    @pytest.mark.asyncio
    async def test_ended_event_does_not_reopen_cancelled(self, schedule_session, session_service):
        session = await schedule_session()
        await session_service.cancel_session(session.id, INSTRUCTOR_ID, "instructor")
        updated = await session_service.apply_provider_event(session.meeting_id, "meeting.started")
        assert updated.status == SessionStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_reconcile_completes_overdue_session(self, schedule_session, session_service, clock):
        session = await schedule_session()
        live = await start_live(session_service, clock, session)
        clock.set(SESSION_START + timedelta(hours=3))

        reconciled = await session_service.reconcile(live)
        assert reconciled.status == SessionStatus.COMPLETED
        assert reconciled.ended_at == session.end_time

    @pytest.mark.asyncio
    async def test_reconcile_leaves_running_session(self, schedule_session, session_service, clock):
        session = await schedule_session()
        live = await start_live(session_service, clock, session)
        assert (await session_service.reconcile(live)).status == SessionStatus.LIVE


class TestListSessions:
    """Test suite for listing sessions."""

    @pytest.mark.asyncio
    async def test_filters_and_pagination(self, schedule_session, session_service):
        for day in range(3):
            await schedule_session(scheduled_at=SESSION_START + timedelta(days=day))
        await schedule_session(course_id="course-2")

        sessions, total = await session_service.list_sessions(course_id="course-1", page=1, limit=2)
        assert total == 3
        assert len(sessions) == 2
        assert sessions[0].scheduled_at <= sessions[1].scheduled_at

        second_page, _ = await session_service.list_sessions(course_id="course-1", page=2, limit=2)
        assert len(second_page) == 1

    @pytest.mark.asyncio
    async def test_status_filter(self, schedule_session, session_service):
        kept = await schedule_session()
        dropped = await schedule_session()
        await session_service.cancel_session(dropped.id, INSTRUCTOR_ID, "instructor")

        sessions, total = await session_service.list_sessions(statuses=[SessionStatus.SCHEDULED])
        assert total == 1
        assert sessions[0].id == kept.id
