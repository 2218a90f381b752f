"""Live session API endpoints.

This module exposes scheduling, the start/end/cancel lifecycle, joining
and attendance, and the recording pull path for sessions.
"""

from datetime import datetime
from typing import (
    List,
    Optional,
    Union,
)

from fastapi import (
    APIRouter,
    BackgroundTasks,
    Depends,
    Query,
    Request,
    status,
)

from sessionhub.api.v1.auth import (
    CurrentUser,
    get_current_user,
)
from sessionhub.core.config import settings
from sessionhub.core.limiter import limiter
from sessionhub.core.logging import logger
from sessionhub.domain.entities import SessionStatus
from sessionhub.domain.exceptions import InsufficientPermissionsError
from sessionhub.domain.services import (
    AttendanceDomainService,
    RecordingDomainService,
    SessionDomainService,
)
from sessionhub.domain.services.session_service import MANAGER_ROLES
from sessionhub.infrastructure.container import (
    get_attendance_service,
    get_recording_service,
    get_session_service,
)
from sessionhub.schemas.attendance import (
    AttendanceListResponse,
    AttendanceMark,
    AttendanceResponse,
)
from sessionhub.schemas.recordings import (
    BulkSyncResponse,
    RecordingResponse,
    SyncResultResponse,
)
from sessionhub.schemas.sessions import (
    HostSessionResponse,
    JoinResponse,
    SessionCreate,
    SessionResponse,
    SessionUpdate,
)
from sessionhub.shared.response_models import (
    BaseResponse,
    PaginatedResponse,
    PaginationInfo,
    SuccessResponse,
)

router = APIRouter()


def require_manager(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    """Only instructors and admins may run recording collection."""
    if current_user.role not in MANAGER_ROLES:
        raise InsufficientPermissionsError("manage_recordings", current_user.id)
    return current_user


def schedule_recording_collection(
    background_tasks: BackgroundTasks, recording_service: RecordingDomainService, session_id: str
) -> None:
    """Queue the post-end poll for a session's recordings."""
    background_tasks.add_task(
        recording_service.collect_after_end,
        session_id,
        max_attempts=settings.RECORDING_SYNC_MAX_ATTEMPTS,
        base_delay=settings.RECORDING_SYNC_BASE_DELAY_SECONDS,
    )


@router.post(
    "",
    response_model=BaseResponse[HostSessionResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_session(
    session_data: SessionCreate,
    current_user: CurrentUser = Depends(get_current_user),
    session_service: SessionDomainService = Depends(get_session_service),
):
    """Schedule a session and create its provider meeting."""
    session = await session_service.create_session(
        actor_id=current_user.id,
        actor_role=current_user.role,
        course_id=session_data.course_id,
        title=session_data.title,
        scheduled_at=session_data.scheduled_at,
        duration=session_data.duration,
        description=session_data.description,
        session_type=session_data.session_type,
        max_participants=session_data.max_participants,
        timezone=session_data.timezone or settings.SESSION_DEFAULT_TIMEZONE,
    )
    logger.info("session_created", session_id=session.id, user_id=current_user.id)
    return BaseResponse(
        message="Session scheduled",
        data=HostSessionResponse.from_entity(session, session_service.clock()),
    )


@router.get("", response_model=PaginatedResponse[SessionResponse])
async def list_sessions(
    course_id: Optional[str] = Query(None),
    instructor_id: Optional[str] = Query(None),
    status_filter: Optional[List[SessionStatus]] = Query(None, alias="status"),
    start_from: Optional[datetime] = Query(None),
    start_to: Optional[datetime] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: CurrentUser = Depends(get_current_user),
    session_service: SessionDomainService = Depends(get_session_service),
):
    """List sessions filtered by course, instructor, status and date range."""
    sessions, total = await session_service.list_sessions(
        course_id=course_id,
        instructor_id=instructor_id,
        statuses=status_filter,
        start_from=start_from,
        start_to=start_to,
        page=page,
        limit=limit,
    )
    now = session_service.clock()
    return PaginatedResponse(
        data=[SessionResponse.from_entity(s, now) for s in sessions],
        pagination=PaginationInfo.build(page, limit, total),
    )


@router.post("/sync-recordings", response_model=BaseResponse[BulkSyncResponse])
async def sync_all_recordings(
    current_user: CurrentUser = Depends(require_manager),
    recording_service: RecordingDomainService = Depends(get_recording_service),
):
    """Pull provider recordings for every completed session."""
    result = await recording_service.sync_all_recordings()
    return BaseResponse(
        message=f"Stored {result.total_recordings} new recording(s)",
        data=BulkSyncResponse.from_result(result),
    )


@router.get(
    "/{session_id}",
    response_model=BaseResponse[Union[HostSessionResponse, SessionResponse]],
)
async def get_session(
    session_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    session_service: SessionDomainService = Depends(get_session_service),
):
    """Get a session with its read-time status."""
    session = await session_service.get_session(session_id)
    now = session_service.clock()
    if session.is_hosted_by(current_user.id, current_user.role):
        return BaseResponse(data=HostSessionResponse.from_entity(session, now))
    return BaseResponse(data=SessionResponse.from_entity(session, now))


@router.put("/{session_id}", response_model=BaseResponse[HostSessionResponse])
async def update_session(
    session_id: str,
    update_data: SessionUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    session_service: SessionDomainService = Depends(get_session_service),
):
    """Edit or reschedule a scheduled session."""
    session = await session_service.update_session(
        session_id,
        current_user.id,
        current_user.role,
        update_data.model_dump(exclude_unset=True),
    )
    return BaseResponse(
        message="Session updated",
        data=HostSessionResponse.from_entity(session, session_service.clock()),
    )


@router.delete("/{session_id}", response_model=SuccessResponse)
async def delete_session(
    session_id: str,
    cascade: bool = Query(False, description="Also delete the session's recordings"),
    current_user: CurrentUser = Depends(get_current_user),
    session_service: SessionDomainService = Depends(get_session_service),
):
    """Delete a session."""
    await session_service.delete_session(session_id, current_user.id, current_user.role, cascade)
    logger.info("session_deleted", session_id=session_id, cascade=cascade)
    return SuccessResponse(message="Session deleted")


@router.post("/{session_id}/start", response_model=BaseResponse[HostSessionResponse])
async def start_session(
    session_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    session_service: SessionDomainService = Depends(get_session_service),
):
    """Take a session live. Starting a live session returns it unchanged."""
    session = await session_service.start_session(session_id, current_user.id, current_user.role)
    logger.info("session_started", session_id=session.id, user_id=current_user.id)
    return BaseResponse(
        message="Session is live",
        data=HostSessionResponse.from_entity(session, session_service.clock()),
    )


@router.post("/{session_id}/end", response_model=BaseResponse[SessionResponse])
async def end_session(
    session_id: str,
    background_tasks: BackgroundTasks,
    current_user: CurrentUser = Depends(get_current_user),
    session_service: SessionDomainService = Depends(get_session_service),
    recording_service: RecordingDomainService = Depends(get_recording_service),
):
    """End a live session and start polling for its recordings."""
    session = await session_service.end_session(session_id, current_user.id, current_user.role)
    if session.meeting_id:
        schedule_recording_collection(background_tasks, recording_service, session.id)
    logger.info("session_ended", session_id=session.id, user_id=current_user.id)
    return BaseResponse(
        message="Session ended",
        data=SessionResponse.from_entity(session, session_service.clock()),
    )


@router.post("/{session_id}/cancel", response_model=BaseResponse[SessionResponse])
async def cancel_session(
    session_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    session_service: SessionDomainService = Depends(get_session_service),
):
    """Cancel a scheduled or live session."""
    session = await session_service.cancel_session(session_id, current_user.id, current_user.role)
    logger.info("session_cancelled", session_id=session.id, user_id=current_user.id)
    return BaseResponse(
        message="Session cancelled",
        data=SessionResponse.from_entity(session, session_service.clock()),
    )


@router.post("/{session_id}/join", response_model=BaseResponse[JoinResponse])
async def join_session(
    session_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    session_service: SessionDomainService = Depends(get_session_service),
):
    """Get the join URL of a live session and record attendance."""
    info = await session_service.join_session(session_id, current_user.id, current_user.role)
    return BaseResponse(data=JoinResponse.from_join_info(info))


@router.post("/{session_id}/leave", response_model=BaseResponse[AttendanceResponse])
async def leave_session(
    session_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    session_service: SessionDomainService = Depends(get_session_service),
):
    """Record that the caller left the session."""
    attendance = await session_service.leave_session(session_id, current_user.id)
    return BaseResponse(data=AttendanceResponse.from_entity(attendance))


@router.get("/{session_id}/attendance", response_model=BaseResponse[AttendanceListResponse])
async def get_attendance(
    session_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    attendance_service: AttendanceDomainService = Depends(get_attendance_service),
):
    """Attendance of a session. Non-hosts only see their own record."""
    records = await attendance_service.get_attendance(
        session_id, current_user.id, current_user.role
    )
    return BaseResponse(data=AttendanceListResponse.from_entities(session_id, records))


@router.post("/{session_id}/attendance", response_model=BaseResponse[Optional[AttendanceResponse]])
async def mark_attendance(
    session_id: str,
    mark: AttendanceMark,
    current_user: CurrentUser = Depends(get_current_user),
    attendance_service: AttendanceDomainService = Depends(get_attendance_service),
):
    """Let a host mark a user present or absent."""
    attendance = await attendance_service.mark_attendance(
        session_id, current_user.id, current_user.role, mark.user_id, mark.present
    )
    return BaseResponse(
        message="Marked present" if mark.present else "Marked absent",
        data=AttendanceResponse.from_entity(attendance) if attendance else None,
    )


@router.get("/{session_id}/recordings", response_model=PaginatedResponse[RecordingResponse])
async def list_session_recordings(
    session_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: CurrentUser = Depends(get_current_user),
    recording_service: RecordingDomainService = Depends(get_recording_service),
):
    """List the recordings of one session."""
    recordings, total = await recording_service.list_recordings(
        session_id=session_id, page=page, limit=limit
    )
    return PaginatedResponse(
        data=[RecordingResponse.from_entity(r) for r in recordings],
        pagination=PaginationInfo.build(page, limit, total),
    )


@router.post("/{session_id}/check-recordings", response_model=BaseResponse[SyncResultResponse])
async def check_recordings(
    session_id: str,
    current_user: CurrentUser = Depends(require_manager),
    recording_service: RecordingDomainService = Depends(get_recording_service),
):
    """Pull provider recordings for one completed session."""
    result = await recording_service.sync_session_recordings(session_id)
    return BaseResponse(data=SyncResultResponse.from_result(result))


@router.post("/{session_id}/download-recording", response_model=BaseResponse[SyncResultResponse])
@limiter.limit(settings.RATE_LIMIT_ENDPOINTS["upload"][0])
async def download_recording(
    request: Request,
    session_id: str,
    background_tasks: BackgroundTasks,
    current_user: CurrentUser = Depends(require_manager),
    recording_service: RecordingDomainService = Depends(get_recording_service),
):
    """Pull provider recordings and store the files on this server.

    Downloads that are not fast-start are repaired in the background.
    """
    result = await recording_service.sync_session_recordings(session_id, download=True)
    if result.pending_repair:
        background_tasks.add_task(recording_service.repair_pending, list(result.pending_repair))
    return BaseResponse(
        message=f"Downloaded {result.downloaded} recording(s)",
        data=SyncResultResponse.from_result(result),
    )
