"""Recording API endpoints.

This module handles listing and editing recordings, the upload (push)
path, container repair and serving recording files.
"""

from typing import (
    AsyncIterator,
    Optional,
)

from fastapi import (
    APIRouter,
    BackgroundTasks,
    Depends,
    File,
    Form,
    Query,
    Request,
    UploadFile,
    status,
)
from fastapi.responses import (
    FileResponse,
    RedirectResponse,
)

from sessionhub.api.v1.auth import (
    CurrentUser,
    get_current_user,
)
from sessionhub.api.v1.sessions import require_manager
from sessionhub.core.config import settings
from sessionhub.core.limiter import limiter
from sessionhub.core.logging import logger
from sessionhub.domain.services import RecordingDomainService
from sessionhub.infrastructure.container import get_recording_service
from sessionhub.schemas.recordings import (
    RecordingResponse,
    RecordingUpdate,
    RepairResponse,
    UploadResponse,
)
from sessionhub.shared.response_models import (
    BaseResponse,
    PaginatedResponse,
    PaginationInfo,
    SuccessResponse,
)

router = APIRouter()

UPLOAD_CHUNK_SIZE = 1024 * 1024


async def iter_upload(file: UploadFile, chunk_size: int = UPLOAD_CHUNK_SIZE) -> AsyncIterator[bytes]:
    """Yield an uploaded file in chunks so it is never held in memory whole."""
    while True:
        chunk = await file.read(chunk_size)
        if not chunk:
            break
        yield chunk


@router.get("", response_model=PaginatedResponse[RecordingResponse])
async def list_recordings(
    session_id: Optional[str] = Query(None),
    course_id: Optional[str] = Query(None),
    public_only: bool = Query(False),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: CurrentUser = Depends(get_current_user),
    recording_service: RecordingDomainService = Depends(get_recording_service),
):
    """List recordings filtered by session, course or visibility."""
    recordings, total = await recording_service.list_recordings(
        session_id=session_id,
        course_id=course_id,
        public_only=public_only,
        page=page,
        limit=limit,
    )
    return PaginatedResponse(
        data=[RecordingResponse.from_entity(r) for r in recordings],
        pagination=PaginationInfo.build(page, limit, total),
    )


@router.post(
    "/upload/{session_id}",
    response_model=BaseResponse[UploadResponse],
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(settings.RATE_LIMIT_ENDPOINTS["upload"][0])
async def upload_recording(
    request: Request,
    session_id: str,
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    title: Optional[str] = Form(None),
    description: str = Form(""),
    duration: Optional[int] = Form(None, gt=0),
    current_user: CurrentUser = Depends(get_current_user),
    recording_service: RecordingDomainService = Depends(get_recording_service),
):
    """Upload a recording file for a completed session.

    The file is stored as sent. When its index box sits after the media
    data a container repair is queued in the background.

    Args:
        request: The FastAPI request object for rate limiting.
        session_id: The session the recording belongs to.
        background_tasks: Queue for the container repair.
        file: The video file.
        title: Optional title, defaults to the session title.
        description: Optional description.
        duration: Duration in seconds when it cannot be read from the file.

    Returns:
        BaseResponse[UploadResponse]: The stored recording.
    """
    try:
        recording, needs_repair = await recording_service.upload_recording(
            session_id=session_id,
            actor_id=current_user.id,
            actor_role=current_user.role,
            original_filename=file.filename or "",
            content_type=file.content_type or "",
            chunks=iter_upload(file),
            title=title,
            description=description,
            duration=duration,
        )
    finally:
        await file.close()

    if needs_repair:
        background_tasks.add_task(recording_service.repair_pending, [recording.id])
    return BaseResponse(
        message="Recording uploaded",
        data=UploadResponse(
            recording=RecordingResponse.from_entity(recording), needs_repair=needs_repair
        ),
    )


@router.get("/{recording_id}", response_model=BaseResponse[RecordingResponse])
async def get_recording(
    recording_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    recording_service: RecordingDomainService = Depends(get_recording_service),
):
    """Get a recording by ID."""
    recording = await recording_service.get_recording(recording_id)
    return BaseResponse(data=RecordingResponse.from_entity(recording))


@router.put("/{recording_id}", response_model=BaseResponse[RecordingResponse])
async def update_recording(
    recording_id: str,
    update_data: RecordingUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    recording_service: RecordingDomainService = Depends(get_recording_service),
):
    """Edit a recording's title, description or visibility."""
    recording = await recording_service.update_recording(
        recording_id,
        current_user.id,
        current_user.role,
        update_data.model_dump(exclude_unset=True),
    )
    return BaseResponse(message="Recording updated", data=RecordingResponse.from_entity(recording))


@router.delete("/{recording_id}", response_model=SuccessResponse)
async def delete_recording(
    recording_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    recording_service: RecordingDomainService = Depends(get_recording_service),
):
    """Delete a recording and its stored file."""
    await recording_service.delete_recording(recording_id, current_user.id, current_user.role)
    logger.info("recording_deleted", recording_id=recording_id, user_id=current_user.id)
    return SuccessResponse(message="Recording deleted")


@router.post("/{recording_id}/repair", response_model=BaseResponse[RepairResponse])
async def repair_recording(
    recording_id: str,
    current_user: CurrentUser = Depends(require_manager),
    recording_service: RecordingDomainService = Depends(get_recording_service),
):
    """Run the container repair chain on a stored recording now."""
    recording, report = await recording_service.repair_recording(recording_id)
    return BaseResponse(
        message=report.note or "Repair finished",
        data=RepairResponse.from_report(recording, report),
    )


@router.get("/{recording_id}/download")
async def download_recording(
    recording_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    recording_service: RecordingDomainService = Depends(get_recording_service),
):
    """Serve a stored recording, or redirect to the provider copy."""
    target = await recording_service.get_download(recording_id)
    if target.path is not None:
        return FileResponse(
            target.path,
            media_type=target.media_type,
            filename=target.path.name,
        )
    return RedirectResponse(target.redirect_url, status_code=status.HTTP_307_TEMPORARY_REDIRECT)
