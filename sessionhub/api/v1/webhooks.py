"""Meeting provider webhook endpoint.

Zoom notifies us when a meeting starts or ends and when its cloud
recording is ready. Deliveries are verified with the webhook secret token
when one is configured.
"""

import json

from fastapi import (
    APIRouter,
    BackgroundTasks,
    Depends,
    Request,
)

from sessionhub.core.config import settings
from sessionhub.core.limiter import limiter
from sessionhub.core.logging import logger
from sessionhub.domain.entities import SessionStatus
from sessionhub.domain.exceptions import (
    UnauthenticatedError,
    ValidationError,
)
from sessionhub.domain.services import (
    RecordingDomainService,
    SessionDomainService,
)
from sessionhub.infrastructure.container import (
    get_recording_service,
    get_session_service,
)
from sessionhub.shared.response_models import SuccessResponse
from sessionhub.shared.utils.webhooks import (
    url_validation_response,
    verify_webhook_signature,
)

router = APIRouter()

EVENT_MEETING_STARTED = "meeting.started"
EVENT_MEETING_ENDED = "meeting.ended"
EVENT_RECORDING_COMPLETED = "recording.completed"
EVENT_URL_VALIDATION = "endpoint.url_validation"


@router.post("/provider")
@limiter.limit(settings.RATE_LIMIT_ENDPOINTS["webhook"][0])
async def provider_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    session_service: SessionDomainService = Depends(get_session_service),
    recording_service: RecordingDomainService = Depends(get_recording_service),
):
    """Apply a provider event to the matching session.

    Events for meetings we do not know are acknowledged and ignored so
    the provider does not keep redelivering them.
    """
    body = await request.body()
    secret = settings.ZOOM_WEBHOOK_SECRET_TOKEN
    if secret:
        if not verify_webhook_signature(
            secret,
            request.headers.get("x-zm-request-timestamp"),
            body,
            request.headers.get("x-zm-signature"),
        ):
            logger.warning("webhook_signature_rejected", path=request.url.path)
            raise UnauthenticatedError("Invalid webhook signature")
    else:
        logger.warning("webhook_unverified", reason="ZOOM_WEBHOOK_SECRET_TOKEN is not set")

    try:
        payload = json.loads(body or b"{}")
    except ValueError:
        raise ValidationError("body", "must be a JSON object")
    if not isinstance(payload, dict):
        raise ValidationError("body", "must be a JSON object")

    event = payload.get("event", "")
    data = payload.get("payload") or {}

    if event == EVENT_URL_VALIDATION:
        if not secret:
            raise ValidationError("event", "url validation needs a webhook secret token")
        return url_validation_response(secret, str(data.get("plainToken", "")))

    meeting_id = str((data.get("object") or {}).get("id", ""))
    if not meeting_id:
        logger.info("webhook_ignored", webhook_event=event, reason="no meeting id")
        return SuccessResponse(message="Ignored")

    if event in (EVENT_MEETING_STARTED, EVENT_MEETING_ENDED):
        session = await session_service.apply_provider_event(meeting_id, event)
        ended = session is not None and session.status == SessionStatus.COMPLETED
        if ended and event == EVENT_MEETING_ENDED:
            background_tasks.add_task(
                recording_service.collect_after_end,
                session.id,
                max_attempts=settings.RECORDING_SYNC_MAX_ATTEMPTS,
                base_delay=settings.RECORDING_SYNC_BASE_DELAY_SECONDS,
            )
    elif event == EVENT_RECORDING_COMPLETED:
        session = await session_service.session_repository.find_by_meeting_id(meeting_id)
        if session:
            background_tasks.add_task(
                recording_service.collect_after_end, session.id, max_attempts=1
            )
    else:
        logger.info("webhook_ignored", webhook_event=event, meeting_id=meeting_id)
        return SuccessResponse(message="Ignored")

    logger.info("webhook_processed", webhook_event=event, meeting_id=meeting_id)
    return SuccessResponse(message="Processed")
