"""API v1 router configuration.

This module sets up the main API router and includes the sub-routers for
authentication, sessions, recordings and provider webhooks.
"""

from fastapi import (
    APIRouter,
    Request,
)

from sessionhub.api.v1.auth import router as auth_router
from sessionhub.api.v1.recordings import router as recordings_router
from sessionhub.api.v1.sessions import router as sessions_router
from sessionhub.api.v1.webhooks import router as webhooks_router
from sessionhub.core.config import settings
from sessionhub.core.limiter import limiter
from sessionhub.core.logging import logger
from sessionhub.domain.exceptions import RepositoryError
from sessionhub.infrastructure.container import get_container
from sessionhub.infrastructure.meeting_provider import InMemoryMeetingProvider
from sessionhub.shared.response_models import StatusResponse

api_router = APIRouter()

# Include routers
api_router.include_router(auth_router, prefix="/auth", tags=["auth"])
api_router.include_router(sessions_router, prefix="/sessions", tags=["sessions"])
api_router.include_router(recordings_router, prefix="/recordings", tags=["recordings"])
api_router.include_router(webhooks_router, prefix="/webhooks", tags=["webhooks"])


@api_router.get("/health", response_model=StatusResponse)
@limiter.limit(settings.RATE_LIMIT_ENDPOINTS["health"][0])
async def health_check(request: Request):
    """Health check endpoint.

    Reports whether the document store client is available and which
    meeting provider is wired in. Neither check calls out to the network.

    Returns:
        StatusResponse: Health status information.
    """
    logger.info("health_check_called")
    container = get_container()

    try:
        container.session_repository.db
        firestore_check = {"status": "healthy"}
    except RepositoryError as e:
        firestore_check = {"status": "unhealthy", "error": e.message}

    provider_check = {
        "status": "healthy",
        "provider": type(container.meeting_provider).__name__,
    }
    if isinstance(container.meeting_provider, InMemoryMeetingProvider):
        provider_check["status"] = "degraded"

    checks = {"firestore": firestore_check, "provider": provider_check}
    statuses = {check["status"] for check in checks.values()}
    if "unhealthy" in statuses:
        overall = "unhealthy"
    elif "degraded" in statuses:
        overall = "degraded"
    else:
        overall = "healthy"

    return StatusResponse(
        status=overall,
        version=settings.VERSION,
        environment=settings.APP_ENV.value,
        checks=checks,
    )
