"""Authentication endpoints and dependencies for the API.

User accounts live in the identity service; this API only verifies the
bearer tokens it issues and rotates them on refresh.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import (
    APIRouter,
    Depends,
    Request,
)
from fastapi.security import (
    HTTPAuthorizationCredentials,
    HTTPBearer,
)

from sessionhub.core.config import settings
from sessionhub.core.limiter import limiter
from sessionhub.core.logging import logger
from sessionhub.domain.exceptions import UnauthenticatedError
from sessionhub.schemas.auth import (
    RefreshTokenRequest,
    TokenPairResponse,
)
from sessionhub.shared.response_models import BaseResponse
from sessionhub.shared.utils.auth import (
    create_access_token,
    create_refresh_token,
    verify_refresh_token,
    verify_token,
)

router = APIRouter()
security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
    """The authenticated caller."""

    id: str
    role: str


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> CurrentUser:
    """Get the current user from the bearer token.

    Raises:
        UnauthenticatedError: If no token is sent or it is invalid
        AuthExpiredError: If the token has expired
    """
    if credentials is None or not credentials.credentials:
        raise UnauthenticatedError()
    payload = verify_token(credentials.credentials.strip())
    return CurrentUser(id=payload.user_id, role=payload.role)


@router.post("/refresh-token", response_model=BaseResponse[TokenPairResponse])
@limiter.limit(settings.RATE_LIMIT_ENDPOINTS["refresh"][0])
async def refresh_token(request: Request, refresh_request: RefreshTokenRequest):
    """Exchange a refresh token for a new access/refresh pair.

    Args:
        request: The FastAPI request object for rate limiting.
        refresh_request: The refresh token request.

    Returns:
        BaseResponse[TokenPairResponse]: The rotated token pair.
    """
    payload = verify_refresh_token(refresh_request.refresh_token)
    access = create_access_token(payload.user_id, payload.role)
    refresh = create_refresh_token(payload.user_id, payload.role)
    logger.info("token_refreshed", user_id=payload.user_id)
    return BaseResponse(
        data=TokenPairResponse(
            access_token=access.access_token,
            refresh_token=refresh.access_token,
            expires_at=access.expires_at,
        )
    )
