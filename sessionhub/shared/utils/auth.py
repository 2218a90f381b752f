"""This file contains the authentication utilities for the application."""

import secrets
from datetime import (
    UTC,
    datetime,
    timedelta,
)
from typing import Optional

from jose import (
    ExpiredSignatureError,
    JWTError,
    jwt,
)

from sessionhub.core.config import settings
from sessionhub.core.logging import logger
from sessionhub.domain.exceptions import (
    AuthExpiredError,
    UnauthenticatedError,
)
from sessionhub.schemas.auth import (
    Token,
    TokenPayload,
)
from sessionhub.shared.constants import (
    ROLE_STUDENT,
    TOKEN_MAX_LENGTH,
    TOKEN_MIN_LENGTH,
    TOKEN_TYPE_ACCESS,
    TOKEN_TYPE_REFRESH,
)


def _encode(user_id: str, role: str, token_type: str, expire: datetime) -> Token:
    if not user_id or not isinstance(user_id, str):
        raise ValueError("User ID must be a non-empty string")

    issued_at = datetime.now(UTC)
    to_encode = {
        "sub": user_id,
        "role": role,
        "exp": expire,
        "iat": issued_at,
        "jti": f"{user_id}-{issued_at.timestamp()}-{secrets.token_hex(8)}",
        "type": token_type,
    }
    encoded_jwt = jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)
    logger.info("token_created", user_id=user_id, token_type=token_type, expires_at=expire.isoformat())
    return Token(access_token=encoded_jwt, expires_at=expire)


def create_access_token(
    user_id: str, role: str = ROLE_STUDENT, expires_delta: Optional[timedelta] = None
) -> Token:
    """Create a new access token for a user.

    Args:
        user_id: The user ID placed in the subject claim.
        role: The user's role, carried in the ``role`` claim.
        expires_delta: Optional expiration time delta.

    Returns:
        Token: The generated access token.
    """
    expire = datetime.now(UTC) + (
        expires_delta or timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    return _encode(user_id, role, TOKEN_TYPE_ACCESS, expire)


def create_refresh_token(
    user_id: str, role: str = ROLE_STUDENT, expires_delta: Optional[timedelta] = None
) -> Token:
    """Create a new refresh token for a user."""
    expire = datetime.now(UTC) + (
        expires_delta or timedelta(days=settings.JWT_REFRESH_TOKEN_EXPIRE_DAYS)
    )
    return _encode(user_id, role, TOKEN_TYPE_REFRESH, expire)


def _decode(token: str, expected_type: str) -> TokenPayload:
    if not token or not isinstance(token, str):
        raise UnauthenticatedError("Token must be a non-empty string")
    if not TOKEN_MIN_LENGTH <= len(token) <= TOKEN_MAX_LENGTH:
        raise UnauthenticatedError("Token has an invalid length")

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            options={"require_exp": True, "require_iat": True},
        )
    except ExpiredSignatureError:
        logger.info("token_expired", token_type=expected_type)
        raise AuthExpiredError()
    except JWTError as e:
        logger.warning("token_invalid", token_type=expected_type, error=str(e))
        raise UnauthenticatedError("Invalid authentication credentials")

    if payload.get("type") != expected_type:
        logger.warning("token_invalid_type", token_type=payload.get("type"), expected=expected_type)
        raise UnauthenticatedError("Invalid token type")

    user_id = payload.get("sub")
    if not user_id:
        raise UnauthenticatedError("Token has no subject")

    return TokenPayload(
        user_id=user_id, role=payload.get("role", ROLE_STUDENT), token_type=expected_type
    )


def verify_token(token: str) -> TokenPayload:
    """Verify an access token.

    Args:
        token: The JWT token to verify.

    Returns:
        TokenPayload: The user ID and role carried by the token.

    Raises:
        AuthExpiredError: If the token has expired.
        UnauthenticatedError: If the token is malformed, forged or of the wrong type.
    """
    return _decode(token, TOKEN_TYPE_ACCESS)


def verify_refresh_token(token: str) -> TokenPayload:
    """Verify a refresh token. Raises like :func:`verify_token`."""
    return _decode(token, TOKEN_TYPE_REFRESH)
