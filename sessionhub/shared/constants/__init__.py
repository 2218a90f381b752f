"""Application constants module."""

from .auth import (
    ALL_ROLES,
    ROLE_ADMIN,
    ROLE_INSTRUCTOR,
    ROLE_STUDENT,
    ROLE_SUPER_ADMIN,
    SECURITY_HEADERS,
    TOKEN_MAX_LENGTH,
    TOKEN_MIN_LENGTH,
    TOKEN_TYPE_ACCESS,
    TOKEN_TYPE_BEARER,
    TOKEN_TYPE_REFRESH,
)

__all__ = [
    "ALL_ROLES",
    "ROLE_ADMIN",
    "ROLE_INSTRUCTOR",
    "ROLE_STUDENT",
    "ROLE_SUPER_ADMIN",
    "SECURITY_HEADERS",
    "TOKEN_MAX_LENGTH",
    "TOKEN_MIN_LENGTH",
    "TOKEN_TYPE_ACCESS",
    "TOKEN_TYPE_BEARER",
    "TOKEN_TYPE_REFRESH",
]
