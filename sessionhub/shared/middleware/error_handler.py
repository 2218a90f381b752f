"""Error handling for SessionHub API.

This module maps domain exceptions onto HTTP responses so that every
error leaves the API in the same ``ErrorResponse`` envelope.
"""

import traceback
import uuid
from typing import (
    Callable,
    Dict,
    Type,
)

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from sessionhub.core.logging import logger
from sessionhub.domain.exceptions import (
    ArtifactMissingError,
    BusinessRuleViolationError,
    ConcurrentModificationError,
    DomainError,
    InsufficientPermissionsError,
    InvalidTransitionError,
    ProviderUnavailableError,
    RepairFailedError,
    RepositoryError,
    UnauthenticatedError,
    UnsupportedMediaTypeError,
    UploadTooLargeError,
    ValidationError,
)
from sessionhub.shared.constants import SECURITY_HEADERS
from sessionhub.shared.response_models import ErrorResponse

EXCEPTION_STATUS_MAP: Dict[Type[DomainError], int] = {
    # 400 Bad Request
    ValidationError: 400,
    # 401 Unauthorized
    UnauthenticatedError: 401,
    # 403 Forbidden
    InsufficientPermissionsError: 403,
    # 404 Not Found
    ArtifactMissingError: 404,
    # 409 Conflict
    InvalidTransitionError: 409,
    ConcurrentModificationError: 409,
    BusinessRuleViolationError: 409,
    # 413/415 for uploads
    UploadTooLargeError: 413,
    UnsupportedMediaTypeError: 415,
    # 422 Unprocessable
    RepairFailedError: 422,
    # 503 Service Unavailable
    ProviderUnavailableError: 503,
    RepositoryError: 503,
}


def status_code_for(exc: DomainError) -> int:
    """HTTP status for a domain exception, resolved through its class hierarchy."""
    for cls in type(exc).__mro__:
        if cls in EXCEPTION_STATUS_MAP:
            return EXCEPTION_STATUS_MAP[cls]
    return 500


def with_security_headers(response: Response) -> Response:
    """Add the standard security headers to a response."""
    for header, value in SECURITY_HEADERS.items():
        response.headers[header] = value
    return response


async def domain_exception_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Render a domain exception as an ``ErrorResponse``."""
    status_code = status_code_for(exc)
    log = logger.error if status_code >= 500 else logger.warning
    log(
        "domain_exception",
        exception_type=type(exc).__name__,
        error_code=exc.error_code,
        message=exc.message,
        status_code=status_code,
        path=request.url.path,
        method=request.method,
    )

    error_response = ErrorResponse(
        error=exc.error_code or type(exc).__name__,
        message=exc.message,
        details=exc.details or None,
    )
    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    response = JSONResponse(
        status_code=status_code,
        content=error_response.model_dump(mode="json"),
        headers=headers,
    )
    return with_security_headers(response)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Last line of defence for exceptions no handler claimed."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request and turn unexpected exceptions into a 500 envelope.

        Args:
            request: The incoming request
            call_next: The next middleware or route handler

        Returns:
            Response: The response from the handler or error response
        """
        try:
            return await call_next(request)
        except DomainError as exc:
            return await domain_exception_handler(request, exc)
        except Exception as exc:
            error_id = str(uuid.uuid4())
            logger.error(
                "unexpected_error",
                error_id=error_id,
                exception_type=type(exc).__name__,
                message=str(exc),
                path=request.url.path,
                method=request.method,
                traceback=traceback.format_exc(),
            )
            error_response = ErrorResponse(
                error="INTERNAL_SERVER_ERROR",
                message="An unexpected error occurred",
                details={"error_id": error_id},
            )
            response = JSONResponse(status_code=500, content=error_response.model_dump(mode="json"))
            return with_security_headers(response)
