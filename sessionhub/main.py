"""This file contains the main application entry point."""

import traceback
import uuid
from contextlib import asynccontextmanager
from datetime import (
    UTC,
    datetime,
)

from fastapi import (
    FastAPI,
    Request,
    status,
)
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from sessionhub.api.v1.api import api_router
from sessionhub.core.config import (
    Environment,
    settings,
)
from sessionhub.core.limiter import limiter
from sessionhub.core.logging import logger
from sessionhub.domain.exceptions import DomainError
from sessionhub.infrastructure.container import cleanup_container
from sessionhub.shared.middleware import (
    ErrorHandlerMiddleware,
    RequestLoggingMiddleware,
    domain_exception_handler,
    with_security_headers,
)
from sessionhub.shared.response_models import (
    ErrorResponse,
    ValidationErrorResponse,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown events."""
    app.state.start_time = datetime.now(UTC)
    logger.info(
        "application_startup",
        project_name=settings.PROJECT_NAME,
        version=settings.VERSION,
        environment=settings.APP_ENV.value,
        api_prefix=settings.API_V1_STR,
        zoom_configured=settings.ZOOM_CONFIGURED,
    )

    yield

    await cleanup_container()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    description=settings.DESCRIPTION,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
)

# Middleware runs bottom-up: request logging wraps error handling
app.add_middleware(ErrorHandlerMiddleware)
app.add_middleware(RequestLoggingMiddleware)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS_LIST,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=[
        "Authorization",
        "Content-Type",
        "Accept",
        "Origin",
        "User-Agent",
        "Cache-Control",
        "X-Requested-With",
        "X-Request-ID",
    ],
    expose_headers=["X-Request-ID"],
)

# Set up rate limiter exception handler
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_exception_handler(DomainError, domain_exception_handler)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle validation errors from request data.

    Args:
        request: The request that caused the validation error
        exc: The validation error

    Returns:
        JSONResponse: A formatted error response
    """
    field_errors = {}
    for error in exc.errors():
        loc = ".".join(str(part) for part in error["loc"] if part != "body")
        field_errors.setdefault(loc or "body", []).append(error["msg"])

    logger.warning(
        "request_validation_error",
        path=request.url.path,
        method=request.method,
        fields=sorted(field_errors),
    )

    error_response = ValidationErrorResponse(
        message="Request validation failed",
        field_errors=field_errors,
    )
    response = JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_response.model_dump(mode="json"),
    )
    return with_security_headers(response)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions raised by the framework (404 routes, 405 methods)."""
    logger.warning(
        "http_exception",
        status_code=exc.status_code,
        detail=str(exc.detail),
        path=request.url.path,
        method=request.method,
    )
    error_response = ErrorResponse(error="HTTP_ERROR", message=str(exc.detail))
    response = JSONResponse(
        status_code=exc.status_code,
        content=error_response.model_dump(mode="json"),
        headers=getattr(exc, "headers", None),
    )
    return with_security_headers(response)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions.

    Args:
        request: The request that caused the error
        exc: The unexpected exception

    Returns:
        JSONResponse: A formatted error response
    """
    error_id = str(uuid.uuid4())
    logger.error(
        "unexpected_error",
        error_id=error_id,
        error_type=type(exc).__name__,
        message=str(exc),
        path=request.url.path,
        method=request.method,
        traceback=traceback.format_exc(),
    )

    # Don't expose internal error details in production
    if settings.APP_ENV == Environment.PRODUCTION:
        message = "An internal server error occurred. Please try again later."
    else:
        message = f"Internal server error: {exc}"

    error_response = ErrorResponse(
        error="INTERNAL_SERVER_ERROR",
        message=message,
        details={"error_id": error_id},
    )
    response = JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_response.model_dump(mode="json"),
    )
    return with_security_headers(response)


# Include API router
app.include_router(api_router, prefix=settings.API_V1_STR)

# Serve locally stored recordings at their public path
settings.RECORDINGS_DIR.mkdir(parents=True, exist_ok=True)
app.mount(
    settings.RECORDINGS_PUBLIC_PATH,
    StaticFiles(directory=str(settings.RECORDINGS_DIR)),
    name="recordings",
)


@app.get("/")
async def root():
    """Root endpoint returning basic API information."""
    return {
        "name": settings.PROJECT_NAME,
        "version": settings.VERSION,
        "environment": settings.APP_ENV.value,
        "swagger_url": "/docs",
        "redoc_url": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "sessionhub.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.APP_ENV == Environment.DEVELOPMENT,
    )
