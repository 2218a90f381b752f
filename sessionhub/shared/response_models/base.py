"""Base response models for SessionHub API.

This module contains standardized response models used across
the API to ensure consistent response formats.
"""

from datetime import (
    UTC,
    datetime,
)
from typing import (
    Any,
    Dict,
    Generic,
    List,
    Optional,
    TypeVar,
)

from pydantic import (
    BaseModel,
    Field,
)

T = TypeVar("T")


def _now() -> datetime:
    return datetime.now(UTC)


class BaseResponse(BaseModel, Generic[T]):
    """Base response model for all API responses."""

    success: bool = Field(True, description="Whether the operation was successful")
    message: Optional[str] = Field(None, description="Response message")
    data: Optional[T] = Field(None, description="Response data")
    timestamp: datetime = Field(default_factory=_now, description="Response timestamp")


class ErrorResponse(BaseModel):
    """Standard error response model."""

    success: bool = Field(False, description="Always false for errors")
    error: str = Field(description="Error type or code")
    message: str = Field(description="Human-readable error message")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error details")
    timestamp: datetime = Field(default_factory=_now, description="Error timestamp")


class ValidationErrorResponse(ErrorResponse):
    """Response model for validation errors."""

    error: str = Field("VALIDATION_ERROR", description="Error type")
    field_errors: Optional[Dict[str, List[str]]] = Field(
        None, description="Field-specific validation errors"
    )


class PaginationInfo(BaseModel):
    """Pagination information model."""

    page: int = Field(description="Current page number")
    per_page: int = Field(description="Items per page")
    total: int = Field(description="Total number of items")
    pages: int = Field(description="Total number of pages")
    has_next: bool = Field(description="Whether there is a next page")
    has_prev: bool = Field(description="Whether there is a previous page")

    @classmethod
    def build(cls, page: int, per_page: int, total: int) -> "PaginationInfo":
        """Derive page counts from the totals."""
        pages = (total + per_page - 1) // per_page if per_page else 0
        return cls(
            page=page,
            per_page=per_page,
            total=total,
            pages=pages,
            has_next=page < pages,
            has_prev=page > 1,
        )


class PaginatedResponse(BaseModel, Generic[T]):
    """Paginated response model."""

    success: bool = Field(True, description="Whether the operation was successful")
    data: List[T] = Field(description="List of items")
    pagination: PaginationInfo = Field(description="Pagination information")
    timestamp: datetime = Field(default_factory=_now, description="Response timestamp")


class SuccessResponse(BaseModel):
    """Simple success response model."""

    success: bool = Field(True, description="Whether the operation was successful")
    message: str = Field(description="Success message")
    timestamp: datetime = Field(default_factory=_now, description="Response timestamp")


class StatusResponse(BaseModel):
    """Status response model for health checks."""

    status: str = Field(description="Service status")
    version: Optional[str] = Field(None, description="API version")
    environment: Optional[str] = Field(None, description="Deployment environment")
    checks: Optional[Dict[str, Any]] = Field(None, description="Health check results")
    timestamp: datetime = Field(default_factory=_now, description="Response timestamp")
