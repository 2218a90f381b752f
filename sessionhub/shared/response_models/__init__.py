"""Standardized response models for SessionHub API.

This module contains consistent response models
used across all API endpoints.
"""

from .base import (
    BaseResponse,
    ErrorResponse,
    PaginatedResponse,
    PaginationInfo,
    StatusResponse,
    SuccessResponse,
    ValidationErrorResponse,
)

__all__ = [
    "BaseResponse",
    "ErrorResponse",
    "ValidationErrorResponse",
    "PaginatedResponse",
    "PaginationInfo",
    "SuccessResponse",
    "StatusResponse",
]
