"""Domain-specific exceptions for SessionHub.

This module contains exceptions that represent domain business rule violations
and error conditions within the domain layer. Every exception carries a
machine readable ``error_code`` and a ``details`` mapping with the context
needed to act on it (session id, attempted transition, underlying cause).
"""

from typing import (
    Any,
    Dict,
    Optional,
)


class DomainError(Exception):
    """Base exception for all domain-related errors."""

    def __init__(
        self,
        message: str,
        error_code: str = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}


class RepositoryError(DomainError):
    """Raised when the document store rejects an operation."""

    def __init__(self, operation: str, reason: str):
        message = f"Repository operation {operation} failed: {reason}"
        super().__init__(message, "REPOSITORY_ERROR", {"operation": operation})
        self.operation = operation
        self.reason = reason


class ValidationError(DomainError):
    """Raised when a schedule, duration or payload is malformed.

    Validation always happens before any external call is made.
    """

    def __init__(self, field: str, reason: str):
        message = f"Validation failed for {field}: {reason}"
        super().__init__(message, "VALIDATION_ERROR", {"field": field, "reason": reason})
        self.field = field
        self.reason = reason


# Provider exceptions
class ProviderUnavailableError(DomainError):
    """Raised when a meeting provider call failed.

    The owning operation leaves persisted state untouched, so the caller
    may simply retry.
    """

    def __init__(
        self,
        operation: str,
        reason: str,
        session_id: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        message = f"Meeting provider unavailable during {operation}: {reason}"
        details = {"operation": operation, "cause": reason}
        if session_id:
            details["session_id"] = session_id
        if status_code is not None:
            details["provider_status"] = status_code
        super().__init__(message, "PROVIDER_UNAVAILABLE", details)
        self.operation = operation
        self.reason = reason
        self.session_id = session_id
        self.status_code = status_code


class ProviderAuthenticationError(ProviderUnavailableError):
    """Raised when the provider rejects our credentials. Never retried."""

    def __init__(self, operation: str, status_code: Optional[int] = None):
        super().__init__(operation, "provider rejected credentials", status_code=status_code)
        self.error_code = "PROVIDER_AUTH_FAILED"


# Authentication and authorization exceptions
class UnauthenticatedError(DomainError):
    """Raised when a request carries no usable credentials."""

    def __init__(self, reason: str = "Authentication required"):
        super().__init__(reason, "UNAUTHENTICATED")
        self.reason = reason


class AuthExpiredError(UnauthenticatedError):
    """Raised when a bearer token has expired and may be refreshed."""

    def __init__(self, reason: str = "Access token has expired"):
        super().__init__(reason)
        self.error_code = "AUTH_EXPIRED"


class InsufficientPermissionsError(DomainError):
    """Raised when user lacks required permissions."""

    def __init__(self, action: str, user_id: str = None):
        message = f"Insufficient permissions to perform action: {action}"
        if user_id:
            message += f" (user: {user_id})"
        super().__init__(message, "INSUFFICIENT_PERMISSIONS", {"action": action})
        self.action = action
        self.user_id = user_id


# Missing artifacts
class ArtifactMissingError(DomainError):
    """Raised when a requested session or recording does not exist."""

    def __init__(self, resource_type: str, resource_id: str, error_code: str = "ARTIFACT_MISSING"):
        message = f"{resource_type} with ID {resource_id} not found"
        super().__init__(message, error_code, {"resource_type": resource_type, "resource_id": resource_id})
        self.resource_type = resource_type
        self.resource_id = resource_id


class SessionNotFoundError(ArtifactMissingError):
    """Raised when a session is not found."""

    def __init__(self, session_id: str):
        super().__init__("Session", session_id, "SESSION_NOT_FOUND")
        self.session_id = session_id


class RecordingNotFoundError(ArtifactMissingError):
    """Raised when a recording is not found."""

    def __init__(self, recording_id: str):
        super().__init__("Recording", recording_id, "RECORDING_NOT_FOUND")
        self.recording_id = recording_id


class RecordingFileMissingError(ArtifactMissingError):
    """Raised when a recording has neither a local file nor a remote URL."""

    def __init__(self, recording_id: str):
        super().__init__("Recording file", recording_id, "RECORDING_FILE_MISSING")
        self.recording_id = recording_id


# Lifecycle exceptions
class InvalidTransitionError(DomainError):
    """Raised when a lifecycle transition is not allowed from the current state."""

    def __init__(self, session_id: str, current_status: str, transition: str, reason: str = None):
        message = f"Cannot {transition} session {session_id} while it is {current_status}"
        if reason:
            message += f": {reason}"
        super().__init__(
            message,
            "INVALID_TRANSITION",
            {
                "session_id": session_id,
                "current_status": current_status,
                "transition": transition,
            },
        )
        self.session_id = session_id
        self.current_status = current_status
        self.transition = transition


class ConcurrentModificationError(DomainError):
    """Raised when a session's status no longer matches the expected prior state."""

    def __init__(self, session_id: str, expected_status: str, transition: str, cause: str = None):
        message = (
            f"Session {session_id} changed concurrently; "
            f"expected {expected_status} before {transition}"
        )
        details = {
            "session_id": session_id,
            "expected_status": expected_status,
            "transition": transition,
        }
        if cause:
            details["cause"] = cause
        super().__init__(message, "CONCURRENT_MODIFICATION", details)
        self.session_id = session_id
        self.expected_status = expected_status
        self.transition = transition


class BusinessRuleViolationError(DomainError):
    """Raised when a business rule is violated."""

    def __init__(self, rule: str, details: str = None):
        message = f"Business rule violation: {rule}"
        if details:
            message += f" - {details}"
        super().__init__(message, "BUSINESS_RULE_VIOLATION", {"rule": rule})
        self.rule = rule


# Recording exceptions
class RepairFailedError(DomainError):
    """Raised when every container repair strategy was exhausted.

    Non-fatal: the artifact stays reachable in its original form.
    """

    def __init__(self, recording_id: str, reason: str, fallback_url: Optional[str] = None):
        message = f"Container repair failed for recording {recording_id}: {reason}"
        details = {"recording_id": recording_id, "cause": reason}
        if fallback_url:
            details["fallback_url"] = fallback_url
        super().__init__(message, "REPAIR_FAILED", details)
        self.recording_id = recording_id
        self.reason = reason
        self.fallback_url = fallback_url


class UnsupportedMediaTypeError(DomainError):
    """Raised when an uploaded file is not a video."""

    def __init__(self, content_type: str):
        super().__init__(
            f"Media type {content_type} is not supported, only video files are accepted",
            "UNSUPPORTED_MEDIA_TYPE",
            {"content_type": content_type},
        )
        self.content_type = content_type


class UploadTooLargeError(DomainError):
    """Raised when an upload exceeds the size limit."""

    def __init__(self, size_mb: float, max_size_mb: float):
        message = f"Upload size {size_mb:.1f}MB exceeds limit of {max_size_mb}MB"
        super().__init__(message, "UPLOAD_TOO_LARGE", {"max_size_mb": max_size_mb})
        self.size_mb = size_mb
        self.max_size_mb = max_size_mb
