"""Domain layer for SessionHub.

This package contains the core business logic and domain models.
It is independent of any external dependencies like databases or APIs.
"""

from . import entities, providers, repositories, services
from .exceptions import (
    ArtifactMissingError,
    AuthExpiredError,
    ConcurrentModificationError,
    DomainError,
    InvalidTransitionError,
    ProviderUnavailableError,
    RecordingNotFoundError,
    RepairFailedError,
    SessionNotFoundError,
    UnauthenticatedError,
    ValidationError,
)

__all__ = [
    "entities",
    "providers",
    "repositories",
    "services",
    # Exceptions
    "DomainError",
    "ValidationError",
    "ProviderUnavailableError",
    "AuthExpiredError",
    "UnauthenticatedError",
    "ArtifactMissingError",
    "SessionNotFoundError",
    "RecordingNotFoundError",
    "RepairFailedError",
    "ConcurrentModificationError",
    "InvalidTransitionError",
]
