"""Python client for the SessionHub API."""

from .auth_client import (
    AuthSession,
    SessionHubClient,
    with_token_refresh,
)
from .credentials import Credentials

__all__ = [
    "AuthSession",
    "Credentials",
    "SessionHubClient",
    "with_token_refresh",
]
