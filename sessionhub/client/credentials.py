"""Credential pair held by API clients."""

from dataclasses import dataclass
from typing import (
    Awaitable,
    Callable,
    Optional,
    Tuple,
)

from sessionhub.domain.exceptions import UnauthenticatedError

TokenExchange = Callable[[str], Awaitable[Tuple[str, str]]]


@dataclass(frozen=True)
class Credentials:
    """An access/refresh token pair.

    Instances are immutable; refreshing returns a new pair and leaves this
    one untouched.
    """

    access_token: Optional[str] = None
    refresh_token: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        """Whether no token is held at all."""
        return not self.access_token and not self.refresh_token

    @property
    def can_refresh(self) -> bool:
        """Whether a refresh token is held."""
        return bool(self.refresh_token)

    def authorization_header(self) -> Optional[str]:
        """Value for the ``Authorization`` header, None without an access token."""
        if not self.access_token:
            return None
        return f"Bearer {self.access_token}"

    async def refresh(self, exchange: TokenExchange) -> "Credentials":
        """Trade the refresh token for a new pair.

        Args:
            exchange: Coroutine that posts the refresh token and returns the
                new ``(access_token, refresh_token)``

        Returns:
            Credentials: The new pair

        Raises:
            UnauthenticatedError: If no refresh token is held or the exchange
                was rejected
        """
        if not self.refresh_token:
            raise UnauthenticatedError("No refresh token held")
        access_token, refresh_token = await exchange(self.refresh_token)
        return Credentials(access_token=access_token, refresh_token=refresh_token)
