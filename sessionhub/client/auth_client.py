"""HTTP client for the SessionHub API with bounded token refresh.

Every request carries the held access token. A 401 answer triggers at most
one refresh and one replay of the original request; if that is not
possible the credentials are cleared and the caller is signalled.
"""

from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    List,
    Optional,
    Tuple,
)

import httpx

from sessionhub.client.credentials import (
    Credentials,
    TokenExchange,
)
from sessionhub.core.logging import logger
from sessionhub.domain.exceptions import UnauthenticatedError

Send = Callable[[httpx.Request], Awaitable[httpx.Response]]
Middleware = Callable[[httpx.Request, Send], Awaitable[httpx.Response]]


class AuthSession:
    """Holds the current credentials of one client.

    Args:
        credentials: Initial token pair
        on_unauthenticated: Called once each time the credentials are
            dropped, e.g. to send the user back to a login screen
    """

    def __init__(
        self,
        credentials: Optional[Credentials] = None,
        on_unauthenticated: Optional[Callable[[], None]] = None,
    ):
        self.credentials = credentials or Credentials()
        self.on_unauthenticated = on_unauthenticated

    def authorize(self, request: httpx.Request) -> httpx.Request:
        """Attach the bearer header, or drop a stale one when no token is held."""
        header = self.credentials.authorization_header()
        if header:
            request.headers["Authorization"] = header
        else:
            request.headers.pop("Authorization", None)
        return request

    def clear(self, reason: str) -> None:
        """Forget every token and signal that the user is unauthenticated."""
        self.credentials = Credentials()
        logger.info("client_credentials_cleared", reason=reason)
        if self.on_unauthenticated is not None:
            self.on_unauthenticated()


def with_token_refresh(session: AuthSession, exchange: TokenExchange) -> Middleware:
    """Wrap a transport call with the refresh-and-replay protocol.

    Args:
        session: Credential holder shared by the client
        exchange: Coroutine that trades a refresh token for a new pair

    Returns:
        Middleware: ``(request, send) -> response``
    """

    async def middleware(request: httpx.Request, send: Send) -> httpx.Response:
        response = await send(session.authorize(request))
        if response.status_code != 401:
            return response

        if not session.credentials.can_refresh:
            session.clear("unauthorized_without_refresh_token")
            raise UnauthenticatedError("Session expired, please sign in again")

        try:
            session.credentials = await session.credentials.refresh(exchange)
        except (UnauthenticatedError, httpx.HTTPError) as e:
            session.clear("refresh_failed")
            raise UnauthenticatedError("Session expired, please sign in again") from e

        logger.info("client_token_refreshed", method=request.method, url=str(request.url))
        replayed = await send(session.authorize(request))
        if replayed.status_code == 401:
            session.clear("unauthorized_after_refresh")
            raise UnauthenticatedError("Request rejected after token refresh")
        return replayed

    return middleware


class SessionHubClient:
    """Async client for the SessionHub HTTP API.

    Example:
        async with SessionHubClient("https://api.example.com", credentials) as client:
            session = await client.start_session(session_id)
    """

    def __init__(
        self,
        base_url: str,
        credentials: Optional[Credentials] = None,
        on_unauthenticated: Optional[Callable[[], None]] = None,
        api_prefix: str = "/api/v1",
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.auth = AuthSession(credentials, on_unauthenticated)
        self.api_prefix = api_prefix.rstrip("/")
        self._http = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)
        self._send = with_token_refresh(self.auth, self._exchange_refresh_token)

    @property
    def credentials(self) -> Credentials:
        """The token pair currently held."""
        return self.auth.credentials

    async def _exchange_refresh_token(self, refresh_token: str) -> Tuple[str, str]:
        # Sent directly so a rejected refresh never re-enters the middleware
        response = await self._http.post(
            f"{self.api_prefix}/auth/refresh-token", json={"refresh_token": refresh_token}
        )
        if response.status_code != 200:
            raise UnauthenticatedError(f"Token refresh rejected with {response.status_code}")
        try:
            body = response.json()
        except ValueError as e:
            raise UnauthenticatedError("Token refresh returned an unreadable body") from e
        data = (body.get("data") if isinstance(body, dict) else None) or {}
        if not isinstance(data, dict) or not data.get("access_token") or not data.get("refresh_token"):
            raise UnauthenticatedError("Token refresh returned no token pair")
        return data["access_token"], data["refresh_token"]

    async def request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Send a request through the refresh middleware.

        Raises:
            UnauthenticatedError: If the credentials could not be renewed
        """
        request = self._http.build_request(method, f"{self.api_prefix}{path}", **kwargs)
        return await self._send(request, self._http.send)

    async def _data(self, method: str, path: str, **kwargs: Any) -> Any:
        response = await self.request(method, path, **kwargs)
        response.raise_for_status()
        return response.json().get("data")

    async def create_session(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Schedule a session."""
        return await self._data("POST", "/sessions", json=payload)

    async def list_sessions(self, **filters: Any) -> List[Dict[str, Any]]:
        """List sessions; keyword arguments become query parameters."""
        params = {key: value for key, value in filters.items() if value is not None}
        return await self._data("GET", "/sessions", params=params)

    async def get_session(self, session_id: str) -> Dict[str, Any]:
        return await self._data("GET", f"/sessions/{session_id}")

    async def start_session(self, session_id: str) -> Dict[str, Any]:
        return await self._data("POST", f"/sessions/{session_id}/start")

    async def end_session(self, session_id: str) -> Dict[str, Any]:
        return await self._data("POST", f"/sessions/{session_id}/end")

    async def cancel_session(self, session_id: str) -> Dict[str, Any]:
        return await self._data("POST", f"/sessions/{session_id}/cancel")

    async def join_session(self, session_id: str) -> Dict[str, Any]:
        """Join a live session and return its join URL."""
        return await self._data("POST", f"/sessions/{session_id}/join")

    async def leave_session(self, session_id: str) -> Dict[str, Any]:
        return await self._data("POST", f"/sessions/{session_id}/leave")

    async def get_attendance(self, session_id: str) -> Dict[str, Any]:
        return await self._data("GET", f"/sessions/{session_id}/attendance")

    async def list_recordings(self, session_id: str) -> List[Dict[str, Any]]:
        return await self._data("GET", f"/sessions/{session_id}/recordings")

    async def check_recordings(self, session_id: str) -> Dict[str, Any]:
        """Ask the server to pull provider recordings for a session."""
        return await self._data("POST", f"/sessions/{session_id}/check-recordings")

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "SessionHubClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
