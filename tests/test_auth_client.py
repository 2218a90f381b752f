"""Tests for the API client and its token refresh protocol."""

from typing import (
    Callable,
    List,
)

import httpx
import pytest

from sessionhub.client import (
    AuthSession,
    Credentials,
    SessionHubClient,
    with_token_refresh,
)
from sessionhub.domain.exceptions import UnauthenticatedError

BASE_URL = "https://api.test"
REFRESH_PATH = "/api/v1/auth/refresh-token"


class FakeServer:
    """Answers like the API: 401 unless the bearer token is the current one."""

    def __init__(self, valid_token: str = "fresh-access", refresh_status: int = 200, refresh_body: bytes = None):
        self.valid_token = valid_token
        self.refresh_status = refresh_status
        self.refresh_body = refresh_body
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == REFRESH_PATH:
            if self.refresh_status != 200:
                return httpx.Response(self.refresh_status, json={"success": False, "error": "UNAUTHENTICATED"})
            if self.refresh_body is not None:
                return httpx.Response(200, content=self.refresh_body, headers={"Content-Type": "text/html"})
            return httpx.Response(
                200,
                json={"data": {"access_token": self.valid_token, "refresh_token": "fresh-refresh"}},
            )
        if request.headers.get("Authorization") != f"Bearer {self.valid_token}":
            return httpx.Response(401, json={"success": False, "error": "AUTH_EXPIRED"})
        return httpx.Response(200, json={"success": True, "data": {"id": "session-1", "status": "live"}})

    def paths(self) -> List[str]:
        return [request.url.path for request in self.requests]


def make_client(server: FakeServer, credentials: Credentials, on_unauthenticated: Callable = None):
    return SessionHubClient(
        BASE_URL,
        credentials=credentials,
        on_unauthenticated=on_unauthenticated,
        transport=httpx.MockTransport(server),
    )


class TestCredentials:
    """Test suite for the credential pair."""

    def test_header(self):
        assert Credentials("abc").authorization_header() == "Bearer abc"
        assert Credentials().authorization_header() is None
        assert Credentials().is_empty

    @pytest.mark.asyncio
    async def test_refresh_without_token(self):
        async def exchange(token):
            raise AssertionError("must not be called")

        with pytest.raises(UnauthenticatedError):
            await Credentials("abc").refresh(exchange)

    @pytest.mark.asyncio
    async def test_refresh_returns_new_pair(self):
        async def exchange(token):
            return f"access-for-{token}", "next-refresh"

        old = Credentials("stale", "r1")
        new = await old.refresh(exchange)

        assert new == Credentials("access-for-r1", "next-refresh")
        assert old.access_token == "stale"


class TestTokenRefresh:
    """Test suite for the refresh-and-replay protocol."""

    @pytest.mark.asyncio
    async def test_valid_token_is_sent(self):
        server = FakeServer(valid_token="fresh-access")
        async with make_client(server, Credentials("fresh-access", "r1")) as client:
            session = await client.get_session("session-1")

        assert session["status"] == "live"
        assert server.paths() == ["/api/v1/sessions/session-1"]

    @pytest.mark.asyncio
    async def test_expired_token_is_refreshed_once_and_replayed(self):
        server = FakeServer()
        async with make_client(server, Credentials("stale-access", "r1")) as client:
            session = await client.start_session("session-1")

            assert session["id"] == "session-1"
            assert client.credentials == Credentials("fresh-access", "fresh-refresh")

        assert server.paths() == [
            "/api/v1/sessions/session-1/start",
            REFRESH_PATH,
            "/api/v1/sessions/session-1/start",
        ]
        assert server.requests[2].headers["Authorization"] == "Bearer fresh-access"
        assert server.requests[2].method == "POST"

    @pytest.mark.asyncio
    async def test_no_refresh_token_clears_credentials(self):
        server = FakeServer()
        signals = []
        async with make_client(server, Credentials("stale-access"), lambda: signals.append(1)) as client:
            with pytest.raises(UnauthenticatedError):
                await client.get_session("session-1")

            assert client.credentials.is_empty

        assert signals == [1]
        assert server.paths() == ["/api/v1/sessions/session-1"]

    @pytest.mark.asyncio
    async def test_rejected_refresh_clears_credentials(self):
        server = FakeServer(refresh_status=401)
        signals = []
        async with make_client(server, Credentials("stale-access", "revoked"), lambda: signals.append(1)) as client:
            with pytest.raises(UnauthenticatedError):
                await client.join_session("session-1")

            assert client.credentials.is_empty

        assert signals == [1]
        assert server.paths() == ["/api/v1/sessions/session-1/join", REFRESH_PATH]

    @pytest.mark.asyncio
    async def test_unreadable_refresh_body_clears_credentials(self):
        server = FakeServer(refresh_body=b"<html>gateway error</html>")
        signals = []
        async with make_client(server, Credentials("stale-access", "r1"), lambda: signals.append(1)) as client:
            with pytest.raises(UnauthenticatedError):
                await client.get_session("session-1")

            assert client.credentials.is_empty

        assert signals == [1]
        assert server.paths() == ["/api/v1/sessions/session-1", REFRESH_PATH]

    @pytest.mark.asyncio
    async def test_401_after_refresh_is_not_retried_again(self):
        server = FakeServer(valid_token="never-matches")

        async def exchange(token):
            return "still-wrong", "r2"

        session = AuthSession(Credentials("stale", "r1"))
        middleware = with_token_refresh(session, exchange)
        transport = httpx.MockTransport(server)

        async with httpx.AsyncClient(base_url=BASE_URL, transport=transport) as http:
            request = http.build_request("GET", "/api/v1/sessions")
            with pytest.raises(UnauthenticatedError):
                await middleware(request, http.send)

        assert len(server.requests) == 2
        assert session.credentials.is_empty

    @pytest.mark.asyncio
    async def test_network_error_during_refresh(self):
        async def exchange(token):
            raise httpx.ConnectError("connection refused")

        server = FakeServer()
        session = AuthSession(Credentials("stale", "r1"))
        middleware = with_token_refresh(session, exchange)

        async with httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(server)) as http:
            with pytest.raises(UnauthenticatedError):
                await middleware(http.build_request("GET", "/api/v1/sessions"), http.send)

        assert session.credentials.is_empty

    @pytest.mark.asyncio
    async def test_requests_without_token_carry_no_header(self):
        server = FakeServer()
        async with make_client(server, Credentials(None, "r1")) as client:
            await client.list_sessions(course_id="course-1")

        assert "Authorization" not in server.requests[0].headers
        assert server.requests[0].url.params["course_id"] == "course-1"
        assert len(server.requests) == 3
