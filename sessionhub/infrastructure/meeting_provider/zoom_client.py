"""Zoom meeting provider client.

This module talks to the Zoom REST API with server-to-server OAuth. Every
call carries a timeout; transient failures (transport errors, 429, 5xx)
are retried with exponential backoff, authentication failures never are.
"""

import asyncio
from datetime import (
    UTC,
    datetime,
)
from pathlib import Path
from typing import (
    Any,
    Dict,
    Iterable,
    List,
    Optional,
)

import aiofiles
import httpx

from sessionhub.core.logging import logger
from sessionhub.domain.exceptions import (
    ProviderAuthenticationError,
    ProviderUnavailableError,
)
from sessionhub.domain.providers import (
    MeetingProviderInterface,
    ProviderMeeting,
    ProviderRecording,
)

TOKEN_EXPIRY_BUFFER_SECONDS = 60
SCHEDULED_MEETING_TYPE = 2
AUTH_STATUS_CODES = (401, 403)
DEFAULT_MEETING_SETTINGS = {
    "host_video": True,
    "participant_video": True,
    "join_before_host": True,
    "mute_upon_entry": True,
    "waiting_room": False,
    "auto_recording": "cloud",
    "allow_multiple_devices": True,
}


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value).astimezone(UTC)


def _format_time(value: datetime) -> str:
    return value.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


class ZoomMeetingProvider(MeetingProviderInterface):
    """Zoom implementation of the meeting provider."""

    def __init__(
        self,
        account_id: str,
        client_id: str,
        client_secret: str,
        base_url: str = "https://api.zoom.us/v2",
        token_url: str = "https://zoom.us/oauth/token",
        timeout: float = 15.0,
        max_retries: int = 3,
        retry_base_delay: float = 0.5,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the Zoom client.

        Args:
            account_id: Zoom account ID
            client_id: Server-to-server OAuth client ID
            client_secret: Server-to-server OAuth client secret
            base_url: REST API base URL
            token_url: OAuth token endpoint
            timeout: Per request timeout in seconds
            max_retries: Retries after the first attempt for transient failures
            retry_base_delay: Base delay for exponential backoff
            transport: Optional httpx transport, used to stub the network
        """
        self.account_id = account_id
        self.client_id = client_id
        self.client_secret = client_secret
        self.base_url = base_url.rstrip("/")
        self.token_url = token_url
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._access_token: Optional[str] = None
        self._token_expires_at: float = 0.0
        self._token_lock = asyncio.Lock()

    @property
    def client(self) -> httpx.AsyncClient:
        """Shared HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._client

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _get_access_token(self) -> str:
        """Fetch or reuse the account-level OAuth token."""
        async with self._token_lock:
            loop_time = asyncio.get_running_loop().time()
            if self._access_token and loop_time < self._token_expires_at:
                return self._access_token

            response = await self.client.post(
                self.token_url,
                params={"grant_type": "account_credentials", "account_id": self.account_id},
                auth=(self.client_id, self.client_secret),
            )
            if response.status_code in AUTH_STATUS_CODES or response.status_code == 400:
                logger.error("zoom_token_rejected", status_code=response.status_code)
                raise ProviderAuthenticationError("authenticate", response.status_code)
            if response.status_code >= 400:
                raise ProviderUnavailableError(
                    "authenticate",
                    f"token endpoint returned HTTP {response.status_code}",
                    status_code=response.status_code,
                )

            payload = response.json()
            self._access_token = payload["access_token"]
            self._token_expires_at = (
                loop_time + int(payload.get("expires_in", 3600)) - TOKEN_EXPIRY_BUFFER_SECONDS
            )
            logger.info("zoom_token_acquired", expires_in=payload.get("expires_in"))
            return self._access_token

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        json: Optional[Dict[str, Any]] = None,
        missing_ok: Iterable[int] = (),
    ) -> Optional[httpx.Response]:
        """Send an API request with retries.

        Args:
            method: HTTP method
            path: Path below the API base URL
            operation: Operation name for logs and errors
            json: Optional JSON body
            missing_ok: Status codes that mean "nothing there" and yield None

        Returns:
            Optional[httpx.Response]: The successful response, or None for ``missing_ok``

        Raises:
            ProviderAuthenticationError: If Zoom rejects the credentials
            ProviderUnavailableError: If the call keeps failing or is rejected
        """
        last_error = "no attempt made"
        for attempt in range(self.max_retries + 1):
            try:
                token = await self._get_access_token()
                response = await self.client.request(
                    method,
                    f"{self.base_url}{path}",
                    json=json,
                    headers={"Authorization": f"Bearer {token}"},
                )
            except httpx.TransportError as e:
                last_error = f"{type(e).__name__}: {e}"
            else:
                status = response.status_code
                if status in AUTH_STATUS_CODES:
                    logger.error("zoom_request_unauthorized", operation=operation, status_code=status)
                    raise ProviderAuthenticationError(operation, status)
                if status in missing_ok:
                    return None
                if status < 400:
                    return response
                if status != 429 and status < 500:
                    raise ProviderUnavailableError(
                        operation, self._error_message(response), status_code=status
                    )
                last_error = f"HTTP {status}"

            if attempt < self.max_retries:
                delay = self.retry_base_delay * (2 ** attempt)
                logger.warning(
                    "zoom_request_retrying",
                    operation=operation,
                    attempt=attempt + 1,
                    delay=delay,
                    error=last_error,
                )
                await asyncio.sleep(delay)

        logger.error("zoom_request_failed", operation=operation, error=last_error)
        raise ProviderUnavailableError(operation, last_error)

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return f"HTTP {response.status_code}"
        return f"HTTP {response.status_code}: {body.get('message', 'unknown error')}"

    @staticmethod
    def _meeting_from_payload(payload: Dict[str, Any]) -> ProviderMeeting:
        return ProviderMeeting(
            meeting_id=str(payload["id"]),
            join_url=payload["join_url"],
            start_url=payload.get("start_url"),
            password=payload.get("password"),
        )

    async def create_meeting(
        self,
        topic: str,
        start_time: datetime,
        duration: int,
        timezone: str = "UTC",
        agenda: str = "",
    ) -> ProviderMeeting:
        """Create a scheduled Zoom meeting with cloud recording on."""
        response = await self._request(
            "POST",
            "/users/me/meetings",
            "create_meeting",
            json={
                "topic": topic,
                "type": SCHEDULED_MEETING_TYPE,
                "start_time": _format_time(start_time),
                "duration": duration,
                "timezone": timezone,
                "agenda": agenda,
                "settings": DEFAULT_MEETING_SETTINGS,
            },
        )
        meeting = self._meeting_from_payload(response.json())
        logger.info("zoom_meeting_created", meeting_id=meeting.meeting_id)
        return meeting

    async def get_meeting(self, meeting_id: str) -> ProviderMeeting:
        """Fetch a Zoom meeting."""
        response = await self._request("GET", f"/meetings/{meeting_id}", "get_meeting")
        return self._meeting_from_payload(response.json())

    async def update_meeting(
        self,
        meeting_id: str,
        topic: Optional[str] = None,
        start_time: Optional[datetime] = None,
        duration: Optional[int] = None,
        timezone: Optional[str] = None,
    ) -> None:
        """Patch topic and time window of a Zoom meeting."""
        body: Dict[str, Any] = {}
        if topic is not None:
            body["topic"] = topic
        if start_time is not None:
            body["start_time"] = _format_time(start_time)
        if duration is not None:
            body["duration"] = duration
        if timezone is not None:
            body["timezone"] = timezone
        if not body:
            return
        await self._request("PATCH", f"/meetings/{meeting_id}", "update_meeting", json=body)
        logger.info("zoom_meeting_updated", meeting_id=meeting_id, fields=sorted(body))

    async def delete_meeting(self, meeting_id: str) -> None:
        """Delete a Zoom meeting. A meeting that is already gone counts as deleted."""
        await self._request(
            "DELETE", f"/meetings/{meeting_id}", "delete_meeting", missing_ok=(404,)
        )
        logger.info("zoom_meeting_deleted", meeting_id=meeting_id)

    async def end_meeting(self, meeting_id: str) -> None:
        """End a running Zoom meeting.

        Zoom answers 400/404 for meetings that are not in progress; there is
        nothing left to end in that case.
        """
        await self._request(
            "PUT",
            f"/meetings/{meeting_id}/status",
            "end_meeting",
            json={"action": "end"},
            missing_ok=(400, 404),
        )

    async def list_recordings(self, meeting_id: str) -> List[ProviderRecording]:
        """List the cloud recording files of a meeting."""
        response = await self._request(
            "GET", f"/meetings/{meeting_id}/recordings", "list_recordings", missing_ok=(404,)
        )
        if response is None:
            return []

        payload = response.json()
        return [
            ProviderRecording(
                recording_id=str(item["id"]),
                meeting_id=str(item.get("meeting_id") or meeting_id),
                file_type=item.get("file_type", ""),
                recording_start=_parse_time(item.get("recording_start")),
                recording_end=_parse_time(item.get("recording_end")),
                file_size=int(item.get("file_size") or 0),
                play_url=item.get("play_url"),
                download_url=item.get("download_url"),
                topic=payload.get("topic"),
            )
            for item in payload.get("recording_files", [])
            if item.get("id")
        ]

    async def download_recording(self, download_url: str, destination: Path) -> int:
        """Stream a recording file to disk.

        The file is written next to ``destination`` and moved into place
        once complete, so a failed download never leaves a partial artifact.
        """
        destination.parent.mkdir(parents=True, exist_ok=True)
        partial = destination.with_name(destination.name + ".part")
        token = await self._get_access_token()
        written = 0
        try:
            async with self.client.stream(
                "GET",
                download_url,
                headers={"Authorization": f"Bearer {token}"},
                follow_redirects=True,
            ) as response:
                if response.status_code in AUTH_STATUS_CODES:
                    raise ProviderAuthenticationError("download_recording", response.status_code)
                if response.status_code >= 400:
                    raise ProviderUnavailableError(
                        "download_recording",
                        f"HTTP {response.status_code}",
                        status_code=response.status_code,
                    )
                async with aiofiles.open(partial, "wb") as fh:
                    async for chunk in response.aiter_bytes():
                        await fh.write(chunk)
                        written += len(chunk)
        except httpx.TransportError as e:
            partial.unlink(missing_ok=True)
            raise ProviderUnavailableError("download_recording", str(e)) from e
        except ProviderUnavailableError:
            partial.unlink(missing_ok=True)
            raise

        partial.replace(destination)
        logger.info("zoom_recording_downloaded", destination=str(destination), bytes=written)
        return written
