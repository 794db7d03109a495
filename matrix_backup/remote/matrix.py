"""
Matrix client-server API event source.

Reads room timelines from a Matrix homeserver using the
``/_matrix/client/v3`` endpoints:

- ``GET /account/whoami`` to verify the access token
- ``GET /joined_rooms`` to list rooms
- ``GET /rooms/{roomId}/state/{eventType}`` to find a room label
- ``GET /rooms/{roomId}/messages`` to page through the timeline
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import aiohttp

from ..exceptions import BackupError, MatrixHTTPError, RemoteConnectionError
from ..logging_utils import get_backup_logger
from ..types import Event, EventPage, SessionInfo
from .base import DIRECTION_FORWARD, EventSource

CLIENT_API_PREFIX = "/_matrix/client/v3"

# State events consulted for a room label, in order of preference
LABEL_STATE_EVENTS = (
    ("m.room.canonical_alias", "alias"),
    ("m.room.name", "name"),
)

# Transport failures surfaced as RemoteConnectionError
TRANSPORT_ERRORS = (
    aiohttp.ClientConnectionError,
    aiohttp.ClientPayloadError,
    TimeoutError,
)


class MatrixEventSource(EventSource):
    """Event source backed by a Matrix homeserver.

    Example:
        >>> async with MatrixEventSource(
        ...     homeserver="https://matrix.example.org",
        ...     user_id="@alice:example.org",
        ...     access_token="syt_...",
        ... ) as source:
        ...     info = await source.verify_session()
        ...     rooms = await source.list_rooms()
    """

    def __init__(
        self,
        homeserver: str,
        user_id: str,
        access_token: str,
        device_id: str | None = None,
        request_timeout: float = 30.0,
        session: aiohttp.ClientSession | None = None,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        """Initialize the event source.

        Args:
            homeserver: Base URL of the homeserver
            user_id: Matrix user ID the token belongs to
            access_token: Access token sent as a bearer token
            device_id: Expected device ID (optional)
            request_timeout: Total timeout per request, in seconds
            session: Existing aiohttp session to reuse (not closed by us)
            logger: Logger for lookups that fail without raising
        """
        self.homeserver = homeserver.rstrip("/")
        self.user_id = user_id
        self.access_token = access_token
        self.device_id = device_id or None
        self.request_timeout = request_timeout
        self.logger = logger or get_backup_logger("matrix")

        self._session = session
        self._owns_session = session is None

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    async def verify_session(self) -> SessionInfo:
        body = await self._get("/account/whoami")
        user_id = body.get("user_id")
        if not isinstance(user_id, str):
            raise BackupError("Invalid whoami response: missing user_id")

        device_id = body.get("device_id")
        if self.device_id and device_id and device_id != self.device_id:
            self.logger.warning(
                "Logged in with different device ID than specified",
                extra={"expected": self.device_id, "actual": device_id},
            )
        if device_id:
            self.device_id = device_id

        return SessionInfo(user_id=user_id, device_id=device_id)

    async def list_rooms(self) -> list[str]:
        body = await self._get("/joined_rooms")
        rooms = body.get("joined_rooms", [])
        if not isinstance(rooms, list):
            raise BackupError("Invalid joined_rooms response")
        return [room for room in rooms if isinstance(room, str)]

    async def resolve_label(self, room_id: str) -> str:
        for event_type, key in LABEL_STATE_EVENTS:
            try:
                content = await self._get(f"/rooms/{_quote(room_id)}/state/{event_type}")
            except MatrixHTTPError as e:
                if not e.is_not_found:
                    self.logger.warning(
                        f"Failed to get {event_type}",
                        extra={"room_id": room_id, "error": str(e)},
                    )
                continue
            except RemoteConnectionError as e:
                self.logger.warning(
                    f"Failed to get {event_type}",
                    extra={"room_id": room_id, "error": str(e)},
                )
                continue

            value = content.get(key)
            if isinstance(value, str) and value:
                self.logger.debug(f"Using {key} as room label", extra={"label": value})
                return value

        self.logger.debug("Using room ID as label", extra={"room_id": room_id})
        return room_id

    async def fetch_page(
        self,
        room_id: str,
        token: str,
        limit: int,
        direction: str = DIRECTION_FORWARD,
    ) -> EventPage:
        params: dict[str, str] = {"dir": direction, "limit": str(limit)}
        if token:
            params["from"] = token

        body = await self._get(f"/rooms/{_quote(room_id)}/messages", params)
        chunk = body.get("chunk") or []
        if not isinstance(chunk, list):
            raise BackupError(f"Invalid messages response for room {room_id}")

        try:
            events = [Event.from_dict(raw) for raw in chunk]
        except ValueError as e:
            raise BackupError(f"Malformed event in room {room_id}: {e}") from e

        return EventPage(events=events, start_token=body.get("start"), end_token=body.get("end"))

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.request_timeout)
            )
            self._owns_session = True
        return self._session

    async def _get(self, path: str, params: dict[str, str] | None = None) -> dict[str, Any]:
        """GET a client API endpoint and return the decoded JSON body.

        Raises:
            MatrixHTTPError: On a non-2xx response
            RemoteConnectionError: On transport failures
        """
        url = f"{self.homeserver}{CLIENT_API_PREFIX}{path}"
        headers = {"Authorization": f"Bearer {self.access_token}"}
        session = self._get_session()

        try:
            async with session.get(url, params=params, headers=headers) as response:
                body = await _read_json_body(response)
                if response.status >= 300:
                    raise MatrixHTTPError(
                        response.status,
                        errcode=body.get("errcode"),
                        error=body.get("error"),
                        endpoint=path,
                    )
        except TRANSPORT_ERRORS as e:
            raise RemoteConnectionError(url, e) from e

        return body


async def _read_json_body(response: aiohttp.ClientResponse) -> dict[str, Any]:
    try:
        body = await response.json(content_type=None)
    except ValueError:
        # Error pages from proxies are often HTML
        return {}
    return body if isinstance(body, dict) else {}


def _quote(segment: str) -> str:
    return quote(segment, safe="")
