"""
Remote event source abstract interface.

Defines the contract the sync engine needs from the server that hosts
the room timelines.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from types import TracebackType

from ..types import EventPage, SessionInfo

DIRECTION_FORWARD = "f"
DIRECTION_BACKWARD = "b"


class EventSource(ABC):
    """Abstract source of room timelines.

    Implementations handle authentication and transport. The sync
    engine only relies on:
    - Verifying the session before any room is synced
    - Listing the rooms to back up
    - Resolving a human-readable label for a room
    - Fetching one page of events at a time
    """

    @abstractmethod
    async def verify_session(self) -> SessionInfo:
        """Check that the configured credentials are accepted.

        Raises:
            MatrixHTTPError: If the server rejects the request
            Exception: Transport errors are passed through for classification
        """
        ...

    @abstractmethod
    async def list_rooms(self) -> list[str]:
        """List the IDs of the rooms to back up."""
        ...

    @abstractmethod
    async def resolve_label(self, room_id: str) -> str:
        """Get a human-readable label for a room.

        Best-effort: falls back to the room ID itself when no label can
        be determined. Should not raise for lookup failures.
        """
        ...

    @abstractmethod
    async def fetch_page(
        self,
        room_id: str,
        token: str,
        limit: int,
        direction: str = DIRECTION_FORWARD,
    ) -> EventPage:
        """Fetch one page of a room timeline.

        Args:
            room_id: Room to read
            token: Pagination token to start from ("" for start of history)
            limit: Maximum number of events to return
            direction: DIRECTION_FORWARD or DIRECTION_BACKWARD

        Returns:
            Page with the events and its start/end tokens
        """
        ...

    async def close(self) -> None:
        """Release network resources. No-op by default."""

    async def __aenter__(self) -> EventSource:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()
