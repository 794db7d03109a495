"""
Shared test configuration and fixtures.

Provides an in-memory event source that serves pre-built timelines
page by page, plus helpers for building events and reading shards.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import pytest

from matrix_backup.remote.base import DIRECTION_FORWARD, EventSource
from matrix_backup.types import Event, EventPage, SessionInfo


def make_event(event_id: str, timestamp_ms: int, body: str = "hello", **extra: Any) -> Event:
    """Build a message event with the given ID and timestamp."""
    payload = {
        "event_id": event_id,
        "origin_server_ts": timestamp_ms,
        "type": "m.room.message",
        "sender": "@alice:example.org",
        "content": {"msgtype": "m.text", "body": body},
    }
    payload.update(extra)
    return Event.from_dict(payload)


def ts(year: int, month: int, day: int, hour: int = 12, minute: int = 0, second: int = 0, ms: int = 0) -> int:
    """UTC wall-clock time in milliseconds since the epoch."""
    moment = datetime(year, month, day, hour, minute, second, tzinfo=UTC)
    return int(moment.timestamp() * 1000) + ms


def read_shard_ids(path: Path) -> list[str]:
    """Event IDs stored in a shard file, in file order."""
    return [raw["event_id"] for raw in json.loads(path.read_text(encoding="utf-8"))]


class FakeEventSource(EventSource):
    """Event source serving scripted pages.

    ``timelines`` maps a room ID to a list of pages. Page ``i`` is
    served for token ``""`` (i == 0) or ``"t{i}"``, and reports
    ``"t{i+1}"`` as its end token. Once past the last page the source
    returns an empty page echoing the request token.

    Failures can be injected per room with ``fail_fetch`` (raise on the
    N-th call) and for the handshake with ``verify_errors``.
    """

    def __init__(
        self,
        timelines: dict[str, list[list[Event]]] | None = None,
        labels: dict[str, str] | None = None,
    ) -> None:
        self.timelines = timelines or {}
        self.labels = labels or {}
        self.fetch_calls: list[tuple[str, str, int, str]] = []
        self.verify_calls = 0
        self.verify_errors: list[Exception] = []
        self.fail_fetch: dict[str, tuple[int, Exception]] = {}
        self.list_rooms_error: Exception | None = None
        self.closed = False

    async def verify_session(self) -> SessionInfo:
        self.verify_calls += 1
        if self.verify_errors:
            raise self.verify_errors.pop(0)
        return SessionInfo(user_id="@alice:example.org", device_id="DEVICE")

    async def list_rooms(self) -> list[str]:
        if self.list_rooms_error is not None:
            raise self.list_rooms_error
        return list(self.timelines)

    async def resolve_label(self, room_id: str) -> str:
        return self.labels.get(room_id, room_id)

    async def fetch_page(
        self,
        room_id: str,
        token: str,
        limit: int,
        direction: str = DIRECTION_FORWARD,
    ) -> EventPage:
        self.fetch_calls.append((room_id, token, limit, direction))

        room_calls = sum(1 for call in self.fetch_calls if call[0] == room_id)
        if room_id in self.fail_fetch:
            fail_on, error = self.fail_fetch[room_id]
            if room_calls == fail_on:
                raise error

        pages = self.timelines.get(room_id, [])
        index = 0 if not token else int(token[1:])
        if index >= len(pages):
            return EventPage(events=[], start_token=token, end_token=token)
        return EventPage(events=list(pages[index]), start_token=token, end_token=f"t{index + 1}")

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def logger() -> logging.Logger:
    """Package logger at DEBUG so caplog sees every record."""
    log = logging.getLogger("matrix_backup.tests")
    log.setLevel(logging.DEBUG)
    return log


@pytest.fixture
def room_path(tmp_path: Path) -> Path:
    """Empty room directory inside a temporary backup root."""
    path = tmp_path / "General:!room1:example.org"
    path.mkdir()
    return path


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Drop handlers installed by configure_logging between tests."""
    yield
    logging.getLogger("matrix_backup").handlers.clear()
