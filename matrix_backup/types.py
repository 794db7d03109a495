"""
Core data types for matrix-backup.

Defines the event record mirrored from the homeserver, the page
returned by a single remote request, the on-disk identity of a room
directory, and the result objects produced by the sync engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Any

from .sanitization import sanitize_filename

# Separates the sanitized label from the room ID in directory names
ROOM_DIR_SEPARATOR = ":"

# Matrix room IDs always start with this sigil
ROOM_ID_SIGIL = "!"

MS_PER_DAY = 86_400_000

# The Gregorian calendar repeats every 400 years
DAYS_PER_400_YEARS = 146_097

_EPOCH = date(1970, 1, 1)


def utc_date_key(timestamp_ms: int) -> str:
    """Format a millisecond Unix timestamp as its UTC ``YYYY-MM-DD`` day.

    ``datetime`` stops at year 9999, so the day is folded into the
    first 400-year cycle after the epoch and the cycles added back to
    the year.
    """
    cycles, day_in_cycle = divmod(timestamp_ms // MS_PER_DAY, DAYS_PER_400_YEARS)
    day = _EPOCH + timedelta(days=day_in_cycle)
    year = day.year + 400 * cycles
    sign = "-" if year < 0 else ""
    return f"{sign}{abs(year):04d}-{day.month:02d}-{day.day:02d}"


@dataclass
class Event:
    """A single immutable event from a room timeline.

    The raw event document is kept verbatim in ``payload``; the ID and
    timestamp are lifted out for deduplication and day bucketing.
    """

    event_id: str
    timestamp_ms: int
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def date_key(self) -> str:
        """UTC calendar date of the event as ``YYYY-MM-DD``.

        Works for any millisecond timestamp; years beyond 9999 get more
        digits and years before 1 a leading ``-``.
        """
        return utc_date_key(self.timestamp_ms)

    def to_dict(self) -> dict[str, Any]:
        """Serialize back to the raw Matrix event shape."""
        data = dict(self.payload)
        data["event_id"] = self.event_id
        data["origin_server_ts"] = self.timestamp_ms
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Event:
        """Build an event from a raw Matrix event document.

        Raises:
            ValueError: If the document lacks a usable ID or timestamp
        """
        if not isinstance(data, dict):
            raise ValueError(f"Event must be an object, got {type(data).__name__}")
        event_id = data.get("event_id")
        if not isinstance(event_id, str) or not event_id:
            raise ValueError("Event is missing 'event_id'")
        timestamp = data.get("origin_server_ts")
        if isinstance(timestamp, bool) or not isinstance(timestamp, int):
            raise ValueError(f"Event {event_id} has invalid 'origin_server_ts'")
        return cls(event_id=event_id, timestamp_ms=timestamp, payload=dict(data))


@dataclass
class EventPage:
    """One page of events returned by a paged remote request."""

    events: list[Event]
    start_token: str | None = None
    end_token: str | None = None

    def __len__(self) -> int:
        return len(self.events)


@dataclass
class SessionInfo:
    """Identity reported by the remote source for the current session."""

    user_id: str
    device_id: str | None = None


@dataclass
class RoomDirectory:
    """On-disk identity of a room backup.

    ``room_id`` is stable; ``label`` is the human-readable name, which
    may change between runs.
    """

    room_id: str
    label: str

    @property
    def sanitized_label(self) -> str:
        return sanitize_filename(self.label)

    @property
    def directory_name(self) -> str:
        return self.sanitized_label + ROOM_DIR_SEPARATOR + self.room_id

    def path_in(self, backup_root: Path) -> Path:
        return backup_root / self.directory_name


def extract_room_id(directory_name: str) -> str | None:
    """Extract the room ID from a room directory name.

    The last ``:!`` marks the start of the room ID; everything before
    it is the sanitized label (which never contains ``:``).

    Returns:
        Room ID, or None if the name does not look like a room directory
    """
    marker = ROOM_DIR_SEPARATOR + ROOM_ID_SIGIL
    index = directory_name.rfind(marker)
    if index == -1:
        return None
    return directory_name[index + len(ROOM_DIR_SEPARATOR) :]


@dataclass
class MergeStats:
    """Outcome of merging a batch of events into the event store."""

    dates_written: list[str] = field(default_factory=list)
    events_merged: int = 0
    recovered_shards: list[str] = field(default_factory=list)


@dataclass
class FetchResult:
    """Outcome of running the fetch loop for one room.

    ``final_token`` is always safe to persist: it never points past a
    page whose events were not merged.
    """

    final_token: str
    total_fetched: int = 0
    pages: int = 0
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class RoomSyncState(Enum):
    """Stages of the per-room sync state machine."""

    RESOLVE_LABEL = "resolve_label"
    ENSURE_DIRECTORY = "ensure_directory"
    MIGRATE_OLD = "migrate_old"
    LOAD_CHECKPOINT = "load_checkpoint"
    FETCHING = "fetching"
    DONE = "done"
    FAILED = "failed"


class RoomBackupStatus(Enum):
    """Final status of a room backup."""

    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class RoomBackupResult:
    """Result of backing up a single room."""

    room_id: str
    status: RoomBackupStatus
    directory_name: str | None = None
    events_fetched: int = 0
    final_token: str | None = None
    checkpoint_saved: bool = False
    failed_state: RoomSyncState | None = None
    error: Exception | None = None
    migration_errors: list[str] = field(default_factory=list)

    # Timing
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def duration_seconds(self) -> float | None:
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "room_id": self.room_id,
            "status": self.status.value,
            "directory_name": self.directory_name,
            "events_fetched": self.events_fetched,
            "final_token": self.final_token,
            "checkpoint_saved": self.checkpoint_saved,
            "failed_state": self.failed_state.value if self.failed_state else None,
            "error": str(self.error) if self.error else None,
            "migration_errors": self.migration_errors,
            "duration_seconds": self.duration_seconds,
        }


@dataclass
class BackupRunResult:
    """Aggregate result of backing up every joined room."""

    results: list[RoomBackupResult] = field(default_factory=list)
    cancelled: bool = False
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def failed_rooms(self) -> list[RoomBackupResult]:
        return [r for r in self.results if r.status != RoomBackupStatus.COMPLETED]

    @property
    def success(self) -> bool:
        return not self.failed_rooms and not self.cancelled

    @property
    def total_events(self) -> int:
        return sum(r.events_fetched for r in self.results)

    def add_result(self, result: RoomBackupResult) -> None:
        self.results.append(result)
