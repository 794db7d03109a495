"""
Date-sharded event store.

Events of a room are kept in one JSON array per UTC calendar day:

    {room_path}/{YYYY-MM-DD}/data.json

Merging is idempotent: existing and new events are combined by event
ID (last observed copy wins) and written back sorted by timestamp, so
re-fetching an already stored page never duplicates data.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable
from pathlib import Path

from ..exceptions import DataDecodeError
from ..types import Event, MergeStats
from .file_ops import ensure_directory, read_json, write_json_atomic

SHARD_FILENAME = "data.json"


def shard_path(room_path: Path, date_key: str) -> Path:
    return room_path / date_key / SHARD_FILENAME


def group_by_date(events: Iterable[Event]) -> dict[str, list[Event]]:
    """Group events by UTC calendar date, keeping encounter order."""
    grouped: dict[str, list[Event]] = defaultdict(list)
    for event in events:
        grouped[event.date_key].append(event)
    return dict(grouped)


def decode_events(data: object, path: Path) -> list[Event]:
    """Decode a shard document into events.

    Raises:
        DataDecodeError: If the document is not a list of events
    """
    if not isinstance(data, list):
        raise DataDecodeError(
            "parse_events", str(path), ValueError("shard must be a JSON array")
        )
    try:
        return [Event.from_dict(item) for item in data]
    except ValueError as e:
        raise DataDecodeError("parse_events", str(path), e) from e


async def read_events_file(path: Path) -> list[Event] | None:
    """Read a file holding a JSON array of events.

    Returns:
        Decoded events, or None if the file doesn't exist

    Raises:
        DataDecodeError: If the file exists but cannot be decoded
        StorageIOError: If the file cannot be read
    """
    data = await read_json(path)
    if data is None:
        return None
    return decode_events(data, path)


def merge_events(existing: Iterable[Event], new: Iterable[Event]) -> list[Event]:
    """Combine two event sequences, deduplicated by ID.

    Later occurrences replace earlier ones. The result is stably
    sorted by timestamp.
    """
    by_id: dict[str, Event] = {}
    for event in existing:
        by_id[event.event_id] = event
    for event in new:
        by_id[event.event_id] = event

    merged = list(by_id.values())
    merged.sort(key=lambda e: e.timestamp_ms)
    return merged


class EventStore:
    """Writes room events into per-day shard files.

    Errors while writing a shard abort the merge immediately (fail
    fast); shards already written in the same call stay on disk. A
    shard that cannot be decoded is logged and treated as empty.
    """

    def __init__(self, logger: logging.Logger | logging.LoggerAdapter) -> None:
        self.logger = logger

    async def merge(self, room_path: Path, events: list[Event]) -> MergeStats:
        """Merge events into the shards of a room.

        Args:
            room_path: Room backup directory (created on demand)
            events: Events to merge; an empty list performs no I/O

        Returns:
            Statistics about the shards touched

        Raises:
            StorageIOError: On the first shard that cannot be written
        """
        stats = MergeStats()
        if not events:
            return stats

        grouped = group_by_date(events)
        for date_key in sorted(grouped):
            daily_events = grouped[date_key]
            await ensure_directory(room_path / date_key)
            path = shard_path(room_path, date_key)

            existing = await self._read_shard(path, stats)
            merged = merge_events(existing, daily_events)

            await write_json_atomic(path, [event.to_dict() for event in merged])
            stats.dates_written.append(date_key)
            stats.events_merged += len(daily_events)

        return stats

    async def read_shard(self, room_path: Path, date_key: str) -> list[Event]:
        """Read the stored events of one day (empty if none)."""
        events = await read_events_file(shard_path(room_path, date_key))
        return events or []

    async def _read_shard(self, path: Path, stats: MergeStats) -> list[Event]:
        try:
            existing = await read_events_file(path)
        except DataDecodeError as e:
            self.logger.warning(
                "Failed to decode existing data file, will overwrite",
                extra={"path": str(path), "error": str(e)},
            )
            stats.recovered_shards.append(str(path))
            return []
        return existing or []
