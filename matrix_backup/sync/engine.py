"""
Backup engine.

Orchestrates the backup of every joined room:
- Verify the remote session (with retry) before touching anything
- For each room, one at a time: resolve its label, ensure its
  directory, fold in directories left behind by a rename, load the
  checkpoint, fetch new events, persist the new checkpoint
- Isolate failures per room and report an aggregate result
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from ..cancellation import CancellationToken
from ..exceptions import BackupCancelledError, RoomBackupError
from ..local.checkpoint import load_checkpoint, update_checkpoint_token
from ..local.event_store import EventStore
from ..local.file_ops import ensure_directory
from ..logging_utils import RoomLoggerAdapter
from ..migration.migrator import RoomDirectoryMigrator
from ..remote.base import EventSource
from ..remote.retry import RetryPolicy, verify_session_with_retry
from ..types import (
    BackupRunResult,
    RoomBackupResult,
    RoomBackupStatus,
    RoomDirectory,
    RoomSyncState,
)
from .fetch_loop import DEFAULT_FETCH_DELAY, DEFAULT_PAGE_SIZE, fetch_room_events


@dataclass
class SyncConfig:
    """Configuration for the backup engine."""

    page_size: int = DEFAULT_PAGE_SIZE
    fetch_delay: float = DEFAULT_FETCH_DELAY  # seconds


class BackupEngine:
    """Backs up room timelines from an event source into a local directory.

    Rooms are processed strictly one at a time; migration of stale
    room directories relies on this, since it reads and deletes
    sibling directories of the backup root.
    """

    def __init__(
        self,
        source: EventSource,
        backup_dir: Path,
        logger: logging.Logger | logging.LoggerAdapter,
        config: SyncConfig | None = None,
        cancel_token: CancellationToken | None = None,
    ):
        """Initialize the backup engine.

        Args:
            source: Remote event source
            backup_dir: Root directory holding one directory per room
            logger: Logger receiving run and room progress
            config: Paging configuration
            cancel_token: Optional cooperative cancellation token
        """
        self.source = source
        self.backup_dir = backup_dir
        self.logger = logger
        self.config = config or SyncConfig()
        self.cancel_token = cancel_token

    async def run(self, retry_policy: RetryPolicy | None = None) -> BackupRunResult:
        """Verify the session, then back up every joined room.

        Raises:
            SessionVerificationError: If the session cannot be verified
            BackupCancelledError: If cancelled during verification
            Exception: If the room list cannot be fetched or the backup
                directory cannot be created
        """
        await verify_session_with_retry(
            self.source,
            retry_policy or RetryPolicy(),
            self.logger,
            self.cancel_token,
        )
        return await self.backup_all_rooms()

    async def backup_all_rooms(self) -> BackupRunResult:
        """Back up every joined room, isolating per-room failures."""
        self.logger.info("Fetching list of joined rooms...")
        room_ids = await self.source.list_rooms()
        self.logger.info("Found joined rooms", extra={"count": len(room_ids)})

        await ensure_directory(self.backup_dir)

        run = BackupRunResult(started_at=datetime.now(UTC))
        for room_id in room_ids:
            if self._is_cancelled():
                run.cancelled = True
                break

            result = await self.backup_room(room_id)
            run.add_result(result)
            if result.status == RoomBackupStatus.CANCELLED:
                run.cancelled = True
                break

        run.completed_at = datetime.now(UTC)

        if run.cancelled:
            self.logger.warning(
                "Backup cancelled before all rooms were processed",
                extra={"processed": len(run.results), "total": len(room_ids)},
            )
        if run.failed_rooms:
            self.logger.error(
                "One or more rooms failed to back up completely",
                extra={"error_count": len(run.failed_rooms)},
            )
        return run

    async def backup_room(self, room_id: str) -> RoomBackupResult:
        """Back up a single room.

        Never raises for room-level problems; the returned result says
        whether the room completed and, if not, in which state it failed.
        """
        result = RoomBackupResult(
            room_id=room_id,
            status=RoomBackupStatus.FAILED,
            started_at=datetime.now(UTC),
        )
        room_log = RoomLoggerAdapter(self.logger, {"room_id": room_id})

        try:
            room_log = await self._sync_room(room_id, result, room_log)
        except RoomBackupError as e:
            state = RoomSyncState(e.state)
            result.failed_state = state
            result.error = e.cause
            if isinstance(e.cause, BackupCancelledError):
                result.status = RoomBackupStatus.CANCELLED
                room_log.warning("Room backup cancelled", extra={"state": e.state})
            else:
                room_log.error(
                    "Failed to back up room",
                    extra={"state": e.state, "error": str(e.cause)},
                )
        else:
            result.status = RoomBackupStatus.COMPLETED

        result.completed_at = datetime.now(UTC)
        return result

    async def _sync_room(
        self,
        room_id: str,
        result: RoomBackupResult,
        room_log: RoomLoggerAdapter,
    ) -> RoomLoggerAdapter:
        """Walk the per-room state machine, filling in ``result``."""
        state = RoomSyncState.RESOLVE_LABEL
        try:
            self._raise_if_cancelled()
            label = await self.source.resolve_label(room_id)
            room_dir = RoomDirectory(room_id, label)
            if room_dir.sanitized_label != label:
                room_log = room_log.bind(room_name=label, sanitized_name=room_dir.sanitized_label)
            else:
                room_log = room_log.bind(room_name=label)
            room_log = room_log.bind(room_dir=room_dir.directory_name)
            room_path = room_dir.path_in(self.backup_dir)
            result.directory_name = room_dir.directory_name

            state = RoomSyncState.ENSURE_DIRECTORY
            await ensure_directory(room_path)

            event_store = EventStore(room_log)

            state = RoomSyncState.MIGRATE_OLD
            migrator = RoomDirectoryMigrator(event_store, room_log)
            report = await migrator.migrate(
                self.backup_dir, room_id, room_dir.directory_name, room_path
            )
            if not report.ok:
                result.migration_errors = report.errors
                room_log.warning(
                    "Failed to merge data from old room directories",
                    extra={"error": "; ".join(report.errors)},
                )

            state = RoomSyncState.LOAD_CHECKPOINT
            checkpoint = await load_checkpoint(room_path)

            state = RoomSyncState.FETCHING
            room_log.debug("Starting room backup", extra={"token": checkpoint.next_token})
            fetch = await fetch_room_events(
                self.source,
                room_id,
                room_path,
                checkpoint.next_token,
                event_store,
                logger=room_log,
                page_size=self.config.page_size,
                fetch_delay=self.config.fetch_delay,
                cancel_token=self.cancel_token,
            )
            result.events_fetched = fetch.total_fetched
            result.final_token = fetch.final_token
            if fetch.error is not None:
                raise fetch.error
        except Exception as e:
            raise RoomBackupError(room_id, state.value, e) from e

        result.checkpoint_saved = await update_checkpoint_token(
            room_path, checkpoint, fetch.final_token, room_log
        )

        if fetch.total_fetched > 0:
            room_log.info(
                "Room backup finished",
                extra={"total_fetched": fetch.total_fetched, "pages": fetch.pages},
            )
        else:
            room_log.debug("Room already up to date")
        return room_log

    def _is_cancelled(self) -> bool:
        return self.cancel_token is not None and self.cancel_token.is_cancelled()

    def _raise_if_cancelled(self) -> None:
        if self.cancel_token is not None:
            self.cancel_token.raise_if_cancelled()
