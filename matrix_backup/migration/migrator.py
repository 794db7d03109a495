"""
Room directory migrator.

Room directories are named ``{sanitized label}:{room_id}``. When a
room is renamed, the next run targets a new directory; this module
finds directories left behind under the old label, merges their
events into the current directory and removes them.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from ..exceptions import StorageIOError
from ..local.checkpoint import CHECKPOINT_FILENAME
from ..local.event_store import SHARD_FILENAME, EventStore, read_events_file
from ..local.file_ops import list_directories, list_files, remove_directory
from ..types import Event, extract_room_id
from .types import CandidateResult, CandidateStatus, MigrationReport

_DATE_DIR_PATTERN = re.compile(r"^-?\d{4,}-\d{2}-\d{2}$")


class RoomDirectoryMigrator:
    """Merges stale directories of a room into its current directory.

    Migration is best-effort: every problem is recorded in the
    returned report instead of being raised, and a directory is only
    removed once its events are safely merged.
    """

    def __init__(
        self,
        event_store: EventStore,
        logger: logging.Logger | logging.LoggerAdapter,
    ) -> None:
        """Initialize the migrator.

        Args:
            event_store: Store used to merge events into the target directory
            logger: Logger for progress and non-fatal errors
        """
        self.event_store = event_store
        self.logger = logger

    async def find_candidates(
        self,
        backup_root: Path,
        room_id: str,
        current_dir_name: str,
    ) -> list[str]:
        """List stale directories belonging to ``room_id``.

        Args:
            backup_root: Directory holding all room directories
            room_id: Stable room ID
            current_dir_name: Name of the directory being synced

        Returns:
            Names of directories to migrate, sorted
        """
        candidates = []
        for dir_name in await list_directories(backup_root):
            if dir_name == current_dir_name:
                continue
            if extract_room_id(dir_name) != room_id:
                continue
            candidates.append(dir_name)
        return candidates

    async def migrate(
        self,
        backup_root: Path,
        room_id: str,
        current_dir_name: str,
        target_path: Path,
    ) -> MigrationReport:
        """Merge every stale directory of a room into ``target_path``.

        Args:
            backup_root: Directory holding all room directories
            room_id: Stable room ID
            current_dir_name: Name of the directory being synced
            target_path: Path of the current room directory

        Returns:
            Report with one entry per stale directory
        """
        report = MigrationReport(room_id=room_id)

        try:
            candidates = await self.find_candidates(backup_root, room_id, current_dir_name)
        except StorageIOError as e:
            report.scan_error = f"failed to read backup directory {backup_root}: {e}"
            self.logger.error("Failed to scan backup directory", extra={"error": str(e)})
            return report

        for dir_name in candidates:
            result = await self.migrate_directory(backup_root, dir_name, target_path)
            report.add_result(result)
            if result.status == CandidateStatus.FAILED:
                self.logger.error(
                    "Failed to process old directory",
                    extra={"old_dir": dir_name, "error": result.error_message},
                )

        return report

    async def migrate_directory(
        self,
        backup_root: Path,
        dir_name: str,
        target_path: Path,
    ) -> CandidateResult:
        """Merge one stale directory and remove it on success."""
        old_path = backup_root / dir_name
        result = CandidateResult(directory_name=dir_name, status=CandidateStatus.FAILED)
        self.logger.info(
            "Found old directory for the same room, merging data",
            extra={"old_dir": dir_name},
        )

        try:
            event_files = await self._find_event_files(old_path)
        except StorageIOError as e:
            result.error_message = f"failed to read old dir {dir_name}: {e}"
            return result

        events: list[Event] = []
        for path in event_files:
            try:
                file_events = await read_events_file(path)
            except StorageIOError as e:
                result.warnings.append(f"{path.relative_to(old_path)}: {e}")
                continue
            result.files_read += 1
            events.extend(file_events or [])

        if result.warnings:
            self.logger.warning(
                "Encountered errors reading files in old directory: " + "; ".join(result.warnings),
                extra={"old_dir": dir_name},
            )

        if events:
            self.logger.debug(
                "Processing merged events from old directory",
                extra={"old_dir": dir_name, "count": len(events)},
            )
            try:
                await self.event_store.merge(target_path, events)
            except Exception as e:
                # Any merge failure keeps the old directory for the next run
                result.error_message = f"failed to process events from old dir {dir_name}: {e}"
                if result.warnings:
                    result.error_message += (
                        "; also encountered file read errors: " + "; ".join(result.warnings)
                    )
                return result
            result.events_merged = len(events)
        else:
            self.logger.debug(
                "No valid event files found in old directory to merge",
                extra={"old_dir": dir_name},
            )

        self.logger.info("Removing old directory after merging", extra={"old_dir": dir_name})
        try:
            await remove_directory(old_path)
        except StorageIOError as e:
            result.error_message = f"failed to remove old dir {dir_name} after merging: {e}"
            return result

        result.status = CandidateStatus.MERGED
        return result

    async def _find_event_files(self, old_path: Path) -> list[Path]:
        """Collect shard files of a room directory.

        Covers the date-sharded layout (``YYYY-MM-DD/data.json``) and
        loose ``*.json`` files at the top level.
        """
        paths: list[Path] = []
        for sub_dir in await list_directories(old_path):
            if not _DATE_DIR_PATTERN.match(sub_dir):
                continue
            if SHARD_FILENAME in await list_files(old_path / sub_dir):
                paths.append(old_path / sub_dir / SHARD_FILENAME)

        for file_name in await list_files(old_path):
            if file_name == CHECKPOINT_FILENAME or not file_name.endswith(".json"):
                continue
            paths.append(old_path / file_name)
        return paths
