"""
Matrix Backup

Incremental backup of Matrix room timelines to plain JSON files.

Provides:
- One directory per room, named after the room's label and ID
- Events sharded by UTC day, deduplicated on every merge
- A per-room checkpoint so each run only fetches new events
- Automatic folding of directories left behind by room renames

Usage:

    >>> from matrix_backup import BackupEngine, MatrixEventSource
    >>> async with MatrixEventSource(homeserver, user_id, token) as source:
    ...     engine = BackupEngine(source, Path("./backup"), logger)
    ...     result = await engine.run()
    ...     print(result.success, result.total_events)

Layout on disk:

    backup/
      General:!abc123:example.org/
        checkpoint.json
        2024-01-15/data.json
        2024-01-16/data.json
"""

from .cancellation import CancellationToken
from .config import (
    BackupConfig,
    CredentialsFile,
    load_and_validate_config,
    load_credentials_file,
    merge_credentials,
)
from .exceptions import (
    BackupCancelledError,
    BackupError,
    ConfigurationError,
    DataDecodeError,
    MatrixHTTPError,
    RemoteConnectionError,
    RoomBackupError,
    SessionVerificationError,
    StorageIOError,
)
from .local import Checkpoint, EventStore, load_checkpoint, save_checkpoint
from .logging_utils import RoomLoggerAdapter, configure_logging, get_backup_logger
from .migration import MigrationReport, RoomDirectoryMigrator
from .remote import EventSource, MatrixEventSource, RetryPolicy, verify_session_with_retry
from .sanitization import sanitize_filename
from .sync import BackupEngine, SyncConfig, fetch_room_events
from .types import (
    BackupRunResult,
    Event,
    EventPage,
    FetchResult,
    MergeStats,
    RoomBackupResult,
    RoomBackupStatus,
    RoomDirectory,
    RoomSyncState,
    SessionInfo,
)

__all__ = [
    # Engine
    "BackupEngine",
    "SyncConfig",
    "fetch_room_events",
    "CancellationToken",
    # Remote
    "EventSource",
    "MatrixEventSource",
    "RetryPolicy",
    "verify_session_with_retry",
    # Local storage
    "Checkpoint",
    "EventStore",
    "load_checkpoint",
    "save_checkpoint",
    "MigrationReport",
    "RoomDirectoryMigrator",
    "sanitize_filename",
    # Configuration
    "BackupConfig",
    "CredentialsFile",
    "load_and_validate_config",
    "load_credentials_file",
    "merge_credentials",
    # Logging
    "RoomLoggerAdapter",
    "configure_logging",
    "get_backup_logger",
    # Types
    "BackupRunResult",
    "Event",
    "EventPage",
    "FetchResult",
    "MergeStats",
    "RoomBackupResult",
    "RoomBackupStatus",
    "RoomDirectory",
    "RoomSyncState",
    "SessionInfo",
    # Exceptions
    "BackupError",
    "BackupCancelledError",
    "ConfigurationError",
    "DataDecodeError",
    "MatrixHTTPError",
    "RemoteConnectionError",
    "RoomBackupError",
    "SessionVerificationError",
    "StorageIOError",
]

__version__ = "0.1.0"
