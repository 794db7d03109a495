"""
Local file-based backup storage.

Uses plain JSON files so backups stay human-browsable, with atomic
writes for data integrity.

Key pieces:
- EventStore: Date-sharded event files with idempotent merge
- Checkpoint: Per-room resume token
"""

from .checkpoint import (
    CHECKPOINT_FILENAME,
    Checkpoint,
    load_checkpoint,
    save_checkpoint,
    update_checkpoint_token,
)
from .event_store import SHARD_FILENAME, EventStore, merge_events, read_events_file
from .file_ops import (
    ensure_directory,
    list_directories,
    list_files,
    read_json,
    remove_directory,
    write_json_atomic,
)

__all__ = [
    # Event shards
    "EventStore",
    "SHARD_FILENAME",
    "merge_events",
    "read_events_file",
    # Checkpoints
    "Checkpoint",
    "CHECKPOINT_FILENAME",
    "load_checkpoint",
    "save_checkpoint",
    "update_checkpoint_token",
    # Low-level file operations
    "ensure_directory",
    "list_directories",
    "list_files",
    "read_json",
    "remove_directory",
    "write_json_atomic",
]
