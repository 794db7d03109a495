"""
Room synchronization.

- BackupEngine: Per-room state machine and run orchestration
- fetch_room_events: Paginated fetch loop for one room
"""

from .engine import BackupEngine, SyncConfig
from .fetch_loop import DEFAULT_FETCH_DELAY, DEFAULT_PAGE_SIZE, fetch_room_events

__all__ = [
    "BackupEngine",
    "SyncConfig",
    "fetch_room_events",
    "DEFAULT_FETCH_DELAY",
    "DEFAULT_PAGE_SIZE",
]
