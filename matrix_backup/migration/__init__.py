"""
Room directory migration.

Folds directories left behind by a room rename into the room's
current directory.
"""

from .migrator import RoomDirectoryMigrator
from .types import CandidateResult, CandidateStatus, MigrationReport

__all__ = [
    "CandidateResult",
    "CandidateStatus",
    "MigrationReport",
    "RoomDirectoryMigrator",
]
