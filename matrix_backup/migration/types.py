"""
Migration types and data structures.

Defines the results produced while folding stale room directories
(same room ID, older label) into the current one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class CandidateStatus(Enum):
    """Status of migrating one stale directory."""

    MERGED = "merged"  # Events merged and directory removed
    FAILED = "failed"  # Directory left in place


@dataclass
class CandidateResult:
    """Result of migrating a single stale room directory.

    ``warnings`` lists files that were skipped because they could not
    be read or decoded; they do not prevent the directory from being
    merged and removed.
    """

    directory_name: str
    status: CandidateStatus
    files_read: int = 0
    events_merged: int = 0
    warnings: list[str] = field(default_factory=list)
    error_message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "directory_name": self.directory_name,
            "status": self.status.value,
            "files_read": self.files_read,
            "events_merged": self.events_merged,
            "warnings": self.warnings,
            "error_message": self.error_message,
        }


@dataclass
class MigrationReport:
    """Combined report for all stale directories of one room."""

    room_id: str
    candidates: list[CandidateResult] = field(default_factory=list)
    scan_error: str | None = None

    @property
    def merged(self) -> list[CandidateResult]:
        return [c for c in self.candidates if c.status == CandidateStatus.MERGED]

    @property
    def errors(self) -> list[str]:
        """All non-fatal errors, in the order they happened."""
        messages = []
        if self.scan_error:
            messages.append(self.scan_error)
        for candidate in self.candidates:
            if candidate.error_message:
                messages.append(candidate.error_message)
        return messages

    @property
    def ok(self) -> bool:
        return not self.errors

    def add_result(self, result: CandidateResult) -> None:
        self.candidates.append(result)
