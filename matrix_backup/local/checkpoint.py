"""
Per-room resume checkpoint.

The checkpoint records the pagination token to continue from on the
next run. It is only ever advanced after the events of the page it
refers to have been merged into the event store.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..exceptions import DataDecodeError, StorageIOError
from .file_ops import read_json, write_json_atomic

CHECKPOINT_FILENAME = "checkpoint.json"


@dataclass
class Checkpoint:
    """Resume token for a room; an empty token means start of history."""

    next_token: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"next_token": self.next_token}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Checkpoint:
        token = data.get("next_token", "")
        if token is None:
            token = ""
        if not isinstance(token, str):
            raise ValueError(f"next_token must be a string, got {type(token).__name__}")
        return cls(next_token=token)


def checkpoint_path(room_path: Path) -> Path:
    return room_path / CHECKPOINT_FILENAME


async def load_checkpoint(room_path: Path) -> Checkpoint:
    """Load the checkpoint for a room.

    Args:
        room_path: Room backup directory

    Returns:
        Stored checkpoint, or an empty one if none has been written yet

    Raises:
        DataDecodeError: If the checkpoint file is not a valid document
        StorageIOError: If the checkpoint file cannot be read
    """
    path = checkpoint_path(room_path)
    data = await read_json(path)
    if data is None:
        return Checkpoint()
    if not isinstance(data, dict):
        raise DataDecodeError(
            "parse_checkpoint", str(path), ValueError("checkpoint must be a JSON object")
        )
    try:
        return Checkpoint.from_dict(data)
    except ValueError as e:
        raise DataDecodeError("parse_checkpoint", str(path), e) from e


async def save_checkpoint(room_path: Path, checkpoint: Checkpoint) -> None:
    """Atomically write the checkpoint for a room.

    Raises:
        StorageIOError: If the checkpoint cannot be written
    """
    await write_json_atomic(checkpoint_path(room_path), checkpoint.to_dict())


async def update_checkpoint_token(
    room_path: Path,
    checkpoint: Checkpoint,
    new_token: str,
    logger: logging.Logger | logging.LoggerAdapter,
) -> bool:
    """Advance the in-memory checkpoint and persist it if it changed.

    A failed write is logged and swallowed: the merged events are
    already on disk, only the resume point is lost, and the next run
    re-fetches the same pages idempotently.

    Args:
        room_path: Room backup directory
        checkpoint: In-memory checkpoint, updated in place
        new_token: Token to continue from next time
        logger: Logger receiving the outcome

    Returns:
        True if a new checkpoint was written, False otherwise
    """
    if new_token == checkpoint.next_token:
        return False

    checkpoint.next_token = new_token
    try:
        await save_checkpoint(room_path, checkpoint)
    except StorageIOError as e:
        logger.error("Failed to write updated checkpoint", extra={"error": str(e)})
        return False

    logger.debug("Updated next sync token", extra={"token": new_token})
    return True
