"""Tests for the per-room checkpoint."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from matrix_backup.exceptions import DataDecodeError, StorageIOError
from matrix_backup.local import checkpoint as checkpoint_module
from matrix_backup.local.checkpoint import (
    CHECKPOINT_FILENAME,
    Checkpoint,
    load_checkpoint,
    save_checkpoint,
    update_checkpoint_token,
)


class TestCheckpointReadWrite:
    """Tests for load_checkpoint / save_checkpoint."""

    async def test_write_and_read(self, room_path: Path):
        """A saved checkpoint reads back unchanged."""
        await save_checkpoint(room_path, Checkpoint(next_token="token123"))

        loaded = await load_checkpoint(room_path)

        assert loaded == Checkpoint(next_token="token123")

    async def test_file_format(self, room_path: Path):
        """The file is a two-space indented object with next_token."""
        await save_checkpoint(room_path, Checkpoint(next_token="token123"))

        content = (room_path / CHECKPOINT_FILENAME).read_text(encoding="utf-8")

        assert content == '{\n  "next_token": "token123"\n}'

    async def test_missing_file_is_empty_checkpoint(self, room_path: Path):
        """No checkpoint file means start from the beginning."""
        loaded = await load_checkpoint(room_path)

        assert loaded == Checkpoint()
        assert loaded.next_token == ""

    async def test_invalid_json(self, room_path: Path):
        """A corrupted checkpoint is an error, not a silent restart."""
        (room_path / CHECKPOINT_FILENAME).write_text("{invalid json", encoding="utf-8")

        with pytest.raises(DataDecodeError):
            await load_checkpoint(room_path)

    async def test_wrong_token_type(self, room_path: Path):
        """A non-string token is rejected."""
        (room_path / CHECKPOINT_FILENAME).write_text('{"next_token": 42}', encoding="utf-8")

        with pytest.raises(DataDecodeError):
            await load_checkpoint(room_path)

    async def test_unknown_keys_ignored(self, room_path: Path):
        """Extra keys do not prevent loading."""
        (room_path / CHECKPOINT_FILENAME).write_text(
            json.dumps({"next_token": "abc", "note": "kept by hand"}), encoding="utf-8"
        )

        assert (await load_checkpoint(room_path)).next_token == "abc"


class TestUpdateCheckpointToken:
    """Tests for update_checkpoint_token."""

    async def test_update_needed(self, room_path: Path, logger: logging.Logger):
        """A new token updates memory and disk."""
        checkpoint = Checkpoint(next_token="old_token")
        await save_checkpoint(room_path, checkpoint)

        saved = await update_checkpoint_token(room_path, checkpoint, "new_token", logger)

        assert saved is True
        assert checkpoint.next_token == "new_token"
        assert (await load_checkpoint(room_path)).next_token == "new_token"

    async def test_same_token_performs_no_write(
        self, room_path: Path, logger: logging.Logger, monkeypatch: pytest.MonkeyPatch
    ):
        """An unchanged token does not touch the file."""
        checkpoint = Checkpoint(next_token="current_token")
        await save_checkpoint(room_path, checkpoint)

        async def fail_write(path, data):
            raise AssertionError("checkpoint should not be written")

        monkeypatch.setattr(checkpoint_module, "write_json_atomic", fail_write)

        saved = await update_checkpoint_token(room_path, checkpoint, "current_token", logger)

        assert saved is False
        assert checkpoint.next_token == "current_token"

    async def test_write_failure_is_logged_not_raised(
        self,
        room_path: Path,
        logger: logging.Logger,
        monkeypatch: pytest.MonkeyPatch,
        caplog: pytest.LogCaptureFixture,
    ):
        """A failed save keeps the in-memory token and leaves the old file."""
        checkpoint = Checkpoint(next_token="token_before_fail")
        await save_checkpoint(room_path, checkpoint)

        async def failing_write(path, data):
            raise StorageIOError("write_json", str(path), OSError("disk full"))

        monkeypatch.setattr(checkpoint_module, "write_json_atomic", failing_write)

        with caplog.at_level(logging.ERROR):
            saved = await update_checkpoint_token(room_path, checkpoint, "token_fail", logger)

        assert saved is False
        assert checkpoint.next_token == "token_fail"
        assert "Failed to write updated checkpoint" in caplog.text

        monkeypatch.undo()
        assert (await load_checkpoint(room_path)).next_token == "token_before_fail"
