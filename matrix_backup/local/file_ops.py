"""
JSON file operations for the local backup store.

Provides the low-level read/write primitives used by the checkpoint
and event stores:
- Atomic writes using temp file + fsync + rename
- Distinguishing "missing" from "undecodable" on read
- Directory listing and removal for migration
"""

import asyncio
import json
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any

import aiofiles
import aiofiles.os

from ..exceptions import DataDecodeError, StorageIOError

JSON_INDENT = 2


async def ensure_directory(path: Path) -> None:
    """Ensure directory exists, creating if necessary.

    Args:
        path: Directory path to ensure exists
    """
    try:
        await aiofiles.os.makedirs(path, exist_ok=True)
    except OSError as e:
        raise StorageIOError("create_directory", str(path), e) from e


async def read_json(path: Path) -> Any | None:
    """Read a JSON file.

    Args:
        path: Path to JSON file

    Returns:
        Parsed JSON data or None if file doesn't exist

    Raises:
        DataDecodeError: If the file exists but is not valid JSON
        StorageIOError: If the file cannot be read
    """
    try:
        async with aiofiles.open(path, encoding="utf-8") as f:
            content = await f.read()
    except FileNotFoundError:
        return None
    except OSError as e:
        raise StorageIOError("read_json", str(path), e) from e

    try:
        return json.loads(content)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise DataDecodeError("parse_json", str(path), e) from e


async def write_json_atomic(path: Path, data: Any) -> None:
    """Write JSON file atomically using temp file + rename.

    Readers never observe a half-written file: either the old contents
    or the new ones are visible.

    Args:
        path: Target path for JSON file
        data: Data to serialize as JSON
    """
    try:
        payload = json.dumps(data, indent=JSON_INDENT, ensure_ascii=False)
    except (TypeError, ValueError) as e:
        raise StorageIOError("serialize_json", str(path), e) from e

    try:
        fd, temp_path = tempfile.mkstemp(
            dir=path.parent,
            prefix=".tmp_",
            suffix=".json",
        )
    except OSError as e:
        raise StorageIOError("write_json", str(path), e) from e

    try:
        os.close(fd)
        async with aiofiles.open(temp_path, "w", encoding="utf-8") as f:
            await f.write(payload)
            await f.flush()
            os.fsync(f.fileno())

        # Atomic rename
        await aiofiles.os.replace(temp_path, path)
    except Exception as e:
        # Clean up temp file on error
        try:
            await aiofiles.os.remove(temp_path)
        except OSError:
            pass
        raise StorageIOError("write_json", str(path), e) from e


async def remove_directory(path: Path) -> bool:
    """Remove a directory and all contents.

    Args:
        path: Directory to remove

    Returns:
        True if removed, False if didn't exist
    """
    try:
        if await aiofiles.os.path.exists(path):
            await asyncio.to_thread(shutil.rmtree, path)
            return True
        return False
    except OSError as e:
        raise StorageIOError("remove_directory", str(path), e) from e


async def list_directories(path: Path) -> list[str]:
    """List subdirectories in a directory.

    Args:
        path: Directory to list

    Returns:
        Sorted list of subdirectory names (empty if path doesn't exist)
    """
    try:
        if not await aiofiles.os.path.exists(path):
            return []

        entries = await aiofiles.os.listdir(path)
        dirs = []
        for entry in entries:
            entry_path = path / entry
            if await aiofiles.os.path.isdir(entry_path):
                dirs.append(entry)
        return sorted(dirs)
    except OSError as e:
        raise StorageIOError("list_directories", str(path), e) from e


async def list_files(path: Path) -> list[str]:
    """List regular files in a directory.

    Args:
        path: Directory to list

    Returns:
        Sorted list of file names (empty if path doesn't exist)
    """
    try:
        if not await aiofiles.os.path.exists(path):
            return []

        entries = await aiofiles.os.listdir(path)
        files = []
        for entry in entries:
            if await aiofiles.os.path.isfile(path / entry):
                files.append(entry)
        return sorted(files)
    except OSError as e:
        raise StorageIOError("list_files", str(path), e) from e
