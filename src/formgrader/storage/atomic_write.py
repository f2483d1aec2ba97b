"""Atomic JSON document writes with a best-effort previous-generation backup."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import shutil
from pathlib import Path
from typing import Any

import aiofiles
import aiofiles.os

_LOGGER = logging.getLogger(__name__)

TEMP_SUFFIX = ".tmp"
BACKUP_SUFFIX = ".bak"


def temp_path_for(path: Path) -> Path:
    """Return the transient sibling used while `path` is being written."""
    return path.with_name(f"{path.name}{TEMP_SUFFIX}")


def backup_path_for(path: Path) -> Path:
    """Return the previous-generation sibling of `path`."""
    return path.with_name(f"{path.name}{BACKUP_SUFFIX}")


async def backup_previous(path: Path) -> bool:
    """Copy the current generation of `path` to its `.bak` sibling.

    Never raises; a failed backup is logged and reported as ``False``.

    Args:
        path: Document path whose current content should be preserved.

    Returns:
        ``True`` when a backup was written.
    """
    if not await aiofiles.os.path.exists(path):
        return False
    try:
        await asyncio.to_thread(shutil.copyfile, path, backup_path_for(path))
    except OSError as exc:
        _LOGGER.warning("Backup of %s failed: %s", path.name, exc)
        return False
    return True


async def atomic_write_json(
    path: Path,
    data: dict[str, Any],
    *,
    keep_backup: bool = True,
) -> None:
    """Write JSON to `path` atomically: backup -> temp -> fsync -> rename -> fsync dir.

    Readers see either the complete previous document or the complete new
    one. On failure the temp file is removed and the target is untouched.
    Caller must hold the path's serialization slot.

    Args:
        path: Destination document path.
        data: JSON-serializable mapping (e.g. from ``model_dump(mode="json")``).
        keep_backup: Whether to copy the previous generation to ``.bak`` first.

    Raises:
        OSError: If the temp write or the rename fails.
    """
    await aiofiles.os.makedirs(path.parent, exist_ok=True)
    if keep_backup:
        await backup_previous(path)
    temp_path = temp_path_for(path)
    content = json.dumps(data, indent=2, ensure_ascii=False)
    try:
        async with aiofiles.open(temp_path, "w", encoding="utf-8") as handle:
            await handle.write(content)
            await handle.flush()
            await asyncio.to_thread(os.fsync, handle.fileno())
        await aiofiles.os.replace(temp_path, path)
        await asyncio.to_thread(_fsync_directory, path.parent)
    finally:
        if await aiofiles.os.path.exists(temp_path):
            await aiofiles.os.remove(temp_path)


def _fsync_directory(directory: Path) -> None:
    try:
        dir_fd = os.open(str(directory), os.O_RDONLY)
        try:
            os.fsync(dir_fd)
        finally:
            os.close(dir_fd)
    except OSError:
        pass  # e.g. Windows: directory fsync best-effort
