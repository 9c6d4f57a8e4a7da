"""
SwipeSort Filesystem Operations

Library scanning, asset path checks and the JSON state files, all async
through aiofiles. Nothing here moves or rewrites image files.
"""
from __future__ import annotations

import asyncio
import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiofiles
import aiofiles.os

logger = logging.getLogger(__name__)

# Image types recognised as assets, mapped to the MIME type they are served with
MIME_TYPES: dict[str, str] = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".gif": "image/gif",
    ".bmp": "image/bmp",
    ".tiff": "image/tiff",
    ".tif": "image/tiff",
    ".heic": "image/heic",
}

ALLOWED_EXTENSIONS: frozenset[str] = frozenset(MIME_TYPES)


class FileSystemError(Exception):
    """A state file exists but cannot be used."""

    def __init__(self, message: str, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path


def is_valid_extension(path: Path) -> bool:
    return path.suffix.lower() in ALLOWED_EXTENSIONS


def get_mime_type(path: Path) -> str:
    return MIME_TYPES.get(path.suffix.lower(), "application/octet-stream")


def normalize_asset_id(path: Path, base_dir: Path) -> str:
    """Asset ID for a file: its path below the library, '/'-separated."""
    return path.relative_to(base_dir).as_posix()


def resolve_asset_path(asset_id: str, base_dir: Path) -> Path:
    return base_dir / asset_id


def validate_asset_path(asset_id: str, base_dir: Path) -> tuple[bool, str]:
    """
    Check that an asset ID names an image inside the library.

    Returns:
        Tuple of (is_valid, error_message)
    """
    if ".." in asset_id:
        return False, "Path traversal (..) not allowed"
    if "\x00" in asset_id:
        return False, "Null bytes not allowed in path"

    candidate = Path(asset_id)
    if not is_valid_extension(candidate):
        return False, f"Unsupported image extension: {candidate.suffix.lower()}"

    root = base_dir.resolve()
    if not (root / candidate).resolve().is_relative_to(root):
        return False, "Path escapes library directory"

    return True, ""


async def scan_images(
    directory: Path,
    skip_dirs: frozenset[str] = frozenset(),
) -> list[tuple[str, datetime]]:
    """
    Find every image below ``directory``.

    Hidden directories and those named in ``skip_dirs`` are not entered.

    Returns:
        List of (asset ID, modification time), newest first; equal times
        are ordered by asset ID
    """
    found: list[tuple[str, datetime]] = []

    for root, dirs, files in os.walk(directory):
        dirs[:] = [d for d in dirs if d not in skip_dirs and not d.startswith(".")]

        for name in files:
            path = Path(root, name)
            if not is_valid_extension(path):
                continue
            stat = await aiofiles.os.stat(path)
            found.append((
                normalize_asset_id(path, directory),
                datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            ))

        # One directory per event loop turn
        await asyncio.sleep(0)

    return sorted(found, key=lambda entry: (-entry[1].timestamp(), entry[0]))


async def file_exists(path: Path) -> bool:
    return bool(await aiofiles.os.path.isfile(path))


async def read_json(path: Path) -> dict[str, Any]:
    """
    Read a JSON state file.

    Raises:
        FileSystemError: If the file is not a JSON object
    """
    async with aiofiles.open(path, "rb") as f:
        raw = await f.read()
    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise FileSystemError(f"Invalid JSON in {path.name}: {e}", path) from e
    if not isinstance(data, dict):
        raise FileSystemError(f"Expected a JSON object in {path.name}", path)
    return data


async def write_json(path: Path, data: dict[str, Any]) -> None:
    """
    Replace a JSON state file atomically.

    Written to a sibling ``.tmp`` file, synced, then renamed over the
    target; readers see either the old or the new content.
    """
    tmp_path = path.with_name(f"{path.name}.tmp")
    async with aiofiles.open(tmp_path, "w") as f:
        await f.write(json.dumps(data, indent=2, default=str))
        await f.flush()
        await asyncio.to_thread(os.fsync, f.fileno())
    await aiofiles.os.replace(tmp_path, path)


async def ensure_directory(path: Path) -> None:
    await aiofiles.os.makedirs(path, exist_ok=True)


async def validate_library_directory(directory: Path) -> tuple[bool, list[str]]:
    """
    Check the library can be scanned and its state directory written.

    Returns:
        Tuple of (is_valid, list_of_issues)
    """
    if not await aiofiles.os.path.exists(directory):
        return False, [f"Directory does not exist: {directory}"]
    if not await aiofiles.os.path.isdir(directory):
        return False, [f"Path is not a directory: {directory}"]

    required = {os.R_OK: "read", os.W_OK: "write", os.X_OK: "execute"}
    issues = [
        f"No {label} permission: {directory}"
        for mode, label in required.items()
        if not os.access(directory, mode)
    ]
    return not issues, issues
