"""
SwipeSort Processed-Set Persistence

Loads and saves the set of asset identifiers that have already been
classified, so they are never presented again in a later session.
Stored in .swipesort/processed.json under the ``processed_assets`` key.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from swipesort.config import STATE_DIR_NAME
from swipesort.filesystem import (
    FileSystemError,
    ensure_directory,
    file_exists,
    read_json,
    write_json,
)
from swipesort.models import ProcessedSetFile

logger = logging.getLogger(__name__)


class ProcessedSetStore:
    """
    Durable record of processed asset identifiers.

    Every save writes the whole set; callers must await it before treating
    the corresponding state change as committed.
    """

    def __init__(self, library_directory: Path, state_dir_name: str = STATE_DIR_NAME) -> None:
        self.library_directory = library_directory.resolve()
        self._state_dir = self.library_directory / state_dir_name
        self._processed_file = self._state_dir / "processed.json"
        self._write_lock = asyncio.Lock()

    @property
    def processed_file_path(self) -> Path:
        """Get path to processed.json."""
        return self._processed_file

    async def ensure_directory_exists(self) -> None:
        """Create the state directory if needed."""
        await ensure_directory(self._state_dir)

    async def exists(self) -> bool:
        """Check if a processed-set file exists."""
        return await file_exists(self._processed_file)

    async def load(self) -> set[str]:
        """
        Load the processed set from disk.

        Returns:
            The stored identifiers; empty if the file is missing or unreadable
        """
        if not await self.exists():
            return set()

        try:
            data = await read_json(self._processed_file)
            record = ProcessedSetFile.model_validate(data)
        except (FileSystemError, ValidationError, OSError) as e:
            logger.error(f"Failed to load processed set: {e}")
            return set()

        logger.info(
            f"Loaded {len(record.processed_assets)} processed assets "
            f"from {self._processed_file}"
        )
        return set(record.processed_assets)

    async def save(self, asset_ids: Iterable[str]) -> None:
        """
        Persist the full processed set.

        ``asset_ids`` is read once the previous write has finished, so a
        live set passed by concurrent callers is stored in its latest state.
        """
        async with self._write_lock:
            record = ProcessedSetFile(
                processed_assets=sorted(asset_ids),
                updated_at=datetime.now(timezone.utc),
            )
            await self.ensure_directory_exists()
            await write_json(self._processed_file, record.model_dump(mode="json"))
        logger.debug(f"Processed set saved ({len(record.processed_assets)} assets)")

    async def clear(self) -> None:
        """Persist an empty processed set."""
        await self.save(())
        logger.info("Processed set cleared")

