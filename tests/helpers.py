"""
Shared test data builders for SwipeSort tests.
"""
from __future__ import annotations

import asyncio
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone
from pathlib import Path

from swipesort.models import Asset, CollectionInfo, MutationOperation
from swipesort.repository import InMemoryAssetRepository
from swipesort.store import ProcessedSetStore

# Minimal valid 1x1 PNG
PNG_BYTES = bytes([
    0x89, 0x50, 0x4E, 0x47, 0x0D, 0x0A, 0x1A, 0x0A,  # PNG signature
    0x00, 0x00, 0x00, 0x0D, 0x49, 0x48, 0x44, 0x52,  # IHDR chunk
    0x00, 0x00, 0x00, 0x01, 0x00, 0x00, 0x00, 0x01,  # 1x1 pixels
    0x08, 0x02, 0x00, 0x00, 0x00, 0x90, 0x77, 0x53,  # 8-bit RGB
    0xDE, 0x00, 0x00, 0x00, 0x0C, 0x49, 0x44, 0x41,  # IDAT chunk
    0x54, 0x08, 0xD7, 0x63, 0xF8, 0xFF, 0xFF, 0x3F,  # Compressed data
    0x00, 0x05, 0xFE, 0x02, 0xFE, 0xDC, 0xCC, 0x59,
    0xE7, 0x00, 0x00, 0x00, 0x00, 0x49, 0x45, 0x4E,  # IEND chunk
    0x44, 0xAE, 0x42, 0x60, 0x82
])

BASE_TIME = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


class GatedRepository(InMemoryAssetRepository):
    """In-memory repository whose mutations wait until the gate opens."""

    def __init__(self, assets: list[Asset], collections: list[CollectionInfo]) -> None:
        super().__init__(assets, collections)
        self.gate = asyncio.Event()
        self.started = 0

    async def mutate(self, asset_id: str, operation: MutationOperation) -> None:
        self.started += 1
        await self.gate.wait()
        await super().mutate(asset_id, operation)


def make_assets(count: int, album_members: dict[str, set[int]] | None = None) -> list[Asset]:
    """Assets a0..a{count-1}, newest first (a0 is newest)."""
    album_members = album_members or {}
    return [
        Asset(
            id=f"a{i}",
            filename=f"IMG_{i:04d}.jpg",
            created_at=BASE_TIME - timedelta(minutes=i),
            collection_ids=frozenset(
                album for album, members in album_members.items() if i in members
            ),
        )
        for i in range(count)
    ]


def make_collections() -> list[CollectionInfo]:
    return [
        CollectionInfo(id="albumX", display_name="Album X"),
        CollectionInfo(id="dest-1", display_name="Family"),
        CollectionInfo(id="dest-2", display_name="Work"),
        CollectionInfo(id="shared", display_name="Shared", can_add_content=False),
    ]



class FailingStore(ProcessedSetStore):
    """Processed-set store whose writes fail while ``failing`` is set."""

    def __init__(self, library_directory: Path) -> None:
        super().__init__(library_directory)
        self.failing = False

    async def save(self, asset_ids: Iterable[str]) -> None:
        if self.failing:
            raise OSError("disk full")
        await super().save(asset_ids)
