"""
SwipeSort Asset Repository Port

The engine reaches the photo library only through ``AssetRepository``.
Implementations: in-memory (tests, embedding), directory-backed
(see swipesort.library).
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from typing import Protocol

from swipesort.models import (
    AddToCollection,
    Asset,
    CollectionInfo,
    EnsureCollectionAndAdd,
    MutationOperation,
    SetFavorite,
    SetHidden,
)

logger = logging.getLogger(__name__)


class SwipeSortError(Exception):
    """Base class for SwipeSort errors."""


class AccessDenied(SwipeSortError):
    """The repository refuses to enumerate assets."""


class MutationFailed(SwipeSortError):
    """A repository mutation did not complete."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class AssetRepository(Protocol):
    """Protocol for library access. Every call may suspend."""

    async def list_eligible_assets(self, source_filter: frozenset[str]) -> list[Asset]:
        """
        Return assets newest first, restricted to ``source_filter``
        collections when it is non-empty. Raises AccessDenied.
        """
        ...

    async def list_collections(self) -> list[CollectionInfo]:
        """Return all collections in display order."""
        ...

    async def mutate(self, asset_id: str, operation: MutationOperation) -> None:
        """Apply one mutation to an asset. Raises MutationFailed."""
        ...


class InMemoryAssetRepository:
    """
    Repository holding assets and collections in memory.

    Assets are kept in the order given (expected newest first).
    ``fail_reason`` makes every mutation fail with that reason while set.
    """

    def __init__(
        self,
        assets: Iterable[Asset] = (),
        collections: Iterable[CollectionInfo] = (),
    ) -> None:
        self.assets: list[Asset] = list(assets)
        self.collections: dict[str, CollectionInfo] = {c.id: c for c in collections}
        self.members: dict[str, list[str]] = {c_id: [] for c_id in self.collections}
        for asset in self.assets:
            for collection_id in asset.collection_ids:
                self.members.setdefault(collection_id, []).append(asset.id)
        self.favorites: set[str] = set()
        self.hidden: set[str] = set()
        self.access_denied = False
        self.fail_reason: str | None = None
        self.mutations: list[tuple[str, MutationOperation]] = []

    def _find_asset(self, asset_id: str) -> Asset | None:
        for asset in self.assets:
            if asset.id == asset_id:
                return asset
        return None

    def collection_named(self, display_name: str) -> CollectionInfo | None:
        for collection in self.collections.values():
            if collection.display_name == display_name:
                return collection
        return None

    async def list_eligible_assets(self, source_filter: frozenset[str]) -> list[Asset]:
        await asyncio.sleep(0)
        if self.access_denied:
            raise AccessDenied("Library access denied")

        result: list[Asset] = []
        for asset in self.assets:
            if asset.id in self.hidden:
                continue
            current = frozenset(
                c_id for c_id, members in self.members.items() if asset.id in members
            )
            if source_filter and not current & source_filter:
                continue
            result.append(asset.model_copy(update={"collection_ids": current}))
        return result

    async def list_collections(self) -> list[CollectionInfo]:
        await asyncio.sleep(0)
        return [
            c.model_copy(update={"item_count": len(self.members.get(c.id, ()))})
            for c in self.collections.values()
        ]

    async def mutate(self, asset_id: str, operation: MutationOperation) -> None:
        await asyncio.sleep(0)
        if self.fail_reason is not None:
            raise MutationFailed(self.fail_reason)
        if self._find_asset(asset_id) is None:
            raise MutationFailed(f"Asset not found: {asset_id}")

        if isinstance(operation, SetFavorite):
            if operation.value:
                self.favorites.add(asset_id)
            else:
                self.favorites.discard(asset_id)
        elif isinstance(operation, SetHidden):
            if operation.value:
                self.hidden.add(asset_id)
            else:
                self.hidden.discard(asset_id)
        elif isinstance(operation, AddToCollection):
            collection = self.collections.get(operation.collection_id)
            if collection is None:
                raise MutationFailed(f"Collection not found: {operation.collection_id}")
            if not collection.can_add_content:
                raise MutationFailed(f"Collection is read-only: {collection.display_name}")
            self._add_member(collection.id, asset_id)
        elif isinstance(operation, EnsureCollectionAndAdd):
            collection = self.collection_named(operation.display_name)
            if collection is None:
                collection = CollectionInfo(
                    id=f"album-{len(self.collections) + 1}",
                    display_name=operation.display_name,
                )
                self.collections[collection.id] = collection
                self.members[collection.id] = []
                logger.info(f"Created collection {operation.display_name!r}")
            self._add_member(collection.id, asset_id)

        self.mutations.append((asset_id, operation))

    def _add_member(self, collection_id: str, asset_id: str) -> None:
        members = self.members.setdefault(collection_id, [])
        if asset_id not in members:
            members.append(asset_id)
