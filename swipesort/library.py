"""
SwipeSort Directory Library

An AssetRepository over a directory of image files.

- Every image below the directory is an asset, newest first by mtime.
- Every subfolder holding images is a read-only collection.
- Albums created through mutations, favorite and hidden flags live in
  .swipesort/library.json; image files are never moved or modified.
"""
from __future__ import annotations

import asyncio
import logging
import os
import re
from datetime import datetime
from pathlib import Path, PurePosixPath

from pydantic import ValidationError

from swipesort.config import STATE_DIR_NAME
from swipesort.filesystem import (
    FileSystemError,
    ensure_directory,
    file_exists,
    read_json,
    resolve_asset_path,
    scan_images,
    validate_asset_path,
    write_json,
)
from swipesort.models import (
    AddToCollection,
    AlbumRecord,
    Asset,
    CollectionInfo,
    EnsureCollectionAndAdd,
    LibraryManifest,
    MutationOperation,
    SetFavorite,
    SetHidden,
)
from swipesort.repository import AccessDenied, MutationFailed

logger = logging.getLogger(__name__)

FOLDER_PREFIX = "folder:"
ALBUM_PREFIX = "album:"


def folder_collection_id(folder: str) -> str:
    return f"{FOLDER_PREFIX}{folder}"


def slugify(name: str) -> str:
    """Album ID fragment from a display name."""
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug or "album"


class DirectoryAssetRepository:
    """Asset repository backed by a local image directory."""

    def __init__(self, root: Path, state_dir_name: str = STATE_DIR_NAME) -> None:
        self.root = root.resolve()
        self.state_dir_name = state_dir_name
        self._state_dir = self.root / state_dir_name
        self._manifest_file = self._state_dir / "library.json"
        self._manifest: LibraryManifest | None = None
        self._write_lock = asyncio.Lock()

    @property
    def manifest_file_path(self) -> Path:
        """Get path to library.json."""
        return self._manifest_file

    async def _load_manifest(self) -> LibraryManifest:
        if self._manifest is not None:
            return self._manifest

        manifest = LibraryManifest()
        if await file_exists(self._manifest_file):
            try:
                manifest = LibraryManifest.model_validate(await read_json(self._manifest_file))
            except (FileSystemError, ValidationError, OSError) as e:
                logger.error(f"Failed to load library manifest: {e}")

        self._manifest = manifest
        return manifest

    async def _save_manifest(self, manifest: LibraryManifest) -> None:
        """Write the manifest; callers hold ``_write_lock``."""
        await ensure_directory(self._state_dir)
        await write_json(self._manifest_file, manifest.model_dump(mode="json"))

    async def _scan(self) -> list[tuple[str, datetime]]:
        if not os.access(self.root, os.R_OK | os.X_OK):
            raise AccessDenied(f"No read permission: {self.root}")
        try:
            return await scan_images(self.root, frozenset({self.state_dir_name}))
        except PermissionError as e:
            raise AccessDenied(str(e)) from e

    @staticmethod
    def _folders_of(asset_id: str) -> list[str]:
        """Every ancestor folder of an asset, e.g. 'a', 'a/b'."""
        parents = PurePosixPath(asset_id).parents
        return [p.as_posix() for p in parents if p.as_posix() != "."]

    def _collection_ids(self, asset_id: str, manifest: LibraryManifest) -> frozenset[str]:
        ids = {folder_collection_id(f) for f in self._folders_of(asset_id)}
        ids.update(album.id for album in manifest.albums if asset_id in album.members)
        return frozenset(ids)

    async def list_eligible_assets(self, source_filter: frozenset[str]) -> list[Asset]:
        images = await self._scan()
        manifest = await self._load_manifest()
        hidden = set(manifest.hidden)

        assets: list[Asset] = []
        for asset_id, modified in images:
            if asset_id in hidden:
                continue
            collection_ids = self._collection_ids(asset_id, manifest)
            if source_filter and not collection_ids & source_filter:
                continue
            assets.append(Asset(
                id=asset_id,
                filename=PurePosixPath(asset_id).name,
                created_at=modified,
                collection_ids=collection_ids,
            ))
        return assets

    async def list_collections(self) -> list[CollectionInfo]:
        images = await self._scan()
        manifest = await self._load_manifest()

        folder_counts: dict[str, int] = {}
        for asset_id, _modified in images:
            for folder in self._folders_of(asset_id):
                folder_counts[folder] = folder_counts.get(folder, 0) + 1

        collections = [
            CollectionInfo(
                id=album.id,
                display_name=album.name,
                item_count=len(album.members),
            )
            for album in manifest.albums
        ]
        collections.extend(
            CollectionInfo(
                id=folder_collection_id(folder),
                display_name=folder,
                item_count=count,
                can_add_content=False,
            )
            for folder, count in sorted(folder_counts.items())
        )
        return collections

    async def mutate(self, asset_id: str, operation: MutationOperation) -> None:
        is_valid, error = validate_asset_path(asset_id, self.root)
        if not is_valid:
            raise MutationFailed(error)
        if not await file_exists(resolve_asset_path(asset_id, self.root)):
            raise MutationFailed(f"Asset not found: {asset_id}")

        # Read-modify-write of the manifest must not interleave
        async with self._write_lock:
            manifest = (await self._load_manifest()).model_copy(deep=True)
            self._apply(manifest, asset_id, operation)
            try:
                await self._save_manifest(manifest)
            except OSError as e:
                raise MutationFailed(f"Could not write library manifest: {e}") from e
            self._manifest = manifest
        logger.debug(f"Applied {operation.op} to {asset_id}")

    def _apply(
        self,
        manifest: LibraryManifest,
        asset_id: str,
        operation: MutationOperation,
    ) -> None:
        if isinstance(operation, SetFavorite):
            manifest.favorites = self._toggle(manifest.favorites, asset_id, operation.value)
        elif isinstance(operation, SetHidden):
            manifest.hidden = self._toggle(manifest.hidden, asset_id, operation.value)
        elif isinstance(operation, AddToCollection):
            album = self._find_album(manifest, operation.collection_id)
            if album is None:
                if operation.collection_id.startswith(FOLDER_PREFIX):
                    raise MutationFailed(
                        f"Folder collections are read-only: {operation.collection_id}"
                    )
                raise MutationFailed(f"Collection not found: {operation.collection_id}")
            self._add_member(album, asset_id)
        elif isinstance(operation, EnsureCollectionAndAdd):
            album = self._find_album_by_name(manifest, operation.display_name)
            if album is None:
                album = AlbumRecord(
                    id=self._new_album_id(manifest, operation.display_name),
                    name=operation.display_name,
                )
                manifest.albums.append(album)
                logger.info(f"Created album {operation.display_name!r}")
            self._add_member(album, asset_id)

    async def is_favorite(self, asset_id: str) -> bool:
        return asset_id in (await self._load_manifest()).favorites

    async def is_hidden(self, asset_id: str) -> bool:
        return asset_id in (await self._load_manifest()).hidden

    @staticmethod
    def _toggle(values: list[str], asset_id: str, enabled: bool) -> list[str]:
        remaining = [v for v in values if v != asset_id]
        if enabled:
            remaining.append(asset_id)
        return remaining

    @staticmethod
    def _add_member(album: AlbumRecord, asset_id: str) -> None:
        if asset_id not in album.members:
            album.members.append(asset_id)

    @staticmethod
    def _find_album(manifest: LibraryManifest, album_id: str) -> AlbumRecord | None:
        for album in manifest.albums:
            if album.id == album_id:
                return album
        return None

    @staticmethod
    def _find_album_by_name(manifest: LibraryManifest, name: str) -> AlbumRecord | None:
        for album in manifest.albums:
            if album.name == name:
                return album
        return None

    @staticmethod
    def _new_album_id(manifest: LibraryManifest, name: str) -> str:
        existing = {album.id for album in manifest.albums}
        base = f"{ALBUM_PREFIX}{slugify(name)}"
        candidate = base
        suffix = 2
        while candidate in existing:
            candidate = f"{base}-{suffix}"
            suffix += 1
        return candidate

    async def create_album(self, name: str) -> CollectionInfo:
        """Create an empty album (used to set up destination albums)."""
        async with self._write_lock:
            manifest = (await self._load_manifest()).model_copy(deep=True)
            album = self._find_album_by_name(manifest, name)
            if album is None:
                album = AlbumRecord(id=self._new_album_id(manifest, name), name=name)
                manifest.albums.append(album)
                await self._save_manifest(manifest)
                self._manifest = manifest
                logger.info(f"Created album {name!r}")
        return CollectionInfo(id=album.id, display_name=album.name, item_count=len(album.members))
