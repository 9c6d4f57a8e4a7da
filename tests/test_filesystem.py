"""
Tests for filesystem operations.
"""
from __future__ import annotations

from pathlib import Path

import pytest

from swipesort.filesystem import (
    FileSystemError,
    get_mime_type,
    is_valid_extension,
    normalize_asset_id,
    read_json,
    resolve_asset_path,
    scan_images,
    validate_asset_path,
    validate_library_directory,
    write_json,
)


class TestFilesystem:
    """Tests for filesystem module."""

    def test_is_valid_extension(self) -> None:
        """Test extension validation."""
        assert is_valid_extension(Path("test.jpg")) is True
        assert is_valid_extension(Path("test.JPEG")) is True
        assert is_valid_extension(Path("test.heic")) is True
        assert is_valid_extension(Path("test.txt")) is False

    def test_get_mime_type(self) -> None:
        assert get_mime_type(Path("a.png")) == "image/png"
        assert get_mime_type(Path("a.unknown")) == "application/octet-stream"

    def test_normalize_asset_id_subdirectory(self) -> None:
        base = Path("/home/user/photos")
        path = Path("/home/user/photos/2024/photo.jpg")

        assert normalize_asset_id(path, base) == "2024/photo.jpg"

    def test_resolve_asset_path(self) -> None:
        base = Path("/home/user/photos")

        assert resolve_asset_path("2024/photo.jpg", base) == Path("/home/user/photos/2024/photo.jpg")

    def test_validate_asset_path_traversal(self, temp_library_dir: Path) -> None:
        is_valid, error = validate_asset_path("../etc/passwd.jpg", temp_library_dir)

        assert is_valid is False
        assert "traversal" in error

    def test_validate_asset_path_extension(self, temp_library_dir: Path) -> None:
        is_valid, error = validate_asset_path("notes.txt", temp_library_dir)

        assert is_valid is False
        assert "extension" in error

    def test_validate_asset_path_valid(self, temp_library_dir: Path) -> None:
        assert validate_asset_path("image000.png", temp_library_dir) == (True, "")

    @pytest.mark.asyncio
    async def test_scan_images_newest_first(self, temp_library_dir: Path) -> None:
        images = await scan_images(temp_library_dir)

        assert [asset_id for asset_id, _ in images] == [
            "image004.png",
            "image003.png",
            "image002.png",
            "image001.png",
            "image000.png",
            "batch1/sub_image000.png",
            "batch1/sub_image001.png",
            "batch1/sub_image002.png",
        ]

    @pytest.mark.asyncio
    async def test_scan_images_skips_state_dir(self, temp_library_dir: Path) -> None:
        state_dir = temp_library_dir / "state"
        state_dir.mkdir()
        (state_dir / "thumb.png").write_bytes(b"")

        images = await scan_images(temp_library_dir, frozenset({"state"}))

        assert all(not asset_id.startswith("state/") for asset_id, _ in images)
        assert len(images) == 8

    @pytest.mark.asyncio
    async def test_write_and_read_json(self, tmp_path: Path) -> None:
        path = tmp_path / "data.json"

        await write_json(path, {"a": [1, 2]})

        assert await read_json(path) == {"a": [1, 2]}
        assert not (tmp_path / "data.json.tmp").exists()

    @pytest.mark.asyncio
    async def test_validate_library_directory(self, temp_library_dir: Path) -> None:
        is_valid, issues = await validate_library_directory(temp_library_dir)

        assert is_valid is True
        assert issues == []

    @pytest.mark.asyncio
    async def test_validate_missing_directory(self, tmp_path: Path) -> None:
        is_valid, issues = await validate_library_directory(tmp_path / "missing")

        assert is_valid is False
        assert "does not exist" in issues[0]

    @pytest.mark.asyncio
    async def test_read_json_rejects_garbage(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.json"
        path.write_text("{oops")

        with pytest.raises(FileSystemError) as exc_info:
            await read_json(path)

        assert exc_info.value.path == path

    @pytest.mark.asyncio
    async def test_read_json_rejects_non_object(self, tmp_path: Path) -> None:
        path = tmp_path / "list.json"
        path.write_text("[1, 2]")

        with pytest.raises(FileSystemError):
            await read_json(path)

    def test_validate_asset_path_null_byte(self, temp_library_dir: Path) -> None:
        is_valid, error = validate_asset_path("image\x00.png", temp_library_dir)

        assert is_valid is False
        assert "Null" in error
