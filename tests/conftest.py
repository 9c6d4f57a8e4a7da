"""
Pytest fixtures for SwipeSort tests.
"""
from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, AsyncGenerator, Generator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from swipesort.repository import InMemoryAssetRepository
from tests.helpers import (
    BASE_TIME,
    PNG_BYTES,
    GatedRepository,
    make_assets,
    make_collections,
)

if TYPE_CHECKING:
    from fastapi import FastAPI
    from swipesort.state import SessionManager


@pytest.fixture
def temp_library_dir() -> Generator[Path, None, None]:
    """Create temporary library with test images (image004 is newest)."""
    temp_dir = Path(tempfile.mkdtemp())

    timestamp = BASE_TIME.timestamp()
    for i in range(5):
        path = temp_dir / f"image{i:03d}.png"
        path.write_bytes(PNG_BYTES)
        os.utime(path, (timestamp + i * 60, timestamp + i * 60))

    subdir = temp_dir / "batch1"
    subdir.mkdir()
    for i in range(3):
        path = subdir / f"sub_image{i:03d}.png"
        path.write_bytes(PNG_BYTES)
        os.utime(path, (timestamp - (i + 1) * 60, timestamp - (i + 1) * 60))

    yield temp_dir

    shutil.rmtree(temp_dir)


@pytest.fixture
def memory_repository() -> InMemoryAssetRepository:
    """Five assets; a1 and a3 are in albumX."""
    return InMemoryAssetRepository(
        make_assets(5, {"albumX": {1, 3}}),
        make_collections(),
    )


@pytest.fixture
def gated_repository() -> GatedRepository:
    return GatedRepository(make_assets(5, {"albumX": {1, 3}}), make_collections())


@pytest_asyncio.fixture
async def session_manager(
    memory_repository: InMemoryAssetRepository,
    tmp_path: Path,
) -> AsyncGenerator["SessionManager", None]:
    """Initialized SessionManager over the in-memory repository."""
    from swipesort.state import SessionManager
    from swipesort.store import ProcessedSetStore

    manager = SessionManager(memory_repository, ProcessedSetStore(tmp_path))
    await manager.initialize()
    yield manager


@pytest_asyncio.fixture
async def gated_session(
    gated_repository: GatedRepository,
    tmp_path: Path,
) -> AsyncGenerator["SessionManager", None]:
    """SessionManager whose repository mutations block until released."""
    from swipesort.state import SessionManager
    from swipesort.store import ProcessedSetStore

    manager = SessionManager(gated_repository, ProcessedSetStore(tmp_path))
    await manager.initialize(destination_albums=["dest-1", "dest-2"])
    yield manager
    gated_repository.gate.set()


@pytest_asyncio.fixture
async def app(temp_library_dir: Path) -> AsyncGenerator["FastAPI", None]:
    """Create test FastAPI application with initialized session."""
    from swipesort import server
    from swipesort.server import build_session, create_app

    app = create_app(
        library_directory=temp_library_dir,
        destination_names=["Family", "Work"],
    )

    # Lifespan doesn't trigger with the test client
    server.session_manager = await build_session(
        temp_library_dir, destination_names=["Family", "Work"]
    )

    yield app

    server.session_manager = None
    server.websocket_clients.clear()


@pytest_asyncio.fixture
async def client(app: "FastAPI") -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
