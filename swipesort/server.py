"""
SwipeSort FastAPI Server

HTTP REST API and WebSocket endpoints exposing one triage session.
"""
from __future__ import annotations

import logging
from collections.abc import Sequence
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any
from urllib.parse import unquote

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from pydantic import ValidationError

from swipesort.config import EngineConfig
from swipesort.filesystem import (
    file_exists,
    get_mime_type,
    resolve_asset_path,
    validate_asset_path,
)
from swipesort.library import DirectoryAssetRepository
from swipesort.models import (
    CollectionInfo,
    CollectionSelectionRequest,
    CommitRequest,
    CommitResult,
    DecisionKind,
    ErrorResponse,
    GesturePhase,
    GestureResponse,
    GestureUpdateRequest,
    HistoryEntry,
    HistoryResponse,
    Progress,
    ResetRequest,
    SessionState,
    UndoAssetRequest,
    UndoResult,
    WSDecisionCommitted,
    WSError,
    WSSessionReset,
    WSStateUpdate,
    WSUndoCompleted,
)
from swipesort.state import SessionManager
from swipesort.store import ProcessedSetStore

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

logger = logging.getLogger(__name__)

# Global state (initialized on startup)
session_manager: SessionManager | None = None
websocket_clients: set[WebSocket] = set()


async def build_session(
    library_directory: Path,
    config: EngineConfig | None = None,
    destination_names: Sequence[str] = (),
    source_names: Sequence[str] = (),
) -> SessionManager:
    """
    Create and initialize a SessionManager over a directory library.

    Destination albums are created on demand; source names must match
    existing collections (unknown names are logged and skipped).
    """
    config = config or EngineConfig()
    repository = DirectoryAssetRepository(library_directory, config.state_dir_name)
    store = ProcessedSetStore(library_directory, config.state_dir_name)

    destination_ids = [
        (await repository.create_album(name)).id for name in destination_names
    ]

    source_ids: list[str] = []
    if source_names:
        by_name = {c.display_name: c.id for c in await repository.list_collections()}
        for name in source_names:
            if name in by_name:
                source_ids.append(by_name[name])
            else:
                logger.warning(f"Unknown source collection: {name}")

    manager = SessionManager(repository, store, config)
    await manager.initialize(source_filter=source_ids, destination_albums=destination_ids)
    return manager


def create_app(
    library_directory: Path,
    config: EngineConfig | None = None,
    destination_names: Sequence[str] = (),
    source_names: Sequence[str] = (),
    host: str = "127.0.0.1",
    port: int = 8765,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        library_directory: Path to the image library
        config: Engine thresholds and policies
        destination_names: Albums offered by the destination picker
        source_names: Collections the session is restricted to
        host: Server bind address
        port: Server port

    Returns:
        Configured FastAPI application
    """

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
        """Manage application lifecycle."""
        global session_manager

        logger.info(f"Starting SwipeSort server on {host}:{port}")
        logger.info(f"Library directory: {library_directory}")

        session_manager = await build_session(
            library_directory, config, destination_names, source_names
        )

        yield

        logger.info("Shutting down SwipeSort server")
        websocket_clients.clear()

    app = FastAPI(
        title="SwipeSort",
        description="Swipe-based photo triage",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[f"http://localhost:{port}", f"http://127.0.0.1:{port}"],
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    _register_routes(app)

    return app


def _require_session() -> SessionManager:
    if session_manager is None:
        raise HTTPException(status_code=500, detail="Session not initialized")
    return session_manager


def _error(status_code: int, error: str, message: str, **details: Any) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail=ErrorResponse(
            error=error,
            message=message,
            details=details or None,
        ).model_dump()
    )


def _commit_error(result: CommitResult) -> HTTPException:
    status = {
        "COMMIT_PENDING": 409,
        "NOT_CURRENT": 409,
        "NO_CURRENT_ASSET": 404,
        "PERSIST_FAILED": 500,
    }.get(result.error or "", 400)
    return _error(status, result.error or "COMMIT_FAILED", result.message, asset_id=result.asset_id)


def _register_routes(app: FastAPI) -> None:
    """Register all API routes."""

    @app.get("/api/session", response_model=SessionState)
    async def get_session() -> SessionState:
        """Get complete session state."""
        return _require_session().get_session_state()

    @app.get("/api/progress", response_model=Progress)
    async def get_progress() -> Progress:
        """Get progress through the eligible assets."""
        return _require_session().get_progress()

    @app.get("/api/collections", response_model=list[CollectionInfo])
    async def get_collections() -> list[CollectionInfo]:
        """List collections for the source and destination pickers."""
        return await _require_session().list_collections()

    @app.post("/api/source-filter", response_model=SessionState)
    async def set_source_filter(request: CollectionSelectionRequest) -> SessionState:
        """Restrict the session to the given collections (empty = all)."""
        manager = _require_session()
        await manager.set_source_filter(request.collection_ids)
        await _broadcast_state_update()
        return manager.get_session_state()

    @app.post("/api/destinations", response_model=SessionState)
    async def set_destinations(request: CollectionSelectionRequest) -> SessionState:
        """Choose the albums offered by the destination picker."""
        manager = _require_session()
        success, message = await manager.set_destination_albums(request.collection_ids)
        if not success:
            raise _error(400, "INVALID_DESTINATION", message)
        return manager.get_session_state()

    @app.get("/api/assets/{asset_id:path}")
    async def get_asset(asset_id: str) -> FileResponse:
        """Serve an asset's image file."""
        manager = _require_session()
        repository = manager.repository
        if not isinstance(repository, DirectoryAssetRepository):
            raise _error(404, "ASSET_NOT_FOUND", "Assets are not file-backed")

        asset_id = unquote(asset_id)

        is_valid, error = validate_asset_path(asset_id, repository.root)
        if not is_valid:
            raise _error(400, "INVALID_ASSET_PATH", error, asset_id=asset_id)

        path = resolve_asset_path(asset_id, repository.root)
        if not await file_exists(path):
            raise _error(404, "ASSET_NOT_FOUND", f"Asset not found: {asset_id}", asset_id=asset_id)

        return FileResponse(
            path,
            media_type=get_mime_type(path),
            headers={"Cache-Control": "max-age=3600"}
        )

    @app.post("/api/gesture/start", response_model=GestureResponse)
    async def gesture_start() -> GestureResponse:
        """Start dragging the current asset."""
        manager = _require_session()
        accepted = manager.gesture_start()
        return GestureResponse(accepted=accepted, gesture=manager.gestures.snapshot())

    @app.post("/api/gesture/update", response_model=GestureResponse)
    async def gesture_update(request: GestureUpdateRequest) -> GestureResponse:
        """Report the drag translation."""
        manager = _require_session()
        accepted = manager.gestures.phase is GesturePhase.DRAGGING
        snapshot = manager.gesture_update(
            request.dx, request.dy, request.y, request.viewport_height
        )
        return GestureResponse(accepted=accepted, gesture=snapshot)

    @app.post("/api/gesture/end", response_model=GestureResponse)
    async def gesture_end() -> GestureResponse:
        """Release the drag; commits a decision if the swipe was far enough."""
        manager = _require_session()
        result = await manager.gesture_end()
        if result is not None and result.success:
            await _broadcast_commit(result)
        return GestureResponse(
            accepted=result is not None and result.success,
            gesture=manager.gestures.snapshot(),
            commit=result,
        )

    @app.post("/api/commit", response_model=CommitResult)
    async def commit_decision(request: CommitRequest) -> CommitResult:
        """Commit a decision for the current asset without a gesture."""
        manager = _require_session()
        result = await manager.commit(request.decision, request.asset_id)
        if not result.success:
            raise _commit_error(result)
        await _broadcast_commit(result)
        return result

    @app.post("/api/undo", response_model=UndoResult)
    async def undo_last() -> UndoResult:
        """Undo the most recent decision."""
        manager = _require_session()
        entry = await manager.undo_last()
        if entry is None:
            raise _error(400, "NOTHING_TO_UNDO", "Nothing to undo")
        await _broadcast_undo(entry)
        return _undo_result(entry)

    @app.get("/api/history", response_model=HistoryResponse)
    async def get_history(kind: DecisionKind | None = None) -> HistoryResponse:
        """Get decision history, newest first."""
        entries = _require_session().get_history(kind)
        return HistoryResponse(entries=entries, total=len(entries))

    @app.post("/api/history/undo", response_model=UndoResult)
    async def undo_asset(request: UndoAssetRequest) -> UndoResult:
        """Undo the decision for a specific asset."""
        manager = _require_session()
        entry = manager.history.find(request.asset_id)
        if entry is None:
            raise _error(
                404, "NOTHING_TO_UNDO",
                f"No undoable decision for {request.asset_id}",
                asset_id=request.asset_id,
            )
        if not await manager.undo_by_identifier(request.asset_id):
            raise _error(
                400, "UNDO_FAILED",
                f"Could not undo decision for {request.asset_id}",
                asset_id=request.asset_id,
            )
        await _broadcast_undo(entry)
        return _undo_result(entry)

    @app.post("/api/reset", response_model=SessionState)
    async def reset_session(request: ResetRequest) -> SessionState:
        """Forget processed assets and rebuild the queue."""
        manager = _require_session()
        cleared = await manager.reset(request.clear_history)
        await _broadcast_ws({
            "type": "session_reset",
            "payload": WSSessionReset(
                history_cleared=cleared,
                queue_length=len(manager.queue),
            ).model_dump(mode="json")
        })
        await _broadcast_state_update()
        return manager.get_session_state()

    # === WebSocket Endpoint ===

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket) -> None:
        """WebSocket endpoint for gestures and real-time updates."""
        await websocket.accept()
        websocket_clients.add(websocket)

        try:
            await _send_state_update(websocket)

            while True:
                data = await websocket.receive_json()
                await _handle_ws_message(websocket, data)

        except WebSocketDisconnect:
            logger.debug("WebSocket client disconnected")
        except Exception as e:
            logger.error(f"WebSocket error: {e}")
        finally:
            websocket_clients.discard(websocket)


def _undo_result(entry: HistoryEntry) -> UndoResult:
    return UndoResult(
        success=True,
        asset_id=entry.asset_id,
        undone=entry.kind,
        message=f"Undid {entry.kind.value} on {entry.asset_id}",
    )


async def _send_error(websocket: WebSocket, code: str, message: str, **details: Any) -> None:
    await websocket.send_json({
        "type": "error",
        "payload": WSError(code=code, message=message, details=details or None).model_dump()
    })


async def _handle_ws_message(websocket: WebSocket, data: dict[str, Any]) -> None:
    """Handle incoming WebSocket message."""
    if session_manager is None:
        await _send_error(websocket, "SESSION_NOT_INITIALIZED", "Session not initialized")
        return

    msg_type = data.get("type")
    payload = data.get("payload", {})

    try:
        if msg_type == "sync":
            await _send_state_update(websocket)

        elif msg_type == "gesture_start":
            session_manager.gesture_start()
            await _send_gesture(websocket)

        elif msg_type == "gesture_update":
            request = GestureUpdateRequest.model_validate(payload)
            session_manager.gesture_update(
                request.dx, request.dy, request.y, request.viewport_height
            )
            await _send_gesture(websocket)

        elif msg_type == "gesture_end":
            result = await session_manager.gesture_end()
            if result is not None and not result.success:
                await _send_error(
                    websocket, result.error or "COMMIT_FAILED", result.message,
                    asset_id=result.asset_id,
                )
            elif result is not None:
                await _broadcast_commit(result)
            else:
                await _send_gesture(websocket)

        elif msg_type == "commit":
            request = CommitRequest.model_validate(payload)
            result = await session_manager.commit(request.decision, request.asset_id)
            if result.success:
                await _broadcast_commit(result)
            else:
                await _send_error(
                    websocket, result.error or "COMMIT_FAILED", result.message,
                    asset_id=result.asset_id,
                )

        elif msg_type == "undo":
            entry = await session_manager.undo_last()
            if entry is None:
                await _send_error(websocket, "NOTHING_TO_UNDO", "Nothing to undo")
            else:
                await _broadcast_undo(entry)

        elif msg_type == "undo_asset":
            asset_id = payload.get("asset_id")
            entry = session_manager.history.find(asset_id) if asset_id else None
            if entry is not None and await session_manager.undo_by_identifier(entry.asset_id):
                await _broadcast_undo(entry)
            else:
                await _send_error(
                    websocket, "UNDO_FAILED",
                    f"Could not undo decision for {asset_id}",
                    asset_id=asset_id,
                )

        else:
            await _send_error(websocket, "UNKNOWN_MESSAGE", f"Unknown message type: {msg_type}")

    except ValidationError as e:
        await _send_error(websocket, "INVALID_PAYLOAD", str(e))
    except Exception as e:
        logger.error(f"Error handling WebSocket message: {e}")
        await _send_error(websocket, "INTERNAL_ERROR", str(e))


def _state_message() -> dict[str, Any] | None:
    if session_manager is None:
        return None
    return {
        "type": "state_update",
        "payload": WSStateUpdate(
            access_denied=session_manager.access_denied,
            current=session_manager.current(),
            progress=session_manager.get_progress(),
            has_history=session_manager.history.has_history,
        ).model_dump(mode="json")
    }


async def _send_gesture(websocket: WebSocket) -> None:
    if session_manager is None:
        return
    await websocket.send_json({
        "type": "gesture",
        "payload": session_manager.gestures.snapshot().model_dump(mode="json")
    })


async def _send_state_update(websocket: WebSocket) -> None:
    """Send state update to a single WebSocket client."""
    message = _state_message()
    if message is not None:
        await websocket.send_json(message)


async def _broadcast_state_update() -> None:
    """Broadcast state update to all WebSocket clients."""
    message = _state_message()
    if message is not None:
        await _broadcast_ws(message)


async def _broadcast_commit(result: CommitResult) -> None:
    if result.asset_id is None or result.decision is None:
        return
    await _broadcast_ws({
        "type": "decision_committed",
        "payload": WSDecisionCommitted(
            asset_id=result.asset_id,
            decision=result.decision,
        ).model_dump(mode="json")
    })
    await _broadcast_state_update()


async def _broadcast_undo(entry: HistoryEntry) -> None:
    await _broadcast_ws({
        "type": "undo_completed",
        "payload": WSUndoCompleted(
            asset_id=entry.asset_id,
            undone=entry.kind,
        ).model_dump(mode="json")
    })
    await _broadcast_state_update()


async def _broadcast_ws(message: dict[str, Any]) -> None:
    """Broadcast message to all WebSocket clients."""
    disconnected: set[WebSocket] = set()

    for client in list(websocket_clients):
        try:
            await client.send_json(message)
        except Exception:
            disconnected.add(client)

    websocket_clients.difference_update(disconnected)
