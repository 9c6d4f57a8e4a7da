"""
SwipeSort Data Models

All Pydantic models for engine state, repository payloads, API requests,
responses, and WebSocket messages.
These models are the single source of truth for data structures.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class DecisionKind(str, Enum):
    """Classification outcome of one committed gesture."""
    TRASH = "trash"
    KEEP = "keep"
    FAVORITE = "favorite"
    HIDE = "hide"
    MOVE_TO_ALBUM = "move_to_album"


class GesturePhase(str, Enum):
    """Phases of the swipe gesture state machine."""
    IDLE = "idle"
    DRAGGING = "dragging"
    COMMITTED = "committed"
    CANCELLED = "cancelled"


class Asset(BaseModel):
    """An item in the source library, as fetched from the repository."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Repository identifier (opaque to the engine)",
        examples=["IMG_0001.jpg", "2024/holiday/IMG_0042.png"]
    )
    filename: str = Field("", description="Display name of the asset")
    created_at: datetime | None = None
    collection_ids: frozenset[str] = Field(
        default_factory=frozenset,
        description="Collections the asset belonged to when fetched"
    )


class QueueItem(BaseModel):
    """An asset waiting in the session queue."""
    model_config = ConfigDict(frozen=True)

    id: str
    asset: Asset

    @classmethod
    def from_asset(cls, asset: Asset) -> QueueItem:
        return cls(id=asset.id, asset=asset)


class CollectionInfo(BaseModel):
    """A named grouping of assets (album / bucket)."""
    id: str
    display_name: str
    item_count: int = Field(0, ge=0)
    can_add_content: bool = True


class Decision(BaseModel):
    """Tagged decision variant. ``album_id`` is set only for MOVE_TO_ALBUM."""
    model_config = ConfigDict(frozen=True)

    kind: DecisionKind
    album_id: str | None = None

    @model_validator(mode="after")
    def _check_album(self) -> Decision:
        if self.kind is DecisionKind.MOVE_TO_ALBUM and not self.album_id:
            raise ValueError("move_to_album decision requires album_id")
        if self.kind is not DecisionKind.MOVE_TO_ALBUM and self.album_id is not None:
            raise ValueError(f"{self.kind.value} decision does not take album_id")
        return self

    @classmethod
    def trash(cls) -> Decision:
        return cls(kind=DecisionKind.TRASH)

    @classmethod
    def keep(cls) -> Decision:
        return cls(kind=DecisionKind.KEEP)

    @classmethod
    def favorite(cls) -> Decision:
        return cls(kind=DecisionKind.FAVORITE)

    @classmethod
    def hide(cls) -> Decision:
        return cls(kind=DecisionKind.HIDE)

    @classmethod
    def move_to_album(cls, album_id: str) -> Decision:
        return cls(kind=DecisionKind.MOVE_TO_ALBUM, album_id=album_id)


class HistoryEntry(BaseModel):
    """
    A committed decision.

    ``decision`` is None for Keep (no repository mutation). ``orphaned``
    marks entries left behind by a reset that kept history; they are
    display-only and cannot be undone.
    """
    asset_id: str
    asset: Asset
    decision: Decision | None = None
    committed_at: int = Field(..., ge=0)
    orphaned: bool = False

    @property
    def kind(self) -> DecisionKind:
        return self.decision.kind if self.decision is not None else DecisionKind.KEEP


# === Repository Mutations ===

class SetFavorite(BaseModel):
    op: Literal["set_favorite"] = "set_favorite"
    value: bool


class SetHidden(BaseModel):
    op: Literal["set_hidden"] = "set_hidden"
    value: bool


class AddToCollection(BaseModel):
    op: Literal["add_to_collection"] = "add_to_collection"
    collection_id: str = Field(..., min_length=1)


class EnsureCollectionAndAdd(BaseModel):
    op: Literal["ensure_collection_and_add"] = "ensure_collection_and_add"
    display_name: str = Field(..., min_length=1)


MutationOperation = Annotated[
    Union[SetFavorite, SetHidden, AddToCollection, EnsureCollectionAndAdd],
    Field(discriminator="op"),
]


# === Engine Results & Snapshots ===

class CommitResult(BaseModel):
    """Outcome of a commit attempt (gesture end or direct decision)."""
    success: bool
    asset_id: str | None = None
    decision: Decision | None = None
    error: str | None = None
    message: str = ""


class UndoResult(BaseModel):
    """Outcome of an undo attempt."""
    success: bool
    asset_id: str | None = None
    undone: DecisionKind | None = None
    message: str = ""


class GestureSnapshot(BaseModel):
    """Live state of the gesture state machine."""
    phase: GesturePhase = GesturePhase.IDLE
    asset_id: str | None = None
    dx: float = 0.0
    dy: float = 0.0
    picker_active: bool = False
    hover_album_id: str | None = None
    hint: DecisionKind | None = None
    locked: bool = False


class Progress(BaseModel):
    """Progress through the eligible assets."""
    total_eligible_count: int = Field(..., ge=0)
    remaining: int = Field(..., ge=0)
    displayed_position: int = Field(..., ge=0)
    progress_value: float = Field(..., ge=0)


class SessionState(BaseModel):
    """Complete session state returned by GET /api/session."""
    version: str = "1.0"
    access_denied: bool = False
    current: QueueItem | None = None
    queue: list[QueueItem] = Field(default_factory=list)
    cursor: int = Field(0, ge=0)
    total_eligible_count: int = Field(0, ge=0)
    source_filter: list[str] = Field(default_factory=list)
    destination_albums: list[str] = Field(default_factory=list)
    has_history: bool = False
    processed_count: int = Field(0, ge=0)
    gesture: GestureSnapshot = Field(default_factory=GestureSnapshot)


class ProcessedSetFile(BaseModel):
    """Schema for .swipesort/processed.json."""
    version: str = "1.0"
    processed_assets: list[str] = Field(default_factory=list)
    updated_at: datetime | None = None


class AlbumRecord(BaseModel):
    """An album created inside a directory library."""
    id: str
    name: str = Field(..., min_length=1)
    members: list[str] = Field(default_factory=list)


class LibraryManifest(BaseModel):
    """Schema for .swipesort/library.json (directory library metadata)."""
    version: str = "1.0"
    albums: list[AlbumRecord] = Field(default_factory=list)
    favorites: list[str] = Field(default_factory=list)
    hidden: list[str] = Field(default_factory=list)


# === Request Models ===

class GestureUpdateRequest(BaseModel):
    """Request body for POST /api/gesture/update."""
    dx: float
    dy: float
    y: float | None = None
    viewport_height: float | None = Field(None, gt=0)


class CommitRequest(BaseModel):
    """Request body for POST /api/commit."""
    decision: Decision
    asset_id: str | None = None


class CollectionSelectionRequest(BaseModel):
    """Request body for POST /api/source-filter and /api/destinations."""
    collection_ids: list[str] = Field(default_factory=list)


class UndoAssetRequest(BaseModel):
    """Request body for POST /api/history/undo."""
    asset_id: str = Field(..., min_length=1)


class ResetRequest(BaseModel):
    """Request body for POST /api/reset."""
    clear_history: bool | None = None


# === Response Models ===

class GestureResponse(BaseModel):
    """Response body for the /api/gesture/* endpoints."""
    accepted: bool
    gesture: GestureSnapshot
    commit: CommitResult | None = None


class HistoryResponse(BaseModel):
    """Response body for GET /api/history (newest first)."""
    entries: list[HistoryEntry] = Field(default_factory=list)
    total: int = Field(0, ge=0)


class ErrorResponse(BaseModel):
    """Standardized error response format."""
    error: str
    message: str
    details: dict[str, Any] | None = None


# === WebSocket Message Models ===

class WSStateUpdate(BaseModel):
    """WebSocket state_update message payload."""
    access_denied: bool
    current: QueueItem | None = None
    progress: Progress
    has_history: bool


class WSDecisionCommitted(BaseModel):
    """WebSocket decision_committed message payload."""
    asset_id: str
    decision: Decision


class WSUndoCompleted(BaseModel):
    """WebSocket undo_completed message payload."""
    asset_id: str
    undone: DecisionKind | None = None


class WSSessionReset(BaseModel):
    """WebSocket session_reset message payload."""
    history_cleared: bool
    queue_length: int


class WSError(BaseModel):
    """WebSocket error message payload."""
    code: str
    message: str
    details: dict[str, Any] | None = None
