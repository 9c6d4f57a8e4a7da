"""
SwipeSort Gesture Decisions

Maps swipe translations to decisions and tracks one gesture at a time:

    IDLE --start--> DRAGGING --end--> COMMITTED | CANCELLED

A rightward drag past the secondary threshold opens the destination
picker; the album under the finger wins over the four directions.
"""
from __future__ import annotations

import logging
import math
from collections.abc import Sequence

from swipesort.config import PRIMARY_THRESHOLD, EngineConfig
from swipesort.models import Decision, DecisionKind, GesturePhase, GestureSnapshot

logger = logging.getLogger(__name__)


def resolve_hover(
    y: float | None,
    viewport_height: float | None,
    albums: Sequence[str],
) -> str | None:
    """
    Album whose horizontal band contains ``y``.

    The viewport is split into ``len(albums)`` equal bands, top to bottom
    in album order. Positions outside the viewport hover nothing.
    """
    if not albums or y is None or not viewport_height or viewport_height <= 0:
        return None
    band = viewport_height / len(albums)
    index = math.floor(y / band)
    if 0 <= index < len(albums):
        return albums[index]
    return None


def direction_for(dx: float, dy: float, threshold: float) -> DecisionKind | None:
    """Four-way direction of a translation; ties at the threshold give None."""
    if dx < -threshold:
        return DecisionKind.TRASH
    if dx > threshold:
        return DecisionKind.KEEP
    if dy < -threshold:
        return DecisionKind.FAVORITE
    if dy > threshold:
        return DecisionKind.HIDE
    return None


def decide(
    dx: float,
    dy: float,
    hover_album_id: str | None = None,
    threshold: float = PRIMARY_THRESHOLD,
) -> Decision | None:
    """Decision for a released gesture, or None to cancel it."""
    if hover_album_id is not None:
        return Decision.move_to_album(hover_album_id)
    kind = direction_for(dx, dy, threshold)
    if kind is None:
        return None
    return Decision(kind=kind)


class DestinationPicker:
    """Secondary sub-state choosing a destination album mid-gesture."""

    def __init__(self) -> None:
        self.active = False
        self.hover_album_id: str | None = None

    def update(
        self,
        dx: float,
        y: float | None,
        viewport_height: float | None,
        albums: Sequence[str],
        threshold: float,
    ) -> None:
        if dx > threshold and albums:
            self.active = True
            self.hover_album_id = resolve_hover(y, viewport_height, albums)
        else:
            self.deactivate()

    def deactivate(self) -> None:
        self.active = False
        self.hover_album_id = None


class GestureTracker:
    """
    State machine for the swipe on the current asset.

    A committed asset stays locked until its side effect settles; start
    and end requests for a locked asset are ignored.
    """

    def __init__(self, config: EngineConfig | None = None) -> None:
        self.config = config or EngineConfig()
        self.phase = GesturePhase.IDLE
        self.asset_id: str | None = None
        self.dx = 0.0
        self.dy = 0.0
        self.picker = DestinationPicker()
        self._locked: set[str] = set()

    def is_locked(self, asset_id: str) -> bool:
        return asset_id in self._locked

    @property
    def locked_ids(self) -> frozenset[str]:
        return frozenset(self._locked)

    def lock(self, asset_id: str) -> bool:
        """Lock an asset for a pending commit. False if already locked."""
        if asset_id in self._locked:
            return False
        self._locked.add(asset_id)
        return True

    def start(self, asset_id: str) -> bool:
        """Begin dragging ``asset_id``. Rejected while it is locked."""
        if self.is_locked(asset_id):
            logger.debug(f"Ignoring gesture start on locked asset {asset_id}")
            return False
        self._reset_offset()
        self.phase = GesturePhase.DRAGGING
        self.asset_id = asset_id
        return True

    def update(
        self,
        dx: float,
        dy: float,
        y: float | None = None,
        viewport_height: float | None = None,
        albums: Sequence[str] = (),
    ) -> bool:
        """Track a new translation. Ignored unless dragging."""
        if self.phase is not GesturePhase.DRAGGING:
            return False
        self.dx = dx
        self.dy = dy
        self.picker.update(dx, y, viewport_height, albums, self.config.secondary_threshold)
        return True

    def end(self) -> Decision | None:
        """
        Release the drag.

        Returns the decision and locks the asset, or None when the drag
        was too short (the offset snaps back and the asset stays current).
        """
        if self.phase is not GesturePhase.DRAGGING or self.asset_id is None:
            return None

        hover = self.picker.hover_album_id if self.picker.active else None
        decision = decide(self.dx, self.dy, hover, self.config.primary_threshold)
        if decision is None:
            self.phase = GesturePhase.CANCELLED
            self._reset_offset()
            return None

        self.phase = GesturePhase.COMMITTED
        self.lock(self.asset_id)
        return decision

    def settle(self, asset_id: str) -> None:
        """Release the lock once the asset's side effect has completed."""
        self._locked.discard(asset_id)
        if self.asset_id == asset_id:
            self.phase = GesturePhase.IDLE
            self.asset_id = None
            self._reset_offset()

    def cancel(self) -> None:
        """Drop the in-progress drag without deciding."""
        if self.phase is GesturePhase.DRAGGING:
            self.phase = GesturePhase.CANCELLED
        self._reset_offset()

    def preview(self, dx: float | None = None, dy: float | None = None) -> DecisionKind | None:
        """Decision indicator to show for a translation (hint threshold)."""
        dx = self.dx if dx is None else dx
        dy = self.dy if dy is None else dy
        if self.picker.active and self.picker.hover_album_id is not None:
            return DecisionKind.MOVE_TO_ALBUM
        return direction_for(dx, dy, self.config.hint_threshold)

    def _reset_offset(self) -> None:
        self.dx = 0.0
        self.dy = 0.0
        self.picker.deactivate()

    def snapshot(self) -> GestureSnapshot:
        return GestureSnapshot(
            phase=self.phase,
            asset_id=self.asset_id,
            dx=self.dx,
            dy=self.dy,
            picker_active=self.picker.active,
            hover_album_id=self.picker.hover_album_id,
            hint=self.preview() if self.phase is GesturePhase.DRAGGING else None,
            locked=self.asset_id is not None and self.is_locked(self.asset_id),
        )
