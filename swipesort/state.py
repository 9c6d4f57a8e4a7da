"""
SwipeSort Session State Management

Wires the queue, gesture tracker, history and processed-set store to an
asset repository. This is the core business logic for SwipeSort.

Repository calls are the only suspension points: while a mutation for an
asset is pending, that asset is locked, but other operations (undo of
other entries, filter changes) proceed.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from swipesort.config import EngineConfig
from swipesort.gestures import GestureTracker
from swipesort.history import HistoryStack
from swipesort.models import (
    AddToCollection,
    CollectionInfo,
    CommitResult,
    Decision,
    DecisionKind,
    EnsureCollectionAndAdd,
    GestureSnapshot,
    HistoryEntry,
    MutationOperation,
    Progress,
    QueueItem,
    SessionState,
    SetFavorite,
    SetHidden,
)
from swipesort.queue import SessionQueue
from swipesort.repository import AccessDenied, MutationFailed

if TYPE_CHECKING:
    from collections.abc import Callable

    from swipesort.repository import AssetRepository
    from swipesort.store import ProcessedSetStore

logger = logging.getLogger(__name__)


class SessionManager:
    """
    Manages the triage session.

    Responsibilities:
    - Build the queue of unprocessed assets for the source filter
    - Turn gestures into decisions and apply their side effects
    - Record history and support undo
    - Persist the processed set after every change
    """

    def __init__(
        self,
        repository: AssetRepository,
        store: ProcessedSetStore,
        config: EngineConfig | None = None,
    ) -> None:
        self.repository = repository
        self.store = store
        self.config = config or EngineConfig()
        self.queue = SessionQueue()
        self.gestures = GestureTracker(self.config)
        self.history = HistoryStack()
        self.processed: set[str] = set()
        self.source_filter: frozenset[str] = frozenset()
        self.destination_albums: list[str] = []
        self.access_denied = False
        self._undoing: set[str] = set()
        self._listeners: list[Callable[[], None]] = []

    async def initialize(
        self,
        source_filter: Iterable[str] = (),
        destination_albums: Iterable[str] = (),
    ) -> None:
        """Load the processed set and build the first queue."""
        await self.store.ensure_directory_exists()
        self.processed = await self.store.load()
        self.source_filter = frozenset(source_filter)
        self.destination_albums = list(dict.fromkeys(destination_albums))
        await self.rebuild()

    async def rebuild(self) -> None:
        """Rebuild the queue from the repository under the current filter."""
        try:
            assets = await self.repository.list_eligible_assets(self.source_filter)
        except AccessDenied as e:
            logger.warning(f"Library access denied: {e}")
            self.access_denied = True
            self.queue = SessionQueue()
            self.gestures.cancel()
            self._notify_listeners()
            return

        self.access_denied = False
        self.queue = SessionQueue.build(assets, self.processed, self.source_filter)
        self.gestures.cancel()
        logger.info(
            f"Session built: {len(self.queue)} of "
            f"{self.queue.total_eligible_count} assets pending"
        )
        self._notify_listeners()

    def add_listener(self, callback: Callable[[], None]) -> None:
        """Add state change listener."""
        self._listeners.append(callback)

    def _notify_listeners(self) -> None:
        """Notify all listeners of state change."""
        for callback in self._listeners:
            try:
                callback()
            except Exception as e:
                logger.error(f"Listener error: {e}")

    # === Queries ===

    def current(self) -> QueueItem | None:
        """Get the asset awaiting a decision."""
        return self.queue.current()

    def get_progress(self) -> Progress:
        return self.queue.get_progress()

    def get_history(self, kind: DecisionKind | None = None) -> list[HistoryEntry]:
        """History newest first, optionally filtered by decision kind."""
        return self.history.filtered(kind)

    def get_session_state(self) -> SessionState:
        """Get complete session state for API response."""
        return SessionState(
            access_denied=self.access_denied,
            current=self.queue.current(),
            queue=list(self.queue),
            cursor=self.queue.cursor,
            total_eligible_count=self.queue.total_eligible_count,
            source_filter=sorted(self.source_filter),
            destination_albums=list(self.destination_albums),
            has_history=self.history.has_history,
            processed_count=len(self.processed),
            gesture=self.gestures.snapshot(),
        )

    async def list_collections(self) -> list[CollectionInfo]:
        return await self.repository.list_collections()

    # === Configuration ===

    async def set_source_filter(self, collection_ids: Iterable[str]) -> None:
        """Restrict the session to assets in these collections and rebuild."""
        self.source_filter = frozenset(collection_ids)
        await self.rebuild()

    async def set_destination_albums(self, collection_ids: Iterable[str]) -> tuple[bool, str]:
        """
        Choose the albums offered by the destination picker.

        Returns:
            Tuple of (success, message)
        """
        requested = list(dict.fromkeys(collection_ids))
        collections = {c.id: c for c in await self.repository.list_collections()}

        for collection_id in requested:
            collection = collections.get(collection_id)
            if collection is None:
                return False, f"Collection not found: {collection_id}"
            if not collection.can_add_content:
                return False, f"Collection does not accept content: {collection.display_name}"

        self.destination_albums = requested
        self._notify_listeners()
        return True, f"{len(requested)} destination albums selected"

    # === Gestures ===

    def gesture_start(self) -> bool:
        """Start dragging the current asset."""
        item = self.queue.current()
        if item is None:
            return False
        return self.gestures.start(item.id)

    def gesture_update(
        self,
        dx: float,
        dy: float,
        y: float | None = None,
        viewport_height: float | None = None,
    ) -> GestureSnapshot:
        """Track the drag translation and the finger's vertical position."""
        self.gestures.update(dx, dy, y, viewport_height, self.destination_albums)
        return self.gestures.snapshot()

    async def gesture_end(self) -> CommitResult | None:
        """
        Release the drag.

        Returns:
            The commit outcome, or None if the gesture was cancelled or ignored
        """
        item = self.queue.current()
        asset_id = self.gestures.asset_id
        if item is None or asset_id != item.id:
            self.gestures.cancel()
            return None

        decision = self.gestures.end()
        if decision is None:
            return None

        return await self._apply_and_record(item, decision)

    # === Commits ===

    async def commit(self, decision: Decision, asset_id: str | None = None) -> CommitResult:
        """
        Commit a decision for the current asset without a gesture.

        ``asset_id`` guards against committing to an asset that is no
        longer current.
        """
        item = self.queue.current()
        if item is None:
            return CommitResult(success=False, error="NO_CURRENT_ASSET", message="Queue is empty")

        if asset_id is not None and asset_id != item.id:
            return CommitResult(
                success=False,
                asset_id=asset_id,
                error="NOT_CURRENT",
                message=f"Asset is not current: {asset_id}",
            )

        if not self.gestures.lock(item.id):
            return CommitResult(
                success=False,
                asset_id=item.id,
                error="COMMIT_PENDING",
                message=f"A decision for {item.id} is already pending",
            )

        return await self._apply_and_record(item, decision)

    async def _apply_and_record(self, item: QueueItem, decision: Decision) -> CommitResult:
        """Run the side effect for a locked item, persist it, then record it."""
        try:
            await self._apply_side_effect(item.id, decision)
        except MutationFailed as e:
            logger.warning(f"Decision {decision.kind.value} failed for {item.id}: {e.reason}")
            return self._failed_commit(item, decision, "MUTATION_FAILED", e.reason)

        self.processed.add(item.id)
        try:
            await self.store.save(self.processed)
        except OSError as e:
            self.processed.discard(item.id)
            logger.error(f"Could not persist decision for {item.id}: {e}")
            return self._failed_commit(item, decision, "PERSIST_FAILED", str(e))

        self.history.record(item.asset, decision)
        self.queue.advance(item.id)
        self.gestures.settle(item.id)

        logger.debug(f"Committed {decision.kind.value} for {item.id}")
        self._notify_listeners()
        return CommitResult(
            success=True,
            asset_id=item.id,
            decision=decision,
            message=f"{decision.kind.value} {item.id}",
        )

    def _failed_commit(
        self,
        item: QueueItem,
        decision: Decision,
        error: str,
        message: str,
    ) -> CommitResult:
        """Release the item's lock; it stays current."""
        self.gestures.settle(item.id)
        self._notify_listeners()
        return CommitResult(
            success=False,
            asset_id=item.id,
            decision=decision,
            error=error,
            message=message,
        )

    async def _apply_side_effect(self, asset_id: str, decision: Decision) -> None:
        operation: MutationOperation
        if decision.kind is DecisionKind.KEEP:
            return
        if decision.kind is DecisionKind.TRASH:
            operation = EnsureCollectionAndAdd(display_name=self.config.trash_album_name)
        elif decision.kind is DecisionKind.FAVORITE:
            operation = SetFavorite(value=True)
        elif decision.kind is DecisionKind.HIDE:
            operation = SetHidden(value=True)
        else:
            if decision.album_id is None:
                raise MutationFailed("Missing destination album")
            operation = AddToCollection(collection_id=decision.album_id)
        await self.repository.mutate(asset_id, operation)

    # === Undo ===

    async def undo_last(self) -> HistoryEntry | None:
        """
        Undo the most recent undoable decision.

        Returns:
            The undone entry, or None if there was nothing to undo or the
            reversal failed (the entry is then kept)
        """
        entry = self.history.last_undoable()
        if entry is None:
            return None
        if await self._undo_entry(entry):
            return entry
        return None

    async def undo_by_identifier(self, asset_id: str) -> bool:
        """Undo the decision for ``asset_id``, wherever it sits in history."""
        entry = self.history.find(asset_id)
        if entry is None:
            logger.debug(f"Nothing to undo for {asset_id}")
            return False
        return await self._undo_entry(entry)

    async def _undo_entry(self, entry: HistoryEntry) -> bool:
        if entry.asset_id in self._undoing:
            return False

        self._undoing.add(entry.asset_id)
        try:
            await self._reverse_side_effect(entry)
        except MutationFailed as e:
            logger.warning(f"Undo failed for {entry.asset_id}: {e.reason}")
            return False
        finally:
            self._undoing.discard(entry.asset_id)

        if not self.history.contains(entry) or entry.orphaned:
            # Cleared or orphaned by a reset while the reversal was pending
            return False

        self.processed.discard(entry.asset_id)
        try:
            await self.store.save(self.processed)
        except OSError as e:
            self.processed.add(entry.asset_id)
            logger.error(f"Could not persist undo for {entry.asset_id}: {e}")
            return False

        if entry.orphaned or not self.history.remove(entry):
            return False
        self.queue.requeue_front(QueueItem.from_asset(entry.asset))

        logger.debug(f"Undid {entry.kind.value} for {entry.asset_id}")
        self._notify_listeners()
        return True

    async def _reverse_side_effect(self, entry: HistoryEntry) -> None:
        # Album membership (trash, move) is left as is
        if entry.kind is DecisionKind.FAVORITE:
            await self.repository.mutate(entry.asset_id, SetFavorite(value=False))
        elif entry.kind is DecisionKind.HIDE:
            await self.repository.mutate(entry.asset_id, SetHidden(value=False))

    # === Reset ===

    async def reset(self, clear_history: bool | None = None) -> bool:
        """
        Forget every processed asset and rebuild the queue.

        History is kept (as non-undoable records) unless ``clear_history``
        or the configured policy says otherwise.

        Returns:
            Whether history was cleared
        """
        if clear_history is None:
            clear_history = self.config.reset_clears_history

        await self.store.clear()
        self.processed.clear()

        if clear_history:
            self.history.clear()
        else:
            self.history.orphan_all()

        logger.info(f"Session reset (history {'cleared' if clear_history else 'kept'})")
        await self.rebuild()
        return clear_history
