"""
SwipeSort Session Queue

The ordered working set of not-yet-classified assets plus a cursor.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator

from swipesort.models import Asset, Progress, QueueItem

logger = logging.getLogger(__name__)


class SessionQueue:
    """
    Queue of assets awaiting a decision.

    Invariants:
    - ``0 <= cursor <= len(items)``
    - no item id is in the processed set it was built against
    - ``total_eligible_count`` only changes on rebuild
    """

    def __init__(
        self,
        items: list[QueueItem] | None = None,
        total_eligible_count: int = 0,
    ) -> None:
        self.items: list[QueueItem] = items or []
        self.cursor: int = 0
        self.total_eligible_count = total_eligible_count

    @classmethod
    def build(
        cls,
        assets: Iterable[Asset],
        processed: set[str] | frozenset[str],
        source_filter: frozenset[str] = frozenset(),
    ) -> SessionQueue:
        """
        Build a queue from the repository's assets.

        Assets outside ``source_filter`` are dropped (an empty filter keeps
        everything), then already processed ones. Order is preserved.
        """
        seen: set[str] = set()
        eligible: list[Asset] = []
        for asset in assets:
            if asset.id in seen:
                continue
            if source_filter and not asset.collection_ids & source_filter:
                continue
            seen.add(asset.id)
            eligible.append(asset)

        items = [QueueItem.from_asset(a) for a in eligible if a.id not in processed]
        logger.debug(
            f"Built queue: {len(items)} pending of {len(eligible)} eligible"
        )
        return cls(items, total_eligible_count=len(eligible))

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[QueueItem]:
        return iter(self.items)

    def __contains__(self, asset_id: object) -> bool:
        return any(item.id == asset_id for item in self.items)

    def ids(self) -> list[str]:
        return [item.id for item in self.items]

    def current(self) -> QueueItem | None:
        """Get the item awaiting a decision."""
        if self.cursor < len(self.items):
            return self.items[self.cursor]
        return None

    def _find_index(self, asset_id: str) -> int:
        """Find index of item by ID. Returns -1 if not found."""
        for i, item in enumerate(self.items):
            if item.id == asset_id:
                return i
        return -1

    def advance(self, asset_id: str | None = None) -> QueueItem | None:
        """
        Remove a consumed item; the next one slides into the cursor slot.

        Without ``asset_id`` the current item is removed. With it, that
        item is removed wherever it sits (it may have moved away from the
        cursor while its decision was settling).

        Returns:
            The removed item, or None if there was nothing to remove
        """
        if asset_id is None:
            index = self.cursor
        else:
            index = self._find_index(asset_id)
            if index == -1:
                return None

        if index >= len(self.items):
            return None

        removed = self.items.pop(index)
        if index < self.cursor:
            self.cursor -= 1
        return removed

    def requeue_front(self, item: QueueItem) -> None:
        """Put an item back at the front and make it current."""
        index = self._find_index(item.id)
        if index != -1:
            del self.items[index]
        self.items.insert(0, item)
        self.cursor = 0

    @property
    def displayed_position(self) -> int:
        """1-based position of the current item among all eligible assets."""
        if not self.items:
            return self.total_eligible_count
        return self.total_eligible_count - len(self.items) + self.cursor + 1

    @property
    def progress_value(self) -> float:
        if self.total_eligible_count == 0:
            return 0.0
        return self.displayed_position / self.total_eligible_count

    def get_progress(self) -> Progress:
        return Progress(
            total_eligible_count=self.total_eligible_count,
            remaining=len(self.items),
            displayed_position=max(0, self.displayed_position),
            progress_value=max(0.0, self.progress_value),
        )
