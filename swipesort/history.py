"""
SwipeSort Decision History

Append-only log of committed decisions, in commit order.
"""
from __future__ import annotations

from collections.abc import Iterator

from swipesort.models import Asset, Decision, DecisionKind, HistoryEntry


class HistoryStack:
    """
    Chronological record of committed decisions.

    Supports pop-style undo from the tail and removal of a specific
    entry from anywhere in the sequence.
    """

    def __init__(self) -> None:
        self._entries: list[HistoryEntry] = []
        self._next_order = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[HistoryEntry]:
        return iter(self._entries)

    @property
    def has_history(self) -> bool:
        return bool(self._entries)

    @property
    def has_undoable(self) -> bool:
        return self.last_undoable() is not None

    def record(self, asset: Asset, decision: Decision) -> HistoryEntry:
        """Append a decision; Keep is stored without a decision."""
        entry = HistoryEntry(
            asset_id=asset.id,
            asset=asset,
            decision=None if decision.kind is DecisionKind.KEEP else decision,
            committed_at=self._next_order,
        )
        self.push(entry)
        return entry

    def push(self, entry: HistoryEntry) -> None:
        self._entries.append(entry)
        self._next_order = max(self._next_order, entry.committed_at) + 1

    def pop(self) -> HistoryEntry | None:
        if not self._entries:
            return None
        return self._entries.pop()

    def last_undoable(self) -> HistoryEntry | None:
        """Most recent entry that has not been orphaned by a reset."""
        for entry in reversed(self._entries):
            if not entry.orphaned:
                return entry
        return None

    def find(self, asset_id: str) -> HistoryEntry | None:
        """Most recent undoable entry for ``asset_id``."""
        for entry in reversed(self._entries):
            if entry.asset_id == asset_id and not entry.orphaned:
                return entry
        return None

    def contains(self, entry: HistoryEntry) -> bool:
        """Whether this exact entry is still recorded."""
        return any(existing is entry for existing in self._entries)

    def remove(self, entry: HistoryEntry) -> bool:
        """Remove a specific entry, wherever it is."""
        for i, existing in enumerate(self._entries):
            if existing is entry:
                del self._entries[i]
                return True
        return False

    def orphan_all(self) -> None:
        """Keep entries for display but make them non-undoable."""
        for entry in self._entries:
            entry.orphaned = True

    def clear(self) -> None:
        self._entries.clear()

    def filtered(self, kind: DecisionKind | None = None) -> list[HistoryEntry]:
        """Entries newest first, optionally restricted to one decision kind."""
        newest_first = list(reversed(self._entries))
        if kind is None:
            return newest_first
        return [e for e in newest_first if e.kind is kind]
