"""
Tests for the session queue.
"""
from __future__ import annotations

from swipesort.models import QueueItem
from swipesort.queue import SessionQueue

from tests.helpers import make_assets


class TestSessionQueue:
    """Tests for SessionQueue."""

    def test_build_preserves_order_and_excludes_processed(self) -> None:
        """Processed assets are dropped; repository order is kept."""
        queue = SessionQueue.build(make_assets(5), processed={"a1", "a3"})

        assert queue.ids() == ["a0", "a2", "a4"]
        assert queue.cursor == 0
        assert queue.total_eligible_count == 5

    def test_build_with_source_filter(self) -> None:
        """Total counts assets after source filtering, before exclusion."""
        assets = make_assets(5, {"albumX": {1, 3}})

        queue = SessionQueue.build(assets, processed={"a3"}, source_filter=frozenset({"albumX"}))

        assert queue.ids() == ["a1"]
        assert queue.total_eligible_count == 2

    def test_build_empty_filter_means_everything(self) -> None:
        queue = SessionQueue.build(make_assets(3, {"albumX": {0}}), processed=set())

        assert len(queue) == 3

    def test_build_drops_duplicate_ids(self) -> None:
        assets = make_assets(2)
        queue = SessionQueue.build(assets + assets, processed=set())

        assert queue.ids() == ["a0", "a1"]
        assert queue.total_eligible_count == 2

    def test_current(self) -> None:
        queue = SessionQueue.build(make_assets(2), processed=set())

        current = queue.current()

        assert current is not None
        assert current.id == "a0"

    def test_current_empty(self) -> None:
        queue = SessionQueue.build([], processed=set())

        assert queue.current() is None

    def test_advance_slides_next_item_into_cursor(self) -> None:
        """Removing the current item makes the next one current."""
        queue = SessionQueue.build(make_assets(3), processed=set())

        removed = queue.advance()

        assert removed is not None and removed.id == "a0"
        assert queue.cursor == 0
        assert queue.current() is not None
        assert queue.current().id == "a1"

    def test_advance_by_id_away_from_cursor(self) -> None:
        """An item that moved behind the cursor is removed by ID."""
        queue = SessionQueue.build(make_assets(3), processed=set())
        queue.cursor = 2

        queue.advance("a0")

        assert queue.ids() == ["a1", "a2"]
        assert queue.cursor == 1
        assert queue.current().id == "a2"

    def test_advance_unknown_id(self) -> None:
        queue = SessionQueue.build(make_assets(2), processed=set())

        assert queue.advance("missing") is None
        assert len(queue) == 2

    def test_advance_past_end(self) -> None:
        queue = SessionQueue.build([], processed=set())

        assert queue.advance() is None

    def test_requeue_front(self) -> None:
        """Requeued items become current."""
        assets = make_assets(3)
        queue = SessionQueue.build(assets[1:], processed=set())
        queue.cursor = 1

        queue.requeue_front(QueueItem.from_asset(assets[0]))

        assert queue.ids() == ["a0", "a1", "a2"]
        assert queue.cursor == 0
        assert queue.current().id == "a0"

    def test_requeue_front_does_not_duplicate(self) -> None:
        assets = make_assets(3)
        queue = SessionQueue.build(assets, processed=set())

        queue.requeue_front(QueueItem.from_asset(assets[2]))

        assert queue.ids() == ["a2", "a0", "a1"]

    def test_total_unchanged_by_advance_and_requeue(self) -> None:
        queue = SessionQueue.build(make_assets(4), processed=set())

        item = queue.advance()
        assert item is not None
        queue.requeue_front(item)

        assert queue.total_eligible_count == 4

    def test_displayed_position(self) -> None:
        """Position counts already processed assets."""
        queue = SessionQueue.build(make_assets(5), processed={"a0", "a1"})

        assert queue.displayed_position == 3

        queue.advance()
        assert queue.displayed_position == 4

    def test_displayed_position_when_finished(self) -> None:
        queue = SessionQueue.build(make_assets(3), processed={"a0", "a1", "a2"})

        assert queue.displayed_position == 3
        assert queue.progress_value == 1.0

    def test_progress_empty_library(self) -> None:
        progress = SessionQueue.build([], processed=set()).get_progress()

        assert progress.total_eligible_count == 0
        assert progress.remaining == 0
        assert progress.progress_value == 0.0
