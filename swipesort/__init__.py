"""
SwipeSort - Swipe-based photo triage.

Classify a photo library one item at a time with directional swipes:
trash, keep, favorite, hide, or move to an album. Every decision can be
undone, and classified photos are never shown again.
"""

__version__ = "1.0.0"
__author__ = "SwipeSort Team"
__license__ = "MIT"

from swipesort.config import EngineConfig
from swipesort.models import (
    Asset,
    Decision,
    DecisionKind,
    HistoryEntry,
    QueueItem,
    SessionState,
)
from swipesort.repository import (
    AccessDenied,
    AssetRepository,
    InMemoryAssetRepository,
    MutationFailed,
)
from swipesort.state import SessionManager
from swipesort.store import ProcessedSetStore

__all__ = [
    "__version__",
    "AccessDenied",
    "Asset",
    "AssetRepository",
    "Decision",
    "DecisionKind",
    "EngineConfig",
    "HistoryEntry",
    "InMemoryAssetRepository",
    "MutationFailed",
    "ProcessedSetStore",
    "QueueItem",
    "SessionManager",
    "SessionState",
]
