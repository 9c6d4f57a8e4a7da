"""
SwipeSort Engine Configuration

Tunable thresholds and policies for a triage session.
"""
from __future__ import annotations

from pydantic import BaseModel, Field, model_validator

# Translation units, same as gesture input
PRIMARY_THRESHOLD = 80.0
SECONDARY_THRESHOLD = 10.0
HINT_THRESHOLD = 50.0

DEFAULT_TRASH_ALBUM = "Trash"
STATE_DIR_NAME = ".swipesort"


class EngineConfig(BaseModel):
    """Configuration for a SessionManager."""
    primary_threshold: float = Field(
        PRIMARY_THRESHOLD,
        gt=0,
        description="Distance a swipe must exceed to commit a decision"
    )
    secondary_threshold: float = Field(
        SECONDARY_THRESHOLD,
        gt=0,
        description="Rightward distance that activates the destination picker"
    )
    hint_threshold: float = Field(
        HINT_THRESHOLD,
        gt=0,
        description="Distance at which the decision indicator is shown"
    )
    trash_album_name: str = Field(
        DEFAULT_TRASH_ALBUM,
        min_length=1,
        description="Album that trashed assets are collected in"
    )
    reset_clears_history: bool = Field(
        False,
        description="Whether reset() also clears the undo history"
    )
    state_dir_name: str = Field(STATE_DIR_NAME, min_length=1)

    @model_validator(mode="after")
    def _check_thresholds(self) -> EngineConfig:
        if self.secondary_threshold >= self.primary_threshold:
            raise ValueError(
                "secondary_threshold must be smaller than primary_threshold"
            )
        return self
