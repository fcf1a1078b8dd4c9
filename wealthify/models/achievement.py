"""
Achievement Models for Wealthify

These models describe the three shapes an achievement takes:
1. AchievementDefinition - the static rule, compiled into the program
2. UnlockedAchievement - the persisted fact that a user earned it
3. AchievementView - what the UI renders (definition + live progress)

DESIGN DECISION: Locked achievements have no persisted state at all.
A row exists only once the achievement is unlocked, and it never goes away.
"""

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional, Union
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class AchievementCategory(str, Enum):
    """Groups shown as tabs in the achievements section."""
    SAVINGS = "savings"
    BUDGETS = "budgets"
    GOALS = "goals"
    TRANSACTIONS = "transactions"
    MILESTONES = "milestones"


class AchievementState(str, Enum):
    """
    Per-user, per-achievement state.

    LOCKED_ELIGIBLE is transient: the next unlock pass resolves it.
    No transition ever moves backward.
    """
    LOCKED = "locked"
    LOCKED_ELIGIBLE = "locked_eligible"
    UNLOCKED = "unlocked"


class SharePlatform(str, Enum):
    """Social networks an unlocked achievement can be shared to."""
    TWITTER = "twitter"
    FACEBOOK = "facebook"
    LINKEDIN = "linkedin"


# =============================================================================
# STATISTICS SNAPSHOT
# =============================================================================

class UserStatsSnapshot(BaseModel):
    """
    Flat numeric facts about one user, recomputed on every evaluation.

    Never persisted. Missing or null values mean "no data yet" and
    are read as 0, so progress functions stay total.
    """
    model_config = ConfigDict(extra="ignore", frozen=True)

    total_balance: float = 0.0
    transaction_count: int = 0
    goal_count: int = 0
    completed_goals: int = 0
    budget_count: int = 0
    under_budget_count: int = 0
    days_active: int = 0
    net_worth: float = 0.0

    @field_validator("*", mode="before")
    @classmethod
    def missing_is_zero(cls, v: Any) -> Any:
        if v is None:
            return 0
        return v


# =============================================================================
# DEFINITIONS
# =============================================================================

ProgressFn = Callable[[UserStatsSnapshot], Union[int, float]]


class AchievementDefinition(BaseModel):
    """
    A single entry of the compiled-in catalog.

    `type` is the stable key stored in the database; everything else
    may change between releases without touching persisted rows.
    """
    model_config = ConfigDict(frozen=True)

    type: str = Field(
        ...,
        min_length=1,
        max_length=50,
        pattern="^[a-z0-9_]+$",
        description="Stable symbolic identifier"
    )
    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1, max_length=200)
    icon: str = Field(..., min_length=1, max_length=8)
    category: AchievementCategory
    target: float = Field(
        ...,
        ge=0,
        description="Threshold the progress must reach or exceed"
    )
    progress_fn: ProgressFn = Field(
        ...,
        exclude=True,
        repr=False,
        description="Pure function from a stats snapshot to current progress"
    )

    def progress(self, stats: Optional[UserStatsSnapshot]) -> float:
        """
        Current progress for a snapshot.

        An absent snapshot, a failing progress function, or a
        non-numeric or NaN result reads as 0.
        """
        snapshot = stats if stats is not None else UserStatsSnapshot()
        try:
            value = float(self.progress_fn(snapshot))
        except (TypeError, ValueError, ArithmeticError, AttributeError):
            return 0.0
        if math.isnan(value):
            return 0.0
        return value

    def is_reached(self, stats: Optional[UserStatsSnapshot]) -> bool:
        return self.progress(stats) >= self.target


# =============================================================================
# PERSISTED UNLOCK
# =============================================================================

class UnlockedAchievement(BaseModel):
    """
    One row per user per unlocked achievement type.

    CRITICAL: Only the engine's unlock operation creates these.
    `progress` and `target` are frozen at unlock time; only
    `shared_at` changes afterwards.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Row identifier assigned at creation"
    )
    user_id: str = Field(
        ...,
        min_length=1,
        description="Owning user"
    )
    achievement_type: str = Field(
        ...,
        min_length=1,
        description="Key into the compiled-in catalog"
    )

    # Display metadata copied at unlock time
    achievement_name: str
    description: str
    icon: str
    category: AchievementCategory

    progress: float = Field(
        ...,
        description="Progress at the moment of unlock (not live)"
    )
    target: float = Field(
        ...,
        ge=0,
        description="Threshold at the moment of unlock"
    )
    is_completed: bool = True

    unlocked_at: datetime = Field(
        default_factory=utcnow,
        description="When the achievement was unlocked"
    )
    shared_at: Optional[datetime] = Field(
        default=None,
        description="Last time the user shared this achievement"
    )

    @model_validator(mode='after')
    def validate_completed(self) -> 'UnlockedAchievement':
        """A persisted row is always a completed achievement."""
        if not self.is_completed:
            raise ValueError("Unlocked achievements are always completed")
        return self

    @classmethod
    def from_definition(
        cls,
        user_id: str,
        definition: AchievementDefinition,
        progress: float,
    ) -> 'UnlockedAchievement':
        """Build the row the engine inserts for a newly earned achievement."""
        return cls(
            user_id=user_id,
            achievement_type=definition.type,
            achievement_name=definition.name,
            description=definition.description,
            icon=definition.icon,
            category=definition.category,
            progress=progress,
            target=definition.target,
        )


# =============================================================================
# DISPLAY MODELS
# =============================================================================

class AchievementView(BaseModel):
    """
    Display record for one catalog entry.

    `progress` is always live, even for unlocked achievements;
    `is_completed` comes only from the persisted rows.
    """

    id: str = Field(
        ...,
        description="Row id when unlocked, otherwise the achievement type"
    )
    type: str
    name: str
    description: str
    icon: str
    category: AchievementCategory

    progress: float
    target: float
    percentage: float = Field(ge=0.0, le=100.0)
    state: AchievementState

    is_completed: bool
    unlocked_at: Optional[datetime] = None
    shared_at: Optional[datetime] = None


class AchievementSummary(BaseModel):
    """Numbers behind the achievements widget and section header."""

    completed_count: int = Field(ge=0)
    total_count: int = Field(ge=0)
    overall_percentage: float = Field(ge=0.0, le=100.0)
    near_completion: list[AchievementView] = Field(default_factory=list)
    recently_unlocked: list[AchievementView] = Field(default_factory=list)
