"""
Progress maths and summary helpers.

Everything here is pure: no storage, no clock.
"""

import math
from typing import Iterable, Optional

from wealthify.models.achievement import (
    AchievementCategory,
    AchievementState,
    AchievementSummary,
    AchievementView,
)


def progress_percentage(progress: float, target: float) -> float:
    """
    Progress as a percentage of target, clamped to [0, 100].

    A target of 0 (or less) is already reached: 0/0 reads as 100%.
    """
    if target <= 0:
        return 100.0
    if progress is None or math.isnan(progress):
        return 0.0
    return max(0.0, min(100.0, progress / target * 100.0))


def achievement_state(progress: float, target: float, is_completed: bool) -> AchievementState:
    if is_completed:
        return AchievementState.UNLOCKED
    if progress >= target:
        return AchievementState.LOCKED_ELIGIBLE
    return AchievementState.LOCKED


def filter_by_category(
    views: Iterable[AchievementView],
    category: Optional[AchievementCategory] = None,
) -> list[AchievementView]:
    """Views of one category; all of them when category is None."""
    if category is None:
        return list(views)
    return [v for v in views if v.category == category]


def summarize(
    views: list[AchievementView],
    near_ratio: float = 0.5,
    list_size: int = 3,
) -> AchievementSummary:
    """
    Numbers for the achievements widget.

    near_completion: locked views at or above `near_ratio` of their target,
    closest to done first. recently_unlocked: newest unlock first.
    """
    completed = [v for v in views if v.is_completed]
    total = len(views)
    overall = (len(completed) / total * 100.0) if total else 0.0

    near = [
        v for v in views
        if not v.is_completed and v.percentage >= near_ratio * 100.0
    ]
    near.sort(key=lambda v: v.percentage, reverse=True)

    recent = sorted(
        (v for v in completed if v.unlocked_at is not None),
        key=lambda v: v.unlocked_at,
        reverse=True,
    )

    return AchievementSummary(
        completed_count=len(completed),
        total_count=total,
        overall_percentage=overall,
        near_completion=near[:list_size],
        recently_unlocked=recent[:list_size],
    )
