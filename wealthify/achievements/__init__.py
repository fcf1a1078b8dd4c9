"""Achievements package: catalog, evaluation engine, celebration and sharing."""

from wealthify.achievements.catalog import (
    ACHIEVEMENT_CATALOG,
    CATALOG_BY_TYPE,
    definitions_in,
    get_definition,
    index_catalog,
)
from wealthify.achievements.celebration import CelebrationQueue
from wealthify.achievements.engine import (
    AchievementEngine,
    AchievementNotUnlockedError,
    coerce_stats,
    find_eligible,
    get_all_achievements,
)
from wealthify.achievements.progress import (
    achievement_state,
    filter_by_category,
    progress_percentage,
    summarize,
)
from wealthify.achievements.sharing import (
    BrowserShareSink,
    RecordingShareSink,
    ShareSinkInterface,
    build_share_message,
    build_share_url,
)

__all__ = [
    "ACHIEVEMENT_CATALOG",
    "CATALOG_BY_TYPE",
    "definitions_in",
    "get_definition",
    "index_catalog",
    "CelebrationQueue",
    "AchievementEngine",
    "AchievementNotUnlockedError",
    "coerce_stats",
    "find_eligible",
    "get_all_achievements",
    "achievement_state",
    "filter_by_category",
    "progress_percentage",
    "summarize",
    "BrowserShareSink",
    "RecordingShareSink",
    "ShareSinkInterface",
    "build_share_message",
    "build_share_url",
]
