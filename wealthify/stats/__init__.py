"""User statistics package."""

from wealthify.stats.calculator import (
    compute_user_stats,
    count_under_budget,
    days_since,
    expenses_by_category,
)
from wealthify.stats.notifier import StatsChangeNotifier
from wealthify.stats.provider import StatsProvider

__all__ = [
    "compute_user_stats",
    "count_under_budget",
    "days_since",
    "expenses_by_category",
    "StatsChangeNotifier",
    "StatsProvider",
]
