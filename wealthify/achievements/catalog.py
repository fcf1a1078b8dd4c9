"""
Achievement Catalog

The full list of achievements, compiled into the program.

DESIGN DECISION: The catalog is code, not a database table.
It only changes with a release, never with user action, so it lives
next to the rules that evaluate it. Order here is display order.

Only `type` is persisted. Renaming or re-describing an achievement is
safe; changing a `type` orphans every row already stored under it.
"""

from types import MappingProxyType
from typing import Mapping

from wealthify.models.achievement import (
    AchievementCategory,
    AchievementDefinition,
    UserStatsSnapshot,
)


def _total_balance(stats: UserStatsSnapshot) -> float:
    return stats.total_balance


def _budget_count(stats: UserStatsSnapshot) -> int:
    return stats.budget_count


def _under_budget_count(stats: UserStatsSnapshot) -> int:
    return stats.under_budget_count


def _goal_count(stats: UserStatsSnapshot) -> int:
    return stats.goal_count


def _completed_goals(stats: UserStatsSnapshot) -> int:
    return stats.completed_goals


def _transaction_count(stats: UserStatsSnapshot) -> int:
    return stats.transaction_count


def _days_active(stats: UserStatsSnapshot) -> int:
    return stats.days_active


def _net_worth_positive(stats: UserStatsSnapshot) -> int:
    return 1 if stats.net_worth > 0 else 0


ACHIEVEMENT_CATALOG: tuple[AchievementDefinition, ...] = (

    # ==================================================
    # Savings
    # ==================================================

    AchievementDefinition(
        type="first_savings",
        name="First Steps",
        description="Save your first $100",
        icon="🌱",
        category=AchievementCategory.SAVINGS,
        target=100,
        progress_fn=_total_balance,
    ),
    AchievementDefinition(
        type="savings_500",
        name="Building Momentum",
        description="Save $500 total",
        icon="💪",
        category=AchievementCategory.SAVINGS,
        target=500,
        progress_fn=_total_balance,
    ),
    AchievementDefinition(
        type="savings_1000",
        name="Thousand Club",
        description="Save $1,000 total",
        icon="🏆",
        category=AchievementCategory.SAVINGS,
        target=1000,
        progress_fn=_total_balance,
    ),
    AchievementDefinition(
        type="savings_5000",
        name="Money Master",
        description="Save $5,000 total",
        icon="💎",
        category=AchievementCategory.SAVINGS,
        target=5000,
        progress_fn=_total_balance,
    ),
    AchievementDefinition(
        type="savings_10000",
        name="Financial Freedom",
        description="Save $10,000 total",
        icon="👑",
        category=AchievementCategory.SAVINGS,
        target=10000,
        progress_fn=_total_balance,
    ),

    # ==================================================
    # Budgets
    # ==================================================

    AchievementDefinition(
        type="first_budget",
        name="Budget Beginner",
        description="Create your first budget",
        icon="📊",
        category=AchievementCategory.BUDGETS,
        target=1,
        progress_fn=_budget_count,
    ),
    AchievementDefinition(
        type="budget_master",
        name="Budget Master",
        description="Create 5 different budgets",
        icon="📈",
        category=AchievementCategory.BUDGETS,
        target=5,
        progress_fn=_budget_count,
    ),
    AchievementDefinition(
        type="under_budget",
        name="Under Budget",
        description="Stay under budget for 3 categories",
        icon="🎯",
        category=AchievementCategory.BUDGETS,
        target=3,
        progress_fn=_under_budget_count,
    ),

    # ==================================================
    # Goals
    # ==================================================

    AchievementDefinition(
        type="first_goal",
        name="Goal Setter",
        description="Create your first financial goal",
        icon="🎯",
        category=AchievementCategory.GOALS,
        target=1,
        progress_fn=_goal_count,
    ),
    AchievementDefinition(
        type="goal_achieved",
        name="Goal Crusher",
        description="Complete your first goal",
        icon="🏅",
        category=AchievementCategory.GOALS,
        target=1,
        progress_fn=_completed_goals,
    ),
    AchievementDefinition(
        type="goals_3",
        name="Triple Threat",
        description="Complete 3 financial goals",
        icon="🔥",
        category=AchievementCategory.GOALS,
        target=3,
        progress_fn=_completed_goals,
    ),
    AchievementDefinition(
        type="goals_5",
        name="High Achiever",
        description="Complete 5 financial goals",
        icon="⭐",
        category=AchievementCategory.GOALS,
        target=5,
        progress_fn=_completed_goals,
    ),

    # ==================================================
    # Transactions
    # ==================================================

    AchievementDefinition(
        type="first_transaction",
        name="Tracker",
        description="Log your first transaction",
        icon="📝",
        category=AchievementCategory.TRANSACTIONS,
        target=1,
        progress_fn=_transaction_count,
    ),
    AchievementDefinition(
        type="transactions_50",
        name="Consistent Logger",
        description="Log 50 transactions",
        icon="📋",
        category=AchievementCategory.TRANSACTIONS,
        target=50,
        progress_fn=_transaction_count,
    ),
    AchievementDefinition(
        type="transactions_100",
        name="Detail Oriented",
        description="Log 100 transactions",
        icon="🔍",
        category=AchievementCategory.TRANSACTIONS,
        target=100,
        progress_fn=_transaction_count,
    ),

    # ==================================================
    # Milestones
    # ==================================================

    # Days active is recomputed live; these fire on the first
    # evaluation after the threshold is crossed, not at midnight.
    AchievementDefinition(
        type="first_week",
        name="Week Warrior",
        description="Use Wealthify for 7 days",
        icon="📅",
        category=AchievementCategory.MILESTONES,
        target=7,
        progress_fn=_days_active,
    ),
    AchievementDefinition(
        type="first_month",
        name="Monthly Maven",
        description="Use Wealthify for 30 days",
        icon="🗓️",
        category=AchievementCategory.MILESTONES,
        target=30,
        progress_fn=_days_active,
    ),
    AchievementDefinition(
        type="net_worth_positive",
        name="In The Green",
        description="Achieve positive net worth",
        icon="💚",
        category=AchievementCategory.MILESTONES,
        target=1,
        progress_fn=_net_worth_positive,
    ),
)


def index_catalog(
    catalog: tuple[AchievementDefinition, ...],
) -> Mapping[str, AchievementDefinition]:
    """
    Map each type to its definition.

    Raises:
        ValueError: If two definitions share a type
    """
    index: dict[str, AchievementDefinition] = {}
    for definition in catalog:
        if definition.type in index:
            raise ValueError(f"Duplicate achievement type in catalog: {definition.type}")
        index[definition.type] = definition
    return MappingProxyType(index)


CATALOG_BY_TYPE = index_catalog(ACHIEVEMENT_CATALOG)


def get_definition(achievement_type: str) -> AchievementDefinition:
    """Look up a definition by type. Raises KeyError for unknown types."""
    return CATALOG_BY_TYPE[achievement_type]


def definitions_in(
    category: AchievementCategory,
    catalog: tuple[AchievementDefinition, ...] = ACHIEVEMENT_CATALOG,
) -> list[AchievementDefinition]:
    """Definitions of one category, in catalog order."""
    return [d for d in catalog if d.category == category]
