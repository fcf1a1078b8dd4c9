"""
Statistics Calculator

Aggregates raw finance records into a UserStatsSnapshot.

DESIGN DECISION: Aggregation is DETERMINISTIC and pure.
The provider fetches, this module counts. Nothing here touches storage
or reads the clock; `now` is passed in.
"""

from collections import defaultdict
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, Optional

from wealthify.models.achievement import UserStatsSnapshot
from wealthify.models.finance import (
    Budget,
    FinancialGoal,
    LinkedAccount,
    Profile,
    Transaction,
    TransactionType,
)


SECONDS_PER_DAY = 24 * 60 * 60


def expenses_by_category(transactions: Iterable[Transaction]) -> dict[str, Decimal]:
    """All-time expense total per category."""
    totals: dict[str, Decimal] = defaultdict(lambda: Decimal("0"))
    for transaction in transactions:
        if transaction.transaction_type == TransactionType.EXPENSE:
            totals[transaction.category] += transaction.amount
    return dict(totals)


def count_under_budget(
    budgets: Iterable[Budget],
    transactions: Iterable[Transaction],
) -> int:
    """Budgets whose category has spent strictly less than the limit."""
    spent = expenses_by_category(transactions)
    return sum(
        1 for budget in budgets
        if spent.get(budget.category, Decimal("0")) < budget.limit_amount
    )


def days_since(created_at: Optional[datetime], now: datetime) -> int:
    """
    Whole days between `created_at` and `now`, never negative.

    Naive datetimes are read as UTC.
    """
    if created_at is None:
        return 0
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    elapsed = (now - created_at).total_seconds()
    return max(0, int(elapsed // SECONDS_PER_DAY))


def compute_user_stats(
    accounts: list[LinkedAccount],
    transactions: list[Transaction],
    goals: list[FinancialGoal],
    budgets: list[Budget],
    profile: Optional[Profile],
    now: datetime,
) -> UserStatsSnapshot:
    """
    Build the snapshot the achievement catalog is evaluated against.

    Args:
        accounts: Linked accounts; every balance counts toward savings
        transactions: All of the user's transactions
        goals: Financial goals, completed or not
        budgets: Budgets, one per category
        profile: Profile row, or None if the user has none
        now: Evaluation time

    Returns:
        UserStatsSnapshot with net worth equal to the total balance
    """
    total_balance = float(sum((a.balance for a in accounts), Decimal("0")))

    return UserStatsSnapshot(
        total_balance=total_balance,
        transaction_count=len(transactions),
        goal_count=len(goals),
        completed_goals=sum(1 for g in goals if g.is_completed),
        budget_count=len(budgets),
        under_budget_count=count_under_budget(budgets, transactions),
        days_active=days_since(profile.created_at if profile else None, now),
        net_worth=total_balance,
    )
