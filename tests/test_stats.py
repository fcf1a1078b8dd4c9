"""Tests for statistics aggregation, the provider and the notifier."""

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from wealthify.models.finance import (
    Budget,
    FinancialGoal,
    LinkedAccount,
    Profile,
    Transaction,
    TransactionType,
)
from wealthify.services.storage import InMemoryFinanceData, StorageError
from wealthify.stats import (
    StatsChangeNotifier,
    StatsProvider,
    compute_user_stats,
    count_under_budget,
    days_since,
    expenses_by_category,
)


NOW = datetime(2024, 6, 30, 12, 0, tzinfo=timezone.utc)
USER = "user-1"


def expense(category: str, amount: str) -> Transaction:
    return Transaction(user_id=USER, amount=Decimal(amount), category=category)


def income(category: str, amount: str) -> Transaction:
    return Transaction(
        user_id=USER,
        amount=Decimal(amount),
        category=category,
        transaction_type=TransactionType.INCOME,
    )


class TestComputeUserStats:
    """Tests for compute_user_stats."""

    def test_empty_user(self):
        stats = compute_user_stats([], [], [], [], None, NOW)

        assert stats.total_balance == 0
        assert stats.transaction_count == 0
        assert stats.days_active == 0

    def test_balances_sum_to_savings_and_net_worth(self):
        accounts = [
            LinkedAccount(user_id=USER, balance=Decimal("1200.50")),
            LinkedAccount(user_id=USER, balance=Decimal("-200.50")),
        ]
        stats = compute_user_stats(accounts, [], [], [], None, NOW)

        assert stats.total_balance == 1000
        assert stats.net_worth == 1000

    def test_counts(self):
        goals = [
            FinancialGoal(user_id=USER, target_amount=Decimal("100"), current_amount=Decimal("100")),
            FinancialGoal(user_id=USER, target_amount=Decimal("100"), current_amount=Decimal("99")),
            FinancialGoal(user_id=USER, target_amount=Decimal("100")),
        ]
        budgets = [Budget(user_id=USER, category="Food", limit_amount=Decimal("300"))]
        transactions = [expense("Food", "10"), income("Salary", "2000")]

        stats = compute_user_stats([], transactions, goals, budgets, None, NOW)

        assert stats.transaction_count == 2
        assert stats.goal_count == 3
        assert stats.completed_goals == 1
        assert stats.budget_count == 1
        assert stats.under_budget_count == 1

    def test_days_active_from_profile(self):
        profile = Profile(id=USER, created_at=NOW - timedelta(days=7, hours=3))
        stats = compute_user_stats([], [], [], [], profile, NOW)
        assert stats.days_active == 7


class TestUnderBudget:
    def test_only_expenses_count(self):
        transactions = [expense("Food", "250"), income("Food", "1000")]
        assert expenses_by_category(transactions) == {"Food": Decimal("250")}

    def test_strictly_below_limit(self):
        budgets = [
            Budget(user_id=USER, category="Food", limit_amount=Decimal("300")),
            Budget(user_id=USER, category="Fun", limit_amount=Decimal("100")),
            Budget(user_id=USER, category="Travel", limit_amount=Decimal("500")),
        ]
        transactions = [expense("Food", "299.99"), expense("Fun", "60"), expense("Fun", "40")]

        # Food under, Fun exactly at limit, Travel untouched
        assert count_under_budget(budgets, transactions) == 2


class TestDaysSince:
    def test_missing(self):
        assert days_since(None, NOW) == 0

    def test_future_is_zero(self):
        assert days_since(NOW + timedelta(days=3), NOW) == 0

    def test_partial_day_truncates(self):
        assert days_since(NOW - timedelta(hours=47), NOW) == 1

    def test_naive_is_utc(self):
        naive = datetime(2024, 6, 20, 12, 0)
        assert days_since(naive, NOW) == 10


class FailingFinanceData(InMemoryFinanceData):
    async def list_budgets(self, user_id):
        raise StorageError("budgets unavailable")


class TestStatsProvider:
    def test_get_stats(self):
        data = InMemoryFinanceData()
        data.add_account(LinkedAccount(user_id=USER, balance=Decimal("150")))
        data.add_budget(Budget(user_id=USER, category="Food", limit_amount=Decimal("50")))
        data.set_profile(Profile(id=USER, created_at=NOW - timedelta(days=31)))

        stats = asyncio.run(StatsProvider(data, clock=lambda: NOW).get_stats(USER))

        assert stats.total_balance == 150
        assert stats.budget_count == 1
        assert stats.under_budget_count == 1
        assert stats.days_active == 31

    def test_other_users_data_ignored(self):
        data = InMemoryFinanceData()
        data.add_account(LinkedAccount(user_id="someone-else", balance=Decimal("999")))

        stats = asyncio.run(StatsProvider(data, clock=lambda: NOW).get_stats(USER))
        assert stats.total_balance == 0

    def test_failure_propagates(self):
        provider = StatsProvider(FailingFinanceData(), clock=lambda: NOW)
        with pytest.raises(StorageError):
            asyncio.run(provider.get_stats(USER))


class TestStatsChangeNotifier:
    def test_publish_reaches_subscribers(self):
        notifier = StatsChangeNotifier()
        seen = []

        async def on_change(user_id):
            seen.append(user_id)

        notifier.subscribe(on_change)
        asyncio.run(notifier.publish(USER))

        assert seen == [USER]

    def test_unsubscribe(self):
        notifier = StatsChangeNotifier()
        seen = []

        async def on_change(user_id):
            seen.append(user_id)

        unsubscribe = notifier.subscribe(on_change)
        unsubscribe()
        unsubscribe()
        asyncio.run(notifier.publish(USER))

        assert seen == []
        assert notifier.subscriber_count == 0

    def test_failing_subscriber_does_not_stop_others(self):
        notifier = StatsChangeNotifier()
        seen = []

        async def broken(user_id):
            raise RuntimeError("boom")

        async def on_change(user_id):
            seen.append(user_id)

        notifier.subscribe(broken)
        notifier.subscribe(on_change)
        asyncio.run(notifier.publish(USER))

        assert seen == [USER]
