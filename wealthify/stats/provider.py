"""
Statistics Provider

Fetches a user's finance records and turns them into a fresh
UserStatsSnapshot. The engine never caches snapshots; every evaluation
pass asks the provider again.
"""

import asyncio
from datetime import datetime
from typing import Callable, Optional

import structlog

from wealthify.models.achievement import UserStatsSnapshot, utcnow
from wealthify.services.storage import FinanceDataInterface
from wealthify.stats.calculator import compute_user_stats


Clock = Callable[[], datetime]


class StatsProvider:
    """Reads the five record sets concurrently and aggregates them."""

    def __init__(
        self,
        finance_data: FinanceDataInterface,
        clock: Optional[Clock] = None,
    ):
        self._finance_data = finance_data
        self._clock = clock or utcnow
        self._logger = structlog.get_logger()

    async def get_stats(self, user_id: str) -> UserStatsSnapshot:
        """
        Fresh snapshot for one user.

        Raises:
            StorageError: If any of the reads fails. No partial snapshot
                          is ever returned.
        """
        accounts, transactions, goals, budgets, profile = await asyncio.gather(
            self._finance_data.list_accounts(user_id),
            self._finance_data.list_transactions(user_id),
            self._finance_data.list_goals(user_id),
            self._finance_data.list_budgets(user_id),
            self._finance_data.get_profile(user_id),
        )

        stats = compute_user_stats(
            accounts=accounts,
            transactions=transactions,
            goals=goals,
            budgets=budgets,
            profile=profile,
            now=self._clock(),
        )
        self._logger.debug("stats_computed", user_id=user_id, **stats.model_dump())
        return stats
