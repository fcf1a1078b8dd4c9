"""
In-Memory Storage Implementation

Used for tests, demos and as the fallback when no backend is configured.
Data lives for the lifetime of the process only.

The uniqueness guard is a dict keyed by (user_id, achievement_type);
the check and the insert happen without an await in between, so
concurrent passes on the same event loop can't both insert.
"""

import asyncio
from datetime import datetime
from typing import Optional
from uuid import UUID

from wealthify.models.achievement import AchievementDefinition, UnlockedAchievement
from wealthify.models.audit import AuditEvent
from wealthify.models.finance import (
    Budget,
    FinancialGoal,
    LinkedAccount,
    Profile,
    Transaction,
)
from wealthify.services.storage.interface import (
    AchievementStorageInterface,
    AuditStorageInterface,
    DuplicateError,
    FinanceDataInterface,
    NotFoundError,
)


class InMemoryAchievementStorage(AchievementStorageInterface):
    """Unlocked achievements kept in a dict."""

    def __init__(self, latency: float = 0.0):
        """
        Args:
            latency: Seconds to sleep before each write, to mimic a network
                     round-trip (lets tests interleave concurrent passes).
        """
        self._rows: dict[tuple[str, str], UnlockedAchievement] = {}
        self._latency = latency

    async def list_unlocked(self, user_id: str) -> list[UnlockedAchievement]:
        rows = [row for (owner, _), row in self._rows.items() if owner == user_id]
        return [row.model_copy() for row in rows]

    async def insert_unlock(
        self,
        user_id: str,
        definition: AchievementDefinition,
        progress: float,
    ) -> UnlockedAchievement:
        if self._latency:
            await asyncio.sleep(self._latency)

        key = (user_id, definition.type)
        if key in self._rows:
            raise DuplicateError(
                f"Achievement {definition.type} already unlocked for {user_id}"
            )

        row = UnlockedAchievement.from_definition(user_id, definition, progress)
        self._rows[key] = row
        return row.model_copy()

    async def update_shared(self, achievement_id: UUID, shared_at: datetime) -> bool:
        if self._latency:
            await asyncio.sleep(self._latency)

        for row in self._rows.values():
            if row.id == achievement_id:
                row.shared_at = shared_at
                return True

        raise NotFoundError(f"Unlocked achievement not found: {achievement_id}")

    def count(self, user_id: Optional[str] = None) -> int:
        """Number of stored rows, optionally for one user."""
        if user_id is None:
            return len(self._rows)
        return sum(1 for owner, _ in self._rows if owner == user_id)


class InMemoryFinanceData(FinanceDataInterface):
    """Finance records kept in per-user lists. Seed with the add_* helpers."""

    def __init__(self):
        self._accounts: dict[str, list[LinkedAccount]] = {}
        self._transactions: dict[str, list[Transaction]] = {}
        self._goals: dict[str, list[FinancialGoal]] = {}
        self._budgets: dict[str, list[Budget]] = {}
        self._profiles: dict[str, Profile] = {}

    # --- seeding -------------------------------------------------------------

    def add_account(self, account: LinkedAccount) -> None:
        self._accounts.setdefault(account.user_id, []).append(account)

    def add_transaction(self, transaction: Transaction) -> None:
        self._transactions.setdefault(transaction.user_id, []).append(transaction)

    def add_goal(self, goal: FinancialGoal) -> None:
        self._goals.setdefault(goal.user_id, []).append(goal)

    def add_budget(self, budget: Budget) -> None:
        self._budgets.setdefault(budget.user_id, []).append(budget)

    def set_profile(self, profile: Profile) -> None:
        self._profiles[profile.id] = profile

    def clear_transactions(self, user_id: str) -> None:
        self._transactions.pop(user_id, None)

    # --- FinanceDataInterface ------------------------------------------------

    async def list_accounts(self, user_id: str) -> list[LinkedAccount]:
        return list(self._accounts.get(user_id, []))

    async def list_transactions(self, user_id: str) -> list[Transaction]:
        return list(self._transactions.get(user_id, []))

    async def list_goals(self, user_id: str) -> list[FinancialGoal]:
        return list(self._goals.get(user_id, []))

    async def list_budgets(self, user_id: str) -> list[Budget]:
        return list(self._budgets.get(user_id, []))

    async def get_profile(self, user_id: str) -> Optional[Profile]:
        return self._profiles.get(user_id)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
