"""
Abstract Storage Interfaces

DESIGN DECISION: We define abstract interfaces for storage operations.
This allows us to:
1. Run against the hosted PostgreSQL database in production
2. Use in-memory storage for testing
3. Keep Google Sheets as a zero-setup option
4. Keep the achievement engine decoupled from storage implementation

The unlocked-achievement store is append-only from the engine's point
of view: inserts plus single-field `shared_at` updates. No deletes.
"""

from abc import ABC, abstractmethod
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


class AchievementStorageInterface(ABC):
    """
    Abstract interface for unlocked-achievement storage.

    Implementations MUST guarantee at most one row per
    (user_id, achievement_type) and signal a violation with DuplicateError.
    """

    @abstractmethod
    async def list_unlocked(self, user_id: str) -> list[UnlockedAchievement]:
        """
        Return every unlocked achievement of a user.

        Args:
            user_id: The owning user

        Returns:
            Rows in unlock order (may be empty)

        Raises:
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    async def insert_unlock(
        self,
        user_id: str,
        definition: AchievementDefinition,
        progress: float,
    ) -> UnlockedAchievement:
        """
        Record that a user unlocked an achievement.

        Args:
            user_id: The owning user
            definition: Catalog entry being unlocked (type, target, metadata)
            progress: Progress value at the moment of unlock

        Returns:
            The created row

        Raises:
            DuplicateError: If the user already has this achievement
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def update_shared(self, achievement_id: UUID, shared_at: datetime) -> bool:
        """
        Set `shared_at` on an unlocked achievement.

        Args:
            achievement_id: Row identifier
            shared_at: Time of the share action

        Returns:
            True if updated

        Raises:
            NotFoundError: If the row doesn't exist
            StorageError: If the write fails
        """
        pass


class FinanceDataInterface(ABC):
    """
    Read-only access to the records statistics are computed from.

    Every method must return an empty result (not raise) for a user
    with no records.
    """

    @abstractmethod
    async def list_accounts(self, user_id: str) -> list[LinkedAccount]:
        pass

    @abstractmethod
    async def list_transactions(self, user_id: str) -> list[Transaction]:
        pass

    @abstractmethod
    async def list_goals(self, user_id: str) -> list[FinancialGoal]:
        pass

    @abstractmethod
    async def list_budgets(self, user_id: str) -> list[Budget]:
        pass

    @abstractmethod
    async def get_profile(self, user_id: str) -> Optional[Profile]:
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events of one evaluation pass, in chronological order."""
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """Get all events for a specific entity, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get the most recent audit events (newest first)."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
