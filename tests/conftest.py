"""Shared fixtures. Everything runs against the in-memory backend."""

from datetime import datetime
from typing import Optional
from uuid import UUID

import pytest

from wealthify.achievements import AchievementEngine, RecordingShareSink
from wealthify.audit import AuditLogger
from wealthify.config import AppSettings
from wealthify.models.achievement import AchievementDefinition, UnlockedAchievement
from wealthify.services.storage import (
    InMemoryAchievementStorage,
    InMemoryAuditStorage,
    InMemoryFinanceData,
    StorageError,
)


USER_ID = "user-123"


class FlakyAchievementStorage(InMemoryAchievementStorage):
    """In-memory storage that fails on demand."""

    def __init__(self, latency: float = 0.0):
        super().__init__(latency=latency)
        self.fail_types: set[str] = set()
        self.fail_list = False
        self.fail_update = False
        self.insert_calls: list[str] = []

    async def list_unlocked(self, user_id: str) -> list[UnlockedAchievement]:
        if self.fail_list:
            raise StorageError("list failed")
        return await super().list_unlocked(user_id)

    async def insert_unlock(
        self,
        user_id: str,
        definition: AchievementDefinition,
        progress: float,
    ) -> UnlockedAchievement:
        self.insert_calls.append(definition.type)
        if definition.type in self.fail_types:
            raise StorageError(f"insert of {definition.type} failed")
        return await super().insert_unlock(user_id, definition, progress)

    async def update_shared(self, achievement_id: UUID, shared_at: datetime) -> bool:
        if self.fail_update:
            raise StorageError("update failed")
        return await super().update_shared(achievement_id, shared_at)


class FakeFinanceTables:
    """Stands in for PostgresClient: answers each query from the table it names."""

    def __init__(self, **tables: list[dict]):
        self.tables = tables
        self.queries: list[str] = []

    async def fetch(self, query, *args):
        self.queries.append(query)
        for table, rows in self.tables.items():
            if f"FROM {table}" in query:
                return rows
        return []

    async def fetchrow(self, query, *args):
        rows = await self.fetch(query, *args)
        return rows[0] if rows else None


@pytest.fixture
def user_id() -> str:
    return USER_ID


@pytest.fixture
def app_settings() -> AppSettings:
    return AppSettings(
        app_name="Wealthify",
        app_url="https://wealthify.app",
        storage_backend="memory",
    )


@pytest.fixture
def storage() -> FlakyAchievementStorage:
    return FlakyAchievementStorage()


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage) -> AuditLogger:
    return AuditLogger(audit_storage)


@pytest.fixture
def share_sink() -> RecordingShareSink:
    return RecordingShareSink()


@pytest.fixture
def finance_data() -> InMemoryFinanceData:
    return InMemoryFinanceData()


@pytest.fixture
def celebrated() -> list:
    return []


@pytest.fixture
def engine(storage, share_sink, audit_logger, app_settings, celebrated) -> AchievementEngine:
    return AchievementEngine(
        storage=storage,
        share_sink=share_sink,
        audit_logger=audit_logger,
        on_celebrate=celebrated.append,
        app_settings=app_settings,
    )


def make_engine(
    storage,
    app_settings: AppSettings,
    audit_logger: Optional[AuditLogger] = None,
) -> AchievementEngine:
    return AchievementEngine(
        storage=storage,
        audit_logger=audit_logger,
        app_settings=app_settings,
    )
