"""
Tests for storage backends.

The in-memory backend is tested directly. The PostgreSQL and Google
Sheets backends are tested against fake clients: no network.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import asyncpg
import pytest

from conftest import FakeFinanceTables
from wealthify.achievements import get_definition
from wealthify.config import PostgresSettings
from wealthify.models.achievement import AchievementCategory, UnlockedAchievement
from wealthify.models.audit import AuditEventBuilder
from wealthify.models.finance import TransactionType
from wealthify.services.storage import (
    DuplicateError,
    GoogleSheetsAchievementStorage,
    GoogleSheetsAuditStorage,
    InMemoryAchievementStorage,
    InMemoryAuditStorage,
    NotFoundError,
    PostgresAchievementStorage,
    PostgresClient,
    PostgresFinanceData,
    StorageError,
)
from wealthify.services.storage import ConnectionError as StorageConnectionError
from wealthify.services.storage.google_sheets import ACHIEVEMENT_COLUMNS, AUDIT_COLUMNS
from wealthify.stats.calculator import expenses_by_category


USER = "user-1"


class TestInMemoryAchievementStorage:
    """Tests for the in-memory backend."""

    def test_insert_and_list(self):
        storage = InMemoryAchievementStorage()
        row = asyncio.run(storage.insert_unlock(USER, get_definition("first_goal"), 1))

        (listed,) = asyncio.run(storage.list_unlocked(USER))
        assert listed.id == row.id
        assert listed.achievement_type == "first_goal"

    def test_duplicate_rejected(self):
        storage = InMemoryAchievementStorage()
        definition = get_definition("first_goal")
        asyncio.run(storage.insert_unlock(USER, definition, 1))

        with pytest.raises(DuplicateError):
            asyncio.run(storage.insert_unlock(USER, definition, 2))
        assert storage.count() == 1

    def test_listed_rows_are_copies(self):
        storage = InMemoryAchievementStorage()
        asyncio.run(storage.insert_unlock(USER, get_definition("first_goal"), 1))

        (listed,) = asyncio.run(storage.list_unlocked(USER))
        listed.progress = 99

        (again,) = asyncio.run(storage.list_unlocked(USER))
        assert again.progress == 1

    def test_update_shared(self):
        storage = InMemoryAchievementStorage()
        row = asyncio.run(storage.insert_unlock(USER, get_definition("first_goal"), 1))
        now = datetime.now(timezone.utc)

        assert asyncio.run(storage.update_shared(row.id, now)) is True
        (listed,) = asyncio.run(storage.list_unlocked(USER))
        assert listed.shared_at == now

    def test_update_shared_unknown(self):
        storage = InMemoryAchievementStorage()
        with pytest.raises(NotFoundError):
            asyncio.run(storage.update_shared(uuid4(), datetime.now(timezone.utc)))


class TestInMemoryAuditStorage:
    def test_queries(self):
        storage = InMemoryAuditStorage()
        correlation_id = uuid4()
        row_id = uuid4()
        asyncio.run(storage.append_event(AuditEventBuilder.achievement_unlocked(
            USER, "first_goal", row_id, 1, 1, correlation_id,
        )))
        asyncio.run(storage.append_event(AuditEventBuilder.stats_fetch_failed(
            USER, "timeout", correlation_id,
        )))

        assert len(asyncio.run(storage.get_events_by_correlation_id(correlation_id))) == 2
        assert len(asyncio.run(storage.get_events_by_entity("achievement", str(row_id)))) == 1
        assert len(asyncio.run(storage.get_recent_events(limit=1))) == 1


# =============================================================================
# Google Sheets (fake worksheet)
# =============================================================================

class FakeWorksheet:
    def __init__(self, header: list[str]):
        self.rows: list[list[str]] = [list(header)]

    def get_all_values(self) -> list[list[str]]:
        return [list(r) for r in self.rows]

    def append_row(self, row, value_input_option=None):
        self.rows.append([str(v) for v in row])

    def update_cell(self, row: int, col: int, value):
        target = self.rows[row - 1]
        while len(target) < col:
            target.append("")
        target[col - 1] = value


class FakeSheetsClient:
    def __init__(self):
        self.achievements = FakeWorksheet(ACHIEVEMENT_COLUMNS)
        self.audit = FakeWorksheet(AUDIT_COLUMNS)

    def get_achievements_sheet(self):
        return self.achievements

    def get_audit_sheet(self):
        return self.audit


class BrokenSheetsClient(FakeSheetsClient):
    def get_achievements_sheet(self):
        raise RuntimeError("quota exceeded")


class TestGoogleSheetsAchievementStorage:
    """Tests for the Sheets backend against a fake worksheet."""

    def test_round_trip(self):
        client = FakeSheetsClient()
        storage = GoogleSheetsAchievementStorage(client)

        row = asyncio.run(storage.insert_unlock(USER, get_definition("savings_500"), 512.5))
        (listed,) = asyncio.run(storage.list_unlocked(USER))

        assert listed.id == row.id
        assert listed.category == AchievementCategory.SAVINGS
        assert listed.progress == 512.5
        assert listed.target == 500
        assert listed.unlocked_at == row.unlocked_at
        assert listed.shared_at is None

    def test_duplicate_rejected(self):
        storage = GoogleSheetsAchievementStorage(FakeSheetsClient())
        definition = get_definition("first_goal")
        asyncio.run(storage.insert_unlock(USER, definition, 1))

        with pytest.raises(DuplicateError):
            asyncio.run(storage.insert_unlock(USER, definition, 1))

    def test_filters_by_user_and_skips_malformed(self):
        client = FakeSheetsClient()
        storage = GoogleSheetsAchievementStorage(client)
        asyncio.run(storage.insert_unlock(USER, get_definition("first_goal"), 1))
        asyncio.run(storage.insert_unlock("other", get_definition("first_goal"), 1))
        client.achievements.rows.append(["not-a-uuid", USER, "first_budget"])

        unlocks = asyncio.run(storage.list_unlocked(USER))

        assert [u.achievement_type for u in unlocks] == ["first_goal"]

    def test_sorted_by_unlock_time(self):
        client = FakeSheetsClient()
        storage = GoogleSheetsAchievementStorage(client)
        now = datetime.now(timezone.utc)
        for achievement_type, minutes in (("first_goal", 5), ("first_budget", 10)):
            row = UnlockedAchievement.from_definition(USER, get_definition(achievement_type), 1)
            row.unlocked_at = now - timedelta(minutes=minutes)
            client.achievements.append_row(storage._unlock_to_row(row))

        unlocks = asyncio.run(storage.list_unlocked(USER))
        assert [u.achievement_type for u in unlocks] == ["first_budget", "first_goal"]

    def test_update_shared(self):
        client = FakeSheetsClient()
        storage = GoogleSheetsAchievementStorage(client)
        row = asyncio.run(storage.insert_unlock(USER, get_definition("first_goal"), 1))
        now = datetime.now(timezone.utc)

        asyncio.run(storage.update_shared(row.id, now))

        (listed,) = asyncio.run(storage.list_unlocked(USER))
        assert listed.shared_at == now

    def test_update_shared_unknown(self):
        storage = GoogleSheetsAchievementStorage(FakeSheetsClient())
        with pytest.raises(NotFoundError):
            asyncio.run(storage.update_shared(uuid4(), datetime.now(timezone.utc)))

    def test_errors_become_storage_errors(self):
        storage = GoogleSheetsAchievementStorage(BrokenSheetsClient())
        with pytest.raises(StorageError, match="quota exceeded"):
            asyncio.run(storage.list_unlocked(USER))


class TestGoogleSheetsAuditStorage:
    def test_append_and_read(self):
        client = FakeSheetsClient()
        storage = GoogleSheetsAuditStorage(client)
        row_id = uuid4()
        event = AuditEventBuilder.achievement_shared(USER, row_id, "twitter")

        assert asyncio.run(storage.append_event(event)) is True
        (read,) = asyncio.run(storage.get_events_by_entity("achievement", str(row_id)))

        assert read.event_id == event.event_id
        assert read.details == {"platform": "twitter"}
        assert read.is_user_action is True


# =============================================================================
# PostgreSQL (fake client)
# =============================================================================

class FakePostgresClient:
    def __init__(self, row=None, error=None):
        self.row = row
        self.error = error
        self.queries: list[str] = []

    async def fetch(self, query, *args):
        self.queries.append(query)
        if self.error:
            raise self.error
        return [self.row] if self.row else []

    async def fetchrow(self, query, *args):
        rows = await self.fetch(query, *args)
        return rows[0] if rows else None


def record(**overrides) -> dict:
    values = {
        "id": uuid4(),
        "user_id": USER,
        "achievement_type": "first_goal",
        "achievement_name": "Goal Setter",
        "description": "Create your first financial goal",
        "icon": "🎯",
        "category": "goals",
        "progress": 1.0,
        "target": 1.0,
        "is_completed": True,
        "unlocked_at": datetime.now(timezone.utc),
        "shared_at": None,
    }
    values.update(overrides)
    return values


class TestPostgresAchievementStorage:
    """Tests for the PostgreSQL backend's mapping and conflict handling."""

    def test_record_to_unlock(self):
        unlock = PostgresAchievementStorage._record_to_unlock(record())
        assert unlock.achievement_type == "first_goal"
        assert unlock.category == AchievementCategory.GOALS

    def test_insert_returns_row(self):
        client = FakePostgresClient(row=record())
        storage = PostgresAchievementStorage(client)

        unlock = asyncio.run(storage.insert_unlock(USER, get_definition("first_goal"), 1))

        assert unlock.user_id == USER
        assert "ON CONFLICT (user_id, achievement_type) DO NOTHING" in client.queries[0]

    def test_conflict_is_duplicate(self):
        """An empty RETURNING means another pass got there first."""
        storage = PostgresAchievementStorage(FakePostgresClient(row=None))
        with pytest.raises(DuplicateError):
            asyncio.run(storage.insert_unlock(USER, get_definition("first_goal"), 1))

    def test_unique_violation_is_duplicate(self):
        error = StorageError("Query failed")
        error.__cause__ = asyncpg.exceptions.UniqueViolationError("duplicate key")
        storage = PostgresAchievementStorage(FakePostgresClient(error=error))

        with pytest.raises(DuplicateError):
            asyncio.run(storage.insert_unlock(USER, get_definition("first_goal"), 1))

    def test_update_shared_unknown(self):
        storage = PostgresAchievementStorage(FakePostgresClient(row=None))
        with pytest.raises(NotFoundError):
            asyncio.run(storage.update_shared(uuid4(), datetime.now(timezone.utc)))


class FakeConnection:
    def __init__(self, error=None):
        self.error = error
        self.executed: list[str] = []

    async def execute(self, query, *args):
        if self.error:
            raise self.error
        self.executed.append(query)


class FakePool:
    def __init__(self, conn):
        self.conn = conn
        self.closed = False

    @asynccontextmanager
    async def acquire(self):
        yield self.conn

    async def close(self):
        self.closed = True


@pytest.fixture
def pg_settings():
    return PostgresSettings(dsn="postgresql://localhost/wealthify_test")


def patch_create_pool(monkeypatch, pool=None, error=None):
    calls = []

    async def fake_create_pool(dsn, **kwargs):
        calls.append(dsn)
        if error:
            raise error
        return pool

    monkeypatch.setattr(asyncpg, "create_pool", fake_create_pool)
    return calls


class TestPostgresClient:
    """Tests for pool creation and schema setup."""

    def test_pool_creation_sets_up_schema(self, monkeypatch, pg_settings):
        pool = FakePool(FakeConnection())
        calls = patch_create_pool(monkeypatch, pool=pool)
        client = PostgresClient(pg_settings)

        asyncio.run(client.get_pool())
        asyncio.run(client.get_pool())

        assert len(calls) == 1
        (ddl,) = pool.conn.executed
        assert "CREATE TABLE IF NOT EXISTS user_achievements" in ddl
        assert "CREATE UNIQUE INDEX IF NOT EXISTS" in ddl
        assert "(user_id, achievement_type)" in ddl

    def test_rejected_login_is_storage_error(self, monkeypatch, pg_settings):
        patch_create_pool(
            monkeypatch,
            error=asyncpg.exceptions.InvalidPasswordError("password authentication failed"),
        )
        client = PostgresClient(pg_settings)

        with pytest.raises(StorageError) as excinfo:
            asyncio.run(client.get_pool())

        assert not isinstance(excinfo.value, StorageConnectionError)
        assert isinstance(excinfo.value.__cause__, asyncpg.exceptions.InvalidPasswordError)

    def test_unreachable_server_is_connection_error(self, monkeypatch, pg_settings):
        patch_create_pool(monkeypatch, error=OSError("connection refused"))
        client = PostgresClient(pg_settings)

        with pytest.raises(StorageConnectionError):
            asyncio.run(client.get_pool())

    def test_schema_failure_closes_pool(self, monkeypatch, pg_settings):
        conn = FakeConnection(
            error=asyncpg.exceptions.InsufficientPrivilegeError("permission denied")
        )
        pool = FakePool(conn)
        calls = patch_create_pool(monkeypatch, pool=pool)
        client = PostgresClient(pg_settings)

        with pytest.raises(StorageError, match="Schema setup failed"):
            asyncio.run(client.get_pool())

        assert pool.closed is True
        # Next use tries again
        with pytest.raises(StorageError):
            asyncio.run(client.get_pool())
        assert len(calls) == 2

    def test_close_at_exit(self, monkeypatch, pg_settings):
        pool = FakePool(FakeConnection())
        patch_create_pool(monkeypatch, pool=pool)
        client = PostgresClient(pg_settings)
        loop = asyncio.new_event_loop()
        try:
            loop.run_until_complete(client.get_pool())
            client.close_at_exit()
        finally:
            loop.close()

        assert pool.closed is True

    def test_close_at_exit_skips_closed_loop(self, monkeypatch, pg_settings):
        pool = FakePool(FakeConnection())
        patch_create_pool(monkeypatch, pool=pool)
        client = PostgresClient(pg_settings)

        asyncio.run(client.get_pool())
        client.close_at_exit()

        assert pool.closed is False


def transaction_row(**overrides) -> dict:
    values = {
        "id": uuid4(),
        "amount": Decimal("25.00"),
        "category": "Groceries",
        "transaction_type": "expense",
        "transaction_date": date(2024, 3, 1),
        "description": None,
    }
    values.update(overrides)
    return values


class TestPostgresFinanceData:
    """Tests for mapping the finance tables."""

    def test_accounts_with_nulls(self):
        client = FakeFinanceTables(linked_accounts=[{
            "id": uuid4(),
            "account_name": None,
            "account_type": "savings",
            "balance": None,
            "is_active": None,
        }])

        (account,) = asyncio.run(PostgresFinanceData(client).list_accounts(USER))

        assert account.user_id == USER
        assert account.balance == 0
        assert account.is_active is True
        assert account.account_name == "Account"

    def test_unknown_transaction_type_kept(self):
        client = FakeFinanceTables(transactions=[
            transaction_row(),
            transaction_row(transaction_type="transfer", description="x" * 800),
            transaction_row(transaction_type=None, amount=None, transaction_date=None),
        ])

        expense, transfer, blank = asyncio.run(
            PostgresFinanceData(client).list_transactions(USER)
        )

        assert expense.transaction_type is TransactionType.EXPENSE
        assert transfer.transaction_type == "transfer"
        assert len(transfer.description) == 800
        assert blank.amount == 0
        assert expenses_by_category([expense, transfer, blank]) == {
            "Groceries": Decimal("25.00")
        }

    def test_goals_with_null_current_amount(self):
        client = FakeFinanceTables(financial_goals=[{
            "id": uuid4(),
            "goal_name": "Holiday",
            "target_amount": Decimal("500"),
            "current_amount": None,
        }])

        (goal,) = asyncio.run(PostgresFinanceData(client).list_goals(USER))

        assert goal.current_amount is None
        assert goal.is_completed is False

    def test_budgets(self):
        client = FakeFinanceTables(budgets=[{
            "id": uuid4(),
            "category": "Groceries",
            "limit_amount": Decimal("300"),
            "period": None,
        }])

        (budget,) = asyncio.run(PostgresFinanceData(client).list_budgets(USER))

        assert budget.limit_amount == Decimal("300")
        assert budget.period == "monthly"

    def test_invalid_row_is_storage_error(self):
        client = FakeFinanceTables(budgets=[{
            "id": uuid4(),
            "category": "Groceries",
            "limit_amount": Decimal("-5"),
            "period": "monthly",
        }])

        with pytest.raises(StorageError, match="budgets"):
            asyncio.run(PostgresFinanceData(client).list_budgets(USER))

    def test_profile(self):
        profile_id = uuid4()
        created = datetime(2024, 1, 1, tzinfo=timezone.utc)
        client = FakeFinanceTables(profiles=[{
            "id": profile_id,
            "full_name": "Sam",
            "created_at": created,
        }])

        profile = asyncio.run(PostgresFinanceData(client).get_profile(str(profile_id)))

        assert profile.id == str(profile_id)
        assert profile.created_at == created

    def test_missing_profile(self):
        data = PostgresFinanceData(FakeFinanceTables())
        assert asyncio.run(data.get_profile(USER)) is None
