"""
PostgreSQL Storage Implementation

The hosted relational database behind the web app. Unlocked achievements
live in `user_achievements`; finance records are read from the app's own
tables (linked_accounts, transactions, financial_goals, budgets, profiles).

DESIGN DECISION: The UNIQUE (user_id, achievement_type) constraint is the
authoritative at-most-once guard. Inserts use ON CONFLICT DO NOTHING and an
empty RETURNING is reported as DuplicateError, so two racing evaluation
passes can never create two rows. The table and a matching unique index
are created when the pool first opens, so older tables gain the guard too.
"""

import asyncio
import atexit
from datetime import date, datetime
from typing import Optional
from uuid import UUID, uuid4

import asyncpg
import structlog
from pydantic import ValidationError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from wealthify.config import PostgresSettings, get_settings
from wealthify.models.achievement import (
    AchievementCategory,
    AchievementDefinition,
    UnlockedAchievement,
    utcnow,
)
from wealthify.models.finance import (
    Budget,
    FinancialGoal,
    LinkedAccount,
    Profile,
    Transaction,
)
from wealthify.services.storage.interface import (
    AchievementStorageInterface,
    ConnectionError,
    DuplicateError,
    FinanceDataInterface,
    NotFoundError,
    StorageError,
)


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS user_achievements (
    id UUID PRIMARY KEY,
    user_id TEXT NOT NULL,
    achievement_type TEXT NOT NULL,
    achievement_name TEXT NOT NULL,
    description TEXT NOT NULL,
    icon TEXT NOT NULL,
    category TEXT NOT NULL,
    progress DOUBLE PRECISION NOT NULL,
    target DOUBLE PRECISION NOT NULL,
    is_completed BOOLEAN NOT NULL DEFAULT TRUE,
    unlocked_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    shared_at TIMESTAMPTZ,
    CONSTRAINT user_achievements_user_type_key UNIQUE (user_id, achievement_type)
);

CREATE UNIQUE INDEX IF NOT EXISTS user_achievements_user_type_idx
    ON user_achievements (user_id, achievement_type);
"""

ACHIEVEMENT_COLUMNS = (
    "id, user_id, achievement_type, achievement_name, description, icon, "
    "category, progress, target, is_completed, unlocked_at, shared_at"
)

logger = structlog.get_logger()


def _transient(func):
    """Retry connection-level failures; anything else surfaces immediately."""
    return retry(
        retry=retry_if_exception_type(ConnectionError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )(func)


class PostgresClient:
    """
    Owns the asyncpg connection pool.

    The pool is created lazily on first use and shared by every
    storage object built on this client. Creating it also creates the
    user_achievements table and its uniqueness guard, and registers the
    pool to be closed when the process exits.
    """

    def __init__(self, settings: Optional[PostgresSettings] = None):
        self._settings = settings or get_settings().postgres
        self._pool: Optional[asyncpg.Pool] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    async def get_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            try:
                pool = await asyncpg.create_pool(
                    self._settings.dsn,
                    min_size=self._settings.min_pool_size,
                    max_size=self._settings.max_pool_size,
                )
            except (OSError, asyncpg.exceptions.InterfaceError) as e:
                raise ConnectionError(f"Failed to connect to PostgreSQL: {e}") from e
            except asyncpg.exceptions.PostgresError as e:
                raise StorageError(f"PostgreSQL refused the connection: {e}") from e

            try:
                await self._ensure_schema(pool)
            except Exception:
                await pool.close()
                raise

            self._pool = pool
            self._loop = asyncio.get_running_loop()
            atexit.register(self.close_at_exit)
            logger.info("postgres_pool_created")
        return self._pool

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info("postgres_pool_closed")

    def close_at_exit(self) -> None:
        """Close the pool on the loop that created it, if that loop is still usable."""
        loop = self._loop
        if self._pool is None or loop is None or loop.is_closed() or loop.is_running():
            return
        loop.run_until_complete(self.close())

    @staticmethod
    async def _ensure_schema(pool) -> None:
        try:
            async with pool.acquire() as conn:
                await conn.execute(SCHEMA_SQL)
        except (OSError, asyncpg.exceptions.InterfaceError) as e:
            raise ConnectionError(f"PostgreSQL connection lost: {e}") from e
        except asyncpg.exceptions.PostgresError as e:
            raise StorageError(f"Schema setup failed: {e}") from e
        logger.info("postgres_schema_ready")

    async def fetch(self, query: str, *args) -> list:
        pool = await self.get_pool()
        try:
            async with pool.acquire() as conn:
                return await conn.fetch(query, *args)
        except (OSError, asyncpg.exceptions.InterfaceError) as e:
            raise ConnectionError(f"PostgreSQL connection lost: {e}") from e
        except asyncpg.exceptions.PostgresError as e:
            raise StorageError(f"Query failed: {e}") from e

    async def fetchrow(self, query: str, *args):
        rows = await self.fetch(query, *args)
        return rows[0] if rows else None


class PostgresAchievementStorage(AchievementStorageInterface):
    """user_achievements table, one row per user per unlocked type."""

    def __init__(self, client: Optional[PostgresClient] = None):
        self._client = client or PostgresClient()

    @staticmethod
    def _record_to_unlock(record) -> UnlockedAchievement:
        return UnlockedAchievement(
            id=record["id"],
            user_id=str(record["user_id"]),
            achievement_type=record["achievement_type"],
            achievement_name=record["achievement_name"],
            description=record["description"],
            icon=record["icon"],
            category=AchievementCategory(record["category"]),
            progress=float(record["progress"]),
            target=float(record["target"]),
            is_completed=record["is_completed"],
            unlocked_at=record["unlocked_at"],
            shared_at=record["shared_at"],
        )

    @_transient
    async def list_unlocked(self, user_id: str) -> list[UnlockedAchievement]:
        rows = await self._client.fetch(
            f"""
            SELECT {ACHIEVEMENT_COLUMNS}
            FROM user_achievements
            WHERE user_id = $1
            ORDER BY unlocked_at
            """,
            user_id,
        )
        return [self._record_to_unlock(row) for row in rows]

    @_transient
    async def insert_unlock(
        self,
        user_id: str,
        definition: AchievementDefinition,
        progress: float,
    ) -> UnlockedAchievement:
        try:
            row = await self._client.fetchrow(
                f"""
                INSERT INTO user_achievements (
                    id, user_id, achievement_type, achievement_name, description,
                    icon, category, progress, target, is_completed, unlocked_at
                )
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, TRUE, $10)
                ON CONFLICT (user_id, achievement_type) DO NOTHING
                RETURNING {ACHIEVEMENT_COLUMNS}
                """,
                uuid4(),
                user_id,
                definition.type,
                definition.name,
                definition.description,
                definition.icon,
                definition.category.value,
                float(progress),
                float(definition.target),
                utcnow(),
            )
        except StorageError as e:
            if isinstance(e.__cause__, asyncpg.exceptions.UniqueViolationError):
                raise DuplicateError(str(e))
            raise

        if row is None:
            raise DuplicateError(
                f"Achievement {definition.type} already unlocked for {user_id}"
            )
        return self._record_to_unlock(row)

    @_transient
    async def update_shared(self, achievement_id: UUID, shared_at: datetime) -> bool:
        row = await self._client.fetchrow(
            """
            UPDATE user_achievements
            SET shared_at = $1
            WHERE id = $2
            RETURNING id
            """,
            shared_at,
            achievement_id,
        )
        if row is None:
            raise NotFoundError(f"Unlocked achievement not found: {achievement_id}")
        return True


class PostgresFinanceData(FinanceDataInterface):
    """
    Reads the web app's finance tables for the statistics provider.

    These tables belong to the rest of the app, so rows are mapped
    leniently: NULL amounts read as 0 and unknown transaction types are
    kept as text. A row that still can't be mapped is a StorageError.
    """

    def __init__(self, client: Optional[PostgresClient] = None):
        self._client = client or PostgresClient()

    @staticmethod
    def _map_rows(table: str, rows, build) -> list:
        try:
            return [build(row) for row in rows]
        except ValidationError as e:
            logger.warning("finance_row_invalid", table=table, error=str(e))
            raise StorageError(f"Invalid row in {table}: {e}") from e

    @_transient
    async def list_accounts(self, user_id: str) -> list[LinkedAccount]:
        rows = await self._client.fetch(
            """
            SELECT id, account_name, account_type, balance, is_active
            FROM linked_accounts
            WHERE user_id::text = $1
            """,
            user_id,
        )
        return self._map_rows("linked_accounts", rows, lambda row: LinkedAccount(
            id=row["id"],
            user_id=user_id,
            account_name=row["account_name"] or "Account",
            account_type=row["account_type"] or "checking",
            balance=row["balance"] or 0,
            is_active=row["is_active"] if row["is_active"] is not None else True,
        ))

    @_transient
    async def list_transactions(self, user_id: str) -> list[Transaction]:
        rows = await self._client.fetch(
            """
            SELECT id, amount, category, transaction_type, transaction_date, description
            FROM transactions
            WHERE user_id::text = $1
            """,
            user_id,
        )
        return self._map_rows("transactions", rows, lambda row: Transaction(
            id=row["id"],
            user_id=user_id,
            amount=row["amount"] or 0,
            category=row["category"] or "",
            transaction_type=row["transaction_type"] or "",
            transaction_date=row["transaction_date"] or date.today(),
            description=row["description"],
        ))

    @_transient
    async def list_goals(self, user_id: str) -> list[FinancialGoal]:
        rows = await self._client.fetch(
            """
            SELECT id, goal_name, target_amount, current_amount
            FROM financial_goals
            WHERE user_id::text = $1
            """,
            user_id,
        )
        return self._map_rows("financial_goals", rows, lambda row: FinancialGoal(
            id=row["id"],
            user_id=user_id,
            goal_name=row["goal_name"] or "Goal",
            target_amount=row["target_amount"] or 0,
            current_amount=row["current_amount"],
        ))

    @_transient
    async def list_budgets(self, user_id: str) -> list[Budget]:
        rows = await self._client.fetch(
            """
            SELECT id, category, limit_amount, period
            FROM budgets
            WHERE user_id::text = $1
            """,
            user_id,
        )
        return self._map_rows("budgets", rows, lambda row: Budget(
            id=row["id"],
            user_id=user_id,
            category=row["category"] or "",
            limit_amount=row["limit_amount"] or 0,
            period=row["period"] or "monthly",
        ))

    @_transient
    async def get_profile(self, user_id: str) -> Optional[Profile]:
        row = await self._client.fetchrow(
            """
            SELECT id, full_name, created_at
            FROM profiles
            WHERE id::text = $1
            """,
            user_id,
        )
        if row is None:
            return None
        (profile,) = self._map_rows("profiles", [row], lambda row: Profile(
            id=str(row["id"]),
            full_name=row["full_name"],
            created_at=row["created_at"],
        ))
        return profile
