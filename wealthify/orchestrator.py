"""
Main Orchestrator for Wealthify Achievements

This module ties together all the components and defines the
end-to-end flow of one evaluation pass:
    stats changed → fetch fresh stats → check and unlock → celebrate

DESIGN DECISION: The orchestrator enforces the boundaries:
- Every pass reads fresh statistics; nothing is cached between passes
- A pass that can't read statistics does nothing (it never unlocks on
  stale or partial data)
- Every step is audited

An evaluation pass never raises to the caller: a failed pass is audited
and the next stats change or page load triggers another one.
"""

from datetime import datetime
from typing import Callable, Optional, Union
from uuid import UUID

import structlog

from wealthify.achievements import (
    AchievementEngine,
    ShareSinkInterface,
    filter_by_category,
)
from wealthify.achievements.celebration import CelebrationCallback
from wealthify.audit import AuditLogger, create_correlation_id
from wealthify.config import get_settings
from wealthify.models.achievement import (
    AchievementCategory,
    AchievementSummary,
    AchievementView,
    SharePlatform,
    UnlockedAchievement,
    UserStatsSnapshot,
)
from wealthify.services.storage import (
    AchievementStorageInterface,
    FinanceDataInterface,
    GoogleSheetsAchievementStorage,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    InMemoryAchievementStorage,
    InMemoryAuditStorage,
    InMemoryFinanceData,
    PostgresAchievementStorage,
    PostgresClient,
    PostgresFinanceData,
    StorageError,
)
from wealthify.stats import StatsChangeNotifier, StatsProvider


logger = structlog.get_logger()


class AchievementFlow:
    """
    Orchestrates achievement evaluation for the UI.

    Flow:
    1. Stats change → notifier calls refresh(user_id)
    2. Fetch → StatsProvider reads the finance records
    3. Evaluate → engine unlocks whatever is newly earned
    4. Celebrate → engine queues the unlocks, UI shows them one at a time
    """

    def __init__(
        self,
        stats_provider: StatsProvider,
        engine: AchievementEngine,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._stats_provider = stats_provider
        self._engine = engine
        self._audit_logger = audit_logger or AuditLogger()

    @property
    def engine(self) -> AchievementEngine:
        return self._engine

    async def refresh(self, user_id: str) -> list[UnlockedAchievement]:
        """
        Run one evaluation pass for a user.

        Returns the achievements unlocked by this pass (usually empty).
        """
        correlation_id = create_correlation_id()

        try:
            stats = await self._stats_provider.get_stats(user_id)
        except StorageError as e:
            await self._audit_logger.log_stats_fetch_failed(
                user_id=user_id,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            return []

        return await self._evaluate(user_id, stats, correlation_id)

    async def load_page(
        self,
        user_id: str,
    ) -> tuple[AchievementSummary, list[AchievementView]]:
        """
        Everything the achievements page shows, from one statistics read.

        Opening the page runs an evaluation pass first, so achievements
        that depend only on time (days active) unlock without a stats change.

        Raises:
            StorageError: If statistics or unlocks can't be read
        """
        stats = await self._stats_provider.get_stats(user_id)
        await self._evaluate(user_id, stats, create_correlation_id())
        views = await self._engine.get_all_achievements(user_id, stats)
        return self._engine.summarize(views), views

    async def _evaluate(
        self,
        user_id: str,
        stats: UserStatsSnapshot,
        correlation_id: UUID,
    ) -> list[UnlockedAchievement]:
        try:
            return await self._engine.check_and_unlock(
                user_id,
                stats,
                correlation_id=correlation_id,
            )
        except Exception as e:
            logger.error(
                "evaluation_pass_failed",
                user_id=user_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            await self._audit_logger.log_error(
                error_type="evaluation_pass_failed",
                error_message=str(e),
                details={"user_id": user_id},
                correlation_id=correlation_id,
            )
            return []

    def attach(self, notifier: StatsChangeNotifier) -> Callable[[], None]:
        """Run refresh() on every stats change. Returns the unsubscribe function."""

        async def on_stats_changed(user_id: str) -> None:
            await self.refresh(user_id)

        return notifier.subscribe(on_stats_changed)

    async def get_achievements(
        self,
        user_id: str,
        category: Optional[AchievementCategory] = None,
    ) -> list[AchievementView]:
        """
        Display records for the achievements section.

        Raises:
            StorageError: If statistics or unlocks can't be read
        """
        stats = await self._stats_provider.get_stats(user_id)
        views = await self._engine.get_all_achievements(user_id, stats)
        return filter_by_category(views, category)

    async def get_summary(self, user_id: str) -> AchievementSummary:
        """
        Numbers for the dashboard widget.

        Raises:
            StorageError: If statistics or unlocks can't be read
        """
        stats = await self._stats_provider.get_stats(user_id)
        return await self._engine.get_summary(user_id, stats)

    def current_celebration(self, user_id: str) -> Optional[UnlockedAchievement]:
        return self._engine.current_celebration(user_id)

    async def acknowledge_celebration(self, user_id: str) -> Optional[UnlockedAchievement]:
        return await self._engine.acknowledge_celebration(user_id)

    async def share(
        self,
        achievement: Union[UnlockedAchievement, AchievementView],
        platform: Union[SharePlatform, str],
    ) -> Optional[datetime]:
        return await self._engine.share_achievement(achievement, platform)


def _build_storage(
    backend: str,
) -> tuple[AchievementStorageInterface, FinanceDataInterface, AuditLogger]:
    if backend == "postgres":
        client = PostgresClient()
        return (
            PostgresAchievementStorage(client),
            PostgresFinanceData(client),
            AuditLogger(InMemoryAuditStorage()),
        )

    if backend == "google_sheets":
        client = GoogleSheetsClient()
        client.connect()
        return (
            GoogleSheetsAchievementStorage(client),
            InMemoryFinanceData(),
            AuditLogger(GoogleSheetsAuditStorage(client)),
        )

    return (
        InMemoryAchievementStorage(),
        InMemoryFinanceData(),
        AuditLogger(InMemoryAuditStorage()),
    )


def create_app_components(
    backend: Optional[str] = None,
    share_sink: Optional[ShareSinkInterface] = None,
    on_celebrate: Optional[CelebrationCallback] = None,
) -> tuple[AchievementFlow, FinanceDataInterface, StatsChangeNotifier]:
    """
    Factory function to create all application components.

    Args:
        backend: "memory", "postgres" or "google_sheets".
                 Defaults to the STORAGE_BACKEND setting.
        share_sink: Where share URLs are opened
        on_celebrate: Called when an unlock becomes the current celebration

    Returns:
        (achievement_flow, finance_data, notifier). The flow is already
        attached to the notifier.
    """
    app_settings = get_settings().app
    backend = backend or app_settings.storage_backend

    try:
        achievement_storage, finance_data, audit_logger = _build_storage(backend)
    except Exception as e:
        # Backend not configured - continue in memory
        logger.warning(
            "storage_not_configured",
            backend=backend,
            error=str(e),
        )
        achievement_storage, finance_data, audit_logger = _build_storage("memory")

    engine = AchievementEngine(
        storage=achievement_storage,
        share_sink=share_sink,
        audit_logger=audit_logger,
        on_celebrate=on_celebrate,
        app_settings=app_settings,
    )
    flow = AchievementFlow(
        stats_provider=StatsProvider(finance_data),
        engine=engine,
        audit_logger=audit_logger,
    )

    notifier = StatsChangeNotifier()
    flow.attach(notifier)

    return flow, finance_data, notifier
