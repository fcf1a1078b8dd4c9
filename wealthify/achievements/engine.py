"""
Achievement Engine

Evaluates the catalog against a user's statistics snapshot, unlocks what
has been earned, and queues unlocks for the celebration UI.

GUARANTEES:
- At most one unlock row per user per achievement type. The storage
  backend's uniqueness guard is authoritative; a duplicate response
  means "already unlocked", never an error.
- Decisions are made against the persisted set read at decision time,
  never a copy captured earlier.
- Unlocks are monotonic: nothing here moves an achievement back to locked.
- Failures only delay an unlock. A failed write leaves the achievement
  eligible and the next evaluation pass retries it.
"""

import asyncio
from datetime import datetime
from typing import Any, Iterable, Optional, Union
from uuid import UUID

import structlog

from wealthify.achievements.catalog import ACHIEVEMENT_CATALOG, index_catalog
from wealthify.achievements.celebration import CelebrationCallback, CelebrationQueue
from wealthify.achievements.progress import (
    achievement_state,
    progress_percentage,
    summarize,
)
from wealthify.achievements.sharing import ShareSinkInterface, build_share_url
from wealthify.audit import AuditLogger, create_correlation_id
from wealthify.config import AppSettings, get_settings
from wealthify.models.achievement import (
    AchievementDefinition,
    AchievementSummary,
    AchievementView,
    SharePlatform,
    UnlockedAchievement,
    UserStatsSnapshot,
    utcnow,
)
from wealthify.services.storage import (
    AchievementStorageInterface,
    DuplicateError,
    StorageError,
)


StatsInput = Union[UserStatsSnapshot, dict[str, Any], None]


class AchievementNotUnlockedError(ValueError):
    """Tried to share an achievement the user hasn't unlocked."""
    pass


def coerce_stats(stats: StatsInput) -> UserStatsSnapshot:
    """Absent or partial statistics read as zeros."""
    if stats is None:
        return UserStatsSnapshot()
    if isinstance(stats, UserStatsSnapshot):
        return stats
    return UserStatsSnapshot.model_validate(stats)


def get_all_achievements(
    catalog: Iterable[AchievementDefinition],
    existing_unlocks: Iterable[UnlockedAchievement],
    stats: StatsInput,
) -> list[AchievementView]:
    """
    One view per catalog definition, in catalog order.

    Progress is always recomputed from `stats`, even for unlocked
    achievements; completion comes only from `existing_unlocks`.
    No side effects.
    """
    snapshot = coerce_stats(stats)
    unlocked = {u.achievement_type: u for u in existing_unlocks}

    views = []
    for definition in catalog:
        row = unlocked.get(definition.type)
        progress = definition.progress(snapshot)
        is_completed = row is not None and row.is_completed

        views.append(AchievementView(
            id=str(row.id) if row else definition.type,
            type=definition.type,
            name=definition.name,
            description=definition.description,
            icon=definition.icon,
            category=definition.category,
            progress=progress,
            target=definition.target,
            percentage=progress_percentage(progress, definition.target),
            state=achievement_state(progress, definition.target, is_completed),
            is_completed=is_completed,
            unlocked_at=row.unlocked_at if row else None,
            shared_at=row.shared_at if row else None,
        ))
    return views


def find_eligible(
    catalog: Iterable[AchievementDefinition],
    unlocked_types: set[str],
    stats: StatsInput,
) -> list[tuple[AchievementDefinition, float]]:
    """Locked definitions whose progress has reached the target, with that progress."""
    snapshot = coerce_stats(stats)
    eligible = []
    for definition in catalog:
        if definition.type in unlocked_types:
            continue
        progress = definition.progress(snapshot)
        if progress >= definition.target:
            eligible.append((definition, progress))
    return eligible


class AchievementEngine:
    """
    Stateful front of the engine: storage access, celebration slots, sharing.

    Every operation takes the user explicitly; nothing is read from an
    ambient session.
    """

    def __init__(
        self,
        storage: AchievementStorageInterface,
        catalog: tuple[AchievementDefinition, ...] = ACHIEVEMENT_CATALOG,
        share_sink: Optional[ShareSinkInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        on_celebrate: Optional[CelebrationCallback] = None,
        app_settings: Optional[AppSettings] = None,
    ):
        index_catalog(catalog)  # rejects duplicate types
        self._storage = storage
        self._catalog = catalog
        self._share_sink = share_sink
        self._audit_logger = audit_logger
        self._on_celebrate = on_celebrate
        self._settings = app_settings or get_settings().app
        self._celebrations: dict[str, CelebrationQueue] = {}
        self._in_flight: set[tuple[str, str]] = set()
        self._logger = structlog.get_logger()

    @property
    def catalog(self) -> tuple[AchievementDefinition, ...]:
        return self._catalog

    # -------------------------------------------------------------------------
    # Views
    # -------------------------------------------------------------------------

    async def get_all_achievements(
        self,
        user_id: str,
        stats: StatsInput,
        existing_unlocks: Optional[list[UnlockedAchievement]] = None,
    ) -> list[AchievementView]:
        """Display state of every achievement for a user."""
        if existing_unlocks is None:
            existing_unlocks = await self._storage.list_unlocked(user_id)
        return get_all_achievements(self._catalog, existing_unlocks, stats)

    async def get_summary(
        self,
        user_id: str,
        stats: StatsInput,
        existing_unlocks: Optional[list[UnlockedAchievement]] = None,
    ) -> AchievementSummary:
        views = await self.get_all_achievements(user_id, stats, existing_unlocks)
        return self.summarize(views)

    def summarize(self, views: list[AchievementView]) -> AchievementSummary:
        """Widget numbers for views that were already built."""
        return summarize(
            views,
            near_ratio=self._settings.near_completion_ratio,
            list_size=self._settings.summary_list_size,
        )

    # -------------------------------------------------------------------------
    # Unlocking
    # -------------------------------------------------------------------------

    async def check_and_unlock(
        self,
        user_id: str,
        stats: StatsInput,
        existing_unlocks: Optional[list[UnlockedAchievement]] = None,
        correlation_id: Optional[UUID] = None,
    ) -> list[UnlockedAchievement]:
        """
        Unlock every achievement the stats have earned and that isn't unlocked yet.

        Args:
            user_id: The user being evaluated
            stats: Fresh statistics snapshot (None or partial reads as zeros)
            existing_unlocks: A set the caller has *just* read from storage.
                              When omitted it is read here, right before deciding.
            correlation_id: Ties the audit events of this pass together

        Returns:
            Rows created by this pass, in catalog order. Achievements that
            were already unlocked or failed to save are not included.
        """
        correlation_id = correlation_id or create_correlation_id()

        if existing_unlocks is None:
            try:
                existing_unlocks = await self._storage.list_unlocked(user_id)
            except StorageError as e:
                # Transient read failure: skip this pass, the next trigger retries
                self._logger.warning(
                    "unlock_pass_skipped",
                    user_id=user_id,
                    error=str(e),
                )
                if self._audit_logger:
                    await self._audit_logger.log_external_service_error(
                        service="achievement_storage",
                        error_message=str(e),
                        correlation_id=correlation_id,
                    )
                return []

        unlocked_types = {u.achievement_type for u in existing_unlocks}
        eligible = [
            (definition, progress)
            for definition, progress in find_eligible(self._catalog, unlocked_types, stats)
            if (user_id, definition.type) not in self._in_flight
        ]

        if not eligible:
            return []

        # Claimed before the first await so an overlapping pass skips them
        for definition, _ in eligible:
            self._in_flight.add((user_id, definition.type))

        results = await asyncio.gather(*(
            self._unlock(user_id, definition, progress, correlation_id)
            for definition, progress in eligible
        ))
        created = [row for row in results if row is not None]

        queue = self._queue_for(user_id)
        for row in created:
            queue.push(row)

        if self._audit_logger:
            await self._audit_logger.log_evaluation_completed(
                user_id=user_id,
                eligible=[definition.type for definition, _ in eligible],
                unlocked=[row.achievement_type for row in created],
                correlation_id=correlation_id,
            )

        return created

    async def _unlock(
        self,
        user_id: str,
        definition: AchievementDefinition,
        progress: float,
        correlation_id: UUID,
    ) -> Optional[UnlockedAchievement]:
        """Insert one unlock row. None means nothing was created."""
        key = (user_id, definition.type)
        try:
            row = await self._storage.insert_unlock(user_id, definition, progress)
        except DuplicateError:
            self._logger.debug(
                "achievement_already_unlocked",
                user_id=user_id,
                achievement_type=definition.type,
            )
            if self._audit_logger:
                await self._audit_logger.log_unlock_conflict(
                    user_id=user_id,
                    achievement_type=definition.type,
                    correlation_id=correlation_id,
                )
            return None
        except StorageError as e:
            self._logger.warning(
                "achievement_unlock_failed",
                user_id=user_id,
                achievement_type=definition.type,
                error=str(e),
            )
            if self._audit_logger:
                await self._audit_logger.log_unlock_failed(
                    user_id=user_id,
                    achievement_type=definition.type,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            return None
        finally:
            self._in_flight.discard(key)

        self._logger.info(
            "achievement_unlocked",
            user_id=user_id,
            achievement_type=definition.type,
            progress=progress,
        )
        if self._audit_logger:
            await self._audit_logger.log_achievement_unlocked(
                user_id=user_id,
                achievement_type=row.achievement_type,
                achievement_id=row.id,
                progress=row.progress,
                target=row.target,
                correlation_id=correlation_id,
            )
        return row

    # -------------------------------------------------------------------------
    # Celebration slot
    # -------------------------------------------------------------------------

    def _queue_for(self, user_id: str) -> CelebrationQueue:
        if user_id not in self._celebrations:
            self._celebrations[user_id] = CelebrationQueue(self._on_celebrate)
        return self._celebrations[user_id]

    def current_celebration(self, user_id: str) -> Optional[UnlockedAchievement]:
        """The one newly unlocked achievement the UI should be celebrating."""
        return self._queue_for(user_id).current

    async def acknowledge_celebration(self, user_id: str) -> Optional[UnlockedAchievement]:
        """Dismiss the current celebration; returns the next one, if any."""
        queue = self._queue_for(user_id)
        dismissed = queue.current
        if dismissed is not None and self._audit_logger:
            await self._audit_logger.log_celebration_acknowledged(
                user_id=user_id,
                achievement_id=dismissed.id,
                achievement_type=dismissed.achievement_type,
            )
        return queue.acknowledge()

    # -------------------------------------------------------------------------
    # Sharing
    # -------------------------------------------------------------------------

    async def share_achievement(
        self,
        achievement: Union[UnlockedAchievement, AchievementView],
        platform: Union[SharePlatform, str],
    ) -> Optional[datetime]:
        """
        Open a share intent for an unlocked achievement and stamp `shared_at`.

        May be called any number of times; each call overwrites `shared_at`.

        Returns:
            The recorded `shared_at`, or None if it couldn't be recorded

        Raises:
            ValueError: Unknown platform
            AchievementNotUnlockedError: The achievement isn't unlocked
        """
        platform = SharePlatform(platform)

        if isinstance(achievement, AchievementView):
            if not achievement.is_completed:
                raise AchievementNotUnlockedError(
                    f"Achievement {achievement.type} is not unlocked"
                )
            row_id = UUID(achievement.id)
            user_id = None
            name = achievement.name
        else:
            row_id = achievement.id
            user_id = achievement.user_id
            name = achievement.achievement_name

        url = build_share_url(
            platform,
            name=name,
            icon=achievement.icon,
            description=achievement.description,
            app_name=self._settings.app_name,
            app_url=self._settings.app_url,
        )

        if self._share_sink is not None:
            try:
                self._share_sink.open(url)
            except Exception as e:
                self._logger.warning(
                    "share_sink_failed",
                    achievement_id=str(row_id),
                    platform=platform.value,
                    error=str(e),
                )
                if self._audit_logger:
                    await self._audit_logger.log_share_failed(
                        user_id=user_id,
                        achievement_id=row_id,
                        platform=platform.value,
                        error_message=str(e),
                    )
                return None

        shared_at = utcnow()
        try:
            await self._storage.update_shared(row_id, shared_at)
        except StorageError as e:
            self._logger.warning(
                "share_not_recorded",
                achievement_id=str(row_id),
                platform=platform.value,
                error=str(e),
            )
            if self._audit_logger:
                await self._audit_logger.log_share_failed(
                    user_id=user_id,
                    achievement_id=row_id,
                    platform=platform.value,
                    error_message=str(e),
                )
            return None

        if self._audit_logger:
            await self._audit_logger.log_achievement_shared(
                user_id=user_id,
                achievement_id=row_id,
                platform=platform.value,
            )
        return shared_at
