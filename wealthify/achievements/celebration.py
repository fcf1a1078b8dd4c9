"""
Celebration queue.

When several achievements unlock in one pass, the UI must still show
them one at a time. The queue exposes a single "current" slot; the
UI clears it with acknowledge(), which promotes the next one.
"""

from collections import deque
from typing import Callable, Optional

import structlog

from wealthify.models.achievement import UnlockedAchievement


CelebrationCallback = Callable[[UnlockedAchievement], None]

logger = structlog.get_logger()


class CelebrationQueue:
    """FIFO of newly unlocked achievements with one visible slot."""

    def __init__(self, on_celebrate: Optional[CelebrationCallback] = None):
        """
        Args:
            on_celebrate: Called each time an achievement becomes current.
                          Never called for two achievements at once.
        """
        self._pending: deque[UnlockedAchievement] = deque()
        self._current: Optional[UnlockedAchievement] = None
        self._on_celebrate = on_celebrate

    @property
    def current(self) -> Optional[UnlockedAchievement]:
        return self._current

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def push(self, achievement: UnlockedAchievement) -> None:
        if self._current is None:
            self._show(achievement)
        else:
            self._pending.append(achievement)

    def acknowledge(self) -> Optional[UnlockedAchievement]:
        """
        Clear the current celebration and show the next queued one.

        Returns the new current achievement, or None if the queue is empty.
        """
        self._current = None
        if self._pending:
            self._show(self._pending.popleft())
        return self._current

    def _show(self, achievement: UnlockedAchievement) -> None:
        self._current = achievement
        if self._on_celebrate is None:
            return
        try:
            self._on_celebrate(achievement)
        except Exception as e:
            # A broken UI callback must not lose the unlock
            logger.warning(
                "celebration_callback_failed",
                achievement_type=achievement.achievement_type,
                error=str(e),
            )
