"""
Stats-changed notifications.

Whatever mutates a user's finance data publishes here; the achievement
flow subscribes and runs an evaluation pass. Subscribers are awaited in
order of subscription.
"""

from typing import Awaitable, Callable

import structlog


StatsChangedCallback = Callable[[str], Awaitable[None]]


class StatsChangeNotifier:
    """In-process publish/subscribe channel keyed by user id."""

    def __init__(self):
        self._subscribers: list[StatsChangedCallback] = []
        self._logger = structlog.get_logger()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, callback: StatsChangedCallback) -> Callable[[], None]:
        """Register a callback. Returns a function that removes it again."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    async def publish(self, user_id: str) -> None:
        """Tell every subscriber that `user_id`'s statistics may have changed."""
        for callback in list(self._subscribers):
            try:
                await callback(user_id)
            except Exception as e:
                self._logger.error(
                    "stats_subscriber_failed",
                    user_id=user_id,
                    error=str(e),
                )
