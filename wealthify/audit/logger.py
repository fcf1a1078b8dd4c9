"""
Audit Logger

DESIGN DECISION: Every unlock attempt and share is logged.
This provides:
1. Traceability of when and why an achievement unlocked
2. Debugging capability when an unlock is delayed
3. A history the user can look back on

The audit logger:
- Is async to not block the evaluation pass
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace all events of one evaluation pass
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from wealthify.models.audit import AuditEvent, AuditEventBuilder
from wealthify.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence), when configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger()

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        elif event.severity.value == "debug":
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_achievement_unlocked(
        self,
        user_id: str,
        achievement_type: str,
        achievement_id: UUID,
        progress: float,
        target: float,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a successful unlock."""
        event = AuditEventBuilder.achievement_unlocked(
            user_id=user_id,
            achievement_type=achievement_type,
            achievement_id=achievement_id,
            progress=progress,
            target=target,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_unlock_conflict(
        self,
        user_id: str,
        achievement_type: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an insert that lost the race to an earlier pass."""
        event = AuditEventBuilder.unlock_conflict(
            user_id=user_id,
            achievement_type=achievement_type,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_unlock_failed(
        self,
        user_id: str,
        achievement_type: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an unlock that will be retried on the next pass."""
        event = AuditEventBuilder.unlock_failed(
            user_id=user_id,
            achievement_type=achievement_type,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_evaluation_completed(
        self,
        user_id: str,
        eligible: list[str],
        unlocked: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.evaluation_completed(
            user_id=user_id,
            eligible=eligible,
            unlocked=unlocked,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_stats_fetch_failed(
        self,
        user_id: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.stats_fetch_failed(
            user_id=user_id,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_celebration_acknowledged(
        self,
        user_id: str,
        achievement_id: UUID,
        achievement_type: str,
    ) -> None:
        event = AuditEventBuilder.celebration_acknowledged(
            user_id=user_id,
            achievement_id=achievement_id,
            achievement_type=achievement_type,
        )
        await self.log(event)

    async def log_achievement_shared(
        self,
        user_id: Optional[str],
        achievement_id: UUID,
        platform: str,
    ) -> None:
        event = AuditEventBuilder.achievement_shared(
            user_id=user_id,
            achievement_id=achievement_id,
            platform=platform,
        )
        await self.log(event)

    async def log_share_failed(
        self,
        user_id: Optional[str],
        achievement_id: UUID,
        platform: str,
        error_message: str,
    ) -> None:
        event = AuditEventBuilder.share_failed(
            user_id=user_id,
            achievement_id=achievement_id,
            platform=platform,
            error_message=error_message,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of an evaluation pass.
    Pass it through all subsequent operations.
    """
    return uuid4()
