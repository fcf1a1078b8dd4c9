"""
Audit Models for Wealthify

Every unlock attempt, share and failed evaluation is logged for audit purposes.
This provides:
1. A trace of why an achievement was (or was not yet) unlocked
2. Debugging information when storage misbehaves
3. Ability to reconstruct a user's achievement history

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from wealthify.models.achievement import utcnow


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Unlocking
    ACHIEVEMENT_UNLOCKED = "achievement_unlocked"
    UNLOCK_CONFLICT = "unlock_conflict"
    UNLOCK_FAILED = "unlock_failed"
    EVALUATION_COMPLETED = "evaluation_completed"
    STATS_FETCH_FAILED = "stats_fetch_failed"

    # Celebration UI
    CELEBRATION_ACKNOWLEDGED = "celebration_acknowledged"

    # Sharing
    ACHIEVEMENT_SHARED = "achievement_shared"
    SHARE_FAILED = "share_failed"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - which user and which entity is this about?
    user_id: Optional[str] = Field(
        default=None,
        description="User the event belongs to"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'achievement', 'stats')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity (row id or achievement type)"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events in one evaluation pass)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_id": self.user_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, user_id, entity_type,
         entity_id, correlation_id, description, details_json,
         error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.user_id or "",
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.achievement_unlocked(user_id, "first_budget", row_id, 1, 1)
        event = AuditEventBuilder.stats_fetch_failed(user_id, "timeout", correlation_id)
    """

    @staticmethod
    def achievement_unlocked(
        user_id: str,
        achievement_type: str,
        achievement_id: UUID,
        progress: float,
        target: float,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACHIEVEMENT_UNLOCKED,
            user_id=user_id,
            entity_type="achievement",
            entity_id=str(achievement_id),
            correlation_id=correlation_id,
            description=f"Achievement unlocked: {achievement_type}",
            details={
                "achievement_type": achievement_type,
                "progress": progress,
                "target": target,
            },
        )

    @staticmethod
    def unlock_conflict(
        user_id: str,
        achievement_type: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.UNLOCK_CONFLICT,
            severity=AuditSeverity.DEBUG,
            user_id=user_id,
            entity_type="achievement",
            entity_id=achievement_type,
            correlation_id=correlation_id,
            description=f"Achievement already unlocked: {achievement_type}",
        )

    @staticmethod
    def unlock_failed(
        user_id: str,
        achievement_type: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.UNLOCK_FAILED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="achievement",
            entity_id=achievement_type,
            correlation_id=correlation_id,
            description=f"Unlock not recorded, will retry: {achievement_type}",
            error_message=error_message,
        )

    @staticmethod
    def evaluation_completed(
        user_id: str,
        eligible: list[str],
        unlocked: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EVALUATION_COMPLETED,
            severity=AuditSeverity.DEBUG,
            user_id=user_id,
            entity_type="stats",
            correlation_id=correlation_id,
            description=f"Evaluation pass unlocked {len(unlocked)} of {len(eligible)} eligible",
            details={
                "eligible": eligible,
                "unlocked": unlocked,
            },
        )

    @staticmethod
    def stats_fetch_failed(
        user_id: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STATS_FETCH_FAILED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="stats",
            correlation_id=correlation_id,
            description="Statistics fetch failed, evaluation pass skipped",
            error_message=error_message,
        )

    @staticmethod
    def celebration_acknowledged(
        user_id: str,
        achievement_id: UUID,
        achievement_type: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CELEBRATION_ACKNOWLEDGED,
            user_id=user_id,
            entity_type="achievement",
            entity_id=str(achievement_id),
            description=f"Celebration dismissed: {achievement_type}",
            is_user_action=True,
        )

    @staticmethod
    def achievement_shared(
        user_id: Optional[str],
        achievement_id: UUID,
        platform: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACHIEVEMENT_SHARED,
            user_id=user_id,
            entity_type="achievement",
            entity_id=str(achievement_id),
            description=f"Achievement shared to {platform}",
            details={
                "platform": platform,
            },
            is_user_action=True,
        )

    @staticmethod
    def share_failed(
        user_id: Optional[str],
        achievement_id: UUID,
        platform: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SHARE_FAILED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="achievement",
            entity_id=str(achievement_id),
            description=f"Could not record share to {platform}",
            details={
                "platform": platform,
            },
            error_message=error_message,
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
