"""
Data Models Package

This package contains all Pydantic models used by the achievement engine.
All data flowing through the system must conform to these schemas.
"""

from wealthify.models.achievement import (
    AchievementCategory,
    AchievementDefinition,
    AchievementState,
    AchievementSummary,
    AchievementView,
    SharePlatform,
    UnlockedAchievement,
    UserStatsSnapshot,
)
from wealthify.models.finance import (
    Budget,
    FinancialGoal,
    LinkedAccount,
    Profile,
    Transaction,
    TransactionType,
)
from wealthify.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Achievement models
    "AchievementCategory",
    "AchievementDefinition",
    "AchievementState",
    "AchievementSummary",
    "AchievementView",
    "SharePlatform",
    "UnlockedAchievement",
    "UserStatsSnapshot",
    # Finance records
    "Budget",
    "FinancialGoal",
    "LinkedAccount",
    "Profile",
    "Transaction",
    "TransactionType",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
