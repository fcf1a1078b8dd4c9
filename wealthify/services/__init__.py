"""Services package."""

from wealthify.services.storage import (
    AchievementStorageInterface,
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    FinanceDataInterface,
    GoogleSheetsAchievementStorage,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    InMemoryAchievementStorage,
    InMemoryAuditStorage,
    InMemoryFinanceData,
    NotFoundError,
    PostgresAchievementStorage,
    PostgresClient,
    PostgresFinanceData,
    StorageError,
)

__all__ = [
    "AchievementStorageInterface",
    "AuditStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "FinanceDataInterface",
    "GoogleSheetsAchievementStorage",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "InMemoryAchievementStorage",
    "InMemoryAuditStorage",
    "InMemoryFinanceData",
    "NotFoundError",
    "PostgresAchievementStorage",
    "PostgresClient",
    "PostgresFinanceData",
    "StorageError",
]
