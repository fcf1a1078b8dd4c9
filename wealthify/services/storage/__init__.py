"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage:
in-memory (tests and demos), PostgreSQL (the hosted database) and
Google Sheets. Backends are swappable behind the interfaces.
"""

from wealthify.services.storage.interface import (
    AchievementStorageInterface,
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    FinanceDataInterface,
    NotFoundError,
    StorageError,
)
from wealthify.services.storage.memory import (
    InMemoryAchievementStorage,
    InMemoryAuditStorage,
    InMemoryFinanceData,
)
from wealthify.services.storage.postgres import (
    PostgresAchievementStorage,
    PostgresClient,
    PostgresFinanceData,
)
from wealthify.services.storage.google_sheets import (
    GoogleSheetsAchievementStorage,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
)

__all__ = [
    # Interfaces
    "AchievementStorageInterface",
    "AuditStorageInterface",
    "FinanceDataInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAchievementStorage",
    "InMemoryAuditStorage",
    "InMemoryFinanceData",
    # PostgreSQL implementation
    "PostgresAchievementStorage",
    "PostgresClient",
    "PostgresFinanceData",
    # Google Sheets implementation
    "GoogleSheetsAchievementStorage",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
]
