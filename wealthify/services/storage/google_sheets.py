"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is kept as a zero-setup storage backend because:
1. Users can see their unlocked achievements directly in Sheets
2. No database setup required
3. Easy to export/migrate later

TRADEOFFS:
- No uniqueness constraint (we check-before-append on a fresh read)
- No transactions (rows are only ever appended or have one cell updated)
- Limited query capabilities (we filter in Python)

The implementation follows the abstract interface, so the achievement
engine doesn't know which backend it talks to.
"""

import json
from datetime import datetime
from typing import Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from wealthify.config import get_settings
from wealthify.models.achievement import (
    AchievementCategory,
    AchievementDefinition,
    UnlockedAchievement,
)
from wealthify.models.audit import AuditEvent, AuditEventType, AuditSeverity
from wealthify.services.storage.interface import (
    AchievementStorageInterface,
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    StorageError,
)


# Column mappings for Achievements sheet
ACHIEVEMENT_COLUMNS = [
    "id",
    "user_id",
    "achievement_type",
    "achievement_name",
    "description",
    "icon",
    "category",
    "progress",
    "target",
    "is_completed",
    "unlocked_at",
    "shared_at",
]

SHARED_AT_COLUMN = ACHIEVEMENT_COLUMNS.index("shared_at") + 1

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "user_id",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

logger = structlog.get_logger()

retry_on_connection = retry(
    retry=retry_if_exception_type(ConnectionError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry_on_connection
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise StorageError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except OSError as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise StorageError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_achievements_sheet(self) -> gspread.Worksheet:
        """Get or create the Achievements worksheet."""
        return self._get_or_create_sheet(
            self._settings.achievements_sheet_name,
            ACHIEVEMENT_COLUMNS,
            rows=1000,
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )


def _wrap_sheets_error(action: str, e: Exception) -> StorageError:
    if isinstance(e, StorageError):
        return e
    if isinstance(e, OSError):
        return ConnectionError(f"Failed to {action}: {e}")
    return StorageError(f"Failed to {action}: {e}")


class GoogleSheetsAchievementStorage(AchievementStorageInterface):
    """
    Google Sheets implementation of unlocked-achievement storage.

    One row per unlocked achievement. The duplicate check reads the
    sheet immediately before appending.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _unlock_to_row(self, unlock: UnlockedAchievement) -> list:
        """Convert an UnlockedAchievement to a spreadsheet row."""
        return [
            str(unlock.id),
            unlock.user_id,
            unlock.achievement_type,
            unlock.achievement_name,
            unlock.description,
            unlock.icon,
            unlock.category.value,
            str(unlock.progress),
            str(unlock.target),
            str(unlock.is_completed),
            unlock.unlocked_at.isoformat(),
            unlock.shared_at.isoformat() if unlock.shared_at else "",
        ]

    def _row_to_unlock(self, row: list) -> UnlockedAchievement:
        """Convert a spreadsheet row to an UnlockedAchievement."""
        # Handle missing columns gracefully
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return UnlockedAchievement(
            id=UUID(safe_get(0)),
            user_id=safe_get(1),
            achievement_type=safe_get(2),
            achievement_name=safe_get(3),
            description=safe_get(4),
            icon=safe_get(5),
            category=AchievementCategory(safe_get(6)),
            progress=float(safe_get(7, "0")),
            target=float(safe_get(8, "0")),
            is_completed=safe_get(9, "True").lower() == "true",
            unlocked_at=datetime.fromisoformat(safe_get(10)),
            shared_at=datetime.fromisoformat(safe_get(11)) if safe_get(11) else None,
        )

    def _read_rows(self) -> list[list]:
        sheet = self._client.get_achievements_sheet()
        return sheet.get_all_values()[1:]  # Skip header

    @retry_on_connection
    async def list_unlocked(self, user_id: str) -> list[UnlockedAchievement]:
        """List a user's unlocked achievements in unlock order."""
        try:
            rows = self._read_rows()
        except Exception as e:
            raise _wrap_sheets_error("list achievements", e)

        unlocks = []
        for row in rows:
            if not row or len(row) < 2 or row[1] != user_id:
                continue
            try:
                unlocks.append(self._row_to_unlock(row))
            except ValueError:
                logger.warning("malformed_achievement_row", row_id=row[0])
                continue  # Skip malformed rows

        unlocks.sort(key=lambda u: u.unlocked_at)
        return unlocks

    @retry_on_connection
    async def insert_unlock(
        self,
        user_id: str,
        definition: AchievementDefinition,
        progress: float,
    ) -> UnlockedAchievement:
        """Append an unlock row unless the user already has one for this type."""
        try:
            for row in self._read_rows():
                if len(row) > 2 and row[1] == user_id and row[2] == definition.type:
                    raise DuplicateError(
                        f"Achievement {definition.type} already unlocked for {user_id}"
                    )

            unlock = UnlockedAchievement.from_definition(user_id, definition, progress)
            sheet = self._client.get_achievements_sheet()
            sheet.append_row(self._unlock_to_row(unlock), value_input_option="RAW")
            return unlock
        except Exception as e:
            raise _wrap_sheets_error("save achievement", e)

    @retry_on_connection
    async def update_shared(self, achievement_id: UUID, shared_at: datetime) -> bool:
        """Overwrite the shared_at cell of one row."""
        try:
            sheet = self._client.get_achievements_sheet()
            all_rows = sheet.get_all_values()

            for idx, row in enumerate(all_rows[1:], start=2):  # Row 1 is header
                if row and row[0] == str(achievement_id):
                    sheet.update_cell(idx, SHARED_AT_COLUMN, shared_at.isoformat())
                    return True

            raise NotFoundError(f"Unlocked achievement not found: {achievement_id}")
        except Exception as e:
            raise _wrap_sheets_error("update achievement", e)


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            user_id=safe_get(4) or None,
            entity_type=safe_get(5) or None,
            entity_id=safe_get(6) or None,
            correlation_id=UUID(safe_get(7)) if safe_get(7) else None,
            description=safe_get(8),
            details=json.loads(safe_get(9)) if safe_get(9) else {},
            error_message=safe_get(10) or None,
            is_user_action=safe_get(11).lower() == "true",
        )

    def _read_events(self) -> list[AuditEvent]:
        try:
            sheet = self._client.get_audit_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise _wrap_sheets_error("get audit events", e)

        events = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except ValueError:
                continue
        return events

    @retry_on_connection
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except OSError as e:
            raise ConnectionError(f"Failed to write audit event: {e}")
        except Exception as e:
            # Don't raise - audit logging should not break the main flow
            logger.warning("audit_sheet_write_failed", error=str(e))
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        events = [e for e in self._read_events() if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """Get events by entity."""
        events = [
            e for e in self._read_events()
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        events = self._read_events()
        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
