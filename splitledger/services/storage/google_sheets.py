"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the shared backend because:
1. Everyone in a group can open the sheet and see the ledger directly
2. No database setup required
3. Easy to export/migrate later

TRADEOFFS:
- Sheets has no push notifications, so "real-time" subscriptions are
  emulated: we publish a fresh snapshot after each of our own writes and
  whenever refresh() is called (the app calls it on every rerun)
- No transactions (we handle this with careful ordering)
- Limited query capabilities (we filter in Python)

Participants and group members are stored as JSON in a single column.
"""

import json
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from splitledger.config import GoogleSheetsSettings, get_settings
from splitledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from splitledger.models.transaction import Group, Transaction
from splitledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    GroupSnapshotCallback,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
    TransactionSnapshotCallback,
    Unsubscribe,
)


logger = structlog.get_logger(__name__)

# Column mappings for Transactions sheet
TRANSACTION_COLUMNS = [
    "id",
    "title",
    "description",
    "amount",
    "currency",
    "transaction_date",
    "category",
    "paid_by",
    "paid_by_name",
    "participants_json",
    "settled",
    "created_at",
    "updated_at",
    "group",
]

# Column mappings for Groups sheet
GROUP_COLUMNS = [
    "id",
    "name",
    "description",
    "members_json",
    "created_by",
    "created_at",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "actor_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

# Retry transient failures, but never "not found" or "duplicate" answers
sheets_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_not_exception_type((NotFoundError, DuplicateError)),
    reraise=True,
)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    An already opened spreadsheet can be injected (used by tests).
    """

    def __init__(
        self,
        settings: Optional[GoogleSheetsSettings] = None,
        spreadsheet: Optional[gspread.Spreadsheet] = None,
    ):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet = spreadsheet
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
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
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
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
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int = 1000,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_transactions_sheet(self) -> gspread.Worksheet:
        """Get or create the Transactions worksheet."""
        return self._get_or_create_sheet(
            self._settings.transactions_sheet_name, TRANSACTION_COLUMNS
        )

    def get_groups_sheet(self) -> gspread.Worksheet:
        """Get or create the Groups worksheet."""
        return self._get_or_create_sheet(
            self._settings.groups_sheet_name, GROUP_COLUMNS
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )


def _safe_get(row: list, index: int, default: str = "") -> str:
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Google Sheets implementation of the ledger store.

    One transaction per row in the Transactions sheet, one group per row in
    the Groups sheet. Records handed to subscribers are plain dicts in the
    same shape as Transaction.model_dump(mode="json").
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._transaction_subscribers: list[TransactionSnapshotCallback] = []
        self._group_subscribers: list[GroupSnapshotCallback] = []

    # -- row conversion ------------------------------------------------------

    @staticmethod
    def _record_to_row(record: dict[str, Any]) -> list:
        """Convert a JSON-mode transaction record to a spreadsheet row."""
        return [
            record["id"],
            record.get("title", ""),
            record.get("description") or "",
            str(record.get("amount", "0")),
            record.get("currency", "USD"),
            record.get("transaction_date", ""),
            record.get("category", ""),
            record.get("paid_by", ""),
            record.get("paid_by_name", ""),
            json.dumps(record.get("participants", [])),
            str(bool(record.get("settled", False))),
            record.get("created_at", ""),
            record.get("updated_at", ""),
            record.get("group") or "",
        ]

    @staticmethod
    def _row_to_record(row: list) -> dict[str, Any]:
        """Convert a spreadsheet row to a transaction record."""
        participants_json = _safe_get(row, 9)
        return {
            "id": _safe_get(row, 0),
            "title": _safe_get(row, 1),
            "description": _safe_get(row, 2) or None,
            "amount": _safe_get(row, 3, "0"),
            "currency": _safe_get(row, 4),
            "transaction_date": _safe_get(row, 5),
            "category": _safe_get(row, 6),
            "paid_by": _safe_get(row, 7),
            "paid_by_name": _safe_get(row, 8),
            "participants": json.loads(participants_json) if participants_json else [],
            "settled": _safe_get(row, 10).lower() == "true",
            "created_at": _safe_get(row, 11) or None,
            "updated_at": _safe_get(row, 12) or None,
            "group": _safe_get(row, 13) or None,
        }

    @staticmethod
    def _group_to_row(group: Group) -> list:
        record = group.model_dump(mode="json")
        return [
            record["id"],
            record["name"],
            record.get("description") or "",
            json.dumps(record.get("members", [])),
            record["created_by"],
            record["created_at"],
        ]

    @staticmethod
    def _row_to_group_record(row: list) -> dict[str, Any]:
        members_json = _safe_get(row, 3)
        return {
            "id": _safe_get(row, 0),
            "name": _safe_get(row, 1),
            "description": _safe_get(row, 2) or None,
            "members": json.loads(members_json) if members_json else [],
            "created_by": _safe_get(row, 4),
            "created_at": _safe_get(row, 5) or None,
        }

    def _find_row(self, sheet: gspread.Worksheet, transaction_id: str) -> tuple[int, list]:
        """Return (1-based row index, row) for a transaction id."""
        all_rows = sheet.get_all_values()
        for idx, row in enumerate(all_rows[1:], start=2):  # row 1 is header
            if row and row[0] == transaction_id:
                return idx, row
        raise NotFoundError(f"Transaction not found: {transaction_id}")

    # -- snapshots -----------------------------------------------------------

    def _read_transactions(self) -> list[dict[str, Any]]:
        sheet = self._client.get_transactions_sheet()
        records = []
        for row in sheet.get_all_values()[1:]:  # Skip header
            if not row or not row[0]:
                continue
            try:
                records.append(self._row_to_record(row))
            except (ValueError, TypeError) as e:
                logger.warning("malformed_transaction_row", row_id=row[0], error=str(e))
        return records

    def _read_groups(self) -> list[dict[str, Any]]:
        sheet = self._client.get_groups_sheet()
        records = []
        for row in sheet.get_all_values()[1:]:
            if not row or not row[0]:
                continue
            try:
                records.append(self._row_to_group_record(row))
            except (ValueError, TypeError) as e:
                logger.warning("malformed_group_row", row_id=row[0], error=str(e))
        return records

    def _publish_transactions(self) -> None:
        if not self._transaction_subscribers:
            return
        snapshot = self._read_transactions()
        for callback in list(self._transaction_subscribers):
            callback([dict(r) for r in snapshot])

    def _publish_groups(self) -> None:
        if not self._group_subscribers:
            return
        snapshot = self._read_groups()
        for callback in list(self._group_subscribers):
            callback([dict(r) for r in snapshot])

    def _publish_after_write(self, publish) -> None:
        """Publish after a successful write. Read failures are logged, not raised."""
        try:
            publish()
        except Exception as e:
            logger.warning("snapshot_publish_failed", error=str(e))

    def refresh(self) -> None:
        """Re-read both sheets and push snapshots to subscribers."""
        try:
            self._publish_transactions()
            self._publish_groups()
        except Exception as e:
            raise StorageError(f"Failed to refresh from Google Sheets: {e}")

    def subscribe_transactions(
        self,
        callback: TransactionSnapshotCallback,
    ) -> Unsubscribe:
        try:
            snapshot = self._read_transactions()
        except Exception as e:
            raise StorageError(f"Failed to read transactions from Google Sheets: {e}")
        self._transaction_subscribers.append(callback)
        callback(snapshot)

        def unsubscribe() -> None:
            if callback in self._transaction_subscribers:
                self._transaction_subscribers.remove(callback)

        return unsubscribe

    def subscribe_groups(self, callback: GroupSnapshotCallback) -> Unsubscribe:
        try:
            snapshot = self._read_groups()
        except Exception as e:
            raise StorageError(f"Failed to read groups from Google Sheets: {e}")
        self._group_subscribers.append(callback)
        callback(snapshot)

        def unsubscribe() -> None:
            if callback in self._group_subscribers:
                self._group_subscribers.remove(callback)

        return unsubscribe

    # -- transactions --------------------------------------------------------

    @sheets_retry
    async def save_transaction(self, transaction: Transaction) -> bool:
        """Append a transaction row."""
        try:
            sheet = self._client.get_transactions_sheet()
            existing_ids = {row[0] for row in sheet.get_all_values()[1:] if row}
            if transaction.id in existing_ids:
                raise DuplicateError(f"Transaction already exists: {transaction.id}")
            row = self._record_to_row(transaction.model_dump(mode="json"))
            sheet.append_row(row, value_input_option="RAW")
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save transaction: {e}")
        self._publish_after_write(self._publish_transactions)
        return True

    @sheets_retry
    async def update_transaction(
        self,
        transaction_id: str,
        changes: dict[str, Any],
    ) -> bool:
        """Merge changes into the stored row, rewriting it cell by cell."""
        try:
            sheet = self._client.get_transactions_sheet()
            idx, row = self._find_row(sheet, transaction_id)
            record = self._row_to_record(row)
            record.update(changes)
            new_row = self._record_to_row(record)
            for col_idx, value in enumerate(new_row, start=1):
                sheet.update_cell(idx, col_idx, value)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update transaction: {e}")
        self._publish_after_write(self._publish_transactions)
        return True

    @sheets_retry
    async def delete_transaction(self, transaction_id: str) -> bool:
        """Delete a transaction row."""
        try:
            sheet = self._client.get_transactions_sheet()
            idx, _ = self._find_row(sheet, transaction_id)
            sheet.delete_rows(idx)
        except NotFoundError:
            return False
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete transaction: {e}")
        self._publish_after_write(self._publish_transactions)
        return True

    async def list_transactions(self) -> list[dict[str, Any]]:
        try:
            return self._read_transactions()
        except Exception as e:
            raise StorageError(f"Failed to list transactions: {e}")

    # -- groups --------------------------------------------------------------

    @sheets_retry
    async def save_group(self, group: Group) -> bool:
        """Append a group row."""
        try:
            sheet = self._client.get_groups_sheet()
            sheet.append_row(self._group_to_row(group), value_input_option="RAW")
        except Exception as e:
            raise StorageError(f"Failed to save group: {e}")
        self._publish_after_write(self._publish_groups)
        return True

    async def list_groups(self) -> list[dict[str, Any]]:
        try:
            return self._read_groups()
        except Exception as e:
            raise StorageError(f"Failed to list groups: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        return AuditEvent(
            event_id=UUID(_safe_get(row, 0)),
            timestamp=datetime.fromisoformat(_safe_get(row, 1)),
            event_type=AuditEventType(_safe_get(row, 2)),
            severity=AuditSeverity(_safe_get(row, 3)),
            entity_type=_safe_get(row, 4) or None,
            entity_id=_safe_get(row, 5) or None,
            actor_id=_safe_get(row, 6) or None,
            correlation_id=UUID(_safe_get(row, 7)) if _safe_get(row, 7) else None,
            description=_safe_get(row, 8),
            details=json.loads(_safe_get(row, 9)) if _safe_get(row, 9) else {},
            error_message=_safe_get(row, 10) or None,
            is_user_action=_safe_get(row, 11).lower() == "true",
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # audit logging should not break the main flow
            logger.warning("audit_write_failed", error=str(e), event_id=str(event.event_id))
            return False

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        """Get recent events."""
        try:
            sheet = self._client.get_audit_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if row and row[0]:
                try:
                    events.append(self._row_to_event(row))
                except (ValueError, TypeError):
                    continue

        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
