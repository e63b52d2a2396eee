"""
Tests for storage implementations.

Google Sheets is exercised against an in-process fake spreadsheet; no real
API calls are made.
"""

import asyncio
import pytest

import gspread

from splitledger.config import GoogleSheetsSettings
from splitledger.models.audit import AuditEventBuilder
from splitledger.models.transaction import Group, Member
from splitledger.orchestrator import TransactionLedger
from splitledger.services.storage import (
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    NotFoundError,
)
from splitledger.services.storage.google_sheets import TRANSACTION_COLUMNS

from conftest import ALICE, ME, make_draft, make_transaction


class FakeWorksheet:
    """The subset of gspread.Worksheet the storage layer uses."""

    def __init__(self, title):
        self.title = title
        self.rows: list[list[str]] = []

    def get_all_values(self):
        return [list(row) for row in self.rows]

    def append_row(self, values, value_input_option=None):
        self.rows.append(["" if v is None else str(v) for v in values])

    def update_cell(self, row, col, value):
        target = self.rows[row - 1]
        while len(target) < col:
            target.append("")
        target[col - 1] = str(value)

    def delete_rows(self, index):
        del self.rows[index - 1]


class FakeSpreadsheet:
    def __init__(self):
        self.sheets: dict[str, FakeWorksheet] = {}

    def worksheet(self, title):
        if title not in self.sheets:
            raise gspread.WorksheetNotFound(title)
        return self.sheets[title]

    def add_worksheet(self, title, rows, cols):
        self.sheets[title] = FakeWorksheet(title)
        return self.sheets[title]


@pytest.fixture
def spreadsheet():
    return FakeSpreadsheet()


@pytest.fixture
def sheets_client(spreadsheet):
    settings = GoogleSheetsSettings(
        credentials_path="tests/fake-credentials.json",
        spreadsheet_id="test-spreadsheet",
    )
    return GoogleSheetsClient(settings=settings, spreadsheet=spreadsheet)


class TestInMemoryLedgerStorage:
    """Tests for the in-memory real-time store."""

    def test_subscribe_gets_initial_snapshot(self):
        """Test that subscribing delivers the current collection at once."""
        txn = make_transaction()
        storage = InMemoryLedgerStorage([txn.model_dump(mode="json")])
        received = []
        storage.subscribe_transactions(received.append)
        assert [r["id"] for r in received[0]] == [txn.id]

    def test_writes_publish_snapshots(self):
        """Test that each write pushes a full snapshot."""
        storage = InMemoryLedgerStorage()
        received = []
        unsubscribe = storage.subscribe_transactions(received.append)

        txn = make_transaction()
        asyncio.run(storage.save_transaction(txn))
        asyncio.run(storage.update_transaction(txn.id, {"title": "Lunch"}))
        unsubscribe()
        asyncio.run(storage.delete_transaction(txn.id))

        assert len(received) == 3
        assert received[2][0]["title"] == "Lunch"

    def test_snapshots_are_copies(self):
        """Test that subscribers can't mutate stored records."""
        storage = InMemoryLedgerStorage([make_transaction().model_dump(mode="json")])
        received = []
        storage.subscribe_transactions(received.append)
        received[0][0]["title"] = "changed"
        assert asyncio.run(storage.list_transactions())[0]["title"] == "Dinner"

    def test_duplicate_and_missing(self):
        """Test DuplicateError on save and NotFoundError on update."""
        txn = make_transaction()
        storage = InMemoryLedgerStorage()
        asyncio.run(storage.save_transaction(txn))
        with pytest.raises(DuplicateError):
            asyncio.run(storage.save_transaction(txn))
        with pytest.raises(NotFoundError):
            asyncio.run(storage.update_transaction("missing", {"title": "x"}))
        assert asyncio.run(storage.delete_transaction("missing")) is False

    def test_audit_events_newest_first(self):
        """Test InMemoryAuditStorage ordering."""
        storage = InMemoryAuditStorage()
        first = AuditEventBuilder.user_logged_in(ME, "password")
        second = AuditEventBuilder.user_logged_out(ME)
        asyncio.run(storage.append_event(first))
        asyncio.run(storage.append_event(second))
        events = asyncio.run(storage.get_recent_events(limit=1))
        assert events == [second]


class TestGoogleSheetsLedgerStorage:
    """Tests for the Google Sheets ledger store."""

    def test_sheet_created_with_header(self, sheets_client, spreadsheet):
        """Test that a missing worksheet is created with its header row."""
        sheets_client.get_transactions_sheet()
        assert spreadsheet.sheets["Transactions"].rows[0] == TRANSACTION_COLUMNS

    def test_save_and_read_back(self, sheets_client):
        """Test that a saved transaction reads back as an equivalent record."""
        storage = GoogleSheetsLedgerStorage(sheets_client)
        txn = make_transaction(description="pizza night")
        asyncio.run(storage.save_transaction(txn))

        [record] = asyncio.run(storage.list_transactions())
        assert record["id"] == txn.id
        assert record["description"] == "pizza night"
        assert record["settled"] is False
        assert record["participants"][1]["user_id"] == ALICE
        assert record["group"] is None

    def test_duplicate_save_rejected(self, sheets_client):
        """Test that the same id can't be appended twice."""
        storage = GoogleSheetsLedgerStorage(sheets_client)
        txn = make_transaction()
        asyncio.run(storage.save_transaction(txn))
        with pytest.raises(DuplicateError):
            asyncio.run(storage.save_transaction(txn))

    def test_update_merges_into_row(self, sheets_client):
        """Test that an update rewrites only the changed fields."""
        storage = GoogleSheetsLedgerStorage(sheets_client)
        txn = make_transaction()
        asyncio.run(storage.save_transaction(txn))
        asyncio.run(storage.update_transaction(txn.id, {"settled": True, "title": "Paid dinner"}))

        [record] = asyncio.run(storage.list_transactions())
        assert record["settled"] is True
        assert record["title"] == "Paid dinner"
        assert record["amount"] == "45.00"

    def test_update_missing(self, sheets_client):
        """Test NotFoundError for an unknown id."""
        storage = GoogleSheetsLedgerStorage(sheets_client)
        with pytest.raises(NotFoundError):
            asyncio.run(storage.update_transaction("missing", {"title": "x"}))

    def test_delete(self, sheets_client):
        """Test deleting rows, and deleting something that isn't there."""
        storage = GoogleSheetsLedgerStorage(sheets_client)
        txn = make_transaction()
        asyncio.run(storage.save_transaction(txn))
        assert asyncio.run(storage.delete_transaction(txn.id)) is True
        assert asyncio.run(storage.delete_transaction(txn.id)) is False
        assert asyncio.run(storage.list_transactions()) == []

    def test_malformed_rows_skipped(self, sheets_client):
        """Test that a row with broken participant JSON is skipped."""
        storage = GoogleSheetsLedgerStorage(sheets_client)
        asyncio.run(storage.save_transaction(make_transaction()))
        sheet = sheets_client.get_transactions_sheet()
        sheet.append_row(["bad-row", "Broken", "", "1", "USD", "2025-01-01",
                          "Other", ME, "", "{not json"])
        assert len(asyncio.run(storage.list_transactions())) == 1

    def test_groups_round_trip(self, sheets_client):
        """Test saving and listing groups."""
        storage = GoogleSheetsLedgerStorage(sheets_client)
        group = Group(name="Trip", created_by=ME, members=[Member(id=ME), Member(id=ALICE)])
        asyncio.run(storage.save_group(group))
        [record] = asyncio.run(storage.list_groups())
        assert record["name"] == "Trip"
        assert [m["id"] for m in record["members"]] == [ME, ALICE]

    def test_ledger_on_sheets(self, sheets_client, me, app_settings):
        """Test the ledger end to end on the Sheets backend."""
        ledger = TransactionLedger(
            current_user=me,
            storage=GoogleSheetsLedgerStorage(sheets_client),
            settings=app_settings,
        )
        ledger.start()

        result = asyncio.run(ledger.create_transaction(make_draft()))
        asyncio.run(ledger.settle_transaction(result.entity_id))

        assert ledger.get(result.entity_id).settled is True

        # A second session sees the same data after a refresh
        other = TransactionLedger(
            current_user=me,
            storage=GoogleSheetsLedgerStorage(sheets_client),
            settings=app_settings,
        )
        other.start()
        other.refresh()
        assert other.get(result.entity_id).settled is True


class TestGoogleSheetsAuditStorage:
    """Tests for the Google Sheets audit log."""

    def test_append_and_read(self, sheets_client):
        """Test that events survive the round trip through a sheet row."""
        storage = GoogleSheetsAuditStorage(sheets_client)
        event = AuditEventBuilder.transaction_created(
            transaction_id="t1", title="Dinner", amount="45.00",
            currency="USD", actor_id=ME,
        )
        assert asyncio.run(storage.append_event(event)) is True

        [loaded] = asyncio.run(storage.get_recent_events())
        assert loaded.event_id == event.event_id
        assert loaded.event_type == event.event_type
        assert loaded.details == {"title": "Dinner", "amount": "45.00", "currency": "USD"}
        assert loaded.is_user_action is True


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
