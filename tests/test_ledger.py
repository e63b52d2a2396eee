"""
Integration tests for TransactionLedger, backed by in-memory storage.
"""

import asyncio
import pytest
from decimal import Decimal

from splitledger.audit import AuditLogger
from splitledger.models.audit import AuditEventType
from splitledger.models.transaction import (
    Member,
    PersistenceStatus,
    SplitMethod,
    TransactionUpdate,
)
from splitledger.orchestrator import (
    InvalidStateTransitionError,
    TransactionLedger,
    TransactionNotFoundError,
    TransactionValidationError,
    create_app_components,
)
from splitledger.queries import AnalyticsCriteria, ListCriteria
from splitledger.services.storage import (
    ConnectionError as SheetsConnectionError,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    StorageError,
)

from conftest import ALICE, BOB, ME, make_draft, make_transaction


class FailingLedgerStorage(InMemoryLedgerStorage):
    """In-memory store whose writes always fail, as if the network were down."""

    async def save_transaction(self, transaction):
        raise StorageError("network unreachable")

    async def update_transaction(self, transaction_id, changes):
        raise StorageError("network unreachable")

    async def delete_transaction(self, transaction_id):
        raise StorageError("network unreachable")

    async def save_group(self, group):
        raise StorageError("network unreachable")


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def storage():
    return InMemoryLedgerStorage()


@pytest.fixture
def ledger(me, storage, audit_storage, app_settings):
    ledger = TransactionLedger(
        current_user=me,
        storage=storage,
        audit_logger=AuditLogger(audit_storage),
        settings=app_settings,
    )
    ledger.start()
    yield ledger
    ledger.stop()


def event_types(audit_storage):
    return [e.event_type for e in audit_storage.events]


class TestCreateTransaction:
    """Tests for creating transactions."""

    def test_create_persists_remotely(self, ledger, storage):
        """Test the happy path: local list and store both hold the transaction."""
        result = asyncio.run(ledger.create_transaction(make_draft()))

        assert result.status == PersistenceStatus.PERSISTED_REMOTELY
        txn = ledger.get(result.entity_id)
        assert txn.title == "Dinner at Luigi's"
        assert txn.paid_by_name == ME.title()
        assert [p.amount for p in txn.participants] == [Decimal("10.00")] * 3
        assert txn.participant(ME).paid is True
        assert len(asyncio.run(storage.list_transactions())) == 1

    def test_create_percentage_split(self, ledger):
        """Test that percentages become currency amounts once."""
        result = asyncio.run(ledger.create_transaction(make_draft(
            amount="200",
            method=SplitMethod.PERCENTAGE,
            shares=((ME, "50"), (ALICE, "30"), (BOB, "20")),
        )))
        txn = ledger.get(result.entity_id)
        assert [p.amount for p in txn.participants] == [
            Decimal("100.00"), Decimal("60.00"), Decimal("40.00"),
        ]

    def test_invalid_draft_rejected(self, ledger, audit_storage):
        """Test that nothing is recorded when validation fails."""
        with pytest.raises(TransactionValidationError) as exc_info:
            asyncio.run(ledger.create_transaction(make_draft(title="")))

        assert "Please enter a title for the transaction" in exc_info.value.result.error_messages
        assert ledger.transactions == []
        assert event_types(audit_storage) == [AuditEventType.VALIDATION_FAILED]

    def test_acting_user_added_when_missing(self, ledger):
        """Test that the creator always ends up among the participants."""
        result = asyncio.run(ledger.create_transaction(make_draft(
            paid_by=ALICE,
            shares=((ALICE, "0"), (BOB, "0")),
        )))
        txn = ledger.get(result.entity_id)
        me = txn.participant(ME)
        assert me is not None
        assert me.amount == Decimal("0")
        assert me.paid is False
        assert txn.participant(ALICE).amount == Decimal("15.00")

    def test_remote_failure_is_degraded_not_lost(self, me, app_settings, audit_storage):
        """Test that a failed remote write keeps the local change and says so."""
        ledger = TransactionLedger(
            current_user=me,
            storage=FailingLedgerStorage(),
            audit_logger=AuditLogger(audit_storage),
            settings=app_settings,
        )
        ledger.start()

        result = asyncio.run(ledger.create_transaction(make_draft()))

        assert result.degraded is True
        assert result.error == "network unreachable"
        assert ledger.get(result.entity_id).title == "Dinner at Luigi's"
        assert AuditEventType.REMOTE_WRITE_FAILED in event_types(audit_storage)

    def test_mutations_share_a_correlation_id(self, me, app_settings, audit_storage):
        """Test that the audit events of one create are correlated."""
        ledger = TransactionLedger(
            current_user=me,
            storage=FailingLedgerStorage(),
            audit_logger=AuditLogger(audit_storage),
            settings=app_settings,
        )
        asyncio.run(ledger.create_transaction(make_draft()))

        created, failed = audit_storage.events
        assert created.event_type == AuditEventType.TRANSACTION_CREATED
        assert failed.event_type == AuditEventType.REMOTE_WRITE_FAILED
        assert created.correlation_id == failed.correlation_id


class TestUpdateAndDelete:
    """Tests for editing and deleting transactions."""

    def test_update_merges_fields(self, ledger, storage):
        """Test that only the set fields change, locally and remotely."""
        result = asyncio.run(ledger.create_transaction(make_draft()))
        txn_id = result.entity_id

        update = asyncio.run(ledger.update_transaction(
            txn_id, TransactionUpdate(title="Lunch", category="Other"),
        ))

        assert update.status == PersistenceStatus.PERSISTED_REMOTELY
        assert update.warnings == []
        txn = ledger.get(txn_id)
        assert txn.title == "Lunch"
        assert txn.category == "Other"
        assert txn.amount == Decimal("30.00")
        stored = asyncio.run(storage.list_transactions())[0]
        assert stored["title"] == "Lunch"

    def test_amount_change_warns_when_shares_drift(self, ledger):
        """Test that a new amount is written but flagged when shares no longer add up."""
        result = asyncio.run(ledger.create_transaction(make_draft()))

        update = asyncio.run(ledger.update_transaction(
            result.entity_id, TransactionUpdate(amount=Decimal("45.00")),
        ))

        assert update.status == PersistenceStatus.PERSISTED_REMOTELY
        assert update.warnings == [
            "Participant shares (30.00) no longer add up to the total (45.00)"
        ]
        txn = ledger.get(result.entity_id)
        assert txn.amount == Decimal("45.00")
        assert txn.share_total == Decimal("30.00")

    def test_empty_update_is_unchanged(self, ledger):
        """Test that an update with nothing set is a no-op."""
        result = asyncio.run(ledger.create_transaction(make_draft()))
        update = asyncio.run(ledger.update_transaction(result.entity_id, TransactionUpdate()))
        assert update.status == PersistenceStatus.UNCHANGED

    def test_update_cannot_break_invariants(self, ledger):
        """Test that an update moving the payer out of the split is rejected."""
        result = asyncio.run(ledger.create_transaction(make_draft()))
        with pytest.raises(TransactionValidationError):
            asyncio.run(ledger.update_transaction(
                result.entity_id, TransactionUpdate(paid_by="carol"),
            ))
        assert ledger.get(result.entity_id).paid_by == ME

    def test_settled_transaction_is_read_only(self, ledger):
        """Test that a settled transaction can't be edited."""
        result = asyncio.run(ledger.create_transaction(make_draft()))
        asyncio.run(ledger.settle_transaction(result.entity_id))
        with pytest.raises(InvalidStateTransitionError):
            asyncio.run(ledger.update_transaction(
                result.entity_id, TransactionUpdate(title="Lunch"),
            ))

    def test_unknown_id(self, ledger):
        """Test that unknown ids raise TransactionNotFoundError."""
        with pytest.raises(TransactionNotFoundError):
            asyncio.run(ledger.delete_transaction("missing"))
        with pytest.raises(TransactionNotFoundError):
            asyncio.run(ledger.settle_transaction("missing"))

    def test_delete_removes_from_every_view(self, ledger, storage):
        """Test that a deleted transaction is gone from list and analytics views."""
        keep = asyncio.run(ledger.create_transaction(make_draft(title="Keep")))
        gone = asyncio.run(ledger.create_transaction(make_draft(title="Dinner")))

        result = asyncio.run(ledger.delete_transaction(gone.entity_id))

        assert result.status == PersistenceStatus.PERSISTED_REMOTELY
        assert [t.id for t in ledger.filtered(ListCriteria())] == [keep.entity_id]
        assert [t.id for t in ledger.analytics(AnalyticsCriteria())] == [keep.entity_id]
        assert [r["id"] for r in asyncio.run(storage.list_transactions())] == [keep.entity_id]
        with pytest.raises(TransactionNotFoundError):
            ledger.get(gone.entity_id)


class TestSettlement:
    """Tests for settling transactions."""

    def test_settle_is_idempotent(self, ledger):
        """Test that settling twice leaves amounts untouched."""
        result = asyncio.run(ledger.create_transaction(make_draft()))
        txn_id = result.entity_id
        before = [p.amount for p in ledger.get(txn_id).participants]

        first = asyncio.run(ledger.settle_transaction(txn_id))
        second = asyncio.run(ledger.settle_transaction(txn_id))

        assert first.status == PersistenceStatus.PERSISTED_REMOTELY
        assert second.status == PersistenceStatus.UNCHANGED
        txn = ledger.get(txn_id)
        assert txn.settled is True
        assert [p.amount for p in txn.participants] == before

    def test_settle_with_user(self, me, app_settings):
        """Test that only unsettled transactions involving the counterparty are settled."""
        records = [
            make_transaction(title="with alice", others=(ALICE,)),
            make_transaction(title="with alice and bob", others=(ALICE, BOB)),
            make_transaction(title="with bob", others=(BOB,)),
            make_transaction(title="old", others=(ALICE,), settled=True),
        ]
        storage = InMemoryLedgerStorage([t.model_dump(mode="json") for t in records])
        ledger = TransactionLedger(current_user=me, storage=storage, settings=app_settings)
        ledger.start()

        results = asyncio.run(ledger.settle_with_user(ALICE))

        assert len(results) == 2
        settled = {t.title: t.settled for t in ledger.transactions}
        assert settled == {
            "with alice": True,
            "with alice and bob": True,
            "with bob": False,
            "old": True,
        }
        assert ledger.balance_with(ALICE) == Decimal("0")

    def test_settle_with_nobody_to_settle(self, ledger):
        """Test that there is nothing to do for an unknown counterparty."""
        assert asyncio.run(ledger.settle_with_user("carol")) == []


class TestSnapshots:
    """Tests for snapshot handling."""

    def test_only_my_transactions_are_kept(self, me, app_settings):
        """Test that transactions not involving the user are filtered out."""
        mine = make_transaction(others=(ALICE,))
        theirs = make_transaction(paid_by=ALICE, others=(BOB,))
        storage = InMemoryLedgerStorage([
            mine.model_dump(mode="json"),
            theirs.model_dump(mode="json"),
        ])
        ledger = TransactionLedger(current_user=me, storage=storage, settings=app_settings)
        ledger.start()

        assert [t.id for t in ledger.transactions] == [mine.id]

    def test_defaults_applied_and_bad_records_skipped(self, me, app_settings):
        """Test that sparse records get defaults and unparseable ones are skipped."""
        sparse = {
            "id": "sparse",
            "amount": "12.00",
            "transaction_date": "2025-01-15",
            "participants": [{"user_id": ME}, {"user_id": ALICE}],
        }
        broken = {
            "id": "broken",
            "title": "Broken",
            "amount": "not a number",
            "participants": [{"user_id": ME}],
        }
        ledger = TransactionLedger(current_user=me, storage=InMemoryLedgerStorage(), settings=app_settings)
        ledger.apply_transaction_snapshot([sparse, broken])

        assert [t.id for t in ledger.transactions] == ["sparse"]
        txn = ledger.get("sparse")
        assert txn.title == "Untitled"
        assert txn.currency == "USD"
        assert txn.category == "Other"
        assert txn.paid_by == ME

    def test_non_dict_records_skipped(self, me, app_settings):
        """Test that junk entries in a snapshot don't abort the rest of it."""
        good = make_transaction()
        ledger = TransactionLedger(current_user=me, storage=InMemoryLedgerStorage(), settings=app_settings)
        ledger.apply_transaction_snapshot(["garbage", None, good.model_dump(mode="json")])

        assert [t.id for t in ledger.transactions] == [good.id]

    def test_remote_changes_arrive_by_snapshot(self, ledger, storage):
        """Test that writes made by someone else show up locally."""
        other = make_transaction(title="Added elsewhere", paid_by=ALICE, others=(ME,))
        asyncio.run(storage.save_transaction(other))
        assert ledger.get(other.id).title == "Added elsewhere"

    def test_stop_unsubscribes(self, ledger, storage):
        """Test that no snapshots arrive after stop()."""
        ledger.stop()
        asyncio.run(storage.save_transaction(make_transaction()))
        assert ledger.transactions == []


class TestGroupsAndViews:
    """Tests for groups and read views."""

    def test_create_group_adds_creator(self, ledger):
        """Test that the creator is always a member."""
        result = asyncio.run(ledger.create_group(
            "Flatmates", members=[Member(id=ALICE, name="Alice")],
        ))
        assert result.status == PersistenceStatus.PERSISTED_REMOTELY
        group = ledger.groups[0]
        assert group.id == result.entity_id
        assert [m.id for m in group.members] == [ME, ALICE]

    def test_groups_filtered_by_membership(self, me, app_settings):
        """Test that only groups the user belongs to are kept."""
        storage = InMemoryLedgerStorage(groups=[
            {"id": "g1", "name": "Mine", "created_by": ALICE, "members": [{"id": ME}]},
            {"id": "g2", "name": "Theirs", "created_by": ALICE, "members": [{"id": BOB}]},
        ])
        ledger = TransactionLedger(current_user=me, storage=storage, settings=app_settings)
        ledger.start()
        assert [g.id for g in ledger.groups] == ["g1"]

    def test_balances_and_counterparties(self, ledger):
        """Test the dashboard views."""
        asyncio.run(ledger.create_transaction(make_draft(
            amount="45.00", shares=((ME, "0"), (ALICE, "0")),
        )))
        summary = ledger.balances()
        assert summary.owed_to_me == Decimal("22.50")
        assert summary.i_owe == Decimal("0")
        assert [m.id for m in ledger.counterparties()] == [ALICE]
        assert len(ledger.recent()) == 1


class TestAppComponents:
    """Tests for the component factory."""

    def test_offline_components(self, me):
        """Test that the factory works without Google Sheets."""
        ledger, advisor, sheets_client = create_app_components(me, use_storage=False)
        assert sheets_client is None
        ledger.start()
        assert ledger.transactions == []
        assert advisor is not None

    def test_factory_falls_back_when_sheets_unavailable(self, me, monkeypatch):
        """Test that a Sheets setup failure leaves an in-memory ledger."""
        def broken_client(*args, **kwargs):
            raise ValueError("GOOGLE_SHEETS_CREDENTIALS_PATH is not set")

        monkeypatch.setattr("splitledger.orchestrator.GoogleSheetsClient", broken_client)
        ledger, _, sheets_client = create_app_components(me, use_storage=True)
        assert sheets_client is None
        ledger.start()
        result = asyncio.run(ledger.create_transaction(make_draft()))
        assert result.degraded is False

    def test_factory_falls_back_when_sheets_unreachable(self, me, monkeypatch):
        """Test that configured but unreachable Sheets also leaves an in-memory ledger."""
        class UnreachableSheetsClient:
            def get_transactions_sheet(self):
                raise SheetsConnectionError("Spreadsheet not found: abc")

            def get_groups_sheet(self):
                raise SheetsConnectionError("Spreadsheet not found: abc")

        monkeypatch.setattr("splitledger.orchestrator.GoogleSheetsClient", UnreachableSheetsClient)
        ledger, _, sheets_client = create_app_components(me, use_storage=True)

        assert sheets_client is None
        ledger.start()
        result = asyncio.run(ledger.create_transaction(make_draft()))
        assert result.status == PersistenceStatus.PERSISTED_REMOTELY
        assert [t.id for t in ledger.transactions] == [result.entity_id]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
