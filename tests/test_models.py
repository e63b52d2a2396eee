"""
Tests for SplitLedger models

Test strategy:
1. Unit tests for individual components (models, validators, splits)
2. Integration tests for the ledger (with in-memory or fake storage)
3. No real API calls in tests
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from splitledger.models.transaction import (
    EXPENSE_CATEGORIES,
    Group,
    Member,
    Participant,
    PersistenceStatus,
    SplitMethod,
    Transaction,
    TransactionDraft,
    TransactionUpdate,
    UserProfile,
    ValidationIssue,
    ValidationResult,
    WriteResult,
)
from splitledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

from conftest import ALICE, ME, make_transaction


class TestTransactionModels:
    """Tests for ledger Pydantic models."""

    def test_participant_strips_whitespace(self):
        """Test that whitespace is stripped from participant fields."""
        p = Participant(user_id="  alice  ", name="  Alice ")
        assert p.user_id == "alice"
        assert p.name == "Alice"

    def test_participant_rejects_negative_amount(self):
        """Test that negative shares are rejected."""
        with pytest.raises(ValueError):
            Participant(user_id="alice", amount=Decimal("-1"))

    def test_transaction_creation(self):
        """Test Transaction model creation with defaults."""
        txn = make_transaction()
        assert txn.id
        assert txn.settled is False
        assert txn.currency == "USD"
        assert txn.share_total == Decimal("45.00")

    def test_transaction_currency_uppercased(self):
        """Test that currency codes are normalized."""
        txn = make_transaction(currency="eur")
        assert txn.currency == "EUR"

    def test_transaction_payer_must_participate(self):
        """Test that the payer has to be among the participants."""
        with pytest.raises(ValueError, match="payer must be one of the participants"):
            Transaction(
                title="Taxi",
                amount=Decimal("20"),
                transaction_date=date(2025, 1, 1),
                paid_by="carol",
                participants=[Participant(user_id=ME), Participant(user_id=ALICE)],
            )

    def test_transaction_rejects_duplicate_participants(self):
        """Test that a user may appear only once."""
        with pytest.raises(ValueError, match="only once"):
            Transaction(
                title="Taxi",
                amount=Decimal("20"),
                transaction_date=date(2025, 1, 1),
                paid_by=ME,
                participants=[Participant(user_id=ME), Participant(user_id=ME)],
            )

    def test_transaction_participant_lookup(self):
        """Test participant() and involves()."""
        txn = make_transaction()
        assert txn.participant(ALICE).amount == Decimal("22.50")
        assert txn.involves(ME) is True
        assert txn.involves("nobody") is False
        assert txn.participant("nobody") is None

    def test_group_membership(self):
        """Test Group.has_member."""
        group = Group(
            name="Flatmates",
            created_by=ME,
            members=[Member(id=ME, name="Demo"), Member(id=ALICE, name="Alice")],
        )
        assert group.has_member(ALICE)
        assert not group.has_member("bob")

    def test_user_profile_as_member(self):
        """Test converting the signed-in user to a group member."""
        user = UserProfile(uid=ME, email="demo@example.com", display_name="Demo User")
        member = user.as_member()
        assert member.id == ME
        assert member.name == "Demo User"


class TestDraftAndUpdate:
    """Tests for the input models."""

    def test_draft_is_lenient(self):
        """Test that an empty draft can be built for the validator to judge."""
        draft = TransactionDraft()
        assert draft.title == ""
        assert draft.amount is None
        assert draft.split_method == SplitMethod.EQUAL
        assert draft.transaction_date == date.today()

    def test_draft_payer_lookup(self):
        """Test TransactionDraft.payer()."""
        draft = TransactionDraft(
            paid_by=ALICE,
            participants=[{"user_id": ME}, {"user_id": ALICE, "name": "Alice"}],
        )
        assert draft.payer().name == "Alice"
        assert draft.participant_ids() == [ME, ALICE]

    def test_update_changes_only_set_fields(self):
        """Test that only explicitly set fields are merged."""
        update = TransactionUpdate(title="Lunch", description=None)
        assert update.changes() == {"title": "Lunch", "description": None}

    def test_update_forbids_settled(self):
        """Test that settled cannot be changed through an update."""
        with pytest.raises(ValueError):
            TransactionUpdate(settled=True)

    def test_update_keeps_participant_models(self):
        """Test that participants are kept as models in changes()."""
        update = TransactionUpdate(participants=[Participant(user_id=ME)])
        assert isinstance(update.changes()["participants"][0], Participant)


class TestWriteResult:
    """Tests for WriteResult."""

    def test_degraded(self):
        """Test that a local-only write is reported as degraded."""
        result = WriteResult(
            entity_id="t1",
            status=PersistenceStatus.PERSISTED_LOCALLY_ONLY,
            error="offline",
        )
        assert result.degraded is True
        assert result.changed is True

    def test_unchanged(self):
        """Test that a no-op is not a change."""
        result = WriteResult(entity_id="t1", status=PersistenceStatus.UNCHANGED)
        assert result.degraded is False
        assert result.changed is False


class TestAuditModels:
    """Tests for audit event models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTION_CREATED,
            entity_type="transaction",
            entity_id="t1",
            description="Test event",
        )
        assert event.event_type == AuditEventType.TRANSACTION_CREATED
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.REMOTE_WRITE_FAILED,
            severity=AuditSeverity.ERROR,
            description="Test error",
            error_message="Something went wrong",
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "remote_write_failed"
        assert log_dict["severity"] == "error"
        assert log_dict["error_message"] == "Something went wrong"

    def test_audit_event_to_sheets_row(self):
        """Test conversion to a Google Sheets row."""
        event = AuditEventBuilder.transaction_settled("t1", actor_id=ME)
        row = event.to_sheets_row()
        assert len(row) == 12
        assert row[0] == str(event.event_id)

    def test_audit_event_builder_transaction_created(self):
        """Test AuditEventBuilder.transaction_created."""
        correlation_id = uuid4()
        event = AuditEventBuilder.transaction_created(
            transaction_id="t1",
            title="Dinner",
            amount="45.00",
            currency="USD",
            actor_id=ME,
            correlation_id=correlation_id,
        )
        assert event.event_type == AuditEventType.TRANSACTION_CREATED
        assert event.entity_id == "t1"
        assert event.correlation_id == correlation_id
        assert event.is_user_action is True

    def test_audit_event_builder_remote_write_failed(self):
        """Test that remote write failures are error-level."""
        event = AuditEventBuilder.remote_write_failed("create", "t1", "boom")
        assert event.severity == AuditSeverity.ERROR
        assert event.error_message == "boom"
        assert event.details["operation"] == "create"


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            fields_valid=False,
            split_valid=False,
            issues=[
                ValidationIssue(
                    field="amount",
                    issue_type="invalid_value",
                    message="Please enter a valid amount",
                    severity="error",
                ),
            ],
        )
        assert result.has_errors is True
        assert result.error_count == 1
        assert result.is_valid is False
        assert result.error_messages == ["Please enter a valid amount"]

    def test_validation_result_warnings_only(self):
        """Test that warnings don't count as errors."""
        result = ValidationResult(
            fields_valid=True,
            split_valid=True,
            issues=[
                ValidationIssue(
                    field="transaction_date",
                    issue_type="future_date",
                    message="Date in future",
                    severity="warning",
                ),
            ],
        )
        assert result.has_errors is False
        assert result.error_count == 0
        assert result.is_valid is True
        assert result.warnings == ["Date in future"]


class TestCategories:
    """Tests for the expense category list."""

    def test_expected_categories_exist(self):
        """Test that expected categories exist."""
        for cat in ["Food & Drinks", "Groceries", "Rent", "Travel", "Other"]:
            assert cat in EXPENSE_CATEGORIES


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
