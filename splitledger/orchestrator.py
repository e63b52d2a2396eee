"""
Main Orchestrator for SplitLedger

This module ties together all the components and defines the
end-to-end flows for the shared ledger:
1. Create (draft → validate → finalize split → local insert → remote save)
2. Update / delete / settle (local change → remote write)
3. Snapshots (remote collection → filter to the acting user → replace local list)

DESIGN DECISION: Local state changes first, the remote write second.
If the remote write fails the change stays local and the caller gets a
WriteResult that says so. Nothing is rolled back and nothing fails silently.

Every mutation is audited under a single correlation id, so the local and
the remote half of a write can be tied together afterwards.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Awaitable, Callable, Iterable, Optional
from uuid import UUID

import structlog
from pydantic import ValidationError

from splitledger.advisor import FinancialAdvisor
from splitledger.audit import AuditLogger, create_correlation_id
from splitledger.config import AppSettings, get_settings
from splitledger.models.audit import AuditEventBuilder
from splitledger.models.transaction import (
    DEFAULT_CATEGORY,
    DEFAULT_TITLE,
    BalanceSummary,
    Group,
    Member,
    Participant,
    PersistenceStatus,
    Transaction,
    TransactionDraft,
    TransactionUpdate,
    UserProfile,
    ValidationIssue,
    ValidationResult,
    WriteResult,
    utc_now,
)
from splitledger.queries import (
    AnalyticsCriteria,
    ListCriteria,
    analytics_transactions,
    filter_transactions,
    recent_transactions,
)
from splitledger.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    StorageError,
)
from splitledger.services.storage.interface import Unsubscribe
from splitledger.splitting import (
    SplitError,
    balance_with,
    calculate_balances,
    finalize_split,
    list_counterparties,
)
from splitledger.validation import TransactionValidator


logger = structlog.get_logger(__name__)

UNKNOWN_PAYER_NAME = "Unknown"
DEFAULT_GROUP_NAME = "Untitled Group"


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class TransactionNotFoundError(LedgerError):
    """No transaction with the given id in the acting user's ledger."""
    pass


class InvalidStateTransitionError(LedgerError):
    """The operation is not allowed in the transaction's current state."""
    pass


class TransactionValidationError(LedgerError):
    """A draft or update was rejected. Carries the full ValidationResult."""

    def __init__(self, result: ValidationResult):
        self.result = result
        super().__init__("; ".join(result.error_messages) or "Validation failed")


def _issues_for_audit(result: ValidationResult) -> list[dict]:
    return [
        {"field": i.field, "type": i.issue_type, "message": i.message}
        for i in result.issues
    ]


def _result_from_pydantic(error: ValidationError) -> ValidationResult:
    """Turn a schema error raised while merging an update into a ValidationResult."""
    issues = [
        ValidationIssue(
            field=".".join(str(part) for part in e["loc"]) or "transaction",
            issue_type=e["type"],
            message=e["msg"],
            severity="error",
        )
        for e in error.errors()
    ]
    return ValidationResult(fields_valid=False, split_valid=False, issues=issues)


class TransactionLedger:
    """
    The acting user's view of the shared ledger.

    Holds the in-memory transaction and group lists that every view reads,
    and keeps them in step with the storage backend through snapshots.

    Only transactions the user participates in (and groups they belong to)
    ever enter the local lists.
    """

    def __init__(
        self,
        current_user: UserProfile,
        storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[TransactionValidator] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._user = current_user
        self._storage = storage
        self._audit_logger = audit_logger
        self._settings = settings or get_settings().app
        self._validator = validator or TransactionValidator(self._settings)
        self._transactions: list[Transaction] = []
        self._groups: list[Group] = []
        self._unsubscribers: list[Unsubscribe] = []

    @property
    def current_user(self) -> UserProfile:
        return self._user

    @property
    def transactions(self) -> list[Transaction]:
        return list(self._transactions)

    @property
    def groups(self) -> list[Group]:
        return list(self._groups)

    @property
    def validator(self) -> TransactionValidator:
        return self._validator

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(self) -> None:
        """Subscribe to storage snapshots. The first snapshot arrives immediately."""
        if self._unsubscribers:
            return
        self._unsubscribers = [
            self._storage.subscribe_transactions(self.apply_transaction_snapshot),
            self._storage.subscribe_groups(self.apply_group_snapshot),
        ]

    def stop(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    def refresh(self) -> None:
        """Ask the backend to publish fresh snapshots, where it needs asking."""
        self._storage.refresh()

    # =========================================================================
    # SNAPSHOTS
    # =========================================================================

    def _parse_transaction(self, record: dict[str, Any]) -> Transaction:
        data = dict(record)
        data["title"] = data.get("title") or DEFAULT_TITLE
        data["amount"] = data.get("amount") or Decimal("0")
        data["currency"] = data.get("currency") or "USD"
        data["transaction_date"] = data.get("transaction_date") or date.today()
        data["category"] = data.get("category") or DEFAULT_CATEGORY
        data["paid_by"] = data.get("paid_by") or self._user.uid
        data["paid_by_name"] = data.get("paid_by_name") or UNKNOWN_PAYER_NAME
        data["settled"] = bool(data.get("settled"))
        data["created_at"] = data.get("created_at") or utc_now()
        data["updated_at"] = data.get("updated_at") or data["created_at"]
        data["group"] = data.get("group") or None
        return Transaction.model_validate(data)

    def _parse_group(self, record: dict[str, Any]) -> Group:
        data = dict(record)
        data["name"] = data.get("name") or DEFAULT_GROUP_NAME
        data["created_by"] = data.get("created_by") or self._user.uid
        data["created_at"] = data.get("created_at") or utc_now()
        return Group.model_validate(data)

    def _involves_user(self, record: dict[str, Any]) -> bool:
        participants = record.get("participants") or []
        return any(
            isinstance(p, dict) and p.get("user_id") == self._user.uid
            for p in participants
        )

    def _is_member(self, record: dict[str, Any]) -> bool:
        members = record.get("members") or []
        return any(
            isinstance(m, dict) and m.get("id") == self._user.uid
            for m in members
        )

    def _apply_snapshot(
        self,
        kind: str,
        records: list[dict[str, Any]],
        belongs: Callable[[dict[str, Any]], bool],
        parse: Callable[[dict[str, Any]], Any],
    ) -> list[Any]:
        kept = []
        skipped = 0
        for record in records:
            try:
                if not belongs(record):
                    continue
                kept.append(parse(record))
            except (ValidationError, ValueError, TypeError, AttributeError) as e:
                skipped += 1
                logger.warning(
                    "snapshot_record_skipped",
                    kind=kind,
                    record_id=record.get("id") if isinstance(record, dict) else None,
                    error=str(e),
                )

        if self._audit_logger:
            self._audit_logger.log_local(AuditEventBuilder.snapshot_applied(
                kind=kind,
                received=len(records),
                kept=len(kept),
                skipped=skipped,
            ))
        return kept

    def apply_transaction_snapshot(self, records: list[dict[str, Any]]) -> None:
        """Replace the local transaction list with the user's share of a snapshot."""
        self._transactions = self._apply_snapshot(
            "transaction", records, self._involves_user, self._parse_transaction
        )

    def apply_group_snapshot(self, records: list[dict[str, Any]]) -> None:
        """Replace the local group list with the groups the user belongs to."""
        self._groups = self._apply_snapshot(
            "group", records, self._is_member, self._parse_group
        )

    # =========================================================================
    # WRITES
    # =========================================================================

    async def _persist(
        self,
        operation: str,
        entity_id: str,
        write: Callable[[], Awaitable[Any]],
        correlation_id: UUID,
    ) -> WriteResult:
        """Run the remote half of a mutation whose local half already happened."""
        try:
            await write()
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_remote_write_failed(
                    operation=operation,
                    entity_id=entity_id,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            return WriteResult(
                entity_id=entity_id,
                status=PersistenceStatus.PERSISTED_LOCALLY_ONLY,
                error=str(e),
            )
        return WriteResult(entity_id=entity_id, status=PersistenceStatus.PERSISTED_REMOTELY)

    def _index_of(self, transaction_id: str) -> int:
        for i, txn in enumerate(self._transactions):
            if txn.id == transaction_id:
                return i
        raise TransactionNotFoundError(f"Transaction not found: {transaction_id}")

    def get(self, transaction_id: str) -> Transaction:
        """
        Raises:
            TransactionNotFoundError: If the id is not in the local ledger
        """
        return self._transactions[self._index_of(transaction_id)]

    async def create_transaction(
        self,
        draft: TransactionDraft,
        correlation_id: Optional[UUID] = None,
    ) -> WriteResult:
        """
        Validate a draft and record it as a new transaction.

        The acting user is added as a zero-share participant when the draft
        leaves them out, so the transaction stays visible to its creator.

        Raises:
            TransactionValidationError: If the draft fails validation
        """
        correlation_id = correlation_id or create_correlation_id()

        result = self._validator.validate(draft)
        if not result.is_valid:
            if self._audit_logger:
                await self._audit_logger.log_validation_failed(
                    issues=_issues_for_audit(result),
                    actor_id=self._user.uid,
                    correlation_id=correlation_id,
                )
            raise TransactionValidationError(result)

        try:
            participants = finalize_split(draft, self._validator.tolerance)
        except SplitError as e:
            result = ValidationResult(
                fields_valid=True,
                split_valid=False,
                issues=[ValidationIssue(
                    field="participants",
                    issue_type="split_mismatch",
                    message=str(e),
                    severity="error",
                )],
            )
            raise TransactionValidationError(result) from e

        if not any(p.user_id == self._user.uid for p in participants):
            participants.append(Participant(
                user_id=self._user.uid,
                name=self._user.display_name,
                email=self._user.email,
                photo_url=self._user.photo_url,
                amount=Decimal("0"),
                paid=False,
            ))

        payer = draft.payer()
        now = utc_now()
        txn = Transaction(
            title=draft.title,
            description=draft.description or None,
            amount=draft.amount,
            currency=draft.currency,
            transaction_date=draft.transaction_date,
            category=draft.category,
            paid_by=draft.paid_by,
            paid_by_name=payer.name if payer else "",
            participants=participants,
            created_at=now,
            updated_at=now,
            group=draft.group or None,
        )

        # Optimistic: the new transaction is visible before the remote write
        self._transactions.insert(0, txn)

        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.transaction_created(
                transaction_id=txn.id,
                title=txn.title,
                amount=str(txn.amount),
                currency=txn.currency,
                actor_id=self._user.uid,
                correlation_id=correlation_id,
            ))

        return await self._persist(
            "create",
            txn.id,
            lambda: self._storage.save_transaction(txn),
            correlation_id,
        )

    async def update_transaction(
        self,
        transaction_id: str,
        update: TransactionUpdate,
        correlation_id: Optional[UUID] = None,
    ) -> WriteResult:
        """
        Merge explicitly set fields into an unsettled transaction.

        Participant shares are not recomputed. If a new amount or participant
        list leaves the shares off the total by more than the split tolerance,
        the change is still written and the result carries a warning.

        Raises:
            TransactionNotFoundError: Unknown id
            InvalidStateTransitionError: The transaction is already settled
            TransactionValidationError: The merged transaction is invalid
        """
        correlation_id = correlation_id or create_correlation_id()
        index = self._index_of(transaction_id)
        existing = self._transactions[index]

        if existing.settled:
            raise InvalidStateTransitionError(
                f"Transaction {transaction_id} is settled and can no longer be edited"
            )

        changes = update.changes()
        if not changes:
            return WriteResult(entity_id=transaction_id, status=PersistenceStatus.UNCHANGED)

        merged_data = {**existing.model_dump(), **changes, "updated_at": utc_now()}
        try:
            merged = Transaction.model_validate(merged_data)
        except ValidationError as e:
            result = _result_from_pydantic(e)
            if self._audit_logger:
                await self._audit_logger.log_validation_failed(
                    issues=_issues_for_audit(result),
                    actor_id=self._user.uid,
                    correlation_id=correlation_id,
                )
            raise TransactionValidationError(result) from e

        self._transactions[index] = merged

        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.transaction_updated(
                transaction_id=transaction_id,
                fields=sorted(changes),
                actor_id=self._user.uid,
                correlation_id=correlation_id,
            ))

        warnings = []
        if {"amount", "participants"} & set(changes):
            if abs(merged.share_total - merged.amount) > self._validator.tolerance:
                warnings.append(
                    f"Participant shares ({merged.share_total:.2f}) no longer add up "
                    f"to the total ({merged.amount:.2f})"
                )
                logger.warning(
                    "transaction_shares_mismatch",
                    transaction_id=transaction_id,
                    share_total=str(merged.share_total),
                    amount=str(merged.amount),
                )

        remote_changes = merged.model_dump(
            mode="json",
            include=set(changes) | {"updated_at"},
        )
        result = await self._persist(
            "update",
            transaction_id,
            lambda: self._storage.update_transaction(transaction_id, remote_changes),
            correlation_id,
        )
        return result.model_copy(update={"warnings": warnings})

    async def delete_transaction(
        self,
        transaction_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> WriteResult:
        """
        Raises:
            TransactionNotFoundError: Unknown id
        """
        correlation_id = correlation_id or create_correlation_id()
        index = self._index_of(transaction_id)
        del self._transactions[index]

        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.transaction_deleted(
                transaction_id=transaction_id,
                actor_id=self._user.uid,
                correlation_id=correlation_id,
            ))

        return await self._persist(
            "delete",
            transaction_id,
            lambda: self._storage.delete_transaction(transaction_id),
            correlation_id,
        )

    async def settle_transaction(
        self,
        transaction_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> WriteResult:
        """
        Mark a transaction settled. Settling twice is a no-op.

        Raises:
            TransactionNotFoundError: Unknown id
        """
        correlation_id = correlation_id or create_correlation_id()
        index = self._index_of(transaction_id)
        existing = self._transactions[index]

        if existing.settled:
            return WriteResult(entity_id=transaction_id, status=PersistenceStatus.UNCHANGED)

        settled = existing.model_copy(update={"settled": True, "updated_at": utc_now()})
        self._transactions[index] = settled

        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.transaction_settled(
                transaction_id=transaction_id,
                actor_id=self._user.uid,
                correlation_id=correlation_id,
            ))

        changes = settled.model_dump(mode="json", include={"settled", "updated_at"})
        return await self._persist(
            "settle",
            transaction_id,
            lambda: self._storage.update_transaction(transaction_id, changes),
            correlation_id,
        )

    async def settle_with_user(
        self,
        counterparty_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> list[WriteResult]:
        """
        Settle every unsettled transaction the counterparty takes part in.

        Returns one WriteResult per transaction settled; an empty list when
        there was nothing to settle.
        """
        correlation_id = correlation_id or create_correlation_id()
        targets = [
            t.id for t in self._transactions
            if not t.settled and t.involves(counterparty_id)
        ]
        if not targets:
            return []

        results = [
            await self.settle_transaction(txn_id, correlation_id)
            for txn_id in targets
        ]

        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.settled_with_user(
                counterparty_id=counterparty_id,
                transaction_ids=targets,
                actor_id=self._user.uid,
                correlation_id=correlation_id,
            ))
        return results

    async def create_group(
        self,
        name: str,
        description: Optional[str] = None,
        members: Optional[Iterable[Member]] = None,
        correlation_id: Optional[UUID] = None,
    ) -> WriteResult:
        """Create a group. The creator is always a member."""
        correlation_id = correlation_id or create_correlation_id()

        group_members = list(members or [])
        if not any(m.id == self._user.uid for m in group_members):
            group_members.insert(0, self._user.as_member())

        group = Group(
            name=name,
            description=description or None,
            members=group_members,
            created_by=self._user.uid,
        )
        self._groups.append(group)

        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.group_created(
                group_id=group.id,
                name=group.name,
                member_count=len(group.members),
                actor_id=self._user.uid,
                correlation_id=correlation_id,
            ))

        return await self._persist(
            "create_group",
            group.id,
            lambda: self._storage.save_group(group),
            correlation_id,
        )

    # =========================================================================
    # VIEWS
    # =========================================================================

    def filtered(self, criteria: Optional[ListCriteria] = None) -> list[Transaction]:
        return filter_transactions(self._transactions, criteria)

    def analytics(
        self,
        criteria: Optional[AnalyticsCriteria] = None,
        now: Optional[datetime] = None,
    ) -> list[Transaction]:
        return analytics_transactions(self._transactions, criteria, now)

    def recent(self, count: Optional[int] = None) -> list[Transaction]:
        return recent_transactions(
            self._transactions,
            count or self._settings.recent_transactions_count,
        )

    def balances(self) -> BalanceSummary:
        return calculate_balances(self._transactions, self._user.uid)

    def balance_with(self, counterparty_id: str) -> Decimal:
        return balance_with(self._transactions, self._user.uid, counterparty_id)

    def counterparties(self) -> list[Member]:
        return list_counterparties(self._transactions, self._user.uid)


def create_app_components(
    current_user: UserProfile,
    use_storage: bool = True,
) -> tuple[TransactionLedger, FinancialAdvisor, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all app components.

    Falls back to an in-memory ledger (and local-only audit logging) when
    Google Sheets is not configured or can't be reached. Both worksheets are
    opened up front so a dead backend is caught here rather than at start().

    Returns:
        (ledger, advisor, sheets_client)
    """
    sheets_client = None
    storage: LedgerStorageInterface

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            sheets_client.get_transactions_sheet()
            sheets_client.get_groups_sheet()
            storage = GoogleSheetsLedgerStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            sheets_client = None
            storage = InMemoryLedgerStorage()
            audit_logger = AuditLogger()
            audit_logger.log_local(
                AuditEventBuilder.external_service_error("google_sheets", str(e))
            )
    else:
        storage = InMemoryLedgerStorage()
        audit_logger = AuditLogger()

    ledger = TransactionLedger(
        current_user=current_user,
        storage=storage,
        audit_logger=audit_logger,
    )
    advisor = FinancialAdvisor(audit_logger=audit_logger)

    return ledger, advisor, sheets_client
