"""
In-Memory Storage Implementation

Used for tests, for the offline demo mode of the app, and as the reference
behaviour for the real-time contract: every successful write pushes a full
snapshot to all subscribers.
"""

import copy
from typing import Any

from splitledger.models.audit import AuditEvent
from splitledger.models.transaction import Group, Transaction
from splitledger.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    GroupSnapshotCallback,
    LedgerStorageInterface,
    NotFoundError,
    TransactionSnapshotCallback,
    Unsubscribe,
)


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Transactions and groups kept in dicts, keyed by id, in insertion order."""

    def __init__(
        self,
        transactions: list[dict[str, Any]] | None = None,
        groups: list[dict[str, Any]] | None = None,
    ):
        self._transactions: dict[str, dict[str, Any]] = {
            record["id"]: copy.deepcopy(record) for record in transactions or []
        }
        self._groups: dict[str, dict[str, Any]] = {
            record["id"]: copy.deepcopy(record) for record in groups or []
        }
        self._transaction_subscribers: list[TransactionSnapshotCallback] = []
        self._group_subscribers: list[GroupSnapshotCallback] = []

    # -- snapshots -----------------------------------------------------------

    def _transaction_snapshot(self) -> list[dict[str, Any]]:
        return [copy.deepcopy(r) for r in self._transactions.values()]

    def _group_snapshot(self) -> list[dict[str, Any]]:
        return [copy.deepcopy(r) for r in self._groups.values()]

    def _publish_transactions(self) -> None:
        for callback in list(self._transaction_subscribers):
            callback(self._transaction_snapshot())

    def _publish_groups(self) -> None:
        for callback in list(self._group_subscribers):
            callback(self._group_snapshot())

    def subscribe_transactions(
        self,
        callback: TransactionSnapshotCallback,
    ) -> Unsubscribe:
        self._transaction_subscribers.append(callback)
        callback(self._transaction_snapshot())

        def unsubscribe() -> None:
            if callback in self._transaction_subscribers:
                self._transaction_subscribers.remove(callback)

        return unsubscribe

    def subscribe_groups(self, callback: GroupSnapshotCallback) -> Unsubscribe:
        self._group_subscribers.append(callback)
        callback(self._group_snapshot())

        def unsubscribe() -> None:
            if callback in self._group_subscribers:
                self._group_subscribers.remove(callback)

        return unsubscribe

    # -- transactions --------------------------------------------------------

    async def save_transaction(self, transaction: Transaction) -> bool:
        if transaction.id in self._transactions:
            raise DuplicateError(f"Transaction already exists: {transaction.id}")
        self._transactions[transaction.id] = transaction.model_dump(mode="json")
        self._publish_transactions()
        return True

    async def update_transaction(
        self,
        transaction_id: str,
        changes: dict[str, Any],
    ) -> bool:
        record = self._transactions.get(transaction_id)
        if record is None:
            raise NotFoundError(f"Transaction not found: {transaction_id}")
        record.update(copy.deepcopy(changes))
        self._publish_transactions()
        return True

    async def delete_transaction(self, transaction_id: str) -> bool:
        if self._transactions.pop(transaction_id, None) is None:
            return False
        self._publish_transactions()
        return True

    async def list_transactions(self) -> list[dict[str, Any]]:
        return self._transaction_snapshot()

    # -- groups --------------------------------------------------------------

    async def save_group(self, group: Group) -> bool:
        if group.id in self._groups:
            raise DuplicateError(f"Group already exists: {group.id}")
        self._groups[group.id] = group.model_dump(mode="json")
        self._publish_groups()
        return True

    async def list_groups(self) -> list[dict[str, Any]]:
        return self._group_snapshot()


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return sorted(self.events, key=lambda e: e.timestamp, reverse=True)[:limit]
