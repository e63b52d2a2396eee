"""
Abstract Storage Interfaces

DESIGN DECISION: We define abstract interfaces for storage operations.
This allows us to:
1. Swap Google Sheets for a real-time database later
2. Use in-memory storage for testing
3. Keep the ledger decoupled from storage implementation

The ledger store is "real-time": besides plain reads and writes it lets the
ledger subscribe to full snapshots of the collection. Every snapshot replaces
the ledger's in-memory list wholesale.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from splitledger.models.audit import AuditEvent
from splitledger.models.transaction import Group, Transaction


TransactionSnapshotCallback = Callable[[list[dict[str, Any]]], None]
GroupSnapshotCallback = Callable[[list[dict[str, Any]]], None]
Unsubscribe = Callable[[], None]


class LedgerStorageInterface(ABC):
    """
    Abstract interface for the shared transaction store.

    Any storage implementation (Google Sheets, a document database, memory)
    must implement these methods.

    Snapshot callbacks receive raw records (plain dicts), not models: the
    ledger decides which records it can parse and which it skips.
    """

    @abstractmethod
    async def save_transaction(self, transaction: Transaction) -> bool:
        """
        Save a new transaction.

        Raises:
            DuplicateError: If a transaction with this id already exists
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def update_transaction(
        self,
        transaction_id: str,
        changes: dict[str, Any],
    ) -> bool:
        """
        Merge changed fields into a stored transaction.

        Raises:
            NotFoundError: If the transaction doesn't exist
            StorageError: If update fails
        """
        pass

    @abstractmethod
    async def delete_transaction(self, transaction_id: str) -> bool:
        """
        Delete a transaction by ID.

        Returns:
            True if a record was deleted, False if there was nothing to delete
        """
        pass

    @abstractmethod
    async def list_transactions(self) -> list[dict[str, Any]]:
        """Return every stored transaction record."""
        pass

    @abstractmethod
    async def save_group(self, group: Group) -> bool:
        """Save a new group."""
        pass

    @abstractmethod
    async def list_groups(self) -> list[dict[str, Any]]:
        """Return every stored group record."""
        pass

    @abstractmethod
    def subscribe_transactions(
        self,
        callback: TransactionSnapshotCallback,
    ) -> Unsubscribe:
        """
        Register for transaction snapshots.

        The callback is invoked with the full collection whenever it changes.
        Returns a callable that cancels the subscription.
        """
        pass

    @abstractmethod
    def subscribe_groups(self, callback: GroupSnapshotCallback) -> Unsubscribe:
        """Register for group snapshots. Returns an unsubscribe callable."""
        pass

    def refresh(self) -> None:
        """
        Pull changes made elsewhere and publish them to subscribers.

        Backends with native push notifications have nothing to do here.
        """
        return None


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event to the log."""
        pass

    @abstractmethod
    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        """Get the most recent audit events (newest first)."""
        pass


class KeyValueStoreInterface(ABC):
    """
    Small local key-value store for session and preference data.

    Values are JSON-compatible.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the stored value, or None if the key is absent."""
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        """Remove a key. Removing an absent key is a no-op."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
