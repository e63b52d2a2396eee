"""
Data Models Package

All Pydantic models used in SplitLedger.
All data flowing through the system must conform to these schemas.
"""

from splitledger.models.transaction import (
    CURRENCIES,
    EXPENSE_CATEGORIES,
    BalanceSummary,
    CategorySummary,
    ChatMessage,
    DaySummary,
    Group,
    Member,
    MetricScale,
    MonthlySummary,
    Participant,
    ParticipantShare,
    PersistenceStatus,
    SortOption,
    SpendingSummary,
    SpendingTrend,
    SplitMethod,
    StatusFilter,
    TimePeriod,
    Transaction,
    TransactionDraft,
    TransactionUpdate,
    UserProfile,
    ValidationIssue,
    ValidationResult,
    WriteResult,
    new_id,
    utc_now,
)
from splitledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Constants
    "CURRENCIES",
    "EXPENSE_CATEGORIES",
    # Ledger models
    "Group",
    "Member",
    "Participant",
    "Transaction",
    "UserProfile",
    # Inputs
    "ParticipantShare",
    "TransactionDraft",
    "TransactionUpdate",
    # Enums
    "MetricScale",
    "PersistenceStatus",
    "SortOption",
    "SplitMethod",
    "StatusFilter",
    "TimePeriod",
    # Results
    "BalanceSummary",
    "CategorySummary",
    "ChatMessage",
    "DaySummary",
    "MonthlySummary",
    "SpendingSummary",
    "SpendingTrend",
    "ValidationIssue",
    "ValidationResult",
    "WriteResult",
    # Helpers
    "new_id",
    "utc_now",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
