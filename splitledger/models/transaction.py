"""
Core Data Models for SplitLedger

These models define the strict schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Keep money as Decimal end to end (never float)
3. Be serializable for storage, snapshots and logging

DESIGN DECISION: A stored Transaction is always structurally sound (payer is a
participant, one participant per user). A TransactionDraft is deliberately
lenient: it holds whatever the user typed so the validator can report every
problem with a user-facing message instead of a raw schema error.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid4().hex


# =============================================================================
# CONSTANTS
# =============================================================================

EXPENSE_CATEGORIES: list[str] = [
    "Food & Drinks",
    "Groceries",
    "Transportation",
    "Entertainment",
    "Shopping",
    "Utilities",
    "Rent",
    "Travel",
    "Health",
    "Education",
    "Other",
]

# Currency code -> display symbol
CURRENCIES: dict[str, str] = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "INR": "₹",
}

DEFAULT_CATEGORY = "Other"
DEFAULT_TITLE = "Untitled"


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class SplitMethod(str, Enum):
    """How a transaction total is divided between participants."""
    EQUAL = "equal"
    PERCENTAGE = "percentage"
    AMOUNT = "amount"  # exact amount per participant


class StatusFilter(str, Enum):
    """Settlement filter for the transaction list."""
    ALL = "all"
    SETTLED = "settled"
    PENDING = "pending"


class SortOption(str, Enum):
    """Sort orders offered by the transaction list and analytics views."""
    DATE_DESC = "date-desc"
    DATE_ASC = "date-asc"
    AMOUNT_DESC = "amount-desc"
    AMOUNT_ASC = "amount-asc"


class TimePeriod(str, Enum):
    """Analytics time window, relative to now."""
    DAY = "day"      # dated today
    WEEK = "week"    # last 7 days
    MONTH = "month"  # last 30 days


class MetricScale(str, Enum):
    """Display scale for large amounts in analytics."""
    HUNDREDS = "hundreds"
    THOUSANDS = "thousands"
    LAKHS = "lakhs"


class PersistenceStatus(str, Enum):
    """
    Outcome of a ledger mutation.

    DESIGN DECISION: Local state is updated before the remote write.
    Callers get told explicitly whether the remote write made it, instead
    of local and remote state silently diverging.
    """
    PERSISTED_REMOTELY = "persisted_remotely"
    PERSISTED_LOCALLY_ONLY = "persisted_locally_only"
    UNCHANGED = "unchanged"  # no-op, e.g. settling an already settled transaction


# =============================================================================
# CORE LEDGER MODELS
# =============================================================================

class Participant(BaseModel):
    """
    One person's share of a transaction.

    `paid` tracks this person's share only and is independent of the
    transaction-level `settled` flag.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    user_id: str = Field(
        ...,
        min_length=1,
        description="User ID of the participant"
    )
    name: str = Field(
        default="",
        description="Display name"
    )
    email: str = Field(
        default="",
        description="Email address"
    )
    photo_url: Optional[str] = Field(
        default=None,
        description="Avatar URL"
    )
    amount: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Share this participant owes, in the transaction currency"
    )
    paid: bool = Field(
        default=False,
        description="Has this participant paid their share?"
    )


class Transaction(BaseModel):
    """
    A shared expense: one payer, several participants, one total.

    Invariants:
    - the payer appears among the participants
    - exactly one participant per user id

    The share-sum invariant is NOT enforced here. Equal splits are rounded
    per participant and may drift from the total by a cent or two.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        default_factory=new_id,
        min_length=1,
        description="Unique transaction identifier"
    )
    title: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Short title, e.g. 'Dinner at Luigi's'"
    )
    description: Optional[str] = Field(
        default=None,
        max_length=1000,
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Total amount of the expense"
    )
    currency: str = Field(
        default="USD",
        min_length=3,
        max_length=3,
        description="ISO currency code"
    )
    transaction_date: date = Field(
        ...,
        description="Calendar date of the expense"
    )
    category: str = Field(
        default=DEFAULT_CATEGORY,
        description="Free-form category label"
    )
    paid_by: str = Field(
        ...,
        min_length=1,
        description="User ID of the payer"
    )
    paid_by_name: str = Field(
        default="",
        description="Display name of the payer"
    )
    participants: list[Participant] = Field(
        default_factory=list,
        description="Ordered list of participants, payer included"
    )
    settled: bool = Field(
        default=False,
        description="Terminal flag: the whole transaction is settled"
    )
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    group: Optional[str] = Field(
        default=None,
        description="ID of the group this transaction is tagged with"
    )

    @field_validator('currency')
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return v.upper()

    @model_validator(mode='after')
    def validate_participants(self) -> 'Transaction':
        """Payer must participate and nobody may appear twice."""
        ids = [p.user_id for p in self.participants]
        if len(ids) != len(set(ids)):
            raise ValueError("Each participant may appear only once")
        if self.paid_by not in ids:
            raise ValueError("The payer must be one of the participants")
        return self

    def participant(self, user_id: str) -> Optional[Participant]:
        """Return the participant entry for a user, if any."""
        for p in self.participants:
            if p.user_id == user_id:
                return p
        return None

    def involves(self, user_id: str) -> bool:
        return self.participant(user_id) is not None

    @property
    def share_total(self) -> Decimal:
        """Sum of all participant shares."""
        return sum((p.amount for p in self.participants), Decimal("0"))


class Member(BaseModel):
    """A member of a group."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(..., min_length=1)
    name: str = ""
    email: str = ""
    photo_url: Optional[str] = None


class Group(BaseModel):
    """
    A named set of people.

    Groups only tag transactions; there is no group-level balance logic.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id, min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    members: list[Member] = Field(default_factory=list)
    created_by: str = Field(..., min_length=1)
    created_at: datetime = Field(default_factory=utc_now)

    def has_member(self, user_id: str) -> bool:
        return any(m.id == user_id for m in self.members)


class UserProfile(BaseModel):
    """The signed-in user."""

    uid: str = Field(..., min_length=1)
    email: str = ""
    display_name: str = ""
    photo_url: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)

    def as_member(self) -> Member:
        return Member(
            id=self.uid,
            name=self.display_name,
            email=self.email,
            photo_url=self.photo_url,
        )


# =============================================================================
# INPUT MODELS
# =============================================================================

class ParticipantShare(BaseModel):
    """
    A participant as entered on the add-transaction form.

    `share` is a percentage for percentage splits, an amount for exact
    splits, and ignored for equal splits.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    user_id: str = Field(..., min_length=1)
    name: str = ""
    email: str = ""
    photo_url: Optional[str] = None
    share: Decimal = Field(default=Decimal("0"))


class TransactionDraft(BaseModel):
    """
    User input for a new transaction, before validation.

    Fields are lenient on purpose (empty strings, missing amount) so the
    validator can produce friendly messages for each problem.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = ""
    description: Optional[str] = None
    amount: Optional[Decimal] = None
    currency: str = "USD"
    transaction_date: date = Field(default_factory=date.today)
    category: str = ""
    paid_by: str = ""
    split_method: SplitMethod = SplitMethod.EQUAL
    participants: list[ParticipantShare] = Field(default_factory=list)
    group: Optional[str] = None

    @field_validator('currency')
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return v.upper()

    def participant_ids(self) -> list[str]:
        return [p.user_id for p in self.participants]

    def payer(self) -> Optional[ParticipantShare]:
        for p in self.participants:
            if p.user_id == self.paid_by:
                return p
        return None


class TransactionUpdate(BaseModel):
    """
    Partial update merged into an existing transaction.

    Only fields that were explicitly set are applied. `settled` is not
    updatable: settling goes through its own operation and cannot be undone.
    """
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    title: Optional[str] = None
    description: Optional[str] = None
    amount: Optional[Decimal] = Field(default=None, ge=0)
    currency: Optional[str] = None
    transaction_date: Optional[date] = None
    category: Optional[str] = None
    paid_by: Optional[str] = None
    paid_by_name: Optional[str] = None
    participants: Optional[list[Participant]] = None
    group: Optional[str] = None

    def changes(self) -> dict[str, Any]:
        """The explicitly set fields, ready to merge into a Transaction."""
        data = self.model_dump(exclude_unset=True)
        if "participants" in data and self.participants is not None:
            # keep model instances rather than plain dicts
            data["participants"] = list(self.participants)
        return data


# =============================================================================
# RESULT MODELS
# =============================================================================

class WriteResult(BaseModel):
    """Result of a ledger mutation."""

    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the transaction or group that was written"
    )
    status: PersistenceStatus
    error: Optional[str] = Field(
        default=None,
        description="Remote write error, when the change only exists locally"
    )
    warnings: list[str] = Field(
        default_factory=list,
        description="Non-blocking problems with the written data"
    )

    @property
    def degraded(self) -> bool:
        """True if the change was kept locally but never reached the store."""
        return self.status == PersistenceStatus.PERSISTED_LOCALLY_ONLY

    @property
    def changed(self) -> bool:
        return self.status != PersistenceStatus.UNCHANGED


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'duplicate', 'split_mismatch')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of the two-stage validation.

    Stage 1: Field validation (required fields, participants)
    Stage 2: Split validation (shares reconcile with the total)
    """

    validated_at: datetime = Field(default_factory=utc_now)

    fields_valid: bool = Field(
        ...,
        description="Did field validation pass?"
    )
    split_valid: bool = Field(
        ...,
        description="Did split validation pass? False if it was skipped."
    )
    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )

    @property
    def is_valid(self) -> bool:
        return self.fields_valid and self.split_valid and not self.has_errors

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def error_messages(self) -> list[str]:
        return [issue.message for issue in self.issues if issue.severity == "error"]

    @property
    def warnings(self) -> list[str]:
        return [issue.message for issue in self.issues if issue.severity == "warning"]


# =============================================================================
# AGGREGATE MODELS (dashboard and analytics)
# =============================================================================

class BalanceSummary(BaseModel):
    """What the acting user is owed and owes across unsettled transactions."""

    owed_to_me: Decimal = Decimal("0")
    i_owe: Decimal = Decimal("0")
    people_owe_me: int = Field(default=0, description="Distinct people who owe the user")
    people_i_owe: int = Field(default=0, description="Distinct payers the user owes")
    settled_count: int = 0
    pending_count: int = 0

    @property
    def net(self) -> Decimal:
        return self.owed_to_me - self.i_owe


class CategorySummary(BaseModel):
    """Total spending in one category."""

    category: str
    total_amount: Decimal
    count: int
    currency: str = Field(description="Currency of the last transaction seen")


class MonthlySummary(BaseModel):
    """Total spending in one calendar month."""

    month_key: str = Field(description="YYYY-MM")
    label: str = Field(description="Display key, e.g. 'Jan 2025'")
    total_amount: Decimal
    count: int
    currency: str


class DaySummary(BaseModel):
    """Total spending on one weekday."""

    day: str = Field(description="Weekday name, e.g. 'Monday'")
    amount: Decimal
    currency: str


class SpendingSummary(BaseModel):
    total: Decimal = Decimal("0")
    average: Decimal = Decimal("0")
    count: int = 0


class SpendingTrend(BaseModel):
    """Categories whose spending moved by more than 20% between windows."""

    increasing: list[str] = Field(default_factory=list)
    decreasing: list[str] = Field(default_factory=list)


class ChatMessage(BaseModel):
    """One message in the advisor chat."""

    role: str = Field(..., pattern="^(user|assistant)$")
    content: str
    created_at: datetime = Field(default_factory=utc_now)
    from_voice: bool = False
