"""
Filter and Sort Pipeline

Two read-only views over the ledger:

- the LIST view (transactions page): search, category, settlement status, sort
- the ANALYTICS view: search, category, currency, time window, sort

DESIGN DECISION: The analytics view does NOT apply the status filter.
Settled transactions are still money that was spent.

All filters combine with AND. Sorting is stable, so transactions that tie
on the sort key keep their ledger order.
"""

from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field

from splitledger.models.transaction import (
    SortOption,
    StatusFilter,
    TimePeriod,
    Transaction,
)


class ListCriteria(BaseModel):
    """Filters for the transaction list."""
    model_config = ConfigDict(str_strip_whitespace=True)

    search: str = Field(
        default="",
        description="Case-insensitive substring of title, description or category"
    )
    category: Optional[str] = Field(
        default=None,
        description="Exact category match; None means all categories"
    )
    status: StatusFilter = StatusFilter.ALL
    sort: SortOption = SortOption.DATE_DESC


class AnalyticsCriteria(BaseModel):
    """Filters for the analytics view."""
    model_config = ConfigDict(str_strip_whitespace=True)

    search: str = ""
    category: Optional[str] = None
    currency: Optional[str] = Field(
        default=None,
        description="Exact currency code; None means all currencies"
    )
    period: Optional[TimePeriod] = Field(
        default=None,
        description="Time window relative to now; None means all time"
    )
    sort: SortOption = SortOption.DATE_DESC


def matches_search(txn: Transaction, search: str) -> bool:
    """True if the search text appears in the title, description or category."""
    needle = search.strip().lower()
    if not needle:
        return True
    haystacks = (txn.title, txn.description or "", txn.category)
    return any(needle in h.lower() for h in haystacks)


def matches_status(txn: Transaction, status: StatusFilter) -> bool:
    if status == StatusFilter.SETTLED:
        return txn.settled
    if status == StatusFilter.PENDING:
        return not txn.settled
    return True


def period_start(period: TimePeriod, now: datetime) -> date:
    """
    First calendar date included in a time window.

    day: today. week: 7 days ago. month: 30 days ago.
    """
    today = now.date()
    if period == TimePeriod.DAY:
        return today
    if period == TimePeriod.WEEK:
        return today - timedelta(days=7)
    return today - timedelta(days=30)


def sort_transactions(
    transactions: Iterable[Transaction],
    sort: SortOption = SortOption.DATE_DESC,
) -> list[Transaction]:
    """Return a new, stably sorted list."""
    txns = list(transactions)
    if sort == SortOption.DATE_ASC:
        return sorted(txns, key=lambda t: t.transaction_date)
    if sort == SortOption.AMOUNT_DESC:
        return sorted(txns, key=lambda t: t.amount, reverse=True)
    if sort == SortOption.AMOUNT_ASC:
        return sorted(txns, key=lambda t: t.amount)
    return sorted(txns, key=lambda t: t.transaction_date, reverse=True)


def filter_transactions(
    transactions: Iterable[Transaction],
    criteria: Optional[ListCriteria] = None,
) -> list[Transaction]:
    """The list view: search AND category AND status, then sort."""
    criteria = criteria or ListCriteria()
    filtered = [
        t for t in transactions
        if matches_search(t, criteria.search)
        and (not criteria.category or t.category == criteria.category)
        and matches_status(t, criteria.status)
    ]
    return sort_transactions(filtered, criteria.sort)


def analytics_transactions(
    transactions: Iterable[Transaction],
    criteria: Optional[AnalyticsCriteria] = None,
    now: Optional[datetime] = None,
) -> list[Transaction]:
    """The analytics view: search AND category AND currency AND time window, then sort."""
    criteria = criteria or AnalyticsCriteria()
    start = period_start(criteria.period, now or datetime.now()) if criteria.period else None

    filtered = [
        t for t in transactions
        if matches_search(t, criteria.search)
        and (not criteria.category or t.category == criteria.category)
        and (not criteria.currency or t.currency == criteria.currency.upper())
        and (start is None or t.transaction_date >= start)
    ]
    return sort_transactions(filtered, criteria.sort)
