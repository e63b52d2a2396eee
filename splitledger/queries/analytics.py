"""
Analytics Aggregations

Pure functions over a list of transactions (normally the output of
analytics_transactions()). Nothing here reads storage or the clock unless a
`today` is omitted.

Amounts in different currencies are summed as plain numbers; the analytics
page offers a currency filter for people who mix currencies.
"""

import calendar
from collections import OrderedDict
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Optional

from splitledger.models.transaction import (
    CURRENCIES,
    CategorySummary,
    DaySummary,
    MetricScale,
    MonthlySummary,
    SpendingSummary,
    SpendingTrend,
    Transaction,
)
from splitledger.splitting.calculator import round_money


MONTH_NAMES = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
               "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
WEEKDAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday",
                 "Friday", "Saturday", "Sunday"]

SCALE_DIVISORS: dict[MetricScale, Decimal] = {
    MetricScale.HUNDREDS: Decimal("1"),
    MetricScale.THOUSANDS: Decimal("1000"),
    MetricScale.LAKHS: Decimal("100000"),
}
SCALE_SUFFIXES: dict[MetricScale, str] = {
    MetricScale.HUNDREDS: "",
    MetricScale.THOUSANDS: "K",
    MetricScale.LAKHS: "L",
}

INCREASE_THRESHOLD = Decimal("1.2")
DECREASE_THRESHOLD = Decimal("0.8")


# =============================================================================
# FORMATTING
# =============================================================================

def format_currency(amount: Decimal, currency: str = "USD") -> str:
    """Format an amount with its currency symbol, e.g. '$1,234.50'."""
    code = (currency or "USD").upper()
    value = round_money(Decimal(amount))
    sign = "-" if value < 0 else ""
    symbol = CURRENCIES.get(code)
    if symbol is None:
        return f"{sign}{code} {abs(value):,.2f}"
    return f"{sign}{symbol}{abs(value):,.2f}"


def scale_value(value: Decimal, scale: MetricScale) -> Decimal:
    """Divide a value for display in hundreds, thousands (K) or lakhs (L)."""
    return Decimal(value) / SCALE_DIVISORS[MetricScale(scale)]


def scale_suffix(scale: MetricScale) -> str:
    return SCALE_SUFFIXES[MetricScale(scale)]


def month_key(d: date) -> str:
    """'YYYY-MM' key for a date."""
    return f"{d.year}-{d.month:02d}"


def month_label(key: str) -> str:
    """'2025-01' -> 'Jan 2025'."""
    year, month = key.split("-")
    return f"{MONTH_NAMES[int(month) - 1]} {year}"


def shift_months(d: date, months: int) -> date:
    """Move a date by whole months, clamping the day to the target month's length."""
    index = d.year * 12 + (d.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


# =============================================================================
# AGGREGATIONS
# =============================================================================

def recent_transactions(
    transactions: Iterable[Transaction],
    count: int = 5,
) -> list[Transaction]:
    """The `count` most recent transactions, newest first."""
    ordered = sorted(transactions, key=lambda t: t.transaction_date, reverse=True)
    return ordered[:count]


def category_totals(transactions: Iterable[Transaction]) -> list[CategorySummary]:
    """
    Total, count and currency per category, largest total first.

    The currency reported is that of the last transaction seen in the category.
    """
    buckets: "OrderedDict[str, dict[str, Any]]" = OrderedDict()
    for txn in transactions:
        bucket = buckets.setdefault(
            txn.category,
            {"total": Decimal("0"), "count": 0, "currency": txn.currency},
        )
        bucket["total"] += txn.amount
        bucket["count"] += 1
        bucket["currency"] = txn.currency

    summaries = [
        CategorySummary(
            category=category,
            total_amount=data["total"],
            count=data["count"],
            currency=data["currency"],
        )
        for category, data in buckets.items()
    ]
    summaries.sort(key=lambda s: s.total_amount, reverse=True)
    return summaries


def monthly_totals(transactions: Iterable[Transaction]) -> list[MonthlySummary]:
    """Total and count per calendar month, oldest month first."""
    buckets: dict[str, dict[str, Any]] = {}
    for txn in sorted(transactions, key=lambda t: t.transaction_date):
        key = month_key(txn.transaction_date)
        bucket = buckets.setdefault(
            key,
            {"total": Decimal("0"), "count": 0, "currency": txn.currency},
        )
        bucket["total"] += txn.amount
        bucket["count"] += 1
        bucket["currency"] = txn.currency

    return [
        MonthlySummary(
            month_key=key,
            label=month_label(key),
            total_amount=data["total"],
            count=data["count"],
            currency=data["currency"],
        )
        for key, data in sorted(buckets.items())
    ]


def summary_stats(transactions: Iterable[Transaction]) -> SpendingSummary:
    """Total spent, average per transaction and transaction count."""
    txns = list(transactions)
    if not txns:
        return SpendingSummary()
    total = sum((t.amount for t in txns), Decimal("0"))
    return SpendingSummary(
        total=total,
        average=round_money(total / len(txns)),
        count=len(txns),
    )


def category_spending_over_time(
    transactions: Iterable[Transaction],
) -> dict[str, Any]:
    """
    Month x category matrix for stacked charts.

    Returns {"categories": [...], "data": [{"month_key", "label", <category>: amount, ...}]}.
    Categories are ordered by overall spend, largest first; every row carries
    every category (0 where nothing was spent).
    """
    txns = sorted(transactions, key=lambda t: t.transaction_date)
    matrix: dict[str, dict[str, Decimal]] = {}
    for txn in txns:
        row = matrix.setdefault(month_key(txn.transaction_date), {})
        row[txn.category] = row.get(txn.category, Decimal("0")) + txn.amount

    categories = [s.category for s in category_totals(txns)]
    data = []
    for key in sorted(matrix):
        entry: dict[str, Any] = {"month_key": key, "label": month_label(key)}
        for category in categories:
            entry[category] = matrix[key].get(category, Decimal("0"))
        data.append(entry)

    return {"categories": categories, "data": data}


def spending_trend(
    transactions: Iterable[Transaction],
    months: int = 3,
    today: Optional[date] = None,
) -> SpendingTrend:
    """
    Compare the last `months` months with the `months` before that.

    A category is increasing if the recent total is more than 20% above the
    earlier total, decreasing if more than 20% below. Categories missing from
    either window are not reported.
    """
    today = today or date.today()
    boundary = shift_months(today, -months)
    earliest = shift_months(boundary, -months)

    txns = list(transactions)
    recent = [t for t in txns if t.transaction_date >= boundary]
    older = [t for t in txns if earliest <= t.transaction_date < boundary]

    older_totals = {s.category: s.total_amount for s in category_totals(older)}

    trend = SpendingTrend()
    for summary in category_totals(recent):
        previous = older_totals.get(summary.category)
        if previous is None:
            continue
        if summary.total_amount > previous * INCREASE_THRESHOLD:
            trend.increasing.append(summary.category)
        elif summary.total_amount < previous * DECREASE_THRESHOLD:
            trend.decreasing.append(summary.category)
    return trend


def top_spending_days(transactions: Iterable[Transaction]) -> list[DaySummary]:
    """Total spent per weekday, largest first."""
    buckets: dict[str, dict[str, Any]] = {}
    for txn in transactions:
        day = WEEKDAY_NAMES[txn.transaction_date.weekday()]
        bucket = buckets.setdefault(day, {"amount": Decimal("0"), "currency": txn.currency})
        bucket["amount"] += txn.amount
        bucket["currency"] = txn.currency

    days = [
        DaySummary(day=day, amount=data["amount"], currency=data["currency"])
        for day, data in buckets.items()
    ]
    days.sort(key=lambda d: d.amount, reverse=True)
    return days
