"""Filtering, sorting and analytics over the ledger."""

from splitledger.queries.pipeline import (
    AnalyticsCriteria,
    ListCriteria,
    analytics_transactions,
    filter_transactions,
    matches_search,
    sort_transactions,
)
from splitledger.queries.analytics import (
    category_spending_over_time,
    category_totals,
    format_currency,
    monthly_totals,
    recent_transactions,
    scale_suffix,
    scale_value,
    spending_trend,
    summary_stats,
    top_spending_days,
)

__all__ = [
    "AnalyticsCriteria",
    "ListCriteria",
    "analytics_transactions",
    "filter_transactions",
    "matches_search",
    "sort_transactions",
    "category_spending_over_time",
    "category_totals",
    "format_currency",
    "monthly_totals",
    "recent_transactions",
    "scale_suffix",
    "scale_value",
    "spending_trend",
    "summary_stats",
    "top_spending_days",
]
