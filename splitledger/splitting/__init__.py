"""Split calculation and balance aggregation."""

from splitledger.splitting.calculator import (
    EqualSplitStrategy,
    ExactSplitStrategy,
    PercentageSplitStrategy,
    SplitError,
    SplitStrategy,
    finalize_split,
    get_strategy,
    round_money,
)
from splitledger.splitting.balances import (
    balance_with,
    calculate_balances,
    list_counterparties,
)

__all__ = [
    "EqualSplitStrategy",
    "ExactSplitStrategy",
    "PercentageSplitStrategy",
    "SplitError",
    "SplitStrategy",
    "finalize_split",
    "get_strategy",
    "round_money",
    "balance_with",
    "calculate_balances",
    "list_counterparties",
]
