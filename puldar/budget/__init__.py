"""Budget math: allocation, spend, overspend and rollover."""

from puldar.budget.engine import (
    DEFAULT_ROLLOVER_DEPTH,
    BudgetEngine,
    LedgerAggregates,
    estimate_monthly_income,
)
from puldar.budget.months import (
    month_from_index,
    month_index,
    previous_month,
    same_month,
)

__all__ = [
    "DEFAULT_ROLLOVER_DEPTH",
    "BudgetEngine",
    "LedgerAggregates",
    "estimate_monthly_income",
    "month_from_index",
    "month_index",
    "previous_month",
    "same_month",
]
