"""Query execution: filter building, lookups, aggregations and metrics."""

from household_finance.queries.executor import QueryExecutor
from household_finance.queries.filters import (
    build_budget_overlap_filter,
    build_goal_filter,
    build_member_filter,
    build_sort,
    build_transaction_filter,
    merge_range,
)
from household_finance.queries.metrics import average_transaction_amount, days_between

__all__ = [
    "QueryExecutor",
    "average_transaction_amount",
    "build_budget_overlap_filter",
    "build_goal_filter",
    "build_member_filter",
    "build_sort",
    "build_transaction_filter",
    "days_between",
    "merge_range",
]
