"""
Query Execution Engine

DESIGN DECISION: Query execution is DETERMINISTIC.
Parameters are parsed and turned into a predicate by the filter
builder BEFORE any store call; a bad id or date never reaches the store.
The engine then runs the lookup or aggregation and shapes the result.

GUARANTEES:
- Only returns real data from storage
- "Nothing matched" is an empty list, None, or "0", never an error
"""

from typing import Optional, Union

from household_finance.audit import AuditLogger
from household_finance.formatting import format_decimal
from household_finance.models.records import (
    Budget,
    Category,
    FinancialGoal,
    GoalStatus,
    HouseholdMember,
    SortOrder,
    Transaction,
    TransactionGroupField,
    TransactionType,
)
from household_finance.models.results import GroupTotal
from household_finance.queries.filters import (
    build_budget_overlap_filter,
    build_goal_filter,
    build_member_filter,
    build_sort,
    build_transaction_filter,
)
from household_finance.services.storage import (
    InvalidPayloadError,
    LedgerStorageInterface,
)
from household_finance.validation import parse_count
from household_finance.validation.parsing import DateInput


class QueryExecutor:
    """
    Executes filtered lookups and aggregations against ledger storage.

    Every method accepts the raw optional parameters of its public
    operation; empty values mean "no constraint".
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger

    async def _audit(self, operation: str, result_count: int, predicate: dict) -> None:
        if self._audit_logger:
            await self._audit_logger.log_query_executed(
                operation=operation,
                result_count=result_count,
                filters=predicate,
            )

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def list_transactions(
        self,
        start_date: Optional[DateInput] = None,
        end_date: Optional[DateInput] = None,
        type: Optional[Union[str, TransactionType]] = None,
        category: Optional[str] = None,
        member_id: Optional[str] = None,
        sort_by: Optional[str] = None,
        sort_order: Optional[Union[str, SortOrder]] = None,
        limit: Optional[Union[str, int]] = None,
        skip: Optional[Union[str, int]] = None,
    ) -> list[Transaction]:
        """
        List transactions matching the filters.

        Results are sorted first, then skip and limit are applied, so
        pagination never reorders results. limit 0 means unbounded.
        """
        predicate = build_transaction_filter(start_date, end_date, type, category, member_id)
        sort = build_sort(sort_by, sort_order)
        transactions = await self._storage.find_transactions(
            predicate,
            sort=sort,
            skip=parse_count(skip, "skip"),
            limit=parse_count(limit, "limit"),
        )
        await self._audit("list_transactions", len(transactions), predicate)
        return transactions

    async def sum_transactions(
        self,
        start_date: Optional[DateInput] = None,
        end_date: Optional[DateInput] = None,
        type: Optional[Union[str, TransactionType]] = None,
        category: Optional[str] = None,
        member_id: Optional[str] = None,
    ) -> str:
        """
        Total amount of matching transactions as a decimal string.

        Returns "0" when nothing matches.
        """
        predicate = build_transaction_filter(start_date, end_date, type, category, member_id)
        total = await self._storage.sum_amounts(predicate)
        await self._audit("sum_transactions", 0 if total is None else 1, predicate)
        if total is None:
            return "0"
        return format_decimal(total)

    async def group_transactions(
        self,
        start_date: Optional[DateInput] = None,
        end_date: Optional[DateInput] = None,
        type: Optional[Union[str, TransactionType]] = None,
        group_by: Union[str, TransactionGroupField] = TransactionGroupField.CATEGORY,
    ) -> list[GroupTotal]:
        """
        Sum matching transactions per value of group_by, largest first.

        group_by is one of "category", "memberId" (or "member_id"), "type".
        """
        field = _group_field(group_by)
        predicate = build_transaction_filter(start_date, end_date, type)
        groups = await self._storage.group_amounts(predicate, field.value)
        await self._audit("group_transactions", len(groups), predicate)
        return groups

    # -------------------------------------------------------------------------
    # Budgets, goals, members, categories
    # -------------------------------------------------------------------------

    async def find_budget(self, start_date: DateInput, end_date: DateInput) -> Optional[Budget]:
        """Get a budget whose period overlaps [start_date, end_date]."""
        predicate = build_budget_overlap_filter(start_date, end_date)
        budget = await self._storage.find_budget(predicate)
        await self._audit("find_budget", 0 if budget is None else 1, predicate)
        return budget

    async def list_goals(
        self,
        status: Optional[Union[str, GoalStatus]] = None,
        target_date_before: Optional[DateInput] = None,
        target_date_after: Optional[DateInput] = None,
    ) -> list[FinancialGoal]:
        predicate = build_goal_filter(status, target_date_before, target_date_after)
        goals = await self._storage.find_goals(predicate)
        await self._audit("list_goals", len(goals), predicate)
        return goals

    async def list_members(
        self,
        min_income: Optional[Union[str, int, float]] = None,
        max_income: Optional[Union[str, int, float]] = None,
        income_stream: Optional[str] = None,
    ) -> list[HouseholdMember]:
        predicate = build_member_filter(min_income, max_income, income_stream)
        members = await self._storage.find_members(predicate)
        await self._audit("list_members", len(members), predicate)
        return members

    async def list_categories(self) -> list[Category]:
        categories = await self._storage.list_categories()
        await self._audit("list_categories", len(categories), {})
        return categories


def _group_field(group_by: Union[str, TransactionGroupField]) -> TransactionGroupField:
    if group_by == "member_id":
        return TransactionGroupField.MEMBER_ID
    try:
        return TransactionGroupField(group_by)
    except ValueError:
        allowed = ", ".join(field.value for field in TransactionGroupField)
        raise InvalidPayloadError(f"Cannot group by {group_by!r} (expected one of: {allowed})")
