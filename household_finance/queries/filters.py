"""
Filter Builder

Translates optional query parameters into predicates the storage
backends evaluate.

RULES:
- A parameter that is absent or empty contributes nothing. There is no
  "match anything" placeholder for a field.
- Scalar parameters become equality on their field.
- Lower and upper bounds on the same field merge into ONE range,
  whichever order they are applied in.
- Bounds are inclusive.
"""

from typing import Any, Optional, Union

from household_finance.models.records import GoalStatus, SortOrder, TransactionType
from household_finance.services.storage.codec import document_field, encode_value
from household_finance.services.storage.interface import (
    InvalidPayloadError,
    Predicate,
    SortSpec,
)
from household_finance.validation import (
    parse_amount,
    parse_date,
    validate_identifier,
)
from household_finance.validation.parsing import DateInput

LOWER = "$gte"
UPPER = "$lte"


def merge_range(predicate: Predicate, field: str, operator: str, bound: Any) -> Predicate:
    """
    Add one bound to the range predicate on field.

    An existing bound on the other side is kept, so applying the lower
    and upper bound in either order yields the same predicate.
    """
    existing = predicate.get(field)
    current = dict(existing) if isinstance(existing, dict) else {}
    current[operator] = bound
    predicate[field] = current
    return predicate


def _date_bound(value: DateInput) -> Any:
    return encode_value(parse_date(value))


def _transaction_type(value: Union[str, TransactionType]) -> str:
    try:
        return TransactionType(value).value
    except ValueError:
        raise InvalidPayloadError(f"Invalid transaction type: {value!r} (expected income or expense)")


def _goal_status(value: Union[str, GoalStatus]) -> str:
    try:
        return GoalStatus(value).value
    except ValueError:
        raise InvalidPayloadError(f"Invalid goal status: {value!r}")


def build_transaction_filter(
    start_date: Optional[DateInput] = None,
    end_date: Optional[DateInput] = None,
    type: Optional[Union[str, TransactionType]] = None,
    category: Optional[str] = None,
    member_id: Optional[str] = None,
) -> Predicate:
    """
    Build the predicate for transaction queries.

    Raises:
        InvalidDateError: If a date does not parse
        InvalidIdentifierError: If member_id is malformed
        InvalidPayloadError: If type is not income or expense
    """
    predicate: Predicate = {}
    if start_date:
        merge_range(predicate, "date", LOWER, _date_bound(start_date))
    if end_date:
        merge_range(predicate, "date", UPPER, _date_bound(end_date))
    if type:
        predicate["type"] = _transaction_type(type)
    if category:
        predicate["category"] = category
    if member_id:
        predicate["memberId"] = validate_identifier(member_id)
    return predicate


def build_goal_filter(
    status: Optional[Union[str, GoalStatus]] = None,
    target_date_before: Optional[DateInput] = None,
    target_date_after: Optional[DateInput] = None,
) -> Predicate:
    """Build the predicate for goal queries (both date bounds inclusive)."""
    predicate: Predicate = {}
    if status:
        predicate["status"] = _goal_status(status)
    if target_date_before:
        merge_range(predicate, "targetDate", UPPER, _date_bound(target_date_before))
    if target_date_after:
        merge_range(predicate, "targetDate", LOWER, _date_bound(target_date_after))
    return predicate


def build_member_filter(
    min_income: Optional[Union[str, int, float]] = None,
    max_income: Optional[Union[str, int, float]] = None,
    income_stream: Optional[str] = None,
) -> Predicate:
    """Build the predicate for household member queries."""
    predicate: Predicate = {}
    if min_income:
        merge_range(predicate, "income", LOWER, encode_value(parse_amount(min_income)))
    if max_income:
        merge_range(predicate, "income", UPPER, encode_value(parse_amount(max_income)))
    if income_stream:
        predicate["incomeStreams"] = income_stream
    return predicate


def build_budget_overlap_filter(start_date: DateInput, end_date: DateInput) -> Predicate:
    """
    Match budgets whose period overlaps [start_date, end_date].

    A budget overlaps when it starts on or before the query end AND ends
    on or after the query start, so touching endpoints count.
    """
    return {
        "startDate": {UPPER: _date_bound(end_date)},
        "endDate": {LOWER: _date_bound(start_date)},
    }


def build_sort(
    sort_by: Optional[str] = None,
    sort_order: Optional[Union[str, SortOrder]] = None,
) -> Optional[SortSpec]:
    """
    Build a sort spec; ascending unless sort_order is "desc".

    sort_by may name a model field ("member_id") or a document field
    ("memberId").
    """
    if not sort_by:
        return None
    order = SortOrder.DESC if sort_order == SortOrder.DESC.value else SortOrder.ASC
    return document_field(sort_by), order
