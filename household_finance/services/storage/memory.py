"""
In-Memory Storage Implementation

Keeps documents in Python lists and evaluates predicates the way the
document store does:
- equality on an array field matches when the array contains the value
- range operators ($gte, $lte, $gt, $lt) match inclusive/exclusive bounds
- a missing field never satisfies a range
- values of incomparable types never match

Used for tests and for running without a database. Documents are encoded
with the same codec as the MongoDB backend.
"""

import asyncio
import copy
from collections.abc import Callable, Iterable
from decimal import Decimal
from typing import Any, Optional

from bson import ObjectId

from household_finance.models.records import (
    Budget,
    Category,
    FinancialGoal,
    HouseholdMember,
    SortOrder,
    Transaction,
)
from household_finance.models.results import GroupTotal
from household_finance.services.storage.codec import (
    decode_record,
    encode_record,
    encode_updates,
    to_object_id,
)
from household_finance.services.storage.interface import (
    BUDGETS,
    CATEGORIES,
    GOALS,
    HOUSEHOLD,
    TRANSACTIONS,
    LedgerStorageInterface,
    Predicate,
    SortSpec,
    TransactionAbortedError,
)

_MISSING = object()

_COMPARATORS: dict[str, Callable[[Any, Any], bool]] = {
    "$eq": lambda value, bound: value == bound,
    "$ne": lambda value, bound: value != bound,
    "$gt": lambda value, bound: value > bound,
    "$gte": lambda value, bound: value >= bound,
    "$lt": lambda value, bound: value < bound,
    "$lte": lambda value, bound: value <= bound,
}


def resolve_field(document: dict, path: str) -> Any:
    """
    Look up a dotted path, fanning out over arrays.

    Returns _MISSING when any step is absent.
    """
    current: Any = document
    for part in path.split("."):
        if isinstance(current, list):
            values = [resolve_field(item, part) for item in current if isinstance(item, dict)]
            values = [value for value in values if value is not _MISSING]
            if not values:
                return _MISSING
            current = values
        elif isinstance(current, dict) and part in current:
            current = current[part]
        else:
            return _MISSING
    return current


def _candidates(value: Any) -> list:
    # An array field is tested element-wise, and as a whole for equality
    if isinstance(value, list):
        return [*value, value]
    return [value]


def _compare(operator: str, value: Any, bound: Any) -> bool:
    if operator not in _COMPARATORS:
        raise ValueError(f"Unsupported predicate operator: {operator}")
    try:
        return _COMPARATORS[operator](value, bound)
    except TypeError:
        return False


def matches(document: dict, predicate: Predicate) -> bool:
    """Check whether a document satisfies every clause of a predicate."""
    for field, condition in predicate.items():
        value = resolve_field(document, field)
        is_operator_clause = isinstance(condition, dict) and condition and all(
            str(key).startswith("$") for key in condition
        )

        if is_operator_clause:
            if value is _MISSING:
                if any(op != "$ne" for op in condition):
                    return False
                continue
            candidates = _candidates(value)
            for operator, bound in condition.items():
                if operator == "$ne":
                    if any(_compare("$eq", item, bound) for item in candidates):
                        return False
                elif not any(_compare(operator, item, bound) for item in candidates):
                    return False
        else:
            if value is _MISSING:
                if condition is not None:
                    return False
                continue
            if not any(item == condition for item in _candidates(value)):
                return False
    return True


def _sort_key(field: str) -> Callable[[dict], tuple]:
    def key(document: dict) -> tuple:
        value = resolve_field(document, field)
        # Missing and null sort before every value, as in the store
        if value is _MISSING or value is None:
            return (0, 0)
        return (1, value)
    return key


def _paginate(documents: list, skip: int, limit: int) -> list:
    documents = documents[skip:] if skip else documents
    return documents[:limit] if limit else documents


class InMemoryLedgerStorage(LedgerStorageInterface):
    """
    Dict-backed implementation of ledger storage.

    A lock serializes writes so the cascading category delete is never
    observed half-done.
    """

    def __init__(self):
        self._collections: dict[str, list[dict]] = {
            TRANSACTIONS: [],
            BUDGETS: [],
            GOALS: [],
            HOUSEHOLD: [],
            CATEGORIES: [],
        }
        self._lock = asyncio.Lock()

    # -------------------------------------------------------------------------
    # Document primitives
    # -------------------------------------------------------------------------

    def _find(self, collection: str, predicate: Predicate) -> list[dict]:
        return [doc for doc in self._collections[collection] if matches(doc, predicate)]

    def _insert(self, collection: str, document: dict) -> str:
        document = {"_id": ObjectId(), **document}
        self._collections[collection].append(document)
        return str(document["_id"])

    def _set_fields(self, document: dict, values: dict) -> bool:
        changed = any(document.get(key, _MISSING) != value for key, value in values.items())
        document.update(copy.deepcopy(values))
        return changed

    def _update_by_id(self, collection: str, record_id: str, updates: dict[str, Any]) -> bool:
        object_id = to_object_id(record_id)
        for document in self._find(collection, {"_id": object_id}):
            return self._set_fields(document, encode_updates(updates))
        return False

    def _delete_where(self, collection: str, predicate: Predicate) -> int:
        kept = [doc for doc in self._collections[collection] if not matches(doc, predicate)]
        deleted = len(self._collections[collection]) - len(kept)
        self._collections[collection] = kept
        return deleted

    def _members(self) -> Iterable[dict]:
        for household in self._collections[HOUSEHOLD]:
            yield from household.get("members", [])

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def add_transaction(self, transaction: Transaction) -> str:
        async with self._lock:
            return self._insert(TRANSACTIONS, encode_record(transaction))

    async def update_transaction(self, transaction_id: str, updates: dict[str, Any]) -> bool:
        async with self._lock:
            return self._update_by_id(TRANSACTIONS, transaction_id, updates)

    async def delete_transaction(self, transaction_id: str) -> bool:
        object_id = to_object_id(transaction_id)
        async with self._lock:
            return self._delete_where(TRANSACTIONS, {"_id": object_id}) > 0

    async def find_transactions(
        self,
        predicate: Predicate,
        sort: Optional[SortSpec] = None,
        skip: int = 0,
        limit: int = 0,
    ) -> list[Transaction]:
        documents = self._find(TRANSACTIONS, predicate)
        if sort:
            field, order = sort
            documents = sorted(documents, key=_sort_key(field), reverse=order == SortOrder.DESC)
        documents = _paginate(documents, skip, limit)
        return [decode_record(Transaction, doc) for doc in documents]

    async def sum_amounts(self, predicate: Predicate) -> Optional[Decimal]:
        documents = self._find(TRANSACTIONS, predicate)
        if not documents:
            return None
        return sum(
            (Decimal(str(doc["amount"])) for doc in documents if isinstance(doc.get("amount"), (int, float))),
            Decimal("0"),
        )

    async def group_amounts(self, predicate: Predicate, group_field: str) -> list[GroupTotal]:
        totals: dict[Any, Decimal] = {}
        for doc in self._find(TRANSACTIONS, predicate):
            key = resolve_field(doc, group_field)
            key = None if key is _MISSING else key
            amount = doc.get("amount")
            increment = Decimal(str(amount)) if isinstance(amount, (int, float)) else Decimal("0")
            totals[key] = totals.get(key, Decimal("0")) + increment
        ordered = sorted(totals.items(), key=lambda item: item[1], reverse=True)
        return [
            GroupTotal(group=None if key is None else str(key), total=total)
            for key, total in ordered
        ]

    # -------------------------------------------------------------------------
    # Budgets
    # -------------------------------------------------------------------------

    async def upsert_budget(self, budget: Budget) -> str:
        document = encode_record(budget)
        identity = {"startDate": document["startDate"], "endDate": document["endDate"]}
        async with self._lock:
            for existing in self._find(BUDGETS, identity):
                self._set_fields(existing, document)
                return str(existing["_id"])
            return self._insert(BUDGETS, document)

    async def find_budget(self, predicate: Predicate) -> Optional[Budget]:
        for document in self._find(BUDGETS, predicate):
            return decode_record(Budget, document)
        return None

    # -------------------------------------------------------------------------
    # Goals
    # -------------------------------------------------------------------------

    async def add_goal(self, goal: FinancialGoal) -> str:
        async with self._lock:
            return self._insert(GOALS, encode_record(goal))

    async def update_goal(self, goal_id: str, updates: dict[str, Any]) -> bool:
        async with self._lock:
            return self._update_by_id(GOALS, goal_id, updates)

    async def find_goals(self, predicate: Predicate) -> list[FinancialGoal]:
        return [decode_record(FinancialGoal, doc) for doc in self._find(GOALS, predicate)]

    # -------------------------------------------------------------------------
    # Household members
    # -------------------------------------------------------------------------

    async def add_member(self, member: HouseholdMember) -> str:
        document = {"_id": ObjectId(), **encode_record(member)}
        async with self._lock:
            if not self._collections[HOUSEHOLD]:
                self._insert(HOUSEHOLD, {"members": []})
            household = self._collections[HOUSEHOLD][0]
            household.setdefault("members", []).append(document)
        return str(document["_id"])

    async def update_member(self, member_id: str, updates: dict[str, Any]) -> bool:
        object_id = to_object_id(member_id)
        async with self._lock:
            for member in self._members():
                if member.get("_id") == object_id:
                    return self._set_fields(member, encode_updates(updates))
        return False

    async def find_members(self, predicate: Predicate) -> list[HouseholdMember]:
        return [
            decode_record(HouseholdMember, member)
            for member in self._members()
            if matches(member, predicate)
        ]

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    async def add_category(self, category: Category) -> str:
        async with self._lock:
            return self._insert(CATEGORIES, encode_record(category))

    async def update_category(self, category_id: str, updates: dict[str, Any]) -> bool:
        async with self._lock:
            return self._update_by_id(CATEGORIES, category_id, updates)

    async def list_categories(self) -> list[Category]:
        return [decode_record(Category, doc) for doc in self._collections[CATEGORIES]]

    async def delete_category_cascade(self, category_id: str) -> tuple[bool, int]:
        object_id = to_object_id(category_id)
        async with self._lock:
            snapshot = copy.deepcopy(self._collections[CATEGORIES])
            try:
                deleted = self._delete_where(CATEGORIES, {"_id": object_id})
                children = self._delete_where(CATEGORIES, {"parentId": str(object_id)})
            except Exception as e:
                self._collections[CATEGORIES] = snapshot
                raise TransactionAbortedError(f"Category deletion rolled back: {e}") from e
        return deleted > 0, children
