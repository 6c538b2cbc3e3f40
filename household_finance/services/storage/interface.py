"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Run against MongoDB in production
2. Use in-memory storage for testing
3. Keep query and suggestion logic decoupled from the store

Queries are expressed as predicates: plain dicts mapping a document
field to either a value (equality) or a range such as
{"$gte": low, "$lte": high}. The filter builders in
household_finance.queries.filters produce them; every backend must
evaluate them with the same semantics.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Optional

from household_finance.models.records import (
    Budget,
    Category,
    FinancialGoal,
    HouseholdMember,
    SortOrder,
    Transaction,
)
from household_finance.models.results import GroupTotal


Predicate = dict[str, Any]
SortSpec = tuple[str, SortOrder]

# Collection names
TRANSACTIONS = "transactions"
BUDGETS = "budgets"
GOALS = "financialGoals"
HOUSEHOLD = "household"
CATEGORIES = "categories"


class LedgerStorageInterface(ABC):
    """
    Abstract interface for household finance storage.

    Any storage implementation must implement these methods. Update
    methods take partial field dicts keyed by model field names; only
    the given fields change.
    """

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    @abstractmethod
    async def add_transaction(self, transaction: Transaction) -> str:
        """
        Insert a transaction.

        Returns:
            The id assigned by the store

        Raises:
            StorageError: If the insert fails
        """
        pass

    @abstractmethod
    async def update_transaction(self, transaction_id: str, updates: dict[str, Any]) -> bool:
        """
        Apply a partial update to one transaction.

        Returns:
            True if a record was modified
        """
        pass

    @abstractmethod
    async def delete_transaction(self, transaction_id: str) -> bool:
        """
        Delete a transaction by id.

        Returns:
            True if a record was deleted
        """
        pass

    @abstractmethod
    async def find_transactions(
        self,
        predicate: Predicate,
        sort: Optional[SortSpec] = None,
        skip: int = 0,
        limit: int = 0,
    ) -> list[Transaction]:
        """
        List transactions matching a predicate.

        Args:
            predicate: Filter to apply
            sort: (document field, direction); store order when None
            skip: Number of sorted results to skip (0 = none)
            limit: Maximum number of results (0 = unbounded)

        Returns:
            Matching transactions, sorted then paginated
        """
        pass

    @abstractmethod
    async def sum_amounts(self, predicate: Predicate) -> Optional[Decimal]:
        """
        Sum the amount of all matching transactions.

        Returns:
            The total, or None when nothing matched
        """
        pass

    @abstractmethod
    async def group_amounts(self, predicate: Predicate, group_field: str) -> list[GroupTotal]:
        """
        Sum matching transaction amounts per value of group_field.

        Returns:
            One GroupTotal per distinct value, largest total first
        """
        pass

    # -------------------------------------------------------------------------
    # Budgets
    # -------------------------------------------------------------------------

    @abstractmethod
    async def upsert_budget(self, budget: Budget) -> str:
        """
        Save a budget, replacing any budget with the same exact date range.

        Returns:
            The id of the updated or created budget
        """
        pass

    @abstractmethod
    async def find_budget(self, predicate: Predicate) -> Optional[Budget]:
        """
        Get the first budget matching a predicate.

        Returns:
            The budget if found, None otherwise
        """
        pass

    # -------------------------------------------------------------------------
    # Goals
    # -------------------------------------------------------------------------

    @abstractmethod
    async def add_goal(self, goal: FinancialGoal) -> str:
        pass

    @abstractmethod
    async def update_goal(self, goal_id: str, updates: dict[str, Any]) -> bool:
        pass

    @abstractmethod
    async def find_goals(self, predicate: Predicate) -> list[FinancialGoal]:
        pass

    # -------------------------------------------------------------------------
    # Household members
    # -------------------------------------------------------------------------

    @abstractmethod
    async def add_member(self, member: HouseholdMember) -> str:
        """
        Add a member to the shared household document.

        The household document is created on first use.
        """
        pass

    @abstractmethod
    async def update_member(self, member_id: str, updates: dict[str, Any]) -> bool:
        pass

    @abstractmethod
    async def find_members(self, predicate: Predicate) -> list[HouseholdMember]:
        """
        List household members that individually match a predicate.

        Predicate fields name member fields (e.g. "income").
        """
        pass

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    @abstractmethod
    async def add_category(self, category: Category) -> str:
        pass

    @abstractmethod
    async def update_category(self, category_id: str, updates: dict[str, Any]) -> bool:
        pass

    @abstractmethod
    async def list_categories(self) -> list[Category]:
        pass

    @abstractmethod
    async def delete_category_cascade(self, category_id: str) -> tuple[bool, int]:
        """
        Delete a category and its direct subcategories atomically.

        Returns:
            (category_deleted, subcategories_deleted)

        Raises:
            TransactionAbortedError: If either delete failed; nothing was removed
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class InvalidIdentifierError(StorageError, ValueError):
    """A record id is not in the store's identifier format."""
    pass


class InvalidDateError(StorageError, ValueError):
    """A calendar date could not be parsed."""
    pass


class InvalidPayloadError(StorageError, ValueError):
    """A structured payload is malformed or has the wrong shape."""
    pass


class StoreUnavailableError(StorageError):
    """Could not connect to storage backend."""
    pass


class TransactionAbortedError(StorageError):
    """A multi-step write was rolled back."""
    pass


class CorruptRecordError(StorageError):
    """A stored document does not match its record schema."""
    pass
