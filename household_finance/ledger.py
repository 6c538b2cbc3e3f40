"""
Household Ledger

This module ties together storage, the query executor, the suggestion
engine and the audit logger, and exposes every outward operation:
1. Transactions (record, change, remove, list, sum, group)
2. Budgets, financial goals and household members
3. Categories (including the cascading delete)
4. Category suggestion and fallback categorization
5. Derived metrics and formatting

DESIGN DECISION: The ledger enforces the boundaries:
- Every raw value is parsed before storage is touched
- Writes are audited
- Partial updates only set the fields that were supplied
"""

from decimal import Decimal
from typing import Any, Optional, Union

import structlog

from household_finance.audit import AuditLogger
from household_finance.config import AppSettings, get_settings
from household_finance.formatting import Number, format_currency, format_decimal
from household_finance.models.audit import AuditEventType
from household_finance.models.records import (
    Budget,
    BudgetCategory,
    Category,
    FinancialGoal,
    GoalStatus,
    HouseholdMember,
    SortOrder,
    Transaction,
    TransactionGroupField,
    TransactionType,
)
from household_finance.models.results import (
    AverageAmount,
    CategorizationResult,
    CategoryDeletionResult,
    CategorySuggestion,
    GroupTotal,
)
from household_finance.queries import (
    QueryExecutor,
    average_transaction_amount,
    days_between,
)
from household_finance.services.storage import (
    InMemoryLedgerStorage,
    InvalidPayloadError,
    LedgerStorageInterface,
    MongoLedgerStorage,
    TransactionAbortedError,
)
from household_finance.suggestions import categorize_description, suggest_category
from household_finance.validation import (
    parse_amount,
    parse_date,
    parse_json_payload,
    validate_identifier,
)
from household_finance.validation.parsing import DateInput

logger = structlog.get_logger(__name__)

Amount = Union[str, int, float, Decimal]
ListPayload = Union[str, bytes, list]


def _supplied(value: Any) -> bool:
    """Absent (None) and empty-string parameters leave a field untouched."""
    return value is not None and value != ""


def _enum_value(enum_type: type, value: Any, name: str) -> Any:
    try:
        return enum_type(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_type)
        raise InvalidPayloadError(f"Invalid {name}: {value!r} (expected one of: {allowed})")


def _string_list(raw: ListPayload, name: str) -> list[str]:
    return parse_json_payload(raw, list[str], name)


class HouseholdLedger:
    """
    Facade over household finance storage.

    Every method is a stateless unit: it parses its inputs, performs
    its store calls (each of which acquires and releases its own
    handle), and returns plain models or strings.
    """

    def __init__(
        self,
        storage: Optional[LedgerStorageInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._settings = settings or get_settings().app
        self._storage = storage or _storage_for(self._settings)
        self._audit_logger = audit_logger
        self._queries = QueryExecutor(self._storage, audit_logger)

    @property
    def storage(self) -> LedgerStorageInterface:
        return self._storage

    async def _audit_write(
        self,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: Optional[str],
        changed: bool = True,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_record_written(
                event_type=event_type,
                entity_type=entity_type,
                entity_id=entity_id,
                changed=changed,
            )

    # =========================================================================
    # Transactions
    # =========================================================================

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
        """List transactions, optionally filtered, sorted and paginated."""
        return await self._queries.list_transactions(
            start_date, end_date, type, category, member_id,
            sort_by, sort_order, limit, skip,
        )

    async def sum_transactions(
        self,
        start_date: Optional[DateInput] = None,
        end_date: Optional[DateInput] = None,
        type: Optional[Union[str, TransactionType]] = None,
        category: Optional[str] = None,
        member_id: Optional[str] = None,
    ) -> str:
        """Total amount of matching transactions; "0" when none match."""
        return await self._queries.sum_transactions(start_date, end_date, type, category, member_id)

    async def group_transactions(
        self,
        start_date: Optional[DateInput] = None,
        end_date: Optional[DateInput] = None,
        type: Optional[Union[str, TransactionType]] = None,
        group_by: Union[str, TransactionGroupField] = TransactionGroupField.CATEGORY,
    ) -> list[GroupTotal]:
        """Totals per category, member or type, largest first."""
        return await self._queries.group_transactions(start_date, end_date, type, group_by)

    async def add_transaction(
        self,
        amount: Amount,
        type: Union[str, TransactionType],
        date: DateInput,
        category: str = "",
        description: str = "",
        member_id: Optional[str] = None,
    ) -> str:
        """
        Record a transaction.

        Returns:
            The new transaction's id

        Raises:
            InvalidPayloadError: If amount or type is invalid
            InvalidDateError: If date does not parse
            InvalidIdentifierError: If member_id is malformed
        """
        transaction = parse_json_payload(
            {
                "amount": parse_amount(amount),
                "type": _enum_value(TransactionType, type, "transaction type"),
                "date": parse_date(date),
                "category": category or "",
                "description": description or "",
                "member_id": validate_identifier(member_id) if member_id else None,
            },
            Transaction,
            "transaction",
        )
        transaction_id = await self._storage.add_transaction(transaction)
        await self._audit_write(AuditEventType.TRANSACTION_ADDED, "transaction", transaction_id)
        return transaction_id

    async def update_transaction(
        self,
        transaction_id: str,
        amount: Optional[Amount] = None,
        type: Optional[Union[str, TransactionType]] = None,
        date: Optional[DateInput] = None,
        category: Optional[str] = None,
        description: Optional[str] = None,
        member_id: Optional[str] = None,
    ) -> bool:
        """
        Change the supplied fields of a transaction.

        Returns True if a stored transaction was modified.
        """
        transaction_id = validate_identifier(transaction_id)
        updates: dict[str, Any] = {}
        if _supplied(amount):
            updates["amount"] = parse_amount(amount)
        if _supplied(type):
            updates["type"] = _enum_value(TransactionType, type, "transaction type")
        if _supplied(date):
            updates["date"] = parse_date(date)
        if _supplied(category):
            updates["category"] = category
        if _supplied(description):
            updates["description"] = description
        if _supplied(member_id):
            updates["member_id"] = validate_identifier(member_id)
        if not updates:
            return False

        changed = await self._storage.update_transaction(transaction_id, updates)
        await self._audit_write(AuditEventType.TRANSACTION_UPDATED, "transaction", transaction_id, changed)
        return changed

    async def delete_transaction(self, transaction_id: str) -> bool:
        transaction_id = validate_identifier(transaction_id)
        deleted = await self._storage.delete_transaction(transaction_id)
        await self._audit_write(AuditEventType.TRANSACTION_DELETED, "transaction", transaction_id, deleted)
        return deleted

    # =========================================================================
    # Budgets
    # =========================================================================

    async def save_budget(
        self,
        start_date: DateInput,
        end_date: DateInput,
        categories: Union[ListPayload, list[BudgetCategory]],
    ) -> str:
        """
        Create or replace the budget for exactly [start_date, end_date].

        categories is JSON text or a list of {category, amount} entries.

        Returns:
            The budget's id, whether it already existed or not
        """
        if isinstance(categories, list):
            categories = [
                entry.model_dump() if isinstance(entry, BudgetCategory) else entry
                for entry in categories
            ]
        budget = Budget(
            start_date=parse_date(start_date),
            end_date=parse_date(end_date),
            categories=parse_json_payload(categories, list[BudgetCategory], "categories"),
        )
        budget_id = await self._storage.upsert_budget(budget)
        await self._audit_write(AuditEventType.BUDGET_SAVED, "budget", budget_id)
        return budget_id

    async def find_budget(self, start_date: DateInput, end_date: DateInput) -> Optional[Budget]:
        """Get a budget whose period overlaps [start_date, end_date], or None."""
        return await self._queries.find_budget(start_date, end_date)

    # =========================================================================
    # Financial goals
    # =========================================================================

    async def create_goal(
        self,
        description: str,
        target_amount: Amount,
        target_date: DateInput,
        current_amount: Amount = 0,
        status: Union[str, GoalStatus] = GoalStatus.ONGOING,
    ) -> str:
        """Create a new financial goal and return its id."""
        goal = parse_json_payload(
            {
                "description": description,
                "target_amount": parse_amount(target_amount),
                "target_date": parse_date(target_date),
                "current_amount": parse_amount(current_amount or 0),
                "status": _enum_value(GoalStatus, status or GoalStatus.ONGOING, "goal status"),
            },
            FinancialGoal,
            "goal",
        )
        goal_id = await self._storage.add_goal(goal)
        await self._audit_write(AuditEventType.GOAL_CREATED, "goal", goal_id)
        return goal_id

    async def update_goal(
        self,
        goal_id: str,
        description: Optional[str] = None,
        target_amount: Optional[Amount] = None,
        target_date: Optional[DateInput] = None,
        current_amount: Optional[Amount] = None,
        status: Optional[Union[str, GoalStatus]] = None,
    ) -> bool:
        """Change the supplied fields of an existing goal."""
        goal_id = validate_identifier(goal_id)
        updates: dict[str, Any] = {}
        if _supplied(description):
            updates["description"] = description
        if _supplied(target_amount):
            updates["target_amount"] = parse_amount(target_amount)
        if _supplied(target_date):
            updates["target_date"] = parse_date(target_date)
        if _supplied(current_amount):
            updates["current_amount"] = parse_amount(current_amount)
        if _supplied(status):
            updates["status"] = _enum_value(GoalStatus, status, "goal status")
        if not updates:
            return False

        changed = await self._storage.update_goal(goal_id, updates)
        await self._audit_write(AuditEventType.GOAL_UPDATED, "goal", goal_id, changed)
        return changed

    async def list_goals(
        self,
        status: Optional[Union[str, GoalStatus]] = None,
        target_date_before: Optional[DateInput] = None,
        target_date_after: Optional[DateInput] = None,
    ) -> list[FinancialGoal]:
        return await self._queries.list_goals(status, target_date_before, target_date_after)

    # =========================================================================
    # Household members
    # =========================================================================

    async def add_household_member(
        self,
        name: Optional[str] = None,
        income: Amount = 0,
        income_streams: Optional[ListPayload] = None,
        expenses: Optional[ListPayload] = None,
        financial_goals: Optional[ListPayload] = None,
    ) -> str:
        """
        Add a member to the household and return the member's id.

        The list fields accept JSON text or Python lists of strings.
        """
        member = parse_json_payload(
            {
                "name": name,
                "income": parse_amount(income or 0),
                "income_streams": _string_list(income_streams or [], "income_streams"),
                "expenses": _string_list(expenses or [], "expenses"),
                "financial_goals": _string_list(financial_goals or [], "financial_goals"),
            },
            HouseholdMember,
            "member",
        )
        member_id = await self._storage.add_member(member)
        await self._audit_write(AuditEventType.MEMBER_ADDED, "member", member_id)
        return member_id

    async def update_member_finances(
        self,
        member_id: str,
        income: Optional[Amount] = None,
        income_streams: Optional[ListPayload] = None,
        expenses: Optional[ListPayload] = None,
        financial_goals: Optional[ListPayload] = None,
    ) -> bool:
        """
        Change the supplied financial fields of one household member.

        Fields that are not supplied keep their stored values, and the
        member keeps its id.
        """
        member_id = validate_identifier(member_id)
        updates: dict[str, Any] = {}
        if _supplied(income):
            updates["income"] = parse_amount(income)
        if _supplied(income_streams):
            updates["income_streams"] = _string_list(income_streams, "income_streams")
        if _supplied(expenses):
            updates["expenses"] = _string_list(expenses, "expenses")
        if _supplied(financial_goals):
            updates["financial_goals"] = _string_list(financial_goals, "financial_goals")
        if not updates:
            return False

        changed = await self._storage.update_member(member_id, updates)
        await self._audit_write(AuditEventType.MEMBER_UPDATED, "member", member_id, changed)
        return changed

    async def list_member_finances(
        self,
        min_income: Optional[Amount] = None,
        max_income: Optional[Amount] = None,
        income_stream: Optional[str] = None,
    ) -> list[HouseholdMember]:
        """Members whose own income and income streams match the filters."""
        return await self._queries.list_members(min_income, max_income, income_stream)

    # =========================================================================
    # Categories
    # =========================================================================

    async def list_categories(self) -> list[Category]:
        return await self._queries.list_categories()

    async def add_category(
        self,
        name: str,
        type: Union[str, TransactionType],
        parent_id: Optional[str] = None,
        keywords: Optional[ListPayload] = None,
    ) -> str:
        category = parse_json_payload(
            {
                "name": name,
                "type": _enum_value(TransactionType, type, "category type"),
                "parent_id": validate_identifier(parent_id) if parent_id else None,
                "keywords": _string_list(keywords or [], "keywords"),
            },
            Category,
            "category",
        )
        category_id = await self._storage.add_category(category)
        await self._audit_write(AuditEventType.CATEGORY_ADDED, "category", category_id)
        return category_id

    async def update_category(
        self,
        category_id: str,
        name: Optional[str] = None,
        type: Optional[Union[str, TransactionType]] = None,
        keywords: Optional[ListPayload] = None,
    ) -> bool:
        category_id = validate_identifier(category_id)
        updates: dict[str, Any] = {}
        if _supplied(name):
            if not name.strip():
                raise InvalidPayloadError("Category name cannot be blank")
            updates["name"] = name.strip()
        if _supplied(type):
            updates["type"] = _enum_value(TransactionType, type, "category type")
        if _supplied(keywords):
            updates["keywords"] = [
                keyword.strip() for keyword in _string_list(keywords, "keywords") if keyword.strip()
            ]
        if not updates:
            return False

        changed = await self._storage.update_category(category_id, updates)
        await self._audit_write(AuditEventType.CATEGORY_UPDATED, "category", category_id, changed)
        return changed

    async def delete_category(self, category_id: str) -> bool:
        """
        Delete a category together with its direct subcategories.

        Returns False when the deletion was rolled back. It also returns
        True when no category had that id; use delete_category_detailed
        to tell the cases apart.
        """
        result = await self.delete_category_detailed(category_id)
        return result.success

    async def delete_category_detailed(self, category_id: str) -> CategoryDeletionResult:
        """
        Delete a category and its direct subcategories, reporting what happened.

        The two deletions are atomic: if the subcategories cannot be
        removed the parent is restored.

        Raises:
            InvalidIdentifierError: If category_id is malformed
            StoreUnavailableError: If the store cannot be reached
        """
        category_id = validate_identifier(category_id)
        try:
            deleted, subcategories = await self._storage.delete_category_cascade(category_id)
        except TransactionAbortedError as e:
            logger.warning("category_delete_rolled_back", category_id=category_id, error=str(e))
            if self._audit_logger:
                await self._audit_logger.log_category_delete_rolled_back(
                    category_id=category_id,
                    error_message=str(e),
                )
            return CategoryDeletionResult(
                category_id=category_id,
                success=False,
                error_message=str(e),
            )

        if self._audit_logger:
            await self._audit_logger.log_category_deleted(
                category_id=category_id,
                category_deleted=deleted,
                subcategories_deleted=subcategories,
            )
        return CategoryDeletionResult(
            category_id=category_id,
            success=True,
            category_deleted=deleted,
            subcategories_deleted=subcategories,
        )

    # =========================================================================
    # Suggestions
    # =========================================================================

    async def suggest_category(self, description: str) -> CategorySuggestion:
        """Best-matching existing category for a description, if any."""
        categories = await self._queries.list_categories()
        suggestion = suggest_category(
            description or "",
            categories,
            threshold=self._settings.suggestion_confidence_threshold,
        )
        if self._audit_logger:
            await self._audit_logger.log_category_suggested(
                category=suggestion.category,
                confidence=suggestion.confidence,
            )
        return suggestion

    async def categorize(self, description: str) -> CategorizationResult:
        """Matching category, or a new name proposed from the description."""
        categories = await self._queries.list_categories()
        result = categorize_description(
            description or "",
            categories,
            threshold=self._settings.suggestion_confidence_threshold,
            min_word_length=self._settings.fallback_min_word_length,
        )
        if self._audit_logger:
            await self._audit_logger.log_category_suggested(
                category=result.category,
                is_new_suggestion=result.is_new_suggestion,
            )
        return result

    # =========================================================================
    # Metrics and formatting
    # =========================================================================

    async def average_transaction_amount(
        self,
        start_date: DateInput,
        end_date: DateInput,
        type: Optional[Union[str, TransactionType]] = "all",
    ) -> AverageAmount:
        return await average_transaction_amount(self._queries, start_date, end_date, type)

    @staticmethod
    def days_between(first: DateInput, second: DateInput) -> str:
        return days_between(first, second)

    @staticmethod
    def format_currency(amount: Number) -> str:
        return format_currency(amount)

    @staticmethod
    def format_decimal(value: Number) -> str:
        return format_decimal(value)


def _storage_for(settings: AppSettings) -> LedgerStorageInterface:
    if settings.storage_backend == "memory":
        return InMemoryLedgerStorage()
    return MongoLedgerStorage()


def create_ledger(
    settings: Optional[AppSettings] = None,
    with_audit: bool = True,
) -> HouseholdLedger:
    """
    Build a ledger from settings.

    The storage backend comes from STORAGE_BACKEND ("mongo" or "memory").
    """
    settings = settings or get_settings().app
    return HouseholdLedger(
        storage=_storage_for(settings),
        audit_logger=AuditLogger() if with_audit else None,
        settings=settings,
    )
