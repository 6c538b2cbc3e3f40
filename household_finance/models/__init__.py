"""
Data Models Package

This package contains all Pydantic models used in the Household Finance system.
All data flowing through the system must conform to these schemas.
"""

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
    MonthlyExpenseReport,
)
from household_finance.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Record models
    "Budget",
    "BudgetCategory",
    "Category",
    "FinancialGoal",
    "GoalStatus",
    "HouseholdMember",
    "SortOrder",
    "Transaction",
    "TransactionGroupField",
    "TransactionType",
    # Result models
    "AverageAmount",
    "CategorizationResult",
    "CategoryDeletionResult",
    "CategorySuggestion",
    "GroupTotal",
    "MonthlyExpenseReport",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
