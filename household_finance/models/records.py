"""
Core Record Models for Household Finance

These models define the schemas for every record kept in the store.
They are designed to:
1. Enforce type safety at the boundary
2. Provide clear validation error messages
3. Be serializable for storage and reporting

DESIGN DECISION: Records carry no behaviour. Storage backends convert
them to documents and back; queries never mutate them.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """
    Direction of money movement.

    The type is the only discriminator between income and expense.
    Amount sign carries no meaning.
    """
    INCOME = "income"
    EXPENSE = "expense"


class GoalStatus(str, Enum):
    """Lifecycle of a financial goal."""
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class SortOrder(str, Enum):
    """Result ordering direction."""
    ASC = "asc"
    DESC = "desc"


class TransactionGroupField(str, Enum):
    """Transaction fields that group-by-sum may partition on."""
    CATEGORY = "category"
    MEMBER_ID = "memberId"
    TYPE = "type"


# =============================================================================
# TRANSACTIONS & CATEGORIES
# =============================================================================

class Transaction(BaseModel):
    """
    A single income or expense entry.

    member_id optionally ties the entry to a household member.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[str] = Field(
        default=None,
        description="Store-assigned identifier"
    )
    amount: Decimal = Field(
        ...,
        description="Transaction amount"
    )
    type: TransactionType = Field(
        ...,
        description="income or expense"
    )
    category: str = Field(
        default="",
        description="Free-form reference to a category name"
    )
    description: str = Field(
        default="",
        description="What the money was for"
    )
    date: dt.date = Field(
        ...,
        description="Calendar date of the transaction"
    )
    member_id: Optional[str] = Field(
        default=None,
        description="Household member this transaction belongs to"
    )


class Category(BaseModel):
    """
    An income or expense category.

    Categories form a two-level hierarchy through parent_id.
    Keywords are only used for category suggestion.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[str] = None
    name: str = Field(
        ...,
        min_length=1,
        description="Category name (unique by convention)"
    )
    type: TransactionType
    parent_id: Optional[str] = Field(
        default=None,
        description="Parent category id for subcategories"
    )
    keywords: list[str] = Field(
        default_factory=list,
        description="Words that hint a description belongs here"
    )

    @field_validator('keywords')
    @classmethod
    def drop_blank_keywords(cls, v: list[str]) -> list[str]:
        """Blank keywords would match every description."""
        return [keyword.strip() for keyword in v if keyword and keyword.strip()]


# =============================================================================
# BUDGETS & GOALS
# =============================================================================

class BudgetCategory(BaseModel):
    """Planned amount for one category within a budget period."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    category: str = Field(
        ...,
        min_length=1,
        description="Category name"
    )
    amount: Decimal = Field(
        ...,
        description="Planned amount"
    )


class Budget(BaseModel):
    """
    A budget plan for a date range.

    The (start_date, end_date) pair is the budget's identity for upserts.
    end_date >= start_date is expected but not enforced.
    """

    id: Optional[str] = None
    start_date: dt.date
    end_date: dt.date
    categories: list[BudgetCategory] = Field(default_factory=list)


class FinancialGoal(BaseModel):
    """A savings target with a deadline."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[str] = None
    description: str = Field(
        ...,
        description="What the goal is for"
    )
    target_amount: Decimal = Field(
        ...,
        description="Amount to reach"
    )
    target_date: dt.date = Field(
        ...,
        description="When the goal should be reached"
    )
    current_amount: Decimal = Field(
        default=Decimal("0"),
        description="Amount saved so far"
    )
    status: GoalStatus = Field(
        default=GoalStatus.ONGOING,
        description="Goal status"
    )


# =============================================================================
# HOUSEHOLD
# =============================================================================

class HouseholdMember(BaseModel):
    """
    A member of the household.

    Members are embedded in one shared household document.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[str] = None
    name: Optional[str] = None
    income: Decimal = Field(
        default=Decimal("0"),
        description="Income of the member"
    )
    income_streams: list[str] = Field(
        default_factory=list,
        description="Where income comes from (e.g. salary, investments)"
    )
    expenses: list[str] = Field(
        default_factory=list,
        description="Regular expenses the member covers"
    )
    financial_goals: list[str] = Field(
        default_factory=list,
        description="Ids of goals the member contributes to"
    )
