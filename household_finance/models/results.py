"""
Query and Operation Result Models

These are the shapes returned by read operations, aggregations,
suggestions, and the monthly report.
"""

import datetime as dt
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_serializer

from household_finance.formatting import format_decimal
from household_finance.models.records import Transaction


class GroupTotal(BaseModel):
    """Sum of amounts for one partition of a group-by-sum."""

    group: Optional[str] = Field(
        default=None,
        description="Value of the grouping field (None when missing)"
    )
    total: Decimal = Field(
        ...,
        description="Summed amount of the partition"
    )


class CategorySuggestion(BaseModel):
    """
    Outcome of keyword-overlap scoring.

    category is None when no category scored above the threshold,
    in which case confidence is 0.
    """

    category: Optional[str] = None
    confidence: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="Matched keywords / total keywords of the category"
    )

    @field_serializer('confidence')
    def serialize_confidence(self, confidence: float) -> str:
        return format_decimal(confidence)


class CategorizationResult(BaseModel):
    """A category for a description, existing or newly proposed."""

    category: str
    is_new_suggestion: bool


class AverageAmount(BaseModel):
    """Average transaction amount over a period, as decimal strings."""

    average: str
    count: str


class CategoryDeletionResult(BaseModel):
    """
    Detailed outcome of a cascading category delete.

    success is also True when nothing matched the id; use
    category_deleted to tell the two apart.
    """

    category_id: str
    success: bool
    category_deleted: bool = False
    subcategories_deleted: int = Field(default=0, ge=0)
    error_message: Optional[str] = None


class MonthlyExpenseReport(BaseModel):
    """Expenses recorded in one calendar month."""

    start_date: dt.date
    end_date: dt.date
    expenses: list[Transaction] = Field(default_factory=list)
