"""Category suggestion package."""

from household_finance.suggestions.engine import (
    categorize_description,
    keyword_confidence,
    propose_category_name,
    suggest_category,
)

__all__ = [
    "categorize_description",
    "keyword_confidence",
    "propose_category_name",
    "suggest_category",
]
