"""
Category Suggestion Engine

A fixed keyword-overlap heuristic, not language understanding:

1. For each category with keywords, count the keywords that appear
   (case-insensitively) as substrings of the description.
2. confidence = matched / total keywords of that category.
3. Keep the category with the strictly highest confidence; the first
   one seen wins a tie.
4. Return it only if its confidence is strictly above the threshold.

When nothing qualifies, categorization falls back to proposing a new
category name taken from the description itself.

Everything here is a pure function of its arguments.
"""

from collections.abc import Iterable, Sequence

from household_finance.models.records import Category
from household_finance.models.results import CategorizationResult, CategorySuggestion

DEFAULT_CONFIDENCE_THRESHOLD = 0.5
DEFAULT_MIN_WORD_LENGTH = 3


def keyword_confidence(description: str, keywords: Sequence[str]) -> float:
    """
    Fraction of keywords found in the description.

    A category without keywords scores 0.
    """
    if not keywords:
        return 0.0
    text = description.lower()
    matched = sum(1 for keyword in keywords if keyword.lower() in text)
    return matched / len(keywords)


def suggest_category(
    description: str,
    categories: Iterable[Category],
    threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
) -> CategorySuggestion:
    """Pick the existing category whose keywords best cover the description."""
    best_match = None
    highest_confidence = 0.0

    for category in categories:
        if not category.keywords:
            continue
        confidence = keyword_confidence(description, category.keywords)
        if confidence > highest_confidence:
            best_match = category
            highest_confidence = confidence

    if best_match is not None and highest_confidence > threshold:
        return CategorySuggestion(category=best_match.name, confidence=highest_confidence)
    return CategorySuggestion(category=None, confidence=0.0)


def propose_category_name(
    description: str,
    min_word_length: int = DEFAULT_MIN_WORD_LENGTH,
) -> str:
    """
    Propose a new category name from a description.

    Takes the first lower-cased word longer than min_word_length, else
    the first word whatever its length. An empty description yields "".
    """
    words = description.lower().split()
    for word in words:
        if len(word) > min_word_length:
            return word
    return words[0] if words else ""


def categorize_description(
    description: str,
    categories: Iterable[Category],
    threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
    min_word_length: int = DEFAULT_MIN_WORD_LENGTH,
) -> CategorizationResult:
    """Use a matching category if there is one, otherwise propose a new one."""
    suggestion = suggest_category(description, categories, threshold)
    if suggestion.category:
        return CategorizationResult(category=suggestion.category, is_new_suggestion=False)
    return CategorizationResult(
        category=propose_category_name(description, min_word_length),
        is_new_suggestion=True,
    )
