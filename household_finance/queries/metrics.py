"""
Derived metrics over stored transactions.
"""

from decimal import Decimal
from typing import Optional, Union

from household_finance.formatting import format_decimal
from household_finance.models.records import TransactionType
from household_finance.models.results import AverageAmount
from household_finance.queries.executor import QueryExecutor
from household_finance.validation import parse_date
from household_finance.validation.parsing import DateInput

ALL_TYPES = "all"


async def average_transaction_amount(
    executor: QueryExecutor,
    start_date: DateInput,
    end_date: DateInput,
    type: Optional[Union[str, TransactionType]] = ALL_TYPES,
) -> AverageAmount:
    """
    Average amount of transactions in [start_date, end_date].

    type "all" (or empty) counts income and expense together. With no
    matching transactions both the average and the count are "0".
    """
    type_filter = None if type in (None, "", ALL_TYPES) else type
    transactions = await executor.list_transactions(start_date, end_date, type_filter)
    count = len(transactions)
    if count == 0:
        return AverageAmount(average="0", count="0")

    total = await executor.sum_transactions(start_date, end_date, type_filter)
    return AverageAmount(
        average=format_decimal(Decimal(total) / count),
        count=str(count),
    )


def days_between(first: DateInput, second: DateInput) -> str:
    """Whole days between two dates, regardless of their order."""
    delta = parse_date(second) - parse_date(first)
    return str(abs(delta.days))
