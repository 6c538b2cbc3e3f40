"""
Monthly Expense Report

Lists the expenses recorded in the current calendar month and writes
them to stdout as a single JSON document. Meant to be run on a schedule:

    monthly-expense-report
    monthly-expense-report --today 2024-02-10

Logs go to stderr so stdout carries only the report. A storage failure
ends the job with exit status 1 and no report.
"""

import argparse
import asyncio
import calendar
from datetime import date
from typing import Optional, Sequence

import structlog

from household_finance.audit import AuditLogger, configure_logging
from household_finance.config import get_settings
from household_finance.ledger import HouseholdLedger, create_ledger
from household_finance.models.records import SortOrder, TransactionType
from household_finance.models.results import MonthlyExpenseReport
from household_finance.services.storage import StorageError
from household_finance.validation import parse_date

logger = structlog.get_logger(__name__)


def month_bounds(today: date) -> tuple[date, date]:
    """First and last day (both inclusive) of the month containing today."""
    _, last_day = calendar.monthrange(today.year, today.month)
    return today.replace(day=1), today.replace(day=last_day)


async def build_monthly_expense_report(
    ledger: HouseholdLedger,
    today: Optional[date] = None,
    limit: Optional[int] = None,
) -> MonthlyExpenseReport:
    """Collect this month's expenses, oldest first."""
    today = today or date.today()
    if limit is None:
        limit = get_settings().app.monthly_report_limit
    start, end = month_bounds(today)

    expenses = await ledger.list_transactions(
        start_date=start,
        end_date=end,
        type=TransactionType.EXPENSE,
        sort_by="date",
        sort_order=SortOrder.ASC,
        limit=limit,
    )
    return MonthlyExpenseReport(start_date=start, end_date=end, expenses=expenses)


async def _run(ledger: HouseholdLedger, today: Optional[date]) -> MonthlyExpenseReport:
    audit_logger = AuditLogger()
    try:
        report = await build_monthly_expense_report(ledger, today)
    except StorageError as e:
        await audit_logger.log_error(error_type=type(e).__name__, error_message=str(e))
        raise
    await audit_logger.log_report_generated(
        start=report.start_date.isoformat(),
        end=report.end_date.isoformat(),
        expense_count=len(report.expenses),
    )
    return report


def _parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="monthly-expense-report",
        description="Print this month's expenses as JSON.",
    )
    parser.add_argument(
        "--today",
        type=parse_date,
        default=None,
        help="Report on the month containing this date (YYYY-MM-DD); defaults to today",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None, ledger: Optional[HouseholdLedger] = None) -> None:
    args = _parse_args(argv)
    configure_logging(get_settings().app.log_level)
    ledger = ledger or create_ledger()

    try:
        report = asyncio.run(_run(ledger, args.today))
    except StorageError as e:
        logger.error("monthly_report_failed", error=str(e))
        raise SystemExit(1) from e

    print(report.model_dump_json())


if __name__ == "__main__":
    main()
