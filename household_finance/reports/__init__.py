"""Scheduled reports."""

from household_finance.reports.monthly import (
    build_monthly_expense_report,
    main,
    month_bounds,
)

__all__ = ["build_monthly_expense_report", "main", "month_bounds"]
