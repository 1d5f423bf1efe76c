"""Aggregation of expense collections into export summaries."""

from typing import Dict, Sequence

from expenses.filters import sort_by_date
from expenses.models import CategoryTotal, Expense
from shared.formatters import format_category, format_date

from .models import DateRange, ExportSummary


def summarize(expenses: Sequence[Expense]) -> ExportSummary:
    """
    Compute totals, date span and per-category breakdown.

    Args:
        expenses: Expenses to aggregate; never modified

    Returns:
        ExportSummary for the given expenses
    """
    if not expenses:
        return ExportSummary()

    total_amount = 0.0
    category_summary: Dict[str, CategoryTotal] = {}

    for expense in expenses:
        total_amount += expense.amount

        category = format_category(expense.category)
        totals = category_summary.setdefault(category, CategoryTotal())
        totals.amount += expense.amount
        totals.count += 1

    ordered = sort_by_date(expenses)

    return ExportSummary(
        total_amount=total_amount,
        total_count=len(expenses),
        date_range=DateRange(
            start=format_date(ordered[0].date),
            end=format_date(ordered[-1].date)
        ),
        category_summary=category_summary,
        expenses=list(expenses)
    )

