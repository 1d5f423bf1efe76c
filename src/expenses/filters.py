"""Client-side filtering of expense collections."""

from typing import Any, Dict, List, Optional, Sequence, Union

from .models import Expense, FilterOptions, parse_model


def filter_expenses(
    expenses: Sequence[Expense],
    options: Optional[Union[FilterOptions, Dict[str, Any]]] = None
) -> List[Expense]:
    """
    Narrow expenses to those matching every active filter.

    Constraints combine with AND. Dates compare as UTC calendar dates in
    YYYY-MM-DD form, so plain string comparison is chronological. Input
    order is preserved and the input sequence is never modified.

    Args:
        expenses: Expenses to filter
        options: FilterOptions or a dict of the same fields (camelCase accepted)

    Returns:
        New list with the matching expenses
    """
    options = parse_model(FilterOptions, options)

    if options.is_empty():
        return list(expenses)

    return [expense for expense in expenses if matches(expense, options)]


def matches(expense: Expense, options: FilterOptions) -> bool:
    """Check one expense against the active constraints in options."""
    if options.category and expense.category != options.category:
        return False

    if options.search:
        if options.search.lower() not in expense.description.lower():
            return False

    if options.start_date or options.end_date:
        expense_date = expense.calendar_date

        if options.start_date and expense_date < options.start_date:
            return False

        if options.end_date and expense_date > options.end_date:
            return False

    if options.min_amount is not None and expense.amount < options.min_amount:
        return False

    if options.max_amount is not None and expense.amount > options.max_amount:
        return False

    return True


def sort_by_date(expenses: Sequence[Expense], newest_first: bool = False) -> List[Expense]:
    """Stable copy of expenses ordered by calendar date."""
    return sorted(expenses, key=lambda expense: expense.calendar_date, reverse=newest_first)
