"""Rendering of expense collections into downloadable reports."""

import csv
import json
import logging
from datetime import date, datetime, timezone
from io import StringIO
from typing import Any, Dict, List, Optional, Sequence, Union

from expenses.filters import filter_expenses, sort_by_date
from expenses.models import Expense, FilterOptions, parse_model
from shared.exceptions import UnsupportedFormatError
from shared.formatters import (
    as_utc,
    format_category,
    format_currency,
    format_date,
    format_generated_date,
    round_half_up
)

from .models import ExportFormat, ExportOptions, ExportSummary
from .summary import summarize

logger = logging.getLogger(__name__)

JSON_FORMAT_VERSION = "Expense Export JSON v1.0"

RECENT_EXPENSES_LIMIT = 10

FILE_EXTENSIONS = {
    ExportFormat.CSV: 'csv',
    ExportFormat.JSON: 'json',
    ExportFormat.SUMMARY: 'txt'
}

MIME_TYPES = {
    ExportFormat.CSV: 'text/csv',
    ExportFormat.JSON: 'application/json',
    ExportFormat.SUMMARY: 'text/plain'
}


class ExpenseExporter:
    """Renders expenses plus derived totals as CSV, JSON or a text report."""

    @classmethod
    def export(
        cls,
        expenses: Sequence[Expense],
        options: Union[ExportOptions, Dict[str, Any]],
        generated_at: Optional[datetime] = None
    ) -> str:
        """
        Export expenses in the requested format.

        Args:
            expenses: Expenses to export
            options: ExportOptions or an equivalent dict
            generated_at: Generation time embedded in the output (default: now, UTC)

        Returns:
            Rendered report

        Raises:
            UnsupportedFormatError: If the format is not csv, json or summary
        """
        options = parse_model(ExportOptions, options)
        export_format = resolve_format(options.format)
        generated_at = generation_time(generated_at)

        expenses = select_expenses(expenses, options)
        summary = summarize(expenses)

        logger.info(f"Exporting {summary.total_count} expenses as {export_format.value}")

        if export_format is ExportFormat.CSV:
            return cls._render_csv(summary, options.include_headers, generated_at)
        if export_format is ExportFormat.JSON:
            return cls._render_json(summary, generated_at)
        return cls._render_summary(summary, generated_at)

    @classmethod
    def export_to_csv(
        cls,
        expenses: Sequence[Expense],
        include_headers: bool = True,
        generated_at: Optional[datetime] = None
    ) -> str:
        """Export expenses as CSV."""
        return cls._render_csv(
            summarize(expenses),
            include_headers,
            generation_time(generated_at)
        )

    @classmethod
    def export_to_json(
        cls,
        expenses: Sequence[Expense],
        generated_at: Optional[datetime] = None
    ) -> str:
        """Export expenses as a JSON document."""
        return cls._render_json(summarize(expenses), generation_time(generated_at))

    @classmethod
    def export_to_summary(
        cls,
        expenses: Sequence[Expense],
        generated_at: Optional[datetime] = None
    ) -> str:
        """Export expenses as a plain-text report."""
        return cls._render_summary(summarize(expenses), generation_time(generated_at))

    @staticmethod
    def get_file_name(export_format: str, today: Optional[date] = None) -> str:
        """
        Download file name for an export generated today.

        Args:
            export_format: csv, json or summary
            today: Generation date (default: current UTC date)

        Returns:
            File name such as expense-report-2024-01-05.csv
        """
        extension = FILE_EXTENSIONS[resolve_format(export_format)]
        today = today or datetime.now(timezone.utc).date()
        return f"expense-report-{today.isoformat()}.{extension}"

    @staticmethod
    def get_mime_type(export_format: str) -> str:
        """MIME type for an export format."""
        return MIME_TYPES[resolve_format(export_format)]

    @staticmethod
    def _render_csv(summary: ExportSummary, include_headers: bool, generated_at: datetime) -> str:
        output = StringIO()
        plain = csv.writer(output, lineterminator='\n')
        quoted = csv.writer(output, quoting=csv.QUOTE_NONNUMERIC, lineterminator='\n')

        if include_headers:
            output.write("# Expense Report\n")
            output.write(f"# Generated: {format_generated_date(generated_at)}\n")
            output.write(f"# Total Amount: {format_currency(summary.total_amount)}\n")
            output.write(f"# Total Expenses: {summary.total_count}\n")
            if summary.date_range.start and summary.date_range.end:
                output.write(
                    f"# Date Range: {summary.date_range.start} - {summary.date_range.end}\n"
                )
            output.write("#\n")

        plain.writerow(['Date', 'Description', 'Category', 'Amount'])

        for expense in summary.expenses:
            quoted.writerow([
                format_date(expense.date),
                expense.description,
                format_category(expense.category),
                f"${round_half_up(expense.amount, 2)}"
            ])

        if include_headers:
            output.write("\n# Category Summary\n")
            plain.writerow(['Category', 'Count', 'Total Amount'])
            for category, totals in summary.category_summary.items():
                quoted.writerow([
                    category,
                    totals.count,
                    f"${round_half_up(totals.amount, 2)}"
                ])

        csv_content = output.getvalue()
        output.close()

        return csv_content

    @staticmethod
    def _render_json(summary: ExportSummary, generated_at: datetime) -> str:
        date_range = summary.date_range.model_dump()

        export_data = {
            'metadata': {
                'generatedAt': iso_timestamp(generated_at),
                'totalAmount': json_number(summary.total_amount),
                'totalCount': summary.total_count,
                'dateRange': date_range,
                'format': JSON_FORMAT_VERSION
            },
            'summary': {
                'totalAmount': json_number(summary.total_amount),
                'totalCount': summary.total_count,
                'averageAmount': json_number(summary.average_amount),
                'categorySummary': {
                    category: {
                        'amount': json_number(totals.amount),
                        'count': totals.count
                    }
                    for category, totals in summary.category_summary.items()
                }
            },
            'expenses': [
                {
                    'id': expense.id,
                    'date': expense.date,
                    'description': expense.description,
                    'category': expense.category,
                    'amount': json_number(expense.amount),
                    'formattedAmount': format_currency(expense.amount),
                    'formattedDate': format_date(expense.date),
                    'formattedCategory': format_category(expense.category)
                }
                for expense in summary.expenses
            ]
        }

        return json.dumps(export_data, indent=2, ensure_ascii=False)

    @staticmethod
    def _render_summary(summary: ExportSummary, generated_at: datetime) -> str:
        lines: List[str] = [
            "EXPENSE REPORT SUMMARY",
            "=" * 51,
            "",
            f"Generated: {format_generated_date(generated_at)}"
        ]

        if summary.date_range.start and summary.date_range.end:
            lines.append(f"Period: {summary.date_range.start} - {summary.date_range.end}")

        lines.append(f"Total Expenses: {summary.total_count}")
        lines.append(f"Total Amount: {format_currency(summary.total_amount)}")
        if summary.total_count > 0:
            lines.append(f"Average Amount: {format_currency(summary.average_amount)}")
        lines.append("")

        if summary.category_summary:
            lines.append("CATEGORY BREAKDOWN")
            lines.append("-" * 30)

            breakdown = sorted(
                summary.category_summary.items(),
                key=lambda item: item[1].amount,
                reverse=True
            )

            for category, totals in breakdown:
                share = totals.amount / summary.total_amount * 100 if summary.total_amount else 0.0
                lines.append(
                    f"{category:<15} {totals.count:>3} expenses  "
                    f"{format_currency(totals.amount):>10} ({round_half_up(share, 1)}%)"
                )
            lines.append("")

        if summary.expenses:
            lines.append(f"RECENT EXPENSES (Top {RECENT_EXPENSES_LIMIT})")
            lines.append("-" * 30)

            recent = sort_by_date(summary.expenses, newest_first=True)[:RECENT_EXPENSES_LIMIT]

            for expense in recent:
                lines.append(
                    f"{format_date(expense.date):<12} "
                    f"{format_category(expense.category):<12} "
                    f"{format_currency(expense.amount):>10} "
                    f"{expense.description}"
                )

        return "\n".join(lines) + "\n"


def resolve_format(export_format: Any) -> ExportFormat:
    """
    Map a format name onto ExportFormat.

    Raises:
        UnsupportedFormatError: If the name is not a known format
    """
    try:
        return ExportFormat(getattr(export_format, 'value', export_format))
    except ValueError:
        raise UnsupportedFormatError(str(export_format))


def select_expenses(expenses: Sequence[Expense], options: ExportOptions) -> List[Expense]:
    """Apply the optional date range and category restriction of an export."""
    selected = list(expenses)

    if options.date_range:
        selected = filter_expenses(selected, FilterOptions(
            start_date=options.date_range.start,
            end_date=options.date_range.end
        ))

    if options.categories:
        allowed = set(options.categories)
        selected = [expense for expense in selected if expense.category in allowed]

    return selected


def json_number(value: float) -> Union[int, float]:
    """Emit integral floats without a fractional part."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def generation_time(generated_at: Optional[datetime] = None) -> datetime:
    """Export generation time in UTC; now when not given."""
    return as_utc(generated_at) if generated_at else datetime.now(timezone.utc)


def iso_timestamp(moment: datetime) -> str:
    """UTC timestamp with millisecond precision, e.g. 2024-01-05T10:00:00.000Z."""
    moment = as_utc(moment)
    return moment.strftime('%Y-%m-%dT%H:%M:%S.') + f"{moment.microsecond // 1000:03d}Z"
