"""Unit tests for the expense exporter."""

import csv
import json
import re
import pytest
from datetime import date, datetime, timedelta, timezone
from io import StringIO
import sys
import os

# Add src directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'src'))

from pydantic import ValidationError as PydanticValidationError

from expenses.models import Expense
from reports.exporter import ExpenseExporter
from reports.models import ExportOptions
from shared.exceptions import UnsupportedFormatError, ValidationError

GENERATED_AT = datetime(2024, 2, 1, 9, 30, 15, 250000, tzinfo=timezone.utc)


def data_rows(csv_content):
    """CSV rows that are neither comments nor blank."""
    lines = [line for line in csv_content.splitlines() if line and not line.startswith('#')]
    return list(csv.reader(StringIO('\n'.join(lines))))


class TestExpenseExporter:
    """Test cases for ExpenseExporter."""

    @pytest.fixture
    def expenses(self):
        """Lunch and taxi expenses."""
        return [
            Expense(id='e1', amount=12.50, category='food', description='Lunch', date='2024-01-05'),
            Expense(id='e2', amount=40, category='transport', description='Taxi, airport', date='2024-01-10')
        ]

    @pytest.fixture
    def many_expenses(self):
        """Twelve expenses over twelve days, inserted oldest first."""
        return [
            Expense(
                id=f'e{day}',
                amount=float(day),
                category='shopping' if day % 2 else 'food',
                description=f'Item {day}',
                date=f'2024-03-{day:02d}'
            )
            for day in range(1, 13)
        ]

    def test_csv_without_headers(self, expenses):
        """Test CSV output with the metadata blocks suppressed."""
        content = ExpenseExporter.export(expenses, {'format': 'csv', 'includeHeaders': False})

        assert content == (
            'Date,Description,Category,Amount\n'
            '"Jan 5, 2024","Lunch","Food","$12.50"\n'
            '"Jan 10, 2024","Taxi, airport","Transport","$40.00"\n'
        )
        assert '#' not in content

    def test_csv_with_headers(self, expenses):
        """Test CSV output with comment block and category summary."""
        content = ExpenseExporter.export(expenses, ExportOptions(format='csv'), generated_at=GENERATED_AT)

        assert content == (
            '# Expense Report\n'
            '# Generated: 2/1/2024\n'
            '# Total Amount: $52.50\n'
            '# Total Expenses: 2\n'
            '# Date Range: Jan 5, 2024 - Jan 10, 2024\n'
            '#\n'
            'Date,Description,Category,Amount\n'
            '"Jan 5, 2024","Lunch","Food","$12.50"\n'
            '"Jan 10, 2024","Taxi, airport","Transport","$40.00"\n'
            '\n'
            '# Category Summary\n'
            'Category,Count,Total Amount\n'
            '"Food",1,"$12.50"\n'
            '"Transport",1,"$40.00"\n'
        )

    def test_csv_escapes_quotes(self):
        """Test that embedded quotes are doubled and commas kept."""
        expenses = [
            Expense(id='q', amount=3, category='other', description='Sign "Open", large', date='2024-01-01')
        ]

        content = ExpenseExporter.export(expenses, {'format': 'csv', 'include_headers': False})

        assert '"Sign ""Open"", large"' in content

    def test_csv_round_trip(self):
        """Test that parsed data rows recover the exported fields."""
        expenses = [
            Expense(id='1', amount=9.99, category='food', description='Fish, chips', date='2024-01-02'),
            Expense(id='2', amount=1250, category='travel', description='Hotel "Grand", 2 nights', date='2024-01-03'),
            Expense(id='3', amount=0.5, category='other', description='"', date='2024-01-04T10:00:00Z')
        ]

        rows = data_rows(ExpenseExporter.export(expenses, {'format': 'csv', 'includeHeaders': False}))

        assert rows[0] == ['Date', 'Description', 'Category', 'Amount']
        assert rows[1:] == [
            ['Jan 2, 2024', 'Fish, chips', 'Food', '$9.99'],
            ['Jan 3, 2024', 'Hotel "Grand", 2 nights', 'Travel', '$1250.00'],
            ['Jan 4, 2024', '"', 'Other', '$0.50']
        ]

    def test_csv_empty(self):
        """Test CSV output for no expenses."""
        content = ExpenseExporter.export([], {'format': 'csv'}, generated_at=GENERATED_AT)

        assert '# Total Amount: $0.00' in content
        assert '# Total Expenses: 0' in content
        assert '# Date Range' not in content
        assert content.endswith('Category,Count,Total Amount\n')

    def test_json_document(self, expenses):
        """Test JSON metadata, summary and per-expense fields."""
        content = ExpenseExporter.export(expenses, {'format': 'json'}, generated_at=GENERATED_AT)
        document = json.loads(content)

        assert list(document) == ['metadata', 'summary', 'expenses']
        assert document['metadata'] == {
            'generatedAt': '2024-02-01T09:30:15.250Z',
            'totalAmount': 52.5,
            'totalCount': 2,
            'dateRange': {'start': 'Jan 5, 2024', 'end': 'Jan 10, 2024'},
            'format': 'Expense Export JSON v1.0'
        }
        assert document['summary'] == {
            'totalAmount': 52.5,
            'totalCount': 2,
            'averageAmount': 26.25,
            'categorySummary': {
                'Food': {'amount': 12.5, 'count': 1},
                'Transport': {'amount': 40, 'count': 1}
            }
        }
        assert document['expenses'][1] == {
            'id': 'e2',
            'date': '2024-01-10',
            'description': 'Taxi, airport',
            'category': 'transport',
            'amount': 40,
            'formattedAmount': '$40.00',
            'formattedDate': 'Jan 10, 2024',
            'formattedCategory': 'Transport'
        }

    def test_json_layout(self, expenses):
        """Test two-space indentation and integral amounts."""
        content = ExpenseExporter.export(expenses, {'format': 'json'}, generated_at=GENERATED_AT)

        assert content.startswith('{\n  "metadata": {\n    "generatedAt"')
        assert '"amount": 40,' in content
        assert '"amount": 12.5,' in content

    def test_json_round_trip(self, many_expenses):
        """Test that raw fields survive the JSON export."""
        document = json.loads(ExpenseExporter.export(many_expenses, {'format': 'json'}))

        assert len(document['expenses']) == len(many_expenses)
        for exported, expense in zip(document['expenses'], many_expenses):
            assert exported['amount'] == expense.amount
            assert exported['date'] == expense.date
            assert exported['category'] == expense.category

    def test_json_empty(self):
        """Test the JSON export of no expenses."""
        document = json.loads(ExpenseExporter.export([], {'format': 'json'}))

        assert document['expenses'] == []
        assert document['summary']['averageAmount'] == 0
        assert document['summary']['categorySummary'] == {}
        assert document['metadata']['dateRange'] == {'start': '', 'end': ''}

    def test_summary_report(self, expenses):
        """Test the plain-text report layout."""
        report = ExpenseExporter.export(expenses, {'format': 'summary'}, generated_at=GENERATED_AT)

        assert report.splitlines() == [
            'EXPENSE REPORT SUMMARY',
            '=' * 51,
            '',
            'Generated: 2/1/2024',
            'Period: Jan 5, 2024 - Jan 10, 2024',
            'Total Expenses: 2',
            'Total Amount: $52.50',
            'Average Amount: $26.25',
            '',
            'CATEGORY BREAKDOWN',
            '-' * 30,
            'Transport' + ' ' * 9 + '1 expenses' + ' ' * 6 + '$40.00 (76.2%)',
            'Food' + ' ' * 14 + '1 expenses' + ' ' * 6 + '$12.50 (23.8%)',
            '',
            'RECENT EXPENSES (Top 10)',
            '-' * 30,
            'Jan 10, 2024 Transport' + ' ' * 8 + '$40.00 Taxi, airport',
            'Jan 5, 2024  Food' + ' ' * 13 + '$12.50 Lunch'
        ]

    def test_summary_recent_expenses_by_date(self, many_expenses):
        """Test that the recent section lists the ten newest by date."""
        shuffled = many_expenses[6:] + many_expenses[:6]

        report = ExpenseExporter.export(shuffled, {'format': 'summary'})
        recent = report.split('RECENT EXPENSES (Top 10)\n' + '-' * 30 + '\n')[1].splitlines()

        assert len(recent) == 10
        assert recent[0].startswith('Mar 12, 2024')
        assert recent[-1].startswith('Mar 3, 2024')
        assert recent[0].endswith('Item 12')

    def test_summary_breakdown_sorted_by_amount(self, many_expenses):
        """Test the category breakdown order and percentages."""
        report = ExpenseExporter.export(many_expenses, {'format': 'summary'})

        # food: 2+4+...+12 = 42, shopping: 1+3+...+11 = 36, total 78
        shopping = report.index('Shopping')
        food = report.index('Food ')
        assert food < shopping
        assert '(53.8%)' in report
        assert '(46.2%)' in report

    def test_summary_empty(self):
        """Test the report for no expenses."""
        report = ExpenseExporter.export([], {'format': 'summary'}, generated_at=GENERATED_AT)

        assert report == (
            'EXPENSE REPORT SUMMARY\n'
            + '=' * 51 + '\n'
            '\n'
            'Generated: 2/1/2024\n'
            'Total Expenses: 0\n'
            'Total Amount: $0.00\n'
            '\n'
        )
        assert 'CATEGORY BREAKDOWN' not in report
        assert 'RECENT EXPENSES' not in report

    def test_generation_time_uses_utc_day(self, expenses):
        """Test that every generation stamp agrees on the UTC date."""
        evening_in_new_york = datetime(2024, 2, 1, 22, 0, tzinfo=timezone(timedelta(hours=-5)))

        report = ExpenseExporter.export(expenses, {'format': 'summary'}, generated_at=evening_in_new_york)
        csv_content = ExpenseExporter.export(expenses, {'format': 'csv'}, generated_at=evening_in_new_york)
        document = json.loads(
            ExpenseExporter.export(expenses, {'format': 'json'}, generated_at=evening_in_new_york)
        )

        assert 'Generated: 2/2/2024' in report
        assert '# Generated: 2/2/2024' in csv_content
        assert document['metadata']['generatedAt'] == '2024-02-02T03:00:00.000Z'

    @pytest.mark.parametrize('export_format', ['csv', 'json', 'summary'])
    def test_very_large_amount(self, export_format):
        """Test that amounts beyond 28 significant digits still render."""
        expenses = [Expense(id='big', amount=1e26, category='travel', description='Yacht', date='2024-01-01')]

        content = ExpenseExporter.export(expenses, {'format': export_format})

        assert '$100,000,000,000,000,00' in content or '$1000000000000000' in content

    def test_infinite_amount_is_rejected(self):
        """Test that an infinite amount never reaches the renderers."""
        with pytest.raises(PydanticValidationError):
            Expense(id='x', amount=float('inf'), category='food', description='x', date='2024-01-01')

    def test_unsupported_format(self, expenses):
        """Test that unknown formats raise instead of degrading."""
        with pytest.raises(UnsupportedFormatError, match='Unsupported export format: xml'):
            ExpenseExporter.export(expenses, {'format': 'xml'})

    def test_unsupported_format_is_a_validation_error(self):
        """Test that callers can handle the error as a bad request."""
        with pytest.raises(ValidationError):
            ExpenseExporter.export([], {'format': 'pdf'})

    @pytest.mark.parametrize('export_format', ['csv', 'json', 'summary'])
    def test_export_is_repeatable(self, expenses, export_format):
        """Test that identical inputs give identical output."""
        first = ExpenseExporter.export(expenses, {'format': export_format}, generated_at=GENERATED_AT)
        second = ExpenseExporter.export(expenses, {'format': export_format}, generated_at=GENERATED_AT)

        assert first == second

    def test_export_does_not_modify_input(self, many_expenses):
        """Test that sorting for the report works on a copy."""
        before = [expense.id for expense in many_expenses]

        ExpenseExporter.export(list(reversed(many_expenses)), {'format': 'summary'})
        ExpenseExporter.export(many_expenses, {'format': 'summary'})

        assert [expense.id for expense in many_expenses] == before

    def test_export_options_narrow_selection(self, many_expenses):
        """Test the optional date range and category restriction."""
        options = {
            'format': 'json',
            'dateRange': {'start': '2024-03-03', 'end': '2024-03-08'},
            'categories': ['food']
        }

        document = json.loads(ExpenseExporter.export(many_expenses, options))

        assert [e['id'] for e in document['expenses']] == ['e4', 'e6', 'e8']

    def test_format_helpers(self, expenses):
        """Test the per-format shortcuts match export()."""
        assert ExpenseExporter.export_to_csv(expenses, include_headers=False) == \
            ExpenseExporter.export(expenses, {'format': 'csv', 'includeHeaders': False})
        assert ExpenseExporter.export_to_summary(expenses, generated_at=GENERATED_AT) == \
            ExpenseExporter.export(expenses, {'format': 'summary'}, generated_at=GENERATED_AT)
        assert ExpenseExporter.export_to_json(expenses, generated_at=GENERATED_AT) == \
            ExpenseExporter.export(expenses, {'format': 'json'}, generated_at=GENERATED_AT)

    @pytest.mark.parametrize('export_format, expected', [
        ('csv', 'expense-report-2024-02-01.csv'),
        ('json', 'expense-report-2024-02-01.json'),
        ('summary', 'expense-report-2024-02-01.txt'),
    ])
    def test_get_file_name(self, export_format, expected):
        """Test download file names."""
        assert ExpenseExporter.get_file_name(export_format, date(2024, 2, 1)) == expected

    def test_get_file_name_defaults_to_today(self):
        """Test that the file name carries the generation date."""
        file_name = ExpenseExporter.get_file_name('csv')

        assert re.fullmatch(r'expense-report-\d{4}-\d{2}-\d{2}\.csv', file_name)

    @pytest.mark.parametrize('export_format, expected', [
        ('csv', 'text/csv'),
        ('json', 'application/json'),
        ('summary', 'text/plain'),
    ])
    def test_get_mime_type(self, export_format, expected):
        """Test MIME types."""
        assert ExpenseExporter.get_mime_type(export_format) == expected

    def test_helpers_reject_unknown_format(self):
        """Test that naming helpers reject unknown formats."""
        with pytest.raises(UnsupportedFormatError):
            ExpenseExporter.get_mime_type('xlsx')
        with pytest.raises(UnsupportedFormatError):
            ExpenseExporter.get_file_name('xlsx')


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
