"""Expense service for managing expenses."""

import logging
import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Union

from boto3.dynamodb.conditions import Attr, Key

from receipts.upload import PhotoUploader
from reports.exporter import ExpenseExporter, generation_time
from reports.models import ExportOptions
from shared.config import Settings
from shared.dynamodb import DynamoDBClient
from shared.exceptions import ExpenseTrackerException, NotFoundError, ValidationError

from .filters import filter_expenses, sort_by_date
from .models import (
    CategoryTotal,
    Expense,
    ExpenseCreate,
    ExpenseStats,
    ExpenseUpdate,
    FilterOptions,
    parse_expense,
    parse_expenses,
    parse_model
)

logger = logging.getLogger(__name__)

DATE_INDEX = 'user-date-index'
CATEGORY_INDEX = 'user-category-index'


class ExpenseService:
    """Service for managing expenses."""

    def __init__(
        self,
        settings: Settings,
        expenses_table: Optional[DynamoDBClient] = None,
        photo_uploader: Optional[PhotoUploader] = None
    ):
        """
        Initialize expense service.

        Args:
            settings: Deployment settings
            expenses_table: Optional preconfigured table client
            photo_uploader: Optional preconfigured photo uploader
        """
        self.settings = settings
        self.expenses_table = expenses_table or DynamoDBClient(settings.expenses_table, settings)
        self.photo_uploader = photo_uploader or PhotoUploader(settings)

    def create_expense(
        self,
        user_id: str,
        data: Union[ExpenseCreate, Dict[str, Any]]
    ) -> Expense:
        """
        Create an expense, uploading its receipt photo if one is attached.

        Args:
            user_id: User ID
            data: Expense fields

        Returns:
            Created expense

        Raises:
            ValidationError: If validation fails
            StorageError: If the photo upload fails
            DatabaseError: If the row cannot be written
        """
        if not user_id:
            raise ValidationError("User ID is required")

        request = parse_model(ExpenseCreate, data)
        expense_id = str(uuid.uuid4())

        photo_url = None
        if request.photo:
            photo_url = self.photo_uploader.upload_expense_photo(
                user_id=user_id,
                base64_data=request.photo.base64,
                mime_type=request.photo.mime_type,
                expense_id=expense_id
            )

        now = _timestamp()
        expense = Expense(
            id=expense_id,
            user_id=user_id,
            amount=request.amount,
            category=request.category,
            description=request.description,
            date=request.date,
            photo_url=photo_url,
            created_at=now,
            updated_at=now
        )

        try:
            self.expenses_table.put_item(expense.model_dump())
        except ExpenseTrackerException:
            if photo_url:
                self.photo_uploader.delete_expense_photo(photo_url)
            raise

        logger.info(f"Created expense {expense_id}")
        return expense

    def get_expense(self, user_id: str, expense_id: str) -> Expense:
        """
        Get expense by ID.

        Args:
            user_id: User ID
            expense_id: Expense ID

        Returns:
            Expense data

        Raises:
            NotFoundError: If expense not found
        """
        item = self.expenses_table.get_item({
            'user_id': user_id,
            'id': expense_id
        })

        if not item:
            raise NotFoundError("Expense not found")

        return parse_expense(item)

    def list_expenses(
        self,
        user_id: str,
        filters: Optional[Union[FilterOptions, Dict[str, Any]]] = None,
        limit: Optional[int] = None,
        offset: int = 0
    ) -> List[Expense]:
        """
        List expenses for a user, newest first.

        Category and date bounds narrow the store query; every constraint is
        then applied exactly by filter_expenses.

        Args:
            user_id: User ID
            filters: Optional filter options
            limit: Optional maximum number of results
            offset: Number of matching results to skip

        Returns:
            Matching expenses
        """
        filters = parse_model(FilterOptions, filters)

        if filters.category:
            items = self._query_by_category(user_id, filters)
        else:
            items = self._query_by_date_range(user_id, filters)

        expenses = sort_by_date(
            filter_expenses(parse_expenses(items), filters),
            newest_first=True
        )

        end = offset + limit if limit else None
        return expenses[offset:end]

    def _query_by_category(self, user_id: str, filters: FilterOptions) -> List[Dict[str, Any]]:
        """Query expenses by category."""
        key_condition = Key('user_id').eq(user_id) & Key('category').eq(filters.category)

        lower, upper = _widened_bounds(filters)
        filter_expr = None
        if lower and upper:
            filter_expr = Attr('date').between(lower, upper)
        elif lower:
            filter_expr = Attr('date').gte(lower)
        elif upper:
            filter_expr = Attr('date').lte(upper)

        return self.expenses_table.query_all(
            key_condition_expression=key_condition,
            filter_expression=filter_expr,
            index_name=CATEGORY_INDEX,
            scan_forward=False
        )

    def _query_by_date_range(self, user_id: str, filters: FilterOptions) -> List[Dict[str, Any]]:
        """Query expenses by date range."""
        lower, upper = _widened_bounds(filters)

        if lower and upper:
            key_condition = Key('user_id').eq(user_id) & Key('date').between(lower, upper)
        elif lower:
            key_condition = Key('user_id').eq(user_id) & Key('date').gte(lower)
        elif upper:
            key_condition = Key('user_id').eq(user_id) & Key('date').lte(upper)
        else:
            key_condition = Key('user_id').eq(user_id)

        return self.expenses_table.query_all(
            key_condition_expression=key_condition,
            index_name=DATE_INDEX,
            scan_forward=False
        )

    def update_expense(
        self,
        user_id: str,
        expense_id: str,
        updates: Union[ExpenseUpdate, Dict[str, Any]]
    ) -> Expense:
        """
        Update expense.

        Args:
            user_id: User ID
            expense_id: Expense ID
            updates: Fields to update

        Returns:
            Updated expense

        Raises:
            NotFoundError: If expense not found
            ValidationError: If validation fails
        """
        changes = parse_model(ExpenseUpdate, updates).model_dump(exclude_none=True)
        if not changes:
            raise ValidationError("No updates provided")

        # Verify expense exists
        self.get_expense(user_id, expense_id)

        # Build update expression
        update_parts = []
        expr_values = {}
        expr_names = {}

        for key, value in changes.items():
            update_parts.append(f"#{key} = :{key}")
            expr_names[f'#{key}'] = key
            expr_values[f':{key}'] = value

        # Add updated_at timestamp
        update_parts.append("#updated_at = :updated_at")
        expr_names['#updated_at'] = 'updated_at'
        expr_values[':updated_at'] = _timestamp()

        updated = self.expenses_table.update_item(
            key={'user_id': user_id, 'id': expense_id},
            update_expression="SET " + ", ".join(update_parts),
            expression_values=expr_values,
            expression_names=expr_names
        )

        logger.info(f"Updated expense {expense_id}")
        return parse_expense(updated)

    def delete_expense(self, user_id: str, expense_id: str) -> None:
        """
        Delete expense and its receipt photo.

        Args:
            user_id: User ID
            expense_id: Expense ID

        Raises:
            NotFoundError: If expense not found
        """
        expense = self.get_expense(user_id, expense_id)

        self.expenses_table.delete_item({
            'user_id': user_id,
            'id': expense_id
        })

        if expense.photo_url and not self.photo_uploader.delete_expense_photo(expense.photo_url):
            logger.warning(f"Photo for expense {expense_id} was not removed: {expense.photo_url}")

        logger.info(f"Deleted expense {expense_id}")

    def get_stats(
        self,
        user_id: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None
    ) -> ExpenseStats:
        """
        Get expense statistics keyed by category.

        Args:
            user_id: User ID
            start_date: Optional start date (YYYY-MM-DD)
            end_date: Optional end date (YYYY-MM-DD)

        Returns:
            Totals and per-category breakdown
        """
        expenses = self.list_expenses(
            user_id,
            FilterOptions(start_date=start_date, end_date=end_date)
        )

        total_amount = 0.0
        category_summary: Dict[str, CategoryTotal] = {}

        for expense in expenses:
            total_amount += expense.amount

            totals = category_summary.setdefault(expense.category, CategoryTotal())
            totals.amount += expense.amount
            totals.count += 1

        return ExpenseStats(
            total_amount=total_amount,
            total_count=len(expenses),
            category_summary=category_summary
        )

    def export_expenses(
        self,
        user_id: str,
        options: Union[ExportOptions, Dict[str, Any]],
        filters: Optional[Union[FilterOptions, Dict[str, Any]]] = None,
        generated_at: Optional[datetime] = None
    ) -> Dict[str, str]:
        """
        Export the user's expenses.

        Args:
            user_id: User ID
            options: Export options (format, headers)
            filters: Optional filters applied before exporting
            generated_at: Optional generation time

        Returns:
            Dictionary with content, file_name and mime_type

        Raises:
            UnsupportedFormatError: If the format is not supported
        """
        options = parse_model(ExportOptions, options)
        generated_at = generation_time(generated_at)

        # Fail on an unknown format before touching the store
        mime_type = ExpenseExporter.get_mime_type(options.format)

        expenses = self.list_expenses(user_id, filters)
        content = ExpenseExporter.export(expenses, options, generated_at=generated_at)

        return {
            'content': content,
            'file_name': ExpenseExporter.get_file_name(options.format, generated_at.date()),
            'mime_type': mime_type
        }


def _widened_bounds(filters: FilterOptions):
    """
    Store-side date bounds wide enough for any UTC offset.

    Stored dates may carry a time and offset, so the exact calendar check is
    left to filter_expenses.
    """
    lower = upper = None

    if filters.start_date:
        lower = (date.fromisoformat(filters.start_date) - timedelta(days=1)).isoformat()
    if filters.end_date:
        upper = (date.fromisoformat(filters.end_date) + timedelta(days=2)).isoformat()

    return lower, upper


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()
