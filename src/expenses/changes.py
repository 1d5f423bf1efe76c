"""Incremental updates of expense lists from table change events."""

import logging
from typing import Any, Dict, List, Optional, Sequence

from boto3.dynamodb.types import TypeDeserializer
from pydantic import TypeAdapter

from shared.dynamodb import DynamoDBClient
from shared.exceptions import ValidationError

from .filters import sort_by_date
from .models import DeleteChange, Expense, ExpenseChange, InsertChange, UpdateChange, parse_expense

logger = logging.getLogger(__name__)

_deserializer = TypeDeserializer()

_change_adapter = TypeAdapter(ExpenseChange)

STREAM_EVENT_TYPES = {
    'INSERT': 'INSERT',
    'MODIFY': 'UPDATE',
    'REMOVE': 'DELETE'
}


def parse_stream_record(record: Dict[str, Any]) -> ExpenseChange:
    """
    Decode one DynamoDB Streams record into a change event.

    Args:
        record: Stream record as delivered to the Lambda handler

    Returns:
        InsertChange, UpdateChange or DeleteChange

    Raises:
        ValidationError: If the record is not an expense change
    """
    event_name = record.get('eventName')
    change_type = STREAM_EVENT_TYPES.get(event_name)
    if not change_type:
        raise ValidationError(f"Unsupported change event: {event_name}")

    stream = record.get('dynamodb', {})

    if change_type == 'DELETE':
        keys = _deserialize(stream.get('Keys') or stream.get('OldImage') or {})
        if not keys.get('id'):
            raise ValidationError("Delete event without expense id")
        return DeleteChange(expense_id=keys['id'])

    image = stream.get('NewImage')
    if not image:
        raise ValidationError(f"{event_name} event without new image")

    expense = parse_expense(_deserialize(image))
    if change_type == 'INSERT':
        return InsertChange(record=expense)
    return UpdateChange(record=expense)


def parse_change(data: Dict[str, Any]) -> ExpenseChange:
    """Validate a change event already in {type, record | expense_id} form."""
    return _change_adapter.validate_python(data)


def apply_change(expenses: Sequence[Expense], change: ExpenseChange) -> List[Expense]:
    """
    Patch an expense list with one change event.

    The result is a new list ordered newest first; the input is untouched.
    Inserting an id that is already present replaces it, and updating an
    unknown id inserts it.

    Args:
        expenses: Current expenses, newest first
        change: Change to apply

    Returns:
        Patched list
    """
    if isinstance(change, DeleteChange):
        return [expense for expense in expenses if expense.id != change.expense_id]

    record = change.record
    patched = [expense for expense in expenses if expense.id != record.id]
    patched.insert(0, record)

    logger.debug(f"Applied {change.type} for expense {record.id}")
    return sort_by_date(patched, newest_first=True)


def _deserialize(image: Dict[str, Any]) -> Dict[str, Any]:
    item = {key: _deserializer.deserialize(value) for key, value in image.items()}
    return DynamoDBClient.to_python(item)


class ExpenseFeed:
    """In-memory list of one user's expenses, patched from change events."""

    def __init__(self, user_id: str, expenses: Sequence[Expense] = ()):
        self.user_id = user_id
        self.expenses: List[Expense] = sort_by_date(expenses, newest_first=True)

    def apply(self, change: ExpenseChange) -> List[Expense]:
        """Apply one change; changes for other users are ignored."""
        if not isinstance(change, DeleteChange) and change.record.user_id != self.user_id:
            return self.expenses

        self.expenses = apply_change(self.expenses, change)
        return self.expenses

    def handle_stream_event(self, event: Dict[str, Any]) -> List[Expense]:
        """
        Apply every record of a DynamoDB Streams event.

        Args:
            event: Stream event with a Records list

        Returns:
            Current expenses after all records are applied
        """
        for record in event.get('Records', []):
            try:
                change = parse_stream_record(record)
            except ValidationError as e:
                logger.warning(f"Skipping stream record {record.get('eventID')}: {e.message}")
                continue

            self.apply(change)

        return self.expenses


def stream_user_id(record: Dict[str, Any]) -> Optional[str]:
    """Owner of the row a stream record touches, if the record carries it."""
    stream = record.get('dynamodb', {})
    for image in (stream.get('NewImage'), stream.get('Keys'), stream.get('OldImage')):
        if image and 'user_id' in image:
            return _deserializer.deserialize(image['user_id'])
    return None
