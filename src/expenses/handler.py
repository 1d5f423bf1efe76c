"""Lambda handler for expense operations."""

import json
import os
import logging
from typing import Dict, Any, Optional
import sys

# Add parent directory to path for imports
sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

from shared.config import Settings
from shared.response import (
    success_response,
    error_response,
    file_response,
    validation_error_response,
    not_found_response,
    unauthorized_response
)
from shared.exceptions import ExpenseTrackerException, ValidationError, NotFoundError
from expenses.service import ExpenseService

FILTER_PARAMS = (
    'category', 'search',
    'start_date', 'startDate', 'end_date', 'endDate',
    'min_amount', 'minAmount', 'max_amount', 'maxAmount'
)

# Built once per container
settings = Settings.from_env()

# Configure logging
logger = logging.getLogger()
logger.setLevel(settings.log_level)

# Initialize service
expense_service = ExpenseService(settings)


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Lambda handler for expense operations.

    Handles:
    - GET /expenses - List expenses
    - POST /expenses - Create expense
    - GET /expenses/stats - Get expense statistics
    - GET /expenses/export - Export expenses as csv, json or summary
    - GET /expenses/{id} - Get expense details
    - PUT /expenses/{id} - Update expense
    - DELETE /expenses/{id} - Delete expense

    Args:
        event: Lambda event
        context: Lambda context

    Returns:
        API Gateway response
    """
    try:
        # Log request
        logger.info(f"Request: {event.get('httpMethod')} {event.get('path')}")

        # Get user ID from Cognito authorizer
        user_id = get_user_id(event)
        if not user_id:
            return unauthorized_response()

        # Get HTTP method and path
        http_method = event.get('httpMethod')
        path = (event.get('path') or '').rstrip('/')

        # Route request
        if path == '/expenses' and http_method == 'GET':
            return handle_list(event, user_id)
        elif path == '/expenses' and http_method == 'POST':
            return handle_create(event, user_id)
        elif path == '/expenses/stats' and http_method == 'GET':
            return handle_stats(event, user_id)
        elif path == '/expenses/export' and http_method == 'GET':
            return handle_export(event, user_id)
        elif path.startswith('/expenses/') and http_method == 'GET':
            return handle_get(event, user_id)
        elif path.startswith('/expenses/') and http_method == 'PUT':
            return handle_update(event, user_id)
        elif path.startswith('/expenses/') and http_method == 'DELETE':
            return handle_delete(event, user_id)
        else:
            return error_response("Route not found", status_code=404)

    except ValidationError as e:
        return validation_error_response(e.message)
    except NotFoundError as e:
        return not_found_response(e.message)
    except ExpenseTrackerException as e:
        logger.error(f"Application error: {str(e)}")
        return error_response(e.message, status_code=e.status_code)
    except Exception as e:
        logger.error(f"Unexpected error: {str(e)}", exc_info=True)
        return error_response("Internal server error", status_code=500)


def handle_list(event: Dict[str, Any], user_id: str) -> Dict[str, Any]:
    """List expenses matching the query string filters, newest first."""
    query_params = event.get('queryStringParameters') or {}

    limit = parse_int(query_params.get('limit'), 'limit')
    offset = parse_int(query_params.get('offset'), 'offset') or 0

    expenses = expense_service.list_expenses(
        user_id=user_id,
        filters=get_filters(query_params),
        limit=limit,
        offset=offset
    )

    return success_response(
        data={
            'expenses': [expense.model_dump() for expense in expenses],
            'count': len(expenses)
        },
        message=f"Retrieved {len(expenses)} expenses"
    )


def handle_create(event: Dict[str, Any], user_id: str) -> Dict[str, Any]:
    """Create an expense from the JSON body."""
    body = parse_body(event)

    expense = expense_service.create_expense(user_id, body)

    logger.info(f"Expense created successfully: {expense.id}")

    return success_response(
        data=expense.model_dump(),
        message="Expense created successfully",
        status_code=201
    )


def handle_get(event: Dict[str, Any], user_id: str) -> Dict[str, Any]:
    """Handle get expense details."""
    expense_id = get_expense_id(event)

    expense = expense_service.get_expense(user_id, expense_id)

    return success_response(data=expense.model_dump())


def handle_update(event: Dict[str, Any], user_id: str) -> Dict[str, Any]:
    """Handle update expense."""
    expense_id = get_expense_id(event)
    body = parse_body(event)

    if not body:
        return validation_error_response("No updates provided")

    updated_expense = expense_service.update_expense(user_id, expense_id, body)

    logger.info(f"Expense updated successfully: {expense_id}")

    return success_response(
        data=updated_expense.model_dump(),
        message="Expense updated successfully"
    )


def handle_delete(event: Dict[str, Any], user_id: str) -> Dict[str, Any]:
    """Handle delete expense."""
    expense_id = get_expense_id(event)

    expense_service.delete_expense(user_id, expense_id)

    logger.info(f"Expense deleted successfully: {expense_id}")

    return success_response(message="Expense deleted successfully")


def handle_stats(event: Dict[str, Any], user_id: str) -> Dict[str, Any]:
    """Totals per category, optionally bounded by start and end date."""
    query_params = event.get('queryStringParameters') or {}

    stats = expense_service.get_stats(
        user_id=user_id,
        start_date=query_params.get('start_date') or query_params.get('startDate'),
        end_date=query_params.get('end_date') or query_params.get('endDate')
    )

    return success_response(
        data=stats.model_dump(),
        message="Statistics calculated successfully"
    )


def handle_export(event: Dict[str, Any], user_id: str) -> Dict[str, Any]:
    """
    Render the filtered expenses as a file download.

    Query parameters: format (csv, json or summary; default csv),
    include_headers ("false" suppresses the CSV metadata blocks) and the
    list filters.
    """
    query_params = event.get('queryStringParameters') or {}

    export_format = query_params.get('format', 'csv')
    include_headers = query_params.get('include_headers', query_params.get('includeHeaders', 'true'))

    logger.info(f"Exporting expenses for user {user_id} as {export_format}")

    result = expense_service.export_expenses(
        user_id=user_id,
        options={
            'format': export_format,
            'include_headers': str(include_headers).lower() != 'false'
        },
        filters=get_filters(query_params)
    )

    return file_response(
        content=result['content'],
        file_name=result['file_name'],
        mime_type=result['mime_type']
    )


def get_filters(query_params: Dict[str, Any]) -> Dict[str, Any]:
    """Pick filter fields out of query string parameters."""
    return {
        key: value
        for key, value in query_params.items()
        if key in FILTER_PARAMS and value not in (None, '')
    }


def get_expense_id(event: Dict[str, Any]) -> str:
    """
    Extract expense ID from path parameters.

    Raises:
        ValidationError: If the ID is missing
    """
    path_params = event.get('pathParameters') or {}
    expense_id = path_params.get('id')

    if not expense_id:
        raise ValidationError("Expense ID is required")

    return expense_id


def parse_body(event: Dict[str, Any]) -> Dict[str, Any]:
    """
    Parse the JSON request body.

    Raises:
        ValidationError: If the body is not a JSON object
    """
    try:
        body = json.loads(event.get('body') or '{}')
    except json.JSONDecodeError:
        raise ValidationError("Invalid JSON body")

    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")

    return body


def parse_int(value: Optional[str], name: str) -> Optional[int]:
    """
    Parse an optional non-negative integer query parameter.

    Raises:
        ValidationError: If the value is not a non-negative integer
    """
    if value in (None, ''):
        return None

    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {name}")

    if number < 0:
        raise ValidationError(f"Invalid {name}")

    return number


def get_user_id(event: Dict[str, Any]) -> Optional[str]:
    """
    Extract user ID from Cognito authorizer claims.

    Args:
        event: Lambda event

    Returns:
        User ID (sub claim)
    """
    request_context = event.get('requestContext') or {}
    authorizer = request_context.get('authorizer') or {}
    claims = authorizer.get('claims') or {}
    return claims.get('sub')
