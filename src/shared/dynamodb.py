"""DynamoDB access for expense rows."""

import logging
from contextlib import contextmanager
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Optional

import boto3
from botocore.exceptions import ClientError

from .config import Settings
from .exceptions import DatabaseError

logger = logging.getLogger(__name__)


@contextmanager
def store_errors(action: str) -> Iterator[None]:
    """Translate botocore client errors into DatabaseError."""
    try:
        yield
    except ClientError as e:
        logger.error(f"DynamoDB {action} failed: {e}")
        raise DatabaseError(f"Failed to {action}: {e}")


class DynamoDBClient:
    """Thin wrapper over one DynamoDB table; rows go in and out as plain dicts."""

    def __init__(self, table_name: str, settings: Settings):
        """
        Args:
            table_name: Name of the DynamoDB table
            settings: Deployment settings (region, LocalStack endpoint)
        """
        self.table_name = table_name
        self.table = boto3.resource(
            'dynamodb',
            region_name=settings.region,
            endpoint_url=settings.endpoint_url
        ).Table(table_name)

    def put_item(self, item: Dict[str, Any]) -> Dict[str, Any]:
        """Write a row, replacing any row with the same key."""
        with store_errors('put item'):
            self.table.put_item(Item=self.to_dynamodb(item))
        return item

    def get_item(self, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Read a row by key; None when absent."""
        with store_errors('get item'):
            item = self.table.get_item(Key=key).get('Item')
        return self.to_python(item) if item else None

    def update_item(
        self,
        key: Dict[str, Any],
        update_expression: str,
        expression_values: Dict[str, Any],
        expression_names: Optional[Dict[str, str]] = None
    ) -> Dict[str, Any]:
        """
        Apply an update expression and return the row as stored afterwards.

        Args:
            key: Primary key of the row
            update_expression: e.g. "SET #amount = :amount"
            expression_values: Values for the ":name" placeholders
            expression_names: Attribute names for the "#name" placeholders
        """
        request = {
            'Key': key,
            'UpdateExpression': update_expression,
            'ExpressionAttributeValues': self.to_dynamodb(expression_values),
            'ReturnValues': 'ALL_NEW'
        }
        if expression_names:
            request['ExpressionAttributeNames'] = expression_names

        with store_errors('update item'):
            attributes = self.table.update_item(**request)['Attributes']
        return self.to_python(attributes)

    def delete_item(self, key: Dict[str, Any]) -> None:
        with store_errors('delete item'):
            self.table.delete_item(Key=key)

    def query(
        self,
        key_condition_expression: Any,
        filter_expression: Optional[Any] = None,
        index_name: Optional[str] = None,
        limit: Optional[int] = None,
        scan_forward: bool = True,
        exclusive_start_key: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Run a single query page.

        Returns:
            {'items': [...], 'last_evaluated_key': key or None}
        """
        request = {
            'KeyConditionExpression': key_condition_expression,
            'ScanIndexForward': scan_forward
        }
        optional = {
            'FilterExpression': filter_expression,
            'IndexName': index_name,
            'Limit': limit,
            'ExclusiveStartKey': exclusive_start_key
        }
        request.update({name: value for name, value in optional.items() if value})

        with store_errors('query items'):
            response = self.table.query(**request)

        return {
            'items': [self.to_python(item) for item in response.get('Items', [])],
            'last_evaluated_key': response.get('LastEvaluatedKey')
        }

    def query_pages(self, page_size: int = 100, **kwargs: Any) -> Iterator[List[Dict[str, Any]]]:
        """Yield query results page by page until the key space is exhausted."""
        start_key = None
        while True:
            page = self.query(limit=page_size, exclusive_start_key=start_key, **kwargs)
            yield page['items']

            start_key = page['last_evaluated_key']
            if not start_key:
                return

    def query_all(self, page_size: int = 100, **kwargs: Any) -> List[Dict[str, Any]]:
        """All items of a query, in store order."""
        return [item for page in self.query_pages(page_size, **kwargs) for item in page]

    def batch_write(self, items: List[Dict[str, Any]]) -> None:
        """Write many rows using the table's batch writer."""
        with store_errors('batch write items'):
            with self.table.batch_writer() as batch:
                for item in items:
                    batch.put_item(Item=self.to_dynamodb(item))

    @staticmethod
    def to_dynamodb(value: Any) -> Any:
        """Floats become Decimal; None attributes are dropped."""
        if isinstance(value, dict):
            return {
                name: DynamoDBClient.to_dynamodb(item)
                for name, item in value.items()
                if item is not None
            }
        if isinstance(value, list):
            return [DynamoDBClient.to_dynamodb(item) for item in value]
        if isinstance(value, float):
            return Decimal(str(value))
        return value

    @staticmethod
    def to_python(value: Any) -> Any:
        """Decimals become int when integral, float otherwise."""
        if isinstance(value, dict):
            return {name: DynamoDBClient.to_python(item) for name, item in value.items()}
        if isinstance(value, list):
            return [DynamoDBClient.to_python(item) for item in value]
        if isinstance(value, Decimal):
            return int(value) if value % 1 == 0 else float(value)
        return value
