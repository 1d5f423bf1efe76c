"""Lambda handler for expense table stream events."""

import json
import os
import logging
from collections import Counter
from typing import Dict, Any, List
import sys

# Add parent directory to path for imports
sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

from shared.config import Settings
from shared.exceptions import ValidationError
from expenses.changes import ExpenseFeed, parse_stream_record, stream_user_id

# Built once per container
settings = Settings.from_env()

# Configure logging
logger = logging.getLogger()
logger.setLevel(settings.log_level)


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Lambda handler for DynamoDB Streams events on the expenses table.

    Decodes every record into an INSERT, UPDATE or DELETE change and folds
    each user's changes into an ExpenseFeed. Records that are not expense
    changes are logged and skipped.

    Args:
        event: DynamoDB Streams event
        context: Lambda context

    Returns:
        Processing result
    """
    records = event.get('Records', [])
    logger.info(f"Stream processor triggered with {len(records)} records")

    try:
        changes = Counter()
        skipped = 0
        by_user: Dict[str, List[Dict[str, Any]]] = {}

        for record in records:
            try:
                change = parse_stream_record(record)
            except ValidationError as e:
                logger.warning(f"Skipping stream record {record.get('eventID')}: {e.message}")
                skipped += 1
                continue

            changes[change.type] += 1
            user_id = stream_user_id(record)
            if user_id:
                by_user.setdefault(user_id, []).append(record)

        users = {}
        for user_id, user_records in by_user.items():
            feed = ExpenseFeed(user_id)
            expenses = feed.handle_stream_event({'Records': user_records})
            users[user_id] = [expense.id for expense in expenses]
            logger.info(f"Applied {len(user_records)} changes for user {user_id}")

        return {
            'statusCode': 200,
            'body': json.dumps({
                'message': 'Processing complete',
                'processed': sum(changes.values()),
                'skipped': skipped,
                'changes': dict(changes),
                'users': users
            })
        }

    except Exception as e:
        logger.error(f"Stream processing failed: {str(e)}", exc_info=True)
        return {
            'statusCode': 500,
            'body': json.dumps({'error': str(e)})
        }
