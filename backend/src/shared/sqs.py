"""
SQS utility functions for the payment service handoff.
"""
import boto3
import json
from typing import Any, Dict, List, Optional
from .config import config
from .logging import logger

sqs = boto3.client('sqs', region_name=config.AWS_REGION)


def send_message(
    queue_url: str,
    message_body: Dict[str, Any],
    group_id: Optional[str] = None,
    deduplication_id: Optional[str] = None
) -> bool:
    """
    Send a single message to an SQS queue.

    Args:
        queue_url: SQS queue URL
        message_body: Message body as dict (will be JSON serialized)
        group_id: MessageGroupId, required by FIFO queues
        deduplication_id: MessageDeduplicationId for FIFO queues

    Returns:
        True if sent successfully, False otherwise
    """
    params = {
        'QueueUrl': queue_url,
        'MessageBody': json.dumps(message_body, default=str)
    }
    if group_id:
        params['MessageGroupId'] = group_id
    if deduplication_id:
        params['MessageDeduplicationId'] = deduplication_id

    try:
        sqs.send_message(**params)
        logger.info(f"Message sent to {queue_url}")
        return True
    except Exception as e:
        logger.error(f"Error sending message to SQS: {e}")
        return False


def parse_records(event: dict) -> List[Dict[str, Any]]:
    """Decode the JSON bodies of an SQS-triggered Lambda event; bad bodies are skipped."""
    messages = []
    for record in event.get('Records', []):
        try:
            messages.append(json.loads(record.get('body') or '{}'))
        except json.JSONDecodeError:
            logger.warning(f"Skipping malformed SQS message {record.get('messageId')}")
    return messages
