"""
DynamoDB utility functions.

Reads log and return empty results on failure. Conditional and
transactional writes report conflicts explicitly so callers can fall
through to the next option instead of double-applying.
"""
import boto3
from decimal import Decimal
from typing import List, Dict, Any, Optional
from botocore.exceptions import ClientError
from boto3.dynamodb.types import TypeSerializer
from .config import config
from .logging import logger

dynamodb = boto3.resource('dynamodb', region_name=config.AWS_REGION)

_serializer = TypeSerializer()


class TransactionConflict(Exception):
    """A condition inside a transaction failed at commit time."""

    def __init__(self, message: str, reasons: Optional[List[str]] = None):
        super().__init__(message)
        self.reasons = reasons or []


def to_dynamo(value: Any) -> Any:
    """Convert floats (recursively) to Decimal, which is all DynamoDB accepts."""
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: to_dynamo(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_dynamo(v) for v in value]
    return value


def serialize(value: Any) -> Dict[str, Any]:
    """Serialize a Python value to a typed DynamoDB attribute value."""
    return _serializer.serialize(to_dynamo(value))


def serialize_item(item: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """Serialize every attribute of an item (None values are dropped)."""
    return {k: serialize(v) for k, v in item.items() if v is not None}


def build_put(table_name: str, item: Dict[str, Any], condition_expression: Optional[str] = None) -> dict:
    """Build a Put action for transact_write."""
    action = {
        'TableName': table_name,
        'Item': serialize_item(item)
    }
    if condition_expression:
        action['ConditionExpression'] = condition_expression
    return {'Put': action}


def build_update(
    table_name: str,
    key: Dict[str, Any],
    update_expression: str,
    expression_values: Optional[Dict[str, Any]] = None,
    condition_expression: Optional[str] = None,
    expression_names: Optional[Dict[str, str]] = None
) -> dict:
    """Build an Update action for transact_write."""
    action = {
        'TableName': table_name,
        'Key': serialize_item(key),
        'UpdateExpression': update_expression
    }
    if expression_values:
        action['ExpressionAttributeValues'] = {k: serialize(v) for k, v in expression_values.items()}
    if condition_expression:
        action['ConditionExpression'] = condition_expression
    if expression_names:
        action['ExpressionAttributeNames'] = expression_names
    return {'Update': action}


def build_delete(table_name: str, key: Dict[str, Any]) -> dict:
    """Build a Delete action for transact_write."""
    return {
        'Delete': {
            'TableName': table_name,
            'Key': serialize_item(key)
        }
    }


def transact_write(actions: List[dict]) -> None:
    """
    Execute actions as one all-or-nothing transaction.

    Raises:
        TransactionConflict: a condition failed (e.g. balance too low or
            status already changed by a concurrent request)
        ClientError: any other DynamoDB failure
    """
    try:
        dynamodb.meta.client.transact_write_items(TransactItems=actions)
    except ClientError as e:
        if e.response['Error']['Code'] == 'TransactionCanceledException':
            # Cancellation reasons correspond to the actions list order
            reasons = [
                r.get('Code', 'None')
                for r in e.response.get('CancellationReasons', [])
            ]
            raise TransactionConflict('Transaction cancelled', reasons) from e
        raise


def query(
    table_name: str,
    index_name: Optional[str] = None,
    key_condition: Optional[Any] = None,
    filter_expression: Optional[Any] = None,
    limit: Optional[int] = None,
    scan_forward: bool = True
) -> List[Dict[str, Any]]:
    """
    Query DynamoDB table or index, following pagination.

    Args:
        table_name: Name of the DynamoDB table
        index_name: Optional GSI name
        key_condition: Key condition expression
        filter_expression: Optional filter expression
        limit: Max items to return
        scan_forward: True for ascending, False for descending

    Returns:
        List of items matching the query
    """
    try:
        table = dynamodb.Table(table_name)

        query_params = {
            'ScanIndexForward': scan_forward
        }

        if index_name:
            query_params['IndexName'] = index_name
        if key_condition is not None:
            query_params['KeyConditionExpression'] = key_condition
        if filter_expression is not None:
            query_params['FilterExpression'] = filter_expression

        items = []
        while True:
            response = table.query(**query_params)
            items.extend(response.get('Items', []))
            if limit and len(items) >= limit:
                return items[:limit]
            if 'LastEvaluatedKey' not in response:
                return items
            query_params['ExclusiveStartKey'] = response['LastEvaluatedKey']

    except ClientError as e:
        logger.error(f"Error querying {table_name}: {e}")
        return []


def count(
    table_name: str,
    index_name: Optional[str] = None,
    key_condition: Optional[Any] = None,
    filter_expression: Optional[Any] = None
) -> int:
    """Count items matching a query without fetching them."""
    try:
        table = dynamodb.Table(table_name)

        query_params = {'Select': 'COUNT'}
        if index_name:
            query_params['IndexName'] = index_name
        if key_condition is not None:
            query_params['KeyConditionExpression'] = key_condition
        if filter_expression is not None:
            query_params['FilterExpression'] = filter_expression

        total = 0
        while True:
            response = table.query(**query_params)
            total += response.get('Count', 0)
            if 'LastEvaluatedKey' not in response:
                return total
            query_params['ExclusiveStartKey'] = response['LastEvaluatedKey']

    except ClientError as e:
        logger.error(f"Error counting {table_name}: {e}")
        return 0


def scan(
    table_name: str,
    filter_expression: Optional[Any] = None
) -> List[Dict[str, Any]]:
    """Scan a table with an optional filter, following pagination."""
    try:
        table = dynamodb.Table(table_name)

        scan_params = {}
        if filter_expression is not None:
            scan_params['FilterExpression'] = filter_expression

        items = []
        while True:
            response = table.scan(**scan_params)
            items.extend(response.get('Items', []))
            if 'LastEvaluatedKey' not in response:
                return items
            scan_params['ExclusiveStartKey'] = response['LastEvaluatedKey']

    except ClientError as e:
        logger.error(f"Error scanning {table_name}: {e}")
        return []


def get_item(table_name: str, key: Dict[str, Any], consistent: bool = False) -> Optional[Dict[str, Any]]:
    """Get a single item from DynamoDB."""
    try:
        table = dynamodb.Table(table_name)
        response = table.get_item(Key=key, ConsistentRead=consistent)
        return response.get('Item')
    except ClientError as e:
        logger.error(f"Error getting item from {table_name}: {e}")
        return None


def put_item(
    table_name: str,
    item: Dict[str, Any],
    condition_expression: Optional[str] = None
) -> bool:
    """
    Put an item. Returns False when the condition fails
    (e.g. attribute_not_exists on an item that is already there).
    """
    try:
        table = dynamodb.Table(table_name)
        params = {'Item': to_dynamo(item)}
        if condition_expression:
            params['ConditionExpression'] = condition_expression
        table.put_item(**params)
        return True
    except ClientError as e:
        if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
            logger.info(f"Conditional put skipped on {table_name}")
            return False
        raise


def update_item(
    table_name: str,
    key: Dict[str, Any],
    update_expression: str,
    expression_values: Optional[Dict[str, Any]] = None,
    expression_names: Optional[Dict[str, str]] = None,
    condition_expression: Optional[str] = None,
    return_values: str = 'ALL_NEW'
) -> Optional[Dict[str, Any]]:
    """
    Update an item in DynamoDB.

    Returns:
        The attributes selected by return_values (the updated item by
        default), or None when the condition failed
    """
    try:
        table = dynamodb.Table(table_name)

        params = {
            'Key': key,
            'UpdateExpression': update_expression,
            'ReturnValues': return_values
        }

        if expression_values:
            params['ExpressionAttributeValues'] = to_dynamo(expression_values)
        if expression_names:
            params['ExpressionAttributeNames'] = expression_names
        if condition_expression:
            params['ConditionExpression'] = condition_expression

        response = table.update_item(**params)
        return response.get('Attributes', {})

    except ClientError as e:
        if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
            logger.info(f"Conditional update skipped on {table_name}: {key}")
            return None
        raise
