"""
Order Intake.

Validates an order submission, stores the uploaded originals, persists the
Order together with its initial PENDING Task, settles funding through the
credit ledger and makes one best-effort auto-assignment attempt.

Uploads arrive base64-encoded in the JSON body:
    {"filename": "shoe.png", "contentType": "image/png", "data": "<base64>"}
"""
import base64
import binascii
import json
import os
import re
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional
from boto3.dynamodb.conditions import Key
from . import dynamo
from .assignment import try_auto_assign
from .config import config
from .credit_ledger import calculate_order_price, resolve_order_funding
from .logging import logger
from .models import (
    ImageType, OrderBackground, OrderPlatform, OrderPriority, OrderSourceType,
    OrderStatus, OrderStyle, TaskStatus,
)
from .s3_utils import delete_uploads, upload_original_image
from .utils import to_iso, utc_now

ALLOWED_MIME_TYPES = [
    'image/jpeg',
    'image/png',
    'image/webp',
    'image/gif',
    'image/heic',
    'image/heif',
]

ALLOWED_EXTENSIONS = ['.jpg', '.jpeg', '.png', '.webp', '.gif', '.heic', '.heif']

MIN_QUANTITY = 1
MAX_QUANTITY = 100
DEFAULT_QUANTITY = 5
DEFAULT_FORMAT = '1:1'
LEADING_INTEGER = re.compile(r'^\s*([+-]?\d+)')


class OrderValidationError(ValueError):
    """The submission was rejected; nothing was stored."""

    def __init__(self, message: str, details: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or []


def parse_quantity(raw: Any) -> int:
    """
    Quantity in [1, 100]; anything else becomes the default of 5.
    Only the leading integer counts, so "7.9" and 7.0 both give 7.
    """
    if isinstance(raw, bool):
        return DEFAULT_QUANTITY
    match = LEADING_INTEGER.match(str(raw))
    if not match:
        return DEFAULT_QUANTITY
    quantity = int(match.group(1))
    if quantity < MIN_QUANTITY or quantity > MAX_QUANTITY:
        return DEFAULT_QUANTITY
    return quantity


def parse_priority(raw: Any) -> str:
    """Known priority or NORMAL."""
    return raw if raw in OrderPriority.ALL else OrderPriority.NORMAL


def sanitize_filename(filename: str) -> str:
    """Keep only the base name and replace unsafe characters with '_'."""
    basename = os.path.basename((filename or '').replace('\\', '/'))
    return re.sub(r'[^a-zA-Z0-9._-]', '_', basename)


def validate_constraints(raw: Any) -> str:
    """The constraints field must be a JSON document; returns it unchanged."""
    constraints = raw if raw not in (None, '') else '[]'
    if not isinstance(constraints, str):
        # Already structured JSON in the request body
        return json.dumps(constraints)
    try:
        json.loads(constraints)
    except json.JSONDecodeError:
        raise OrderValidationError('Invalid constraints format')
    return constraints


def validate_uploads(images: Any, max_bytes: int = None) -> List[Dict[str, Any]]:
    """
    Decode and validate every uploaded file. Fail-closed: one bad file
    rejects the whole request, with every problem listed.

    Returns:
        List of {filename, contentType, extension, data}

    Raises:
        OrderValidationError
    """
    max_bytes = max_bytes or config.MAX_UPLOAD_BYTES
    max_mb = max_bytes // (1024 * 1024)
    files = []
    errors = []

    for upload in images if isinstance(images, list) else []:
        if not isinstance(upload, dict):
            errors.append('Invalid file entry')
            continue

        name = upload.get('filename') or 'unnamed'
        if not isinstance(name, str):
            errors.append('Invalid file name')
            continue

        content_type = upload.get('contentType') or ''
        encoded = upload.get('data') or ''
        if not isinstance(encoded, str):
            errors.append(f"File {name} has invalid data")
            continue

        try:
            data = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError):
            errors.append(f"File {name} is not valid base64")
            continue

        if len(data) > max_bytes:
            errors.append(f"File {name} exceeds maximum size of {max_mb}MB")
            continue

        if content_type not in ALLOWED_MIME_TYPES:
            errors.append(f"File {name} has invalid type: {content_type}")
            continue

        extension = os.path.splitext(name)[1].lower()
        if extension not in ALLOWED_EXTENSIONS:
            errors.append(f"File {name} has invalid extension: {extension}")
            continue

        files.append({
            'filename': name,
            'contentType': content_type,
            'extension': extension,
            'data': data
        })

    if errors:
        raise OrderValidationError('Invalid files', errors)
    if not files:
        raise OrderValidationError('At least one image is required')
    return files


def _optional_choice(body: Dict[str, Any], field: str, choices: tuple, errors: List[str]) -> Optional[str]:
    value = body.get(field) or None
    if value is not None and value not in choices:
        errors.append(f"{field} must be one of {', '.join(choices)}")
    return value


def parse_order_request(body: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate the order submission body.

    Raises:
        OrderValidationError
    """
    constraints = validate_constraints(body.get('constraints'))

    errors = []
    style = _optional_choice(body, 'style', OrderStyle.ALL, errors)
    platform = _optional_choice(body, 'platform', OrderPlatform.ALL, errors)
    background = _optional_choice(body, 'background', OrderBackground.ALL, errors)
    if errors:
        raise OrderValidationError('Invalid order options', errors)

    files = validate_uploads(body.get('images'))

    return {
        'quantity': parse_quantity(body.get('quantity')),
        'priority': parse_priority(body.get('priority') or OrderPriority.NORMAL),
        'instructions': body.get('instructions') or '',
        'style': style,
        'platform': platform,
        'background': background,
        'format': body.get('format') or DEFAULT_FORMAT,
        'constraints': constraints,
        'deliveryEmailsOverride': body.get('deliveryEmailsOverride') or None,
        'notificationPhoneOverride': body.get('notificationPhoneOverride') or None,
        'files': files
    }


def store_uploads(files: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Upload validated files and return the image records for the order."""
    images = []
    for upload in files:
        original_name = sanitize_filename(upload['filename'])
        extension = os.path.splitext(original_name)[1].lower()
        # Re-check after sanitization
        safe_extension = extension if extension in ALLOWED_EXTENSIONS else '.jpg'

        try:
            key = upload_original_image(upload['data'], safe_extension, upload['contentType'])
        except Exception:
            delete_uploads([image['url'] for image in images])
            raise
        images.append({
            'url': key,
            'type': ImageType.ORIGINAL,
            'filename': original_name,
            'mimeType': upload['contentType'],
            'sizeBytes': len(upload['data'])
        })
    return images


def create_order(
    user: Dict[str, Any],
    request: Dict[str, Any],
    settings: Dict[str, Any],
    now: Optional[datetime] = None
) -> Dict[str, Any]:
    """
    Persist a validated order with its first task, settle funding and try
    to assign the task.

    Args:
        user: Users table item of the client (userId, companyId, ...)
        request: Output of parse_order_request
        settings: System settings dict
        now: Current time (defaults to utc now)

    Returns:
        Dict with order, task, funding and assignment (None if unassigned)
    """
    now = now or utc_now()
    timestamp = to_iso(now)
    order_id = str(uuid.uuid4())
    task_id = str(uuid.uuid4())

    images = store_uploads(request['files'])

    order = {
        'orderId': order_id,
        'userId': user['userId'],
        'companyId': user.get('companyId'),
        'status': OrderStatus.PENDING_INPUT,
        'sourceType': OrderSourceType.UPLOAD,
        'quantity': request['quantity'],
        'priority': request['priority'],
        'instructions': request['instructions'],
        'style': request['style'],
        'platform': request['platform'],
        'background': request['background'],
        'format': request['format'],
        'constraints': request['constraints'],
        'priceInCents': calculate_order_price(request['quantity'], request['priority'], settings),
        'isPaid': False,
        'usedFreeCredit': False,
        'creditsUsed': 0,
        'deliveryEmailsOverride': request['deliveryEmailsOverride'],
        'notificationPhoneOverride': request['notificationPhoneOverride'],
        'originalImages': images,
        'createdAt': timestamp,
        'updatedAt': timestamp
    }
    task = {
        'taskId': task_id,
        'orderId': order_id,
        'status': TaskStatus.PENDING,
        'createdAt': timestamp,
        'updatedAt': timestamp
    }

    try:
        dynamo.transact_write([
            dynamo.build_put(config.ORDERS_TABLE, order, condition_expression='attribute_not_exists(orderId)'),
            dynamo.build_put(config.TASKS_TABLE, task, condition_expression='attribute_not_exists(taskId)')
        ])
    except Exception:
        delete_uploads([image['url'] for image in images])
        raise

    logger.info(f"Created order {order_id} ({order['quantity']} x {order['priority']}) with task {task_id}")

    company = None
    if user.get('companyId'):
        company = dynamo.get_item(config.COMPANIES_TABLE, {'companyId': user['companyId']})

    funding = resolve_order_funding(order, settings, company=company, now=now)
    order.update({
        'isPaid': funding['isPaid'],
        'usedFreeCredit': funding['usedFreeCredit'],
        'creditsUsed': funding['creditsUsed'],
        'priceInCents': funding['priceInCents'],
        'status': funding['status'],
        'fundingSource': funding['source']
    })
    if funding['isPaid']:
        order['paidAt'] = timestamp

    assignment = try_auto_assign(task_id, settings, now=now)
    if assignment:
        task.update({
            'status': TaskStatus.ASSIGNED,
            'assignedToId': assignment['designerId'],
            'assignedAt': assignment['assignedAt'],
            'currentAssignmentId': assignment['assignmentId']
        })

    return {
        'order': order,
        'task': task,
        'funding': funding,
        'assignment': assignment
    }


def list_orders(user: Dict[str, Any], scope: str = 'all') -> List[Dict[str, Any]]:
    """
    Orders visible to a client, newest first: the whole company's orders
    for scope 'all' (when the user has a company), otherwise only their own.
    """
    if user.get('companyId') and scope == 'all':
        return dynamo.query(
            config.ORDERS_TABLE,
            index_name='CompanyIndex',
            key_condition=Key('companyId').eq(user['companyId']),
            scan_forward=False
        )
    return dynamo.query(
        config.ORDERS_TABLE,
        index_name='UserIndex',
        key_condition=Key('userId').eq(user['userId']),
        scan_forward=False
    )


def get_order_tasks(order_id: str) -> List[Dict[str, Any]]:
    """Tasks derived from an order."""
    return dynamo.query(
        config.TASKS_TABLE,
        index_name='OrderIndex',
        key_condition=Key('orderId').eq(order_id)
    )


def update_order_status(order_id: str, status: str, now: Optional[datetime] = None) -> Optional[Dict[str, Any]]:
    """
    Admin status override. Stamps deliveredAt when the order completes.

    Returns:
        Dict with the updated order and its previous status, or None if
        the order does not exist
    """
    if status not in OrderStatus.ALL:
        raise OrderValidationError(f"status must be one of {', '.join(OrderStatus.ALL)}")

    now = now or utc_now()
    timestamp = to_iso(now)

    expression = 'SET #status = :status, updatedAt = :ts'
    values = {':status': status, ':ts': timestamp}
    if status == OrderStatus.COMPLETED:
        expression += ', deliveredAt = if_not_exists(deliveredAt, :ts)'

    # Previous status is read by the write itself
    previous = dynamo.update_item(
        config.ORDERS_TABLE,
        {'orderId': order_id},
        expression,
        expression_values=values,
        expression_names={'#status': 'status'},
        condition_expression='attribute_exists(orderId)',
        return_values='ALL_OLD'
    )
    if previous is None:
        return None

    order = dict(previous, status=status, updatedAt=timestamp)
    if status == OrderStatus.COMPLETED:
        order.setdefault('deliveredAt', timestamp)

    logger.info(f"Order {order_id} status {previous.get('status')} -> {status}")
    return {
        'order': order,
        'previousStatus': previous.get('status')
    }
