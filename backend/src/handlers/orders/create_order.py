"""
Create Order Handler.
POST /orders

Validates the submission, stores the originals, creates the order with its
first task, settles credits and tries to assign the task to a designer.
"""
import traceback
from shared.auth import get_user_email, get_user_profile, get_user_sub, has_role
from shared.logging import logger, log_event
from shared.models import UserRole
from shared.orders import OrderValidationError, create_order, parse_order_request
from shared.settings import get_settings
from shared.utils import error_response, format_response, parse_body


def handler(event, context):
    """
    POST /orders
    Body: {
        "quantity": 5,
        "priority": "NORMAL" | "EXPRESS" | "URGENT",
        "instructions": "...",
        "style": "CLEAN", "platform": "ALLEGRO", "background": "WHITE", "format": "1:1",
        "constraints": "[]",
        "deliveryEmailsOverride": "a@x.pl,b@x.pl",
        "notificationPhoneOverride": "600100200",
        "images": [{"filename": "...", "contentType": "image/png", "data": "<base64>"}]
    }
    """
    log_event(event)

    user_id = get_user_sub(event)
    if not user_id:
        return error_response(401, 'Unauthorized')

    if not has_role(event, UserRole.CLIENT, UserRole.ADMIN):
        return error_response(403, 'Forbidden')

    try:
        request = parse_order_request(parse_body(event))
    except OrderValidationError as e:
        return error_response(400, e.message, e.details)

    try:
        user = get_user_profile(user_id) or {'userId': user_id, 'email': get_user_email(event)}
        settings = get_settings()

        result = create_order(user, request, settings)
        order = result['order']

        return format_response(201, {
            'message': 'Order created',
            'order': order,
            'task': result['task'],
            'requiresPayment': not order['isPaid'],
            'fundingSource': result['funding']['source'],
            'assignedTo': result['assignment']['designerId'] if result['assignment'] else None
        })

    except Exception as e:
        logger.error(f"Error creating order: {e}")
        traceback.print_exc()
        return error_response(500, 'Failed to create order')
