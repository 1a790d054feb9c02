"""
Update Order Status Handler.
PUT /admin/orders/{orderId}/status

Completing an order notifies the client by SMS and email.
"""
import traceback
from shared.auth import get_user_profile, get_user_sub, is_admin
from shared.logging import logger, log_event
from shared.models import OrderStatus
from shared.notifications import notify_order_completed
from shared.orders import OrderValidationError, update_order_status
from shared.utils import error_response, format_response, get_path_param, parse_body


def handler(event, context):
    """
    Body: {"status": "COMPLETED"}
    """
    log_event(event)

    if not get_user_sub(event):
        return error_response(401, 'Unauthorized')

    if not is_admin(event):
        return error_response(403, 'Admin access required')

    order_id = get_path_param(event, 'orderId')
    if not order_id:
        return error_response(400, 'Order ID is required')

    status = parse_body(event).get('status')

    try:
        result = update_order_status(order_id, status)
    except OrderValidationError as e:
        return error_response(400, e.message)
    except Exception as e:
        logger.error(f"Error updating order {order_id}: {e}")
        traceback.print_exc()
        return error_response(500, 'Failed to update order')

    if result is None:
        return error_response(404, 'Order not found')

    order = result['order']
    if status == OrderStatus.COMPLETED and result['previousStatus'] != OrderStatus.COMPLETED:
        notify_order_completed(order, get_user_profile(order['userId']))

    return format_response(200, {'order': order})
