from shared import dynamo
from shared.auth import get_user_sub, has_role
from shared.config import config
from shared.confirmation import confirmation_timeout, list_pending_for_designer
from shared.logging import logger, log_event
from shared.models import UserRole
from shared.s3_utils import generate_presigned_url
from shared.settings import get_settings
from shared.utils import error_response, format_response


def _order_summary(order_id: str) -> dict:
    order = dynamo.get_item(config.ORDERS_TABLE, {'orderId': order_id})
    if not order:
        return {}

    images = order.get('originalImages') or []
    return {
        'orderId': order_id,
        'quantity': order.get('quantity'),
        'priority': order.get('priority'),
        'instructions': order.get('instructions'),
        'style': order.get('style'),
        'platform': order.get('platform'),
        'format': order.get('format'),
        'previewUrl': generate_presigned_url(images[0]['url']) if images else None
    }


def handler(event, context):
    """
    Proposals waiting for the designer's decision, with countdowns.
    GET /designer/assignments/pending
    """
    log_event(event)

    designer_id = get_user_sub(event)
    if not designer_id:
        return error_response(401, 'Unauthorized')

    if not has_role(event, UserRole.DESIGNER, UserRole.ADMIN):
        return error_response(403, 'Forbidden')

    try:
        settings = get_settings()
        assignments = list_pending_for_designer(designer_id, settings)

        for assignment in assignments:
            task = dynamo.get_item(config.TASKS_TABLE, {'taskId': assignment['taskId']}) or {}
            assignment['order'] = _order_summary(task['orderId']) if task.get('orderId') else {}

        return format_response(200, {
            'assignments': assignments,
            'confirmationTimeout': confirmation_timeout(settings)
        })

    except Exception as e:
        logger.error(f"Error fetching pending assignments: {e}")
        return error_response(500, 'Failed to fetch assignments')
