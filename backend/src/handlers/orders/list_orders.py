from shared.auth import get_user_profile, get_user_sub
from shared.logging import logger, log_event
from shared.orders import get_order_tasks, list_orders
from shared.s3_utils import generate_presigned_url
from shared.utils import error_response, format_response, get_query_param


def handler(event, context):
    """
    List the caller's orders.
    GET /orders?filter=all|mine

    Company members see every order of their company unless they ask for
    their own only.
    """
    log_event(event)

    user_id = get_user_sub(event)
    if not user_id:
        return error_response(401, 'Unauthorized')

    scope = get_query_param(event, 'filter', 'all')

    try:
        user = get_user_profile(user_id) or {'userId': user_id}
        orders = list_orders(user, scope)

        for order in orders:
            order['originalImages'] = [
                {**image, 'url': generate_presigned_url(image.get('url'))}
                for image in order.get('originalImages', [])
            ]
            order['tasks'] = get_order_tasks(order['orderId'])

        return format_response(200, {
            'orders': orders,
            'hasCompany': bool(user.get('companyId')),
            'companyId': user.get('companyId')
        })

    except Exception as e:
        logger.error(f"Error fetching orders: {e}")
        return error_response(500, 'Failed to fetch orders')
