"""
Checkout Order Handler.
POST /orders/{orderId}/checkout

Settles an unpaid order with credits if possible, otherwise hands it to
the payment service and returns the redirect.
"""
import traceback
from shared import dynamo
from shared.auth import get_user_sub
from shared.checkout import CheckoutError, start_checkout
from shared.config import config
from shared.credit_ledger import OrderAlreadySettled
from shared.logging import logger, log_event
from shared.models import FundingSource
from shared.settings import get_settings
from shared.utils import error_response, format_response, get_path_param


def handler(event, context):
    log_event(event)

    user_id = get_user_sub(event)
    if not user_id:
        return error_response(401, 'Unauthorized')

    order_id = get_path_param(event, 'orderId')
    if not order_id:
        return error_response(400, 'Order ID is required')

    try:
        order = dynamo.get_item(config.ORDERS_TABLE, {'orderId': order_id}, consistent=True)
        if not order:
            return error_response(404, 'Order not found')

        if order.get('userId') != user_id:
            return error_response(403, 'Forbidden')

        if order.get('isPaid'):
            return error_response(400, 'Order is already paid')

        result = start_checkout(order, get_settings())

        if result['source'] != FundingSource.CHECKOUT:
            return format_response(200, {
                'success': True,
                'fundingSource': result['source'],
                'creditsUsed': result['creditsUsed']
            })

        return format_response(200, {
            'url': result['url'],
            'sessionId': result['checkoutSessionId'],
            'priceInCents': result['priceInCents']
        })

    except OrderAlreadySettled:
        return error_response(400, 'Order is already paid')
    except CheckoutError as e:
        logger.error(str(e))
        return error_response(502, 'Payment service unavailable')
    except Exception as e:
        logger.error(f"Checkout error: {e}")
        traceback.print_exc()
        return error_response(500, 'Failed to create checkout session')
