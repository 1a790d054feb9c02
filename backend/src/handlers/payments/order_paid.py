"""
Order Paid Handler.
Triggered by SQS messages from the payment service once a checkout succeeds.
"""
import traceback
from shared.checkout import mark_order_paid
from shared.logging import logger, log_event
from shared.sqs import parse_records


def handler(event, context):
    """
    Message body: {"orderId": "...", "paymentReference": "...", "status": "paid"}

    Repeated notifications for the same order are no-ops.
    """
    log_event(event)

    messages = parse_records(event)
    logger.info(f"Received {len(messages)} payment notifications")

    processed = 0
    for message in messages:
        order_id = message.get('orderId')
        if not order_id or message.get('status', 'paid') != 'paid':
            logger.warning(f"Ignoring payment notification: {message}")
            continue

        try:
            reference = message.get('paymentReference') or message.get('checkoutSessionId') or 'unknown'
            if mark_order_paid(order_id, reference):
                processed += 1
        except Exception as e:
            logger.error(f"Error processing payment for order {order_id}: {e}")
            traceback.print_exc()

    return {'processed': processed}
