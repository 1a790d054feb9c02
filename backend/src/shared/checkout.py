"""
Payment/checkout handoff.

Orders not covered by credits are handed to the external payment service
through the checkout queue. The computed price is always written onto the
order before the handoff; the payment service reports back through its own
queue and the order is then marked paid exactly once.
"""
import uuid
from datetime import datetime
from typing import Any, Dict, Optional
from . import dynamo
from .config import config
from .credit_ledger import OrderAlreadySettled, resolve_order_funding
from .logging import logger
from .models import FundingSource, OrderStatus
from .sqs import send_message
from .utils import to_iso, utc_now


class CheckoutError(Exception):
    """The payment service could not be reached."""


def build_checkout_url(order_id: str, session_id: str) -> str:
    return config.CHECKOUT_URL_TEMPLATE.format(orderId=order_id, sessionId=session_id)


def start_checkout(
    order: Dict[str, Any],
    settings: Dict[str, Any],
    now: Optional[datetime] = None
) -> Dict[str, Any]:
    """
    Settle an unpaid order: credits first (they may have been topped up
    since intake), otherwise hand it to the payment service.

    Returns:
        Funding result; for CHECKOUT also checkoutSessionId and url

    Raises:
        OrderAlreadySettled: the order is paid already
        CheckoutError: the handoff message could not be sent
    """
    if order.get('isPaid'):
        raise OrderAlreadySettled(order['orderId'])

    now = now or utc_now()
    company = None
    if order.get('companyId'):
        company = dynamo.get_item(config.COMPANIES_TABLE, {'companyId': order['companyId']})

    funding = resolve_order_funding(order, settings, company=company, now=now)
    if funding['source'] != FundingSource.CHECKOUT:
        return funding

    session_id = str(uuid.uuid4())
    sent = send_message(
        config.CHECKOUT_QUEUE_URL,
        {
            'type': 'order',
            'orderId': order['orderId'],
            'userId': order['userId'],
            'priceInCents': funding['priceInCents'],
            'checkoutSessionId': session_id,
            'requestedAt': to_iso(now)
        },
        group_id=order['orderId'],
        deduplication_id=session_id
    )
    if not sent:
        raise CheckoutError(f"Could not hand order {order['orderId']} to the payment service")

    logger.info(f"Order {order['orderId']} handed to checkout (session {session_id})")
    return dict(
        funding,
        checkoutSessionId=session_id,
        url=build_checkout_url(order['orderId'], session_id)
    )


def mark_order_paid(order_id: str, payment_reference: str, now: Optional[datetime] = None) -> bool:
    """
    Record a successful payment. Idempotent: a repeated notification for an
    already paid order is a no-op.

    Returns:
        True if this call marked the order paid
    """
    now = now or utc_now()
    updated = dynamo.update_item(
        config.ORDERS_TABLE,
        {'orderId': order_id},
        'SET isPaid = :true, paidAt = :ts, #status = :status, paymentReference = :ref, updatedAt = :ts',
        expression_values={
            ':true': True,
            ':false': False,
            ':ts': to_iso(now),
            ':status': OrderStatus.GENERATING,
            ':ref': payment_reference
        },
        expression_names={'#status': 'status'},
        condition_expression='attribute_exists(orderId) AND isPaid = :false'
    )
    if updated is None:
        logger.info(f"Order {order_id} already paid or missing, ignoring payment {payment_reference}")
        return False

    logger.info(f"Order {order_id} marked as paid ({payment_reference})")
    return True
