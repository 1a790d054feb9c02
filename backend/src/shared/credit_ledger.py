"""
Credit Ledger.

Decides how an order is paid for, exactly once:
1. Company free credit (one credit covers the order)
2. Package purchase with enough credits left (first expiring first used)
3. Paid checkout at pricePerGraphic x quantity x priority multiplier

Every decrement runs in a DynamoDB transaction together with the order
update, conditioned on the balance still covering the amount at commit time
and on the order still being unpaid. A cancelled transaction falls through
to the next funding source.
"""
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional
from boto3.dynamodb.conditions import Key, Attr
from . import dynamo
from .config import config
from .logging import logger
from .models import FundingSource, OrderPriority, OrderStatus
from .utils import to_iso, utc_now

# Index of the order update inside every ledger transaction
ORDER_ACTION_INDEX = 1


class OrderAlreadySettled(Exception):
    """The order was paid or credited by a concurrent request."""


def price_multiplier(priority: str, settings: Dict[str, Any]) -> Decimal:
    """Priority multiplier: 1.0 for NORMAL, configurable for EXPRESS and URGENT."""
    if priority == OrderPriority.EXPRESS:
        return Decimal(str(settings['expressPriceMultiplier']))
    if priority == OrderPriority.URGENT:
        return Decimal(str(settings['urgentPriceMultiplier']))
    return Decimal('1')


def calculate_order_price(quantity: int, priority: str, settings: Dict[str, Any]) -> int:
    """
    Calculate the order price in minor currency units.

    Args:
        quantity: Number of graphics ordered
        priority: NORMAL, EXPRESS or URGENT
        settings: System settings dict

    Returns:
        Price in cents, rounded half-up
    """
    total = Decimal(int(settings['pricePerGraphic'])) * quantity * price_multiplier(priority, settings)
    return int(total.quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def _order_settled_update(order_id: str, credits_used: int, used_free_credit: bool,
                          source: str, paid_at: str) -> dict:
    return dynamo.build_update(
        config.ORDERS_TABLE,
        {'orderId': order_id},
        'SET isPaid = :true, usedFreeCredit = :free, creditsUsed = :credits, '
        'priceInCents = :zero, #status = :status, paidAt = :ts, fundingSource = :source',
        expression_values={
            ':true': True,
            ':false': False,
            ':free': used_free_credit,
            ':credits': credits_used,
            ':zero': 0,
            ':status': OrderStatus.GENERATING,
            ':ts': paid_at,
            ':source': source
        },
        condition_expression='attribute_exists(orderId) AND isPaid = :false',
        expression_names={'#status': 'status'}
    )


def _check_order_conflict(conflict: dynamo.TransactionConflict, order_id: str) -> None:
    reasons = conflict.reasons
    if len(reasons) > ORDER_ACTION_INDEX and reasons[ORDER_ACTION_INDEX] == 'ConditionalCheckFailed':
        raise OrderAlreadySettled(order_id)


def claim_free_credit(order_id: str, company_id: str, now: datetime) -> bool:
    """
    Atomically spend one company free credit on the order.

    Returns:
        True if the credit was spent, False if none was left at commit time
    """
    actions = [
        dynamo.build_update(
            config.COMPANIES_TABLE,
            {'companyId': company_id},
            'SET freeCredits = freeCredits - :one',
            expression_values={':one': 1},
            condition_expression='freeCredits >= :one'
        ),
        _order_settled_update(order_id, 1, True, FundingSource.FREE_CREDIT, to_iso(now))
    ]

    try:
        dynamo.transact_write(actions)
    except dynamo.TransactionConflict as e:
        _check_order_conflict(e, order_id)
        logger.info(f"Free credit for company {company_id} taken concurrently, falling through")
        return False

    logger.info(f"Order {order_id} covered by a free credit of company {company_id}")
    return True


def find_package_purchases(user_id: str, quantity: int, now: datetime) -> List[Dict[str, Any]]:
    """
    Package purchases that could cover the quantity, first expiring first.
    Purchases without expiry come last; ties go to the oldest purchase.
    """
    purchases = dynamo.query(
        config.PACKAGE_PURCHASES_TABLE,
        index_name='UserIndex',
        key_condition=Key('userId').eq(user_id),
        filter_expression=Attr('creditsLeft').gte(quantity)
    )

    now_iso = to_iso(now)
    usable = [
        p for p in purchases
        if int(p.get('creditsLeft', 0)) >= quantity
        and (not p.get('expiresAt') or p['expiresAt'] > now_iso)
    ]
    usable.sort(key=lambda p: (not p.get('expiresAt'), p.get('expiresAt') or '', p.get('createdAt', '')))
    return usable


def claim_package_credits(order_id: str, purchase_id: str, quantity: int, now: datetime) -> bool:
    """
    Atomically spend `quantity` credits of one package purchase on the order.

    Returns:
        True if the credits were spent, False if the purchase no longer covers it
    """
    now_iso = to_iso(now)
    actions = [
        dynamo.build_update(
            config.PACKAGE_PURCHASES_TABLE,
            {'purchaseId': purchase_id},
            'SET creditsLeft = creditsLeft - :qty',
            expression_values={':qty': quantity, ':now': now_iso},
            condition_expression='creditsLeft >= :qty AND (attribute_not_exists(expiresAt) OR expiresAt > :now)'
        ),
        _order_settled_update(order_id, quantity, False, FundingSource.PACKAGE, now_iso)
    ]

    try:
        dynamo.transact_write(actions)
    except dynamo.TransactionConflict as e:
        _check_order_conflict(e, order_id)
        logger.info(f"Package {purchase_id} no longer covers {quantity} credits")
        return False

    logger.info(f"Order {order_id} covered by {quantity} credits of package {purchase_id}")
    return True


def record_checkout_price(order_id: str, price_in_cents: int) -> None:
    """Write the computed price onto the unpaid order before payment handoff."""
    updated = dynamo.update_item(
        config.ORDERS_TABLE,
        {'orderId': order_id},
        'SET priceInCents = :price, usedFreeCredit = :false, creditsUsed = :zero, fundingSource = :source',
        expression_values={
            ':price': price_in_cents,
            ':false': False,
            ':zero': 0,
            ':source': FundingSource.CHECKOUT
        },
        condition_expression='attribute_exists(orderId) AND isPaid = :false'
    )
    if updated is None:
        raise OrderAlreadySettled(order_id)


def resolve_order_funding(
    order: Dict[str, Any],
    settings: Dict[str, Any],
    company: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None
) -> Dict[str, Any]:
    """
    Settle how an unpaid order is paid for.

    Args:
        order: Order item (orderId, userId, quantity, priority)
        settings: System settings dict
        company: The ordering user's company item, if any
        now: Current time (defaults to utc now)

    Returns:
        Dict with source, isPaid, usedFreeCredit, creditsUsed, priceInCents, status

    Raises:
        OrderAlreadySettled: the order was paid or credited concurrently
    """
    now = now or utc_now()
    order_id = order['orderId']
    quantity = int(order['quantity'])

    if company and int(company.get('freeCredits', 0)) > 0:
        if claim_free_credit(order_id, company['companyId'], now):
            return {
                'source': FundingSource.FREE_CREDIT,
                'isPaid': True,
                'usedFreeCredit': True,
                'creditsUsed': 1,
                'priceInCents': 0,
                'status': OrderStatus.GENERATING
            }

    for purchase in find_package_purchases(order['userId'], quantity, now):
        if claim_package_credits(order_id, purchase['purchaseId'], quantity, now):
            return {
                'source': FundingSource.PACKAGE,
                'isPaid': True,
                'usedFreeCredit': False,
                'creditsUsed': quantity,
                'priceInCents': 0,
                'status': OrderStatus.GENERATING,
                'purchaseId': purchase['purchaseId']
            }

    price = calculate_order_price(quantity, order.get('priority', OrderPriority.NORMAL), settings)
    record_checkout_price(order_id, price)
    logger.info(f"Order {order_id} requires checkout: {price} cents")

    return {
        'source': FundingSource.CHECKOUT,
        'isPaid': False,
        'usedFreeCredit': False,
        'creditsUsed': 0,
        'priceInCents': price,
        'status': order.get('status', OrderStatus.PENDING_INPUT)
    }
