"""
Tests for order pricing and the credit ledger.
"""
import threading
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest

from shared import dynamo
from shared.credit_ledger import (
    OrderAlreadySettled, calculate_order_price, find_package_purchases, resolve_order_funding,
)
from shared.models import FundingSource, OrderStatus

NOW = datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)


def order_item(quantity=5, priority='NORMAL'):
    return {'orderId': 'order-1', 'userId': 'user-1', 'quantity': quantity, 'priority': priority}


class TestOrderPrice:
    """Tests for calculate_order_price."""

    def test_normal_priority(self, settings):
        assert calculate_order_price(5, 'NORMAL', settings) == 24500

    def test_priority_multipliers(self, settings):
        assert calculate_order_price(1, 'EXPRESS', settings) == 9800
        assert calculate_order_price(1, 'URGENT', settings) == 19600

    def test_rounds_half_up(self, settings):
        settings['pricePerGraphic'] = 4999
        settings['expressPriceMultiplier'] = Decimal('1.5')

        # 4999 * 1.5 = 7498.5
        assert calculate_order_price(1, 'EXPRESS', settings) == 7499

    def test_unknown_priority_priced_as_normal(self, settings):
        assert calculate_order_price(2, 'WHENEVER', settings) == 9800


class TestPackageSelection:
    """Tests for find_package_purchases ordering."""

    def test_first_expiring_first_and_skips_expired(self):
        purchases = [
            {'purchaseId': 'no-expiry', 'creditsLeft': 10, 'createdAt': '2026-01-01T00:00:00+00:00'},
            {'purchaseId': 'late', 'creditsLeft': 10, 'expiresAt': '2026-12-31T00:00:00+00:00'},
            {'purchaseId': 'soon', 'creditsLeft': 10, 'expiresAt': '2026-11-01T00:00:00+00:00'},
            {'purchaseId': 'expired', 'creditsLeft': 10, 'expiresAt': '2026-10-01T00:00:00+00:00'},
            {'purchaseId': 'too-small', 'creditsLeft': 2, 'expiresAt': '2026-10-20T00:00:00+00:00'},
        ]

        with patch('shared.dynamo.query', return_value=purchases):
            result = find_package_purchases('user-1', 5, NOW)

        assert [p['purchaseId'] for p in result] == ['soon', 'late', 'no-expiry']


class TestResolveFunding:
    """Tests for the free credit -> package -> checkout fallthrough."""

    def test_free_credit_covers_order(self, settings):
        company = {'companyId': 'company-1', 'freeCredits': 3}

        with patch('shared.dynamo.transact_write') as mock_write, \
                patch('shared.dynamo.query') as mock_query:
            funding = resolve_order_funding(order_item(), settings, company=company, now=NOW)

        assert funding['source'] == FundingSource.FREE_CREDIT
        assert funding['isPaid'] is True
        assert funding['creditsUsed'] == 1
        assert funding['priceInCents'] == 0
        assert funding['status'] == OrderStatus.GENERATING
        mock_write.assert_called_once()
        mock_query.assert_not_called()

        company_update = mock_write.call_args[0][0][0]['Update']
        assert company_update['ConditionExpression'] == 'freeCredits >= :one'

    def test_falls_through_to_package_when_free_credit_taken(self, settings):
        company = {'companyId': 'company-1', 'freeCredits': 1}
        conflict = dynamo.TransactionConflict('cancelled', ['ConditionalCheckFailed', 'None'])
        purchases = [{'purchaseId': 'pkg-1', 'creditsLeft': 10}]

        with patch('shared.dynamo.transact_write', side_effect=[conflict, None]) as mock_write, \
                patch('shared.dynamo.query', return_value=purchases):
            funding = resolve_order_funding(order_item(quantity=5), settings, company=company, now=NOW)

        assert funding['source'] == FundingSource.PACKAGE
        assert funding['creditsUsed'] == 5
        assert funding['purchaseId'] == 'pkg-1'
        assert mock_write.call_count == 2

    def test_checkout_when_no_credits(self, settings):
        with patch('shared.dynamo.transact_write') as mock_write, \
                patch('shared.dynamo.query', return_value=[]), \
                patch('shared.dynamo.update_item', return_value={'orderId': 'order-1'}) as mock_update:
            funding = resolve_order_funding(order_item(quantity=5, priority='EXPRESS'), settings, now=NOW)

        assert funding['source'] == FundingSource.CHECKOUT
        assert funding['isPaid'] is False
        assert funding['priceInCents'] == 49000
        assert funding['creditsUsed'] == 0
        mock_write.assert_not_called()

        values = mock_update.call_args.kwargs['expression_values']
        assert values[':price'] == 49000

    def test_company_without_free_credits_skips_claim(self, settings):
        company = {'companyId': 'company-1', 'freeCredits': 0}

        with patch('shared.dynamo.transact_write') as mock_write, \
                patch('shared.dynamo.query', return_value=[]), \
                patch('shared.dynamo.update_item', return_value={}):
            funding = resolve_order_funding(order_item(), settings, company=company, now=NOW)

        assert funding['source'] == FundingSource.CHECKOUT
        mock_write.assert_not_called()

    def test_order_paid_concurrently(self, settings):
        company = {'companyId': 'company-1', 'freeCredits': 1}
        conflict = dynamo.TransactionConflict('cancelled', ['None', 'ConditionalCheckFailed'])

        with patch('shared.dynamo.transact_write', side_effect=conflict):
            with pytest.raises(OrderAlreadySettled):
                resolve_order_funding(order_item(), settings, company=company, now=NOW)

    def test_checkout_price_on_paid_order(self, settings):
        with patch('shared.dynamo.query', return_value=[]), \
                patch('shared.dynamo.update_item', return_value=None):
            with pytest.raises(OrderAlreadySettled):
                resolve_order_funding(order_item(), settings, now=NOW)


class TestFreeCreditRace:
    """Two orders racing for the last free credit of a company."""

    def test_only_one_order_gets_the_last_credit(self, settings):
        balance = {'freeCredits': 1}
        lock = threading.Lock()
        barrier = threading.Barrier(2)

        def fake_transact_write(actions):
            update = actions[0]['Update']
            if 'freeCredits' not in update['UpdateExpression']:
                return
            with lock:
                if balance['freeCredits'] < 1:
                    raise dynamo.TransactionConflict('cancelled', ['ConditionalCheckFailed', 'None'])
                balance['freeCredits'] -= 1

        results = {}

        def place(order_id):
            barrier.wait()
            order = dict(order_item(), orderId=order_id)
            company = {'companyId': 'company-1', 'freeCredits': 1}
            results[order_id] = resolve_order_funding(order, settings, company=company, now=NOW)

        with patch('shared.dynamo.transact_write', side_effect=fake_transact_write), \
                patch('shared.dynamo.query', return_value=[]), \
                patch('shared.dynamo.update_item', return_value=MagicMock()):
            threads = [threading.Thread(target=place, args=(f'order-{i}',)) for i in range(2)]
            for t in threads:
                t.start()
            for t in threads:
                t.join()

        sources = sorted(r['source'] for r in results.values())
        assert sources == [FundingSource.CHECKOUT, FundingSource.FREE_CREDIT]
        assert balance['freeCredits'] == 0
