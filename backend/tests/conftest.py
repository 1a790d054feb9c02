"""
Shared fixtures for backend tests.
"""
import json
import os
import sys
from decimal import Decimal

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))


@pytest.fixture
def settings():
    return {
        'settingsId': 'settings',
        'pricePerGraphic': 4900,
        'expressPriceMultiplier': Decimal('2.0'),
        'urgentPriceMultiplier': Decimal('4.0'),
        'designerRatePerGraphic': 2000,
        'designerRatePerRevision': 500,
        'minutesPerGraphic': 30,
        'confirmationTimeout': 5,
        'queueMode': 'round_robin',
    }


@pytest.fixture
def make_event():
    """Build an API Gateway proxy event with Cognito claims."""
    def _make_event(sub='user-1', groups='client', body=None, path=None, query=None, method='POST', email=None):
        claims = {}
        if sub:
            claims = {'sub': sub, 'cognito:groups': groups, 'email': email or f'{sub}@example.com'}
        return {
            'httpMethod': method,
            'requestContext': {'authorizer': {'claims': claims}},
            'body': json.dumps(body) if body is not None else None,
            'pathParameters': path,
            'queryStringParameters': query,
        }
    return _make_event
