"""
System settings provider.

The settings live in a single row keyed by a fixed id and are created with
defaults on first read. Handlers fetch them once per request and pass the
dict down to the workflow functions.
"""
from decimal import Decimal
from typing import Any, Dict
from . import dynamo
from .config import config
from .logging import logger
from .models import QueueMode

SETTINGS_ID = 'settings'

DEFAULT_SETTINGS = {
    'pricePerGraphic': 4900,  # 49 PLN, minor units
    'expressPriceMultiplier': Decimal('2.0'),
    'urgentPriceMultiplier': Decimal('4.0'),
    'designerRatePerGraphic': 2000,
    'designerRatePerRevision': 500,
    'minutesPerGraphic': 30,
    'confirmationTimeout': 5,  # minutes
    'queueMode': QueueMode.ROUND_ROBIN,
}

INTEGER_FIELDS = (
    'pricePerGraphic', 'designerRatePerGraphic', 'designerRatePerRevision',
    'minutesPerGraphic', 'confirmationTimeout',
)
MULTIPLIER_FIELDS = ('expressPriceMultiplier', 'urgentPriceMultiplier')


class SettingsValidationError(ValueError):
    """Submitted settings are malformed."""

    def __init__(self, errors: list):
        super().__init__('; '.join(errors))
        self.errors = errors


def _with_defaults(item: Dict[str, Any]) -> Dict[str, Any]:
    settings = dict(DEFAULT_SETTINGS)
    settings.update({k: v for k, v in item.items() if v is not None})
    for field in INTEGER_FIELDS:
        settings[field] = int(settings[field])
    for field in MULTIPLIER_FIELDS:
        settings[field] = Decimal(str(settings[field]))
    return settings


def get_settings() -> Dict[str, Any]:
    """
    Get the settings row, creating it with defaults if it does not exist yet.

    Creation is conditional so two first reads racing each other cannot
    overwrite an admin edit made in between.
    """
    item = dynamo.get_item(config.SETTINGS_TABLE, {'settingsId': SETTINGS_ID})
    if item:
        return _with_defaults(item)

    created = dict(DEFAULT_SETTINGS, settingsId=SETTINGS_ID)
    if dynamo.put_item(config.SETTINGS_TABLE, created, condition_expression='attribute_not_exists(settingsId)'):
        logger.info("Created default system settings")
        return _with_defaults(created)

    # Someone else created it first
    item = dynamo.get_item(config.SETTINGS_TABLE, {'settingsId': SETTINGS_ID}, consistent=True)
    return _with_defaults(item or {})


def validate_settings_update(body: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate an admin settings update and return the normalized changes.

    Raises:
        SettingsValidationError: with every problem found
    """
    errors = []
    changes = {}

    for field in INTEGER_FIELDS:
        if field not in body or body[field] is None:
            continue
        try:
            value = int(body[field])
        except (TypeError, ValueError):
            errors.append(f"{field} must be an integer")
            continue
        if value <= 0:
            errors.append(f"{field} must be positive")
            continue
        changes[field] = value

    for field in MULTIPLIER_FIELDS:
        if field not in body or body[field] is None:
            continue
        try:
            value = Decimal(str(body[field]))
        except ArithmeticError:
            errors.append(f"{field} must be a number")
            continue
        if not value.is_finite():
            errors.append(f"{field} must be a number")
            continue
        if value < 1:
            errors.append(f"{field} must be at least 1.0")
            continue
        changes[field] = value

    if body.get('queueMode') is not None:
        if body['queueMode'] not in QueueMode.ALL:
            errors.append(f"queueMode must be one of {', '.join(QueueMode.ALL)}")
        else:
            changes['queueMode'] = body['queueMode']

    if errors:
        raise SettingsValidationError(errors)
    return changes


def update_settings(changes: Dict[str, Any]) -> Dict[str, Any]:
    """Apply validated changes on top of the current settings (upsert)."""
    current = get_settings()
    if not changes:
        return current

    names = {f'#{field}': field for field in changes}
    values = {f':{field}': value for field, value in changes.items()}
    expression = 'SET ' + ', '.join(f'#{field} = :{field}' for field in changes)

    updated = dynamo.update_item(
        config.SETTINGS_TABLE,
        {'settingsId': SETTINGS_ID},
        expression,
        expression_values=values,
        expression_names=names
    )
    logger.info(f"Updated system settings: {sorted(changes)}")
    return _with_defaults(updated or dict(current, **changes))
