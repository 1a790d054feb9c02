"""
Designer availability store.

Windows are declared per calendar date in business local time as
zero-padded HH:MM strings, so window checks are plain string comparisons.
Saving a date replaces every window of that date in one transaction.
"""
import re
from datetime import date, datetime
from typing import Any, Dict, List
from zoneinfo import ZoneInfo
from boto3.dynamodb.conditions import Key
from . import dynamo
from .config import config
from .logging import logger

TIME_PATTERN = re.compile(r'^([01]\d|2[0-3]):[0-5]\d$')
DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')

# DynamoDB caps a transaction at 100 actions
MAX_SLOTS_PER_DATE = 48


class AvailabilityValidationError(ValueError):
    """Submitted availability slots are malformed."""

    def __init__(self, errors: List[str]):
        super().__init__('; '.join(errors))
        self.errors = errors


def business_now(now: datetime) -> datetime:
    """Convert a UTC moment into the business time zone."""
    return now.astimezone(ZoneInfo(config.BUSINESS_TIMEZONE))


def local_date_and_time(now: datetime) -> tuple:
    """Return (YYYY-MM-DD, HH:MM) for `now` in business local time."""
    local = business_now(now)
    return local.strftime('%Y-%m-%d'), local.strftime('%H:%M')


def make_slot_key(slot_date: str, start_time: str, end_time: str) -> str:
    return f"{slot_date}#{start_time}#{end_time}"


def is_window_open(slot: Dict[str, Any], current_time: str) -> bool:
    """True if the slot is flagged available and start <= HH:MM <= end."""
    if not slot.get('isAvailable', True):
        return False
    return slot['startTime'] <= current_time <= slot['endTime']


def validate_slots(raw_slots: Any) -> Dict[str, List[Dict[str, Any]]]:
    """
    Validate submitted slots and group the available ones by date.

    Dates may carry a time suffix (2026-10-19T00:00:00Z) which is ignored.
    A date whose slots are all unavailable maps to an empty list, which
    clears that date.

    Raises:
        AvailabilityValidationError: with every problem found
    """
    if not isinstance(raw_slots, list):
        raise AvailabilityValidationError(['Invalid availability data'])

    errors = []
    by_date: Dict[str, List[Dict[str, Any]]] = {}

    for index, slot in enumerate(raw_slots):
        if not isinstance(slot, dict):
            errors.append(f"Slot {index}: must be an object")
            continue

        slot_date = str(slot.get('date') or '').split('T')[0]
        if not DATE_PATTERN.match(slot_date):
            errors.append(f"Slot {index}: invalid date '{slot.get('date')}'")
            continue
        try:
            date.fromisoformat(slot_date)
        except ValueError:
            errors.append(f"Slot {index}: invalid date '{slot_date}'")
            continue

        by_date.setdefault(slot_date, [])
        if slot.get('isAvailable') is False:
            continue

        start_time = slot.get('startTime') or ''
        end_time = slot.get('endTime') or ''
        if not TIME_PATTERN.match(start_time) or not TIME_PATTERN.match(end_time):
            errors.append(f"Slot {index}: times must be HH:MM")
            continue
        if start_time >= end_time:
            errors.append(f"Slot {index}: startTime must be before endTime")
            continue

        by_date[slot_date].append({'startTime': start_time, 'endTime': end_time})

    for slot_date, slots in by_date.items():
        if len(slots) > MAX_SLOTS_PER_DATE:
            errors.append(f"{slot_date}: at most {MAX_SLOTS_PER_DATE} windows per day")
        slots.sort(key=lambda s: s['startTime'])
        for previous, current in zip(slots, slots[1:]):
            if current['startTime'] < previous['endTime']:
                errors.append(
                    f"{slot_date}: window {current['startTime']}-{current['endTime']} "
                    f"overlaps {previous['startTime']}-{previous['endTime']}"
                )

    if errors:
        raise AvailabilityValidationError(errors)
    return by_date


def get_availability(designer_id: str, from_date: str) -> List[Dict[str, Any]]:
    """All windows of a designer from `from_date` onward, by date then start time."""
    slots = dynamo.query(
        config.AVAILABILITY_TABLE,
        key_condition=Key('designerId').eq(designer_id) & Key('slotKey').gte(from_date)
    )
    return sorted(slots, key=lambda s: (s['date'], s['startTime']))


def get_windows_for_date(designer_id: str, slot_date: str) -> List[Dict[str, Any]]:
    """The designer's windows on one date."""
    return dynamo.query(
        config.AVAILABILITY_TABLE,
        key_condition=Key('designerId').eq(designer_id) & Key('slotKey').begins_with(f"{slot_date}#")
    )


def replace_availability(designer_id: str, slot_date: str, slots: List[Dict[str, Any]]) -> int:
    """
    Replace every window of the designer on `slot_date` (delete-then-insert,
    one transaction).

    Returns:
        Number of windows created
    """
    existing = get_windows_for_date(designer_id, slot_date)
    new_keys = {make_slot_key(slot_date, s['startTime'], s['endTime']) for s in slots}

    actions = [
        dynamo.build_delete(
            config.AVAILABILITY_TABLE,
            {'designerId': designer_id, 'slotKey': item['slotKey']}
        )
        for item in existing
        # A key may not appear twice in one transaction; the Put below overwrites it
        if item['slotKey'] not in new_keys
    ]
    for slot in slots:
        actions.append(dynamo.build_put(config.AVAILABILITY_TABLE, {
            'designerId': designer_id,
            'slotKey': make_slot_key(slot_date, slot['startTime'], slot['endTime']),
            'date': slot_date,
            'startTime': slot['startTime'],
            'endTime': slot['endTime'],
            'isAvailable': True
        }))

    if actions:
        dynamo.transact_write(actions)

    logger.info(f"Designer {designer_id} availability on {slot_date}: {len(slots)} windows")
    return len(slots)


def list_open_windows(now: datetime) -> List[Dict[str, Any]]:
    """Availability rows for today whose window contains the current time."""
    today, current_time = local_date_and_time(now)
    rows = dynamo.query(
        config.AVAILABILITY_TABLE,
        index_name='DateIndex',
        key_condition=Key('date').eq(today)
    )
    return [row for row in rows if is_window_open(row, current_time)]
