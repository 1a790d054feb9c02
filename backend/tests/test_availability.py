"""
Tests for designer availability validation and storage.
"""
from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from shared.availability import (
    AvailabilityValidationError, local_date_and_time, replace_availability, validate_slots,
)


def slot(date='2026-10-19', start='09:00', end='17:00', available=True):
    return {'date': date, 'startTime': start, 'endTime': end, 'isAvailable': available}


class TestValidateSlots:
    """Tests for validate_slots."""

    def test_groups_by_date_sorted(self):
        by_date = validate_slots([
            slot(start='13:00', end='17:00'),
            slot(start='08:00', end='12:00'),
            slot(date='2026-10-20T00:00:00.000Z'),
        ])

        assert list(by_date['2026-10-19']) == [
            {'startTime': '08:00', 'endTime': '12:00'},
            {'startTime': '13:00', 'endTime': '17:00'},
        ]
        assert by_date['2026-10-20'] == [{'startTime': '09:00', 'endTime': '17:00'}]

    def test_unavailable_slots_clear_the_date(self):
        assert validate_slots([slot(available=False)]) == {'2026-10-19': []}

    def test_touching_windows_are_allowed(self):
        by_date = validate_slots([slot(start='09:00', end='12:00'), slot(start='12:00', end='15:00')])
        assert len(by_date['2026-10-19']) == 2

    def test_overlapping_windows_rejected(self):
        with pytest.raises(AvailabilityValidationError) as exc:
            validate_slots([slot(start='09:00', end='12:00'), slot(start='11:00', end='15:00')])

        assert 'overlaps' in exc.value.errors[0]

    def test_start_must_precede_end(self):
        with pytest.raises(AvailabilityValidationError) as exc:
            validate_slots([slot(start='17:00', end='09:00')])

        assert 'startTime must be before endTime' in exc.value.errors[0]

    def test_bad_time_and_date_formats(self):
        with pytest.raises(AvailabilityValidationError) as exc:
            validate_slots([slot(start='9:00'), slot(date='19.10.2026'), slot(date='2026-02-30')])

        assert len(exc.value.errors) == 3

    def test_payload_must_be_a_list(self):
        with pytest.raises(AvailabilityValidationError):
            validate_slots({'date': '2026-10-19'})


class TestReplaceAvailability:
    """Tests for replace_availability."""

    def test_deletes_old_windows_and_puts_new(self):
        existing = [
            {'designerId': 'd1', 'slotKey': '2026-10-19#09:00#17:00'},
            {'designerId': 'd1', 'slotKey': '2026-10-19#18:00#20:00'},
        ]
        slots = [{'startTime': '09:00', 'endTime': '17:00'}, {'startTime': '07:00', 'endTime': '08:00'}]

        with patch('shared.dynamo.query', return_value=existing), \
                patch('shared.dynamo.transact_write') as mock_write:
            created = replace_availability('d1', '2026-10-19', slots)

        assert created == 2
        actions = mock_write.call_args[0][0]
        deletes = [a['Delete']['Key']['slotKey']['S'] for a in actions if 'Delete' in a]
        puts = [a['Put']['Item']['slotKey']['S'] for a in actions if 'Put' in a]
        assert deletes == ['2026-10-19#18:00#20:00']
        assert sorted(puts) == ['2026-10-19#07:00#08:00', '2026-10-19#09:00#17:00']

    def test_clearing_a_date(self):
        existing = [{'designerId': 'd1', 'slotKey': '2026-10-19#09:00#17:00'}]

        with patch('shared.dynamo.query', return_value=existing), \
                patch('shared.dynamo.transact_write') as mock_write:
            assert replace_availability('d1', '2026-10-19', []) == 0

        assert list(mock_write.call_args[0][0][0]) == ['Delete']


class TestBusinessTime:
    """Tests for local time conversion."""

    def test_summer_time(self):
        assert local_date_and_time(datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)) == ('2026-10-19', '10:00')

    def test_winter_time(self):
        assert local_date_and_time(datetime(2026, 12, 1, 8, 0, tzinfo=timezone.utc)) == ('2026-12-01', '09:00')

    def test_local_date_rolls_over(self):
        assert local_date_and_time(datetime(2026, 10, 19, 22, 30, tzinfo=timezone.utc)) == ('2026-10-20', '00:30')
