"""
Tests for designer selection and task proposals.
"""
from datetime import datetime, timezone
from unittest.mock import patch

from shared import dynamo
from shared.assignment import (
    find_available_designers, propose_task, select_designer, try_auto_assign,
)
from shared.availability import is_window_open

# 10:00 in Warsaw (CEST)
NOW = datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)


def window(designer_id, start='09:00', end='17:00', available=True):
    return {
        'designerId': designer_id,
        'slotKey': f'2026-10-19#{start}#{end}',
        'date': '2026-10-19',
        'startTime': start,
        'endTime': end,
        'isAvailable': available,
    }


class TestSelectDesigner:
    """Tests for the queue policies."""

    def test_least_loaded_picks_lowest_count(self):
        loads = {'designer-a': 3, 'designer-b': 0}
        assert select_designer('least_loaded', ['designer-a', 'designer-b'], loads.get) == 'designer-b'

    def test_least_loaded_tie_keeps_stable_order(self):
        loads = {'designer-a': 1, 'designer-b': 1}
        assert select_designer('least_loaded', ['designer-a', 'designer-b'], loads.get) == 'designer-a'

    def test_round_robin_takes_first_available(self):
        assert select_designer('round_robin', ['designer-a', 'designer-b']) == 'designer-a'

    def test_priority_mode_selects_like_round_robin(self):
        assert select_designer('priority', ['designer-a', 'designer-b']) == 'designer-a'

    def test_unknown_mode_falls_back(self):
        assert select_designer('lottery', ['designer-a', 'designer-b']) == 'designer-a'

    def test_no_candidates(self):
        assert select_designer('least_loaded', []) is None


class TestAvailableDesigners:
    """Tests for availability window matching."""

    def test_window_contains_current_time(self):
        assert is_window_open(window('d'), '10:00') is True

    def test_window_bounds_are_inclusive(self):
        assert is_window_open(window('d'), '09:00') is True
        assert is_window_open(window('d'), '17:00') is True
        assert is_window_open(window('d'), '17:01') is False

    def test_unavailable_window_never_matches(self):
        assert is_window_open(window('d', available=False), '10:00') is False

    def test_only_open_windows_in_local_time(self):
        rows = [
            window('designer-b'),
            window('designer-a', '09:00', '12:00'),
            window('designer-c', '18:00', '20:00'),
            window('designer-a', '13:00', '15:00'),
        ]
        with patch('shared.dynamo.query', return_value=rows):
            assert find_available_designers(NOW) == ['designer-a', 'designer-b']

    def test_excluded_designers_are_skipped(self):
        with patch('shared.dynamo.query', return_value=[window('designer-a'), window('designer-b')]):
            assert find_available_designers(NOW, exclude=['designer-a']) == ['designer-b']


class TestProposeTask:
    """Tests for propose_task and try_auto_assign."""

    def test_proposal_is_pending_assignment(self):
        with patch('shared.dynamo.transact_write') as mock_write:
            assignment = propose_task('task-1', 'designer-a', NOW)

        assert assignment['status'] == 'PENDING'
        assert assignment['designerId'] == 'designer-a'
        assert assignment['taskId'] == 'task-1'

        task_update, assignment_put = mock_write.call_args[0][0]
        assert task_update['Update']['ConditionExpression'] == '#status = :pending'
        assert assignment_put['Put']['Item']['designerId'] == {'S': 'designer-a'}

    def test_task_no_longer_pending(self):
        conflict = dynamo.TransactionConflict('cancelled', ['ConditionalCheckFailed', 'None'])
        with patch('shared.dynamo.transact_write', side_effect=conflict):
            assert propose_task('task-1', 'designer-a', NOW) is None

    def test_no_available_designers_leaves_task_pending(self, settings):
        with patch('shared.assignment.list_open_windows', return_value=[]), \
                patch('shared.dynamo.transact_write') as mock_write:
            assert try_auto_assign('task-1', settings, now=NOW) is None

        mock_write.assert_not_called()

    def test_least_loaded_mode_uses_task_counts(self, settings):
        settings['queueMode'] = 'least_loaded'
        loads = {'designer-a': 3, 'designer-b': 0}

        with patch('shared.assignment.list_open_windows', return_value=[window('designer-a'), window('designer-b')]), \
                patch('shared.assignment.count_active_tasks', side_effect=loads.get), \
                patch('shared.dynamo.transact_write'):
            assignment = try_auto_assign('task-1', settings, now=NOW)

        assert assignment['designerId'] == 'designer-b'

    def test_failures_are_swallowed(self, settings):
        with patch('shared.assignment.list_open_windows', side_effect=RuntimeError('boom')):
            assert try_auto_assign('task-1', settings, now=NOW) is None
