"""
Tests for the assignment confirmation state machine.
"""
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from shared import dynamo
from shared.confirmation import (
    AssignmentExpired, AssignmentForbidden, AssignmentNotFound, AssignmentNotPending,
    confirm_assignment, expire_stale_assignments, list_pending_for_designer, reject_assignment,
)
from shared.utils import to_iso

T0 = datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)


def pending_assignment(designer_id='designer-1', assigned_at=T0, assignment_id='assign-1'):
    return {
        'assignmentId': assignment_id,
        'taskId': 'task-1',
        'designerId': designer_id,
        'status': 'PENDING',
        'assignedAt': to_iso(assigned_at),
    }


def all_day(designer_id):
    return {'designerId': designer_id, 'date': '2026-10-19', 'startTime': '00:00', 'endTime': '23:59'}


def written_status(action):
    return action['Update']['ExpressionAttributeValues'][':new_status']['S']


class TestConfirm:
    """Tests for confirm_assignment."""

    def test_confirm_within_window(self, settings):
        with patch('shared.dynamo.get_item', return_value=pending_assignment()), \
                patch('shared.dynamo.transact_write') as mock_write:
            result = confirm_assignment('assign-1', 'designer-1', settings, now=T0 + timedelta(minutes=4))

        assert result['status'] == 'CONFIRMED'
        assert 'confirmedAt' in result

        assignment_update, task_update = mock_write.call_args[0][0]
        assert written_status(assignment_update) == 'CONFIRMED'
        assert task_update['Update']['ExpressionAttributeValues'][':in_progress'] == {'S': 'IN_PROGRESS'}

    def test_confirm_exactly_at_deadline(self, settings):
        with patch('shared.dynamo.get_item', return_value=pending_assignment()), \
                patch('shared.dynamo.transact_write'):
            result = confirm_assignment('assign-1', 'designer-1', settings, now=T0 + timedelta(minutes=5))

        assert result['status'] == 'CONFIRMED'

    def test_confirm_after_timeout_expires_and_reassigns(self, settings):
        windows = [all_day('designer-1'), all_day('designer-2')]

        with patch('shared.dynamo.get_item', return_value=pending_assignment()), \
                patch('shared.assignment.list_open_windows', return_value=windows), \
                patch('shared.dynamo.transact_write') as mock_write:
            with pytest.raises(AssignmentExpired, match='Assignment has expired'):
                confirm_assignment('assign-1', 'designer-1', settings, now=T0 + timedelta(minutes=6))

        assert mock_write.call_count == 2
        release = mock_write.call_args_list[0][0][0]
        assert written_status(release[0]) == 'EXPIRED'

        task_update, new_assignment = mock_write.call_args_list[1][0][0]
        assert new_assignment['Put']['Item']['designerId'] == {'S': 'designer-2'}

    def test_expired_with_nobody_else_available(self, settings):
        with patch('shared.dynamo.get_item', return_value=pending_assignment()), \
                patch('shared.assignment.list_open_windows', return_value=[all_day('designer-1')]), \
                patch('shared.dynamo.transact_write') as mock_write:
            with pytest.raises(AssignmentExpired):
                confirm_assignment('assign-1', 'designer-1', settings, now=T0 + timedelta(minutes=6))

        # Only the release; the task stays PENDING for the next sweep
        assert mock_write.call_count == 1

    def test_terminal_assignment_is_not_pending(self, settings):
        confirmed = dict(pending_assignment(), status='CONFIRMED')
        with patch('shared.dynamo.get_item', return_value=confirmed), \
                patch('shared.dynamo.transact_write') as mock_write:
            with pytest.raises(AssignmentNotPending):
                confirm_assignment('assign-1', 'designer-1', settings, now=T0)

        mock_write.assert_not_called()

    def test_other_designer_is_forbidden(self, settings):
        with patch('shared.dynamo.get_item', return_value=pending_assignment()):
            with pytest.raises(AssignmentForbidden) as exc:
                confirm_assignment('assign-1', 'designer-2', settings, now=T0)

        assert exc.value.status_code == 403

    def test_missing_assignment(self, settings):
        with patch('shared.dynamo.get_item', return_value=None):
            with pytest.raises(AssignmentNotFound) as exc:
                confirm_assignment('assign-1', 'designer-1', settings, now=T0)

        assert exc.value.status_code == 404

    def test_concurrent_transition_loses(self, settings):
        conflict = dynamo.TransactionConflict('cancelled', ['ConditionalCheckFailed', 'None'])
        with patch('shared.dynamo.get_item', return_value=pending_assignment()), \
                patch('shared.dynamo.transact_write', side_effect=conflict):
            with pytest.raises(AssignmentNotPending):
                confirm_assignment('assign-1', 'designer-1', settings, now=T0 + timedelta(minutes=1))


class TestReject:
    """Tests for reject_assignment."""

    def test_reject_releases_and_reassigns_elsewhere(self, settings):
        windows = [all_day('designer-1'), all_day('designer-3')]

        with patch('shared.dynamo.get_item', return_value=pending_assignment()), \
                patch('shared.assignment.list_open_windows', return_value=windows), \
                patch('shared.dynamo.transact_write') as mock_write:
            result = reject_assignment('assign-1', 'designer-1', settings, now=T0 + timedelta(minutes=1))

        assert result['assignment']['status'] == 'REJECTED'
        assert result['reassignedTo']['designerId'] == 'designer-3'

        assignment_update, task_release = mock_write.call_args_list[0][0][0]
        assert written_status(assignment_update) == 'REJECTED'
        assert 'REMOVE assignedToId' in task_release['Update']['UpdateExpression']

    def test_reject_after_timeout(self, settings):
        with patch('shared.dynamo.get_item', return_value=pending_assignment()), \
                patch('shared.assignment.list_open_windows', return_value=[]), \
                patch('shared.dynamo.transact_write') as mock_write:
            with pytest.raises(AssignmentExpired):
                reject_assignment('assign-1', 'designer-1', settings, now=T0 + timedelta(minutes=10))

        assert written_status(mock_write.call_args[0][0][0]) == 'EXPIRED'


class TestPendingList:
    """Tests for list_pending_for_designer."""

    def test_countdown_and_expired_filtered(self, settings):
        now = T0 + timedelta(minutes=3)
        assignments = [
            pending_assignment(assignment_id='fresh', assigned_at=T0),
            pending_assignment(assignment_id='stale', assigned_at=T0 - timedelta(minutes=10)),
        ]

        with patch('shared.dynamo.query', return_value=assignments):
            pending = list_pending_for_designer('designer-1', settings, now=now)

        assert [a['assignmentId'] for a in pending] == ['fresh']
        assert pending[0]['remainingSeconds'] == 120
        assert pending[0]['expiresAt'] == to_iso(T0 + timedelta(minutes=5))


class TestExpirySweep:
    """Tests for expire_stale_assignments."""

    def test_counts_expired_and_already_moved(self, settings):
        stale = [
            pending_assignment(assignment_id='a', assigned_at=T0 - timedelta(minutes=10)),
            pending_assignment(assignment_id='b', assigned_at=T0 - timedelta(minutes=7)),
        ]
        conflict = dynamo.TransactionConflict('cancelled', ['ConditionalCheckFailed', 'None'])

        with patch('shared.dynamo.query', return_value=stale), \
                patch('shared.assignment.list_open_windows', return_value=[]), \
                patch('shared.dynamo.transact_write', side_effect=[None, conflict]):
            result = expire_stale_assignments(settings, now=T0)

        assert result == {'checked': 2, 'expired': 1}
