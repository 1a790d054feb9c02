"""
Confirmation State Machine for task assignments.

    PENDING -> CONFIRMED   designer confirms within the timeout; task -> IN_PROGRESS
    PENDING -> REJECTED    designer declines; task -> PENDING, reassigned
    PENDING -> EXPIRED     now > assignedAt + timeout; task -> PENDING, reassigned

Terminal states never change. Every transition is a conditional write on
the assignment still being PENDING, so concurrent confirm/reject/expire
calls resolve to exactly one winner. Expiry is evaluated lazily whenever
an assignment is acted on; expire_stale_assignments() is the separate
scheduled sweep.
"""
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from boto3.dynamodb.conditions import Key
from . import dynamo
from .assignment import try_auto_assign
from .config import config
from .logging import logger
from .models import AssignmentStatus, TaskStatus
from .utils import parse_iso, to_iso, utc_now

# Timestamp attribute written with each terminal status
STATUS_TIMESTAMPS = {
    AssignmentStatus.CONFIRMED: 'confirmedAt',
    AssignmentStatus.REJECTED: 'rejectedAt',
    AssignmentStatus.EXPIRED: 'expiredAt',
}


class AssignmentError(Exception):
    """Base class for assignment actions the caller cannot perform."""
    status_code = 400


class AssignmentNotFound(AssignmentError):
    status_code = 404


class AssignmentForbidden(AssignmentError):
    status_code = 403


class AssignmentNotPending(AssignmentError):
    status_code = 400


class AssignmentExpired(AssignmentError):
    status_code = 400


def confirmation_timeout(settings: Dict[str, Any]) -> int:
    """Minutes a designer has to confirm; falls back to 5."""
    return int(settings.get('confirmationTimeout') or 5)


def expires_at(assignment: Dict[str, Any], timeout_minutes: int) -> datetime:
    return parse_iso(assignment['assignedAt']) + timedelta(minutes=timeout_minutes)


def is_expired(assignment: Dict[str, Any], timeout_minutes: int, now: datetime) -> bool:
    """An assignment lapses once now is strictly past assignedAt + timeout."""
    return now > expires_at(assignment, timeout_minutes)


def remaining_seconds(assignment: Dict[str, Any], timeout_minutes: int, now: datetime) -> int:
    """Seconds left on the countdown, never negative."""
    remaining = (expires_at(assignment, timeout_minutes) - now).total_seconds()
    return max(0, int(remaining))


def _assignment_update(assignment_id: str, new_status: str, timestamp: str) -> dict:
    return dynamo.build_update(
        config.ASSIGNMENTS_TABLE,
        {'assignmentId': assignment_id},
        f'SET #status = :new_status, {STATUS_TIMESTAMPS[new_status]} = :ts',
        expression_values={
            ':new_status': new_status,
            ':pending': AssignmentStatus.PENDING,
            ':ts': timestamp
        },
        condition_expression='#status = :pending',
        expression_names={'#status': 'status'}
    )


def _task_release(task_id: str, assignment_id: str, timestamp: str) -> dict:
    return dynamo.build_update(
        config.TASKS_TABLE,
        {'taskId': task_id},
        'SET #status = :pending, updatedAt = :ts REMOVE assignedToId, assignedAt, currentAssignmentId',
        expression_values={
            ':pending': TaskStatus.PENDING,
            ':ts': timestamp,
            ':assignment': assignment_id
        },
        condition_expression='currentAssignmentId = :assignment',
        expression_names={'#status': 'status'}
    )


def _task_start(task_id: str, assignment_id: str, designer_id: str, timestamp: str) -> dict:
    return dynamo.build_update(
        config.TASKS_TABLE,
        {'taskId': task_id},
        'SET #status = :in_progress, assignedToId = :designer, startedAt = :ts, updatedAt = :ts',
        expression_values={
            ':in_progress': TaskStatus.IN_PROGRESS,
            ':assigned': TaskStatus.ASSIGNED,
            ':designer': designer_id,
            ':ts': timestamp,
            ':assignment': assignment_id
        },
        condition_expression='currentAssignmentId = :assignment AND #status = :assigned',
        expression_names={'#status': 'status'}
    )


def load_assignment_for_designer(assignment_id: str, designer_id: str) -> Dict[str, Any]:
    """
    Fetch a PENDING assignment proposed to this designer.

    Raises:
        AssignmentNotFound, AssignmentForbidden, AssignmentNotPending
    """
    assignment = dynamo.get_item(config.ASSIGNMENTS_TABLE, {'assignmentId': assignment_id}, consistent=True)

    if not assignment:
        raise AssignmentNotFound('Assignment not found')
    if assignment.get('designerId') != designer_id:
        raise AssignmentForbidden('This assignment is not for you')
    if assignment.get('status') != AssignmentStatus.PENDING:
        raise AssignmentNotPending('Assignment is no longer pending')
    return assignment


def release_assignment(
    assignment: Dict[str, Any],
    new_status: str,
    settings: Dict[str, Any],
    now: datetime,
    reassign: bool = True
) -> Optional[Dict[str, Any]]:
    """
    Move a PENDING assignment to REJECTED or EXPIRED, return its task to
    PENDING and (optionally) propose it to another designer.

    Returns:
        The replacement assignment, or None if nobody else was available

    Raises:
        AssignmentNotPending: the assignment changed state concurrently
    """
    timestamp = to_iso(now)
    try:
        dynamo.transact_write([
            _assignment_update(assignment['assignmentId'], new_status, timestamp),
            _task_release(assignment['taskId'], assignment['assignmentId'], timestamp)
        ])
    except dynamo.TransactionConflict as e:
        raise AssignmentNotPending('Assignment is no longer pending') from e

    logger.info(f"Assignment {assignment['assignmentId']} {new_status.lower()} "
                f"(task {assignment['taskId']}, designer {assignment['designerId']})")

    if not reassign:
        return None
    return try_auto_assign(
        assignment['taskId'],
        settings,
        now=now,
        exclude_designers=[assignment['designerId']]
    )


def expire_assignment(assignment: Dict[str, Any], settings: Dict[str, Any], now: datetime) -> bool:
    """
    Expire a lapsed assignment and attempt reassignment.

    Returns:
        True if this call expired it, False if it had already moved on
    """
    try:
        release_assignment(assignment, AssignmentStatus.EXPIRED, settings, now)
        return True
    except AssignmentNotPending:
        logger.info(f"Assignment {assignment['assignmentId']} already transitioned, not expiring")
        return False


def confirm_assignment(
    assignment_id: str,
    designer_id: str,
    settings: Dict[str, Any],
    now: Optional[datetime] = None
) -> Dict[str, Any]:
    """
    Designer accepts the proposed task.

    Returns:
        The confirmed assignment

    Raises:
        AssignmentExpired: the confirmation window has elapsed (the
            assignment is expired and the task reassigned as a side effect)
        AssignmentNotFound, AssignmentForbidden, AssignmentNotPending
    """
    now = now or utc_now()
    assignment = load_assignment_for_designer(assignment_id, designer_id)

    if is_expired(assignment, confirmation_timeout(settings), now):
        expire_assignment(assignment, settings, now)
        raise AssignmentExpired('Assignment has expired')

    timestamp = to_iso(now)
    try:
        dynamo.transact_write([
            _assignment_update(assignment_id, AssignmentStatus.CONFIRMED, timestamp),
            _task_start(assignment['taskId'], assignment_id, designer_id, timestamp)
        ])
    except dynamo.TransactionConflict as e:
        raise AssignmentNotPending('Assignment is no longer pending') from e

    logger.info(f"Assignment {assignment_id} confirmed by designer {designer_id}")
    return dict(assignment, status=AssignmentStatus.CONFIRMED, confirmedAt=timestamp)


def reject_assignment(
    assignment_id: str,
    designer_id: str,
    settings: Dict[str, Any],
    now: Optional[datetime] = None
) -> Dict[str, Any]:
    """
    Designer declines the proposed task; the task goes to someone else.

    Returns:
        Dict with the rejected assignment and the replacement (or None)

    Raises:
        AssignmentExpired, AssignmentNotFound, AssignmentForbidden,
        AssignmentNotPending
    """
    now = now or utc_now()
    assignment = load_assignment_for_designer(assignment_id, designer_id)

    if is_expired(assignment, confirmation_timeout(settings), now):
        expire_assignment(assignment, settings, now)
        raise AssignmentExpired('Assignment has expired')

    replacement = release_assignment(assignment, AssignmentStatus.REJECTED, settings, now)
    return {
        'assignment': dict(assignment, status=AssignmentStatus.REJECTED, rejectedAt=to_iso(now)),
        'reassignedTo': replacement
    }


def list_pending_for_designer(
    designer_id: str,
    settings: Dict[str, Any],
    now: Optional[datetime] = None
) -> List[Dict[str, Any]]:
    """
    PENDING assignments still inside their window, oldest first, each with
    expiresAt and remainingSeconds for the client-side countdown.
    """
    now = now or utc_now()
    timeout = confirmation_timeout(settings)

    assignments = dynamo.query(
        config.ASSIGNMENTS_TABLE,
        index_name='DesignerStatusIndex',
        key_condition=Key('designerId').eq(designer_id) & Key('status').eq(AssignmentStatus.PENDING)
    )

    pending = []
    for assignment in sorted(assignments, key=lambda a: a['assignedAt']):
        if is_expired(assignment, timeout, now):
            continue
        pending.append(dict(
            assignment,
            expiresAt=to_iso(expires_at(assignment, timeout)),
            remainingSeconds=remaining_seconds(assignment, timeout, now)
        ))
    return pending


def find_stale_assignments(settings: Dict[str, Any], now: datetime) -> List[Dict[str, Any]]:
    """PENDING assignments whose confirmation deadline has passed."""
    cutoff = now - timedelta(minutes=confirmation_timeout(settings))
    return dynamo.query(
        config.ASSIGNMENTS_TABLE,
        index_name='StatusIndex',
        key_condition=Key('status').eq(AssignmentStatus.PENDING) & Key('assignedAt').lt(to_iso(cutoff))
    )


def expire_stale_assignments(settings: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, int]:
    """
    Sweep: expire every lapsed PENDING assignment and reassign its task.

    Returns:
        Counts of checked and expired assignments
    """
    now = now or utc_now()
    stale = find_stale_assignments(settings, now)
    logger.info(f"Found {len(stale)} stale assignments older than {confirmation_timeout(settings)} min")

    expired_count = 0
    for assignment in stale:
        try:
            if expire_assignment(assignment, settings, now):
                expired_count += 1
        except Exception as e:
            logger.error(f"Error expiring assignment {assignment.get('assignmentId')}: {e}")

    return {
        'checked': len(stale),
        'expired': expired_count
    }
