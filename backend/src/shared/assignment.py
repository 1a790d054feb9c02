"""
Assignment Policy Engine.

Picks a designer for a PENDING task among the designers whose availability
window is open right now, according to the queue mode in the settings,
and proposes the task to them.

Queue modes:
- round_robin: first available designer in stable (id) order. No rotation
  cursor is persisted, so this is effectively "first available".
- least_loaded: fewest tasks in PENDING/ASSIGNED/IN_PROGRESS, ties by id.
- priority: same selection as round_robin; order priority does not change
  who gets the task.
"""
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional
from boto3.dynamodb.conditions import Key, Attr
from . import dynamo
from .availability import list_open_windows
from .config import config
from .logging import logger
from .models import AssignmentStatus, QueueMode, TaskStatus
from .utils import to_iso, utc_now


def find_available_designers(now: datetime, exclude: Iterable[str] = ()) -> List[str]:
    """Designer ids with an open window right now, in stable order."""
    excluded = set(exclude)
    designer_ids = {
        row['designerId'] for row in list_open_windows(now)
        if row['designerId'] not in excluded
    }
    return sorted(designer_ids)


def count_active_tasks(designer_id: str) -> int:
    """Tasks currently assigned to the designer that are not finished yet."""
    return dynamo.count(
        config.TASKS_TABLE,
        index_name='AssignedToIndex',
        key_condition=Key('assignedToId').eq(designer_id),
        filter_expression=Attr('status').is_in(list(TaskStatus.ACTIVE))
    )


def _first_available(candidates: List[str], load_of: Callable[[str], int]) -> str:
    return candidates[0]


def _least_loaded(candidates: List[str], load_of: Callable[[str], int]) -> str:
    loads = {designer_id: load_of(designer_id) for designer_id in candidates}
    # min() keeps the first of equal loads, so ties stay in stable order
    return min(candidates, key=lambda designer_id: loads[designer_id])


QUEUE_POLICIES = {
    QueueMode.ROUND_ROBIN: _first_available,
    QueueMode.LEAST_LOADED: _least_loaded,
    QueueMode.PRIORITY: _first_available,
}


def select_designer(
    queue_mode: str,
    candidates: List[str],
    load_of: Optional[Callable[[str], int]] = None
) -> Optional[str]:
    """
    Apply the queue policy to the available candidates.

    Args:
        queue_mode: round_robin, least_loaded or priority
        candidates: Available designer ids in stable order
        load_of: Active task count per designer (least_loaded only)

    Returns:
        Chosen designer id, or None if there are no candidates
    """
    if not candidates:
        return None

    policy = QUEUE_POLICIES.get(queue_mode)
    if policy is None:
        logger.warning(f"Unknown queue mode '{queue_mode}', using {QueueMode.ROUND_ROBIN}")
        policy = QUEUE_POLICIES[QueueMode.ROUND_ROBIN]

    return policy(candidates, load_of or count_active_tasks)


def propose_task(task_id: str, designer_id: str, now: datetime) -> Optional[Dict[str, Any]]:
    """
    Create a PENDING assignment and move the task to ASSIGNED, atomically.

    The task update is conditional on the task still being PENDING, so a
    task never has two PENDING assignments even under concurrent attempts.

    Returns:
        The new assignment item, or None if the task was no longer PENDING
    """
    assignment_id = str(uuid.uuid4())
    assigned_at = to_iso(now)

    assignment = {
        'assignmentId': assignment_id,
        'taskId': task_id,
        'designerId': designer_id,
        'status': AssignmentStatus.PENDING,
        'assignedAt': assigned_at
    }

    actions = [
        dynamo.build_update(
            config.TASKS_TABLE,
            {'taskId': task_id},
            'SET #status = :assigned, assignedToId = :designer, assignedAt = :ts, '
            'currentAssignmentId = :assignment, updatedAt = :ts',
            expression_values={
                ':pending': TaskStatus.PENDING,
                ':assigned': TaskStatus.ASSIGNED,
                ':designer': designer_id,
                ':ts': assigned_at,
                ':assignment': assignment_id
            },
            condition_expression='#status = :pending',
            expression_names={'#status': 'status'}
        ),
        dynamo.build_put(
            config.ASSIGNMENTS_TABLE,
            assignment,
            condition_expression='attribute_not_exists(assignmentId)'
        )
    ]

    try:
        dynamo.transact_write(actions)
    except dynamo.TransactionConflict:
        logger.info(f"Task {task_id} is no longer pending, not proposing to {designer_id}")
        return None

    return assignment


def try_auto_assign(
    task_id: str,
    settings: Dict[str, Any],
    now: Optional[datetime] = None,
    exclude_designers: Iterable[str] = ()
) -> Optional[Dict[str, Any]]:
    """
    Best-effort: propose a PENDING task to an available designer.

    Never raises. When nobody is available, or anything fails, the task is
    left PENDING and unassigned for a later retry.

    Returns:
        The created assignment, or None
    """
    try:
        now = now or utc_now()
        candidates = find_available_designers(now, exclude=exclude_designers)
        designer_id = select_designer(settings.get('queueMode', QueueMode.ROUND_ROBIN), candidates)

        if not designer_id:
            logger.info(f"No available designers found for task {task_id}")
            return None

        assignment = propose_task(task_id, designer_id, now)
        if assignment:
            logger.info(f"Task {task_id} assigned to designer {designer_id} "
                        f"(assignment {assignment['assignmentId']})")
        return assignment

    except Exception as e:
        logger.error(f"Error auto-assigning task {task_id}: {e}")
        return None


def list_unassigned_tasks() -> List[Dict[str, Any]]:
    """PENDING tasks without a designer, oldest first."""
    tasks = dynamo.query(
        config.TASKS_TABLE,
        index_name='StatusIndex',
        key_condition=Key('status').eq(TaskStatus.PENDING)
    )
    return [t for t in tasks if not t.get('assignedToId')]
