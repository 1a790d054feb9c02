"""
Assign Pending Tasks Handler.
Triggered by EventBridge scheduler to retry tasks nobody could take at intake.
"""
from shared.assignment import list_unassigned_tasks, try_auto_assign
from shared.logging import logger
from shared.settings import get_settings
from shared.utils import utc_now


def handler(event, context):
    """
    Scheduled handler proposing unassigned PENDING tasks to designers whose
    availability window is open now. Should be triggered every minute.
    """
    logger.info("Running pending task assignment check...")

    tasks = list_unassigned_tasks()
    logger.info(f"Found {len(tasks)} unassigned tasks")
    if not tasks:
        return {'checked': 0, 'assigned': 0}

    settings = get_settings()
    now = utc_now()

    assigned_count = 0
    for task in sorted(tasks, key=lambda t: t.get('createdAt', '')):
        if try_auto_assign(task['taskId'], settings, now=now):
            assigned_count += 1

    return {
        'checked': len(tasks),
        'assigned': assigned_count
    }
