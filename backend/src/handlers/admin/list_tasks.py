from boto3.dynamodb.conditions import Attr, Key
from shared import dynamo
from shared.auth import get_user_sub, is_admin
from shared.config import config
from shared.logging import logger, log_event
from shared.models import TaskStatus
from shared.utils import error_response, format_response, get_query_param


def handler(event, context):
    """
    Task queue overview for admins.
    GET /admin/tasks?status=PENDING&designerId=...

    Returns the tasks matching the filters plus a count per status.
    """
    log_event(event)

    if not get_user_sub(event):
        return error_response(401, 'Unauthorized')

    if not is_admin(event):
        return error_response(403, 'Admin access required')

    status = get_query_param(event, 'status')
    designer_id = get_query_param(event, 'designerId')

    if status and status not in TaskStatus.ALL:
        return error_response(400, f"status must be one of {', '.join(TaskStatus.ALL)}")

    try:
        if designer_id:
            tasks = dynamo.query(
                config.TASKS_TABLE,
                index_name='AssignedToIndex',
                key_condition=Key('assignedToId').eq(designer_id),
                filter_expression=Attr('status').eq(status) if status else None
            )
        elif status:
            tasks = dynamo.query(
                config.TASKS_TABLE,
                index_name='StatusIndex',
                key_condition=Key('status').eq(status)
            )
        else:
            tasks = dynamo.scan(config.TASKS_TABLE)

        tasks.sort(key=lambda t: t.get('createdAt', ''), reverse=True)

        stats = {
            s: dynamo.count(config.TASKS_TABLE, index_name='StatusIndex', key_condition=Key('status').eq(s))
            for s in TaskStatus.ALL
        }

        return format_response(200, {'tasks': tasks, 'stats': stats})

    except Exception as e:
        logger.error(f"Error listing tasks: {e}")
        return error_response(500, 'Failed to list tasks')
