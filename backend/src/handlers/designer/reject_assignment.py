"""
Reject Assignment Handler.
POST /designer/assignments/{assignmentId}/reject

The task goes back to the queue and is proposed to another designer.
"""
import traceback
from shared.auth import get_user_sub, has_role
from shared.confirmation import AssignmentError, reject_assignment
from shared.logging import logger, log_event
from shared.models import UserRole
from shared.settings import get_settings
from shared.utils import error_response, format_response, get_path_param


def handler(event, context):
    log_event(event)

    designer_id = get_user_sub(event)
    if not designer_id:
        return error_response(401, 'Unauthorized')

    if not has_role(event, UserRole.DESIGNER, UserRole.ADMIN):
        return error_response(403, 'Only designers or admins can reject assignments')

    assignment_id = get_path_param(event, 'assignmentId')
    if not assignment_id:
        return error_response(400, 'Assignment ID is required')

    try:
        result = reject_assignment(assignment_id, designer_id, get_settings())
        replacement = result['reassignedTo']
        return format_response(200, {
            'message': 'Assignment rejected',
            'assignment': result['assignment'],
            'reassigned': replacement is not None,
            'reassignedTo': replacement['designerId'] if replacement else None
        })

    except AssignmentError as e:
        return error_response(e.status_code, str(e))
    except Exception as e:
        logger.error(f"Error rejecting assignment {assignment_id}: {e}")
        traceback.print_exc()
        return error_response(500, 'Failed to reject assignment')
