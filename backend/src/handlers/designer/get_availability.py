from shared.auth import get_user_sub, has_role
from shared.availability import local_date_and_time, get_availability
from shared.logging import logger, log_event
from shared.models import UserRole
from shared.utils import error_response, format_response, get_query_param, utc_now


def handler(event, context):
    """
    Designer's own availability windows.
    GET /designer/availability?from=YYYY-MM-DD (defaults to today)
    """
    log_event(event)

    designer_id = get_user_sub(event)
    if not designer_id:
        return error_response(401, 'Unauthorized')

    if not has_role(event, UserRole.DESIGNER):
        return error_response(403, 'Only designers can manage availability')

    from_date = get_query_param(event, 'from') or local_date_and_time(utc_now())[0]

    try:
        slots = get_availability(designer_id, from_date)
        return format_response(200, {'availability': slots})

    except Exception as e:
        logger.error(f"Error fetching availability: {e}")
        return error_response(500, 'Failed to fetch availability')
