"""
Save Availability Handler.
POST /designer/availability

Every date present in the payload has its windows replaced; a date sent
with only unavailable slots is cleared.
"""
import traceback
from shared.auth import get_user_sub, has_role
from shared.availability import AvailabilityValidationError, replace_availability, validate_slots
from shared.logging import logger, log_event
from shared.models import UserRole
from shared.utils import error_response, format_response, parse_body


def handler(event, context):
    """
    Body: {
        "availability": [
            {"date": "2026-10-19", "startTime": "09:00", "endTime": "17:00", "isAvailable": true}
        ]
    }
    """
    log_event(event)

    designer_id = get_user_sub(event)
    if not designer_id:
        return error_response(401, 'Unauthorized')

    if not has_role(event, UserRole.DESIGNER):
        return error_response(403, 'Only designers can manage availability')

    body = parse_body(event)

    try:
        by_date = validate_slots(body.get('availability'))
    except AvailabilityValidationError as e:
        return error_response(400, 'Invalid availability data', e.errors)

    try:
        results = []
        for slot_date in sorted(by_date):
            created = replace_availability(designer_id, slot_date, by_date[slot_date])
            results.append({'date': slot_date, 'created': created})

        return format_response(200, {
            'message': 'Availability saved',
            'results': results
        })

    except Exception as e:
        logger.error(f"Error saving availability: {e}")
        traceback.print_exc()
        return error_response(500, 'Failed to save availability')
