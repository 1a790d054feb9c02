"""
System Settings Handler.
GET /admin/settings
PUT /admin/settings

Pricing, designer rates, confirmation timeout and the queue mode.
"""
from shared.auth import get_user_sub, is_admin
from shared.logging import logger, log_event
from shared.settings import SettingsValidationError, get_settings, update_settings, validate_settings_update
from shared.utils import error_response, format_response, parse_body


def handler(event, context):
    log_event(event)

    if not get_user_sub(event):
        return error_response(401, 'Unauthorized')

    if not is_admin(event):
        return error_response(403, 'Admin access required')

    method = event.get('httpMethod', 'GET')

    try:
        if method == 'GET':
            return format_response(200, {'settings': get_settings()})

        if method == 'PUT':
            changes = validate_settings_update(parse_body(event))
            return format_response(200, {
                'message': 'Settings updated',
                'settings': update_settings(changes)
            })

        return error_response(405, f"Method {method} not allowed")

    except SettingsValidationError as e:
        return error_response(400, 'Invalid settings', e.errors)
    except Exception as e:
        logger.error(f"Error handling settings request: {e}")
        return error_response(500, 'Failed to process settings')
