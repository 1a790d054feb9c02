"""
Authentication utilities for extracting user info from Cognito tokens.
"""
from typing import Optional
from . import dynamo
from .config import config
from .models import UserRole

# Group names as configured in the Cognito user pool, strongest first
ROLE_GROUPS = [
    ('admin', UserRole.ADMIN),
    ('designer', UserRole.DESIGNER),
    ('client', UserRole.CLIENT),
]


def _get_claims(event: dict) -> dict:
    try:
        return event['requestContext']['authorizer']['claims'] or {}
    except (KeyError, TypeError):
        return {}


def get_user_sub(event: dict) -> Optional[str]:
    """
    Extract user sub (unique ID) from Cognito authorizer claims.

    Args:
        event: API Gateway Lambda proxy event

    Returns:
        User sub string or None if not authenticated
    """
    return _get_claims(event).get('sub')


def get_user_email(event: dict) -> Optional[str]:
    """Extract user email from Cognito claims."""
    return _get_claims(event).get('email')


def get_user_groups(event: dict) -> list:
    """Extract user groups (client, designer, admin) from Cognito claims."""
    groups = _get_claims(event).get('cognito:groups', '')
    if isinstance(groups, str):
        return groups.split(',') if groups else []
    return groups or []


def get_user_role(event: dict) -> Optional[str]:
    """
    Resolve the caller's role.

    The `custom:role` attribute wins when it holds a known role; otherwise
    the strongest Cognito group is used. Unknown values resolve to None.
    """
    role = (_get_claims(event).get('custom:role') or '').upper()
    if role in UserRole.ALL:
        return role

    groups = [g.strip().lower() for g in get_user_groups(event)]
    for group, group_role in ROLE_GROUPS:
        if group in groups:
            return group_role
    return None


def has_role(event: dict, *roles: str) -> bool:
    """Check if the caller holds one of the given roles."""
    return get_user_role(event) in roles


def is_admin(event: dict) -> bool:
    """Check if user is an admin."""
    return has_role(event, UserRole.ADMIN)


def is_designer(event: dict) -> bool:
    """Check if user is a designer."""
    return has_role(event, UserRole.DESIGNER)


def get_user_profile(user_id: str) -> Optional[dict]:
    """Users table item (companyId, email, notificationPhone, ...) for the caller."""
    return dynamo.get_item(config.USERS_TABLE, {'userId': user_id})
