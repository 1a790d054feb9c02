"""
Expire Assignments Handler.
Triggered by EventBridge scheduler every minute to expire stale assignments.
"""
from shared.confirmation import expire_stale_assignments
from shared.logging import logger
from shared.settings import get_settings


def handler(event, context):
    """
    Scheduled handler to expire unconfirmed task proposals.

    When an assignment expires:
    1. Assignment status -> EXPIRED
    2. Task status -> PENDING (assignee cleared)
    3. The task is proposed to another available designer
    """
    logger.info("Running assignment expiration check...")
    return expire_stale_assignments(get_settings())
