"""
Logging for the Lambda handlers.

All modules log through the `liveaiphoto` logger. The Lambda runtime installs
its own handler on the root logger, so a stream handler is only attached when
running outside Lambda (tests, local invocations).
"""
import json
import logging
import os
from typing import Any, Dict
from .config import config

LOGGER_NAME = 'liveaiphoto'
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Uploads and auth tokens never reach the logs
REDACTED_KEYS = ('body', 'headers', 'multiValueHeaders')


def _build_logger(name: str, level: str) -> logging.Logger:
    log = logging.getLogger(name)
    log.setLevel(getattr(logging, level, logging.INFO))

    if not log.handlers and not os.environ.get('AWS_LAMBDA_FUNCTION_NAME'):
        stream = logging.StreamHandler()
        stream.setFormatter(logging.Formatter(LOG_FORMAT))
        log.addHandler(stream)
        log.propagate = False
    return log


logger = _build_logger(LOGGER_NAME, config.LOG_LEVEL)


def summarize_event(event: Dict[str, Any]) -> Dict[str, Any]:
    """
    Loggable view of a Lambda event: redacted keys are dropped, the body is
    reduced to its length and SQS records to their message ids.
    """
    summary = {k: v for k, v in event.items() if k not in REDACTED_KEYS and k != 'Records'}
    if event.get('body'):
        summary['bodyLength'] = len(event['body'])
    if 'Records' in event:
        summary['messageIds'] = [r.get('messageId') for r in event.get('Records') or []]
    return summary


def log_event(event: Dict[str, Any]) -> None:
    try:
        logger.info(f"Lambda event: {json.dumps(summarize_event(event), default=str)}")
    except (TypeError, ValueError, AttributeError) as e:
        logger.warning(f"Could not log event: {e}")
