"""
Configuration module for Lambda handlers.
Loads all environment variables needed by the ordering workflow.
Business settings (prices, queue mode, timeout) live in the Settings table.
"""
import os


class Config:
    """Centralized configuration from environment variables."""

    # AWS Region
    AWS_REGION = os.environ.get('AWS_REGION', 'eu-central-1')

    # Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()

    # DynamoDB Tables
    ORDERS_TABLE = os.environ.get('ORDERS_TABLE', '')
    TASKS_TABLE = os.environ.get('TASKS_TABLE', '')
    ASSIGNMENTS_TABLE = os.environ.get('ASSIGNMENTS_TABLE', '')
    AVAILABILITY_TABLE = os.environ.get('AVAILABILITY_TABLE', '')
    USERS_TABLE = os.environ.get('USERS_TABLE', '')
    COMPANIES_TABLE = os.environ.get('COMPANIES_TABLE', '')
    PACKAGE_PURCHASES_TABLE = os.environ.get('PACKAGE_PURCHASES_TABLE', '')
    SETTINGS_TABLE = os.environ.get('SETTINGS_TABLE', '')

    # SQS Queues
    CHECKOUT_QUEUE_URL = os.environ.get('CHECKOUT_QUEUE_URL', '')

    # Checkout redirect, formatted with orderId and sessionId
    CHECKOUT_URL_TEMPLATE = os.environ.get(
        'CHECKOUT_URL_TEMPLATE',
        'https://app.liveaiphoto.pl/checkout/{sessionId}?order={orderId}'
    )

    # S3 Buckets
    MEDIA_BUCKET = os.environ.get('MEDIA_BUCKET', '')
    MAX_UPLOAD_BYTES = int(os.environ.get('MAX_UPLOAD_BYTES', str(10 * 1024 * 1024)))

    # Designer availability windows are declared in local business time
    BUSINESS_TIMEZONE = os.environ.get('BUSINESS_TIMEZONE', 'Europe/Warsaw')

    # Notifications
    SMS_ENABLED = os.environ.get('SMS_ENABLED', 'false').lower() == 'true'
    SMS_SENDER_NAME = os.environ.get('SMS_SENDER_NAME', 'LiveAIPhoto')
    NOTIFICATION_EMAIL_SOURCE = os.environ.get('NOTIFICATION_EMAIL_SOURCE', 'noreply@liveaiphoto.pl')


config = Config()
