"""
Order notifications (SMS via SNS, email via SES).

Fire-and-forget: every failure is logged and swallowed, the caller never
waits on or retries a notification.
"""
import re
import boto3
from typing import List, Optional
from .config import config
from .logging import logger

sns = boto3.client('sns', region_name=config.AWS_REGION)
ses = boto3.client('ses', region_name=config.AWS_REGION)

DEFAULT_COUNTRY_PREFIX = '+48'


def normalize_phone_number(phone: str) -> str:
    """
    Normalize a phone number to international format.
    A leading 0 or a bare 9-digit national number gets the +48 prefix.
    """
    cleaned = re.sub(r'[\s-]+', '', phone)

    if cleaned.startswith('0'):
        cleaned = DEFAULT_COUNTRY_PREFIX + cleaned[1:]

    if not cleaned.startswith('+') and len(cleaned) == 9:
        cleaned = DEFAULT_COUNTRY_PREFIX + cleaned

    return cleaned


def get_notification_phone(order_phone: Optional[str], user_phone: Optional[str]) -> Optional[str]:
    """Order-specific phone wins over the user profile."""
    return order_phone or user_phone or None


def get_delivery_emails(emails_override: Optional[str], user_email: Optional[str]) -> List[str]:
    """Comma-separated order override wins over the user's own address."""
    if emails_override:
        emails = [e.strip() for e in emails_override.split(',') if e.strip()]
        if emails:
            return emails
    return [user_email] if user_email else []


def short_order_id(order_id: str) -> str:
    return order_id[-6:].upper()


def send_sms(to: str, message: str) -> bool:
    """Send an SMS. When SMS is disabled the message is only logged."""
    if not config.SMS_ENABLED:
        logger.info(f"[SMS DISABLED] Would send to {to}: {message}")
        return True

    phone = normalize_phone_number(to)
    try:
        sns.publish(
            PhoneNumber=phone,
            Message=message,
            MessageAttributes={
                'AWS.SNS.SMS.SenderID': {
                    'DataType': 'String',
                    'StringValue': config.SMS_SENDER_NAME
                },
                'AWS.SNS.SMS.SMSType': {
                    'DataType': 'String',
                    'StringValue': 'Transactional'
                }
            }
        )
        logger.info(f"[SMS] Sent successfully to {phone}")
        return True
    except Exception as e:
        logger.error(f"[SMS] Error sending to {phone} (non-critical): {e}")
        return False


def send_order_completed_sms(phone: str, order_id: str) -> bool:
    """Tell the client their graphics are ready."""
    message = (
        f"Twoje zamówienie #{short_order_id(order_id)} zostało ukończone! "
        f"Gotowe grafiki czekają na Ciebie w panelu. - Live AI Photo"
    )
    return send_sms(phone, message)


def send_order_completed_email(emails: List[str], order_id: str) -> bool:
    """Send the completion email to the delivery addresses."""
    if not emails:
        return False
    try:
        ses.send_email(
            Source=config.NOTIFICATION_EMAIL_SOURCE,
            Destination={'ToAddresses': emails},
            Message={
                'Subject': {'Data': f'Zamówienie #{short_order_id(order_id)} gotowe'},
                'Body': {
                    'Text': {
                        'Data': (
                            f'Twoje zamówienie #{short_order_id(order_id)} zostało ukończone.\n\n'
                            f'Gotowe grafiki czekają na Ciebie w panelu.\n\n'
                            f'Live AI Photo'
                        )
                    }
                }
            }
        )
        logger.info(f"Order completed email sent for {order_id}")
        return True
    except Exception as e:
        logger.error(f"SES Error (non-critical): {e}")
        return False


def notify_order_completed(order: dict, user: Optional[dict]) -> None:
    """Send every configured completion notification for an order."""
    user = user or {}
    try:
        phone = get_notification_phone(order.get('notificationPhoneOverride'), user.get('notificationPhone'))
        if phone:
            send_order_completed_sms(phone, order['orderId'])

        emails = get_delivery_emails(order.get('deliveryEmailsOverride'), user.get('email'))
        send_order_completed_email(emails, order['orderId'])
    except Exception as e:
        logger.error(f"Failed to send order completed notifications for {order.get('orderId')}: {e}")
