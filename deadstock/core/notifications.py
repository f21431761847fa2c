"""In-app notification and email helpers"""
import logging

from django.conf import settings
from django.core.mail import send_mail

from .models import Notification, User
from .utils import to_json

logger = logging.getLogger(__name__)


def notify_users(recipients, title, message, type='info', priority='medium', sender=None,
                 data=None, action_url=None, expires_at=None):
    """Create one notification per active recipient, returns the created rows"""
    seen = set()
    notifications = []
    for recipient in recipients:
        if recipient is None or recipient.pk in seen or not recipient.is_active:
            continue
        seen.add(recipient.pk)
        notifications.append(Notification(
            recipient=recipient,
            sender=sender if sender is not None and sender.is_authenticated else None,
            title=title[:200],
            message=message[:1000],
            type=type,
            priority=priority,
            data=to_json(data),
            action_url=action_url,
            expires_at=expires_at,
        ))
    if notifications:
        Notification.objects.bulk_create(notifications)
    return notifications


def notify_roles(roles, title, message, exclude=None, **kwargs):
    """Notify every active user holding one of ``roles``"""
    recipients = User.objects.filter(role__in=roles, is_active=True)
    if exclude is not None:
        recipients = recipients.exclude(pk=exclude.pk)
    return notify_users(recipients, title, message, **kwargs)


def notify_managers(title, message, **kwargs):
    return notify_roles([User.ROLE_ADMIN, User.ROLE_INVENTORY_MANAGER], title, message, **kwargs)


def send_email_notification(recipients, subject, message):
    """
    Send a plain-text email to users with an address.

    Returns the number of messages handed to the backend; delivery errors
    are logged so a broken SMTP server does not abort scheduled jobs.
    """
    emails = sorted({user.email for user in recipients if user is not None and user.email})
    if not emails:
        return 0
    try:
        return send_mail(subject, message, settings.DEFAULT_FROM_EMAIL, emails)
    except Exception as e:
        logger.error(f"Failed to send email '{subject}' to {len(emails)} recipient(s): {e}")
        return 0
