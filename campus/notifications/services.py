import logging
from functools import partial
from typing import Any, Dict, Iterable, List, Optional

from django.db import transaction
from django.utils import timezone

from base.emails import send_email
from .models import Notification, NotificationPreference

logger = logging.getLogger(__name__)


def get_preferences(user) -> NotificationPreference:
    preferences, _ = NotificationPreference.objects.get_or_create(user=user)
    return preferences


def create_notification(
    user,
    notification_type: str,
    title: str,
    message: str,
    severity: str = Notification.Severity.INFO,
    metadata: Optional[Dict[str, Any]] = None,
) -> Optional[Notification]:
    """
    Record a notification for a user, honouring their preferences.

    Returns None when the user has turned this kind of notification off, or
    when neither in-app nor email delivery can reach them. The row is stored
    even with in-app delivery off, hidden from the feed, so callers can tell
    what was already sent. Email goes out after the surrounding transaction
    commits; a failed send marks the row as failed.
    """
    preferences = get_preferences(user)
    if not preferences.allows(notification_type):
        return None

    by_email = preferences.email_enabled and bool(user.email)
    if not (preferences.in_app_enabled or by_email):
        return None

    notification = Notification.objects.create(
        user=user,
        type=notification_type,
        severity=severity,
        title=title,
        message=message,
        metadata=metadata or {},
        in_app=preferences.in_app_enabled,
        delivery_status=(
            Notification.DeliveryStatus.PENDING
            if by_email
            else Notification.DeliveryStatus.DELIVERED
        ),
    )
    if by_email:
        transaction.on_commit(partial(deliver_email, notification.pk))
    return notification


def deliver_email(notification_id: int) -> None:
    notification = (
        Notification.objects.select_related("user").filter(pk=notification_id).first()
    )
    if notification is None:
        return
    try:
        send_email(notification.title, notification.message, [notification.user.email])
    except Exception:
        logger.exception("Failed to email notification %s", notification_id)
        notification.delivery_status = Notification.DeliveryStatus.FAILED
    else:
        notification.delivery_status = Notification.DeliveryStatus.DELIVERED
    notification.save(update_fields=["delivery_status"])


def notify_users(
    users: Iterable, notification_type: str, title: str, message: str, **kwargs
) -> List[Notification]:
    created = []
    for user in users:
        notification = create_notification(
            user, notification_type, title, message, **kwargs
        )
        if notification is not None:
            created.append(notification)
    return created


def mark_as_read(notification: Notification) -> Notification:
    if not notification.read:
        notification.read = True
        notification.read_at = timezone.now()
        notification.save(update_fields=["read", "read_at"])
    return notification


def serialize_notification(notification: Notification) -> Dict[str, Any]:
    return {
        "id": notification.pk,
        "type": notification.type,
        "severity": notification.severity,
        "title": notification.title,
        "message": notification.message,
        "metadata": notification.metadata,
        "read": notification.read,
        "read_at": notification.read_at.isoformat() if notification.read_at else None,
        "delivery_status": notification.delivery_status,
        "created_at": notification.created_at.isoformat(),
    }
