from django.http import HttpRequest
from django.utils import timezone

from base.api import (
    api_login_required,
    json_error,
    json_success,
    paginate,
    parse_json_body,
    require_methods,
)
from .models import Notification, NotificationPreference
from .services import get_preferences, mark_as_read, serialize_notification

PREFERENCE_FIELDS = [
    "email_enabled",
    "in_app_enabled",
    "attendance_alerts",
    "file_updates",
    "system_announcements",
]


def serialize_preferences(preferences: NotificationPreference):
    return {field: getattr(preferences, field) for field in PREFERENCE_FIELDS}


@require_methods("GET")
@api_login_required
def notification_list(request: HttpRequest):
    """List the current user's notifications, newest first"""
    notifications = Notification.objects.visible().filter(user=request.user)
    if request.GET.get("unread") in ("1", "true"):
        notifications = notifications.filter(read=False)
    notification_type = request.GET.get("type")
    if notification_type:
        notifications = notifications.filter(type=notification_type)

    page, meta = paginate(request, notifications, default_limit=20)

    return json_success(
        {
            "notifications": [serialize_notification(n) for n in page],
            "unread_count": Notification.objects.visible().filter(
                user=request.user, read=False
            ).count(),
            **meta,
        }
    )


@require_methods("POST")
@api_login_required
def mark_notification_read(request: HttpRequest, notification_id: int):
    try:
        notification = Notification.objects.visible().get(
            id=notification_id, user=request.user
        )
    except Notification.DoesNotExist:
        return json_error("Notification not found", status=404)

    mark_as_read(notification)
    return json_success(serialize_notification(notification))


@require_methods("POST")
@api_login_required
def mark_all_read(request: HttpRequest):
    updated = (
        Notification.objects.visible()
        .filter(user=request.user, read=False)
        .update(read=True, read_at=timezone.now())
    )
    return json_success({"updated": updated}, f"Marked {updated} notification(s) as read")


@require_methods("DELETE")
@api_login_required
def delete_notification(request: HttpRequest, notification_id: int):
    deleted, _ = Notification.objects.visible().filter(
        id=notification_id, user=request.user
    ).delete()
    if not deleted:
        return json_error("Notification not found", status=404)
    return json_success(message="Notification deleted")


@require_methods("GET", "PUT")
@api_login_required
def preferences(request: HttpRequest):
    preferences = get_preferences(request.user)

    if request.method == "PUT":
        body, error_response = parse_json_body(request)
        if error_response:
            return error_response

        invalid = {
            field: ["Must be a boolean."]
            for field in PREFERENCE_FIELDS
            if field in body and not isinstance(body[field], bool)
        }
        if invalid:
            return json_error("Validation failed", status=400, details=invalid)

        for field in PREFERENCE_FIELDS:
            if field in body:
                setattr(preferences, field, body[field])
        preferences.save()
        return json_success(serialize_preferences(preferences), "Preferences updated")

    return json_success(serialize_preferences(preferences))
