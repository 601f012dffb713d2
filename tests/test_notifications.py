from unittest import mock

import pytest
from django.core import mail

from notifications.models import Notification
from notifications.services import create_notification, get_preferences

pytestmark = pytest.mark.django_db


def notify(user, notification_type=Notification.Type.SYSTEM_ANNOUNCEMENT):
    return create_notification(user, notification_type, "Title", "Body")


class TestCreateNotification:
    def test_creates_row_and_emails(
        self, student, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks(execute=True):
            notification = notify(student.user)
            assert mail.outbox == []
        notification.refresh_from_db()
        assert notification.delivery_status == Notification.DeliveryStatus.DELIVERED
        assert len(mail.outbox) == 1
        assert mail.outbox[0].to == [student.user.email]

    def test_category_flag_off_skips_notification(self, student):
        preferences = get_preferences(student.user)
        preferences.file_updates = False
        preferences.save()
        assert notify(student.user, Notification.Type.FILE_REJECTED) is None
        assert not Notification.objects.exists()
        assert notify(student.user) is not None

    def test_email_disabled(self, student, django_capture_on_commit_callbacks):
        preferences = get_preferences(student.user)
        preferences.email_enabled = False
        preferences.save()
        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            notification = notify(student.user)
        assert callbacks == []
        assert mail.outbox == []
        assert notification.delivery_status == Notification.DeliveryStatus.DELIVERED

    def test_in_app_disabled_hides_row_but_emails(
        self, student, student_client, django_capture_on_commit_callbacks
    ):
        preferences = get_preferences(student.user)
        preferences.in_app_enabled = False
        preferences.save()
        with django_capture_on_commit_callbacks(execute=True):
            notification = notify(student.user)
        assert notification is not None
        assert not notification.in_app
        assert len(mail.outbox) == 1
        data = student_client.get("/api/notifications/").json()["data"]
        assert data["notifications"] == []
        assert data["unread_count"] == 0

    def test_nothing_stored_when_no_channel_reaches_user(self, other_student):
        preferences = get_preferences(other_student.user)
        preferences.in_app_enabled = False
        preferences.save()
        assert notify(other_student.user) is None
        assert not Notification.objects.exists()

    def test_failed_email_marks_row_failed(
        self, student, django_capture_on_commit_callbacks
    ):
        with mock.patch(
            "notifications.services.send_email", side_effect=OSError("smtp down")
        ):
            with django_capture_on_commit_callbacks(execute=True):
                notification = notify(student.user)
        notification.refresh_from_db()
        assert notification.delivery_status == Notification.DeliveryStatus.FAILED


class TestNotificationApi:
    def test_list_and_unread_count(self, student_client, student):
        notify(student.user)
        notify(student.user)
        data = student_client.get("/api/notifications/").json()["data"]
        assert len(data["notifications"]) == 2
        assert data["unread_count"] == 2

    def test_mark_read(self, student_client, student):
        notification = notify(student.user)
        response = student_client.post_json(
            f"/api/notifications/{notification.pk}/read/"
        )
        assert response.status_code == 200
        notification.refresh_from_db()
        assert notification.read
        assert notification.read_at is not None

    def test_mark_all_read(self, student_client, student):
        notify(student.user)
        notify(student.user)
        response = student_client.post_json("/api/notifications/read-all/")
        assert response.json()["data"]["updated"] == 2

    def test_cannot_touch_other_users_notifications(
        self, student_client, other_student
    ):
        notification = notify(other_student.user)
        response = student_client.delete(f"/api/notifications/{notification.pk}/")
        assert response.status_code == 404
        assert Notification.objects.filter(pk=notification.pk).exists()

    def test_preferences_round_trip(self, student_client):
        response = student_client.put_json(
            "/api/notifications/preferences/", {"email_enabled": False}
        )
        assert response.status_code == 200
        data = student_client.get("/api/notifications/preferences/").json()["data"]
        assert data["email_enabled"] is False
        assert data["in_app_enabled"] is True

    def test_preferences_must_be_boolean(self, student_client):
        response = student_client.put_json(
            "/api/notifications/preferences/", {"email_enabled": "no"}
        )
        assert response.status_code == 400
