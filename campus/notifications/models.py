from django.db import models
from django.contrib.auth.models import User


class NotificationQuerySet(models.QuerySet):
    def visible(self):
        """Rows shown in the in-app feed"""
        return self.filter(in_app=True)


class Notification(models.Model):
    class Type(models.TextChoices):
        ATTENDANCE_WARNING = "attendance_warning", "Attendance Warning"
        MAHROOM_ALERT = "mahroom_alert", "Mahroom Alert"
        TASDIQ_ALERT = "tasdiq_alert", "Tasdiq Alert"
        FILE_APPROVED = "file_approved", "File Approved"
        FILE_REJECTED = "file_rejected", "File Rejected"
        SYSTEM_ANNOUNCEMENT = "system_announcement", "System Announcement"

    class Severity(models.TextChoices):
        INFO = "info"
        WARNING = "warning"
        ERROR = "error"
        SUCCESS = "success"

    class DeliveryStatus(models.TextChoices):
        PENDING = "pending"
        DELIVERED = "delivered"
        FAILED = "failed"

    user = models.ForeignKey(
        User, on_delete=models.CASCADE, related_name="notifications"
    )
    type = models.CharField(max_length=30, choices=Type.choices)
    severity = models.CharField(
        max_length=10, choices=Severity.choices, default=Severity.INFO
    )
    title = models.CharField(max_length=255)
    message = models.TextField()
    metadata = models.JSONField(default=dict, blank=True)
    in_app = models.BooleanField(default=True)
    read = models.BooleanField(default=False)
    read_at = models.DateTimeField(null=True, blank=True)
    delivery_status = models.CharField(
        max_length=10, choices=DeliveryStatus.choices, default=DeliveryStatus.PENDING
    )
    created_at = models.DateTimeField(auto_now_add=True)

    objects = NotificationQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.user.username} - {self.title} ({self.type})"


class NotificationPreference(models.Model):
    user = models.OneToOneField(
        User, on_delete=models.CASCADE, related_name="notification_preference"
    )
    email_enabled = models.BooleanField(default=True)
    in_app_enabled = models.BooleanField(default=True)
    attendance_alerts = models.BooleanField(default=True)
    file_updates = models.BooleanField(default=True)
    system_announcements = models.BooleanField(default=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Preferences for {self.user.username}"

    def allows(self, notification_type: str) -> bool:
        if notification_type in (
            Notification.Type.ATTENDANCE_WARNING,
            Notification.Type.MAHROOM_ALERT,
            Notification.Type.TASDIQ_ALERT,
        ):
            return self.attendance_alerts
        if notification_type in (
            Notification.Type.FILE_APPROVED,
            Notification.Type.FILE_REJECTED,
        ):
            return self.file_updates
        if notification_type == Notification.Type.SYSTEM_ANNOUNCEMENT:
            return self.system_announcements
        return True
