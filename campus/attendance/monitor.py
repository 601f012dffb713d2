import logging
from typing import Iterable, Optional

from django.utils import timezone

from notifications.models import Notification
from notifications.services import create_notification
from .stats import calculate_academic_status, student_summary

logger = logging.getLogger(__name__)

STATUS_NOTIFICATIONS = {
    "mahroom": (
        Notification.Type.MAHROOM_ALERT,
        Notification.Severity.ERROR,
        "Attendance alert: Mahroom (disqualified)",
    ),
    "tasdiq": (
        Notification.Type.TASDIQ_ALERT,
        Notification.Severity.WARNING,
        "Attendance alert: Tasdiq (certification required)",
    ),
    "warning": (
        Notification.Type.ATTENDANCE_WARNING,
        Notification.Severity.WARNING,
        "Attendance warning",
    ),
}


def check_student_thresholds(student) -> Optional[Notification]:
    """Notify a student whose standing dropped below a threshold, once per type per day"""
    academic_status = calculate_academic_status(student_summary(student))
    config = STATUS_NOTIFICATIONS.get(academic_status["status"])
    if config is None:
        return None

    notification_type, severity, title = config
    # includes rows hidden from the feed, so email-only users are not re-alerted
    already_sent = Notification.objects.filter(
        user=student.user,
        type=notification_type,
        created_at__date=timezone.localdate(),
    ).exists()
    if already_sent:
        return None

    logger.info(
        "Student %s crossed the %s threshold (%.2f%%)",
        student.student_id,
        academic_status["status"],
        academic_status["attendance_rate"],
    )
    return create_notification(
        student.user,
        notification_type,
        title,
        academic_status["message"],
        severity=severity,
        metadata={
            "student_id": student.student_id,
            "attendance_rate": academic_status["attendance_rate"],
            "remaining_absences": academic_status["remaining_absences"],
        },
    )


def check_students(students: Iterable) -> int:
    sent = 0
    for student in students:
        if check_student_thresholds(student) is not None:
            sent += 1
    return sent
