from datetime import timedelta

from django.db.models import Count, Q
from django.http import HttpRequest
from django.utils import timezone

from attendance.models import PERIOD_FIELDS, AttendanceRecord, AttendanceStatus
from attendance.stats import calculate_academic_status, student_summary
from base.api import api_login_required, json_error, json_success, require_methods
from base.views import get_user_role, serialize_user
from classes.models import Classroom, ScheduleEntry
from classes.periods import get_period_service
from messaging.models import BroadcastRecipient
from messaging.services import total_unread
from notifications.models import Notification
from students.models import MedicalCertificate, Student
from teachers.models import Teacher
from teachers.views import teacher_classrooms, today_name


@require_methods("GET")
@api_login_required
def dashboard_home(request: HttpRequest):
    """Role-specific statistics for the landing page"""
    user = request.user
    role = get_user_role(user)
    if role is None:
        return json_error("Access denied", status=403)

    dashboard_data = get_dashboard_data(user, role)
    return json_success(
        {
            "role": role,
            "user": serialize_user(user),
            "today": timezone.localdate().isoformat(),
            "unread": {
                "messages": total_unread(user),
                "broadcasts": BroadcastRecipient.objects.filter(
                    user=user, read_at__isnull=True
                ).count(),
                "notifications": Notification.objects.visible().filter(
                    user=user, read=False
                ).count(),
            },
            **dashboard_data,
        }
    )


def get_dashboard_data(user, role):
    """Get role-specific dashboard data and statistics"""
    if role == "Office":
        return get_office_data()
    elif role == "Teacher":
        teacher = Teacher.objects.filter(user=user).first()
        return get_teacher_data(teacher) if teacher else {"stats": {}}
    student = Student.objects.filter(user=user).first()
    return get_student_data(student) if student else {"stats": {}}


def count_statuses(records):
    """Period counts per status over a queryset of attendance records"""
    totals = {status: 0 for status in AttendanceStatus.values}
    for periods in records.values_list(*PERIOD_FIELDS):
        for status in periods:
            totals[status] = totals.get(status, 0) + 1
    return totals


def get_office_data():
    today = timezone.localdate()
    return {
        "stats": {
            "total_students": Student.objects.filter(
                status=Student.Status.ACTIVE
            ).count(),
            "total_teachers": Teacher.objects.filter(
                status=Teacher.Status.ACTIVE
            ).count(),
            "total_classes": Classroom.objects.count(),
            "pending_certificates": MedicalCertificate.objects.filter(
                status=MedicalCertificate.Status.PENDING
            ).count(),
            "students_marked_today": AttendanceRecord.objects.filter(date=today)
            .values("student")
            .distinct()
            .count(),
        },
        "charts": {
            "today": count_statuses(AttendanceRecord.objects.filter(date=today)),
            "attendance_trend": get_attendance_trend_data(),
        },
        "classes": list(
            Classroom.objects.annotate(
                student_count=Count(
                    "students", filter=Q(students__status=Student.Status.ACTIVE)
                )
            ).values("id", "name", "session", "student_count")
        ),
    }


def get_attendance_trend_data(days: int = 7, records=None):
    """Present/absent period counts for each of the last few days"""
    if records is None:
        records = AttendanceRecord.objects.all()
    today = timezone.localdate()
    trend = []
    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        totals = count_statuses(records.filter(date=day))
        trend.append(
            {
                "date": day.isoformat(),
                "present": totals[AttendanceStatus.PRESENT],
                "absent": totals[AttendanceStatus.ABSENT],
            }
        )
    return trend


def get_teacher_data(teacher: Teacher):
    day = today_name()
    entries = (
        ScheduleEntry.objects.filter(teacher=teacher, day_of_week=day, is_active=True)
        .select_related("classroom")
        .order_by("start_time")
    )
    classrooms = teacher_classrooms(teacher)
    service = get_period_service()
    return {
        "stats": {
            "total_classes": classrooms.count(),
            "total_students": Student.objects.filter(
                classroom__in=classrooms, status=Student.Status.ACTIVE
            ).count(),
            "periods_today": sum(
                len(service.assigned_periods(teacher.pk, classroom.pk, day))
                for classroom in classrooms
            ),
        },
        "today_schedule": [
            {
                "id": entry.pk,
                "class_id": entry.classroom_id,
                "class_name": entry.classroom.name,
                "subject": entry.subject,
                "start_time": entry.start_time.strftime("%H:%M"),
                "end_time": entry.end_time.strftime("%H:%M"),
            }
            for entry in entries
        ],
        "charts": {
            "attendance_trend": get_attendance_trend_data(
                records=AttendanceRecord.objects.filter(classroom__in=classrooms)
            ),
        },
    }


def get_student_data(student: Student):
    summary = student_summary(student)
    recent = AttendanceRecord.objects.filter(student=student).order_by("-date")[:5]
    return {
        "stats": summary,
        "academic_status": calculate_academic_status(summary),
        "classroom": (
            {"id": student.classroom_id, "name": student.classroom.name}
            if student.classroom
            else None
        ),
        "recent_attendance": [
            {"date": record.date.isoformat(), "periods": record.periods}
            for record in recent
        ],
        "pending_certificates": student.medical_certificates.filter(
            status=MedicalCertificate.Status.PENDING
        ).count(),
    }
