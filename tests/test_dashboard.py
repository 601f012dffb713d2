import pytest
from django.contrib.auth.models import User
from django.utils import timezone

from attendance.models import AttendanceRecord
from notifications.services import create_notification

from .conftest import logged_in

pytestmark = pytest.mark.django_db


def test_office_dashboard(office_client, classroom, student, teacher):
    AttendanceRecord.objects.create(
        student=student,
        classroom=classroom,
        date=timezone.localdate(),
        period_1="PRESENT",
        period_2="ABSENT",
    )
    data = office_client.get("/api/dashboard/").json()["data"]
    assert data["role"] == "Office"
    assert data["stats"]["total_students"] == 1
    assert data["stats"]["total_teachers"] == 1
    assert data["stats"]["students_marked_today"] == 1
    assert data["classes"][0]["student_count"] == 1
    assert len(data["charts"]["attendance_trend"]) == 7


def test_teacher_dashboard(
    teacher_client, classroom, student, schedule_entry, monkeypatch
):
    monkeypatch.setattr("dashboard.views.today_name", lambda: "saturday")
    data = teacher_client.get("/api/dashboard/").json()["data"]
    assert data["role"] == "Teacher"
    assert data["stats"]["total_classes"] == 1
    assert data["stats"]["total_students"] == 1
    assert data["stats"]["periods_today"] == 2
    assert [e["subject"] for e in data["today_schedule"]] == ["Networking"]


def test_student_dashboard(student_client, student):
    create_notification(
        student.user, "system_announcement", "Welcome", "Semester starts"
    )
    data = student_client.get("/api/dashboard/").json()["data"]
    assert data["role"] == "Student"
    assert data["academic_status"]["status"] == "good-standing"
    assert data["classroom"]["name"] == "Computer Science"
    assert data["unread"]["notifications"] == 1


def test_user_without_role(db):
    user = User.objects.create_user(username="nobody", password="Secret123")
    assert logged_in(user).get("/api/dashboard/").status_code == 403


def test_requires_login(api_client, db):
    assert api_client.get("/api/dashboard/").status_code == 401
