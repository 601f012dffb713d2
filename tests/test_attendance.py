from datetime import date

import pytest
from django.core import mail
from django.core.files.uploadedfile import SimpleUploadedFile

from attendance.models import AttendanceRecord
from attendance.monitor import check_student_thresholds
from attendance.stats import calculate_academic_status, summarize_records
from classes.models import Classroom
from notifications.models import Notification
from notifications.services import get_preferences

pytestmark = pytest.mark.django_db

SATURDAY = "2024-03-02"


def mark(client, classroom, student, periods, day=SATURDAY, **extra):
    return client.post_json(
        "/api/attendance/",
        {
            "classId": classroom.pk,
            "date": day,
            "subject": "Networking",
            "records": [{"studentId": student.pk, "periods": periods, **extra}],
        },
    )


class TestMarking:
    def test_teacher_sees_assigned_periods(
        self, teacher_client, classroom, student, schedule_entry
    ):
        response = teacher_client.get(
            "/api/attendance/", {"classId": classroom.pk, "date": SATURDAY}
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["day_of_week"] == "saturday"
        assert data["editable_periods"] == [1, 2]
        assert data["students"][0]["periods"] == ["NOT_MARKED"] * 6

    def test_teacher_marks_assigned_periods(
        self, teacher_client, classroom, student, schedule_entry, teacher
    ):
        response = mark(
            teacher_client, classroom, student, {"1": "present", "2": "ABSENT"}
        )
        assert response.status_code == 200, response.json()
        record = AttendanceRecord.objects.get(student=student, date=date(2024, 3, 2))
        assert record.periods[:3] == ["PRESENT", "ABSENT", "NOT_MARKED"]
        assert record.teacher == teacher
        assert record.subject == "Networking"

    def test_teacher_cannot_mark_unassigned_periods(
        self, teacher_client, classroom, student, schedule_entry
    ):
        response = mark(
            teacher_client, classroom, student, {"1": "PRESENT", "3": "PRESENT"}
        )
        assert response.status_code == 403
        assert response.json()["error"] == "You are not assigned to these periods"
        assert not AttendanceRecord.objects.exists()

    def test_teacher_without_schedule_that_day(
        self, teacher_client, classroom, student, schedule_entry
    ):
        response = mark(
            teacher_client, classroom, student, {"1": "PRESENT"}, day="2024-03-03"
        )
        assert response.status_code == 403

    def test_office_marks_any_period(self, office_client, classroom, student):
        response = mark(office_client, classroom, student, ["PRESENT"] * 6)
        assert response.status_code == 200
        assert AttendanceRecord.objects.get().periods == ["PRESENT"] * 6

    def test_remarking_updates_the_same_record(self, office_client, classroom, student):
        mark(office_client, classroom, student, {"1": "ABSENT"})
        mark(office_client, classroom, student, {"1": "PRESENT"}, notes="late")
        record = AttendanceRecord.objects.get()
        assert record.period_1 == "PRESENT"
        assert record.notes == "late"

    def test_invalid_status(self, office_client, classroom, student):
        response = mark(office_client, classroom, student, {"1": "MAYBE"})
        assert response.status_code == 400

    def test_records_must_be_objects(self, office_client, classroom):
        response = office_client.post_json(
            "/api/attendance/",
            {"classId": classroom.pk, "date": SATURDAY, "records": ["oops", 7]},
        )
        assert response.status_code == 400
        assert "records[0]" in response.json()["details"]

    def test_student_from_another_class(self, office_client, classroom, student):
        other_class = Classroom.objects.create(name="Physics")
        response = mark(office_client, other_class, student, {"1": "PRESENT"})
        assert response.status_code == 400

    def test_students_cannot_mark(self, student_client, classroom, student):
        response = mark(student_client, classroom, student, {"1": "PRESENT"})
        assert response.status_code == 403

    def test_bad_date(self, office_client, classroom):
        response = office_client.get(
            "/api/attendance/", {"classId": classroom.pk, "date": "not-a-date"}
        )
        assert response.status_code == 400
        assert "date" in response.json()["details"]


class TestAcademicStatus:
    def summary(self, present, absent):
        return {
            "attendance_rate": present / (present + absent) * 100,
            "total_periods": present + absent,
            "absent": absent,
        }

    @pytest.mark.parametrize(
        "present,absent,status",
        [
            (70, 30, "mahroom"),
            (80, 20, "tasdiq"),
            (88, 12, "warning"),
            (95, 5, "good-standing"),
        ],
    )
    def test_thresholds(self, present, absent, status):
        result = calculate_academic_status(self.summary(present, absent))
        assert result["status"] == status

    def test_remaining_absences(self):
        result = calculate_academic_status(self.summary(92, 8))
        # floor(100 * 0.15) - 8
        assert result["remaining_absences"] == 7

    def test_not_marked_periods_are_ignored(self, student, classroom):
        record = AttendanceRecord.objects.create(
            student=student,
            classroom=classroom,
            date=date(2024, 3, 2),
            period_1="PRESENT",
            period_2="ABSENT",
        )
        summary = summarize_records([record])
        assert summary["total_periods"] == 2
        assert summary["attendance_rate"] == 50.0

    def test_endpoint(self, student_client, student, classroom):
        AttendanceRecord.objects.create(
            student=student,
            classroom=classroom,
            date=date(2024, 3, 2),
            period_1="PRESENT",
        )
        response = student_client.get(f"/api/students/{student.pk}/academic-status/")
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "good-standing"


class TestThresholdMonitor:
    def test_mahroom_alert_once_per_day(self, office_client, classroom, student):
        mark(office_client, classroom, student, ["ABSENT"] * 6)
        mark(office_client, classroom, student, ["ABSENT"] * 6, day="2024-03-03")
        alerts = Notification.objects.filter(
            user=student.user, type=Notification.Type.MAHROOM_ALERT
        )
        assert alerts.count() == 1
        assert alerts.get().severity == Notification.Severity.ERROR

    def test_attendance_alerts_can_be_turned_off(
        self, office_client, student_client, classroom, student
    ):
        student_client.put_json(
            "/api/notifications/preferences/", {"attendance_alerts": False}
        )
        mark(office_client, classroom, student, ["ABSENT"] * 6)
        assert not Notification.objects.filter(user=student.user).exists()

    def test_email_only_users_are_alerted_once(
        self, office_client, classroom, student, django_capture_on_commit_callbacks
    ):
        preferences = get_preferences(student.user)
        preferences.in_app_enabled = False
        preferences.save()
        with django_capture_on_commit_callbacks(execute=True):
            mark(office_client, classroom, student, ["ABSENT"] * 6)
            for _ in range(3):
                assert check_student_thresholds(student) is None
        assert len(mail.outbox) == 1
        alert = Notification.objects.get(user=student.user)
        assert not alert.in_app


class TestImportExport:
    def test_import_csv(self, office_client, classroom, student):
        content = (
            "Date,Student ID,Period 1,Period 2\n"
            "2024-03-02,1001,PRESENT,ABSENT\n"
            "2024-03-02,9999,PRESENT,\n"
        ).encode()
        response = office_client.post(
            "/api/attendance/import/",
            {"file": SimpleUploadedFile("attendance.csv", content, "text/csv")},
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["imported_count"] == 1
        assert len(data["errors"]) == 1
        assert AttendanceRecord.objects.get().periods[:2] == ["PRESENT", "ABSENT"]

    def test_import_rejects_other_files(self, office_client):
        response = office_client.post(
            "/api/attendance/import/",
            {"file": SimpleUploadedFile("attendance.txt", b"hello", "text/plain")},
        )
        assert response.status_code == 400

    def test_export_csv(self, office_client, classroom, student):
        mark(office_client, classroom, student, {"1": "PRESENT"})
        response = office_client.get("/api/attendance/export/", {"format": "csv"})
        assert response.status_code == 200
        lines = response.content.decode().splitlines()
        assert lines[0].startswith("Date,Student ID")
        assert "1001" in lines[1]
