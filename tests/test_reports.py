from datetime import date
from io import BytesIO

import pytest
from openpyxl import load_workbook
from openpyxl.utils import get_column_letter

from attendance.models import AttendanceRecord
from reports.data_utils import (
    LEAVE,
    NORMAL,
    SICK,
    build_weekly_report,
    get_day_status,
    get_week_start,
)
from reports.excel_utils import (
    DAY_LABELS,
    SIGNATURE_LABEL,
    day_columns,
    generate_attendance_workbook,
)

SATURDAY = date(2024, 3, 2)


@pytest.mark.parametrize(
    "reference,expected",
    [
        (date(2024, 3, 2), SATURDAY),  # Saturday
        (date(2024, 3, 3), SATURDAY),  # Sunday
        (date(2024, 3, 4), SATURDAY),  # Monday
        (date(2024, 3, 7), SATURDAY),  # Thursday
        (date(2024, 3, 8), date(2024, 3, 9)),  # Friday rolls forward
    ],
)
def test_week_start(reference, expected):
    assert get_week_start(reference) == expected


def record(student, day, *periods):
    return AttendanceRecord.objects.create(
        student=student,
        classroom=student.classroom,
        date=day,
        **{f"period_{n}": status for n, status in enumerate(periods, start=1)},
    )


@pytest.mark.django_db
class TestWeeklyReport:
    @pytest.fixture
    def attendance(self, student, other_student):
        record(student, SATURDAY, "PRESENT", "ABSENT", "PRESENT", "PRESENT")
        record(student, date(2024, 3, 3), "PRESENT", "SICK")
        record(student, date(2024, 3, 4), "LEAVE")
        record(other_student, SATURDAY, "ABSENT", "ABSENT")
        # outside the week
        record(student, date(2024, 3, 9), "ABSENT")

    def test_day_status(self, student):
        assert get_day_status(None) == NORMAL
        mixed = record(student, SATURDAY, "PRESENT", "SICK", "LEAVE")
        assert get_day_status(mixed) == SICK
        assert get_day_status(record(student, date(2024, 3, 3), "LEAVE")) == LEAVE

    def test_summary_counts(self, classroom, student, attendance):
        report = build_weekly_report(classroom, date(2024, 3, 6))
        assert report.week_start == SATURDAY
        assert report.week_end == date(2024, 3, 7)

        week = next(w for w in report.students if w.student == student)
        assert week.present == 3
        assert week.absent == 1
        assert week.sick == 6
        assert week.leave == 6
        assert week.total == 16
        assert week.present_on(0) == 3
        assert week.present_on(1) == 0

    def test_excel_merges_only_sick_and_leave_days(
        self, classroom, student, attendance
    ):
        report = build_weekly_report(classroom, SATURDAY)
        ws = generate_attendance_workbook(report).worksheets[0]
        row = 8  # student sorts first by student_id

        merged = {str(r) for r in ws.merged_cells.ranges if r.min_row == row}
        expected = set()
        for day_index in (1, 2):
            first, last = day_columns(day_index)
            expected.add(
                f"{get_column_letter(first)}{row}:{get_column_letter(last)}{row}"
            )
        assert merged == expected

        first, _ = day_columns(1)
        assert ws.cell(row=row, column=first).value == DAY_LABELS[SICK]
        assert ws.cell(row=row, column=first).alignment.vertical == "center"
        first, _ = day_columns(2)
        assert ws.cell(row=row, column=first).value == DAY_LABELS[LEAVE]

        # Saturday: period 1 is the right-most cell of the day
        assert ws["AP8"].value == "✓"
        assert ws["AO8"].value == "X"
        assert ws["AN8"].value == "✓"
        assert ws["AK8"].value in ("", None)

    def test_excel_identity_and_summary_columns(self, classroom, student, attendance):
        report = build_weekly_report(classroom, SATURDAY)
        ws = generate_attendance_workbook(report).worksheets[0]
        assert ws["AU8"].value == 1
        assert ws["AT8"].value == student.user.first_name
        assert ws["AS8"].value == student.father_name
        assert ws["AQ8"].value == student.student_id
        assert [ws[f"{c}8"].value for c in "FEDCB"] == [3, 1, 6, 6, 16]
        assert ws["AU9"].value == 2
        assert ws["E9"].value == 2

    def test_signature_follows_last_student(self, classroom, attendance):
        report = build_weekly_report(classroom, SATURDAY)
        ws = generate_attendance_workbook(report).worksheets[0]
        assert ws["AQ10"].value == SIGNATURE_LABEL
        assert ws.cell(row=10, column=43).font.bold
        assert ws["AQ10"].alignment.vertical == "center"
        # student rows take the centred style of the template row
        assert ws["AU8"].alignment.vertical == "center"
        assert "AQ10:AU10" in {str(r) for r in ws.merged_cells.ranges}
        # the template's signature block is gone
        assert ws["AQ28"].value is None

    def test_excel_endpoint(self, office_client, classroom, attendance):
        response = office_client.get(
            "/api/reports/attendance/excel/",
            {"classId": classroom.pk, "date": "2024-03-05"},
        )
        assert response.status_code == 200
        assert "2024-03-02" in response["Content-Disposition"]
        workbook = load_workbook(BytesIO(response.content))
        assert workbook.worksheets[0]["AQ10"].value == SIGNATURE_LABEL

    def test_pdf_endpoint(self, teacher_client, classroom, attendance):
        response = teacher_client.get(
            "/api/reports/attendance/pdf/",
            {"classId": classroom.pk, "date": "2024-03-05"},
        )
        assert response.status_code == 200
        assert response.content.startswith(b"%PDF")

    def test_csv_repeats_day_status(self, office_client, classroom, attendance):
        response = office_client.get(
            "/api/reports/attendance/csv/",
            {"classId": classroom.pk, "date": "2024-03-02"},
        )
        lines = response.content.decode().splitlines()
        assert len(lines) == 3
        assert lines[1].count("SICK") == 6

    def test_students_cannot_download(self, student_client, classroom):
        response = student_client.get(
            "/api/reports/attendance/pdf/", {"classId": classroom.pk}
        )
        assert response.status_code == 403

    def test_missing_class(self, office_client):
        response = office_client.get("/api/reports/attendance/pdf/", {"classId": 999})
        assert response.status_code == 404
