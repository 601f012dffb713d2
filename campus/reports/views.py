import csv
import logging

from django.http import HttpRequest, HttpResponse
from django.utils import timezone

from attendance.views import get_class_and_date
from base.api import json_error, require_methods, role_required
from .data_utils import NORMAL, build_weekly_report
from .excel_utils import generate_attendance_excel
from .pdf_utils import generate_attendance_pdf

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    "pdf": "application/pdf",
    "excel": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "csv": "text/csv",
}
EXTENSIONS = {"pdf": "pdf", "excel": "xlsx", "csv": "csv"}


def get_report_or_error(request: HttpRequest):
    """Weekly report for ?classId=&date= (date defaults to today)"""
    classroom, report_date, error_response = get_class_and_date(
        request.GET.get("classId"),
        request.GET.get("date") or timezone.localdate().isoformat(),
    )
    if error_response:
        return None, error_response
    return build_weekly_report(classroom, report_date), None


def report_response(report, file_format: str, content) -> HttpResponse:
    response = HttpResponse(content, content_type=CONTENT_TYPES[file_format])
    filename = (
        f"attendance-report-{report.classroom.name}-{report.week_start:%Y-%m-%d}"
        f".{EXTENSIONS[file_format]}"
    ).replace(" ", "_")
    response["Content-Disposition"] = f'attachment; filename="{filename}"'
    return response


@require_methods("GET")
@role_required("Office", "Teacher")
def attendance_pdf(request: HttpRequest):
    report, error_response = get_report_or_error(request)
    if error_response:
        return error_response
    return report_response(report, "pdf", generate_attendance_pdf(report))


@require_methods("GET")
@role_required("Office", "Teacher")
def attendance_excel(request: HttpRequest):
    report, error_response = get_report_or_error(request)
    if error_response:
        return error_response
    try:
        content = generate_attendance_excel(report)
    except OSError:
        logger.exception("Could not read or build the report template")
        return json_error("Report template is unavailable", status=500)
    return report_response(report, "excel", content)


@require_methods("GET")
@role_required("Office", "Teacher")
def attendance_csv(request: HttpRequest):
    report, error_response = get_report_or_error(request)
    if error_response:
        return error_response

    response = report_response(report, "csv", "")
    writer = csv.writer(response)
    writer.writerow(
        ["No.", "Student ID", "First Name", "Father Name", "Grandfather Name"]
        + [
            f"{day:%Y-%m-%d} P{period}"
            for day in report.week_days
            for period in range(1, 7)
        ]
        + ["Present", "Absent", "Sick", "Leave", "Total"]
    )
    for index, week in enumerate(report.students, start=1):
        student = week.student
        periods = []
        for _, status, record in week.days:
            if status != NORMAL:
                periods += [status] * 6
            elif record is None:
                periods += [""] * 6
            else:
                periods += record.periods
        writer.writerow(
            [
                index,
                student.student_id,
                student.user.first_name,
                student.father_name,
                student.grandfather_name,
                *periods,
                week.present,
                week.absent,
                week.sick,
                week.leave,
                week.total,
            ]
        )
    return response
