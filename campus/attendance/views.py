import csv
import io
import logging
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd
from django.db import transaction
from django.http import HttpRequest, HttpResponse, JsonResponse
from django.utils import timezone

from base.api import (
    json_error,
    json_success,
    paginate,
    parse_date_flexible,
    parse_int,
    parse_json_body,
    require_methods,
    role_required,
)
from base.views import get_user_role
from classes.models import Classroom
from classes.periods import PERIODS_PER_DAY, get_period_service
from students.models import Student
from teachers.models import Teacher
from .models import PERIOD_FIELDS, AttendanceRecord, AttendanceStatus
from .monitor import check_students

logger = logging.getLogger(__name__)

PERIOD_NUMBERS = list(range(1, PERIODS_PER_DAY + 1))


# ==================== HELPER FUNCTIONS ====================


def day_name(value: date) -> str:
    return value.strftime("%A").lower()


def get_teacher_or_error(request) -> Tuple[Optional[Teacher], Optional[JsonResponse]]:
    """Get teacher from request user or return error response"""
    try:
        return Teacher.objects.get(user=request.user), None
    except Teacher.DoesNotExist:
        return None, json_error("Teacher profile not found", status=404)


def get_class_and_date(
    class_id, date_str
) -> Tuple[Optional[Classroom], Optional[date], Optional[JsonResponse]]:
    details = {}
    classroom = None
    class_pk = parse_int(class_id)
    if class_pk is None:
        details["classId"] = ["This field is required."]
    else:
        classroom = Classroom.objects.filter(pk=class_pk).first()

    attendance_date = parse_date_flexible(date_str)
    if attendance_date is None:
        details["date"] = ["Enter a valid date."]

    if details:
        return None, None, json_error("Validation failed", status=400, details=details)
    if classroom is None:
        return None, None, json_error("Class not found", status=404)
    return classroom, attendance_date, None


def editable_periods(request, classroom: Classroom, attendance_date: date) -> List[int]:
    """Office may mark every period; a teacher only the periods they are scheduled for"""
    if get_user_role(request.user) == "Office":
        return PERIOD_NUMBERS
    teacher = Teacher.objects.filter(user=request.user).first()
    if teacher is None:
        return []
    return get_period_service().assigned_periods(
        teacher.pk, classroom.pk, day_name(attendance_date)
    )


def normalize_periods(raw) -> Tuple[Dict[int, str], Optional[str]]:
    """
    Accept {"1": "PRESENT", ...} or a six-item list and return {period: status}.
    Returns an error message instead when a period number or status is invalid.
    """
    if isinstance(raw, list):
        raw = {index + 1: value for index, value in enumerate(raw) if value}
    if not isinstance(raw, dict):
        return {}, "periods must be an object or a list"

    periods = {}
    for key, value in raw.items():
        number = parse_int(str(key).replace("period_", ""))
        if number not in PERIOD_NUMBERS:
            return {}, f"Invalid period '{key}'"
        status = str(value).strip().upper()
        if status not in AttendanceStatus.values:
            return {}, f"Invalid status '{value}'"
        periods[number] = status
    return periods, None


def serialize_record(record: AttendanceRecord) -> Dict[str, Any]:
    return {
        "id": record.pk,
        "student_id": record.student_id,
        "student_number": record.student.student_id,
        "student_name": record.student.user.get_full_name(),
        "class_id": record.classroom_id,
        "date": record.date.isoformat(),
        "periods": record.periods,
        "subject": record.subject,
        "notes": record.notes,
        "teacher_id": record.teacher_id,
        "updated_at": record.updated_at.isoformat(),
    }


def save_periods(
    student: Student,
    classroom: Classroom,
    attendance_date: date,
    periods: Dict[int, str],
    user,
    teacher: Optional[Teacher] = None,
    subject: str = "",
    notes: Optional[str] = None,
) -> AttendanceRecord:
    record, _ = AttendanceRecord.objects.get_or_create(
        student=student, classroom=classroom, date=attendance_date
    )
    for number, status in periods.items():
        setattr(record, f"period_{number}", status)
    if teacher is not None:
        record.teacher = teacher
    if subject:
        record.subject = subject
    if notes is not None:
        record.notes = notes
    record.marked_by = user
    record.save()
    return record


# ==================== VIEW FUNCTIONS ====================


@require_methods("GET", "POST")
@role_required("Office", "Teacher")
def attendance(request: HttpRequest):
    if request.method == "POST":
        return mark_attendance(request)

    classroom, attendance_date, error_response = get_class_and_date(
        request.GET.get("classId"), request.GET.get("date")
    )
    if error_response:
        return error_response

    records = {
        record.student_id: record
        for record in AttendanceRecord.objects.filter(
            classroom=classroom, date=attendance_date
        )
    }
    students = classroom.students.select_related("user").filter(
        status=Student.Status.ACTIVE
    )
    rows = []
    for student in students:
        record = records.get(student.pk)
        rows.append(
            {
                "student_id": student.pk,
                "student_number": student.student_id,
                "student_name": student.user.get_full_name(),
                "father_name": student.father_name,
                "periods": (
                    record.periods
                    if record
                    else [AttendanceStatus.NOT_MARKED] * PERIODS_PER_DAY
                ),
                "notes": record.notes if record else "",
            }
        )

    return json_success(
        {
            "class_id": classroom.pk,
            "class_name": classroom.name,
            "date": attendance_date.isoformat(),
            "day_of_week": day_name(attendance_date),
            "editable_periods": editable_periods(request, classroom, attendance_date),
            "students": rows,
        }
    )


def mark_attendance(request: HttpRequest):
    """Mark per-period attendance for a class on one date, all rows or none"""
    body, error_response = parse_json_body(request)
    if error_response:
        return error_response

    classroom, attendance_date, error_response = get_class_and_date(
        body.get("classId"), body.get("date")
    )
    if error_response:
        return error_response

    entries = body.get("records")
    if not isinstance(entries, list) or not entries:
        return json_error(
            "Validation failed",
            status=400,
            details={"records": ["Provide at least one attendance record."]},
        )

    teacher = None
    if get_user_role(request.user) == "Teacher":
        teacher, error_response = get_teacher_or_error(request)
        if error_response:
            return error_response
    allowed = set(editable_periods(request, classroom, attendance_date))

    students = {
        s.pk: s for s in classroom.students.select_related("user")
    }
    parsed = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            return json_error(
                "Validation failed",
                status=400,
                details={f"records[{index}]": ["Each record must be an object."]},
            )
        student = students.get(parse_int(entry.get("studentId")))
        if student is None:
            return json_error(
                "Validation failed",
                status=400,
                details={f"records[{index}]": ["Student is not in this class."]},
            )
        periods, error = normalize_periods(entry.get("periods", {}))
        if error:
            return json_error(
                "Validation failed", status=400, details={f"records[{index}]": [error]}
            )
        denied = sorted(set(periods) - allowed)
        if denied:
            logger.warning(
                "User %s tried to mark unassigned periods %s for class %s on %s",
                request.user.pk,
                denied,
                classroom.pk,
                attendance_date,
            )
            return json_error(
                "You are not assigned to these periods",
                status=403,
                details={"periods": denied},
            )
        parsed.append((student, periods, entry.get("notes")))

    with transaction.atomic():
        records = [
            save_periods(
                student,
                classroom,
                attendance_date,
                periods,
                request.user,
                teacher=teacher,
                subject=str(body.get("subject", "")),
                notes=notes,
            )
            for student, periods, notes in parsed
        ]

    logger.info(
        "Attendance saved for %s students in class %s on %s by user %s",
        len(records),
        classroom.pk,
        attendance_date,
        request.user.pk,
    )
    check_students(student for student, _, _ in parsed)

    return json_success(
        {"records": [serialize_record(r) for r in records]},
        "Attendance saved successfully",
    )


def filter_records(request: HttpRequest):
    records = AttendanceRecord.objects.select_related(
        "student__user", "classroom"
    ).order_by("-date", "student__student_id")

    class_id = parse_int(request.GET.get("classId"))
    if class_id:
        records = records.filter(classroom_id=class_id)
    student_id = parse_int(request.GET.get("studentId"))
    if student_id:
        records = records.filter(student_id=student_id)
    start_date = parse_date_flexible(request.GET.get("from"))
    if start_date:
        records = records.filter(date__gte=start_date)
    end_date = parse_date_flexible(request.GET.get("to"))
    if end_date:
        records = records.filter(date__lte=end_date)
    return records


@require_methods("GET")
@role_required("Office", "Teacher")
def attendance_history(request: HttpRequest):
    records, meta = paginate(request, filter_records(request))
    return json_success({"records": [serialize_record(r) for r in records], **meta})


# ==================== IMPORT / EXPORT ====================

EXPORT_HEADERS = ["Date", "Student ID", "Student Name", "Class"] + [
    f"Period {n}" for n in PERIOD_NUMBERS
] + ["Notes"]


def read_file_to_dataframe(file) -> Tuple[Optional[pd.DataFrame], Optional[str]]:
    """Read CSV or Excel file and return DataFrame"""
    name = file.name.lower()
    try:
        if name.endswith(".csv"):
            df = pd.read_csv(io.StringIO(file.read().decode("utf-8")), dtype=str)
        elif name.endswith((".xlsx", ".xls")):
            df = pd.read_excel(file, dtype=str)
        else:
            return None, "Please upload a CSV or Excel file"
    except (ValueError, UnicodeDecodeError) as e:
        return None, f"Error reading file: {e}"
    return df.fillna(""), None


def process_attendance_row(
    row: Dict[str, str], request: HttpRequest, teacher: Optional[Teacher], row_num: int
) -> Tuple[Optional[Student], Optional[str]]:
    """Process a single attendance row from CSV/Excel"""
    student_number = row.get("student_id", "").strip()
    date_str = row.get("date", "").strip()
    if not student_number and not date_str:
        return None, None
    if not student_number or not date_str:
        return None, f"Row {row_num}: Missing required fields"

    attendance_date = parse_date_flexible(date_str)
    if not attendance_date:
        return None, f"Row {row_num}: Invalid date format '{date_str}'"

    student = (
        Student.objects.select_related("classroom")
        .filter(student_id=student_number)
        .first()
    )
    if student is None or student.classroom is None:
        return None, f"Row {row_num}: Student {student_number} not found or has no class"

    periods, error = normalize_periods(
        {field: row[field] for field in PERIOD_FIELDS if row.get(field, "").strip()}
    )
    if error:
        return None, f"Row {row_num}: {error}"

    allowed = editable_periods(request, student.classroom, attendance_date)
    denied = sorted(set(periods) - set(allowed))
    if denied:
        return None, f"Row {row_num}: You are not assigned to periods {denied}"

    save_periods(
        student,
        student.classroom,
        attendance_date,
        periods,
        request.user,
        teacher=teacher,
        notes=row.get("notes") or None,
    )
    return student, None


@require_methods("POST")
@role_required("Office", "Teacher")
def import_attendance(request: HttpRequest):
    """Import attendance data from CSV or Excel file"""
    file = request.FILES.get("file")
    if file is None:
        return json_error("No file provided", status=400)

    teacher = None
    if get_user_role(request.user) == "Teacher":
        teacher, error_response = get_teacher_or_error(request)
        if error_response:
            return error_response

    df, error = read_file_to_dataframe(file)
    if error:
        return json_error(error, status=400)

    df.columns = [str(c).strip().lower().replace(" ", "_") for c in df.columns]
    imported = []
    errors = []
    for row_num, row in df.iterrows():
        row_dict = {k: str(v).strip() for k, v in row.to_dict().items()}
        student, error = process_attendance_row(row_dict, request, teacher, row_num + 2)
        if student is not None:
            imported.append(student)
        elif error:
            errors.append(error)

    check_students(imported)
    message = f"Imported {len(imported)} records"
    if errors:
        message += f" with {len(errors)} errors"
    return json_success(
        {"imported_count": len(imported), "errors": errors[:10]}, message
    )


def create_export_response(file_format: str, filename: str) -> HttpResponse:
    """Create HTTP response for file export"""
    content_types = {
        "csv": "text/csv",
        "excel": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    }
    response = HttpResponse(content_type=content_types[file_format])
    response["Content-Disposition"] = f'attachment; filename="{filename}"'
    return response


@require_methods("GET")
@role_required("Office", "Teacher")
def export_attendance(request: HttpRequest):
    """Export attendance data in CSV or Excel format"""
    file_format = request.GET.get("format", "csv")
    if file_format not in ("csv", "excel"):
        return json_error("Invalid format", status=400)

    rows = [
        [
            record.date.isoformat(),
            record.student.student_id,
            record.student.user.get_full_name(),
            record.classroom.name,
            *record.periods,
            record.notes,
        ]
        for record in filter_records(request).order_by("date", "student__student_id")
    ]
    stamp = timezone.localdate().isoformat()

    if file_format == "excel":
        response = create_export_response("excel", f"attendance_{stamp}.xlsx")
        df = pd.DataFrame(rows, columns=EXPORT_HEADERS)
        with pd.ExcelWriter(response, engine="openpyxl") as writer:
            df.to_excel(writer, sheet_name="Attendance", index=False)
        return response

    response = create_export_response("csv", f"attendance_{stamp}.csv")
    writer = csv.writer(response)
    writer.writerow(EXPORT_HEADERS)
    writer.writerows(rows)
    return response
