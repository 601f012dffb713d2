import csv
import logging
from typing import Any, Dict, Optional, Tuple

import pandas as pd
from django.conf import settings
from django.core.files.storage import default_storage
from django.db import IntegrityError
from django.db.models import Q
from django.http import FileResponse, HttpRequest, HttpResponse, JsonResponse
from django.utils import timezone

from attendance.models import AttendanceRecord
from attendance.stats import calculate_academic_status, summarize_records
from base.api import (
    api_login_required,
    handle_api_error,
    json_error,
    json_success,
    paginate,
    parse_date_flexible,
    parse_int,
    parse_json_body,
    require_methods,
    role_required,
    validation_response,
)
from base.ratelimit import rate_limit
from base.views import get_user_role
from notifications.models import Notification
from notifications.services import create_notification
from .file_utils import (
    delete_certificate_file,
    generate_signed_url,
    resolve_signed_token,
    store_certificate_file,
    validate_upload,
)
from .forms import CertificateReviewForm, MedicalCertificateForm, StudentForm
from .models import MedicalCertificate, Student

logger = logging.getLogger(__name__)


# ==================== HELPER FUNCTIONS ====================


def serialize_student(student: Student) -> Dict[str, Any]:
    user = student.user
    return {
        "id": student.pk,
        "student_id": student.student_id,
        "username": user.username,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "father_name": student.father_name,
        "grandfather_name": student.grandfather_name,
        "email": user.email,
        "date_of_birth": (
            student.date_of_birth.isoformat() if student.date_of_birth else None
        ),
        "phone": student.phone,
        "father_phone": student.father_phone,
        "address": student.address,
        "programs": [p.strip() for p in student.programs.split(",") if p.strip()],
        "semester": student.semester,
        "enrollment_year": student.enrollment_year,
        "class_id": student.classroom_id,
        "class_name": student.classroom.name if student.classroom else None,
        "time_slot": student.time_slot,
        "status": student.status,
        "created_at": student.created_at.isoformat(),
    }


def serialize_certificate(certificate: MedicalCertificate) -> Dict[str, Any]:
    return {
        "id": certificate.pk,
        "student_id": certificate.student.student_id,
        "student_name": certificate.student.user.get_full_name(),
        "submission_date": certificate.submission_date.isoformat(),
        "start_date": certificate.start_date.isoformat(),
        "end_date": certificate.end_date.isoformat(),
        "total_days": certificate.total_days,
        "reason": certificate.reason,
        "file_name": certificate.file_name,
        "file_size": certificate.file_size,
        "mime_type": certificate.mime_type,
        "doctor_name": certificate.doctor_name,
        "hospital_clinic": certificate.hospital_clinic,
        "status": certificate.status,
        "reviewed_at": (
            certificate.reviewed_at.isoformat() if certificate.reviewed_at else None
        ),
        "review_notes": certificate.review_notes,
    }


def get_student_or_error(
    request,
) -> Tuple[Optional[Student], Optional[JsonResponse]]:
    """Get student from request user or return error response"""
    try:
        return Student.objects.select_related("user").get(user=request.user), None
    except Student.DoesNotExist:
        return None, json_error("Student profile not found", status=404)


def find_student(student_id: int) -> Optional[Student]:
    return (
        Student.objects.select_related("user", "classroom")
        .filter(pk=student_id)
        .first()
    )


def can_view_student(request: HttpRequest, student: Student) -> bool:
    role = get_user_role(request.user)
    if role in ("Office", "Teacher"):
        return True
    return role == "Student" and student.user_id == request.user.pk


def filter_students(request: HttpRequest):
    students = Student.objects.select_related("user", "classroom")

    query = request.GET.get("q", "").strip()
    if query:
        students = students.filter(
            Q(user__first_name__icontains=query)
            | Q(user__last_name__icontains=query)
            | Q(student_id__icontains=query)
            | Q(father_name__icontains=query)
        )

    class_id = parse_int(request.GET.get("class_id"))
    if class_id:
        students = students.filter(classroom_id=class_id)

    status = request.GET.get("status")
    if status:
        students = students.filter(status=status.upper())

    return students


# ==================== STUDENT CRUD ====================


@require_methods("GET", "POST")
@api_login_required
def student_list(request: HttpRequest):
    role = get_user_role(request.user)

    if request.method == "POST":
        if role != "Office":
            return json_error("Access denied", status=403)

        body, error_response = parse_json_body(request)
        if error_response:
            return error_response

        form = StudentForm.from_payload(body)
        if not form.is_valid():
            return validation_response(form)

        try:
            student = form.save()
        except IntegrityError as e:
            return handle_api_error(e, "creating student")

        logger.info("Student %s created by user %s", student.student_id, request.user.pk)
        return json_success(
            serialize_student(student), "Student created successfully", status=201
        )

    if role not in ("Office", "Teacher"):
        return json_error("Access denied", status=403)

    students, meta = paginate(request, filter_students(request))
    return json_success({"students": [serialize_student(s) for s in students], **meta})


@require_methods("GET", "PUT", "DELETE")
@api_login_required
def student_detail(request: HttpRequest, student_id: int):
    student = find_student(student_id)
    if student is None:
        return json_error("Student not found", status=404)

    if request.method == "GET":
        if not can_view_student(request, student):
            return json_error("Access denied", status=403)
        return json_success(serialize_student(student))

    if get_user_role(request.user) != "Office":
        return json_error("Access denied", status=403)

    if request.method == "DELETE":
        student.user.delete()
        logger.info("Student %s deleted by user %s", student.student_id, request.user.pk)
        return json_success(message="Student deleted successfully")

    body, error_response = parse_json_body(request)
    if error_response:
        return error_response

    form = StudentForm.from_payload(body, instance=student)
    if not form.is_valid():
        return validation_response(form)

    try:
        student = form.save()
    except IntegrityError as e:
        return handle_api_error(e, "updating student")

    return json_success(serialize_student(student), "Student updated successfully")


EXPORT_COLUMNS = [
    ("student_id", "Student ID"),
    ("first_name", "First Name"),
    ("last_name", "Last Name"),
    ("father_name", "Father Name"),
    ("grandfather_name", "Grandfather Name"),
    ("class_name", "Class"),
    ("phone", "Phone"),
    ("semester", "Semester"),
    ("status", "Status"),
]


@require_methods("GET")
@role_required("Office")
def export_students(request: HttpRequest):
    """Export the (filtered) student list as CSV or Excel"""
    file_format = request.GET.get("format", "csv")
    rows = [serialize_student(s) for s in filter_students(request)]
    headers = [label for _, label in EXPORT_COLUMNS]
    table = [[row[key] for key, _ in EXPORT_COLUMNS] for row in rows]

    if file_format == "excel":
        response = HttpResponse(
            content_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        )
        response["Content-Disposition"] = 'attachment; filename="students.xlsx"'
        df = pd.DataFrame(table, columns=headers)
        with pd.ExcelWriter(response, engine="openpyxl") as writer:
            df.to_excel(writer, sheet_name="Students", index=False)
        return response

    if file_format == "csv":
        response = HttpResponse(content_type="text/csv")
        response["Content-Disposition"] = 'attachment; filename="students.csv"'
        writer = csv.writer(response)
        writer.writerow(headers)
        writer.writerows(table)
        return response

    return json_error("Invalid format", status=400)


# ==================== ATTENDANCE STANDING ====================


def student_records(request: HttpRequest, student: Student):
    records = AttendanceRecord.objects.filter(student=student).select_related(
        "classroom", "teacher__user"
    )
    start_date = parse_date_flexible(request.GET.get("from"))
    end_date = parse_date_flexible(request.GET.get("to"))
    if start_date:
        records = records.filter(date__gte=start_date)
    if end_date:
        records = records.filter(date__lte=end_date)
    return records.order_by("-date")


@require_methods("GET")
@api_login_required
def academic_status(request: HttpRequest, student_id: int):
    student = find_student(student_id)
    if student is None:
        return json_error("Student not found", status=404)
    if not can_view_student(request, student):
        return json_error("Access denied", status=403)

    summary = summarize_records(student_records(request, student))
    return json_success(
        {
            "student_id": student.student_id,
            "summary": summary,
            **calculate_academic_status(summary),
        }
    )


@require_methods("GET")
@api_login_required
def attendance_history(request: HttpRequest, student_id: int):
    student = find_student(student_id)
    if student is None:
        return json_error("Student not found", status=404)
    if not can_view_student(request, student):
        return json_error("Access denied", status=403)

    records = list(student_records(request, student))
    history = [
        {
            "date": record.date.isoformat(),
            "class_id": record.classroom_id,
            "class_name": record.classroom.name,
            "periods": record.periods,
            "subject": record.subject,
            "teacher": str(record.teacher) if record.teacher else None,
            "notes": record.notes,
        }
        for record in records
    ]
    return json_success({"records": history, "summary": summarize_records(records)})


# ==================== MEDICAL CERTIFICATES ====================


@require_methods("POST")
@role_required("Student")
@rate_limit("upload")
def upload_certificate(request: HttpRequest):
    student, error_response = get_student_or_error(request)
    if error_response:
        return error_response

    uploaded_file = request.FILES.get("file")
    if uploaded_file is None:
        return json_error("No file provided", status=400)

    error = validate_upload(uploaded_file)
    if error:
        logger.warning(
            "Rejected certificate upload from student %s: %s", student.student_id, error
        )
        return json_error(error, status=400)

    form = MedicalCertificateForm(request.POST)
    if not form.is_valid():
        return validation_response(form)

    path, file_name = store_certificate_file(student.student_id, uploaded_file)
    certificate = form.save(commit=False)
    certificate.student = student
    certificate.file_path = path
    certificate.file_name = file_name
    certificate.file_size = uploaded_file.size
    certificate.mime_type = uploaded_file.content_type
    certificate.save()

    data = serialize_certificate(certificate)
    data["signed_url"] = generate_signed_url(certificate, request)
    return json_success(data, "File uploaded successfully", status=201)


@require_methods("GET")
@role_required("Student", "Office")
def certificate_list(request: HttpRequest):
    certificates = MedicalCertificate.objects.select_related("student__user")

    if get_user_role(request.user) == "Student":
        student, error_response = get_student_or_error(request)
        if error_response:
            return error_response
        certificates = certificates.filter(student=student)

    status = request.GET.get("status")
    if status:
        certificates = certificates.filter(status=status.lower())

    page, meta = paginate(request, certificates)
    return json_success(
        {"certificates": [serialize_certificate(c) for c in page], **meta}
    )


def get_certificate_for_user(
    request: HttpRequest, certificate_id: int
) -> Tuple[Optional[MedicalCertificate], Optional[JsonResponse]]:
    certificate = (
        MedicalCertificate.objects.select_related("student__user")
        .filter(pk=certificate_id)
        .first()
    )
    if certificate is None:
        return None, json_error("File not found", status=404)

    role = get_user_role(request.user)
    if role == "Office" or (
        role == "Student" and certificate.student.user_id == request.user.pk
    ):
        return certificate, None
    return None, json_error("Access denied", status=403)


@require_methods("GET", "DELETE")
@api_login_required
def certificate_detail(request: HttpRequest, certificate_id: int):
    certificate, error_response = get_certificate_for_user(request, certificate_id)
    if error_response:
        return error_response

    if request.method == "DELETE":
        if certificate.status == MedicalCertificate.Status.APPROVED:
            return json_error("Cannot delete approved certificates", status=403)
        delete_certificate_file(certificate.file_path)
        certificate.delete()
        return json_success(message="File deleted successfully")

    data = serialize_certificate(certificate)
    data["signed_url"] = generate_signed_url(certificate, request)
    data["expires_in"] = settings.SIGNED_URL_MAX_AGE
    return json_success(data)


@require_methods("POST")
@role_required("Office")
def review_certificate(request: HttpRequest, certificate_id: int):
    certificate, error_response = get_certificate_for_user(request, certificate_id)
    if error_response:
        return error_response

    body, error_response = parse_json_body(request)
    if error_response:
        return error_response

    form = CertificateReviewForm(body)
    if not form.is_valid():
        return validation_response(form)

    certificate.status = form.cleaned_data["status"]
    certificate.review_notes = form.cleaned_data["review_notes"]
    certificate.reviewed_by = request.user
    certificate.reviewed_at = timezone.now()
    certificate.save()

    approved = certificate.status == MedicalCertificate.Status.APPROVED
    period = f"{certificate.start_date} to {certificate.end_date}"
    create_notification(
        certificate.student.user,
        Notification.Type.FILE_APPROVED if approved else Notification.Type.FILE_REJECTED,
        "Medical certificate approved" if approved else "Medical certificate rejected",
        f"Your medical certificate for {period} was {certificate.status}."
        + (f" Notes: {certificate.review_notes}" if certificate.review_notes else ""),
        severity=(
            Notification.Severity.SUCCESS if approved else Notification.Severity.WARNING
        ),
        metadata={"certificate_id": certificate.pk},
    )

    return json_success(serialize_certificate(certificate), "Review saved")


def signed_file(request: HttpRequest, token: str):
    """Serve a certificate file to anyone holding a valid, unexpired signed token"""
    certificate_id = resolve_signed_token(token)
    if certificate_id is None:
        return json_error("Link is invalid or has expired", status=403)

    certificate = MedicalCertificate.objects.filter(pk=certificate_id).first()
    if certificate is None or not default_storage.exists(certificate.file_path):
        return json_error("File not found", status=404)

    response = FileResponse(
        default_storage.open(certificate.file_path, "rb"),
        content_type=certificate.mime_type,
    )
    response["Content-Disposition"] = f'inline; filename="{certificate.file_name}"'
    return response
