import logging
from typing import Any, Dict, Optional

from django.db import IntegrityError
from django.db.models import Q
from django.http import HttpRequest
from django.utils import timezone

from base.api import (
    api_login_required,
    handle_api_error,
    json_error,
    json_success,
    paginate,
    parse_int,
    parse_json_body,
    require_methods,
    role_required,
    validation_response,
)
from base.views import get_user_role
from classes.models import Classroom, DayOfWeek, ScheduleEntry
from classes.periods import get_period_service
from .forms import TeacherForm
from .models import Teacher

logger = logging.getLogger(__name__)


def serialize_teacher(teacher: Teacher) -> Dict[str, Any]:
    user = teacher.user
    return {
        "id": teacher.pk,
        "teacher_id": teacher.teacher_id,
        "username": user.username,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "father_name": teacher.father_name,
        "grandfather_name": teacher.grandfather_name,
        "email": user.email,
        "date_of_birth": (
            teacher.date_of_birth.isoformat() if teacher.date_of_birth else None
        ),
        "phone": teacher.phone,
        "secondary_phone": teacher.secondary_phone,
        "address": teacher.address,
        "departments": teacher.department_list,
        "qualification": teacher.qualification,
        "experience": teacher.experience,
        "specialization": teacher.specialization,
        "subjects": teacher.subject_list,
        "employment_type": teacher.employment_type,
        "status": teacher.status,
        "created_at": teacher.created_at.isoformat(),
    }


def find_teacher(teacher_id: int) -> Optional[Teacher]:
    return Teacher.objects.select_related("user").filter(pk=teacher_id).first()


def is_self(request: HttpRequest, teacher: Teacher) -> bool:
    return teacher.user_id == request.user.pk


@require_methods("GET", "POST")
@role_required("Office")
def teacher_list(request: HttpRequest):
    if request.method == "POST":
        body, error_response = parse_json_body(request)
        if error_response:
            return error_response

        form = TeacherForm.from_payload(body)
        if not form.is_valid():
            return validation_response(form)

        try:
            teacher = form.save()
        except IntegrityError as e:
            return handle_api_error(e, "creating teacher")

        logger.info("Teacher %s created by user %s", teacher.teacher_id, request.user.pk)
        return json_success(
            serialize_teacher(teacher), "Teacher created successfully", status=201
        )

    teachers = Teacher.objects.select_related("user")
    query = request.GET.get("q", "").strip()
    if query:
        teachers = teachers.filter(
            Q(user__first_name__icontains=query)
            | Q(user__last_name__icontains=query)
            | Q(teacher_id__icontains=query)
            | Q(departments__icontains=query)
        )
    status = request.GET.get("status")
    if status:
        teachers = teachers.filter(status=status.upper())

    page, meta = paginate(request, teachers)
    return json_success({"teachers": [serialize_teacher(t) for t in page], **meta})


@require_methods("GET", "PUT", "DELETE")
@api_login_required
def teacher_detail(request: HttpRequest, teacher_id: int):
    teacher = find_teacher(teacher_id)
    if teacher is None:
        return json_error("Teacher not found", status=404)

    role = get_user_role(request.user)
    if request.method == "GET":
        if role == "Office" or (role == "Teacher" and is_self(request, teacher)):
            return json_success(serialize_teacher(teacher))
        return json_error("Access denied", status=403)

    if role != "Office":
        return json_error("Access denied", status=403)

    if request.method == "DELETE":
        teacher.user.delete()
        logger.info("Teacher %s deleted by user %s", teacher.teacher_id, request.user.pk)
        return json_success(message="Teacher deleted successfully")

    body, error_response = parse_json_body(request)
    if error_response:
        return error_response

    form = TeacherForm.from_payload(body, instance=teacher)
    if not form.is_valid():
        return validation_response(form)

    try:
        teacher = form.save()
    except IntegrityError as e:
        return handle_api_error(e, "updating teacher")

    return json_success(serialize_teacher(teacher), "Teacher updated successfully")


def teacher_classrooms(teacher: Teacher):
    return Classroom.objects.filter(
        schedule_entries__teacher=teacher, schedule_entries__is_active=True
    ).distinct()


@require_methods("GET")
@api_login_required
def teacher_classes(request: HttpRequest, teacher_id: int):
    """Classes a teacher has active schedule entries in"""
    teacher = find_teacher(teacher_id)
    if teacher is None:
        return json_error("Teacher not found", status=404)

    role = get_user_role(request.user)
    if not (role == "Office" or (role == "Teacher" and is_self(request, teacher))):
        return json_error("Access denied", status=403)

    classes = [
        {
            "id": classroom.pk,
            "name": classroom.name,
            "session": classroom.session,
            "major": classroom.major,
            "semester": classroom.semester,
            "subjects": sorted(
                set(
                    classroom.schedule_entries.filter(
                        teacher=teacher, is_active=True
                    ).values_list("subject", flat=True)
                )
            ),
            "student_count": classroom.students.count(),
        }
        for classroom in teacher_classrooms(teacher)
    ]
    return json_success({"classes": classes})


def today_name() -> str:
    return timezone.localdate().strftime("%A").lower()


@require_methods("GET")
@role_required("Teacher")
def teacher_schedule(request: HttpRequest):
    """The current teacher's periods for one day (default: today), by class"""
    try:
        teacher = Teacher.objects.get(user=request.user)
    except Teacher.DoesNotExist:
        return json_error("Teacher profile not found", status=404)

    day = (request.GET.get("day") or today_name()).lower()
    if day not in DayOfWeek.values:
        return json_error(
            "Invalid day",
            status=400,
            details={"day": [f"Must be one of {DayOfWeek.values}"]},
        )

    service = get_period_service()
    schedule = []
    for classroom in teacher_classrooms(teacher):
        assignments = service.get_teacher_period_assignments(
            teacher.pk, classroom.pk, day
        )
        if assignments:
            schedule.append(
                {
                    "class_id": classroom.pk,
                    "class_name": classroom.name,
                    "periods": [a.to_dict() for a in assignments],
                }
            )

    return json_success({"day": day, "schedule": schedule})


CACHE_ACTIONS = ("clear", "cleanup", "invalidate", "preload", "warmup", "reset-stats")


def id_list(value):
    if not isinstance(value, list):
        return None
    ids = [parse_int(v) for v in value]
    return None if None in ids else ids


def run_cache_action(service, action: str, body: Dict[str, Any]):
    """Returns (result, error_response)"""
    if action == "clear":
        service.clear_cache()
        return {}, None
    if action == "cleanup":
        return {"cleaned_count": service.cleanup_expired_entries()}, None
    if action == "reset-stats":
        service.reset_cache_stats()
        return {}, None
    if action == "invalidate":
        count = service.invalidate_schedule_cache(
            class_id=parse_int(body.get("class_id")),
            teacher_id=parse_int(body.get("teacher_id")),
            day_of_week=body.get("day_of_week") or None,
        )
        return {"invalidated_count": count}, None
    if action == "warmup":
        triples = (
            ScheduleEntry.objects.filter(is_active=True)
            .values_list("teacher_id", "classroom_id", "day_of_week")
            .distinct()
        )
        loaded = sum(
            service.preload_cache(teacher_id, [class_id], [day])
            for teacher_id, class_id, day in triples
        )
        return {"preloaded_count": loaded}, None

    teacher_ids = id_list(body.get("teacher_ids"))
    class_ids = id_list(body.get("class_ids"))
    days = body.get("days")
    valid_days = isinstance(days, list) and all(
        str(d).lower() in DayOfWeek.values for d in days
    )
    if not teacher_ids or not class_ids or not valid_days:
        return None, json_error(
            "Missing required parameters for preload",
            status=400,
            details={
                "message": "teacher_ids, class_ids and days arrays are required"
            },
        )
    loaded = sum(
        service.preload_cache(teacher_id, class_ids, [str(d).lower() for d in days])
        for teacher_id in teacher_ids
    )
    return {"preloaded_count": loaded}, None


@require_methods("GET", "POST", "DELETE")
@role_required("Office")
def schedule_cache(request: HttpRequest):
    service = get_period_service()
    if request.method == "DELETE":
        service.clear_cache()
        service.reset_cache_stats()
        logger.info("Period cache cleared by user %s", request.user.pk)
        return json_success(message="Schedule cache cleared")

    if request.method == "POST":
        body, error_response = parse_json_body(request)
        if error_response:
            return error_response
        action = body.get("action")
        if action not in CACHE_ACTIONS:
            return json_error(
                "Invalid action",
                status=400,
                details={"action": [f"Must be one of {list(CACHE_ACTIONS)}"]},
            )
        result, error_response = run_cache_action(service, action, body)
        if error_response:
            return error_response
        logger.info("Period cache %s run by user %s", action, request.user.pk)
        return json_success(
            {"action": action, **result, "stats": service.get_cache_stats()}
        )

    return json_success(service.get_cache_stats())
