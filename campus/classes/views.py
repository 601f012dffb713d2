import logging
from typing import Any, Dict

from django.db import IntegrityError
from django.forms.models import model_to_dict
from django.http import HttpRequest
from django.utils import timezone

from attendance.models import AttendanceRecord
from attendance.stats import summarize_records
from base.api import (
    api_login_required,
    handle_api_error,
    json_error,
    json_success,
    parse_date_flexible,
    parse_int,
    parse_json_body,
    require_methods,
    role_required,
    validation_response,
)
from base.views import get_user_role
from .forms import ClassroomForm, ScheduleEntryForm
from .models import Classroom, ScheduleEntry

logger = logging.getLogger(__name__)

# JSON clients may use either the *_id spelling or the relation name
FIELD_ALIASES = {"class_id": "classroom", "teacher_id": "teacher"}


def bind_form(form_class, payload: Dict[str, Any], instance=None):
    """Bound ModelForm over the instance's current values, so PUT may be partial"""
    data = model_to_dict(
        instance or form_class._meta.model(), fields=form_class._meta.fields
    )
    for key, value in payload.items():
        data[FIELD_ALIASES.get(key, key)] = value
    return form_class(data=data, instance=instance)


def serialize_classroom(classroom: Classroom) -> Dict[str, Any]:
    return {
        "id": classroom.pk,
        "name": classroom.name,
        "session": classroom.session,
        "major": classroom.major,
        "semester": classroom.semester,
        "description": classroom.description,
        "student_count": classroom.students.count(),
        "created_at": classroom.created_at.isoformat(),
    }


def serialize_entry(entry: ScheduleEntry) -> Dict[str, Any]:
    return {
        "id": entry.pk,
        "class_id": entry.classroom_id,
        "class_name": entry.classroom.name,
        "teacher_id": entry.teacher_id,
        "teacher_name": str(entry.teacher),
        "subject": entry.subject,
        "hours": entry.hours,
        "day_of_week": entry.day_of_week,
        "start_time": entry.start_time.strftime("%H:%M"),
        "end_time": entry.end_time.strftime("%H:%M"),
        "is_active": entry.is_active,
    }


def save_form(form, context: str):
    """Returns (instance, error_response)"""
    if not form.is_valid():
        return None, validation_response(form)
    try:
        return form.save(), None
    except IntegrityError as e:
        return None, handle_api_error(e, context)


# ==================== CLASSES ====================


@require_methods("GET", "POST")
@role_required("Office", "Teacher")
def class_list(request: HttpRequest):
    if request.method == "POST":
        if get_user_role(request.user) != "Office":
            return json_error("Access denied", status=403)

        body, error_response = parse_json_body(request)
        if error_response:
            return error_response

        classroom, error_response = save_form(
            bind_form(ClassroomForm, body), "creating class"
        )
        if error_response:
            return error_response
        return json_success(
            serialize_classroom(classroom), "Class created successfully", status=201
        )

    classes = Classroom.objects.all()
    session = request.GET.get("session")
    if session:
        classes = classes.filter(session=session.upper())
    return json_success({"classes": [serialize_classroom(c) for c in classes]})


@require_methods("GET", "PUT", "DELETE")
@role_required("Office", "Teacher")
def class_detail(request: HttpRequest, class_id: int):
    classroom = Classroom.objects.filter(pk=class_id).first()
    if classroom is None:
        return json_error("Class not found", status=404)

    if request.method == "GET":
        data = serialize_classroom(classroom)
        data["schedule"] = [
            serialize_entry(entry)
            for entry in classroom.schedule_entries.select_related(
                "classroom", "teacher__user"
            )
        ]
        return json_success(data)

    if get_user_role(request.user) != "Office":
        return json_error("Access denied", status=403)

    if request.method == "DELETE":
        classroom.delete()
        logger.info("Class %s deleted by user %s", class_id, request.user.pk)
        return json_success(message="Class deleted successfully")

    body, error_response = parse_json_body(request)
    if error_response:
        return error_response

    classroom, error_response = save_form(
        bind_form(ClassroomForm, body, instance=classroom), "updating class"
    )
    if error_response:
        return error_response
    return json_success(serialize_classroom(classroom), "Class updated successfully")


@require_methods("GET")
@role_required("Office", "Teacher")
def class_stats(request: HttpRequest, class_id: int):
    """Attendance summary for a class over an optional from/to window"""
    classroom = Classroom.objects.filter(pk=class_id).first()
    if classroom is None:
        return json_error("Class not found", status=404)

    records = AttendanceRecord.objects.filter(classroom=classroom)
    start_date = parse_date_flexible(request.GET.get("from"))
    end_date = parse_date_flexible(request.GET.get("to"))
    if start_date:
        records = records.filter(date__gte=start_date)
    if end_date:
        records = records.filter(date__lte=end_date)

    today = timezone.localdate()
    return json_success(
        {
            "class_id": classroom.pk,
            "class_name": classroom.name,
            "student_count": classroom.students.count(),
            "active_students": classroom.students.filter(status="ACTIVE").count(),
            "days_recorded": records.values("date").distinct().count(),
            "summary": summarize_records(records),
            "today": summarize_records(records.filter(date=today)),
        }
    )


# ==================== SCHEDULE ====================


@require_methods("GET", "POST")
@role_required("Office", "Teacher")
def schedule_list(request: HttpRequest):
    if request.method == "POST":
        if get_user_role(request.user) != "Office":
            return json_error("Access denied", status=403)

        body, error_response = parse_json_body(request)
        if error_response:
            return error_response

        entry, error_response = save_form(
            bind_form(ScheduleEntryForm, body), "creating schedule entry"
        )
        if error_response:
            return error_response
        return json_success(
            serialize_entry(entry), "Schedule entry created successfully", status=201
        )

    entries = ScheduleEntry.objects.select_related("classroom", "teacher__user")
    class_id = parse_int(request.GET.get("class_id"))
    if class_id:
        entries = entries.filter(classroom_id=class_id)
    teacher_id = parse_int(request.GET.get("teacher_id"))
    if teacher_id:
        entries = entries.filter(teacher_id=teacher_id)
    day = request.GET.get("day")
    if day:
        entries = entries.filter(day_of_week=day.lower())

    return json_success({"schedule": [serialize_entry(e) for e in entries]})


@require_methods("GET", "PUT", "DELETE")
@role_required("Office", "Teacher")
def schedule_detail(request: HttpRequest, entry_id: int):
    entry = (
        ScheduleEntry.objects.select_related("classroom", "teacher__user")
        .filter(pk=entry_id)
        .first()
    )
    if entry is None:
        return json_error("Schedule entry not found", status=404)

    if request.method == "GET":
        return json_success(serialize_entry(entry))

    if get_user_role(request.user) != "Office":
        return json_error("Access denied", status=403)

    if request.method == "DELETE":
        entry.delete()
        return json_success(message="Schedule entry deleted successfully")

    body, error_response = parse_json_body(request)
    if error_response:
        return error_response

    entry, error_response = save_form(
        bind_form(ScheduleEntryForm, body, instance=entry), "updating schedule entry"
    )
    if error_response:
        return error_response
    return json_success(serialize_entry(entry), "Schedule entry updated successfully")
