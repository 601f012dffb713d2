import logging
from typing import Any, Dict

from django.db import IntegrityError
from django.http import HttpRequest

from base.api import (
    handle_api_error,
    json_error,
    json_success,
    paginate,
    parse_json_body,
    require_methods,
    role_required,
    validation_response,
)
from .forms import OfficeStaffForm
from .models import OfficeStaff

logger = logging.getLogger(__name__)


def serialize_staff(staff: OfficeStaff) -> Dict[str, Any]:
    user = staff.user
    return {
        "id": staff.pk,
        "username": user.username,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "email": user.email,
        "phone": staff.phone,
        "department": staff.department,
        "designation": staff.designation,
        "is_active": staff.is_active,
        "created_at": staff.created_at.isoformat(),
    }


@require_methods("GET", "POST")
@role_required("Office")
def staff_list(request: HttpRequest):
    if request.method == "POST":
        body, error_response = parse_json_body(request)
        if error_response:
            return error_response

        form = OfficeStaffForm.from_payload(body)
        if not form.is_valid():
            return validation_response(form)

        try:
            staff = form.save()
        except IntegrityError as e:
            return handle_api_error(e, "creating office staff")

        logger.info("Office staff %s created by user %s", staff.pk, request.user.pk)
        return json_success(
            serialize_staff(staff), "Office staff created successfully", status=201
        )

    page, meta = paginate(request, OfficeStaff.objects.select_related("user"))
    return json_success({"staff": [serialize_staff(s) for s in page], **meta})


@require_methods("GET", "PUT", "DELETE")
@role_required("Office")
def staff_detail(request: HttpRequest, staff_id: int):
    staff = OfficeStaff.objects.select_related("user").filter(pk=staff_id).first()
    if staff is None:
        return json_error("Office staff not found", status=404)

    if request.method == "GET":
        return json_success(serialize_staff(staff))

    if request.method == "DELETE":
        if staff.user_id == request.user.pk:
            return json_error("You cannot delete your own account", status=400)
        staff.user.delete()
        return json_success(message="Office staff deleted successfully")

    body, error_response = parse_json_body(request)
    if error_response:
        return error_response

    form = OfficeStaffForm.from_payload(body, instance=staff)
    if not form.is_valid():
        return validation_response(form)

    try:
        staff = form.save()
    except IntegrityError as e:
        return handle_api_error(e, "updating office staff")

    return json_success(serialize_staff(staff), "Office staff updated successfully")
