"""
JSON API helpers shared by every app.
Response envelopes, body parsing, auth/role guards and error mapping.
"""

import json
import logging
import re
from datetime import date, datetime
from functools import wraps
from typing import Any, Dict, Optional, Tuple

from django.core.paginator import Paginator
from django.db import IntegrityError
from django.http import HttpRequest, JsonResponse

logger = logging.getLogger(__name__)


def json_success(
    data: Any = None, message: Optional[str] = None, status: int = 200
) -> JsonResponse:
    payload: Dict[str, Any] = {"success": True}
    if message:
        payload["message"] = message
    if data is not None:
        payload["data"] = data
    return JsonResponse(payload, status=status)


def json_error(
    error: str, status: int = 400, details: Optional[Dict[str, Any]] = None
) -> JsonResponse:
    payload: Dict[str, Any] = {"success": False, "error": error}
    if details is not None:
        payload["details"] = details
    return JsonResponse(payload, status=status)


def duplicate_response(field: Optional[str]) -> JsonResponse:
    return json_error(
        "Duplicate value",
        status=409,
        details={"field": field, "message": "Duplicate value"},
    )


def form_errors(form) -> Dict[str, list]:
    """Flatten Django form errors into {field: [messages]}"""
    return {
        field: [str(message) for message in messages]
        for field, messages in form.errors.items()
    }


def unique_error_field(form) -> Optional[str]:
    """Return the first field whose validation failed on a uniqueness check"""
    for field, errors in form.errors.as_data().items():
        for error in errors:
            if error.code == "unique":
                return field
            if error.code == "unique_together":
                return ", ".join(error.params["unique_check"])
    return None


def validation_response(form) -> JsonResponse:
    duplicate_field = unique_error_field(form)
    if duplicate_field:
        return duplicate_response(duplicate_field)
    return json_error("Validation failed", status=400, details=form_errors(form))


def parse_json_body(
    request: HttpRequest,
) -> Tuple[Optional[Dict[str, Any]], Optional[JsonResponse]]:
    """Decode a JSON request body or return a 400 error response"""
    if not request.body:
        return {}, None
    try:
        body = json.loads(request.body.decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        return None, json_error("Invalid JSON body", status=400)
    if not isinstance(body, dict):
        return None, json_error("JSON body must be an object", status=400)
    return body, None


def parse_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def api_login_required(view_func):
    """Like login_required, but answers 401 JSON instead of redirecting"""

    @wraps(view_func)
    def wrapper(request: HttpRequest, *args, **kwargs):
        if not request.user.is_authenticated:
            return json_error("Authentication required", status=401)
        return view_func(request, *args, **kwargs)

    return wrapper


def role_required(*roles: str):
    """Restrict an API view to the given roles (Office, Teacher, Student)"""

    def decorator(view_func):
        @wraps(view_func)
        @api_login_required
        def wrapper(request: HttpRequest, *args, **kwargs):
            from .views import get_user_role

            if get_user_role(request.user) not in roles:
                return json_error("Access denied", status=403)
            return view_func(request, *args, **kwargs)

        return wrapper

    return decorator


def require_methods(*methods: str):
    def decorator(view_func):
        @wraps(view_func)
        def wrapper(request: HttpRequest, *args, **kwargs):
            if request.method not in methods:
                return json_error("Method not allowed", status=405)
            return view_func(request, *args, **kwargs)

        return wrapper

    return decorator


# SQLite: "UNIQUE constraint failed: students_student.student_id"
# PostgreSQL: 'DETAIL:  Key (student_id)=(1234) already exists.'
_SQLITE_UNIQUE = re.compile(r"UNIQUE constraint failed: [\w.]+\.(\w+)")
_POSTGRES_UNIQUE = re.compile(r"Key \((\w+)(?:,[^)]*)?\)=")


def integrity_error_field(exc: IntegrityError) -> Optional[str]:
    message = str(exc)
    match = _SQLITE_UNIQUE.search(message) or _POSTGRES_UNIQUE.search(message)
    return match.group(1) if match else None


def handle_api_error(exc: Exception, context: str = "") -> JsonResponse:
    """Map an unexpected exception raised inside an API view to a response"""
    if isinstance(exc, IntegrityError):
        field = integrity_error_field(exc)
        logger.warning("Integrity error %s: %s", context, exc)
        if "unique" in str(exc).lower() or "duplicate" in str(exc).lower():
            return duplicate_response(field)
        return json_error("Invalid reference", status=400, details={"field": field})

    logger.exception("Unhandled error %s", context, exc_info=exc)
    return json_error("Internal server error", status=500)


DATE_FORMATS = ["%Y-%m-%d", "%Y/%m/%d", "%d-%m-%Y", "%d/%m/%Y"]


def parse_date_flexible(date_str: Optional[str]) -> Optional[date]:
    """Parse date string with multiple format support"""
    if not date_str:
        return None
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(str(date_str).strip(), fmt).date()
        except ValueError:
            continue
    return None


MAX_PAGE_SIZE = 200


def parse_limit(value: Any, default: int) -> int:
    """Page size from a query value, clamped to 1..MAX_PAGE_SIZE"""
    limit = parse_int(value) or default
    return max(1, min(limit, MAX_PAGE_SIZE))


def paginate(request: HttpRequest, queryset, default_limit: int = 50):
    """Page a queryset from ?page=&limit="""
    limit = parse_limit(request.GET.get("limit"), default_limit)
    page = Paginator(queryset, limit).get_page(request.GET.get("page"))
    meta = {
        "page": page.number,
        "total_pages": page.paginator.num_pages,
        "total": page.paginator.count,
    }
    return page.object_list, meta
