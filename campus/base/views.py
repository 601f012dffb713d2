import logging
import secrets
from datetime import timedelta
from typing import Any, Dict, Optional

from django.conf import settings
from django.contrib.auth import (
    authenticate,
    login,
    logout,
    update_session_auth_hash,
)
from django.contrib.auth.models import User
from django.core.exceptions import ValidationError
from django.core.validators import validate_email
from django.db import transaction
from django.http import HttpRequest
from django.utils import timezone
from django.middleware.csrf import get_token
from django.views.decorators.csrf import ensure_csrf_cookie

from .api import (
    api_login_required,
    json_error,
    json_success,
    parse_json_body,
    require_methods,
)
from .emails import send_reset_code_email
from .models import PasswordResetToken, hash_token
from .validators import validate_password_strength

logger = logging.getLogger(__name__)

ROLE_GROUPS = {
    "office": "Office",
    "teacher": "Teacher",
    "student": "Student",
}

GENERIC_RESET_MESSAGE = (
    "If an account with that email exists, a password reset code has been sent."
)


def get_user_role(user) -> Optional[str]:
    if user.is_superuser or user.groups.filter(name="Office").exists():
        return "Office"
    elif user.groups.filter(name="Teacher").exists():
        return "Teacher"
    elif user.groups.filter(name="Student").exists():
        return "Student"
    return None


def get_profile_id(user, role: Optional[str]) -> Optional[int]:
    related = {
        "Office": "office_staff",
        "Teacher": "teacher",
        "Student": "student",
    }.get(role)
    profile = getattr(user, related, None) if related else None
    return profile.pk if profile else None


def serialize_user(user) -> Dict[str, Any]:
    role = get_user_role(user)
    return {
        "id": user.pk,
        "username": user.username,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "email": user.email,
        "role": role,
        "profile_id": get_profile_id(user, role),
    }


def csrf_failure(request: HttpRequest, reason: str = ""):
    logger.warning("CSRF check failed for %s: %s", request.path, reason)
    return json_error(
        "CSRF verification failed",
        status=403,
        details={"message": "Fetch /api/auth/csrf/ and send the token as X-CSRFToken."},
    )


@require_methods("GET")
@ensure_csrf_cookie
def csrf(request: HttpRequest):
    """Sets the csrftoken cookie for clients that have not logged in yet"""
    return json_success({"csrf_token": get_token(request)})


@require_methods("POST")
def login_view(request: HttpRequest, role: str):
    group_name = ROLE_GROUPS.get(role)
    if not group_name:
        return json_error("Invalid role", status=400)

    body, error_response = parse_json_body(request)
    if error_response:
        return error_response

    username = str(body.get("username", "")).strip()
    password = str(body.get("password", ""))
    if not username or not password:
        return json_error(
            "Username and password are required",
            status=400,
            details={
                field: ["This field is required."]
                for field, value in (("username", username), ("password", password))
                if not value
            },
        )

    user = authenticate(request, username=username, password=password)
    if user is None or get_user_role(user) != group_name:
        # Same answer for unknown user, wrong password and wrong portal
        logger.warning("Failed %s login for username %r", role, username)
        return json_error("Invalid credentials", status=401)

    login(request, user)
    logger.info("User %s logged in to the %s portal", user.pk, role)
    return json_success({"user": serialize_user(user)}, "Login successful")


@require_methods("POST")
@api_login_required
def logout_view(request: HttpRequest):
    logout(request)
    return json_success(message="Logged out")


@require_methods("GET")
@api_login_required
@ensure_csrf_cookie
def me(request: HttpRequest):
    return json_success({"user": serialize_user(request.user)})


@require_methods("POST")
@api_login_required
def change_password(request: HttpRequest):
    body, error_response = parse_json_body(request)
    if error_response:
        return error_response

    current_password = body.get("current_password") or ""
    new_password = body.get("new_password") or ""
    if not current_password or not new_password:
        return json_error(
            "Missing required fields",
            status=400,
            details={"message": "Current password and new password are required."},
        )

    try:
        validate_password_strength(new_password)
    except ValidationError as e:
        return json_error(
            "Validation failed", status=400, details={"new_password": e.messages}
        )

    user = request.user
    if not user.check_password(current_password):
        return json_error("Current password is incorrect", status=401)

    user.set_password(new_password)
    user.save(update_fields=["password"])
    update_session_auth_hash(request, user)
    return json_success(message="Password changed successfully")


def generate_reset_code() -> str:
    return f"{secrets.randbelow(1_000_000):06d}"


@require_methods("POST")
def request_password_reset(request: HttpRequest):
    body, error_response = parse_json_body(request)
    if error_response:
        return error_response

    email = str(body.get("email", "")).strip()
    try:
        validate_email(email)
    except ValidationError:
        return json_error(
            "Invalid email address",
            status=400,
            details={"email": ["Enter a valid email address."]},
        )

    ttl_minutes = settings.PASSWORD_RESET_TTL_MINUTES
    generic_response = json_success(
        {"expires_in": ttl_minutes * 60}, GENERIC_RESET_MESSAGE
    )

    user = User.objects.filter(email__iexact=email).first()
    if user is None:
        return generic_response

    if not user.is_active:
        return json_error(
            "Your account is inactive. Please contact administration.", status=403
        )

    reset_code = generate_reset_code()
    token = secrets.token_urlsafe(32)

    with transaction.atomic():
        PasswordResetToken.objects.filter(user=user, used=False).update(used=True)
        reset_token = PasswordResetToken.objects.create(
            user=user,
            reset_code=reset_code,
            token_hash=hash_token(token),
            expires_at=timezone.now() + timedelta(minutes=ttl_minutes),
        )

    try:
        send_reset_code_email(user, reset_code, ttl_minutes)
    except Exception:
        logger.exception("Failed to send password reset email to user %s", user.pk)
        reset_token.delete()
        return json_error(
            "Failed to send reset code. Please try again later.", status=500
        )

    return generic_response


@require_methods("POST")
def reset_password(request: HttpRequest):
    """Set a new password from an emailed reset code (or the raw reset token)"""
    body, error_response = parse_json_body(request)
    if error_response:
        return error_response

    new_password = body.get("new_password") or ""
    try:
        validate_password_strength(new_password)
    except ValidationError as e:
        return json_error(
            "Validation failed", status=400, details={"new_password": e.messages}
        )

    tokens = PasswordResetToken.objects.select_related("user").filter(used=False)
    if body.get("token"):
        reset_token = tokens.filter(token_hash=hash_token(str(body["token"]))).first()
    else:
        email = str(body.get("email", "")).strip()
        code = str(body.get("code", "")).strip()
        if not email or not code:
            return json_error("Email and code are required", status=400)
        reset_token = tokens.filter(
            user__email__iexact=email, reset_code=code
        ).first()

    if reset_token is None or not reset_token.is_valid:
        return json_error("Invalid or expired reset code", status=400)

    user = reset_token.user
    with transaction.atomic():
        user.set_password(new_password)
        user.save(update_fields=["password"])
        reset_token.used = True
        reset_token.save(update_fields=["used"])

    logger.info("Password reset completed for user %s", user.pk)
    return json_success(message="Password has been reset successfully")
