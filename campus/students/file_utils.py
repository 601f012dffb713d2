"""
Medical certificate file handling.

Uploads are checked for size, extension, declared MIME type and the file's
magic number before anything is written, so a renamed executable cannot be
stored as a "PDF". Files are saved under a random name per student and are
only reachable through time-limited signed URLs.
"""

import logging
import os
import re
import uuid
from typing import Optional, Tuple

from django.conf import settings
from django.core import signing
from django.core.files.storage import default_storage
from django.urls import reverse

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 10 * 1024 * 1024
MIN_FILE_SIZE = 100
ALLOWED_MIME_TYPES = ["application/pdf", "image/jpeg", "image/png"]
ALLOWED_EXTENSIONS = [".pdf", ".jpg", ".jpeg", ".png"]

MAGIC_NUMBERS = {
    "application/pdf": b"%PDF",
    "image/jpeg": b"\xff\xd8\xff",
    "image/png": b"\x89PNG\r\n\x1a\n",
}

STORAGE_DIR = "medical-certificates"
SIGNING_SALT = "students.medical-certificate"


def get_extension(file_name: str) -> str:
    return os.path.splitext(file_name)[1].lower()


def sanitize_file_name(file_name: str) -> str:
    """Strip any path components and replace unsafe characters with underscores"""
    base_name = re.sub(r"^.*[\\/]", "", file_name)
    return re.sub(r"[^a-zA-Z0-9._-]", "_", base_name)


def matches_magic_number(header: bytes, mime_type: str) -> bool:
    signature = MAGIC_NUMBERS.get(mime_type)
    return signature is not None and header.startswith(signature)


def read_header(uploaded_file, length: int = 8) -> bytes:
    uploaded_file.seek(0)
    header = uploaded_file.read(length)
    uploaded_file.seek(0)
    return header


def validate_upload(uploaded_file) -> Optional[str]:
    """Return an error message for an unacceptable upload, or None"""
    if uploaded_file.size > MAX_FILE_SIZE:
        return f"File size exceeds maximum limit of {MAX_FILE_SIZE // 1024 // 1024}MB"

    if uploaded_file.size < MIN_FILE_SIZE:
        return "File is too small or empty"

    if get_extension(uploaded_file.name) not in ALLOWED_EXTENSIONS:
        return "Invalid file type. Only PDF, JPG, and PNG files are allowed"

    if uploaded_file.content_type not in ALLOWED_MIME_TYPES:
        return "Invalid file type. Only PDF, JPG, and PNG files are allowed"

    if not matches_magic_number(read_header(uploaded_file), uploaded_file.content_type):
        return (
            "File type validation failed. "
            "The file may be corrupted or not a valid PDF/JPG/PNG"
        )

    return None


def build_storage_path(student_id: str, file_name: str) -> str:
    return f"{STORAGE_DIR}/{student_id}/{uuid.uuid4()}{get_extension(file_name)}"


def store_certificate_file(student_id: str, uploaded_file) -> Tuple[str, str]:
    """Save the upload and return (storage path, sanitized original name)"""
    file_name = sanitize_file_name(uploaded_file.name)
    path = default_storage.save(build_storage_path(student_id, file_name), uploaded_file)
    logger.info("Stored medical certificate for student %s at %s", student_id, path)
    return path, file_name


def delete_certificate_file(path: str) -> None:
    if path and default_storage.exists(path):
        default_storage.delete(path)


def _signer() -> signing.TimestampSigner:
    return signing.TimestampSigner(salt=SIGNING_SALT)


def generate_signed_url(certificate, request=None) -> str:
    token = _signer().sign(str(certificate.pk))
    url = reverse("files:signed_file", args=[token])
    return request.build_absolute_uri(url) if request is not None else url


def resolve_signed_token(token: str, max_age: Optional[int] = None) -> Optional[int]:
    """Return the certificate id a token was issued for, or None if invalid/expired"""
    if max_age is None:
        max_age = settings.SIGNED_URL_MAX_AGE
    try:
        return int(_signer().unsign(token, max_age=max_age))
    except (signing.BadSignature, ValueError):
        return None
