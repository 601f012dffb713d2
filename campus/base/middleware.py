from django.core.exceptions import PermissionDenied
from django.http import Http404
from django.urls import Resolver404, resolve
from django.utils.deprecation import MiddlewareMixin

from .api import handle_api_error, json_error

API_PREFIX = "/api/"


def is_api_request(request) -> bool:
    return request.path_info.startswith(API_PREFIX)


def resolves(path: str) -> bool:
    try:
        resolve(path)
    except Resolver404:
        return False
    return True


class ApiSlashMiddleware(MiddlewareMixin):
    """
    Serve /api/ routes written without their trailing slash in place.
    CommonMiddleware would answer those with a redirect, which drops POST bodies.
    """

    def process_request(self, request):
        path = request.path_info
        if not is_api_request(request) or path.endswith("/") or resolves(path):
            return None
        if resolves(path + "/"):
            request.path_info = path + "/"
            request.path = request.path + "/"
        return None


class ApiExceptionMiddleware(MiddlewareMixin):
    """Answer exceptions escaping an API view with the JSON error envelope"""

    def process_exception(self, request, exception):
        if not is_api_request(request):
            return None
        if isinstance(exception, Http404):
            return json_error("Not found", status=404)
        if isinstance(exception, PermissionDenied):
            return json_error("Access denied", status=403)
        return handle_api_error(exception, f"in {request.method} {request.path}")
