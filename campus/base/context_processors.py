from django.conf import settings

from .views import get_user_role


def user_role(request):
    """Context processor to add user role to all templates"""
    if request.user.is_authenticated:
        return {"role": get_user_role(request.user)}
    return {}


def university_name(request):
    """Context processor to add university name to all templates"""
    return {"university_name": settings.UNIVERSITY_NAME}
