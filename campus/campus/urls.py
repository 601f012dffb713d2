from django.contrib import admin
from django.urls import path, include
from django.conf import settings
from django.conf.urls.static import static

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/auth/", include("base.urls")),
    path("api/students/", include("students.urls")),
    path("api/files/", include("students.file_urls")),
    path("api/teachers/", include("teachers.urls")),
    path("api/office-staff/", include("administration.urls")),
    path("api/", include("classes.urls")),
    path("api/attendance/", include("attendance.urls")),
    path("api/reports/", include("reports.urls")),
    path("api/messages/", include("messaging.urls")),
    path("api/notifications/", include("notifications.urls")),
    path("api/dashboard/", include("dashboard.urls")),
] + static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
