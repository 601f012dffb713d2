from django.urls import path
from . import views

app_name = "students"

urlpatterns = [
    path("", views.student_list, name="list"),
    path("export/", views.export_students, name="export"),
    # Medical certificate files
    path("files/upload/", views.upload_certificate, name="upload_certificate"),
    path("files/", views.certificate_list, name="certificate_list"),
    path(
        "files/<int:certificate_id>/",
        views.certificate_detail,
        name="certificate_detail",
    ),
    path(
        "files/<int:certificate_id>/review/",
        views.review_certificate,
        name="review_certificate",
    ),
    path("<int:student_id>/", views.student_detail, name="detail"),
    path(
        "<int:student_id>/academic-status/",
        views.academic_status,
        name="academic_status",
    ),
    path(
        "<int:student_id>/attendance/history/",
        views.attendance_history,
        name="attendance_history",
    ),
]
