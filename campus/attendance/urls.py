from django.urls import path
from . import views

app_name = "attendance"

urlpatterns = [
    path("", views.attendance, name="attendance"),
    path("history/", views.attendance_history, name="history"),
    path("import/", views.import_attendance, name="import"),
    path("export/", views.export_attendance, name="export"),
]
