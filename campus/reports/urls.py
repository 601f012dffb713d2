from django.urls import path
from . import views

app_name = "reports"

urlpatterns = [
    path("attendance/pdf/", views.attendance_pdf, name="attendance_pdf"),
    path("attendance/excel/", views.attendance_excel, name="attendance_excel"),
    path("attendance/csv/", views.attendance_csv, name="attendance_csv"),
]
