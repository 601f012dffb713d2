from django.contrib import admin
from .models import MedicalCertificate, Student


@admin.register(Student)
class StudentAdmin(admin.ModelAdmin):
    list_display = ("student_id", "user", "classroom", "semester", "status")
    list_filter = ("status", "classroom")
    search_fields = ("student_id", "user__first_name", "user__last_name", "father_name")


@admin.register(MedicalCertificate)
class MedicalCertificateAdmin(admin.ModelAdmin):
    list_display = ("student", "start_date", "end_date", "status", "submission_date")
    list_filter = ("status",)
    readonly_fields = ("file_path", "file_size", "mime_type", "submission_date")
