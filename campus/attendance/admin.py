from django.contrib import admin
from .models import AttendanceRecord


@admin.register(AttendanceRecord)
class AttendanceRecordAdmin(admin.ModelAdmin):
    list_display = ("student", "classroom", "date", *[f"period_{n}" for n in range(1, 7)])
    list_filter = ("classroom", "date")
    search_fields = ("student__student_id", "student__user__first_name")
    date_hierarchy = "date"
