from django.contrib import admin
from .models import OfficeStaff


@admin.register(OfficeStaff)
class OfficeStaffAdmin(admin.ModelAdmin):
    list_display = ("user", "department", "designation", "is_active")
    list_filter = ("is_active", "department")
