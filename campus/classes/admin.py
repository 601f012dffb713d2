from django.contrib import admin

from .models import Classroom, ScheduleEntry


@admin.register(Classroom)
class ClassroomAdmin(admin.ModelAdmin):
    list_display = ("name", "session", "major", "semester")
    list_filter = ("session",)
    search_fields = ("name", "major")


@admin.register(ScheduleEntry)
class ScheduleEntryAdmin(admin.ModelAdmin):
    list_display = ("classroom", "teacher", "subject", "day_of_week", "start_time", "hours")
    list_filter = ("day_of_week", "is_active")
