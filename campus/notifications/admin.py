from django.contrib import admin

from .models import Notification, NotificationPreference


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ("user", "type", "severity", "title", "read", "created_at")
    list_filter = ("type", "severity", "read", "in_app", "delivery_status")
    search_fields = ("title", "user__username")


admin.site.register(NotificationPreference)
