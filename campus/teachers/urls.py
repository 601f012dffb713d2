from django.urls import path
from . import views

app_name = "teachers"

urlpatterns = [
    path("", views.teacher_list, name="list"),
    path("schedule/", views.teacher_schedule, name="schedule"),
    path("schedule/cache/", views.schedule_cache, name="schedule_cache"),
    path("<int:teacher_id>/", views.teacher_detail, name="detail"),
    path("<int:teacher_id>/classes/", views.teacher_classes, name="classes"),
]
