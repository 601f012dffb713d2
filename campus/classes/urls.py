from django.urls import path
from . import views

app_name = "classes"

urlpatterns = [
    path("classes/", views.class_list, name="class_list"),
    path("classes/<int:class_id>/", views.class_detail, name="class_detail"),
    path("classes/<int:class_id>/stats/", views.class_stats, name="class_stats"),
    path("schedule/", views.schedule_list, name="schedule_list"),
    path("schedule/<int:entry_id>/", views.schedule_detail, name="schedule_detail"),
]
