from django.urls import path
from . import views

app_name = "administration"

urlpatterns = [
    path("", views.staff_list, name="list"),
    path("<int:staff_id>/", views.staff_detail, name="detail"),
]
