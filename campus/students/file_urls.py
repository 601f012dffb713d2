from django.urls import path
from . import views

app_name = "files"

urlpatterns = [
    path("signed/<str:token>/", views.signed_file, name="signed_file"),
]
