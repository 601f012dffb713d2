from django.urls import path
from . import views

app_name = "base"

urlpatterns = [
    path("login/<str:role>/", views.login_view, name="login"),
    path("csrf/", views.csrf, name="csrf"),
    path("logout/", views.logout_view, name="logout"),
    path("me/", views.me, name="me"),
    path("change-password/", views.change_password, name="change_password"),
    path(
        "forgot-password/request-reset/",
        views.request_password_reset,
        name="request_password_reset",
    ),
    path("forgot-password/reset/", views.reset_password, name="reset_password"),
]
