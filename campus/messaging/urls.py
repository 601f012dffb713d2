from django.urls import path
from . import views

app_name = "messaging"

urlpatterns = [
    path("conversations/", views.conversations, name="conversations"),
    path(
        "conversations/<int:conversation_id>/",
        views.conversation_detail,
        name="conversation_detail",
    ),
    path(
        "conversations/<int:conversation_id>/read/",
        views.mark_read,
        name="mark_read",
    ),
    path("<int:message_id>/reactions/", views.toggle_reaction, name="reactions"),
    path("broadcasts/", views.broadcasts, name="broadcasts"),
    path(
        "broadcasts/<int:broadcast_id>/read/",
        views.broadcast_read,
        name="broadcast_read",
    ),
    path("unread-count/", views.unread_count, name="unread_count"),
]
