import pytest
from django.core import mail

from messaging.models import Broadcast, BroadcastRecipient, Conversation, Message
from messaging.services import MessagingError, can_message, start_conversation
from notifications.models import Notification

pytestmark = pytest.mark.django_db


@pytest.mark.parametrize(
    "sender,recipient,allowed",
    [
        ("Student", "Teacher", True),
        ("Student", "Student", False),
        ("Student", "Office", False),
        ("Teacher", "Student", True),
        ("Teacher", "Office", True),
        ("Teacher", "Teacher", False),
        ("Office", "Student", True),
        ("Office", "Teacher", True),
        (None, "Teacher", False),
    ],
)
def test_messaging_permissions(sender, recipient, allowed):
    assert can_message(sender, recipient) is allowed


class TestConversations:
    def test_student_messages_teacher(self, student_client, teacher):
        response = student_client.post_json(
            "/api/messages/conversations/",
            {
                "recipient_ids": [teacher.user_id],
                "subject": "Absence",
                "content": "I was sick on Saturday",
                "category": "attendance_inquiry",
            },
        )
        assert response.status_code == 201, response.json()
        message = Message.objects.get()
        assert message.category == "attendance_inquiry"
        assert message.conversation.participants.count() == 2

    def test_student_cannot_message_student(self, student_client, other_student):
        response = student_client.post_json(
            "/api/messages/conversations/",
            {"recipient_ids": [other_student.user_id], "content": "hi"},
        )
        assert response.status_code == 403
        assert not Conversation.objects.exists()

    def test_direct_conversation_is_reused(self, student, teacher):
        first = start_conversation(student.user, [teacher.user_id], "Hello")
        second = start_conversation(student.user, [teacher.user_id], "Again")
        assert first.pk == second.pk
        assert first.messages.count() == 2

    def test_unknown_recipient(self, student):
        with pytest.raises(MessagingError):
            start_conversation(student.user, [9999], "Hello")

    def test_unread_counts_and_mark_read(
        self, student, teacher_client, student_client, teacher
    ):
        conversation = start_conversation(student.user, [teacher.user_id], "Hello")

        response = teacher_client.get("/api/messages/unread-count/")
        assert response.json()["data"]["messages"] == 1

        listing = teacher_client.get("/api/messages/conversations/").json()["data"]
        assert listing["conversations"][0]["unread_count"] == 1

        response = teacher_client.post_json(
            f"/api/messages/conversations/{conversation.pk}/read/"
        )
        assert response.json()["data"]["updated"] == 1
        response = teacher_client.get("/api/messages/unread-count/")
        assert response.json()["data"]["messages"] == 0

        # the sender never has unread messages of their own
        response = student_client.get("/api/messages/unread-count/")
        assert response.json()["data"]["messages"] == 0

    def test_outsider_cannot_read_conversation(
        self, student, teacher, office_client
    ):
        conversation = start_conversation(student.user, [teacher.user_id], "Hello")
        response = office_client.get(f"/api/messages/conversations/{conversation.pk}/")
        assert response.status_code == 403

    def test_message_paging(self, student, teacher, student_client):
        conversation = start_conversation(student.user, [teacher.user_id], "first")
        for n in range(4):
            student_client.post_json(
                f"/api/messages/conversations/{conversation.pk}/",
                {"content": f"message {n}"},
            )

        data = student_client.get(
            f"/api/messages/conversations/{conversation.pk}/", {"limit": 2}
        ).json()["data"]
        assert [m["content"] for m in data["messages"]] == ["message 2", "message 3"]
        assert data["has_more"]

        oldest = data["messages"][0]["id"]
        data = student_client.get(
            f"/api/messages/conversations/{conversation.pk}/",
            {"limit": 10, "before": oldest},
        ).json()["data"]
        assert [m["content"] for m in data["messages"]] == [
            "first",
            "message 0",
            "message 1",
        ]
        assert not data["has_more"]

    def test_reactions_toggle(self, student, teacher, teacher_client):
        conversation = start_conversation(student.user, [teacher.user_id], "Hello")
        message = conversation.messages.get()
        url = f"/api/messages/{message.pk}/reactions/"

        added = teacher_client.post_json(url, {"emoji": "👍"}).json()["data"]
        assert added == {"added": True, "emoji": "👍", "count": 1}
        removed = teacher_client.post_json(url, {"emoji": "👍"}).json()["data"]
        assert removed["added"] is False
        assert removed["count"] == 0

    def test_empty_message_is_rejected(self, student_client, teacher):
        response = student_client.post_json(
            "/api/messages/conversations/",
            {"recipient_ids": [teacher.user_id], "content": "   "},
        )
        assert response.status_code == 400
        assert "content" in response.json()["details"]


class TestBroadcasts:
    def test_office_broadcasts_to_all_students(
        self, office_client, student, other_student, teacher
    ):
        response = office_client.post_json(
            "/api/messages/broadcasts/",
            {
                "subject": "Exams",
                "content": "Exams start next week",
                "target_type": "all_students",
                "priority": "high",
            },
        )
        assert response.status_code == 201, response.json()
        broadcast = Broadcast.objects.get()
        assert broadcast.total_recipients == 2
        assert broadcast.delivered_count == 2
        recipients = set(broadcast.recipients.values_list("user_id", flat=True))
        assert recipients == {student.user_id, other_student.user_id}
        assert Notification.objects.filter(
            type=Notification.Type.SYSTEM_ANNOUNCEMENT
        ).count() == 2

    def test_broadcast_email_waits_for_commit(
        self, office_client, student, other_student, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks() as callbacks:
            response = office_client.post_json(
                "/api/messages/broadcasts/",
                {
                    "subject": "Exams",
                    "content": "Exams start next week",
                    "target_type": "all_students",
                },
            )
        assert response.status_code == 201
        assert mail.outbox == []
        # other_student has no email address
        assert len(callbacks) == 1
        for callback in callbacks:
            callback()
        assert [message.to for message in mail.outbox] == [[student.user.email]]

    def test_teacher_broadcasts_to_own_class(
        self, teacher_client, classroom, student, schedule_entry
    ):
        response = teacher_client.post_json(
            "/api/messages/broadcasts/",
            {
                "subject": "Homework",
                "content": "Chapter 3",
                "target_type": "class",
                "target_class_id": classroom.pk,
            },
        )
        assert response.status_code == 201, response.json()
        assert Broadcast.objects.get().total_recipients == 1

    def test_teacher_cannot_broadcast_to_other_class(
        self, teacher_client, classroom, student
    ):
        response = teacher_client.post_json(
            "/api/messages/broadcasts/",
            {
                "subject": "Homework",
                "content": "Chapter 3",
                "target_type": "class",
                "target_class_id": classroom.pk,
            },
        )
        assert response.status_code == 403

    def test_teacher_cannot_broadcast_to_everyone(self, teacher_client, student):
        response = teacher_client.post_json(
            "/api/messages/broadcasts/",
            {"subject": "Hi", "content": "All", "target_type": "all_students"},
        )
        assert response.status_code == 403

    def test_students_cannot_broadcast(self, student_client):
        response = student_client.post_json(
            "/api/messages/broadcasts/",
            {"subject": "Hi", "content": "All", "target_type": "all_students"},
        )
        assert response.status_code == 403

    def test_department_broadcast(self, office_client, teacher, office_user):
        response = office_client.post_json(
            "/api/messages/broadcasts/",
            {
                "subject": "Meeting",
                "content": "Friday",
                "target_type": "department",
                "target_department": "computer science",
            },
        )
        assert response.status_code == 201
        recipient = BroadcastRecipient.objects.get()
        assert recipient.user == teacher.user

    def test_read_receipt(self, office_client, student_client, student):
        office_client.post_json(
            "/api/messages/broadcasts/",
            {"subject": "Exams", "content": "Soon", "target_type": "all_students"},
        )
        broadcast = Broadcast.objects.get()

        listing = student_client.get("/api/messages/broadcasts/").json()["data"]
        assert listing["broadcasts"][0]["read"] is False

        response = student_client.post_json(
            f"/api/messages/broadcasts/{broadcast.pk}/read/"
        )
        assert response.status_code == 200
        broadcast.refresh_from_db()
        assert broadcast.read_count == 1
        unread = student_client.get("/api/messages/unread-count/").json()["data"]
        assert unread["broadcasts"] == 0
