"""
Messaging rules: who may talk to whom, conversation bookkeeping and
broadcast fan-out.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from django.contrib.auth.models import User
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from base.api import parse_int
from base.views import get_user_role
from classes.models import Classroom
from notifications.models import Notification
from notifications.services import notify_users
from students.models import Student
from teachers.models import Teacher
from .models import (
    Broadcast,
    BroadcastRecipient,
    Conversation,
    ConversationParticipant,
    Message,
)

logger = logging.getLogger(__name__)

ALLOWED_RECIPIENTS = {
    "Student": {"Teacher"},
    "Teacher": {"Student", "Office"},
    "Office": {"Student", "Teacher"},
}


class MessagingError(Exception):
    def __init__(self, message: str, status: int = 400):
        super().__init__(message)
        self.message = message
        self.status = status


def can_message(sender_role: Optional[str], recipient_role: Optional[str]) -> bool:
    return recipient_role in ALLOWED_RECIPIENTS.get(sender_role, set())


def get_participant(
    conversation: Conversation, user
) -> Optional[ConversationParticipant]:
    return conversation.participants.filter(user=user).first()


def find_direct_conversation(user, other) -> Optional[Conversation]:
    return (
        Conversation.objects.filter(is_group=False, participants__user=user)
        .filter(participants__user=other)
        .first()
    )


def post_message(conversation: Conversation, sender, content: str, **fields) -> Message:
    message = Message.objects.create(
        conversation=conversation, sender=sender, content=content, **fields
    )
    conversation.save(update_fields=["updated_at"])
    ConversationParticipant.objects.filter(
        conversation=conversation, user=sender
    ).update(last_read_at=message.created_at)
    return message


def start_conversation(
    sender,
    recipient_ids: Iterable[int],
    content: str,
    subject: str = "",
    **fields,
) -> Conversation:
    """Open (or reuse, for one-to-one) a conversation and post the first message"""
    sender_role = get_user_role(sender)
    recipients = list(
        User.objects.filter(pk__in=set(recipient_ids)).exclude(pk=sender.pk)
    )
    if not recipients:
        raise MessagingError("At least one valid recipient is required")

    roles = {}
    for recipient in recipients:
        role = get_user_role(recipient)
        if not can_message(sender_role, role):
            raise MessagingError(
                f"{sender_role or 'This user'} cannot message {role or 'this user'}",
                status=403,
            )
        roles[recipient.pk] = role

    with transaction.atomic():
        conversation = None
        if len(recipients) == 1:
            conversation = find_direct_conversation(sender, recipients[0])
        if conversation is None:
            conversation = Conversation.objects.create(
                subject=subject, created_by=sender, is_group=len(recipients) > 1
            )
            ConversationParticipant.objects.create(
                conversation=conversation, user=sender, role=sender_role or ""
            )
            ConversationParticipant.objects.bulk_create(
                ConversationParticipant(
                    conversation=conversation,
                    user=recipient,
                    role=roles[recipient.pk] or "",
                )
                for recipient in recipients
            )
        post_message(conversation, sender, content, **fields)

    logger.info(
        "User %s messaged %s in conversation %s",
        sender.pk,
        [r.pk for r in recipients],
        conversation.pk,
    )
    return conversation


def unread_messages(conversation: Conversation, participant: ConversationParticipant):
    messages = conversation.messages.filter(is_deleted=False).exclude(
        sender=participant.user
    )
    if participant.last_read_at:
        messages = messages.filter(created_at__gt=participant.last_read_at)
    return messages


def mark_conversation_read(
    conversation: Conversation, participant: ConversationParticipant
) -> int:
    now = timezone.now()
    updated = unread_messages(conversation, participant).update(is_read=True)
    participant.last_read_at = now
    participant.save(update_fields=["last_read_at"])
    return updated


def total_unread(user) -> int:
    total = 0
    for participant in ConversationParticipant.objects.filter(
        user=user, is_archived=False
    ).select_related("conversation", "user"):
        total += unread_messages(participant.conversation, participant).count()
    return total


# ==================== BROADCASTS ====================


def teacher_class_ids(user) -> List[int]:
    teacher = Teacher.objects.filter(user=user).first()
    if teacher is None:
        return []
    return list(
        Classroom.objects.filter(
            schedule_entries__teacher=teacher, schedule_entries__is_active=True
        )
        .distinct()
        .values_list("pk", flat=True)
    )


def broadcast_recipients(
    target_type: str,
    target_class: Optional[Classroom] = None,
    department: str = "",
):
    """Active user accounts a broadcast reaches"""
    users = User.objects.filter(is_active=True)
    if target_type == Broadcast.TargetType.ALL_STUDENTS:
        return users.filter(student__status=Student.Status.ACTIVE)
    if target_type == Broadcast.TargetType.CLASS:
        return users.filter(
            student__classroom=target_class, student__status=Student.Status.ACTIVE
        )
    if target_type == Broadcast.TargetType.ALL_TEACHERS:
        return users.filter(teacher__isnull=False).exclude(
            teacher__status=Teacher.Status.INACTIVE
        )
    if target_type == Broadcast.TargetType.DEPARTMENT:
        return users.filter(
            Q(teacher__departments__icontains=department)
            | Q(office_staff__department__iexact=department)
        ).distinct()
    return users.none()


def validate_broadcast_target(sender, data: Dict[str, Any]) -> Dict[str, Any]:
    """Resolve and check the target; raises MessagingError"""
    role = get_user_role(sender)
    target_type = data.get("target_type")
    if target_type not in Broadcast.TargetType.values:
        raise MessagingError(
            f"target_type must be one of {Broadcast.TargetType.values}"
        )

    target_class = None
    department = str(data.get("target_department") or "").strip()
    if target_type == Broadcast.TargetType.CLASS:
        class_id = parse_int(data.get("target_class_id"))
        target_class = None
        if class_id:
            target_class = Classroom.objects.filter(pk=class_id).first()
        if target_class is None:
            raise MessagingError("Class not found", status=404)
    if target_type == Broadcast.TargetType.DEPARTMENT and not department:
        raise MessagingError("target_department is required")

    if role == "Teacher":
        own_class = (
            target_type == Broadcast.TargetType.CLASS
            and target_class.pk in teacher_class_ids(sender)
        )
        if not own_class:
            raise MessagingError(
                "Teachers can only broadcast to classes they teach", status=403
            )
    elif role != "Office":
        raise MessagingError("Access denied", status=403)

    return {
        "target_type": target_type,
        "target_class": target_class,
        "target_department": department,
    }


def create_broadcast(sender, subject: str, content: str, **fields) -> Broadcast:
    """Store the broadcast, one recipient row per user and a notification each"""
    target = validate_broadcast_target(sender, fields)
    extra = {k: fields[k] for k in ("category", "priority") if fields.get(k)}
    recipients = list(
        broadcast_recipients(
            target["target_type"], target["target_class"], target["target_department"]
        ).exclude(pk=sender.pk)
    )

    with transaction.atomic():
        broadcast = Broadcast.objects.create(
            sender=sender, subject=subject, content=content, **target, **extra
        )
        now = timezone.now()
        BroadcastRecipient.objects.bulk_create(
            BroadcastRecipient(broadcast=broadcast, user=user, delivered_at=now)
            for user in recipients
        )
        broadcast.total_recipients = len(recipients)
        broadcast.delivered_count = len(recipients)
        broadcast.save(update_fields=["total_recipients", "delivered_count"])

        notify_users(
            recipients,
            Notification.Type.SYSTEM_ANNOUNCEMENT,
            subject,
            content,
            metadata={"broadcast_id": broadcast.pk},
        )

    logger.info(
        "Broadcast %s sent by user %s to %s recipients",
        broadcast.pk,
        sender.pk,
        broadcast.total_recipients,
    )
    return broadcast


def mark_broadcast_read(recipient: BroadcastRecipient) -> None:
    if recipient.read_at is not None:
        return
    recipient.read_at = timezone.now()
    recipient.save(update_fields=["read_at"])
    broadcast = recipient.broadcast
    broadcast.read_count = broadcast.recipients.filter(read_at__isnull=False).count()
    broadcast.save(update_fields=["read_count"])
