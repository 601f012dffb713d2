import logging
from typing import Any, Dict, Tuple

from django.db.models import Prefetch
from django.http import HttpRequest

from base.api import (
    api_login_required,
    json_error,
    json_success,
    paginate,
    parse_int,
    parse_json_body,
    parse_limit,
    require_methods,
)
from base.views import get_user_role
from .models import (
    Broadcast,
    BroadcastRecipient,
    Conversation,
    ConversationParticipant,
    Message,
    MessageCategory,
    MessagePriority,
    MessageReaction,
)
from .services import (
    MessagingError,
    create_broadcast,
    get_participant,
    mark_broadcast_read,
    mark_conversation_read,
    post_message,
    start_conversation,
    total_unread,
    unread_messages,
)

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 5000


# ==================== HELPER FUNCTIONS ====================


def serialize_message(message: Message, user) -> Dict[str, Any]:
    reactions: Dict[str, Dict[str, Any]] = {}
    for reaction in message.reactions.all():
        entry = reactions.setdefault(reaction.emoji, {"count": 0, "reacted": False})
        entry["count"] += 1
        if reaction.user_id == user.pk:
            entry["reacted"] = True

    return {
        "id": message.pk,
        "conversation_id": message.conversation_id,
        "sender_id": message.sender_id,
        "sender_name": message.sender.get_full_name() if message.sender else None,
        "content": "" if message.is_deleted else message.content,
        "category": message.category,
        "priority": message.priority,
        "is_read": message.is_read,
        "is_pinned": message.is_pinned,
        "is_deleted": message.is_deleted,
        "reactions": reactions,
        "created_at": message.created_at.isoformat(),
    }


def serialize_conversation(
    conversation: Conversation, participant: ConversationParticipant
) -> Dict[str, Any]:
    last_message = conversation.messages.filter(is_deleted=False).last()
    return {
        "id": conversation.pk,
        "subject": conversation.subject,
        "is_group": conversation.is_group,
        "participants": [
            {
                "user_id": p.user_id,
                "name": p.user.get_full_name() or p.user.username,
                "role": p.role,
            }
            for p in conversation.participants.select_related("user")
        ],
        "last_message": (
            {
                "content": last_message.content,
                "sender_id": last_message.sender_id,
                "created_at": last_message.created_at.isoformat(),
            }
            if last_message
            else None
        ),
        "unread_count": unread_messages(conversation, participant).count(),
        "is_muted": participant.is_muted,
        "is_archived": participant.is_archived,
        "updated_at": conversation.updated_at.isoformat(),
    }


def serialize_broadcast(broadcast: Broadcast) -> Dict[str, Any]:
    return {
        "id": broadcast.pk,
        "subject": broadcast.subject,
        "content": broadcast.content,
        "category": broadcast.category,
        "priority": broadcast.priority,
        "target_type": broadcast.target_type,
        "target_class_id": broadcast.target_class_id,
        "target_department": broadcast.target_department,
        "sender_id": broadcast.sender_id,
        "total_recipients": broadcast.total_recipients,
        "delivered_count": broadcast.delivered_count,
        "read_count": broadcast.read_count,
        "created_at": broadcast.created_at.isoformat(),
    }


def get_conversation_or_error(request, conversation_id: int):
    """Returns (conversation, participant, error_response)"""
    conversation = Conversation.objects.filter(pk=conversation_id).first()
    if conversation is None:
        return None, None, json_error("Conversation not found", status=404)
    participant = get_participant(conversation, request.user)
    if participant is None:
        return None, None, json_error("Access denied", status=403)
    return conversation, participant, None


def message_fields(body: Dict[str, Any]) -> Tuple[Dict[str, Any], Dict[str, list]]:
    """Validate content/category/priority; returns (fields, errors)"""
    errors: Dict[str, list] = {}
    content = str(body.get("content", "")).strip()
    if not content:
        errors["content"] = ["This field is required."]
    elif len(content) > MAX_MESSAGE_LENGTH:
        errors["content"] = [
            f"Ensure this value has at most {MAX_MESSAGE_LENGTH} characters."
        ]

    category = body.get("category") or MessageCategory.GENERAL
    if category not in MessageCategory.values:
        errors["category"] = [f"Must be one of {MessageCategory.values}"]
    priority = body.get("priority") or MessagePriority.NORMAL
    if priority not in MessagePriority.values:
        errors["priority"] = [f"Must be one of {MessagePriority.values}"]

    return {"content": content, "category": category, "priority": priority}, errors


# ==================== CONVERSATIONS ====================


@require_methods("GET", "POST")
@api_login_required
def conversations(request: HttpRequest):
    if request.method == "POST":
        body, error_response = parse_json_body(request)
        if error_response:
            return error_response

        fields, errors = message_fields(body)
        recipient_ids = [
            parse_int(value) for value in body.get("recipient_ids") or []
        ]
        recipient_ids = [pk for pk in recipient_ids if pk]
        if not recipient_ids:
            errors["recipient_ids"] = ["Provide at least one recipient."]
        if errors:
            return json_error("Validation failed", status=400, details=errors)

        try:
            conversation = start_conversation(
                request.user,
                recipient_ids,
                subject=str(body.get("subject", "")).strip(),
                **fields,
            )
        except MessagingError as e:
            return json_error(e.message, status=e.status)

        participant = get_participant(conversation, request.user)
        return json_success(
            serialize_conversation(conversation, participant),
            "Message sent",
            status=201,
        )

    participants = ConversationParticipant.objects.filter(
        user=request.user,
        is_archived=request.GET.get("archived") in ("1", "true"),
    ).select_related("conversation", "user")
    data = [
        serialize_conversation(p.conversation, p)
        for p in sorted(
            participants, key=lambda p: p.conversation.updated_at, reverse=True
        )
    ]
    return json_success({"conversations": data})


@require_methods("GET", "POST")
@api_login_required
def conversation_detail(request: HttpRequest, conversation_id: int):
    conversation, participant, error_response = get_conversation_or_error(
        request, conversation_id
    )
    if error_response:
        return error_response

    if request.method == "POST":
        body, error_response = parse_json_body(request)
        if error_response:
            return error_response
        fields, errors = message_fields(body)
        if errors:
            return json_error("Validation failed", status=400, details=errors)

        content = fields.pop("content")
        message = post_message(conversation, request.user, content, **fields)
        return json_success(
            serialize_message(message, request.user), "Message sent", status=201
        )

    limit = parse_limit(request.GET.get("limit"), 50)
    messages = conversation.messages.select_related("sender").prefetch_related(
        Prefetch("reactions", queryset=MessageReaction.objects.all())
    )
    before = parse_int(request.GET.get("before"))
    if before:
        messages = messages.filter(pk__lt=before)
    page = list(messages.order_by("-created_at", "-pk")[: limit + 1])
    has_more = len(page) > limit
    page = list(reversed(page[:limit]))

    return json_success(
        {
            "conversation": serialize_conversation(conversation, participant),
            "messages": [serialize_message(m, request.user) for m in page],
            "has_more": has_more,
        }
    )


@require_methods("POST")
@api_login_required
def mark_read(request: HttpRequest, conversation_id: int):
    conversation, participant, error_response = get_conversation_or_error(
        request, conversation_id
    )
    if error_response:
        return error_response
    updated = mark_conversation_read(conversation, participant)
    return json_success({"updated": updated})


@require_methods("POST")
@api_login_required
def toggle_reaction(request: HttpRequest, message_id: int):
    message = Message.objects.filter(pk=message_id, is_deleted=False).first()
    if message is None:
        return json_error("Message not found", status=404)
    if get_participant(message.conversation, request.user) is None:
        return json_error("Access denied", status=403)

    body, error_response = parse_json_body(request)
    if error_response:
        return error_response
    emoji = str(body.get("emoji", "")).strip()
    if not emoji or len(emoji) > 16:
        return json_error(
            "Validation failed", status=400, details={"emoji": ["Invalid emoji."]}
        )

    reaction, created = MessageReaction.objects.get_or_create(
        message=message, user=request.user, emoji=emoji
    )
    if not created:
        reaction.delete()
    return json_success(
        {
            "added": created,
            "emoji": emoji,
            "count": message.reactions.filter(emoji=emoji).count(),
        }
    )


# ==================== BROADCASTS ====================


@require_methods("GET", "POST")
@api_login_required
def broadcasts(request: HttpRequest):
    role = get_user_role(request.user)

    if request.method == "POST":
        if role not in ("Office", "Teacher"):
            return json_error("Access denied", status=403)
        body, error_response = parse_json_body(request)
        if error_response:
            return error_response

        fields, errors = message_fields(body)
        subject = str(body.get("subject", "")).strip()
        if not subject:
            errors["subject"] = ["This field is required."]
        if errors:
            return json_error("Validation failed", status=400, details=errors)

        try:
            broadcast = create_broadcast(
                request.user,
                subject,
                fields["content"],
                category=fields["category"],
                priority=fields["priority"],
                target_type=body.get("target_type"),
                target_class_id=body.get("target_class_id"),
                target_department=body.get("target_department"),
            )
        except MessagingError as e:
            return json_error(e.message, status=e.status)
        return json_success(
            serialize_broadcast(broadcast), "Broadcast sent", status=201
        )

    if role == "Office" and request.GET.get("received") not in ("1", "true"):
        page, meta = paginate(request, Broadcast.objects.all(), default_limit=20)
        return json_success(
            {"broadcasts": [serialize_broadcast(b) for b in page], **meta}
        )

    received = (
        BroadcastRecipient.objects.filter(user=request.user)
        .select_related("broadcast")
        .order_by("-broadcast__created_at")
    )
    page, meta = paginate(request, received, default_limit=20)
    return json_success(
        {
            "broadcasts": [
                {**serialize_broadcast(r.broadcast), "read": r.read_at is not None}
                for r in page
            ],
            **meta,
        }
    )


@require_methods("POST")
@api_login_required
def broadcast_read(request: HttpRequest, broadcast_id: int):
    recipient = (
        BroadcastRecipient.objects.filter(broadcast_id=broadcast_id, user=request.user)
        .select_related("broadcast")
        .first()
    )
    if recipient is None:
        return json_error("Broadcast not found", status=404)
    mark_broadcast_read(recipient)
    return json_success(message="Broadcast marked as read")


@require_methods("GET")
@api_login_required
def unread_count(request: HttpRequest):
    messages = total_unread(request.user)
    broadcasts_unread = BroadcastRecipient.objects.filter(
        user=request.user, read_at__isnull=True
    ).count()
    return json_success(
        {
            "messages": messages,
            "broadcasts": broadcasts_unread,
            "total": messages + broadcasts_unread,
        }
    )
