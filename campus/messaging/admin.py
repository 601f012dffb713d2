from django.contrib import admin
from .models import Broadcast, Conversation, ConversationParticipant, Message


class ParticipantInline(admin.TabularInline):
    model = ConversationParticipant
    extra = 0


@admin.register(Conversation)
class ConversationAdmin(admin.ModelAdmin):
    list_display = ("subject", "created_by", "is_group", "updated_at")
    inlines = [ParticipantInline]


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    list_display = ("conversation", "sender", "category", "priority", "created_at")
    list_filter = ("category", "priority", "is_deleted")


@admin.register(Broadcast)
class BroadcastAdmin(admin.ModelAdmin):
    list_display = (
        "subject",
        "sender",
        "target_type",
        "total_recipients",
        "read_count",
        "created_at",
    )
    list_filter = ("target_type", "category")
