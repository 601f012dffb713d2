from django.db import models
from django.contrib.auth.models import User


class MessageCategory(models.TextChoices):
    GENERAL = "general", "General"
    ATTENDANCE_INQUIRY = "attendance_inquiry", "Attendance Inquiry"
    DOCUMENTATION = "documentation", "Documentation"
    URGENT = "urgent", "Urgent"
    SYSTEM_ALERT = "system_alert", "System Alert"
    SYSTEM_INFO = "system_info", "System Info"


class MessagePriority(models.TextChoices):
    LOW = "low", "Low"
    NORMAL = "normal", "Normal"
    HIGH = "high", "High"
    URGENT = "urgent", "Urgent"


class Conversation(models.Model):
    subject = models.CharField(max_length=255, blank=True)
    created_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, related_name="created_conversations"
    )
    is_group = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-updated_at"]

    def __str__(self):
        return self.subject or f"Conversation {self.pk}"


class ConversationParticipant(models.Model):
    conversation = models.ForeignKey(
        Conversation, on_delete=models.CASCADE, related_name="participants"
    )
    user = models.ForeignKey(
        User, on_delete=models.CASCADE, related_name="conversation_participations"
    )
    role = models.CharField(max_length=20)
    joined_at = models.DateTimeField(auto_now_add=True)
    last_read_at = models.DateTimeField(null=True, blank=True)
    is_muted = models.BooleanField(default=False)
    is_archived = models.BooleanField(default=False)

    class Meta:
        unique_together = ("conversation", "user")

    def __str__(self):
        return f"{self.user.username} in {self.conversation}"


class Message(models.Model):
    conversation = models.ForeignKey(
        Conversation, on_delete=models.CASCADE, related_name="messages"
    )
    sender = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, related_name="sent_messages"
    )
    content = models.TextField()
    category = models.CharField(
        max_length=20, choices=MessageCategory.choices, default=MessageCategory.GENERAL
    )
    priority = models.CharField(
        max_length=10, choices=MessagePriority.choices, default=MessagePriority.NORMAL
    )
    is_read = models.BooleanField(default=False)
    is_pinned = models.BooleanField(default=False)
    is_deleted = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["created_at"]

    def __str__(self):
        return f"{self.sender} - {self.content[:30]}"


class MessageReaction(models.Model):
    message = models.ForeignKey(
        Message, on_delete=models.CASCADE, related_name="reactions"
    )
    user = models.ForeignKey(User, on_delete=models.CASCADE)
    emoji = models.CharField(max_length=16)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = ("message", "user", "emoji")


class Broadcast(models.Model):
    class TargetType(models.TextChoices):
        ALL_STUDENTS = "all_students", "All Students"
        CLASS = "class", "Specific Class"
        ALL_TEACHERS = "all_teachers", "All Teachers"
        DEPARTMENT = "department", "Department"

    sender = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, related_name="broadcasts"
    )
    subject = models.CharField(max_length=255)
    content = models.TextField()
    category = models.CharField(
        max_length=20, choices=MessageCategory.choices, default=MessageCategory.GENERAL
    )
    priority = models.CharField(
        max_length=10, choices=MessagePriority.choices, default=MessagePriority.NORMAL
    )
    target_type = models.CharField(max_length=20, choices=TargetType.choices)
    target_class = models.ForeignKey(
        "classes.Classroom",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="broadcasts",
    )
    target_department = models.CharField(max_length=100, blank=True)
    total_recipients = models.PositiveIntegerField(default=0)
    delivered_count = models.PositiveIntegerField(default=0)
    read_count = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.subject} ({self.target_type})"


class BroadcastRecipient(models.Model):
    broadcast = models.ForeignKey(
        Broadcast, on_delete=models.CASCADE, related_name="recipients"
    )
    user = models.ForeignKey(
        User, on_delete=models.CASCADE, related_name="received_broadcasts"
    )
    delivered_at = models.DateTimeField(null=True, blank=True)
    read_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        unique_together = ("broadcast", "user")
