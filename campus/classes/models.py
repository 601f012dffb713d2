from django.db import models
from django.core.validators import MaxValueValidator, MinValueValidator


class Classroom(models.Model):
    class Session(models.TextChoices):
        MORNING = "MORNING"
        AFTERNOON = "AFTERNOON"

    name = models.CharField(max_length=100)
    session = models.CharField(
        max_length=10, choices=Session.choices, default=Session.MORNING
    )
    major = models.CharField(max_length=100, blank=True)
    semester = models.CharField(max_length=4, blank=True)
    description = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = ("name", "session")
        ordering = ["name", "session"]

    def __str__(self):
        return f"{self.name} ({self.session.title()})"


class DayOfWeek(models.TextChoices):
    SATURDAY = "saturday", "Saturday"
    SUNDAY = "sunday", "Sunday"
    MONDAY = "monday", "Monday"
    TUESDAY = "tuesday", "Tuesday"
    WEDNESDAY = "wednesday", "Wednesday"
    THURSDAY = "thursday", "Thursday"
    FRIDAY = "friday", "Friday"


class ScheduleEntry(models.Model):
    classroom = models.ForeignKey(
        Classroom, on_delete=models.CASCADE, related_name="schedule_entries"
    )
    teacher = models.ForeignKey(
        "teachers.Teacher", on_delete=models.CASCADE, related_name="schedule_entries"
    )
    subject = models.CharField(max_length=100)
    hours = models.PositiveSmallIntegerField(
        default=1, validators=[MinValueValidator(1), MaxValueValidator(8)]
    )
    day_of_week = models.CharField(max_length=10, choices=DayOfWeek.choices)
    start_time = models.TimeField()
    end_time = models.TimeField()
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["day_of_week", "start_time"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(hours__gte=1) & models.Q(hours__lte=8),
                name="schedule_entry_hours_range",
            )
        ]

    def __str__(self):
        return f"{self.classroom} - {self.subject} - {self.day_of_week} {self.start_time}"
