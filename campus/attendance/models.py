from django.db import models
from django.contrib.auth.models import User

PERIOD_FIELDS = [f"period_{n}" for n in range(1, 7)]


class AttendanceStatus(models.TextChoices):
    PRESENT = "PRESENT"
    ABSENT = "ABSENT"
    SICK = "SICK"
    LEAVE = "LEAVE"
    NOT_MARKED = "NOT_MARKED"


def period_field():
    return models.CharField(
        max_length=10,
        choices=AttendanceStatus.choices,
        default=AttendanceStatus.NOT_MARKED,
    )


class AttendanceRecord(models.Model):
    student = models.ForeignKey(
        "students.Student", on_delete=models.CASCADE, related_name="attendance_records"
    )
    classroom = models.ForeignKey(
        "classes.Classroom",
        on_delete=models.CASCADE,
        related_name="attendance_records",
    )
    date = models.DateField()
    period_1 = period_field()
    period_2 = period_field()
    period_3 = period_field()
    period_4 = period_field()
    period_5 = period_field()
    period_6 = period_field()
    teacher = models.ForeignKey(
        "teachers.Teacher",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="attendance_records",
    )
    subject = models.CharField(max_length=100, blank=True)
    notes = models.TextField(blank=True)
    marked_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = ("student", "classroom", "date")
        ordering = ["date", "student__student_id"]

    def __str__(self):
        return f"{self.student} - {self.date}"

    @property
    def periods(self):
        return [getattr(self, field) for field in PERIOD_FIELDS]

    def status_counts(self):
        counts = {status: 0 for status in AttendanceStatus.values}
        for status in self.periods:
            counts[status] += 1
        return counts
