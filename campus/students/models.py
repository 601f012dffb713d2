from django.db import models
from django.contrib.auth.models import User

from base.validators import (
    alphanumeric_validator,
    digits_validator,
    id_number_validator,
    name_validator,
    phone_validator,
    year_validator,
)


class Student(models.Model):
    class Status(models.TextChoices):
        ACTIVE = "ACTIVE"
        INACTIVE = "INACTIVE"
        GRADUATED = "GRADUATED"
        SUSPENDED = "SUSPENDED"

    user = models.OneToOneField(User, on_delete=models.CASCADE)
    student_id = models.CharField(
        max_length=10, unique=True, validators=[id_number_validator]
    )
    father_name = models.CharField(max_length=30, validators=[name_validator])
    grandfather_name = models.CharField(max_length=30, validators=[name_validator])
    date_of_birth = models.DateField(null=True, blank=True)
    phone = models.CharField(max_length=10, validators=[phone_validator])
    father_phone = models.CharField(
        max_length=10, blank=True, validators=[phone_validator]
    )
    address = models.CharField(
        max_length=255, blank=True, validators=[alphanumeric_validator]
    )
    programs = models.CharField(max_length=255, blank=True)
    semester = models.CharField(max_length=4, blank=True, validators=[digits_validator])
    enrollment_year = models.CharField(
        max_length=4, blank=True, validators=[year_validator]
    )
    time_slot = models.CharField(max_length=20, blank=True)
    status = models.CharField(
        max_length=10, choices=Status.choices, default=Status.ACTIVE
    )

    classroom = models.ForeignKey(
        "classes.Classroom",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="students",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["student_id"]

    def __str__(self):
        return f"{self.user.get_full_name()} ({self.student_id})"

    @property
    def first_name(self):
        return self.user.first_name

    @property
    def last_name(self):
        return self.user.last_name


class MedicalCertificate(models.Model):
    class Status(models.TextChoices):
        PENDING = "pending"
        APPROVED = "approved"
        REJECTED = "rejected"

    student = models.ForeignKey(
        Student, on_delete=models.CASCADE, related_name="medical_certificates"
    )
    submission_date = models.DateField(auto_now_add=True)
    start_date = models.DateField()
    end_date = models.DateField()
    reason = models.TextField()
    file_path = models.CharField(max_length=255)
    file_name = models.CharField(max_length=255)
    file_size = models.PositiveIntegerField()
    mime_type = models.CharField(max_length=50)
    doctor_name = models.CharField(max_length=255, blank=True)
    hospital_clinic = models.CharField(max_length=255, blank=True)
    status = models.CharField(
        max_length=10, choices=Status.choices, default=Status.PENDING
    )
    reviewed_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="reviewed_certificates",
    )
    reviewed_at = models.DateTimeField(null=True, blank=True)
    review_notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(end_date__gte=models.F("start_date")),
                name="certificate_end_after_start",
            )
        ]

    def __str__(self):
        return f"{self.student} - {self.start_date} to {self.end_date} - {self.status}"

    @property
    def total_days(self) -> int:
        return (self.end_date - self.start_date).days + 1
