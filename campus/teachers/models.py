from django.db import models
from django.contrib.auth.models import User

from base.validators import (
    alphanumeric_validator,
    digits_validator,
    id_number_validator,
    name_validator,
    phone_validator,
)


class Teacher(models.Model):
    class Status(models.TextChoices):
        ACTIVE = "ACTIVE"
        INACTIVE = "INACTIVE"
        ON_LEAVE = "ON_LEAVE"

    user = models.OneToOneField(User, on_delete=models.CASCADE)
    teacher_id = models.CharField(
        max_length=10, unique=True, validators=[id_number_validator]
    )
    father_name = models.CharField(max_length=30, validators=[name_validator])
    grandfather_name = models.CharField(max_length=30, validators=[name_validator])
    date_of_birth = models.DateField(null=True, blank=True)
    phone = models.CharField(max_length=10, unique=True, validators=[phone_validator])
    secondary_phone = models.CharField(
        max_length=10, blank=True, validators=[phone_validator]
    )
    address = models.CharField(
        max_length=255, blank=True, validators=[alphanumeric_validator]
    )
    departments = models.CharField(max_length=255)
    qualification = models.CharField(max_length=200)
    experience = models.CharField(max_length=3, validators=[digits_validator])
    specialization = models.CharField(
        max_length=100, validators=[alphanumeric_validator]
    )
    subjects = models.CharField(max_length=255)
    employment_type = models.CharField(max_length=50, default="Full Time")
    status = models.CharField(
        max_length=10, choices=Status.choices, default=Status.ACTIVE
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["teacher_id"]

    def __str__(self):
        return self.user.get_full_name() or self.user.username

    @property
    def department_list(self):
        return [d.strip() for d in self.departments.split(",") if d.strip()]

    @property
    def subject_list(self):
        return [s.strip() for s in self.subjects.split(",") if s.strip()]
