from django.db import models
from django.contrib.auth.models import User

from base.validators import phone_validator


class OfficeStaff(models.Model):
    user = models.OneToOneField(
        User, on_delete=models.CASCADE, related_name="office_staff"
    )
    phone = models.CharField(max_length=10, blank=True, validators=[phone_validator])
    department = models.CharField(max_length=100, blank=True)
    designation = models.CharField(max_length=100, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = "office staff"

    def __str__(self):
        return self.user.get_full_name() or self.user.username
