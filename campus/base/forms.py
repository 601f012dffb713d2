from typing import Any, Dict, Iterable

from django import forms
from django.contrib.auth.models import Group, User
from django.core.exceptions import ValidationError
from django.db import transaction
from django.forms.models import model_to_dict

from .validators import name_validator, username_validator, validate_password_strength

DATE_INPUT_FORMATS = ["%Y-%m-%d", "%Y/%m/%d"]


def join_list_fields(data: Dict[str, Any], fields: Iterable[str]) -> Dict[str, Any]:
    """JSON clients send multi-value fields as lists; the models store them comma-separated"""
    data = dict(data)
    for field in fields:
        if isinstance(data.get(field), (list, tuple)):
            values = (str(v).strip() for v in data[field])
            data[field] = ", ".join(v for v in values if v)
    return data


class AccountModelForm(forms.ModelForm):
    """
    Base form for role profiles (student, teacher, office staff) whose login
    account lives on auth.User. Saving creates or updates the user, its
    password and its role group together with the profile row.
    """

    group_name = None
    list_fields = ()

    first_name = forms.CharField(max_length=30, validators=[name_validator])
    last_name = forms.CharField(max_length=30, validators=[name_validator])
    email = forms.EmailField(required=False)
    username = forms.CharField(max_length=150, validators=[username_validator])
    password = forms.CharField(required=False, strip=False)

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        if not self.instance.pk:
            self.fields["password"].required = True
        if "date_of_birth" in self.fields:
            self.fields["date_of_birth"].input_formats = DATE_INPUT_FORMATS

    @classmethod
    def from_payload(cls, payload: Dict[str, Any], instance=None):
        """Build a bound form; missing keys keep current (or model default) values"""
        data = model_to_dict(instance or cls._meta.model(), fields=cls._meta.fields)
        if instance is not None:
            data.update(
                {
                    "first_name": instance.user.first_name,
                    "last_name": instance.user.last_name,
                    "email": instance.user.email,
                    "username": instance.user.username,
                }
            )
        data.update(join_list_fields(payload, cls.list_fields))
        return cls(data=data, instance=instance)

    def clean_username(self):
        username = self.cleaned_data["username"]
        existing = User.objects.filter(username__iexact=username)
        if self.instance.pk:
            existing = existing.exclude(pk=self.instance.user_id)
        if existing.exists():
            raise ValidationError("Duplicate value", code="unique")
        return username

    def clean_password(self):
        password = self.cleaned_data.get("password")
        if password:
            validate_password_strength(password)
        return password

    def account_is_active(self, profile) -> bool:
        return True

    def save(self, commit=True):
        profile = super().save(commit=False)
        with transaction.atomic():
            user = profile.user if profile.user_id else User()
            user.username = self.cleaned_data["username"]
            user.first_name = self.cleaned_data["first_name"]
            user.last_name = self.cleaned_data["last_name"]
            user.email = self.cleaned_data.get("email") or ""
            user.is_active = self.account_is_active(profile)
            if self.cleaned_data.get("password"):
                user.set_password(self.cleaned_data["password"])
            is_new_user = user.pk is None
            user.save()
            if is_new_user and self.group_name:
                group, _ = Group.objects.get_or_create(name=self.group_name)
                user.groups.add(group)

            profile.user = user
            profile.save()
        return profile
