from django.core.exceptions import ValidationError
from django.core.validators import RegexValidator


name_validator = RegexValidator(
    r"^[A-Za-z\s]+$", "Must contain only letters", code="invalid_name"
)
id_number_validator = RegexValidator(
    r"^\d{4,10}$", "Must be 4 to 10 digits", code="invalid_id"
)
phone_validator = RegexValidator(
    r"^\d{10}$", "Phone number must be exactly 10 digits", code="invalid_phone"
)
username_validator = RegexValidator(
    r"^[A-Za-z]+$", "Username must contain only letters", code="invalid_username"
)
alphanumeric_validator = RegexValidator(
    r"^[A-Za-z0-9\s]+$",
    "Must contain only letters and numbers",
    code="invalid_alphanumeric",
)
digits_validator = RegexValidator(
    r"^\d+$", "Must contain only numbers", code="invalid_digits"
)
year_validator = RegexValidator(
    r"^\d{4}$", "Year must be in YYYY format", code="invalid_year"
)
password_validator = RegexValidator(
    r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)[A-Za-z\d]{6,12}$",
    "Password must be 6-12 characters and include uppercase, lowercase, and number",
    code="weak_password",
)


def validate_password_strength(password: str) -> None:
    """Raise ValidationError unless the password matches the account password rules"""
    if not password or not 6 <= len(password) <= 12:
        raise ValidationError("Password must be 6-12 characters", code="weak_password")
    password_validator(password)
