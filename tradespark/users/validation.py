import re

from tradespark.core.errors import ErrorCode, bad_request
from tradespark.users.auth_schema import CompleteProfileSchema, SignUpSchema

PHONE_RE = re.compile(r"^\d{10}$")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
OTP_RE = re.compile(r"^\d{6}$")

MIN_PASSWORD_LENGTH = 6


def _invalid(message: str):
    return bad_request(ErrorCode.VALIDATION_FAILED, message)


def is_valid_phone(phone: str) -> bool:
    return bool(PHONE_RE.match(phone or ""))


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_RE.match(email or ""))


def validate_sign_up(data: SignUpSchema) -> None:
    if not all([data.name, data.email, data.phone, data.password, data.confirmPassword]):
        raise _invalid("All fields are required.")
    if data.password != data.confirmPassword:
        raise _invalid("Passwords do not match.")
    if len(data.password) < MIN_PASSWORD_LENGTH:
        raise _invalid(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
    if not is_valid_phone(data.phone):
        raise _invalid("Phone number must be 10 digits.")
    if not is_valid_email(data.email.strip()):
        raise _invalid("Invalid email address.")


def validate_profile_completion(data: CompleteProfileSchema) -> None:
    if not all([data.name.strip(), data.phone, data.referral]):
        raise _invalid("All fields are required.")
    if not is_valid_phone(data.phone):
        raise _invalid("Phone number must be exactly 10 digits.")


def validate_otp(otp: str) -> None:
    if not OTP_RE.match(otp or ""):
        raise _invalid("Enter a 6-digit OTP")
