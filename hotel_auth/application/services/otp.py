import secrets
from datetime import datetime, timedelta
from enum import Enum

OTP_LENGTH = 6
OTP_EXPIRY_MINUTES = 10

_OTP_MIN = 10 ** (OTP_LENGTH - 1)
_OTP_MAX = 10 ** OTP_LENGTH - 1


class OTPPurpose(str, Enum):
    EMAIL = "email"
    PHONE = "phone"
    PASSWORD_RESET = "password_reset"


def generate_otp() -> str:
    """6-digit numeric code, uniform over 100000..999999 (never zero-padded)."""
    return str(_OTP_MIN + secrets.randbelow(_OTP_MAX - _OTP_MIN + 1))


def otp_expiry_at(now: datetime) -> datetime:
    return now + timedelta(minutes=OTP_EXPIRY_MINUTES)


def is_expired(expires_at: datetime, now: datetime) -> bool:
    # The expiry instant itself is still valid
    return now > expires_at
