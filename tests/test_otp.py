from datetime import datetime, timedelta

from hotel_auth.application.services.otp import (
    OTP_LENGTH, OTP_EXPIRY_MINUTES, generate_otp, otp_expiry_at, is_expired,
)


def test_generate_otp_is_six_digits_without_leading_zero():
    for _ in range(200):
        code = generate_otp()
        assert len(code) == OTP_LENGTH
        assert code.isdigit()
        assert 100000 <= int(code) <= 999999


def test_otp_expiry_is_ten_minutes_after_issue():
    now = datetime(2024, 5, 1, 9, 30)
    assert otp_expiry_at(now) == now + timedelta(minutes=OTP_EXPIRY_MINUTES)
    assert OTP_EXPIRY_MINUTES == 10


def test_is_expired_boundary():
    expires_at = datetime(2024, 5, 1, 9, 40)
    assert is_expired(expires_at, expires_at) is False
    assert is_expired(expires_at, expires_at - timedelta(seconds=1)) is False
    assert is_expired(expires_at, expires_at + timedelta(microseconds=1)) is True
