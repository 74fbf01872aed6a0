from typing import Protocol, Optional, Dict, Any
from dataclasses import dataclass
from datetime import datetime, date
from enum import Enum


class UserField(str, Enum):
    """Columns that may be written through ``UserRepository.update``.

    Values are the storage column names, so callers never build them from
    request keys at runtime.
    """
    FIREBASE_UID = "firebase_uid"
    EMAIL = "email"
    PHONE = "phone"
    FIRST_NAME = "first_name"
    LAST_NAME = "last_name"
    PROFILE_IMAGE = "profile_image"
    DATE_OF_BIRTH = "date_of_birth"
    GENDER = "gender"
    ADDRESS = "address"
    CITY = "city"
    COUNTRY = "country"
    IS_EMAIL_VERIFIED = "is_email_verified"
    IS_PHONE_VERIFIED = "is_phone_verified"
    IS_ACTIVE = "is_active"
    EMAIL_OTP = "email_otp"
    EMAIL_OTP_EXPIRES_AT = "email_otp_expires_at"
    PHONE_OTP = "phone_otp"
    PHONE_OTP_EXPIRES_AT = "phone_otp_expires_at"
    PASSWORD_RESET_OTP = "password_reset_otp"
    PASSWORD_RESET_OTP_EXPIRES_AT = "password_reset_otp_expires_at"
    CAN_RESET_PASSWORD = "can_reset_password"
    LAST_LOGIN = "last_login"


@dataclass
class UserDto:
    id: str
    firebase_uid: Optional[str]
    email: Optional[str]
    phone: Optional[str]
    first_name: Optional[str]
    last_name: Optional[str]
    profile_image: Optional[str]
    date_of_birth: Optional[date]
    gender: Optional[str]
    address: Optional[str]
    city: Optional[str]
    country: Optional[str]
    is_email_verified: bool
    is_phone_verified: bool
    is_active: bool
    email_otp: Optional[str]
    email_otp_expires_at: Optional[datetime]
    phone_otp: Optional[str]
    phone_otp_expires_at: Optional[datetime]
    password_reset_otp: Optional[str]
    password_reset_otp_expires_at: Optional[datetime]
    can_reset_password: bool
    last_login: Optional[datetime]
    created_at: datetime
    updated_at: datetime


class UserRepository(Protocol):
    def get_by_id(self, user_id: str) -> Optional[UserDto]:
        ...

    def get_by_email(self, email: str) -> Optional[UserDto]:
        ...

    def get_by_phone(self, phone: str) -> Optional[UserDto]:
        ...

    def get_by_firebase_uid(self, firebase_uid: str) -> Optional[UserDto]:
        ...

    def create(self, fields: Dict[UserField, Any]) -> UserDto:
        ...

    def update(self, user_id: str, fields: Dict[UserField, Any], expected: Optional[Dict[UserField, Any]] = None) -> bool:
        """Write ``fields`` in one statement, only where every ``expected``
        column still holds the given value. Returns whether a row changed."""
        ...
