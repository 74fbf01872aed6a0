# hotel_auth/schemas/auth/auth.py
from pydantic import BaseModel, Field, AliasChoices, validator
from typing import Optional, Dict, Any
import re

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PHONE_RE = re.compile(r"^\+\d{1,4}\d{6,14}$")


def clean_email(v: Optional[str]) -> Optional[str]:
    if v is None or v == "":
        return None
    v = v.strip().lower()
    if not EMAIL_RE.match(v):
        raise ValueError("Invalid email address")
    return v


def clean_phone(v: Optional[str]) -> Optional[str]:
    if v is None or v == "":
        return None
    phone_clean = re.sub(r"[^\d+]", "", v)
    if not PHONE_RE.match(phone_clean):
        raise ValueError("Invalid phone number format. Must include country code (e.g., +1234567890)")
    return phone_clean


class RegisterRequest(BaseModel):
    firebase_id_token: Optional[str] = Field(None, alias="firebaseIdToken", description="Firebase ID token from client SDK")
    first_name: Optional[str] = Field(None, alias="firstName", max_length=100)
    last_name: Optional[str] = Field(None, alias="lastName", max_length=100)
    phone: Optional[str] = Field(None, description="Phone number with country code")

    class Config:
        populate_by_name = True

    @validator("phone")
    def validate_phone(cls, v):
        return clean_phone(v)


class LoginRequest(BaseModel):
    firebase_id_token: Optional[str] = Field(None, alias="firebaseIdToken", description="Firebase ID token from client SDK")

    class Config:
        populate_by_name = True


class EmailOTPRequest(BaseModel):
    email: Optional[str] = None

    @validator("email")
    def validate_email(cls, v):
        return clean_email(v)


class PhoneOTPRequest(BaseModel):
    phone: Optional[str] = Field(None, description="Phone number with country code")

    @validator("phone")
    def validate_phone(cls, v):
        return clean_phone(v)


class VerifyEmailOTPRequest(EmailOTPRequest):
    otp: Optional[str] = Field(None, validation_alias=AliasChoices("otp", "code"), description="6-digit OTP")


class VerifyPhoneOTPRequest(PhoneOTPRequest):
    otp: Optional[str] = Field(None, validation_alias=AliasChoices("otp", "code"), description="6-digit OTP")


class ResetPasswordRequest(EmailOTPRequest):
    new_password: Optional[str] = Field(None, alias="newPassword")

    class Config:
        populate_by_name = True


class MessageResponse(BaseModel):
    success: bool
    message: str


class AuthResponse(BaseModel):
    success: bool
    message: str
    data: Dict[str, Any]
