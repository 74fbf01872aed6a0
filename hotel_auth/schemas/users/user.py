# hotel_auth/schemas/users/user.py
from pydantic import BaseModel, Field, validator
from typing import Optional, Dict, Any
from datetime import datetime, date

from ..auth.auth import clean_email, clean_phone


class UserResponse(BaseModel):
    id: str
    email: Optional[str] = None
    phone: Optional[str] = None
    first_name: Optional[str] = Field(None, alias="firstName")
    last_name: Optional[str] = Field(None, alias="lastName")
    profile_image: Optional[str] = Field(None, alias="profileImage")
    date_of_birth: Optional[date] = Field(None, alias="dateOfBirth")
    gender: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    is_email_verified: bool = Field(False, alias="isEmailVerified")
    is_phone_verified: bool = Field(False, alias="isPhoneVerified")
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")

    class Config:
        populate_by_name = True

    @classmethod
    def from_user(cls, user) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            phone=user.phone,
            first_name=user.first_name,
            last_name=user.last_name,
            profile_image=user.profile_image,
            date_of_birth=user.date_of_birth,
            gender=user.gender,
            address=user.address,
            city=user.city,
            country=user.country,
            is_email_verified=user.is_email_verified,
            is_phone_verified=user.is_phone_verified,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class UpdateProfileRequest(BaseModel):
    first_name: Optional[str] = Field(None, alias="firstName", max_length=100)
    last_name: Optional[str] = Field(None, alias="lastName", max_length=100)
    profile_image: Optional[str] = Field(None, alias="profileImage", max_length=500)
    date_of_birth: Optional[str] = Field(None, alias="dateOfBirth", description="Date of birth in YYYY-MM-DD format")
    gender: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = Field(None, max_length=100)
    country: Optional[str] = Field(None, max_length=100)

    class Config:
        populate_by_name = True

    @validator("date_of_birth")
    def validate_date_of_birth(cls, v):
        if v is not None:
            try:
                dob = datetime.strptime(v, "%Y-%m-%d")
            except ValueError:
                raise ValueError("Invalid date format. Use YYYY-MM-DD")
            if dob > datetime.now():
                raise ValueError("Date of birth cannot be in the future")
        return v


class UpdateEmailRequest(BaseModel):
    email: Optional[str] = None

    @validator("email")
    def validate_email(cls, v):
        return clean_email(v)


class UpdatePhoneRequest(BaseModel):
    phone: Optional[str] = None

    @validator("phone")
    def validate_phone(cls, v):
        return clean_phone(v)


class DeleteAccountRequest(BaseModel):
    confirm_delete: Optional[bool] = Field(None, alias="confirmDelete")

    class Config:
        populate_by_name = True


class ProfileResponse(BaseModel):
    success: bool
    message: str
    data: Optional[Dict[str, Any]] = None
