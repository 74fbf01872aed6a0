# hotel_auth/db/models/users/user.py
from typing import Optional
from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field
from datetime import datetime, date
import uuid

class User(SQLModel, table=True):
    __tablename__ = "users"
    # Timestamps are naive UTC; columns are declared without time zone
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    firebase_uid: Optional[str] = Field(default=None, max_length=128, unique=True, index=True)
    email: Optional[str] = Field(default=None, max_length=255, unique=True, index=True)
    phone: Optional[str] = Field(default=None, max_length=20, unique=True, index=True)
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    profile_image: Optional[str] = Field(default=None, max_length=500)
    date_of_birth: Optional[date] = Field(default=None)
    gender: Optional[str] = Field(default=None, max_length=10)
    address: Optional[str] = Field(default=None)
    city: Optional[str] = Field(default=None, max_length=100)
    country: Optional[str] = Field(default=None, max_length=100)
    is_email_verified: bool = Field(default=False)
    is_phone_verified: bool = Field(default=False)
    is_active: bool = Field(default=True)

    # One live code per purpose; a new request overwrites the previous one
    email_otp: Optional[str] = Field(default=None, max_length=6)
    email_otp_expires_at: Optional[datetime] = Field(default=None, sa_type=DateTime)
    phone_otp: Optional[str] = Field(default=None, max_length=6)
    phone_otp_expires_at: Optional[datetime] = Field(default=None, sa_type=DateTime)
    password_reset_otp: Optional[str] = Field(default=None, max_length=6)
    password_reset_otp_expires_at: Optional[datetime] = Field(default=None, sa_type=DateTime)
    can_reset_password: bool = Field(default=False)

    last_login: Optional[datetime] = Field(default=None, sa_type=DateTime)
    created_at: datetime = Field(default_factory=datetime.utcnow, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_type=DateTime)
