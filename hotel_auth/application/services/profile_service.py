from dataclasses import dataclass
from typing import Optional, Dict, Any
from datetime import datetime

from ..ports.user_repo import UserRepository, UserDto, UserField
from ...exceptions import ValidationError, NotFound, Conflict

PROFILE_FIELDS = {
    "first_name": UserField.FIRST_NAME,
    "last_name": UserField.LAST_NAME,
    "profile_image": UserField.PROFILE_IMAGE,
    "date_of_birth": UserField.DATE_OF_BIRTH,
    "gender": UserField.GENDER,
    "address": UserField.ADDRESS,
    "city": UserField.CITY,
    "country": UserField.COUNTRY,
}

VALID_GENDERS = ("male", "female", "other")


@dataclass
class ProfileService:
    user_repo: UserRepository

    def get_profile(self, user_id: str) -> UserDto:
        user = self.user_repo.get_by_id(user_id)
        if not user:
            raise NotFound("User not found")
        return user

    def update_profile(self, user_id: str, changes: Dict[str, Any]) -> UserDto:
        updates: Dict[UserField, Any] = {}
        for name, value in changes.items():
            if name not in PROFILE_FIELDS:
                raise ValidationError(f"Unknown profile field: {name}")
            updates[PROFILE_FIELDS[name]] = value
        if not updates:
            raise ValidationError("No fields to update")

        dob = updates.get(UserField.DATE_OF_BIRTH)
        if isinstance(dob, str):
            try:
                updates[UserField.DATE_OF_BIRTH] = datetime.strptime(dob, "%Y-%m-%d").date()
            except ValueError:
                raise ValidationError("Invalid date_of_birth format. Use YYYY-MM-DD")
        gender = updates.get(UserField.GENDER)
        if gender is not None and gender not in VALID_GENDERS:
            raise ValidationError(f"Invalid gender. Must be one of: {list(VALID_GENDERS)}")

        if not self.user_repo.update(user_id, updates):
            raise NotFound("User not found")
        return self.get_profile(user_id)

    def change_email(self, user_id: str, email: str) -> UserDto:
        if not email:
            raise ValidationError("Email is required")
        existing = self.user_repo.get_by_email(email)
        if existing and existing.id != user_id:
            raise Conflict("Email is already in use")
        # New address: unverified, with no pending code or reset grant
        self.user_repo.update(user_id, {
            UserField.EMAIL: email,
            UserField.IS_EMAIL_VERIFIED: False,
            UserField.EMAIL_OTP: None,
            UserField.EMAIL_OTP_EXPIRES_AT: None,
            UserField.PASSWORD_RESET_OTP: None,
            UserField.PASSWORD_RESET_OTP_EXPIRES_AT: None,
            UserField.CAN_RESET_PASSWORD: False,
        })
        return self.get_profile(user_id)

    def change_phone(self, user_id: str, phone: str) -> UserDto:
        if not phone:
            raise ValidationError("Phone number is required")
        existing = self.user_repo.get_by_phone(phone)
        if existing and existing.id != user_id:
            raise Conflict("Phone number is already in use")
        self.user_repo.update(user_id, {
            UserField.PHONE: phone,
            UserField.IS_PHONE_VERIFIED: False,
            UserField.PHONE_OTP: None,
            UserField.PHONE_OTP_EXPIRES_AT: None,
        })
        return self.get_profile(user_id)

    def deactivate(self, user_id: str, confirm: Optional[bool]) -> None:
        if confirm is not True:
            raise ValidationError("Please confirm deletion by setting confirmDelete: true")
        if not self.user_repo.update(user_id, {UserField.IS_ACTIVE: False}):
            raise NotFound("User not found")
