from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Optional
import logging
import secrets

from ..ports.user_repo import UserRepository, UserDto, UserField
from ..ports.messaging import MessageDispatcher, DeliveryError
from ..ports.identity_provider import IdentityProvider, IdentityError
from ..ports.audit_logger import AuditLogger
from .otp import OTPPurpose, OTP_EXPIRY_MINUTES, generate_otp, otp_expiry_at, is_expired
from ...exceptions import (
    ValidationError, NotFound, NoActiveCode, Expired, Mismatch,
    DeliveryFailure, Unauthorized, IdentityProviderError,
)

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


@dataclass(frozen=True)
class PurposeFields:
    code: UserField
    expires_at: UserField
    granted: UserField


PURPOSE_FIELDS: Dict[OTPPurpose, PurposeFields] = {
    OTPPurpose.EMAIL: PurposeFields(UserField.EMAIL_OTP, UserField.EMAIL_OTP_EXPIRES_AT, UserField.IS_EMAIL_VERIFIED),
    OTPPurpose.PHONE: PurposeFields(UserField.PHONE_OTP, UserField.PHONE_OTP_EXPIRES_AT, UserField.IS_PHONE_VERIFIED),
    OTPPurpose.PASSWORD_RESET: PurposeFields(UserField.PASSWORD_RESET_OTP, UserField.PASSWORD_RESET_OTP_EXPIRES_AT, UserField.CAN_RESET_PASSWORD),
}

EMAIL_SUBJECTS = {
    OTPPurpose.EMAIL: "Your verification code",
    OTPPurpose.PASSWORD_RESET: "Your password reset OTP",
}


@dataclass
class OTPIssue:
    user_id: str
    purpose: OTPPurpose
    expires_at: datetime


@dataclass
class OTPVerificationService:
    """Issues and checks one-time codes for email, phone and password reset.

    Each purpose keeps its own code/expiry pair on the user record and never
    touches another purpose's fields. Codes are persisted before dispatch, so a
    delivery failure leaves a valid code behind and the client simply asks for
    a new one.
    """
    user_repo: UserRepository
    dispatcher: MessageDispatcher
    identity: Optional[IdentityProvider] = None
    audit: Optional[AuditLogger] = None
    clock: Callable[[], datetime] = field(default=datetime.utcnow)
    request_id: Optional[str] = None

    # ------------------------
    # Request
    # ------------------------
    def request_email_otp(self, email: str) -> OTPIssue:
        if not email:
            raise ValidationError("Email is required")
        user = self._require_user(self.user_repo.get_by_email(email), "User not found")
        return self.issue(user, OTPPurpose.EMAIL)

    def request_phone_otp(self, phone: str) -> OTPIssue:
        if not phone:
            raise ValidationError("Phone number is required")
        user = self._require_user(self.user_repo.get_by_phone(phone), "User not found")
        return self.issue(user, OTPPurpose.PHONE)

    def request_password_reset(self, email: str) -> OTPIssue:
        if not email:
            raise ValidationError("Email is required")
        user = self._require_user(self.user_repo.get_by_email(email), "No user found with this email")
        return self.issue(user, OTPPurpose.PASSWORD_RESET)

    def issue(self, user: UserDto, purpose: OTPPurpose) -> OTPIssue:
        fields = PURPOSE_FIELDS[purpose]
        destination = user.phone if purpose is OTPPurpose.PHONE else user.email
        if not destination:
            raise ValidationError(f"User has no {'phone number' if purpose is OTPPurpose.PHONE else 'email'} on file")

        code = generate_otp()
        expires_at = otp_expiry_at(self.clock())
        if not self.user_repo.update(user.id, {fields.code: code, fields.expires_at: expires_at}):
            raise NotFound("User not found")
        logger.info(f"Issued {purpose.value} OTP for user {user.id}, expires at {expires_at.isoformat()}")

        try:
            self._dispatch(purpose, destination, code)
        except DeliveryError as e:
            logger.error(f"Failed to deliver {purpose.value} OTP for user {user.id}: {e}")
            self._audit("otp_delivery_failed", destination, user.id, success=False,
                        details={"purpose": purpose.value, "error": str(e)})
            raise DeliveryFailure("Failed to send OTP. Please request a new code.") from e

        self._audit("otp_sent", destination, user.id, details={"purpose": purpose.value})
        return OTPIssue(user_id=user.id, purpose=purpose, expires_at=expires_at)

    def _dispatch(self, purpose: OTPPurpose, destination: str, code: str) -> None:
        if purpose is OTPPurpose.PHONE:
            self.dispatcher.send_sms(
                destination,
                f"Your verification code is {code}. It will expire in {OTP_EXPIRY_MINUTES} minutes.",
            )
            return
        self.dispatcher.send_email(
            to=destination,
            subject=EMAIL_SUBJECTS[purpose],
            text=f"Your OTP code is {code}. It will expire in {OTP_EXPIRY_MINUTES} minutes.",
        )

    # ------------------------
    # Verify
    # ------------------------
    def verify_email_otp(self, email: str, code: str) -> UserDto:
        if not email or not code:
            raise ValidationError("Email and OTP are required")
        user = self._require_user(self.user_repo.get_by_email(email), "User not found")
        return self.verify(user, OTPPurpose.EMAIL, code)

    def verify_phone_otp(self, phone: str, code: str) -> UserDto:
        if not phone or not code:
            raise ValidationError("Phone number and OTP are required")
        user = self._require_user(self.user_repo.get_by_phone(phone), "User not found")
        return self.verify(user, OTPPurpose.PHONE, code)

    def verify_password_reset_otp(self, email: str, code: str) -> UserDto:
        if not email or not code:
            raise ValidationError("Email and OTP are required")
        user = self._require_user(self.user_repo.get_by_email(email), "User not found")
        return self.verify(user, OTPPurpose.PASSWORD_RESET, code)

    def verify(self, user: UserDto, purpose: OTPPurpose, code: str) -> UserDto:
        fields = PURPOSE_FIELDS[purpose]
        stored = getattr(user, fields.code.value)
        expires_at = getattr(user, fields.expires_at.value)
        subject = (user.phone if purpose is OTPPurpose.PHONE else user.email) or user.id

        if not stored or expires_at is None:
            self._audit("otp_verify", subject, user.id, success=False, details={"purpose": purpose.value, "reason": NoActiveCode.reason})
            raise NoActiveCode()
        # Expiry wins over equality: a stale correct code is reported as expired
        if is_expired(expires_at, self.clock()):
            self._audit("otp_verify", subject, user.id, success=False, details={"purpose": purpose.value, "reason": Expired.reason})
            raise Expired()
        if not secrets.compare_digest(stored.encode(), code.strip().encode()):
            self._audit("otp_verify", subject, user.id, success=False, details={"purpose": purpose.value, "reason": Mismatch.reason})
            raise Mismatch()

        consumed = self.user_repo.update(
            user.id,
            {fields.code: None, fields.expires_at: None, fields.granted: True},
            expected={fields.code: stored},
        )
        if not consumed:
            # Another request used or replaced the code between read and write
            raise NoActiveCode()

        logger.info(f"{purpose.value} OTP verified for user {user.id}")
        self._audit("otp_verify", subject, user.id, details={"purpose": purpose.value})
        return self.user_repo.get_by_id(user.id)

    # ------------------------
    # Password reset consumption
    # ------------------------
    def reset_password(self, email: str, new_password: str) -> None:
        if not email or not new_password:
            raise ValidationError("Email and newPassword are required")
        user = self._require_user(self.user_repo.get_by_email(email), "User not found")

        # Close the authorization window before anything else can fail
        authorized = self.user_repo.update(
            user.id,
            {UserField.CAN_RESET_PASSWORD: False},
            expected={UserField.CAN_RESET_PASSWORD: True},
        )
        if not authorized:
            self._audit("password_reset", email, user.id, success=False, details={"reason": Unauthorized.reason})
            raise Unauthorized("Password reset not authorized. Verify the reset OTP first.")

        if len(new_password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password should be at least {MIN_PASSWORD_LENGTH} characters")
        if self.identity is None or not user.firebase_uid:
            raise IdentityProviderError("No identity account is linked to this user")
        try:
            self.identity.update_password(user.firebase_uid, new_password)
        except IdentityError as e:
            logger.error(f"Password update failed for user {user.id}: {e}")
            self._audit("password_reset", email, user.id, success=False, details={"error": str(e)})
            raise IdentityProviderError("Failed to update password") from e

        self._audit("password_reset", email, user.id)

    # ------------------------
    # Helpers
    # ------------------------
    @staticmethod
    def _require_user(user: Optional[UserDto], message: str) -> UserDto:
        if not user:
            raise NotFound(message)
        return user

    def _audit(self, action: str, subject: str, user_id: Optional[str] = None, success: bool = True, details: Optional[dict] = None) -> None:
        if self.audit is None:
            return
        self.audit.log(action, subject, user_id=user_id, request_id=self.request_id, success=success, details=details)
