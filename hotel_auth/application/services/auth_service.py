from typing import Optional, Dict, Any, Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
import logging

import jwt

from ..ports.user_repo import UserRepository, UserDto, UserField
from ..ports.identity_provider import IdentityProvider
from .otp import OTPPurpose
from .otp_service import OTPVerificationService
from ...exceptions import ValidationError, Unauthorized, Conflict

logger = logging.getLogger(__name__)


@dataclass
class TokenService:
    secret_key: str
    algorithm: str = "HS256"
    expire_minutes: int = 60 * 24 * 7
    clock: Callable[[], datetime] = field(default=datetime.utcnow)

    def issue(self, user: UserDto, expires_minutes: Optional[int] = None) -> str:
        now = self.clock()
        claims = {
            "sub": user.id,
            "email": user.email,
            "phone": user.phone,
            "iat": now,
            "exp": now + timedelta(minutes=expires_minutes or self.expire_minutes),
        }
        return jwt.encode(claims, self.secret_key, algorithm=self.algorithm)

    def decode(self, token: str) -> Optional[Dict[str, Any]]:
        try:
            return jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            logger.warning("Token has expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.warning(f"JWT error: {e}")
            return None


def claims_to_identity(claims: Dict[str, Any]) -> Dict[str, Any]:
    """Extract uid, email, phone number and verification state from identity token claims."""
    return {
        "uid": claims.get("uid") or claims.get("sub") or claims.get("user_id"),
        "email": claims.get("email"),
        "phone": claims.get("phone_number"),
        "email_verified": bool(claims.get("email_verified", False)),
    }


@dataclass
class AuthService:
    user_repo: UserRepository
    identity: IdentityProvider
    otp_service: OTPVerificationService
    clock: Callable[[], datetime] = field(default=datetime.utcnow)

    def _verified_identity(self, id_token: str) -> Dict[str, Any]:
        if not id_token:
            raise ValidationError("Firebase ID token is required")
        claims = self.identity.verify_id_token(id_token)
        if not claims:
            raise Unauthorized("Invalid or expired Firebase ID token", status_code=401)
        info = claims_to_identity(claims)
        if not info["uid"]:
            raise Unauthorized("Firebase token has no user id", status_code=401)
        return info

    def login_with_firebase(self, id_token: str) -> UserDto:
        info = self._verified_identity(id_token)

        user = self.user_repo.get_by_firebase_uid(info["uid"])
        if not user and info["email"]:
            user = self.user_repo.get_by_email(info["email"])
        if not user and info["phone"]:
            user = self.user_repo.get_by_phone(info["phone"])

        if not user:
            user = self.user_repo.create({
                UserField.FIREBASE_UID: info["uid"],
                UserField.EMAIL: info["email"],
                UserField.PHONE: info["phone"],
                UserField.IS_EMAIL_VERIFIED: info["email_verified"],
                UserField.IS_PHONE_VERIFIED: bool(info["phone"]),
            })
            logger.info(f"Created user {user.id} on first login")

        if not user.is_active:
            raise Unauthorized("Account is deactivated")

        updates: Dict[UserField, Any] = {UserField.LAST_LOGIN: self.clock()}
        if not user.firebase_uid:
            updates[UserField.FIREBASE_UID] = info["uid"]
        if info["email_verified"] and not user.is_email_verified:
            updates[UserField.IS_EMAIL_VERIFIED] = True
        self.user_repo.update(user.id, updates)
        return self.user_repo.get_by_id(user.id)

    def register(self, id_token: str, first_name: Optional[str] = None, last_name: Optional[str] = None, phone: Optional[str] = None) -> UserDto:
        """Create the local account for a freshly created Firebase user and send the email OTP.

        A delivery failure propagates to the caller, but the account stays
        created and the client can ask for a new code via /send-email-otp.
        """
        info = self._verified_identity(id_token)
        if not info["email"]:
            raise ValidationError("Firebase account has no email address")
        if self.user_repo.get_by_email(info["email"]) or self.user_repo.get_by_firebase_uid(info["uid"]):
            raise Conflict("User with this email already exists")
        if phone and self.user_repo.get_by_phone(phone):
            raise Conflict("Phone number is already in use")

        user = self.user_repo.create({
            UserField.FIREBASE_UID: info["uid"],
            UserField.EMAIL: info["email"],
            UserField.PHONE: phone,
            UserField.FIRST_NAME: first_name,
            UserField.LAST_NAME: last_name,
        })
        logger.info(f"Registered user {user.id}")
        self.otp_service.issue(user, OTPPurpose.EMAIL)
        return self.user_repo.get_by_id(user.id)
