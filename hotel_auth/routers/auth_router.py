from fastapi import APIRouter, Depends, Request
import logging

from ..application.ports.rate_limiter import RateLimiter
from ..application.ports.user_repo import UserDto
from ..application.services.auth_service import AuthService, TokenService
from ..application.services.otp_service import OTPVerificationService
from ..exceptions import create_success_response
from ..schemas import (
    RegisterRequest, LoginRequest, EmailOTPRequest, PhoneOTPRequest,
    VerifyEmailOTPRequest, VerifyPhoneOTPRequest, ResetPasswordRequest,
    MessageResponse, AuthResponse, UserResponse,
)
from .deps import (
    get_auth_service, get_otp_service, get_token_service, get_rate_limiter,
    get_current_user, enforce_otp_rate_limit, enforce_otp_verify_limit,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


def _auth_payload(user: UserDto, tokens: TokenService) -> dict:
    return {
        "user": UserResponse.from_user(user).dict(by_alias=True),
        "token": tokens.issue(user),
    }


# ==================== REGISTER / LOGIN ====================

@router.post("/register", response_model=AuthResponse, status_code=201)
def register(
    payload: RegisterRequest,
    auth_service: AuthService = Depends(get_auth_service),
    tokens: TokenService = Depends(get_token_service),
):
    user = auth_service.register(payload.firebase_id_token, payload.first_name, payload.last_name, payload.phone)
    return create_success_response(
        "OTP sent to your email. Please enter it to complete registration.",
        _auth_payload(user, tokens),
    )


@router.post("/login", response_model=AuthResponse)
def login(
    payload: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
    tokens: TokenService = Depends(get_token_service),
):
    user = auth_service.login_with_firebase(payload.firebase_id_token)
    return create_success_response("Login successful", _auth_payload(user, tokens))


# ==================== EMAIL VERIFICATION ====================

@router.post("/send-email-otp", response_model=MessageResponse)
def send_email_otp(
    payload: EmailOTPRequest,
    request: Request,
    otp_service: OTPVerificationService = Depends(get_otp_service),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    enforce_otp_rate_limit(request, limiter, "email", payload.email)
    otp_service.request_email_otp(payload.email)
    return create_success_response("Email OTP sent successfully")


@router.post("/verify-email-otp", response_model=AuthResponse)
def verify_email_otp(
    payload: VerifyEmailOTPRequest,
    request: Request,
    otp_service: OTPVerificationService = Depends(get_otp_service),
    tokens: TokenService = Depends(get_token_service),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    enforce_otp_verify_limit(request, limiter, "email", payload.email)
    user = otp_service.verify_email_otp(payload.email, payload.otp)
    return create_success_response("Email verified successfully", _auth_payload(user, tokens))


# ==================== PHONE VERIFICATION ====================

@router.post("/send-phone-otp", response_model=MessageResponse)
def send_phone_otp(
    payload: PhoneOTPRequest,
    request: Request,
    otp_service: OTPVerificationService = Depends(get_otp_service),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    enforce_otp_rate_limit(request, limiter, "phone", payload.phone)
    otp_service.request_phone_otp(payload.phone)
    return create_success_response("Phone OTP sent successfully")


@router.post("/verify-phone-otp", response_model=AuthResponse)
def verify_phone_otp(
    payload: VerifyPhoneOTPRequest,
    request: Request,
    otp_service: OTPVerificationService = Depends(get_otp_service),
    tokens: TokenService = Depends(get_token_service),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    enforce_otp_verify_limit(request, limiter, "phone", payload.phone)
    user = otp_service.verify_phone_otp(payload.phone, payload.otp)
    return create_success_response("Phone verification successful", _auth_payload(user, tokens))


# ==================== PASSWORD RESET ====================

@router.post("/forgot-password", response_model=MessageResponse)
def forgot_password(
    payload: EmailOTPRequest,
    request: Request,
    otp_service: OTPVerificationService = Depends(get_otp_service),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    enforce_otp_rate_limit(request, limiter, "password_reset", payload.email)
    otp_service.request_password_reset(payload.email)
    return create_success_response("Password reset OTP sent to your email.")


@router.post("/verify-reset-otp", response_model=MessageResponse)
def verify_reset_otp(
    payload: VerifyEmailOTPRequest,
    request: Request,
    otp_service: OTPVerificationService = Depends(get_otp_service),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    enforce_otp_verify_limit(request, limiter, "password_reset", payload.email)
    otp_service.verify_password_reset_otp(payload.email, payload.otp)
    return create_success_response("Password reset OTP verified. You can now set a new password.")


@router.post("/reset-password", response_model=MessageResponse)
def reset_password(
    payload: ResetPasswordRequest,
    otp_service: OTPVerificationService = Depends(get_otp_service),
):
    otp_service.reset_password(payload.email, payload.new_password)
    return create_success_response("Password updated successfully")


# ==================== SESSION ====================

@router.get("/me", response_model=AuthResponse)
def get_me(current_user: UserDto = Depends(get_current_user)):
    return create_success_response("User retrieved", UserResponse.from_user(current_user).dict(by_alias=True))


@router.post("/logout", response_model=MessageResponse)
def logout(current_user: UserDto = Depends(get_current_user)):
    # Tokens are stateless; the client discards its copy
    logger.info(f"User {current_user.id} logged out")
    return create_success_response("Logged out successfully")
