from typing import Optional
import logging

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlmodel import Session

from ..database import get_session
from ..application.ports.user_repo import UserDto
from ..application.ports.rate_limiter import RateLimiter
from ..application.services.auth_service import AuthService, TokenService
from ..application.services.otp_service import OTPVerificationService
from ..application.services.profile_service import ProfileService
from ..infrastructure.persistence.sqlalchemy.repositories.user_repository_sql import SqlUserRepository
from ..exceptions import RateLimited, Unauthorized

logger = logging.getLogger(__name__)

oauth2_scheme = HTTPBearer(auto_error=False)


# ------------------------
# Minimal DI for services
# ------------------------
def get_user_repo(session: Session = Depends(get_session)) -> SqlUserRepository:
    return SqlUserRepository(session)


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def get_otp_service(request: Request, repo: SqlUserRepository = Depends(get_user_repo)) -> OTPVerificationService:
    state = request.app.state
    return OTPVerificationService(
        user_repo=repo,
        dispatcher=state.dispatcher,
        identity=state.identity,
        audit=state.audit,
        clock=state.clock,
        request_id=getattr(request.state, "request_id", None),
    )


def get_auth_service(request: Request, repo: SqlUserRepository = Depends(get_user_repo), otp_service: OTPVerificationService = Depends(get_otp_service)) -> AuthService:
    return AuthService(user_repo=repo, identity=request.app.state.identity, otp_service=otp_service, clock=request.app.state.clock)


def get_profile_service(repo: SqlUserRepository = Depends(get_user_repo)) -> ProfileService:
    return ProfileService(user_repo=repo)


def enforce_otp_rate_limit(request: Request, limiter: RateLimiter, flow: str, identifier: Optional[str]) -> None:
    settings = request.app.state.settings
    _enforce(limiter, f"{flow}:{identifier}", identifier, settings.OTP_REQUESTS_PER_WINDOW,
             settings.OTP_REQUEST_WINDOW_SECONDS, "Too many OTP requests. Please try again later.")


def enforce_otp_verify_limit(request: Request, limiter: RateLimiter, flow: str, identifier: Optional[str]) -> None:
    """Caps code verification attempts per identifier and flow."""
    settings = request.app.state.settings
    _enforce(limiter, f"verify_{flow}:{identifier}", identifier, settings.OTP_VERIFY_ATTEMPTS_PER_WINDOW,
             settings.OTP_VERIFY_WINDOW_SECONDS, "Too many verification attempts. Please try again later.")


def _enforce(limiter: RateLimiter, key: str, identifier: Optional[str], max_requests: int, window_seconds: int, message: str) -> None:
    if not identifier:
        return
    if not limiter.allow(key, max_requests, window_seconds):
        logger.warning(f"Rate limit exceeded for {key.split(':', 1)[0]}")
        raise RateLimited(message)


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(oauth2_scheme),
    tokens: TokenService = Depends(get_token_service),
    repo: SqlUserRepository = Depends(get_user_repo),
) -> UserDto:
    token = None
    if credentials and credentials.credentials:
        token = credentials.credentials
    else:
        # Fallback to cookie
        token = request.cookies.get("access_token")
    if not token:
        raise HTTPException(status_code=401, detail="Access denied. No token provided.")

    payload = tokens.decode(token)
    if not payload:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token: missing user ID")

    user = repo.get_by_id(user_id)
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    if not user.is_active:
        raise Unauthorized("Account is deactivated")
    return user
