from fastapi import APIRouter, Depends
import logging

from ..application.ports.user_repo import UserDto
from ..application.services.profile_service import ProfileService
from ..exceptions import create_success_response
from ..schemas import (
    UserResponse, UpdateProfileRequest, UpdateEmailRequest, UpdatePhoneRequest,
    DeleteAccountRequest, ProfileResponse,
)
from .deps import get_current_user, get_profile_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/profile", tags=["Profile"])


def _profile(user: UserDto) -> dict:
    return UserResponse.from_user(user).dict(by_alias=True)


@router.get("", response_model=ProfileResponse)
def get_profile(current_user: UserDto = Depends(get_current_user)):
    return create_success_response("Profile retrieved", _profile(current_user))


@router.put("", response_model=ProfileResponse)
def update_profile(
    payload: UpdateProfileRequest,
    current_user: UserDto = Depends(get_current_user),
    profile_service: ProfileService = Depends(get_profile_service),
):
    user = profile_service.update_profile(current_user.id, payload.dict(exclude_unset=True))
    return create_success_response("Profile updated successfully", _profile(user))


@router.put("/email", response_model=ProfileResponse)
def update_email(
    payload: UpdateEmailRequest,
    current_user: UserDto = Depends(get_current_user),
    profile_service: ProfileService = Depends(get_profile_service),
):
    user = profile_service.change_email(current_user.id, payload.email)
    return create_success_response("Email updated. Please verify your new email.", {"email": user.email})


@router.put("/phone", response_model=ProfileResponse)
def update_phone(
    payload: UpdatePhoneRequest,
    current_user: UserDto = Depends(get_current_user),
    profile_service: ProfileService = Depends(get_profile_service),
):
    user = profile_service.change_phone(current_user.id, payload.phone)
    return create_success_response("Phone updated. Please verify your new phone number.", {"phone": user.phone})


@router.delete("", response_model=ProfileResponse)
def delete_account(
    payload: DeleteAccountRequest,
    current_user: UserDto = Depends(get_current_user),
    profile_service: ProfileService = Depends(get_profile_service),
):
    profile_service.deactivate(current_user.id, payload.confirm_delete)
    logger.info(f"User {current_user.id} deactivated their account")
    return create_success_response("Account deleted successfully")
