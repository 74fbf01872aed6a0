from datetime import date, datetime

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session

from hotel_auth.application.ports.user_repo import UserField
from hotel_auth.application.services.profile_service import ProfileService
from hotel_auth.database import build_engine, create_db_and_tables
from hotel_auth.exceptions import ValidationError, NotFound, Conflict
from hotel_auth.infrastructure.persistence.sqlalchemy.repositories.user_repository_sql import SqlUserRepository


@pytest.fixture
def repo():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    create_db_and_tables(engine)
    with Session(engine) as session:
        yield SqlUserRepository(session)
    engine.dispose()


def test_update_profile_validates_and_updates(repo):
    user = repo.create({UserField.EMAIL: "a@x.com"})
    svc = ProfileService(user_repo=repo)
    updated = svc.update_profile(user.id, {"first_name": "John", "date_of_birth": "2000-01-01", "gender": "male"})
    assert updated.first_name == "John"
    assert updated.date_of_birth == date(2000, 1, 1)
    assert updated.gender == "male"


def test_update_profile_rejects_bad_input(repo):
    user = repo.create({UserField.EMAIL: "a@x.com"})
    svc = ProfileService(user_repo=repo)
    with pytest.raises(ValidationError):
        svc.update_profile(user.id, {})
    with pytest.raises(ValidationError):
        svc.update_profile(user.id, {"is_active": False})
    with pytest.raises(ValidationError):
        svc.update_profile(user.id, {"gender": "robot"})
    with pytest.raises(ValidationError):
        svc.update_profile(user.id, {"date_of_birth": "01/01/2000"})
    with pytest.raises(NotFound):
        svc.update_profile("missing", {"city": "Goa"})


def test_change_email_resets_verification(repo):
    user = repo.create({UserField.EMAIL: "a@x.com", UserField.IS_EMAIL_VERIFIED: True})
    repo.update(user.id, {
        UserField.EMAIL_OTP: "123456",
        UserField.PASSWORD_RESET_OTP: "654321",
        UserField.PASSWORD_RESET_OTP_EXPIRES_AT: datetime(2024, 1, 1, 12, 10),
        UserField.CAN_RESET_PASSWORD: True,
    })
    svc = ProfileService(user_repo=repo)

    updated = svc.change_email(user.id, "b@x.com")
    assert updated.email == "b@x.com"
    assert updated.is_email_verified is False
    assert updated.email_otp is None
    assert updated.password_reset_otp is None
    assert updated.password_reset_otp_expires_at is None
    assert updated.can_reset_password is False


def test_change_email_and_phone_conflicts(repo):
    repo.create({UserField.EMAIL: "taken@x.com", UserField.PHONE: "+15550001111"})
    user = repo.create({UserField.EMAIL: "a@x.com"})
    svc = ProfileService(user_repo=repo)
    with pytest.raises(Conflict):
        svc.change_email(user.id, "taken@x.com")
    with pytest.raises(Conflict):
        svc.change_phone(user.id, "+15550001111")
    assert svc.change_phone(user.id, "+15550002222").is_phone_verified is False


def test_deactivate_requires_confirmation(repo):
    user = repo.create({UserField.EMAIL: "a@x.com"})
    svc = ProfileService(user_repo=repo)
    with pytest.raises(ValidationError):
        svc.deactivate(user.id, None)
    with pytest.raises(ValidationError):
        svc.deactivate(user.id, False)
    svc.deactivate(user.id, True)
    assert repo.get_by_id(user.id).is_active is False
