from datetime import datetime
from typing import Optional, Dict, Any
from sqlalchemy import update as sql_update
from sqlmodel import Session, select

from .....db.models import User
from .....application.ports.user_repo import UserRepository, UserDto, UserField

class SqlUserRepository(UserRepository):
    def __init__(self, session: Session):
        self.session = session

    def _to_dto(self, user: User) -> UserDto:
        return UserDto(
            id=user.id,
            firebase_uid=user.firebase_uid,
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
            is_email_verified=bool(user.is_email_verified),
            is_phone_verified=bool(user.is_phone_verified),
            is_active=bool(user.is_active),
            email_otp=user.email_otp,
            email_otp_expires_at=user.email_otp_expires_at,
            phone_otp=user.phone_otp,
            phone_otp_expires_at=user.phone_otp_expires_at,
            password_reset_otp=user.password_reset_otp,
            password_reset_otp_expires_at=user.password_reset_otp_expires_at,
            can_reset_password=bool(user.can_reset_password),
            last_login=user.last_login,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )

    def _first(self, statement) -> Optional[UserDto]:
        user = self.session.exec(statement).first()
        return self._to_dto(user) if user else None

    def get_by_id(self, user_id: str) -> Optional[UserDto]:
        return self._first(select(User).where(User.id == user_id))

    def get_by_email(self, email: str) -> Optional[UserDto]:
        return self._first(select(User).where(User.email == email))

    def get_by_phone(self, phone: str) -> Optional[UserDto]:
        return self._first(select(User).where(User.phone == phone))

    def get_by_firebase_uid(self, firebase_uid: str) -> Optional[UserDto]:
        return self._first(select(User).where(User.firebase_uid == firebase_uid))

    def create(self, fields: Dict[UserField, Any]) -> UserDto:
        user = User(**{f.value: v for f, v in fields.items()})
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return self._to_dto(user)

    def update(self, user_id: str, fields: Dict[UserField, Any], expected: Optional[Dict[UserField, Any]] = None) -> bool:
        if not fields:
            return False
        stmt = sql_update(User).where(User.id == user_id)
        for f, value in (expected or {}).items():
            column = User.__table__.c[f.value]
            stmt = stmt.where(column.is_(None) if value is None else column == value)
        values = {f.value: v for f, v in fields.items()}
        values["updated_at"] = datetime.utcnow()
        stmt = stmt.values(**values)

        # Single conditional UPDATE; the row count tells whether the guard held
        try:
            result = self.session.connection().execute(stmt)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        # Identity map may hold a stale copy of this row
        self.session.expire_all()
        return result.rowcount > 0
