from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from lockerlend.core.entities.user import User, UserRole
from lockerlend.core.repositories.user_repository import UserRepository
from lockerlend.infrastructure.models.models import UserModel


class UserRepositoryImpl(UserRepository):
    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: int) -> User | None:
        row = self.db.get(UserModel, user_id)
        return self._to_entity(row) if row is not None else None

    def get_by_sit_id(self, sit_id: str) -> User | None:
        return self._first(UserModel.sit_id == sit_id)

    def get_by_rfid_uid(self, rfid_uid: str) -> User | None:
        return self._first(UserModel.rfid_uid == rfid_uid)

    def get_by_email(self, email: str) -> User | None:
        return self._first(UserModel.email == email)

    def list_all(self) -> list[User]:
        rows = self.db.execute(
            select(UserModel).order_by(UserModel.created_at.desc(), UserModel.user_id.desc())
        ).scalars()
        return [self._to_entity(row) for row in rows]

    def add(self, user: User) -> User:
        row = UserModel()
        self._apply(row, user)
        self.db.add(row)
        self.db.flush()
        return self._to_entity(row)

    def upsert(self, user: User) -> None:
        row = self.db.get(UserModel, user.user_id) if user.user_id is not None else None
        if row is None:
            row = UserModel(user_id=user.user_id)

        self._apply(row, user)
        self.db.add(row)
        self.db.flush()

    def _first(self, criterion) -> User | None:
        row = self.db.execute(select(UserModel).where(criterion)).scalars().first()
        return self._to_entity(row) if row is not None else None

    @staticmethod
    def _apply(row: UserModel, user: User) -> None:
        row.sit_id = user.sit_id
        row.name = user.name
        row.email = user.email
        row.role = user.role
        row.rfid_uid = user.rfid_uid
        row.created_at = user.created_at

    @staticmethod
    def _to_entity(row: UserModel) -> User:
        return User(
            user_id=row.user_id,
            sit_id=row.sit_id,
            name=row.name,
            email=row.email,
            role=UserRole(row.role) if not isinstance(row.role, UserRole) else row.role,
            rfid_uid=row.rfid_uid,
            created_at=row.created_at,
        )
