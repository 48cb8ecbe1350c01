from __future__ import annotations

import logging

from lockerlend.core.clock import Clock, utcnow
from lockerlend.core.entities.user import User, derive_role
from lockerlend.core.errors import ConflictError, NotFoundError, ValidationError
from lockerlend.core.repositories.unit_of_work import UnitOfWork

logger = logging.getLogger("lockerlend.users")


class ManageUsersUseCase:
    """
    User registration and RFID card assignment.

    The role is never taken from the caller: it follows from the numeric range of sit_id.
    """

    def __init__(self, *, uow: UnitOfWork, staff_sit_id_max: int, clock: Clock = utcnow) -> None:
        self._uow = uow
        self._staff_sit_id_max = staff_sit_id_max
        self._clock = clock

    def register(self, *, sit_id: str, name: str, email: str) -> User:
        sit_id, name, email = sit_id.strip(), name.strip(), email.strip().lower()
        if not sit_id or not name or not email:
            raise ValidationError("Missing required fields: sit_id, name, email", code="missing_fields")
        try:
            role = derive_role(sit_id, staff_sit_id_max=self._staff_sit_id_max)
        except ValueError as e:
            raise ValidationError(str(e), code="invalid_sit_id") from e

        with self._uow:
            if self._uow.users.get_by_sit_id(sit_id) is not None or self._uow.users.get_by_email(email) is not None:
                raise ConflictError("User with this SIT ID or email already exists", code="duplicate")

            user = self._uow.users.add(
                User(user_id=None, sit_id=sit_id, name=name, email=email, role=role, created_at=self._clock())
            )
            self._uow.commit()

        logger.info("User registered user_id=%s role=%s", user.user_id, user.role.value)
        return user

    def assign_card(self, *, sit_id: str, rfid_uid: str) -> User:
        rfid_uid = rfid_uid.strip()
        if not rfid_uid:
            raise ValidationError("Missing required field: rfid_uid", code="missing_fields")

        with self._uow:
            user = self._uow.users.get_by_sit_id(sit_id)
            if user is None:
                raise NotFoundError("User not found", code="user_not_found")

            holder = self._uow.users.get_by_rfid_uid(rfid_uid)
            if holder is not None and holder.user_id != user.user_id:
                raise ConflictError("RFID card is already registered to another user", code="duplicate")

            user.rfid_uid = rfid_uid
            self._uow.users.upsert(user)
            self._uow.commit()

        logger.info("RFID card registered user_id=%s", user.user_id)
        return user

    def get(self, *, sit_id: str) -> User:
        with self._uow:
            user = self._uow.users.get_by_sit_id(sit_id)
        if user is None:
            raise NotFoundError("User not found", code="user_not_found")
        return user

    def list_all(self) -> list[User]:
        with self._uow:
            return self._uow.users.list_all()
