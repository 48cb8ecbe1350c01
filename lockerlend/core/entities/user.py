from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class UserRole(str, Enum):
    STUDENT = "student"
    STAFF = "staff"


def derive_role(sit_id: str, *, staff_sit_id_max: int) -> UserRole:
    """
    Staff ids occupy the low numeric range, student ids everything above it.
    Raises ValueError if sit_id is not a positive number.
    """
    if not sit_id.isdigit() or int(sit_id) <= 0:
        raise ValueError(f"sit_id must be a positive number, got {sit_id!r}")
    return UserRole.STAFF if int(sit_id) <= staff_sit_id_max else UserRole.STUDENT


@dataclass(slots=True)
class User:
    user_id: int | None
    sit_id: str
    name: str
    email: str
    role: UserRole
    rfid_uid: str | None = None
    created_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class AuthenticatedIdentity:
    """What the external identity provider vouches for."""
    user_id: int
    sit_id: str
    role: UserRole

    @property
    def is_staff(self) -> bool:
        return self.role is UserRole.STAFF
