from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lockerlend.core.entities.locker import LockerStatus
from lockerlend.core.entities.transaction import TransactionStatus
from lockerlend.core.entities.user import UserRole
from lockerlend.infrastructure.database import Base


def _values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


class EquipmentModel(Base):
    __tablename__ = "equipment"
    __table_args__ = (
        CheckConstraint("total_units >= 0", name="ck_equipment_total_units"),
        CheckConstraint(
            "available_units >= 0 AND available_units <= total_units",
            name="ck_equipment_available_units",
        ),
    )

    equipment_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    category: Mapped[str | None] = mapped_column(String(60), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    total_units: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    available_units: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class LockerModel(Base):
    __tablename__ = "lockers"

    locker_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    compartment_number: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)
    location: Mapped[str | None] = mapped_column(String(120), nullable=True)
    status: Mapped[LockerStatus] = mapped_column(
        Enum(LockerStatus, values_callable=_values, native_enum=False),
        nullable=False,
        default=LockerStatus.AVAILABLE,
    )
    bound_equipment_id: Mapped[int | None] = mapped_column(ForeignKey("equipment.equipment_id"), nullable=True)
    current_equipment_id: Mapped[int | None] = mapped_column(ForeignKey("equipment.equipment_id"), nullable=True)


class UserModel(Base):
    __tablename__ = "users"

    user_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sit_id: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    role: Mapped[UserRole] = mapped_column(Enum(UserRole, values_callable=_values, native_enum=False), nullable=False)
    rfid_uid: Mapped[str | None] = mapped_column(String(64), nullable=True, unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


_OPEN_STATUS_CLAUSE = text("status IN ('pending_pickup', 'active', 'pending_return')")


class TransactionModel(Base):
    __tablename__ = "transactions"
    __table_args__ = (
        # At most one open transaction holds a locker.
        Index(
            "uq_transactions_open_locker",
            "locker_id",
            unique=True,
            sqlite_where=_OPEN_STATUS_CLAUSE,
            postgresql_where=_OPEN_STATUS_CLAUSE,
        ),
    )

    transaction_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.user_id"), nullable=False, index=True)
    equipment_id: Mapped[int] = mapped_column(ForeignKey("equipment.equipment_id"), nullable=False, index=True)
    locker_id: Mapped[int | None] = mapped_column(ForeignKey("lockers.locker_id"), nullable=True)
    status: Mapped[TransactionStatus] = mapped_column(
        Enum(TransactionStatus, values_callable=_values, native_enum=False),
        nullable=False,
        index=True,
    )
    due_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    borrow_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    return_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    user = relationship("UserModel")
    equipment = relationship("EquipmentModel")
    locker = relationship("LockerModel")
