from __future__ import annotations

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from lockerlend.core.entities.locker import Locker, LockerStatus
from lockerlend.core.repositories.locker_repository import LockerRepository
from lockerlend.infrastructure.models.models import LockerModel


class LockerRepositoryImpl(LockerRepository):
    """SQLAlchemy implementation for Locker."""

    def __init__(self, db: Session) -> None:
        self._db = db

    def get(self, locker_id: int) -> Locker | None:
        row = self._db.get(LockerModel, locker_id)
        return self._to_entity(row) if row is not None else None

    def get_for_update(self, locker_id: int) -> Locker | None:
        row = self._db.execute(
            select(LockerModel)
            .where(LockerModel.locker_id == locker_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        return self._to_entity(row) if row is not None else None

    def get_by_compartment(self, compartment_number: int) -> Locker | None:
        row = self._db.execute(
            select(LockerModel).where(LockerModel.compartment_number == compartment_number)
        ).scalar_one_or_none()
        return self._to_entity(row) if row is not None else None

    def first_available_for_update(self, equipment_id: int) -> Locker | None:
        row = self._db.execute(
            select(LockerModel)
            .where(LockerModel.status == LockerStatus.AVAILABLE)
            .where(or_(LockerModel.bound_equipment_id.is_(None), LockerModel.bound_equipment_id == equipment_id))
            .order_by(LockerModel.compartment_number)
            .limit(1)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars().first()
        return self._to_entity(row) if row is not None else None

    def list_all(self, *, available_only: bool = False) -> list[Locker]:
        query = select(LockerModel).order_by(LockerModel.compartment_number)
        if available_only:
            query = query.where(LockerModel.status == LockerStatus.AVAILABLE)
        return [self._to_entity(row) for row in self._db.execute(query).scalars()]

    def upsert(self, locker: Locker) -> None:
        row = self._db.get(LockerModel, locker.locker_id)
        if row is None:
            row = LockerModel(locker_id=locker.locker_id)

        row.compartment_number = locker.compartment_number
        row.location = locker.location
        row.status = locker.status
        row.bound_equipment_id = locker.bound_equipment_id
        row.current_equipment_id = locker.current_equipment_id

        self._db.add(row)
        self._db.flush()

    @staticmethod
    def _to_entity(row: LockerModel) -> Locker:
        return Locker(
            locker_id=row.locker_id,
            compartment_number=row.compartment_number,
            location=row.location,
            status=LockerStatus(row.status) if not isinstance(row.status, LockerStatus) else row.status,
            bound_equipment_id=row.bound_equipment_id,
            current_equipment_id=row.current_equipment_id,
        )
