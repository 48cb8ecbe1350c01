from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from lockerlend.core.entities.equipment import Equipment
from lockerlend.core.repositories.equipment_repository import EquipmentRepository
from lockerlend.infrastructure.models.models import EquipmentModel


class EquipmentRepositoryImpl(EquipmentRepository):
    """SQLAlchemy implementation for Equipment. Writes are flushed, never committed here."""

    def __init__(self, db: Session) -> None:
        self._db = db

    def get(self, equipment_id: int) -> Equipment | None:
        row = self._db.get(EquipmentModel, equipment_id)
        return self._to_entity(row) if row is not None else None

    def get_for_update(self, equipment_id: int) -> Equipment | None:
        row = self._db.execute(
            select(EquipmentModel)
            .where(EquipmentModel.equipment_id == equipment_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        return self._to_entity(row) if row is not None else None

    def list_all(self) -> list[Equipment]:
        rows = self._db.execute(select(EquipmentModel).order_by(EquipmentModel.equipment_id)).scalars()
        return [self._to_entity(row) for row in rows]

    def upsert(self, equipment: Equipment) -> None:
        row = self._db.get(EquipmentModel, equipment.equipment_id)
        if row is None:
            row = EquipmentModel(equipment_id=equipment.equipment_id)

        row.name = equipment.name
        row.category = equipment.category
        row.description = equipment.description
        row.total_units = equipment.total_units
        row.available_units = equipment.available_units

        self._db.add(row)
        self._db.flush()

    @staticmethod
    def _to_entity(row: EquipmentModel) -> Equipment:
        return Equipment(
            equipment_id=row.equipment_id,
            name=row.name,
            category=row.category,
            description=row.description,
            total_units=row.total_units,
            available_units=row.available_units,
        )
