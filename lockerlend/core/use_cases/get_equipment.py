from __future__ import annotations

from lockerlend.core.entities.equipment import Equipment
from lockerlend.core.errors import NotFoundError
from lockerlend.core.repositories.unit_of_work import UnitOfWork


class GetEquipmentUseCase:
    def __init__(self, *, uow: UnitOfWork) -> None:
        self._uow = uow

    def execute(self, *, equipment_id: int) -> Equipment:
        with self._uow:
            equipment = self._uow.equipment.get(equipment_id)
        if equipment is None:
            raise NotFoundError("Equipment not found", code="equipment_not_found")
        return equipment

    def list_all(self) -> list[Equipment]:
        with self._uow:
            return self._uow.equipment.list_all()
