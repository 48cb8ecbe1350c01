from __future__ import annotations

from lockerlend.core.entities.equipment import Equipment, InventoryExhausted, InventoryOverflow
from lockerlend.core.errors import ConflictError, NotFoundError
from lockerlend.core.repositories.unit_of_work import UnitOfWork


class InventoryLedger:
    """
    Per-equipment unit bookkeeping. Only the reservation state machine calls this,
    always inside a unit of work it has opened.
    """

    def __init__(self, *, uow: UnitOfWork) -> None:
        self._uow = uow

    def _lock(self, equipment_id: int) -> Equipment:
        equipment = self._uow.equipment.get_for_update(equipment_id)
        if equipment is None:
            raise NotFoundError("Equipment not found", code="equipment_not_found")
        return equipment

    def debit(self, equipment_id: int) -> Equipment:
        equipment = self._lock(equipment_id)
        try:
            equipment.debit()
        except InventoryExhausted as e:
            raise ConflictError(str(e), code="exhausted") from e

        self._uow.equipment.upsert(equipment)
        return equipment

    def credit(self, equipment_id: int) -> Equipment:
        equipment = self._lock(equipment_id)
        try:
            equipment.credit()
        except InventoryOverflow as e:
            raise ConflictError(str(e), code="over_credit") from e

        self._uow.equipment.upsert(equipment)
        return equipment
