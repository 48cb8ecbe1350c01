from __future__ import annotations

from lockerlend.core.entities.locker import Locker
from lockerlend.core.errors import ConflictError, NotFoundError
from lockerlend.core.repositories.unit_of_work import UnitOfWork


class LockerRegistry:
    """
    Locker occupancy bookkeeping. Only the reservation state machine calls this,
    always inside a unit of work it has opened.
    """

    def __init__(self, *, uow: UnitOfWork) -> None:
        self._uow = uow

    def allocate(self, equipment_id: int) -> Locker:
        """Occupy the lowest-numbered available locker that accepts the equipment."""
        locker = self._uow.lockers.first_available_for_update(equipment_id)
        if locker is None:
            raise ConflictError("No lockers available", code="no_capacity")
        return self._occupy(locker, equipment_id)

    def occupy(self, locker_id: int, equipment_id: int) -> Locker:
        return self._occupy(self._lock(locker_id), equipment_id)

    def free(self, locker_id: int) -> Locker:
        locker = self._lock(locker_id)
        try:
            locker.free()
        except ValueError as e:
            raise ConflictError(str(e), code="locker_state") from e

        self._uow.lockers.upsert(locker)
        return locker

    def _lock(self, locker_id: int) -> Locker:
        locker = self._uow.lockers.get_for_update(locker_id)
        if locker is None:
            raise NotFoundError("Locker not found", code="locker_not_found")
        return locker

    def _occupy(self, locker: Locker, equipment_id: int) -> Locker:
        try:
            locker.occupy(equipment_id)
        except ValueError as e:
            raise ConflictError(str(e), code="locker_state") from e

        self._uow.lockers.upsert(locker)
        return locker
