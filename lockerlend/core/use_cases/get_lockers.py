from __future__ import annotations

from lockerlend.core.entities.locker import Locker
from lockerlend.core.errors import NotFoundError
from lockerlend.core.repositories.unit_of_work import UnitOfWork


class GetLockersUseCase:
    def __init__(self, *, uow: UnitOfWork) -> None:
        self._uow = uow

    def by_compartment(self, *, compartment_number: int) -> Locker:
        with self._uow:
            locker = self._uow.lockers.get_by_compartment(compartment_number)
        if locker is None:
            raise NotFoundError("Locker not found", code="locker_not_found")
        return locker

    def list_all(self, *, available_only: bool = False) -> list[Locker]:
        with self._uow:
            return self._uow.lockers.list_all(available_only=available_only)
