from __future__ import annotations

from abc import ABC, abstractmethod

from lockerlend.core.repositories.equipment_repository import EquipmentRepository
from lockerlend.core.repositories.locker_repository import LockerRepository
from lockerlend.core.repositories.transaction_repository import TransactionRepository
from lockerlend.core.repositories.user_repository import UserRepository


class UnitOfWork(ABC):
    """
    All-or-nothing scope over the store.

    Usage:
        with uow:
            ...
            uow.commit()

    Leaving the block without commit() (or with an exception) rolls everything back.
    Row locks taken through the repositories' *_for_update methods are held until then.
    """

    equipment: EquipmentRepository
    lockers: LockerRepository
    users: UserRepository
    transactions: TransactionRepository

    def __enter__(self) -> UnitOfWork:
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.rollback()
        return False

    @abstractmethod
    def commit(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def rollback(self) -> None:
        raise NotImplementedError
