from __future__ import annotations

from abc import ABC, abstractmethod

from lockerlend.core.entities.locker import Locker


class LockerRepository(ABC):
    @abstractmethod
    def get(self, locker_id: int) -> Locker | None:
        raise NotImplementedError

    @abstractmethod
    def get_for_update(self, locker_id: int) -> Locker | None:
        """Like get(), but holds an exclusive lock on the row until the unit of work ends."""
        raise NotImplementedError

    @abstractmethod
    def get_by_compartment(self, compartment_number: int) -> Locker | None:
        raise NotImplementedError

    @abstractmethod
    def first_available_for_update(self, equipment_id: int) -> Locker | None:
        """
        Lock and return the available locker with the lowest compartment number that
        accepts `equipment_id`, or None if there is none.
        """
        raise NotImplementedError

    @abstractmethod
    def list_all(self, *, available_only: bool = False) -> list[Locker]:
        """Ordered by compartment number."""
        raise NotImplementedError

    @abstractmethod
    def upsert(self, locker: Locker) -> None:
        raise NotImplementedError
