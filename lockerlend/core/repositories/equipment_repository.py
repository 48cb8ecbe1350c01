from __future__ import annotations

from abc import ABC, abstractmethod

from lockerlend.core.entities.equipment import Equipment


class EquipmentRepository(ABC):
    @abstractmethod
    def get(self, equipment_id: int) -> Equipment | None:
        raise NotImplementedError

    @abstractmethod
    def get_for_update(self, equipment_id: int) -> Equipment | None:
        """Like get(), but holds an exclusive lock on the row until the unit of work ends."""
        raise NotImplementedError

    @abstractmethod
    def list_all(self) -> list[Equipment]:
        raise NotImplementedError

    @abstractmethod
    def upsert(self, equipment: Equipment) -> None:
        raise NotImplementedError
