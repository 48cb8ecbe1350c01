from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class LockerStatus(str, Enum):
    AVAILABLE = "available"
    OCCUPIED = "occupied"


@dataclass(slots=True)
class Locker:
    locker_id: int
    compartment_number: int
    status: LockerStatus = LockerStatus.AVAILABLE
    location: str | None = None
    bound_equipment_id: int | None = None
    current_equipment_id: int | None = None

    def accepts(self, equipment_id: int) -> bool:
        """A locker provisioned for a specific equipment type only takes that type."""
        return self.bound_equipment_id is None or self.bound_equipment_id == equipment_id

    def occupy(self, equipment_id: int) -> None:
        if self.status is not LockerStatus.AVAILABLE:
            raise ValueError(f"Locker {self.compartment_number} is not available")
        if not self.accepts(equipment_id):
            raise ValueError(f"Locker {self.compartment_number} is reserved for another equipment type")
        self.status = LockerStatus.OCCUPIED
        self.current_equipment_id = equipment_id

    def free(self) -> None:
        if self.status is not LockerStatus.OCCUPIED:
            raise ValueError(f"Locker {self.compartment_number} is not occupied")
        self.status = LockerStatus.AVAILABLE
        self.current_equipment_id = None
