from __future__ import annotations

from dataclasses import dataclass


class InventoryExhausted(ValueError):
    pass


class InventoryOverflow(ValueError):
    pass


@dataclass(slots=True)
class Equipment:
    equipment_id: int
    name: str
    total_units: int
    available_units: int
    category: str | None = None
    description: str | None = None

    def debit(self) -> None:
        if self.available_units <= 0:
            raise InventoryExhausted(f"Equipment {self.name!r} has no available units")
        self.available_units -= 1

    def credit(self) -> None:
        if self.available_units >= self.total_units:
            raise InventoryOverflow(
                f"Equipment {self.name!r} already has all {self.total_units} units available"
            )
        self.available_units += 1
