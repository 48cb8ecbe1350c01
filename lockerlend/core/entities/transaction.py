from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class TransactionStatus(str, Enum):
    PENDING_PICKUP = "pending_pickup"
    ACTIVE = "active"
    PENDING_RETURN = "pending_return"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


# Statuses that hold a locker and a debited unit.
OPEN_STATUSES = frozenset(
    {TransactionStatus.PENDING_PICKUP, TransactionStatus.ACTIVE, TransactionStatus.PENDING_RETURN}
)

_TRANSITIONS: dict[TransactionStatus, frozenset[TransactionStatus]] = {
    TransactionStatus.PENDING_PICKUP: frozenset(
        {TransactionStatus.ACTIVE, TransactionStatus.CANCELLED, TransactionStatus.EXPIRED}
    ),
    TransactionStatus.ACTIVE: frozenset({TransactionStatus.PENDING_RETURN, TransactionStatus.EXPIRED}),
    TransactionStatus.PENDING_RETURN: frozenset({TransactionStatus.COMPLETED}),
}


class InvalidTransition(ValueError):
    def __init__(self, current: TransactionStatus, target: TransactionStatus) -> None:
        super().__init__(f"Cannot move transaction from {current.value!r} to {target.value!r}")
        self.current = current
        self.target = target


@dataclass(slots=True)
class Transaction:
    transaction_id: int | None
    user_id: int
    equipment_id: int
    locker_id: int | None
    status: TransactionStatus
    created_at: datetime
    due_date: datetime | None = None
    borrow_time: datetime | None = None
    return_time: datetime | None = None

    def can_move_to(self, target: TransactionStatus) -> bool:
        return target in _TRANSITIONS.get(self.status, frozenset())

    def _move_to(self, target: TransactionStatus) -> None:
        if not self.can_move_to(target):
            raise InvalidTransition(self.status, target)
        self.status = target

    def confirm_pickup(self, *, at: datetime) -> None:
        self._move_to(TransactionStatus.ACTIVE)
        self.borrow_time = at

    def request_return(self) -> None:
        self._move_to(TransactionStatus.PENDING_RETURN)

    def confirm_return(self, *, at: datetime) -> None:
        self._move_to(TransactionStatus.COMPLETED)
        self.return_time = at

    def cancel(self) -> None:
        self._move_to(TransactionStatus.CANCELLED)

    def expire(self) -> None:
        self._move_to(TransactionStatus.EXPIRED)


@dataclass(frozen=True, slots=True)
class TransactionDetails:
    """Read view of a transaction joined with the names a client displays."""
    transaction: Transaction
    equipment_name: str
    compartment_number: int | None
    sit_id: str | None = None
    user_name: str | None = None
