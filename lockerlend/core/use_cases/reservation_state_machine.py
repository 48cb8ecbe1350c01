from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from lockerlend.core.clock import Clock, to_naive_utc, utcnow
from lockerlend.core.entities.transaction import (
    InvalidTransition,
    Transaction,
    TransactionDetails,
    TransactionStatus,
)
from lockerlend.core.entities.user import AuthenticatedIdentity
from lockerlend.core.errors import ConflictError, NotFoundError, ValidationError
from lockerlend.core.repositories.unit_of_work import UnitOfWork
from lockerlend.core.use_cases.inventory_ledger import InventoryLedger
from lockerlend.core.use_cases.locker_registry import LockerRegistry

logger = logging.getLogger("lockerlend.reservations")

_RETURN_REJECTIONS: dict[TransactionStatus, tuple[str, str]] = {
    TransactionStatus.PENDING_PICKUP: (
        "not_yet_picked_up",
        "Cannot return equipment that has not been picked up yet",
    ),
    TransactionStatus.PENDING_RETURN: (
        "already_requested",
        "Return already requested. Please go to the locker to complete return.",
    ),
}


@dataclass(frozen=True, slots=True)
class BorrowResult:
    transaction: Transaction
    equipment_name: str
    compartment_number: int


class ReservationStateMachine:
    """
    Owns the Transaction lifecycle:

        pending_pickup -> active -> pending_return -> completed
        pending_pickup -> cancelled
        pending_pickup | active -> expired   (expiry sweep only)

    create_borrow / request_return / cancel / expire each run as their own unit of work.
    confirm_pickup / confirm_return run inside the caller's unit of work (the access
    decision protocol), which must already hold the locker lock.

    Lock order is locker -> transaction -> equipment for everything that touches an
    occupied locker. create_borrow locks equipment first, then an *available* locker,
    which nothing else locks.
    """

    def __init__(self, *, uow: UnitOfWork, clock: Clock = utcnow) -> None:
        self._uow = uow
        self._clock = clock
        self._ledger = InventoryLedger(uow=uow)
        self._registry = LockerRegistry(uow=uow)

    # -----------------------------
    # User-initiated transitions
    # -----------------------------
    def create_borrow(
            self,
            *,
            requester: AuthenticatedIdentity,
            equipment_id: int,
            due_date: datetime | None = None,
    ) -> BorrowResult:
        now = self._clock()
        due_date = to_naive_utc(due_date)
        if due_date is not None and due_date <= now:
            raise ValidationError("due_date must be in the future", code="invalid_due_date")

        with self._uow:
            user = self._uow.users.get(requester.user_id)
            if user is None:
                raise NotFoundError("User not found", code="user_not_found")

            equipment = self._ledger.debit(equipment_id)
            locker = self._registry.allocate(equipment_id)

            transaction = self._uow.transactions.add(
                Transaction(
                    transaction_id=None,
                    user_id=user.user_id,
                    equipment_id=equipment.equipment_id,
                    locker_id=locker.locker_id,
                    status=TransactionStatus.PENDING_PICKUP,
                    created_at=now,
                    due_date=due_date,
                )
            )
            self._uow.commit()

        logger.info(
            "Borrow created transaction_id=%s user_id=%s equipment_id=%s compartment=%s",
            transaction.transaction_id, user.user_id, equipment.equipment_id, locker.compartment_number,
        )
        return BorrowResult(
            transaction=transaction,
            equipment_name=equipment.name,
            compartment_number=locker.compartment_number,
        )

    def request_return(self, *, transaction_id: int, requester: AuthenticatedIdentity) -> TransactionDetails:
        with self._uow:
            transaction = self._uow.transactions.get_for_update(transaction_id)
            self._check_visible(transaction, requester)

            if transaction.status is not TransactionStatus.ACTIVE:
                code, message = _RETURN_REJECTIONS.get(
                    transaction.status,
                    ("not_returnable", "This transaction cannot be returned"),
                )
                raise ConflictError(message, code=code)

            transaction.request_return()
            self._uow.transactions.upsert(transaction)
            details = self._uow.transactions.get_details(transaction_id)
            self._uow.commit()

        logger.info("Return requested transaction_id=%s", transaction_id)
        return details

    def cancel(self, *, transaction_id: int, requester: AuthenticatedIdentity) -> Transaction:
        with self._uow:
            transaction = self._lock_transaction(transaction_id)
            self._check_visible(transaction, requester)

            if not transaction.can_move_to(TransactionStatus.CANCELLED):
                raise ConflictError(
                    f"Only pending pickups can be cancelled (status is {transaction.status.value!r})",
                    code="not_cancellable",
                )

            transaction.cancel()
            self._release(transaction, credit=True)
            self._uow.transactions.upsert(transaction)
            self._uow.commit()

        logger.info("Borrow cancelled transaction_id=%s", transaction_id)
        return transaction

    def expire(
            self,
            transaction_id: int,
            *,
            still_due: Callable[[Transaction], bool] | None = None,
    ) -> Transaction | None:
        """
        Hook for the expiry sweep. `still_due` re-checks the policy against the locked row;
        returns None (and changes nothing) if it no longer holds.

        An expired pending pickup gives its unit back. An expired active borrow keeps the
        unit debited: the item is still out and is written off.
        """
        with self._uow:
            transaction = self._lock_transaction(transaction_id)
            if still_due is not None and not still_due(transaction):
                return None

            previous = transaction.status
            try:
                transaction.expire()
            except InvalidTransition as e:
                raise ConflictError(str(e), code="invalid_transition") from e

            self._release(transaction, credit=previous is TransactionStatus.PENDING_PICKUP)
            self._uow.transactions.upsert(transaction)
            self._uow.commit()

        logger.warning("Transaction expired transaction_id=%s from=%s", transaction_id, previous.value)
        return transaction

    # -----------------------------
    # Hardware-driven transitions (caller's unit of work)
    # -----------------------------
    def confirm_pickup(self, transaction: Transaction) -> None:
        try:
            transaction.confirm_pickup(at=self._clock())
        except InvalidTransition as e:
            raise ConflictError(str(e), code="invalid_transition") from e

        self._uow.transactions.upsert(transaction)

    def confirm_return(self, transaction: Transaction) -> None:
        try:
            transaction.confirm_return(at=self._clock())
        except InvalidTransition as e:
            raise ConflictError(str(e), code="invalid_transition") from e

        self._release(transaction, credit=True)
        self._uow.transactions.upsert(transaction)

    # -----------------------------
    # Internal helpers
    # -----------------------------
    def _lock_transaction(self, transaction_id: int) -> Transaction:
        """Lock the transaction's locker, then the transaction itself, and re-read it."""
        transaction = self._uow.transactions.get(transaction_id)
        if transaction is None:
            raise NotFoundError("Transaction not found", code="transaction_not_found")

        if transaction.locker_id is not None:
            self._uow.lockers.get_for_update(transaction.locker_id)

        transaction = self._uow.transactions.get_for_update(transaction_id)
        if transaction is None:
            raise NotFoundError("Transaction not found", code="transaction_not_found")
        return transaction

    @staticmethod
    def _check_visible(transaction: Transaction | None, requester: AuthenticatedIdentity) -> None:
        """Students only see their own transactions; staff see all of them."""
        if transaction is None or (not requester.is_staff and transaction.user_id != requester.user_id):
            raise NotFoundError("Transaction not found", code="transaction_not_found")

    def _release(self, transaction: Transaction, *, credit: bool) -> None:
        if credit:
            self._ledger.credit(transaction.equipment_id)
        if transaction.locker_id is not None:
            self._registry.free(transaction.locker_id)
