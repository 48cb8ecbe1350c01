from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from lockerlend.core.clock import Clock, utcnow
from lockerlend.core.entities.transaction import Transaction, TransactionStatus
from lockerlend.core.errors import ConflictError, TransientStoreError
from lockerlend.core.repositories.unit_of_work import UnitOfWork
from lockerlend.core.use_cases.reservation_state_machine import ReservationStateMachine

logger = logging.getLogger("lockerlend.expiry")


@dataclass(frozen=True, slots=True)
class ExpirySweepResult:
    expired: list[int] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)


class ExpireOverdueTransactionsUseCase:
    """
    Periodic sweep, outside the request-driven flow.

    A pending pickup expires when it was not collected within `pickup_window` or its due
    date has passed. An active borrow expires `overdue_grace` after its due date.
    Each transaction is expired in its own unit of work; one failure does not stop the sweep.
    """

    def __init__(
            self,
            *,
            uow: UnitOfWork,
            pickup_window: timedelta,
            overdue_grace: timedelta,
            clock: Clock = utcnow,
    ) -> None:
        self._uow = uow
        self._pickup_window = pickup_window
        self._overdue_grace = overdue_grace
        self._clock = clock
        self._state_machine = ReservationStateMachine(uow=uow, clock=clock)

    def execute(self) -> ExpirySweepResult:
        now = self._clock()

        with self._uow:
            candidates = self._uow.transactions.list_expiry_candidates(
                pickup_deadline=now - self._pickup_window,
                now=now,
                overdue_deadline=now - self._overdue_grace,
            )

        result = ExpirySweepResult()
        for transaction_id in candidates:
            try:
                expired = self._state_machine.expire(transaction_id, still_due=lambda t: self._is_due(t, now))
            except (ConflictError, TransientStoreError) as e:
                logger.error("Expiry skipped transaction_id=%s reason=%s", transaction_id, e.message)
                result.skipped.append(transaction_id)
                continue

            if expired is None:
                result.skipped.append(transaction_id)
            else:
                result.expired.append(transaction_id)

        return result

    def _is_due(self, transaction: Transaction, now: datetime) -> bool:
        if transaction.status is TransactionStatus.PENDING_PICKUP:
            if transaction.created_at < now - self._pickup_window:
                return True
            return transaction.due_date is not None and transaction.due_date < now
        if transaction.status is TransactionStatus.ACTIVE:
            return transaction.due_date is not None and transaction.due_date < now - self._overdue_grace
        return False
