from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from lockerlend.core.clock import Clock, utcnow
from lockerlend.core.entities.transaction import OPEN_STATUSES, Transaction, TransactionDetails, TransactionStatus
from lockerlend.core.errors import ValidationError
from lockerlend.core.repositories.unit_of_work import UnitOfWork
from lockerlend.core.use_cases.reservation_state_machine import ReservationStateMachine

logger = logging.getLogger("lockerlend.access")


class Decision(str, Enum):
    PICKUP = "pickup"
    RETURN = "return"
    DENY = "deny"


@dataclass(frozen=True, slots=True)
class AccessDecision:
    decision: Decision
    reason: str | None = None
    code: str | None = None
    transaction_id: int | None = None
    equipment_name: str | None = None
    compartment_number: int | None = None
    due_date: datetime | None = None

    @property
    def granted(self) -> bool:
        return self.decision is not Decision.DENY

    @classmethod
    def deny(cls, reason: str, *, code: str) -> AccessDecision:
        return cls(decision=Decision.DENY, reason=reason, code=code)


class AccessDecisionProtocol:
    """
    Interprets one RFID tap (card, locker) as pickup, return or deny and drives the
    reservation state machine accordingly, all in one unit of work.

    Evaluation order, first match wins:
      1. unknown card                                  -> deny
      2. user has a pending_pickup at this locker      -> pickup
      3. user has a pending_return at this locker      -> return
      4. anything else                                 -> deny

    The locker row is locked before transactions are read, so two taps at the same
    locker are serialized and the second sees the first one's outcome.
    """

    def __init__(self, *, uow: UnitOfWork, clock: Clock = utcnow) -> None:
        self._uow = uow
        self._state_machine = ReservationStateMachine(uow=uow, clock=clock)

    def decide(self, *, card_id: str, locker_id: int) -> AccessDecision:
        if not card_id or not card_id.strip():
            raise ValidationError("Missing required field: rfid_uid", code="missing_card_id")

        with self._uow:
            user = self._uow.users.get_by_rfid_uid(card_id.strip())
            if user is None:
                logger.warning("Tap denied: unregistered card at locker_id=%s", locker_id)
                return AccessDecision.deny("Unauthorized RFID card", code="unauthorized_card")

            if self._uow.lockers.get_for_update(locker_id) is not None:
                pickup = self._find(user.user_id, locker_id, TransactionStatus.PENDING_PICKUP)
                if pickup is not None:
                    self._state_machine.confirm_pickup(pickup)
                    decision = self._granted(Decision.PICKUP, pickup, due_date=pickup.due_date)
                    self._uow.commit()
                    logger.info("Pickup confirmed transaction_id=%s user_id=%s", pickup.transaction_id, user.user_id)
                    return decision

                returning = self._find(user.user_id, locker_id, TransactionStatus.PENDING_RETURN)
                if returning is not None:
                    self._state_machine.confirm_return(returning)
                    decision = self._granted(Decision.RETURN, returning)
                    self._uow.commit()
                    logger.info(
                        "Return confirmed transaction_id=%s user_id=%s", returning.transaction_id, user.user_id
                    )
                    return decision

        logger.warning("Tap denied: no authorized transaction user_id=%s locker_id=%s", user.user_id, locker_id)
        return AccessDecision.deny("No authorized transaction for this locker", code="no_authorized_transaction")

    def open_transactions_for_card(self, card_id: str) -> list[TransactionDetails]:
        """Read only. An unknown card simply has nothing outstanding."""
        with self._uow:
            user = self._uow.users.get_by_rfid_uid(card_id.strip())
            if user is None:
                return []
            return self._uow.transactions.list_details(user_id=user.user_id, statuses=OPEN_STATUSES)

    def _find(self, user_id: int, locker_id: int, status: TransactionStatus) -> Transaction | None:
        return self._uow.transactions.find_at_locker(user_id=user_id, locker_id=locker_id, status=status)

    def _granted(self, decision: Decision, transaction: Transaction, *, due_date: datetime | None = None) -> AccessDecision:
        equipment = self._uow.equipment.get(transaction.equipment_id)
        locker = self._uow.lockers.get(transaction.locker_id)
        return AccessDecision(
            decision=decision,
            transaction_id=transaction.transaction_id,
            equipment_name=equipment.name if equipment else None,
            compartment_number=locker.compartment_number if locker else None,
            due_date=due_date,
        )
