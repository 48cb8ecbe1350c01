from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from lockerlend.core.entities.equipment import Equipment as CoreEquipment
from lockerlend.core.entities.locker import Locker as CoreLocker
from lockerlend.core.entities.transaction import TransactionDetails
from lockerlend.core.entities.user import AuthenticatedIdentity
from lockerlend.core.entities.user import User as CoreUser
from lockerlend.core.errors import LendingError
from lockerlend.core.use_cases.access_decision import AccessDecision as CoreAccessDecision
from lockerlend.core.use_cases.access_decision import AccessDecisionProtocol
from lockerlend.core.use_cases.expire_overdue_transactions import ExpireOverdueTransactionsUseCase
from lockerlend.core.use_cases.get_equipment import GetEquipmentUseCase
from lockerlend.core.use_cases.get_lockers import GetLockersUseCase
from lockerlend.core.use_cases.get_transactions import GetTransactionsUseCase
from lockerlend.core.use_cases.manage_users import ManageUsersUseCase
from lockerlend.core.use_cases.reservation_state_machine import ReservationStateMachine
from lockerlend.infrastructure.identity_provider_impl import GatewayIdentityProvider
from lockerlend.infrastructure.unit_of_work_impl import SqlAlchemyUnitOfWork
from lockerlend.schemas.models import (
    AccessDecision,
    BorrowCreated,
    BorrowRequest,
    CardAssignment,
    Equipment,
    Locker,
    ReturnRequest,
    TapDetails,
    TapRequest,
    Transaction,
    TransactionList,
    User,
    UserCreate,
)

logger = logging.getLogger("lockerlend.access")

# Deny codes produced when the decision could not be computed at all.
STORE_FAILURE_CODES = frozenset({"store_unavailable", "internal_error"})


def _settings():
    from lockerlend.infrastructure.config import settings
    return settings


def _to_transaction(details: TransactionDetails) -> Transaction:
    t = details.transaction
    return Transaction(
        transaction_id=t.transaction_id,
        user_id=t.user_id,
        equipment_id=t.equipment_id,
        locker_id=t.locker_id,
        status=t.status.value,
        due_date=t.due_date,
        borrow_time=t.borrow_time,
        return_time=t.return_time,
        created_at=t.created_at,
        equipment_name=details.equipment_name,
        compartment_number=details.compartment_number,
        sit_id=details.sit_id,
        user_name=details.user_name,
    )


def _to_transaction_list(rows: list[TransactionDetails]) -> TransactionList:
    return TransactionList(count=len(rows), data=[_to_transaction(row) for row in rows])


def _to_equipment(equipment: CoreEquipment) -> Equipment:
    return Equipment(
        equipment_id=equipment.equipment_id,
        name=equipment.name,
        category=equipment.category,
        description=equipment.description,
        total_units=equipment.total_units,
        available_units=equipment.available_units,
    )


def _to_locker(locker: CoreLocker) -> Locker:
    return Locker(
        locker_id=locker.locker_id,
        compartment_number=locker.compartment_number,
        location=locker.location,
        status=locker.status.value,
        bound_equipment_id=locker.bound_equipment_id,
        current_equipment_id=locker.current_equipment_id,
    )


def _to_user(user: CoreUser) -> User:
    return User(
        user_id=user.user_id,
        sit_id=user.sit_id,
        name=user.name,
        email=user.email,
        role=user.role.value,
        has_card=user.rfid_uid is not None,
        created_at=user.created_at,
    )


def _to_access_decision(decision: CoreAccessDecision) -> AccessDecision:
    details = None
    if decision.transaction_id is not None:
        details = TapDetails(
            transaction_id=decision.transaction_id,
            equipment_name=decision.equipment_name,
            compartment_number=decision.compartment_number,
            due_date=decision.due_date,
        )
    return AccessDecision(decision=decision.decision.value, reason=decision.reason, details=details)


def _users_use_case(db: Session) -> ManageUsersUseCase:
    return ManageUsersUseCase(uow=SqlAlchemyUnitOfWork(db), staff_sit_id_max=_settings().staff_sit_id_max)


# -----------------------------
# Identity
# -----------------------------
def authenticate_service(credential: str, db: Session) -> AuthenticatedIdentity:
    return GatewayIdentityProvider(uow=SqlAlchemyUnitOfWork(db)).authenticate(credential)


# -----------------------------
# Reservation lifecycle
# -----------------------------
def create_borrow_service(identity: AuthenticatedIdentity, body: BorrowRequest, db: Session) -> BorrowCreated:
    state_machine = ReservationStateMachine(uow=SqlAlchemyUnitOfWork(db))
    result = state_machine.create_borrow(requester=identity, equipment_id=body.equipment_id, due_date=body.due_date)

    return BorrowCreated(
        transaction_id=result.transaction.transaction_id,
        status=result.transaction.status.value,
        equipment_name=result.equipment_name,
        compartment_number=result.compartment_number,
        due_date=result.transaction.due_date,
    )


def request_return_service(identity: AuthenticatedIdentity, body: ReturnRequest, db: Session) -> Transaction:
    state_machine = ReservationStateMachine(uow=SqlAlchemyUnitOfWork(db))
    details = state_machine.request_return(transaction_id=body.transaction_id, requester=identity)
    return _to_transaction(details)


def cancel_borrow_service(identity: AuthenticatedIdentity, transaction_id: int, db: Session) -> Transaction:
    uow = SqlAlchemyUnitOfWork(db)
    ReservationStateMachine(uow=uow).cancel(transaction_id=transaction_id, requester=identity)
    details = GetTransactionsUseCase(uow=uow).get(transaction_id=transaction_id, requester=identity)
    return _to_transaction(details)


def get_transaction_service(identity: AuthenticatedIdentity, transaction_id: int, db: Session) -> Transaction:
    details = GetTransactionsUseCase(uow=SqlAlchemyUnitOfWork(db)).get(
        transaction_id=transaction_id,
        requester=identity,
    )
    return _to_transaction(details)


def list_transactions_service(db: Session) -> TransactionList:
    return _to_transaction_list(GetTransactionsUseCase(uow=SqlAlchemyUnitOfWork(db)).list_all())


def list_user_transactions_service(sit_id: str, db: Session) -> TransactionList:
    return _to_transaction_list(GetTransactionsUseCase(uow=SqlAlchemyUnitOfWork(db)).list_for_user(sit_id=sit_id))


# -----------------------------
# RFID taps
# -----------------------------
def decide_access_fail_closed(rfid_uid: str, locker_id: int, db: Session) -> CoreAccessDecision:
    """
    Run the access decision protocol; any failure becomes a deny.
    A malfunctioning backend must never open a locker.
    """
    protocol = AccessDecisionProtocol(uow=SqlAlchemyUnitOfWork(db))
    try:
        return protocol.decide(card_id=rfid_uid, locker_id=locker_id)
    except LendingError as e:
        logger.error("Tap denied on %s error locker_id=%s: %s", e.kind, locker_id, e.message)
        code = "store_unavailable" if e.kind == "transient_store" else e.code
        return CoreAccessDecision.deny(e.message, code=code)
    except SQLAlchemyError:
        logger.exception("Tap denied, store failure locker_id=%s", locker_id)
        return CoreAccessDecision.deny("Access service unavailable", code="store_unavailable")
    except Exception:
        logger.exception("Tap denied, unexpected failure locker_id=%s", locker_id)
        return CoreAccessDecision.deny("Access service unavailable", code="internal_error")


def rfid_scan_service(body: TapRequest, db: Session) -> tuple[AccessDecision, bool]:
    """Returns the decision and whether it was forced by a backend failure."""
    decision = decide_access_fail_closed(body.rfid_uid, body.locker_id, db)
    return _to_access_decision(decision), decision.code in STORE_FAILURE_CODES


def hardware_access_service(payload: Any, db: Session) -> str:
    """
    Adapter for the serial-connected actuator: the whole answer is one literal token.
    Anything that is not a well-formed tap is a DENY.
    """
    try:
        tap = TapRequest.model_validate(payload)
    except ValueError:
        logger.warning("Hardware tap denied: malformed payload")
        return "DENY"

    decision = decide_access_fail_closed(tap.rfid_uid, tap.locker_id, db)
    return "GRANT" if decision.granted else "DENY"


def rfid_check_service(rfid_uid: str, db: Session) -> TransactionList:
    protocol = AccessDecisionProtocol(uow=SqlAlchemyUnitOfWork(db))
    return _to_transaction_list(protocol.open_transactions_for_card(rfid_uid))


# -----------------------------
# Catalog
# -----------------------------
def list_equipment_service(db: Session) -> list[Equipment]:
    return [_to_equipment(e) for e in GetEquipmentUseCase(uow=SqlAlchemyUnitOfWork(db)).list_all()]


def get_equipment_service(equipment_id: int, db: Session) -> Equipment:
    return _to_equipment(GetEquipmentUseCase(uow=SqlAlchemyUnitOfWork(db)).execute(equipment_id=equipment_id))


def list_lockers_service(db: Session, *, available_only: bool = False) -> list[Locker]:
    lockers = GetLockersUseCase(uow=SqlAlchemyUnitOfWork(db)).list_all(available_only=available_only)
    return [_to_locker(locker) for locker in lockers]


def get_locker_service(compartment_number: int, db: Session) -> Locker:
    use_case = GetLockersUseCase(uow=SqlAlchemyUnitOfWork(db))
    return _to_locker(use_case.by_compartment(compartment_number=compartment_number))


# -----------------------------
# Users
# -----------------------------
def register_user_service(body: UserCreate, db: Session) -> User:
    return _to_user(_users_use_case(db).register(sit_id=body.sit_id, name=body.name, email=body.email))


def assign_card_service(sit_id: str, body: CardAssignment, db: Session) -> User:
    return _to_user(_users_use_case(db).assign_card(sit_id=sit_id, rfid_uid=body.rfid_uid))


def get_user_service(sit_id: str, db: Session) -> User:
    return _to_user(_users_use_case(db).get(sit_id=sit_id))


def list_users_service(db: Session) -> list[User]:
    return [_to_user(user) for user in _users_use_case(db).list_all()]


# -----------------------------
# Expiry sweep
# -----------------------------
def run_expiry_sweep_service(db: Session) -> dict[str, list[int]]:
    settings = _settings()
    use_case = ExpireOverdueTransactionsUseCase(
        uow=SqlAlchemyUnitOfWork(db),
        pickup_window=timedelta(minutes=settings.pickup_window_minutes),
        overdue_grace=timedelta(hours=settings.overdue_grace_hours),
    )
    result = use_case.execute()
    return {"expired": result.expired, "skipped": result.skipped}
