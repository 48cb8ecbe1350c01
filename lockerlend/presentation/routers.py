from __future__ import annotations

from fastapi import APIRouter, Depends, Header, HTTPException, Request, Response
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from lockerlend.core.entities.user import AuthenticatedIdentity
from lockerlend.core.errors import ConflictError, LendingError, NotFoundError, TransientStoreError, ValidationError
from lockerlend.infrastructure.database import SessionLocal
from lockerlend.schemas.models import (
    AccessDecision,
    BorrowCreated,
    BorrowRequest,
    CardAssignment,
    Equipment,
    Locker,
    ReturnRequest,
    TapRequest,
    Transaction,
    TransactionList,
    User,
    UserCreate,
)
from lockerlend.services.lending_service import (
    assign_card_service,
    authenticate_service,
    cancel_borrow_service,
    create_borrow_service,
    get_equipment_service,
    get_locker_service,
    get_transaction_service,
    get_user_service,
    hardware_access_service,
    list_equipment_service,
    list_lockers_service,
    list_transactions_service,
    list_user_transactions_service,
    list_users_service,
    register_user_service,
    request_return_service,
    rfid_check_service,
    rfid_scan_service,
)

router = APIRouter()

_STATUS_CODES: dict[type[LendingError], int] = {
    ValidationError: 422,
    NotFoundError: 404,
    ConflictError: 409,
    TransientStoreError: 503,
}


def get_db() -> Session:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _http_error(e: LendingError) -> HTTPException:
    status_code = next((code for cls, code in _STATUS_CODES.items() if isinstance(e, cls)), 500)
    return HTTPException(status_code=status_code, detail=e.as_detail())


def get_identity(
    x_authenticated_sit_id: str | None = Header(default=None),
    db: Session = Depends(get_db),
) -> AuthenticatedIdentity:
    """
    The gateway in front of this service verifies the caller's token and forwards
    the caller's SIT ID. No header, or a SIT ID nobody owns, is a 401.
    """
    unauthenticated = HTTPException(
        status_code=401,
        detail={"kind": "unauthenticated", "code": "invalid_identity", "message": "Authentication failed"},
    )
    if not x_authenticated_sit_id:
        raise unauthenticated
    try:
        return authenticate_service(x_authenticated_sit_id, db)
    except NotFoundError:
        raise unauthenticated
    except LendingError as e:
        raise _http_error(e)


# -----------------------------
# Transactions
# -----------------------------
@router.post("/transactions/borrow", response_model=BorrowCreated, status_code=201)
def post_transactions_borrow(
    body: BorrowRequest,
    identity: AuthenticatedIdentity = Depends(get_identity),
    db: Session = Depends(get_db),
) -> BorrowCreated:
    """
    Reserve one unit of equipment and allocate a locker (status pending_pickup)

    Returns:
      - 201 with the transaction and its compartment
      - 404 unknown equipment/user
      - 409 exhausted / no lockers available
      - 422 invalid due date
    """
    try:
        return create_borrow_service(identity, body, db)
    except LendingError as e:
        raise _http_error(e)


@router.post("/transactions/return", response_model=Transaction)
def post_transactions_return(
    body: ReturnRequest,
    identity: AuthenticatedIdentity = Depends(get_identity),
    db: Session = Depends(get_db),
) -> Transaction:
    """
    Ask to return an active borrow (status pending_return until the locker tap)
    """
    try:
        return request_return_service(identity, body, db)
    except LendingError as e:
        raise _http_error(e)


@router.post("/transactions/{transaction_id}/cancel", response_model=Transaction)
def post_transactions_cancel(
    transaction_id: int,
    identity: AuthenticatedIdentity = Depends(get_identity),
    db: Session = Depends(get_db),
) -> Transaction:
    """
    Cancel a borrow that has not been picked up yet
    """
    try:
        return cancel_borrow_service(identity, transaction_id, db)
    except LendingError as e:
        raise _http_error(e)


@router.get("/transactions", response_model=TransactionList)
def get_transactions(db: Session = Depends(get_db)) -> TransactionList:
    try:
        return list_transactions_service(db)
    except LendingError as e:
        raise _http_error(e)


@router.get("/transactions/user/{sit_id}", response_model=TransactionList)
def get_transactions_user_sit_id(sit_id: str, db: Session = Depends(get_db)) -> TransactionList:
    try:
        return list_user_transactions_service(sit_id, db)
    except LendingError as e:
        raise _http_error(e)


@router.get("/transactions/{transaction_id}", response_model=Transaction)
def get_transactions_transaction_id(
    transaction_id: int,
    identity: AuthenticatedIdentity = Depends(get_identity),
    db: Session = Depends(get_db),
) -> Transaction:
    try:
        return get_transaction_service(identity, transaction_id, db)
    except LendingError as e:
        raise _http_error(e)


# -----------------------------
# RFID
# -----------------------------
@router.post("/rfid/scan", response_model=AccessDecision)
def post_rfid_scan(body: TapRequest, response: Response, db: Session = Depends(get_db)) -> AccessDecision:
    """
    Interpret an RFID tap at a locker

    Returns:
      - 200 pickup / return
      - 403 deny
      - 503 deny because the backend failed (fail closed)
    """
    decision, backend_failed = rfid_scan_service(body, db)
    if decision.decision.value == "deny":
        response.status_code = 503 if backend_failed else 403
    return decision


@router.get("/rfid/check/{rfid_uid}", response_model=TransactionList)
def get_rfid_check_rfid_uid(rfid_uid: str, db: Session = Depends(get_db)) -> TransactionList:
    """
    Outstanding (pending_pickup, active, pending_return) transactions of a card's owner, newest first
    """
    try:
        return rfid_check_service(rfid_uid, db)
    except LendingError as e:
        raise _http_error(e)


@router.post("/locker/access", response_class=PlainTextResponse)
async def post_locker_access(request: Request, db: Session = Depends(get_db)) -> PlainTextResponse:
    """
    Serial bridge endpoint: answers GRANT or DENY and nothing else
    """
    try:
        payload = await request.json()
    except ValueError:
        payload = None
    token = await run_in_threadpool(hardware_access_service, payload, db)
    return PlainTextResponse(token)


# -----------------------------
# Equipment & lockers
# -----------------------------
@router.get("/equipment", response_model=list[Equipment])
def get_equipment(db: Session = Depends(get_db)) -> list[Equipment]:
    try:
        return list_equipment_service(db)
    except LendingError as e:
        raise _http_error(e)


@router.get("/equipment/{equipment_id}", response_model=Equipment)
def get_equipment_equipment_id(equipment_id: int, db: Session = Depends(get_db)) -> Equipment:
    try:
        return get_equipment_service(equipment_id, db)
    except LendingError as e:
        raise _http_error(e)


@router.get("/lockers", response_model=list[Locker])
def get_lockers(db: Session = Depends(get_db)) -> list[Locker]:
    try:
        return list_lockers_service(db)
    except LendingError as e:
        raise _http_error(e)


@router.get("/lockers/available", response_model=list[Locker])
def get_lockers_available(db: Session = Depends(get_db)) -> list[Locker]:
    try:
        return list_lockers_service(db, available_only=True)
    except LendingError as e:
        raise _http_error(e)


@router.get("/lockers/{compartment_number}", response_model=Locker)
def get_lockers_compartment_number(compartment_number: int, db: Session = Depends(get_db)) -> Locker:
    try:
        return get_locker_service(compartment_number, db)
    except LendingError as e:
        raise _http_error(e)


# -----------------------------
# Users
# -----------------------------
@router.post("/users", response_model=User, status_code=201)
def post_users(body: UserCreate, db: Session = Depends(get_db)) -> User:
    """
    Register a user; the role is derived from the SIT ID
    """
    try:
        return register_user_service(body, db)
    except LendingError as e:
        raise _http_error(e)


@router.get("/users", response_model=list[User])
def get_users(db: Session = Depends(get_db)) -> list[User]:
    try:
        return list_users_service(db)
    except LendingError as e:
        raise _http_error(e)


@router.get("/users/{sit_id}", response_model=User)
def get_users_sit_id(sit_id: str, db: Session = Depends(get_db)) -> User:
    try:
        return get_user_service(sit_id, db)
    except LendingError as e:
        raise _http_error(e)


@router.put("/users/{sit_id}/rfid", response_model=User)
def put_users_sit_id_rfid(sit_id: str, body: CardAssignment, db: Session = Depends(get_db)) -> User:
    """
    Register (or replace) the RFID card of a user
    """
    try:
        return assign_card_service(sit_id, body, db)
    except LendingError as e:
        raise _http_error(e)
