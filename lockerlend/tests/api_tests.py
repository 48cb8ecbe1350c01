from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import pytest
from fastapi import FastAPI
from starlette.testclient import TestClient

import lockerlend.presentation.routers as routers
from lockerlend.core.entities.user import AuthenticatedIdentity, UserRole
from lockerlend.schemas.models import AccessDecision, BorrowCreated, TapDetails, Transaction, TransactionList

STUDENT = AuthenticatedIdentity(user_id=7, sit_id="64130500007", role=UserRole.STUDENT)
AUTH = {"X-Authenticated-Sit-Id": STUDENT.sit_id}


class _DummyDB:
    """A minimal stand-in for a SQLAlchemy Session (we never call it in router tests)."""


@pytest.fixture()
def app(monkeypatch: pytest.MonkeyPatch) -> FastAPI:
    """
    Build a tiny FastAPI app with ONLY the router under test.

    We override the DB dependency so tests don't touch the real SessionLocal / SQLite,
    and resolve every forwarded SIT ID to the same student.
    """
    test_app = FastAPI()
    test_app.include_router(routers.router)

    def _override_get_db():
        yield _DummyDB()

    def _fake_authenticate_service(credential: str, db):
        if credential != STUDENT.sit_id:
            raise routers.NotFoundError("User not found", code="user_not_found")
        return STUDENT

    test_app.dependency_overrides[routers.get_db] = _override_get_db
    monkeypatch.setattr(routers, "authenticate_service", _fake_authenticate_service)
    return test_app


@pytest.fixture()
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


def _transaction(**overrides: Any) -> Transaction:
    base = {
        "transaction_id": 1,
        "user_id": STUDENT.user_id,
        "equipment_id": 3,
        "locker_id": 2,
        "status": "active",
        "created_at": datetime(2026, 3, 2, 9, 0),
        "equipment_name": "Arduino Kit",
        "compartment_number": 2,
    }
    base.update(overrides)
    return Transaction(**base)


def test_borrow_without_identity_header_returns_401(client: TestClient) -> None:
    r = client.post("/transactions/borrow", json={"equipment_id": 3})
    assert r.status_code == 401
    assert r.json()["detail"]["code"] == "invalid_identity"


def test_borrow_with_unknown_sit_id_returns_401(client: TestClient) -> None:
    r = client.post("/transactions/borrow", json={"equipment_id": 3}, headers={"X-Authenticated-Sit-Id": "1"})
    assert r.status_code == 401


def test_borrow_created_returns_201(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    def _fake_create_borrow_service(identity, body, db):
        assert identity == STUDENT
        return BorrowCreated(
            transaction_id=11,
            status="pending_pickup",
            equipment_name="Arduino Kit",
            compartment_number=4,
            due_date=body.due_date,
        )

    monkeypatch.setattr(routers, "create_borrow_service", _fake_create_borrow_service)

    due = datetime(2026, 3, 9, 9, 0, tzinfo=timezone.utc).isoformat()
    r = client.post("/transactions/borrow", json={"equipment_id": 3, "due_date": due}, headers=AUTH)
    assert r.status_code == 201
    assert r.json()["compartment_number"] == 4
    assert r.json()["status"] == "pending_pickup"


@pytest.mark.parametrize(
    "error, status_code",
    [
        (routers.ConflictError("Equipment not available", code="exhausted"), 409),
        (routers.NotFoundError("Equipment not found", code="equipment_not_found"), 404),
        (routers.ValidationError("due_date must be in the future", code="invalid_due_date"), 422),
        (routers.TransientStoreError("Store unavailable, nothing was applied", code="store_unavailable"), 503),
    ],
)
def test_borrow_errors_map_to_status_codes(
        client: TestClient, monkeypatch: pytest.MonkeyPatch, error, status_code: int
) -> None:
    def _fake_create_borrow_service(identity, body, db):
        raise error

    monkeypatch.setattr(routers, "create_borrow_service", _fake_create_borrow_service)

    r = client.post("/transactions/borrow", json={"equipment_id": 3}, headers=AUTH)
    assert r.status_code == status_code
    assert r.json()["detail"] == error.as_detail()


def test_return_request_before_pickup_returns_409_with_message(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    def _fake_request_return_service(identity, body, db):
        raise routers.ConflictError("Cannot return equipment that has not been picked up yet", code="not_yet_picked_up")

    monkeypatch.setattr(routers, "request_return_service", _fake_request_return_service)

    r = client.post("/transactions/return", json={"transaction_id": 1}, headers=AUTH)
    assert r.status_code == 409
    assert r.json()["detail"]["message"] == "Cannot return equipment that has not been picked up yet"


def test_cancel_returns_transaction(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    def _fake_cancel_borrow_service(identity, transaction_id, db):
        return _transaction(transaction_id=transaction_id, status="cancelled")

    monkeypatch.setattr(routers, "cancel_borrow_service", _fake_cancel_borrow_service)

    r = client.post("/transactions/5/cancel", headers=AUTH)
    assert r.status_code == 200
    assert r.json()["status"] == "cancelled"


def test_user_transactions_200(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    def _fake_list_user_transactions_service(sit_id: str, db):
        return TransactionList(count=1, data=[_transaction(sit_id=sit_id)])

    monkeypatch.setattr(routers, "list_user_transactions_service", _fake_list_user_transactions_service)

    r = client.get("/transactions/user/64130500007")
    assert r.status_code == 200
    assert r.json()["count"] == 1
    assert r.json()["data"][0]["sit_id"] == "64130500007"


@pytest.mark.parametrize(
    "decision, backend_failed, status_code",
    [
        ("pickup", False, 200),
        ("return", False, 200),
        ("deny", False, 403),
        ("deny", True, 503),
    ],
)
def test_rfid_scan_status_codes(
        client: TestClient, monkeypatch: pytest.MonkeyPatch, decision: str, backend_failed: bool, status_code: int
) -> None:
    def _fake_rfid_scan_service(body, db):
        details = None if decision == "deny" else TapDetails(transaction_id=1, equipment_name="Arduino Kit")
        return AccessDecision(decision=decision, reason="because", details=details), backend_failed

    monkeypatch.setattr(routers, "rfid_scan_service", _fake_rfid_scan_service)

    r = client.post("/rfid/scan", json={"rfid_uid": "CARD-1", "locker_id": 2})
    assert r.status_code == status_code
    assert r.json()["decision"] == decision


def test_rfid_scan_rejects_blank_card(client: TestClient) -> None:
    r = client.post("/rfid/scan", json={"rfid_uid": "", "locker_id": 2})
    assert r.status_code == 422


def test_locker_access_answers_plain_token(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    seen = []

    def _fake_hardware_access_service(payload, db):
        seen.append(payload)
        return "GRANT"

    monkeypatch.setattr(routers, "hardware_access_service", _fake_hardware_access_service)

    r = client.post("/locker/access", json={"rfid_uid": "CARD-1", "locker_id": 2})
    assert r.status_code == 200
    assert r.text == "GRANT"
    assert seen == [{"rfid_uid": "CARD-1", "locker_id": 2}]


def test_locker_access_with_garbage_body_still_answers(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(routers, "hardware_access_service", lambda payload, db: "DENY" if payload is None else "GRANT")

    r = client.post("/locker/access", content=b"not json", headers={"Content-Type": "application/json"})
    assert r.status_code == 200
    assert r.text == "DENY"


def test_get_locker_not_found_maps_to_404(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    def _fake_get_locker_service(compartment_number: int, db):
        raise routers.NotFoundError("Locker not found", code="locker_not_found")

    monkeypatch.setattr(routers, "get_locker_service", _fake_get_locker_service)

    r = client.get("/lockers/99")
    assert r.status_code == 404
    assert r.json()["detail"]["code"] == "locker_not_found"


def test_lockers_available_route_is_not_shadowed_by_compartment_route(
        client: TestClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    calls = []

    def _fake_list_lockers_service(db, *, available_only: bool = False):
        calls.append(available_only)
        return []

    monkeypatch.setattr(routers, "list_lockers_service", _fake_list_lockers_service)

    r = client.get("/lockers/available")
    assert r.status_code == 200
    assert calls == [True]


def test_register_user_conflict_maps_to_409(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    def _fake_register_user_service(body, db):
        raise routers.ConflictError("User with this SIT ID or email already exists", code="duplicate")

    monkeypatch.setattr(routers, "register_user_service", _fake_register_user_service)

    r = client.post("/users", json={"sit_id": "64130500007", "name": "Ploy", "email": "ploy@example.edu"})
    assert r.status_code == 409
