from __future__ import annotations

from datetime import datetime, timedelta, timezone

from starlette.testclient import TestClient


def _register(client: TestClient, sit_id: str, card: str | None = None) -> dict:
    r = client.post("/users", json={"sit_id": sit_id, "name": f"User {sit_id}", "email": f"{sit_id}@example.edu"})
    assert r.status_code == 201
    if card is not None:
        r = client.put(f"/users/{sit_id}/rfid", json={"rfid_uid": card})
        assert r.status_code == 200
        assert r.json()["has_card"] is True
    return r.json()


def test_borrow_pickup_return_round_trip(client: TestClient, store) -> None:
    equipment_id = store.add_equipment("Logic Analyzer", total=1)
    locker_id = store.add_locker(1)
    user = _register(client, "64130500001", card="CARD-1")
    assert user["role"] == "student"
    auth = {"X-Authenticated-Sit-Id": "64130500001"}
    due = (datetime.now(timezone.utc) + timedelta(days=7)).isoformat()

    r = client.post("/transactions/borrow", json={"equipment_id": equipment_id, "due_date": due}, headers=auth)
    assert r.status_code == 201
    created = r.json()
    assert created["status"] == "pending_pickup"
    assert created["compartment_number"] == 1
    transaction_id = created["transaction_id"]

    assert client.get("/lockers/available").json() == []
    assert client.get(f"/equipment/{equipment_id}").json()["available_units"] == 0

    # the wrong card never opens the locker
    r = client.post("/rfid/scan", json={"rfid_uid": "CARD-X", "locker_id": locker_id})
    assert r.status_code == 403
    assert r.json()["decision"] == "deny"

    r = client.post("/locker/access", json={"rfid_uid": "CARD-1", "locker_id": locker_id})
    assert r.text == "GRANT"
    r = client.post("/rfid/scan", json={"rfid_uid": "CARD-1", "locker_id": locker_id})
    assert r.status_code == 403

    r = client.post("/transactions/return", json={"transaction_id": transaction_id}, headers=auth)
    assert r.status_code == 200
    assert r.json()["status"] == "pending_return"

    outstanding = client.get("/rfid/check/CARD-1").json()
    assert outstanding["count"] == 1
    assert outstanding["data"][0]["status"] == "pending_return"

    r = client.post("/rfid/scan", json={"rfid_uid": "CARD-1", "locker_id": locker_id})
    assert r.status_code == 200
    assert r.json()["decision"] == "return"
    assert r.json()["details"]["equipment_name"] == "Logic Analyzer"

    r = client.get(f"/transactions/{transaction_id}", headers=auth)
    assert r.json()["status"] == "completed"
    assert r.json()["return_time"] is not None
    assert client.get(f"/equipment/{equipment_id}").json()["available_units"] == 1
    assert client.get("/lockers/1").json()["status"] == "available"
    assert client.get("/rfid/check/CARD-1").json() == {"count": 0, "data": []}
    store.assert_invariants()


def test_other_students_transaction_is_invisible(client: TestClient, store) -> None:
    equipment_id = store.add_equipment(total=1)
    store.add_locker(1)
    _register(client, "64130500001")
    _register(client, "64130500002")
    _register(client, "1042")

    r = client.post(
        "/transactions/borrow", json={"equipment_id": equipment_id}, headers={"X-Authenticated-Sit-Id": "64130500001"}
    )
    transaction_id = r.json()["transaction_id"]

    r = client.get(f"/transactions/{transaction_id}", headers={"X-Authenticated-Sit-Id": "64130500002"})
    assert r.status_code == 404
    r = client.post(f"/transactions/{transaction_id}/cancel", headers={"X-Authenticated-Sit-Id": "64130500002"})
    assert r.status_code == 404

    r = client.post(f"/transactions/{transaction_id}/cancel", headers={"X-Authenticated-Sit-Id": "1042"})
    assert r.status_code == 200
    assert r.json()["status"] == "cancelled"


def test_borrow_when_nothing_is_left_is_409(client: TestClient, store) -> None:
    equipment_id = store.add_equipment(total=1)
    store.add_locker(1)
    store.add_locker(2)
    _register(client, "64130500001")
    auth = {"X-Authenticated-Sit-Id": "64130500001"}

    assert client.post("/transactions/borrow", json={"equipment_id": equipment_id}, headers=auth).status_code == 201
    r = client.post("/transactions/borrow", json={"equipment_id": equipment_id}, headers=auth)

    assert r.status_code == 409
    assert r.json()["detail"]["code"] == "exhausted"
    assert client.get("/transactions").json()["count"] == 1


def test_requests_without_identity_are_401(client: TestClient, store) -> None:
    equipment_id = store.add_equipment()
    store.add_locker(1)

    assert client.post("/transactions/borrow", json={"equipment_id": equipment_id}).status_code == 401
    r = client.post(
        "/transactions/borrow", json={"equipment_id": equipment_id}, headers={"X-Authenticated-Sit-Id": "64130599999"}
    )
    assert r.status_code == 401
    assert store.transaction_count() == 0


def test_unknown_card_check_is_empty(client: TestClient) -> None:
    assert client.get("/rfid/check/NOBODY").json() == {"count": 0, "data": []}


def test_staff_range_sit_id_registers_as_staff(client: TestClient) -> None:
    assert _register(client, "1042")["role"] == "staff"
    assert client.get("/users/1042").json()["has_card"] is False
    assert client.get("/users/64130599999").status_code == 404
