from __future__ import annotations

import threading
from datetime import datetime

from sqlalchemy.orm import sessionmaker

from lockerlend.core.entities.locker import LockerStatus
from lockerlend.core.entities.transaction import TransactionStatus
from lockerlend.core.errors import ConflictError
from lockerlend.core.use_cases.access_decision import Decision
from lockerlend.core.use_cases.reservation_state_machine import ReservationStateMachine
from lockerlend.infrastructure.database import Base, build_engine
from lockerlend.infrastructure.unit_of_work_impl import SqlAlchemyUnitOfWork
from lockerlend.services.lending_service import decide_access_fail_closed
from lockerlend.tests.conftest import Store


def test_two_concurrent_borrows_of_the_last_unit_exactly_one_wins(tmp_path) -> None:
    engine = build_engine(f"sqlite+pysqlite:///{tmp_path / 'race.db'}", lock_timeout_seconds=10)
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    store = Store(factory)

    equipment_id = store.add_equipment(total=1)
    store.add_locker(1)
    store.add_locker(2)
    users = [store.add_user("64130500001"), store.add_user("64130500002")]

    barrier = threading.Barrier(len(users))
    outcomes: list[object] = []
    lock = threading.Lock()

    def _borrow(user) -> None:
        db = factory()
        try:
            machine = ReservationStateMachine(uow=SqlAlchemyUnitOfWork(db))
            barrier.wait()
            try:
                outcome = machine.create_borrow(requester=user, equipment_id=equipment_id)
            except ConflictError as e:
                outcome = e
            with lock:
                outcomes.append(outcome)
        finally:
            db.close()

    threads = [threading.Thread(target=_borrow, args=(user,)) for user in users]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    conflicts = [o for o in outcomes if isinstance(o, ConflictError)]
    successes = [o for o in outcomes if not isinstance(o, ConflictError)]
    assert len(successes) == 1
    assert len(conflicts) == 1
    assert conflicts[0].code == "exhausted"
    assert store.equipment(equipment_id).available_units == 0
    assert store.transaction_count() == 1
    store.assert_invariants()

    engine.dispose()


def test_concurrent_taps_at_one_locker_confirm_the_pickup_once(tmp_path) -> None:
    engine = build_engine(f"sqlite+pysqlite:///{tmp_path / 'taps.db'}", lock_timeout_seconds=10)
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    store = Store(factory)

    equipment_id = store.add_equipment(total=1, available=0)
    locker_id = store.add_locker(1, status=LockerStatus.OCCUPIED)
    user = store.add_user(rfid_uid="CARD-1")
    transaction_id = store.add_transaction(
        user_id=user.user_id,
        equipment_id=equipment_id,
        locker_id=locker_id,
        status=TransactionStatus.PENDING_PICKUP,
        created_at=datetime(2026, 3, 2, 9, 0),
    )

    taps = 4
    barrier = threading.Barrier(taps)
    decisions: list[Decision] = []
    lock = threading.Lock()

    def _tap() -> None:
        db = factory()
        try:
            barrier.wait()
            decision = decide_access_fail_closed("CARD-1", locker_id, db)
            with lock:
                decisions.append(decision)
        finally:
            db.close()

    threads = [threading.Thread(target=_tap) for _ in range(taps)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert len(decisions) == taps
    assert [d.decision for d in decisions].count(Decision.PICKUP) == 1
    denied = [d for d in decisions if d.decision is Decision.DENY]
    assert len(denied) == taps - 1
    assert all(d.code == "no_authorized_transaction" for d in denied)
    assert store.transaction(transaction_id).status == TransactionStatus.ACTIVE
    store.assert_invariants()

    engine.dispose()
