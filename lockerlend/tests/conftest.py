from __future__ import annotations

from datetime import datetime, timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.orm import sessionmaker
from starlette.testclient import TestClient

from lockerlend.core.entities.locker import LockerStatus
from lockerlend.core.entities.transaction import OPEN_STATUSES, TransactionStatus
from lockerlend.core.entities.user import AuthenticatedIdentity, UserRole
from lockerlend.infrastructure.database import Base, build_engine
from lockerlend.infrastructure.models.models import EquipmentModel, LockerModel, TransactionModel, UserModel
from lockerlend.infrastructure.unit_of_work_impl import SqlAlchemyUnitOfWork


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class Store:
    """
    Seeds and inspects the database. Every call uses its own short-lived session so no
    transaction is left open on the shared in-memory connection.
    """

    def __init__(self, session_factory) -> None:
        self._session_factory = session_factory

    def _insert(self, row):
        with self._session_factory() as db:
            db.add(row)
            db.commit()
            return row

    def add_equipment(self, name: str = "Arduino Kit", *, total: int = 1, available: int | None = None) -> int:
        row = self._insert(
            EquipmentModel(
                name=name,
                category="electronics",
                total_units=total,
                available_units=total if available is None else available,
            )
        )
        return row.equipment_id

    def add_locker(self, compartment_number: int, *, bound_equipment_id: int | None = None,
                   status: LockerStatus = LockerStatus.AVAILABLE) -> int:
        row = self._insert(
            LockerModel(
                compartment_number=compartment_number,
                location="Building A",
                status=status,
                bound_equipment_id=bound_equipment_id,
            )
        )
        return row.locker_id

    def add_user(self, sit_id: str = "64130500001", *, rfid_uid: str | None = None,
                 role: UserRole = UserRole.STUDENT) -> AuthenticatedIdentity:
        row = self._insert(
            UserModel(
                sit_id=sit_id,
                name=f"User {sit_id}",
                email=f"{sit_id}@example.edu",
                role=role,
                rfid_uid=rfid_uid,
                created_at=datetime(2026, 1, 1),
            )
        )
        return AuthenticatedIdentity(user_id=row.user_id, sit_id=row.sit_id, role=row.role)

    def add_transaction(self, *, user_id: int, equipment_id: int, locker_id: int,
                        status: TransactionStatus, created_at: datetime, due_date: datetime | None = None) -> int:
        row = self._insert(
            TransactionModel(
                user_id=user_id,
                equipment_id=equipment_id,
                locker_id=locker_id,
                status=status,
                created_at=created_at,
                due_date=due_date,
            )
        )
        return row.transaction_id

    def equipment(self, equipment_id: int) -> EquipmentModel:
        with self._session_factory() as db:
            return db.get(EquipmentModel, equipment_id)

    def locker(self, locker_id: int) -> LockerModel:
        with self._session_factory() as db:
            return db.get(LockerModel, locker_id)

    def transaction(self, transaction_id: int) -> TransactionModel:
        with self._session_factory() as db:
            return db.get(TransactionModel, transaction_id)

    def transaction_count(self) -> int:
        with self._session_factory() as db:
            return len(db.execute(select(TransactionModel)).scalars().all())

    def assert_invariants(self) -> None:
        """Units stay within bounds; a locker is occupied iff exactly one open transaction holds it."""
        with self._session_factory() as db:
            for equipment in db.execute(select(EquipmentModel)).scalars():
                assert 0 <= equipment.available_units <= equipment.total_units

            for locker in db.execute(select(LockerModel)).scalars():
                holders = db.execute(
                    select(TransactionModel)
                    .where(TransactionModel.locker_id == locker.locker_id)
                    .where(TransactionModel.status.in_(list(OPEN_STATUSES)))
                ).scalars().all()
                assert len(holders) <= 1
                assert (locker.status == LockerStatus.OCCUPIED) == (len(holders) == 1)


@pytest.fixture()
def engine():
    from lockerlend.infrastructure.models import models  # noqa: F401

    engine = build_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def db(session_factory):
    db = session_factory()
    yield db
    db.close()


@pytest.fixture()
def uow(db) -> SqlAlchemyUnitOfWork:
    return SqlAlchemyUnitOfWork(db)


@pytest.fixture()
def store(session_factory) -> Store:
    return Store(session_factory)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 3, 2, 9, 0, 0))


@pytest.fixture()
def client(session_factory):
    """The real app, wired to the per-test database."""
    from lockerlend.main import app
    from lockerlend.presentation import routers

    def _override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[routers.get_db] = _override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
