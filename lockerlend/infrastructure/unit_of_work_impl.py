from __future__ import annotations

import logging

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session

from lockerlend.core.errors import ConflictError, TransientStoreError
from lockerlend.core.repositories.unit_of_work import UnitOfWork
from lockerlend.infrastructure.repositories.equipment_repository_impl import EquipmentRepositoryImpl
from lockerlend.infrastructure.repositories.locker_repository_impl import LockerRepositoryImpl
from lockerlend.infrastructure.repositories.transaction_repository_impl import TransactionRepositoryImpl
from lockerlend.infrastructure.repositories.user_repository_impl import UserRepositoryImpl

logger = logging.getLogger("lockerlend.store")


class SqlAlchemyUnitOfWork(UnitOfWork):
    """
    Unit of work over one SQLAlchemy Session. The session's transaction is the unit:
    repositories flush, only commit() makes the writes durable.

    Store failures are translated on the way out of the `with` block:
      - IntegrityError (a racing writer got there first) -> ConflictError
      - any other DBAPIError (lock timeout, lost connection) -> TransientStoreError
    The session is rolled back in both cases.
    """

    def __init__(self, db: Session) -> None:
        self._db = db
        self.equipment = EquipmentRepositoryImpl(db)
        self.lockers = LockerRepositoryImpl(db)
        self.users = UserRepositoryImpl(db)
        self.transactions = TransactionRepositoryImpl(db)

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.rollback()
        if exc_type is None:
            return False

        if issubclass(exc_type, IntegrityError):
            logger.warning("Unit of work rolled back on integrity error: %s", exc)
            raise ConflictError("Conflicting concurrent update, nothing was applied", code="concurrent_update") from exc
        if issubclass(exc_type, DBAPIError):
            logger.error("Unit of work rolled back on store error: %s", exc)
            raise TransientStoreError("Store unavailable, nothing was applied", code="store_unavailable") from exc
        return False

    def commit(self) -> None:
        self._db.commit()

    def rollback(self) -> None:
        self._db.rollback()
