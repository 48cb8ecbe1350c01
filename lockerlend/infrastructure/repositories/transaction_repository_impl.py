from __future__ import annotations

from datetime import datetime

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from lockerlend.core.entities.transaction import Transaction, TransactionDetails, TransactionStatus
from lockerlend.core.repositories.transaction_repository import TransactionRepository
from lockerlend.infrastructure.models.models import EquipmentModel, LockerModel, TransactionModel, UserModel


class TransactionRepositoryImpl(TransactionRepository):
    def __init__(self, db: Session):
        self.db = db

    def get(self, transaction_id: int) -> Transaction | None:
        row = self.db.get(TransactionModel, transaction_id)
        return self._to_entity(row) if row is not None else None

    def get_for_update(self, transaction_id: int) -> Transaction | None:
        row = self.db.execute(
            select(TransactionModel)
            .where(TransactionModel.transaction_id == transaction_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        return self._to_entity(row) if row is not None else None

    def find_at_locker(self, *, user_id: int, locker_id: int, status: TransactionStatus) -> Transaction | None:
        row = self.db.execute(
            select(TransactionModel)
            .where(TransactionModel.user_id == user_id)
            .where(TransactionModel.locker_id == locker_id)
            .where(TransactionModel.status == status)
            .order_by(TransactionModel.transaction_id)
            .limit(1)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars().first()
        return self._to_entity(row) if row is not None else None

    def add(self, transaction: Transaction) -> Transaction:
        row = TransactionModel()
        self._apply(row, transaction)
        self.db.add(row)
        self.db.flush()
        return self._to_entity(row)

    def upsert(self, transaction: Transaction) -> None:
        row = self.db.get(TransactionModel, transaction.transaction_id)
        if row is None:
            row = TransactionModel(transaction_id=transaction.transaction_id)

        self._apply(row, transaction)
        self.db.add(row)
        self.db.flush()

    def get_details(self, transaction_id: int) -> TransactionDetails | None:
        record = self.db.execute(
            self._details_query().where(TransactionModel.transaction_id == transaction_id)
        ).first()
        return self._to_details(record) if record is not None else None

    def list_details(
            self,
            *,
            user_id: int | None = None,
            statuses: frozenset[TransactionStatus] | None = None,
    ) -> list[TransactionDetails]:
        query = self._details_query()
        if user_id is not None:
            query = query.where(TransactionModel.user_id == user_id)
        if statuses is not None:
            query = query.where(TransactionModel.status.in_(sorted(statuses, key=lambda s: s.value)))
        query = query.order_by(TransactionModel.created_at.desc(), TransactionModel.transaction_id.desc())
        return [self._to_details(record) for record in self.db.execute(query)]

    def list_expiry_candidates(
            self,
            *,
            pickup_deadline: datetime,
            now: datetime,
            overdue_deadline: datetime,
    ) -> list[int]:
        stale_pickup = and_(
            TransactionModel.status == TransactionStatus.PENDING_PICKUP,
            or_(
                TransactionModel.created_at < pickup_deadline,
                and_(TransactionModel.due_date.is_not(None), TransactionModel.due_date < now),
            ),
        )
        overdue = and_(
            TransactionModel.status == TransactionStatus.ACTIVE,
            TransactionModel.due_date.is_not(None),
            TransactionModel.due_date < overdue_deadline,
        )
        query = (
            select(TransactionModel.transaction_id)
            .where(or_(stale_pickup, overdue))
            .order_by(TransactionModel.transaction_id)
        )
        return list(self.db.execute(query).scalars())

    @staticmethod
    def _details_query():
        return (
            select(
                TransactionModel,
                EquipmentModel.name,
                LockerModel.compartment_number,
                UserModel.sit_id,
                UserModel.name,
            )
            .join(EquipmentModel, TransactionModel.equipment_id == EquipmentModel.equipment_id)
            .join(UserModel, TransactionModel.user_id == UserModel.user_id)
            .outerjoin(LockerModel, TransactionModel.locker_id == LockerModel.locker_id)
        )

    def _to_details(self, record) -> TransactionDetails:
        row, equipment_name, compartment_number, sit_id, user_name = record
        return TransactionDetails(
            transaction=self._to_entity(row),
            equipment_name=equipment_name,
            compartment_number=compartment_number,
            sit_id=sit_id,
            user_name=user_name,
        )

    @staticmethod
    def _apply(row: TransactionModel, transaction: Transaction) -> None:
        row.user_id = transaction.user_id
        row.equipment_id = transaction.equipment_id
        row.locker_id = transaction.locker_id
        row.status = transaction.status
        row.due_date = transaction.due_date
        row.borrow_time = transaction.borrow_time
        row.return_time = transaction.return_time
        row.created_at = transaction.created_at

    @staticmethod
    def _to_entity(row: TransactionModel) -> Transaction:
        return Transaction(
            transaction_id=row.transaction_id,
            user_id=row.user_id,
            equipment_id=row.equipment_id,
            locker_id=row.locker_id,
            status=TransactionStatus(row.status) if not isinstance(row.status, TransactionStatus) else row.status,
            created_at=row.created_at,
            due_date=row.due_date,
            borrow_time=row.borrow_time,
            return_time=row.return_time,
        )
