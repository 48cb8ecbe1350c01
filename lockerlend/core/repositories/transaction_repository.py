from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from lockerlend.core.entities.transaction import Transaction, TransactionDetails, TransactionStatus


class TransactionRepository(ABC):
    @abstractmethod
    def get(self, transaction_id: int) -> Transaction | None:
        raise NotImplementedError

    @abstractmethod
    def get_for_update(self, transaction_id: int) -> Transaction | None:
        raise NotImplementedError

    @abstractmethod
    def find_at_locker(self, *, user_id: int, locker_id: int, status: TransactionStatus) -> Transaction | None:
        """The (locked) transaction of `user_id` at `locker_id` in `status`, if any."""
        raise NotImplementedError

    @abstractmethod
    def add(self, transaction: Transaction) -> Transaction:
        """Insert and return the transaction with its assigned id."""
        raise NotImplementedError

    @abstractmethod
    def upsert(self, transaction: Transaction) -> None:
        raise NotImplementedError

    @abstractmethod
    def get_details(self, transaction_id: int) -> TransactionDetails | None:
        raise NotImplementedError

    @abstractmethod
    def list_details(
            self,
            *,
            user_id: int | None = None,
            statuses: frozenset[TransactionStatus] | None = None,
    ) -> list[TransactionDetails]:
        """Most recent first, optionally narrowed to one user and/or a set of statuses."""
        raise NotImplementedError

    @abstractmethod
    def list_expiry_candidates(
            self,
            *,
            pickup_deadline: datetime,
            now: datetime,
            overdue_deadline: datetime,
    ) -> list[int]:
        """
        Ids of pending_pickup transactions created before `pickup_deadline` or due before `now`,
        and of active transactions due before `overdue_deadline`.
        """
        raise NotImplementedError
