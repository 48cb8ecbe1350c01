from __future__ import annotations

from lockerlend.core.entities.transaction import TransactionDetails
from lockerlend.core.entities.user import AuthenticatedIdentity
from lockerlend.core.errors import NotFoundError
from lockerlend.core.repositories.unit_of_work import UnitOfWork


class GetTransactionsUseCase:
    """History views. Transactions are never deleted, so these cover every borrow ever made."""

    def __init__(self, *, uow: UnitOfWork) -> None:
        self._uow = uow

    def get(self, *, transaction_id: int, requester: AuthenticatedIdentity) -> TransactionDetails:
        with self._uow:
            details = self._uow.transactions.get_details(transaction_id)
        if details is None or (
                not requester.is_staff and details.transaction.user_id != requester.user_id
        ):
            raise NotFoundError("Transaction not found", code="transaction_not_found")
        return details

    def list_all(self) -> list[TransactionDetails]:
        with self._uow:
            return self._uow.transactions.list_details()

    def list_for_user(self, *, sit_id: str) -> list[TransactionDetails]:
        with self._uow:
            user = self._uow.users.get_by_sit_id(sit_id)
            if user is None:
                raise NotFoundError("User not found", code="user_not_found")
            return self._uow.transactions.list_details(user_id=user.user_id)
