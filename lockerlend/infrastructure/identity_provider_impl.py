from __future__ import annotations

from lockerlend.core.entities.user import AuthenticatedIdentity
from lockerlend.core.errors import NotFoundError
from lockerlend.core.repositories.identity_provider import IdentityProvider
from lockerlend.core.repositories.unit_of_work import UnitOfWork


class GatewayIdentityProvider(IdentityProvider):
    """
    Identity provider behind an authenticating gateway.

    The gateway has already verified the caller's token and forwards the caller's sit_id;
    this only resolves it to a user and the role stored server-side.
    """

    def __init__(self, *, uow: UnitOfWork) -> None:
        self._uow = uow

    def authenticate(self, credential: str) -> AuthenticatedIdentity:
        with self._uow:
            user = self._uow.users.get_by_sit_id(credential.strip())
        if user is None:
            raise NotFoundError("User not found", code="user_not_found")
        return AuthenticatedIdentity(user_id=user.user_id, sit_id=user.sit_id, role=user.role)
