from __future__ import annotations

from typing import Protocol

from lockerlend.core.entities.user import AuthenticatedIdentity


class IdentityProvider(Protocol):
    """
    Turns an already-verified credential into an identity.
    Raises NotFoundError if the credential names nobody.
    """

    def authenticate(self, credential: str) -> AuthenticatedIdentity:
        raise NotImplementedError
