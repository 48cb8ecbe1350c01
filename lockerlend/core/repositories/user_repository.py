from __future__ import annotations

from abc import ABC, abstractmethod

from lockerlend.core.entities.user import User


class UserRepository(ABC):
    @abstractmethod
    def get(self, user_id: int) -> User | None:
        raise NotImplementedError

    @abstractmethod
    def get_by_sit_id(self, sit_id: str) -> User | None:
        raise NotImplementedError

    @abstractmethod
    def get_by_rfid_uid(self, rfid_uid: str) -> User | None:
        raise NotImplementedError

    @abstractmethod
    def get_by_email(self, email: str) -> User | None:
        raise NotImplementedError

    @abstractmethod
    def list_all(self) -> list[User]:
        """Newest first."""
        raise NotImplementedError

    @abstractmethod
    def add(self, user: User) -> User:
        """Insert and return the user with its assigned id."""
        raise NotImplementedError

    @abstractmethod
    def upsert(self, user: User) -> None:
        raise NotImplementedError
