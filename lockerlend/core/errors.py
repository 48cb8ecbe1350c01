from __future__ import annotations


class LendingError(Exception):
    """
    Base of the lending error taxonomy.

    `kind` is stable per class, `code` narrows it down (e.g. "exhausted"), `message` is for humans.
    """
    kind = "error"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.kind

    def as_detail(self) -> dict[str, str]:
        return {"kind": self.kind, "code": self.code, "message": self.message}


class ValidationError(LendingError):
    """Missing or malformed input. Maps to HTTP 422, nothing was attempted."""
    kind = "validation"


class NotFoundError(LendingError):
    """Unknown equipment/user/locker/transaction. Maps to HTTP 404."""
    kind = "not_found"


class ConflictError(LendingError):
    """Domain rule violation (exhausted, no capacity, wrong status...). Maps to HTTP 409."""
    kind = "conflict"


class TransientStoreError(LendingError):
    """Lock timeout or lost connection. The unit of work was rolled back. Maps to HTTP 503."""
    kind = "transient_store"
