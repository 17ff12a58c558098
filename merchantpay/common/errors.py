"""Application error taxonomy.

Every error raised by the lifecycle core or a storage gateway is an `AppError`
tagged with an `ErrorKind`; the HTTP boundary maps kinds to status codes.

    AppError
    ├── NotFoundError          (kind=not_found)
    │   ├── PaymentNotFoundError
    │   ├── MerchantNotFoundError
    │   └── CustomerNotFoundError
    ├── PreconditionError      (kind=precondition)
    │   ├── MerchantInactiveError
    │   ├── InvalidTransitionError
    │   └── StatusConflictError
    ├── ConflictError          (kind=conflict)
    │   └── DuplicateReferenceError
    ├── ValidationError        (kind=validation)
    └── StorageError           (kind=storage)
"""

from contextlib import contextmanager
from enum import Enum
from typing import Iterator


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    PRECONDITION = "precondition"
    CONFLICT = "conflict"
    VALIDATION = "validation"
    STORAGE = "storage"


class AppError(Exception):
    """Base error carrying a message, an optional wrapped cause and a kind tag."""

    kind: ErrorKind = ErrorKind.STORAGE

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message}: {self.cause}"
        return self.message


class NotFoundError(AppError):
    kind = ErrorKind.NOT_FOUND


class PaymentNotFoundError(NotFoundError):
    def __init__(self, message: str = "payment not found", cause: BaseException | None = None) -> None:
        super().__init__(message, cause)


class MerchantNotFoundError(NotFoundError):
    def __init__(self, message: str = "merchant not found", cause: BaseException | None = None) -> None:
        super().__init__(message, cause)


class CustomerNotFoundError(NotFoundError):
    def __init__(self, message: str = "customer not found", cause: BaseException | None = None) -> None:
        super().__init__(message, cause)


class PreconditionError(AppError):
    kind = ErrorKind.PRECONDITION


class MerchantInactiveError(PreconditionError):
    def __init__(self, message: str = "merchant is not active", cause: BaseException | None = None) -> None:
        super().__init__(message, cause)


class InvalidTransitionError(PreconditionError):
    """Raised when a status change is not an edge of the payment state machine."""

    def __init__(self, current: str, target: str, message: str | None = None) -> None:
        super().__init__(message or f"invalid transition: {current} -> {target}")
        self.current = current
        self.target = target


class StatusConflictError(PreconditionError):
    """Raised by a conditional status write when the stored status has moved on."""

    def __init__(self, current: str, expected: str) -> None:
        super().__init__(f"payment status is {current}, expected {expected}")
        self.current = current
        self.expected = expected


class ConflictError(AppError):
    kind = ErrorKind.CONFLICT


class DuplicateReferenceError(ConflictError):
    def __init__(self, reference: str, cause: BaseException | None = None) -> None:
        super().__init__(f"payment reference already exists: {reference}", cause)
        self.reference = reference


class ValidationError(AppError):
    kind = ErrorKind.VALIDATION


class StorageError(AppError):
    kind = ErrorKind.STORAGE


@contextmanager
def wrap_storage_errors(operation: str) -> Iterator[None]:
    """Re-raise storage failures with the name of the failing operation."""

    try:
        yield
    except StorageError as exc:
        raise StorageError(f"failed to {operation}", cause=exc) from exc
