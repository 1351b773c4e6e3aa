from __future__ import annotations

from .enums import ErrorKind


class DomainError(Exception):
    """Base exception for business rule violations."""

    kind: ErrorKind = ErrorKind.VALIDATION


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""

    kind = ErrorKind.VALIDATION


class NotFoundError(DomainError):
    """Raised when a referenced event, registration or user does not exist."""

    kind = ErrorKind.NOT_FOUND


class AuthorizationError(DomainError):
    """Raised when a caller cannot be resolved or lacks permission for an action."""

    kind = ErrorKind.UNAUTHORIZED


class ConflictError(DomainError):
    """Raised on a duplicate active registration or a full event."""

    kind = ErrorKind.CONFLICT


class InvalidStateError(DomainError):
    """Raised when an operation runs outside its window or against a record in the wrong status."""

    kind = ErrorKind.INVALID_STATE


_BY_KIND = {
    ErrorKind.VALIDATION: ValidationError,
    ErrorKind.NOT_FOUND: NotFoundError,
    ErrorKind.UNAUTHORIZED: AuthorizationError,
    ErrorKind.CONFLICT: ConflictError,
    ErrorKind.INVALID_STATE: InvalidStateError,
}


def error_for(kind: ErrorKind, message: str) -> DomainError:
    return _BY_KIND.get(kind, DomainError)(message)
