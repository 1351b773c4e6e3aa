from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from .enums import ErrorKind
from .exceptions import DomainError, error_for

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of a service operation.

    Expected rejections (not found, conflict, ...) come back as a tagged
    failure instead of an exception. Persistence failures are never wrapped.
    """

    value: Optional[T] = None
    error: Optional[ErrorKind] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T, message: str = "") -> "Result[T]":
        return cls(value=value, message=message)

    @classmethod
    def failure(cls, exc: DomainError) -> "Result[T]":
        return cls(error=exc.kind, message=str(exc))

    def unwrap(self) -> T:
        if self.error is not None:
            raise error_for(self.error, self.message)
        return self.value  # type: ignore[return-value]
