"""Error kinds and result values for lending operations.

Business rule violations are returned, not raised: every write operation
on the catalog and the ledger hands back a ``Result`` whose ``error``
names what went wrong. Callers that would rather deal with exceptions
can call ``Result.unwrap()``.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Classification of a failed lending operation."""

    NOT_FOUND = "not_found"
    DUPLICATE_ISBN = "duplicate_isbn"
    BOOK_ALREADY_LOANED = "book_already_loaned"
    INVALID_REFERENCE = "invalid_reference"
    INVALID_ARGUMENT = "invalid_argument"
    BOOK_HAS_LOANS = "book_has_loans"


class LendingError(Exception):
    """Raised by ``Result.unwrap()`` for a failed result."""

    def __init__(self, kind: ErrorKind, message: str = ""):
        super().__init__(message or kind.value)
        self.kind = kind
        self.message = message


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of an operation: either a value or an error kind."""

    value: Optional[T] = None
    error: Optional[ErrorKind] = None
    message: str = ""

    @classmethod
    def success(cls, value: Optional[T] = None) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str = "") -> "Result[T]":
        return cls(error=kind, message=message)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value, or raise ``LendingError`` if this is a failure."""
        if self.error is not None:
            raise LendingError(self.error, self.message)
        return self.value
