"""Tagged results returned by service operations."""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Generic, TypeVar

T = TypeVar("T")


class ErrorKind(StrEnum):
    """Failure categories the HTTP boundary translates to status codes."""

    VALIDATION_FAILED = "validation_failed"
    DUPLICATE_USERNAME = "duplicate_username"
    DUPLICATE_EMAIL = "duplicate_email"
    INVALID_CREDENTIALS = "invalid_credentials"
    MISSING_TOKEN = "missing_token"
    INVALID_TOKEN = "invalid_token"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class FieldError:
    """A single violated constraint on one input field."""

    field: str
    message: str


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful outcome carrying a value."""

    value: T


@dataclass(frozen=True)
class Err:
    """Failed outcome carrying its kind and a client-safe message."""

    kind: ErrorKind
    detail: str
    errors: list[FieldError] = field(default_factory=list)
    field_name: str | None = None


Result = Ok[T] | Err
