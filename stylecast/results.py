"""Explicit success/failure values for operations that talk to remote services."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E", bound=Exception)


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful outcome carrying `value`."""
    value: T

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Err(Generic[E]):
    """Failed outcome carrying the typed `error`."""
    error: E

    @property
    def ok(self) -> bool:
        return False

    def unwrap(self):
        """Re-raise the carried error for callers that prefer exceptions."""
        raise self.error


Result = Union[Ok[T], Err[Exception]]
