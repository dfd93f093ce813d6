"""
Result Pattern implementation for type-safe error handling.

Cache-layer operations report their faults as values instead of raising,
so callers can decide whether a fault matters without try/except noise.

Example:
    result = await store.set(key, value, ttl_seconds=60)
    match result:
        case Success(stored):
            print(f"Stored: {stored}")
        case Failure(error):
            print(f"Error: {error}")
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")


_DATACLASS_SLOTS: dict[str, bool] = {"slots": True} if sys.version_info >= (3, 10) else {}


@dataclass(frozen=True, **_DATACLASS_SLOTS)
class Success(Generic[T]):
    """Represents a successful operation result."""

    value: T

    def is_success(self) -> bool:
        return True

    def is_failure(self) -> bool:
        return False

    def unwrap(self) -> T:
        """Extract the success value."""
        return self.value

    def __repr__(self) -> str:
        return f"Success({self.value!r})"


@dataclass(frozen=True, **_DATACLASS_SLOTS)
class Failure(Generic[E]):
    """Represents a failed operation result."""

    error: E

    def is_success(self) -> bool:
        return False

    def is_failure(self) -> bool:
        return True

    def unwrap(self) -> T:
        """Raises the error when trying to extract value."""
        if isinstance(self.error, Exception):
            raise self.error
        raise RuntimeError(f"Operation failed: {self.error}")

    def __repr__(self) -> str:
        return f"Failure({self.error!r})"


Result = Union[Success[T], Failure[E]]


def success(value: T) -> Success[T]:
    """Create a Success result."""
    return Success(value)


def failure(error: E) -> Failure[E]:
    """Create a Failure result."""
    return Failure(error)


@dataclass(frozen=True, **_DATACLASS_SLOTS)
class StoreError:
    """Key-value store operation error."""

    operation: str
    message: str
    original_exception: Exception | None = None

    def __str__(self) -> str:
        return f"Store error during {self.operation}: {self.message}"


__all__ = [
    "Failure",
    "Result",
    "StoreError",
    "Success",
    "failure",
    "success",
]
