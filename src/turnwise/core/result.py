"""
Typed success/failure values.

Used where failure is an expected outcome rather than an exceptional
one, so callers can branch with ``match`` or ``is_ok`` instead of
try/except.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import typing as _typing

import turnwise.errors as errors

T = _typing.TypeVar("T")
E = _typing.TypeVar("E", bound=errors.ChatCompletionError)


@_dataclasses.dataclass(frozen=True)
class Ok(_typing.Generic[T]):
    """A successful result."""

    value: T

    @property
    def is_ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        """Return the value."""
        return self.value


@_dataclasses.dataclass(frozen=True)
class Err(_typing.Generic[E]):
    """A failed result carrying the error that describes the failing stage."""

    error: E

    @property
    def is_ok(self) -> bool:
        return False

    def unwrap(self) -> _typing.NoReturn:
        """Raise the carried error."""
        raise self.error


Result = Ok[T] | Err[errors.ChatCompletionError]
"""Either Ok(value) or Err(ChatCompletionError)."""
