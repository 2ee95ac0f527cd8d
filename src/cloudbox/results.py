"""Outcome types delivered to operation listeners.

Each operation delivers exactly one outcome: ``Success`` carrying the typed
result, ``Failure`` carrying a :class:`~cloudbox.errors.CloudboxError`, or,
for conditional metadata reads only, ``Unchanged``.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

from .errors import CloudboxError

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Success(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class Failure:
    error: CloudboxError

    @property
    def ok(self) -> bool:
        return False


@dataclass(frozen=True, slots=True)
class Unchanged:
    """The server's copy still matches the hash the caller sent (HTTP 304)."""

    path: str

    @property
    def ok(self) -> bool:
        return True


Outcome = Union[Success[Any], Failure, Unchanged]
ResultCallback = Callable[[Outcome], None] | Callable[[Outcome], Awaitable[None]]


@dataclass(frozen=True, slots=True)
class ProgressEvent:
    loaded: int
    total: int | None
    percentage: float


__all__ = [
    "Failure",
    "Outcome",
    "ProgressEvent",
    "ResultCallback",
    "Success",
    "Unchanged",
]
