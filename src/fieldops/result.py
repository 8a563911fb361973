# Created by Matthew Valancy
# Copyright 2026 Valpatel Software LLC
# Licensed under AGPL-3.0 — see LICENSE for details.
"""Command results — Ok(value) | Err(error).

Stores expose a single ``apply(command)`` entry point that returns one of
these instead of raising, so callers reacting to async round trips can
branch on the outcome without try/except at every call site.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar, Union

from .errors import FieldOpsError, NotFoundError, ValidationError

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    error: FieldOpsError

    @property
    def ok(self) -> bool:
        return False

    @property
    def message(self) -> str:
        return str(self.error)


Result = Union[Ok[Any], Err]


def capture(fn: Callable[[], T]) -> Result:
    """Run *fn* and fold the engine's error taxonomy into a Result.

    NotFoundError folds into ``Ok(None)``: operating on something that was
    deleted concurrently is not an error.
    """
    try:
        return Ok(fn())
    except NotFoundError:
        return Ok(None)
    except ValidationError as exc:
        return Err(exc)
