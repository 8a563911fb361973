# Created by Matthew Valancy
# Copyright 2026 Valpatel Software LLC
# Licensed under AGPL-3.0 — see LICENSE for details.
"""Error taxonomy for the tracking and annotation engine.

ValidationError -- malformed input, rejected before any state changes.
NotFoundError   -- target vanished (usually a concurrent delete); callers
                   treat it as a no-op.
SyncFailure     -- a poll or push round trip to the sync collaborator failed.
"""

from __future__ import annotations


class FieldOpsError(Exception):
    """Base class for every error raised by the engine."""


class ValidationError(FieldOpsError, ValueError):
    """Input failed validation. Nothing was committed."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field


class NotFoundError(FieldOpsError, KeyError):
    """Referenced entity does not exist."""

    def __init__(self, kind: str, key: str) -> None:
        super().__init__(f"{kind} not found: {key}")
        self.kind = kind
        self.key = key

    def __str__(self) -> str:
        return f"{self.kind} not found: {self.key}"


class SyncFailure(FieldOpsError):
    """A round trip to the sync collaborator failed."""

    def __init__(self, operation: str, cause: BaseException | str | None = None) -> None:
        detail = f": {cause}" if cause else ""
        super().__init__(f"{operation} failed{detail}")
        self.operation = operation
        self.cause = cause
