"""Error kinds a reconciliation pass can run into.

Every one of them is scoped to a single fleet's single pass; none is fatal
to the process.
"""
from __future__ import annotations


class StandbyError(Exception):
    """Base class for all dynstandby errors."""


class NotFound(StandbyError):
    """The fleet or its floor record does not exist."""


class AlreadyExists(StandbyError):
    """Another actor created the record first."""


class Conflict(StandbyError):
    """Optimistic-concurrency rejection: the object changed since it was read."""


class StoreUnavailable(StandbyError):
    """Any other store failure. Retryable."""


class MalformedFloor(StandbyError):
    """The stored floor is not a non-negative decimal integer."""

    def __init__(self, message: str, *, raw: str | None = None) -> None:
        self.raw = raw
        super().__init__(message)


class Cancelled(StandbyError):
    """The pass was cancelled or ran past its deadline."""
