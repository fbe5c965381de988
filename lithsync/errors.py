"""Error taxonomy shared by persistence, the API client and the tracker."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

GENERIC_ERROR_MESSAGE = "Something went wrong. Please try again later."


@dataclass
class SyncError(Exception):
    message: str

    def __str__(self) -> str:  # pragma: no cover - trivial
        return self.message


@dataclass
class ValidationError(SyncError):
    """Request rejected on the client before anything was sent."""


@dataclass
class NetworkError(SyncError):
    """No response from the server (connection failure or timeout)."""


@dataclass
class ApiError(SyncError):
    status: int = 0
    data: Any = field(default=None, repr=False)


@dataclass
class NotFoundError(ApiError):
    pass


@dataclass
class PersistenceError(SyncError):
    key: str | None = None


@dataclass
class TransitionError(SyncError):
    """Session transition requested from a phase that does not allow it."""


def display_message(exc: BaseException) -> str:
    """Human-readable text for an alert; unexpected errors get a generic message."""
    if isinstance(exc, SyncError) and exc.message:
        return exc.message
    return GENERIC_ERROR_MESSAGE
