"""
Domain errors and the outcome type returned by core operations.

Hierarchy:
- DomainError (base for every expected business-rule failure)
  - NotFoundError
  - ValidationError
    - InvalidIntervalError
  - ConflictError
    - SlotUnavailableError
    - StaleWriteError
  - GameClosedError
  - GameFullError
  - MembershipError
    - AlreadyJoinedError
    - RequestAlreadyPendingError
    - NotAMemberError
    - NoPendingRequestError
  - AuthorizationError
    - NotHostError

Storage faults are never wrapped in these classes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


# =========================
# Base exception
# =========================

class DomainError(Exception):
    """Base exception for all expected domain failures."""
    code: str = "domain_error"
    retryable: bool = False
    default_message: str = "Operation not allowed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class NotFoundError(DomainError):
    code = "not_found"
    default_message = "Resource not found"


class ValidationError(DomainError):
    code = "validation_error"
    default_message = "Invalid input"


class InvalidIntervalError(ValidationError):
    code = "invalid_interval"
    default_message = "End time must be after start time"


# =========================
# Conflicts
# =========================

class ConflictError(DomainError):
    code = "conflict"
    default_message = "Conflicting state"


class SlotUnavailableError(ConflictError):
    code = "slot_unavailable"
    default_message = "Time slot not available"


class StaleWriteError(ConflictError):
    #aka, somebody else saved this aggregate between our load and our save
    code = "stale_write"
    retryable = True
    default_message = "Record was modified concurrently"


# =========================
# Game state machine
# =========================

class GameClosedError(DomainError):
    code = "game_closed"
    default_message = "Game is not open for joining"


class GameFullError(DomainError):
    code = "game_full"
    default_message = "Game is full"


class MembershipError(DomainError):
    code = "membership_error"


class AlreadyJoinedError(MembershipError):
    code = "already_joined"
    default_message = "Already joined this game"


class RequestAlreadyPendingError(MembershipError):
    code = "request_pending"
    default_message = "Join request already pending"


class NotAMemberError(MembershipError):
    code = "not_a_member"
    default_message = "Not part of this game"


class NoPendingRequestError(MembershipError):
    code = "no_pending_request"
    default_message = "No pending join request from this user"


# =========================
# Authorization
# =========================

class AuthorizationError(DomainError):
    code = "forbidden"
    default_message = "Access denied"


class NotHostError(AuthorizationError):
    code = "not_host"
    default_message = "Only the host can approve join requests"


# =========================
# Outcome
# =========================

@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Result of a core operation: a value on success, an error otherwise."""

    value: T | None = None
    error: DomainError | None = None
    message: str = ""

    @classmethod
    def ok(cls, value: T, message: str = "") -> "Outcome[T]":
        return cls(value=value, message=message)

    @classmethod
    def fail(cls, error: DomainError) -> "Outcome[T]":
        return cls(error=error, message=error.message)

    @property
    def success(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value or raise the carried error."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]
