"""
Exceptions and error classification for the rewards store.

Every failure seen by the retry core is reduced to one of three classes:
optimistic concurrency conflicts, connection failures and everything else.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

import psycopg

CONFLICT_SQLSTATE = "40001"
CONNECTION_SQLSTATE_CLASS = "08"


class ErrorClass(str, Enum):
    """How the retry core reacts to a failure."""

    CONCURRENCY_CONFLICT = "concurrency_conflict"  # retry whole transaction
    CONNECTION = "connection"  # reconnect, then retry
    FATAL = "fatal"  # never retried


# --- domain errors (raised by units of work, always fatal) ---


class DomainError(Exception):
    """Business rule failure detected inside a unit of work."""

    pass


class NotFound(DomainError):
    """Customer or catalog item does not exist."""

    pass


class InsufficientBalance(DomainError):
    """Order total exceeds the customer's points balance."""

    pass


class InvalidArgument(DomainError):
    """Malformed caller input, rejected before any transaction starts."""

    pass


# --- classified errors (raised by the retry core) ---


class RewardsOperationalError(Exception):
    """Base class for terminal errors surfaced by the retry core."""

    error_class: ErrorClass = ErrorClass.FATAL

    def __init__(
        self,
        message: str,
        *,
        cause: Optional[BaseException] = None,
        attempts: Optional[int] = None,
    ):
        super().__init__(message)
        self.cause = cause
        self.attempts = attempts

    @property
    def sqlstate(self) -> Optional[str]:
        return getattr(self.cause, "sqlstate", None)


class ConcurrencyConflict(RewardsOperationalError):
    """OCC conflict still present after the last attempt."""

    error_class = ErrorClass.CONCURRENCY_CONFLICT


class ConnectionFailure(RewardsOperationalError):
    """The link to the store is unusable."""

    error_class = ErrorClass.CONNECTION


class FatalError(RewardsOperationalError):
    """Non-retryable failure: constraint, syntax, auth or domain error."""

    error_class = ErrorClass.FATAL


_CLASSIFIED = {
    ErrorClass.CONCURRENCY_CONFLICT: ConcurrencyConflict,
    ErrorClass.CONNECTION: ConnectionFailure,
    ErrorClass.FATAL: FatalError,
}


def classify(e: BaseException) -> ErrorClass:
    """Map any exception to an ErrorClass. Never raises."""
    if isinstance(e, RewardsOperationalError):
        return e.error_class
    sqlstate = getattr(e, "sqlstate", None)
    if isinstance(sqlstate, str) and sqlstate:
        if sqlstate == CONFLICT_SQLSTATE:
            return ErrorClass.CONCURRENCY_CONFLICT
        if sqlstate.startswith(CONNECTION_SQLSTATE_CLASS):
            return ErrorClass.CONNECTION
        return ErrorClass.FATAL
    # client-side transport failures carry no SQLSTATE
    if isinstance(e, (psycopg.OperationalError, psycopg.InterfaceError)):
        return ErrorClass.CONNECTION
    return ErrorClass.FATAL


def is_concurrency_conflict(e: BaseException) -> bool:
    return classify(e) is ErrorClass.CONCURRENCY_CONFLICT


def is_connection_error(e: BaseException) -> bool:
    return classify(e) is ErrorClass.CONNECTION


def map_db_error(e: BaseException, attempts: Optional[int] = None) -> RewardsOperationalError:
    """Wrap ``e`` in its classified exception type, keeping the original as cause."""
    if isinstance(e, RewardsOperationalError):
        if attempts is not None:
            e.attempts = attempts
        return e
    error_class = classify(e)
    err = _CLASSIFIED[error_class](str(e) or type(e).__name__, cause=e, attempts=attempts)
    err.__cause__ = e
    return err
