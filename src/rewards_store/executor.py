"""
Retryable transaction executor.

Runs a unit of work inside a transaction on the managed connection. The unit
of work never commits or rolls back itself; the executor owns the transaction
boundary and retries the whole unit on optimistic concurrency conflicts and
connection failures.
"""

from __future__ import annotations

import time
from typing import Callable, Optional, TypeVar

import psycopg
from loguru import logger

from .connection import ConnectionManager
from .errors import ErrorClass, classify, map_db_error
from .metrics import TX_ATTEMPTS_TOTAL, TX_LATENCY_MS
from .policy import RetryPolicy, next_step

T = TypeVar("T")
UnitOfWork = Callable[[psycopg.Connection], T]

_OUTCOME = {
    ErrorClass.CONCURRENCY_CONFLICT: "conflict",
    ErrorClass.CONNECTION: "connection",
    ErrorClass.FATAL: "fatal",
}


class RetryableTransactionExecutor:
    def __init__(
        self,
        connections: ConnectionManager,
        policy: Optional[RetryPolicy] = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._connections = connections
        self._policy = policy or connections.policy
        self._sleep = sleep

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    def run(
        self,
        unit_of_work: UnitOfWork[T],
        force_reconnect: bool = False,
        *,
        operation: str = "unit_of_work",
    ) -> T:
        """Run ``unit_of_work`` and commit, retrying per the policy.

        Raises the classified terminal error (ConcurrencyConflict,
        ConnectionFailure or FatalError) with the original exception as cause.
        """
        started = time.perf_counter()
        attempt = 1
        try:
            while True:
                conn = None
                try:
                    conn = self._connections.acquire(force_reconnect)
                    result = unit_of_work(conn)
                    conn.commit()
                    TX_ATTEMPTS_TOTAL.labels(operation, "committed").inc()
                    return result
                except Exception as e:
                    if conn is not None:
                        self._rollback_quietly(conn)
                    error_class = classify(e)
                    TX_ATTEMPTS_TOTAL.labels(operation, _OUTCOME[error_class]).inc()
                    self._log_failure(operation, attempt, error_class, e)

                    step = next_step(attempt, error_class, self._policy)
                    if not step.retry:
                        err = map_db_error(e, attempts=attempt)
                        if err is e:
                            raise
                        raise err from e

                    attempt += 1
                    force_reconnect = step.force_reconnect
                    self._sleep(self._policy.delay(attempt))
        finally:
            TX_LATENCY_MS.labels(operation).observe((time.perf_counter() - started) * 1000)

    def _rollback_quietly(self, conn: psycopg.Connection) -> None:
        try:
            conn.rollback()
        except Exception as e:
            logger.warning(f"Rollback failed, session {self._connections.session_id}: {e}")

    def _log_failure(
        self, operation: str, attempt: int, error_class: ErrorClass, e: Exception
    ) -> None:
        if error_class is ErrorClass.CONCURRENCY_CONFLICT:
            logger.warning(f"{operation}: concurrency conflict on attempt {attempt}: {e}")
            return
        if error_class is ErrorClass.FATAL and getattr(e, "sqlstate", None) is None:
            # domain errors and plain exceptions carry no database context
            logger.info(f"{operation}: {type(e).__name__}: {e}")
            return
        logger.error(
            f"{operation}: database error on attempt {attempt} "
            f"(session={self._connections.session_id}, "
            f"sqlstate={getattr(e, 'sqlstate', None)}, class={error_class.value}): {e}"
        )
