"""
Single-connection manager for DSQL.

DSQL sessions and IAM tokens expire, so the manager proactively replaces a
connection once it reaches ``max_age`` and hands out a brand-new one whenever
the caller forces a reconnect after a connection-class failure.

Not thread-safe: a host that shares one manager between threads must
serialise calls to ``acquire``.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, List, Optional

import psycopg
from loguru import logger

from .auth import TokenIssuer
from .config import ClusterConfig
from .errors import ErrorClass, classify, map_db_error
from .metrics import DB_CONNECTIONS_OPENED_TOTAL
from .policy import RetryPolicy
from . import sql as q

DEFAULT_MAX_CONNECTION_AGE = 55 * 60.0

SetupHook = Callable[[psycopg.Connection], None]


@dataclass(frozen=True)
class ConnectionState:
    connection: psycopg.Connection
    created_at: float
    session_id: Optional[str]


def fetch_session_id(conn: psycopg.Connection) -> Optional[str]:
    with conn.cursor() as cur:
        cur.execute(q.CURRENT_SESSION_ID)
        row = cur.fetchone()
    return str(row[0]) if row and row[0] is not None else None


def prepare_eagerly(conn: psycopg.Connection) -> None:
    """Server-side prepare every statement on its first execution."""
    conn.prepare_threshold = 0


class ConnectionManager:
    def __init__(
        self,
        config: ClusterConfig,
        *,
        policy: Optional[RetryPolicy] = None,
        token_issuer: Optional[TokenIssuer] = None,
        max_age: float = DEFAULT_MAX_CONNECTION_AGE,
        connect_timeout: int = 10,
        setup_hooks: Optional[List[SetupHook]] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._config = config
        self._policy = policy or RetryPolicy()
        self._issuer = token_issuer or TokenIssuer()
        self._max_age = max_age
        self._connect_timeout = connect_timeout
        self._setup_hooks: List[SetupHook] = list(setup_hooks or [])
        self._clock = clock
        self._sleep = sleep
        self._state: Optional[ConnectionState] = None

    # ---------- introspection ----------

    @property
    def config(self) -> ClusterConfig:
        return self._config

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    @property
    def session_id(self) -> Optional[str]:
        return self._state.session_id if self._state else None

    @property
    def connection_age(self) -> Optional[float]:
        if self._state is None:
            return None
        return self._clock() - self._state.created_at

    def add_setup_hook(self, hook: SetupHook) -> None:
        """Run ``hook`` on every connection opened from now on."""
        self._setup_hooks.append(hook)

    # ---------- lifecycle ----------

    def acquire(self, force_reconnect: bool = False) -> psycopg.Connection:
        state = self._state
        if state is not None and not force_reconnect:
            if self._clock() - state.created_at < self._max_age:
                return state.connection
            logger.info(f"Connection {state.session_id} reached max age; reconnecting")
        elif state is not None:
            logger.info(f"Forced reconnect, dropping session {state.session_id}")

        self.invalidate()

        attempt = 0
        while True:
            attempt += 1
            if attempt > 1:
                self._sleep(self._policy.delay(attempt))
            try:
                self._state = self._open()
                return self._state.connection
            except Exception as e:
                error_class = classify(e)
                if (
                    error_class is ErrorClass.CONCURRENCY_CONFLICT
                    and attempt < self._policy.max_attempts
                ):
                    logger.warning(f"Concurrency collision opening connection on attempt {attempt}")
                    continue
                logger.error(
                    f"Failing to connect at attempt {attempt} "
                    f"(sqlstate={getattr(e, 'sqlstate', None)}): {e}"
                )
                raise map_db_error(e, attempts=attempt) from e

    def invalidate(self) -> None:
        """Drop the live connection, if any. Close failures are ignored."""
        state, self._state = self._state, None
        if state is not None:
            _close_quietly(state.connection)

    def close(self) -> None:
        self.invalidate()
        client = self._config.api_client
        if client is not None and hasattr(client, "close"):
            try:
                client.close()
            except Exception as e:
                logger.debug(f"Ignoring api client close failure: {e}")

    def __enter__(self) -> "ConnectionManager":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ---------- internal helpers ----------

    def _open(self) -> ConnectionState:
        credential = self._issuer.issue(self._config)
        conn = psycopg.connect(
            password=credential.token,
            connect_timeout=self._connect_timeout,
            autocommit=False,
            **self._config.conninfo(),
        )
        created_at = self._clock()
        try:
            session_id = fetch_session_id(conn)
            for hook in self._setup_hooks:
                hook(conn)
            # leave no transaction open from the setup queries
            conn.commit()
        except Exception:
            _close_quietly(conn)
            raise
        DB_CONNECTIONS_OPENED_TOTAL.inc()
        logger.info(f"Opened connection to {self._config.endpoint}, session {session_id}")
        return ConnectionState(connection=conn, created_at=created_at, session_id=session_id)


def _close_quietly(conn: psycopg.Connection) -> None:
    try:
        conn.close()
    except Exception as e:
        logger.debug(f"Ignoring connection close failure: {e}")
