"""
Retry policy and the transition function of the transaction retry loop.

``RetryPolicy`` is shared by connection establishment and transaction
execution. ``next_step`` decides, from the attempt number and the class of the
failure, whether the loop retries (optionally on a fresh connection) or stops.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from enum import Enum

from .errors import ErrorClass


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff with multiplicative jitter.

    delay(attempt) = U(0, 1) * min(max_delay_ms, base_delay_ms * 2**attempt)
    """

    max_attempts: int = 5
    base_delay_ms: float = 20.0
    max_delay_ms: float = 5000.0
    jitter: bool = True

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay_ms < 0 or self.max_delay_ms < 0:
            raise ValueError("delays must be >= 0")

    def ceiling_ms(self, attempt: int) -> float:
        """Deterministic upper bound of the delay before ``attempt``."""
        return min(self.max_delay_ms, self.base_delay_ms * (2.0**attempt))

    def delay(self, attempt: int) -> float:
        """Backoff in seconds before retry number ``attempt`` (1-based)."""
        ceiling = self.ceiling_ms(attempt)
        if self.jitter:
            ceiling *= random.random()
        return ceiling / 1000.0


class Action(str, Enum):
    RETRY = "retry"
    FAIL = "fail"


@dataclass(frozen=True)
class Step:
    action: Action
    force_reconnect: bool = False

    @property
    def retry(self) -> bool:
        return self.action is Action.RETRY


FAIL = Step(Action.FAIL)


def next_step(attempt: int, error_class: ErrorClass, policy: RetryPolicy) -> Step:
    """Transition for a failed ``attempt`` (1-based).

    Fatal errors stop immediately. Conflicts and connection errors retry until
    the attempt budget is spent; only connection errors force a new connection
    for the next attempt.
    """
    if error_class is ErrorClass.FATAL or attempt >= policy.max_attempts:
        return FAIL
    if error_class is ErrorClass.CONNECTION:
        return Step(Action.RETRY, force_reconnect=True)
    return Step(Action.RETRY, force_reconnect=False)
