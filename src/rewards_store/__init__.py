"""
Rewards Store

Transactional retry core for an optimistic-concurrency PostgreSQL store
(Aurora DSQL) plus the rewards operations built on it.

Usage:
    from rewards_store import RewardsClient

    with RewardsClient({"endpoint": "abc.dsql.us-east-1.on.aws", "region": "us-east-1"}) as rc:
        rc.add_cart_item("alice", item_id, quantity=2)
        tx_id = rc.checkout("alice")
"""

from .client import RewardsClient
from .config import ClusterConfig, Settings, get_settings
from .connection import ConnectionManager
from .errors import (
    ErrorClass,
    classify,
    map_db_error,
    RewardsOperationalError,
    ConcurrencyConflict,
    ConnectionFailure,
    FatalError,
    DomainError,
    NotFound,
    InsufficientBalance,
    InvalidArgument,
)
from .executor import RetryableTransactionExecutor
from .policy import RetryPolicy, next_step

__version__ = "1.0.0"
__all__ = [
    "RewardsClient",
    "ClusterConfig",
    "Settings",
    "get_settings",
    "ConnectionManager",
    "RetryableTransactionExecutor",
    "RetryPolicy",
    "next_step",
    # errors
    "ErrorClass",
    "classify",
    "map_db_error",
    "RewardsOperationalError",
    "ConcurrencyConflict",
    "ConnectionFailure",
    "FatalError",
    "DomainError",
    "NotFound",
    "InsufficientBalance",
    "InvalidArgument",
]
