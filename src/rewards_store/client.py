from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Optional
from uuid import UUID

from .auth import TokenIssuer, create_api_client
from .cart import add_or_update_cart_item, get_cart_items, remove_cart_items
from .catalog import get_catalog_item, list_catalog_items
from .checkout import checkout
from .config import ClusterConfig, Settings
from .connection import ConnectionManager, fetch_session_id, prepare_eagerly
from .customers import get_balance, get_customer, require_username
from .executor import RetryableTransactionExecutor
from .ledger import get_transaction, list_transactions
from .models import CartItem, CartItemRequest, CatalogItem, Customer, Transaction
from .policy import RetryPolicy


@dataclass
class _Cfg:
    endpoint: str
    region: str = "us-east-1"
    database: str = "postgres"
    username: str = "admin"
    port: int = 5432
    max_attempts: int = 5
    base_delay_ms: float = 20.0
    max_delay_ms: float = 5000.0
    # 5 minutes of margin against the one hour session limit
    max_connection_age: float = 55 * 60
    token_expires_in: int = 30
    connect_timeout: int = 10
    image_region: Optional[str] = None
    api_client: Any = None


class RewardsClient:
    """Rewards operations over one managed DSQL connection.

    Every operation is a unit of work run by the retryable executor.
    Not safe for concurrent use from several threads.

    Usage:
        with RewardsClient({"endpoint": "abc.dsql.us-east-1.on.aws", "region": "us-east-1"}) as rc:
            tx_id = rc.checkout("alice")
    """

    def __init__(self, config: dict):
        c = _Cfg(**config)
        self._cfg = c
        # presigned image URLs are stored per region; default to our own
        self._image_region = c.image_region or c.region
        self._policy = RetryPolicy(
            max_attempts=c.max_attempts,
            base_delay_ms=c.base_delay_ms,
            max_delay_ms=c.max_delay_ms,
        )
        self._cluster = ClusterConfig(
            endpoint=c.endpoint,
            region=c.region,
            database=c.database,
            username=c.username,
            api_client=c.api_client or create_api_client(c.region),
            port=c.port,
        )
        self._connections = ConnectionManager(
            self._cluster,
            policy=self._policy,
            token_issuer=TokenIssuer(c.token_expires_in),
            max_age=c.max_connection_age,
            connect_timeout=c.connect_timeout,
            setup_hooks=[prepare_eagerly],
        )
        self._executor = RetryableTransactionExecutor(self._connections, self._policy)

    @classmethod
    def from_settings(cls, settings: Settings, api_client: Any = None) -> "RewardsClient":
        return cls(
            {
                "endpoint": settings.CLUSTER_ENDPOINT,
                "region": settings.AWS_REGION,
                "database": settings.DB_NAME,
                "username": settings.DB_USERNAME,
                "port": settings.DB_PORT,
                "max_attempts": settings.MAX_DB_RETRIES,
                "base_delay_ms": settings.JITTER_BASE_MS,
                "max_delay_ms": settings.JITTER_MAX_MS,
                "max_connection_age": settings.MAX_CONNECTION_AGE_SEC,
                "token_expires_in": settings.TOKEN_EXPIRES_IN_SEC,
                "connect_timeout": settings.CONNECT_TIMEOUT_SEC,
                "image_region": settings.IMAGE_REGION,
                "api_client": api_client,
            }
        )

    @property
    def connections(self) -> ConnectionManager:
        return self._connections

    @property
    def executor(self) -> RetryableTransactionExecutor:
        return self._executor

    @property
    def image_region(self) -> str:
        return self._image_region

    def close(self) -> None:
        self._connections.close()

    def __enter__(self) -> "RewardsClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ---------- admin / health ----------

    def health(self) -> Optional[str]:
        """Round-trip to the store; returns the current session id."""
        return self._executor.run(fetch_session_id, operation="health")

    # ---------- reads ----------

    def customer(self, username: str) -> Customer:
        username = require_username(username)
        return self._executor.run(get_customer(username), operation="get_customer")

    def balance(self, username: str) -> int:
        username = require_username(username)
        return self._executor.run(get_balance(username), operation="get_balance")

    def cart_items(self, username: str) -> List[CartItem]:
        username = require_username(username)
        return self._executor.run(
            get_cart_items(username, self._image_region), operation="get_cart_items"
        )

    def catalog_item(self, item_id: UUID) -> CatalogItem:
        return self._executor.run(
            get_catalog_item(item_id, self._image_region), operation="get_catalog_item"
        )

    def catalog_items(
        self,
        sort_by: Optional[str] = None,
        sort_order: Optional[str] = None,
        category: Optional[str] = None,
    ) -> List[CatalogItem]:
        return self._executor.run(
            list_catalog_items(sort_by, sort_order, category, self._image_region),
            operation="list_catalog_items",
        )

    def transactions(self, username: str, start: datetime, end: datetime) -> List[Transaction]:
        username = require_username(username)
        return self._executor.run(
            list_transactions(username, start, end), operation="list_transactions"
        )

    def transaction(self, username: str, tx_id: UUID) -> Transaction:
        username = require_username(username)
        return self._executor.run(get_transaction(username, tx_id), operation="get_transaction")

    # ---------- writes ----------

    def add_cart_item(self, username: str, item_id: UUID, quantity: int = 1) -> None:
        username = require_username(username)
        request = CartItemRequest(item_id=item_id, quantity=quantity)
        self._executor.run(add_or_update_cart_item(username, request), operation="add_cart_item")

    def remove_cart_items(self, username: str, item_id: Optional[UUID] = None) -> None:
        username = require_username(username)
        self._executor.run(remove_cart_items(username, item_id), operation="remove_cart_items")

    def checkout(self, username: str) -> Optional[UUID]:
        username = require_username(username)
        return self._executor.run(checkout(username), operation="checkout")
