"""
Pytest configuration and fixtures for rewards-store.

Provides an in-memory stand-in for the xpoints schema that speaks just enough
of the psycopg connection/cursor API to run the units of work, with
transaction semantics (commit publishes, rollback discards) and commit-time
fault injection.
"""

import itertools
import uuid
from unittest.mock import MagicMock

import pytest

from rewards_store import sql as q
from rewards_store.config import ClusterConfig
from rewards_store.executor import RetryableTransactionExecutor
from rewards_store.policy import RetryPolicy


class FakeRewardsDb:
    """Committed state shared by every fake connection."""

    def __init__(self):
        self.customers = {}  # username -> id
        self.balances = {}  # customer_id -> points
        self.catalog = {}  # item_id -> points_price
        self.cart = {}  # (customer_id, item_id) -> quantity
        self.order_items = []  # (tx_id, item_id, quantity, points_price)
        self.transactions = []  # (tx_id, customer_id, tx_type, points)
        self.commit_failures = []  # exceptions raised by successive commits
        self._sessions = itertools.count(1)

    def add_customer(self, username, balance=None):
        customer_id = uuid.uuid4()
        self.customers[username] = customer_id
        if balance is not None:
            self.balances[customer_id] = balance
        return customer_id

    def add_catalog_item(self, points_price):
        item_id = uuid.uuid4()
        self.catalog[item_id] = points_price
        return item_id

    def snapshot(self):
        return {
            "balances": dict(self.balances),
            "cart": dict(self.cart),
            "order_items": list(self.order_items),
            "transactions": list(self.transactions),
        }

    def restore(self, state):
        self.balances = dict(state["balances"])
        self.cart = dict(state["cart"])
        self.order_items = list(state["order_items"])
        self.transactions = list(state["transactions"])

    def connect(self):
        return FakeConnection(self, f"session-{next(self._sessions)}")


class FakeCursor:
    def __init__(self, conn):
        self._conn = conn
        self._rows = []
        self.rowcount = -1

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def execute(self, query, params=None):
        self._conn.executed.append(query)
        self._rows = self._conn._execute(query, params or {})
        self.rowcount = len(self._rows)

    def fetchone(self):
        return self._rows[0] if self._rows else None

    def fetchall(self):
        return list(self._rows)


class FakeConnection:
    def __init__(self, db, session_id):
        self.db = db
        self.session_id = session_id
        self.autocommit = False
        self.prepare_threshold = 5
        self.closed = False
        self.commits = 0
        self.rollbacks = 0
        self.executed = []
        self._tx = None  # working copy of the db state while a transaction is open

    def cursor(self):
        if self.closed:
            raise RuntimeError("connection is closed")
        return FakeCursor(self)

    def commit(self):
        if self.db.commit_failures:
            raise self.db.commit_failures.pop(0)
        if self._tx is not None:
            self.db.restore(self._tx)
        self._tx = None
        self.commits += 1

    def rollback(self):
        self._tx = None
        self.rollbacks += 1

    def close(self):
        self.closed = True

    # ---------- statement dispatch ----------

    def _execute(self, query, p):
        if query == q.CURRENT_SESSION_ID:
            return [(self.session_id,)]
        if self._tx is None:
            self._tx = self.db.snapshot()
        tx = self._tx
        db = self.db

        if query == q.CUSTOMER_ID_BY_USERNAME:
            cid = db.customers.get(p["username"])
            return [(cid,)] if cid else []
        if query == q.BALANCE_BY_CUSTOMER:
            bal = tx["balances"].get(p["customer_id"])
            return [(bal,)] if bal is not None else []
        if query == q.CART_LINES_WITH_PRICES:
            return [
                (cid, item_id, qty, db.catalog[item_id])
                for (cid, item_id), qty in tx["cart"].items()
                if cid == p["customer_id"]
            ]
        if query == q.CART_LINE:
            qty = tx["cart"].get((p["customer_id"], p["item_id"]))
            return [(qty,)] if qty is not None else []
        if query == q.CATALOG_ITEM_EXISTS:
            return [(1,)] if p["item_id"] in db.catalog else []
        if query in (q.INSERT_CART_LINE, q.UPDATE_CART_LINE):
            tx["cart"][(p["customer_id"], p["item_id"])] = p["quantity"]
            return []
        if query == q.DELETE_CART_LINE:
            tx["cart"].pop((p["customer_id"], p["item_id"]), None)
            return []
        if query == q.DELETE_CART:
            for key in [k for k in tx["cart"] if k[0] == p["customer_id"]]:
                del tx["cart"][key]
            return []
        if query == q.INSERT_ORDER_ITEM:
            tx["order_items"].append((p["tx_id"], p["item_id"], p["quantity"], p["points_price"]))
            return []
        if query == q.INSERT_TRANSACTION:
            tx["transactions"].append((p["tx_id"], p["customer_id"], p["tx_type"], p["points"]))
            return []
        if query == q.DEBIT_BALANCE:
            tx["balances"][p["customer_id"]] -= p["points"]
            return []
        raise AssertionError(f"unexpected statement: {query}")


class FakeConnectionManager:
    """Hands out fake connections and records every acquire call."""

    def __init__(self, db, policy):
        self.db = db
        self.policy = policy
        self.acquire_calls = []  # force_reconnect flags
        self.connections = []
        self.acquire_failures = []  # exceptions raised by successive acquires
        self._current = None

    @property
    def session_id(self):
        return self._current.session_id if self._current else None

    def acquire(self, force_reconnect=False):
        self.acquire_calls.append(force_reconnect)
        if self.acquire_failures:
            raise self.acquire_failures.pop(0)
        if self._current is None or force_reconnect:
            if self._current is not None:
                self._current.close()
            self._current = self.db.connect()
            self.connections.append(self._current)
        return self._current


@pytest.fixture
def fast_policy():
    """Five attempts, no real waiting."""
    return RetryPolicy(max_attempts=5, base_delay_ms=1, max_delay_ms=4)


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def fake_db():
    return FakeRewardsDb()


@pytest.fixture
def fake_manager(fake_db, fast_policy):
    return FakeConnectionManager(fake_db, fast_policy)


@pytest.fixture
def executor(fake_manager, fast_policy, sleeps):
    return RetryableTransactionExecutor(fake_manager, fast_policy, sleep=sleeps.append)


@pytest.fixture
def api_client():
    client = MagicMock()
    client.generate_db_connect_auth_token.return_value = "user-token"
    client.generate_db_connect_admin_auth_token.return_value = "admin-token"
    return client


@pytest.fixture
def cluster_config(api_client):
    return ClusterConfig(
        endpoint="abcdefgh.dsql.us-east-1.on.aws",
        region="us-east-1",
        database="postgres",
        username="admin",
        api_client=api_client,
    )

