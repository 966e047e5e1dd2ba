"""
Checkout scenarios against the in-memory store.
"""

from uuid import UUID

import psycopg.errors as E
import pytest

from rewards_store import sql as q
from rewards_store.checkout import TX_SPEND, checkout
from rewards_store.errors import ConcurrencyConflict, FatalError, InsufficientBalance, NotFound


@pytest.fixture
def alice(fake_db):
    return fake_db.add_customer("alice", balance=500)


def test_checkout_debits_balance_and_empties_cart(executor, fake_db, alice):
    item = fake_db.add_catalog_item(points_price=100)
    fake_db.cart[(alice, item)] = 2

    tx_id = executor.run(checkout("alice"))

    assert isinstance(tx_id, UUID)
    assert fake_db.balances[alice] == 300
    assert fake_db.cart == {}
    assert fake_db.transactions == [(tx_id, alice, TX_SPEND, -200)]
    assert fake_db.order_items == [(tx_id, item, 2, 100)]


def test_checkout_multiple_lines(executor, fake_db, alice):
    a = fake_db.add_catalog_item(points_price=100)
    b = fake_db.add_catalog_item(points_price=25)
    fake_db.cart[(alice, a)] = 1
    fake_db.cart[(alice, b)] = 4

    tx_id = executor.run(checkout("alice"))

    assert fake_db.balances[alice] == 300
    assert sorted(fake_db.order_items) == sorted([(tx_id, a, 1, 100), (tx_id, b, 4, 25)])
    assert fake_db.transactions[0][3] == -200


def test_insufficient_balance_writes_nothing(executor, fake_db, fake_manager):
    bob = fake_db.add_customer("bob", balance=50)
    item = fake_db.add_catalog_item(points_price=100)
    fake_db.cart[(bob, item)] = 1

    with pytest.raises(FatalError) as ei:
        executor.run(checkout("bob"))

    assert isinstance(ei.value.cause, InsufficientBalance)
    assert fake_db.balances[bob] == 50
    assert fake_db.cart == {(bob, item): 1}
    assert fake_db.transactions == []
    assert fake_db.order_items == []
    # business rule, not a conflict: one attempt only
    assert fake_manager.acquire_calls == [False]


def test_empty_cart_is_a_committed_noop(executor, fake_db, fake_manager, alice):
    assert executor.run(checkout("alice")) is None

    conn = fake_manager.connections[0]
    assert conn.commits == 1
    assert conn.rollbacks == 0
    assert fake_db.balances[alice] == 500
    assert fake_db.transactions == []
    assert q.INSERT_TRANSACTION not in conn.executed


def test_unknown_customer_is_not_found(executor, fake_manager):
    with pytest.raises(FatalError) as ei:
        executor.run(checkout("nobody"))

    assert isinstance(ei.value.cause, NotFound)
    assert len(fake_manager.acquire_calls) == 1


def test_customer_without_balance_row_has_zero(executor, fake_db):
    carol = fake_db.add_customer("carol")
    item = fake_db.add_catalog_item(points_price=1)
    fake_db.cart[(carol, item)] = 1

    with pytest.raises(FatalError) as ei:
        executor.run(checkout("carol"))
    assert isinstance(ei.value.cause, InsufficientBalance)


def test_retry_after_conflict_does_not_double_apply(executor, fake_db, fake_manager, alice):
    item = fake_db.add_catalog_item(points_price=100)
    fake_db.cart[(alice, item)] = 2
    fake_db.commit_failures = [E.SerializationFailure("change conflicts with another transaction")]

    tx_id = executor.run(checkout("alice"))

    conn = fake_manager.connections[0]
    assert conn.rollbacks == 1
    assert conn.commits == 1
    # same post-state as a single clean attempt
    assert fake_db.balances[alice] == 300
    assert fake_db.cart == {}
    assert fake_db.transactions == [(tx_id, alice, TX_SPEND, -200)]
    assert fake_db.order_items == [(tx_id, item, 2, 100)]


def test_persistent_conflict_leaves_state_untouched(executor, fake_db, alice):
    item = fake_db.add_catalog_item(points_price=100)
    fake_db.cart[(alice, item)] = 2
    before = fake_db.snapshot()
    fake_db.commit_failures = [E.SerializationFailure("conflict") for _ in range(5)]

    with pytest.raises(ConcurrencyConflict):
        executor.run(checkout("alice"))

    assert fake_db.snapshot() == before
