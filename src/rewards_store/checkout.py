"""
Shopping cart checkout.

The whole order is one unit of work: order items, cart deletions, the ledger
row and the balance debit are written in a single transaction attempt. When
the store reports a conflict at commit the executor rolls everything back and
re-runs the unit from the first read, so a retried checkout never debits the
balance twice.
"""

from __future__ import annotations

import uuid
from typing import List, Optional
from uuid import UUID

import psycopg
from loguru import logger

from .customers import fetch_balance, resolve_customer_id
from .errors import InsufficientBalance
from .models import CartLine
from . import sql as q

TX_SPEND = "SPEND"


def fetch_cart_lines(cur: psycopg.Cursor, customer_id: UUID) -> List[CartLine]:
    cur.execute(q.CART_LINES_WITH_PRICES, {"customer_id": customer_id})
    return [
        CartLine(
            customer_id=cust_id,
            item_id=item_id,
            quantity=quantity,
            points_price=points_price,
        )
        for cust_id, item_id, quantity, points_price in cur.fetchall()
    ]


def checkout(username: str):
    """Unit of work that turns the customer's cart into an order.

    Returns the new transaction id, or None when the cart is empty (nothing
    is written but the transaction still commits). An insufficient balance
    raises before any write, so that attempt is rolled back, not committed.
    """

    def _checkout(conn: psycopg.Connection) -> Optional[UUID]:
        with conn.cursor() as cur:
            customer_id = resolve_customer_id(cur, username)

            lines = fetch_cart_lines(cur, customer_id)
            if not lines:
                logger.info(f"Empty cart for {username}; nothing to check out")
                return None

            total = sum(line.points for line in lines)
            balance = fetch_balance(cur, customer_id)
            if total > balance:
                raise InsufficientBalance("Insufficient points to complete order")

            tx_id = uuid.uuid4()
            for line in lines:
                cur.execute(
                    q.INSERT_ORDER_ITEM,
                    {
                        "tx_id": tx_id,
                        "item_id": line.item_id,
                        "quantity": line.quantity,
                        "points_price": line.points_price,
                    },
                )
                cur.execute(
                    q.DELETE_CART_LINE,
                    {"customer_id": customer_id, "item_id": line.item_id},
                )

            cur.execute(
                q.INSERT_TRANSACTION,
                {
                    "tx_id": tx_id,
                    "customer_id": customer_id,
                    "tx_type": TX_SPEND,
                    "points": -total,
                },
            )
            cur.execute(q.DEBIT_BALANCE, {"points": total, "customer_id": customer_id})
            return tx_id

    return _checkout
