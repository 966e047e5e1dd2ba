"""
Points ledger reads.
"""

from __future__ import annotations

from datetime import datetime
from typing import List
from uuid import UUID

import psycopg

from .customers import resolve_customer_id
from .errors import InvalidArgument, NotFound
from .models import OrderItem, Transaction
from . import sql as q


def list_transactions(username: str, start: datetime, end: datetime):
    """Transactions with ``start <= tx_dt <= end``, newest first."""
    if start > end:
        raise InvalidArgument("start must not be after end")

    def _list(conn: psycopg.Connection) -> List[Transaction]:
        with conn.cursor() as cur:
            cur.execute(q.TRANSACTIONS_BY_USERNAME, {"username": username, "start": start, "end": end})
            return [
                Transaction(id=tx_id, customer_id=customer_id, tx_type=tx_type, points=points, tx_dt=tx_dt)
                for tx_id, customer_id, tx_type, points, tx_dt in cur.fetchall()
            ]

    return _list


def get_transaction(username: str, tx_id: UUID):
    """One transaction of the customer with its order items."""

    def _get(conn: psycopg.Connection) -> Transaction:
        with conn.cursor() as cur:
            customer_id = resolve_customer_id(cur, username)
            cur.execute(q.TRANSACTION_WITH_ORDER_ITEMS, {"tx_id": tx_id, "customer_id": customer_id})
            rows = cur.fetchall()
        if not rows:
            raise NotFound(f"Transaction {tx_id} not found")

        id_, cust_id, tx_type, points, tx_dt = rows[0][:5]
        items = [
            OrderItem(item_id=item_id, name=item_name, quantity=unit_cnt, points_price=unit_price)
            for *_, item_id, unit_cnt, unit_price, item_name in rows
            if item_id is not None
        ]
        return Transaction(
            id=id_, customer_id=cust_id, tx_type=tx_type, points=points, tx_dt=tx_dt, items=items
        )

    return _get
