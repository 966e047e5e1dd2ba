"""
Customer lookups shared by every unit of work.
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID

import psycopg

from .errors import InvalidArgument, NotFound
from .models import Customer
from . import sql as q


def require_username(username: Optional[str]) -> str:
    """Reject a missing username before any transaction is attempted."""
    if username is None or not username.strip():
        raise InvalidArgument("username is required")
    return username.strip()


def resolve_customer_id(cur: psycopg.Cursor, username: str) -> UUID:
    cur.execute(q.CUSTOMER_ID_BY_USERNAME, {"username": username})
    row = cur.fetchone()
    if row is None:
        raise NotFound(f"Customer {username} not found")
    return row[0]


def fetch_balance(cur: psycopg.Cursor, customer_id: UUID) -> int:
    """Current points balance; a customer without a balance row has 0."""
    cur.execute(q.BALANCE_BY_CUSTOMER, {"customer_id": customer_id})
    row = cur.fetchone()
    return int(row[0]) if row else 0


def get_customer(username: str):
    def _get_customer(conn: psycopg.Connection) -> Customer:
        with conn.cursor() as cur:
            cur.execute(q.CUSTOMER_BY_USERNAME, {"username": username})
            row = cur.fetchone()
        if row is None:
            raise NotFound(f"Customer {username} not found")
        id_, uname, first_name, last_name, email, phone = row
        return Customer(
            id=id_,
            username=uname,
            first_name=first_name,
            last_name=last_name,
            email=email,
            phone=phone,
        )

    return _get_customer


def get_balance(username: str):
    def _get_balance(conn: psycopg.Connection) -> int:
        with conn.cursor() as cur:
            customer_id = resolve_customer_id(cur, username)
            return fetch_balance(cur, customer_id)

    return _get_balance
