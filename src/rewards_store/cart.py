"""
Shopping cart units of work.
"""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

import psycopg

from .customers import resolve_customer_id
from .errors import NotFound
from .models import CartItem, CartItemRequest
from . import sql as q


def _require_catalog_item(cur: psycopg.Cursor, item_id: UUID) -> None:
    cur.execute(q.CATALOG_ITEM_EXISTS, {"item_id": item_id})
    if cur.fetchone() is None:
        raise NotFound(f"Catalog item {item_id} not found")


def add_or_update_cart_item(username: str, request: CartItemRequest):
    """Add ``request.quantity`` units (negative removes units).

    A line whose quantity drops below 1 is deleted. Removing units from an
    item that is not in the cart is a no-op.
    """

    def _add_or_update(conn: psycopg.Connection) -> None:
        params = {"item_id": request.item_id}
        with conn.cursor() as cur:
            params["customer_id"] = resolve_customer_id(cur, username)

            cur.execute(q.CART_LINE, params)
            row = cur.fetchone()
            if row is not None:
                net_qty = request.quantity + int(row[0])
                if net_qty < 1:
                    cur.execute(q.DELETE_CART_LINE, params)
                    return
                _require_catalog_item(cur, request.item_id)
                cur.execute(q.UPDATE_CART_LINE, {**params, "quantity": net_qty})
            elif request.quantity > 0:
                _require_catalog_item(cur, request.item_id)
                cur.execute(q.INSERT_CART_LINE, {**params, "quantity": request.quantity})

    return _add_or_update


def remove_cart_items(username: str, item_id: Optional[UUID] = None):
    """Delete one cart line, or the whole cart when ``item_id`` is None."""

    def _remove(conn: psycopg.Connection) -> None:
        with conn.cursor() as cur:
            customer_id = resolve_customer_id(cur, username)
            if item_id is None:
                cur.execute(q.DELETE_CART, {"customer_id": customer_id})
            else:
                cur.execute(q.DELETE_CART_LINE, {"customer_id": customer_id, "item_id": item_id})

    return _remove


def get_cart_items(username: str, image_region: Optional[str] = None):
    def _get_cart_items(conn: psycopg.Connection) -> List[CartItem]:
        with conn.cursor() as cur:
            cur.execute(q.CART_ITEMS_BY_USERNAME, {"username": username, "region": image_region})
            return [
                CartItem(
                    item_id=item_id,
                    name=name,
                    description=description,
                    points_price=points_price,
                    quantity=quantity,
                    thumbnail_url=thumbnail_url,
                )
                for quantity, item_id, name, description, points_price, thumbnail_url in cur.fetchall()
            ]

    return _get_cart_items
