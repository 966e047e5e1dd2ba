"""
Catalog units of work.

Catalog listings take their sort column, sort direction and category from
the caller, so those are checked against fixed allow-lists and the ORDER BY
clause is composed with ``psycopg.sql``; the category itself is always a
bound parameter.
"""

from __future__ import annotations

from typing import List, Optional, Sequence
from uuid import UUID

import psycopg
from loguru import logger
from psycopg import sql as pgsql

from .errors import NotFound
from .models import CatalogImage, CatalogItem
from . import sql as q

SORT_FIELDS = ("name", "usd_price", "points_price", "rating")
SORT_ORDERS = ("asc", "desc")
CATEGORIES = ("Books", "Electronics", "Clothing", "Home", "Toys", "Sports")

# leading columns shared by CATALOG_ITEM_BY_ID and CATALOG_ITEM_LIST
_ITEM_WIDTH = 13


def _allowed(value: Optional[str], allowed: Sequence[str]) -> str:
    """``value`` lower-cased if allowed, otherwise the first allowed value."""
    if value is None:
        return allowed[0]
    value = value.lower()
    return value if value in allowed else allowed[0]


def _catalog_item(row) -> CatalogItem:
    (
        id_,
        name,
        description,
        category,
        usd_price,
        points_price,
        rating,
        sku,
        weight,
        width,
        height,
        depth,
        thumbnail_url,
    ) = row[:_ITEM_WIDTH]
    return CatalogItem(
        id=id_,
        name=name,
        description=description,
        category=category,
        usd_price=usd_price,
        points_price=points_price,
        rating=rating,
        sku=sku,
        weight=weight,
        width=width,
        height=height,
        depth=depth,
        thumbnail_url=thumbnail_url,
    )


def catalog_list_query(sort_by: str, sort_order: str, category: Optional[str]) -> pgsql.Composed:
    return pgsql.SQL(q.CATALOG_ITEM_LIST).format(
        where=pgsql.SQL(q.CATALOG_CATEGORY_FILTER if category else ""),
        sort_field=pgsql.Identifier("ci", sort_by),
        sort_order=pgsql.SQL(sort_order.upper()),
    )


def list_catalog_items(
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
    category: Optional[str] = None,
    image_region: Optional[str] = None,
):
    """Catalog items, optionally of one category.

    Unknown sort fields and orders fall back to ``name`` / ``asc``. An unknown
    category yields an empty list.
    """
    sort_by = _allowed(sort_by, SORT_FIELDS)
    sort_order = _allowed(sort_order, SORT_ORDERS)

    def _list(conn: psycopg.Connection) -> List[CatalogItem]:
        if category is not None and category not in CATEGORIES:
            logger.info(f"Unknown catalog category {category!r}")
            return []
        with conn.cursor() as cur:
            cur.execute(
                catalog_list_query(sort_by, sort_order, category),
                {"region": image_region, "category": category},
            )
            return [_catalog_item(row) for row in cur.fetchall()]

    return _list


def get_catalog_item(item_id: UUID, image_region: Optional[str] = None):
    def _get_catalog_item(conn: psycopg.Connection) -> CatalogItem:
        with conn.cursor() as cur:
            cur.execute(q.CATALOG_ITEM_BY_ID, {"item_id": item_id, "region": image_region})
            rows = cur.fetchall()
        if not rows:
            raise NotFound(f"Catalog item {item_id} not found")
        item = _catalog_item(rows[0])
        item.images = [
            CatalogImage(id=image_id, image_url=image_url)
            for image_id, image_url in (row[_ITEM_WIDTH:] for row in rows)
            if image_url is not None
        ]
        return item

    return _get_catalog_item
