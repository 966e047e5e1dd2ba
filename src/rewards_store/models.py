"""
Pydantic data models for the rewards store.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, field_validator


class Customer(BaseModel):
    id: UUID
    username: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class CatalogImage(BaseModel):
    id: UUID
    image_url: str


class CatalogItem(BaseModel):
    id: UUID
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    usd_price: Optional[Decimal] = None
    points_price: int
    rating: Optional[float] = None
    sku: Optional[str] = None
    weight: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    depth: Optional[float] = None
    thumbnail_url: Optional[str] = None
    images: List[CatalogImage] = []


class CartLine(BaseModel):
    """One shopping cart row joined with the current catalog price."""

    customer_id: UUID
    item_id: UUID
    quantity: int
    points_price: int

    @property
    def points(self) -> int:
        return self.points_price * self.quantity


class CartItem(BaseModel):
    """Cart row as shown to the customer."""

    item_id: UUID
    name: str
    description: Optional[str] = None
    points_price: int
    quantity: int
    thumbnail_url: Optional[str] = None


class CartItemRequest(BaseModel):
    """Add/update request. A negative quantity removes units from the cart."""

    item_id: UUID
    quantity: int = 1

    @field_validator("quantity")
    @classmethod
    def _non_zero(cls, v):
        if v == 0:
            raise ValueError("quantity must not be 0")
        return v


class OrderItem(BaseModel):
    item_id: UUID
    name: Optional[str] = None
    quantity: int
    points_price: int


class Transaction(BaseModel):
    """Ledger entry. ``points`` is negative for spends."""

    id: UUID
    customer_id: UUID
    tx_type: str
    points: int
    tx_dt: Optional[datetime] = None
    items: List[OrderItem] = []
