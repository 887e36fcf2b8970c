"""
Database models package initialization.

This module exports all database models for SQLAlchemy and Alembic auto-generation.
Models are imported here to ensure they are registered with the Base metadata
for proper migration generation and relationship resolution.
"""

from shopcore.database.base import (
    AppendOnlyModel,
    Base,
    BaseModel,
    TimestampMixin,
    UUIDMixin,
)
from shopcore.database.models.cart import Cart, CartItem
from shopcore.database.models.catalog import Product, ProductVariant
from shopcore.database.models.inventory import InventoryLedgerEntry, LedgerReason
from shopcore.database.models.order import (
    Order,
    OrderItem,
    OrderStatus,
    OrderStatusHistory,
)

__all__ = [
    "Base",
    "BaseModel",
    "AppendOnlyModel",
    "TimestampMixin",
    "UUIDMixin",
    "Product",
    "ProductVariant",
    "InventoryLedgerEntry",
    "LedgerReason",
    "Cart",
    "CartItem",
    "Order",
    "OrderItem",
    "OrderStatus",
    "OrderStatusHistory",
]
