"""
Catalog models: products and their stock-keeping variants.

Products and variants are owned by the catalog; the shop core only reads
prices and active flags from them. The one exception is
ProductVariant.stock_quantity, which is written exclusively by the
inventory ledger.
"""

import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shopcore.database.base import BaseModel


class Product(BaseModel):
    """
    Sellable product.

    Attributes:
        id: Unique product identifier (UUID)
        name: Display name
        sku: Stock keeping unit code
        price: Regular unit price
        discount_price: Optional reduced unit price, used instead of price
        is_active: Whether the product can be bought
        variants: Stock-keeping variants of the product
    """

    __tablename__ = "products"

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Product display name",
    )

    sku: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
        comment="Stock keeping unit code",
    )

    price: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=False,
        comment="Regular unit price",
    )

    discount_price: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=True,
        comment="Reduced unit price, overrides price when set",
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        comment="Whether the product is for sale",
    )

    variants: Mapped[list["ProductVariant"]] = relationship(
        "ProductVariant",
        back_populates="product",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_products_price_non_negative"),
        CheckConstraint(
            "discount_price IS NULL OR discount_price >= 0",
            name="ck_products_discount_price_non_negative",
        ),
    )

    @property
    def effective_price(self) -> Decimal:
        """Unit price charged right now."""
        if self.discount_price is not None:
            return self.discount_price
        return self.price


class ProductVariant(BaseModel):
    """
    Stock-keeping variant of a product (for example a size).

    stock_quantity is the authoritative available quantity. It never goes
    below zero: the CHECK constraint backs up the guarded decrement used by
    the inventory ledger.
    """

    __tablename__ = "product_variants"

    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Owning product",
    )

    label: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Variant label such as a size",
    )

    stock_quantity: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Available quantity, written only by the inventory ledger",
    )

    min_stock_level: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Advisory low stock threshold",
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        comment="Whether the variant can be bought",
    )

    product: Mapped["Product"] = relationship(
        "Product",
        back_populates="variants",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("product_id", "label", name="uq_product_variants_label"),
        CheckConstraint(
            "stock_quantity >= 0",
            name="ck_product_variants_stock_non_negative",
        ),
        CheckConstraint(
            "min_stock_level >= 0",
            name="ck_product_variants_min_stock_non_negative",
        ),
        Index("ix_product_variants_active_stock", "is_active", "stock_quantity"),
    )
