"""
Persistent cart models for authenticated customers.

Guest carts live in Redis; these tables hold the cart of a signed-in
account. Lines carry no prices: every view is priced from the live catalog.
"""

import uuid

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shopcore.database.base import BaseModel


class Cart(BaseModel):
    """
    Shopping cart owned by an authenticated account.

    updated_at is touched on every mutation of the cart or its items.
    """

    __tablename__ = "carts"

    user_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
        comment="Owning account identifier",
    )

    items: Mapped[list["CartItem"]] = relationship(
        "CartItem",
        back_populates="cart",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="CartItem.created_at",
    )


class CartItem(BaseModel):
    """Line item in a persistent cart."""

    __tablename__ = "cart_items"

    cart_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("carts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Owning cart",
    )

    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        nullable=False,
        comment="Product in the cart",
    )

    variant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        nullable=False,
        comment="Variant in the cart",
    )

    quantity: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Requested quantity",
    )

    cart: Mapped["Cart"] = relationship("Cart", back_populates="items")

    __table_args__ = (
        UniqueConstraint(
            "cart_id",
            "product_id",
            "variant_id",
            name="uq_cart_items_line",
        ),
        CheckConstraint("quantity > 0", name="ck_cart_items_quantity_positive"),
    )
