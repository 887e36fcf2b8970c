"""
Order models for checkout and fulfillment tracking.

This module defines Order, its immutable OrderItem lines and the append-only
OrderStatusHistory. Monetary totals and item prices are frozen when the order
is created; only the status moves afterwards.
"""

import uuid
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shopcore.database.base import AppendOnlyModel, BaseModel

JSONDocument = JSON().with_variant(JSONB(), "postgresql")


class OrderStatus(str, Enum):
    """
    Order status enumeration for tracking order lifecycle.

    Attributes:
        PENDING: Order created, awaiting processing
        PROCESSING: Order being prepared
        SHIPPED: Order handed to the carrier
        DELIVERED: Order delivered to customer
        CANCELLED: Order cancelled, stock returned
        REFUNDED: Order refunded, stock returned
    """

    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"

    @classmethod
    def from_string(cls, value: str) -> "OrderStatus":
        """
        Create OrderStatus from string value.

        Args:
            value: String representation of status

        Returns:
            OrderStatus enum value

        Raises:
            ValueError: If value is not a valid status
        """
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValueError(f"Invalid order status: {value}")

    @property
    def is_terminal(self) -> bool:
        """Check if status is terminal (no further transitions)."""
        return self in (OrderStatus.CANCELLED, OrderStatus.REFUNDED)

    @property
    def returns_stock(self) -> bool:
        """Check if entering this status puts sold stock back."""
        return self in (OrderStatus.CANCELLED, OrderStatus.REFUNDED)


OrderStatusType = SQLEnum(
    OrderStatus,
    name="order_status",
    values_callable=lambda enum: [member.value for member in enum],
    create_constraint=True,
)


class Order(BaseModel):
    """
    Customer order created from a cart.

    Exactly one of user_id and guest_session_id is set.

    Attributes:
        order_number: Human-readable unique order number
        user_id: Account that placed the order
        guest_session_id: Guest session that placed the order
        status: Current order status
        subtotal: Sum of line totals
        tax_amount: Tax charged on the subtotal
        shipping_amount: Shipping charged
        discount_amount: Discount applied
        total_amount: Amount payable
        shipping_address: Snapshot of the shipping address
        billing_address: Snapshot of the billing address
        payment_method: Chosen payment method
        notes: Customer notes
    """

    __tablename__ = "orders"

    order_number: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
        comment="Human-readable order number",
    )

    user_id: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
        index=True,
        comment="Account that placed the order",
    )

    guest_session_id: Mapped[Optional[str]] = mapped_column(
        String(128),
        nullable=True,
        index=True,
        comment="Guest session that placed the order",
    )

    status: Mapped[OrderStatus] = mapped_column(
        OrderStatusType,
        nullable=False,
        default=OrderStatus.PENDING,
        index=True,
        comment="Current order status",
    )

    # Pricing fields
    subtotal: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=False,
        comment="Sum of line totals",
    )

    tax_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=False,
        default=Decimal("0.00"),
        comment="Tax amount",
    )

    shipping_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=False,
        default=Decimal("0.00"),
        comment="Shipping charges",
    )

    discount_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=False,
        default=Decimal("0.00"),
        comment="Applied discount amount",
    )

    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=False,
        comment="Total amount payable",
    )

    shipping_address: Mapped[dict[str, Any]] = mapped_column(
        JSONDocument,
        nullable=False,
        comment="Shipping address snapshot",
    )

    billing_address: Mapped[dict[str, Any]] = mapped_column(
        JSONDocument,
        nullable=False,
        comment="Billing address snapshot",
    )

    payment_method: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        comment="Payment method chosen at checkout",
    )

    notes: Mapped[Optional[str]] = mapped_column(
        String(1000),
        nullable=True,
        comment="Customer notes",
    )

    items: Mapped[list["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="OrderItem.created_at",
    )

    status_history: Mapped[list["OrderStatusHistory"]] = relationship(
        "OrderStatusHistory",
        back_populates="order",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="OrderStatusHistory.id",
    )

    __table_args__ = (
        CheckConstraint(
            "(user_id IS NULL) <> (guest_session_id IS NULL)",
            name="ck_orders_single_owner",
        ),
        CheckConstraint("subtotal >= 0", name="ck_orders_subtotal_non_negative"),
        CheckConstraint("total_amount >= 0", name="ck_orders_total_non_negative"),
        Index("ix_orders_user_created", "user_id", "created_at"),
    )


class OrderItem(BaseModel):
    """
    Line of an order with its price locked at checkout.

    Rows are written once inside the checkout transaction and never mutated.
    """

    __tablename__ = "order_items"

    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Owning order",
    )

    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        nullable=False,
        comment="Ordered product",
    )

    variant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("product_variants.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
        comment="Ordered variant",
    )

    product_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Product name at checkout",
    )

    variant_label: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Variant label at checkout",
    )

    quantity: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Ordered quantity",
    )

    unit_price: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=False,
        comment="Unit price locked at checkout",
    )

    line_total: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=False,
        comment="unit_price times quantity",
    )

    order: Mapped["Order"] = relationship("Order", back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
    )


class OrderStatusHistory(AppendOnlyModel):
    """Status change record; the first row of every order is pending."""

    __tablename__ = "order_status_history"

    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Order whose status changed",
    )

    status: Mapped[OrderStatus] = mapped_column(
        OrderStatusType,
        nullable=False,
        comment="Status entered",
    )

    note: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True,
        comment="Reason or comment for the change",
    )

    actor: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Actor reference that made the change",
    )

    order: Mapped["Order"] = relationship("Order", back_populates="status_history")
