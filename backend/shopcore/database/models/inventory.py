"""
Inventory ledger model.

Every change to ProductVariant.stock_quantity appends exactly one
InventoryLedgerEntry. Entries are never updated or deleted, so the sum of
deltas for a variant always replays to its current stock.
"""

import uuid
from enum import Enum
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from shopcore.database.base import AppendOnlyModel


class LedgerReason(str, Enum):
    """
    Reason recorded with a stock movement.

    Attributes:
        SALE: Debit for an order item at checkout
        CANCELLATION_RETURN: Credit when an order is cancelled
        REFUND_RETURN: Credit when an order is refunded
        MANUAL_ADJUSTMENT: Signed correction made by an administrator
        INITIAL_STOCK: Opening balance of a variant
    """

    SALE = "sale"
    CANCELLATION_RETURN = "cancellation_return"
    REFUND_RETURN = "refund_return"
    MANUAL_ADJUSTMENT = "manual_adjustment"
    INITIAL_STOCK = "initial_stock"


class InventoryLedgerEntry(AppendOnlyModel):
    """
    Immutable record of a single stock movement.

    Attributes:
        id: Monotonic sequence number; higher means more recent
        variant_id: Variant whose stock moved
        product_id: Owning product, denormalized for reporting
        delta: Signed quantity change
        reason: Why the stock moved
        actor: Who moved it (user:<id>, guest:<id>, admin:<id> or system)
        resulting_quantity: Stock right after this movement
        order_item_id: Order item the movement belongs to, if any
        note: Free text supplied with manual adjustments
        created_at: When the movement was recorded
    """

    __tablename__ = "inventory_ledger_entries"

    variant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("product_variants.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
        comment="Variant whose stock moved",
    )

    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        nullable=False,
        index=True,
        comment="Owning product of the variant",
    )

    delta: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Signed quantity change",
    )

    reason: Mapped[LedgerReason] = mapped_column(
        SQLEnum(
            LedgerReason,
            name="ledger_reason",
            values_callable=lambda enum: [member.value for member in enum],
            create_constraint=True,
        ),
        nullable=False,
        index=True,
        comment="Reason for the movement",
    )

    actor: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Actor reference that caused the movement",
    )

    resulting_quantity: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Stock quantity right after the movement",
    )

    order_item_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("order_items.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
        comment="Order item the movement belongs to",
    )

    note: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True,
        comment="Free text note",
    )

    __table_args__ = (
        # One sale debit and one compensation per order item at most
        UniqueConstraint(
            "order_item_id",
            "reason",
            name="uq_inventory_ledger_order_item_reason",
        ),
        CheckConstraint("delta <> 0", name="ck_inventory_ledger_delta_non_zero"),
        CheckConstraint(
            "resulting_quantity >= 0",
            name="ck_inventory_ledger_resulting_non_negative",
        ),
        Index("ix_inventory_ledger_variant_recent", "variant_id", "id"),
    )
