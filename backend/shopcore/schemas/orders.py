"""
Order schemas for checkout, order detail and status change requests.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from shopcore.database.models import OrderStatus
from shopcore.services.orders import OrderReceipt, TransitionResult


class CheckoutRequest(BaseModel):
    """Schema for placing an order from the current cart."""

    shipping_address: dict[str, Any] = Field(
        ..., description="Shipping address fields"
    )
    billing_address: Optional[dict[str, Any]] = Field(
        None, description="Billing address; defaults to the shipping address"
    )
    payment_method: str = Field(..., description="Payment method, e.g. cod or online")
    notes: Optional[str] = Field(None, max_length=1000, description="Order notes")

    model_config = {
        "json_schema_extra": {
            "example": {
                "shipping_address": {
                    "name": "Jane Doe",
                    "line1": "12 Market Street",
                    "city": "Springfield",
                    "postal_code": "12345",
                    "phone": "+1 555 0100",
                },
                "payment_method": "cod",
            }
        }
    }


class OrderItemResponse(BaseModel):
    """Schema for an order line."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    product_id: UUID
    variant_id: UUID
    product_name: str
    variant_label: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal


class StatusHistoryResponse(BaseModel):
    """Schema for a status history entry."""

    model_config = ConfigDict(from_attributes=True)

    status: OrderStatus
    note: Optional[str] = None
    actor: str
    created_at: datetime


class OrderResponse(BaseModel):
    """Schema for order detail."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    order_number: str
    status: OrderStatus
    subtotal: Decimal
    tax_amount: Decimal
    shipping_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    shipping_address: dict[str, Any]
    billing_address: dict[str, Any]
    payment_method: str
    notes: Optional[str] = None
    created_at: datetime
    items: list[OrderItemResponse] = Field(default_factory=list)
    status_history: list[StatusHistoryResponse] = Field(default_factory=list)


class AdminOrderResponse(OrderResponse):
    """Order detail with the statuses an administrator can move it to."""

    allowed_transitions: list[OrderStatus] = Field(default_factory=list)


class OrderListResponse(BaseModel):
    """Schema for a page of orders."""

    orders: list[OrderResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class OrderReceiptResponse(BaseModel):
    """Schema for a successful checkout."""

    order_id: UUID
    order_number: str
    status: OrderStatus
    payment_method: str
    subtotal: Decimal
    tax_amount: Decimal
    shipping_cost: Decimal
    discount_amount: Decimal
    total: Decimal
    items: list[OrderItemResponse]
    created_at: datetime

    @classmethod
    def from_receipt(cls, receipt: OrderReceipt) -> "OrderReceiptResponse":
        return cls(
            order_id=receipt.order_id,
            order_number=receipt.order_number,
            status=receipt.status,
            payment_method=receipt.payment_method,
            subtotal=receipt.totals.subtotal,
            tax_amount=receipt.totals.tax_amount,
            shipping_cost=receipt.totals.shipping_cost,
            discount_amount=receipt.totals.discount_amount,
            total=receipt.totals.total,
            items=[
                OrderItemResponse(
                    id=item.order_item_id,
                    product_id=item.product_id,
                    variant_id=item.variant_id,
                    product_name=item.product_name,
                    variant_label=item.variant_label,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    line_total=item.line_total,
                )
                for item in receipt.items
            ],
            created_at=receipt.created_at,
        )


class StatusTransitionRequest(BaseModel):
    """Schema for an administrator status change."""

    status: str = Field(..., description="Target order status")
    note: Optional[str] = Field(None, max_length=500, description="Reason for the change")


class TransitionResponse(BaseModel):
    """Schema for a committed status change."""

    order_id: UUID
    order_number: str
    previous_status: OrderStatus
    new_status: OrderStatus
    credited_items: int
    changed_at: datetime

    @classmethod
    def from_result(cls, result: TransitionResult) -> "TransitionResponse":
        return cls(
            order_id=result.order_id,
            order_number=result.order_number,
            previous_status=result.previous_status,
            new_status=result.new_status,
            credited_items=result.credited_items,
            changed_at=result.changed_at,
        )
