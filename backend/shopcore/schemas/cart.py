"""
Cart schemas for shopping cart API requests and responses.

Cart responses are always priced from the live catalog; lines that are no
longer for sale are returned with is_available false and no price.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from shopcore.services.cart import CartView, PriceBreakdown


class AddToCartRequest(BaseModel):
    """Schema for adding items to cart."""

    product_id: UUID = Field(..., description="Product to add")
    variant_id: UUID = Field(..., description="Variant of the product to add")
    quantity: int = Field(default=1, description="Quantity to add", le=1000)

    model_config = {
        "json_schema_extra": {
            "example": {
                "product_id": "123e4567-e89b-12d3-a456-426614174000",
                "variant_id": "123e4567-e89b-12d3-a456-426614174001",
                "quantity": 1,
            }
        }
    }


class UpdateCartItemRequest(BaseModel):
    """Schema for setting the quantity of a cart line; zero removes it."""

    quantity: int = Field(..., description="New quantity for the line", le=1000)

    model_config = {"json_schema_extra": {"example": {"quantity": 2}}}


class CartLineResponse(BaseModel):
    """Schema for a priced cart line."""

    product_id: UUID
    variant_id: UUID
    product_name: Optional[str] = None
    variant_label: Optional[str] = None
    quantity: int
    unit_price: Optional[Decimal] = None
    line_total: Decimal
    is_available: bool


class CartTotalsResponse(BaseModel):
    """Schema for cart totals."""

    subtotal: Decimal
    tax_amount: Decimal
    shipping_cost: Decimal
    discount_amount: Decimal
    total: Decimal


class CartResponse(BaseModel):
    """Schema for cart response."""

    owner: str = Field(..., description="Cart owner reference")
    items: list[CartLineResponse] = Field(default_factory=list)
    item_count: int = 0
    totals: CartTotalsResponse
    updated_at: Optional[datetime] = None

    @classmethod
    def from_view(cls, view: CartView, totals: PriceBreakdown) -> "CartResponse":
        return cls(
            owner=view.identity.actor_ref,
            items=[
                CartLineResponse(
                    product_id=line.product_id,
                    variant_id=line.variant_id,
                    product_name=line.product_name,
                    variant_label=line.variant_label,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    line_total=line.line_total,
                    is_available=line.is_available,
                )
                for line in view.lines
            ],
            item_count=view.item_count,
            totals=CartTotalsResponse(
                subtotal=totals.subtotal,
                tax_amount=totals.tax_amount,
                shipping_cost=totals.shipping_cost,
                discount_amount=totals.discount_amount,
                total=totals.total,
            ),
            updated_at=view.updated_at,
        )
