"""
Inventory schemas for ledger history and stock adjustments.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from shopcore.database.models import LedgerReason


class LedgerEntryResponse(BaseModel):
    """Schema for one ledger entry."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    variant_id: UUID
    product_id: UUID
    delta: int
    reason: LedgerReason
    actor: str
    resulting_quantity: int
    order_item_id: Optional[UUID] = None
    note: Optional[str] = None
    created_at: datetime


class LedgerPageResponse(BaseModel):
    """Schema for a page of ledger entries, most recent first."""

    entries: list[LedgerEntryResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class StockAdjustmentRequest(BaseModel):
    """Schema for a manual stock correction."""

    delta: int = Field(..., description="Signed quantity change")
    note: Optional[str] = Field(None, max_length=500, description="Reason for the correction")

    @field_validator("delta")
    @classmethod
    def validate_delta(cls, v: int) -> int:
        """Reject empty adjustments."""
        if v == 0:
            raise ValueError("Adjustment delta must not be zero")
        return v

    model_config = {"json_schema_extra": {"example": {"delta": -2, "note": "Damaged"}}}


class StockAdjustmentResponse(BaseModel):
    """Schema for the stock after an adjustment."""

    variant_id: UUID
    stock_quantity: int


class ReconciliationResponse(BaseModel):
    """Schema for a ledger replay."""

    variant_id: UUID
    ledger_total: int
    stock_quantity: int
    entry_count: int
    is_consistent: bool


class LowStockResponse(BaseModel):
    """Schema for a low stock report line."""

    variant_id: UUID
    product_id: UUID
    product_name: str
    variant_label: str
    stock_quantity: int
    min_stock_level: int
    shortfall: int
