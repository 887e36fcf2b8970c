"""Inventory ledger errors."""

import uuid
from typing import Optional

from shopcore.core.exceptions import BusinessRuleError


class InsufficientStockError(BusinessRuleError):
    """Raised when a debit would take a variant's stock below zero."""

    def __init__(
        self,
        variant_id: uuid.UUID,
        requested: int,
        available: Optional[int],
    ):
        super().__init__(
            f"Insufficient stock for variant {variant_id}",
            code="INSUFFICIENT_STOCK",
            variant_id=str(variant_id),
            requested=requested,
            available=available,
        )
        self.variant_id = variant_id
        self.requested = requested
        self.available = available


class VariantNotFoundError(BusinessRuleError):
    """Raised when a stock movement targets an unknown variant."""

    def __init__(self, variant_id: uuid.UUID):
        super().__init__(
            f"Product variant {variant_id} not found",
            code="VARIANT_NOT_FOUND",
            variant_id=str(variant_id),
        )
        self.variant_id = variant_id
