"""Inventory ledger service."""

from shopcore.services.inventory.exceptions import (
    InsufficientStockError,
    VariantNotFoundError,
)
from shopcore.services.inventory.ledger import (
    LedgerPage,
    LedgerReconciliation,
    LowStockVariant,
    StockLedger,
)

__all__ = [
    "InsufficientStockError",
    "LedgerPage",
    "LedgerReconciliation",
    "LowStockVariant",
    "StockLedger",
    "VariantNotFoundError",
]
