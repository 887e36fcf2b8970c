"""
Shopping cart services.

Guest carts live in Redis, account carts in the relational store; both are
priced from the live catalog and validated against the stock ledger.
"""

from shopcore.services.cart.exceptions import (
    CartItemNotFoundError,
    InvalidQuantityError,
    OutOfStockError,
    ProductNotFoundError,
)
from shopcore.services.cart.identity import Identity, IdentityKind
from shopcore.services.cart.persistent_store import PersistentCartStore
from shopcore.services.cart.pricing import (
    PriceBreakdown,
    ShippingRule,
    calculate_totals,
    default_shipping_rule,
    shipping_rule_for,
)
from shopcore.services.cart.service import CartStores
from shopcore.services.cart.session_store import SessionCartStore
from shopcore.services.cart.store import (
    CartContents,
    CartLine,
    CartLineKey,
    CartStore,
    CartView,
)

__all__ = [
    "CartContents",
    "CartItemNotFoundError",
    "CartLine",
    "CartLineKey",
    "CartStore",
    "CartStores",
    "CartView",
    "Identity",
    "IdentityKind",
    "InvalidQuantityError",
    "OutOfStockError",
    "PersistentCartStore",
    "PriceBreakdown",
    "ProductNotFoundError",
    "SessionCartStore",
    "ShippingRule",
    "calculate_totals",
    "default_shipping_rule",
    "shipping_rule_for",
]
