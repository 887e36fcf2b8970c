"""Order checkout, lifecycle and read services."""

from shopcore.services.orders.assembler import (
    OrderAssembler,
    OrderItemReceipt,
    OrderReceipt,
)
from shopcore.services.orders.enums import (
    FORBIDDEN_ORIGINS,
    get_allowed_order_transitions,
    validate_order_status_transition,
)
from shopcore.services.orders.exceptions import (
    EmptyCartError,
    IllegalTransitionError,
    InvalidAddressError,
    InvalidCartItem,
    InvalidCartItemsError,
    InvalidPaymentMethodError,
    InvalidStatusError,
    UnknownOrderError,
)
from shopcore.services.orders.repository import OrderPage, OrderRepository
from shopcore.services.orders.state_machine import (
    OrderStatusMachine,
    TransitionResult,
)

__all__ = [
    "EmptyCartError",
    "FORBIDDEN_ORIGINS",
    "IllegalTransitionError",
    "InvalidAddressError",
    "InvalidCartItem",
    "InvalidCartItemsError",
    "InvalidPaymentMethodError",
    "InvalidStatusError",
    "OrderAssembler",
    "OrderItemReceipt",
    "OrderPage",
    "OrderReceipt",
    "OrderRepository",
    "OrderStatusMachine",
    "TransitionResult",
    "UnknownOrderError",
    "get_allowed_order_transitions",
    "validate_order_status_transition",
]
