"""Checkout and order lifecycle errors."""

import uuid
from dataclasses import asdict, dataclass
from typing import Any, Optional, Sequence

from shopcore.core.exceptions import BusinessRuleError
from shopcore.database.models.order import OrderStatus


@dataclass(frozen=True)
class InvalidCartItem:
    """Cart line that cannot be ordered as requested."""

    product_id: uuid.UUID
    variant_id: uuid.UUID
    requested_quantity: int
    available_quantity: int
    reason: str

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["product_id"] = str(self.product_id)
        data["variant_id"] = str(self.variant_id)
        return data


class EmptyCartError(BusinessRuleError):
    """Raised when checking out an empty cart."""

    def __init__(self, identity: str):
        super().__init__("Cart is empty", code="EMPTY_CART", identity=identity)


class InvalidCartItemsError(BusinessRuleError):
    """Raised when one or more cart lines fail checkout validation."""

    def __init__(self, invalid_items: Sequence[InvalidCartItem]):
        super().__init__(
            "Some items in your cart are no longer available in the requested quantity",
            code="INVALID_CART_ITEMS",
            invalid_items=[item.to_dict() for item in invalid_items],
        )
        self.invalid_items = list(invalid_items)


class InvalidPaymentMethodError(BusinessRuleError):
    """Raised when the payment method is not accepted."""

    def __init__(self, payment_method: str, allowed: Sequence[str]):
        super().__init__(
            f"Payment method '{payment_method}' is not accepted",
            code="INVALID_PAYMENT_METHOD",
            payment_method=payment_method,
            allowed=list(allowed),
        )


class InvalidAddressError(BusinessRuleError):
    """Raised when an address is missing or malformed."""

    def __init__(self, field: str):
        super().__init__(
            f"A valid {field} is required",
            code="INVALID_ADDRESS",
            field=field,
        )


class UnknownOrderError(BusinessRuleError):
    """Raised when an order does not exist."""

    def __init__(self, order_id: uuid.UUID):
        super().__init__(
            f"Order {order_id} not found",
            code="ORDER_NOT_FOUND",
            order_id=str(order_id),
        )


class InvalidStatusError(BusinessRuleError):
    """Raised when a status value is not an order status."""

    def __init__(self, status: str):
        super().__init__(
            f"Invalid order status: {status}",
            code="INVALID_STATUS",
            status=status,
            valid_statuses=[s.value for s in OrderStatus],
        )


class IllegalTransitionError(BusinessRuleError):
    """Raised when the order cannot move from its status to the requested one."""

    def __init__(
        self,
        order_id: uuid.UUID,
        current_status: OrderStatus,
        target_status: OrderStatus,
        allowed: Optional[Sequence[OrderStatus]] = None,
    ):
        super().__init__(
            f"Cannot change order status from {current_status.value} "
            f"to {target_status.value}",
            code="ILLEGAL_TRANSITION",
            order_id=str(order_id),
            current_status=current_status.value,
            target_status=target_status.value,
            allowed=[status.value for status in allowed or []],
        )
        self.current_status = current_status
        self.target_status = target_status
