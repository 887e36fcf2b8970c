"""Order status transition rules.

Cancelled and refunded are terminal. Apart from that the rules are a table
of rejected origins per destination status; every other move between
distinct statuses is allowed, including jumping straight to delivered.
"""

from typing import Dict, Set

from shopcore.database.models.order import OrderStatus

# Destination status -> origin statuses it cannot be reached from
FORBIDDEN_ORIGINS: Dict[OrderStatus, Set[OrderStatus]] = {
    OrderStatus.CANCELLED: {OrderStatus.DELIVERED, OrderStatus.REFUNDED},
    OrderStatus.REFUNDED: {OrderStatus.PENDING},
}


def validate_order_status_transition(current: OrderStatus, new: OrderStatus) -> bool:
    """Validate if order status transition is allowed.

    Args:
        current: Current order status
        new: Desired new status

    Returns:
        True if transition is valid
    """
    if current.is_terminal or current == new:
        return False
    return current not in FORBIDDEN_ORIGINS.get(new, set())


def get_allowed_order_transitions(current: OrderStatus) -> list[OrderStatus]:
    """Get statuses reachable from the current one, in lifecycle order.

    Args:
        current: Current order status

    Returns:
        Allowed next statuses; empty for terminal statuses
    """
    return [
        status
        for status in OrderStatus
        if validate_order_status_transition(current, status)
    ]

