"""Order state machine with compensating stock credits.

This module implements OrderStatusMachine, which validates order status
transitions and writes them with their side effects in one transaction.
Moving an order into cancelled or refunded returns the stock of every order
item through ledger credits; if any credit fails the status change is rolled
back with it.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shopcore.core.logging import get_logger, log_performance
from shopcore.database.base import utcnow
from shopcore.database.connection import transaction_scope
from shopcore.database.models import (
    LedgerReason,
    Order,
    OrderStatus,
    OrderStatusHistory,
)
from shopcore.services.audit import ActivityRecorder
from shopcore.services.inventory import StockLedger
from shopcore.services.orders.enums import (
    get_allowed_order_transitions,
    validate_order_status_transition,
)
from shopcore.services.orders.exceptions import (
    IllegalTransitionError,
    InvalidStatusError,
    UnknownOrderError,
)

logger = get_logger(__name__)

COMPENSATION_REASONS = {
    OrderStatus.CANCELLED: LedgerReason.CANCELLATION_RETURN,
    OrderStatus.REFUNDED: LedgerReason.REFUND_RETURN,
}


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of a committed status change."""

    order_id: uuid.UUID
    order_number: str
    previous_status: OrderStatus
    new_status: OrderStatus
    credited_items: int
    changed_at: datetime


class OrderStatusMachine:
    """State machine for order lifecycle transitions.

    The order row is locked for the duration of a transition, so two
    concurrent cancellations of one order are applied one after the other
    and the second one finds the order already terminal.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        ledger: StockLedger,
        activity: Optional[ActivityRecorder] = None,
    ):
        self._session_factory = session_factory
        self._ledger = ledger
        self._activity = activity or ActivityRecorder()

    @staticmethod
    def allowed_transitions(status: Union[str, OrderStatus]) -> list[OrderStatus]:
        """Statuses an order in the given status may move to."""
        return get_allowed_order_transitions(OrderStatusMachine._parse_status(status))

    @staticmethod
    def _parse_status(status: Union[str, OrderStatus]) -> OrderStatus:
        if isinstance(status, OrderStatus):
            return status
        try:
            return OrderStatus.from_string(status)
        except (ValueError, AttributeError):
            raise InvalidStatusError(str(status))

    async def transition(
        self,
        order_id: uuid.UUID,
        new_status: Union[str, OrderStatus],
        note: Optional[str] = None,
        actor: str = "system",
    ) -> TransitionResult:
        """Move an order to a new status.

        Args:
            order_id: Order to change
            new_status: Target status
            note: Comment stored in the status history
            actor: Actor reference of whoever makes the change

        Returns:
            TransitionResult describing the committed change

        Raises:
            UnknownOrderError: If the order does not exist
            InvalidStatusError: If new_status is not an order status
            IllegalTransitionError: If the order cannot move to new_status
            StorageError: If the relational store fails
        """
        with log_performance(logger, "order_status_transition", order_id=str(order_id)):
            async with transaction_scope(
                self._session_factory, None, "order status transition"
            ) as db:
                stmt = select(Order).where(Order.id == order_id).with_for_update()
                order = (await db.execute(stmt)).scalar_one_or_none()
                if order is None:
                    raise UnknownOrderError(order_id)

                target = self._parse_status(new_status)
                current = order.status
                if not validate_order_status_transition(current, target):
                    logger.info(
                        "Order status transition rejected",
                        order_id=str(order_id),
                        current_status=current.value,
                        target_status=target.value,
                    )
                    raise IllegalTransitionError(
                        order_id,
                        current,
                        target,
                        get_allowed_order_transitions(current),
                    )

                order.status = target
                db.add(
                    OrderStatusHistory(
                        order_id=order.id,
                        status=target,
                        note=note,
                        actor=actor,
                    )
                )

                credited = 0
                if target.returns_stock and not current.returns_stock:
                    credited = await self._return_stock(db, order, target, actor)

                await db.flush()
                order_number = order.order_number

        changed_at = utcnow()

        self._activity.record(
            actor,
            "order_status_changed",
            f"Order {order_number} status changed from {current.value} to {target.value}",
            order_id=str(order_id),
            credited_items=credited,
        )

        logger.info(
            "Order status changed",
            order_id=str(order_id),
            order_number=order_number,
            previous_status=current.value,
            new_status=target.value,
            credited_items=credited,
            actor=actor,
        )

        return TransitionResult(
            order_id=order_id,
            order_number=order_number,
            previous_status=current,
            new_status=target,
            credited_items=credited,
            changed_at=changed_at,
        )

    async def _return_stock(
        self,
        db: AsyncSession,
        order: Order,
        target: OrderStatus,
        actor: str,
    ) -> int:
        reason = COMPENSATION_REASONS[target]
        for item in order.items:
            await self._ledger.credit(
                item.variant_id,
                item.quantity,
                reason,
                actor,
                session=db,
                order_item_id=item.id,
                note=f"Order {order.order_number} {target.value}",
            )
        return len(order.items)
