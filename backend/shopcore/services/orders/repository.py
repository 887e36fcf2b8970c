"""
Order read access.

Orders are written only by the assembler and the status machine; this
repository serves the order detail and order list pages. Items and status
history are loaded eagerly with the order.
"""

import math
import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shopcore.core.logging import get_logger
from shopcore.database.connection import transaction_scope
from shopcore.database.models import Order, OrderStatus
from shopcore.services.cart.identity import Identity

logger = get_logger(__name__)


@dataclass
class OrderPage:
    """One page of orders, newest first."""

    orders: list[Order]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.total else 0


class OrderRepository:
    """
    Repository for order read operations.

    Each call runs in its own short transaction; returned orders are
    detached with their items and history already loaded.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get_order(self, order_id: uuid.UUID) -> Optional[Order]:
        """
        Get order by ID with items and status history.

        Args:
            order_id: Order identifier

        Returns:
            Order or None if not found
        """
        async with transaction_scope(
            self._session_factory, None, "order lookup"
        ) as db:
            order = await db.get(Order, order_id)

        logger.debug("Order retrieved", order_id=str(order_id), found=order is not None)
        return order

    async def get_order_for_identity(
        self, order_id: uuid.UUID, identity: Identity
    ) -> Optional[Order]:
        """Get an order only if it belongs to the identity."""
        owner = Order.user_id if identity.is_user else Order.guest_session_id
        stmt = select(Order).where(Order.id == order_id, owner == identity.value)

        async with transaction_scope(
            self._session_factory, None, "order lookup"
        ) as db:
            return (await db.execute(stmt)).scalar_one_or_none()

    async def list_orders_for_user(
        self,
        user_id: str,
        page: int = 1,
        page_size: int = 10,
        status: Optional[OrderStatus] = None,
    ) -> OrderPage:
        """
        Get a user's orders, newest first.

        Args:
            user_id: Account identifier
            page: 1-based page number
            page_size: Orders per page
            status: Optional status filter

        Returns:
            OrderPage with orders and pagination totals
        """
        if page < 1:
            raise ValueError("Page number must be at least 1")

        filters = [Order.user_id == user_id]
        if status is not None:
            filters.append(Order.status == status)

        count_stmt = select(func.count()).select_from(Order).where(*filters)
        stmt = (
            select(Order)
            .where(*filters)
            .order_by(Order.created_at.desc(), Order.order_number.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )

        async with transaction_scope(
            self._session_factory, None, "order list"
        ) as db:
            total = (await db.execute(count_stmt)).scalar_one()
            orders = list((await db.execute(stmt)).scalars().all())

        logger.debug(
            "User orders retrieved",
            user_id=user_id,
            page=page,
            count=len(orders),
            total=total,
        )
        return OrderPage(orders=orders, total=total, page=page, page_size=page_size)
