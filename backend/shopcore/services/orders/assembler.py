"""
Checkout: turning a validated cart into an order.

The order row, its first history entry, every order item and the sale debit
of every item are written in one transaction. If any debit fails the whole
checkout rolls back and nothing of the order remains. The cart is cleared
only after the commit.
"""

import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Mapping, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shopcore.core.config import Settings, get_settings
from shopcore.core.exceptions import ShopError
from shopcore.core.logging import get_logger, log_performance
from shopcore.database.base import utcnow
from shopcore.database.connection import transaction_scope
from shopcore.database.models import (
    LedgerReason,
    Order,
    OrderItem,
    OrderStatus,
    OrderStatusHistory,
)
from shopcore.services.audit import ActivityRecorder
from shopcore.services.cart import (
    CartStores,
    CartView,
    Identity,
    PriceBreakdown,
    calculate_totals,
    shipping_rule_for,
)
from shopcore.services.cart.pricing import ZERO, money
from shopcore.services.catalog import CatalogReader, VariantSnapshot
from shopcore.services.inventory import StockLedger
from shopcore.services.orders.exceptions import (
    EmptyCartError,
    InvalidAddressError,
    InvalidCartItem,
    InvalidCartItemsError,
    InvalidPaymentMethodError,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class OrderItemReceipt:
    order_item_id: uuid.UUID
    product_id: uuid.UUID
    variant_id: uuid.UUID
    product_name: str
    variant_label: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal


@dataclass(frozen=True)
class OrderReceipt:
    """Outcome of a successful checkout."""

    order_id: uuid.UUID
    order_number: str
    status: OrderStatus
    payment_method: str
    totals: PriceBreakdown
    items: tuple[OrderItemReceipt, ...]
    created_at: datetime


@dataclass(frozen=True)
class _PricedLine:
    snapshot: VariantSnapshot
    quantity: int

    @property
    def line_total(self) -> Decimal:
        return money(self.snapshot.unit_price * self.quantity)


class OrderAssembler:
    """Creates orders from carts."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        carts: CartStores,
        catalog: CatalogReader,
        ledger: StockLedger,
        activity: Optional[ActivityRecorder] = None,
        settings: Optional[Settings] = None,
    ):
        self._session_factory = session_factory
        self._carts = carts
        self._catalog = catalog
        self._ledger = ledger
        self._activity = activity or ActivityRecorder()
        self._settings = settings or get_settings()

    def generate_order_number(self) -> str:
        """
        Generate a human-readable order number.

        Format: prefix, UTC timestamp to the second, 16 random hex digits,
        e.g. LS20261019143005A1B2C3D4E5F60718.
        """
        timestamp = utcnow().strftime("%Y%m%d%H%M%S")
        return f"{self._settings.order_number_prefix}{timestamp}{secrets.token_hex(8).upper()}"

    async def create_order(
        self,
        identity: Identity,
        shipping_address: Mapping[str, Any],
        payment_method: str,
        billing_address: Optional[Mapping[str, Any]] = None,
        *,
        discount_amount: Decimal = ZERO,
        notes: Optional[str] = None,
    ) -> OrderReceipt:
        """
        Check out the cart of an identity.

        Args:
            identity: Cart owner placing the order
            shipping_address: Shipping address fields
            payment_method: One of the configured payment methods
            billing_address: Billing address; a copy of shipping when omitted
            discount_amount: Pre-computed discount, capped at the subtotal
            notes: Customer notes

        Returns:
            OrderReceipt with the frozen totals and items

        Raises:
            InvalidPaymentMethodError: If the payment method is not accepted
            InvalidAddressError: If an address is empty or not a mapping
            EmptyCartError: If the cart has no lines
            InvalidCartItemsError: If any line is unavailable or short on stock
            InsufficientStockError: If stock ran out between validation and debit
            StorageError: If the relational store fails
        """
        method = (payment_method or "").strip().lower()
        if method not in self._settings.payment_methods:
            raise InvalidPaymentMethodError(payment_method, self._settings.payment_methods)

        shipping = self._snapshot_address(shipping_address, "shipping_address")
        billing = (
            self._snapshot_address(billing_address, "billing_address")
            if billing_address is not None
            else dict(shipping)
        )

        with log_performance(logger, "checkout", identity=identity.actor_ref):
            cart = await self._carts.get(identity)
            if cart.is_empty:
                raise EmptyCartError(identity.actor_ref)

            lines = await self._validate_lines(cart)
            subtotal = money(sum((line.line_total for line in lines), ZERO))
            totals = calculate_totals(
                subtotal,
                tax_rate=self._settings.tax_rate,
                shipping_rule=shipping_rule_for(method, self._settings),
                discount_amount=discount_amount,
            )

            order, items = await self._persist(
                identity, lines, totals, shipping, billing, method, notes
            )

        await self._clear_cart(identity, order.order_number)

        self._activity.record(
            identity.actor_ref,
            "order_created",
            f"Order {order.order_number} created",
            order_id=str(order.id),
            total=str(totals.total),
        )

        logger.info(
            "Order created",
            order_id=str(order.id),
            order_number=order.order_number,
            identity=identity.actor_ref,
            item_count=len(items),
            total=str(totals.total),
        )

        return OrderReceipt(
            order_id=order.id,
            order_number=order.order_number,
            status=order.status,
            payment_method=order.payment_method,
            totals=totals,
            items=tuple(items),
            created_at=order.created_at,
        )

    @staticmethod
    def _snapshot_address(address: Any, field: str) -> dict[str, Any]:
        if not isinstance(address, Mapping) or not address:
            raise InvalidAddressError(field)
        return dict(address)

    async def _validate_lines(self, cart: CartView) -> list[_PricedLine]:
        snapshots = await self._catalog.get_many(line.key for line in cart.lines)

        priced = []
        invalid = []
        for line in cart.lines:
            snapshot = snapshots.get(line.key)
            if snapshot is None or not snapshot.is_available:
                invalid.append(
                    InvalidCartItem(
                        product_id=line.product_id,
                        variant_id=line.variant_id,
                        requested_quantity=line.quantity,
                        available_quantity=0,
                        reason="unavailable",
                    )
                )
                continue

            if not await self._ledger.check_available(line.variant_id, line.quantity):
                available = await self._ledger.available_quantity(line.variant_id)
                invalid.append(
                    InvalidCartItem(
                        product_id=line.product_id,
                        variant_id=line.variant_id,
                        requested_quantity=line.quantity,
                        available_quantity=available or 0,
                        reason="insufficient_stock",
                    )
                )
                continue

            priced.append(_PricedLine(snapshot=snapshot, quantity=line.quantity))

        if invalid:
            logger.info(
                "Checkout rejected invalid cart items",
                identity=cart.identity.actor_ref,
                invalid_count=len(invalid),
            )
            raise InvalidCartItemsError(invalid)

        return priced

    async def _persist(
        self,
        identity: Identity,
        lines: list[_PricedLine],
        totals: PriceBreakdown,
        shipping: dict[str, Any],
        billing: dict[str, Any],
        payment_method: str,
        notes: Optional[str],
    ) -> tuple[Order, list[OrderItemReceipt]]:
        actor = identity.actor_ref
        order = Order(
            id=uuid.uuid4(),
            order_number=self.generate_order_number(),
            user_id=identity.value if identity.is_user else None,
            guest_session_id=identity.value if identity.is_guest else None,
            status=OrderStatus.PENDING,
            subtotal=totals.subtotal,
            tax_amount=totals.tax_amount,
            shipping_amount=totals.shipping_cost,
            discount_amount=totals.discount_amount,
            total_amount=totals.total,
            shipping_address=shipping,
            billing_address=billing,
            payment_method=payment_method,
            notes=notes,
        )

        receipts = []
        async with transaction_scope(self._session_factory, None, "checkout") as db:
            db.add(order)
            db.add(
                OrderStatusHistory(
                    order_id=order.id,
                    status=OrderStatus.PENDING,
                    note="Order created",
                    actor=actor,
                )
            )
            await db.flush()

            for line in lines:
                snapshot = line.snapshot
                item = OrderItem(
                    id=uuid.uuid4(),
                    order_id=order.id,
                    product_id=snapshot.product_id,
                    variant_id=snapshot.variant_id,
                    product_name=snapshot.product_name,
                    variant_label=snapshot.variant_label,
                    quantity=line.quantity,
                    unit_price=snapshot.unit_price,
                    line_total=line.line_total,
                )
                db.add(item)
                await db.flush()

                await self._ledger.debit(
                    snapshot.variant_id,
                    line.quantity,
                    LedgerReason.SALE,
                    actor,
                    session=db,
                    order_item_id=item.id,
                )

                receipts.append(
                    OrderItemReceipt(
                        order_item_id=item.id,
                        product_id=item.product_id,
                        variant_id=item.variant_id,
                        product_name=item.product_name,
                        variant_label=item.variant_label,
                        quantity=item.quantity,
                        unit_price=item.unit_price,
                        line_total=item.line_total,
                    )
                )

        return order, receipts

    async def _clear_cart(self, identity: Identity, order_number: str) -> None:
        try:
            await self._carts.clear(identity)
        except ShopError as e:
            logger.warning(
                "Cart not cleared after checkout",
                identity=identity.actor_ref,
                order_number=order_number,
                error=str(e),
                error_type=type(e).__name__,
            )
