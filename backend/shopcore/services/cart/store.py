"""
Cart store contract and the logic shared by its backends.

A backend only persists raw lines (product, variant, quantity). Validation
against the catalog and the stock ledger, merging of repeated adds, and
pricing from live catalog data are done here, once, for both the Redis guest
store and the relational account store.
"""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import NamedTuple, Optional

from shopcore.core.config import Settings, get_settings
from shopcore.core.logging import get_logger
from shopcore.services.cart.exceptions import (
    CartItemNotFoundError,
    InvalidQuantityError,
    OutOfStockError,
    ProductNotFoundError,
)
from shopcore.services.cart.identity import Identity
from shopcore.services.cart.pricing import (
    ZERO,
    PriceBreakdown,
    ShippingRule,
    calculate_totals,
    default_shipping_rule,
    money,
)
from shopcore.services.catalog import CatalogReader
from shopcore.services.inventory import StockLedger

logger = get_logger(__name__)


class CartLineKey(NamedTuple):
    """Identifies a cart line; a cart holds at most one line per key."""

    product_id: uuid.UUID
    variant_id: uuid.UUID


@dataclass
class CartContents:
    """Raw persisted state of a cart."""

    quantities: dict[CartLineKey, int] = field(default_factory=dict)
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class CartLine:
    """
    Cart line priced from the live catalog.

    Lines whose product or variant vanished or was deactivated stay in the
    cart but are unavailable: they have no price and count for nothing in
    the subtotal.
    """

    product_id: uuid.UUID
    variant_id: uuid.UUID
    quantity: int
    product_name: Optional[str]
    variant_label: Optional[str]
    unit_price: Optional[Decimal]
    is_available: bool

    @property
    def key(self) -> CartLineKey:
        return CartLineKey(self.product_id, self.variant_id)

    @property
    def line_total(self) -> Decimal:
        if not self.is_available or self.unit_price is None:
            return ZERO
        return money(self.unit_price * self.quantity)


@dataclass(frozen=True)
class CartView:
    """Priced snapshot of a cart."""

    identity: Identity
    lines: tuple[CartLine, ...] = ()
    updated_at: Optional[datetime] = None

    @property
    def is_empty(self) -> bool:
        return not self.lines

    @property
    def subtotal(self) -> Decimal:
        return money(sum((line.line_total for line in self.lines), ZERO))

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    @property
    def unavailable_lines(self) -> tuple[CartLine, ...]:
        return tuple(line for line in self.lines if not line.is_available)

    def find(self, key: CartLineKey) -> Optional[CartLine]:
        for line in self.lines:
            if line.key == key:
                return line
        return None


class CartStore(ABC):
    """
    Holds the cart of one kind of identity.

    Subclasses implement the three persistence primitives; everything a
    caller uses is defined here.
    """

    def __init__(
        self,
        catalog: CatalogReader,
        ledger: StockLedger,
        settings: Optional[Settings] = None,
    ):
        self._catalog = catalog
        self._ledger = ledger
        self._settings = settings or get_settings()

    # ------------------------------------------------------------------
    # Persistence primitives
    # ------------------------------------------------------------------

    @abstractmethod
    async def _load(self, identity: Identity) -> CartContents:
        """Read the raw cart; an unknown cart is empty."""

    @abstractmethod
    async def _write_quantity(
        self, identity: Identity, key: CartLineKey, quantity: int
    ) -> None:
        """Set the quantity of a line; zero removes it."""

    @abstractmethod
    async def _clear(self, identity: Identity) -> None:
        """Remove every line of the cart."""

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------

    async def get(self, identity: Identity) -> CartView:
        """
        Get the priced cart of an identity.

        Returns an empty cart when the identity has none.
        """
        contents = await self._load(identity)
        return await self._price(identity, contents)

    async def add_item(
        self,
        identity: Identity,
        product_id: uuid.UUID,
        variant_id: uuid.UUID,
        quantity: int,
    ) -> CartView:
        """
        Add a quantity of a variant, merging with an existing line.

        Raises:
            InvalidQuantityError: If quantity is not positive
            ProductNotFoundError: If the product/variant is unknown or not for sale
            OutOfStockError: If the merged quantity exceeds available stock
        """
        if quantity <= 0:
            raise InvalidQuantityError(quantity)

        key = CartLineKey(product_id, variant_id)
        await self._require_product(key)

        contents = await self._load(identity)
        merged = contents.quantities.get(key, 0) + quantity
        await self._require_stock(key, merged)

        await self._write_quantity(identity, key, merged)
        logger.info(
            "Item added to cart",
            identity=identity.actor_ref,
            product_id=str(product_id),
            variant_id=str(variant_id),
            quantity=quantity,
            line_quantity=merged,
        )
        return await self.get(identity)

    async def update_item(
        self, identity: Identity, line: CartLineKey, quantity: int
    ) -> CartView:
        """
        Set the absolute quantity of a line; zero or less removes it.

        Raises:
            CartItemNotFoundError: If the line is not in the cart
            OutOfStockError: If the quantity exceeds available stock
        """
        contents = await self._load(identity)
        if line not in contents.quantities:
            raise CartItemNotFoundError(line.product_id, line.variant_id)

        if quantity <= 0:
            return await self.remove_item(identity, line)

        await self._require_stock(line, quantity)
        await self._write_quantity(identity, line, quantity)
        logger.info(
            "Cart item updated",
            identity=identity.actor_ref,
            product_id=str(line.product_id),
            variant_id=str(line.variant_id),
            quantity=quantity,
        )
        return await self.get(identity)

    async def set_quantity(
        self, identity: Identity, line: CartLineKey, quantity: int
    ) -> CartView:
        """
        Put a line at an absolute quantity, creating it when missing.

        Zero or less removes the line if present.

        Raises:
            ProductNotFoundError: If the product/variant is unknown or not for sale
            OutOfStockError: If the quantity exceeds available stock
        """
        if quantity <= 0:
            await self._write_quantity(identity, line, 0)
            return await self.get(identity)

        await self._require_product(line)
        await self._require_stock(line, quantity)
        await self._write_quantity(identity, line, quantity)
        logger.info(
            "Cart line quantity set",
            identity=identity.actor_ref,
            product_id=str(line.product_id),
            variant_id=str(line.variant_id),
            quantity=quantity,
        )
        return await self.get(identity)

    async def remove_item(self, identity: Identity, line: CartLineKey) -> CartView:
        """
        Remove a line from the cart.

        Raises:
            CartItemNotFoundError: If the line is not in the cart
        """
        contents = await self._load(identity)
        if line not in contents.quantities:
            raise CartItemNotFoundError(line.product_id, line.variant_id)

        await self._write_quantity(identity, line, 0)
        logger.info(
            "Cart item removed",
            identity=identity.actor_ref,
            product_id=str(line.product_id),
            variant_id=str(line.variant_id),
        )
        return await self.get(identity)

    async def clear(self, identity: Identity) -> CartView:
        """Empty the cart."""
        await self._clear(identity)
        logger.info("Cart cleared", identity=identity.actor_ref)
        return CartView(identity=identity)

    def totals(
        self,
        cart: CartView,
        shipping_rule: Optional[ShippingRule] = None,
        tax_rate: Optional[Decimal] = None,
        discount_amount: Decimal = ZERO,
    ) -> PriceBreakdown:
        """Price a cart view with the shared checkout pricing."""
        return calculate_totals(
            cart.subtotal,
            tax_rate=self._settings.tax_rate if tax_rate is None else tax_rate,
            shipping_rule=shipping_rule or default_shipping_rule(self._settings),
            discount_amount=discount_amount,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _require_product(self, key: CartLineKey) -> None:
        snapshot = await self._catalog.get_product_variant(
            key.product_id, key.variant_id
        )
        if snapshot is None or not snapshot.is_available:
            raise ProductNotFoundError(key.product_id, key.variant_id)

    async def _require_stock(self, key: CartLineKey, quantity: int) -> None:
        if await self._ledger.check_available(key.variant_id, quantity):
            return
        available = await self._ledger.available_quantity(key.variant_id)
        logger.info(
            "Cart quantity exceeds stock",
            product_id=str(key.product_id),
            variant_id=str(key.variant_id),
            requested=quantity,
            available=available,
        )
        raise OutOfStockError(key.product_id, key.variant_id, quantity, available)

    async def _price(self, identity: Identity, contents: CartContents) -> CartView:
        snapshots = await self._catalog.get_many(contents.quantities.keys())

        lines = []
        for key, quantity in contents.quantities.items():
            snapshot = snapshots.get(key)
            if snapshot is None:
                lines.append(
                    CartLine(
                        product_id=key.product_id,
                        variant_id=key.variant_id,
                        quantity=quantity,
                        product_name=None,
                        variant_label=None,
                        unit_price=None,
                        is_available=False,
                    )
                )
                continue

            lines.append(
                CartLine(
                    product_id=key.product_id,
                    variant_id=key.variant_id,
                    quantity=quantity,
                    product_name=snapshot.product_name,
                    variant_label=snapshot.variant_label,
                    unit_price=snapshot.unit_price if snapshot.is_available else None,
                    is_available=snapshot.is_available,
                )
            )

        return CartView(
            identity=identity,
            lines=tuple(lines),
            updated_at=contents.updated_at,
        )
