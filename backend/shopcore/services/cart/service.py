"""
Cart entry point selecting the store for an identity.

Guests are served by the Redis session store, authenticated customers by
the relational store. On login the guest cart is merged into the account
cart.
"""

import uuid
from decimal import Decimal
from typing import Optional

from shopcore.core.logging import get_logger
from shopcore.services.cart.identity import Identity
from shopcore.services.cart.pricing import ZERO, PriceBreakdown, ShippingRule
from shopcore.services.cart.store import CartLineKey, CartStore, CartView
from shopcore.services.inventory import StockLedger

logger = get_logger(__name__)


class CartStores:
    """
    CartStore contract over both backends.

    Every method takes the identity first and forwards to the store that
    owns that kind of identity.
    """

    def __init__(
        self,
        guest_store: CartStore,
        account_store: CartStore,
        ledger: StockLedger,
    ):
        self._guest_store = guest_store
        self._account_store = account_store
        self._ledger = ledger

    def for_identity(self, identity: Identity) -> CartStore:
        """Store holding the cart of an identity."""
        return self._guest_store if identity.is_guest else self._account_store

    async def get(self, identity: Identity) -> CartView:
        return await self.for_identity(identity).get(identity)

    async def add_item(
        self,
        identity: Identity,
        product_id: uuid.UUID,
        variant_id: uuid.UUID,
        quantity: int,
    ) -> CartView:
        return await self.for_identity(identity).add_item(
            identity, product_id, variant_id, quantity
        )

    async def update_item(
        self, identity: Identity, line: CartLineKey, quantity: int
    ) -> CartView:
        return await self.for_identity(identity).update_item(identity, line, quantity)

    async def set_quantity(
        self, identity: Identity, line: CartLineKey, quantity: int
    ) -> CartView:
        return await self.for_identity(identity).set_quantity(identity, line, quantity)

    async def remove_item(self, identity: Identity, line: CartLineKey) -> CartView:
        return await self.for_identity(identity).remove_item(identity, line)

    async def clear(self, identity: Identity) -> CartView:
        return await self.for_identity(identity).clear(identity)

    def totals(
        self,
        cart: CartView,
        shipping_rule: Optional[ShippingRule] = None,
        tax_rate: Optional[Decimal] = None,
        discount_amount: Decimal = ZERO,
    ) -> PriceBreakdown:
        return self.for_identity(cart.identity).totals(
            cart, shipping_rule, tax_rate, discount_amount
        )

    async def merge_into_account(
        self, guest_identity: Identity, user_identity: Identity
    ) -> CartView:
        """
        Move a guest cart into an account cart after login.

        Quantities of lines present in both carts are summed and capped at
        the stock available now. Lines that are no longer for sale or have
        no stock left are dropped. The guest cart is cleared afterwards.

        Args:
            guest_identity: Guest session that owned the cart
            user_identity: Account the customer logged into

        Returns:
            The account cart after the merge
        """
        if not guest_identity.is_guest or not user_identity.is_user:
            raise ValueError("Merge moves a guest cart into an account cart")

        guest_cart = await self._guest_store.get(guest_identity)
        account_cart = await self._account_store.get(user_identity)

        merged = 0
        skipped = 0
        for line in guest_cart.lines:
            existing = account_cart.find(line.key)
            existing_quantity = existing.quantity if existing else 0

            available = None
            if line.is_available:
                available = await self._ledger.available_quantity(line.variant_id)

            target = min(existing_quantity + line.quantity, available or 0)
            if target <= existing_quantity:
                skipped += 1
                continue

            await self._account_store.set_quantity(user_identity, line.key, target)
            merged += 1

        await self._guest_store.clear(guest_identity)

        logger.info(
            "Guest cart merged into account",
            guest=guest_identity.actor_ref,
            user=user_identity.actor_ref,
            merged_lines=merged,
            skipped_lines=skipped,
        )
        return await self._account_store.get(user_identity)
