"""
Account cart storage in the relational store.

Authenticated customers keep one cart row with its item rows. The cart row
is locked while a line is written so concurrent requests of the same
account apply one after the other.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shopcore.core.config import Settings
from shopcore.core.logging import get_logger
from shopcore.database.base import utcnow
from shopcore.database.connection import transaction_scope
from shopcore.database.models import Cart, CartItem
from shopcore.services.cart.identity import Identity
from shopcore.services.cart.store import CartContents, CartLineKey, CartStore
from shopcore.services.catalog import CatalogReader
from shopcore.services.inventory import StockLedger

logger = get_logger(__name__)


class PersistentCartStore(CartStore):
    """Cart store for authenticated identities backed by SQLAlchemy."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        catalog: CatalogReader,
        ledger: StockLedger,
        settings: Optional[Settings] = None,
    ):
        super().__init__(catalog, ledger, settings)
        self._session_factory = session_factory

    @staticmethod
    def _user_id(identity: Identity) -> str:
        if not identity.is_user:
            raise ValueError("Persistent cart store only holds account carts")
        return identity.value

    @staticmethod
    async def _get_cart(
        db: AsyncSession, user_id: str, for_update: bool = False
    ) -> Optional[Cart]:
        stmt = select(Cart).where(Cart.user_id == user_id)
        if for_update:
            stmt = stmt.with_for_update()
        return (await db.execute(stmt)).scalar_one_or_none()

    async def _load(self, identity: Identity) -> CartContents:
        user_id = self._user_id(identity)
        async with transaction_scope(
            self._session_factory, None, "cart read"
        ) as db:
            cart = await self._get_cart(db, user_id)
            if cart is None:
                return CartContents()

            return CartContents(
                quantities={
                    CartLineKey(item.product_id, item.variant_id): item.quantity
                    for item in cart.items
                },
                updated_at=cart.updated_at,
            )

    async def _write_quantity(
        self, identity: Identity, key: CartLineKey, quantity: int
    ) -> None:
        user_id = self._user_id(identity)
        async with transaction_scope(
            self._session_factory, None, "cart write"
        ) as db:
            cart = await self._get_cart(db, user_id, for_update=True)
            if cart is None:
                if quantity <= 0:
                    return
                cart = Cart(user_id=user_id, items=[])
                db.add(cart)
                logger.info("Account cart created", user_id=user_id)

            item = next(
                (
                    item
                    for item in cart.items
                    if (item.product_id, item.variant_id) == key
                ),
                None,
            )

            if quantity <= 0:
                if item is not None:
                    cart.items.remove(item)
            elif item is None:
                cart.items.append(
                    CartItem(
                        product_id=key.product_id,
                        variant_id=key.variant_id,
                        quantity=quantity,
                    )
                )
            else:
                item.quantity = quantity

            cart.updated_at = utcnow()

    async def _clear(self, identity: Identity) -> None:
        user_id = self._user_id(identity)
        async with transaction_scope(
            self._session_factory, None, "cart clear"
        ) as db:
            cart = await self._get_cart(db, user_id, for_update=True)
            if cart is None:
                return
            cart.items.clear()
            cart.updated_at = utcnow()
