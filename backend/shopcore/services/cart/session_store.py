"""
Guest cart storage in Redis.

A guest cart is one JSON document under ``cart:guest:<session_id>``. The
key expires after the configured TTL, refreshed on every write, so
abandoned guest carts disappear on their own.
"""

import uuid
from datetime import datetime
from typing import Any, Optional

from redis.exceptions import RedisError

from shopcore.cache.redis_client import CacheKeyManager, RedisClient
from shopcore.core.config import Settings
from shopcore.core.exceptions import StorageError
from shopcore.core.logging import get_logger
from shopcore.database.base import utcnow
from shopcore.services.cart.identity import Identity
from shopcore.services.cart.store import CartContents, CartLineKey, CartStore
from shopcore.services.catalog import CatalogReader
from shopcore.services.inventory import StockLedger

logger = get_logger(__name__)


class SessionCartStore(CartStore):
    """Cart store for guest identities backed by Redis."""

    def __init__(
        self,
        redis_client: RedisClient,
        catalog: CatalogReader,
        ledger: StockLedger,
        settings: Optional[Settings] = None,
        key_manager: Optional[CacheKeyManager] = None,
    ):
        super().__init__(catalog, ledger, settings)
        self._redis = redis_client
        self._keys = key_manager or CacheKeyManager()

    def _key(self, identity: Identity) -> str:
        if not identity.is_guest:
            raise ValueError("Session cart store only holds guest carts")
        return self._keys.guest_cart_key(identity.value)

    @staticmethod
    def _decode(document: Optional[dict[str, Any]]) -> CartContents:
        if not document:
            return CartContents()

        quantities = {}
        for item in document.get("items", []):
            key = CartLineKey(
                uuid.UUID(item["product_id"]), uuid.UUID(item["variant_id"])
            )
            quantities[key] = int(item["quantity"])

        updated_at = document.get("updated_at")
        return CartContents(
            quantities=quantities,
            updated_at=datetime.fromisoformat(updated_at) if updated_at else None,
        )

    @staticmethod
    def _encode(contents: CartContents) -> dict[str, Any]:
        return {
            "items": [
                {
                    "product_id": str(key.product_id),
                    "variant_id": str(key.variant_id),
                    "quantity": quantity,
                }
                for key, quantity in contents.quantities.items()
            ],
            "updated_at": contents.updated_at.isoformat()
            if contents.updated_at
            else None,
        }

    async def _load(self, identity: Identity) -> CartContents:
        key = self._key(identity)
        try:
            document = await self._redis.get_json(key)
        except RedisError as e:
            logger.error("Failed to read guest cart", key=key, error=str(e))
            raise StorageError("Guest cart store unavailable", key=key) from e
        return self._decode(document)

    async def _save(self, identity: Identity, contents: CartContents) -> None:
        key = self._key(identity)
        contents.updated_at = utcnow()
        try:
            await self._redis.set_json(
                key,
                self._encode(contents),
                ex=self._settings.guest_cart_ttl_seconds,
            )
        except RedisError as e:
            logger.error("Failed to write guest cart", key=key, error=str(e))
            raise StorageError("Guest cart store unavailable", key=key) from e

    async def _write_quantity(
        self, identity: Identity, key: CartLineKey, quantity: int
    ) -> None:
        contents = await self._load(identity)
        if quantity <= 0:
            contents.quantities.pop(key, None)
        else:
            contents.quantities[key] = quantity
        await self._save(identity, contents)

    async def _clear(self, identity: Identity) -> None:
        key = self._key(identity)
        try:
            await self._redis.delete(key)
        except RedisError as e:
            logger.error("Failed to clear guest cart", key=key, error=str(e))
            raise StorageError("Guest cart store unavailable", key=key) from e
