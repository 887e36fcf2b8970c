"""
Read-only catalog lookups used by the cart and checkout.

The catalog itself (product editing, images, categories) lives elsewhere;
this reader only resolves the live price and availability of a
product/variant pair.
"""

import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shopcore.core.logging import get_logger
from shopcore.database.connection import transaction_scope
from shopcore.database.models import Product, ProductVariant

logger = get_logger(__name__)

VariantKey = tuple[uuid.UUID, uuid.UUID]


@dataclass(frozen=True)
class VariantSnapshot:
    """Point-in-time view of a purchasable product variant."""

    product_id: uuid.UUID
    variant_id: uuid.UUID
    product_name: str
    sku: str
    variant_label: str
    unit_price: Decimal
    product_active: bool
    variant_active: bool
    stock_quantity: int

    @property
    def is_available(self) -> bool:
        """Check if both the product and the variant are for sale."""
        return self.product_active and self.variant_active


def _to_snapshot(product: Product, variant: ProductVariant) -> VariantSnapshot:
    return VariantSnapshot(
        product_id=product.id,
        variant_id=variant.id,
        product_name=product.name,
        sku=product.sku,
        variant_label=variant.label,
        unit_price=product.effective_price,
        product_active=product.is_active,
        variant_active=variant.is_active,
        stock_quantity=variant.stock_quantity,
    )


class CatalogReader:
    """Resolves live product/variant data for cart lines."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get_product_variant(
        self,
        product_id: uuid.UUID,
        variant_id: uuid.UUID,
        *,
        session: Optional[AsyncSession] = None,
    ) -> Optional[VariantSnapshot]:
        """
        Look up a variant of a product.

        Args:
            product_id: Product identifier
            variant_id: Variant identifier
            session: Optional session of an enclosing unit of work

        Returns:
            Snapshot, or None if the variant does not exist or belongs to
            another product
        """
        snapshots = await self.get_many([(product_id, variant_id)], session=session)
        return snapshots.get((product_id, variant_id))

    async def get_many(
        self,
        keys: Iterable[VariantKey],
        *,
        session: Optional[AsyncSession] = None,
    ) -> dict[VariantKey, VariantSnapshot]:
        """
        Look up several product/variant pairs in one query.

        Pairs that do not resolve are absent from the result.
        """
        wanted = set(keys)
        if not wanted:
            return {}

        variant_ids = {variant_id for _, variant_id in wanted}
        stmt = (
            select(Product, ProductVariant)
            .join(ProductVariant, ProductVariant.product_id == Product.id)
            .where(ProductVariant.id.in_(variant_ids))
        )

        async with transaction_scope(
            self._session_factory, session, "catalog lookup"
        ) as db:
            rows = (await db.execute(stmt)).all()

        snapshots = {}
        for product, variant in rows:
            key = (product.id, variant.id)
            if key in wanted:
                snapshots[key] = _to_snapshot(product, variant)

        logger.debug(
            "Catalog variants resolved",
            requested=len(wanted),
            found=len(snapshots),
        )
        return snapshots
