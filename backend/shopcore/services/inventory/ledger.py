"""
Inventory ledger: the single writer of variant stock.

Every stock movement is a guarded UPDATE of product_variants plus one
appended InventoryLedgerEntry, executed in the same transaction. Debits use
a compare-and-decrement (``stock_quantity >= q`` in the WHERE clause); the
row lock taken by that UPDATE serializes concurrent debits of one variant,
so two checkouts racing for the last unit cannot both succeed.

Mutations accept an optional ``session``. When given, the movement joins the
caller's transaction (checkout, status transitions) and is committed or
rolled back with it; otherwise the ledger runs its own transaction.
"""

import math
import uuid
from dataclasses import dataclass, field
from typing import AsyncIterator, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shopcore.core.config import Settings, get_settings
from shopcore.core.logging import get_logger
from shopcore.database.connection import transaction_scope
from shopcore.database.models import (
    InventoryLedgerEntry,
    LedgerReason,
    Product,
    ProductVariant,
)
from shopcore.services.inventory.exceptions import (
    InsufficientStockError,
    VariantNotFoundError,
)

logger = get_logger(__name__)

DEBIT_REASONS = frozenset({LedgerReason.SALE, LedgerReason.MANUAL_ADJUSTMENT})
CREDIT_REASONS = frozenset(
    {
        LedgerReason.CANCELLATION_RETURN,
        LedgerReason.REFUND_RETURN,
        LedgerReason.MANUAL_ADJUSTMENT,
        LedgerReason.INITIAL_STOCK,
    }
)


@dataclass
class LedgerPage:
    """One page of ledger entries, most recent first."""

    entries: list[InventoryLedgerEntry]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.total else 0

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages


@dataclass
class LedgerReconciliation:
    """Result of replaying a variant's ledger against its stored stock."""

    variant_id: uuid.UUID
    ledger_total: int
    stock_quantity: int
    entry_count: int

    @property
    def is_consistent(self) -> bool:
        return self.ledger_total == self.stock_quantity


@dataclass
class LowStockVariant:
    """Active variant at or below its advisory minimum."""

    variant_id: uuid.UUID
    product_id: uuid.UUID
    product_name: str
    variant_label: str
    stock_quantity: int
    min_stock_level: int
    shortfall: int = field(init=False)

    def __post_init__(self) -> None:
        self.shortfall = self.min_stock_level - self.stock_quantity


class StockLedger:
    """
    Authoritative available-quantity store per product variant.

    Business outcomes (not enough stock, unknown variant) are raised as
    BusinessRuleError subclasses and are never retried. Storage failures
    surface as StorageError and abort the enclosing transaction.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Optional[Settings] = None,
    ):
        self._session_factory = session_factory
        self._settings = settings or get_settings()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def available_quantity(
        self,
        variant_id: uuid.UUID,
        *,
        session: Optional[AsyncSession] = None,
    ) -> Optional[int]:
        """
        Get the current stock of an active variant.

        Args:
            variant_id: Variant identifier
            session: Optional session of an enclosing unit of work

        Returns:
            Stock quantity, or None if the variant is missing or inactive
        """
        stmt = select(ProductVariant.stock_quantity).where(
            ProductVariant.id == variant_id,
            ProductVariant.is_active.is_(True),
        )
        async with transaction_scope(
            self._session_factory, session, "stock lookup"
        ) as db:
            return (await db.execute(stmt)).scalar_one_or_none()

    async def check_available(
        self,
        variant_id: uuid.UUID,
        quantity: int,
        *,
        session: Optional[AsyncSession] = None,
    ) -> bool:
        """
        Check whether a quantity of a variant can be sold right now.

        Never raises for missing or inactive variants; they are simply not
        available. Non-positive quantities are never available.
        """
        if quantity <= 0:
            return False

        available = await self.available_quantity(variant_id, session=session)
        is_available = available is not None and available >= quantity

        logger.debug(
            "Stock availability checked",
            variant_id=str(variant_id),
            requested=quantity,
            available=available,
            is_available=is_available,
        )
        return is_available

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def debit(
        self,
        variant_id: uuid.UUID,
        quantity: int,
        reason: LedgerReason = LedgerReason.SALE,
        actor: str = "system",
        *,
        session: Optional[AsyncSession] = None,
        order_item_id: Optional[uuid.UUID] = None,
        note: Optional[str] = None,
    ) -> int:
        """
        Remove stock from a variant.

        Args:
            variant_id: Variant to debit
            quantity: Positive quantity to remove
            reason: SALE or MANUAL_ADJUSTMENT
            actor: Actor reference recorded on the entry
            session: Optional session of an enclosing unit of work
            order_item_id: Order item the debit belongs to
            note: Optional free text

        Returns:
            Stock quantity after the debit

        Raises:
            ValueError: If quantity is not positive or reason is not a debit
            InsufficientStockError: If the variant cannot cover the quantity
            VariantNotFoundError: If the variant does not exist
            StorageError: If the relational store fails
        """
        if quantity <= 0:
            raise ValueError("Debit quantity must be positive")
        if reason not in DEBIT_REASONS:
            raise ValueError(f"{reason.value} is not a debit reason")

        stmt = (
            update(ProductVariant)
            .where(
                ProductVariant.id == variant_id,
                ProductVariant.is_active.is_(True),
                ProductVariant.stock_quantity >= quantity,
            )
            .values(stock_quantity=ProductVariant.stock_quantity - quantity)
            .returning(ProductVariant.stock_quantity, ProductVariant.product_id)
            .execution_options(synchronize_session=False)
        )

        async with transaction_scope(
            self._session_factory, session, "stock debit"
        ) as db:
            row = (await db.execute(stmt)).first()
            if row is None:
                await self._raise_debit_rejected(db, variant_id, quantity)

            resulting_quantity, product_id = row
            await self._append_entry(
                db,
                variant_id=variant_id,
                product_id=product_id,
                delta=-quantity,
                reason=reason,
                actor=actor,
                resulting_quantity=resulting_quantity,
                order_item_id=order_item_id,
                note=note,
            )

        logger.info(
            "Stock debited",
            variant_id=str(variant_id),
            quantity=quantity,
            resulting_quantity=resulting_quantity,
            reason=reason.value,
            actor=actor,
        )
        return resulting_quantity

    async def credit(
        self,
        variant_id: uuid.UUID,
        quantity: int,
        reason: LedgerReason,
        actor: str = "system",
        *,
        session: Optional[AsyncSession] = None,
        order_item_id: Optional[uuid.UUID] = None,
        note: Optional[str] = None,
    ) -> int:
        """
        Return stock to a variant.

        Credits are unconditional and also apply to inactive variants, so
        stock from a cancelled order always comes back.

        Raises:
            ValueError: If quantity is not positive or reason is not a credit
            VariantNotFoundError: If the variant does not exist
            StorageError: If the relational store fails
        """
        if quantity <= 0:
            raise ValueError("Credit quantity must be positive")
        if reason not in CREDIT_REASONS:
            raise ValueError(f"{reason.value} is not a credit reason")

        stmt = (
            update(ProductVariant)
            .where(ProductVariant.id == variant_id)
            .values(stock_quantity=ProductVariant.stock_quantity + quantity)
            .returning(ProductVariant.stock_quantity, ProductVariant.product_id)
            .execution_options(synchronize_session=False)
        )

        async with transaction_scope(
            self._session_factory, session, "stock credit"
        ) as db:
            row = (await db.execute(stmt)).first()
            if row is None:
                raise VariantNotFoundError(variant_id)

            resulting_quantity, product_id = row
            await self._append_entry(
                db,
                variant_id=variant_id,
                product_id=product_id,
                delta=quantity,
                reason=reason,
                actor=actor,
                resulting_quantity=resulting_quantity,
                order_item_id=order_item_id,
                note=note,
            )

        logger.info(
            "Stock credited",
            variant_id=str(variant_id),
            quantity=quantity,
            resulting_quantity=resulting_quantity,
            reason=reason.value,
            actor=actor,
        )
        return resulting_quantity

    async def adjust(
        self,
        variant_id: uuid.UUID,
        delta: int,
        actor: str,
        *,
        note: Optional[str] = None,
        session: Optional[AsyncSession] = None,
    ) -> int:
        """
        Apply a signed manual stock correction.

        Negative adjustments go through the guarded debit and therefore can
        never take stock below zero.

        Args:
            variant_id: Variant to adjust
            delta: Signed, non-zero quantity change
            actor: Administrator reference
            note: Reason given for the correction
            session: Optional session of an enclosing unit of work

        Returns:
            Stock quantity after the adjustment
        """
        if delta == 0:
            raise ValueError("Adjustment delta must not be zero")

        if delta > 0:
            return await self.credit(
                variant_id,
                delta,
                LedgerReason.MANUAL_ADJUSTMENT,
                actor,
                session=session,
                note=note,
            )
        return await self.debit(
            variant_id,
            -delta,
            LedgerReason.MANUAL_ADJUSTMENT,
            actor,
            session=session,
            note=note,
        )

    async def initialize_stock(
        self,
        variant_id: uuid.UUID,
        quantity: int,
        actor: str = "system",
        *,
        session: Optional[AsyncSession] = None,
    ) -> int:
        """
        Record the opening balance of a new variant.

        Variants start at zero, so the ledger replays from its first entry.
        A zero opening balance records nothing.
        """
        if quantity < 0:
            raise ValueError("Opening stock cannot be negative")
        if quantity == 0:
            current = await self.available_quantity(variant_id, session=session)
            return current or 0

        return await self.credit(
            variant_id,
            quantity,
            LedgerReason.INITIAL_STOCK,
            actor,
            session=session,
            note="Opening balance",
        )

    # ------------------------------------------------------------------
    # History and reporting
    # ------------------------------------------------------------------

    async def history(
        self,
        variant_id: Optional[uuid.UUID] = None,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> LedgerPage:
        """
        Get one page of ledger entries, most recent first.

        Args:
            variant_id: Restrict to one variant; all variants when None
            page: 1-based page number
            page_size: Entries per page (defaults to settings)

        Returns:
            LedgerPage with entries and pagination totals
        """
        if page < 1:
            raise ValueError("Page number must be at least 1")
        page_size = page_size or self._settings.inventory_history_page_size

        filters = []
        if variant_id is not None:
            filters.append(InventoryLedgerEntry.variant_id == variant_id)

        count_stmt = (
            select(func.count()).select_from(InventoryLedgerEntry).where(*filters)
        )
        stmt = (
            select(InventoryLedgerEntry)
            .where(*filters)
            .order_by(InventoryLedgerEntry.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )

        async with transaction_scope(
            self._session_factory, None, "ledger history"
        ) as db:
            total = (await db.execute(count_stmt)).scalar_one()
            entries = list((await db.execute(stmt)).scalars().all())

        return LedgerPage(entries=entries, total=total, page=page, page_size=page_size)

    async def iter_history(
        self,
        variant_id: Optional[uuid.UUID] = None,
        page_size: Optional[int] = None,
    ) -> AsyncIterator[InventoryLedgerEntry]:
        """
        Walk the whole ledger lazily, most recent first.

        Pages are fetched by key, so entries appended during the walk are
        not visited and no entry is yielded twice. Each call starts a new
        walk.
        """
        page_size = page_size or self._settings.inventory_history_page_size
        last_id: Optional[int] = None

        while True:
            stmt = select(InventoryLedgerEntry)
            if variant_id is not None:
                stmt = stmt.where(InventoryLedgerEntry.variant_id == variant_id)
            if last_id is not None:
                stmt = stmt.where(InventoryLedgerEntry.id < last_id)
            stmt = stmt.order_by(InventoryLedgerEntry.id.desc()).limit(page_size)

            async with transaction_scope(
                self._session_factory, None, "ledger history walk"
            ) as db:
                batch = list((await db.execute(stmt)).scalars().all())

            for entry in batch:
                yield entry

            if len(batch) < page_size:
                return
            last_id = batch[-1].id

    async def replay(self, variant_id: uuid.UUID) -> LedgerReconciliation:
        """
        Replay a variant's ledger and compare it with the stored stock.

        Raises:
            VariantNotFoundError: If the variant does not exist
        """
        totals_stmt = select(
            func.coalesce(func.sum(InventoryLedgerEntry.delta), 0),
            func.count(InventoryLedgerEntry.id),
        ).where(InventoryLedgerEntry.variant_id == variant_id)
        stock_stmt = select(ProductVariant.stock_quantity).where(
            ProductVariant.id == variant_id
        )

        async with transaction_scope(
            self._session_factory, None, "ledger replay"
        ) as db:
            stock_quantity = (await db.execute(stock_stmt)).scalar_one_or_none()
            if stock_quantity is None:
                raise VariantNotFoundError(variant_id)
            ledger_total, entry_count = (await db.execute(totals_stmt)).one()

        reconciliation = LedgerReconciliation(
            variant_id=variant_id,
            ledger_total=int(ledger_total),
            stock_quantity=stock_quantity,
            entry_count=entry_count,
        )
        if not reconciliation.is_consistent:
            logger.warning(
                "Ledger does not replay to stored stock",
                variant_id=str(variant_id),
                ledger_total=reconciliation.ledger_total,
                stock_quantity=stock_quantity,
            )
        return reconciliation

    async def low_stock(self, limit: int = 50) -> list[LowStockVariant]:
        """Active variants at or below their minimum level, emptiest first."""
        stmt = (
            select(
                ProductVariant.id,
                ProductVariant.product_id,
                Product.name,
                ProductVariant.label,
                ProductVariant.stock_quantity,
                ProductVariant.min_stock_level,
            )
            .join(Product, Product.id == ProductVariant.product_id)
            .where(
                ProductVariant.is_active.is_(True),
                ProductVariant.stock_quantity <= ProductVariant.min_stock_level,
            )
            .order_by(ProductVariant.stock_quantity.asc(), Product.name.asc())
            .limit(limit)
        )

        async with transaction_scope(
            self._session_factory, None, "low stock report"
        ) as db:
            rows = (await db.execute(stmt)).all()

        return [LowStockVariant(*row) for row in rows]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _raise_debit_rejected(
        self,
        db: AsyncSession,
        variant_id: uuid.UUID,
        quantity: int,
    ) -> None:
        stmt = select(ProductVariant.stock_quantity, ProductVariant.is_active).where(
            ProductVariant.id == variant_id
        )
        row = (await db.execute(stmt)).first()
        if row is None:
            raise VariantNotFoundError(variant_id)

        stock_quantity, is_active = row
        available = stock_quantity if is_active else 0
        logger.warning(
            "Stock debit rejected",
            variant_id=str(variant_id),
            requested=quantity,
            available=available,
            is_active=is_active,
        )
        raise InsufficientStockError(variant_id, quantity, available)

    async def _append_entry(
        self,
        db: AsyncSession,
        *,
        variant_id: uuid.UUID,
        product_id: uuid.UUID,
        delta: int,
        reason: LedgerReason,
        actor: str,
        resulting_quantity: int,
        order_item_id: Optional[uuid.UUID],
        note: Optional[str],
    ) -> InventoryLedgerEntry:
        entry = InventoryLedgerEntry(
            variant_id=variant_id,
            product_id=product_id,
            delta=delta,
            reason=reason,
            actor=actor,
            resulting_quantity=resulting_quantity,
            order_item_id=order_item_id,
            note=note,
        )
        db.add(entry)
        await db.flush()
        return entry
