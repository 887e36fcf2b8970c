"""
Pytest configuration and shared test fixtures.

Services run against a throwaway SQLite database (aiosqlite) created per
test, and guest carts against an in-memory stand-in for the redis.asyncio
client. The catalog is seeded through the stock ledger so every variant's
ledger replays to its stock from the first test step.
"""

import os

os.environ.setdefault("APP_ENVIRONMENT", "test")

import fnmatch
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, AsyncGenerator, Optional

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from shopcore.cache.redis_client import RedisClient
from shopcore.core.config import Settings, get_settings
from shopcore.database.connection import (
    create_engine,
    create_schema,
    create_session_factory,
)
from shopcore.database.models import Product, ProductVariant
from shopcore.services.audit import ActivityRecord, ActivityRecorder
from shopcore.services.cart import (
    CartStores,
    Identity,
    PersistentCartStore,
    SessionCartStore,
)
from shopcore.services.catalog import CatalogReader
from shopcore.services.inventory import StockLedger
from shopcore.services.orders import (
    OrderAssembler,
    OrderRepository,
    OrderStatusMachine,
)

get_settings.cache_clear()


# ============================================================================
# Test Doubles
# ============================================================================


class InMemoryRedis:
    """
    Minimal async stand-in for redis.asyncio.Redis.

    Implements only the commands RedisClient issues and remembers the TTL
    given with each write so tests can assert on it.
    """

    def __init__(self) -> None:
        self.data: dict[str, Any] = {}
        self.ttls: dict[str, Optional[int]] = {}
        self.closed = False

    async def ping(self) -> bool:
        return True

    async def get(self, key: str) -> Optional[Any]:
        return self.data.get(key)

    async def set(self, key: str, value: Any, ex: Optional[int] = None) -> bool:
        self.data[key] = value
        self.ttls[key] = ex
        return True

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if key in self.data:
                del self.data[key]
                self.ttls.pop(key, None)
                removed += 1
        return removed

    async def aclose(self) -> None:
        self.closed = True

    def keys_matching(self, pattern: str) -> list[str]:
        return [key for key in self.data if fnmatch.fnmatch(key, pattern)]


@dataclass
class SeededCatalog:
    """Identifiers of the seeded products and variants."""

    shirt_id: uuid.UUID
    shirt_medium_id: uuid.UUID
    shirt_large_id: uuid.UUID
    tote_id: uuid.UUID
    tote_variant_id: uuid.UUID
    cap_id: uuid.UUID
    cap_variant_id: uuid.UUID


# ============================================================================
# Infrastructure Fixtures
# ============================================================================


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings pointing at a per-test SQLite database."""
    return Settings(
        environment="test",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'shop.db'}",
        redis_url="redis://localhost:6379/15",
    )


@pytest.fixture
async def engine(settings: Settings) -> AsyncGenerator[AsyncEngine, None]:
    engine = create_engine(settings.database_url)
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest.fixture
def fake_redis() -> InMemoryRedis:
    return InMemoryRedis()


@pytest.fixture
def redis_client(fake_redis: InMemoryRedis) -> RedisClient:
    return RedisClient(client=fake_redis)


@pytest.fixture
def activity_records() -> list[ActivityRecord]:
    return []


@pytest.fixture
def activity(activity_records: list[ActivityRecord]) -> ActivityRecorder:
    """Activity recorder collecting records in a list."""

    async def sink(record: ActivityRecord) -> None:
        activity_records.append(record)

    return ActivityRecorder(sink)


# ============================================================================
# Service Fixtures
# ============================================================================


@pytest.fixture
def ledger(session_factory, settings) -> StockLedger:
    return StockLedger(session_factory, settings)


@pytest.fixture
def catalog(session_factory) -> CatalogReader:
    return CatalogReader(session_factory)


@pytest.fixture
def guest_store(redis_client, catalog, ledger, settings) -> SessionCartStore:
    return SessionCartStore(redis_client, catalog, ledger, settings)


@pytest.fixture
def account_store(session_factory, catalog, ledger, settings) -> PersistentCartStore:
    return PersistentCartStore(session_factory, catalog, ledger, settings)


@pytest.fixture
def carts(guest_store, account_store, ledger) -> CartStores:
    return CartStores(guest_store=guest_store, account_store=account_store, ledger=ledger)


@pytest.fixture
def assembler(session_factory, carts, catalog, ledger, activity, settings) -> OrderAssembler:
    return OrderAssembler(session_factory, carts, catalog, ledger, activity, settings)


@pytest.fixture
def machine(session_factory, ledger, activity) -> OrderStatusMachine:
    return OrderStatusMachine(session_factory, ledger, activity)


@pytest.fixture
def orders(session_factory) -> OrderRepository:
    return OrderRepository(session_factory)


# ============================================================================
# Data Fixtures
# ============================================================================


@pytest.fixture
async def seeded(session_factory, ledger) -> SeededCatalog:
    """
    Seed three products.

    Linen Shirt (40.00): medium with 10 in stock, large with 1.
    Canvas Tote (25.00, discounted to 20.00): 5 in stock.
    Retired Cap (15.00): inactive product with 3 in stock.
    """
    shirt = Product(name="Linen Shirt", sku="LS-001", price=Decimal("40.00"))
    tote = Product(
        name="Canvas Tote",
        sku="CT-001",
        price=Decimal("25.00"),
        discount_price=Decimal("20.00"),
    )
    cap = Product(
        name="Retired Cap",
        sku="RC-001",
        price=Decimal("15.00"),
        is_active=False,
    )
    shirt_medium = ProductVariant(product=shirt, label="M", min_stock_level=2)
    shirt_large = ProductVariant(product=shirt, label="L", min_stock_level=2)
    tote_variant = ProductVariant(product=tote, label="One size")
    cap_variant = ProductVariant(product=cap, label="One size")

    async with session_factory() as session, session.begin():
        session.add_all([shirt, tote, cap])

    await ledger.initialize_stock(shirt_medium.id, 10)
    await ledger.initialize_stock(shirt_large.id, 1)
    await ledger.initialize_stock(tote_variant.id, 5)
    await ledger.initialize_stock(cap_variant.id, 3)

    return SeededCatalog(
        shirt_id=shirt.id,
        shirt_medium_id=shirt_medium.id,
        shirt_large_id=shirt_large.id,
        tote_id=tote.id,
        tote_variant_id=tote_variant.id,
        cap_id=cap.id,
        cap_variant_id=cap_variant.id,
    )


@pytest.fixture
def guest() -> Identity:
    return Identity.guest("guest-session-1")


@pytest.fixture
def customer() -> Identity:
    return Identity.user("42")


@pytest.fixture
def address() -> dict[str, str]:
    return {
        "name": "Jane Doe",
        "line1": "12 Market Street",
        "city": "Springfield",
        "postal_code": "12345",
        "phone": "+1 555 0100",
    }
