"""
Test suite for database connection management.

Covers URL conversion, the transaction scope shared by every service,
the application-level session context manager, and health checks.
"""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from sqlalchemy import func, select, text
from sqlalchemy.exc import SQLAlchemyError

from shopcore.core.exceptions import StorageError
from shopcore.database import connection
from shopcore.database.connection import (
    _convert_database_url_to_async,
    check_database_health,
    get_session,
    transaction_scope,
)
from shopcore.database.models import Product


async def count_products(session_factory) -> int:
    async with session_factory() as session:
        return (await session.execute(select(func.count()).select_from(Product))).scalar_one()


def make_product(sku: str) -> Product:
    return Product(name="Test Product", sku=sku, price=Decimal("9.99"))


# ============================================================================
# URL Conversion
# ============================================================================


class TestUrlConversion:
    """Tests for async driver URL conversion."""

    def test_postgres_url_gets_asyncpg_driver(self):
        assert (
            _convert_database_url_to_async("postgresql://user:pass@db:5432/shop")
            == "postgresql+asyncpg://user:pass@db:5432/shop"
        )

    @pytest.mark.parametrize(
        "url",
        [
            "postgresql+asyncpg://user:pass@db:5432/shop",
            "sqlite+aiosqlite:///./shop.db",
        ],
    )
    def test_async_urls_unchanged(self, url):
        assert _convert_database_url_to_async(url) == url


# ============================================================================
# Transaction Scope
# ============================================================================


class TestTransactionScope:
    """Tests for joining or opening a unit of work."""

    @pytest.mark.asyncio
    async def test_commits_on_success(self, session_factory):
        async with transaction_scope(session_factory, operation="insert") as session:
            session.add(make_product("TX-001"))

        assert await count_products(session_factory) == 1

    @pytest.mark.asyncio
    async def test_rolls_back_on_error(self, session_factory):
        with pytest.raises(RuntimeError):
            async with transaction_scope(session_factory) as session:
                session.add(make_product("TX-002"))
                await session.flush()
                raise RuntimeError("abort")

        assert await count_products(session_factory) == 0

    @pytest.mark.asyncio
    async def test_joins_caller_session(self, session_factory):
        async with session_factory() as outer:
            async with transaction_scope(session_factory, outer) as session:
                assert session is outer
                session.add(make_product("TX-003"))
            await outer.rollback()

        assert await count_products(session_factory) == 0

    @pytest.mark.asyncio
    async def test_sqlalchemy_error_becomes_storage_error(self, session_factory):
        with pytest.raises(StorageError) as exc_info:
            async with transaction_scope(session_factory, operation="broken query") as session:
                await session.execute(text("SELECT * FROM missing_table"))

        assert exc_info.value.code == "STORAGE_ERROR"
        assert exc_info.value.context["operation"] == "broken query"


# ============================================================================
# Session Context Manager
# ============================================================================


class TestGetSession:
    """Tests for the global session context manager."""

    @pytest.fixture(autouse=True)
    def use_test_factory(self, monkeypatch, session_factory):
        monkeypatch.setattr(connection, "_session_factory", session_factory)

    @pytest.mark.asyncio
    async def test_commits_on_exit(self, session_factory):
        async with get_session() as session:
            session.add(make_product("GS-001"))

        assert await count_products(session_factory) == 1

    @pytest.mark.asyncio
    async def test_rolls_back_on_error(self, session_factory):
        with pytest.raises(ValueError):
            async with get_session() as session:
                session.add(make_product("GS-002"))
                await session.flush()
                raise ValueError("abort")

        assert await count_products(session_factory) == 0


# ============================================================================
# Health Check
# ============================================================================


class TestHealthCheck:
    """Tests for database connectivity checks."""

    @pytest.mark.asyncio
    async def test_healthy_database(self, monkeypatch, engine):
        monkeypatch.setattr(connection, "_engine", engine)
        assert await check_database_health(max_retries=1) is True

    @pytest.mark.asyncio
    async def test_sqlalchemy_error_reports_unhealthy(self, monkeypatch):
        broken = MagicMock()
        broken.connect.side_effect = SQLAlchemyError("no database")
        monkeypatch.setattr(connection, "_engine", broken)

        assert await check_database_health(max_retries=3, retry_delay=0) is False
