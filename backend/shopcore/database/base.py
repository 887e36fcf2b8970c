"""
SQLAlchemy declarative base and common model mixins.

This module provides the SQLAlchemy DeclarativeBase, common mixins for
timestamps, UUID keys and append-only sequence keys, and base model utilities
with async session support.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy import BigInteger, DateTime, Integer, Uuid, func
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column

from shopcore.core.logging import get_logger

logger = get_logger(__name__)

# Integer identity that autoincrements on both PostgreSQL and SQLite
SequenceKey = BigInteger().with_variant(Integer, "sqlite")


def utcnow() -> datetime:
    """Return the current UTC time as an aware datetime."""
    return datetime.now(timezone.utc)


class Base(AsyncAttrs, DeclarativeBase):
    """
    Base class for all SQLAlchemy models with async support.

    Provides common functionality for all database models including
    async attribute loading, type annotations, and utility methods.
    """

    __abstract__ = True

    def to_dict(self, exclude: Optional[set[str]] = None) -> Dict[str, Any]:
        """
        Convert model instance to dictionary.

        Args:
            exclude: Set of attribute names to exclude from output

        Returns:
            Dictionary representation of the model
        """
        exclude = exclude or set()
        result = {}

        for column in self.__table__.columns:
            if column.name in exclude:
                continue
            value = getattr(self, column.key)
            if isinstance(value, datetime):
                result[column.name] = value.isoformat()
            elif isinstance(value, uuid.UUID):
                result[column.name] = str(value)
            elif isinstance(value, Decimal):
                result[column.name] = str(value)
            else:
                result[column.name] = value

        return result

    def __repr__(self) -> str:
        """
        Generate string representation of model instance.

        Returns:
            String representation with primary key values
        """
        pk_values = []
        for column in self.__table__.primary_key.columns:
            value = getattr(self, column.key, None)
            if value is not None:
                pk_values.append(f"{column.name}={value!r}")

        pk_str = ", ".join(pk_values) if pk_values else "no primary key"
        return f"<{self.__class__.__name__}({pk_str})>"


class TimestampMixin:
    """
    Mixin for automatic timestamp management.

    Adds created_at and updated_at columns. Values are set client-side so
    they are available on the instance right after flush without a refresh;
    server defaults keep raw SQL inserts consistent.
    """

    @declared_attr
    def created_at(cls) -> Mapped[datetime]:
        """Timestamp when the record was created."""
        return mapped_column(
            DateTime(timezone=True),
            nullable=False,
            default=utcnow,
            server_default=func.now(),
            comment="Timestamp when record was created",
        )

    @declared_attr
    def updated_at(cls) -> Mapped[datetime]:
        """Timestamp when the record was last updated."""
        return mapped_column(
            DateTime(timezone=True),
            nullable=False,
            default=utcnow,
            onupdate=utcnow,
            server_default=func.now(),
            comment="Timestamp when record was last updated",
        )


class UUIDMixin:
    """
    Mixin for UUID primary key.

    Uses the portable Uuid type: native UUID on PostgreSQL, CHAR(32)
    elsewhere.
    """

    @declared_attr
    def id(cls) -> Mapped[uuid.UUID]:
        """UUID primary key, generated with uuid4 if not provided."""
        return mapped_column(
            Uuid(as_uuid=True),
            primary_key=True,
            default=uuid.uuid4,
            nullable=False,
            comment="Unique identifier for the record",
        )


class AppendOnlyMixin:
    """
    Mixin for append-only records such as ledger and history entries.

    The monotonically increasing integer key doubles as the recency order,
    which stays stable even when several rows share a created_at value.
    """

    @declared_attr
    def id(cls) -> Mapped[int]:
        """Monotonic sequence primary key."""
        return mapped_column(
            SequenceKey,
            primary_key=True,
            autoincrement=True,
            comment="Monotonic sequence number of the entry",
        )

    @declared_attr
    def created_at(cls) -> Mapped[datetime]:
        """Timestamp when the entry was appended."""
        return mapped_column(
            DateTime(timezone=True),
            nullable=False,
            default=utcnow,
            server_default=func.now(),
            comment="Timestamp when entry was appended",
        )


class BaseModel(Base, UUIDMixin, TimestampMixin):
    """
    Base model with UUID primary key and timestamps.

    Use this as the base for mutable application models.

    Example:
        class Product(BaseModel):
            __tablename__ = "products"

            name: Mapped[str] = mapped_column(String(255))
    """

    __abstract__ = True


class AppendOnlyModel(Base, AppendOnlyMixin):
    """Base model for immutable, append-only audit records."""

    __abstract__ = True
