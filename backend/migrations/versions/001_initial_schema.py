"""
Alembic migration: Initial storefront schema.

Creates the catalog tables the shop reads (products, product_variants),
persistent carts, orders with their items and status history, and the
append-only inventory ledger.

Revision ID: 001
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# Revision identifiers, used by Alembic
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ORDER_STATUSES = (
    'pending',
    'processing',
    'shipped',
    'delivered',
    'cancelled',
    'refunded',
)

LEDGER_REASONS = (
    'sale',
    'cancellation_return',
    'refund_return',
    'manual_adjustment',
    'initial_stock',
)

json_document = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')
sequence_key = sa.BigInteger().with_variant(sa.Integer(), 'sqlite')


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            'created_at',
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            'updated_at',
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    ]


def upgrade() -> None:
    """
    Upgrade database schema with the storefront tables.

    Stock quantities are protected by CHECK constraints, and the ledger
    carries a unique (order_item_id, reason) pair so an order item is
    debited and compensated at most once.
    """
    order_status = sa.Enum(*ORDER_STATUSES, name='order_status', create_constraint=True)
    ledger_reason = sa.Enum(*LEDGER_REASONS, name='ledger_reason', create_constraint=True)

    # Catalog
    op.create_table(
        'products',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=False),
        sa.Column('price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('discount_price', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_products'),
        sa.UniqueConstraint('sku', name='uq_products_sku'),
        sa.CheckConstraint('price >= 0', name='ck_products_price_non_negative'),
        sa.CheckConstraint(
            'discount_price IS NULL OR discount_price >= 0',
            name='ck_products_discount_price_non_negative',
        ),
    )

    op.create_table(
        'product_variants',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('product_id', sa.Uuid(), nullable=False),
        sa.Column('label', sa.String(length=100), nullable=False),
        sa.Column('stock_quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('min_stock_level', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_product_variants'),
        sa.ForeignKeyConstraint(
            ['product_id'],
            ['products.id'],
            name='fk_product_variants_product_id',
            ondelete='CASCADE',
        ),
        sa.UniqueConstraint('product_id', 'label', name='uq_product_variants_label'),
        sa.CheckConstraint(
            'stock_quantity >= 0',
            name='ck_product_variants_stock_non_negative',
        ),
        sa.CheckConstraint(
            'min_stock_level >= 0',
            name='ck_product_variants_min_stock_non_negative',
        ),
    )
    op.create_index('ix_product_variants_product_id', 'product_variants', ['product_id'])
    op.create_index(
        'ix_product_variants_active_stock',
        'product_variants',
        ['is_active', 'stock_quantity'],
    )

    # Persistent carts
    op.create_table(
        'carts',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_carts'),
        sa.UniqueConstraint('user_id', name='uq_carts_user_id'),
    )

    op.create_table(
        'cart_items',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('cart_id', sa.Uuid(), nullable=False),
        sa.Column('product_id', sa.Uuid(), nullable=False),
        sa.Column('variant_id', sa.Uuid(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_cart_items'),
        sa.ForeignKeyConstraint(
            ['cart_id'],
            ['carts.id'],
            name='fk_cart_items_cart_id',
            ondelete='CASCADE',
        ),
        sa.UniqueConstraint('cart_id', 'product_id', 'variant_id', name='uq_cart_items_line'),
        sa.CheckConstraint('quantity > 0', name='ck_cart_items_quantity_positive'),
    )
    op.create_index('ix_cart_items_cart_id', 'cart_items', ['cart_id'])

    # Orders
    op.create_table(
        'orders',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('order_number', sa.String(length=50), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=True),
        sa.Column('guest_session_id', sa.String(length=128), nullable=True),
        sa.Column('status', order_status, nullable=False, server_default='pending'),
        sa.Column('subtotal', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('tax_amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('shipping_amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('discount_amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('total_amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('shipping_address', json_document, nullable=False),
        sa.Column('billing_address', json_document, nullable=False),
        sa.Column('payment_method', sa.String(length=32), nullable=False),
        sa.Column('notes', sa.String(length=1000), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_orders'),
        sa.UniqueConstraint('order_number', name='uq_orders_order_number'),
        sa.CheckConstraint(
            '(user_id IS NULL) <> (guest_session_id IS NULL)',
            name='ck_orders_single_owner',
        ),
        sa.CheckConstraint('subtotal >= 0', name='ck_orders_subtotal_non_negative'),
        sa.CheckConstraint('total_amount >= 0', name='ck_orders_total_non_negative'),
    )
    op.create_index('ix_orders_user_id', 'orders', ['user_id'])
    op.create_index('ix_orders_guest_session_id', 'orders', ['guest_session_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_user_created', 'orders', ['user_id', 'created_at'])

    op.create_table(
        'order_items',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('order_id', sa.Uuid(), nullable=False),
        sa.Column('product_id', sa.Uuid(), nullable=False),
        sa.Column('variant_id', sa.Uuid(), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('variant_label', sa.String(length=100), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('line_total', sa.Numeric(precision=10, scale=2), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_order_items'),
        sa.ForeignKeyConstraint(
            ['order_id'],
            ['orders.id'],
            name='fk_order_items_order_id',
            ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['variant_id'],
            ['product_variants.id'],
            name='fk_order_items_variant_id',
            ondelete='RESTRICT',
        ),
        sa.CheckConstraint('quantity > 0', name='ck_order_items_quantity_positive'),
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])
    op.create_index('ix_order_items_variant_id', 'order_items', ['variant_id'])

    op.create_table(
        'order_status_history',
        sa.Column('id', sequence_key, nullable=False, autoincrement=True),
        sa.Column('order_id', sa.Uuid(), nullable=False),
        sa.Column('status', order_status, nullable=False),
        sa.Column('note', sa.String(length=500), nullable=True),
        sa.Column('actor', sa.String(length=100), nullable=False),
        sa.Column(
            'created_at',
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint('id', name='pk_order_status_history'),
        sa.ForeignKeyConstraint(
            ['order_id'],
            ['orders.id'],
            name='fk_order_status_history_order_id',
            ondelete='CASCADE',
        ),
    )
    op.create_index('ix_order_status_history_order_id', 'order_status_history', ['order_id'])

    # Inventory ledger
    op.create_table(
        'inventory_ledger_entries',
        sa.Column('id', sequence_key, nullable=False, autoincrement=True),
        sa.Column('variant_id', sa.Uuid(), nullable=False),
        sa.Column('product_id', sa.Uuid(), nullable=False),
        sa.Column('delta', sa.Integer(), nullable=False),
        sa.Column('reason', ledger_reason, nullable=False),
        sa.Column('actor', sa.String(length=100), nullable=False),
        sa.Column('resulting_quantity', sa.Integer(), nullable=False),
        sa.Column('order_item_id', sa.Uuid(), nullable=True),
        sa.Column('note', sa.String(length=500), nullable=True),
        sa.Column(
            'created_at',
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint('id', name='pk_inventory_ledger_entries'),
        sa.ForeignKeyConstraint(
            ['variant_id'],
            ['product_variants.id'],
            name='fk_inventory_ledger_variant_id',
            ondelete='RESTRICT',
        ),
        sa.ForeignKeyConstraint(
            ['order_item_id'],
            ['order_items.id'],
            name='fk_inventory_ledger_order_item_id',
            ondelete='RESTRICT',
        ),
        sa.UniqueConstraint(
            'order_item_id',
            'reason',
            name='uq_inventory_ledger_order_item_reason',
        ),
        sa.CheckConstraint('delta <> 0', name='ck_inventory_ledger_delta_non_zero'),
        sa.CheckConstraint(
            'resulting_quantity >= 0',
            name='ck_inventory_ledger_resulting_non_negative',
        ),
    )
    op.create_index(
        'ix_inventory_ledger_entries_variant_id',
        'inventory_ledger_entries',
        ['variant_id'],
    )
    op.create_index(
        'ix_inventory_ledger_entries_product_id',
        'inventory_ledger_entries',
        ['product_id'],
    )
    op.create_index(
        'ix_inventory_ledger_entries_reason',
        'inventory_ledger_entries',
        ['reason'],
    )
    op.create_index(
        'ix_inventory_ledger_entries_order_item_id',
        'inventory_ledger_entries',
        ['order_item_id'],
    )
    op.create_index(
        'ix_inventory_ledger_variant_recent',
        'inventory_ledger_entries',
        ['variant_id', 'id'],
    )


def downgrade() -> None:
    """
    Downgrade database schema by removing the storefront tables.

    Tables are dropped in reverse dependency order; the enum types are
    dropped last on PostgreSQL.
    """
    op.drop_table('inventory_ledger_entries')
    op.drop_table('order_status_history')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('cart_items')
    op.drop_table('carts')
    op.drop_table('product_variants')
    op.drop_table('products')

    bind = op.get_bind()
    if bind.dialect.name == 'postgresql':
        sa.Enum(name='ledger_reason').drop(bind, checkfirst=True)
        sa.Enum(name='order_status').drop(bind, checkfirst=True)
