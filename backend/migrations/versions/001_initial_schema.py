"""
Alembic migration: Initial garment ordering schema.

Creates the products catalogue, buyer orders and the append-only order
tracking log, with the check constraints that keep stock non-negative and
order quantities and totals positive.

Revision ID: 001
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# Revision identifiers, used by Alembic
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _enum(name: str, *values: str) -> sa.Enum:
    return sa.Enum(
        *values,
        name=name,
        native_enum=False,
        create_constraint=True,
        length=32,
    )


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            'created_at',
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            'updated_at',
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """
    Create products, orders and order_tracking_entries.
    """
    op.create_table(
        'products',
        sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=False, server_default=''),
        sa.Column(
            'category',
            _enum('product_category', 'shirt', 'pant', 'jacket', 'accessories'),
            nullable=False,
        ),
        sa.Column('price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('min_order', sa.Integer(), nullable=False, server_default='1'),
        sa.Column(
            'payment_options',
            _enum('product_payment_option', 'cashOnDelivery', 'payFirst'),
            nullable=False,
        ),
        sa.Column(
            'show_on_home', sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column('created_by', sa.Uuid(as_uuid=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('quantity >= 0', name='ck_products_quantity_non_negative'),
        sa.CheckConstraint('min_order >= 1', name='ck_products_min_order_positive'),
        sa.CheckConstraint('price >= 0', name='ck_products_price_non_negative'),
    )
    op.create_index('ix_products_category', 'products', ['category'])
    op.create_index(
        'ix_products_category_created', 'products', ['category', 'created_at']
    )

    op.create_table(
        'orders',
        sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            'product_id',
            sa.Uuid(as_uuid=True),
            sa.ForeignKey('products.id', ondelete='RESTRICT'),
            nullable=False,
        ),
        sa.Column('buyer_id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('total_amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('shipping_address', sa.String(500), nullable=False),
        sa.Column('phone_number', sa.String(32), nullable=False),
        sa.Column('notes', sa.Text(), nullable=False, server_default=''),
        sa.Column(
            'payment_method',
            _enum('payment_method', 'cod', 'stripe', 'payfast'),
            nullable=False,
        ),
        sa.Column(
            'payment_type',
            _enum(
                'payment_type', 'cashOnDelivery', 'advancePayment', 'partialPayment'
            ),
            nullable=False,
        ),
        sa.Column(
            'payment_status',
            _enum('payment_status', 'pending', 'paid', 'failed'),
            nullable=False,
        ),
        sa.Column('payment_reference', sa.String(255), nullable=True),
        sa.Column(
            'status',
            _enum(
                'order_status',
                'pending',
                'approved',
                'processing',
                'shipped',
                'delivered',
                'cancelled',
                'rejected',
            ),
            nullable=False,
        ),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('quantity >= 1', name='ck_orders_quantity_positive'),
        sa.CheckConstraint('total_amount > 0', name='ck_orders_total_amount_positive'),
        sa.CheckConstraint('unit_price >= 0', name='ck_orders_unit_price_non_negative'),
    )
    op.create_index('ix_orders_product_id', 'orders', ['product_id'])
    op.create_index('ix_orders_buyer_id', 'orders', ['buyer_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_payment_status', 'orders', ['payment_status'])
    op.create_index('ix_orders_buyer_created', 'orders', ['buyer_id', 'created_at'])
    op.create_index('ix_orders_status_created', 'orders', ['status', 'created_at'])

    op.create_table(
        'order_tracking_entries',
        sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            'order_id',
            sa.Uuid(as_uuid=True),
            sa.ForeignKey('orders.id', ondelete='RESTRICT'),
            nullable=False,
        ),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(100), nullable=False),
        sa.Column('location', sa.String(200), nullable=False, server_default=''),
        sa.Column('note', sa.Text(), nullable=False, server_default=''),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('order_id', 'sequence', name='uq_order_tracking_sequence'),
    )
    op.create_index(
        'ix_order_tracking_entries_order_id', 'order_tracking_entries', ['order_id']
    )


def downgrade() -> None:
    """
    Drop the garment ordering schema.
    """
    op.drop_index(
        'ix_order_tracking_entries_order_id', table_name='order_tracking_entries'
    )
    op.drop_table('order_tracking_entries')

    op.drop_index('ix_orders_status_created', table_name='orders')
    op.drop_index('ix_orders_buyer_created', table_name='orders')
    op.drop_index('ix_orders_payment_status', table_name='orders')
    op.drop_index('ix_orders_status', table_name='orders')
    op.drop_index('ix_orders_buyer_id', table_name='orders')
    op.drop_index('ix_orders_product_id', table_name='orders')
    op.drop_table('orders')

    op.drop_index('ix_products_category_created', table_name='products')
    op.drop_index('ix_products_category', table_name='products')
    op.drop_table('products')
