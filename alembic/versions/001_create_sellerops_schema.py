"""Create catalog, marketplace order, inventory and sync log tables

Revision ID: 001_sellerops_schema
Revises:
Create Date: 2026-01-30 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001_sellerops_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')


def _timestamps(*names):
    return [
        sa.Column(name, sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)
        for name in names
    ]


def upgrade() -> None:
    # ==================== Catalog ====================
    op.create_table(
        'products',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('sku', sa.String(100), nullable=False),
        sa.Column('name', sa.String(500), nullable=False),
        sa.Column('category', sa.String(100), nullable=True),
        sa.Column('barcode', sa.String(100), nullable=True),
        sa.Column('is_active', sa.Boolean, server_default=sa.true(), nullable=False),
        sa.Column('cbm', sa.Numeric(10, 4), nullable=True),
        sa.Column('units_per_pallet', sa.Integer, nullable=True),
        *_timestamps('created_at', 'updated_at'),
    )
    op.create_index('ix_products_sku', 'products', ['sku'], unique=True)
    op.create_index('ix_products_name', 'products', ['name'])

    op.create_table(
        'product_mappings',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('marketplace', sa.String(20), nullable=False),
        sa.Column('product_id', sa.Uuid(), sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
        sa.Column('external_product_id', sa.String(100), nullable=True),
        sa.Column('external_product_name', sa.String(500), nullable=True),
        sa.Column('external_option_id', sa.String(100), nullable=True),
        sa.Column('external_option_name', sa.String(500), nullable=True),
        sa.Column('is_active', sa.Boolean, server_default=sa.true(), nullable=False),
        *_timestamps('created_at', 'updated_at'),
        sa.UniqueConstraint(
            'marketplace', 'external_product_id', 'external_option_id',
            name='uq_product_mapping_external',
        ),
    )
    op.create_index('ix_product_mappings_marketplace', 'product_mappings', ['marketplace'])
    op.create_index('ix_product_mappings_product_id', 'product_mappings', ['product_id'])
    op.create_index('ix_product_mappings_option', 'product_mappings', ['marketplace', 'external_option_id'])

    # ==================== Coupang seller-shipped ====================
    op.create_table(
        'coupang_orders',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('order_id', sa.String(50), nullable=False),
        sa.Column('shipment_box_id', sa.String(50), nullable=False),
        sa.Column('vendor_id', sa.String(50), nullable=True),
        sa.Column('account_name', sa.String(100), nullable=True),
        sa.Column('ordered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status', sa.String(30), nullable=True),
        sa.Column('orderer_name', sa.String(100), nullable=True),
        sa.Column('orderer_phone', sa.String(50), nullable=True),
        sa.Column('receiver_name', sa.String(100), nullable=True),
        sa.Column('receiver_phone', sa.String(50), nullable=True),
        sa.Column('receiver_address', sa.String(500), nullable=True),
        sa.Column('shipping_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('raw_data', JSON, nullable=True),
        *_timestamps('synced_at', 'created_at', 'updated_at'),
        sa.UniqueConstraint('shipment_box_id', name='uq_coupang_order_shipment_box'),
    )
    op.create_index('ix_coupang_orders_order_id', 'coupang_orders', ['order_id'])
    op.create_index('ix_coupang_orders_ordered_at', 'coupang_orders', ['ordered_at'])
    op.create_index('ix_coupang_orders_status', 'coupang_orders', ['status'])

    op.create_table(
        'coupang_order_items',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('coupang_order_id', sa.Uuid(), sa.ForeignKey('coupang_orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('vendor_item_id', sa.String(50), nullable=True),
        sa.Column('vendor_item_name', sa.String(500), nullable=True),
        sa.Column('shipping_count', sa.Integer, server_default='0', nullable=False),
        sa.Column('sales_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('order_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('discount_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('external_vendor_sku_code', sa.String(100), nullable=True),
        sa.Column('seller_product_id', sa.String(50), nullable=True),
        sa.Column('seller_product_name', sa.String(500), nullable=True),
        sa.Column('seller_product_item_name', sa.String(500), nullable=True),
        sa.Column('product_id', sa.Uuid(), sa.ForeignKey('products.id', ondelete='SET NULL'), nullable=True),
    )
    op.create_index('ix_coupang_order_items_coupang_order_id', 'coupang_order_items', ['coupang_order_id'])
    op.create_index('ix_coupang_order_items_vendor_item_id', 'coupang_order_items', ['vendor_item_id'])
    op.create_index('ix_coupang_order_items_product_id', 'coupang_order_items', ['product_id'])

    # ==================== Coupang Rocket Growth ====================
    op.create_table(
        'rocket_growth_orders',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('order_id', sa.String(50), nullable=False),
        sa.Column('vendor_id', sa.String(50), nullable=False),
        sa.Column('account_name', sa.String(100), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('raw_data', JSON, nullable=True),
        *_timestamps('synced_at', 'created_at', 'updated_at'),
        sa.UniqueConstraint('vendor_id', 'order_id', name='uq_rocket_growth_order'),
    )
    op.create_index('ix_rocket_growth_orders_order_id', 'rocket_growth_orders', ['order_id'])
    op.create_index('ix_rocket_growth_orders_paid_at', 'rocket_growth_orders', ['paid_at'])

    op.create_table(
        'rocket_growth_order_items',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'rocket_growth_order_id', sa.Uuid(),
            sa.ForeignKey('rocket_growth_orders.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column('vendor_item_id', sa.String(50), nullable=True),
        sa.Column('product_name', sa.String(500), nullable=True),
        sa.Column('sales_quantity', sa.Integer, server_default='0', nullable=False),
        sa.Column('sales_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('currency', sa.String(10), nullable=True),
        sa.Column('product_id', sa.Uuid(), sa.ForeignKey('products.id', ondelete='SET NULL'), nullable=True),
    )
    op.create_index(
        'ix_rocket_growth_order_items_rocket_growth_order_id',
        'rocket_growth_order_items', ['rocket_growth_order_id'],
    )
    op.create_index('ix_rocket_growth_order_items_vendor_item_id', 'rocket_growth_order_items', ['vendor_item_id'])
    op.create_index('ix_rocket_growth_order_items_product_id', 'rocket_growth_order_items', ['product_id'])

    # ==================== Naver SmartStore ====================
    op.create_table(
        'naver_orders',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('product_order_id', sa.String(50), nullable=False),
        sa.Column('order_id', sa.String(50), nullable=True),
        sa.Column('account_name', sa.String(100), nullable=True),
        sa.Column('order_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('payment_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status', sa.String(30), nullable=True),
        sa.Column('product_name', sa.String(500), nullable=True),
        sa.Column('product_option', sa.String(500), nullable=True),
        sa.Column('channel_product_id', sa.String(50), nullable=True),
        sa.Column('external_option_id', sa.String(100), nullable=True),
        sa.Column('quantity', sa.Integer, server_default='0', nullable=False),
        sa.Column('total_payment_amount', sa.Numeric(12, 2), nullable=True),
        sa.Column('product_id', sa.Uuid(), sa.ForeignKey('products.id', ondelete='SET NULL'), nullable=True),
        sa.Column('raw_data', JSON, nullable=True),
        *_timestamps('synced_at', 'created_at', 'updated_at'),
        sa.UniqueConstraint('product_order_id', name='uq_naver_product_order'),
    )
    op.create_index('ix_naver_orders_order_id', 'naver_orders', ['order_id'])
    op.create_index('ix_naver_orders_payment_date', 'naver_orders', ['payment_date'])
    op.create_index('ix_naver_orders_status', 'naver_orders', ['status'])
    op.create_index('ix_naver_orders_product_id', 'naver_orders', ['product_id'])

    # ==================== Coupang revenue ====================
    op.create_table(
        'coupang_revenues',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('order_id', sa.String(50), nullable=False),
        sa.Column('vendor_id', sa.String(50), nullable=False),
        sa.Column('vendor_item_id', sa.String(50), nullable=False),
        sa.Column('vendor_item_name', sa.String(500), nullable=True),
        sa.Column('quantity', sa.Integer, server_default='0', nullable=False),
        sa.Column('sale_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('discount_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('settlement_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('recognized_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('ordered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('shipment_type', sa.String(30), nullable=True),
        sa.Column('seller_product_id', sa.String(50), nullable=True),
        sa.Column('seller_product_name', sa.String(500), nullable=True),
        sa.Column('raw_data', JSON, nullable=True),
        *_timestamps('synced_at', 'updated_at'),
        sa.UniqueConstraint('order_id', 'vendor_id', 'vendor_item_id', name='uq_coupang_revenue_line'),
    )
    op.create_index('ix_coupang_revenues_order_id', 'coupang_revenues', ['order_id'])
    op.create_index('ix_coupang_revenues_recognized_at', 'coupang_revenues', ['recognized_at'])

    # ==================== Inventory ====================
    op.create_table(
        'inventory',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('product_id', sa.Uuid(), sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
        sa.Column('location', sa.String(20), nullable=False),
        sa.Column('quantity', sa.Integer, server_default='0', nullable=False),
        sa.Column('pallet_count', sa.Integer, nullable=True),
        sa.Column('per_pallet_qty', sa.Integer, nullable=True),
        sa.Column('extra_boxes_qty', sa.Integer, nullable=True),
        *_timestamps('updated_at'),
        sa.UniqueConstraint('product_id', 'location', name='uq_inventory_product_location'),
    )
    op.create_index('ix_inventory_product_id', 'inventory', ['product_id'])

    op.create_table(
        'inventory_logs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('inventory_id', sa.Uuid(), sa.ForeignKey('inventory.id', ondelete='CASCADE'), nullable=False),
        sa.Column('change_type', sa.String(20), nullable=False),
        sa.Column('change_qty', sa.Integer, nullable=False),
        sa.Column('before_qty', sa.Integer, nullable=False),
        sa.Column('after_qty', sa.Integer, nullable=False),
        sa.Column('reason', sa.Text, nullable=True),
        sa.Column('source', sa.String(20), server_default='manual', nullable=False),
        *_timestamps('created_at'),
    )
    op.create_index('ix_inventory_logs_inventory_id', 'inventory_logs', ['inventory_id'])
    op.create_index('ix_inventory_logs_created_at', 'inventory_logs', ['created_at'])

    # ==================== Sync logs ====================
    op.create_table(
        'api_sync_logs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('channel', sa.String(20), nullable=False),
        sa.Column('sync_type', sa.String(50), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('records_count', sa.Integer, server_default='0', nullable=False),
        sa.Column('error_message', sa.Text, nullable=True),
        sa.Column('details', JSON, nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps('completed_at'),
    )
    op.create_index('ix_api_sync_logs_channel', 'api_sync_logs', ['channel'])
    op.create_index('ix_api_sync_logs_sync_type', 'api_sync_logs', ['sync_type'])
    op.create_index('ix_api_sync_logs_completed_at', 'api_sync_logs', ['completed_at'])


def downgrade() -> None:
    for table in (
        'api_sync_logs',
        'inventory_logs',
        'inventory',
        'coupang_revenues',
        'naver_orders',
        'rocket_growth_order_items',
        'rocket_growth_orders',
        'coupang_order_items',
        'coupang_orders',
        'product_mappings',
        'products',
    ):
        op.drop_table(table)
