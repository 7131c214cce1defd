"""Create platform integration, mapping, order and log tables

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    """Create the tables used by the platform sync engine."""
    op.create_table(
        'integration_settings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('restaurant_id', sa.Integer(), nullable=False),
        sa.Column('platform', sa.String(50), nullable=False, comment='migros-yemek, yemeksepeti, getir, trendyol-go'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('api_key', sa.String(255), nullable=True),
        sa.Column('api_secret', sa.String(255), nullable=True),
        sa.Column('app_secret_key', sa.String(255), nullable=True),
        sa.Column('restaurant_secret_key', sa.String(255), nullable=True),
        sa.Column('vendor_id', sa.String(100), nullable=True),
        sa.Column('store_id', sa.String(100), nullable=True),
        sa.Column('seller_id', sa.String(100), nullable=True),
        sa.Column('restaurant_name', sa.String(255), nullable=True),
        sa.Column('chain_code', sa.String(100), nullable=True),
        sa.Column('branch_code', sa.String(100), nullable=True),
        sa.Column('integration_code', sa.String(100), nullable=True),
        sa.Column('base_url', sa.String(500), nullable=True, comment='Overrides the platform default endpoint'),
        sa.Column('webhook_url', sa.String(500), nullable=True),
        sa.Column('webhook_secret', sa.String(255), nullable=True),
        sa.Column('last_sync_at', sa.DateTime(), nullable=True),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('sync_status', sa.String(20), nullable=False, server_default='idle'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('restaurant_id', 'platform', name='uq_integration_restaurant_platform'),
    )
    op.create_index('ix_integration_settings_restaurant_id', 'integration_settings', ['restaurant_id'])
    op.create_index('ix_integration_settings_platform', 'integration_settings', ['platform'])
    op.create_index('ix_integration_settings_vendor_id', 'integration_settings', ['vendor_id'])
    op.create_index('ix_integration_settings_store_id', 'integration_settings', ['store_id'])
    op.create_index('ix_integration_settings_seller_id', 'integration_settings', ['seller_id'])

    op.create_table(
        'categories',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('restaurant_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.Index('ix_categories_restaurant_id', 'restaurant_id'),
    )

    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('restaurant_id', sa.Integer(), nullable=False),
        sa.Column('category_id', sa.Integer(), sa.ForeignKey('categories.id'), nullable=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('base_price', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('image_url', sa.String(500), nullable=True),
        sa.Column('is_available', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('preparation_time', sa.Integer(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.Index('ix_products_restaurant_id', 'restaurant_id'),
    )

    op.create_table(
        'platform_product_mappings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('restaurant_id', sa.Integer(), nullable=False),
        sa.Column('platform', sa.String(50), nullable=False),
        sa.Column('internal_product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('external_product_id', sa.String(100), nullable=False),
        sa.Column('external_product_name', sa.String(255), nullable=True),
        sa.Column('price_sync_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('availability_sync_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('last_synced_at', sa.DateTime(), nullable=True),
        sa.Column('sync_status', sa.String(20), nullable=False, server_default='pending', comment='synced, pending, error'),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint(
            'restaurant_id', 'platform', 'internal_product_id',
            name='uq_product_mapping_restaurant_platform_product'
        ),
        sa.Index('ix_platform_product_mappings_restaurant_id', 'restaurant_id'),
        sa.Index('ix_platform_product_mappings_platform', 'platform'),
    )

    op.create_table(
        'platform_category_mappings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('restaurant_id', sa.Integer(), nullable=False),
        sa.Column('platform', sa.String(50), nullable=False),
        sa.Column('internal_category_id', sa.Integer(), sa.ForeignKey('categories.id'), nullable=False),
        sa.Column('external_category_id', sa.String(100), nullable=False),
        sa.Column('external_category_name', sa.String(255), nullable=True),
        sa.Column('last_synced_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint(
            'restaurant_id', 'platform', 'internal_category_id',
            name='uq_category_mapping_restaurant_platform_category'
        ),
        sa.Index('ix_platform_category_mappings_restaurant_id', 'restaurant_id'),
        sa.Index('ix_platform_category_mappings_platform', 'platform'),
    )

    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('restaurant_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(30), nullable=False, server_default='pending'),
        sa.Column('source_platform', sa.String(50), nullable=True),
        sa.Column('customer_name', sa.String(255), nullable=True),
        sa.Column('customer_phone', sa.String(50), nullable=True),
        sa.Column('customer_address', sa.Text(), nullable=True),
        sa.Column('customer_address_lat', sa.Numeric(10, 7), nullable=True),
        sa.Column('customer_address_lng', sa.Numeric(10, 7), nullable=True),
        sa.Column('subtotal', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('delivery_fee', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('total_amount', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('payment_method', sa.String(50), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.Index('ix_orders_restaurant_id', 'restaurant_id'),
    )

    op.create_table(
        'order_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id'), nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=True),
        sa.Column('product_name', sa.String(255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('unit_price', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('total_price', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('special_instructions', sa.Text(), nullable=True),
        sa.Index('ix_order_items_order_id', 'order_id'),
    )

    op.create_table(
        'external_orders',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('restaurant_id', sa.Integer(), nullable=False),
        sa.Column('platform', sa.String(50), nullable=False),
        sa.Column('external_order_id', sa.String(100), nullable=False),
        sa.Column('order_number', sa.String(100), nullable=True),
        sa.Column('internal_order_id', sa.Integer(), sa.ForeignKey('orders.id'), nullable=True),
        sa.Column('status', sa.String(30), nullable=False, server_default='pending', comment='Internal status taxonomy'),
        sa.Column('external_status', sa.String(50), nullable=True, comment='Platform-native status token'),
        sa.Column('needs_review', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('review_reason', sa.String(255), nullable=True),
        sa.Column('subtotal', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('delivery_fee', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('total_amount', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('platform_commission', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('customer_name', sa.String(255), nullable=True),
        sa.Column('customer_phone', sa.String(50), nullable=True),
        sa.Column('customer_email', sa.String(255), nullable=True),
        sa.Column('customer_address', sa.Text(), nullable=True),
        sa.Column('delivery_latitude', sa.Numeric(10, 7), nullable=True),
        sa.Column('delivery_longitude', sa.Numeric(10, 7), nullable=True),
        sa.Column('payment_method', sa.String(50), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('order_date', sa.DateTime(), nullable=True),
        sa.Column('raw_data', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('platform', 'external_order_id', name='uq_external_order_platform_id'),
        sa.Index('ix_external_orders_restaurant_id', 'restaurant_id'),
        sa.Index('ix_external_orders_platform', 'platform'),
        sa.Index('ix_external_orders_internal_order_id', 'internal_order_id'),
    )

    op.create_table(
        'external_order_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('external_order_id', sa.Integer(), sa.ForeignKey('external_orders.id'), nullable=False),
        sa.Column('external_product_id', sa.String(100), nullable=True),
        sa.Column('internal_product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=True),
        sa.Column('product_name', sa.String(255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('unit_price', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('total_price', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('options', sa.JSON(), nullable=True),
        sa.Column('special_instructions', sa.Text(), nullable=True),
        sa.Index('ix_external_order_items_external_order_id', 'external_order_id'),
    )

    op.create_table(
        'sync_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('restaurant_id', sa.Integer(), nullable=False),
        sa.Column('platform', sa.String(50), nullable=False),
        sa.Column('sync_type', sa.String(30), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='running', comment='running, completed, partial, failed'),
        sa.Column('reference', sa.String(100), nullable=True, comment='External order or product id'),
        sa.Column('synced_categories', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('failed_categories', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('synced_products', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('failed_products', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('synced_items', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('failed_items', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('skipped_items', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('errors', sa.JSON(), nullable=False),
        sa.Column('started_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Index('ix_sync_logs_restaurant_id', 'restaurant_id'),
        sa.Index('ix_sync_logs_platform', 'platform'),
    )

    op.create_table(
        'webhook_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('platform', sa.String(50), nullable=False),
        sa.Column('restaurant_id', sa.Integer(), nullable=True),
        sa.Column('event_type', sa.String(100), nullable=True),
        sa.Column('payload_hash', sa.String(64), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('external_order_id', sa.String(100), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('received_at', sa.DateTime(), nullable=True),
        sa.Column('processed_at', sa.DateTime(), nullable=True),
        sa.Index('ix_webhook_logs_platform', 'platform'),
        sa.Index('ix_webhook_logs_restaurant_id', 'restaurant_id'),
        sa.Index('ix_webhook_logs_payload_hash', 'payload_hash'),
    )


def downgrade():
    """Drop the platform sync tables."""
    op.drop_table('webhook_logs')
    op.drop_table('sync_logs')
    op.drop_table('external_order_items')
    op.drop_table('external_orders')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('platform_category_mappings')
    op.drop_table('platform_product_mappings')
    op.drop_table('products')
    op.drop_table('categories')
    op.drop_table('integration_settings')
