"""initial marketplace schema: shops, inventory, orders

Revision ID: 7a1f3c2d9e40
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '7a1f3c2d9e40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'user',
        sa.Column('id', sa.BigInteger(), primary_key=True),
        sa.Column('email', sa.String(length=255), nullable=False, unique=True),
        sa.Column('fullname', sa.String(length=100), nullable=True),
        sa.Column('role', sa.String(length=20), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_table(
        'address',
        sa.Column('id', sa.BigInteger(), primary_key=True),
        sa.Column('user_id', sa.BigInteger(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('line1', sa.String(length=255), nullable=False),
        sa.Column('city', sa.String(length=100), nullable=False),
        sa.Column('latitude', sa.Float(), nullable=True),
        sa.Column('longitude', sa.Float(), nullable=True),
        sa.Column('is_default', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index(
        'uq_address_default_per_user', 'address', ['user_id'], unique=True,
        sqlite_where=sa.text('is_default = 1'),
        postgresql_where=sa.text('is_default'),
    )
    op.create_table(
        'shop',
        sa.Column('id', sa.BigInteger(), primary_key=True),
        sa.Column('user_id', sa.BigInteger(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('store_name', sa.String(length=100), nullable=False),
        sa.Column('city', sa.String(length=100), nullable=False),
        sa.Column('address', sa.String(length=255), nullable=False),
        sa.Column('latitude', sa.Float(), nullable=True),
        sa.Column('longitude', sa.Float(), nullable=True),
        sa.Column('delivery_time', sa.Integer(), nullable=True),
        sa.Column('store_banner', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_shop_lat_lng', 'shop', ['latitude', 'longitude'])
    op.create_table(
        'product',
        sa.Column('id', sa.BigInteger(), primary_key=True),
        sa.Column('category', sa.String(length=50), nullable=True),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('brand', sa.String(length=50), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('image_url', sa.String(length=255), nullable=True),
        sa.Column('net_qty', sa.String(length=20), nullable=True),
        sa.Column('unit', sa.String(length=20), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_table(
        'shop_inventory',
        sa.Column('shop_id', sa.BigInteger(), sa.ForeignKey('shop.id'), primary_key=True),
        sa.Column('product_id', sa.BigInteger(), sa.ForeignKey('product.id'), primary_key=True),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_available', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('net_qty', sa.String(length=20), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint('quantity >= 0', name='ck_shop_inventory_quantity_nonnegative'),
    )
    op.create_index('ix_shop_inventory_product', 'shop_inventory', ['product_id'])
    op.create_table(
        'order',
        sa.Column('id', sa.BigInteger(), primary_key=True),
        sa.Column('user_id', sa.BigInteger(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('shop_id', sa.BigInteger(), sa.ForeignKey('shop.id'), nullable=False),
        sa.Column('delivery_address_id', sa.BigInteger(), sa.ForeignKey('address.id'), nullable=False),
        sa.Column('total_amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('order_status', sa.String(length=30), nullable=False),
        sa.Column('payment_status', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_order_shop_status', 'order', ['shop_id', 'order_status'])
    op.create_index('ix_order_user_created', 'order', ['user_id', 'created_at'])
    op.create_table(
        'order_item',
        sa.Column('id', sa.BigInteger(), primary_key=True),
        sa.Column('order_id', sa.BigInteger(), sa.ForeignKey('order.id'), nullable=False),
        sa.Column('product_id', sa.BigInteger(), sa.ForeignKey('product.id'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('price_per_unit', sa.Numeric(10, 2), nullable=False),
    )
    op.create_table(
        'order_status_log',
        sa.Column('id', sa.BigInteger(), primary_key=True),
        sa.Column('order_id', sa.BigInteger(), sa.ForeignKey('order.id'), nullable=False),
        sa.Column('from_status', sa.String(length=30), nullable=True),
        sa.Column('status', sa.String(length=30), nullable=False),
        sa.Column('updated_by', sa.BigInteger(), nullable=False),
        sa.Column('timestamp', sa.DateTime(), nullable=True),
    )
    op.create_table(
        'checkout_attempt',
        sa.Column('id', sa.BigInteger(), primary_key=True),
        sa.Column('user_id', sa.BigInteger(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('idempotency_key', sa.String(length=100), nullable=False),
        sa.Column('order_ids', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('user_id', 'idempotency_key', name='uq_checkout_attempt_user_key'),
    )


def downgrade():
    op.drop_table('checkout_attempt')
    op.drop_table('order_status_log')
    op.drop_table('order_item')
    op.drop_index('ix_order_user_created', table_name='order')
    op.drop_index('ix_order_shop_status', table_name='order')
    op.drop_table('order')
    op.drop_index('ix_shop_inventory_product', table_name='shop_inventory')
    op.drop_table('shop_inventory')
    op.drop_table('product')
    op.drop_index('ix_shop_lat_lng', table_name='shop')
    op.drop_table('shop')
    op.drop_index('uq_address_default_per_user', table_name='address')
    op.drop_table('address')
    op.drop_table('user')
