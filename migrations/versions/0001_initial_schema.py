"""initial marketplace schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2025-01-15 10:00:00

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    ]


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password', sa.String(length=200), nullable=False),
        sa.Column('display_name', sa.String(length=150), nullable=False),
        sa.Column('phone', sa.String(length=30), nullable=True),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('business_name', sa.String(length=150), nullable=True),
        sa.Column('seller_status', sa.String(length=20), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("role IN ('admin', 'manager', 'seller', 'customer')", name='ck_users_role'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'])

    op.create_table(
        'password_reset_tokens',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('otp_code', sa.String(length=6), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_password_reset_tokens_email', 'password_reset_tokens', ['email'], unique=True)

    op.create_table(
        'categories',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('name', sa.String(length=100), nullable=False, unique=True),
        sa.Column('slug', sa.String(length=120), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_categories_slug', 'categories', ['slug'], unique=True)

    op.create_table(
        'products',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('seller_id', sa.String(length=36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('category_id', sa.String(length=36), sa.ForeignKey('categories.id'), nullable=True),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price', sa.Integer(), nullable=False),
        sa.Column('stock', sa.Integer(), nullable=False),
        sa.Column('images', sa.JSON(), nullable=True),
        sa.Column('approval_status', sa.String(length=30), nullable=False),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('price >= 0', name='ck_products_price'),
        sa.CheckConstraint('stock >= 0', name='ck_products_stock'),
    )
    op.create_index('ix_products_seller_id', 'products', ['seller_id'])
    op.create_index('ix_products_approval_status', 'products', ['approval_status'])

    op.create_table(
        'carts',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('user_id', sa.String(length=36), sa.ForeignKey('users.id'), nullable=False, unique=True),
    )
    op.create_table(
        'cart_items',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('cart_id', sa.String(length=36), sa.ForeignKey('carts.id'), nullable=False),
        sa.Column('product_id', sa.String(length=36), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.UniqueConstraint('cart_id', 'product_id', name='uq_cart_items_product'),
        sa.CheckConstraint('quantity > 0', name='ck_cart_items_quantity'),
    )

    op.create_table(
        'orders',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('user_id', sa.String(length=36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('basket', sa.JSON(), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=30), nullable=False),
        sa.Column('payment_intent_id', sa.String(length=100), nullable=True, unique=True),
        sa.Column('shipping_address', sa.JSON(), nullable=True),
        sa.Column('paid_at', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('amount >= 0', name='ck_orders_amount'),
    )
    op.create_index('ix_orders_user_id', 'orders', ['user_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])

    op.create_table(
        'sub_orders',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('parent_order_id', sa.String(length=36), sa.ForeignKey('orders.id'), nullable=False),
        sa.Column('seller_id', sa.String(length=36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('items', sa.JSON(), nullable=False),
        sa.Column('subtotal', sa.Integer(), nullable=False),
        sa.Column('total_amount', sa.Integer(), nullable=False),
        sa.Column('commission_rate', sa.Numeric(5, 2), nullable=False),
        sa.Column('commission_amount', sa.Integer(), nullable=False),
        sa.Column('processing_fee', sa.Integer(), nullable=False),
        sa.Column('platform_fee', sa.Integer(), nullable=False),
        sa.Column('seller_payout_amount', sa.Integer(), nullable=False),
        sa.Column('fulfillment_status', sa.String(length=20), nullable=False),
        sa.Column('payout_status', sa.String(length=20), nullable=False),
        sa.Column('earnings_available_date', sa.Date(), nullable=True),
        sa.Column('fulfilled_at', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('parent_order_id', 'seller_id', name='uq_sub_orders_parent_seller'),
        sa.CheckConstraint(
            'seller_payout_amount = total_amount - commission_amount - processing_fee - platform_fee',
            name='ck_sub_orders_payout',
        ),
    )
    op.create_index('ix_sub_orders_parent_order_id', 'sub_orders', ['parent_order_id'])
    op.create_index('ix_sub_orders_seller_id', 'sub_orders', ['seller_id'])

    op.create_table(
        'payouts',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('seller_id', sa.String(length=36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('method', sa.String(length=30), nullable=False),
        sa.Column('status', sa.String(length=30), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('processed_by', sa.String(length=36), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('requested_at', sa.DateTime(), nullable=True),
        sa.Column('processed_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint('amount > 0', name='ck_payouts_amount'),
    )
    op.create_index('ix_payouts_seller_id', 'payouts', ['seller_id'])
    op.create_index('ix_payouts_status', 'payouts', ['status'])

    op.create_table(
        'seller_earnings',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('seller_id', sa.String(length=36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('parent_order_id', sa.String(length=36), sa.ForeignKey('orders.id'), nullable=False),
        sa.Column('sub_order_id', sa.String(length=36), sa.ForeignKey('sub_orders.id'), nullable=False, unique=True),
        sa.Column('payout_id', sa.String(length=36), sa.ForeignKey('payouts.id'), nullable=True),
        sa.Column('gross_amount', sa.Integer(), nullable=False),
        sa.Column('commission_amount', sa.Integer(), nullable=False),
        sa.Column('processing_fee', sa.Integer(), nullable=False),
        sa.Column('platform_fee', sa.Integer(), nullable=False),
        sa.Column('net_amount', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('available_date', sa.Date(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint(
            'net_amount = gross_amount - commission_amount - processing_fee - platform_fee',
            name='ck_seller_earnings_net',
        ),
        sa.CheckConstraint('net_amount >= 0', name='ck_seller_earnings_net_positive'),
    )
    op.create_index('ix_seller_earnings_seller_id', 'seller_earnings', ['seller_id'])
    op.create_index('ix_seller_earnings_parent_order_id', 'seller_earnings', ['parent_order_id'])
    op.create_index('ix_seller_earnings_payout_id', 'seller_earnings', ['payout_id'])
    op.create_index('ix_seller_earnings_status', 'seller_earnings', ['status'])

    op.create_table(
        'commission_rates',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('rate_type', sa.String(length=20), nullable=False),
        sa.Column('commission_percentage', sa.Numeric(5, 2), nullable=False),
        sa.Column('seller_id', sa.String(length=36), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('category_id', sa.String(length=36), sa.ForeignKey('categories.id'), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint(
            'commission_percentage >= 0 AND commission_percentage <= 100',
            name='ck_commission_rates_percentage',
        ),
    )

    op.create_table(
        'reviews',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('product_id', sa.String(length=36), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('user_id', sa.String(length=36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('order_id', sa.String(length=36), sa.ForeignKey('orders.id'), nullable=False),
        sa.Column('rating', sa.Integer(), nullable=False),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('product_id', 'user_id', name='uq_reviews_product_user'),
        sa.CheckConstraint('rating BETWEEN 1 AND 5', name='ck_reviews_rating'),
    )
    op.create_index('ix_reviews_product_id', 'reviews', ['product_id'])

    op.create_table(
        'return_requests',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('order_id', sa.String(length=36), sa.ForeignKey('orders.id'), nullable=False),
        sa.Column('user_id', sa.String(length=36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('refund_amount', sa.Integer(), nullable=True),
        sa.Column('resolution_note', sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_return_requests_order_id', 'return_requests', ['order_id'])
    op.create_index('ix_return_requests_user_id', 'return_requests', ['user_id'])

    op.create_table(
        'disputes',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('order_id', sa.String(length=36), sa.ForeignKey('orders.id'), nullable=False),
        sa.Column('user_id', sa.String(length=36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('subject', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('resolution', sa.Text(), nullable=True),
        sa.Column('resolved_by', sa.String(length=36), sa.ForeignKey('users.id'), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_disputes_order_id', 'disputes', ['order_id'])
    op.create_index('ix_disputes_user_id', 'disputes', ['user_id'])

    op.create_table(
        'notifications',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('user_id', sa.String(length=36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('type', sa.String(length=50), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('link', sa.String(length=300), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])


def downgrade():
    for table in (
        'notifications', 'disputes', 'return_requests', 'reviews', 'commission_rates',
        'seller_earnings', 'payouts', 'sub_orders', 'orders', 'cart_items', 'carts',
        'products', 'categories', 'password_reset_tokens', 'users',
    ):
        op.drop_table(table)
