"""initial restaurant schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19
"""
from __future__ import annotations
from alembic import op
import sqlalchemy as sa

revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None

NOW = sa.text('CURRENT_TIMESTAMP')


def upgrade():
    op.create_table('USER_ACCOUNT',
        sa.Column('user_id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(length=64), nullable=False, unique=True),
        sa.Column('email', sa.String(length=128), nullable=False, unique=True),
        sa.Column('user_password', sa.String(length=255), nullable=False),
        sa.Column('user_role', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('created_at', sa.DateTime(), server_default=NOW),
    )
    op.create_index('ix_USER_ACCOUNT_username', 'USER_ACCOUNT', ['username'])
    op.create_index('ix_USER_ACCOUNT_email', 'USER_ACCOUNT', ['email'])

    op.create_table('CUSTOMER',
        sa.Column('customer_id', sa.Integer(), primary_key=True),
        sa.Column('user_ref', sa.Integer(), sa.ForeignKey('USER_ACCOUNT.user_id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('first_name', sa.String(length=64)),
        sa.Column('last_name', sa.String(length=64)),
        sa.Column('street', sa.String(length=128)),
        sa.Column('city', sa.String(length=64)),
        sa.Column('state_code', sa.String(length=2)),
        sa.Column('zipcode', sa.String(length=10)),
        sa.Column('phone_number', sa.String(length=32)),
        sa.Column('loyalty_points', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('total_amount_spent', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('refunds_per_month', sa.Integer(), nullable=False, server_default=sa.text('0')),
    )

    op.create_table('STAFF',
        sa.Column('staff_id', sa.Integer(), primary_key=True),
        sa.Column('user_ref', sa.Integer(), sa.ForeignKey('USER_ACCOUNT.user_id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('first_name', sa.String(length=64)),
        sa.Column('last_name', sa.String(length=64)),
        sa.Column('phone_number', sa.String(length=32), nullable=False),
        sa.Column('hire_date', sa.Date(), nullable=False),
        sa.Column('salary', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('PERMISSIONS', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('STAFF.staff_id', ondelete='SET NULL')),
        sa.Column('updated_by', sa.Integer(), sa.ForeignKey('STAFF.staff_id', ondelete='SET NULL')),
        sa.Column('created_at', sa.DateTime(), server_default=NOW),
        sa.Column('last_updated_at', sa.DateTime(), server_default=NOW),
    )

    op.create_table('PAYMENT_METHOD',
        sa.Column('payment_method_id', sa.Integer(), primary_key=True),
        sa.Column('customer_ref', sa.Integer(), sa.ForeignKey('CUSTOMER.customer_id', ondelete='CASCADE'), nullable=False),
        sa.Column('payment_type', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('last_four', sa.String(length=4), nullable=False),
        sa.Column('exp_date', sa.String(length=7)),
        sa.Column('billing_street', sa.String(length=128), nullable=False),
        sa.Column('billing_city', sa.String(length=64), nullable=False),
        sa.Column('billing_state', sa.String(length=2), nullable=False),
        sa.Column('billing_zip', sa.String(length=10), nullable=False),
        sa.Column('first_name', sa.String(length=64), nullable=False),
        sa.Column('middle_init', sa.String(length=1)),
        sa.Column('last_name', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=NOW),
    )
    op.create_index('ix_PAYMENT_METHOD_customer_ref', 'PAYMENT_METHOD', ['customer_ref'])

    op.create_table('MEAL',
        sa.Column('meal_id', sa.Integer(), primary_key=True),
        sa.Column('meal_name', sa.String(length=128), nullable=False),
        sa.Column('meal_description', sa.Text()),
        sa.Column('img_url', sa.String(length=255)),
        sa.Column('meal_status', sa.Integer(), nullable=False, server_default=sa.text('1')),
        sa.Column('nutrition_facts', sa.JSON()),
        sa.Column('start_date', sa.Date()),
        sa.Column('end_date', sa.Date()),
        sa.Column('price', sa.Integer(), nullable=False),
        sa.Column('cost_to_make', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('STAFF.staff_id', ondelete='SET NULL')),
        sa.Column('updated_by', sa.Integer(), sa.ForeignKey('STAFF.staff_id', ondelete='SET NULL')),
        sa.Column('created_at', sa.DateTime(), server_default=NOW),
        sa.Column('last_updated_at', sa.DateTime(), server_default=NOW),
    )
    op.create_index('ix_MEAL_meal_name', 'MEAL', ['meal_name'])

    op.create_table('MEAL_TYPE',
        sa.Column('meal_type_id', sa.Integer(), primary_key=True),
        sa.Column('meal_type', sa.String(length=64), nullable=False, unique=True),
    )

    op.create_table('MEAL_TYPE_LINK',
        sa.Column('meal_ref', sa.Integer(), sa.ForeignKey('MEAL.meal_id', ondelete='CASCADE'), primary_key=True),
        sa.Column('meal_type_ref', sa.Integer(), sa.ForeignKey('MEAL_TYPE.meal_type_id', ondelete='CASCADE'), primary_key=True),
    )

    op.create_table('STOCK',
        sa.Column('stock_id', sa.Integer(), primary_key=True),
        sa.Column('meal_ref', sa.Integer(), sa.ForeignKey('MEAL.meal_id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('quantity_in_stock', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('reorder_threshold', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('stock_fulfillment_time', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('needs_reorder', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('last_updated_at', sa.DateTime(), server_default=NOW),
    )

    op.create_table('ORDERS',
        sa.Column('order_id', sa.Integer(), primary_key=True),
        sa.Column('customer_ref', sa.Integer(), sa.ForeignKey('CUSTOMER.customer_id'), nullable=False),
        sa.Column('order_date', sa.Date(), nullable=False),
        sa.Column('order_status', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('delivery_date', sa.Date()),
        sa.Column('unit_price', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('tax', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('discount', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('notes', sa.Text()),
        sa.Column('tracking_number', sa.String(length=64)),
        sa.Column('shipping_street', sa.String(length=128)),
        sa.Column('shipping_city', sa.String(length=64)),
        sa.Column('shipping_state_code', sa.String(length=2)),
        sa.Column('shipping_zipcode', sa.String(length=10)),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('USER_ACCOUNT.user_id', ondelete='SET NULL')),
        sa.Column('updated_by_staff', sa.Integer(), sa.ForeignKey('STAFF.staff_id', ondelete='SET NULL')),
        sa.Column('version', sa.Integer(), nullable=False, server_default=sa.text('1')),
        sa.Column('last_updated_at', sa.DateTime(), server_default=NOW),
    )
    op.create_index('ix_ORDERS_customer_ref', 'ORDERS', ['customer_ref'])
    op.create_index('ix_ORDERS_order_status', 'ORDERS', ['order_status'])

    op.create_table('ORDER_LINE',
        sa.Column('order_line_id', sa.Integer(), primary_key=True),
        sa.Column('order_ref', sa.Integer(), sa.ForeignKey('ORDERS.order_id', ondelete='CASCADE'), nullable=False),
        sa.Column('meal_ref', sa.Integer(), sa.ForeignKey('MEAL.meal_id'), nullable=False),
        sa.Column('num_units_ordered', sa.Integer(), nullable=False),
        sa.Column('price_at_sale', sa.Integer(), nullable=False),
        sa.Column('cost_per_unit', sa.Integer(), nullable=False, server_default=sa.text('0')),
    )
    op.create_index('ix_ORDER_LINE_order_ref', 'ORDER_LINE', ['order_ref'])
    op.create_index('ix_ORDER_LINE_meal_ref', 'ORDER_LINE', ['meal_ref'])

    op.create_table('PROMOTION',
        sa.Column('promotion_id', sa.Integer(), primary_key=True),
        sa.Column('promo_description', sa.Text()),
        sa.Column('promo_type', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('promo_code', sa.String(length=32), nullable=False, unique=True),
        sa.Column('promo_exp_date', sa.Date(), nullable=False),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('STAFF.staff_id', ondelete='SET NULL')),
        sa.Column('updated_by', sa.Integer(), sa.ForeignKey('STAFF.staff_id', ondelete='SET NULL')),
        sa.Column('created_at', sa.DateTime(), server_default=NOW),
        sa.Column('last_updated_at', sa.DateTime(), server_default=NOW),
    )
    op.create_index('ix_PROMOTION_promo_code', 'PROMOTION', ['promo_code'])

    op.create_table('ORDER_PROMOTION',
        sa.Column('order_ref', sa.Integer(), sa.ForeignKey('ORDERS.order_id', ondelete='CASCADE'), primary_key=True),
        sa.Column('promotion_ref', sa.Integer(), sa.ForeignKey('PROMOTION.promotion_id', ondelete='CASCADE'), primary_key=True),
        sa.Column('discount_amount', sa.Integer(), nullable=False, server_default=sa.text('0')),
    )

    op.create_table('PAYMENT',
        sa.Column('payment_id', sa.Integer(), primary_key=True),
        sa.Column('order_ref', sa.Integer(), sa.ForeignKey('ORDERS.order_id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('payment_method_ref', sa.Integer(), sa.ForeignKey('PAYMENT_METHOD.payment_method_id', ondelete='SET NULL')),
        sa.Column('payment_amount', sa.Integer(), nullable=False),
        sa.Column('transaction_status', sa.Integer(), nullable=False, server_default=sa.text('1')),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('USER_ACCOUNT.user_id', ondelete='SET NULL')),
        sa.Column('created_at', sa.DateTime(), server_default=NOW),
    )

    op.create_table('SALE_EVENT',
        sa.Column('sale_event_id', sa.Integer(), primary_key=True),
        sa.Column('event_description', sa.Text()),
        sa.Column('event_start', sa.Date(), nullable=False),
        sa.Column('event_end', sa.Date(), nullable=False),
        sa.Column('sitewide_event_type', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('sitewide_discount_value', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('STAFF.staff_id', ondelete='SET NULL')),
        sa.Column('updated_by', sa.Integer(), sa.ForeignKey('STAFF.staff_id', ondelete='SET NULL')),
        sa.Column('created_at', sa.DateTime(), server_default=NOW),
        sa.Column('last_updated_at', sa.DateTime(), server_default=NOW),
    )

    op.create_table('REVIEWS',
        sa.Column('customer_ref', sa.Integer(), sa.ForeignKey('CUSTOMER.customer_id', ondelete='CASCADE'), primary_key=True),
        sa.Column('meal_ref', sa.Integer(), sa.ForeignKey('MEAL.meal_id', ondelete='CASCADE'), primary_key=True),
        sa.Column('stars', sa.Integer(), nullable=False),
        sa.Column('user_comment', sa.Text()),
        sa.Column('created_at', sa.DateTime(), server_default=NOW),
    )

    op.create_table('EVENT_OUTBOX',
        sa.Column('event_id', sa.Integer(), primary_key=True),
        sa.Column('event_type', sa.String(length=64), nullable=False),
        sa.Column('payload_json', sa.JSON()),
        sa.Column('ref_order_id', sa.Integer(), sa.ForeignKey('ORDERS.order_id', ondelete='SET NULL')),
        sa.Column('resolved', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('resolved_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime(), server_default=NOW),
    )
    op.create_index('ix_EVENT_OUTBOX_event_type', 'EVENT_OUTBOX', ['event_type'])
    op.create_index('ix_EVENT_OUTBOX_ref_order_id', 'EVENT_OUTBOX', ['ref_order_id'])

    op.create_table('AUDIT_LOG',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('actor_user_id', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('entity', sa.String(length=64)),
        sa.Column('entity_id', sa.String(length=64)),
        sa.Column('permissions_snapshot', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('meta', sa.JSON()),
        sa.Column('created_at', sa.DateTime(), server_default=NOW),
    )
    op.create_index('ix_AUDIT_LOG_actor_user_id', 'AUDIT_LOG', ['actor_user_id'])
    op.create_index('ix_AUDIT_LOG_action', 'AUDIT_LOG', ['action'])
    op.create_index('ix_AUDIT_LOG_created_at', 'AUDIT_LOG', ['created_at'])


def downgrade():
    for table in ('AUDIT_LOG', 'EVENT_OUTBOX', 'REVIEWS', 'SALE_EVENT', 'PAYMENT', 'ORDER_PROMOTION', 'PROMOTION',
                  'ORDER_LINE', 'ORDERS', 'STOCK', 'MEAL_TYPE_LINK', 'MEAL_TYPE', 'MEAL', 'PAYMENT_METHOD',
                  'STAFF', 'CUSTOMER', 'USER_ACCOUNT'):
        op.drop_table(table)
