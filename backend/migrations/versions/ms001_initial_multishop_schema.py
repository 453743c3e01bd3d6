"""initial multishop schema

Revision ID: ms001
Revises:
Create Date: 2026-10-01 00:00:00.000000

Creates the multishop schema from scratch:
- shops, products: catalog
- inventory: one stock counter per (shop, product), versioned for
  optimistic concurrency
- transfers: two-phase inter-shop transfer requests
- sales, expenses: sales with frozen line snapshots, shop expenses
- deliveries: delivery runs picked up by riders
- accounts, users, session_tokens, reset_challenges: identity provider
- notifications: per-user feed
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'ms001'
down_revision = None
branch_labels = None
depends_on = None


def _audit_columns(with_updated_by=True):
    columns = [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('created_by', sa.String(length=32), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    ]
    if with_updated_by:
        columns.append(sa.Column('updated_by', sa.String(length=32), nullable=True))
    return columns


def upgrade():
    # ============================================================================
    # catalog
    # ============================================================================
    op.create_table(
        'shops',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('location', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('opening_hours', sa.String(length=120), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
        sa.Column('manager_id', sa.String(length=32), nullable=True),
        *_audit_columns(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_shops_status', 'shops', ['status'])

    op.create_table(
        'products',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('category', sa.String(length=120), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('image_url', sa.String(length=512), nullable=True),
        sa.Column('price_cents', sa.Integer(), nullable=False, server_default='0'),
        *_audit_columns(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_products_category_name', 'products', ['category', 'name'])

    # ============================================================================
    # identity
    # ============================================================================
    op.create_table(
        'accounts',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_accounts_email', 'accounts', ['email'], unique=True)

    op.create_table(
        'users',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('shop_id', sa.String(length=32), nullable=True),
        sa.Column('position', sa.String(length=120), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('salary_cents', sa.Integer(), nullable=True),
        sa.Column('joining_date', sa.Date(), nullable=True),
        *_audit_columns(),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_email', 'users', ['email'])
    op.create_index('ix_users_role', 'users', ['role'])
    op.create_index('ix_users_shop_role', 'users', ['shop_id', 'role'])

    op.create_table(
        'session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('account_id', sa.String(length=32), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_reason', sa.String(length=255), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_session_tokens_account_id', 'session_tokens', ['account_id'])
    op.create_index('ix_session_tokens_token_hash', 'session_tokens', ['token_hash'], unique=True)
    op.create_index('ix_session_tokens_expires_at', 'session_tokens', ['expires_at'])
    op.create_index('ix_session_tokens_is_revoked', 'session_tokens', ['is_revoked'])
    op.create_index('ix_session_tokens_account_active', 'session_tokens', ['account_id', 'is_revoked'])

    op.create_table(
        'reset_challenges',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('account_id', sa.String(length=32), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('used_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_reset_challenges_account_id', 'reset_challenges', ['account_id'])
    op.create_index('ix_reset_challenges_token_hash', 'reset_challenges', ['token_hash'], unique=True)

    # ============================================================================
    # inventory ledger
    # ============================================================================
    op.create_table(
        'inventory',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('shop_id', sa.String(length=32), nullable=False),
        sa.Column('product_id', sa.String(length=32), nullable=False),
        sa.Column('current_stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('low_stock_threshold', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_restock_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_restock_quantity', sa.Integer(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        *_audit_columns(),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id']),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('shop_id', 'product_id', name='uq_inventory_shop_product'),
    )
    op.create_index('ix_inventory_shop_id', 'inventory', ['shop_id'])
    op.create_index('ix_inventory_product_id', 'inventory', ['product_id'])

    op.create_table(
        'transfers',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('from_shop_id', sa.String(length=32), nullable=False),
        sa.Column('to_shop_id', sa.String(length=32), nullable=False),
        sa.Column('product_id', sa.String(length=32), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        *_audit_columns(with_updated_by=False),
        sa.Column('approved_by', sa.String(length=32), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejected_by', sa.String(length=32), nullable=True),
        sa.Column('rejected_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejection_reason', sa.String(length=255), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['from_shop_id'], ['shops.id']),
        sa.ForeignKeyConstraint(['to_shop_id'], ['shops.id']),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_transfers_product_id', 'transfers', ['product_id'])
    op.create_index('ix_transfers_to_shop_status', 'transfers', ['to_shop_id', 'status'])
    op.create_index('ix_transfers_from_shop_status', 'transfers', ['from_shop_id', 'status'])

    # ============================================================================
    # sales, expenses, deliveries
    # ============================================================================
    op.create_table(
        'sales',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('shop_id', sa.String(length=32), nullable=False),
        sa.Column('items', sa.JSON(), nullable=False),
        sa.Column('customer_name', sa.String(length=255), nullable=True),
        sa.Column('customer_phone', sa.String(length=32), nullable=True),
        sa.Column('payment_method', sa.String(length=16), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('subtotal_cents', sa.Integer(), nullable=False),
        sa.Column('discount_bps', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('discount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_cents', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='completed'),
        *_audit_columns(with_updated_by=False),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_sales_shop_id', 'sales', ['shop_id'])
    op.create_index('ix_sales_created_at', 'sales', ['created_at'])
    op.create_index('ix_sales_shop_created', 'sales', ['shop_id', 'created_at'])

    op.create_table(
        'expenses',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('shop_id', sa.String(length=32), nullable=False),
        sa.Column('category', sa.String(length=120), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('created_by', sa.String(length=32), nullable=True),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_expenses_shop_id', 'expenses', ['shop_id'])
    op.create_index('ix_expenses_shop_date', 'expenses', ['shop_id', 'date'])

    op.create_table(
        'deliveries',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('shop_id', sa.String(length=32), nullable=False),
        sa.Column('to_shop_id', sa.String(length=32), nullable=True),
        sa.Column('rider_id', sa.String(length=32), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('customer_name', sa.String(length=255), nullable=True),
        sa.Column('customer_phone', sa.String(length=32), nullable=True),
        sa.Column('address', sa.String(length=512), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_audit_columns(),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id']),
        sa.ForeignKeyConstraint(['to_shop_id'], ['shops.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_deliveries_rider_id', 'deliveries', ['rider_id'])
    op.create_index('ix_deliveries_shop_status', 'deliveries', ['shop_id', 'status'])

    # ============================================================================
    # notifications
    # ============================================================================
    op.create_table(
        'notifications',
        sa.Column('id', sa.String(length=40), nullable=False),
        sa.Column('user_id', sa.String(length=32), nullable=False),
        sa.Column('type', sa.String(length=32), nullable=False),
        sa.Column('message', sa.String(length=512), nullable=False),
        sa.Column('data', sa.JSON(), nullable=True),
        sa.Column('read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_notifications_user_created', 'notifications', ['user_id', 'created_at'])


def downgrade():
    op.drop_table('notifications')
    op.drop_table('deliveries')
    op.drop_table('expenses')
    op.drop_table('sales')
    op.drop_table('transfers')
    op.drop_table('inventory')
    op.drop_table('reset_challenges')
    op.drop_table('session_tokens')
    op.drop_table('users')
    op.drop_table('accounts')
    op.drop_table('products')
    op.drop_table('shops')
