"""Initial stock schema: tenancy, catalog, ledger, GRNs, movements, codes, audit, outbox

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19

This migration creates:
1. Reference data: companies, shops, suppliers, categories, products, users, session_tokens
2. stock_ledger_entries (quantity + WAC per company/shop/category/product, version_id)
3. receipt_headers (version_id) / receipt_lines (GRNs)
4. stock_movements / stock_movement_components (sales, wastage, adjustments, returns)
5. code_sequences / code_allocations (sequential business codes)
6. audit_log_entries, outbox_events
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_initial'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(*, updated: bool = False):
    cols = [sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())]
    if updated:
        cols.append(sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()))
    return cols


def upgrade():
    # ==========================================================================
    # 1. REFERENCE DATA
    # ==========================================================================
    op.create_table('companies',
        sa.Column('company_id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('contact_no', sa.String(length=64), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('company_id'),
    )

    op.create_table('shops',
        sa.Column('shop_id', sa.String(length=64), nullable=False),
        sa.Column('company_id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('address', sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['company_id'], ['companies.company_id']),
        sa.PrimaryKeyConstraint('shop_id'),
    )
    op.create_index('ix_shops_company', 'shops', ['company_id'])

    op.create_table('suppliers',
        sa.Column('supplier_id', sa.String(length=64), nullable=False),
        sa.Column('company_id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('contact_no', sa.String(length=64), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('credit_period_days', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['company_id'], ['companies.company_id']),
        sa.PrimaryKeyConstraint('supplier_id'),
    )
    op.create_index('ix_suppliers_company', 'suppliers', ['company_id'])

    op.create_table('categories',
        sa.Column('category_id', sa.String(length=64), nullable=False),
        sa.Column('company_id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.ForeignKeyConstraint(['company_id'], ['companies.company_id']),
        sa.PrimaryKeyConstraint('category_id'),
    )
    op.create_index('ix_categories_company_id', 'categories', ['company_id'])

    op.create_table('products',
        sa.Column('product_id', sa.String(length=64), nullable=False),
        sa.Column('company_id', sa.String(length=64), nullable=False),
        sa.Column('category_id', sa.String(length=64), nullable=True),
        sa.Column('plu_code', sa.String(length=64), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('product_type', sa.String(length=64), nullable=False),
        sa.Column('uom_id', sa.String(length=64), nullable=True),
        sa.Column('bom_id', sa.String(length=64), nullable=True),
        sa.Column('requires_grn', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('has_raw_materials', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('minimum_quantity', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['company_id'], ['companies.company_id']),
        sa.ForeignKeyConstraint(['category_id'], ['categories.category_id']),
        sa.PrimaryKeyConstraint('product_id'),
        sa.UniqueConstraint('plu_code'),
    )
    op.create_index('ix_products_company_id', 'products', ['company_id'])
    op.create_index('ix_products_category_id', 'products', ['category_id'])
    op.create_index('ix_products_company_name', 'products', ['company_id', 'name'])

    op.create_table('users',
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('company_id', sa.String(length=64), nullable=True),
        sa.Column('shop_id', sa.String(length=64), nullable=True),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('role', sa.String(length=32), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['company_id'], ['companies.company_id']),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.shop_id']),
        sa.PrimaryKeyConstraint('user_id'),
    )
    op.create_index('ix_users_company_id', 'users', ['company_id'])

    op.create_table('session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('company_id', sa.String(length=64), nullable=True),
        sa.Column('shop_id', sa.String(length=64), nullable=True),
        sa.Column('token_hash', sa.String(length=255), nullable=False),
        *_timestamps(),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.user_id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_session_tokens_user_id', 'session_tokens', ['user_id'])
    op.create_index('ix_session_tokens_token_hash', 'session_tokens', ['token_hash'], unique=True)
    op.create_index('ix_session_tokens_expires_at', 'session_tokens', ['expires_at'])
    op.create_index('ix_session_tokens_user_active', 'session_tokens', ['user_id', 'is_revoked'])

    # ==========================================================================
    # 2. STOCK LEDGER
    # ==========================================================================
    op.create_table('stock_ledger_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('entry_code', sa.String(length=64), nullable=False),
        sa.Column('company_id', sa.String(length=64), nullable=False),
        sa.Column('shop_id', sa.String(length=64), nullable=False),
        sa.Column('category_id', sa.String(length=64), nullable=False),
        sa.Column('product_id', sa.String(length=64), nullable=False),
        sa.Column('supplier_ids', sa.JSON(), nullable=False),
        sa.Column('total_quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('weighted_average_cost_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_purchase_cost_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('minimum_quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('toggle', sa.String(length=16), nullable=False, server_default='enabled'),
        sa.Column('created_by', sa.String(length=64), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(updated=True),
        sa.ForeignKeyConstraint(['company_id'], ['companies.company_id']),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.shop_id']),
        sa.ForeignKeyConstraint(['product_id'], ['products.product_id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('company_id', 'shop_id', 'category_id', 'product_id', name='uq_stock_ledger_key'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_stock_ledger_shop_product', 'stock_ledger_entries', ['company_id', 'shop_id', 'product_id'])

    # ==========================================================================
    # 3. GOODS-RECEIPT NOTES
    # ==========================================================================
    op.create_table('receipt_headers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('transaction_code', sa.String(length=64), nullable=False),
        sa.Column('company_id', sa.String(length=64), nullable=False),
        sa.Column('shop_id', sa.String(length=64), nullable=False),
        sa.Column('supplier_id', sa.String(length=64), nullable=False),
        sa.Column('transaction_date_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('transaction_type', sa.String(length=16), nullable=False, server_default='GRN'),
        sa.Column('direction', sa.String(length=32), nullable=False),
        sa.Column('transaction_status', sa.String(length=32), nullable=False),
        sa.Column('total_cost_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('outstanding_amount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_by', sa.String(length=64), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(updated=True),
        sa.ForeignKeyConstraint(['company_id'], ['companies.company_id']),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.shop_id']),
        sa.ForeignKeyConstraint(['supplier_id'], ['suppliers.supplier_id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('company_id', 'shop_id', 'transaction_code', name='uq_receipt_header_code'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_receipt_headers_company_id', 'receipt_headers', ['company_id'])
    op.create_index('ix_receipt_headers_transaction_status', 'receipt_headers', ['transaction_status'])
    op.create_index('ix_receipt_headers_supplier', 'receipt_headers', ['company_id', 'shop_id', 'supplier_id'])

    op.create_table('receipt_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('line_code', sa.String(length=64), nullable=False),
        sa.Column('transaction_code', sa.String(length=64), nullable=False),
        sa.Column('company_id', sa.String(length=64), nullable=False),
        sa.Column('shop_id', sa.String(length=64), nullable=False),
        sa.Column('supplier_id', sa.String(length=64), nullable=False),
        sa.Column('category_id', sa.String(length=64), nullable=False),
        sa.Column('product_id', sa.String(length=64), nullable=False),
        sa.Column('transaction_date_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('transaction_type', sa.String(length=16), nullable=False, server_default='GRN'),
        sa.Column('direction', sa.String(length=32), nullable=False),
        sa.Column('transaction_status', sa.String(length=32), nullable=False),
        sa.Column('unit_cost_cents', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('total_cost_cents', sa.Integer(), nullable=False),
        sa.Column('remarks', sa.String(length=255), nullable=True),
        sa.Column('created_by', sa.String(length=64), nullable=False),
        *_timestamps(updated=True),
        sa.ForeignKeyConstraint(['product_id'], ['products.product_id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_receipt_lines_code', 'receipt_lines', ['company_id', 'shop_id', 'transaction_code'])
    op.create_index(
        'ix_receipt_lines_product_time', 'receipt_lines',
        ['company_id', 'shop_id', 'product_id', 'transaction_date_time'],
    )

    # ==========================================================================
    # 4. STOCK MOVEMENTS
    # ==========================================================================
    op.create_table('stock_movements',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('transaction_code', sa.String(length=64), nullable=False),
        sa.Column('company_id', sa.String(length=64), nullable=False),
        sa.Column('shop_id', sa.String(length=64), nullable=False),
        sa.Column('transaction_type', sa.String(length=32), nullable=False),
        sa.Column('direction', sa.String(length=32), nullable=False),
        sa.Column('transaction_status', sa.String(length=32), nullable=False),
        sa.Column('finished_good_id', sa.String(length=64), nullable=True),
        sa.Column('finished_good_qty', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('transaction_date_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('created_by', sa.String(length=64), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['company_id'], ['companies.company_id']),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.shop_id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('company_id', 'shop_id', 'transaction_code', name='uq_stock_movement_code'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_stock_movements_shop_time', 'stock_movements', ['company_id', 'shop_id', 'transaction_date_time'])
    op.create_index('ix_stock_movements_transaction_type', 'stock_movements', ['transaction_type'])
    op.create_index('ix_stock_movements_transaction_status', 'stock_movements', ['transaction_status'])
    op.create_index('ix_stock_movements_finished_good_id', 'stock_movements', ['finished_good_id'])

    op.create_table('stock_movement_components',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('movement_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.String(length=64), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('current_wac_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['movement_id'], ['stock_movements.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_stock_movement_components_movement_id', 'stock_movement_components', ['movement_id'])
    op.create_index('ix_stock_movement_components_product_id', 'stock_movement_components', ['product_id'])

    # ==========================================================================
    # 5. SEQUENTIAL CODES
    # ==========================================================================
    op.create_table('code_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.String(length=64), nullable=False),
        sa.Column('shop_id', sa.String(length=64), nullable=False),
        sa.Column('prefix', sa.String(length=32), nullable=False),
        sa.Column('last_number', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('company_id', 'shop_id', 'prefix', name='uq_code_sequences_scope'),
        sqlite_autoincrement=True,
    )

    op.create_table('code_allocations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.String(length=64), nullable=False),
        sa.Column('shop_id', sa.String(length=64), nullable=False),
        sa.Column('prefix', sa.String(length=32), nullable=False),
        sa.Column('sequence_number', sa.Integer(), nullable=False),
        sa.Column('code_number', sa.String(length=64), nullable=False),
        sa.Column('description', sa.String(length=128), nullable=False),
        sa.Column('created_by', sa.String(length=64), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('company_id', 'shop_id', 'code_number', name='uq_code_allocations_code'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_code_allocations_scope', 'code_allocations', ['company_id', 'shop_id', 'prefix'])

    # ==========================================================================
    # 6. AUDIT + OUTBOX
    # ==========================================================================
    op.create_table('audit_log_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.String(length=64), nullable=False),
        sa.Column('shop_id', sa.String(length=64), nullable=True),
        sa.Column('created_by', sa.String(length=64), nullable=False),
        sa.Column('message', sa.String(length=255), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_audit_log_company_created', 'audit_log_entries', ['company_id', 'created_at'])

    op.create_table('outbox_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('company_id', sa.String(length=64), nullable=True),
        sa.Column('shop_id', sa.String(length=64), nullable=True),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='PENDING'),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_error', sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.Column('dispatched_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_outbox_status_id', 'outbox_events', ['status', 'id'])


def downgrade():
    op.drop_index('ix_outbox_status_id', table_name='outbox_events')
    op.drop_table('outbox_events')
    op.drop_index('ix_audit_log_company_created', table_name='audit_log_entries')
    op.drop_table('audit_log_entries')
    op.drop_index('ix_code_allocations_scope', table_name='code_allocations')
    op.drop_table('code_allocations')
    op.drop_table('code_sequences')
    op.drop_table('stock_movement_components')
    op.drop_table('stock_movements')
    op.drop_table('receipt_lines')
    op.drop_table('receipt_headers')
    op.drop_table('stock_ledger_entries')
    op.drop_table('session_tokens')
    op.drop_table('users')
    op.drop_table('products')
    op.drop_table('categories')
    op.drop_table('suppliers')
    op.drop_table('shops')
    op.drop_table('companies')
