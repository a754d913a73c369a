"""initial schema

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the tiendapos schema from scratch:
- users: operators with capability lists
- products / clients: catalog and customers (soft delete)
- sales / sale_details: posted sales with price and cost snapshots
- stock_movements: trace of every stock delta
- cash_movements / cash_session_closings: cash ledger and reconciliations
- document_sequences / audit_events: folios and the audit log
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ============================================================================
    # users
    # ============================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('is_admin', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('capabilities', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('username'),
        sqlite_autoincrement=True
    )

    # ============================================================================
    # products: stock can never go negative
    # ============================================================================
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('barcode', sa.String(length=50), nullable=True),
        sa.Column('description', sa.String(length=255), nullable=False),
        sa.Column('sale_price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('purchase_price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('min_stock', sa.Integer(), nullable=False, server_default='5'),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('stock >= 0', name='ck_products_stock_nonnegative'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('barcode'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_products_description', 'products', ['description'])
    op.create_index('ix_products_deleted_at', 'products', ['deleted_at'])

    op.create_table(
        'clients',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_clients_name', 'clients', ['name'])

    # ============================================================================
    # sales: version_id backs optimistic locking for concurrent voids
    # ============================================================================
    op.create_table(
        'sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('folio', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('client_id', sa.Integer(), nullable=True),
        sa.Column('cashier_user_id', sa.Integer(), nullable=True),
        sa.Column('payment_method', sa.String(length=16), nullable=False),
        sa.Column('subtotal_cents', sa.Integer(), nullable=False),
        sa.Column('tax_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_cents', sa.Integer(), nullable=False),
        sa.Column('amount_tendered_cents', sa.Integer(), nullable=False),
        sa.Column('change_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('voided', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('voided_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('voided_by_user_id', sa.Integer(), nullable=True),
        sa.Column('void_reason', sa.String(length=255), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id']),
        sa.ForeignKeyConstraint(['cashier_user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['voided_by_user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('folio', name='uq_sales_folio'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sales_created_at', 'sales', ['created_at'])
    op.create_index('ix_sales_client_id', 'sales', ['client_id'])
    op.create_index('ix_sales_cashier_user_id', 'sales', ['cashier_user_id'])
    op.create_index('ix_sales_voided_created', 'sales', ['voided', 'created_at'])
    op.create_index('ix_sales_method_created', 'sales', ['payment_method', 'created_at'])

    # product_id deliberately has no FK: lines outlive hard-deleted products
    op.create_table(
        'sale_details',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=True),
        sa.Column('description', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('unit_cost_cents', sa.Integer(), nullable=False),
        sa.Column('line_total_cents', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sale_details_sale_id', 'sale_details', ['sale_id'])
    op.create_index('ix_sale_details_product_id', 'sale_details', ['product_id'])

    # ============================================================================
    # stock_movements
    # ============================================================================
    op.create_table(
        'stock_movements',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity_delta', sa.Integer(), nullable=False),
        sa.Column('stock_after', sa.Integer(), nullable=False),
        sa.Column('reason', sa.String(length=16), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_stock_movements_product_id', 'stock_movements', ['product_id'])
    op.create_index('ix_stock_movements_reason', 'stock_movements', ['reason'])
    op.create_index('ix_stock_movements_sale_id', 'stock_movements', ['sale_id'])
    op.create_index('ix_stock_movements_product_occurred', 'stock_movements', ['product_id', 'occurred_at'])

    # ============================================================================
    # cash ledger and reconciliations
    # ============================================================================
    op.create_table(
        'cash_movements',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('amount_cents > 0', name='ck_cash_movements_amount_positive'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_cash_movements_user_id', 'cash_movements', ['user_id'])
    op.create_index('ix_cash_movements_created_at', 'cash_movements', ['created_at'])
    op.create_index('ix_cash_movements_type_created', 'cash_movements', ['type', 'created_at'])

    op.create_table(
        'cash_session_closings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('period_start', sa.DateTime(timezone=True), nullable=False),
        sa.Column('period_end', sa.DateTime(timezone=True), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('sales_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('sales_cash_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('sales_card_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('sales_transfer_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('sales_digital_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('manual_incomes_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('manual_expenses_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('expected_cash_cents', sa.Integer(), nullable=False),
        sa.Column('counted_cash_cents', sa.Integer(), nullable=False),
        sa.Column('difference_cents', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_cash_session_closings_user_id', 'cash_session_closings', ['user_id'])
    op.create_index('ix_cash_closings_period', 'cash_session_closings', ['period_start', 'period_end'])

    # ============================================================================
    # document_sequences / audit_events
    # ============================================================================
    op.create_table(
        'document_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('document_type', sa.String(length=32), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('document_type', name='uq_doc_sequences_type'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'audit_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('event_type', sa.String(length=64), nullable=False),
        sa.Column('entity_type', sa.String(length=32), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=False),
        sa.Column('actor_user_id', sa.Integer(), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_audit_events_event_type', 'audit_events', ['event_type'])
    op.create_index('ix_audit_events_actor_user_id', 'audit_events', ['actor_user_id'])
    op.create_index('ix_audit_events_occurred_at', 'audit_events', ['occurred_at'])
    op.create_index('ix_audit_events_entity', 'audit_events', ['entity_type', 'entity_id'])


def downgrade():
    op.drop_table('audit_events')
    op.drop_table('document_sequences')
    op.drop_table('cash_session_closings')
    op.drop_table('cash_movements')
    op.drop_table('stock_movements')
    op.drop_table('sale_details')
    op.drop_table('sales')
    op.drop_table('clients')
    op.drop_table('products')
    op.drop_table('users')
