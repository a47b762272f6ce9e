"""initial back-office schema

Revision ID: b7c1e0a4d2f9
Revises:
Create Date: 2026-10-18 00:00:00.000000

Creates the inventory ledger, sales and expense tables:
- categories, suppliers: item reference data
- items: stock counter (current_stock) plus descriptive fields
- inventory_log_entries: append-only stock movements
- sales: revenue events (items sold are linked through the ledger)
- expense_categories, payrolls, expenses: cost side read by the reports
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'b7c1e0a4d2f9'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ============================================================================
    # Reference data
    # ============================================================================
    op.create_table(
        'categories',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_categories')),
        sa.UniqueConstraint('name', name=op.f('uq_categories_name')),
        sqlite_autoincrement=True
    )

    op.create_table(
        'suppliers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('contact', sa.String(length=255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_suppliers')),
        sqlite_autoincrement=True
    )

    # ============================================================================
    # items: current_stock is written only by the stock mutator
    # ============================================================================
    op.create_table(
        'items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category_id', sa.Integer(), nullable=False),
        sa.Column('supplier_id', sa.Integer(), nullable=True),
        sa.Column('unit', sa.String(length=16), nullable=False),
        sa.Column('cost_price_cents', sa.Integer(), nullable=False),
        sa.Column('selling_price_cents', sa.Integer(), nullable=True),
        sa.Column('current_stock', sa.Integer(), nullable=False),
        sa.Column('reorder_level', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['category_id'], ['categories.id'], name=op.f('fk_items_category_id_categories')),
        sa.ForeignKeyConstraint(['supplier_id'], ['suppliers.id'], name=op.f('fk_items_supplier_id_suppliers')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_items')),
        sa.UniqueConstraint('sku', name='uq_items_sku'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_items_name', 'items', ['name'])
    op.create_index('ix_items_category_active', 'items', ['category_id', 'is_active'])
    op.create_index(op.f('ix_items_category_id'), 'items', ['category_id'])

    # ============================================================================
    # inventory_log_entries: append-only ledger
    # ============================================================================
    op.create_table(
        'inventory_log_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('previous_stock', sa.Integer(), nullable=False),
        sa.Column('new_stock', sa.Integer(), nullable=False),
        sa.Column('reason', sa.String(length=255), nullable=True),
        sa.Column('reference', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['item_id'], ['items.id'], name=op.f('fk_inventory_log_entries_item_id_items')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_inventory_log_entries')),
        sqlite_autoincrement=True
    )
    op.create_index(op.f('ix_inventory_log_entries_item_id'), 'inventory_log_entries', ['item_id'])
    op.create_index('ix_invlog_item_created', 'inventory_log_entries', ['item_id', 'created_at'])
    op.create_index('ix_invlog_type_created', 'inventory_log_entries', ['type', 'created_at'])
    op.create_index('ix_invlog_reference_type', 'inventory_log_entries', ['reference', 'type'])

    # ============================================================================
    # sales
    # ============================================================================
    op.create_table(
        'sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_number', sa.String(length=64), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('sale_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('total_amount_cents', sa.Integer(), nullable=False),
        sa.Column('discount_amount_cents', sa.Integer(), nullable=False),
        sa.Column('final_amount_cents', sa.Integer(), nullable=False),
        sa.Column('payment_method', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_sales')),
        sa.UniqueConstraint('sale_number', name='uq_sales_sale_number'),
        sqlite_autoincrement=True
    )
    op.create_index(op.f('ix_sales_sale_date'), 'sales', ['sale_date'])
    op.create_index(op.f('ix_sales_status'), 'sales', ['status'])
    op.create_index('ix_sales_status_date', 'sales', ['status', 'sale_date'])

    # ============================================================================
    # expenses
    # ============================================================================
    op.create_table(
        'expense_categories',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('type', sa.String(length=32), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_expense_categories')),
        sa.UniqueConstraint('name', name=op.f('uq_expense_categories_name')),
        sqlite_autoincrement=True
    )
    op.create_index(op.f('ix_expense_categories_type'), 'expense_categories', ['type'])

    op.create_table(
        'payrolls',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('period', sa.DateTime(timezone=True), nullable=False),
        sa.Column('total_amount_cents', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_payrolls')),
        sqlite_autoincrement=True
    )
    op.create_index(op.f('ix_payrolls_employee_id'), 'payrolls', ['employee_id'])

    op.create_table(
        'expenses',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('expense_category_id', sa.Integer(), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('tax_amount_cents', sa.Integer(), nullable=False),
        sa.Column('expense_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('payroll_id', sa.Integer(), nullable=True),
        sa.Column('employee_id', sa.Integer(), nullable=True),
        sa.Column('purchase_id', sa.Integer(), nullable=True),
        sa.Column('supplier_info', sa.String(length=255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['expense_category_id'], ['expense_categories.id'], name=op.f('fk_expenses_expense_category_id_expense_categories')),
        sa.ForeignKeyConstraint(['payroll_id'], ['payrolls.id'], name=op.f('fk_expenses_payroll_id_payrolls')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_expenses')),
        sqlite_autoincrement=True
    )
    op.create_index(op.f('ix_expenses_expense_category_id'), 'expenses', ['expense_category_id'])
    op.create_index(op.f('ix_expenses_expense_date'), 'expenses', ['expense_date'])
    op.create_index('ix_expenses_status_date', 'expenses', ['status', 'expense_date'])


def downgrade():
    op.drop_table('expenses')
    op.drop_table('payrolls')
    op.drop_table('expense_categories')
    op.drop_table('sales')
    op.drop_table('inventory_log_entries')
    op.drop_table('items')
    op.drop_table('suppliers')
    op.drop_table('categories')
