"""Lookup indexes and updated_at triggers

Revision ID: 0004_indexes_and_triggers
Revises: 0003_narrow_product_units
Create Date: 2025-12-09
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0004_indexes_and_triggers"
down_revision = "0003_narrow_product_units"
branch_labels = None
depends_on = None


INDEXES = (
    ("ix_products_name", "products", "name"),
    ("ix_sales_sale_date", "sales", "sale_date"),
    ("ix_sales_customer_id", "sales", "customer_id"),
    ("ix_sale_items_sale_id", "sale_items", "sale_id"),
    ("ix_sale_items_product_id", "sale_items", "product_id"),
    ("ix_payments_sale_id", "payments", "sale_id"),
    ("ix_stock_movements_product_created", "stock_movements", "product_id, created_at"),
    ("ix_stock_movements_movement_type", "stock_movements", "movement_type"),
    ("ix_stock_movements_reference_id", "stock_movements", "reference_id"),
    ("ix_debts_customer_paid", "debts", "customer_id, is_paid"),
    ("ix_debts_sale_id", "debts", "sale_id"),
    ("ix_debt_txns_customer_created", "debt_transactions", "customer_id, created_at"),
    ("ix_sale_returns_sale_id", "sale_returns", "sale_id"),
    ("ix_sale_return_items_return_id", "sale_return_items", "return_id"),
    ("ix_sale_return_items_sale_item_id", "sale_return_items", "sale_item_id"),
    ("ix_print_jobs_status", "print_jobs", "status"),
    ("ix_print_jobs_product_id", "print_jobs", "product_id"),
    ("ix_print_jobs_sale_id", "print_jobs", "sale_id"),
)

TIMESTAMPED_TABLES = ("products", "customers", "debts", "print_jobs")


def _updated_at_trigger(table: str) -> str:
    return (
        f"CREATE TRIGGER IF NOT EXISTS trg_{table}_updated_at "
        f"AFTER UPDATE ON {table} FOR EACH ROW "
        f"WHEN NEW.updated_at IS OLD.updated_at "
        f"BEGIN UPDATE {table} SET updated_at = CURRENT_TIMESTAMP WHERE id = NEW.id; END"
    )


def upgrade():
    bind = op.get_bind()
    tables = set(sa.inspect(bind).get_table_names())

    for name, table, columns in INDEXES:
        if table in tables:
            op.execute(f"CREATE INDEX IF NOT EXISTS {name} ON {table} ({columns})")

    for table in TIMESTAMPED_TABLES:
        if table in tables:
            op.execute(_updated_at_trigger(table))


def downgrade():
    for table in TIMESTAMPED_TABLES:
        op.execute(f"DROP TRIGGER IF EXISTS trg_{table}_updated_at")
    for name, _table, _columns in INDEXES:
        op.execute(f"DROP INDEX IF EXISTS {name}")
