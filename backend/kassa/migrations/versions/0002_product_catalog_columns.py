"""Add catalog columns to products; backfill cents and quantity

Revision ID: 0002_product_catalog_columns
Revises: 0001_initial_schema
Create Date: 2025-11-17

Every column is added only if missing. SQLite cannot ADD COLUMN with a
non-constant default, so timestamps are added nullable and filled in; the
table rebuild in 0003 makes them NOT NULL.
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0002_product_catalog_columns"
down_revision = "0001_initial_schema"
branch_labels = None
depends_on = None


CATALOG_COLUMNS = (
    ("barcode", lambda: sa.Column("barcode", sa.String(length=32), nullable=True)),
    ("unit", lambda: sa.Column("unit", sa.String(length=16), nullable=False, server_default="piece")),
    ("cost_cents", lambda: sa.Column("cost_cents", sa.BigInteger(), nullable=False, server_default="0")),
    ("price_cents", lambda: sa.Column("price_cents", sa.BigInteger(), nullable=False, server_default="0")),
    ("qty", lambda: sa.Column("qty", sa.Numeric(14, 3), nullable=False, server_default="0")),
    ("min_stock", lambda: sa.Column("min_stock", sa.Numeric(14, 3), nullable=False, server_default="0")),
    ("active", lambda: sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("1"))),
    ("created_at", lambda: sa.Column("created_at", sa.DateTime(timezone=True), nullable=True)),
    ("updated_at", lambda: sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True)),
)


def upgrade():
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    columns = {col["name"] for col in inspector.get_columns("products")}

    added = set()
    for name, make_column in CATALOG_COLUMNS:
        if name not in columns:
            op.add_column("products", make_column())
            added.add(name)

    if "price_cents" in added and "price" in columns:
        op.execute("UPDATE products SET price_cents = CAST(ROUND(COALESCE(price, 0) * 100) AS INTEGER)")
    if "qty" in added and "stock" in columns:
        op.execute("UPDATE products SET qty = COALESCE(stock, 0)")

    op.execute("UPDATE products SET created_at = CURRENT_TIMESTAMP WHERE created_at IS NULL")
    op.execute("UPDATE products SET updated_at = CURRENT_TIMESTAMP WHERE updated_at IS NULL")


def downgrade():
    # Columns are folded into the rebuilt table by 0003; nothing to undo here.
    pass
