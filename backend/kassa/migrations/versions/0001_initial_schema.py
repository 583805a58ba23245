"""Initial schema; adopt existing tables

Revision ID: 0001_initial_schema
Revises:
Create Date: 2025-11-03

Tables that already exist are left untouched. A store created by the first
releases has ``products(id, sku, name, price REAL, stock INTEGER)``; that
shape is created here too and evolved by the following revisions.
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


NOW = sa.text("(CURRENT_TIMESTAMP)")


def _tag(column: str, name: str, values: tuple[str, ...]) -> sa.CheckConstraint:
    allowed = ", ".join(f"'{value}'" for value in values)
    return sa.CheckConstraint(f"{column} IN ({allowed})", name=name)


def upgrade():
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    existing = set(inspector.get_table_names())

    if "products" not in existing:
        op.create_table(
            "products",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("sku", sa.String(length=64), nullable=False),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("price", sa.Float(), nullable=True),
            sa.Column("stock", sa.Integer(), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sqlite_autoincrement=True,
        )

    if "customers" not in existing:
        op.create_table(
            "customers",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("phone", sa.String(length=32), nullable=True),
            sa.Column("email", sa.String(length=255), nullable=True),
            sa.Column("address", sa.String(length=255), nullable=True),
            sa.Column("debt_cents", sa.BigInteger(), nullable=False, server_default="0"),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=NOW),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=NOW),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("phone", name="uq_customers_phone"),
            sa.CheckConstraint("debt_cents >= 0", name="ck_customers_debt_non_negative"),
            sqlite_autoincrement=True,
        )

    if "sales" not in existing:
        op.create_table(
            "sales",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("customer_id", sa.Integer(), nullable=True),
            sa.Column("sale_date", sa.DateTime(timezone=True), nullable=False, server_default=NOW),
            sa.Column("subtotal_cents", sa.BigInteger(), nullable=False),
            sa.Column("discount_cents", sa.BigInteger(), nullable=False, server_default="0"),
            sa.Column("tax_cents", sa.BigInteger(), nullable=False, server_default="0"),
            sa.Column("total_cents", sa.BigInteger(), nullable=False),
            sa.Column("payment_method", sa.String(length=16), nullable=False),
            sa.Column("note", sa.Text(), nullable=False, server_default=""),
            sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
            sa.PrimaryKeyConstraint("id"),
            sa.CheckConstraint("total_cents = subtotal_cents - discount_cents + tax_cents", name="ck_sales_total_formula"),
            sa.CheckConstraint("discount_cents >= 0 AND discount_cents <= subtotal_cents", name="ck_sales_discount_range"),
            _tag("payment_method", "ck_sales_payment_method", ("cash", "card", "mixed", "debt")),
            sqlite_autoincrement=True,
        )

    if "sale_items" not in existing:
        op.create_table(
            "sale_items",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("sale_id", sa.Integer(), nullable=False),
            sa.Column("product_id", sa.Integer(), nullable=False),
            sa.Column("product_name", sa.String(length=255), nullable=False),
            sa.Column("barcode", sa.String(length=32), nullable=True),
            sa.Column("unit", sa.String(length=16), nullable=True),
            sa.Column("quantity", sa.Numeric(14, 3), nullable=False),
            sa.Column("unit_price_cents", sa.BigInteger(), nullable=False),
            sa.Column("unit_cost_cents", sa.BigInteger(), nullable=False, server_default="0"),
            sa.Column("line_total_cents", sa.BigInteger(), nullable=False),
            sa.Column("profit_cents", sa.BigInteger(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=NOW),
            sa.ForeignKeyConstraint(["sale_id"], ["sales.id"]),
            sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
            sa.PrimaryKeyConstraint("id"),
            sqlite_autoincrement=True,
        )

    if "payments" not in existing:
        op.create_table(
            "payments",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("sale_id", sa.Integer(), nullable=False),
            sa.Column("method", sa.String(length=16), nullable=False),
            sa.Column("amount_cents", sa.BigInteger(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=NOW),
            sa.ForeignKeyConstraint(["sale_id"], ["sales.id"]),
            sa.PrimaryKeyConstraint("id"),
            _tag("method", "ck_payments_method", ("cash", "card", "mixed", "debt")),
            sqlite_autoincrement=True,
        )

    if "stock_movements" not in existing:
        op.create_table(
            "stock_movements",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("product_id", sa.Integer(), nullable=False),
            sa.Column("movement_type", sa.String(length=16), nullable=False),
            sa.Column("quantity_change", sa.Numeric(14, 3), nullable=False),
            sa.Column("old_qty", sa.Numeric(14, 3), nullable=False),
            sa.Column("new_qty", sa.Numeric(14, 3), nullable=False),
            sa.Column("cost_cents", sa.BigInteger(), nullable=True),
            sa.Column("unit_price_cents", sa.BigInteger(), nullable=True),
            sa.Column("reference_id", sa.Integer(), nullable=True),
            sa.Column("note", sa.String(length=255), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=NOW),
            sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
            sa.PrimaryKeyConstraint("id"),
            _tag("movement_type", "ck_stock_movements_type", ("initial", "receive", "sale", "return", "adjustment")),
            sqlite_autoincrement=True,
        )

    if "sale_returns" not in existing:
        op.create_table(
            "sale_returns",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("sale_id", sa.Integer(), nullable=False),
            sa.Column("customer_id", sa.Integer(), nullable=True),
            sa.Column("return_date", sa.DateTime(timezone=True), nullable=False, server_default=NOW),
            sa.Column("total_cents", sa.BigInteger(), nullable=False),
            sa.Column("debt_reduced_cents", sa.BigInteger(), nullable=False, server_default="0"),
            sa.Column("refund_cents", sa.BigInteger(), nullable=False, server_default="0"),
            sa.Column("refund_method", sa.String(length=16), nullable=True),
            sa.Column("note", sa.Text(), nullable=True),
            sa.ForeignKeyConstraint(["sale_id"], ["sales.id"]),
            sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
            sa.PrimaryKeyConstraint("id"),
            sa.CheckConstraint(
                "debt_reduced_cents >= 0 AND refund_cents >= 0 "
                "AND debt_reduced_cents + refund_cents <= total_cents",
                name="ck_sale_returns_split",
            ),
            _tag("refund_method", "ck_sale_returns_refund_method", ("cash", "card")),
            sqlite_autoincrement=True,
        )

    if "sale_return_items" not in existing:
        op.create_table(
            "sale_return_items",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("return_id", sa.Integer(), nullable=False),
            sa.Column("sale_item_id", sa.Integer(), nullable=False),
            sa.Column("product_id", sa.Integer(), nullable=False),
            sa.Column("product_name", sa.String(length=255), nullable=False),
            sa.Column("quantity", sa.Numeric(14, 3), nullable=False),
            sa.Column("unit_price_cents", sa.BigInteger(), nullable=False),
            sa.Column("line_total_cents", sa.BigInteger(), nullable=False),
            sa.ForeignKeyConstraint(["return_id"], ["sale_returns.id"]),
            sa.ForeignKeyConstraint(["sale_item_id"], ["sale_items.id"]),
            sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
            sa.PrimaryKeyConstraint("id"),
            sqlite_autoincrement=True,
        )

    if "debts" not in existing:
        op.create_table(
            "debts",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("customer_id", sa.Integer(), nullable=False),
            sa.Column("sale_id", sa.Integer(), nullable=True),
            sa.Column("description", sa.String(length=255), nullable=True),
            sa.Column("total_cents", sa.BigInteger(), nullable=False),
            sa.Column("paid_cents", sa.BigInteger(), nullable=False, server_default="0"),
            sa.Column("is_paid", sa.Boolean(), nullable=False, server_default=sa.text("0")),
            sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
            sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=NOW),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=NOW),
            sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
            sa.ForeignKeyConstraint(["sale_id"], ["sales.id"]),
            sa.PrimaryKeyConstraint("id"),
            sa.CheckConstraint("paid_cents >= 0 AND paid_cents <= total_cents", name="ck_debts_paid_within_total"),
            sqlite_autoincrement=True,
        )

    if "debt_transactions" not in existing:
        op.create_table(
            "debt_transactions",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("customer_id", sa.Integer(), nullable=False),
            sa.Column("sale_id", sa.Integer(), nullable=True),
            sa.Column("debt_id", sa.Integer(), nullable=True),
            sa.Column("return_id", sa.Integer(), nullable=True),
            sa.Column("type", sa.String(length=16), nullable=False),
            sa.Column("amount_cents", sa.BigInteger(), nullable=False),
            sa.Column("note", sa.String(length=255), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=NOW),
            sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
            sa.ForeignKeyConstraint(["sale_id"], ["sales.id"]),
            sa.ForeignKeyConstraint(["debt_id"], ["debts.id"]),
            sa.ForeignKeyConstraint(["return_id"], ["sale_returns.id"]),
            sa.PrimaryKeyConstraint("id"),
            _tag("type", "ck_debt_transactions_type", ("debt_added", "payment")),
            sqlite_autoincrement=True,
        )

    if "print_jobs" not in existing:
        op.create_table(
            "print_jobs",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("kind", sa.String(length=16), nullable=False),
            sa.Column("product_id", sa.Integer(), nullable=True),
            sa.Column("sale_id", sa.Integer(), nullable=True),
            sa.Column("return_id", sa.Integer(), nullable=True),
            sa.Column("copies", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("printer_name", sa.String(length=128), nullable=False),
            sa.Column("status", sa.String(length=16), nullable=False, server_default="queued"),
            sa.Column("payload", sa.Text(), nullable=True),
            sa.Column("error", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=NOW),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=NOW),
            sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
            sa.ForeignKeyConstraint(["sale_id"], ["sales.id"]),
            sa.ForeignKeyConstraint(["return_id"], ["sale_returns.id"]),
            sa.PrimaryKeyConstraint("id"),
            _tag("kind", "ck_print_jobs_kind", ("barcode", "receipt")),
            _tag("status", "ck_print_jobs_status", ("queued", "sent", "failed", "done")),
            sqlite_autoincrement=True,
        )


def downgrade():
    # Safety: only drop what is present.
    bind = op.get_bind()
    existing = set(sa.inspect(bind).get_table_names())
    for table in (
        "print_jobs",
        "debt_transactions",
        "debts",
        "sale_return_items",
        "sale_returns",
        "stock_movements",
        "payments",
        "sale_items",
        "sales",
        "customers",
        "products",
    ):
        if table in existing:
            op.drop_table(table)
