"""Rebuild products with the narrowed unit set and unique sku/barcode

Revision ID: 0003_narrow_product_units
Revises: 0002_product_catalog_columns
Create Date: 2025-12-02

SQLite cannot alter a CHECK constraint in place, so the table is rebuilt:
create new table, copy rows (ids preserved), drop old, rename. Legacy unit
tags map dona->piece, qadoq->pack, litr->liter, metr->meter; anything else
becomes piece. Blank barcodes become NULL; a duplicated barcode or SKU keeps
its lowest-id holder and the others are cleared (barcode) or suffixed with
the product id (SKU). The legacy price/stock columns are not carried over.
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0003_narrow_product_units"
down_revision = "0002_product_catalog_columns"
branch_labels = None
depends_on = None


CREATE_PRODUCTS = """
CREATE TABLE _products_new (
    id INTEGER NOT NULL PRIMARY KEY AUTOINCREMENT,
    sku VARCHAR(64) NOT NULL,
    barcode VARCHAR(32),
    name VARCHAR(255) NOT NULL,
    unit VARCHAR(16) NOT NULL DEFAULT 'piece',
    cost_cents BIGINT NOT NULL DEFAULT 0,
    price_cents BIGINT NOT NULL DEFAULT 0,
    qty NUMERIC(14, 3) NOT NULL DEFAULT 0,
    min_stock NUMERIC(14, 3) NOT NULL DEFAULT 0,
    active BOOLEAN NOT NULL DEFAULT 1,
    created_at DATETIME NOT NULL DEFAULT (CURRENT_TIMESTAMP),
    updated_at DATETIME NOT NULL DEFAULT (CURRENT_TIMESTAMP),
    CONSTRAINT uq_products_sku UNIQUE (sku),
    CONSTRAINT uq_products_barcode UNIQUE (barcode),
    CONSTRAINT ck_products_unit CHECK (unit IN ('piece', 'pack', 'liter', 'meter'))
)
"""

COPY_PRODUCTS = """
INSERT INTO _products_new (
    id, sku, barcode, name, unit, cost_cents, price_cents, qty, min_stock, active, created_at, updated_at
)
SELECT
    p.id,
    CASE
        WHEN p.sku IS NULL OR TRIM(p.sku) = '' THEN 'P-' || p.id
        WHEN p.id = (SELECT MIN(d.id) FROM products d WHERE d.sku = p.sku) THEN TRIM(p.sku)
        ELSE TRIM(p.sku) || '-' || p.id
    END,
    CASE
        WHEN p.barcode IS NULL OR TRIM(p.barcode) = '' THEN NULL
        WHEN p.id = (SELECT MIN(d.id) FROM products d WHERE TRIM(d.barcode) = TRIM(p.barcode)) THEN TRIM(p.barcode)
        ELSE NULL
    END,
    COALESCE(p.name, ''),
    CASE LOWER(TRIM(COALESCE(p.unit, '')))
        WHEN 'piece' THEN 'piece'
        WHEN 'pack' THEN 'pack'
        WHEN 'liter' THEN 'liter'
        WHEN 'meter' THEN 'meter'
        WHEN 'dona' THEN 'piece'
        WHEN 'qadoq' THEN 'pack'
        WHEN 'litr' THEN 'liter'
        WHEN 'metr' THEN 'meter'
        ELSE 'piece'
    END,
    COALESCE(p.cost_cents, 0),
    COALESCE(p.price_cents, 0),
    COALESCE(p.qty, 0),
    COALESCE(p.min_stock, 0),
    COALESCE(p.active, 1),
    COALESCE(p.created_at, CURRENT_TIMESTAMP),
    COALESCE(p.updated_at, CURRENT_TIMESTAMP)
FROM products p
ORDER BY p.id
"""


def upgrade():
    op.execute("DROP TABLE IF EXISTS _products_new")
    op.execute(CREATE_PRODUCTS)
    op.execute(COPY_PRODUCTS)
    op.execute("DROP TABLE products")
    op.execute("ALTER TABLE _products_new RENAME TO products")
    op.execute("CREATE INDEX IF NOT EXISTS ix_products_name ON products (name)")


def downgrade():
    # Widening the unit set again would not restore the legacy tags.
    raise NotImplementedError("0003_narrow_product_units cannot be downgraded")
