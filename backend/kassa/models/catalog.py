from __future__ import annotations

from decimal import Decimal

from ..constants import Unit
from ..extensions import db
from ..time_utils import to_utc_z
from .columns import attach_updated_at_trigger, quantity_type, tag_type


class Product(db.Model):
    """
    Product master data.

    STOCK: ``qty`` is the on-hand quantity. Only the inventory service writes
    it, and every write is paired with an append-only StockMovement row.

    LIFECYCLE: Products referenced by sale items or movements are never hard
    deleted; deactivation (``is_active=False``) hides them from the catalog.

    LOOKUP PATTERN:
    - Scan lookup: barcode first, then SKU (see products_service.find_product)
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_products_sku"),
        db.UniqueConstraint("barcode", name="uq_products_barcode"),
        db.Index("ix_products_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(64), nullable=False)
    barcode = db.Column(db.String(32), nullable=True)
    name = db.Column(db.String(255), nullable=False)
    unit = db.Column(tag_type(Unit, "ck_products_unit"), nullable=False, default=Unit.PIECE)

    # Authoritative storage in cents
    cost_cents = db.Column(db.BigInteger, nullable=False, default=0)
    price_cents = db.Column(db.BigInteger, nullable=False, default=0)

    qty = db.Column(quantity_type(), nullable=False, default=Decimal("0"))
    min_stock = db.Column(quantity_type(), nullable=False, default=Decimal("0"))

    is_active = db.Column("active", db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r} qty={self.qty}>"

    @property
    def is_low_stock(self) -> bool:
        return self.qty <= self.min_stock

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "barcode": self.barcode,
            "name": self.name,
            "unit": self.unit.value,
            "cost_cents": self.cost_cents,
            "price_cents": self.price_cents,
            "qty": str(self.qty),
            "min_stock": str(self.min_stock),
            "low_stock": self.is_low_stock,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


attach_updated_at_trigger(Product.__table__)
