from __future__ import annotations

from ..constants import MovementKind
from ..extensions import db
from ..time_utils import to_utc_z
from .columns import quantity_type, tag_type


class StockMovement(db.Model):
    """
    Append-only audit row for one change to a product's on-hand quantity.

    IMMUTABLE: Records are never updated or deleted. This table, not
    products.qty, answers "why did stock change".

    MOVEMENT TYPES:
    - initial: opening quantity when the product was created
    - receive: goods received (may carry a new unit cost)
    - sale: consumed by a sale (reference_id = sale id)
    - return: restored by a return (reference_id = return id)
    - adjustment: absolute correction by an operator
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    movement_type = db.Column(tag_type(MovementKind, "ck_stock_movements_type"), nullable=False, index=True)

    # Signed delta and the before/after snapshot it moved between
    quantity_change = db.Column(quantity_type(), nullable=False)
    old_qty = db.Column(quantity_type(), nullable=False)
    new_qty = db.Column(quantity_type(), nullable=False)

    # Cost/price context at the time of the movement
    cost_cents = db.Column(db.BigInteger, nullable=True)
    unit_price_cents = db.Column(db.BigInteger, nullable=True)

    # Causing sale id (sale) or return id (return)
    reference_id = db.Column(db.Integer, nullable=True, index=True)
    note = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("movements", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "movement_type": self.movement_type.value,
            "quantity_change": str(self.quantity_change),
            "old_qty": str(self.old_qty),
            "new_qty": str(self.new_qty),
            "cost_cents": self.cost_cents,
            "unit_price_cents": self.unit_price_cents,
            "reference_id": self.reference_id,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }
