from __future__ import annotations

from ..constants import RefundMethod
from ..extensions import db
from ..time_utils import to_utc_z
from .columns import quantity_type, tag_type


class SaleReturn(db.Model):
    """
    Return header: a partial or full reversal of one committed sale.

    SPLIT: total_cents is the value of the returned lines. Part of it may
    reduce the sale's outstanding debt (debt_reduced_cents) and part may be
    paid back in cash/card (refund_cents); together they never exceed the
    total. refund_method is set only when refund_cents > 0.
    """
    __tablename__ = "sale_returns"
    __table_args__ = (
        db.CheckConstraint(
            "debt_reduced_cents >= 0 AND refund_cents >= 0 "
            "AND debt_reduced_cents + refund_cents <= total_cents",
            name="ck_sale_returns_split",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True)

    return_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    total_cents = db.Column(db.BigInteger, nullable=False)
    debt_reduced_cents = db.Column(db.BigInteger, nullable=False, default=0)
    refund_cents = db.Column(db.BigInteger, nullable=False, default=0)
    refund_method = db.Column(tag_type(RefundMethod, "ck_sale_returns_refund_method"), nullable=True)
    note = db.Column(db.Text, nullable=True)

    sale = db.relationship("Sale", backref=db.backref("returns", lazy=True))
    customer = db.relationship("Customer")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "customer_id": self.customer_id,
            "return_date": to_utc_z(self.return_date),
            "total_cents": self.total_cents,
            "debt_reduced_cents": self.debt_reduced_cents,
            "refund_cents": self.refund_cents,
            "refund_method": self.refund_method.value if self.refund_method else None,
            "note": self.note,
        }


class SaleReturnItem(db.Model):
    """Returned quantity of one original sale item, priced at the original unit price."""
    __tablename__ = "sale_return_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    return_id = db.Column(db.Integer, db.ForeignKey("sale_returns.id"), nullable=False, index=True)
    sale_item_id = db.Column(db.Integer, db.ForeignKey("sale_items.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    product_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(quantity_type(), nullable=False)
    unit_price_cents = db.Column(db.BigInteger, nullable=False)
    line_total_cents = db.Column(db.BigInteger, nullable=False)

    sale_return = db.relationship(
        "SaleReturn", backref=db.backref("items", lazy=True, order_by="SaleReturnItem.id")
    )
    sale_item = db.relationship("SaleItem", backref=db.backref("return_items", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "return_id": self.return_id,
            "sale_item_id": self.sale_item_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": str(self.quantity),
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
        }
