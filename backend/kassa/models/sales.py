from __future__ import annotations

from ..constants import PaymentMethod
from ..extensions import db
from ..time_utils import to_utc_z
from .columns import quantity_type, tag_type


class Sale(db.Model):
    """
    One committed checkout.

    INVARIANTS (also CHECK constraints):
    - total_cents = subtotal_cents - discount_cents + tax_cents
    - 0 <= discount_cents <= subtotal_cents

    IMMUTABLE once committed: returns are separate SaleReturn rows.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.CheckConstraint(
            "total_cents = subtotal_cents - discount_cents + tax_cents",
            name="ck_sales_total_formula",
        ),
        db.CheckConstraint(
            "discount_cents >= 0 AND discount_cents <= subtotal_cents",
            name="ck_sales_discount_range",
        ),
        db.Index("ix_sales_sale_date", "sale_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    sale_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    # All amounts in cents
    subtotal_cents = db.Column(db.BigInteger, nullable=False)
    discount_cents = db.Column(db.BigInteger, nullable=False, default=0)
    tax_cents = db.Column(db.BigInteger, nullable=False, default=0)
    total_cents = db.Column(db.BigInteger, nullable=False)

    payment_method = db.Column(tag_type(PaymentMethod, "ck_sales_payment_method"), nullable=False)
    note = db.Column(db.Text, nullable=False, default="")

    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "sale_date": to_utc_z(self.sale_date),
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
            "payment_method": self.payment_method.value,
            "note": self.note,
        }


class SaleItem(db.Model):
    """
    Line item on a sale.

    SNAPSHOT: product name, barcode, unit, unit price and unit cost are copied
    from the product at sale time. They are never re-read from the live
    product row, so later catalog edits cannot change a closed sale.
    """
    __tablename__ = "sale_items"
    __table_args__ = (
        db.Index("ix_sale_items_sale_id", "sale_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    barcode = db.Column(db.String(32), nullable=True)
    unit = db.Column(db.String(16), nullable=True)

    quantity = db.Column(quantity_type(), nullable=False)
    unit_price_cents = db.Column(db.BigInteger, nullable=False)
    unit_cost_cents = db.Column(db.BigInteger, nullable=False, default=0)
    line_total_cents = db.Column(db.BigInteger, nullable=False)
    profit_cents = db.Column(db.BigInteger, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", backref=db.backref("items", lazy=True, order_by="SaleItem.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "barcode": self.barcode,
            "unit": self.unit,
            "quantity": str(self.quantity),
            "unit_price_cents": self.unit_price_cents,
            "unit_cost_cents": self.unit_cost_cents,
            "line_total_cents": self.line_total_cents,
            "profit_cents": self.profit_cents,
        }


class Payment(db.Model):
    """
    Completed cash/card amount against a sale.

    Debt sales have no Payment row. ``mixed`` is recorded as a single row
    for the full total; split tender amounts are not modelled.
    """
    __tablename__ = "payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    method = db.Column(tag_type(PaymentMethod, "ck_payments_method"), nullable=False)
    amount_cents = db.Column(db.BigInteger, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", backref=db.backref("payments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "method": self.method.value,
            "amount_cents": self.amount_cents,
            "created_at": to_utc_z(self.created_at),
        }
