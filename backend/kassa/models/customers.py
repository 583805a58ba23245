from __future__ import annotations

from ..constants import DebtTransactionKind
from ..extensions import db
from ..time_utils import to_utc_z
from .columns import attach_updated_at_trigger, tag_type


class Customer(db.Model):
    """
    Customer master data.

    Customers are created lazily by a sale when no customer with the given
    phone exists. ``debt_cents`` is the running balance: it rises with debt
    sales and falls with payments and debt-reducing returns, never below zero.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.UniqueConstraint("phone", name="uq_customers_phone"),
        db.CheckConstraint("debt_cents >= 0", name="ck_customers_debt_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.String(255), nullable=True)

    debt_cents = db.Column(db.BigInteger, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "debt_cents": self.debt_cents,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Debt(db.Model):
    """
    One customer obligation, usually created by a debt-method sale.

    INVARIANT: 0 <= paid_cents <= total_cents and is_paid iff paid >= total.
    The running Customer.debt_cents balance is tracked independently.
    """
    __tablename__ = "debts"
    __table_args__ = (
        db.CheckConstraint("paid_cents >= 0 AND paid_cents <= total_cents", name="ck_debts_paid_within_total"),
        db.Index("ix_debts_customer_paid", "customer_id", "is_paid"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)

    description = db.Column(db.String(255), nullable=True)
    total_cents = db.Column(db.BigInteger, nullable=False)
    paid_cents = db.Column(db.BigInteger, nullable=False, default=0)
    is_paid = db.Column(db.Boolean, nullable=False, default=False)

    due_date = db.Column(db.DateTime(timezone=True), nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("debts", lazy=True))
    sale = db.relationship("Sale", backref=db.backref("debts", lazy=True))

    @property
    def remaining_cents(self) -> int:
        return max(self.total_cents - self.paid_cents, 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "sale_id": self.sale_id,
            "description": self.description,
            "total_cents": self.total_cents,
            "paid_cents": self.paid_cents,
            "remaining_cents": self.remaining_cents,
            "is_paid": self.is_paid,
            "due_date": to_utc_z(self.due_date),
            "paid_at": to_utc_z(self.paid_at),
            "created_at": to_utc_z(self.created_at),
        }


class DebtTransaction(db.Model):
    """
    Append-only ledger of changes to a customer's balance.

    TRANSACTION TYPES:
    - debt_added: a debt-method sale
    - payment: a payment or a debt-reducing return

    IMMUTABLE: Records are never updated or deleted.
    """
    __tablename__ = "debt_transactions"
    __table_args__ = (
        db.Index("ix_debt_txns_customer_created", "customer_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True)
    debt_id = db.Column(db.Integer, db.ForeignKey("debts.id"), nullable=True)
    return_id = db.Column(db.Integer, db.ForeignKey("sale_returns.id"), nullable=True)

    type = db.Column(tag_type(DebtTransactionKind, "ck_debt_transactions_type"), nullable=False)
    amount_cents = db.Column(db.BigInteger, nullable=False)
    note = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("debt_transactions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "sale_id": self.sale_id,
            "debt_id": self.debt_id,
            "return_id": self.return_id,
            "type": self.type.value,
            "amount_cents": self.amount_cents,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }


attach_updated_at_trigger(Customer.__table__)
attach_updated_at_trigger(Debt.__table__)
