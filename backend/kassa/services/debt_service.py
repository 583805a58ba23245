# Overview: Service-layer operations for customer debt bookkeeping.

# backend/kassa/services/debt_service.py

from __future__ import annotations

from ..constants import DebtTransactionKind
from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Customer, Debt, DebtTransaction, Sale
from ..time_utils import utcnow
from ..validation import clean_text, parse_cents, parse_id
from .concurrency import lock_for_update, run_with_retry
"""
Kassa Debt Ledger Invariants (authoritative)

Two independent records:
- customers.debt_cents is the running balance. It rises with debt sales and
  falls with payments and debt-reducing returns, clamped at zero.
- debts rows are individual obligations: 0 <= paid_cents <= total_cents and
  is_paid iff paid_cents >= total_cents.

Every balance change appends one DebtTransaction (debt_added | payment).

Payment allocation policy:
- pay_debt applies the amount to the customer's open debts oldest first
  (created_at, then id). Anything beyond the open total is recorded on the
  ledger and the balance but allocated to no debt.

record_debt_sale / reduce_debt_for_return do not commit; they run inside the
sale or return transaction.
"""


def _load_customer(customer_id: int, *, lock: bool = False) -> Customer:
    query = db.session.query(Customer).filter_by(id=customer_id)
    if lock:
        query = lock_for_update(query)
    customer = query.first()
    if customer is None:
        raise NotFoundError(f"Customer {customer_id} not found", details={"customer_id": customer_id})
    return customer


def _decrease_balance(customer: Customer, amount_cents: int) -> None:
    customer.debt_cents = max((customer.debt_cents or 0) - amount_cents, 0)


def _apply_to_debt(debt: Debt, amount_cents: int) -> int:
    """Raise ``debt.paid_cents`` by up to ``amount_cents``. Returns the part applied."""
    applied = min(amount_cents, debt.remaining_cents)
    if applied <= 0:
        return 0
    debt.paid_cents += applied
    if debt.paid_cents >= debt.total_cents:
        debt.is_paid = True
        debt.paid_at = utcnow()
    return applied


def _open_debts(customer_id: int, sale_id: int | None = None) -> list[Debt]:
    query = db.session.query(Debt).filter(Debt.customer_id == customer_id, Debt.is_paid.is_(False))
    if sale_id is not None:
        query = query.filter(Debt.sale_id == sale_id)
    return query.order_by(Debt.created_at.asc(), Debt.id.asc()).all()


def record_debt_sale(customer: Customer, sale: Sale) -> Debt:
    """Book a debt-method sale: ledger row, balance increase and one Debt for the full total."""
    db.session.add(DebtTransaction(
        customer_id=customer.id,
        sale_id=sale.id,
        type=DebtTransactionKind.DEBT_ADDED,
        amount_cents=sale.total_cents,
        note=f"Sale #{sale.id}",
    ))
    customer.debt_cents = (customer.debt_cents or 0) + sale.total_cents

    settled = sale.total_cents <= 0
    debt = Debt(
        customer_id=customer.id,
        sale_id=sale.id,
        description=f"Sale #{sale.id}",
        total_cents=sale.total_cents,
        paid_cents=0,
        is_paid=settled,
        paid_at=utcnow() if settled else None,
    )
    db.session.add(debt)
    return debt


def outstanding_for_sale(sale: Sale) -> int:
    """Unpaid remainder of the debts opened by ``sale``."""
    if sale.customer_id is None:
        return 0
    return sum(debt.remaining_cents for debt in _open_debts(sale.customer_id, sale.id))


def reduce_debt_for_return(sale: Sale, amount_cents: int, return_id: int) -> int:
    """
    Settle ``amount_cents`` of the sale's open debt with returned goods.

    Caller guarantees amount_cents <= outstanding_for_sale(sale).
    """
    if amount_cents <= 0:
        return 0
    customer = _load_customer(sale.customer_id, lock=True)

    remaining = amount_cents
    for debt in _open_debts(customer.id, sale.id):
        remaining -= _apply_to_debt(debt, remaining)
        if remaining <= 0:
            break

    db.session.add(DebtTransaction(
        customer_id=customer.id,
        sale_id=sale.id,
        return_id=return_id,
        type=DebtTransactionKind.PAYMENT,
        amount_cents=amount_cents,
        note=f"Return #{return_id}",
    ))
    _decrease_balance(customer, amount_cents)
    return amount_cents


def pay_debt(customer_id, amount_cents, note: str | None = None) -> dict:
    """
    Customer pays down their balance.

    Returns:
        dict with applied_cents (allocated to debt rows), unapplied_cents,
        balance_cents after the payment and the ids of debts now fully paid.
    """
    customer_id = parse_id(customer_id, "customer_id")
    amount = parse_cents(amount_cents, "amount_cents")
    if amount <= 0:
        raise ValidationError("amount_cents must be positive", details={"field": "amount_cents"})
    note = clean_text(note, "note", max_length=255)

    def _op():
        customer = _load_customer(customer_id, lock=True)

        remaining = amount
        settled = []
        for debt in _open_debts(customer.id):
            if remaining <= 0:
                break
            remaining -= _apply_to_debt(debt, remaining)
            if debt.is_paid:
                settled.append(debt.id)

        db.session.add(DebtTransaction(
            customer_id=customer.id,
            type=DebtTransactionKind.PAYMENT,
            amount_cents=amount,
            note=note or "Debt payment",
        ))
        _decrease_balance(customer, amount)
        balance = customer.debt_cents
        db.session.commit()

        return {
            "customer_id": customer_id,
            "amount_cents": amount,
            "applied_cents": amount - remaining,
            "unapplied_cents": remaining,
            "balance_cents": balance,
            "settled_debt_ids": settled,
        }

    return run_with_retry(_op)


def pay_debt_record(debt_id, amount_cents) -> dict:
    """Pay one debt row. Only the part that fits the debt's remainder is applied and booked."""
    debt_id = parse_id(debt_id, "debt_id")
    amount = parse_cents(amount_cents, "amount_cents")
    if amount <= 0:
        raise ValidationError("amount_cents must be positive", details={"field": "amount_cents"})

    def _op():
        debt = lock_for_update(db.session.query(Debt).filter_by(id=debt_id)).first()
        if debt is None:
            raise NotFoundError(f"Debt {debt_id} not found", details={"debt_id": debt_id})

        applied = _apply_to_debt(debt, amount)
        if applied:
            customer = _load_customer(debt.customer_id, lock=True)
            db.session.add(DebtTransaction(
                customer_id=customer.id,
                sale_id=debt.sale_id,
                debt_id=debt.id,
                type=DebtTransactionKind.PAYMENT,
                amount_cents=applied,
                note=f"Debt #{debt.id} payment",
            ))
            _decrease_balance(customer, applied)
        fully_paid = debt.is_paid
        db.session.commit()
        return {"applied_cents": applied, "fully_paid": fully_paid}

    return run_with_retry(_op)


def list_debts(include_paid: bool = True) -> list[dict]:
    query = db.session.query(Debt)
    if not include_paid:
        query = query.filter(Debt.is_paid.is_(False))
    debts = query.order_by(Debt.created_at.desc(), Debt.id.desc()).all()

    results = []
    for debt in debts:
        row = debt.to_dict()
        row["customer_name"] = debt.customer.name
        row["customer_phone"] = debt.customer.phone
        row["items"] = [item.to_dict() for item in debt.sale.items] if debt.sale else []
        results.append(row)
    return results


def list_transactions(customer_id) -> list[DebtTransaction]:
    customer_id = parse_id(customer_id, "customer_id")
    _load_customer(customer_id)
    return (
        db.session.query(DebtTransaction)
        .filter_by(customer_id=customer_id)
        .order_by(DebtTransaction.created_at.asc(), DebtTransaction.id.asc())
        .all()
    )
