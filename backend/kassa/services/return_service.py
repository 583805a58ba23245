"""
Return Engine

Reverses part or all of a committed sale in one transaction.

DESIGN PRINCIPLES:
- Returns reference the original Sale and, per line, the original SaleItem
- Returned lines are priced at the ORIGINAL unit price, never re-priced
- Cumulative returned quantity per sale item never exceeds the sold quantity,
  and the cumulative returned value never exceeds the original line total
- Stock is restored through the inventory ledger (``return`` movements)
- The returned value is split between reducing the sale's open debt and a
  cash/card refund; the sale row itself is never modified

SPLIT:
- Explicit: caller passes debt_reduce_cents and/or refund={"method", "cents"}.
  Debt reduction may not exceed the sale's outstanding debt and the two parts
  together may not exceed the returned total.
- Default: outstanding debt of the sale is reduced first, the remainder is
  refunded with refund["method"] (cash when omitted).
"""

from __future__ import annotations

import logging
from decimal import Decimal

from ..constants import RefundMethod, parse_enum
from ..errors import OverReturnError, ReturnNotFoundError, ValidationError
from ..extensions import db
from ..models import Product, Sale, SaleItem, SaleReturn, SaleReturnItem
from ..money import line_total_cents
from ..validation import clean_text, parse_cents, parse_id, parse_quantity
from .concurrency import lock_for_update, run_with_retry
from .debt_service import outstanding_for_sale, reduce_debt_for_return
from .inventory_service import restore_for_return
from .sales_service import returned_quantities

logger = logging.getLogger(__name__)


def _parse_lines(lines) -> dict[int, Decimal]:
    """sale_item_id -> requested quantity (repeated ids are summed)."""
    if not lines or not isinstance(lines, (list, tuple)):
        raise ValidationError("At least one return line is required", details={"field": "lines"})

    requested: dict[int, Decimal] = {}
    for index, line in enumerate(lines):
        if not isinstance(line, dict):
            raise ValidationError("Each return line must be an object", details={"index": index})
        item_id = parse_id(line.get("sale_item_id"), f"lines[{index}].sale_item_id")
        qty = parse_quantity(line.get("qty", line.get("quantity")), f"lines[{index}].qty")
        requested[item_id] = requested.get(item_id, Decimal("0")) + qty
    return requested


def _returned_values(sale: Sale) -> dict[int, int]:
    values: dict[int, int] = {}
    for sale_return in sale.returns:
        for item in sale_return.items:
            values[item.sale_item_id] = values.get(item.sale_item_id, 0) + item.line_total_cents
    return values


def _split(total: int, outstanding: int, refund, debt_reduce_cents) -> tuple[int, int, RefundMethod]:
    """Return (debt_reduced, refunded, refund_method)."""
    refund = refund or {}
    if not isinstance(refund, dict):
        raise ValidationError("refund must be an object", details={"field": "refund"})
    method = parse_enum(RefundMethod, refund.get("method") or RefundMethod.CASH, "refund.method")

    explicit = debt_reduce_cents is not None or refund.get("cents") is not None
    if not explicit:
        debt_part = min(outstanding, total)
        return debt_part, total - debt_part, method

    debt_part = parse_cents(debt_reduce_cents or 0, "debt_reduce_cents")
    refund_part = parse_cents(refund.get("cents") or 0, "refund.cents")
    if debt_part > outstanding:
        raise ValidationError(
            "Debt reduction exceeds the sale's outstanding debt",
            details={"debt_reduce_cents": debt_part, "outstanding_cents": outstanding},
        )
    if debt_part + refund_part > total:
        raise ValidationError(
            "Refund and debt reduction exceed the returned value",
            details={"debt_reduce_cents": debt_part, "refund_cents": refund_part, "total_cents": total},
        )
    return debt_part, refund_part, method


def create_return(sale_id, lines, refund=None, debt_reduce_cents=None, note: str | None = None) -> SaleReturn:
    """
    Return sale items.

    Args:
        sale_id: original sale
        lines: [{"sale_item_id": int, "qty": number}, ...]
        refund: optional {"method": "cash"|"card", "cents": int}
        debt_reduce_cents: optional explicit debt reduction
        note: free text

    Raises:
        ReturnNotFoundError: unknown sale, or an item not on that sale
        OverReturnError: cumulative returned quantity would exceed the sold quantity
        ValidationError: malformed input or an impossible split
    """
    sale_id = parse_id(sale_id, "sale_id")
    requested = _parse_lines(lines)
    note = clean_text(note, "note", max_length=1000)

    def _op():
        sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
        if sale is None:
            raise ReturnNotFoundError(f"Sale {sale_id} not found", details={"sale_id": sale_id})

        items = {item.id: item for item in sale.items}
        missing = [item_id for item_id in requested if item_id not in items]
        if missing:
            raise ReturnNotFoundError(
                f"Sale {sale_id} has no item(s) {missing}",
                details={"sale_id": sale_id, "sale_item_ids": missing},
            )

        already_qty = returned_quantities(sale)
        already_value = _returned_values(sale)
        for item_id, qty in requested.items():
            sold = items[item_id].quantity
            prior = already_qty.get(item_id, Decimal("0"))
            if prior + qty > sold:
                raise OverReturnError(
                    f"Cannot return {qty} of {items[item_id].product_name}: {sold - prior} returnable",
                    details={
                        "sale_item_id": item_id,
                        "requested_quantity": str(qty),
                        "sold_quantity": str(sold),
                        "returned_quantity": str(prior),
                    },
                )

        sale_return = SaleReturn(
            sale_id=sale.id,
            customer_id=sale.customer_id,
            total_cents=0,
            debt_reduced_cents=0,
            refund_cents=0,
            note=note,
        )
        db.session.add(sale_return)
        db.session.flush()
        return_id = sale_return.id

        total = 0
        for item_id, qty in requested.items():
            item: SaleItem = items[item_id]
            value_left = item.line_total_cents - already_value.get(item_id, 0)
            if already_qty.get(item_id, Decimal("0")) + qty == item.quantity:
                line_total = value_left
            else:
                line_total = min(line_total_cents(item.unit_price_cents, qty), value_left)

            product = lock_for_update(db.session.query(Product).filter_by(id=item.product_id)).first()
            restore_for_return(product, qty, return_id)

            db.session.add(SaleReturnItem(
                return_id=return_id,
                sale_item_id=item.id,
                product_id=item.product_id,
                product_name=item.product_name,
                quantity=qty,
                unit_price_cents=item.unit_price_cents,
                line_total_cents=line_total,
            ))
            total += line_total

        outstanding = outstanding_for_sale(sale)
        debt_part, refund_part, method = _split(total, outstanding, refund, debt_reduce_cents)
        if debt_part:
            reduce_debt_for_return(sale, debt_part, return_id)

        sale_return.total_cents = total
        sale_return.debt_reduced_cents = debt_part
        sale_return.refund_cents = refund_part
        sale_return.refund_method = method if refund_part > 0 else None

        db.session.commit()
        logger.info(
            "Return %s on sale %s committed: total=%s debt_reduced=%s refund=%s",
            return_id, sale_id, total, debt_part, refund_part,
        )
        return sale_return

    return run_with_retry(_op)


def get_return(return_id) -> SaleReturn:
    return_id = parse_id(return_id, "return_id")
    sale_return = db.session.get(SaleReturn, return_id)
    if sale_return is None:
        raise ReturnNotFoundError(f"Return {return_id} not found", details={"return_id": return_id})
    return sale_return


def get_return_summary(return_id) -> dict:
    sale_return = get_return(return_id)
    summary = sale_return.to_dict()
    summary["sale_total_cents"] = sale_return.sale.total_cents
    summary["payment_method"] = sale_return.sale.payment_method.value
    summary["customer_name"] = sale_return.customer.name if sale_return.customer else None
    summary["items"] = [item.to_dict() for item in sale_return.items]
    return summary


def list_returns(limit: int | None = None) -> list[dict]:
    query = db.session.query(SaleReturn).order_by(SaleReturn.return_date.desc(), SaleReturn.id.desc())
    if limit:
        query = query.limit(limit)

    results = []
    for sale_return in query.all():
        row = sale_return.to_dict()
        row["customer_name"] = sale_return.customer.name if sale_return.customer else None
        row["item_count"] = len(sale_return.items)
        results.append(row)
    return results
