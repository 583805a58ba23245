"""
Sale Engine - one checkout, one transaction

A sale is created, stocked out and settled (payment or debt) in a single
BEGIN IMMEDIATE transaction. Nothing is written unless everything is:
an InsufficientStock on the last line leaves products, movements, customers
and debts exactly as they were.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy.exc import IntegrityError

from ..constants import PaymentMethod, parse_enum
from ..errors import (
    ConflictError,
    EmptyCartError,
    InsufficientStockError,
    MissingCustomerError,
    NotFoundError,
    ValidationError,
)
from ..extensions import db
from ..models import Customer, Payment, Product, Sale, SaleItem, SaleReturn
from ..money import line_total_cents
from ..validation import clean_text, parse_cents, parse_id, parse_quantity
from .concurrency import lock_for_update, run_with_retry
from .debt_service import record_debt_sale
from .inventory_service import consume_for_sale

logger = logging.getLogger(__name__)


def _parse_items(items) -> list[tuple[int, Decimal]]:
    if not items:
        raise EmptyCartError("Cart is empty")
    if not isinstance(items, (list, tuple)):
        raise ValidationError("items must be a list", details={"field": "items"})

    parsed = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError("Each item must be an object", details={"index": index})
        product_id = parse_id(item.get("product_id"), f"items[{index}].product_id")
        qty = parse_quantity(item.get("qty", item.get("quantity")), f"items[{index}].qty")
        parsed.append((product_id, qty))
    return parsed


def _resolve_customer(customer) -> Customer | None:
    """
    Existing customer by id or phone, else a new one when a name is given.

    A phone that matches nobody is stored on the new customer.
    """
    if not customer:
        return None
    if not isinstance(customer, dict):
        raise ValidationError("customer must be an object", details={"field": "customer"})

    if customer.get("id") is not None:
        customer_id = parse_id(customer["id"], "customer.id")
        existing = db.session.get(Customer, customer_id)
        if existing is None:
            raise NotFoundError(f"Customer {customer_id} not found", details={"customer_id": customer_id})
        return existing

    name = clean_text(customer.get("name"), "customer.name")
    phone = clean_text(customer.get("phone"), "customer.phone", max_length=32)

    if phone:
        existing = db.session.query(Customer).filter_by(phone=phone).first()
        if existing is not None:
            return existing

    if not name:
        return None

    created = Customer(
        name=name,
        phone=phone,
        email=clean_text(customer.get("email"), "customer.email"),
        address=clean_text(customer.get("address"), "customer.address"),
        debt_cents=0,
    )
    db.session.add(created)
    db.session.flush()
    return created


def _load_cart_products(lines: list[tuple[int, Decimal]]) -> dict[int, Product]:
    """Read every cart product inside the write transaction and check total demand."""
    products: dict[int, Product] = {}
    demand: dict[int, Decimal] = {}
    for product_id, qty in lines:
        if product_id not in products:
            product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
            if product is None or not product.is_active:
                raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
            products[product_id] = product
        demand[product_id] = demand.get(product_id, Decimal("0")) + qty

    for product_id, wanted in demand.items():
        product = products[product_id]
        if wanted > product.qty:
            raise InsufficientStockError(
                f"Insufficient stock: {product.name}",
                details={"product_id": product_id, "requested_quantity": str(wanted), "on_hand": str(product.qty)},
            )
    return products


def create_sale(items, payment_method, discount_cents=0, customer=None, note: str | None = "") -> dict:
    """
    Create a committed sale from a cart.

    Args:
        items: [{"product_id": int, "qty": number}, ...]
        payment_method: cash | card | mixed | debt
        discount_cents: clamped to [0, subtotal]
        customer: optional {"id"} or {"name", "phone", "email", "address"}
        note: free text stored on the sale

    Returns:
        {"sale_id": int, "total_cents": int}

    Raises:
        EmptyCartError, ValidationError, NotFoundError, InsufficientStockError,
        MissingCustomerError, StoreUnavailableError
    """
    lines = _parse_items(items)
    method = parse_enum(PaymentMethod, payment_method, "payment_method")
    discount = parse_cents(discount_cents if discount_cents is not None else 0, "discount_cents", allow_negative=True)
    note = clean_text(note, "note", max_length=1000) or ""

    def _op():
        resolved = _resolve_customer(customer)
        if method == PaymentMethod.DEBT and resolved is None:
            raise MissingCustomerError("A customer is required for debt sales")

        products = _load_cart_products(lines)

        subtotal = sum(line_total_cents(products[pid].price_cents, qty) for pid, qty in lines)
        applied_discount = min(max(discount, 0), subtotal)
        tax = 0
        total = subtotal - applied_discount + tax

        sale = Sale(
            customer_id=resolved.id if resolved else None,
            subtotal_cents=subtotal,
            discount_cents=applied_discount,
            tax_cents=tax,
            total_cents=total,
            payment_method=method,
            note=note,
        )
        db.session.add(sale)
        db.session.flush()

        for product_id, qty in lines:
            product = products[product_id]
            line_total = line_total_cents(product.price_cents, qty)
            db.session.add(SaleItem(
                sale_id=sale.id,
                product_id=product.id,
                product_name=product.name,
                barcode=product.barcode,
                unit=product.unit.value,
                quantity=qty,
                unit_price_cents=product.price_cents,
                unit_cost_cents=product.cost_cents,
                line_total_cents=line_total,
                profit_cents=line_total - line_total_cents(product.cost_cents, qty),
            ))
            consume_for_sale(product, qty, sale.id)

        if method == PaymentMethod.DEBT:
            record_debt_sale(resolved, sale)
        else:
            db.session.add(Payment(sale_id=sale.id, method=method, amount_cents=total))

        sale_id = sale.id
        db.session.commit()
        return {"sale_id": sale_id, "total_cents": total}

    try:
        result = run_with_retry(_op)
    except IntegrityError as exc:
        raise ConflictError("Sale conflicts with existing data", details={"reason": str(exc.orig)}) from exc

    logger.info("Sale %s committed: %s %s", result["sale_id"], method.value, result["total_cents"])
    return result


def get_sale(sale_id) -> Sale:
    sale_id = parse_id(sale_id, "sale_id")
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise NotFoundError(f"Sale {sale_id} not found", details={"sale_id": sale_id})
    return sale


def returned_quantities(sale: Sale) -> dict[int, Decimal]:
    """sale_item_id -> quantity already returned across all returns of the sale."""
    returned: dict[int, Decimal] = {}
    for sale_return in sale.returns:
        for item in sale_return.items:
            returned[item.sale_item_id] = returned.get(item.sale_item_id, Decimal("0")) + item.quantity
    return returned


def get_sale_items(sale_id) -> list[dict]:
    sale = get_sale(sale_id)
    returned = returned_quantities(sale)
    rows = []
    for item in sale.items:
        row = item.to_dict()
        already = returned.get(item.id, Decimal("0"))
        row["returned_qty"] = str(already)
        row["returnable_qty"] = str(max(item.quantity - already, Decimal("0")))
        rows.append(row)
    return rows


def list_sales(limit: int = 50) -> list[dict]:
    sales = (
        db.session.query(Sale)
        .order_by(Sale.sale_date.desc(), Sale.id.desc())
        .limit(limit)
        .all()
    )
    totals = dict(
        (row.sale_id, row)
        for row in db.session.query(
            SaleReturn.sale_id,
            db.func.coalesce(db.func.sum(SaleReturn.total_cents), 0).label("returned"),
            db.func.coalesce(db.func.sum(SaleReturn.refund_cents), 0).label("refunded"),
            db.func.coalesce(db.func.sum(SaleReturn.debt_reduced_cents), 0).label("debt_reduced"),
        )
        .filter(SaleReturn.sale_id.in_([sale.id for sale in sales]))
        .group_by(SaleReturn.sale_id)
        .all()
    ) if sales else {}

    results = []
    for sale in sales:
        row = sale.to_dict()
        row["customer_name"] = sale.customer.name if sale.customer else None
        row["customer_phone"] = sale.customer.phone if sale.customer else None
        agg = totals.get(sale.id)
        row["returned_cents"] = int(agg.returned) if agg else 0
        row["refunded_cents"] = int(agg.refunded) if agg else 0
        row["debt_reduced_cents"] = int(agg.debt_reduced) if agg else 0
        results.append(row)
    return results
