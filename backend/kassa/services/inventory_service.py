# Overview: Service-layer operations for inventory; the single writer of product quantities.

# backend/kassa/services/inventory_service.py

from __future__ import annotations

from decimal import Decimal

from ..constants import MovementKind
from ..errors import InsufficientStockError, NotFoundError
from ..extensions import db
from ..models import Product, StockMovement
from ..validation import clean_text, parse_cents, parse_id, parse_quantity
from .concurrency import lock_for_update, run_with_retry
"""
Kassa Inventory Invariants (authoritative)

Stock model:
- products.qty is the on-hand quantity; this module is its only writer.
- Every quantity write appends exactly one StockMovement with the signed delta
  and the before/after snapshot. Movements are never updated or deleted.

Business invariants:
- A sale may never take on-hand below zero (InsufficientStock).
- Adjustments set an absolute, non-negative quantity.
- consume_for_sale / restore_for_return do not commit: they run inside the
  caller's sale or return transaction and roll back with it.
"""


def _load_product(product_id: int, *, lock: bool = False) -> Product:
    query = db.session.query(Product).filter_by(id=product_id)
    if lock:
        query = lock_for_update(query)
    product = query.first()
    if product is None:
        raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
    return product


def _append_movement(
    product: Product,
    kind: MovementKind,
    old_qty: Decimal,
    new_qty: Decimal,
    *,
    reference_id: int | None = None,
    note: str | None = None,
) -> StockMovement:
    movement = StockMovement(
        product_id=product.id,
        movement_type=kind,
        quantity_change=new_qty - old_qty,
        old_qty=old_qty,
        new_qty=new_qty,
        cost_cents=product.cost_cents,
        unit_price_cents=product.price_cents,
        reference_id=reference_id,
        note=note,
    )
    db.session.add(movement)
    return movement


def record_initial_stock(product: Product, qty: Decimal) -> StockMovement | None:
    """Opening quantity for a freshly created product (no movement for zero)."""
    if qty <= 0:
        return None
    product.qty = qty
    return _append_movement(product, MovementKind.INITIAL, Decimal("0"), qty, note="Initial stock")


def consume_for_sale(product: Product, qty: Decimal, sale_id: int) -> tuple[Decimal, Decimal]:
    """
    Take ``qty`` units for a sale. Caller owns the transaction.

    ``product`` must have been loaded inside the caller's write transaction so
    the on-hand value checked here is the one being overwritten.
    """
    old_qty = product.qty
    if qty > old_qty:
        raise InsufficientStockError(
            f"Insufficient stock: {product.name}",
            details={"product_id": product.id, "requested_quantity": str(qty), "on_hand": str(old_qty)},
        )
    new_qty = old_qty - qty
    product.qty = new_qty
    _append_movement(product, MovementKind.SALE, old_qty, new_qty, reference_id=sale_id, note=f"Sale #{sale_id}")
    return old_qty, new_qty


def restore_for_return(product: Product, qty: Decimal, return_id: int) -> tuple[Decimal, Decimal]:
    """Put ``qty`` returned units back on hand. Caller owns the transaction."""
    old_qty = product.qty
    new_qty = old_qty + qty
    product.qty = new_qty
    _append_movement(
        product, MovementKind.RETURN, old_qty, new_qty, reference_id=return_id, note=f"Return #{return_id}"
    )
    return old_qty, new_qty


def adjust_stock(product_id, new_quantity, note: str | None = None) -> StockMovement:
    """
    Set an absolute on-hand quantity (stock count / operator correction).

    Raises:
        NotFoundError: product absent
        ValidationError: quantity negative or malformed
    """
    product_id = parse_id(product_id, "product_id")
    new_qty = parse_quantity(new_quantity, "qty", allow_zero=True)
    note = clean_text(note, "note") or "Manual adjustment"

    def _op():
        product = _load_product(product_id, lock=True)
        old_qty = product.qty
        product.qty = new_qty
        movement = _append_movement(product, MovementKind.ADJUSTMENT, old_qty, new_qty, note=note)
        db.session.commit()
        return movement

    return run_with_retry(_op)


def receive_stock(product_id, qty, cost_cents=None, note: str | None = None) -> StockMovement:
    """
    Receive goods into stock.

    When ``cost_cents`` is given it becomes the product's unit cost before the
    movement is written, so the movement carries the cost it was received at.
    """
    product_id = parse_id(product_id, "product_id")
    qty = parse_quantity(qty, "qty")
    if cost_cents is not None:
        cost_cents = parse_cents(cost_cents, "cost_cents")
    note = clean_text(note, "note") or "Goods received"

    def _op():
        product = _load_product(product_id, lock=True)
        if cost_cents is not None:
            product.cost_cents = cost_cents
        old_qty = product.qty
        new_qty = old_qty + qty
        product.qty = new_qty
        movement = _append_movement(product, MovementKind.RECEIVE, old_qty, new_qty, note=note)
        db.session.commit()
        return movement

    return run_with_retry(_op)


def list_movements(product_id, limit: int = 200) -> list[StockMovement]:
    product_id = parse_id(product_id, "product_id")
    _load_product(product_id)
    return (
        db.session.query(StockMovement)
        .filter_by(product_id=product_id)
        .order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
        .limit(limit)
        .all()
    )
