# backend/kassa/services/products_service.py
"""
Catalog Service

Owns the product uniqueness/validation contract and barcode assignment:
- SKU is required and unique; when the caller gives none, the product's
  barcode becomes its SKU.
- Barcode is optional and unique; products without one get a generated
  EAN-8 code derived from their id.
- Products referenced by sales or stock movements are only soft-deactivated,
  and only after explicit confirmation (force=True).

Quantity changes go through inventory_service; this module never writes qty
except for the opening quantity of a new product.
"""
from __future__ import annotations

import uuid
from decimal import Decimal

from flask import current_app

from ..constants import Unit, parse_enum
from ..errors import ConflictError, GenerationFailedError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Product, SaleItem, StockMovement
from ..validation import clean_text, parse_cents, parse_id, parse_price_cents, parse_quantity
from .concurrency import run_with_retry
from .inventory_service import record_initial_stock

PRODUCT_MUTABLE_FIELDS = {"sku", "name", "price_cents", "cost_cents", "unit", "barcode", "min_stock", "is_active"}

EAN8_PAYLOAD_MODULUS = 10_000_000


# =============================================================================
# BARCODES
# =============================================================================

def generate_ean8(seed: int) -> str:
    """
    7-digit zero-padded payload + mod-10 check digit.

    Weights run 3,1,3,1,... from the leftmost payload digit.
    """
    payload = f"{int(seed) % EAN8_PAYLOAD_MODULUS:07d}"
    total = sum(int(digit) * (3 if i % 2 == 0 else 1) for i, digit in enumerate(payload))
    check = (10 - total % 10) % 10
    return payload + str(check)


def is_valid_ean8(code: str) -> bool:
    if not code or len(code) != 8 or not code.isdigit():
        return False
    return generate_ean8(int(code[:7])) == code


def ensure_barcode(product: Product, max_tries: int | None = None) -> str:
    """
    Return the product's barcode, generating one if it has none.

    Tries seeds product_id, product_id+1, ... and takes the first code no other
    product holds. Runs inside the caller's transaction; the product must
    already have an id.

    Raises:
        GenerationFailedError: every candidate within max_tries retries collided
    """
    if product.barcode and product.barcode.strip():
        return product.barcode

    if max_tries is None:
        max_tries = current_app.config.get("BARCODE_MAX_TRIES", 20)

    tried = []
    for attempt in range(max_tries + 1):
        candidate = generate_ean8(product.id + attempt)
        tried.append(candidate)
        holder = db.session.query(Product.id).filter(Product.barcode == candidate).first()
        if holder is None or holder.id == product.id:
            product.barcode = candidate
            return candidate

    raise GenerationFailedError(
        f"Could not generate a unique barcode for product {product.id}",
        details={"product_id": product.id, "tried": tried},
    )


def ensure_missing_barcodes() -> int:
    """Assign generated barcodes to every product that lacks one. Returns the count assigned."""
    def _op():
        products = (
            db.session.query(Product)
            .filter(db.or_(Product.barcode.is_(None), db.func.trim(Product.barcode) == ""))
            .order_by(Product.id.asc())
            .all()
        )
        for product in products:
            product.barcode = None
            ensure_barcode(product)
            db.session.flush()
        db.session.commit()
        return len(products)

    return run_with_retry(_op)


# =============================================================================
# VALIDATION
# =============================================================================

def _normalize_patch(patch: dict) -> dict:
    clean: dict = {}
    for key, value in patch.items():
        if key not in PRODUCT_MUTABLE_FIELDS:
            continue
        if key == "sku":
            clean[key] = clean_text(value, "sku", max_length=64)
        elif key == "name":
            clean[key] = clean_text(value, "name", required=True)
        elif key == "price_cents":
            clean[key] = parse_price_cents(value, "price_cents")
        elif key == "cost_cents":
            clean[key] = parse_price_cents(value, "cost_cents")
        elif key == "unit":
            clean[key] = parse_enum(Unit, value, "unit")
        elif key == "barcode":
            clean[key] = clean_text(value, "barcode", max_length=32)
        elif key == "min_stock":
            clean[key] = parse_quantity(value, "min_stock", allow_zero=True)
        elif key == "is_active":
            if not isinstance(value, bool):
                raise ValidationError("is_active must be a boolean", details={"field": "is_active"})
            clean[key] = value
    return clean


def _assert_unique(field: str, value: str | None, product_id: int | None = None) -> None:
    if not value:
        return
    column = getattr(Product, field)
    query = db.session.query(Product.id).filter(column == value)
    if product_id is not None:
        query = query.filter(Product.id != product_id)
    if query.first() is not None:
        raise ConflictError(f"{field} {value!r} is already used by another product", details={"field": field})


# =============================================================================
# CRUD
# =============================================================================

def get_product(product_id) -> Product:
    product_id = parse_id(product_id, "product_id")
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
    return product


def list_products(include_inactive: bool = False) -> list[Product]:
    """Catalog listing ordered by name. Backfills missing barcodes first."""
    ensure_missing_barcodes()
    query = db.session.query(Product)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    return query.order_by(Product.name.asc(), Product.id.asc()).all()


def find_product(code: str) -> Product | None:
    """Scan lookup: active product whose barcode, then SKU, equals ``code``."""
    code = clean_text(code, "code", required=True, max_length=64)
    base = db.session.query(Product).filter(Product.is_active.is_(True))
    return base.filter(Product.barcode == code).first() or base.filter(Product.sku == code).first()


def create_product(
    *,
    sku=None,
    name=None,
    price_cents=0,
    unit=Unit.PIECE,
    qty=0,
    barcode=None,
    cost_cents=0,
    min_stock=0,
) -> Product:
    """
    Create a catalog product with its opening stock.

    A positive opening quantity is recorded as an ``initial`` stock movement.

    Raises:
        ValidationError: malformed fields
        ConflictError: SKU or barcode already taken
        GenerationFailedError: no free barcode could be generated
    """
    fields = _normalize_patch({
        "sku": sku,
        "name": name,
        "price_cents": price_cents,
        "cost_cents": cost_cents,
        "unit": unit,
        "barcode": barcode,
        "min_stock": min_stock,
    })
    opening_qty = parse_quantity(qty, "qty", allow_zero=True) if qty is not None else Decimal("0")

    def _op():
        given_sku = fields["sku"] or fields["barcode"]
        _assert_unique("sku", given_sku)
        _assert_unique("barcode", fields["barcode"])

        product = Product(
            sku=given_sku or f"P-{uuid.uuid4().hex[:12]}",
            name=fields["name"],
            price_cents=fields["price_cents"],
            cost_cents=fields["cost_cents"],
            unit=fields["unit"],
            barcode=fields["barcode"],
            min_stock=fields["min_stock"],
            qty=Decimal("0"),
        )
        db.session.add(product)
        db.session.flush()

        if not product.barcode:
            generated = ensure_barcode(product)
            if not given_sku:
                _assert_unique("sku", generated, product.id)
                product.sku = generated

        record_initial_stock(product, opening_qty)
        db.session.commit()
        return product

    return run_with_retry(_op)


def update_product(product_id, patch: dict) -> Product:
    """
    Apply a catalog patch. Quantity is not patchable here (use inventory_service).

    Clearing the barcode assigns a freshly generated one.
    """
    product_id = parse_id(product_id, "product_id")
    fields = _normalize_patch(patch or {})
    if "sku" in fields and not fields["sku"]:
        raise ValidationError("sku cannot be blank", details={"field": "sku"})

    def _op():
        product = get_product(product_id)
        if "sku" in fields:
            _assert_unique("sku", fields["sku"], product.id)
        if "barcode" in fields:
            _assert_unique("barcode", fields["barcode"], product.id)

        for key, value in fields.items():
            setattr(product, key, value)

        if not product.barcode:
            db.session.flush()
            ensure_barcode(product)

        db.session.commit()
        return product

    return run_with_retry(_op)


def deactivate_product(product_id, force: bool = False) -> dict:
    """
    Soft-delete a product.

    Products referenced by sale items or stock movements need ``force=True``;
    without it nothing changes and the reference counts are returned so the
    caller can ask for confirmation.
    """
    product_id = parse_id(product_id, "product_id")

    def _op():
        product = db.session.get(Product, product_id)
        if product is None:
            return {"success": False, "requires_confirmation": False, "sale_count": 0, "movement_count": 0}

        sale_count = db.session.query(SaleItem).filter_by(product_id=product_id).count()
        movement_count = db.session.query(StockMovement).filter_by(product_id=product_id).count()
        counts = {"sale_count": sale_count, "movement_count": movement_count}

        if (sale_count or movement_count) and not force:
            db.session.rollback()
            return {"success": False, "requires_confirmation": True, **counts}

        product.is_active = False
        db.session.commit()
        return {"success": True, "requires_confirmation": False, **counts}

    return run_with_retry(_op)


def set_cost(product_id, cost_cents) -> Product:
    """Update the unit cost used for future sale snapshots."""
    return update_product(product_id, {"cost_cents": parse_cents(cost_cents, "cost_cents")})
