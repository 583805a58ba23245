"""
Concurrency Tests

Writers serialise on the store lock: two checkouts racing for the last unit
produce exactly one sale and one InsufficientStock.
"""

import threading
from decimal import Decimal

from kassa.constants import MovementKind
from kassa.errors import InsufficientStockError
from kassa.extensions import db
from kassa.models import Product, Sale, StockMovement
from kassa.services import products_service
from kassa.services.debt_service import pay_debt
from kassa.services.sales_service import create_sale


def _race(app, worker_count, action):
    """Run ``action`` in ``worker_count`` threads released together; collect results and errors."""
    barrier = threading.Barrier(worker_count)
    results, errors = [], []
    lock = threading.Lock()

    def worker():
        with app.app_context():
            barrier.wait()
            try:
                outcome = action()
            except Exception as exc:
                with lock:
                    errors.append(exc)
            else:
                with lock:
                    results.append(outcome)
            finally:
                db.session.remove()

    threads = [threading.Thread(target=worker) for _ in range(worker_count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    return results, errors


def test_last_unit_is_sold_once(file_app):
    with file_app.app_context():
        product = products_service.create_product(sku="LAST", name="Last one", price_cents=500, qty=1)
        product_id = product.id
        db.session.remove()

    results, errors = _race(
        file_app, 2, lambda: create_sale([{"product_id": product_id, "qty": 1}], "cash")
    )

    assert len(results) == 1
    assert len(errors) == 1
    assert isinstance(errors[0], InsufficientStockError)

    with file_app.app_context():
        assert db.session.get(Product, product_id).qty == Decimal("0")
        assert db.session.query(Sale).count() == 1
        sale_moves = (
            db.session.query(StockMovement)
            .filter_by(product_id=product_id, movement_type=MovementKind.SALE)
            .count()
        )
        assert sale_moves == 1
        db.session.remove()


def test_parallel_sales_never_oversell(file_app):
    with file_app.app_context():
        product = products_service.create_product(sku="TEN", name="Ten", price_cents=100, qty=3)
        product_id = product.id
        db.session.remove()

    results, errors = _race(
        file_app, 5, lambda: create_sale([{"product_id": product_id, "qty": 1}], "cash")
    )

    assert len(results) == 3
    assert len(errors) == 2
    assert all(isinstance(exc, InsufficientStockError) for exc in errors)
    with file_app.app_context():
        assert db.session.get(Product, product_id).qty == Decimal("0")
        db.session.remove()


def test_concurrent_payments_keep_balance_consistent(file_app):
    with file_app.app_context():
        product = products_service.create_product(sku="CR", name="Credit", price_cents=1000, qty=10)
        product_id = product.id
        sale_id = create_sale(
            [{"product_id": product_id, "qty": 4}],
            "debt",
            customer={"name": "Ali", "phone": "900000000"},
        )["sale_id"]
        customer_id = db.session.get(Sale, sale_id).customer_id
        db.session.remove()

    results, errors = _race(file_app, 4, lambda: pay_debt(customer_id, 1000))

    assert errors == []
    assert sorted(r["balance_cents"] for r in results) == [0, 1000, 2000, 3000]
