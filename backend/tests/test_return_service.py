"""
Return Engine Tests

Returns are priced at the original sale price, restore stock through the
ledger, and split the returned value between debt reduction and a refund.
"""

from decimal import Decimal

import pytest

from kassa.constants import DebtTransactionKind, MovementKind, RefundMethod
from kassa.errors import OverReturnError, ReturnNotFoundError, ValidationError
from kassa.models import Customer, Debt, DebtTransaction, Product, Sale, SaleReturn, SaleReturnItem, StockMovement
from kassa.services.debt_service import pay_debt
from kassa.services.return_service import create_return, get_return_summary, list_returns
from kassa.services.sales_service import create_sale, get_sale_items


def _sell(product_id, qty, method="cash", customer=None):
    return create_sale([{"product_id": product_id, "qty": qty}], method, customer=customer)["sale_id"]


def _only_item_id(db_session, sale_id):
    return db_session.get(Sale, sale_id).items[0].id


class TestCashReturn:
    def test_return_one_unit_with_cash_refund(self, db_session, make_product):
        """Stock 5, sell 2, return 1 with a 10000 cash refund."""
        product_id = make_product(price_cents=10000, qty=5).id
        sale_id = _sell(product_id, 2)
        item_id = _only_item_id(db_session, sale_id)

        sale_return = create_return(
            sale_id,
            [{"sale_item_id": item_id, "qty": 1}],
            refund={"method": "cash", "cents": 10000},
        )
        return_id = sale_return.id

        assert db_session.get(Product, product_id).qty == Decimal("4")

        stored = db_session.get(SaleReturn, return_id)
        assert stored.total_cents == 10000
        assert stored.refund_cents == 10000
        assert stored.debt_reduced_cents == 0
        assert stored.refund_method == RefundMethod.CASH

        movements = (
            db_session.query(StockMovement)
            .filter_by(product_id=product_id, movement_type=MovementKind.RETURN)
            .all()
        )
        assert len(movements) == 1
        assert movements[0].old_qty == Decimal("3")
        assert movements[0].new_qty == Decimal("4")
        assert movements[0].reference_id == return_id

        assert db_session.query(DebtTransaction).count() == 0
        assert db_session.query(Debt).count() == 0

    def test_default_split_refunds_everything_on_cash_sale(self, db_session, make_product):
        product_id = make_product(price_cents=2500, qty=5).id
        sale_id = _sell(product_id, 2)

        sale_return = create_return(sale_id, [{"sale_item_id": _only_item_id(db_session, sale_id), "qty": 2}])

        assert sale_return.total_cents == 5000
        assert sale_return.refund_cents == 5000
        assert sale_return.debt_reduced_cents == 0
        assert sale_return.refund_method == RefundMethod.CASH

    def test_card_refund_method(self, db_session, make_product):
        product_id = make_product(price_cents=2500, qty=5).id
        sale_id = _sell(product_id, 1, method="card")

        sale_return = create_return(
            sale_id,
            [{"sale_item_id": _only_item_id(db_session, sale_id), "qty": 1}],
            refund={"method": "card"},
        )

        assert sale_return.refund_method == RefundMethod.CARD

    def test_sale_row_is_never_modified(self, db_session, make_product):
        product_id = make_product(price_cents=10000, qty=5).id
        sale_id = _sell(product_id, 2)

        create_return(sale_id, [{"sale_item_id": _only_item_id(db_session, sale_id), "qty": 1}])

        sale = db_session.get(Sale, sale_id)
        assert sale.total_cents == 20000
        assert sale.items[0].quantity == Decimal("2")


class TestReturnLimits:
    def test_over_return_is_rejected(self, db_session, make_product):
        product_id = make_product(price_cents=10000, qty=5).id
        sale_id = _sell(product_id, 2)
        item_id = _only_item_id(db_session, sale_id)

        with pytest.raises(OverReturnError):
            create_return(sale_id, [{"sale_item_id": item_id, "qty": 3}])

        assert db_session.get(Product, product_id).qty == Decimal("3")
        assert db_session.query(SaleReturn).count() == 0

    def test_cumulative_over_return_is_rejected(self, db_session, make_product):
        product_id = make_product(price_cents=10000, qty=5).id
        sale_id = _sell(product_id, 2)
        item_id = _only_item_id(db_session, sale_id)

        create_return(sale_id, [{"sale_item_id": item_id, "qty": 1}])
        with pytest.raises(OverReturnError) as excinfo:
            create_return(sale_id, [{"sale_item_id": item_id, "qty": 2}])

        assert excinfo.value.details["sale_item_id"] == item_id
        assert db_session.get(Product, product_id).qty == Decimal("4")
        assert db_session.query(SaleReturn).count() == 1

    def test_repeated_lines_are_summed(self, db_session, make_product):
        product_id = make_product(price_cents=10000, qty=5).id
        sale_id = _sell(product_id, 2)
        item_id = _only_item_id(db_session, sale_id)

        with pytest.raises(OverReturnError):
            create_return(sale_id, [{"sale_item_id": item_id, "qty": 2}, {"sale_item_id": item_id, "qty": 1}])

    def test_unknown_sale(self, db_session):
        with pytest.raises(ReturnNotFoundError):
            create_return(424242, [{"sale_item_id": 1, "qty": 1}])

    def test_item_from_another_sale(self, db_session, make_product):
        product_id = make_product(price_cents=1000, qty=5).id
        first_sale = _sell(product_id, 1)
        second_sale = _sell(product_id, 1)

        with pytest.raises(ReturnNotFoundError):
            create_return(first_sale, [{"sale_item_id": _only_item_id(db_session, second_sale), "qty": 1}])

    def test_empty_lines(self, db_session, make_product):
        product_id = make_product(price_cents=1000, qty=5).id
        sale_id = _sell(product_id, 1)

        with pytest.raises(ValidationError):
            create_return(sale_id, [])

    def test_fractional_returns_never_exceed_line_total(self, db_session, make_product):
        """1.5 liters at 999: three half-liter returns add up to the line total exactly."""
        product_id = make_product(price_cents=999, qty=10, unit="liter").id
        sale_id = _sell(product_id, "1.5")
        item_id = _only_item_id(db_session, sale_id)
        assert db_session.get(Sale, sale_id).items[0].line_total_cents == 1499

        totals = [
            create_return(sale_id, [{"sale_item_id": item_id, "qty": "0.5"}]).total_cents
            for _ in range(3)
        ]

        assert totals == [500, 500, 499]
        returned = sum(row.line_total_cents for row in db_session.query(SaleReturnItem).all())
        assert returned == 1499
        assert Decimal(get_sale_items(sale_id)[0]["returnable_qty"]) == Decimal("0")


class TestDebtReturn:
    def _debt_sale(self, make_product, qty=2):
        product_id = make_product(price_cents=10000, qty=5).id
        sale_id = _sell(product_id, qty, method="debt", customer={"name": "Ali", "phone": "900000000"})
        return product_id, sale_id

    def test_default_split_reduces_debt_first(self, db_session, make_product):
        product_id, sale_id = self._debt_sale(make_product)

        sale_return = create_return(sale_id, [{"sale_item_id": _only_item_id(db_session, sale_id), "qty": 1}])
        return_id = sale_return.id

        stored = db_session.get(SaleReturn, return_id)
        assert stored.debt_reduced_cents == 10000
        assert stored.refund_cents == 0
        assert stored.refund_method is None

        customer = db_session.query(Customer).filter_by(phone="900000000").one()
        assert customer.debt_cents == 10000

        debt = db_session.query(Debt).filter_by(sale_id=sale_id).one()
        assert debt.paid_cents == 10000
        assert debt.is_paid is False

        txn = (
            db_session.query(DebtTransaction)
            .filter_by(customer_id=customer.id, type=DebtTransactionKind.PAYMENT)
            .one()
        )
        assert txn.amount_cents == 10000
        assert txn.return_id == return_id

    def test_remainder_after_partial_payment_is_refunded(self, db_session, make_product):
        product_id, sale_id = self._debt_sale(make_product)
        customer_id = db_session.get(Sale, sale_id).customer_id
        pay_debt(customer_id, 15000)

        sale_return = create_return(sale_id, [{"sale_item_id": _only_item_id(db_session, sale_id), "qty": 1}])

        assert sale_return.debt_reduced_cents == 5000
        assert sale_return.refund_cents == 5000
        assert sale_return.refund_method == RefundMethod.CASH

        assert db_session.get(Customer, customer_id).debt_cents == 0
        debt = db_session.query(Debt).filter_by(sale_id=sale_id).one()
        assert debt.is_paid is True
        assert debt.paid_cents == debt.total_cents

    def test_explicit_split(self, db_session, make_product):
        product_id, sale_id = self._debt_sale(make_product)

        sale_return = create_return(
            sale_id,
            [{"sale_item_id": _only_item_id(db_session, sale_id), "qty": 1}],
            refund={"method": "cash", "cents": 4000},
            debt_reduce_cents=6000,
        )

        assert sale_return.debt_reduced_cents == 6000
        assert sale_return.refund_cents == 4000
        customer = db_session.query(Customer).filter_by(phone="900000000").one()
        assert customer.debt_cents == 14000

    def test_explicit_debt_reduction_above_outstanding_rolls_back(self, db_session, make_product):
        product_id, sale_id = self._debt_sale(make_product, qty=1)
        customer_id = db_session.get(Sale, sale_id).customer_id
        pay_debt(customer_id, 8000)

        with pytest.raises(ValidationError):
            create_return(
                sale_id,
                [{"sale_item_id": _only_item_id(db_session, sale_id), "qty": 1}],
                debt_reduce_cents=5000,
            )

        assert db_session.get(Product, product_id).qty == Decimal("4")
        assert db_session.query(SaleReturn).count() == 0
        assert db_session.query(SaleReturnItem).count() == 0
        assert db_session.get(Customer, customer_id).debt_cents == 2000

    def test_explicit_parts_above_total_are_rejected(self, db_session, make_product):
        product_id, sale_id = self._debt_sale(make_product)

        with pytest.raises(ValidationError):
            create_return(
                sale_id,
                [{"sale_item_id": _only_item_id(db_session, sale_id), "qty": 1}],
                refund={"method": "cash", "cents": 6000},
                debt_reduce_cents=6000,
            )

        assert db_session.get(Product, product_id).qty == Decimal("3")


class TestReturnReads:
    def test_summary_and_listing(self, db_session, make_product):
        product_id = make_product(name="Tea", price_cents=10000, qty=5).id
        sale_id = _sell(product_id, 2, customer={"name": "Ali", "phone": "900000002"})
        return_id = create_return(sale_id, [{"sale_item_id": _only_item_id(db_session, sale_id), "qty": 1}]).id

        summary = get_return_summary(return_id)
        assert summary["sale_total_cents"] == 20000
        assert summary["customer_name"] == "Ali"
        assert [item["product_name"] for item in summary["items"]] == ["Tea"]

        rows = list_returns()
        assert rows[0]["id"] == return_id
        assert rows[0]["item_count"] == 1

    def test_summary_of_unknown_return(self, db_session):
        with pytest.raises(ReturnNotFoundError):
            get_return_summary(99999)
