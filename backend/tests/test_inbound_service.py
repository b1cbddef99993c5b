# Overview: Pytest coverage for inbound reconciliation (ledger, balance and completion in one unit of work).

"""
Inbound Reconciliation Tests

The ledger write, the purchase order completion and the supplier account
increment must be visible together or not at all.
"""

from datetime import datetime, timedelta

import pytest

from ordercycle.extensions import db
from ordercycle.models import (
    LedgerImmutableError,
    Product,
    PurchaseLedger,
    SupplierAccount,
    STATUS_COMPLETED,
    STATUS_CONFIRMED,
    STATUS_PLACED,
)
from ordercycle.services import (
    aggregation_service,
    cycle_service,
    inbound_service,
    purchase_order_service,
    supplier_account_service,
)
from ordercycle.services.inbound_service import (
    InboundError,
    InboundErrorCode,
    InboundNotEligibleError,
    InboundNotFoundError,
    InvalidQuantityError,
    MissingPriceError,
)


RESET = datetime(2026, 3, 1, 9, 0)
RECEIVED_AT = datetime(2026, 3, 1, 15, 0)


@pytest.fixture
def confirmed_order(db_session, place_order, tofu, soy_milk, supplier_a):
    """Confirmed purchase order for supplier A: tofu x5, soy milk x3."""
    cycle_service.reset(now=RESET)
    place_order([(tofu, 5), (soy_milk, 3)], now=RESET + timedelta(minutes=5))
    summary = aggregation_service.aggregate_active_orders(now=RESET + timedelta(minutes=30))
    agg = summary.categories["daily_food"].supplier(supplier_a.id)
    purchase_order = purchase_order_service.generate_purchase_order(
        agg, "daily_food", status=STATUS_CONFIRMED, now=RESET + timedelta(hours=1),
    )
    return purchase_order


def _balance(supplier_id):
    account = db.session.query(SupplierAccount).filter_by(supplier_id=supplier_id).first()
    return account.current_balance if account else 0


class TestCompleteInbound:

    def test_ledger_total_and_balance(self, confirmed_order, tofu, soy_milk, supplier_a):
        before = _balance(supplier_a.id)

        ledger = inbound_service.complete_inbound(
            confirmed_order.purchase_order_number,
            [
                {"product_id": tofu.id, "received_quantity": 5, "inbound_unit_price": 100},
                {"product_id": soy_milk.id, "received_quantity": 3, "inbound_unit_price": 200},
            ],
            "clerk",
            now=RECEIVED_AT,
        )

        assert ledger.total_amount == 5 * 100 + 3 * 200 == 1100
        assert ledger.purchase_ledger_number == "PL-260301-001"
        assert ledger.item_count == 2
        assert _balance(supplier_a.id) - before == 1100

        purchase_order = purchase_order_service.get_purchase_order(confirmed_order.purchase_order_number)
        assert purchase_order.status == STATUS_COMPLETED
        assert purchase_order.completed_at == RECEIVED_AT
        assert purchase_order.purchase_ledger_id == ledger.id
        assert purchase_order.purchase_ledger_number == ledger.purchase_ledger_number

    def test_account_created_on_first_receipt_then_accumulates(self, confirmed_order, place_order, tofu, soy_milk, supplier_a):
        inbound_service.complete_inbound(
            confirmed_order.purchase_order_number,
            [{"product_id": tofu.id, "received_quantity": 5}],
            "clerk",
            now=RECEIVED_AT,
        )
        account = supplier_account_service.get_supplier_account(supplier_a.id)
        assert account.total_purchase_amount == 500
        assert account.transaction_count == 1
        assert account.supplier_business_number == "111-11-11111"
        assert account.last_purchase_date == RECEIVED_AT

        cycle_service.reset(now=RECEIVED_AT + timedelta(hours=1))
        place_order([(soy_milk, 2)], now=RECEIVED_AT + timedelta(hours=2))
        summary = aggregation_service.aggregate_active_orders(now=RECEIVED_AT + timedelta(hours=2))
        second = purchase_order_service.generate_purchase_order(
            summary.categories["daily_food"].supplier(supplier_a.id),
            "daily_food",
            status=STATUS_CONFIRMED,
            now=RECEIVED_AT + timedelta(hours=3),
        )
        inbound_service.complete_inbound(
            second.purchase_order_number,
            [{"product_id": soy_milk.id, "received_quantity": 2}],
            "clerk",
            now=RECEIVED_AT + timedelta(hours=4),
        )

        account = supplier_account_service.get_supplier_account(supplier_a.id)
        assert account.total_purchase_amount == 500 + 400
        assert account.current_balance == 900
        assert account.transaction_count == 2

    def test_missing_price_falls_back_to_ordered_price(self, confirmed_order, tofu):
        ledger = inbound_service.complete_inbound(
            confirmed_order.purchase_order_number,
            [{"product_id": tofu.id, "received_quantity": 2, "inbound_unit_price": None}],
            "clerk",
            now=RECEIVED_AT,
        )
        assert ledger.lines[0].unit_price == 100
        assert ledger.total_amount == 200

    def test_received_price_updates_reference_price(self, confirmed_order, tofu):
        inbound_service.complete_inbound(
            confirmed_order.purchase_order_number,
            [{"product_id": tofu.id, "received_quantity": 5, "inbound_unit_price": 130}],
            "clerk",
            now=RECEIVED_AT,
        )
        assert db.session.get(Product, tofu.id).purchase_price == 130

    def test_ledger_lines_carry_resolved_code_and_category(self, confirmed_order, tofu):
        ledger = inbound_service.complete_inbound(
            confirmed_order.purchase_order_number,
            [{"product_id": tofu.id, "received_quantity": 0}],
            "clerk",
            now=RECEIVED_AT,
        )
        line = ledger.lines[0]
        assert (line.product_code, line.category, line.quantity, line.line_total) == ("TOFU-300", "daily_food", 0, 0)

    def test_second_reconciliation_is_rejected(self, confirmed_order, tofu, supplier_a):
        items = [{"product_id": tofu.id, "received_quantity": 5}]
        inbound_service.complete_inbound(confirmed_order.purchase_order_number, items, "clerk", now=RECEIVED_AT)

        with pytest.raises(InboundNotEligibleError):
            inbound_service.complete_inbound(confirmed_order.purchase_order_number, items, "clerk", now=RECEIVED_AT)

        assert db.session.query(PurchaseLedger).count() == 1
        assert _balance(supplier_a.id) == 500


class TestInboundValidation:

    def test_unknown_purchase_order(self, db_session):
        with pytest.raises(InboundNotFoundError) as exc_info:
            inbound_service.complete_inbound("PO-260301-404", [{"product_id": 1, "received_quantity": 1}], "clerk")
        assert exc_info.value.status_code == 404

    def test_placed_order_is_not_eligible(self, confirmed_order, tofu):
        purchase_order_service.update_status(confirmed_order.purchase_order_number, STATUS_PLACED)
        with pytest.raises(InboundNotEligibleError):
            inbound_service.complete_inbound(
                confirmed_order.purchase_order_number,
                [{"product_id": tofu.id, "received_quantity": 1}],
                "clerk",
            )

    @pytest.mark.parametrize("quantity", [-1, 1.5, "3", None, True])
    def test_invalid_quantity(self, confirmed_order, tofu, quantity):
        with pytest.raises(InvalidQuantityError) as exc_info:
            inbound_service.complete_inbound(
                confirmed_order.purchase_order_number,
                [{"product_id": tofu.id, "received_quantity": quantity}],
                "clerk",
            )
        assert exc_info.value.code == InboundErrorCode.INVALID_QUANTITY

    def test_non_positive_price(self, confirmed_order, tofu):
        with pytest.raises(MissingPriceError):
            inbound_service.complete_inbound(
                confirmed_order.purchase_order_number,
                [{"product_id": tofu.id, "received_quantity": 1, "inbound_unit_price": 0}],
                "clerk",
            )

    def test_no_price_anywhere(self, db_session, place_order, supplier_a):
        unpriced = Product(code="NEW-1", name="New item", category="daily_food", supplier_id=supplier_a.id, sale_price=500)
        db_session.add(unpriced)
        db_session.commit()
        cycle_service.reset(now=RESET)
        place_order([(unpriced, 2)], now=RESET + timedelta(minutes=1))
        agg = aggregation_service.aggregate_active_orders(now=RESET + timedelta(minutes=5)).categories["daily_food"].supplier(supplier_a.id)
        purchase_order = purchase_order_service.generate_purchase_order(
            agg, "daily_food", status=STATUS_CONFIRMED, now=RESET + timedelta(minutes=10),
        )
        assert purchase_order.lines[0].unit_price == 0

        with pytest.raises(MissingPriceError):
            inbound_service.complete_inbound(
                purchase_order.purchase_order_number,
                [{"product_id": unpriced.id, "received_quantity": 2}],
                "clerk",
            )

    def test_product_not_on_order_is_received(self, confirmed_order, tofu, sprouts, supplier_a):
        before = _balance(supplier_a.id)

        ledger = inbound_service.complete_inbound(
            confirmed_order.purchase_order_number,
            [
                {"product_id": tofu.id, "received_quantity": 5, "inbound_unit_price": 100},
                {"product_id": sprouts.id, "received_quantity": 2, "ordered_unit_price": 450},
            ],
            "clerk",
            now=RECEIVED_AT,
        )

        extra = next(line for line in ledger.lines if line.product_id == sprouts.id)
        assert (extra.product_code, extra.category, extra.line_total) == ("SPROUT-1K", "daily_food", 900)
        assert ledger.total_amount == 500 + 900
        assert _balance(supplier_a.id) - before == 1400
        assert db.session.get(Product, sprouts.id).purchase_price == 450

    def test_new_uncategorized_product_is_received(self, confirmed_order, tofu, supplier_a):
        pickles = Product(code="PICKLE-1", name="Pickles", sale_price=900)
        db.session.add(pickles)
        db.session.commit()

        ledger = inbound_service.complete_inbound(
            confirmed_order.purchase_order_number,
            [
                {"product_id": tofu.id, "received_quantity": 5},
                {"product_id": pickles.id, "received_quantity": 4, "inbound_unit_price": 300},
            ],
            "clerk",
            now=RECEIVED_AT,
        )

        extra = next(line for line in ledger.lines if line.product_id == pickles.id)
        assert (extra.product_name, extra.category, extra.line_total) == ("Pickles", "uncategorized", 1200)
        assert _balance(supplier_a.id) == ledger.total_amount

    def test_product_not_on_order_needs_a_price(self, confirmed_order, sprouts):
        with pytest.raises(MissingPriceError):
            inbound_service.complete_inbound(
                confirmed_order.purchase_order_number,
                [{"product_id": sprouts.id, "received_quantity": 1}],
                "clerk",
            )

    def test_unknown_product_rejected(self, confirmed_order):
        with pytest.raises(InboundError) as exc_info:
            inbound_service.complete_inbound(
                confirmed_order.purchase_order_number,
                [{"product_id": 999999, "received_quantity": 1, "inbound_unit_price": 100}],
                "clerk",
            )
        assert exc_info.value.code == InboundErrorCode.VALIDATION
        assert _balance(confirmed_order.supplier_id) == 0

    def test_received_by_required(self, confirmed_order, tofu):
        with pytest.raises(InboundError):
            inbound_service.complete_inbound(
                confirmed_order.purchase_order_number,
                [{"product_id": tofu.id, "received_quantity": 1}],
                "",
            )


class TestAtomicity:

    def test_failure_after_ledger_write_leaves_nothing_behind(self, confirmed_order, tofu, supplier_a, monkeypatch):
        before = _balance(supplier_a.id)

        def _boom(*args, **kwargs):
            raise RuntimeError("account store unavailable")

        monkeypatch.setattr(inbound_service, "_credit_supplier_account", _boom)

        with pytest.raises(RuntimeError):
            inbound_service.complete_inbound(
                confirmed_order.purchase_order_number,
                [{"product_id": tofu.id, "received_quantity": 5, "inbound_unit_price": 150}],
                "clerk",
                now=RECEIVED_AT,
            )

        db.session.expire_all()
        assert db.session.query(PurchaseLedger).count() == 0
        assert _balance(supplier_a.id) == before
        purchase_order = purchase_order_service.get_purchase_order(confirmed_order.purchase_order_number)
        assert purchase_order.status == STATUS_CONFIRMED
        assert purchase_order.purchase_ledger_id is None
        assert db.session.get(Product, tofu.id).purchase_price == 100


class TestLedgerImmutability:

    def test_written_ledger_cannot_be_updated(self, confirmed_order, tofu):
        ledger = inbound_service.complete_inbound(
            confirmed_order.purchase_order_number,
            [{"product_id": tofu.id, "received_quantity": 5}],
            "clerk",
            now=RECEIVED_AT,
        )

        ledger.total_amount = 1
        with pytest.raises(LedgerImmutableError):
            db.session.flush()
        db.session.rollback()

        assert inbound_service.get_purchase_ledger(ledger.purchase_ledger_number).total_amount == 500


class TestPendingInbound:

    def test_lists_confirmed_orders_in_cycle(self, confirmed_order, tofu):
        pending = inbound_service.list_pending_inbound(now=RESET + timedelta(hours=2))
        assert [p.purchase_order_number for p in pending] == [confirmed_order.purchase_order_number]

        inbound_service.complete_inbound(
            confirmed_order.purchase_order_number,
            [{"product_id": tofu.id, "received_quantity": 5}],
            "clerk",
            now=RECEIVED_AT,
        )
        assert inbound_service.list_pending_inbound(now=RECEIVED_AT) == []
