# Overview: Pytest coverage for sale order creation, classification, status changes and deletion.

from datetime import datetime, timedelta

import pytest

from ordercycle.extensions import db
from ordercycle.models import (
    SaleOrder,
    CUTOFF_AFTER,
    CUTOFF_WITHIN,
    STATUS_CONFIRMED,
    STATUS_PENDED,
    STATUS_PLACED,
    STATUS_REJECTED,
)
from ordercycle.services import cutoff_service, cycle_service, sale_order_service
from ordercycle.services.sale_order_service import (
    SaleOrderDeleteError,
    SaleOrderNotFoundError,
    SaleOrderValidationError,
)


RESET = datetime(2026, 3, 1, 9, 0)


class TestCreateSaleOrder:

    def test_priced_from_sale_price(self, db_session, place_order, tofu, rice):
        cycle_service.reset(now=RESET)
        order = place_order([(tofu, 3), (rice, 1)], now=RESET + timedelta(minutes=1))

        assert order.sale_order_number == "SO-260301-001"
        assert order.status == STATUS_PLACED
        assert order.item_count == 2
        assert order.final_amount == 3 * 2000 + 30000
        assert [line.line_total for line in order.lines] == [6000, 30000]

    def test_cutoff_status_follows_window(self, db_session, place_order, tofu):
        cutoff_service.open_window(now=RESET)
        within = place_order([(tofu, 1)], now=RESET + timedelta(minutes=1))
        cutoff_service.close_only("manager", now=RESET + timedelta(hours=1))
        after = place_order([(tofu, 1)], now=RESET + timedelta(hours=2))

        assert within.cutoff_status == CUTOFF_WITHIN
        assert after.cutoff_status == CUTOFF_AFTER

    def test_no_cutoff_status_without_watched_products(self, db_session, place_order, rice):
        cutoff_service.open_window(now=RESET)
        order = place_order([(rice, 1)], now=RESET + timedelta(minutes=1))
        assert order.cutoff_status is None

    def test_inactive_product_pends_order(self, db_session, place_order, tofu, soy_milk):
        soy_milk.is_active = False
        db_session.commit()

        order = place_order([(tofu, 1), (soy_milk, 1)], now=RESET)

        assert order.status == STATUS_PENDED
        assert order.pended_at == RESET
        assert "Soy milk" in order.pended_reason

    def test_unknown_product_rejected(self, db_session, customer):
        with pytest.raises(SaleOrderValidationError):
            sale_order_service.create_sale_order(
                customer_id=customer.id, items=[{"product_id": 999, "quantity": 1}],
            )
        assert db.session.query(SaleOrder).count() == 0

    def test_inactive_customer_rejected(self, db_session, customer, tofu):
        customer.is_active = False
        db_session.commit()
        with pytest.raises(SaleOrderValidationError):
            sale_order_service.create_sale_order(
                customer_id=customer.id, items=[{"product_id": tofu.id, "quantity": 1}],
            )

    @pytest.mark.parametrize("items", [
        [],
        [{"product_id": 1, "quantity": 0}],
        [{"product_id": "1", "quantity": 1}],
    ])
    def test_bad_items_rejected(self, db_session, customer, items):
        with pytest.raises(SaleOrderValidationError):
            sale_order_service.create_sale_order(customer_id=customer.id, items=items)

    def test_unknown_order_type_rejected(self, db_session, customer, tofu):
        with pytest.raises(SaleOrderValidationError):
            sale_order_service.create_sale_order(
                customer_id=customer.id, items=[{"product_id": tofu.id, "quantity": 1}], order_type="robot",
            )

    def test_staff_proxy_order(self, db_session, place_order, tofu):
        order = place_order([(tofu, 1)], now=RESET, order_type="staff_proxy")
        assert order.order_type == "staff_proxy"


class TestStatusChanges:

    def test_update_status(self, db_session, place_order, tofu):
        order = place_order([(tofu, 1)], now=RESET)
        when = RESET + timedelta(minutes=30)
        updated = sale_order_service.update_status(order.sale_order_number, STATUS_REJECTED, now=when)
        assert updated.status == STATUS_REJECTED
        assert updated.rejected_at == when

    def test_unknown_order(self, db_session):
        with pytest.raises(SaleOrderNotFoundError):
            sale_order_service.update_status("SO-260301-404", STATUS_CONFIRMED)

    def test_batch_reports_each_order(self, db_session, place_order, tofu):
        order = place_order([(tofu, 1)], now=RESET)
        results = sale_order_service.batch_update_status(
            [order.sale_order_number, "SO-260301-404"], STATUS_CONFIRMED, now=RESET,
        )
        assert [r.success for r in results] == [True, False]


class TestDeleteSaleOrder:

    def test_only_pended_orders_can_be_deleted(self, db_session, place_order, tofu):
        order = place_order([(tofu, 1)], now=RESET)
        with pytest.raises(SaleOrderDeleteError):
            sale_order_service.delete_sale_order(order.sale_order_number)

        sale_order_service.update_status(order.sale_order_number, STATUS_PENDED, reason="check stock")
        sale_order_service.delete_sale_order(order.sale_order_number)
        assert db.session.query(SaleOrder).count() == 0

    def test_within_cutoff_order_locked_after_close(self, db_session, place_order, tofu):
        cutoff_service.open_window(now=RESET)
        order = place_order([(tofu, 1)], now=RESET + timedelta(minutes=5))
        sale_order_service.update_status(order.sale_order_number, STATUS_PENDED)
        cutoff_service.close_only("manager", now=RESET + timedelta(hours=1))

        with pytest.raises(SaleOrderDeleteError) as exc_info:
            sale_order_service.delete_sale_order(order.sale_order_number)
        assert exc_info.value.status_code == 409
