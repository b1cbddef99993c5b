# Overview: Pytest coverage for supplier messaging and the confirm-on-success gate.

from datetime import datetime, timedelta

import httpx
import pytest
from sqlalchemy import delete

from ordercycle.extensions import db
from ordercycle.models import NotificationLog, PurchaseOrder, PurchaseOrderLine, STATUS_CONFIRMED, STATUS_PLACED
from ordercycle.services import aggregation_service, cycle_service, notification_service, purchase_order_service
from ordercycle.services.messaging import (
    HttpMessageProvider,
    Recipient,
    build_message_provider,
    normalize_mobile,
    supplier_recipients,
)


RESET = datetime(2026, 3, 1, 9, 0)
SENT_AT = datetime(2026, 3, 1, 11, 0)


@pytest.fixture
def purchase_order(db_session, place_order, tofu, soy_milk, supplier_a):
    cycle_service.reset(now=RESET)
    place_order([(tofu, 1200), (soy_milk, 3)], now=RESET + timedelta(minutes=5))
    summary = aggregation_service.aggregate_active_orders(now=RESET + timedelta(minutes=30))
    agg = summary.categories["daily_food"].supplier(supplier_a.id)
    return purchase_order_service.generate_purchase_order(agg, "daily_food", now=RESET + timedelta(hours=1))


def _send_and_promote(number):
    batch = notification_service.send_batch([number], now=SENT_AT)
    purchase_order_service.promote_notified(batch.results, now=SENT_AT)
    return batch.results[0]


class TestNotificationGate:

    def test_all_recipients_succeed_confirms_order(self, purchase_order, message_provider):
        number = purchase_order.purchase_order_number

        result = _send_and_promote(number)

        assert result.success is True
        assert (result.sent_count, result.success_count) == (2, 2)
        refreshed = purchase_order_service.get_purchase_order(number)
        assert refreshed.status == STATUS_CONFIRMED
        assert refreshed.sms_success is True
        assert refreshed.last_sms_sent_at == SENT_AT
        assert [phone for phone, _ in message_provider.sent] == ["01011112222", "01033334444"]

    def test_all_recipients_fail_keeps_order_placed(self, purchase_order, message_provider):
        message_provider.failing.update({"01011112222", "01033334444"})
        number = purchase_order.purchase_order_number

        result = _send_and_promote(number)

        assert result.success is False
        refreshed = purchase_order_service.get_purchase_order(number)
        assert refreshed.status == STATUS_PLACED
        assert refreshed.sms_success is False

    def test_one_failed_recipient_keeps_order_placed(self, purchase_order, message_provider):
        message_provider.failing.add("01033334444")
        number = purchase_order.purchase_order_number

        result = _send_and_promote(number)

        assert result.success is False
        assert (result.sent_count, result.success_count) == (2, 1)
        assert purchase_order_service.get_purchase_order(number).status == STATUS_PLACED

    def test_provider_exception_is_recorded_not_raised(self, purchase_order, message_provider):
        message_provider.raising.add("01011112222")
        number = purchase_order.purchase_order_number

        result = _send_and_promote(number)

        assert result.success is False
        assert result.recipients[0].error == "gateway unreachable"
        # Secondary contact still attempted
        assert len(message_provider.sent) == 2

    def test_supplier_without_contacts(self, purchase_order, supplier_a, message_provider):
        supplier_a.primary_contact_mobile = None
        supplier_a.secondary_contact_mobile = "not a phone"
        db.session.commit()

        result = _send_and_promote(purchase_order.purchase_order_number)

        assert result.success is False
        assert result.sent_count == 0
        assert message_provider.sent == []
        assert purchase_order_service.get_purchase_order(purchase_order.purchase_order_number).sms_success is False

    def test_logs_every_recipient(self, purchase_order, message_provider):
        message_provider.failing.add("01033334444")
        number = purchase_order.purchase_order_number

        _send_and_promote(number)

        logs = db.session.query(NotificationLog).filter_by(purchase_order_number=number).order_by(NotificationLog.id).all()
        assert [(log.recipient_phone, log.recipient_name, log.success) for log in logs] == [
            ("01011112222", "Park", True),
            ("01033334444", "Choi", False),
        ]

    def test_unknown_purchase_order_in_batch(self, db_session, message_provider):
        batch = notification_service.send_batch(["PO-260301-404"], now=SENT_AT)
        assert batch.results[0].success is False
        assert batch.results[0].error == "Purchase order not found"
        assert batch.total_sent == 0

    def test_purchase_order_removed_mid_batch(self, db_session, place_order, tofu, sprouts, message_provider, monkeypatch):
        cycle_service.reset(now=RESET)
        place_order([(tofu, 2), (sprouts, 4)], now=RESET + timedelta(minutes=5))
        numbers = cycle_service.confirm("manager", now=RESET + timedelta(hours=1)).purchase_order_numbers
        first = purchase_order_service.get_purchase_order(numbers[0])
        first_id = first.id
        send = message_provider.send

        def send_then_remove(message, recipients, options=None):
            if not message_provider.sent:
                db.session.execute(delete(PurchaseOrderLine).where(PurchaseOrderLine.purchase_order_id == first_id))
                db.session.execute(delete(PurchaseOrder).where(PurchaseOrder.id == first_id))
                db.session.commit()
            return send(message, recipients, options)

        monkeypatch.setattr(message_provider, "send", send_then_remove)

        batch = notification_service.send_batch(numbers, now=SENT_AT)

        assert len(batch.results) == 2
        assert batch.results[0].success is False
        assert batch.results[0].error == "Purchase order not found"
        assert batch.results[1].success is True
        assert purchase_order_service.get_purchase_order(numbers[1]).sms_success is True
        logged = db.session.query(NotificationLog).filter_by(purchase_order_number=numbers[0]).count()
        assert logged == batch.results[0].sent_count


class TestMessageRendering:

    def test_message_lists_lines_and_total(self, app, purchase_order):
        app.config["SMS_COMPANY_PHONE"] = "02-123-4567"
        try:
            message = notification_service.render_purchase_order_message(purchase_order)
        finally:
            app.config["SMS_COMPANY_PHONE"] = ""

        lines = message.split("\n")
        assert lines[0] == "[Daily Order Purchase Order]"
        assert lines[1] == "Sunrise Tofu"
        assert "<Tofu (300g): 1,200>" in lines
        assert "<Soy milk (1L): 3>" in lines
        assert "Total quantity: 1,203" in lines
        assert lines[-1] == "02-123-4567"


class TestRecipients:

    @pytest.mark.parametrize("raw, expected", [
        ("010-1234-5678", "01012345678"),
        ("+82 10 1234 5678", "01012345678"),
        ("011.234.5678", "0112345678"),
        ("02-123-4567", None),
        ("", None),
        (None, None),
    ])
    def test_normalize_mobile(self, raw, expected):
        assert normalize_mobile(raw) == expected

    def test_duplicate_contacts_are_messaged_once(self, supplier_a):
        supplier_a.secondary_contact_mobile = "+82-10-1111-2222"
        recipients = supplier_recipients(supplier_a)
        assert [r.phone for r in recipients] == ["01011112222"]


class TestProviders:

    def test_http_provider_posts_each_recipient(self, app):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"message_id": f"m-{len(requests)}"})

        client = httpx.Client(transport=httpx.MockTransport(handler))
        provider = HttpMessageProvider("https://sms.example.test/send", api_key="k", sender="0212345678", client=client)

        result = provider.send("hello", [Recipient("01011112222"), Recipient("01033334444")])

        assert result.success is True
        assert [r.message_id for r in result.results] == ["m-1", "m-2"]
        assert requests[0].headers["Authorization"] == "Bearer k"

    def test_http_provider_failure_is_per_recipient(self, app):
        def handler(request):
            if b"01033334444" in request.content:
                return httpx.Response(500, json={"error": "boom"})
            return httpx.Response(200, json={"id": "ok"})

        client = httpx.Client(transport=httpx.MockTransport(handler))
        provider = HttpMessageProvider("https://sms.example.test/send", client=client)

        result = provider.send("hello", [Recipient("01011112222"), Recipient("01033334444")])

        assert result.success is False
        assert (result.success_count, result.failure_count) == (1, 1)
        assert result.results[1].error

    def test_http_provider_requires_url(self):
        with pytest.raises(ValueError):
            build_message_provider({"SMS_PROVIDER": "http"})

    def test_unknown_provider_kind(self):
        with pytest.raises(ValueError):
            build_message_provider({"SMS_PROVIDER": "pigeon"})
