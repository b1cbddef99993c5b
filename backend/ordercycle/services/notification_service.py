# Overview: Service-layer dispatch of purchase order messages to supplier contacts.

"""
Notification Service

send_batch() walks purchase orders one at a time and each order's
recipients (primary, then secondary supplier contact) one at a time, with a
fixed pause between sends (SMS_SEND_INTERVAL_SECONDS).

Every outcome is stored on the purchase order (last_sms_sent_at,
sms_success) and per recipient in notification_logs. A failed recipient is
recorded, never raised. Status changes are left to the caller
(purchase_order_service.promote_notified).
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import NotificationLog, PurchaseOrder, Supplier
from .concurrency import lock_for_update, run_in_transaction
from .errors import ServiceError
from .messaging import MessageProvider, RecipientResult, get_message_provider, supplier_recipients
from ordercycle.time_utils import utcnow


@dataclass
class NotificationResult:
    purchase_order_number: str
    success: bool
    sent_count: int = 0
    success_count: int = 0
    error: str | None = None
    recipients: list[RecipientResult] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "purchase_order_number": self.purchase_order_number,
            "success": self.success,
            "sent_count": self.sent_count,
            "success_count": self.success_count,
            "error": self.error,
            "recipients": [r.to_dict() for r in self.recipients],
        }


@dataclass
class BatchNotificationResult:
    results: list[NotificationResult] = field(default_factory=list)

    @property
    def total_sent(self) -> int:
        return sum(r.sent_count for r in self.results)

    @property
    def total_success(self) -> int:
        return sum(r.success_count for r in self.results)

    def to_dict(self) -> dict:
        return {
            "total_sent": self.total_sent,
            "total_success": self.total_success,
            "results": [r.to_dict() for r in self.results],
        }


def render_purchase_order_message(purchase_order: PurchaseOrder) -> str:
    company = current_app.config.get("SMS_COMPANY_NAME") or "Daily Order"
    phone = current_app.config.get("SMS_COMPANY_PHONE")

    item_lines = []
    for line in purchase_order.lines:
        spec = f" ({line.specification})" if line.specification else ""
        item_lines.append(f"<{line.product_name}{spec}: {line.quantity:,}>")
    total_quantity = sum(line.quantity for line in purchase_order.lines)

    parts = [
        f"[{company} Purchase Order]",
        purchase_order.supplier_name,
        *item_lines,
        f"Total quantity: {total_quantity:,}",
        "",
        "Please confirm and reply.",
    ]
    if phone:
        parts.append(phone)
    return "\n".join(parts)


class _Throttle:
    """Fixed pause between consecutive sends across a whole batch."""

    def __init__(self, interval: float):
        self.interval = interval
        self._sent_before = False

    def wait(self):
        if self._sent_before and self.interval > 0:
            time.sleep(self.interval)
        self._sent_before = True


def _record_outcome(number: str, supplier_id: int, recipients, results: list[RecipientResult], success: bool, now: datetime) -> bool:
    """
    Stamp the send outcome on the purchase order and log every recipient.

    Returns False when the purchase order vanished mid-batch; the log rows
    are still written since the messages went out.
    """
    names = {r.phone: r.name for r in recipients}

    def _op() -> bool:
        purchase_order = lock_for_update(
            db.session.query(PurchaseOrder).filter_by(purchase_order_number=number)
        ).first()
        if purchase_order is not None:
            purchase_order.last_sms_sent_at = now
            purchase_order.sms_success = success
        for result in results:
            db.session.add(NotificationLog(
                purchase_order_number=number,
                supplier_id=supplier_id,
                recipient_name=names.get(result.phone),
                recipient_phone=result.phone,
                success=result.success,
                message_id=result.message_id,
                error=result.error,
                sent_at=now,
            ))
        return purchase_order is not None

    found = run_in_transaction(_op)
    if not found:
        current_app.logger.warning("Purchase order %s disappeared before its send outcome was recorded", number)
    return found


def _send_for_order(purchase_order: PurchaseOrder, provider: MessageProvider, throttle: _Throttle, now: datetime) -> NotificationResult:
    number = purchase_order.purchase_order_number
    supplier_id = purchase_order.supplier_id
    supplier = db.session.get(Supplier, supplier_id)
    recipients = supplier_recipients(supplier) if supplier else []

    result = NotificationResult(purchase_order_number=number, success=False)
    if not recipients:
        result.error = "Supplier has no valid contact number"
        _record_outcome(number, supplier_id, [], [], False, now)
        return result

    message = render_purchase_order_message(purchase_order)

    for recipient in recipients:
        throttle.wait()
        try:
            send_result = provider.send(message, [recipient])
            if send_result.results:
                outcome = send_result.results[0]
            else:
                outcome = RecipientResult(phone=recipient.phone, success=send_result.success)
        except Exception as exc:
            current_app.logger.exception("Message to %s for %s failed", recipient.phone, number)
            outcome = RecipientResult(phone=recipient.phone, success=False, error=str(exc))
        result.recipients.append(outcome)

    result.sent_count = len(result.recipients)
    result.success_count = sum(1 for r in result.recipients if r.success)
    result.success = result.sent_count > 0 and result.success_count == result.sent_count
    if not result.success:
        failed = result.sent_count - result.success_count
        result.error = f"{failed} of {result.sent_count} recipients failed"

    if not _record_outcome(number, supplier_id, recipients, result.recipients, result.success, now):
        result.success = False
        result.error = "Purchase order not found"
    return result


def send_batch(
    purchase_order_numbers: list[str],
    *,
    provider: MessageProvider | None = None,
    now: datetime | None = None,
) -> BatchNotificationResult:
    """Notify the supplier of each purchase order, sequentially."""
    provider = provider or get_message_provider()
    throttle = _Throttle(float(current_app.config.get("SMS_SEND_INTERVAL_SECONDS", 0.5)))
    batch = BatchNotificationResult()

    for number in purchase_order_numbers:
        sent_at = now or utcnow()
        purchase_order = db.session.query(PurchaseOrder).filter_by(purchase_order_number=number).first()
        if purchase_order is None:
            batch.results.append(NotificationResult(
                purchase_order_number=number, success=False, error="Purchase order not found",
            ))
            continue
        try:
            batch.results.append(_send_for_order(purchase_order, provider, throttle, sent_at))
        except (SQLAlchemyError, ServiceError) as e:
            db.session.rollback()
            current_app.logger.exception("Failed to record notification for %s", number)
            batch.results.append(NotificationResult(purchase_order_number=number, success=False, error=str(e)))

    current_app.logger.info(
        "Sent purchase order messages: %s/%s recipients succeeded",
        batch.total_success, batch.total_sent,
    )
    return batch
