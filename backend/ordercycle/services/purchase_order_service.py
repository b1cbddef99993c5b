# Overview: Service-layer operations for supplier purchase orders generated from the cycle aggregation.

"""
Purchase Order Service

One purchase order per supplier and category, built 1:1 from the
aggregated per-product totals.

DUPLICATE GUARD:
When the cycle has been confirmed, a purchase order for the same supplier
and category placed within +/- DUPLICATE_WINDOW_SECONDS of the cycle's
last_confirmed_at is treated as already generated. This is a time-window
heuristic, not a strict idempotency key.

BATCHES:
generate_batch() and promote_notified() process items one at a time and
report a result per item; one failing supplier never stops the others.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import (
    PurchaseOrder,
    PurchaseOrderLine,
    Supplier,
    CONFIRMATION_ADDITIONAL,
    CONFIRMATION_REGULAR,
    ORDER_STATUSES,
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_CONFIRMED,
    STATUS_PENDED,
    STATUS_PLACED,
    STATUS_REJECTED,
)
from . import cycle_service
from .concurrency import lock_for_update, run_in_transaction
from .errors import ServiceError
from .sequence_service import NAMESPACE_PURCHASE_ORDER, next_sequence_number
from ordercycle.time_utils import utcnow


GENERATABLE_STATUSES = (STATUS_PLACED, STATUS_CONFIRMED)

# Manual status changes stamp the matching timestamp column
STATUS_TIMESTAMPS = {
    STATUS_CONFIRMED: "confirmed_at",
    STATUS_PENDED: "pended_at",
    STATUS_REJECTED: "rejected_at",
    STATUS_COMPLETED: "completed_at",
    STATUS_CANCELLED: "cancelled_at",
}


class PurchaseOrderErrorCode(str, Enum):
    DUPLICATE_PURCHASE_ORDER = "DUPLICATE_PURCHASE_ORDER"
    SUPPLIER_NOT_FOUND = "SUPPLIER_NOT_FOUND"
    NOT_FOUND = "NOT_FOUND"
    INVALID_STATUS = "INVALID_STATUS"
    INVALID_QUANTITY = "INVALID_QUANTITY"
    EMPTY_ORDER = "EMPTY_ORDER"
    INTERNAL = "INTERNAL"


class PurchaseOrderError(ServiceError):
    """Raised for purchase order operation errors."""
    pass


class DuplicatePurchaseOrderError(PurchaseOrderError):
    status_code = 409

    def __init__(self, existing_number: str):
        super().__init__(
            PurchaseOrderErrorCode.DUPLICATE_PURCHASE_ORDER,
            f"Purchase order already generated: {existing_number}",
            {"existing_purchase_order_number": existing_number},
        )
        self.existing_number = existing_number


class SupplierNotFoundError(PurchaseOrderError):
    status_code = 404

    def __init__(self, supplier_id):
        super().__init__(
            PurchaseOrderErrorCode.SUPPLIER_NOT_FOUND,
            f"Supplier not found: {supplier_id}",
            {"supplier_id": supplier_id},
        )


class PurchaseOrderNotFoundError(PurchaseOrderError):
    status_code = 404

    def __init__(self, number: str):
        super().__init__(
            PurchaseOrderErrorCode.NOT_FOUND,
            f"Purchase order not found: {number}",
            {"purchase_order_number": number},
        )


class PurchaseOrderStatusError(PurchaseOrderError):
    status_code = 409

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(PurchaseOrderErrorCode.INVALID_STATUS, message, details)


@dataclass
class GenerationResult:
    supplier_id: int
    supplier_name: str
    success: bool
    purchase_order_number: str | None = None
    error_code: str | None = None
    error: str | None = None
    existing_purchase_order_number: str | None = None

    def to_dict(self) -> dict:
        return {
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier_name,
            "success": self.success,
            "purchase_order_number": self.purchase_order_number,
            "error_code": self.error_code,
            "error": self.error,
            "existing_purchase_order_number": self.existing_purchase_order_number,
        }


@dataclass
class PromotionResult:
    purchase_order_number: str
    promoted: bool
    error: str | None = None

    def to_dict(self) -> dict:
        return {
            "purchase_order_number": self.purchase_order_number,
            "promoted": self.promoted,
            "error": self.error,
        }


def find_recent_duplicate(supplier_id: int, category: str, last_confirmed_at: datetime) -> PurchaseOrder | None:
    window = timedelta(seconds=current_app.config.get("DUPLICATE_WINDOW_SECONDS", 60))
    return (
        db.session.query(PurchaseOrder)
        .filter(PurchaseOrder.supplier_id == supplier_id)
        .filter(PurchaseOrder.category == category)
        .filter(PurchaseOrder.placed_at >= last_confirmed_at - window)
        .filter(PurchaseOrder.placed_at <= last_confirmed_at + window)
        .order_by(PurchaseOrder.placed_at.asc(), PurchaseOrder.id.asc())
        .first()
    )


def generate_purchase_order(
    supplier_agg,
    category: str,
    *,
    status: str = STATUS_PLACED,
    confirmation_status: str | None = None,
    actor: str = "system",
    now: datetime | None = None,
) -> PurchaseOrder:
    """
    Persist one purchase order from a SupplierAggregation.

    Raises:
        DuplicatePurchaseOrderError: one already exists in the confirmation window
        SupplierNotFoundError: the supplier row is gone
        PurchaseOrderStatusError: status is not placed/confirmed

    confirmation_status defaults to the cycle state (additional once the
    cycle is confirmed); cycle confirmation passes regular for its own batch.
    """
    if status not in GENERATABLE_STATUSES:
        raise PurchaseOrderStatusError(
            f"Purchase orders are generated as placed or confirmed, not {status}",
            {"status": status},
        )
    if not supplier_agg.products:
        raise PurchaseOrderError(
            PurchaseOrderErrorCode.EMPTY_ORDER,
            f"No products to order from supplier {supplier_agg.supplier_id}",
            {"supplier_id": supplier_agg.supplier_id},
        )

    now = now or utcnow()
    cycle = cycle_service.get_status(now=now)

    if cycle.last_confirmed_at is not None:
        existing = find_recent_duplicate(supplier_agg.supplier_id, category, cycle.last_confirmed_at)
        if existing is not None:
            raise DuplicatePurchaseOrderError(existing.purchase_order_number)

    if confirmation_status is None:
        confirmation_status = CONFIRMATION_ADDITIONAL if cycle.is_confirmed else CONFIRMATION_REGULAR

    def _op() -> PurchaseOrder:
        supplier = db.session.get(Supplier, supplier_agg.supplier_id)
        if supplier is None:
            raise SupplierNotFoundError(supplier_agg.supplier_id)

        number = next_sequence_number(NAMESPACE_PURCHASE_ORDER, now=now)

        lines = [
            PurchaseOrderLine(
                product_id=p.product_id,
                product_code=p.product_code,
                product_name=p.product_name,
                specification=p.specification,
                category=p.category,
                quantity=p.total_quantity,
                unit_price=p.unit_price,
                line_total=p.total_quantity * p.unit_price,
            )
            for p in supplier_agg.products
        ]

        purchase_order = PurchaseOrder(
            purchase_order_number=number,
            supplier_id=supplier.id,
            supplier_name=supplier.name,
            category=category,
            status=status,
            confirmation_status=confirmation_status,
            item_count=len(lines),
            total_quantity=sum(line.quantity for line in lines),
            total_amount=sum(line.line_total for line in lines),
            placed_at=now,
            confirmed_at=now if status == STATUS_CONFIRMED else None,
            created_by=actor,
            lines=lines,
        )
        db.session.add(purchase_order)
        return purchase_order

    purchase_order = run_in_transaction(_op)
    current_app.logger.info(
        "Generated %s for supplier %s (%s lines)",
        purchase_order.purchase_order_number, supplier_agg.supplier_id, purchase_order.item_count,
    )
    return purchase_order


def generate_batch(
    suppliers,
    category: str,
    *,
    status: str = STATUS_PLACED,
    confirmation_status: str | None = None,
    actor: str = "system",
    now: datetime | None = None,
) -> list[GenerationResult]:
    """Generate one purchase order per supplier aggregation, in order."""
    results = []
    for supplier_agg in suppliers:
        result = GenerationResult(
            supplier_id=supplier_agg.supplier_id,
            supplier_name=supplier_agg.supplier_name,
            success=False,
        )
        try:
            purchase_order = generate_purchase_order(
                supplier_agg, category, status=status, confirmation_status=confirmation_status, actor=actor, now=now,
            )
            result.success = True
            result.purchase_order_number = purchase_order.purchase_order_number
        except DuplicatePurchaseOrderError as e:
            current_app.logger.info("Skipped supplier %s: %s", supplier_agg.supplier_id, e)
            result.error_code = e.code.value
            result.error = str(e)
            result.existing_purchase_order_number = e.existing_number
        except ServiceError as e:
            current_app.logger.warning("Skipped supplier %s: %s", supplier_agg.supplier_id, e)
            result.error_code = e.code.value
            result.error = str(e)
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.exception("Failed to generate purchase order for supplier %s", supplier_agg.supplier_id)
            result.error_code = PurchaseOrderErrorCode.INTERNAL.value
            result.error = str(e)
        results.append(result)
    return results


def get_purchase_order(number: str) -> PurchaseOrder:
    purchase_order = db.session.query(PurchaseOrder).filter_by(purchase_order_number=number).first()
    if purchase_order is None:
        raise PurchaseOrderNotFoundError(number)
    return purchase_order


def list_purchase_orders(
    *,
    status: str | None = None,
    category: str | None = None,
    supplier_id: int | None = None,
    since: datetime | None = None,
    limit: int = 100,
    offset: int = 0,
):
    query = db.session.query(PurchaseOrder)
    if status:
        query = query.filter(PurchaseOrder.status == status)
    if category:
        query = query.filter(PurchaseOrder.category == category)
    if supplier_id:
        query = query.filter(PurchaseOrder.supplier_id == supplier_id)
    if since:
        query = query.filter(PurchaseOrder.placed_at >= since)

    total = query.count()
    items = (
        query.order_by(PurchaseOrder.placed_at.desc(), PurchaseOrder.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return items, total


def update_status(number: str, new_status: str, *, now: datetime | None = None) -> PurchaseOrder:
    """
    Manually move a purchase order to `new_status`, stamping its timestamp.

    completed is reserved for inbound reconciliation, and a completed order
    no longer changes.
    """
    if new_status not in ORDER_STATUSES:
        raise PurchaseOrderStatusError(f"Unknown status: {new_status}", {"status": new_status})
    if new_status == STATUS_COMPLETED:
        raise PurchaseOrderStatusError(
            "Purchase orders are completed through inbound reconciliation",
            {"status": new_status},
        )
    now = now or utcnow()

    def _op() -> PurchaseOrder:
        purchase_order = lock_for_update(
            db.session.query(PurchaseOrder).filter_by(purchase_order_number=number)
        ).first()
        if purchase_order is None:
            raise PurchaseOrderNotFoundError(number)
        if purchase_order.status == STATUS_COMPLETED:
            raise PurchaseOrderStatusError(
                f"Purchase order {number} is already completed",
                {"status": purchase_order.status},
            )
        purchase_order.status = new_status
        column = STATUS_TIMESTAMPS.get(new_status)
        if column:
            setattr(purchase_order, column, now)
        return purchase_order

    return run_in_transaction(_op)


def promote_notified(notification_results, *, now: datetime | None = None) -> list[PromotionResult]:
    """
    placed -> confirmed for every purchase order whose notification succeeded.

    Orders in any other status, or with a failed send, are left alone.
    """
    promotions = []
    for result in notification_results:
        if not result.success:
            continue
        number = result.purchase_order_number
        try:
            purchase_order = get_purchase_order(number)
            if purchase_order.status != STATUS_PLACED:
                promotions.append(PromotionResult(number, False, f"status is {purchase_order.status}"))
                continue
            update_status(number, STATUS_CONFIRMED, now=now)
            promotions.append(PromotionResult(number, True))
        except (ServiceError, SQLAlchemyError) as e:
            db.session.rollback()
            current_app.logger.exception("Failed to confirm notified purchase order %s", number)
            promotions.append(PromotionResult(number, False, str(e)))
    return promotions


def update_line_quantity(number: str, product_id: int, quantity) -> PurchaseOrder:
    """Change one line's quantity while the order is still placed."""
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise PurchaseOrderError(
            PurchaseOrderErrorCode.INVALID_QUANTITY,
            "quantity must be an integer of at least 1",
            {"quantity": quantity},
        )

    def _op() -> PurchaseOrder:
        purchase_order = lock_for_update(
            db.session.query(PurchaseOrder).filter_by(purchase_order_number=number)
        ).first()
        if purchase_order is None:
            raise PurchaseOrderNotFoundError(number)
        if purchase_order.status != STATUS_PLACED:
            raise PurchaseOrderStatusError(
                f"Only placed purchase orders can be edited (status: {purchase_order.status})",
                {"status": purchase_order.status},
            )
        line = next((l for l in purchase_order.lines if l.product_id == product_id), None)
        if line is None:
            raise PurchaseOrderError(
                PurchaseOrderErrorCode.NOT_FOUND,
                f"Product {product_id} is not on purchase order {number}",
                {"product_id": product_id},
            )
        line.quantity = quantity
        line.line_total = quantity * line.unit_price
        purchase_order.total_quantity = sum(l.quantity for l in purchase_order.lines)
        purchase_order.total_amount = sum(l.line_total for l in purchase_order.lines)
        return purchase_order

    return run_in_transaction(_op)
