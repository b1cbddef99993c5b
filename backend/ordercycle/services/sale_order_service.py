# Overview: Service-layer operations for customer sale orders; classification, status changes and deletion.

"""
Sale Order Service

CREATION:
- status / confirmation_status come from the order cycle, read inside the
  insert's unit of work (placed/regular before confirmation,
  confirmed/additional after it)
- an order naming an inactive product is kept, but as pended with a reason
- orders containing watched-category products are stamped with the cutoff
  window state: within-cutoff (open) or after-cutoff (closed)

DELETION:
Only pended orders can be deleted, and a within-cutoff order cannot be
deleted once the window has closed.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import (
    Customer,
    Product,
    SaleOrder,
    SaleOrderLine,
    CUTOFF_AFTER,
    CUTOFF_WITHIN,
    ORDER_STATUSES,
    ORDER_TYPE_CUSTOMER,
    ORDER_TYPE_STAFF_PROXY,
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_CONFIRMED,
    STATUS_PENDED,
    STATUS_REJECTED,
)
from . import cutoff_service, cycle_service
from .concurrency import lock_for_update, run_in_transaction
from .errors import ServiceError
from .sequence_service import NAMESPACE_SALE_ORDER, next_sequence_number
from ordercycle.time_utils import utcnow


ORDER_TYPES = {ORDER_TYPE_CUSTOMER, ORDER_TYPE_STAFF_PROXY}

STATUS_TIMESTAMPS = {
    STATUS_CONFIRMED: "confirmed_at",
    STATUS_PENDED: "pended_at",
    STATUS_REJECTED: "rejected_at",
    STATUS_COMPLETED: "completed_at",
    STATUS_CANCELLED: "cancelled_at",
}


class SaleOrderErrorCode(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    VALIDATION = "VALIDATION"
    INVALID_STATUS = "INVALID_STATUS"
    DELETE_FORBIDDEN = "DELETE_FORBIDDEN"


class SaleOrderError(ServiceError):
    """Raised for sale order operation errors."""
    pass


class SaleOrderValidationError(SaleOrderError):
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(SaleOrderErrorCode.VALIDATION, message, details)


class SaleOrderNotFoundError(SaleOrderError):
    status_code = 404

    def __init__(self, number: str):
        super().__init__(
            SaleOrderErrorCode.NOT_FOUND,
            f"Sale order not found: {number}",
            {"sale_order_number": number},
        )


class SaleOrderDeleteError(SaleOrderError):
    status_code = 409

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(SaleOrderErrorCode.DELETE_FORBIDDEN, message, details)


@dataclass
class StatusChangeResult:
    sale_order_number: str
    success: bool
    error: str | None = None

    def to_dict(self) -> dict:
        return {"sale_order_number": self.sale_order_number, "success": self.success, "error": self.error}


def _validate_items(items) -> list[tuple[int, int]]:
    if not items:
        raise SaleOrderValidationError("At least one item is required")
    parsed = []
    for index, item in enumerate(items):
        product_id = item.get("product_id")
        quantity = item.get("quantity")
        if isinstance(product_id, bool) or not isinstance(product_id, int):
            raise SaleOrderValidationError("product_id must be an integer", {"index": index})
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise SaleOrderValidationError("quantity must be an integer of at least 1", {"index": index})
        parsed.append((product_id, quantity))
    return parsed


def create_sale_order(
    *,
    customer_id: int,
    items: list[dict],
    order_type: str = ORDER_TYPE_CUSTOMER,
    created_by: str | None = None,
    now: datetime | None = None,
) -> SaleOrder:
    """
    Create a sale order priced at the products' sale prices.

    Args:
        customer_id: ordering customer
        items: [{"product_id": int, "quantity": int}, ...]
        order_type: customer or staff_proxy
        created_by: actor placing the order

    Raises:
        SaleOrderValidationError: bad input, unknown customer or product
    """
    if order_type not in ORDER_TYPES:
        raise SaleOrderValidationError(f"Invalid order_type: {order_type}")
    parsed = _validate_items(items)
    now = now or utcnow()
    watched = current_app.config["WATCHED_CATEGORY"]

    def _op() -> SaleOrder:
        customer = db.session.get(Customer, customer_id)
        if customer is None or not customer.is_active:
            raise SaleOrderValidationError(f"Customer {customer_id} not found", {"customer_id": customer_id})

        product_ids = {product_id for product_id, _ in parsed}
        products = {
            p.id: p for p in db.session.query(Product).filter(Product.id.in_(product_ids)).all()
        }
        missing = sorted(product_ids - set(products))
        if missing:
            raise SaleOrderValidationError("Unknown products", {"product_ids": missing})

        creation = cycle_service.get_order_creation_data(order_type, lock=True)
        cutoff_status = None
        if any(products[pid].category == watched for pid in product_ids):
            cutoff_status = CUTOFF_WITHIN if cutoff_service.is_within_cutoff() else CUTOFF_AFTER

        inactive = sorted(pid for pid in product_ids if not products[pid].is_active)
        status = creation.status
        pended_reason = None
        if inactive:
            status = STATUS_PENDED
            names = ", ".join(products[pid].name for pid in inactive)
            pended_reason = f"Unavailable products: {names}"

        number = next_sequence_number(NAMESPACE_SALE_ORDER, now=now)

        lines = []
        for product_id, quantity in parsed:
            product = products[product_id]
            lines.append(SaleOrderLine(
                product_id=product.id,
                product_name=product.name,
                specification=product.specification,
                quantity=quantity,
                unit_price=product.sale_price,
                line_total=quantity * product.sale_price,
            ))

        order = SaleOrder(
            sale_order_number=number,
            customer_id=customer.id,
            customer_name=customer.name,
            order_type=order_type,
            status=status,
            confirmation_status=creation.confirmation_status,
            cutoff_status=cutoff_status,
            pended_reason=pended_reason,
            final_amount=sum(line.line_total for line in lines),
            item_count=len(lines),
            placed_at=now,
            confirmed_at=now if status == STATUS_CONFIRMED else None,
            pended_at=now if status == STATUS_PENDED else None,
            created_by=created_by,
            lines=lines,
        )
        db.session.add(order)
        return order

    order = run_in_transaction(_op)
    if order.status == STATUS_PENDED:
        current_app.logger.info("Sale order %s pended: %s", order.sale_order_number, order.pended_reason)
    return order


def get_sale_order(number: str) -> SaleOrder:
    order = db.session.query(SaleOrder).filter_by(sale_order_number=number).first()
    if order is None:
        raise SaleOrderNotFoundError(number)
    return order


def list_sale_orders(
    *,
    status: str | None = None,
    customer_id: int | None = None,
    since: datetime | None = None,
    limit: int = 100,
    offset: int = 0,
):
    query = db.session.query(SaleOrder)
    if status:
        query = query.filter(SaleOrder.status == status)
    if customer_id:
        query = query.filter(SaleOrder.customer_id == customer_id)
    if since:
        query = query.filter(SaleOrder.placed_at >= since)

    total = query.count()
    items = (
        query.order_by(SaleOrder.placed_at.desc(), SaleOrder.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return items, total


def update_status(number: str, new_status: str, *, reason: str | None = None, now: datetime | None = None) -> SaleOrder:
    """Manual status override; stamps the matching timestamp."""
    if new_status not in ORDER_STATUSES:
        raise SaleOrderError(SaleOrderErrorCode.INVALID_STATUS, f"Unknown status: {new_status}", {"status": new_status})
    now = now or utcnow()

    def _op() -> SaleOrder:
        order = lock_for_update(db.session.query(SaleOrder).filter_by(sale_order_number=number)).first()
        if order is None:
            raise SaleOrderNotFoundError(number)
        order.status = new_status
        column = STATUS_TIMESTAMPS.get(new_status)
        if column:
            setattr(order, column, now)
        if new_status == STATUS_PENDED:
            order.pended_reason = reason
        return order

    return run_in_transaction(_op)


def batch_update_status(numbers: list[str], new_status: str, *, now: datetime | None = None) -> list[StatusChangeResult]:
    results = []
    for number in numbers:
        try:
            update_status(number, new_status, now=now)
            results.append(StatusChangeResult(number, True))
        except SaleOrderError as e:
            results.append(StatusChangeResult(number, False, str(e)))
        except (ServiceError, SQLAlchemyError) as e:
            db.session.rollback()
            current_app.logger.exception("Failed to update sale order %s", number)
            results.append(StatusChangeResult(number, False, str(e)))
    return results


def delete_sale_order(number: str) -> None:
    def _op():
        order = lock_for_update(db.session.query(SaleOrder).filter_by(sale_order_number=number)).first()
        if order is None:
            raise SaleOrderNotFoundError(number)
        if order.status != STATUS_PENDED:
            raise SaleOrderDeleteError(
                f"Only pended sale orders can be deleted (status: {order.status})",
                {"status": order.status},
            )
        if order.cutoff_status == CUTOFF_WITHIN and not cutoff_service.is_within_cutoff():
            raise SaleOrderDeleteError(
                "Within-cutoff orders cannot be deleted after the window has closed",
                {"cutoff_status": order.cutoff_status},
            )
        db.session.delete(order)

    run_in_transaction(_op)
