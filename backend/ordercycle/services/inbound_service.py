# Overview: Service-layer inbound reconciliation; turns a received purchase order into an immutable ledger and a balance increase.

"""
Inbound Service

complete_inbound() is the only writer of purchase ledgers. In ONE unit of work:
1. read: purchase order, products on the received lines, supplier account
2. allocate the ledger number
3. set each product's reference purchase price to the received unit price
4. write the ledger with resolved product code and category per line,
   including delivered products that were never ordered
5. mark the purchase order completed, pointing at the ledger
6. add the ledger total to the supplier account (created on first receipt)

Reads all come before writes; nothing from steps 4-6 is visible unless all
of them commit.

Only confirmed purchase orders can be received. A completed order is no
longer eligible, which is what stops a second reconciliation of the same
order.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import (
    Product,
    PurchaseLedger,
    PurchaseLedgerLine,
    PurchaseOrder,
    Supplier,
    SupplierAccount,
    STATUS_COMPLETED,
    STATUS_CONFIRMED,
)
from . import cycle_service
from .concurrency import lock_for_update, run_in_transaction
from .errors import ServiceError
from .sequence_service import NAMESPACE_PURCHASE_LEDGER, next_sequence_number
from ordercycle.time_utils import utcnow


UNKNOWN_PRODUCT_CODE = "UNKNOWN"
UNCATEGORIZED = "uncategorized"

INBOUND_ELIGIBLE_STATUSES = (STATUS_CONFIRMED,)


class InboundErrorCode(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    NOT_ELIGIBLE = "NOT_ELIGIBLE"
    VALIDATION = "VALIDATION"
    INVALID_QUANTITY = "INVALID_QUANTITY"
    MISSING_PRICE = "MISSING_PRICE"
    INTERNAL = "INTERNAL"


class InboundError(ServiceError):
    """Raised for inbound reconciliation errors."""
    pass


class InvalidQuantityError(InboundError):
    def __init__(self, product_id, quantity):
        super().__init__(
            InboundErrorCode.INVALID_QUANTITY,
            f"Received quantity for product {product_id} must be an integer of at least 0",
            {"product_id": product_id, "received_quantity": quantity},
        )


class MissingPriceError(InboundError):
    def __init__(self, product_id, price):
        super().__init__(
            InboundErrorCode.MISSING_PRICE,
            f"Unit price for product {product_id} must be greater than 0",
            {"product_id": product_id, "unit_price": price},
        )


class InboundNotFoundError(InboundError):
    status_code = 404

    def __init__(self, number: str):
        super().__init__(
            InboundErrorCode.NOT_FOUND,
            f"Purchase order not found: {number}",
            {"purchase_order_number": number},
        )


class InboundNotEligibleError(InboundError):
    status_code = 409

    def __init__(self, number: str, status: str):
        super().__init__(
            InboundErrorCode.NOT_ELIGIBLE,
            f"Purchase order {number} cannot be received in status {status}",
            {"purchase_order_number": number, "status": status},
        )


class LedgerNotFoundError(InboundError):
    status_code = 404

    def __init__(self, number: str):
        super().__init__(
            InboundErrorCode.NOT_FOUND,
            f"Purchase ledger not found: {number}",
            {"purchase_ledger_number": number},
        )


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _first(*values):
    return next((v for v in values if v), None)


def _resolve_items(purchase_order: PurchaseOrder, items: list[dict]) -> list[dict]:
    """
    Validate received items against the order; returns
    [{"product_id": int, "line": PurchaseOrderLine | None, "quantity": int, "unit_price": int}, ...].

    Products that were not ordered are accepted (delivered extras and new
    products) as long as the product exists and a price is given.
    """
    if not items:
        raise InboundError(InboundErrorCode.VALIDATION, "At least one received item is required")

    lines_by_product = {line.product_id: line for line in purchase_order.lines}
    extra_ids = {item.get("product_id") for item in items} - set(lines_by_product)
    known_extras = set()
    if extra_ids:
        known_extras = {
            product_id
            for (product_id,) in db.session.query(Product.id).filter(Product.id.in_(extra_ids)).all()
        }

    resolved = []
    seen = set()
    for item in items:
        product_id = item.get("product_id")
        line = lines_by_product.get(product_id)
        if line is None and product_id not in known_extras:
            raise InboundError(
                InboundErrorCode.VALIDATION,
                f"Product {product_id} does not exist",
                {"product_id": product_id},
            )
        if product_id in seen:
            raise InboundError(
                InboundErrorCode.VALIDATION,
                f"Product {product_id} is listed more than once",
                {"product_id": product_id},
            )
        seen.add(product_id)

        quantity = item.get("received_quantity")
        if not _is_int(quantity) or quantity < 0:
            raise InvalidQuantityError(product_id, quantity)

        # Operator-entered price wins, then the price quoted at inspection, then the ordered price
        price = item.get("inbound_unit_price")
        if price is None:
            price = item.get("ordered_unit_price")
        if price is None and line is not None:
            price = line.unit_price
        if not _is_int(price) or price <= 0:
            raise MissingPriceError(product_id, price)

        resolved.append({"product_id": product_id, "line": line, "quantity": quantity, "unit_price": price})
    return resolved


def _credit_supplier_account(
    account: SupplierAccount | None,
    purchase_order: PurchaseOrder,
    supplier: Supplier | None,
    amount: int,
    now: datetime,
) -> SupplierAccount:
    if account is None:
        account = SupplierAccount(
            supplier_id=purchase_order.supplier_id,
            supplier_name=supplier.name if supplier else purchase_order.supplier_name,
            supplier_business_number=supplier.business_number if supplier else None,
            total_purchase_amount=0,
            total_paid_amount=0,
            current_balance=0,
            transaction_count=0,
        )
        db.session.add(account)
    account.total_purchase_amount = (account.total_purchase_amount or 0) + amount
    account.current_balance = (account.current_balance or 0) + amount
    account.transaction_count = (account.transaction_count or 0) + 1
    account.last_purchase_date = now
    return account


def complete_inbound(
    purchase_order_number: str,
    items: list[dict],
    received_by: str,
    *,
    notes: str | None = None,
    now: datetime | None = None,
) -> PurchaseLedger:
    """
    Reconcile a delivery against its purchase order.

    Args:
        purchase_order_number: e.g. "PO-260301-001"
        items: [{"product_id", "received_quantity", "inbound_unit_price"?, "ordered_unit_price"?}, ...];
            products missing from the order are written to the ledger too
        received_by: actor inspecting the delivery

    Raises:
        InboundNotFoundError, InboundNotEligibleError, InvalidQuantityError,
        MissingPriceError, InboundError (VALIDATION / INTERNAL)
    """
    if not received_by:
        raise InboundError(InboundErrorCode.VALIDATION, "received_by is required")
    now = now or utcnow()

    # Loaded outside the unit of work for validation only
    purchase_order = db.session.query(PurchaseOrder).filter_by(purchase_order_number=purchase_order_number).first()
    if purchase_order is None:
        raise InboundNotFoundError(purchase_order_number)
    if purchase_order.status not in INBOUND_ELIGIBLE_STATUSES:
        raise InboundNotEligibleError(purchase_order_number, purchase_order.status)

    resolved = [
        {"product_id": r["product_id"], "quantity": r["quantity"], "unit_price": r["unit_price"]}
        for r in _resolve_items(purchase_order, items)
    ]
    product_ids = [r["product_id"] for r in resolved]

    def _op() -> PurchaseLedger:
        # Reads
        order = lock_for_update(
            db.session.query(PurchaseOrder).filter_by(purchase_order_number=purchase_order_number)
        ).one()
        if order.status not in INBOUND_ELIGIBLE_STATUSES:
            raise InboundNotEligibleError(purchase_order_number, order.status)
        order_lines = {line.product_id: line for line in order.lines}
        products = {
            p.id: p
            for p in lock_for_update(db.session.query(Product).filter(Product.id.in_(product_ids))).all()
        }
        account = lock_for_update(
            db.session.query(SupplierAccount).filter_by(supplier_id=order.supplier_id)
        ).first()
        supplier = db.session.get(Supplier, order.supplier_id)

        # Writes
        ledger_number = next_sequence_number(NAMESPACE_PURCHASE_LEDGER, now=now)

        ledger_lines = []
        for item in resolved:
            order_line = order_lines.get(item["product_id"])
            product = products.get(item["product_id"])
            if product is None and order_line is None:
                raise InboundError(
                    InboundErrorCode.VALIDATION,
                    f"Product {item['product_id']} does not exist",
                    {"product_id": item["product_id"]},
                )
            if product is not None:
                product.purchase_price = item["unit_price"]
            ledger_lines.append(PurchaseLedgerLine(
                product_id=item["product_id"],
                product_code=_first(product and product.code, order_line and order_line.product_code) or UNKNOWN_PRODUCT_CODE,
                product_name=_first(product and product.name, order_line and order_line.product_name),
                specification=_first(order_line and order_line.specification, product and product.specification),
                category=_first(product and product.category, order_line and order_line.category) or UNCATEGORIZED,
                quantity=item["quantity"],
                unit_price=item["unit_price"],
                line_total=item["quantity"] * item["unit_price"],
            ))
        total_amount = sum(line.line_total for line in ledger_lines)

        ledger = PurchaseLedger(
            purchase_ledger_number=ledger_number,
            purchase_order_id=order.id,
            purchase_order_number=order.purchase_order_number,
            supplier_id=order.supplier_id,
            supplier_name=supplier.name if supplier else order.supplier_name,
            supplier_business_number=supplier.business_number if supplier else None,
            category=order.category,
            total_amount=total_amount,
            item_count=len(ledger_lines),
            received_at=now,
            received_by=received_by,
            notes=notes,
            lines=ledger_lines,
        )
        db.session.add(ledger)
        db.session.flush()

        order.status = STATUS_COMPLETED
        order.completed_at = now
        order.purchase_ledger_id = ledger.id
        order.purchase_ledger_number = ledger_number

        _credit_supplier_account(account, order, supplier, total_amount, now)
        return ledger

    try:
        ledger = run_in_transaction(_op)
    except SQLAlchemyError as e:
        current_app.logger.exception("Inbound reconciliation failed for %s", purchase_order_number)
        raise InboundError(
            InboundErrorCode.INTERNAL,
            f"Inbound reconciliation failed for {purchase_order_number}",
            {"cause": str(e)},
        ) from e

    current_app.logger.info(
        "Received %s into %s (total %s)",
        purchase_order_number, ledger.purchase_ledger_number, ledger.total_amount,
    )
    return ledger


def list_pending_inbound(*, since: datetime | None = None, category: str | None = None, now: datetime | None = None) -> list[PurchaseOrder]:
    """Confirmed purchase orders placed since `since` (default: the cycle's reset_at)."""
    if since is None:
        since = cycle_service.get_status(now=now).reset_at
    query = (
        db.session.query(PurchaseOrder)
        .filter(PurchaseOrder.status.in_(INBOUND_ELIGIBLE_STATUSES))
        .filter(PurchaseOrder.placed_at >= since)
    )
    if category:
        query = query.filter(PurchaseOrder.category == category)
    return query.order_by(PurchaseOrder.placed_at.asc(), PurchaseOrder.id.asc()).all()


def get_purchase_ledger(number: str) -> PurchaseLedger:
    ledger = db.session.query(PurchaseLedger).filter_by(purchase_ledger_number=number).first()
    if ledger is None:
        raise LedgerNotFoundError(number)
    return ledger


def list_purchase_ledgers(*, supplier_id: int | None = None, limit: int = 100, offset: int = 0):
    query = db.session.query(PurchaseLedger)
    if supplier_id:
        query = query.filter(PurchaseLedger.supplier_id == supplier_id)
    total = query.count()
    items = (
        query.order_by(PurchaseLedger.received_at.desc(), PurchaseLedger.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return items, total
