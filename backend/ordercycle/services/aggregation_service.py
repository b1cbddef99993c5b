# Overview: Service-layer aggregation of sale order lines into category -> supplier -> product totals.

"""
Aggregation Service

Rolls the current cycle's sale orders up into the demand that purchase
orders are generated from.

ALGORITHM (one pass over the lines):
1. Resolve every distinct product referenced by the orders (category, supplier).
2. Resolve every distinct supplier (display name, message recipients).
3. Walk each line once and bucket it by category -> supplier -> product.
4. Sort each category's suppliers by descending amount (stable on ties).

Lines whose product is missing, or has no category or supplier, are skipped
and logged. Totals per supplier always equal the sum of the lines that were
bucketed under it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from flask import current_app
from sqlalchemy.orm import selectinload

from ..extensions import db
from ..models import (
    Product,
    SaleOrder,
    Supplier,
    ACTIVE_SALE_STATUSES,
    CONFIRMATION_ADDITIONAL,
    STATUS_CONFIRMED,
    STATUS_PENDED,
    STATUS_PLACED,
)
from . import cycle_service
from .messaging import Recipient, supplier_recipients
from ordercycle.time_utils import to_utc_z

UNKNOWN_SUPPLIER_NAME = "Unknown supplier"


@dataclass
class ProductAggregation:
    product_id: int
    product_code: str | None
    product_name: str
    specification: str | None
    category: str
    # Reference purchase price at aggregation time (0 when unknown)
    unit_price: int
    total_quantity: int = 0
    total_amount: int = 0
    placed_quantity: int = 0
    confirmed_quantity: int = 0
    order_count: int = 0

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_code": self.product_code,
            "product_name": self.product_name,
            "specification": self.specification,
            "category": self.category,
            "unit_price": self.unit_price,
            "total_quantity": self.total_quantity,
            "total_amount": self.total_amount,
            "placed_quantity": self.placed_quantity,
            "confirmed_quantity": self.confirmed_quantity,
            "order_count": self.order_count,
        }


@dataclass
class SupplierAggregation:
    supplier_id: int
    supplier_name: str
    recipients: list[Recipient] = field(default_factory=list)
    products: list[ProductAggregation] = field(default_factory=list)
    total_quantity: int = 0
    total_amount: int = 0
    placed_quantity: int = 0
    confirmed_quantity: int = 0

    def product(self, product_id: int) -> ProductAggregation | None:
        for agg in self.products:
            if agg.product_id == product_id:
                return agg
        return None

    def to_dict(self) -> dict:
        return {
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier_name,
            "recipients": [r.to_dict() for r in self.recipients],
            "products": [p.to_dict() for p in self.products],
            "total_quantity": self.total_quantity,
            "total_amount": self.total_amount,
            "placed_quantity": self.placed_quantity,
            "confirmed_quantity": self.confirmed_quantity,
        }


@dataclass
class CategoryAggregation:
    category: str
    total_lines: int = 0
    total_amount: int = 0
    suppliers: list[SupplierAggregation] = field(default_factory=list)

    def supplier(self, supplier_id: int) -> SupplierAggregation | None:
        for agg in self.suppliers:
            if agg.supplier_id == supplier_id:
                return agg
        return None

    @property
    def total_quantity(self) -> int:
        return sum(s.total_quantity for s in self.suppliers)

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            "total_lines": self.total_lines,
            "total_amount": self.total_amount,
            "total_quantity": self.total_quantity,
            "suppliers": [s.to_dict() for s in self.suppliers],
        }


@dataclass
class StatusTotals:
    count: int = 0
    amount: int = 0
    quantity: int = 0

    def to_dict(self) -> dict:
        return {"count": self.count, "amount": self.amount, "quantity": self.quantity}


@dataclass
class AggregationSummary:
    since: datetime
    categories: dict[str, CategoryAggregation]
    regular: StatusTotals
    additional: StatusTotals
    pended: StatusTotals
    order_count: int

    def to_dict(self) -> dict:
        return {
            "since": to_utc_z(self.since),
            "order_count": self.order_count,
            "totals": {
                "regular": self.regular.to_dict(),
                "additional": self.additional.to_dict(),
                "pended": self.pended.to_dict(),
            },
            "categories": {k: v.to_dict() for k, v in self.categories.items()},
        }


def _resolve_products(product_ids: set[int]) -> dict[int, Product]:
    if not product_ids:
        return {}
    rows = db.session.query(Product).filter(Product.id.in_(product_ids)).all()
    return {p.id: p for p in rows}


def _resolve_suppliers(supplier_ids: set[int]) -> dict[int, Supplier]:
    if not supplier_ids:
        return {}
    rows = db.session.query(Supplier).filter(Supplier.id.in_(supplier_ids)).all()
    return {s.id: s for s in rows}


def aggregate_orders(orders: list[SaleOrder], *, category: str | None = None) -> dict[str, CategoryAggregation]:
    """
    Bucket the lines of `orders` by category -> supplier -> product.

    `category` restricts the result to that one category.
    """
    product_ids = {line.product_id for order in orders for line in order.lines}
    products = _resolve_products(product_ids)
    suppliers = _resolve_suppliers({p.supplier_id for p in products.values() if p.supplier_id})

    categories: dict[str, CategoryAggregation] = {}

    for order in orders:
        for line in order.lines:
            product = products.get(line.product_id)
            if product is None:
                current_app.logger.warning(
                    "Aggregation skipped line %s of %s: product %s not found",
                    line.id, order.sale_order_number, line.product_id,
                )
                continue
            if not product.category or not product.supplier_id:
                current_app.logger.warning(
                    "Aggregation skipped line %s of %s: product %s has no category or supplier",
                    line.id, order.sale_order_number, product.id,
                )
                continue
            if category is not None and product.category != category:
                continue

            category_agg = categories.get(product.category)
            if category_agg is None:
                category_agg = CategoryAggregation(category=product.category)
                categories[product.category] = category_agg
            category_agg.total_lines += 1
            category_agg.total_amount += line.line_total

            supplier_agg = category_agg.supplier(product.supplier_id)
            if supplier_agg is None:
                supplier = suppliers.get(product.supplier_id)
                supplier_agg = SupplierAggregation(
                    supplier_id=product.supplier_id,
                    supplier_name=supplier.name if supplier else UNKNOWN_SUPPLIER_NAME,
                    recipients=supplier_recipients(supplier) if supplier else [],
                )
                category_agg.suppliers.append(supplier_agg)

            product_agg = supplier_agg.product(product.id)
            if product_agg is None:
                product_agg = ProductAggregation(
                    product_id=product.id,
                    product_code=product.code,
                    product_name=line.product_name,
                    specification=line.specification,
                    category=product.category,
                    unit_price=product.purchase_price or 0,
                )
                supplier_agg.products.append(product_agg)

            product_agg.total_quantity += line.quantity
            product_agg.total_amount += line.line_total
            product_agg.order_count += 1
            supplier_agg.total_quantity += line.quantity
            supplier_agg.total_amount += line.line_total

            # Pended orders count towards demand but are not yet placed
            if order.status in (STATUS_PLACED, STATUS_CONFIRMED):
                product_agg.placed_quantity += line.quantity
                supplier_agg.placed_quantity += line.quantity
            if order.status == STATUS_CONFIRMED:
                product_agg.confirmed_quantity += line.quantity
                supplier_agg.confirmed_quantity += line.quantity

    for category_agg in categories.values():
        # list.sort is stable, ties keep encounter order
        category_agg.suppliers.sort(key=lambda s: s.total_amount, reverse=True)

    return categories


def get_active_orders(since: datetime, statuses=ACTIVE_SALE_STATUSES) -> list[SaleOrder]:
    return (
        db.session.query(SaleOrder)
        .options(selectinload(SaleOrder.lines))
        .filter(SaleOrder.status.in_(statuses))
        .filter(SaleOrder.placed_at >= since)
        .order_by(SaleOrder.placed_at.asc(), SaleOrder.id.asc())
        .all()
    )


def aggregate_active_orders(
    *,
    since: datetime | None = None,
    category: str | None = None,
    now: datetime | None = None,
) -> AggregationSummary:
    """
    Aggregate the active (placed, confirmed, pended) orders placed since
    `since`, which defaults to the cycle's reset_at.
    """
    if since is None:
        since = cycle_service.get_status(now=now).reset_at

    orders = get_active_orders(since)

    regular = StatusTotals()
    additional = StatusTotals()
    pended = StatusTotals()
    for order in orders:
        if order.status == STATUS_PENDED:
            bucket = pended
        elif order.confirmation_status == CONFIRMATION_ADDITIONAL:
            bucket = additional
        else:
            bucket = regular
        bucket.count += 1
        bucket.amount += order.final_amount
        bucket.quantity += sum(line.quantity for line in order.lines)

    return AggregationSummary(
        since=since,
        categories=aggregate_orders(orders, category=category),
        regular=regular,
        additional=additional,
        pended=pended,
        order_count=len(orders),
    )


def get_product_order_details(product_id: int, *, since: datetime | None = None, now: datetime | None = None) -> dict:
    """Per-order breakdown of one product's demand in the current cycle, newest first."""
    if since is None:
        since = cycle_service.get_status(now=now).reset_at

    product = db.session.get(Product, product_id)
    entries = []
    total_quantity = 0
    total_amount = 0
    product_name = product.name if product else None
    specification = product.specification if product else None

    for order in get_active_orders(since):
        for line in order.lines:
            if line.product_id != product_id:
                continue
            product_name = line.product_name
            specification = line.specification
            entries.append({
                "sale_order_number": order.sale_order_number,
                "customer_name": order.customer_name,
                "quantity": line.quantity,
                "unit_price": line.unit_price,
                "line_total": line.line_total,
                "placed_at": order.placed_at,
                "status": order.status,
            })
            total_quantity += line.quantity
            total_amount += line.line_total

    entries.sort(key=lambda e: e["placed_at"], reverse=True)
    for entry in entries:
        entry["placed_at"] = to_utc_z(entry["placed_at"])

    return {
        "product_id": product_id,
        "product_name": product_name,
        "specification": specification,
        "orders": entries,
        "total_quantity": total_quantity,
        "total_amount": total_amount,
    }
