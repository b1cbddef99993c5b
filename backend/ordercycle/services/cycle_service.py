# Overview: Service-layer operations for the daily order cycle (confirm, reset, order classification).

"""
Order Cycle Service

The cycle splits each business day's sale orders in two:
- regular: placed after the last reset and before the cycle is confirmed
- additional: placed after confirmation; confirmed immediately on creation

confirm() converts the regular demand into purchase orders; reset() starts
the next cycle and is the only thing that moves the aggregation lower bound.
Confirmation schedules an automatic reset AUTO_RESET_HOURS later.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import (
    OrderCycle,
    SaleOrder,
    SINGLETON_ID,
    CONFIRMATION_ADDITIONAL,
    CONFIRMATION_REGULAR,
    ORDER_TYPE_CUSTOMER,
    STATUS_CONFIRMED,
    STATUS_PLACED,
)
from .concurrency import lock_for_update, run_in_transaction
from .errors import ServiceError
from ordercycle.time_utils import business_today_start, to_utc_z, utcnow


CONFIRM_CHUNK_SIZE = 200


@dataclass
class CycleStatus:
    reset_at: datetime
    is_confirmed: bool = False
    last_confirmed_at: datetime | None = None
    auto_reset_scheduled_at: datetime | None = None
    confirmed_by: str | None = None
    persisted: bool = False

    def to_dict(self) -> dict:
        return {
            "reset_at": to_utc_z(self.reset_at),
            "is_confirmed": self.is_confirmed,
            "last_confirmed_at": to_utc_z(self.last_confirmed_at),
            "auto_reset_scheduled_at": to_utc_z(self.auto_reset_scheduled_at),
            "confirmed_by": self.confirmed_by,
            "persisted": self.persisted,
        }


@dataclass
class OrderCreationData:
    status: str
    confirmation_status: str
    order_type: str


@dataclass
class CycleConfirmResult:
    confirmed_at: datetime
    reset_at: datetime
    already_confirmed: bool
    confirmed_order_count: int
    failed_order_count: int
    generation_results: list = field(default_factory=list)
    generation_error: str | None = None

    @property
    def purchase_order_numbers(self) -> list[str]:
        return [r.purchase_order_number for r in self.generation_results if r.purchase_order_number]

    def to_dict(self) -> dict:
        return {
            "confirmed_at": to_utc_z(self.confirmed_at),
            "reset_at": to_utc_z(self.reset_at),
            "already_confirmed": self.already_confirmed,
            "confirmed_order_count": self.confirmed_order_count,
            "failed_order_count": self.failed_order_count,
            "purchase_order_numbers": self.purchase_order_numbers,
            "generation_results": [r.to_dict() for r in self.generation_results],
            "generation_error": self.generation_error,
        }


def _status_from_row(cycle: OrderCycle) -> CycleStatus:
    return CycleStatus(
        reset_at=cycle.reset_at,
        is_confirmed=bool(cycle.is_confirmed),
        last_confirmed_at=cycle.last_confirmed_at,
        auto_reset_scheduled_at=cycle.auto_reset_scheduled_at,
        confirmed_by=cycle.confirmed_by,
        persisted=True,
    )


def _locked_cycle() -> OrderCycle | None:
    return lock_for_update(db.session.query(OrderCycle).filter_by(id=SINGLETON_ID)).first()


def get_status(*, now: datetime | None = None) -> CycleStatus:
    """
    Current cycle state. Never raises: a missing or unreadable row falls back
    to an unconfirmed cycle starting at the beginning of the business day.
    """
    try:
        cycle = db.session.get(OrderCycle, SINGLETON_ID)
    except SQLAlchemyError:
        current_app.logger.exception("Failed to read order cycle; using start of day")
        db.session.rollback()
        cycle = None

    if cycle is None:
        return CycleStatus(reset_at=business_today_start(now))
    return _status_from_row(cycle)


def get_order_creation_data(order_type: str = ORDER_TYPE_CUSTOMER, *, lock: bool = False) -> OrderCreationData:
    """
    Status and confirmation bucket for a sale order being created now.

    Call with lock=True from inside the order insert's unit of work so the
    classification and the insert see the same cycle state.
    """
    if lock:
        cycle = _locked_cycle()
        is_confirmed = bool(cycle and cycle.is_confirmed)
    else:
        is_confirmed = get_status().is_confirmed

    if is_confirmed:
        return OrderCreationData(STATUS_CONFIRMED, CONFIRMATION_ADDITIONAL, order_type)
    return OrderCreationData(STATUS_PLACED, CONFIRMATION_REGULAR, order_type)


def _placed_regular_order_ids(reset_at: datetime, now: datetime) -> list[int]:
    rows = (
        db.session.query(SaleOrder.id)
        .filter(SaleOrder.status == STATUS_PLACED)
        .filter(SaleOrder.placed_at >= reset_at, SaleOrder.placed_at <= now)
        .filter(or_(
            SaleOrder.confirmation_status == CONFIRMATION_REGULAR,
            SaleOrder.confirmation_status.is_(None),
        ))
        .order_by(SaleOrder.id.asc())
        .all()
    )
    return [row[0] for row in rows]


def _confirm_orders(order_ids: list[int], now: datetime) -> int:
    def _op():
        orders = (
            db.session.query(SaleOrder)
            .filter(SaleOrder.id.in_(order_ids))
            .filter(SaleOrder.status == STATUS_PLACED)
            .all()
        )
        for order in orders:
            order.status = STATUS_CONFIRMED
            order.confirmed_at = now
            if order.confirmation_status is None:
                order.confirmation_status = CONFIRMATION_REGULAR
        return len(orders)
    return run_in_transaction(_op)


def _generate_purchase_orders(reset_at: datetime, actor: str, now: datetime):
    from . import aggregation_service, purchase_order_service

    category = current_app.config["WATCHED_CATEGORY"]
    summary = aggregation_service.aggregate_active_orders(since=reset_at, category=category, now=now)
    category_agg = summary.categories.get(category)
    if category_agg is None:
        return []
    suppliers = [s for s in category_agg.suppliers if s.placed_quantity > 0]
    # The cycle is already flagged confirmed here; these are still its regular orders
    return purchase_order_service.generate_batch(
        suppliers, category, confirmation_status=CONFIRMATION_REGULAR, actor=actor, now=now,
    )


def confirm(actor: str, *, now: datetime | None = None) -> CycleConfirmResult:
    """
    Confirm the current cycle.

    1. Under the cycle row lock, keep reset_at (first ever confirmation
       starts it at start of day), flag the cycle confirmed and schedule the
       auto reset. If another confirmation got there first its stamps are
       kept. From this commit on, new sale orders are confirmed/additional.
    2. Move placed regular orders since reset_at to confirmed, chunk by chunk.
    3. Generate watched-category purchase orders for suppliers with placed
       demand. Failures are logged and reported, never raised.
    """
    now = now or utcnow()
    auto_reset_at = now + timedelta(hours=current_app.config.get("AUTO_RESET_HOURS", 17))

    def _claim_confirmation():
        cycle = _locked_cycle()
        if cycle is None:
            cycle = OrderCycle(id=SINGLETON_ID, reset_at=business_today_start(now), is_confirmed=False)
            db.session.add(cycle)
        if cycle.is_confirmed:
            return cycle.reset_at, True
        cycle.is_confirmed = True
        cycle.last_confirmed_at = now
        cycle.auto_reset_scheduled_at = auto_reset_at
        cycle.confirmed_by = actor
        return cycle.reset_at, False

    reset_at, already_confirmed = run_in_transaction(_claim_confirmation)

    confirmed_count = 0
    failed_count = 0
    order_ids = _placed_regular_order_ids(reset_at, now)
    for start in range(0, len(order_ids), CONFIRM_CHUNK_SIZE):
        chunk = order_ids[start:start + CONFIRM_CHUNK_SIZE]
        try:
            confirmed_count += _confirm_orders(chunk, now)
        except (SQLAlchemyError, ServiceError):
            current_app.logger.exception("Failed to confirm %s sale orders", len(chunk))
            failed_count += len(chunk)

    generation_results = []
    generation_error = None
    try:
        generation_results = _generate_purchase_orders(reset_at, actor, now)
    except (SQLAlchemyError, ServiceError) as exc:
        db.session.rollback()
        current_app.logger.exception("Purchase order generation failed during cycle confirmation")
        generation_error = str(exc)

    current_app.logger.info(
        "Cycle confirmed by %s: %s orders confirmed, %s purchase orders",
        actor, confirmed_count, sum(1 for r in generation_results if r.purchase_order_number),
    )

    return CycleConfirmResult(
        confirmed_at=now,
        reset_at=reset_at,
        already_confirmed=already_confirmed,
        confirmed_order_count=confirmed_count,
        failed_order_count=failed_count,
        generation_results=generation_results,
        generation_error=generation_error,
    )


def reset(*, now: datetime | None = None) -> CycleStatus:
    """Start a new cycle at `now` and clear the confirmation."""
    now = now or utcnow()

    def _op():
        cycle = _locked_cycle()
        if cycle is None:
            cycle = OrderCycle(id=SINGLETON_ID)
            db.session.add(cycle)
        cycle.reset_at = now
        cycle.is_confirmed = False
        cycle.last_confirmed_at = None
        cycle.auto_reset_scheduled_at = None
        cycle.confirmed_by = None
        return cycle

    cycle = run_in_transaction(_op)
    current_app.logger.info("Order cycle reset at %s", to_utc_z(now))
    return _status_from_row(cycle)


def run_scheduled_reset(*, now: datetime | None = None) -> bool:
    """Reset the cycle when its scheduled auto reset time has passed."""
    now = now or utcnow()
    status = get_status(now=now)
    if not status.is_confirmed or status.auto_reset_scheduled_at is None:
        return False
    if status.auto_reset_scheduled_at > now:
        return False
    reset(now=now)
    return True
