# Overview: Service-layer operations for the watched-category cutoff window (open, close, close-only).

"""
Cutoff Service

While the window is open, new sale orders with watched-category products
are stamped within-cutoff; while closed, after-cutoff.

close() is the end of the window:
1. aggregate active watched-category orders placed since opened_at
2. generate one purchase order per supplier (best effort each)
3. message each supplier
4. confirm every purchase order whose message went through
5. flip the window to closed

Purchase orders created in step 2 stay even if a later step fails.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from flask import current_app

from ..extensions import db
from ..models import CutoffWindow, SINGLETON_ID
from . import aggregation_service, notification_service, purchase_order_service
from .concurrency import lock_for_update, run_in_transaction
from .errors import ServiceError
from ordercycle.time_utils import business_today_start, to_utc_z, utcnow


STATUS_OPEN = "open"
STATUS_CLOSED = "closed"


class CutoffErrorCode(str, Enum):
    ALREADY_CLOSED = "ALREADY_CLOSED"


class CutoffError(ServiceError):
    """Raised for cutoff window operation errors."""
    pass


class AlreadyClosedError(CutoffError):
    status_code = 409

    def __init__(self):
        super().__init__(CutoffErrorCode.ALREADY_CLOSED, "Cutoff window is already closed")


@dataclass
class CutoffInfo:
    status: str
    opened_at: datetime | None = None
    closed_at: datetime | None = None
    closed_by: str | None = None
    persisted: bool = False

    @property
    def is_open(self) -> bool:
        return self.status == STATUS_OPEN

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "opened_at": to_utc_z(self.opened_at),
            "closed_at": to_utc_z(self.closed_at),
            "closed_by": self.closed_by,
            "persisted": self.persisted,
        }


@dataclass
class CutoffCloseResult:
    aggregated_order_count: int = 0
    purchase_order_numbers: list[str] = field(default_factory=list)
    generation_results: list = field(default_factory=list)
    notification: notification_service.BatchNotificationResult | None = None
    promotions: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "aggregated_order_count": self.aggregated_order_count,
            "purchase_order_numbers": self.purchase_order_numbers,
            "generation_results": [r.to_dict() for r in self.generation_results],
            "notification": self.notification.to_dict() if self.notification else None,
            "promotions": [p.to_dict() for p in self.promotions],
        }


def _locked_window() -> CutoffWindow | None:
    return lock_for_update(db.session.query(CutoffWindow).filter_by(id=SINGLETON_ID)).first()


def get_info(*, now: datetime | None = None) -> CutoffInfo:
    """Current window; a missing row reads as closed since start of day."""
    window = db.session.get(CutoffWindow, SINGLETON_ID)
    if window is None:
        return CutoffInfo(status=STATUS_CLOSED, opened_at=business_today_start(now))
    return CutoffInfo(
        status=window.status,
        opened_at=window.opened_at,
        closed_at=window.closed_at,
        closed_by=window.closed_by,
        persisted=True,
    )


def is_within_cutoff() -> bool:
    return get_info().is_open


def open_window(*, now: datetime | None = None) -> CutoffInfo:
    """Open the window. Re-opening an open window moves opened_at to now."""
    now = now or utcnow()

    def _op():
        window = _locked_window()
        if window is None:
            window = CutoffWindow(id=SINGLETON_ID)
            db.session.add(window)
        window.status = STATUS_OPEN
        window.opened_at = now

    run_in_transaction(_op)
    current_app.logger.info("Cutoff window opened at %s", to_utc_z(now))
    return get_info(now=now)


def _flip_closed(actor: str, now: datetime):
    """Closed-state flip; AlreadyClosedError if another close got there first."""
    def _op():
        window = _locked_window()
        if window is None:
            window = CutoffWindow(id=SINGLETON_ID, opened_at=business_today_start(now))
            db.session.add(window)
        elif window.status == STATUS_CLOSED:
            raise AlreadyClosedError()
        window.status = STATUS_CLOSED
        window.closed_at = now
        window.closed_by = actor

    run_in_transaction(_op)


def close_only(actor: str, *, now: datetime | None = None) -> CutoffInfo:
    """Close without aggregating or generating anything."""
    now = now or utcnow()
    if not get_info(now=now).is_open:
        raise AlreadyClosedError()
    _flip_closed(actor, now)
    current_app.logger.info("Cutoff window closed (status only) by %s", actor)
    return get_info(now=now)


def close_window(actor: str, *, now: datetime | None = None) -> CutoffCloseResult:
    """Close the window and turn its watched-category demand into purchase orders."""
    now = now or utcnow()
    info = get_info(now=now)
    if not info.is_open:
        raise AlreadyClosedError()

    category = current_app.config["WATCHED_CATEGORY"]
    summary = aggregation_service.aggregate_active_orders(since=info.opened_at, category=category, now=now)
    category_agg = summary.categories.get(category)
    suppliers = category_agg.suppliers if category_agg else []

    result = CutoffCloseResult()
    if not suppliers:
        _flip_closed(actor, now)
        current_app.logger.info("Cutoff window closed by %s: nothing to aggregate", actor)
        return result

    result.aggregated_order_count = sum(p.order_count for s in suppliers for p in s.products)
    result.generation_results = purchase_order_service.generate_batch(
        suppliers, category, actor=actor, now=now
    )
    result.purchase_order_numbers = [
        r.purchase_order_number for r in result.generation_results if r.purchase_order_number
    ]

    result.notification = notification_service.send_batch(result.purchase_order_numbers, now=now)
    result.promotions = purchase_order_service.promote_notified(result.notification.results, now=now)

    _flip_closed(actor, now)
    current_app.logger.info(
        "Cutoff window closed by %s: %s purchase orders, %s confirmed",
        actor, len(result.purchase_order_numbers), sum(1 for p in result.promotions if p.promoted),
    )
    return result
