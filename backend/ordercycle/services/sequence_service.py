# Overview: Service-layer operations for daily document numbers (PO/PL/SO/SP).

from __future__ import annotations

from datetime import datetime

from sqlalchemy import case, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..models import LastCounter
from .concurrency import run_in_transaction
from ordercycle.time_utils import business_date_code, utcnow


# Counter namespaces and their document prefixes
NAMESPACE_PURCHASE_ORDER = "purchase_order"
NAMESPACE_PURCHASE_LEDGER = "purchase_ledger"
NAMESPACE_SALE_ORDER = "sale_order"
NAMESPACE_SUPPLIER_PAYMENT = "supplier_payment"

PREFIXES = {
    NAMESPACE_PURCHASE_ORDER: "PO",
    NAMESPACE_PURCHASE_LEDGER: "PL",
    NAMESPACE_SALE_ORDER: "SO",
    NAMESPACE_SUPPLIER_PAYMENT: "SP",
}

NUMBER_PAD = 3


def format_sequence_number(prefix: str, date_code: str, number: int) -> str:
    """PREFIX-YYMMDD-NNN; grows past three digits instead of failing."""
    return f"{prefix}-{date_code}-{number:0{NUMBER_PAD}d}"


def _bump_counter(namespace: str, date_code: str) -> int | None:
    """
    Increment the counter in one UPDATE (restarting at 1 on a new date_code)
    and read it back. None when the namespace has no row yet.

    The UPDATE takes the row's write lock, so the read that follows sees
    this transaction's value and concurrent writers queue behind it instead
    of failing a version check.
    """
    table = LastCounter.__table__
    result = db.session.execute(
        update(table)
        .where(table.c.namespace == namespace)
        .values(
            last_number=case((table.c.date_code == date_code, table.c.last_number + 1), else_=1),
            date_code=date_code,
            version_id=table.c.version_id + 1,
        )
    )
    if result.rowcount == 0:
        return None
    return db.session.execute(
        select(table.c.last_number).where(table.c.namespace == namespace)
    ).scalar_one()


def next_sequence_number(namespace: str, *, now: datetime | None = None) -> str:
    """
    Allocate the next number in `namespace` for the business day of `now`.

    Must run inside the caller's unit of work (see run_in_transaction): the
    counter change is not committed here, so the number commits together
    with the document it names.
    """
    prefix = PREFIXES.get(namespace)
    if prefix is None:
        raise ValueError(f"Unknown sequence namespace: {namespace}")

    date_code = business_date_code(now or utcnow())

    number = _bump_counter(namespace, date_code)
    if number is None:
        db.session.add(LastCounter(namespace=namespace, last_number=1, date_code=date_code))
        try:
            db.session.flush()
        except IntegrityError as exc:
            # Another writer created the row first; re-run the whole unit of work
            raise StaleDataError(f"Counter {namespace} was created concurrently") from exc
        number = 1

    return format_sequence_number(prefix, date_code, number)


def allocate_sequence_number(namespace: str, *, now: datetime | None = None) -> str:
    """Allocate a number in its own unit of work (no document attached)."""
    return run_in_transaction(lambda: next_sequence_number(namespace, now=now))


def peek_counter(namespace: str) -> LastCounter | None:
    return db.session.query(LastCounter).filter_by(namespace=namespace).first()
