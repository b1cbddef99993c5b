# Overview: Service-layer helpers for optimistic transactions, retries and row locking.

from __future__ import annotations

import random
import time

from flask import current_app, has_app_context
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from .errors import TransactionConflictError


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def _retry_settings(attempts, backoff_base):
    if has_app_context():
        if attempts is None:
            attempts = current_app.config.get("TRANSACTION_RETRY_ATTEMPTS", 3)
        if backoff_base is None:
            backoff_base = current_app.config.get("TRANSACTION_RETRY_BACKOFF", 0.1)
    return max(1, attempts or 3), (0.1 if backoff_base is None else backoff_base)


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts) with jittered exponential backoff. Once
    the attempts are used up the conflict surfaces as TransactionConflictError.
    """
    attempts, backoff_base = _retry_settings(attempts, backoff_base)
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise TransactionConflictError(details={"attempts": attempts, "cause": str(exc)}) from exc
            if has_app_context():
                current_app.logger.warning(
                    "Transaction conflict (attempt %s/%s): %s", attempt + 1, attempts, exc
                )
            time.sleep(backoff_base * (2 ** attempt) * random.uniform(0.5, 1.5))


def run_in_transaction(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Run `func` as one unit of work: its reads and writes commit together.

    Any exception rolls the whole unit back; conflicts re-run it from the
    start, so `func` must re-read everything it depends on.
    """
    def _op():
        try:
            result = func()
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return result
    return run_with_retry(_op, attempts=attempts, backoff_base=backoff_base)
