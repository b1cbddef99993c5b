# Overview: Service-layer operations for supplier payable accounts and payments.

from __future__ import annotations

from datetime import datetime
from enum import Enum

from flask import current_app

from ..extensions import db
from ..models import Supplier, SupplierAccount, SupplierPayment
from .concurrency import lock_for_update, run_in_transaction
from .errors import ServiceError
from .sequence_service import NAMESPACE_SUPPLIER_PAYMENT, next_sequence_number
from ordercycle.time_utils import utcnow


PAYMENT_METHODS = {"cash", "transfer", "card", "other"}


class AccountErrorCode(str, Enum):
    ACCOUNT_NOT_FOUND = "ACCOUNT_NOT_FOUND"
    SUPPLIER_NOT_FOUND = "SUPPLIER_NOT_FOUND"
    INVALID_AMOUNT = "INVALID_AMOUNT"
    VALIDATION = "VALIDATION"


class SupplierAccountError(ServiceError):
    """Raised for supplier account and payment errors."""
    pass


class AccountNotFoundError(SupplierAccountError):
    status_code = 404

    def __init__(self, supplier_id):
        super().__init__(
            AccountErrorCode.ACCOUNT_NOT_FOUND,
            f"No account for supplier {supplier_id}",
            {"supplier_id": supplier_id},
        )


def get_supplier_account(supplier_id: int) -> SupplierAccount:
    account = db.session.query(SupplierAccount).filter_by(supplier_id=supplier_id).first()
    if account is None:
        raise AccountNotFoundError(supplier_id)
    return account


def list_supplier_accounts(*, with_balance_only: bool = False) -> list[SupplierAccount]:
    query = db.session.query(SupplierAccount)
    if with_balance_only:
        query = query.filter(SupplierAccount.current_balance != 0)
    return query.order_by(SupplierAccount.current_balance.desc(), SupplierAccount.supplier_id.asc()).all()


def record_payment(
    *,
    supplier_id: int,
    amount: int,
    payment_method: str,
    processed_by: str,
    paid_at: datetime | None = None,
    notes: str | None = None,
    now: datetime | None = None,
) -> SupplierPayment:
    """
    Pay a supplier: write the payment and reduce the account balance together.

    The account must already exist (it is created by the first inbound).
    """
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise SupplierAccountError(
            AccountErrorCode.INVALID_AMOUNT,
            "amount must be a positive integer",
            {"amount": amount},
        )
    if payment_method not in PAYMENT_METHODS:
        raise SupplierAccountError(
            AccountErrorCode.VALIDATION,
            f"payment_method must be one of: {', '.join(sorted(PAYMENT_METHODS))}",
            {"payment_method": payment_method},
        )
    if not processed_by:
        raise SupplierAccountError(AccountErrorCode.VALIDATION, "processed_by is required")

    now = now or utcnow()
    paid_at = paid_at or now

    def _op() -> SupplierPayment:
        supplier = db.session.get(Supplier, supplier_id)
        if supplier is None:
            raise SupplierAccountError(
                AccountErrorCode.SUPPLIER_NOT_FOUND,
                f"Supplier not found: {supplier_id}",
                {"supplier_id": supplier_id},
            )
        account = lock_for_update(
            db.session.query(SupplierAccount).filter_by(supplier_id=supplier_id)
        ).first()
        if account is None:
            raise AccountNotFoundError(supplier_id)

        number = next_sequence_number(NAMESPACE_SUPPLIER_PAYMENT, now=now)
        payment = SupplierPayment(
            payment_number=number,
            supplier_id=supplier.id,
            supplier_name=supplier.name,
            amount=amount,
            payment_method=payment_method,
            paid_at=paid_at,
            processed_by=processed_by,
            notes=notes,
        )
        db.session.add(payment)

        account.total_paid_amount = (account.total_paid_amount or 0) + amount
        account.current_balance = (account.current_balance or 0) - amount
        account.last_payment_date = paid_at
        return payment

    payment = run_in_transaction(_op)
    current_app.logger.info("Recorded %s for supplier %s: %s", payment.payment_number, supplier_id, amount)
    return payment


def list_payments(*, supplier_id: int | None = None, limit: int = 100, offset: int = 0):
    query = db.session.query(SupplierPayment)
    if supplier_id:
        query = query.filter(SupplierPayment.supplier_id == supplier_id)
    total = query.count()
    items = (
        query.order_by(SupplierPayment.paid_at.desc(), SupplierPayment.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return items, total
