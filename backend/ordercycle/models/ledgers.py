from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.orm import object_session

from ..extensions import db
from ordercycle.time_utils import to_utc_z


class LedgerImmutableError(Exception):
    """Raised when a flush tries to modify a written purchase ledger."""
    pass


# =============================================================================
# PURCHASE LEDGER (append-only)
# =============================================================================

class PurchaseLedger(db.Model):
    """
    Record of what was actually received from a supplier and at what price.

    Written once by inbound reconciliation, in the same transaction as the
    supplier account increment. Never updated afterwards.
    """
    __tablename__ = "purchase_ledgers"
    __table_args__ = (
        db.Index("ix_purchase_ledgers_supplier_received", "supplier_id", "received_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable number (e.g., "PL-260301-001")
    purchase_ledger_number = db.Column(db.String(32), nullable=False, unique=True, index=True)

    purchase_order_id = db.Column(db.Integer, db.ForeignKey("purchase_orders.id"), nullable=False, index=True)
    purchase_order_number = db.Column(db.String(32), nullable=False)

    # Supplier snapshot
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)
    supplier_name = db.Column(db.String(255), nullable=False)
    supplier_business_number = db.Column(db.String(32), nullable=True)

    category = db.Column(db.String(64), nullable=True)
    total_amount = db.Column(db.Integer, nullable=False)
    item_count = db.Column(db.Integer, nullable=False, default=0)

    received_at = db.Column(db.DateTime(timezone=True), nullable=False)
    received_by = db.Column(db.String(128), nullable=False)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    lines = db.relationship(
        "PurchaseLedgerLine",
        backref="purchase_ledger",
        lazy=True,
        cascade="all",
        order_by="PurchaseLedgerLine.id",
    )

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "purchase_ledger_number": self.purchase_ledger_number,
            "purchase_order_id": self.purchase_order_id,
            "purchase_order_number": self.purchase_order_number,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier_name,
            "supplier_business_number": self.supplier_business_number,
            "category": self.category,
            "total_amount": self.total_amount,
            "item_count": self.item_count,
            "received_at": to_utc_z(self.received_at),
            "received_by": self.received_by,
            "notes": self.notes,
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class PurchaseLedgerLine(db.Model):
    __tablename__ = "purchase_ledger_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    purchase_ledger_id = db.Column(db.Integer, db.ForeignKey("purchase_ledgers.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    # Resolved at receipt time: "UNKNOWN" / "uncategorized" when the product has none
    product_code = db.Column(db.String(64), nullable=False)
    product_name = db.Column(db.String(255), nullable=False)
    specification = db.Column(db.String(255), nullable=True)
    category = db.Column(db.String(64), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Integer, nullable=False)
    line_total = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_code": self.product_code,
            "product_name": self.product_name,
            "specification": self.specification,
            "category": self.category,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "line_total": self.line_total,
        }


@event.listens_for(PurchaseLedger, "before_update")
@event.listens_for(PurchaseLedgerLine, "before_update")
def _reject_ledger_update(mapper, connection, target):
    session = object_session(target)
    if session is not None and not session.is_modified(target, include_collections=False):
        return
    raise LedgerImmutableError(f"{type(target).__name__} {target.id} is immutable")


# =============================================================================
# SUPPLIER ACCOUNT
# =============================================================================

class SupplierAccount(db.Model):
    """
    Running payable balance per supplier.

    current_balance == total_purchase_amount - total_paid_amount, maintained
    only by inbound reconciliation (increment) and supplier payments (decrement).
    """
    __tablename__ = "supplier_accounts"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, unique=True, index=True)
    supplier_name = db.Column(db.String(255), nullable=False)
    supplier_business_number = db.Column(db.String(32), nullable=True)

    total_purchase_amount = db.Column(db.Integer, nullable=False, default=0)
    total_paid_amount = db.Column(db.Integer, nullable=False, default=0)
    current_balance = db.Column(db.Integer, nullable=False, default=0)
    transaction_count = db.Column(db.Integer, nullable=False, default=0)

    last_purchase_date = db.Column(db.DateTime(timezone=True), nullable=True)
    last_payment_date = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    supplier = db.relationship("Supplier", backref=db.backref("account", uselist=False, lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier_name,
            "supplier_business_number": self.supplier_business_number,
            "total_purchase_amount": self.total_purchase_amount,
            "total_paid_amount": self.total_paid_amount,
            "current_balance": self.current_balance,
            "transaction_count": self.transaction_count,
            "last_purchase_date": to_utc_z(self.last_purchase_date),
            "last_payment_date": to_utc_z(self.last_payment_date),
            "version_id": self.version_id,
        }


class SupplierPayment(db.Model):
    """Payment made to a supplier; decrements its account balance."""
    __tablename__ = "supplier_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable number (e.g., "SP-260301-001")
    payment_number = db.Column(db.String(32), nullable=False, unique=True, index=True)

    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)
    supplier_name = db.Column(db.String(255), nullable=False)
    amount = db.Column(db.Integer, nullable=False)
    payment_method = db.Column(db.String(32), nullable=False)  # cash, transfer, card, other
    paid_at = db.Column(db.DateTime(timezone=True), nullable=False)
    processed_by = db.Column(db.String(128), nullable=False)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "payment_number": self.payment_number,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier_name,
            "amount": self.amount,
            "payment_method": self.payment_method,
            "paid_at": to_utc_z(self.paid_at),
            "processed_by": self.processed_by,
            "notes": self.notes,
        }


# =============================================================================
# NOTIFICATION HISTORY
# =============================================================================

class NotificationLog(db.Model):
    """One row per recipient send attempt for a purchase order message."""
    __tablename__ = "notification_logs"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    purchase_order_number = db.Column(db.String(32), nullable=False, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True, index=True)
    recipient_name = db.Column(db.String(128), nullable=True)
    recipient_phone = db.Column(db.String(32), nullable=False)
    success = db.Column(db.Boolean, nullable=False)
    message_id = db.Column(db.String(128), nullable=True)
    error = db.Column(db.Text, nullable=True)
    sent_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_order_number": self.purchase_order_number,
            "supplier_id": self.supplier_id,
            "recipient_name": self.recipient_name,
            "recipient_phone": self.recipient_phone,
            "success": self.success,
            "message_id": self.message_id,
            "error": self.error,
            "sent_at": to_utc_z(self.sent_at),
        }
