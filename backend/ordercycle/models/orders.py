from __future__ import annotations

from ..extensions import db
from ordercycle.time_utils import to_utc_z


# Statuses shared by sale and purchase orders
STATUS_PLACED = "placed"
STATUS_CONFIRMED = "confirmed"
STATUS_PENDED = "pended"
STATUS_REJECTED = "rejected"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"
ORDER_STATUSES = (
    STATUS_PLACED,
    STATUS_CONFIRMED,
    STATUS_PENDED,
    STATUS_REJECTED,
    STATUS_COMPLETED,
    STATUS_CANCELLED,
)

# Sale orders that still count towards the current cycle's demand
ACTIVE_SALE_STATUSES = (STATUS_PLACED, STATUS_CONFIRMED, STATUS_PENDED)

CONFIRMATION_REGULAR = "regular"
CONFIRMATION_ADDITIONAL = "additional"

CUTOFF_WITHIN = "within-cutoff"
CUTOFF_AFTER = "after-cutoff"

ORDER_TYPE_CUSTOMER = "customer"
ORDER_TYPE_STAFF_PROXY = "staff_proxy"


# =============================================================================
# SALE ORDERS
# =============================================================================

class SaleOrder(db.Model):
    """
    Customer sale order.

    LIFECYCLE:
    - placed: accepted, waiting for the daily cycle confirmation
    - confirmed: confirmed by the cycle (or created after it as "additional")
    - pended: failed validation on creation, waiting for an operator
    - rejected / completed / cancelled: terminal

    confirmation_status: regular (before the cycle confirmation) or
    additional (after it). Null for legacy rows, treated as regular.
    """
    __tablename__ = "sale_orders"
    __table_args__ = (
        db.Index("ix_sale_orders_status_placed", "status", "placed_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable number (e.g., "SO-260301-001")
    sale_order_number = db.Column(db.String(32), nullable=False, unique=True, index=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    customer_name = db.Column(db.String(255), nullable=False)

    order_type = db.Column(db.String(16), nullable=False, default="customer")  # customer, staff_proxy
    status = db.Column(db.String(16), nullable=False, default="placed", index=True)
    confirmation_status = db.Column(db.String(16), nullable=True)  # regular, additional
    cutoff_status = db.Column(db.String(16), nullable=True)  # within-cutoff, after-cutoff
    pended_reason = db.Column(db.Text, nullable=True)

    final_amount = db.Column(db.Integer, nullable=False, default=0)
    item_count = db.Column(db.Integer, nullable=False, default=0)

    placed_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    confirmed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    pended_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejected_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_by = db.Column(db.String(128), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("sale_orders", lazy=True))
    lines = db.relationship(
        "SaleOrderLine",
        backref="sale_order",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="SaleOrderLine.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "sale_order_number": self.sale_order_number,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "order_type": self.order_type,
            "status": self.status,
            "confirmation_status": self.confirmation_status,
            "cutoff_status": self.cutoff_status,
            "pended_reason": self.pended_reason,
            "final_amount": self.final_amount,
            "item_count": self.item_count,
            "placed_at": to_utc_z(self.placed_at),
            "confirmed_at": to_utc_z(self.confirmed_at),
            "pended_at": to_utc_z(self.pended_at),
            "rejected_at": to_utc_z(self.rejected_at),
            "completed_at": to_utc_z(self.completed_at),
            "cancelled_at": to_utc_z(self.cancelled_at),
            "created_by": self.created_by,
            "version_id": self.version_id,
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class SaleOrderLine(db.Model):
    __tablename__ = "sale_order_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_order_id = db.Column(db.Integer, db.ForeignKey("sale_orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    # Snapshot at order time
    product_name = db.Column(db.String(255), nullable=False)
    specification = db.Column(db.String(255), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Integer, nullable=False)
    line_total = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "specification": self.specification,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "line_total": self.line_total,
        }


# =============================================================================
# PURCHASE ORDERS
# =============================================================================

class PurchaseOrder(db.Model):
    """
    Per-supplier purchase order generated from the cycle aggregation.

    LIFECYCLE:
    - placed: generated, supplier not yet (successfully) notified
    - confirmed: supplier notified; eligible for inbound
    - completed: received, linked to its purchase ledger
    - pended / rejected / cancelled: manual overrides

    sms_success stays None until the first send attempt.
    """
    __tablename__ = "purchase_orders"
    __table_args__ = (
        db.Index("ix_purchase_orders_supplier_category_placed", "supplier_id", "category", "placed_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable number (e.g., "PO-260301-001")
    purchase_order_number = db.Column(db.String(32), nullable=False, unique=True, index=True)

    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)
    supplier_name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(64), nullable=False)

    status = db.Column(db.String(16), nullable=False, default="placed", index=True)
    confirmation_status = db.Column(db.String(16), nullable=True)  # regular, additional

    item_count = db.Column(db.Integer, nullable=False, default=0)
    total_quantity = db.Column(db.Integer, nullable=False, default=0)
    total_amount = db.Column(db.Integer, nullable=False, default=0)

    placed_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    confirmed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    pended_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejected_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    sms_success = db.Column(db.Boolean, nullable=True)
    last_sms_sent_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Back-reference set once the inbound is reconciled
    purchase_ledger_id = db.Column(db.Integer, nullable=True)
    purchase_ledger_number = db.Column(db.String(32), nullable=True)

    created_by = db.Column(db.String(128), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    supplier = db.relationship("Supplier", backref=db.backref("purchase_orders", lazy=True))
    lines = db.relationship(
        "PurchaseOrderLine",
        backref="purchase_order",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="PurchaseOrderLine.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "purchase_order_number": self.purchase_order_number,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier_name,
            "category": self.category,
            "status": self.status,
            "confirmation_status": self.confirmation_status,
            "item_count": self.item_count,
            "total_quantity": self.total_quantity,
            "total_amount": self.total_amount,
            "placed_at": to_utc_z(self.placed_at),
            "confirmed_at": to_utc_z(self.confirmed_at),
            "pended_at": to_utc_z(self.pended_at),
            "rejected_at": to_utc_z(self.rejected_at),
            "completed_at": to_utc_z(self.completed_at),
            "cancelled_at": to_utc_z(self.cancelled_at),
            "sms_success": self.sms_success,
            "last_sms_sent_at": to_utc_z(self.last_sms_sent_at),
            "purchase_ledger_id": self.purchase_ledger_id,
            "purchase_ledger_number": self.purchase_ledger_number,
            "created_by": self.created_by,
            "version_id": self.version_id,
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class PurchaseOrderLine(db.Model):
    __tablename__ = "purchase_order_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    purchase_order_id = db.Column(db.Integer, db.ForeignKey("purchase_orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    product_code = db.Column(db.String(64), nullable=True)
    product_name = db.Column(db.String(255), nullable=False)
    specification = db.Column(db.String(255), nullable=True)
    category = db.Column(db.String(64), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    # Reference purchase price at generation time; 0 when the product has none
    unit_price = db.Column(db.Integer, nullable=False, default=0)
    line_total = db.Column(db.Integer, nullable=False, default=0)

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
