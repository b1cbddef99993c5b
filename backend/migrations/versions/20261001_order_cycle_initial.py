"""Order cycle schema: catalog, cutoff/cycle state, orders, ledgers, accounts

Revision ID: 20261001_order_cycle_initial
Revises:
Create Date: 2026-10-01
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261001_order_cycle_initial"
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name, nullable=False):
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=nullable)


def _version_id():
    return sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1"))


def upgrade():
    # Reference data
    op.create_table(
        "suppliers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("business_number", sa.String(32), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("primary_contact_name", sa.String(128), nullable=True),
        sa.Column("primary_contact_mobile", sa.String(32), nullable=True),
        sa.Column("secondary_contact_name", sa.String(128), nullable=True),
        sa.Column("secondary_contact_mobile", sa.String(32), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_suppliers_business_number", "suppliers", ["business_number"], unique=True)

    op.create_table(
        "customers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("business_number", sa.String(32), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_customers_business_number", "customers", ["business_number"], unique=True)

    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("specification", sa.String(255), nullable=True),
        sa.Column("category", sa.String(64), nullable=True),
        sa.Column("supplier_id", sa.Integer(), nullable=True),
        sa.Column("purchase_price", sa.Integer(), nullable=True),
        sa.Column("sale_price", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        _timestamp("updated_at"),
        _version_id(),
        sa.ForeignKeyConstraint(["supplier_id"], ["suppliers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_products_code", "products", ["code"], unique=True)
    op.create_index("ix_products_supplier_id", "products", ["supplier_id"])
    op.create_index("ix_products_category_supplier", "products", ["category", "supplier_id"])

    # Singleton state and counters
    op.create_table(
        "cutoff_windows",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="closed"),
        sa.Column("opened_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closed_by", sa.String(128), nullable=True),
        _timestamp("updated_at"),
        _version_id(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "order_cycles",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("reset_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_confirmed", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("last_confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("auto_reset_scheduled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("confirmed_by", sa.String(128), nullable=True),
        _timestamp("updated_at"),
        _version_id(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "last_counters",
        sa.Column("namespace", sa.String(64), nullable=False),
        sa.Column("last_number", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("date_code", sa.String(6), nullable=False),
        _timestamp("updated_at"),
        _version_id(),
        sa.PrimaryKeyConstraint("namespace"),
    )

    # Sale orders
    op.create_table(
        "sale_orders",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sale_order_number", sa.String(32), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("customer_name", sa.String(255), nullable=False),
        sa.Column("order_type", sa.String(16), nullable=False, server_default="customer"),
        sa.Column("status", sa.String(16), nullable=False, server_default="placed"),
        sa.Column("confirmation_status", sa.String(16), nullable=True),
        sa.Column("cutoff_status", sa.String(16), nullable=True),
        sa.Column("pended_reason", sa.Text(), nullable=True),
        sa.Column("final_amount", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("item_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("placed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("pended_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by", sa.String(128), nullable=True),
        _version_id(),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_sale_orders_sale_order_number", "sale_orders", ["sale_order_number"], unique=True)
    op.create_index("ix_sale_orders_customer_id", "sale_orders", ["customer_id"])
    op.create_index("ix_sale_orders_status", "sale_orders", ["status"])
    op.create_index("ix_sale_orders_placed_at", "sale_orders", ["placed_at"])
    op.create_index("ix_sale_orders_status_placed", "sale_orders", ["status", "placed_at"])

    op.create_table(
        "sale_order_lines",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sale_order_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("product_name", sa.String(255), nullable=False),
        sa.Column("specification", sa.String(255), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Integer(), nullable=False),
        sa.Column("line_total", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["sale_order_id"], ["sale_orders.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_sale_order_lines_sale_order_id", "sale_order_lines", ["sale_order_id"])
    op.create_index("ix_sale_order_lines_product_id", "sale_order_lines", ["product_id"])

    # Purchase orders
    op.create_table(
        "purchase_orders",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("purchase_order_number", sa.String(32), nullable=False),
        sa.Column("supplier_id", sa.Integer(), nullable=False),
        sa.Column("supplier_name", sa.String(255), nullable=False),
        sa.Column("category", sa.String(64), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="placed"),
        sa.Column("confirmation_status", sa.String(16), nullable=True),
        sa.Column("item_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_quantity", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_amount", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("placed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("pended_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sms_success", sa.Boolean(), nullable=True),
        sa.Column("last_sms_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("purchase_ledger_id", sa.Integer(), nullable=True),
        sa.Column("purchase_ledger_number", sa.String(32), nullable=True),
        sa.Column("created_by", sa.String(128), nullable=True),
        _version_id(),
        sa.ForeignKeyConstraint(["supplier_id"], ["suppliers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_purchase_orders_purchase_order_number", "purchase_orders", ["purchase_order_number"], unique=True)
    op.create_index("ix_purchase_orders_supplier_id", "purchase_orders", ["supplier_id"])
    op.create_index("ix_purchase_orders_status", "purchase_orders", ["status"])
    op.create_index("ix_purchase_orders_placed_at", "purchase_orders", ["placed_at"])
    op.create_index(
        "ix_purchase_orders_supplier_category_placed",
        "purchase_orders",
        ["supplier_id", "category", "placed_at"],
    )

    op.create_table(
        "purchase_order_lines",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("purchase_order_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("product_code", sa.String(64), nullable=True),
        sa.Column("product_name", sa.String(255), nullable=False),
        sa.Column("specification", sa.String(255), nullable=True),
        sa.Column("category", sa.String(64), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("line_total", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.ForeignKeyConstraint(["purchase_order_id"], ["purchase_orders.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_purchase_order_lines_purchase_order_id", "purchase_order_lines", ["purchase_order_id"])
    op.create_index("ix_purchase_order_lines_product_id", "purchase_order_lines", ["product_id"])

    # Ledgers (append-only)
    op.create_table(
        "purchase_ledgers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("purchase_ledger_number", sa.String(32), nullable=False),
        sa.Column("purchase_order_id", sa.Integer(), nullable=False),
        sa.Column("purchase_order_number", sa.String(32), nullable=False),
        sa.Column("supplier_id", sa.Integer(), nullable=False),
        sa.Column("supplier_name", sa.String(255), nullable=False),
        sa.Column("supplier_business_number", sa.String(32), nullable=True),
        sa.Column("category", sa.String(64), nullable=True),
        sa.Column("total_amount", sa.Integer(), nullable=False),
        sa.Column("item_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("received_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("received_by", sa.String(128), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["purchase_order_id"], ["purchase_orders.id"]),
        sa.ForeignKeyConstraint(["supplier_id"], ["suppliers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_purchase_ledgers_purchase_ledger_number", "purchase_ledgers", ["purchase_ledger_number"], unique=True)
    op.create_index("ix_purchase_ledgers_purchase_order_id", "purchase_ledgers", ["purchase_order_id"])
    op.create_index("ix_purchase_ledgers_supplier_id", "purchase_ledgers", ["supplier_id"])
    op.create_index("ix_purchase_ledgers_supplier_received", "purchase_ledgers", ["supplier_id", "received_at"])

    op.create_table(
        "purchase_ledger_lines",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("purchase_ledger_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("product_code", sa.String(64), nullable=False),
        sa.Column("product_name", sa.String(255), nullable=False),
        sa.Column("specification", sa.String(255), nullable=True),
        sa.Column("category", sa.String(64), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Integer(), nullable=False),
        sa.Column("line_total", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["purchase_ledger_id"], ["purchase_ledgers.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_purchase_ledger_lines_purchase_ledger_id", "purchase_ledger_lines", ["purchase_ledger_id"])
    op.create_index("ix_purchase_ledger_lines_product_id", "purchase_ledger_lines", ["product_id"])

    # Supplier payables
    op.create_table(
        "supplier_accounts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("supplier_id", sa.Integer(), nullable=False),
        sa.Column("supplier_name", sa.String(255), nullable=False),
        sa.Column("supplier_business_number", sa.String(32), nullable=True),
        sa.Column("total_purchase_amount", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_paid_amount", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("current_balance", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("transaction_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("last_purchase_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_payment_date", sa.DateTime(timezone=True), nullable=True),
        _timestamp("created_at"),
        _version_id(),
        sa.ForeignKeyConstraint(["supplier_id"], ["suppliers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_supplier_accounts_supplier_id", "supplier_accounts", ["supplier_id"], unique=True)

    op.create_table(
        "supplier_payments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("payment_number", sa.String(32), nullable=False),
        sa.Column("supplier_id", sa.Integer(), nullable=False),
        sa.Column("supplier_name", sa.String(255), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("payment_method", sa.String(32), nullable=False),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("processed_by", sa.String(128), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["supplier_id"], ["suppliers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_supplier_payments_payment_number", "supplier_payments", ["payment_number"], unique=True)
    op.create_index("ix_supplier_payments_supplier_id", "supplier_payments", ["supplier_id"])

    op.create_table(
        "notification_logs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("purchase_order_number", sa.String(32), nullable=False),
        sa.Column("supplier_id", sa.Integer(), nullable=True),
        sa.Column("recipient_name", sa.String(128), nullable=True),
        sa.Column("recipient_phone", sa.String(32), nullable=False),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column("message_id", sa.String(128), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["supplier_id"], ["suppliers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_notification_logs_purchase_order_number", "notification_logs", ["purchase_order_number"])
    op.create_index("ix_notification_logs_supplier_id", "notification_logs", ["supplier_id"])


def downgrade():
    op.drop_table("notification_logs")
    op.drop_table("supplier_payments")
    op.drop_table("supplier_accounts")
    op.drop_table("purchase_ledger_lines")
    op.drop_table("purchase_ledgers")
    op.drop_table("purchase_order_lines")
    op.drop_table("purchase_orders")
    op.drop_table("sale_order_lines")
    op.drop_table("sale_orders")
    op.drop_table("last_counters")
    op.drop_table("order_cycles")
    op.drop_table("cutoff_windows")
    op.drop_table("products")
    op.drop_table("customers")
    op.drop_table("suppliers")
