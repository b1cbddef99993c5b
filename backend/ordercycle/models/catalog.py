from __future__ import annotations

from ..extensions import db
from ordercycle.time_utils import to_utc_z


# =============================================================================
# REFERENCE DATA
# =============================================================================

class Supplier(db.Model):
    """
    Supplier of purchased goods.

    Up to two contacts receive purchase order messages (primary, secondary).
    Maintained by the external catalog screens; the order cycle only reads it.
    """
    __tablename__ = "suppliers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    business_number = db.Column(db.String(32), nullable=False, unique=True, index=True)
    name = db.Column(db.String(255), nullable=False)

    primary_contact_name = db.Column(db.String(128), nullable=True)
    primary_contact_mobile = db.Column(db.String(32), nullable=True)
    secondary_contact_name = db.Column(db.String(128), nullable=True)
    secondary_contact_mobile = db.Column(db.String(32), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_number": self.business_number,
            "name": self.name,
            "primary_contact_name": self.primary_contact_name,
            "primary_contact_mobile": self.primary_contact_mobile,
            "secondary_contact_name": self.secondary_contact_name,
            "secondary_contact_mobile": self.secondary_contact_mobile,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Customer(db.Model):
    __tablename__ = "customers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    business_number = db.Column(db.String(32), nullable=False, unique=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_number": self.business_number,
            "name": self.name,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Sellable product with its supplier and category.

    purchase_price is the reference purchase price; inbound reconciliation
    overwrites it with the last actually-received unit price.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_category_supplier", "category", "supplier_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), nullable=False, unique=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    specification = db.Column(db.String(255), nullable=True)
    category = db.Column(db.String(64), nullable=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True, index=True)

    # Prices in the smallest currency unit
    purchase_price = db.Column(db.Integer, nullable=True)
    sale_price = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    supplier = db.relationship("Supplier", backref=db.backref("products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "specification": self.specification,
            "category": self.category,
            "supplier_id": self.supplier_id,
            "purchase_price": self.purchase_price,
            "sale_price": self.sale_price,
            "is_active": self.is_active,
            "version_id": self.version_id,
        }
