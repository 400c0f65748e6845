from __future__ import annotations

from ..extensions import db
from ..money import quantity_to_json
from shopkeep.time_utils import to_utc_z, to_iso_date


class Product(db.Model):
    """
    Product master data.

    ITEM TYPES:
    - unit: countable stock, sold in whole quantities at retail_price_cents
    - bulk: divisible stock (weight/volume). package_size is the content of
      one package in bulk_unit; per-base-unit prices drive weighed sales.

    Products are never deleted by the application; deactivation flips
    is_active so that transactions and cost history keep their references.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_name", "name"),
        db.Index("ix_products_active", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(64), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    barcode = db.Column(db.String(64), nullable=True, index=True)

    category = db.Column(db.String(32), nullable=False)
    unit = db.Column(db.String(32), nullable=False)
    item_type = db.Column(db.String(16), nullable=False, default="unit")

    # Authoritative storage in cents
    retail_price_cents = db.Column(db.Integer, nullable=False)
    wholesale_price_cents = db.Column(db.Integer, nullable=False)
    cost_price_cents = db.Column(db.Integer, nullable=False)

    reorder_level = db.Column(db.Numeric(14, 3), nullable=False, default=0)

    # Bulk items only
    package_size = db.Column(db.Numeric(14, 3), nullable=True)
    bulk_unit = db.Column(db.String(16), nullable=True)
    price_per_base_unit_cents = db.Column(db.Integer, nullable=True)
    cost_per_base_unit_cents = db.Column(db.Integer, nullable=True)

    image_url = db.Column(db.String(512), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_bulk(self) -> bool:
        return self.item_type == "bulk"

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "barcode": self.barcode,
            "category": self.category,
            "unit": self.unit,
            "item_type": self.item_type,
            "retail_price_cents": self.retail_price_cents,
            "wholesale_price_cents": self.wholesale_price_cents,
            "cost_price_cents": self.cost_price_cents,
            "reorder_level": quantity_to_json(self.reorder_level),
            "package_size": quantity_to_json(self.package_size),
            "bulk_unit": self.bulk_unit,
            "price_per_base_unit_cents": self.price_per_base_unit_cents,
            "cost_per_base_unit_cents": self.cost_per_base_unit_cents,
            "image_url": self.image_url,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Supplier(db.Model):
    __tablename__ = "suppliers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    contact_person = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.String(512), nullable=True)
    payment_terms = db.Column(db.String(128), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "contact_person": self.contact_person,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "payment_terms": self.payment_terms,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class PurchasePriceRecord(db.Model):
    """
    Append-only unit cost observed for a product on one purchase.

    SOURCES:
    - initial: opening stock entered with a new product
    - restock: manual stock addition
    - receipt: imported from an extracted supplier receipt

    IMMUTABLE: Records are never updated or deleted.
    """
    __tablename__ = "purchase_price_records"
    __table_args__ = (
        db.Index("ix_price_records_product_date", "product_id", "purchase_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True)
    supplier_name = db.Column(db.String(255), nullable=True)

    purchase_date = db.Column(db.Date, nullable=False)
    unit_cost_cents = db.Column(db.Integer, nullable=False)
    quantity = db.Column(db.Numeric(14, 3), nullable=False)
    receipt_number = db.Column(db.String(64), nullable=True)
    source = db.Column(db.String(16), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("price_records", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier_name,
            "purchase_date": to_iso_date(self.purchase_date),
            "unit_cost_cents": self.unit_cost_cents,
            "quantity": quantity_to_json(self.quantity),
            "receipt_number": self.receipt_number,
            "source": self.source,
            "created_at": to_utc_z(self.created_at),
        }
