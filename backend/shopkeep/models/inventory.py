from __future__ import annotations

from ..extensions import db
from ..money import quantity_to_json
from shopkeep.time_utils import to_utc_z, to_iso_date


class InventoryBatch(db.Model):
    """
    A quantity of one product acquired at one unit cost.

    Stock on hand for a product is the sum of its batch quantities. Batches
    are the unit of cost accounting, so a batch that sells out stays in the
    table with quantity 0 instead of being deleted.

    INVARIANTS:
    - quantity >= 0 (enforced by a CHECK constraint and by the allocator)
    - cost_per_unit_cents never changes after creation; stock arriving at a
      different cost opens a new batch
    """
    __tablename__ = "inventory_batches"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="quantity_non_negative"),
        db.Index("ix_batches_product_cost", "product_id", "cost_per_unit_cents"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True)

    # Human-readable, e.g. "BATCH-1760745600123-K3ZQ"
    batch_number = db.Column(db.String(64), nullable=False, unique=True)

    quantity = db.Column(db.Numeric(14, 3), nullable=False, default=0)
    cost_per_unit_cents = db.Column(db.Integer, nullable=False)

    purchase_date = db.Column(db.Date, nullable=False)
    expiry_date = db.Column(db.Date, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    version_id = db.Column(db.Integer, nullable=False, default=1)

    product = db.relationship("Product", backref=db.backref("batches", lazy=True))
    supplier = db.relationship("Supplier")
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return (
            f"<InventoryBatch id={self.id} product_id={self.product_id} "
            f"qty={self.quantity} cost={self.cost_per_unit_cents}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "supplier_id": self.supplier_id,
            "batch_number": self.batch_number,
            "quantity": quantity_to_json(self.quantity),
            "cost_per_unit_cents": self.cost_per_unit_cents,
            "purchase_date": to_iso_date(self.purchase_date),
            "expiry_date": to_iso_date(self.expiry_date),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
