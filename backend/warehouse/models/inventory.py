from __future__ import annotations

from ..extensions import db
from warehouse.time_utils import to_utc_z


class InventoryLot(db.Model):
    """
    A discrete, dated quantity of stock received at one time.

    VARIANT KEY:
    (variant_attribute, variant_value) names the variant leaf this lot backs.
    Both NULL means base stock (not tied to any variant).

    FIFO:
    Lots for the same (product, company, variant key) are depleted strictly by
    received_date ascending (id breaks ties). A lot that reaches 0 is deleted,
    so every stored lot has quantity > 0.

    CONCURRENCY:
    version_id gives optimistic locking; depletion also takes row locks so
    two shipments cannot spend the same units.
    """
    __tablename__ = "inventory_lots"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_inventory_lots_quantity_positive"),
        db.Index(
            "ix_lots_product_company_variant_received",
            "product_id", "company_id", "variant_attribute", "variant_value", "received_date",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    variant_attribute = db.Column(db.String(128), nullable=True)
    variant_value = db.Column(db.String(128), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)

    # FIFO ordering key
    received_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    note = db.Column(db.String(255), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship("Product", backref=db.backref("lots", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return (
            f"<InventoryLot id={self.id} product_id={self.product_id} "
            f"variant={self.variant_attribute!r}:{self.variant_value!r} qty={self.quantity}>"
        )

    @property
    def variant_key(self) -> tuple[str, str] | None:
        if self.variant_attribute is None and self.variant_value is None:
            return None
        return (self.variant_attribute or "", self.variant_value or "")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "company_id": self.company_id,
            "variant_attribute": self.variant_attribute,
            "variant_value": self.variant_value,
            "quantity": self.quantity,
            "received_date": to_utc_z(self.received_date),
            "note": self.note,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
