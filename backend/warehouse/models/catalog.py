from __future__ import annotations

from ..extensions import db
from warehouse.time_utils import to_utc_z
from warehouse import variants as vt


class Product(db.Model):
    """
    Client product catalog row.

    SOURCE OF TRUTH:
    `variants` is the canonical "how much is in stock" figure shown to clients.
    - Products with variants: quantity lives in the variant tree leaves and
      `quantity` mirrors total_quantity(tree).
    - Products without variants: `variants` is [] and `quantity` is the scalar
      on-hand figure.

    The same stock is also held as dated InventoryLot rows (FIFO ages). The two
    representations are updated together by the shipment synchronizer.

    NAMES:
    Check-in approval always inserts a new row, so several rows may share a
    name within a company. Empty names are a data-quality failure handled by
    the cleanup service.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_company_name", "company_id", "name"),
        db.Index("ix_products_company_active", "company_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=True)
    description = db.Column(db.Text, nullable=True)

    variants = db.Column(db.JSON, nullable=False, default=list)
    quantity = db.Column(db.Integer, nullable=False, default=0)
    minimum_quantity = db.Column(db.Integer, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    company = db.relationship("Company", backref=db.backref("products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} company_id={self.company_id}>"

    @property
    def variant_tree(self) -> vt.VariantTree:
        return vt.parse_variants(self.variants)

    def set_variant_tree(self, tree) -> None:
        # Assign a fresh list so the JSON column is flagged dirty
        self.variants = vt.to_document(tree)
        if self.variants:
            self.quantity = vt.total_quantity(tree)

    @property
    def on_hand(self) -> int:
        tree = self.variant_tree
        if tree:
            return vt.total_quantity(tree)
        return self.quantity or 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "name": self.name,
            "sku": self.sku,
            "description": self.description,
            "variants": self.variants or [],
            "quantity": self.on_hand,
            "minimum_quantity": self.minimum_quantity,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
