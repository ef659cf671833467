from __future__ import annotations

from ..extensions import db
from warehouse.time_utils import to_utc_z


class Shipment(db.Model):
    """
    Outbound shipment of a client's goods to a destination.

    LIFECYCLE:
    pending -> in_transit -> delivered (forward only).

    Stock is deducted when the shipment is created, not on delivery. Each item
    records how much was actually drawn from lots (consumed_quantity) and any
    shortfall when the lots could not cover the request.
    """
    __tablename__ = "shipments"
    __table_args__ = (
        db.UniqueConstraint("company_id", "shipment_number", name="uq_shipments_company_number"),
        db.Index("ix_shipments_company_status_created", "company_id", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    shipment_number = db.Column(db.String(64), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    destination_address = db.Column(db.Text, nullable=False)
    destination_contact = db.Column(db.String(255), nullable=True)
    destination_phone = db.Column(db.String(64), nullable=True)
    carrier = db.Column(db.String(128), nullable=True)
    tracking_number = db.Column(db.String(128), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    shipment_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    shipped_by = db.Column(db.Integer, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    company = db.relationship("Company", backref=db.backref("shipments", lazy=True))
    items = db.relationship(
        "ShipmentItem",
        backref="shipment",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="ShipmentItem.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Shipment id={self.id} number={self.shipment_number!r} status={self.status}>"

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "company_id": self.company_id,
            "shipment_number": self.shipment_number,
            "status": self.status,
            "destination_address": self.destination_address,
            "destination_contact": self.destination_contact,
            "destination_phone": self.destination_phone,
            "carrier": self.carrier,
            "tracking_number": self.tracking_number,
            "notes": self.notes,
            "shipment_date": to_utc_z(self.shipment_date),
            "shipped_by": self.shipped_by,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class ShipmentItem(db.Model):
    __tablename__ = "shipment_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    shipment_id = db.Column(db.Integer, db.ForeignKey("shipments.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    # Full variant path as submitted ("Size → M"); lots are keyed by its first segment
    variant_attribute = db.Column(db.String(128), nullable=True)
    variant_value = db.Column(db.String(128), nullable=True)
    variant_path = db.Column(db.String(512), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    consumed_quantity = db.Column(db.Integer, nullable=False, default=0)
    shortfall_quantity = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shipment_id": self.shipment_id,
            "product_id": self.product_id,
            "variant_attribute": self.variant_attribute,
            "variant_value": self.variant_value,
            "variant_path": self.variant_path,
            "quantity": self.quantity,
            "consumed_quantity": self.consumed_quantity,
            "shortfall_quantity": self.shortfall_quantity,
            "created_at": to_utc_z(self.created_at),
        }
