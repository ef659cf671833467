from __future__ import annotations

from ..extensions import db
from warehouse.time_utils import to_utc_z


# =============================================================================
# CHECK-IN REQUESTS
# =============================================================================

class CheckInRequest(db.Model):
    """
    Client request to put products into storage.

    LIFECYCLE:
    1. pending: submitted by the client
    2. approved: staff accepted it; catalog rows and base lots were created
    3. rejected: staff declined it (rejection_reason required)
    Terminal once it leaves pending.

    LEDGER:
    reviewed_at is the authoritative instant at which an approved request
    affects quantities. Reconciliation replays the request's product list as
    of that instant: amended_products when was_amended, else
    requested_products. Both lists are kept for audit.

    requested_products / amended_products entries:
        {"name": str, "quantity": int, "variants": [...], "sku": str?}
    approved_product_ids holds the catalog row created for each entry, in order.
    """
    __tablename__ = "check_in_requests"
    __table_args__ = (
        db.UniqueConstraint("company_id", "request_number", name="uq_check_ins_company_number"),
        db.Index("ix_check_ins_company_status_reviewed", "company_id", "status", "reviewed_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    request_number = db.Column(db.String(64), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    requested_products = db.Column(db.JSON, nullable=False, default=list)
    amended_products = db.Column(db.JSON, nullable=True)
    was_amended = db.Column(db.Boolean, nullable=False, default=False)
    amendment_notes = db.Column(db.Text, nullable=True)
    approved_product_ids = db.Column(db.JSON, nullable=True)

    notes = db.Column(db.Text, nullable=True)

    requested_by = db.Column(db.Integer, nullable=True)
    reviewed_by = db.Column(db.Integer, nullable=True)
    reviewed_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)
    rejection_reason = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    company = db.relationship("Company", backref=db.backref("check_in_requests", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<CheckInRequest id={self.id} number={self.request_number!r} status={self.status}>"

    @property
    def effective_products(self) -> list:
        """Product list that counts toward inventory (amended when amended)."""
        if self.was_amended and self.amended_products is not None:
            return self.amended_products
        return self.requested_products or []

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "request_number": self.request_number,
            "status": self.status,
            "requested_products": self.requested_products or [],
            "amended_products": self.amended_products,
            "was_amended": self.was_amended,
            "amendment_notes": self.amendment_notes,
            "approved_product_ids": self.approved_product_ids,
            "notes": self.notes,
            "requested_by": self.requested_by,
            "reviewed_by": self.reviewed_by,
            "reviewed_at": to_utc_z(self.reviewed_at) if self.reviewed_at else None,
            "rejection_reason": self.rejection_reason,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }


# =============================================================================
# CHECK-OUT REQUESTS
# =============================================================================

class CheckOutRequest(db.Model):
    """
    Client request to take products out of storage.

    Same pending -> approved | rejected lifecycle as check-ins.

    requested_items entries record names, not foreign keys:
        {"product_id": int, "product_name": str, "quantity": int,
         "variant_attribute": str?, "variant_value": str?,
         "sub_variant_attribute": str?, "sub_variant_value": str?}
    Reconciliation matches them by product_name / variant_value strings.
    """
    __tablename__ = "check_out_requests"
    __table_args__ = (
        db.UniqueConstraint("company_id", "request_number", name="uq_check_outs_company_number"),
        db.Index("ix_check_outs_company_status_reviewed", "company_id", "status", "reviewed_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    request_number = db.Column(db.String(64), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    requested_items = db.Column(db.JSON, nullable=False, default=list)
    notes = db.Column(db.Text, nullable=True)

    requested_by = db.Column(db.Integer, nullable=True)
    reviewed_by = db.Column(db.Integer, nullable=True)
    reviewed_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)
    rejection_reason = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    company = db.relationship("Company", backref=db.backref("check_out_requests", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<CheckOutRequest id={self.id} number={self.request_number!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "request_number": self.request_number,
            "status": self.status,
            "requested_items": self.requested_items or [],
            "notes": self.notes,
            "requested_by": self.requested_by,
            "reviewed_by": self.reviewed_by,
            "reviewed_at": to_utc_z(self.reviewed_at) if self.reviewed_at else None,
            "rejection_reason": self.rejection_reason,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }
