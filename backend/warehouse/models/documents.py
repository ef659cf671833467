from __future__ import annotations

from ..extensions import db
from warehouse.time_utils import to_utc_z


class DocumentSequence(db.Model):
    """
    Atomic per-company document sequences (CI-, CO-, SHP-).

    One row per (company, document_type); next_number is bumped under a row
    lock so concurrent submissions never share a number.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("company_id", "document_type", name="uq_doc_sequences_company_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    document_type = db.Column(db.String(32), nullable=False, index=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    company = db.relationship("Company", backref=db.backref("document_sequences", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "document_type": self.document_type,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }


class ActivityEvent(db.Model):
    """
    Append-only audit trail of inventory-affecting actions.

    Not used for quantity math (reconciliation reads the request tables); this
    is the "who did what, when" record surfaced to staff.
    """
    __tablename__ = "activity_events"
    __table_args__ = (
        db.Index("ix_activity_company_occurred", "company_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    # e.g. CHECK_IN_APPROVED, SHIPMENT_CREATED, LOT_ADJUSTED
    event_type = db.Column(db.String(64), nullable=False, index=True)
    # check_in, check_out, shipment, lots, reconciliation, cleanup
    event_category = db.Column(db.String(32), nullable=False, index=True)

    entity_type = db.Column(db.String(64), nullable=False, index=True)
    entity_id = db.Column(db.Integer, nullable=False, index=True)

    actor_user_id = db.Column(db.Integer, nullable=True, index=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    note = db.Column(db.String(255), nullable=True)
    payload = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "event_type": self.event_type,
            "event_category": self.event_category,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "actor_user_id": self.actor_user_id,
            "occurred_at": to_utc_z(self.occurred_at),
            "created_at": to_utc_z(self.created_at),
            "note": self.note,
            "payload": self.payload,
        }
