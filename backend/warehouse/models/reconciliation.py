from __future__ import annotations

from ..extensions import db
from warehouse.time_utils import to_utc_z


class ReconciliationReport(db.Model):
    """
    Saved JARDE report: a snapshot of computed rows plus the physical counts
    staff entered against them.

    `rows` stores the serialized ReconciliationRow list (actual_quantity,
    variance and variance_status filled in where counted). `totals` stores the
    aggregate JARDE figures. applied_at is set once the counts were written
    back to lots and variant trees.
    """
    __tablename__ = "reconciliation_reports"
    __table_args__ = (
        db.Index("ix_recon_reports_company_created", "company_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    match_mode = db.Column(db.String(16), nullable=False, default="name")

    rows = db.Column(db.JSON, nullable=False, default=list)
    totals = db.Column(db.JSON, nullable=False, default=dict)
    notes = db.Column(db.Text, nullable=True)

    created_by = db.Column(db.Integer, nullable=True)
    applied_at = db.Column(db.DateTime(timezone=True), nullable=True)
    applied_by = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    company = db.relationship("Company", backref=db.backref("reconciliation_reports", lazy=True))

    def __repr__(self) -> str:
        return f"<ReconciliationReport id={self.id} company_id={self.company_id} {self.start_date}..{self.end_date}>"

    def to_dict(self, include_rows: bool = True) -> dict:
        data = {
            "id": self.id,
            "company_id": self.company_id,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "match_mode": self.match_mode,
            "totals": self.totals or {},
            "notes": self.notes,
            "created_by": self.created_by,
            "applied_at": to_utc_z(self.applied_at) if self.applied_at else None,
            "applied_by": self.applied_by,
            "created_at": to_utc_z(self.created_at),
        }
        if include_rows:
            data["rows"] = self.rows or []
        return data
