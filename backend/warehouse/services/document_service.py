# Overview: Per-company document numbering for check-ins, check-outs and shipments.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence


DOC_CHECK_IN = "CHECK_IN"
DOC_CHECK_OUT = "CHECK_OUT"
DOC_SHIPMENT = "SHIPMENT"

PREFIXES = {
    DOC_CHECK_IN: "CI",
    DOC_CHECK_OUT: "CO",
    DOC_SHIPMENT: "SHP",
}


class DocumentSequenceError(Exception):
    """Raised when a document number cannot be allocated."""
    pass


def _current_number(company_id: int, document_type: str) -> int:
    return (
        db.session.query(DocumentSequence.next_number)
        .filter_by(company_id=company_id, document_type=document_type)
        .scalar()
    )


def next_document_number(
    *,
    company_id: int,
    document_type: str,
    pad: int = 5,
) -> str:
    """
    Allocate the next number for a company/document type, e.g. "CI-00042".

    The increment is a single UPDATE so concurrent callers never receive the
    same number. Must be called before the caller adds its own rows: the
    first-use race path rolls the session back.
    """
    if not company_id:
        raise DocumentSequenceError("company_id is required")
    prefix = PREFIXES.get(document_type)
    if not prefix:
        raise DocumentSequenceError(f"Unknown document type: {document_type}")

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.company_id == company_id,
            DocumentSequence.document_type == document_type,
        )
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        db.session.flush()
        number = _current_number(company_id, document_type) - 1
    else:
        db.session.add(DocumentSequence(company_id=company_id, document_type=document_type, next_number=2))
        try:
            db.session.flush()
            number = 1
        except IntegrityError:
            # Another writer created the row first
            db.session.rollback()
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise
            db.session.flush()
            number = _current_number(company_id, document_type) - 1

    return f"{prefix}-{number:0{pad}d}"
