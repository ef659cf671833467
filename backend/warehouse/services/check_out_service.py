# Overview: Check-out request lifecycle; approval deducts stock through the synchronizer.

"""
Check-out requests

Items are recorded by NAME as well as id (product_name, variant_value,
sub_variant_value strings), since reconciliation replays them by name.

Approval deducts every item from lots and catalog in one transaction, using
the same per-item deduction as shipments. A sub-variant selection deducts
from exactly that nested leaf; lots are keyed by the top-level selection.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import CheckOutRequest, Company, Product
from ..validation import (
    NotFoundError,
    StateError,
    ValidationError,
    coerce_int,
    optional_text,
    require_positive_int,
    require_text,
)
from warehouse import variants as vt
from warehouse.time_utils import utcnow
from .check_in_service import STATUSES, STATUS_APPROVED, STATUS_PENDING, STATUS_REJECTED, parse_reviewed_at
from .concurrency import lock_for_update, run_with_retry
from .document_service import DOC_CHECK_OUT, next_document_number
from .event_log import parse_check_out_items
from .ledger_service import append_activity_event
from .lot_service import InsufficientStock, InsufficientStockError
from .results import BulkResult
from .shipment_service import deduct_item_inner


def _validate_items(company_id: int, items) -> list[dict]:
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")

    normalized = []
    for i, raw in enumerate(items, start=1):
        if not isinstance(raw, dict):
            raise ValidationError(f"Item {i}: must be an object")
        product_id = require_positive_int(raw.get("product_id"), f"Item {i}: product_id")
        quantity = require_positive_int(raw.get("quantity"), f"Item {i}: quantity")
        product = db.session.get(Product, product_id)
        if product is None:
            raise NotFoundError(f"Item {i}: product {product_id} not found")
        if product.company_id != company_id:
            raise ValidationError(f"Item {i}: product {product_id} does not belong to company")

        entry = {
            "product_id": product_id,
            "product_name": product.name,
            "quantity": quantity,
        }
        value = optional_text(raw.get("variant_value"))
        sub_value = optional_text(raw.get("sub_variant_value"))
        if sub_value and not value:
            raise ValidationError(f"Item {i}: sub_variant_value requires variant_value")
        if value:
            attribute = require_text(raw.get("variant_attribute"), f"Item {i}: variant_attribute")
            segments = ((attribute, value),)
            entry["variant_attribute"] = attribute
            entry["variant_value"] = value
            if sub_value:
                sub_attribute = require_text(raw.get("sub_variant_attribute"), f"Item {i}: sub_variant_attribute")
                segments += ((sub_attribute, sub_value),)
                entry["sub_variant_attribute"] = sub_attribute
                entry["sub_variant_value"] = sub_value
            tree = product.variant_tree
            if tree and vt.leaf_quantity(tree, segments) is None and vt.locate(tree, attribute, value) is None:
                raise ValidationError(f'Item {i}: variant "{vt.format_path(segments)}" not found on {product.name}')
        normalized.append(entry)
    return normalized


def _lock_pending(request_id: int) -> CheckOutRequest:
    req = lock_for_update(db.session.query(CheckOutRequest).filter_by(id=request_id)).first()
    if req is None:
        raise NotFoundError(f"Check-out request {request_id} not found")
    if req.status != STATUS_PENDING:
        raise StateError(f"Check-out request {req.request_number} is already {req.status}")
    return req


def create_check_out_request(
    *,
    company_id,
    items,
    requested_by: int | None = None,
    notes: str | None = None,
) -> CheckOutRequest:
    company_id = require_positive_int(company_id, "company_id")
    if db.session.get(Company, company_id) is None:
        raise NotFoundError(f"Company {company_id} not found")
    entries = _validate_items(company_id, items)

    def _op():
        number = next_document_number(company_id=company_id, document_type=DOC_CHECK_OUT)
        req = CheckOutRequest(
            company_id=company_id,
            request_number=number,
            status=STATUS_PENDING,
            requested_items=entries,
            notes=optional_text(notes),
            requested_by=requested_by,
        )
        db.session.add(req)
        db.session.flush()
        append_activity_event(
            company_id=company_id,
            event_type="CHECK_OUT_SUBMITTED",
            event_category="check_out",
            entity_type="check_out_request",
            entity_id=req.id,
            actor_user_id=requested_by,
            note=f"Check-out {number} submitted ({len(entries)} item(s))",
        )
        db.session.commit()
        return req

    return run_with_retry(_op)


def get_check_out(request_id: int) -> CheckOutRequest:
    req = db.session.get(CheckOutRequest, request_id)
    if req is None:
        raise NotFoundError(f"Check-out request {request_id} not found")
    return req


def list_check_outs(
    *,
    company_id: int | None = None,
    status: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[CheckOutRequest], int]:
    query = db.session.query(CheckOutRequest)
    if company_id is not None:
        query = query.filter(CheckOutRequest.company_id == company_id)
    if status:
        if status not in STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(STATUSES)}")
        query = query.filter(CheckOutRequest.status == status)
    total = query.count()
    limit = max(1, min(coerce_int(limit, "limit"), 500))
    offset = max(0, coerce_int(offset, "offset"))
    rows = (
        query.order_by(CheckOutRequest.created_at.desc(), CheckOutRequest.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return rows, total


def approve_check_out(
    request_id: int,
    *,
    reviewed_by: int | None = None,
    reviewed_at=None,
    allow_shortfall: bool | None = None,
) -> tuple[CheckOutRequest, BulkResult]:
    """
    Approve and deduct every item from lots and catalog.

    Outcomes carry consumed/shortfall per item. With allow_shortfall False any
    uncovered item aborts the approval with InsufficientStockError and the
    request stays pending.
    """
    reviewed = parse_reviewed_at(reviewed_at)
    if allow_shortfall is None:
        allow_shortfall = current_app.config.get("ALLOW_SHIPMENT_SHORTFALL", True)

    def _op():
        req = _lock_pending(request_id)
        result = BulkResult()
        for item in parse_check_out_items(req.requested_items):
            if item.product_id is None:
                result.record_failure(item.product_name, "item has no product_id")
                continue
            try:
                deduction = deduct_item_inner(
                    company_id=req.company_id,
                    product_id=item.product_id,
                    segments=item.segments,
                    quantity=item.quantity,
                )
            except (NotFoundError, ValidationError) as exc:
                current_app.logger.warning("Check-out %s item skipped: %s", req.request_number, exc)
                result.record_failure(item.product_name, str(exc))
                continue
            if isinstance(deduction.depletion, InsufficientStock) and not allow_shortfall:
                db.session.rollback()
                raise InsufficientStockError(
                    deduction.depletion,
                    f"{item.product_name} is short by {deduction.shortfall}",
                )
            result.record_success(item.product_name, deduction.to_dict())

        req.status = STATUS_APPROVED
        req.reviewed_by = reviewed_by
        req.reviewed_at = reviewed
        append_activity_event(
            company_id=req.company_id,
            event_type="CHECK_OUT_APPROVED",
            event_category="check_out",
            entity_type="check_out_request",
            entity_id=req.id,
            actor_user_id=reviewed_by,
            occurred_at=reviewed,
            note=f"Check-out {req.request_number} approved",
            payload={"succeeded": result.succeeded, "failed": result.failed},
        )
        db.session.commit()
        current_app.logger.info(
            "Check-out %s approved: %s deducted, %s failed",
            req.request_number, result.succeeded, result.failed,
        )
        return req, result

    return run_with_retry(_op)


def reject_check_out(
    request_id: int,
    *,
    reason,
    reviewed_by: int | None = None,
) -> CheckOutRequest:
    reason = require_text(reason, "rejection_reason")

    def _op():
        req = _lock_pending(request_id)
        req.status = STATUS_REJECTED
        req.rejection_reason = reason
        req.reviewed_by = reviewed_by
        req.reviewed_at = utcnow()
        append_activity_event(
            company_id=req.company_id,
            event_type="CHECK_OUT_REJECTED",
            event_category="check_out",
            entity_type="check_out_request",
            entity_id=req.id,
            actor_user_id=reviewed_by,
            note=f"Check-out {req.request_number} rejected",
        )
        db.session.commit()
        current_app.logger.info("Check-out %s rejected", req.request_number)
        return req

    return run_with_retry(_op)
