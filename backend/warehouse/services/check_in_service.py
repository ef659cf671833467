# Overview: Check-in request lifecycle (submit, approve, amend-and-approve, reject).

"""
Check-in requests

LIFECYCLE:
1. pending: client submitted a list of products to store
2. approved: staff accepted it (optionally after amending quantities)
3. rejected: staff declined it with a reason
Terminal once it leaves pending.

APPROVAL EFFECTS (one transaction):
- Every entry inserts a NEW catalog row, even when a product with the same
  name already exists for the company.
- The row carries the entry's variant tree; its quantity is the tree total
  (or the entry's scalar quantity when it has no variants).
- A base InventoryLot is created/incremented for the new row with that total.
- approved_product_ids records the created rows in entry order.
- reviewed_at is the instant the request starts counting in reconciliation.

AMENDMENT:
Staff may correct quantities at approval. Both the original and the amended
lists stay on the request; the amended one is what was actually received.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from flask import current_app

from ..extensions import db
from ..models import CheckInRequest, Company, Product
from ..validation import (
    NotFoundError,
    StateError,
    ValidationError,
    coerce_int,
    optional_text,
    require_non_negative_int,
    require_positive_int,
    require_text,
    require_timestamp,
)
from warehouse import variants as vt
from warehouse.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .document_service import DOC_CHECK_IN, next_document_number
from .ledger_service import append_activity_event
from .lot_service import add_base_stock
from .results import BulkResult


STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"

STATUSES = (STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED)


def _require_company(company_id) -> int:
    company_id = require_positive_int(company_id, "company_id")
    if db.session.get(Company, company_id) is None:
        raise NotFoundError(f"Company {company_id} not found")
    return company_id


def normalize_product_entries(products, *, allow_zero: bool = False) -> list[dict]:
    """
    Validate a submitted product list and return its canonical JSON form.

    Each entry: {"name", "quantity", "variants"?, "sku"?, "description"?,
    "minimum_quantity"?}. With variants the quantity is the tree total and any
    submitted scalar is ignored. Raises ValidationError before anything is
    written.
    """
    if not isinstance(products, list) or not products:
        raise ValidationError("products must be a non-empty list")

    normalized = []
    for i, raw in enumerate(products, start=1):
        if not isinstance(raw, dict):
            raise ValidationError(f"Product {i}: must be an object")
        name = require_text(raw.get("name"), f"Product {i}: name", max_length=255)
        tree = vt.validate_variants(raw.get("variants") or [], label=f'Product "{name}" variant')
        if tree:
            quantity = vt.total_quantity(tree)
        else:
            quantity = require_non_negative_int(raw.get("quantity", 0), f'Product "{name}": quantity')
        if quantity == 0 and not allow_zero:
            raise ValidationError(f'Product "{name}": quantity must be greater than 0')

        entry = {
            "name": name,
            "quantity": quantity,
            "variants": vt.to_document(tree),
        }
        sku = optional_text(raw.get("sku"))
        if sku:
            entry["sku"] = sku
        description = optional_text(raw.get("description"))
        if description:
            entry["description"] = description
        if raw.get("minimum_quantity") is not None:
            entry["minimum_quantity"] = require_non_negative_int(
                raw.get("minimum_quantity"), f'Product "{name}": minimum_quantity'
            )
        normalized.append(entry)
    return normalized


def parse_reviewed_at(value) -> datetime:
    if value is None:
        return utcnow()
    reviewed = require_timestamp(value, "reviewed_at")
    tolerance = current_app.config.get("FUTURE_TOLERANCE_MINUTES", 2)
    if reviewed > utcnow() + timedelta(minutes=tolerance):
        raise ValidationError("reviewed_at cannot be in the future")
    return reviewed


def _lock_pending(request_id: int) -> CheckInRequest:
    req = lock_for_update(db.session.query(CheckInRequest).filter_by(id=request_id)).first()
    if req is None:
        raise NotFoundError(f"Check-in request {request_id} not found")
    if req.status != STATUS_PENDING:
        raise StateError(f"Check-in request {req.request_number} is already {req.status}")
    return req


# =============================================================================
# SUBMIT / READ
# =============================================================================

def create_check_in_request(
    *,
    company_id,
    products,
    requested_by: int | None = None,
    notes: str | None = None,
) -> CheckInRequest:
    company_id = _require_company(company_id)
    entries = normalize_product_entries(products)

    def _op():
        number = next_document_number(company_id=company_id, document_type=DOC_CHECK_IN)
        req = CheckInRequest(
            company_id=company_id,
            request_number=number,
            status=STATUS_PENDING,
            requested_products=entries,
            was_amended=False,
            notes=optional_text(notes),
            requested_by=requested_by,
        )
        db.session.add(req)
        db.session.flush()
        append_activity_event(
            company_id=company_id,
            event_type="CHECK_IN_SUBMITTED",
            event_category="check_in",
            entity_type="check_in_request",
            entity_id=req.id,
            actor_user_id=requested_by,
            note=f"Check-in {number} submitted ({len(entries)} product(s))",
        )
        db.session.commit()
        return req

    return run_with_retry(_op)


def get_check_in(request_id: int) -> CheckInRequest:
    req = db.session.get(CheckInRequest, request_id)
    if req is None:
        raise NotFoundError(f"Check-in request {request_id} not found")
    return req


def list_check_ins(
    *,
    company_id: int | None = None,
    status: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[CheckInRequest], int]:
    query = db.session.query(CheckInRequest)
    if company_id is not None:
        query = query.filter(CheckInRequest.company_id == company_id)
    if status:
        if status not in STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(STATUSES)}")
        query = query.filter(CheckInRequest.status == status)
    total = query.count()
    limit = max(1, min(coerce_int(limit, "limit"), 500))
    offset = max(0, coerce_int(offset, "offset"))
    rows = (
        query.order_by(CheckInRequest.created_at.desc(), CheckInRequest.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return rows, total


def check_in_template(product_id: int) -> dict:
    """Entry pre-filled from a catalog product: same labels, zero quantities."""
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found")
    template = {
        "name": product.name,
        "quantity": 0,
        "variants": vt.to_document(vt.clone_with_zeroed_quantities(product.variant_tree)),
    }
    if product.sku:
        template["sku"] = product.sku
    return template


# =============================================================================
# REVIEW
# =============================================================================

def _insert_products(req: CheckInRequest, entries: list[dict], received_at: datetime) -> BulkResult:
    result = BulkResult()
    created_ids = []
    for entry in entries:
        tree = vt.parse_variants(entry.get("variants"))
        product = Product(
            company_id=req.company_id,
            name=entry["name"],
            sku=entry.get("sku"),
            description=entry.get("description"),
            minimum_quantity=entry.get("minimum_quantity"),
            quantity=entry["quantity"],
            is_active=True,
        )
        product.set_variant_tree(tree)
        db.session.add(product)
        db.session.flush()

        lot = add_base_stock(
            product_id=product.id,
            company_id=req.company_id,
            quantity=product.on_hand,
            received_date=received_at,
        )
        created_ids.append(product.id)
        result.record_success(entry["name"], {
            "product_id": product.id,
            "quantity": product.on_hand,
            "lot_id": lot.id if lot else None,
        })
    req.approved_product_ids = created_ids
    return result


def _approve(
    req: CheckInRequest,
    entries: list[dict],
    *,
    reviewed_by: int | None,
    reviewed_at: datetime,
    event_type: str,
) -> BulkResult:
    result = _insert_products(req, entries, reviewed_at)
    req.status = STATUS_APPROVED
    req.reviewed_by = reviewed_by
    req.reviewed_at = reviewed_at
    append_activity_event(
        company_id=req.company_id,
        event_type=event_type,
        event_category="check_in",
        entity_type="check_in_request",
        entity_id=req.id,
        actor_user_id=reviewed_by,
        occurred_at=reviewed_at,
        note=f"Check-in {req.request_number} approved ({result.succeeded} product(s))",
    )
    return result


def approve_check_in(
    request_id: int,
    *,
    reviewed_by: int | None = None,
    reviewed_at=None,
) -> tuple[CheckInRequest, BulkResult]:
    """Approve as submitted. Returns the request and per-product outcomes."""
    reviewed = parse_reviewed_at(reviewed_at)

    def _op():
        req = _lock_pending(request_id)
        entries = normalize_product_entries(req.requested_products, allow_zero=True)
        result = _approve(req, entries, reviewed_by=reviewed_by, reviewed_at=reviewed, event_type="CHECK_IN_APPROVED")
        db.session.commit()
        current_app.logger.info("Check-in %s approved: %s product(s)", req.request_number, result.succeeded)
        return req, result

    return run_with_retry(_op)


def amend_and_approve_check_in(
    request_id: int,
    *,
    amended_products,
    reviewed_by: int | None = None,
    amendment_notes: str | None = None,
    reviewed_at=None,
) -> tuple[CheckInRequest, BulkResult]:
    """
    Approve using a staff-corrected product list.

    Individual amended entries may be 0 (nothing of that item arrived) but the
    list itself must not be empty. requested_products is left untouched.
    """
    entries = normalize_product_entries(amended_products, allow_zero=True)
    reviewed = parse_reviewed_at(reviewed_at)

    def _op():
        req = _lock_pending(request_id)
        req.amended_products = entries
        req.was_amended = True
        req.amendment_notes = optional_text(amendment_notes)
        result = _approve(req, entries, reviewed_by=reviewed_by, reviewed_at=reviewed, event_type="CHECK_IN_AMENDED")
        db.session.commit()
        current_app.logger.info(
            "Check-in %s amended and approved: %s product(s)", req.request_number, result.succeeded
        )
        return req, result

    return run_with_retry(_op)


def reject_check_in(
    request_id: int,
    *,
    reason,
    reviewed_by: int | None = None,
) -> CheckInRequest:
    """Reject with a mandatory reason. No inventory side effects."""
    reason = require_text(reason, "rejection_reason")

    def _op():
        req = _lock_pending(request_id)
        req.status = STATUS_REJECTED
        req.rejection_reason = reason
        req.reviewed_by = reviewed_by
        req.reviewed_at = utcnow()
        append_activity_event(
            company_id=req.company_id,
            event_type="CHECK_IN_REJECTED",
            event_category="check_in",
            entity_type="check_in_request",
            entity_id=req.id,
            actor_user_id=reviewed_by,
            note=f"Check-in {req.request_number} rejected",
        )
        db.session.commit()
        current_app.logger.info("Check-in %s rejected", req.request_number)
        return req

    return run_with_retry(_op)
