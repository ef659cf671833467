# Overview: Catalog data-quality scan and bulk repairs (empty names, malformed variants).

"""
Data cleanup

Two known failure modes in client-entered catalog data:
- empty_name: product name blank or whitespace
- malformed_variants: empty variant objects, blank attributes or blank values

A product is reported once; an empty name takes precedence over malformed
variants. Per-company severity:
- critical: any empty name, or 10+ issues
- warning: more than 5 malformed-variant products
- info: anything else

Bulk repairs commit per product and continue on error; the caller gets a
BulkResult with per-product outcomes.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Company, InventoryLot, Product, ShipmentItem
from ..validation import NotFoundError, StateError
from warehouse import variants as vt
from .ledger_service import append_activity_event
from .results import BulkResult


ISSUE_EMPTY_NAME = "empty_name"
ISSUE_MALFORMED_VARIANTS = "malformed_variants"

SEVERITY_ORDER = {"critical": 0, "warning": 1, "info": 2}


def product_issue(product: Product) -> tuple[str, list[str]] | None:
    if not (product.name or "").strip():
        return ISSUE_EMPTY_NAME, ["Empty product name"]
    issues = vt.variant_issues(product.variants)
    if issues:
        return ISSUE_MALFORMED_VARIANTS, issues
    return None


def severity_for(empty_names: int, malformed_variants: int) -> str:
    total = empty_names + malformed_variants
    if empty_names > 0 or total >= 10:
        return "critical"
    if malformed_variants > 5:
        return "warning"
    return "info"


def scan_products(company_id: int | None = None) -> dict:
    """Problem products plus per-company stats, most severe company first."""
    query = db.session.query(Product)
    if company_id is not None:
        query = query.filter(Product.company_id == company_id)

    problems = []
    stats: dict[int, dict] = {}
    for product in query.order_by(Product.company_id.asc(), Product.id.asc()).all():
        found = product_issue(product)
        if found is None:
            continue
        issue_type, details = found
        problems.append({
            "id": product.id,
            "company_id": product.company_id,
            "name": product.name or "",
            "sku": product.sku,
            "issue_type": issue_type,
            "issues": details,
        })
        entry = stats.setdefault(product.company_id, {
            "company_id": product.company_id,
            "empty_names": 0,
            "malformed_variants": 0,
        })
        if issue_type == ISSUE_EMPTY_NAME:
            entry["empty_names"] += 1
        else:
            entry["malformed_variants"] += 1

    names = {
        c.id: c.name
        for c in db.session.query(Company).filter(Company.id.in_(list(stats))).all()
    } if stats else {}

    companies = []
    for entry in stats.values():
        entry["company_name"] = names.get(entry["company_id"], "Unknown")
        entry["total_issues"] = entry["empty_names"] + entry["malformed_variants"]
        entry["severity"] = severity_for(entry["empty_names"], entry["malformed_variants"])
        companies.append(entry)
    companies.sort(key=lambda c: (SEVERITY_ORDER[c["severity"]], -c["total_issues"]))

    return {
        "products": problems,
        "companies": companies,
        "empty_names": sum(1 for p in problems if p["issue_type"] == ISSUE_EMPTY_NAME),
        "malformed_variants": sum(1 for p in problems if p["issue_type"] == ISSUE_MALFORMED_VARIANTS),
    }


def replacement_name(product: Product) -> str:
    sku = (product.sku or "").strip()
    return f"Product {sku}" if sku else f"Product {product.id}"


def _bulk(products, fix, event_type: str) -> BulkResult:
    result = BulkResult()
    for product in products:
        product_id = product.id
        company_id = product.company_id
        try:
            detail = fix(product)
            append_activity_event(
                company_id=company_id,
                event_type=event_type,
                event_category="cleanup",
                entity_type="product",
                entity_id=product_id,
            )
            db.session.commit()
        except (SQLAlchemyError, ValueError) as exc:
            db.session.rollback()
            current_app.logger.warning("Cleanup of product %s failed: %s", product_id, exc)
            result.record_failure(product_id, str(exc))
            continue
        result.record_success(product_id, detail)
    return result


def bulk_fix_empty_names(company_id: int | None = None) -> BulkResult:
    """Rename every empty-named product to "Product <sku>" or "Product <id>"."""
    query = db.session.query(Product)
    if company_id is not None:
        query = query.filter(Product.company_id == company_id)
    targets = [p for p in query.order_by(Product.id.asc()).all() if not (p.name or "").strip()]

    def _fix(product: Product) -> dict:
        product.name = replacement_name(product)
        db.session.flush()
        return {"name": product.name}

    return _bulk(targets, _fix, "PRODUCT_NAME_FIXED")


def bulk_clean_variants(company_id: int | None = None) -> BulkResult:
    """Repair malformed variant lists in place; quantities are recomputed."""
    query = db.session.query(Product)
    if company_id is not None:
        query = query.filter(Product.company_id == company_id)
    targets = [p for p in query.order_by(Product.id.asc()).all() if vt.variant_issues(p.variants)]

    def _fix(product: Product) -> dict:
        before = product.on_hand
        cleaned = vt.clean_variants(product.variants)
        product.set_variant_tree(vt.parse_variants(cleaned))
        db.session.flush()
        return {"quantity_before": before, "quantity_after": product.on_hand, "variants": product.variants}

    return _bulk(targets, _fix, "PRODUCT_VARIANTS_CLEANED")


def delete_product(product_id: int, *, actor_user_id: int | None = None) -> None:
    """
    Hard-delete a catalog product and its lots.

    Products referenced by shipments are kept for history; deactivate them
    instead.
    """
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found")
    shipped = db.session.query(ShipmentItem.id).filter(ShipmentItem.product_id == product_id).first()
    if shipped is not None:
        raise StateError(f"Product {product_id} appears on shipments; deactivate it instead")

    company_id = product.company_id
    db.session.query(InventoryLot).filter(InventoryLot.product_id == product_id).delete(synchronize_session=False)
    db.session.delete(product)
    append_activity_event(
        company_id=company_id,
        event_type="PRODUCT_DELETED",
        event_category="cleanup",
        entity_type="product",
        entity_id=product_id,
        actor_user_id=actor_user_id,
    )
    db.session.commit()
