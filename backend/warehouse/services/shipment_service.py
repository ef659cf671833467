# Overview: Shipment creation and the lot/catalog synchronizer it drives.

"""
Shipment synchronizer

Stock lives in two places that must move together:
- InventoryLot rows (dated, depleted FIFO)
- the product's variant tree leaves, or the scalar quantity for products
  without variants (the figure clients see)

For each item the synchronizer:
1. reads the item's variant identifier; a compound path such as
   "Size: Large → Color: Red" is cut down to its FIRST segment, so lots and
   the tree are addressed by a single (attribute, value) selection
2. depletes lots FIFO for that key (falling back to base lots)
3. decrements the first matching tree value by the shipped quantity,
   clamped at 0; an identifier that matches nothing leaves the tree alone
4. writes both in the same DB transaction as the shipment row

The whole shipment is one transaction: either every item is deducted from
both stores and the shipment exists, or nothing changed.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..models import Company, Product, Shipment, ShipmentItem
from ..validation import (
    NotFoundError,
    StateError,
    ValidationError,
    coerce_int,
    optional_text,
    require_positive_int,
    require_text,
    require_timestamp,
)
from warehouse import variants as vt
from warehouse.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .document_service import DOC_SHIPMENT, next_document_number
from .ledger_service import append_activity_event
from .lot_service import (
    Depletion,
    InsufficientStock,
    InsufficientStockError,
    deplete_inner,
    normalize_variant_key,
)


STATUS_PENDING = "pending"
STATUS_IN_TRANSIT = "in_transit"
STATUS_DELIVERED = "delivered"

STATUS_ORDER = (STATUS_PENDING, STATUS_IN_TRANSIT, STATUS_DELIVERED)


@dataclass(frozen=True)
class ItemDeduction:
    product_id: int
    segments: vt.VariantPath
    quantity: int
    depletion: Depletion
    catalog_before: int
    catalog_after: int
    tree_matched: bool

    @property
    def consumed(self) -> int:
        return self.depletion.consumed

    @property
    def shortfall(self) -> int:
        return self.depletion.shortfall

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "variant_path": vt.format_path(self.segments) or None,
            "quantity": self.quantity,
            "consumed": self.consumed,
            "shortfall": self.shortfall,
            "catalog_before": self.catalog_before,
            "catalog_after": self.catalog_after,
            "tree_matched": self.tree_matched,
            "lots": [c.to_dict() for c in self.depletion.consumptions],
        }


def resolve_item_segments(
    *,
    variant_path: str | None = None,
    variant_attribute: str | None = None,
    variant_value: str | None = None,
) -> vt.VariantPath:
    """First (attribute, value) selection of a shipment item, or () for base stock."""
    segments = vt.parse_variant_path(variant_path)
    if segments:
        return segments[:1]
    key = normalize_variant_key(variant_attribute, variant_value)
    return (key,) if key else ()


def _lock_product(product_id: int, company_id: int) -> Product:
    product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
    if product is None:
        raise NotFoundError(f"Product {product_id} not found")
    if product.company_id != company_id:
        raise ValidationError(f"Product {product_id} does not belong to company {company_id}")
    return product


def deduct_item_inner(
    *,
    company_id: int,
    product_id: int,
    segments: vt.VariantPath,
    quantity: int,
) -> ItemDeduction:
    """
    Remove `quantity` units of one product/variant from lots and catalog.

    A single segment is deducted from the first match at any depth. A longer
    path (check-out sub-variants) is deducted from exactly that leaf. Lots are
    always keyed by the first segment. Flushes, never commits.
    """
    product = _lock_product(product_id, company_id)
    variant_key = tuple(segments[0]) if segments else None

    depletion = deplete_inner(
        product_id=product_id,
        company_id=company_id,
        variant_key=variant_key,
        amount=quantity,
    )

    tree = product.variant_tree
    before = product.on_hand
    matched = True
    if tree and segments:
        if len(segments) == 1:
            attribute, value = segments[0]
            matched = vt.locate(tree, attribute, value) is not None
            updated = vt.decrement_leaf_quantity(tree, attribute, value, quantity)
        else:
            current = vt.leaf_quantity(tree, segments)
            matched = current is not None
            updated = vt.set_leaf_quantity(tree, segments, current - quantity) if matched else tree
        if matched:
            product.set_variant_tree(updated)
    elif tree:
        # Base deduction against a product that only tracks stock per variant
        matched = False
    else:
        product.quantity = max(0, (product.quantity or 0) - quantity)

    if not matched:
        current_app.logger.warning(
            "Variant %r matched no catalog value on product %s; catalog left unchanged",
            vt.format_path(segments) or "(base)", product_id,
        )

    db.session.flush()
    return ItemDeduction(
        product_id=product_id,
        segments=tuple(segments),
        quantity=quantity,
        depletion=depletion,
        catalog_before=before,
        catalog_after=product.on_hand,
        tree_matched=matched,
    )


def _validate_items(company_id: int, items) -> list[dict]:
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")

    parsed = []
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
        if not product.is_active:
            raise ValidationError(f"Item {i}: product {product_id} is inactive")
        variant_path = optional_text(raw.get("variant_path"))
        segments = resolve_item_segments(
            variant_path=variant_path,
            variant_attribute=raw.get("variant_attribute"),
            variant_value=raw.get("variant_value"),
        )
        parsed.append({
            "product_id": product_id,
            "quantity": quantity,
            "segments": segments,
            "variant_path": variant_path or (vt.format_path(segments) or None),
        })
    return parsed


def create_shipment(
    *,
    company_id: int,
    destination_address,
    items,
    destination_contact: str | None = None,
    destination_phone: str | None = None,
    carrier: str | None = None,
    tracking_number: str | None = None,
    notes: str | None = None,
    shipment_date=None,
    shipped_by: int | None = None,
    allow_shortfall: bool | None = None,
) -> tuple[Shipment, list[ItemDeduction]]:
    """
    Create a shipment and deduct every item from lots and catalog.

    Items: [{"product_id", "quantity", "variant_path"? | "variant_attribute"?,
    "variant_value"?}]. When allow_shortfall is False (default from
    ALLOW_SHIPMENT_SHORTFALL) any item the lots cannot fully cover aborts the
    whole shipment with InsufficientStockError.
    """
    company_id = require_positive_int(company_id, "company_id")
    if db.session.get(Company, company_id) is None:
        raise NotFoundError(f"Company {company_id} not found")
    address = require_text(destination_address, "destination_address")
    parsed_items = _validate_items(company_id, items)
    shipped_at = require_timestamp(shipment_date, "shipment_date") if shipment_date is not None else utcnow()
    if allow_shortfall is None:
        allow_shortfall = current_app.config.get("ALLOW_SHIPMENT_SHORTFALL", True)

    def _op():
        number = next_document_number(company_id=company_id, document_type=DOC_SHIPMENT)
        shipment = Shipment(
            company_id=company_id,
            shipment_number=number,
            status=STATUS_PENDING,
            destination_address=address,
            destination_contact=optional_text(destination_contact),
            destination_phone=optional_text(destination_phone),
            carrier=optional_text(carrier),
            tracking_number=optional_text(tracking_number),
            notes=optional_text(notes),
            shipment_date=shipped_at,
            shipped_by=shipped_by,
        )
        db.session.add(shipment)
        db.session.flush()

        deductions = []
        for item in parsed_items:
            deduction = deduct_item_inner(
                company_id=company_id,
                product_id=item["product_id"],
                segments=item["segments"],
                quantity=item["quantity"],
            )
            if isinstance(deduction.depletion, InsufficientStock) and not allow_shortfall:
                db.session.rollback()
                raise InsufficientStockError(
                    deduction.depletion,
                    f"Product {item['product_id']} is short by {deduction.shortfall}",
                )
            segments = item["segments"]
            db.session.add(ShipmentItem(
                shipment_id=shipment.id,
                product_id=item["product_id"],
                variant_attribute=segments[0][0] if segments else None,
                variant_value=segments[0][1] if segments else None,
                variant_path=item["variant_path"],
                quantity=item["quantity"],
                consumed_quantity=deduction.consumed,
                shortfall_quantity=deduction.shortfall,
            ))
            deductions.append(deduction)

        short = sum(d.shortfall for d in deductions)
        append_activity_event(
            company_id=company_id,
            event_type="SHIPMENT_CREATED",
            event_category="shipment",
            entity_type="shipment",
            entity_id=shipment.id,
            actor_user_id=shipped_by,
            occurred_at=shipped_at,
            note=f"Shipment {number} created with {len(deductions)} item(s)",
            payload={"shortfall": short},
        )
        db.session.commit()
        current_app.logger.info(
            "Shipment %s created for company %s (%s items, shortfall %s)",
            number, company_id, len(deductions), short,
        )
        return shipment, deductions

    return run_with_retry(_op)


def get_shipment(shipment_id: int) -> Shipment:
    shipment = db.session.get(Shipment, shipment_id)
    if shipment is None:
        raise NotFoundError(f"Shipment {shipment_id} not found")
    return shipment


def list_shipments(
    *,
    company_id: int | None = None,
    status: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[Shipment], int]:
    query = db.session.query(Shipment)
    if company_id is not None:
        query = query.filter(Shipment.company_id == company_id)
    if status:
        if status not in STATUS_ORDER:
            raise ValidationError(f"status must be one of: {', '.join(STATUS_ORDER)}")
        query = query.filter(Shipment.status == status)
    total = query.count()
    limit = max(1, min(coerce_int(limit, "limit"), 500))
    offset = max(0, coerce_int(offset, "offset"))
    rows = query.order_by(Shipment.created_at.desc(), Shipment.id.desc()).offset(offset).limit(limit).all()
    return rows, total


def update_shipment_status(
    shipment_id: int,
    status: str,
    *,
    tracking_number: str | None = None,
    actor_user_id: int | None = None,
) -> Shipment:
    """Move a shipment forward: pending -> in_transit -> delivered."""
    if status not in STATUS_ORDER:
        raise ValidationError(f"status must be one of: {', '.join(STATUS_ORDER)}")

    def _op():
        shipment = lock_for_update(db.session.query(Shipment).filter_by(id=shipment_id)).first()
        if shipment is None:
            raise NotFoundError(f"Shipment {shipment_id} not found")
        current = STATUS_ORDER.index(shipment.status)
        target = STATUS_ORDER.index(status)
        if target <= current:
            raise StateError(f"Cannot move shipment from {shipment.status} to {status}")

        previous = shipment.status
        shipment.status = status
        if tracking_number is not None:
            shipment.tracking_number = optional_text(tracking_number)
        append_activity_event(
            company_id=shipment.company_id,
            event_type="SHIPMENT_STATUS_CHANGED",
            event_category="shipment",
            entity_type="shipment",
            entity_id=shipment.id,
            actor_user_id=actor_user_id,
            note=f"{shipment.shipment_number}: {previous} -> {status}",
        )
        db.session.commit()
        return shipment

    return run_with_retry(_op)
