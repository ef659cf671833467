# Overview: Catalog product creation, lookup and lot/catalog stock summaries.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func

from ..extensions import db
from ..models import Company, InventoryLot, Product
from ..validation import (
    NotFoundError,
    coerce_int,
    optional_text,
    require_non_negative_int,
    require_positive_int,
    require_text,
    require_timestamp,
)
from warehouse import variants as vt
from warehouse.time_utils import to_utc_z, utcnow
from .concurrency import run_with_retry
from .ledger_service import append_activity_event
from .lot_service import add_base_stock, total_lot_quantity


def create_product(
    *,
    company_id,
    name,
    sku: str | None = None,
    description: str | None = None,
    variants=None,
    quantity=0,
    minimum_quantity=None,
    received_date=None,
    created_by: int | None = None,
) -> Product:
    """
    Direct client creation of a catalog product.

    Opening stock (tree total, or `quantity` without variants) is also booked
    as a base lot so lots and catalog start out equal.
    """
    company_id = require_positive_int(company_id, "company_id")
    if db.session.get(Company, company_id) is None:
        raise NotFoundError(f"Company {company_id} not found")
    name = require_text(name, "name", max_length=255)
    tree = vt.validate_variants(variants or [], label=f'Product "{name}" variant')
    scalar = 0 if tree else require_non_negative_int(quantity, "quantity")
    minimum = None if minimum_quantity is None else require_non_negative_int(minimum_quantity, "minimum_quantity")
    received = require_timestamp(received_date, "received_date") if received_date is not None else utcnow()

    def _op():
        product = Product(
            company_id=company_id,
            name=name,
            sku=optional_text(sku),
            description=optional_text(description),
            quantity=scalar,
            minimum_quantity=minimum,
            is_active=True,
        )
        product.set_variant_tree(tree)
        db.session.add(product)
        db.session.flush()

        add_base_stock(
            product_id=product.id,
            company_id=company_id,
            quantity=product.on_hand,
            received_date=received,
        )
        append_activity_event(
            company_id=company_id,
            event_type="PRODUCT_CREATED",
            event_category="catalog",
            entity_type="product",
            entity_id=product.id,
            actor_user_id=created_by,
            note=f"Product {name} created with {product.on_hand} unit(s)",
        )
        db.session.commit()
        return product

    return run_with_retry(_op)


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def list_products(
    *,
    company_id: int | None = None,
    name: str | None = None,
    include_inactive: bool = False,
    limit: int = 200,
    offset: int = 0,
) -> tuple[list[Product], int]:
    query = db.session.query(Product)
    if company_id is not None:
        query = query.filter(Product.company_id == company_id)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    if name:
        query = query.filter(func.lower(Product.name).contains(name.strip().lower()))
    total = query.count()
    limit = max(1, min(coerce_int(limit, "limit"), 500))
    offset = max(0, coerce_int(offset, "offset"))
    rows = query.order_by(Product.id.asc()).offset(offset).limit(limit).all()
    return rows, total


def get_stock_summary(product_id: int) -> dict:
    """
    Both stock representations side by side.

    drift = lot total - catalog total. Non-zero drift means lots and catalog
    have diverged and a physical count should settle it.
    """
    product = get_product(product_id)
    tree = product.variant_tree
    catalog_total = product.on_hand
    lot_total = total_lot_quantity(product.id, product.company_id)

    by_key = (
        db.session.query(
            InventoryLot.variant_attribute,
            InventoryLot.variant_value,
            func.sum(InventoryLot.quantity),
            func.count(InventoryLot.id),
            func.min(InventoryLot.received_date),
        )
        .filter(InventoryLot.product_id == product.id, InventoryLot.company_id == product.company_id)
        .group_by(InventoryLot.variant_attribute, InventoryLot.variant_value)
        .all()
    )

    return {
        "product_id": product.id,
        "company_id": product.company_id,
        "name": product.name,
        "catalog_total": catalog_total,
        "lot_total": lot_total,
        "drift": lot_total - catalog_total,
        "has_variants": bool(tree),
        "has_nested_variants": vt.has_nested_variants(tree),
        "leaves": [
            {"path": path, "quantity": quantity}
            for path, quantity in vt.flatten_to_paths(tree).items()
        ],
        "lots_by_key": [
            {
                "variant_attribute": attribute,
                "variant_value": value,
                "quantity": int(quantity or 0),
                "lot_count": count,
                "oldest_received_date": to_utc_z(oldest) if isinstance(oldest, datetime) else oldest,
            }
            for attribute, value, quantity, count, oldest in by_key
        ],
    }
