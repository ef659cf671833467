# Overview: Dated inventory lots per (product, company, variant key) with FIFO depletion.

"""
Lot store invariants (authoritative)

- Every stored lot has quantity > 0. A lot consumed to 0 is deleted.
- Variant key = (variant_attribute, variant_value). (None, None) is base stock.
  Keys are matched exactly as stored; only surrounding whitespace is trimmed on
  input and blank strings are read as None.
- Depletion walks lots strictly by received_date ascending (id breaks ties).
- A variant-key depletion that runs out of variant lots continues on the
  base lots of the same product/company, same FIFO rule.
- Running out of stock is not an error here: deplete() returns an
  InsufficientStock result carrying the shortfall and callers decide whether to
  warn or block (see InsufficientStockError).
- Lots being depleted are locked FOR UPDATE and carry version_id, so two
  depletions of the same key are serialized.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Tuple

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import InventoryLot, Product
from ..validation import NotFoundError, ValidationError, require_non_negative_int, require_positive_int, require_timestamp
from warehouse.time_utils import utcnow, to_utc_z
from .concurrency import lock_for_update, run_with_retry
from .ledger_service import append_activity_event

VariantKey = Optional[Tuple[str, str]]


@dataclass(frozen=True)
class LotConsumption:
    lot_id: int
    received_date: datetime
    variant_key: VariantKey
    taken: int
    remaining: int  # 0 means the lot was deleted

    def to_dict(self) -> dict:
        return {
            "lot_id": self.lot_id,
            "received_date": to_utc_z(self.received_date),
            "variant_attribute": self.variant_key[0] if self.variant_key else None,
            "variant_value": self.variant_key[1] if self.variant_key else None,
            "taken": self.taken,
            "remaining": self.remaining,
        }


@dataclass(frozen=True)
class Depletion:
    requested: int
    consumed: int
    consumptions: Tuple[LotConsumption, ...] = ()

    @property
    def shortfall(self) -> int:
        return self.requested - self.consumed

    @property
    def fully_covered(self) -> bool:
        return self.shortfall == 0

    def to_dict(self) -> dict:
        return {
            "requested": self.requested,
            "consumed": self.consumed,
            "shortfall": self.shortfall,
            "consumptions": [c.to_dict() for c in self.consumptions],
        }


@dataclass(frozen=True)
class InsufficientStock(Depletion):
    """Depletion that could not cover the requested amount."""


class InsufficientStockError(Exception):
    """Raised when a caller chose to block on a shortfall."""

    def __init__(self, result: InsufficientStock, message: str | None = None):
        self.result = result
        super().__init__(message or f"insufficient stock: short by {result.shortfall}")


def normalize_variant_key(variant_attribute=None, variant_value=None) -> VariantKey:
    attribute = variant_attribute.strip() if isinstance(variant_attribute, str) else None
    value = variant_value.strip() if isinstance(variant_value, str) else None
    if not attribute and not value:
        return None
    return (attribute or "", value or "")


def _key_columns(variant_key: VariantKey) -> tuple[str | None, str | None]:
    if variant_key is None:
        return None, None
    return variant_key[0], variant_key[1]


def _ensure_product(product_id: int, company_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found")
    if product.company_id != company_id:
        raise ValidationError("product does not belong to company")
    return product


def _lots_query(product_id: int, company_id: int, variant_key: VariantKey):
    attribute, value = _key_columns(variant_key)
    query = db.session.query(InventoryLot).filter(
        InventoryLot.product_id == product_id,
        InventoryLot.company_id == company_id,
        InventoryLot.quantity > 0,
    )
    if attribute is None:
        query = query.filter(InventoryLot.variant_attribute.is_(None), InventoryLot.variant_value.is_(None))
    else:
        query = query.filter(InventoryLot.variant_attribute == attribute, InventoryLot.variant_value == value)
    return query.order_by(InventoryLot.received_date.asc(), InventoryLot.id.asc())


def _check_received_date(value) -> datetime:
    received = require_timestamp(value, "received_date") if value is not None else utcnow()
    tolerance = current_app.config.get("FUTURE_TOLERANCE_MINUTES", 2)
    if received > utcnow() + timedelta(minutes=tolerance):
        raise ValidationError("received_date cannot be in the future")
    return received


# =============================================================================
# READS
# =============================================================================

def available_quantity(product_id: int, company_id: int, variant_key: VariantKey = None) -> int:
    """Units held in lots for exactly this key (no base fallback)."""
    attribute, value = _key_columns(variant_key)
    query = db.session.query(func.coalesce(func.sum(InventoryLot.quantity), 0)).filter(
        InventoryLot.product_id == product_id,
        InventoryLot.company_id == company_id,
    )
    if attribute is None:
        query = query.filter(InventoryLot.variant_attribute.is_(None), InventoryLot.variant_value.is_(None))
    else:
        query = query.filter(InventoryLot.variant_attribute == attribute, InventoryLot.variant_value == value)
    return int(query.scalar() or 0)


def total_lot_quantity(product_id: int, company_id: int) -> int:
    """Units held in lots across every key, base included."""
    total = (
        db.session.query(func.coalesce(func.sum(InventoryLot.quantity), 0))
        .filter(InventoryLot.product_id == product_id, InventoryLot.company_id == company_id)
        .scalar()
    )
    return int(total or 0)


def list_lots(
    *,
    company_id: int,
    product_id: int | None = None,
    variant_key: VariantKey = None,
    any_key: bool = True,
) -> list[InventoryLot]:
    """
    Lots in FIFO order.

    With any_key=True (default) every key is returned; otherwise only lots for
    `variant_key` (None meaning base stock).
    """
    if product_id is not None and not any_key:
        return _lots_query(product_id, company_id, variant_key).all()

    query = db.session.query(InventoryLot).filter(InventoryLot.company_id == company_id)
    if product_id is not None:
        query = query.filter(InventoryLot.product_id == product_id)
    return query.order_by(
        InventoryLot.product_id.asc(),
        InventoryLot.received_date.asc(),
        InventoryLot.id.asc(),
    ).all()


# =============================================================================
# RECEIVING
# =============================================================================

def receive_lot_inner(
    *,
    product_id: int,
    company_id: int,
    quantity: int,
    variant_key: VariantKey,
    received_date: datetime,
    note: str | None = None,
) -> InventoryLot:
    """Insert one lot. No validation, locking or commit."""
    attribute, value = _key_columns(variant_key)
    lot = InventoryLot(
        product_id=product_id,
        company_id=company_id,
        variant_attribute=attribute,
        variant_value=value,
        quantity=quantity,
        received_date=received_date,
        note=note,
    )
    db.session.add(lot)
    db.session.flush()
    return lot


def receive_lot(
    *,
    product_id: int,
    company_id: int,
    quantity,
    variant_attribute: str | None = None,
    variant_value: str | None = None,
    received_date=None,
    note: str | None = None,
    actor_user_id: int | None = None,
    commit: bool = True,
) -> InventoryLot:
    """Record a new dated lot for a product (optionally for one variant key)."""
    quantity = require_positive_int(quantity, "quantity")
    variant_key = normalize_variant_key(variant_attribute, variant_value)

    def _op():
        _ensure_product(product_id, company_id)
        received = _check_received_date(received_date)
        lot = receive_lot_inner(
            product_id=product_id,
            company_id=company_id,
            quantity=quantity,
            variant_key=variant_key,
            received_date=received,
            note=note,
        )
        append_activity_event(
            company_id=company_id,
            event_type="LOT_RECEIVED",
            event_category="lots",
            entity_type="inventory_lot",
            entity_id=lot.id,
            actor_user_id=actor_user_id,
            occurred_at=received,
            note=f"Received {quantity} of product {product_id}",
        )
        if commit:
            db.session.commit()
        return lot

    if not commit:
        return _op()
    return run_with_retry(_op)


def add_base_stock(
    *,
    product_id: int,
    company_id: int,
    quantity: int,
    received_date: datetime | None = None,
) -> InventoryLot | None:
    """
    Create or increment the base (no-variant) lot for a product.

    Increments the most recently received base lot when one exists, otherwise
    inserts a new lot. Zero quantity is a no-op. Flushes, never commits.
    """
    if quantity <= 0:
        return None
    existing = (
        lock_for_update(
            db.session.query(InventoryLot).filter(
                InventoryLot.product_id == product_id,
                InventoryLot.company_id == company_id,
                InventoryLot.variant_attribute.is_(None),
                InventoryLot.variant_value.is_(None),
            )
        )
        .order_by(InventoryLot.received_date.desc(), InventoryLot.id.desc())
        .first()
    )
    if existing is not None:
        existing.quantity += quantity
        db.session.flush()
        return existing
    return receive_lot_inner(
        product_id=product_id,
        company_id=company_id,
        quantity=quantity,
        variant_key=None,
        received_date=received_date or utcnow(),
    )


# =============================================================================
# DEPLETION
# =============================================================================

def _drain_lots(lots: list[InventoryLot], remaining: int, consumptions: list[LotConsumption]) -> int:
    for lot in lots:
        if remaining <= 0:
            break
        take = min(lot.quantity, remaining)
        left = lot.quantity - take
        consumptions.append(LotConsumption(
            lot_id=lot.id,
            received_date=lot.received_date,
            variant_key=lot.variant_key,
            taken=take,
            remaining=left,
        ))
        if left == 0:
            db.session.delete(lot)
        else:
            lot.quantity = left
        remaining -= take
    return remaining


def deplete_inner(
    *,
    product_id: int,
    company_id: int,
    variant_key: VariantKey,
    amount: int,
    fallback_to_base: bool = True,
) -> Depletion:
    """
    FIFO depletion inside the caller's transaction. Locks, flushes, never commits.

    Returns Depletion when fully covered, InsufficientStock otherwise.
    """
    if amount < 0:
        raise ValidationError("amount cannot be negative")

    consumptions: list[LotConsumption] = []
    remaining = amount
    if amount > 0:
        lots = lock_for_update(_lots_query(product_id, company_id, variant_key)).all()
        remaining = _drain_lots(lots, remaining, consumptions)

        if remaining > 0 and variant_key is not None and fallback_to_base:
            base_lots = lock_for_update(_lots_query(product_id, company_id, None)).all()
            remaining = _drain_lots(base_lots, remaining, consumptions)

        db.session.flush()

    consumed = amount - remaining
    if remaining > 0:
        current_app.logger.warning(
            "FIFO shortfall for product %s (company %s, key %s): requested %s, consumed %s",
            product_id, company_id, variant_key, amount, consumed,
        )
        return InsufficientStock(requested=amount, consumed=consumed, consumptions=tuple(consumptions))
    return Depletion(requested=amount, consumed=consumed, consumptions=tuple(consumptions))


def deplete(
    product_id: int,
    company_id: int,
    variant_key: VariantKey,
    amount,
    *,
    commit: bool = True,
) -> Depletion:
    """
    Consume `amount` units oldest-first and return what was actually taken.

    Falls back to base lots when variant lots run out. A shortfall is reported
    as InsufficientStock, never raised.
    """
    amount = require_non_negative_int(amount, "amount")

    def _op():
        _ensure_product(product_id, company_id)
        result = deplete_inner(
            product_id=product_id,
            company_id=company_id,
            variant_key=variant_key,
            amount=amount,
        )
        if commit:
            db.session.commit()
        return result

    if not commit:
        return _op()
    return run_with_retry(_op)


# =============================================================================
# COUNT ADJUSTMENT
# =============================================================================

def adjust_to_count_inner(
    *,
    product_id: int,
    company_id: int,
    variant_key: VariantKey,
    counted: int,
    actor_user_id: int | None = None,
) -> dict:
    """
    Bring the lot total for exactly `variant_key` to `counted`.

    Surplus becomes a new lot dated now; a deficit is depleted FIFO without
    touching other keys. Flushes, never commits.
    """
    before = sum(lot.quantity for lot in lock_for_update(_lots_query(product_id, company_id, variant_key)).all())
    delta = counted - before
    detail = {"before": before, "after": counted, "delta": delta, "lot_id": None}

    if delta > 0:
        lot = receive_lot_inner(
            product_id=product_id,
            company_id=company_id,
            quantity=delta,
            variant_key=variant_key,
            received_date=utcnow(),
            note="Count adjustment",
        )
        detail["lot_id"] = lot.id
    elif delta < 0:
        deplete_inner(
            product_id=product_id,
            company_id=company_id,
            variant_key=variant_key,
            amount=-delta,
            fallback_to_base=False,
        )

    if delta:
        attribute, value = _key_columns(variant_key)
        append_activity_event(
            company_id=company_id,
            event_type="LOT_ADJUSTED",
            event_category="lots",
            entity_type="product",
            entity_id=product_id,
            actor_user_id=actor_user_id,
            note=f"Lots for {attribute or 'base'}:{value or ''} adjusted {before} -> {counted}",
        )
    return detail


def adjust_to_count(
    *,
    product_id: int,
    company_id: int,
    counted,
    variant_attribute: str | None = None,
    variant_value: str | None = None,
    actor_user_id: int | None = None,
) -> dict:
    counted = require_non_negative_int(counted, "counted")
    variant_key = normalize_variant_key(variant_attribute, variant_value)

    def _op():
        _ensure_product(product_id, company_id)
        detail = adjust_to_count_inner(
            product_id=product_id,
            company_id=company_id,
            variant_key=variant_key,
            counted=counted,
            actor_user_id=actor_user_id,
        )
        db.session.commit()
        return detail

    return run_with_retry(_op)
