# Overview: Read-only snapshots of approved check-in / check-out events.

"""
Event log

The approved check-in and check-out requests ARE the event log: each one
carries the product/quantity list it applied and the reviewed_at instant at
which it affected stock. Nothing here mutates; callers get frozen snapshots
so the reconciliation arithmetic can run without a session.

Rules:
- Only status == "approved" with a reviewed_at counts. Pending and rejected
  requests never affect quantity.
- Check-ins replay amended_products when was_amended, else requested_products.
- As-of filtering is inclusive: reviewed_at <= until.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional, Tuple

from ..extensions import db
from ..models import CheckInRequest, CheckOutRequest
from warehouse import variants as vt

STATUS_APPROVED = "approved"


@dataclass(frozen=True)
class CheckInEntry:
    name: str
    quantity: int
    tree: vt.VariantTree = ()
    sku: Optional[str] = None
    product_id: Optional[int] = None

    @property
    def base_quantity(self) -> int:
        """Scalar quantity of an entry without variants; 0 otherwise."""
        return 0 if self.tree else self.quantity

    def leaf_quantities(self) -> list[tuple[vt.VariantPath, int]]:
        return [(path, leaf.quantity) for path, leaf in vt.iter_leaves(self.tree)]


@dataclass(frozen=True)
class CheckInSnapshot:
    request_id: int
    company_id: int
    reviewed_at: datetime
    entries: Tuple[CheckInEntry, ...]


@dataclass(frozen=True)
class CheckOutItem:
    product_name: str
    quantity: int
    product_id: Optional[int] = None
    variant_attribute: Optional[str] = None
    variant_value: Optional[str] = None
    sub_variant_attribute: Optional[str] = None
    sub_variant_value: Optional[str] = None

    @property
    def value_key(self) -> Tuple[str, ...]:
        """() for base stock, else (variant_value[, sub_variant_value])."""
        if not self.variant_value:
            return ()
        if self.sub_variant_value:
            return (self.variant_value, self.sub_variant_value)
        return (self.variant_value,)

    @property
    def segments(self) -> vt.VariantPath:
        if not self.variant_value:
            return ()
        path = ((self.variant_attribute or "", self.variant_value),)
        if self.sub_variant_value:
            path += ((self.sub_variant_attribute or "", self.sub_variant_value),)
        return path


@dataclass(frozen=True)
class CheckOutSnapshot:
    request_id: int
    company_id: int
    reviewed_at: datetime
    items: Tuple[CheckOutItem, ...]


def _int_or_zero(raw) -> int:
    if isinstance(raw, bool):
        return 0
    try:
        return int(raw or 0)
    except (TypeError, ValueError):
        return 0


def _text(raw) -> Optional[str]:
    if raw is None:
        return None
    text = str(raw)
    return text if text.strip() else None


def parse_check_in_entries(products: Iterable, product_ids: Iterable | None = None) -> Tuple[CheckInEntry, ...]:
    ids = list(product_ids or [])
    entries = []
    for i, raw in enumerate(products or []):
        if not isinstance(raw, dict):
            continue
        tree = vt.parse_variants(raw.get("variants"))
        quantity = vt.total_quantity(tree) if tree else _int_or_zero(raw.get("quantity"))
        entries.append(CheckInEntry(
            name=str(raw.get("name") or ""),
            quantity=quantity,
            tree=tree,
            sku=_text(raw.get("sku")),
            product_id=ids[i] if i < len(ids) else None,
        ))
    return tuple(entries)


def parse_check_out_items(items: Iterable) -> Tuple[CheckOutItem, ...]:
    parsed = []
    for raw in items or []:
        if not isinstance(raw, dict):
            continue
        product_id = raw.get("product_id")
        parsed.append(CheckOutItem(
            product_name=str(raw.get("product_name") or ""),
            quantity=_int_or_zero(raw.get("quantity")),
            product_id=product_id if isinstance(product_id, int) and not isinstance(product_id, bool) else None,
            variant_attribute=_text(raw.get("variant_attribute")),
            variant_value=_text(raw.get("variant_value")),
            sub_variant_attribute=_text(raw.get("sub_variant_attribute")),
            sub_variant_value=_text(raw.get("sub_variant_value")),
        ))
    return tuple(parsed)


def snapshot_check_in(request: CheckInRequest) -> CheckInSnapshot:
    return CheckInSnapshot(
        request_id=request.id,
        company_id=request.company_id,
        reviewed_at=request.reviewed_at,
        entries=parse_check_in_entries(request.effective_products, request.approved_product_ids),
    )


def snapshot_check_out(request: CheckOutRequest) -> CheckOutSnapshot:
    return CheckOutSnapshot(
        request_id=request.id,
        company_id=request.company_id,
        reviewed_at=request.reviewed_at,
        items=parse_check_out_items(request.requested_items),
    )


def _approved(model, company_ids: Iterable[int] | None, until: datetime | None):
    query = db.session.query(model).filter(
        model.status == STATUS_APPROVED,
        model.reviewed_at.isnot(None),
    )
    if company_ids is not None:
        query = query.filter(model.company_id.in_(list(company_ids)))
    if until is not None:
        query = query.filter(model.reviewed_at <= until)
    return query.order_by(model.reviewed_at.asc(), model.id.asc()).all()


def approved_check_ins(company_ids: Iterable[int] | None = None, until: datetime | None = None) -> list[CheckInSnapshot]:
    return [snapshot_check_in(r) for r in _approved(CheckInRequest, company_ids, until)]


def approved_check_outs(company_ids: Iterable[int] | None = None, until: datetime | None = None) -> list[CheckOutSnapshot]:
    return [snapshot_check_out(r) for r in _approved(CheckOutRequest, company_ids, until)]
