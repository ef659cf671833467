# Overview: JARDE reconciliation - expected stock from event replay versus physical counts.

"""
JARDE reconciliation

For a company and a date range [start, end] every approved check-in and
check-out is replayed to compute, per product and per variant leaf:

    starting = check-ins - check-outs        reviewed_at <= start-of-day(start)
    window   = check-ins - check-outs        start-of-day(start) < reviewed_at <= end-of-day(end)
    expected = starting + window check-ins - window check-outs

The two intervals never overlap, so an event exactly at the start boundary
counts once (in starting) and an event exactly at end-of-day(end) counts in
the window.

ROW IDENTITY:
- name mode (default): (product name, variant value labels root-to-leaf).
  Check-out items carry product_name / variant_value / sub_variant_value
  strings and are matched by exact, case-sensitive equality. Renaming a
  product splits its history into two rows.
- id mode: (product id, variant value labels). Check-in entries resolve
  through the request's approved_product_ids, check-out items through their
  product_id.
- The base row (no variant labels) holds check-ins of entries without
  variants and check-outs without a variant_value.

Rows where starting, check-ins, check-outs and expected are all zero are
dropped. variance = actual - expected: 0 is exact, |variance| below
RECONCILIATION_MINOR_VARIANCE is minor, anything else significant.

The report itself never mutates stock. apply_counts() on a SAVED report is
the separate, explicit step that writes counted quantities back.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any, Iterable, Mapping, Optional, Tuple

from flask import current_app

from ..extensions import db
from ..models import Company, Product, ReconciliationReport
from ..validation import (
    NotFoundError,
    StateError,
    ValidationError,
    coerce_int,
    optional_text,
    require_non_negative_int,
)
from warehouse import variants as vt
from warehouse.time_utils import end_of_day, parse_date, start_of_day, utcnow
from .concurrency import lock_for_update, run_with_retry
from .event_log import CheckInSnapshot, CheckOutSnapshot, approved_check_ins, approved_check_outs
from .ledger_service import append_activity_event
from .lot_service import adjust_to_count_inner, deplete_inner, receive_lot_inner
from .results import BulkResult


MATCH_BY_NAME = "name"
MATCH_BY_ID = "id"
MATCH_MODES = (MATCH_BY_NAME, MATCH_BY_ID)

VARIANCE_EXACT = "exact"
VARIANCE_MINOR = "minor"
VARIANCE_SIGNIFICANT = "significant"


# =============================================================================
# PURE ENGINE
# =============================================================================

@dataclass(frozen=True)
class CatalogEntry:
    product_id: int
    name: str
    tree: vt.VariantTree = ()


@dataclass(frozen=True)
class ReconciliationRow:
    row_key: str
    product_id: Optional[int]
    product_name: str
    variant_key: Tuple[str, ...]
    variant_path: Optional[str]
    starting_quantity: int
    check_ins: int
    check_outs: int
    expected_quantity: int
    actual_quantity: Optional[int] = None
    variance: Optional[int] = None
    variance_status: Optional[str] = None

    @property
    def variant_value(self) -> Optional[str]:
        return vt.PATH_SEPARATOR.join(self.variant_key) if self.variant_key else None

    @property
    def is_base(self) -> bool:
        return not self.variant_key

    def to_dict(self) -> dict:
        return {
            "row_key": self.row_key,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "variant_key": list(self.variant_key),
            "variant_value": self.variant_value,
            "variant_path": self.variant_path,
            "starting_quantity": self.starting_quantity,
            "check_ins": self.check_ins,
            "check_outs": self.check_outs,
            "expected_quantity": self.expected_quantity,
            "actual_quantity": self.actual_quantity,
            "variance": self.variance,
            "variance_status": self.variance_status,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ReconciliationRow":
        return cls(
            row_key=data["row_key"],
            product_id=data.get("product_id"),
            product_name=data.get("product_name") or "",
            variant_key=tuple(data.get("variant_key") or ()),
            variant_path=data.get("variant_path"),
            starting_quantity=data.get("starting_quantity", 0),
            check_ins=data.get("check_ins", 0),
            check_outs=data.get("check_outs", 0),
            expected_quantity=data.get("expected_quantity", 0),
            actual_quantity=data.get("actual_quantity"),
            variance=data.get("variance"),
            variance_status=data.get("variance_status"),
        )


@dataclass
class _Tally:
    product_name: str
    product_id: Optional[int]
    variant_path: Optional[str]
    in_before: int = 0
    out_before: int = 0
    in_window: int = 0
    out_window: int = 0


@dataclass
class _RowBook:
    match_mode: str
    names_by_id: dict = field(default_factory=dict)
    first_id_by_name: dict = field(default_factory=dict)
    tallies: dict = field(default_factory=dict)

    def identity(self, name: str, product_id: Optional[int]):
        if self.match_mode == MATCH_BY_ID:
            return product_id
        return name

    def tally(self, ident, values: Tuple[str, ...], *, name: str, product_id: Optional[int], path: Optional[str]) -> _Tally:
        key = (ident, values)
        tally = self.tallies.get(key)
        if tally is None:
            if self.match_mode == MATCH_BY_ID:
                display_name = self.names_by_id.get(ident, name)
                row_product_id = ident
            else:
                display_name = name
                row_product_id = self.first_id_by_name.get(name, product_id)
            tally = _Tally(product_name=display_name, product_id=row_product_id, variant_path=path)
            self.tallies[key] = tally
        elif tally.variant_path is None and path:
            tally.variant_path = path
        return tally


def row_key_for(match_mode: str, ident, values: Tuple[str, ...]) -> str:
    prefix = f"#{ident}" if match_mode == MATCH_BY_ID else str(ident)
    return f"{prefix}|{vt.PATH_SEPARATOR.join(values)}"


def classify_variance(variance: Optional[int], minor_threshold: int = 5) -> Optional[str]:
    if variance is None:
        return None
    if variance == 0:
        return VARIANCE_EXACT
    if abs(variance) < minor_threshold:
        return VARIANCE_MINOR
    return VARIANCE_SIGNIFICANT


def build_rows(
    check_ins: Iterable[CheckInSnapshot],
    check_outs: Iterable[CheckOutSnapshot],
    start: date,
    end: date,
    *,
    catalog: Iterable[CatalogEntry] = (),
    match_mode: str = MATCH_BY_NAME,
) -> list[ReconciliationRow]:
    """
    Replay approved events into reconciliation rows. No database access.

    Catalog entries only fix row order (catalog order first, then rows first
    seen in events); they never contribute quantities.
    """
    if match_mode not in MATCH_MODES:
        raise ValidationError(f"match_mode must be one of: {', '.join(MATCH_MODES)}")
    if end < start:
        raise ValidationError("end date must not be before start date")

    window_start = start_of_day(start)
    window_end = end_of_day(end)

    book = _RowBook(match_mode=match_mode)
    catalog = list(catalog)
    for entry in catalog:
        book.names_by_id.setdefault(entry.product_id, entry.name)
        book.first_id_by_name.setdefault(entry.name, entry.product_id)

    for entry in catalog:
        ident = book.identity(entry.name, entry.product_id)
        book.tally(ident, (), name=entry.name, product_id=entry.product_id, path=None)
        for path, _leaf in vt.iter_leaves(entry.tree):
            values = tuple(value for _attribute, value in path)
            book.tally(ident, values, name=entry.name, product_id=entry.product_id, path=vt.format_path(path))

    for snapshot in sorted(check_ins, key=lambda s: (s.reviewed_at, s.request_id)):
        if snapshot.reviewed_at is None or snapshot.reviewed_at > window_end:
            continue
        before = snapshot.reviewed_at <= window_start
        for entry in snapshot.entries:
            ident = book.identity(entry.name, entry.product_id)
            if ident is None:
                continue
            if entry.base_quantity:
                tally = book.tally(ident, (), name=entry.name, product_id=entry.product_id, path=None)
                if before:
                    tally.in_before += entry.base_quantity
                else:
                    tally.in_window += entry.base_quantity
            for path, quantity in entry.leaf_quantities():
                values = tuple(value for _attribute, value in path)
                tally = book.tally(
                    ident, values, name=entry.name, product_id=entry.product_id, path=vt.format_path(path)
                )
                if before:
                    tally.in_before += quantity
                else:
                    tally.in_window += quantity

    for snapshot in sorted(check_outs, key=lambda s: (s.reviewed_at, s.request_id)):
        if snapshot.reviewed_at is None or snapshot.reviewed_at > window_end:
            continue
        before = snapshot.reviewed_at <= window_start
        for item in snapshot.items:
            ident = book.identity(item.product_name, item.product_id)
            if ident is None:
                continue
            tally = book.tally(
                ident,
                item.value_key,
                name=item.product_name,
                product_id=item.product_id,
                path=vt.format_path(item.segments) or None,
            )
            if before:
                tally.out_before += item.quantity
            else:
                tally.out_window += item.quantity

    rows = []
    for (ident, values), tally in book.tallies.items():
        starting = tally.in_before - tally.out_before
        expected = starting + tally.in_window - tally.out_window
        if not (starting or tally.in_window or tally.out_window or expected):
            continue
        rows.append(ReconciliationRow(
            row_key=row_key_for(match_mode, ident, values),
            product_id=tally.product_id,
            product_name=tally.product_name,
            variant_key=values,
            variant_path=tally.variant_path if values else None,
            starting_quantity=starting,
            check_ins=tally.in_window,
            check_outs=tally.out_window,
            expected_quantity=expected,
        ))
    return rows


def apply_actual_quantities(
    rows: Iterable[ReconciliationRow],
    actuals: Mapping[str, Any],
    *,
    minor_threshold: int = 5,
) -> list[ReconciliationRow]:
    """
    Fill in counted quantities by row_key and classify the variance.

    Rows without an entry in `actuals` (or with None) are left uncounted.
    """
    updated = []
    for row in rows:
        raw = actuals.get(row.row_key)
        if raw is None:
            updated.append(replace(row, actual_quantity=None, variance=None, variance_status=None))
            continue
        actual = require_non_negative_int(raw, f"actual_quantity for {row.row_key}")
        variance = actual - row.expected_quantity
        updated.append(replace(
            row,
            actual_quantity=actual,
            variance=variance,
            variance_status=classify_variance(variance, minor_threshold),
        ))
    return updated


def summarize(rows: Iterable[ReconciliationRow]) -> dict:
    rows = list(rows)
    counted = [r for r in rows if r.actual_quantity is not None]
    return {
        "row_count": len(rows),
        "starting_quantity": sum(r.starting_quantity for r in rows),
        "check_ins": sum(r.check_ins for r in rows),
        "check_outs": sum(r.check_outs for r in rows),
        "expected_quantity": sum(r.expected_quantity for r in rows),
        "counted_rows": len(counted),
        "actual_quantity": sum(r.actual_quantity for r in counted),
        "variance": sum(r.variance for r in counted),
        "items_with_variance": sum(1 for r in counted if r.variance),
        "exact": sum(1 for r in counted if r.variance_status == VARIANCE_EXACT),
        "minor": sum(1 for r in counted if r.variance_status == VARIANCE_MINOR),
        "significant": sum(1 for r in counted if r.variance_status == VARIANCE_SIGNIFICANT),
    }


@dataclass(frozen=True)
class CompanyReport:
    company_id: int
    company_name: str
    start: date
    end: date
    match_mode: str
    rows: Tuple[ReconciliationRow, ...]

    @property
    def totals(self) -> dict:
        return summarize(self.rows)

    def to_dict(self) -> dict:
        return {
            "company_id": self.company_id,
            "company_name": self.company_name,
            "start_date": self.start.isoformat(),
            "end_date": self.end.isoformat(),
            "match_mode": self.match_mode,
            "rows": [r.to_dict() for r in self.rows],
            "totals": self.totals,
        }


# =============================================================================
# DATABASE WRAPPERS
# =============================================================================

def _parse_range(start, end) -> tuple[date, date]:
    try:
        start_date = parse_date(start)
        end_date = parse_date(end)
    except ValueError:
        raise ValidationError("dates must be YYYY-MM-DD")
    if start_date is None or end_date is None:
        raise ValidationError("start and end dates are required")
    if end_date < start_date:
        raise ValidationError("end date must not be before start date")
    return start_date, end_date


def _minor_threshold() -> int:
    return int(current_app.config.get("RECONCILIATION_MINOR_VARIANCE", 5))


def _coerce_actuals(actuals) -> dict:
    """Accept {row_key: qty} or [{"row_key", "actual_quantity"}]."""
    if actuals is None:
        return {}
    if isinstance(actuals, Mapping):
        return dict(actuals)
    if isinstance(actuals, list):
        coerced = {}
        for i, raw in enumerate(actuals, start=1):
            if not isinstance(raw, dict) or not raw.get("row_key"):
                raise ValidationError(f"actuals[{i}] must have a row_key")
            coerced[raw["row_key"]] = raw.get("actual_quantity")
        return coerced
    raise ValidationError("actuals must be an object or a list")


def _catalog_for(company_id: int) -> list[CatalogEntry]:
    products = (
        db.session.query(Product)
        .filter(Product.company_id == company_id)
        .order_by(Product.id.asc())
        .all()
    )
    return [CatalogEntry(product_id=p.id, name=p.name, tree=p.variant_tree) for p in products]


def generate_report(
    *,
    company_id: int | None = None,
    start,
    end,
    match_mode: str = MATCH_BY_NAME,
    actuals=None,
) -> list[CompanyReport]:
    """
    One report per company (all active companies when company_id is None).

    Read-only. Across all companies, companies without rows are left out.
    """
    start_date, end_date = _parse_range(start, end)
    if match_mode not in MATCH_MODES:
        raise ValidationError(f"match_mode must be one of: {', '.join(MATCH_MODES)}")

    if company_id is not None:
        company = db.session.get(Company, company_id)
        if company is None:
            raise NotFoundError(f"Company {company_id} not found")
        companies = [company]
    else:
        companies = (
            db.session.query(Company)
            .filter(Company.is_active.is_(True))
            .order_by(Company.id.asc())
            .all()
        )

    company_ids = [c.id for c in companies]
    until = end_of_day(end_date)
    check_ins = approved_check_ins(company_ids, until)
    check_outs = approved_check_outs(company_ids, until)
    counts = _coerce_actuals(actuals)
    threshold = _minor_threshold()

    reports = []
    for company in companies:
        rows = build_rows(
            [s for s in check_ins if s.company_id == company.id],
            [s for s in check_outs if s.company_id == company.id],
            start_date,
            end_date,
            catalog=_catalog_for(company.id),
            match_mode=match_mode,
        )
        if counts:
            rows = apply_actual_quantities(rows, counts, minor_threshold=threshold)
        if company_id is None and not rows:
            continue
        reports.append(CompanyReport(
            company_id=company.id,
            company_name=company.name,
            start=start_date,
            end=end_date,
            match_mode=match_mode,
            rows=tuple(rows),
        ))
    return reports


def save_report(
    *,
    company_id,
    start,
    end,
    match_mode: str = MATCH_BY_NAME,
    actuals=None,
    notes: str | None = None,
    created_by: int | None = None,
) -> ReconciliationReport:
    """Recompute the company's report, attach counts and store the snapshot."""
    company_id = coerce_int(company_id, "company_id")
    reports = generate_report(company_id=company_id, start=start, end=end, match_mode=match_mode, actuals=actuals)
    report = reports[0]

    def _op():
        saved = ReconciliationReport(
            company_id=company_id,
            start_date=report.start,
            end_date=report.end,
            match_mode=match_mode,
            rows=[r.to_dict() for r in report.rows],
            totals=report.totals,
            notes=optional_text(notes),
            created_by=created_by,
        )
        db.session.add(saved)
        db.session.flush()
        append_activity_event(
            company_id=company_id,
            event_type="RECONCILIATION_SAVED",
            event_category="reconciliation",
            entity_type="reconciliation_report",
            entity_id=saved.id,
            actor_user_id=created_by,
            note=f"JARDE {report.start}..{report.end}: {report.totals['items_with_variance']} variance(s)",
        )
        db.session.commit()
        return saved

    return run_with_retry(_op)


def get_report(report_id: int) -> ReconciliationReport:
    saved = db.session.get(ReconciliationReport, report_id)
    if saved is None:
        raise NotFoundError(f"Reconciliation report {report_id} not found")
    return saved


def list_reports(*, company_id: int | None = None, limit: int = 100) -> list[ReconciliationReport]:
    query = db.session.query(ReconciliationReport)
    if company_id is not None:
        query = query.filter(ReconciliationReport.company_id == company_id)
    limit = max(1, min(coerce_int(limit, "limit"), 500))
    return query.order_by(ReconciliationReport.created_at.desc(), ReconciliationReport.id.desc()).limit(limit).all()


def delete_report(report_id: int) -> None:
    saved = get_report(report_id)
    db.session.delete(saved)
    db.session.commit()


def saved_rows(saved: ReconciliationReport) -> list[ReconciliationRow]:
    return [ReconciliationRow.from_dict(r) for r in saved.rows or []]


def _apply_row(
    row: ReconciliationRow, company_id: int, actor_user_id: int | None, *, match_mode: str = MATCH_BY_NAME
) -> dict:
    """Write one counted row into catalog and lots. Raises ValidationError to skip."""
    if row.product_id is None:
        raise ValidationError("no catalog product for this row")
    if match_mode == MATCH_BY_NAME:
        # a name row sums every same-named product; one count cannot be split back
        sharing = (
            db.session.query(Product.id)
            .filter(Product.company_id == company_id, Product.name == row.product_name)
            .count()
        )
        if sharing > 1:
            raise ValidationError(
                f"ambiguous: {sharing} products share the name \"{row.product_name}\"; use match_mode=id"
            )
    product = lock_for_update(db.session.query(Product).filter_by(id=row.product_id)).first()
    if product is None or product.company_id != company_id:
        raise ValidationError(f"product {row.product_id} not found for company")

    tree = product.variant_tree
    counted = row.actual_quantity

    if row.is_base:
        if tree:
            raise ValidationError("product tracks stock per variant; count the variant rows")
        before = product.quantity or 0
        product.quantity = counted
        lots = adjust_to_count_inner(
            product_id=product.id,
            company_id=company_id,
            variant_key=None,
            counted=counted,
            actor_user_id=actor_user_id,
        )
        return {"product_id": product.id, "before": before, "after": counted, "lots": lots}

    segments = vt.parse_variant_path(row.variant_path)
    before = vt.leaf_quantity(tree, segments) if segments else None
    if before is None:
        raise ValidationError(f'variant "{row.variant_path or row.variant_value}" not found in catalog')
    product.set_variant_tree(vt.set_leaf_quantity(tree, segments, counted))

    delta = counted - before
    variant_key = segments[0]
    lots: dict = {"delta": delta}
    if delta > 0:
        lot = receive_lot_inner(
            product_id=product.id,
            company_id=company_id,
            quantity=delta,
            variant_key=variant_key,
            received_date=utcnow(),
            note="Count adjustment",
        )
        lots["lot_id"] = lot.id
    elif delta < 0:
        depletion = deplete_inner(
            product_id=product.id,
            company_id=company_id,
            variant_key=variant_key,
            amount=-delta,
        )
        lots["consumed"] = depletion.consumed
        lots["shortfall"] = depletion.shortfall
    db.session.flush()
    return {"product_id": product.id, "before": before, "after": counted, "lots": lots}


def apply_counts(report_id: int, *, applied_by: int | None = None) -> tuple[ReconciliationReport, BulkResult]:
    """
    Write a saved report's counted quantities into catalog trees and lots.

    Only rows with a non-zero variance are written. A row that cannot be
    resolved (renamed product, name shared by several products in name mode,
    missing variant, per-variant product counted as base) is reported as a
    failed outcome and the rest still apply.
    """
    def _op():
        saved = lock_for_update(db.session.query(ReconciliationReport).filter_by(id=report_id)).first()
        if saved is None:
            raise NotFoundError(f"Reconciliation report {report_id} not found")
        if saved.applied_at is not None:
            raise StateError(f"Reconciliation report {report_id} was already applied")

        result = BulkResult()
        for row in saved_rows(saved):
            if row.actual_quantity is None or not row.variance:
                continue
            try:
                detail = _apply_row(row, saved.company_id, applied_by, match_mode=saved.match_mode)
            except ValidationError as exc:
                current_app.logger.warning("Count for %s not applied: %s", row.row_key, exc)
                result.record_failure(row.row_key, str(exc))
                continue
            result.record_success(row.row_key, detail)

        saved.applied_at = utcnow()
        saved.applied_by = applied_by
        append_activity_event(
            company_id=saved.company_id,
            event_type="RECONCILIATION_APPLIED",
            event_category="reconciliation",
            entity_type="reconciliation_report",
            entity_id=saved.id,
            actor_user_id=applied_by,
            note=f"Counts applied: {result.succeeded} ok, {result.failed} failed",
        )
        db.session.commit()
        current_app.logger.info(
            "Reconciliation report %s applied: %s ok, %s failed", saved.id, result.succeeded, result.failed
        )
        return saved, result

    return run_with_retry(_op)
