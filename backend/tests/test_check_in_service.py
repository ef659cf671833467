"""
Check-in lifecycle: submit, approve, amend-and-approve, reject.
"""

from datetime import datetime, timedelta

import pytest

from warehouse.extensions import db
from warehouse.models import ActivityEvent, InventoryLot, Product
from warehouse.services import check_in_service, lot_service
from warehouse.time_utils import utcnow
from warehouse.validation import NotFoundError, StateError, ValidationError

from conftest import SIZE_DOC


def _submit(company, products=None):
    return check_in_service.create_check_in_request(
        company_id=company.id,
        products=products or [
            {"name": "Widget", "variants": SIZE_DOC},
            {"name": "Bolt", "quantity": 12, "sku": "B-1"},
        ],
        requested_by=7,
    )


def test_submit_records_pending_request(db_session, company):
    req = _submit(company)

    assert req.status == check_in_service.STATUS_PENDING
    assert req.request_number == "CI-00001"
    assert [p["quantity"] for p in req.requested_products] == [10, 12]
    assert db_session.query(Product).count() == 0


@pytest.mark.parametrize("products", [
    [],
    [{"name": " ", "quantity": 1}],
    [{"name": "Bolt", "quantity": 0}],
    [{"name": "Bolt", "quantity": -3}],
    [{"name": "Widget", "variants": [{"attribute": "", "values": [{"value": "L"}]}]}],
])
def test_submit_rejects_bad_entries(db_session, company, products):
    with pytest.raises(ValidationError):
        check_in_service.create_check_in_request(company_id=company.id, products=products)


def test_submit_unknown_company(db_session):
    with pytest.raises(NotFoundError):
        check_in_service.create_check_in_request(company_id=424242, products=[{"name": "x", "quantity": 1}])


def test_approve_inserts_new_products_with_base_lots(db_session, company):
    req = _submit(company)
    reviewed = datetime(2026, 1, 1, 12, 0)

    req, result = check_in_service.approve_check_in(req.id, reviewed_by=3, reviewed_at=reviewed)

    assert req.status == check_in_service.STATUS_APPROVED
    assert req.reviewed_at == reviewed
    assert result.succeeded == 2
    assert len(req.approved_product_ids) == 2

    widget = db.session.get(Product, req.approved_product_ids[0])
    bolt = db.session.get(Product, req.approved_product_ids[1])
    assert widget.name == "Widget"
    assert widget.on_hand == 10
    assert bolt.quantity == 12
    assert bolt.sku == "B-1"

    assert lot_service.total_lot_quantity(widget.id, company.id) == 10
    lot = db_session.query(InventoryLot).filter_by(product_id=bolt.id).one()
    assert lot.variant_key is None
    assert lot.received_date == reviewed


def test_approve_always_creates_new_rows(db_session, company):
    first = _submit(company, [{"name": "Bolt", "quantity": 1}])
    second = _submit(company, [{"name": "Bolt", "quantity": 2}])
    check_in_service.approve_check_in(first.id)
    check_in_service.approve_check_in(second.id)

    assert db_session.query(Product).filter_by(company_id=company.id, name="Bolt").count() == 2


def test_amend_keeps_both_lists(db_session, company):
    req = _submit(company)

    req, result = check_in_service.amend_and_approve_check_in(
        req.id,
        amended_products=[
            {"name": "Widget", "variants": [{"attribute": "Size", "values": [
                {"value": "Large", "quantity": 6}, {"value": "Small", "quantity": 0},
            ]}]},
            {"name": "Bolt", "quantity": 0},
        ],
        amendment_notes="Two boxes damaged",
    )

    assert req.was_amended is True
    assert req.amendment_notes == "Two boxes damaged"
    assert [p["quantity"] for p in req.requested_products] == [10, 12]
    assert [p["quantity"] for p in req.amended_products] == [6, 0]
    assert [o.detail["quantity"] for o in result.outcomes] == [6, 0]
    # nothing arrived for Bolt, so no lot either
    assert result.outcomes[1].detail["lot_id"] is None


def test_amend_requires_entries(db_session, company):
    req = _submit(company)
    with pytest.raises(ValidationError):
        check_in_service.amend_and_approve_check_in(req.id, amended_products=[])


def test_reject_requires_reason_and_has_no_stock_effect(db_session, company):
    req = _submit(company)
    with pytest.raises(ValidationError):
        check_in_service.reject_check_in(req.id, reason="  ")

    req = check_in_service.reject_check_in(req.id, reason="Not on contract", reviewed_by=3)

    assert req.status == check_in_service.STATUS_REJECTED
    assert req.rejection_reason == "Not on contract"
    assert req.reviewed_at is not None
    assert db_session.query(Product).count() == 0


def test_reviewed_request_is_terminal(db_session, company):
    req = _submit(company)
    check_in_service.approve_check_in(req.id)

    with pytest.raises(StateError):
        check_in_service.approve_check_in(req.id)
    with pytest.raises(StateError):
        check_in_service.reject_check_in(req.id, reason="late")
    with pytest.raises(NotFoundError):
        check_in_service.approve_check_in(999999)


def test_future_review_time_is_rejected(db_session, company):
    req = _submit(company)
    with pytest.raises(ValidationError):
        check_in_service.approve_check_in(req.id, reviewed_at=utcnow() + timedelta(hours=1))


def test_template_zeroes_quantities(db_session, company, sized_product):
    template = check_in_service.check_in_template(sized_product.id)

    assert template["name"] == "Widget"
    assert template["quantity"] == 0
    assert [v["quantity"] for v in template["variants"][0]["values"]] == [0, 0]


def test_events_are_recorded(db_session, company):
    req = _submit(company)
    check_in_service.approve_check_in(req.id)

    types = [e.event_type for e in db_session.query(ActivityEvent).order_by(ActivityEvent.id).all()]
    assert types == ["CHECK_IN_SUBMITTED", "CHECK_IN_APPROVED"]
