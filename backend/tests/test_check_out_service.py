"""
Check-out lifecycle. Approval deducts stock the same way shipments do.
"""

import pytest

from warehouse.extensions import db
from warehouse.models import Product
from warehouse.services import check_out_service, cleanup_service, lot_service
from warehouse.services.lot_service import InsufficientStockError
from warehouse.validation import StateError, ValidationError
from warehouse import variants as vt

from conftest import JAN_1, make_product


NESTED_DOC = [
    {"attribute": "Size", "values": [
        {"value": "Large", "quantity": 0, "subVariants": [
            {"attribute": "Color", "values": [
                {"value": "Red", "quantity": 3, "subVariants": []},
                {"value": "Blue", "quantity": 4, "subVariants": []},
            ]},
        ]},
    ]},
]


def _request(company, items):
    return check_out_service.create_check_out_request(company_id=company.id, items=items, requested_by=5)


def test_submit_copies_product_name(db_session, company, sized_product):
    req = _request(company, [{
        "product_id": sized_product.id, "quantity": 3,
        "variant_attribute": "Size", "variant_value": "Large",
    }])

    assert req.request_number == "CO-00001"
    assert req.status == "pending"
    assert req.requested_items == [{
        "product_id": sized_product.id,
        "product_name": "Widget",
        "quantity": 3,
        "variant_attribute": "Size",
        "variant_value": "Large",
    }]
    # nothing moves until approval
    assert db.session.get(Product, sized_product.id).on_hand == 10


@pytest.mark.parametrize("make_item", [
    lambda pid: {"quantity": 1},
    lambda pid: {"product_id": pid, "quantity": 0},
    lambda pid: {"product_id": pid, "variant_attribute": "Size", "variant_value": "Medium", "quantity": 1},
    lambda pid: {"product_id": pid, "sub_variant_attribute": "Color", "sub_variant_value": "Red", "quantity": 1},
    lambda pid: {"product_id": pid, "variant_value": "Large", "quantity": 1},
])
def test_submit_rejects_bad_items(db_session, company, sized_product, make_item):
    with pytest.raises(ValidationError):
        _request(company, [make_item(sized_product.id)])


def test_approve_deducts_lots_and_catalog(db_session, company, sized_product):
    lot_service.receive_lot(
        product_id=sized_product.id, company_id=company.id, quantity=7,
        variant_attribute="Size", variant_value="Large", received_date=JAN_1,
    )
    req = _request(company, [{
        "product_id": sized_product.id, "quantity": 3,
        "variant_attribute": "Size", "variant_value": "Large",
    }])

    req, result = check_out_service.approve_check_out(req.id, reviewed_by=2)

    assert req.status == "approved"
    assert req.reviewed_by == 2
    assert result.succeeded == 1
    assert result.outcomes[0].detail["consumed"] == 3
    product = db.session.get(Product, sized_product.id)
    assert vt.leaf_quantity(product.variant_tree, "Size: Large") == 4
    assert lot_service.available_quantity(sized_product.id, company.id, ("Size", "Large")) == 4


def test_sub_variant_deducts_exact_leaf(db_session, company):
    product = make_product(db_session, company, "Shirt", variants=NESTED_DOC)
    req = _request(company, [{
        "product_id": product.id, "quantity": 2,
        "variant_attribute": "Size", "variant_value": "Large",
        "sub_variant_attribute": "Color", "sub_variant_value": "Blue",
    }])

    check_out_service.approve_check_out(req.id)

    tree = db.session.get(Product, product.id).variant_tree
    assert vt.leaf_quantity(tree, "Size: Large → Color: Red") == 3
    assert vt.leaf_quantity(tree, "Size: Large → Color: Blue") == 2


def test_blocked_shortfall_keeps_request_pending(db_session, company, sized_product):
    req = _request(company, [{
        "product_id": sized_product.id, "quantity": 3,
        "variant_attribute": "Size", "variant_value": "Large",
    }])

    with pytest.raises(InsufficientStockError):
        check_out_service.approve_check_out(req.id, allow_shortfall=False)

    assert check_out_service.get_check_out(req.id).status == "pending"
    assert db.session.get(Product, sized_product.id).on_hand == 10


def test_missing_product_becomes_failed_outcome(db_session, company, sized_product, plain_product):
    req = _request(company, [
        {"product_id": sized_product.id, "quantity": 1, "variant_attribute": "Size", "variant_value": "Small"},
        {"product_id": plain_product.id, "quantity": 2},
    ])
    cleanup_service.delete_product(plain_product.id)

    req, result = check_out_service.approve_check_out(req.id)

    assert req.status == "approved"
    assert result.succeeded == 1
    assert result.failed == 1
    assert result.outcomes[1].item == "Bolt"


def test_reject_and_terminal_state(db_session, company, plain_product):
    req = _request(company, [{"product_id": plain_product.id, "quantity": 1}])

    with pytest.raises(ValidationError):
        check_out_service.reject_check_out(req.id, reason="")
    req = check_out_service.reject_check_out(req.id, reason="Client cancelled")

    assert req.status == "rejected"
    assert db.session.get(Product, plain_product.id).quantity == 10
    with pytest.raises(StateError):
        check_out_service.approve_check_out(req.id)
