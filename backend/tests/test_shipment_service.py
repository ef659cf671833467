"""
Shipment synchronizer: lots and catalog move together in one transaction.
"""

import pytest

from warehouse.extensions import db
from warehouse.models import InventoryLot, Product, Shipment
from warehouse.services import lot_service, shipment_service
from warehouse.services.lot_service import InsufficientStockError
from warehouse.validation import NotFoundError, StateError, ValidationError
from warehouse import variants as vt

from conftest import JAN_1, JAN_5


def _stock_large(product, company):
    lot_service.receive_lot(
        product_id=product.id, company_id=company.id, quantity=2,
        variant_attribute="Size", variant_value="Large", received_date=JAN_1,
    )
    lot_service.receive_lot(
        product_id=product.id, company_id=company.id, quantity=5,
        variant_attribute="Size", variant_value="Large", received_date=JAN_5,
    )


def _ship(company, product, quantity, **item):
    return shipment_service.create_shipment(
        company_id=company.id,
        destination_address="12 Harbour Road",
        items=[{"product_id": product.id, "quantity": quantity, **item}],
    )


def test_ship_large_consumes_oldest_lot_first(db_session, company, sized_product):
    _stock_large(sized_product, company)

    shipment, deductions = _ship(company, sized_product, 4, variant_path="Size: Large")

    lots = lot_service.list_lots(company_id=company.id, product_id=sized_product.id)
    assert [(lot.received_date, lot.quantity) for lot in lots] == [(JAN_5, 3)]

    product = db.session.get(Product, sized_product.id)
    assert vt.leaf_quantity(product.variant_tree, "Size: Large") == 3
    assert vt.leaf_quantity(product.variant_tree, "Size: Small") == 3
    assert product.quantity == 6

    assert shipment.shipment_number == "SHP-00001"
    assert shipment.status == shipment_service.STATUS_PENDING
    assert deductions[0].consumed == 4
    assert deductions[0].shortfall == 0
    assert shipment.items[0].variant_attribute == "Size"
    assert shipment.items[0].variant_value == "Large"
    assert shipment.items[0].consumed_quantity == 4


def test_compound_path_uses_first_segment_only():
    segments = shipment_service.resolve_item_segments(variant_path="Size: Large → Color: Red")
    assert segments == (("Size", "Large"),)
    assert shipment_service.resolve_item_segments(variant_attribute="Size", variant_value="Small") == (("Size", "Small"),)
    assert shipment_service.resolve_item_segments() == ()


def test_shortfall_is_recorded_when_allowed(db_session, company, sized_product):
    _stock_large(sized_product, company)

    shipment, deductions = _ship(company, sized_product, 10, variant_attribute="Size", variant_value="Large")

    assert deductions[0].consumed == 7
    assert deductions[0].shortfall == 3
    assert shipment.items[0].shortfall_quantity == 3
    product = db.session.get(Product, sized_product.id)
    # catalog clamps at zero
    assert vt.leaf_quantity(product.variant_tree, "Size: Large") == 0
    assert db_session.query(InventoryLot).count() == 0


def test_shortfall_blocked_rolls_back_everything(db_session, company, sized_product):
    _stock_large(sized_product, company)
    lot_service.receive_lot(
        product_id=sized_product.id, company_id=company.id, quantity=3,
        variant_attribute="Size", variant_value="Small", received_date=JAN_1,
    )

    with pytest.raises(InsufficientStockError) as excinfo:
        shipment_service.create_shipment(
            company_id=company.id,
            destination_address="12 Harbour Road",
            items=[
                {"product_id": sized_product.id, "quantity": 1, "variant_path": "Size: Small"},
                {"product_id": sized_product.id, "quantity": 10, "variant_path": "Size: Large"},
            ],
            allow_shortfall=False,
        )

    assert excinfo.value.result.shortfall == 3
    assert db_session.query(Shipment).count() == 0
    assert lot_service.available_quantity(sized_product.id, company.id, ("Size", "Large")) == 7
    assert lot_service.available_quantity(sized_product.id, company.id, ("Size", "Small")) == 3
    product = db.session.get(Product, sized_product.id)
    assert vt.leaf_quantity(product.variant_tree, "Size: Small") == 3


def test_product_without_variants_decrements_scalar(db_session, company, plain_product):
    lot_service.receive_lot(product_id=plain_product.id, company_id=company.id, quantity=10, received_date=JAN_1)

    _shipment, deductions = _ship(company, plain_product, 4)

    assert deductions[0].catalog_before == 10
    assert deductions[0].catalog_after == 6
    assert db.session.get(Product, plain_product.id).quantity == 6
    assert lot_service.total_lot_quantity(plain_product.id, company.id) == 6


def test_unmatched_variant_leaves_catalog_alone(db_session, company, sized_product):
    lot_service.receive_lot(product_id=sized_product.id, company_id=company.id, quantity=5, received_date=JAN_1)

    _shipment, deductions = _ship(company, sized_product, 2, variant_path="Color: Green")

    assert deductions[0].tree_matched is False
    assert deductions[0].consumed == 2  # taken from base lots
    assert db.session.get(Product, sized_product.id).on_hand == 10


def test_match_is_case_insensitive(db_session, company, sized_product):
    _ship(company, sized_product, 2, variant_path="size: LARGE ")
    product = db.session.get(Product, sized_product.id)
    assert vt.leaf_quantity(product.variant_tree, "Size: Large") == 5


def test_items_are_validated_before_anything_is_written(db_session, company, other_company, sized_product):
    with pytest.raises(ValidationError):
        _ship(company, sized_product, 0)
    with pytest.raises(NotFoundError):
        shipment_service.create_shipment(
            company_id=company.id, destination_address="x", items=[{"product_id": 999999, "quantity": 1}],
        )
    with pytest.raises(ValidationError):
        _ship(other_company, sized_product, 1)
    with pytest.raises(ValidationError):
        shipment_service.create_shipment(company_id=company.id, destination_address=" ", items=[])
    assert db_session.query(Shipment).count() == 0


def test_status_moves_forward_only(db_session, company, plain_product):
    shipment, _ = _ship(company, plain_product, 1)

    shipment = shipment_service.update_shipment_status(shipment.id, "in_transit", tracking_number="TRK-1")
    assert shipment.status == "in_transit"
    assert shipment.tracking_number == "TRK-1"

    with pytest.raises(StateError):
        shipment_service.update_shipment_status(shipment.id, "pending")
    with pytest.raises(ValidationError):
        shipment_service.update_shipment_status(shipment.id, "lost")

    assert shipment_service.update_shipment_status(shipment.id, "delivered").status == "delivered"


def test_numbers_are_per_company(db_session, company, other_company, plain_product):
    from conftest import make_product

    other = make_product(db_session, other_company, "Crate", quantity=3)
    first, _ = _ship(company, plain_product, 1)
    second, _ = _ship(company, plain_product, 1)
    third, _ = _ship(other_company, other, 1)

    assert [first.shipment_number, second.shipment_number, third.shipment_number] == [
        "SHP-00001", "SHP-00002", "SHP-00001",
    ]
    rows, total = shipment_service.list_shipments(company_id=company.id)
    assert total == 2
    assert {r.id for r in rows} == {first.id, second.id}


def test_shipment_lifecycle_is_in_activity_trail(db_session, company, plain_product):
    from warehouse.services.ledger_service import list_activity_events

    shipment, _ = _ship(company, plain_product, 1)
    shipment_service.update_shipment_status(shipment.id, "delivered")

    events = list_activity_events(company_id=company.id, event_category="shipment")
    assert {e.event_type for e in events} == {"SHIPMENT_CREATED", "SHIPMENT_STATUS_CHANGED"}
    assert all(e.entity_id == shipment.id for e in events)
