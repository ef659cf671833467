"""
Catalog product creation and stock summaries.
"""

import pytest

from warehouse.services import lot_service, product_service
from warehouse.validation import NotFoundError, ValidationError

from conftest import JAN_1, SIZE_DOC


def test_create_with_variants_books_opening_lot(db_session, company):
    product = product_service.create_product(
        company_id=company.id, name=" Widget ", sku="W-1", variants=SIZE_DOC, received_date=JAN_1,
    )

    assert product.name == "Widget"
    assert product.quantity == 10
    lots = lot_service.list_lots(company_id=company.id, product_id=product.id)
    assert [(lot.variant_key, lot.quantity, lot.received_date) for lot in lots] == [(None, 10, JAN_1)]


def test_create_without_stock_has_no_lots(db_session, company):
    product = product_service.create_product(company_id=company.id, name="Bolt")
    assert product.on_hand == 0
    assert lot_service.list_lots(company_id=company.id, product_id=product.id) == []


@pytest.mark.parametrize("kwargs", [
    {"name": ""},
    {"name": "Bolt", "quantity": -1},
    {"name": "Bolt", "variants": [{"attribute": "Size", "values": []}]},
    {"name": "Bolt", "received_date": "not-a-date"},
])
def test_create_rejects_bad_input(db_session, company, kwargs):
    with pytest.raises(ValidationError):
        product_service.create_product(company_id=company.id, **kwargs)


def test_stock_summary_reports_drift(db_session, company, sized_product):
    lot_service.receive_lot(
        product_id=sized_product.id, company_id=company.id, quantity=4,
        variant_attribute="Size", variant_value="Large", received_date=JAN_1,
    )

    summary = product_service.get_stock_summary(sized_product.id)

    assert summary["catalog_total"] == 10
    assert summary["lot_total"] == 4
    assert summary["drift"] == -6
    assert summary["leaves"] == [
        {"path": "Size: Large", "quantity": 7},
        {"path": "Size: Small", "quantity": 3},
    ]
    assert summary["lots_by_key"][0]["variant_value"] == "Large"
    assert summary["lots_by_key"][0]["lot_count"] == 1


def test_list_and_get(db_session, company, other_company, sized_product, plain_product):
    rows, total = product_service.list_products(company_id=company.id, name="widg")
    assert total == 1
    assert rows[0].id == sized_product.id

    rows, total = product_service.list_products(company_id=other_company.id)
    assert (rows, total) == ([], 0)

    with pytest.raises(NotFoundError):
        product_service.get_product(999999)
