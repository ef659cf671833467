"""
Catalog data-quality scan and bulk repair.
"""

import pytest

from warehouse.extensions import db
from warehouse.models import InventoryLot, Product
from warehouse.services import cleanup_service, lot_service, shipment_service
from warehouse.validation import NotFoundError, StateError

from conftest import JAN_1


BLANK_VALUE_DOC = [{"attribute": "Size", "values": [{"value": "", "quantity": 2, "subVariants": []}]}]


def _raw_product(session, company, name, *, sku=None, variants=None):
    """Insert a row exactly as given, bypassing tree normalization."""
    product = Product(company_id=company.id, name=name, sku=sku, variants=variants or [], quantity=0, is_active=True)
    session.add(product)
    session.commit()
    return product


@pytest.mark.parametrize("empty, malformed, severity", [
    (0, 3, "info"),
    (0, 5, "info"),
    (0, 6, "warning"),
    (0, 10, "critical"),
    (1, 0, "critical"),
])
def test_severity_for(empty, malformed, severity):
    assert cleanup_service.severity_for(empty, malformed) == severity


def test_scan_reports_each_product_once(db_session, company, other_company):
    blank = _raw_product(db_session, company, "  ", sku="SKU-9", variants=[{}])
    crate = _raw_product(db_session, company, "Crate", variants=BLANK_VALUE_DOC)
    _raw_product(db_session, company, "Pallet")
    for i in range(6):
        _raw_product(db_session, other_company, f"Box {i}", variants=[{}])

    found = cleanup_service.scan_products()

    by_id = {p["id"]: p for p in found["products"]}
    assert by_id[blank.id]["issue_type"] == cleanup_service.ISSUE_EMPTY_NAME
    assert by_id[crate.id]["issues"] == ["Empty variant value"]
    assert found["empty_names"] == 1
    assert found["malformed_variants"] == 7
    assert [(c["company_id"], c["severity"]) for c in found["companies"]] == [
        (company.id, "critical"),
        (other_company.id, "warning"),
    ]
    assert found["companies"][1]["company_name"] == "Beta Goods"

    scoped = cleanup_service.scan_products(company.id)
    assert len(scoped["products"]) == 2


def test_fix_empty_names(db_session, company):
    with_sku = _raw_product(db_session, company, "", sku="SKU-9")
    without_sku = _raw_product(db_session, company, "   ")

    result = cleanup_service.bulk_fix_empty_names(company.id)

    assert result.succeeded == 2
    assert db.session.get(Product, with_sku.id).name == "Product SKU-9"
    assert db.session.get(Product, without_sku.id).name == f"Product {without_sku.id}"
    assert cleanup_service.scan_products(company.id)["empty_names"] == 0


def test_clean_variants_recomputes_quantity(db_session, company):
    crate = _raw_product(db_session, company, "Crate", variants=[{}] + BLANK_VALUE_DOC)

    result = cleanup_service.bulk_clean_variants(company.id)

    assert result.succeeded == 1
    assert result.outcomes[0].detail["quantity_after"] == 2
    product = db.session.get(Product, crate.id)
    assert product.variants == [
        {"attribute": "Size", "values": [{"value": "Unnamed", "quantity": 2, "subVariants": []}]},
    ]
    assert product.quantity == 2


def test_delete_product_removes_lots(db_session, company, plain_product):
    lot_service.receive_lot(product_id=plain_product.id, company_id=company.id, quantity=3, received_date=JAN_1)

    cleanup_service.delete_product(plain_product.id, actor_user_id=1)

    assert db.session.get(Product, plain_product.id) is None
    assert db_session.query(InventoryLot).count() == 0
    with pytest.raises(NotFoundError):
        cleanup_service.delete_product(plain_product.id)


def test_delete_refuses_shipped_product(db_session, company, plain_product):
    shipment_service.create_shipment(
        company_id=company.id,
        destination_address="12 Harbour Road",
        items=[{"product_id": plain_product.id, "quantity": 1}],
    )
    with pytest.raises(StateError):
        cleanup_service.delete_product(plain_product.id)
