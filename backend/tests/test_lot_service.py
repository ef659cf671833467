"""
FIFO lot store: receiving, depletion order, base fallback, shortfall.
"""

from datetime import datetime, timedelta

import pytest

from warehouse.models import InventoryLot
from warehouse.services import lot_service
from warehouse.services.lot_service import Depletion, InsufficientStock
from warehouse.time_utils import utcnow
from warehouse.validation import NotFoundError, ValidationError

from conftest import JAN_1, JAN_5


def _quantities(company_id, product_id):
    return [
        (lot.variant_key, lot.quantity, lot.received_date)
        for lot in lot_service.list_lots(company_id=company_id, product_id=product_id)
    ]


def test_deplete_walks_oldest_first(db_session, company, plain_product):
    lot_service.receive_lot(product_id=plain_product.id, company_id=company.id, quantity=5, received_date=JAN_5)
    lot_service.receive_lot(product_id=plain_product.id, company_id=company.id, quantity=5, received_date=JAN_1)

    result = lot_service.deplete(plain_product.id, company.id, None, 7)

    assert type(result) is Depletion
    assert result.consumed == 7
    assert result.fully_covered
    assert [c.received_date for c in result.consumptions] == [JAN_1, JAN_5]
    assert [c.taken for c in result.consumptions] == [5, 2]
    # the emptied lot is deleted, never left at 0
    assert _quantities(company.id, plain_product.id) == [(None, 3, JAN_5)]


def test_variant_depletion_falls_back_to_base(db_session, company, sized_product):
    lot_service.receive_lot(
        product_id=sized_product.id, company_id=company.id, quantity=2,
        variant_attribute="Size", variant_value="Large", received_date=JAN_5,
    )
    lot_service.receive_lot(product_id=sized_product.id, company_id=company.id, quantity=5, received_date=JAN_1)

    result = lot_service.deplete(sized_product.id, company.id, ("Size", "Large"), 4)

    assert result.consumed == 4
    assert [(c.variant_key, c.taken) for c in result.consumptions] == [(("Size", "Large"), 2), (None, 2)]
    assert lot_service.available_quantity(sized_product.id, company.id, ("Size", "Large")) == 0
    assert lot_service.available_quantity(sized_product.id, company.id) == 3


def test_other_variant_keys_are_untouched(db_session, company, sized_product):
    lot_service.receive_lot(
        product_id=sized_product.id, company_id=company.id, quantity=3,
        variant_attribute="Size", variant_value="Small", received_date=JAN_1,
    )
    result = lot_service.deplete(sized_product.id, company.id, ("Size", "Large"), 2)

    assert isinstance(result, InsufficientStock)
    assert result.consumed == 0
    assert lot_service.available_quantity(sized_product.id, company.id, ("Size", "Small")) == 3


def test_shortfall_is_reported_not_raised(db_session, company, plain_product):
    lot_service.receive_lot(product_id=plain_product.id, company_id=company.id, quantity=3, received_date=JAN_1)

    result = lot_service.deplete(plain_product.id, company.id, None, 5)

    assert isinstance(result, InsufficientStock)
    assert result.requested == 5
    assert result.consumed == 3
    assert result.shortfall == 2
    assert db_session.query(InventoryLot).count() == 0


def test_deplete_zero_is_noop(db_session, company, plain_product):
    lot_service.receive_lot(product_id=plain_product.id, company_id=company.id, quantity=3, received_date=JAN_1)
    result = lot_service.deplete(plain_product.id, company.id, None, 0)
    assert result.consumed == 0
    assert result.fully_covered
    assert lot_service.total_lot_quantity(plain_product.id, company.id) == 3


def test_variant_key_input_is_trimmed(db_session, company, sized_product):
    lot = lot_service.receive_lot(
        product_id=sized_product.id, company_id=company.id, quantity=1,
        variant_attribute=" Size ", variant_value=" Large ", received_date=JAN_1,
    )
    assert lot.variant_key == ("Size", "Large")
    blank = lot_service.receive_lot(
        product_id=sized_product.id, company_id=company.id, quantity=1,
        variant_attribute=" ", variant_value="", received_date=JAN_1,
    )
    assert blank.variant_key is None


@pytest.mark.parametrize("quantity", [0, -2, "1.5", True])
def test_receive_rejects_bad_quantity(db_session, company, plain_product, quantity):
    with pytest.raises(ValidationError):
        lot_service.receive_lot(product_id=plain_product.id, company_id=company.id, quantity=quantity)


def test_receive_rejects_future_date(db_session, company, plain_product):
    with pytest.raises(ValidationError, match="future"):
        lot_service.receive_lot(
            product_id=plain_product.id, company_id=company.id, quantity=1,
            received_date=utcnow() + timedelta(days=1),
        )


def test_receive_checks_company(db_session, company, other_company, plain_product):
    with pytest.raises(ValidationError):
        lot_service.receive_lot(product_id=plain_product.id, company_id=other_company.id, quantity=1)
    with pytest.raises(NotFoundError):
        lot_service.receive_lot(product_id=999999, company_id=company.id, quantity=1)


def test_add_base_stock_increments_latest_lot(db_session, company, plain_product):
    lot_service.receive_lot(product_id=plain_product.id, company_id=company.id, quantity=2, received_date=JAN_1)
    latest = lot_service.receive_lot(product_id=plain_product.id, company_id=company.id, quantity=2, received_date=JAN_5)

    lot = lot_service.add_base_stock(product_id=plain_product.id, company_id=company.id, quantity=4)
    db_session.commit()

    assert lot.id == latest.id
    assert [q for _k, q, _d in _quantities(company.id, plain_product.id)] == [2, 6]
    assert lot_service.add_base_stock(product_id=plain_product.id, company_id=company.id, quantity=0) is None


def test_adjust_to_count_moves_lots_both_ways(db_session, company, plain_product):
    lot_service.receive_lot(product_id=plain_product.id, company_id=company.id, quantity=5, received_date=JAN_1)

    up = lot_service.adjust_to_count(product_id=plain_product.id, company_id=company.id, counted=8)
    assert up["delta"] == 3
    assert up["lot_id"] is not None
    assert lot_service.total_lot_quantity(plain_product.id, company.id) == 8

    down = lot_service.adjust_to_count(product_id=plain_product.id, company_id=company.id, counted=2)
    assert down["before"] == 8
    assert down["delta"] == -6
    # oldest lot consumed first
    remaining = _quantities(company.id, plain_product.id)
    assert len(remaining) == 1
    assert remaining[0][1] == 2
    assert remaining[0][2] > datetime(2026, 1, 2)
