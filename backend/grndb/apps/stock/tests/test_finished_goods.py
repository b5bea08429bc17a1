from __future__ import annotations

import pytest

from grndb.apps.stock import cartons, models, schemas, services
from grndb.errors import InsufficientStockError, NotFoundError, ValidationError


def _stock(*, units_per_carton=12, available_cartons=5.0, pieces=0.0, broken=0.0):
    stock = models.FinishedGoodStock(
        product_name="Widget",
        item_code="FG-2026-0001",
        units_per_carton=units_per_carton,
        available_cartons=available_cartons,
        available_pieces=pieces,
        broken_carton_pieces=broken,
    )
    cartons.recompute_total(stock)
    return stock


def _assert_total(stock):
    expected = (
        stock.available_cartons * stock.units_per_carton
        + stock.available_pieces
        + stock.broken_carton_pieces
    )
    assert stock.total_available == pytest.approx(expected)


def test_deduct_pieces_breaks_cartons_one_at_a_time():
    stock = _stock()

    cartons.deduct(stock, models.StockUnitEnum.PIECES, 15)

    assert stock.available_cartons == 3
    assert stock.broken_carton_pieces == 9
    assert stock.total_available == 45
    _assert_total(stock)


def test_deduct_pieces_uses_broken_then_loose_first():
    stock = _stock(available_cartons=2, pieces=4, broken=5)

    cartons.deduct(stock, models.StockUnitEnum.PIECES, 7)

    assert stock.broken_carton_pieces == 0
    assert stock.available_pieces == 2
    assert stock.available_cartons == 2
    _assert_total(stock)


def test_deduct_cartons_and_shortfalls():
    stock = _stock(available_cartons=3)

    cartons.deduct(stock, models.StockUnitEnum.CARTONS, 2)
    assert stock.available_cartons == 1
    _assert_total(stock)

    with pytest.raises(InsufficientStockError):
        cartons.deduct(stock, models.StockUnitEnum.CARTONS, 2)
    with pytest.raises(InsufficientStockError):
        cartons.deduct(stock, models.StockUnitEnum.PIECES, 13)
    with pytest.raises(ValidationError):
        cartons.deduct(stock, models.StockUnitEnum.PIECES, 0)
    assert stock.available_cartons == 1


def test_add_rejects_negative_and_keeps_total():
    stock = _stock(available_cartons=0)

    cartons.add(stock, 2.5)
    assert stock.total_available == pytest.approx(30)

    with pytest.raises(ValidationError):
        cartons.add(stock, -1)


def test_proportional_usage():
    used, remaining = cartons.proportional_usage(40, 100, 500)

    assert used == pytest.approx(200)
    assert remaining == pytest.approx(300)
    with pytest.raises(ValidationError):
        cartons.proportional_usage(1, 0, 10)


def test_ensure_finished_good_uses_mapping_and_item_code(db_session):
    services.upsert_carton_mapping(
        db_session,
        payload=schemas.CartonMappingUpsert(product_name="Widget", units_per_carton=24),
    )

    first = services.ensure_finished_good(db_session, product_name="Widget")
    second = services.ensure_finished_good(db_session, product_name="Gadget")
    again = services.ensure_finished_good(db_session, product_name=" Widget ")

    assert again is first
    assert first.units_per_carton == 24
    assert second.units_per_carton == 1
    prefix = first.item_code.rsplit("-", 1)[0]
    assert first.item_code.endswith("-0001")
    assert second.item_code == f"{prefix}-0002"


def test_add_finished_goods_records_transfer_for_jobber(db_session):
    stock = services.add_finished_goods(
        db_session,
        product_name="Widget",
        quantity=4,
        unit_type=models.UnitTypeEnum.JOBBER,
        reference_number="GRN-2026-001",
        updated_by="store",
    )
    services.add_finished_goods(
        db_session,
        product_name="Widget",
        quantity=1,
        unit_type=models.UnitTypeEnum.OWN_UNIT,
    )

    assert stock.available_cartons == 5
    assert stock.jobber_stock == 4
    assert stock.own_unit_stock == 1
    assert [entry.action for entry in stock.history] == [
        models.StockHistoryActionEnum.TRANSFER,
        models.StockHistoryActionEnum.ADD,
    ]


def test_deduct_finished_goods_writes_history(db_session):
    services.add_finished_goods(
        db_session,
        product_name="Widget",
        quantity=2,
        unit_type=models.UnitTypeEnum.OWN_UNIT,
    )

    stock = services.deduct_finished_goods(
        db_session,
        product_name="Widget",
        unit=models.StockUnitEnum.PIECES,
        quantity=1,
        reference_number="SO-7",
    )

    assert stock.available_cartons == 1
    assert stock.broken_carton_pieces == 0
    assert stock.history[-1].action == models.StockHistoryActionEnum.DEDUCT
    with pytest.raises(NotFoundError):
        services.deduct_finished_goods(
            db_session,
            product_name="Unknown",
            unit=models.StockUnitEnum.CARTONS,
            quantity=1,
        )


def test_remove_finished_goods_reduces_matching_pool(db_session):
    services.add_finished_goods(db_session, product_name="Widget", quantity=4, unit_type=models.UnitTypeEnum.JOBBER)
    services.add_finished_goods(db_session, product_name="Widget", quantity=10, unit_type=models.UnitTypeEnum.OWN_UNIT)

    stock = services.remove_finished_goods(
        db_session,
        product_name="Widget",
        quantity=6,
        unit_type=models.UnitTypeEnum.JOBBER,
        reference_number="GRN-2026-004",
    )

    assert stock.available_cartons == 8
    assert stock.jobber_stock == 0
    assert stock.own_unit_stock == 10
    entry = stock.history[-1]
    assert entry.action == models.StockHistoryActionEnum.ADJUST
    assert entry.unit_type == models.UnitTypeEnum.JOBBER
    assert entry.quantity == -6
    with pytest.raises(InsufficientStockError):
        services.remove_finished_goods(
            db_session,
            product_name="Widget",
            quantity=9,
            unit_type=models.UnitTypeEnum.OWN_UNIT,
        )


def test_mapping_change_refreshes_existing_stock(db_session):
    stock = services.add_finished_goods(
        db_session,
        product_name="Widget",
        quantity=10,
        unit_type=models.UnitTypeEnum.JOBBER,
    )
    assert stock.units_per_carton == 1
    assert stock.total_available == 10

    services.upsert_carton_mapping(
        db_session,
        payload=schemas.CartonMappingUpsert(product_name="Widget", units_per_carton=12),
    )

    assert stock.units_per_carton == 12
    assert stock.total_available == 120
    _assert_total(stock)

    services.deduct_finished_goods(db_session, product_name="Widget", unit=models.StockUnitEnum.PIECES, quantity=5)
    assert stock.available_cartons == 9
    assert stock.broken_carton_pieces == 7
