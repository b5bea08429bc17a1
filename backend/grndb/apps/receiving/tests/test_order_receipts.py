from __future__ import annotations

from datetime import date

import pytest
from fastapi import HTTPException

from grndb.apps.purchasing import models as purchasing_models
from grndb.apps.purchasing import schemas as purchasing_schemas
from grndb.apps.purchasing import services as purchasing_services
from grndb.apps.receiving import models, schemas, services, status, sync
from grndb.apps.stock import models as stock_models
from grndb.apps.stock import schemas as stock_schemas
from grndb.apps.stock import services as stock_services
from grndb.errors import NotFoundError, ValidationError

PO = models.ReceiptSourceTypeEnum.PURCHASE_ORDER


def _material(db, name="Resin"):
    return stock_services.create_material(
        db,
        payload=stock_schemas.MaterialCreate(kind=stock_models.MaterialKindEnum.RAW, name=name),
    )


def _order(db, *lines, po_number="PO-100"):
    return purchasing_services.create_purchase_order(
        db,
        payload=purchasing_schemas.PurchaseOrderCreate(
            po_number=po_number,
            supplier_name="Acme Polymers",
            lines=[
                purchasing_schemas.PurchaseOrderLineCreate(
                    material_id=material.id,
                    quantity=quantity,
                    extra_allowed_qty=extra,
                    rate=rate,
                )
                for material, quantity, extra, rate in lines
            ],
        ),
    )


def _receive(db, order, *items, received_by="store"):
    return services.create_receipt(
        db,
        payload=schemas.ReceiptCreate(
            source_type=PO,
            source_id=order.id,
            received_by=received_by,
            date_received=date(2026, 10, 1),
            lines=list(items),
        ),
        actor="tester",
    )


def _line(material, received, extra=0.0, **kwargs):
    return schemas.ReceiptLineIn(
        material_id=material.id,
        received_quantity=received,
        extra_received_qty=extra,
        **kwargs,
    )


def test_partial_then_normal_completion(db_session):
    resin = _material(db_session)
    order = _order(db_session, (resin, 100, 10, 5.0))

    first = _receive(db_session, order, _line(resin, 60))
    db_session.commit()

    assert first.status == models.ReceiptStatusEnum.PARTIAL
    assert first.is_locked is False
    line = first.lines[0]
    assert line.previous_received == 0
    assert line.total_received == 60
    assert line.balance_quantity == 40
    assert line.balance_quantity + line.previous_received + line.received_quantity == line.ordered_quantity
    assert order.status == purchasing_models.SourceStatusEnum.PARTIAL
    assert order.lines[0].received_qty == 60

    pending = services.get_pending_quantities(db_session, source_type=PO, source_id=order.id)
    assert pending.lines[0].pending_quantity == 40
    assert pending.lines[0].pending_extra_quantity == 10

    second = _receive(db_session, order, _line(resin, 40))
    db_session.commit()

    assert second.status == models.ReceiptStatusEnum.NORMAL_COMPLETED
    assert second.is_locked is True
    assert second.lines[0].previous_received == 60
    assert second.lines[0].balance_quantity == 0
    assert order.status == purchasing_models.SourceStatusEnum.COMPLETED
    assert first.is_locked is True
    assert first.lock_note == sync.COMPLETION_LOCK_NOTE

    assert resin.quantity == 100
    assert resin.per_unit_price == pytest.approx(5.0)

    check = services.check_source_for_receipt(db_session, source_type=PO, source_id=order.id)
    assert check.allowed is False
    assert check.latest_receipt_id == second.id
    with pytest.raises(ValidationError):
        _receive(db_session, order, _line(resin, 0, 5))


def test_full_receipt_with_extra_is_completed(db_session):
    resin = _material(db_session)
    order = _order(db_session, (resin, 10, 2, 1.0))

    receipt = _receive(db_session, order, _line(resin, 10, 2))

    assert receipt.status == models.ReceiptStatusEnum.COMPLETED
    assert resin.quantity == 12


def test_extra_only_completion(db_session):
    resin = _material(db_session)
    order = _order(db_session, (resin, 10, 2, 1.0))

    receipt = _receive(db_session, order, _line(resin, 4, 2))

    assert receipt.status == models.ReceiptStatusEnum.EXTRA_COMPLETED
    assert receipt.is_locked is True
    assert order.status == purchasing_models.SourceStatusEnum.PARTIAL


def test_status_considers_every_order_line(db_session):
    resin = _material(db_session, "Resin")
    pigment = _material(db_session, "Pigment")
    order = _order(db_session, (resin, 10, 0, 1.0), (pigment, 5, 0, 2.0))

    receipt = _receive(db_session, order, _line(resin, 10))

    assert receipt.status == models.ReceiptStatusEnum.PARTIAL
    assert order.status == purchasing_models.SourceStatusEnum.PARTIAL


def test_receipt_ceilings_are_enforced(db_session):
    resin = _material(db_session, "Resin")
    other = _material(db_session, "Solvent")
    order = _order(db_session, (resin, 100, 10, 5.0))

    with pytest.raises(ValidationError):
        _receive(db_session, order, _line(resin, 101))
    with pytest.raises(ValidationError):
        _receive(db_session, order, _line(resin, 10, 11))
    with pytest.raises(ValidationError) as excinfo:
        _receive(db_session, order, _line(other, 1))
    assert "Item not found in Purchase Order" in excinfo.value.detail
    with pytest.raises(ValidationError):
        _receive(db_session, order, _line(resin, 5, damaged_quantity=6))
    with pytest.raises(ValidationError):
        _receive(db_session, order)
    with pytest.raises(ValidationError):
        _receive(db_session, order, _line(resin, 5), received_by="  ")

    _receive(db_session, order, _line(resin, 100.0005))
    assert db_session.query(models.GoodsReceipt).count() == 1



def test_cumulative_receipts_stay_within_order_quantity(db_session):
    resin = _material(db_session)
    order = _order(db_session, (resin, 100, 0, 5.0))

    def _received_total():
        rows = (
            db_session.query(models.GoodsReceiptLine.received_quantity)
            .filter(models.GoodsReceiptLine.material_id == resin.id)
            .all()
        )
        return sum(quantity for (quantity,) in rows)

    receipts = []
    for quantity in (30, 30, 30):
        receipts.append(_receive(db_session, order, _line(resin, quantity)))
        assert _received_total() <= 100 + services.TOLERANCE
    assert _received_total() == 90

    with pytest.raises(ValidationError):
        services.update_receipt(
            db_session,
            receipt_id=receipts[0].id,
            payload=schemas.ReceiptUpdate(lines=[_line(resin, 45)]),
        )
    assert _received_total() == 90
    assert receipts[0].lines[0].received_quantity == 30

    with pytest.raises(ValidationError):
        _receive(db_session, order, _line(resin, 15))
    assert _received_total() == 90

    services.update_receipt(
        db_session,
        receipt_id=receipts[0].id,
        payload=schemas.ReceiptUpdate(lines=[_line(resin, 40)]),
    )
    assert _received_total() <= 100 + services.TOLERANCE
    assert order.lines[0].received_qty == 100
    assert order.lines[0].balance_qty == 0
    assert order.status == purchasing_models.SourceStatusEnum.COMPLETED
    assert resin.quantity == 100

def test_unknown_source_is_not_found(db_session):
    with pytest.raises(NotFoundError):
        services.create_receipt(
            db_session,
            payload=schemas.ReceiptCreate(source_type=PO, source_id=999, received_by="store"),
        )


def test_price_falls_back_to_rate_and_tracks_difference(db_session):
    resin = _material(db_session)
    order = _order(db_session, (resin, 100, 0, 5.0))

    first = _receive(db_session, order, _line(resin, 20))
    second = _receive(db_session, order, _line(resin, 20, unit_price=6.0))

    assert first.lines[0].unit_price == 5.0
    assert first.lines[0].last_unit_price is None
    assert first.lines[0].total_price == 100.0
    assert second.lines[0].last_unit_price == 5.0
    assert second.lines[0].price_difference == pytest.approx(1.0)
    assert second.lines[0].price_difference_pct == pytest.approx(20.0)
    assert resin.per_unit_price == pytest.approx(5.5)


def test_update_posts_delta_and_locks_after_completion(db_session):
    resin = _material(db_session)
    order = _order(db_session, (resin, 100, 0, 5.0))
    receipt = _receive(db_session, order, _line(resin, 60))

    services.update_receipt(
        db_session,
        receipt_id=receipt.id,
        payload=schemas.ReceiptUpdate(lines=[_line(resin, 50)]),
    )

    assert resin.quantity == 50
    assert receipt.status == models.ReceiptStatusEnum.PARTIAL
    assert order.lines[0].received_qty == 50
    pending = services.get_pending_quantities(db_session, source_type=PO, source_id=order.id)
    assert pending.lines[0].pending_quantity == 50

    services.update_receipt(
        db_session,
        receipt_id=receipt.id,
        payload=schemas.ReceiptUpdate(lines=[_line(resin, 100)]),
    )
    assert receipt.status == models.ReceiptStatusEnum.COMPLETED
    assert receipt.is_locked is True
    assert resin.quantity == 100
    assert order.status == purchasing_models.SourceStatusEnum.COMPLETED

    with pytest.raises(status.ReceiptLockedError) as excinfo:
        services.update_receipt(
            db_session,
            receipt_id=receipt.id,
            payload=schemas.ReceiptUpdate(lines=[_line(resin, 90)]),
        )
    assert excinfo.value.detail == status.EDIT_LOCKED_MESSAGE


def test_damaged_quantity_creates_pending_record(db_session):
    resin = _material(db_session)
    order = _order(db_session, (resin, 10, 2, 1.0))

    receipt = _receive(db_session, order, _line(resin, 5, 2, damaged_quantity=6, remarks="wet bags"))

    assert len(receipt.damaged_stock) == 1
    record = receipt.damaged_stock[0]
    assert record.material_name == "Resin"
    assert record.damaged_qty == 6
    assert record.received_qty == 7
    assert record.status == models.DamagedStockStatusEnum.PENDING
    assert record.reference_number == order.po_number


def test_cancel_locks_receipts_and_reopen_releases_them(db_session):
    resin = _material(db_session)
    order = _order(db_session, (resin, 100, 0, 5.0))
    receipt = _receive(db_session, order, _line(resin, 30))

    sync.cancel_purchase_order(db_session, order, actor="buyer")

    assert order.status == purchasing_models.SourceStatusEnum.CANCELLED
    assert receipt.is_locked is True
    assert receipt.lock_note == sync.CANCELLATION_LOCK_NOTE
    with pytest.raises(ValidationError):
        _receive(db_session, order, _line(resin, 10))
    with pytest.raises(ValidationError):
        services.update_receipt(
            db_session,
            receipt_id=receipt.id,
            payload=schemas.ReceiptUpdate(lines=[_line(resin, 40)]),
        )

    sync.reopen_purchase_order(db_session, order, actor="buyer")

    assert order.status == purchasing_models.SourceStatusEnum.PARTIAL
    assert receipt.is_locked is False
    assert receipt.lock_note is None
    services.update_receipt(
        db_session,
        receipt_id=receipt.id,
        payload=schemas.ReceiptUpdate(lines=[_line(resin, 40)]),
    )
    assert resin.quantity == 40


def test_grn_numbers_are_sequential_per_year(db_session):
    resin = _material(db_session)
    order = _order(db_session, (resin, 100, 0, 5.0))

    first = _receive(db_session, order, _line(resin, 10))
    second = _receive(db_session, order, _line(resin, 10))

    prefix = first.grn_number.rsplit("-", 1)[0]
    assert first.grn_number.startswith("GRN-")
    assert first.grn_number.endswith("-001")
    assert second.grn_number == f"{prefix}-002"
    assert services.next_grn_number(db_session, year=2001) == "GRN-2001-001"


def test_list_receipts_filters_by_source(db_session):
    resin = _material(db_session)
    order_a = _order(db_session, (resin, 100, 0, 5.0), po_number="PO-A")
    order_b = _order(db_session, (resin, 100, 0, 5.0), po_number="PO-B")
    _receive(db_session, order_a, _line(resin, 10))
    _receive(db_session, order_b, _line(resin, 10))
    _receive(db_session, order_b, _line(resin, 90))

    assert len(services.list_receipts(db_session, source_type=PO, source_id=order_b.id)) == 2
    assert len(services.list_receipts(db_session, status_filter=models.ReceiptStatusEnum.COMPLETED)) == 1
    assert len(services.list_receipts(db_session)) == 3


def test_supplier_price_comparison_groups_by_supplier(db_session):
    resin = _material(db_session)
    acme = _order(db_session, (resin, 100, 0, 5.0))
    birla = purchasing_services.create_purchase_order(
        db_session,
        payload=purchasing_schemas.PurchaseOrderCreate(
            po_number="PO-200",
            supplier_name="Birla Chemicals",
            lines=[purchasing_schemas.PurchaseOrderLineCreate(material_id=resin.id, quantity=50, rate=6.0)],
        ),
    )

    _receive(db_session, acme, _line(resin, 10, unit_price=5.0))
    _receive(db_session, birla, _line(resin, 10, unit_price=6.0))
    latest = _receive(db_session, acme, _line(resin, 10, unit_price=5.5))

    comparison = services.supplier_price_comparison(db_session, material_id=resin.id)

    assert comparison.material_name == "Resin"
    assert [group.supplier_name for group in comparison.suppliers] == ["Acme Polymers", "Birla Chemicals"]
    acme_prices = comparison.suppliers[0]
    assert [point.unit_price for point in acme_prices.prices] == [5.5, 5.0]
    assert acme_prices.prices[0].grn_number == latest.grn_number
    assert acme_prices.latest_unit_price == 5.5
    assert acme_prices.average_unit_price == pytest.approx(5.25)
    assert comparison.suppliers[1].latest_unit_price == 6.0

    recent = services.supplier_price_comparison(db_session, material_id=resin.id, limit=1)
    assert [group.supplier_name for group in recent.suppliers] == ["Acme Polymers"]
    assert len(recent.suppliers[0].prices) == 1

    with pytest.raises(NotFoundError):
        services.supplier_price_comparison(db_session, material_id=999)


def test_resubmitted_receipt_with_same_key_is_not_duplicated(db_session):
    resin = _material(db_session)
    order = _order(db_session, (resin, 100, 0, 5.0))

    def _submit(quantity, key="grn-submit-1"):
        return services.create_receipt(
            db_session,
            payload=schemas.ReceiptCreate(
                source_type=PO,
                source_id=order.id,
                received_by="store",
                date_received=date(2026, 10, 1),
                lines=[_line(resin, quantity)],
                idempotency_key=key,
            ),
        )

    first = _submit(40)
    db_session.commit()
    read = schemas.ReceiptRead.model_validate(first)
    assert read.source_id == order.id
    assert read.lines[0].received_quantity == 40
    again = _submit(40)

    assert again.id == first.id
    assert db_session.query(models.GoodsReceipt).count() == 1
    assert resin.quantity == 40
    assert order.lines[0].received_qty == 40

    with pytest.raises(HTTPException) as excinfo:
        _submit(45)
    assert excinfo.value.status_code == 409

    other = _submit(10, key="grn-submit-2")
    assert other.id != first.id
    assert order.lines[0].received_qty == 50
