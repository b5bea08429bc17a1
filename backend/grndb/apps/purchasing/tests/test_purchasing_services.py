from __future__ import annotations

import pytest
from fastapi import HTTPException

from grndb.apps.audit import services as audit_services
from grndb.apps.purchasing import models, schemas, services
from grndb.apps.receiving import sync
from grndb.apps.stock import models as stock_models
from grndb.apps.stock import schemas as stock_schemas
from grndb.apps.stock import services as stock_services
from grndb.errors import NotFoundError, ValidationError


def _material(db, name="Resin"):
    return stock_services.create_material(
        db,
        payload=stock_schemas.MaterialCreate(kind=stock_models.MaterialKindEnum.RAW, name=name),
    )


def _order_payload(*lines, po_number="po-7"):
    return schemas.PurchaseOrderCreate(
        po_number=po_number,
        supplier_name=" Acme Polymers ",
        lines=[
            schemas.PurchaseOrderLineCreate(material_id=material_id, quantity=quantity, rate=2.5)
            for material_id, quantity in lines
        ],
    )


def test_create_purchase_order(db_session):
    resin = _material(db_session)

    order = services.create_purchase_order(db_session, payload=_order_payload((resin.id, 40)), actor="buyer")
    db_session.commit()

    assert order.po_number == "PO-7"
    assert order.supplier_name == "Acme Polymers"
    assert order.status == models.SourceStatusEnum.PENDING
    line = order.lines[0]
    assert line.line_total == 100.0
    assert line.balance_qty == 40
    assert line.received_qty == 0
    events = audit_services.list_audit_events(db_session, entity_type="purchase_order", entity_id=str(order.id))
    assert [event.action for event in events] == ["create"]
    assert events[0].actor == "buyer"


def test_purchase_order_rejections(db_session):
    resin = _material(db_session)
    services.create_purchase_order(db_session, payload=_order_payload((resin.id, 40)))

    with pytest.raises(HTTPException) as excinfo:
        services.create_purchase_order(db_session, payload=_order_payload((resin.id, 10), po_number="PO-7"))
    assert excinfo.value.status_code == 409
    with pytest.raises(NotFoundError):
        services.create_purchase_order(db_session, payload=_order_payload((999, 10), po_number="PO-8"))
    with pytest.raises(ValidationError):
        services.create_purchase_order(
            db_session,
            payload=_order_payload((resin.id, 10), (resin.id, 5), po_number="PO-9"),
        )


def test_create_delivery_challan_derives_totals(db_session):
    challan = services.create_delivery_challan(
        db_session,
        payload=schemas.DeliveryChallanCreate(
            dc_no="dc-3",
            supplier_name="Jobber A",
            products=[
                schemas.ChallanProductCreate(
                    product_name="Widget",
                    carton_qty=20,
                    materials=[
                        schemas.ChallanMaterialCreate(material_name="Resin", qty_per_carton=3),
                        schemas.ChallanMaterialCreate(material_name="Label", total_qty=25),
                    ],
                ),
                schemas.ChallanProductCreate(product_name="Gadget", carton_qty=5),
            ],
        ),
    )

    assert challan.dc_no == "DC-3"
    assert challan.cartons_sent == 25
    assert challan.counterparty == "Jobber A"
    assert challan.unit_type == stock_models.UnitTypeEnum.JOBBER
    resin, label = challan.products[0].materials
    assert resin.total_qty == 60
    assert resin.balance_qty == 60
    assert label.total_qty == 25
    assert [product.position for product in challan.products] == [0, 1]


def test_delivery_challan_needs_counterparty(db_session):
    with pytest.raises(ValidationError):
        services.create_delivery_challan(
            db_session,
            payload=schemas.DeliveryChallanCreate(
                dc_no="DC-4",
                products=[schemas.ChallanProductCreate(product_name="Widget", carton_qty=1)],
            ),
        )


def test_cancel_and_reopen_without_receipts(db_session):
    resin = _material(db_session)
    order = services.create_purchase_order(db_session, payload=_order_payload((resin.id, 40)))

    with pytest.raises(ValidationError):
        sync.reopen_purchase_order(db_session, order)

    sync.cancel_purchase_order(db_session, order, actor="buyer")
    assert order.status == models.SourceStatusEnum.CANCELLED

    sync.reopen_purchase_order(db_session, order, actor="buyer")
    assert order.status == models.SourceStatusEnum.ORDERED

    actions = [
        (event.before or {}).get("status")
        for event in audit_services.list_audit_events(db_session, entity_type="purchase_order")
        if event.action == "status_change"
    ]
    assert sorted(actions) == ["CANCELLED", "PENDING"]


def test_completed_order_cannot_be_cancelled(db_session):
    resin = _material(db_session)
    order = services.create_purchase_order(db_session, payload=_order_payload((resin.id, 40)))
    order.status = models.SourceStatusEnum.COMPLETED

    with pytest.raises(ValidationError):
        sync.cancel_purchase_order(db_session, order)


def test_lists_filter_by_status(db_session):
    resin = _material(db_session)
    first = services.create_purchase_order(db_session, payload=_order_payload((resin.id, 40), po_number="PO-1"))
    services.create_purchase_order(db_session, payload=_order_payload((resin.id, 40), po_number="PO-2"))
    sync.cancel_purchase_order(db_session, first)

    cancelled = services.list_purchase_orders(db_session, status_filter=models.SourceStatusEnum.CANCELLED)
    assert [order.po_number for order in cancelled] == ["PO-1"]
    assert len(services.list_purchase_orders(db_session)) == 2
    assert services.get_purchase_order(db_session, purchase_order_id=first.id) is first
    with pytest.raises(NotFoundError):
        services.get_delivery_challan(db_session, challan_id=42)
