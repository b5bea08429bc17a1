from __future__ import annotations

from datetime import date

from grndb.database import WriteSessionLocal
from grndb.apps.purchasing import models as purchasing_models
from grndb.apps.purchasing import schemas as purchasing_schemas
from grndb.apps.purchasing import services as purchasing_services
from grndb.apps.receiving import models as receiving_models
from grndb.apps.receiving import schemas as receiving_schemas
from grndb.apps.receiving import services as receiving_services
from grndb.apps.stock import models as stock_models
from grndb.apps.stock import schemas as stock_schemas
from grndb.apps.stock import services as stock_services

ACTOR = "demo-seed"


def _get_or_create_material(db, *, kind, name, quantity, price) -> stock_models.Material:
    material = (
        db.query(stock_models.Material)
        .filter(stock_models.Material.kind == kind, stock_models.Material.name == name)
        .first()
    )
    if material:
        return material
    material = stock_services.create_material(
        db,
        payload=stock_schemas.MaterialCreate(
            kind=kind,
            name=name,
            opening_quantity=quantity,
            opening_unit_price=price,
        ),
    )
    db.commit()
    return material


def _get_or_create_order(db, resin, cartons) -> purchasing_models.PurchaseOrder:
    order = (
        db.query(purchasing_models.PurchaseOrder)
        .filter(purchasing_models.PurchaseOrder.po_number == "PO-DEMO-1")
        .first()
    )
    if order:
        return order
    order = purchasing_services.create_purchase_order(
        db,
        payload=purchasing_schemas.PurchaseOrderCreate(
            po_number="PO-DEMO-1",
            supplier_name="Demo Polymers Ltd",
            order_date=date.today(),
            lines=[
                purchasing_schemas.PurchaseOrderLineCreate(
                    material_id=resin.id, quantity=100, extra_allowed_qty=10, rate=42.5
                ),
                purchasing_schemas.PurchaseOrderLineCreate(material_id=cartons.id, quantity=500, rate=3.2),
            ],
        ),
        actor=ACTOR,
    )
    db.commit()
    return order


def _get_or_create_challan(db) -> purchasing_models.DeliveryChallan:
    challan = (
        db.query(purchasing_models.DeliveryChallan)
        .filter(purchasing_models.DeliveryChallan.dc_no == "DC-DEMO-1")
        .first()
    )
    if challan:
        return challan
    challan = purchasing_services.create_delivery_challan(
        db,
        payload=purchasing_schemas.DeliveryChallanCreate(
            dc_no="DC-DEMO-1",
            unit_type=stock_models.UnitTypeEnum.JOBBER,
            person_name="Demo Jobber",
            dc_date=date.today(),
            products=[
                purchasing_schemas.ChallanProductCreate(
                    product_name="Demo Widget",
                    carton_qty=100,
                    materials=[
                        purchasing_schemas.ChallanMaterialCreate(material_name="Resin", qty_per_carton=5),
                        purchasing_schemas.ChallanMaterialCreate(material_name="Carton box", qty_per_carton=1),
                    ],
                )
            ],
        ),
        actor=ACTOR,
    )
    db.commit()
    return challan


def _seed_receipts(db, order, challan, resin, cartons) -> None:
    if not receiving_services.list_receipts(db, limit=1):
        receiving_services.create_receipt(
            db,
            payload=receiving_schemas.ReceiptCreate(
                source_type=receiving_models.ReceiptSourceTypeEnum.PURCHASE_ORDER,
                source_id=order.id,
                received_by="Demo Storekeeper",
                invoice_no="INV-DEMO-1",
                lines=[
                    receiving_schemas.ReceiptLineIn(material_id=resin.id, received_quantity=60),
                    receiving_schemas.ReceiptLineIn(material_id=cartons.id, received_quantity=500, unit_price=3.5),
                ],
            ),
            actor=ACTOR,
        )
        receiving_services.create_receipt(
            db,
            payload=receiving_schemas.ReceiptCreate(
                source_type=receiving_models.ReceiptSourceTypeEnum.JOB_WORK,
                source_id=challan.id,
                received_by="Demo Storekeeper",
                date_received=date.today(),
                cartons_returned=40,
            ),
            actor=ACTOR,
        )
        db.commit()


def main() -> None:
    db = WriteSessionLocal()
    try:
        resin = _get_or_create_material(
            db, kind=stock_models.MaterialKindEnum.RAW, name="Resin", quantity=20, price=40.0
        )
        cartons = _get_or_create_material(
            db, kind=stock_models.MaterialKindEnum.PACKING, name="Carton box", quantity=0, price=0.0
        )
        stock_services.upsert_carton_mapping(
            db,
            payload=stock_schemas.CartonMappingUpsert(product_name="Demo Widget", units_per_carton=12),
        )
        db.commit()
        order = _get_or_create_order(db, resin, cartons)
        challan = _get_or_create_challan(db)
        _seed_receipts(db, order, challan, resin, cartons)
    finally:
        db.close()


if __name__ == "__main__":
    main()
