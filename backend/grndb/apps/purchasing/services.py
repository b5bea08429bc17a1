from __future__ import annotations

from typing import List, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from grndb.apps.audit import services as audit_services
from grndb.apps.stock import models as stock_models
from grndb.errors import NotFoundError, ValidationError

from . import models, schemas


def _normalize_number(value: str) -> str:
    return (value or "").strip().upper()


def create_purchase_order(
    db: Session,
    *,
    payload: schemas.PurchaseOrderCreate,
    actor: Optional[str] = None,
) -> models.PurchaseOrder:
    po_number = _normalize_number(payload.po_number)
    if db.query(models.PurchaseOrder).filter(models.PurchaseOrder.po_number == po_number).first():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Purchase order {po_number} already exists.",
        )

    seen_materials = set()
    order = models.PurchaseOrder(
        po_number=po_number,
        supplier_name=payload.supplier_name.strip(),
        order_date=payload.order_date,
        notes=payload.notes,
        status=models.SourceStatusEnum.PENDING,
    )
    for line in payload.lines:
        if line.material_id in seen_materials:
            raise ValidationError(f"Material {line.material_id} appears more than once on the order.")
        seen_materials.add(line.material_id)
        material = db.query(stock_models.Material).filter(stock_models.Material.id == line.material_id).first()
        if not material:
            raise NotFoundError(f"Material {line.material_id} not found.")
        order.lines.append(
            models.PurchaseOrderLine(
                material_id=material.id,
                quantity=line.quantity,
                extra_allowed_qty=line.extra_allowed_qty,
                rate=line.rate,
                line_total=line.quantity * line.rate,
                received_qty=0.0,
                extra_received_qty=0.0,
                balance_qty=line.quantity,
            )
        )
    db.add(order)
    db.flush()

    audit_services.log_event(
        db,
        actor=actor,
        entity_type="purchase_order",
        entity_id=str(order.id),
        action="create",
        after={"po_number": order.po_number, "lines": len(order.lines)},
    )
    return order


def get_purchase_order(db: Session, *, purchase_order_id: int) -> models.PurchaseOrder:
    order = db.query(models.PurchaseOrder).filter(models.PurchaseOrder.id == purchase_order_id).first()
    if not order:
        raise NotFoundError(f"Purchase order {purchase_order_id} not found.")
    return order


def list_purchase_orders(
    db: Session,
    *,
    status_filter: Optional[models.SourceStatusEnum] = None,
) -> List[models.PurchaseOrder]:
    query = db.query(models.PurchaseOrder)
    if status_filter is not None:
        query = query.filter(models.PurchaseOrder.status == status_filter)
    return query.order_by(models.PurchaseOrder.created_at.desc()).all()


def create_delivery_challan(
    db: Session,
    *,
    payload: schemas.DeliveryChallanCreate,
    actor: Optional[str] = None,
) -> models.DeliveryChallan:
    dc_no = _normalize_number(payload.dc_no)
    if db.query(models.DeliveryChallan).filter(models.DeliveryChallan.dc_no == dc_no).first():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Delivery challan {dc_no} already exists.",
        )
    if not (payload.supplier_name or payload.person_name):
        raise ValidationError("Either supplier_name or person_name is required.")

    challan = models.DeliveryChallan(
        dc_no=dc_no,
        unit_type=payload.unit_type,
        supplier_name=payload.supplier_name,
        person_name=payload.person_name,
        dc_date=payload.dc_date,
        notes=payload.notes,
        status=models.SourceStatusEnum.PENDING,
    )
    for position, product_in in enumerate(payload.products):
        product = models.ChallanProduct(
            position=position,
            product_name=product_in.product_name.strip(),
            carton_qty=product_in.carton_qty,
        )
        for material_in in product_in.materials:
            total_qty = material_in.total_qty
            if total_qty is None:
                total_qty = material_in.qty_per_carton * product_in.carton_qty
            product.materials.append(
                models.ChallanMaterial(
                    material_name=material_in.material_name.strip(),
                    qty_per_carton=material_in.qty_per_carton,
                    total_qty=total_qty,
                    received_qty=0.0,
                    balance_qty=total_qty,
                )
            )
        challan.products.append(product)
    db.add(challan)
    db.flush()

    audit_services.log_event(
        db,
        actor=actor,
        entity_type="delivery_challan",
        entity_id=str(challan.id),
        action="create",
        after={"dc_no": challan.dc_no, "cartons_sent": challan.cartons_sent},
    )
    return challan


def get_delivery_challan(db: Session, *, challan_id: int) -> models.DeliveryChallan:
    challan = db.query(models.DeliveryChallan).filter(models.DeliveryChallan.id == challan_id).first()
    if not challan:
        raise NotFoundError(f"Delivery challan {challan_id} not found.")
    return challan


def list_delivery_challans(
    db: Session,
    *,
    status_filter: Optional[models.SourceStatusEnum] = None,
) -> List[models.DeliveryChallan]:
    query = db.query(models.DeliveryChallan)
    if status_filter is not None:
        query = query.filter(models.DeliveryChallan.status == status_filter)
    return query.order_by(models.DeliveryChallan.created_at.desc()).all()
