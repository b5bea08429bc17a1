from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Header, status
from sqlalchemy.orm import Session

from grndb.database import get_db, get_read_db
from grndb.apps.receiving import sync

from . import models, schemas, services

router = APIRouter(prefix="/purchasing", tags=["purchasing"])


@router.post(
    "/purchase-orders",
    response_model=schemas.PurchaseOrderRead,
    status_code=status.HTTP_201_CREATED,
)
def create_purchase_order(
    payload: schemas.PurchaseOrderCreate,
    db: Session = Depends(get_db),
    actor: Optional[str] = Header(None, alias="X-Actor"),
):
    order = services.create_purchase_order(db, payload=payload, actor=actor)
    db.commit()
    db.refresh(order)
    return order


@router.get("/purchase-orders", response_model=List[schemas.PurchaseOrderRead])
def list_purchase_orders(
    status_filter: Optional[models.SourceStatusEnum] = None,
    db: Session = Depends(get_read_db),
):
    return services.list_purchase_orders(db, status_filter=status_filter)


@router.get("/purchase-orders/{purchase_order_id}", response_model=schemas.PurchaseOrderRead)
def get_purchase_order(purchase_order_id: int, db: Session = Depends(get_read_db)):
    return services.get_purchase_order(db, purchase_order_id=purchase_order_id)


@router.post("/purchase-orders/{purchase_order_id}/cancel", response_model=schemas.PurchaseOrderRead)
def cancel_purchase_order(
    purchase_order_id: int,
    db: Session = Depends(get_db),
    actor: Optional[str] = Header(None, alias="X-Actor"),
):
    order = services.get_purchase_order(db, purchase_order_id=purchase_order_id)
    sync.cancel_purchase_order(db, order, actor=actor)
    db.commit()
    db.refresh(order)
    return order


@router.post("/purchase-orders/{purchase_order_id}/reopen", response_model=schemas.PurchaseOrderRead)
def reopen_purchase_order(
    purchase_order_id: int,
    db: Session = Depends(get_db),
    actor: Optional[str] = Header(None, alias="X-Actor"),
):
    order = services.get_purchase_order(db, purchase_order_id=purchase_order_id)
    sync.reopen_purchase_order(db, order, actor=actor)
    db.commit()
    db.refresh(order)
    return order


@router.post(
    "/delivery-challans",
    response_model=schemas.DeliveryChallanRead,
    status_code=status.HTTP_201_CREATED,
)
def create_delivery_challan(
    payload: schemas.DeliveryChallanCreate,
    db: Session = Depends(get_db),
    actor: Optional[str] = Header(None, alias="X-Actor"),
):
    challan = services.create_delivery_challan(db, payload=payload, actor=actor)
    db.commit()
    db.refresh(challan)
    return challan


@router.get("/delivery-challans", response_model=List[schemas.DeliveryChallanRead])
def list_delivery_challans(
    status_filter: Optional[models.SourceStatusEnum] = None,
    db: Session = Depends(get_read_db),
):
    return services.list_delivery_challans(db, status_filter=status_filter)


@router.get("/delivery-challans/{challan_id}", response_model=schemas.DeliveryChallanRead)
def get_delivery_challan(challan_id: int, db: Session = Depends(get_read_db)):
    return services.get_delivery_challan(db, challan_id=challan_id)


@router.post("/delivery-challans/{challan_id}/cancel", response_model=schemas.DeliveryChallanRead)
def cancel_delivery_challan(
    challan_id: int,
    db: Session = Depends(get_db),
    actor: Optional[str] = Header(None, alias="X-Actor"),
):
    challan = services.get_delivery_challan(db, challan_id=challan_id)
    sync.cancel_delivery_challan(db, challan, actor=actor)
    db.commit()
    db.refresh(challan)
    return challan
