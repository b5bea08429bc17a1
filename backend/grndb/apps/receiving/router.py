from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Query, status
from sqlalchemy.orm import Session

from grndb.database import get_db, get_read_db

from . import models, schemas, services

router = APIRouter(prefix="/receiving", tags=["receiving"])


@router.post(
    "/receipts",
    response_model=schemas.ReceiptRead,
    status_code=status.HTTP_201_CREATED,
)
def create_receipt(
    payload: schemas.ReceiptCreate,
    db: Session = Depends(get_db),
    actor: Optional[str] = Header(None, alias="X-Actor"),
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
):
    if not payload.idempotency_key and idempotency_key:
        payload.idempotency_key = idempotency_key
    receipt = services.create_receipt(db, payload=payload, actor=actor)
    db.commit()
    db.refresh(receipt)
    return receipt


@router.put("/receipts/{receipt_id}", response_model=schemas.ReceiptRead)
def update_receipt(
    receipt_id: int,
    payload: schemas.ReceiptUpdate,
    db: Session = Depends(get_db),
    actor: Optional[str] = Header(None, alias="X-Actor"),
):
    receipt = services.update_receipt(db, receipt_id=receipt_id, payload=payload, actor=actor)
    db.commit()
    db.refresh(receipt)
    return receipt


@router.get("/receipts", response_model=List[schemas.ReceiptRead])
def list_receipts(
    source_type: Optional[models.ReceiptSourceTypeEnum] = None,
    source_id: Optional[int] = None,
    status_filter: Optional[models.ReceiptStatusEnum] = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_read_db),
):
    return services.list_receipts(
        db,
        source_type=source_type,
        source_id=source_id,
        status_filter=status_filter,
        skip=skip,
        limit=limit,
    )


@router.get("/receipts/{receipt_id}", response_model=schemas.ReceiptRead)
def get_receipt(receipt_id: int, db: Session = Depends(get_read_db)):
    return services.get_receipt(db, receipt_id=receipt_id)


@router.get("/receipts/{receipt_id}/effects", response_model=List[schemas.ReceiptEffectRead])
def list_receipt_effects(receipt_id: int, db: Session = Depends(get_read_db)):
    return services.get_receipt(db, receipt_id=receipt_id).effects


@router.get(
    "/pending/{source_type}/{source_id}",
    response_model=schemas.PendingQuantitiesRead,
)
def get_pending_quantities(
    source_type: models.ReceiptSourceTypeEnum,
    source_id: int,
    db: Session = Depends(get_read_db),
):
    return services.get_pending_quantities(db, source_type=source_type, source_id=source_id)


@router.get(
    "/check/{source_type}/{source_id}",
    response_model=schemas.SourceCheckRead,
)
def check_source_for_receipt(
    source_type: models.ReceiptSourceTypeEnum,
    source_id: int,
    db: Session = Depends(get_read_db),
):
    return services.check_source_for_receipt(db, source_type=source_type, source_id=source_id)


@router.get(
    "/materials/{material_id}/supplier-prices",
    response_model=schemas.SupplierPriceComparisonRead,
)
def supplier_price_comparison(
    material_id: int,
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_read_db),
):
    return services.supplier_price_comparison(db, material_id=material_id, limit=limit)
