from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from grndb.database import get_db, get_read_db

from . import models, schemas, services

router = APIRouter(prefix="/stock", tags=["stock"])


@router.post(
    "/materials",
    response_model=schemas.MaterialRead,
    status_code=status.HTTP_201_CREATED,
)
def create_material(
    payload: schemas.MaterialCreate,
    db: Session = Depends(get_db),
):
    material = services.create_material(db, payload=payload)
    db.commit()
    db.refresh(material)
    return material


@router.get("/materials", response_model=List[schemas.MaterialRead])
def list_materials(
    kind: Optional[models.MaterialKindEnum] = None,
    db: Session = Depends(get_read_db),
):
    return services.list_materials(db, kind=kind)


@router.get(
    "/materials/{material_id}/price-history",
    response_model=List[schemas.PriceHistoryRead],
)
def list_price_history(
    material_id: int,
    db: Session = Depends(get_read_db),
):
    return services.list_price_history(db, material_id=material_id)


@router.put("/carton-mappings", response_model=schemas.CartonMappingRead)
def upsert_carton_mapping(
    payload: schemas.CartonMappingUpsert,
    db: Session = Depends(get_db),
):
    mapping = services.upsert_carton_mapping(db, payload=payload)
    db.commit()
    db.refresh(mapping)
    return mapping


@router.get("/finished-goods", response_model=List[schemas.FinishedGoodStockRead])
def list_finished_goods(db: Session = Depends(get_read_db)):
    return services.list_finished_goods(db)


@router.post(
    "/finished-goods/{product_name}/deduct",
    response_model=schemas.FinishedGoodStockRead,
)
def deduct_finished_goods(
    product_name: str,
    payload: schemas.FinishedGoodDeductRequest,
    db: Session = Depends(get_db),
):
    stock = services.deduct_finished_goods(
        db,
        product_name=product_name,
        unit=payload.unit,
        quantity=payload.quantity,
        reference_number=payload.reference_number,
        updated_by=payload.updated_by,
    )
    db.commit()
    db.refresh(stock)
    return stock
