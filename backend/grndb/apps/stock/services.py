from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from grndb.errors import NotFoundError
from grndb.utils.identifiers import next_sequential_code, yearly_prefix

from . import cartons, models, schemas
from .ledger import MaterialLedger
from .refs import MaterialRef, resolve

logger = logging.getLogger(__name__)

ITEM_CODE_PREFIX = "FG"


def _normalize_name(name: str) -> str:
    return (name or "").strip()


# ---------------------------------------------------------------------------
# Materials
# ---------------------------------------------------------------------------

def create_material(db: Session, *, payload: schemas.MaterialCreate) -> models.Material:
    name = _normalize_name(payload.name)
    existing = (
        db.query(models.Material)
        .filter(models.Material.kind == payload.kind, models.Material.name == name)
        .first()
    )
    if existing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"{payload.kind.value} material {name!r} already exists.",
        )
    material = models.Material(
        kind=payload.kind,
        name=name,
        item_code=payload.item_code,
        uom=payload.uom,
    )
    MaterialLedger(material).open(
        quantity=payload.opening_quantity,
        unit_price=payload.opening_unit_price,
    )
    db.add(material)
    db.flush()
    return material


def list_materials(db: Session, *, kind: Optional[models.MaterialKindEnum] = None) -> List[models.Material]:
    query = db.query(models.Material)
    if kind is not None:
        query = query.filter(models.Material.kind == kind)
    return query.order_by(models.Material.name.asc()).all()


def get_material(db: Session, *, material_id: int) -> models.Material:
    material = db.query(models.Material).filter(models.Material.id == material_id).first()
    if not material:
        raise NotFoundError(f"Material {material_id} not found.")
    return material


def list_price_history(db: Session, *, material_id: int) -> List[models.MaterialPriceHistory]:
    material = get_material(db, material_id=material_id)
    return list(material.price_history)


def post_to_ledger(
    db: Session,
    *,
    ref: MaterialRef,
    quantity: float,
    unit_price: float,
    supplier_name: Optional[str] = None,
    reference_number: Optional[str] = None,
    receipt_number: Optional[str] = None,
    occurred_at: Optional[datetime] = None,
) -> models.Material:
    material = resolve(db, ref)
    MaterialLedger(material).post(
        quantity,
        unit_price,
        supplier_name=supplier_name,
        reference_number=reference_number,
        receipt_number=receipt_number,
        occurred_at=occurred_at,
    )
    db.flush()
    return material


# ---------------------------------------------------------------------------
# Carton mappings
# ---------------------------------------------------------------------------

def upsert_carton_mapping(db: Session, *, payload: schemas.CartonMappingUpsert) -> models.ProductCartonMapping:
    product_name = _normalize_name(payload.product_name)
    mapping = (
        db.query(models.ProductCartonMapping)
        .filter(models.ProductCartonMapping.product_name == product_name)
        .first()
    )
    if not mapping:
        mapping = models.ProductCartonMapping(product_name=product_name)
        db.add(mapping)
    mapping.units_per_carton = payload.units_per_carton
    stock = (
        db.query(models.FinishedGoodStock)
        .filter(models.FinishedGoodStock.product_name == product_name)
        .first()
    )
    if stock and stock.units_per_carton != mapping.units_per_carton:
        stock.units_per_carton = mapping.units_per_carton
        cartons.recompute_total(stock)
        logger.info(
            "Refreshed finished-good pack size",
            extra={"product_name": product_name, "units_per_carton": mapping.units_per_carton},
        )
    db.flush()
    return mapping


def units_per_carton_for(db: Session, *, product_name: str) -> int:
    mapping = (
        db.query(models.ProductCartonMapping)
        .filter(models.ProductCartonMapping.product_name == _normalize_name(product_name))
        .first()
    )
    if mapping and mapping.units_per_carton:
        return mapping.units_per_carton
    return 1


# ---------------------------------------------------------------------------
# Finished goods
# ---------------------------------------------------------------------------

def next_item_code(db: Session, *, year: Optional[int] = None) -> str:
    year = year or datetime.now(timezone.utc).year
    prefix = yearly_prefix(ITEM_CODE_PREFIX, year)
    codes = (
        db.query(models.FinishedGoodStock.item_code)
        .filter(models.FinishedGoodStock.item_code.like(f"{prefix}%"))
        .all()
    )
    return next_sequential_code((code for (code,) in codes), prefix=prefix, width=4)


def get_finished_good(db: Session, *, product_name: str) -> models.FinishedGoodStock:
    stock = (
        db.query(models.FinishedGoodStock)
        .filter(models.FinishedGoodStock.product_name == _normalize_name(product_name))
        .first()
    )
    if not stock:
        raise NotFoundError(f"No finished-good stock for {product_name!r}.")
    return stock


def list_finished_goods(db: Session) -> List[models.FinishedGoodStock]:
    return db.query(models.FinishedGoodStock).order_by(models.FinishedGoodStock.product_name.asc()).all()


def ensure_finished_good(db: Session, *, product_name: str) -> models.FinishedGoodStock:
    product_name = _normalize_name(product_name)
    stock = (
        db.query(models.FinishedGoodStock)
        .filter(models.FinishedGoodStock.product_name == product_name)
        .first()
    )
    if stock:
        return stock
    stock = models.FinishedGoodStock(
        product_name=product_name,
        item_code=next_item_code(db),
        units_per_carton=units_per_carton_for(db, product_name=product_name),
        available_cartons=0.0,
        available_pieces=0.0,
        broken_carton_pieces=0.0,
        own_unit_stock=0.0,
        jobber_stock=0.0,
    )
    cartons.recompute_total(stock)
    db.add(stock)
    db.flush()
    logger.info(
        "Created finished-good stock record",
        extra={"product_name": product_name, "item_code": stock.item_code},
    )
    return stock


def add_finished_goods(
    db: Session,
    *,
    product_name: str,
    quantity: float,
    unit_type: models.UnitTypeEnum,
    reference_number: Optional[str] = None,
    updated_by: Optional[str] = None,
) -> models.FinishedGoodStock:
    """Add returned cartons; jobber returns are recorded as transfers."""
    stock = ensure_finished_good(db, product_name=product_name)
    cartons.add(stock, quantity)
    if unit_type == models.UnitTypeEnum.JOBBER:
        stock.jobber_stock = (stock.jobber_stock or 0.0) + quantity
        action = models.StockHistoryActionEnum.TRANSFER
    else:
        stock.own_unit_stock = (stock.own_unit_stock or 0.0) + quantity
        action = models.StockHistoryActionEnum.ADD
    stock.last_updated_from = "GRN"
    stock.history.append(
        models.FinishedGoodStockHistory(
            action=action,
            unit_type=unit_type,
            unit=models.StockUnitEnum.CARTONS,
            quantity=quantity,
            reference_number=reference_number,
            updated_by=updated_by,
        )
    )
    db.flush()
    return stock


def deduct_finished_goods(
    db: Session,
    *,
    product_name: str,
    unit: models.StockUnitEnum,
    quantity: float,
    reference_number: Optional[str] = None,
    updated_by: Optional[str] = None,
    notes: Optional[str] = None,
) -> models.FinishedGoodStock:
    stock = get_finished_good(db, product_name=product_name)
    cartons.deduct(stock, unit, quantity)
    stock.last_updated_from = reference_number or "DEDUCT"
    stock.history.append(
        models.FinishedGoodStockHistory(
            action=models.StockHistoryActionEnum.DEDUCT,
            unit=unit,
            quantity=quantity,
            reference_number=reference_number,
            updated_by=updated_by,
            notes=notes,
        )
    )
    db.flush()
    return stock


def remove_finished_goods(
    db: Session,
    *,
    product_name: str,
    quantity: float,
    unit_type: models.UnitTypeEnum,
    reference_number: Optional[str] = None,
    updated_by: Optional[str] = None,
    notes: Optional[str] = None,
) -> models.FinishedGoodStock:
    """Take back cartons a receipt added; the matching unit pool is reduced too."""
    stock = get_finished_good(db, product_name=product_name)
    cartons.deduct(stock, models.StockUnitEnum.CARTONS, quantity)
    if unit_type == models.UnitTypeEnum.JOBBER:
        stock.jobber_stock = max((stock.jobber_stock or 0.0) - quantity, 0.0)
    else:
        stock.own_unit_stock = max((stock.own_unit_stock or 0.0) - quantity, 0.0)
    stock.last_updated_from = "GRN"
    stock.history.append(
        models.FinishedGoodStockHistory(
            action=models.StockHistoryActionEnum.ADJUST,
            unit_type=unit_type,
            unit=models.StockUnitEnum.CARTONS,
            quantity=-quantity,
            reference_number=reference_number,
            updated_by=updated_by,
            notes=notes,
        )
    )
    db.flush()
    return stock
