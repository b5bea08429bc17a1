from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from . import models


class MaterialCreate(BaseModel):
    kind: models.MaterialKindEnum
    name: str = Field(..., min_length=1)
    item_code: Optional[str] = None
    uom: str = "PCS"
    opening_quantity: float = Field(0.0, ge=0)
    opening_unit_price: float = Field(0.0, ge=0)


class MaterialRead(BaseModel):
    id: int
    kind: models.MaterialKindEnum
    name: str
    item_code: Optional[str] = None
    uom: str
    quantity: float
    per_unit_price: float
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PriceHistoryRead(BaseModel):
    id: int
    sequence: int
    entry_type: models.PriceHistoryEntryEnum
    occurred_at: datetime
    supplier_name: Optional[str] = None
    reference_number: Optional[str] = None
    receipt_number: Optional[str] = None
    quantity: float
    unit_price: float
    total_value: float

    model_config = ConfigDict(from_attributes=True)


class CartonMappingUpsert(BaseModel):
    product_name: str = Field(..., min_length=1)
    units_per_carton: int = Field(..., ge=1)


class CartonMappingRead(CartonMappingUpsert):
    id: int
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class FinishedGoodHistoryRead(BaseModel):
    id: int
    action: models.StockHistoryActionEnum
    unit_type: Optional[models.UnitTypeEnum] = None
    unit: models.StockUnitEnum
    quantity: float
    reference_number: Optional[str] = None
    updated_by: Optional[str] = None
    notes: Optional[str] = None
    occurred_at: datetime

    model_config = ConfigDict(from_attributes=True)


class FinishedGoodStockRead(BaseModel):
    id: int
    product_name: str
    item_code: str
    units_per_carton: int
    available_cartons: float
    available_pieces: float
    broken_carton_pieces: float
    total_available: float
    own_unit_stock: float
    jobber_stock: float
    last_updated_from: Optional[str] = None
    updated_at: datetime
    history: List[FinishedGoodHistoryRead] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class FinishedGoodDeductRequest(BaseModel):
    unit: models.StockUnitEnum
    quantity: float = Field(..., gt=0)
    reference_number: Optional[str] = None
    updated_by: Optional[str] = None
