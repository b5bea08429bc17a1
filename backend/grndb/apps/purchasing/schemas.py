from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from grndb.apps.stock.models import UnitTypeEnum

from . import models


class PurchaseOrderLineCreate(BaseModel):
    material_id: int
    quantity: float = Field(..., gt=0)
    extra_allowed_qty: float = Field(0.0, ge=0)
    rate: float = Field(0.0, ge=0)


class PurchaseOrderCreate(BaseModel):
    po_number: str = Field(..., min_length=1)
    supplier_name: str = Field(..., min_length=1)
    order_date: Optional[date] = None
    notes: Optional[str] = None
    lines: List[PurchaseOrderLineCreate] = Field(..., min_length=1)


class PurchaseOrderLineRead(BaseModel):
    id: int
    material_id: int
    quantity: float
    extra_allowed_qty: float
    rate: float
    line_total: float
    received_qty: float
    extra_received_qty: float
    balance_qty: float

    model_config = ConfigDict(from_attributes=True)


class PurchaseOrderRead(BaseModel):
    id: int
    po_number: str
    supplier_name: str
    status: models.SourceStatusEnum
    order_date: Optional[date] = None
    notes: Optional[str] = None
    created_at: datetime
    lines: List[PurchaseOrderLineRead] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class ChallanMaterialCreate(BaseModel):
    material_name: str = Field(..., min_length=1)
    qty_per_carton: float = Field(0.0, ge=0)
    total_qty: Optional[float] = Field(None, ge=0)


class ChallanProductCreate(BaseModel):
    product_name: str = Field(..., min_length=1)
    carton_qty: float = Field(..., gt=0)
    materials: List[ChallanMaterialCreate] = Field(default_factory=list)


class DeliveryChallanCreate(BaseModel):
    dc_no: str = Field(..., min_length=1)
    unit_type: UnitTypeEnum = UnitTypeEnum.JOBBER
    supplier_name: Optional[str] = None
    person_name: Optional[str] = None
    dc_date: Optional[date] = None
    notes: Optional[str] = None
    products: List[ChallanProductCreate] = Field(..., min_length=1)


class ChallanMaterialRead(BaseModel):
    id: int
    material_name: str
    qty_per_carton: float
    total_qty: float
    received_qty: float
    balance_qty: float

    model_config = ConfigDict(from_attributes=True)


class ChallanProductRead(BaseModel):
    id: int
    position: int
    product_name: str
    carton_qty: float
    materials: List[ChallanMaterialRead] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class DeliveryChallanRead(BaseModel):
    id: int
    dc_no: str
    unit_type: UnitTypeEnum
    supplier_name: Optional[str] = None
    person_name: Optional[str] = None
    status: models.SourceStatusEnum
    dc_date: Optional[date] = None
    notes: Optional[str] = None
    cartons_sent: float
    created_at: datetime
    products: List[ChallanProductRead] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)
