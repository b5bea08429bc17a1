from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from grndb.apps.purchasing.models import SourceStatusEnum

from . import models


class ReceiptLineIn(BaseModel):
    material_id: int
    received_quantity: float = Field(0.0, ge=0)
    extra_received_qty: float = Field(0.0, ge=0)
    unit_price: Optional[float] = Field(None, ge=0)
    damaged_quantity: float = Field(0.0, ge=0)
    remarks: Optional[str] = None


class DamagedStockIn(BaseModel):
    product_name: Optional[str] = None
    material_name: str = Field(..., min_length=1)
    received_qty: float = Field(0.0, ge=0)
    damaged_qty: float = Field(0.0, ge=0)
    remarks: Optional[str] = None


class ReceiptDetails(BaseModel):
    received_by: Optional[str] = None
    date_received: Optional[date] = None
    reference_type: Optional[str] = None
    invoice_no: Optional[str] = None
    invoice_date: Optional[date] = None
    dc_no: Optional[str] = None
    dc_date: Optional[date] = None
    remarks: Optional[str] = None

    # purchase order receipts
    lines: List[ReceiptLineIn] = Field(default_factory=list)

    # job-work receipts
    cartons_returned: Optional[float] = None
    product_cartons_received: Optional[List[float]] = None
    damaged_stock: List[DamagedStockIn] = Field(default_factory=list)


class ReceiptCreate(ReceiptDetails):
    source_type: models.ReceiptSourceTypeEnum
    source_id: int
    idempotency_key: Optional[str] = Field(None, max_length=128)


class ReceiptUpdate(ReceiptDetails):
    pass


class ReceiptLineRead(BaseModel):
    id: int
    material_id: Optional[int] = None
    material_name: Optional[str] = None
    challan_product_id: Optional[int] = None
    ordered_quantity: float
    received_quantity: float
    extra_received_qty: float
    damaged_quantity: float
    unit_price: float
    total_price: float
    last_unit_price: Optional[float] = None
    price_difference: float
    price_difference_pct: float
    previous_received: float
    previous_extra_received: float
    total_received: float
    balance_quantity: float
    used_qty: Optional[float] = None
    remaining_qty: Optional[float] = None
    remarks: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ProductCartonsRead(BaseModel):
    challan_product_id: Optional[int] = None
    product_name: str
    cartons_received: float

    model_config = ConfigDict(from_attributes=True)


class DamagedStockRead(BaseModel):
    id: int
    reference_number: str
    product_name: Optional[str] = None
    material_name: str
    received_qty: float
    damaged_qty: float
    status: models.DamagedStockStatusEnum
    entered_by: Optional[str] = None
    remarks: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ReceiptEffectRead(BaseModel):
    id: int
    effect_type: models.ReceiptEffectTypeEnum
    payload_json: dict
    status: models.ReceiptEffectStatusEnum
    attempt_count: int
    next_attempt_at: Optional[datetime] = None
    last_error: Optional[str] = None
    applied_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ReceiptRead(BaseModel):
    id: int
    grn_number: str
    source_type: models.ReceiptSourceTypeEnum
    source_id: int
    purchase_order_id: Optional[int] = None
    delivery_challan_id: Optional[int] = None
    reference_number: str
    supplier_name: Optional[str] = None
    status: models.ReceiptStatusEnum
    received_by: str
    date_received: date
    reference_type: Optional[str] = None
    invoice_no: Optional[str] = None
    invoice_date: Optional[date] = None
    dc_no: Optional[str] = None
    dc_date: Optional[date] = None
    remarks: Optional[str] = None
    is_locked: bool
    lock_note: Optional[str] = None
    product_name: Optional[str] = None
    cartons_sent: Optional[float] = None
    cartons_returned: Optional[float] = None
    carton_balance: Optional[float] = None
    created_at: datetime
    lines: List[ReceiptLineRead] = Field(default_factory=list)
    product_cartons: List[ProductCartonsRead] = Field(default_factory=list)
    damaged_stock: List[DamagedStockRead] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class OrderLinePendingRead(BaseModel):
    line_id: int
    material_id: int
    material_name: Optional[str] = None
    ordered_quantity: float
    extra_allowed_qty: float
    previously_received: float
    previously_extra_received: float
    pending_quantity: float
    pending_extra_quantity: float

    model_config = ConfigDict(from_attributes=True)


class ProductPendingRead(BaseModel):
    product_id: int
    product_name: str
    cartons_sent: float
    total_received: float
    pending_qty: float

    model_config = ConfigDict(from_attributes=True)


class PendingQuantitiesRead(BaseModel):
    source_type: models.ReceiptSourceTypeEnum
    source_id: int
    lines: List[OrderLinePendingRead] = Field(default_factory=list)
    products: List[ProductPendingRead] = Field(default_factory=list)
    pending_cartons: Optional[float] = None


class SourceCheckRead(BaseModel):
    source_type: models.ReceiptSourceTypeEnum
    source_id: int
    source_status: SourceStatusEnum
    allowed: bool
    reason: Optional[str] = None
    latest_receipt_id: Optional[int] = None
    latest_receipt_status: Optional[models.ReceiptStatusEnum] = None


class SupplierPricePoint(BaseModel):
    goods_receipt_id: int
    grn_number: str
    date_received: date
    unit_price: float
    price_difference_pct: float = 0.0


class SupplierPricesRead(BaseModel):
    supplier_name: str
    latest_unit_price: float
    average_unit_price: float
    prices: List[SupplierPricePoint] = Field(default_factory=list)


class SupplierPriceComparisonRead(BaseModel):
    material_id: int
    material_name: str
    suppliers: List[SupplierPricesRead] = Field(default_factory=list)
