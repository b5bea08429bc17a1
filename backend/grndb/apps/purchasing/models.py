from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Enum as SAEnum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from grndb.database import Base
from grndb.apps.stock.models import UnitTypeEnum


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SourceStatusEnum(str, enum.Enum):
    PENDING = "PENDING"
    ORDERED = "ORDERED"
    PARTIAL = "PARTIAL"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class PurchaseOrder(Base):
    __tablename__ = "purchase_orders"

    id = Column(Integer, primary_key=True, index=True)
    po_number = Column(String(64), nullable=False, unique=True, index=True)
    supplier_name = Column(String(255), nullable=False)
    status = Column(
        SAEnum(SourceStatusEnum, name="source_status_enum", native_enum=False),
        nullable=False,
        default=SourceStatusEnum.PENDING,
        index=True,
    )
    order_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    lines = relationship(
        "PurchaseOrderLine",
        back_populates="purchase_order",
        order_by="PurchaseOrderLine.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class PurchaseOrderLine(Base):
    __tablename__ = "purchase_order_lines"
    __table_args__ = (Index("ix_purchase_order_lines_po_material", "purchase_order_id", "material_id"),)

    id = Column(Integer, primary_key=True, index=True)
    purchase_order_id = Column(Integer, ForeignKey("purchase_orders.id", ondelete="CASCADE"), nullable=False)
    material_id = Column(Integer, ForeignKey("materials.id", ondelete="RESTRICT"), nullable=False, index=True)
    quantity = Column(Float, nullable=False)
    extra_allowed_qty = Column(Float, nullable=False, default=0.0)
    rate = Column(Float, nullable=False, default=0.0)
    line_total = Column(Float, nullable=False, default=0.0)
    received_qty = Column(Float, nullable=False, default=0.0)
    extra_received_qty = Column(Float, nullable=False, default=0.0)
    balance_qty = Column(Float, nullable=False, default=0.0)

    purchase_order = relationship("PurchaseOrder", back_populates="lines")
    material = relationship("Material", lazy="joined")


class DeliveryChallan(Base):
    """Materials sent out for job-work; goods come back as finished cartons."""

    __tablename__ = "delivery_challans"

    id = Column(Integer, primary_key=True, index=True)
    dc_no = Column(String(64), nullable=False, unique=True, index=True)
    unit_type = Column(
        SAEnum(UnitTypeEnum, name="unit_type_enum", native_enum=False),
        nullable=False,
        default=UnitTypeEnum.JOBBER,
    )
    supplier_name = Column(String(255), nullable=True)
    person_name = Column(String(255), nullable=True)
    status = Column(
        SAEnum(SourceStatusEnum, name="source_status_enum", native_enum=False),
        nullable=False,
        default=SourceStatusEnum.PENDING,
        index=True,
    )
    dc_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    products = relationship(
        "ChallanProduct",
        back_populates="challan",
        order_by="ChallanProduct.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def cartons_sent(self) -> float:
        return sum((product.carton_qty or 0.0) for product in self.products)

    @property
    def counterparty(self) -> str:
        return self.supplier_name or self.person_name or ""


class ChallanProduct(Base):
    __tablename__ = "challan_products"
    __table_args__ = (Index("ix_challan_products_challan", "challan_id", "position"),)

    id = Column(Integer, primary_key=True, index=True)
    challan_id = Column(Integer, ForeignKey("delivery_challans.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    product_name = Column(String(255), nullable=False)
    carton_qty = Column(Float, nullable=False)

    challan = relationship("DeliveryChallan", back_populates="products")
    materials = relationship(
        "ChallanMaterial",
        back_populates="product",
        order_by="ChallanMaterial.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class ChallanMaterial(Base):
    __tablename__ = "challan_materials"
    __table_args__ = (Index("ix_challan_materials_product", "product_id"),)

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("challan_products.id", ondelete="CASCADE"), nullable=False)
    material_name = Column(String(255), nullable=False)
    qty_per_carton = Column(Float, nullable=False, default=0.0)
    total_qty = Column(Float, nullable=False)
    received_qty = Column(Float, nullable=False, default=0.0)
    balance_qty = Column(Float, nullable=False, default=0.0)

    product = relationship("ChallanProduct", back_populates="materials")
