from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    DateTime,
    Enum as SAEnum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from grndb.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MaterialKindEnum(str, enum.Enum):
    RAW = "RAW"
    PACKING = "PACKING"


class PriceHistoryEntryEnum(str, enum.Enum):
    INITIAL_STOCK = "INITIAL_STOCK"
    RECEIPT_EVENT = "RECEIPT_EVENT"
    AVERAGE_PRICE = "AVERAGE_PRICE"


class StockUnitEnum(str, enum.Enum):
    CARTONS = "CARTONS"
    PIECES = "PIECES"


class StockHistoryActionEnum(str, enum.Enum):
    ADD = "ADD"
    TRANSFER = "TRANSFER"
    DEDUCT = "DEDUCT"
    ADJUST = "ADJUST"


class UnitTypeEnum(str, enum.Enum):
    OWN_UNIT = "OWN_UNIT"
    JOBBER = "JOBBER"


class Material(Base):
    """Raw or packing material with running quantity and weighted-average unit cost."""

    __tablename__ = "materials"
    __table_args__ = (
        UniqueConstraint("kind", "name", name="uq_materials_kind_name"),
        Index("ix_materials_kind_name", "kind", "name"),
    )

    id = Column(Integer, primary_key=True, index=True)
    kind = Column(
        SAEnum(MaterialKindEnum, name="material_kind_enum", native_enum=False),
        nullable=False,
        index=True,
    )
    item_code = Column(String(64), nullable=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    uom = Column(String(16), nullable=False, default="PCS")
    quantity = Column(Float, nullable=False, default=0.0)
    per_unit_price = Column(Float, nullable=False, default=0.0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    price_history = relationship(
        "MaterialPriceHistory",
        back_populates="material",
        order_by="MaterialPriceHistory.sequence",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class MaterialPriceHistory(Base):
    __tablename__ = "material_price_history"
    __table_args__ = (
        UniqueConstraint("material_id", "sequence", name="uq_material_price_history_seq"),
        Index("ix_material_price_history_material", "material_id", "sequence"),
    )

    id = Column(Integer, primary_key=True, index=True)
    material_id = Column(Integer, ForeignKey("materials.id", ondelete="CASCADE"), nullable=False)
    sequence = Column(Integer, nullable=False)
    entry_type = Column(
        SAEnum(PriceHistoryEntryEnum, name="price_history_entry_enum", native_enum=False),
        nullable=False,
        index=True,
    )
    occurred_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    supplier_name = Column(String(255), nullable=True)
    reference_number = Column(String(64), nullable=True)
    receipt_number = Column(String(64), nullable=True)
    quantity = Column(Float, nullable=False, default=0.0)
    unit_price = Column(Float, nullable=False, default=0.0)
    total_value = Column(Float, nullable=False, default=0.0)

    material = relationship("Material", back_populates="price_history")


class ProductCartonMapping(Base):
    __tablename__ = "product_carton_mappings"

    id = Column(Integer, primary_key=True, index=True)
    product_name = Column(String(255), nullable=False, unique=True, index=True)
    units_per_carton = Column(Integer, nullable=False, default=1)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)


class FinishedGoodStock(Base):
    """
    Finished goods held as whole cartons, loose pieces and pieces from
    broken cartons. total_available is always expressed in pieces.
    """

    __tablename__ = "finished_good_stock"

    id = Column(Integer, primary_key=True, index=True)
    product_name = Column(String(255), nullable=False, unique=True, index=True)
    item_code = Column(String(32), nullable=False, unique=True, index=True)
    units_per_carton = Column(Integer, nullable=False, default=1)
    available_cartons = Column(Float, nullable=False, default=0.0)
    available_pieces = Column(Float, nullable=False, default=0.0)
    broken_carton_pieces = Column(Float, nullable=False, default=0.0)
    total_available = Column(Float, nullable=False, default=0.0)
    own_unit_stock = Column(Float, nullable=False, default=0.0)
    jobber_stock = Column(Float, nullable=False, default=0.0)
    last_updated_from = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    history = relationship(
        "FinishedGoodStockHistory",
        back_populates="stock",
        order_by="FinishedGoodStockHistory.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class FinishedGoodStockHistory(Base):
    __tablename__ = "finished_good_stock_history"
    __table_args__ = (Index("ix_finished_good_history_stock", "stock_id", "occurred_at"),)

    id = Column(Integer, primary_key=True, index=True)
    stock_id = Column(Integer, ForeignKey("finished_good_stock.id", ondelete="CASCADE"), nullable=False)
    action = Column(
        SAEnum(StockHistoryActionEnum, name="stock_history_action_enum", native_enum=False),
        nullable=False,
    )
    unit_type = Column(
        SAEnum(UnitTypeEnum, name="unit_type_enum", native_enum=False),
        nullable=True,
    )
    unit = Column(
        SAEnum(StockUnitEnum, name="stock_unit_enum", native_enum=False),
        nullable=False,
        default=StockUnitEnum.CARTONS,
    )
    quantity = Column(Float, nullable=False)
    reference_number = Column(String(64), nullable=True)
    updated_by = Column(String(128), nullable=True)
    notes = Column(Text, nullable=True)
    occurred_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    stock = relationship("FinishedGoodStock", back_populates="history")
