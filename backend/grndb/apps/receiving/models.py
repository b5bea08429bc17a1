from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Enum as SAEnum,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from grndb.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReceiptSourceTypeEnum(str, enum.Enum):
    PURCHASE_ORDER = "PURCHASE_ORDER"
    JOB_WORK = "JOB_WORK"


class ReceiptStatusEnum(str, enum.Enum):
    PARTIAL = "PARTIAL"
    COMPLETED = "COMPLETED"
    NORMAL_COMPLETED = "NORMAL_COMPLETED"
    EXTRA_COMPLETED = "EXTRA_COMPLETED"


class DamagedStockStatusEnum(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ReceiptEffectTypeEnum(str, enum.Enum):
    STOCK_POST = "STOCK_POST"
    FINISHED_GOODS = "FINISHED_GOODS"
    DAMAGED_STOCK = "DAMAGED_STOCK"
    SOURCE_SYNC = "SOURCE_SYNC"


class ReceiptEffectStatusEnum(str, enum.Enum):
    PENDING = "PENDING"
    APPLIED = "APPLIED"
    FAILED = "FAILED"
    DEAD_LETTER = "DEAD_LETTER"


class GoodsReceipt(Base):
    """
    Goods receipt note (GRN) against one purchase order or one delivery challan.

    Only PARTIAL, unlocked receipts can be edited.
    """

    __tablename__ = "goods_receipts"
    __table_args__ = (
        Index("ix_goods_receipts_po", "purchase_order_id", "created_at"),
        Index("ix_goods_receipts_challan", "delivery_challan_id", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    grn_number = Column(String(32), nullable=False, unique=True, index=True)
    source_type = Column(
        SAEnum(ReceiptSourceTypeEnum, name="receipt_source_type_enum", native_enum=False),
        nullable=False,
        index=True,
    )
    purchase_order_id = Column(Integer, ForeignKey("purchase_orders.id", ondelete="RESTRICT"), nullable=True)
    delivery_challan_id = Column(Integer, ForeignKey("delivery_challans.id", ondelete="RESTRICT"), nullable=True)
    reference_number = Column(String(64), nullable=False, index=True)
    supplier_name = Column(String(255), nullable=True)
    status = Column(
        SAEnum(ReceiptStatusEnum, name="receipt_status_enum", native_enum=False),
        nullable=False,
        default=ReceiptStatusEnum.PARTIAL,
        index=True,
    )
    received_by = Column(String(128), nullable=False)
    date_received = Column(Date, nullable=False)

    reference_type = Column(String(16), nullable=True)
    invoice_no = Column(String(64), nullable=True)
    invoice_date = Column(Date, nullable=True)
    dc_no = Column(String(64), nullable=True)
    dc_date = Column(Date, nullable=True)
    remarks = Column(Text, nullable=True)

    is_locked = Column(Boolean, nullable=False, default=False, index=True)
    lock_note = Column(String(255), nullable=True)

    # job-work receipts only
    product_name = Column(String(255), nullable=True)
    cartons_sent = Column(Float, nullable=True)
    cartons_returned = Column(Float, nullable=True)
    carton_balance = Column(Float, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    purchase_order = relationship("PurchaseOrder", lazy="joined")
    delivery_challan = relationship("DeliveryChallan", lazy="joined")
    lines = relationship(
        "GoodsReceiptLine",
        back_populates="receipt",
        order_by="GoodsReceiptLine.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    product_cartons = relationship(
        "GoodsReceiptProductCartons",
        back_populates="receipt",
        order_by="GoodsReceiptProductCartons.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    damaged_stock = relationship(
        "DamagedStock",
        back_populates="receipt",
        order_by="DamagedStock.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    effects = relationship(
        "ReceiptEffect",
        back_populates="receipt",
        order_by="ReceiptEffect.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def source_id(self) -> int:
        if self.source_type == ReceiptSourceTypeEnum.JOB_WORK:
            return self.delivery_challan_id
        return self.purchase_order_id


class GoodsReceiptLine(Base):
    __tablename__ = "goods_receipt_lines"
    __table_args__ = (
        Index("ix_goods_receipt_lines_receipt", "goods_receipt_id"),
        Index("ix_goods_receipt_lines_material", "material_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    goods_receipt_id = Column(Integer, ForeignKey("goods_receipts.id", ondelete="CASCADE"), nullable=False)

    # order receipts carry material_id, job-work receipts carry material_name
    material_id = Column(Integer, ForeignKey("materials.id", ondelete="RESTRICT"), nullable=True)
    material_name = Column(String(255), nullable=True)
    challan_product_id = Column(Integer, ForeignKey("challan_products.id", ondelete="SET NULL"), nullable=True)

    ordered_quantity = Column(Float, nullable=False, default=0.0)
    received_quantity = Column(Float, nullable=False, default=0.0)
    extra_received_qty = Column(Float, nullable=False, default=0.0)
    damaged_quantity = Column(Float, nullable=False, default=0.0)
    unit_price = Column(Float, nullable=False, default=0.0)
    total_price = Column(Float, nullable=False, default=0.0)

    last_unit_price = Column(Float, nullable=True)
    price_difference = Column(Float, nullable=False, default=0.0)
    price_difference_pct = Column(Float, nullable=False, default=0.0)

    previous_received = Column(Float, nullable=False, default=0.0)
    previous_extra_received = Column(Float, nullable=False, default=0.0)
    total_received = Column(Float, nullable=False, default=0.0)
    balance_quantity = Column(Float, nullable=False, default=0.0)

    used_qty = Column(Float, nullable=True)
    remaining_qty = Column(Float, nullable=True)
    remarks = Column(Text, nullable=True)

    receipt = relationship("GoodsReceipt", back_populates="lines")
    material = relationship("Material", lazy="joined")


class GoodsReceiptProductCartons(Base):
    __tablename__ = "goods_receipt_product_cartons"
    __table_args__ = (Index("ix_goods_receipt_product_cartons_receipt", "goods_receipt_id"),)

    id = Column(Integer, primary_key=True, index=True)
    goods_receipt_id = Column(Integer, ForeignKey("goods_receipts.id", ondelete="CASCADE"), nullable=False)
    challan_product_id = Column(Integer, ForeignKey("challan_products.id", ondelete="SET NULL"), nullable=True)
    product_name = Column(String(255), nullable=False)
    cartons_received = Column(Float, nullable=False, default=0.0)

    receipt = relationship("GoodsReceipt", back_populates="product_cartons")


class DamagedStock(Base):
    __tablename__ = "damaged_stock"
    __table_args__ = (Index("ix_damaged_stock_receipt", "goods_receipt_id"),)

    id = Column(Integer, primary_key=True, index=True)
    goods_receipt_id = Column(Integer, ForeignKey("goods_receipts.id", ondelete="CASCADE"), nullable=False)
    reference_number = Column(String(64), nullable=False)
    product_name = Column(String(255), nullable=True)
    material_name = Column(String(255), nullable=False)
    received_qty = Column(Float, nullable=False, default=0.0)
    damaged_qty = Column(Float, nullable=False, default=0.0)
    status = Column(
        SAEnum(DamagedStockStatusEnum, name="damaged_stock_status_enum", native_enum=False),
        nullable=False,
        default=DamagedStockStatusEnum.PENDING,
        index=True,
    )
    entered_by = Column(String(128), nullable=True)
    remarks = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    receipt = relationship("GoodsReceipt", back_populates="damaged_stock")


class ReceiptEffect(Base):
    """
    Outbox row for a receipt side effect (ledger post, finished-goods move,
    damaged-stock record, source synchronisation).
    """

    __tablename__ = "receipt_effects"
    __table_args__ = (
        Index("ix_receipt_effects_status_next", "status", "next_attempt_at"),
        Index("ix_receipt_effects_receipt", "goods_receipt_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    goods_receipt_id = Column(Integer, ForeignKey("goods_receipts.id", ondelete="CASCADE"), nullable=False)
    effect_type = Column(
        SAEnum(ReceiptEffectTypeEnum, name="receipt_effect_type_enum", native_enum=False),
        nullable=False,
        index=True,
    )
    payload_json = Column(JSON, nullable=False, default=dict)
    status = Column(
        SAEnum(ReceiptEffectStatusEnum, name="receipt_effect_status_enum", native_enum=False),
        nullable=False,
        default=ReceiptEffectStatusEnum.PENDING,
        index=True,
    )
    attempt_count = Column(Integer, nullable=False, default=0)
    next_attempt_at = Column(DateTime(timezone=True), nullable=True)
    last_error = Column(Text, nullable=True)
    applied_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    receipt = relationship("GoodsReceipt", back_populates="effects")


class ReceiptIdempotencyKey(Base):
    """Client-supplied key for a receipt submission; a replay returns the first receipt."""

    __tablename__ = "receipt_idempotency_keys"
    __table_args__ = (UniqueConstraint("scope", "key", name="uq_receipt_idempotency_scope_key"),)

    id = Column(Integer, primary_key=True, index=True)
    scope = Column(String(64), nullable=False, index=True)
    key = Column(String(128), nullable=False)
    payload_hash = Column(String(128), nullable=False)
    goods_receipt_id = Column(Integer, ForeignKey("goods_receipts.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    receipt = relationship("GoodsReceipt", lazy="joined")
