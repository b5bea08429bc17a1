"""
Receipt side effects.

Accepting a receipt enqueues one outbox row per secondary effect. Rows are
applied in-line straight after the receipt is written; a handler failure is
logged and recorded on the row, never raised, and the dispatcher retries it
later with exponential backoff.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from grndb.apps.stock import models as stock_models
from grndb.apps.stock import services as stock_services
from grndb.apps.stock.refs import ref_for_line
from grndb.errors import SecondaryEffectFailure

from . import models, sync

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = int(os.getenv("RECEIPT_EFFECT_MAX_ATTEMPTS", "5"))
BASE_BACKOFF_SEC = int(os.getenv("RECEIPT_EFFECT_BACKOFF_SEC", "30"))

EffectHandler = Callable[[Session, models.GoodsReceipt, dict], None]
HANDLERS: Dict[models.ReceiptEffectTypeEnum, EffectHandler] = {}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def compute_next_attempt(now: datetime, attempt: int) -> datetime:
    backoff = BASE_BACKOFF_SEC * (2 ** max(attempt - 1, 0))
    return now + timedelta(seconds=backoff)


def handler(effect_type: models.ReceiptEffectTypeEnum):
    def register(func: EffectHandler) -> EffectHandler:
        HANDLERS[effect_type] = func
        return func

    return register


def enqueue(
    db: Session,
    receipt: models.GoodsReceipt,
    effect_type: models.ReceiptEffectTypeEnum,
    payload: Optional[dict] = None,
) -> models.ReceiptEffect:
    effect = models.ReceiptEffect(
        effect_type=effect_type,
        payload_json=payload or {},
        status=models.ReceiptEffectStatusEnum.PENDING,
        attempt_count=0,
        next_attempt_at=_utcnow(),
    )
    receipt.effects.append(effect)
    return effect


def apply_effect(db: Session, effect: models.ReceiptEffect, *, now: Optional[datetime] = None) -> bool:
    now = now or _utcnow()
    attempt = (effect.attempt_count or 0) + 1
    effect_type = models.ReceiptEffectTypeEnum(effect.effect_type)
    try:
        func = HANDLERS.get(effect_type)
        if func is None:
            raise SecondaryEffectFailure(effect_type.value, "No handler registered.")
        with db.begin_nested():
            func(db, effect.receipt, dict(effect.payload_json or {}))
            db.flush()
    except Exception as exc:  # noqa: BLE001
        failure = exc if isinstance(exc, SecondaryEffectFailure) else SecondaryEffectFailure(effect_type.value, str(exc))
        effect.status = models.ReceiptEffectStatusEnum.FAILED
        effect.last_error = failure.message[:500]
        effect.attempt_count = attempt
        effect.next_attempt_at = compute_next_attempt(now, attempt)
        if attempt >= MAX_ATTEMPTS:
            effect.status = models.ReceiptEffectStatusEnum.DEAD_LETTER
            effect.next_attempt_at = None
        logger.warning(
            "Receipt side effect failed",
            extra={
                "effect_id": effect.id,
                "effect_type": effect_type.value,
                "goods_receipt_id": effect.goods_receipt_id,
                "attempt": attempt,
                "error": effect.last_error,
            },
        )
        return False

    effect.status = models.ReceiptEffectStatusEnum.APPLIED
    effect.last_error = None
    effect.attempt_count = attempt
    effect.next_attempt_at = None
    effect.applied_at = now
    return True


def apply_pending(db: Session, receipt: models.GoodsReceipt) -> List[models.ReceiptEffect]:
    """Apply this receipt's PENDING effects in enqueue order; return the ones that failed."""
    db.flush()
    failed = []
    for effect in list(receipt.effects):
        if effect.status != models.ReceiptEffectStatusEnum.PENDING:
            continue
        if not apply_effect(db, effect):
            failed.append(effect)
    return failed


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

@handler(models.ReceiptEffectTypeEnum.STOCK_POST)
def _post_stock(db: Session, receipt: models.GoodsReceipt, payload: dict) -> None:
    stock_services.post_to_ledger(
        db,
        ref=ref_for_line(payload.get("material_id"), payload.get("material_name")),
        quantity=float(payload["quantity"]),
        unit_price=float(payload["unit_price"]),
        supplier_name=receipt.supplier_name,
        reference_number=receipt.reference_number,
        receipt_number=receipt.grn_number,
    )


@handler(models.ReceiptEffectTypeEnum.FINISHED_GOODS)
def _move_finished_goods(db: Session, receipt: models.GoodsReceipt, payload: dict) -> None:
    cartons = float(payload["cartons"])
    product_name = payload["product_name"]
    if cartons >= 0:
        stock_services.add_finished_goods(
            db,
            product_name=product_name,
            quantity=cartons,
            unit_type=stock_models.UnitTypeEnum(payload["unit_type"]),
            reference_number=receipt.grn_number,
            updated_by=receipt.received_by,
        )
    else:
        stock_services.remove_finished_goods(
            db,
            product_name=product_name,
            quantity=-cartons,
            unit_type=stock_models.UnitTypeEnum(payload["unit_type"]),
            reference_number=receipt.grn_number,
            updated_by=receipt.received_by,
            notes="Receipt edited down",
        )


@handler(models.ReceiptEffectTypeEnum.DAMAGED_STOCK)
def _record_damaged_stock(db: Session, receipt: models.GoodsReceipt, payload: dict) -> None:
    for existing in list(receipt.damaged_stock):
        if existing.status == models.DamagedStockStatusEnum.PENDING:
            receipt.damaged_stock.remove(existing)
    for record in payload.get("records", []):
        receipt.damaged_stock.append(
            models.DamagedStock(
                reference_number=receipt.reference_number,
                product_name=record.get("product_name") or receipt.product_name,
                material_name=record["material_name"],
                received_qty=float(record.get("received_qty") or 0.0),
                damaged_qty=float(record.get("damaged_qty") or 0.0),
                status=models.DamagedStockStatusEnum.PENDING,
                entered_by=receipt.received_by,
                remarks=record.get("remarks"),
            )
        )


@handler(models.ReceiptEffectTypeEnum.SOURCE_SYNC)
def _sync_source(db: Session, receipt: models.GoodsReceipt, payload: dict) -> None:
    sync.synchronize(db, receipt, actor=payload.get("actor"))
