"""
Write receipt totals back onto purchase orders and delivery challans.

Totals are always recomputed from every receipt against the source, never
incremented, so re-running a sync is harmless.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from grndb.apps.audit import services as audit_services
from grndb.apps.purchasing import models as purchasing_models
from grndb.errors import ValidationError

from . import models, pending

logger = logging.getLogger(__name__)

COMPLETION_LOCK_NOTE = "Auto-locked due to completion of latest GRN"
CANCELLATION_LOCK_NOTE = "Locked because the source document was cancelled"

SourceStatus = purchasing_models.SourceStatusEnum


def _lock(receipts: Iterable[models.GoodsReceipt], *, note: str, keep_id: Optional[int] = None) -> int:
    locked = 0
    for receipt in receipts:
        if receipt.id == keep_id or receipt.is_locked:
            continue
        receipt.is_locked = True
        receipt.lock_note = note
        locked += 1
    return locked


def _set_status(db: Session, source, new_status: SourceStatus, *, entity_type: str, actor: Optional[str]) -> bool:
    old_status = source.status
    if old_status == new_status:
        return False
    source.status = new_status
    audit_services.log_event(
        db,
        actor=actor,
        entity_type=entity_type,
        entity_id=str(source.id),
        action="status_change",
        before={"status": old_status.value if old_status else None},
        after={"status": new_status.value},
    )
    return True


def sync_purchase_order(
    db: Session,
    order: purchasing_models.PurchaseOrder,
    *,
    current_receipt_id: Optional[int] = None,
    actor: Optional[str] = None,
) -> SourceStatus:
    totals = pending.received_by_material(db, purchase_order_id=order.id)
    anything_received = False
    for line in order.lines:
        received, extra = totals.get(line.material_id, (0.0, 0.0))
        line.received_qty = received
        line.extra_received_qty = extra
        line.balance_qty = line.quantity - received
        anything_received = anything_received or received > 0 or extra > 0

    if order.status == SourceStatus.CANCELLED:
        return order.status

    # order-based sources complete on exact equality only
    if order.lines and all(line.received_qty == line.quantity for line in order.lines):
        new_status = SourceStatus.COMPLETED
    elif anything_received:
        new_status = SourceStatus.PARTIAL
    else:
        new_status = order.status

    became_complete = new_status == SourceStatus.COMPLETED and order.status != SourceStatus.COMPLETED
    _set_status(db, order, new_status, entity_type="purchase_order", actor=actor)
    if became_complete:
        locked = _lock(
            pending.source_receipts(db, purchase_order_id=order.id),
            note=COMPLETION_LOCK_NOTE,
            keep_id=current_receipt_id,
        )
        logger.info(
            "Purchase order completed",
            extra={"purchase_order_id": order.id, "locked_receipts": locked},
        )
    db.flush()
    return order.status


def sync_delivery_challan(
    db: Session,
    challan: purchasing_models.DeliveryChallan,
    *,
    current_receipt_id: Optional[int] = None,
    actor: Optional[str] = None,
) -> SourceStatus:
    consumed = pending.challan_material_received(db, delivery_challan_id=challan.id)
    for product in challan.products:
        for material in product.materials:
            used = consumed.get((product.id, material.material_name), 0.0)
            material.received_qty = pending.round3(used)
            material.balance_qty = pending.round3(material.total_qty - used)

    if challan.status == SourceStatus.CANCELLED:
        return challan.status

    summary = pending.challan_pending(db, challan)
    if summary.cartons_returned > 0 and pending.within_tolerance(summary.cartons_returned, summary.cartons_sent):
        new_status = SourceStatus.COMPLETED
    elif summary.cartons_returned > 0:
        new_status = SourceStatus.PARTIAL
    else:
        new_status = challan.status

    became_complete = new_status == SourceStatus.COMPLETED and challan.status != SourceStatus.COMPLETED
    _set_status(db, challan, new_status, entity_type="delivery_challan", actor=actor)
    if became_complete:
        locked = _lock(
            pending.source_receipts(db, delivery_challan_id=challan.id),
            note=COMPLETION_LOCK_NOTE,
            keep_id=current_receipt_id,
        )
        logger.info(
            "Delivery challan completed",
            extra={"delivery_challan_id": challan.id, "locked_receipts": locked},
        )
    db.flush()
    return challan.status


def synchronize(db: Session, receipt: models.GoodsReceipt, *, actor: Optional[str] = None) -> SourceStatus:
    if receipt.source_type == models.ReceiptSourceTypeEnum.JOB_WORK:
        return sync_delivery_challan(db, receipt.delivery_challan, current_receipt_id=receipt.id, actor=actor)
    return sync_purchase_order(db, receipt.purchase_order, current_receipt_id=receipt.id, actor=actor)


# ---------------------------------------------------------------------------
# Cancel / reopen
# ---------------------------------------------------------------------------

def _cancel(db: Session, source, *, entity_type: str, receipts, actor: Optional[str]):
    if source.status == SourceStatus.COMPLETED:
        raise ValidationError(f"Cannot cancel a completed {entity_type.replace('_', ' ')}.")
    if source.status == SourceStatus.CANCELLED:
        return source
    _set_status(db, source, SourceStatus.CANCELLED, entity_type=entity_type, actor=actor)
    _lock(receipts, note=CANCELLATION_LOCK_NOTE)
    db.flush()
    return source


def cancel_purchase_order(
    db: Session,
    order: purchasing_models.PurchaseOrder,
    *,
    actor: Optional[str] = None,
) -> purchasing_models.PurchaseOrder:
    return _cancel(
        db,
        order,
        entity_type="purchase_order",
        receipts=pending.source_receipts(db, purchase_order_id=order.id),
        actor=actor,
    )


def cancel_delivery_challan(
    db: Session,
    challan: purchasing_models.DeliveryChallan,
    *,
    actor: Optional[str] = None,
) -> purchasing_models.DeliveryChallan:
    return _cancel(
        db,
        challan,
        entity_type="delivery_challan",
        receipts=pending.source_receipts(db, delivery_challan_id=challan.id),
        actor=actor,
    )


def reopen_purchase_order(
    db: Session,
    order: purchasing_models.PurchaseOrder,
    *,
    actor: Optional[str] = None,
) -> purchasing_models.PurchaseOrder:
    """Re-order a cancelled purchase order and release the receipts its cancellation locked."""
    if order.status != SourceStatus.CANCELLED:
        raise ValidationError("Only cancelled purchase orders can be reopened.")
    _set_status(db, order, SourceStatus.ORDERED, entity_type="purchase_order", actor=actor)
    for receipt in pending.source_receipts(db, purchase_order_id=order.id):
        if receipt.is_locked and receipt.lock_note == CANCELLATION_LOCK_NOTE:
            receipt.is_locked = False
            receipt.lock_note = None
    db.flush()
    sync_purchase_order(db, order, actor=actor)
    return order
