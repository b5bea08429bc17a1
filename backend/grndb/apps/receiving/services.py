from __future__ import annotations

import hashlib
import json
import logging
from datetime import date, datetime, timezone
from typing import Dict, List, Optional, Tuple

from fastapi import HTTPException
from fastapi import status as http_status
from sqlalchemy.orm import Session

from grndb.apps.audit import services as audit_services
from grndb.apps.purchasing import models as purchasing_models
from grndb.apps.stock import cartons
from grndb.apps.stock import services as stock_services
from grndb.errors import NotFoundError, ValidationError
from grndb.utils.identifiers import next_sequential_code, yearly_prefix

from . import effects, models, pending, schemas, status

logger = logging.getLogger(__name__)

GRN_PREFIX = "GRN"
IDEMPOTENCY_SCOPE = "goods-receipt"
SourceStatus = purchasing_models.SourceStatusEnum
TOLERANCE = pending.TOLERANCE


def next_grn_number(db: Session, *, year: Optional[int] = None) -> str:
    year = year or datetime.now(timezone.utc).year
    prefix = yearly_prefix(GRN_PREFIX, year)
    numbers = (
        db.query(models.GoodsReceipt.grn_number)
        .filter(models.GoodsReceipt.grn_number.like(f"{prefix}%"))
        .all()
    )
    return next_sequential_code((number for (number,) in numbers), prefix=prefix, width=3)


# ---------------------------------------------------------------------------
# Source lookups
# ---------------------------------------------------------------------------

def _get_purchase_order(db: Session, purchase_order_id: int, *, lock: bool = False) -> purchasing_models.PurchaseOrder:
    query = db.query(purchasing_models.PurchaseOrder).filter(purchasing_models.PurchaseOrder.id == purchase_order_id)
    if lock:
        # serialises receipts per order; ignored by SQLite
        query = query.with_for_update()
    order = query.first()
    if not order:
        raise NotFoundError(f"Purchase order {purchase_order_id} not found.")
    return order


def _get_delivery_challan(db: Session, challan_id: int, *, lock: bool = False) -> purchasing_models.DeliveryChallan:
    query = db.query(purchasing_models.DeliveryChallan).filter(purchasing_models.DeliveryChallan.id == challan_id)
    if lock:
        query = query.with_for_update()
    challan = query.first()
    if not challan:
        raise NotFoundError(f"Delivery challan {challan_id} not found.")
    return challan


def _get_source(db: Session, source_type: models.ReceiptSourceTypeEnum, source_id: int, *, lock: bool = False):
    if source_type == models.ReceiptSourceTypeEnum.JOB_WORK:
        return _get_delivery_challan(db, source_id, lock=lock)
    return _get_purchase_order(db, source_id, lock=lock)


def _latest_for(db: Session, source_type: models.ReceiptSourceTypeEnum, source_id: int) -> Optional[models.GoodsReceipt]:
    if source_type == models.ReceiptSourceTypeEnum.JOB_WORK:
        return pending.latest_receipt(db, delivery_challan_id=source_id)
    return pending.latest_receipt(db, purchase_order_id=source_id)


def _blocking_reason(source, latest: Optional[models.GoodsReceipt]) -> Optional[str]:
    if source.status == SourceStatus.CANCELLED:
        return "Source document is cancelled; receipts cannot be recorded against it."
    if source.status == SourceStatus.COMPLETED:
        return "Source document is already completed; no further receipts are allowed."
    if latest is not None and latest.status == models.ReceiptStatusEnum.COMPLETED:
        return "The latest receipt for this source is completed; no further receipts are allowed."
    return None


def check_source_for_receipt(
    db: Session,
    *,
    source_type: models.ReceiptSourceTypeEnum,
    source_id: int,
) -> schemas.SourceCheckRead:
    source = _get_source(db, source_type, source_id)
    latest = _latest_for(db, source_type, source_id)
    reason = _blocking_reason(source, latest)
    return schemas.SourceCheckRead(
        source_type=source_type,
        source_id=source_id,
        source_status=source.status,
        allowed=reason is None,
        reason=reason,
        latest_receipt_id=latest.id if latest else None,
        latest_receipt_status=latest.status if latest else None,
    )


def get_pending_quantities(
    db: Session,
    *,
    source_type: models.ReceiptSourceTypeEnum,
    source_id: int,
) -> schemas.PendingQuantitiesRead:
    source = _get_source(db, source_type, source_id)
    if source_type == models.ReceiptSourceTypeEnum.JOB_WORK:
        summary = pending.challan_pending(db, source)
        return schemas.PendingQuantitiesRead(
            source_type=source_type,
            source_id=source_id,
            products=[schemas.ProductPendingRead.model_validate(p) for p in summary.products],
            pending_cartons=summary.pending_cartons,
        )
    figures = pending.order_pending(db, source)
    return schemas.PendingQuantitiesRead(
        source_type=source_type,
        source_id=source_id,
        lines=[schemas.OrderLinePendingRead.model_validate(figures[line.id]) for line in source.lines],
    )


# ---------------------------------------------------------------------------
# Line building
# ---------------------------------------------------------------------------

def _last_unit_price(db: Session, *, material_id: int, exclude_receipt_id: Optional[int]) -> Optional[float]:
    query = (
        db.query(models.GoodsReceiptLine.unit_price)
        .join(models.GoodsReceipt, models.GoodsReceipt.id == models.GoodsReceiptLine.goods_receipt_id)
        .filter(models.GoodsReceiptLine.material_id == material_id)
    )
    if exclude_receipt_id is not None:
        query = query.filter(models.GoodsReceipt.id != exclude_receipt_id)
    row = query.order_by(models.GoodsReceipt.created_at.desc(), models.GoodsReceiptLine.id.desc()).first()
    return row[0] if row else None


def _order_lines(
    db: Session,
    order: purchasing_models.PurchaseOrder,
    items: List[schemas.ReceiptLineIn],
    *,
    exclude_receipt_id: Optional[int] = None,
) -> Tuple[List[models.GoodsReceiptLine], models.ReceiptStatusEnum]:
    if not items:
        raise ValidationError("At least one item is required.")

    by_material = {line.material_id: line for line in order.lines}
    figures = pending.order_pending(db, order, exclude_receipt_id=exclude_receipt_id)
    received_now: Dict[int, Tuple[float, float]] = {}
    lines: List[models.GoodsReceiptLine] = []

    for item in items:
        order_line = by_material.get(item.material_id)
        if order_line is None:
            raise ValidationError(f"Item not found in Purchase Order: material {item.material_id}.")
        if order_line.id in received_now:
            raise ValidationError(f"Material {item.material_id} appears more than once on the receipt.")

        figure = figures[order_line.id]
        label = figure.material_name or f"material {item.material_id}"
        received = item.received_quantity
        extra = item.extra_received_qty
        if received > figure.pending_quantity + TOLERANCE:
            raise ValidationError(
                f"Received quantity {received} for {label} exceeds pending quantity "
                f"{pending.round3(figure.pending_quantity)}."
            )
        if extra > figure.pending_extra_quantity + TOLERANCE:
            raise ValidationError(
                f"Extra received quantity {extra} for {label} exceeds pending extra quantity "
                f"{pending.round3(figure.pending_extra_quantity)}."
            )
        if item.damaged_quantity > received + extra + TOLERANCE:
            raise ValidationError(
                f"Damaged quantity {item.damaged_quantity} for {label} cannot exceed received quantity {received + extra}."
            )

        unit_price = item.unit_price if item.unit_price else (order_line.rate or 0.0)
        last_price = _last_unit_price(db, material_id=item.material_id, exclude_receipt_id=exclude_receipt_id)
        difference = unit_price - last_price if last_price is not None else 0.0
        difference_pct = (difference / last_price * 100.0) if last_price else 0.0
        previous = figure.previously_received

        lines.append(
            models.GoodsReceiptLine(
                material_id=item.material_id,
                ordered_quantity=order_line.quantity,
                received_quantity=received,
                extra_received_qty=extra,
                damaged_quantity=item.damaged_quantity,
                unit_price=unit_price,
                total_price=(received + extra) * unit_price,
                last_unit_price=last_price,
                price_difference=difference,
                price_difference_pct=difference_pct,
                previous_received=previous,
                previous_extra_received=figure.previously_extra_received,
                total_received=previous + received,
                balance_quantity=order_line.quantity - (previous + received),
                remarks=item.remarks,
            )
        )
        received_now[order_line.id] = (received, extra)

    normal_matched = all(
        pending.within_tolerance(
            figures[line.id].previously_received + received_now.get(line.id, (0.0, 0.0))[0],
            line.quantity,
        )
        for line in order.lines
    )
    extra_matched = all(
        pending.within_tolerance(
            figures[line.id].previously_extra_received + received_now.get(line.id, (0.0, 0.0))[1],
            line.extra_allowed_qty or 0.0,
        )
        for line in order.lines
    )
    return lines, status.classify(normal_matched, extra_matched)


def _challan_lines(
    db: Session,
    challan: purchasing_models.DeliveryChallan,
    details: schemas.ReceiptDetails,
    *,
    cartons_returned: Optional[float],
    exclude_receipt_id: Optional[int] = None,
):
    if cartons_returned is None:
        raise ValidationError("cartons_returned is required for job-work receipts.")
    if cartons_returned <= 0:
        raise ValidationError("Cartons returned must be greater than zero.")
    cartons_sent = challan.cartons_sent
    if cartons_sent <= 0:
        raise ValidationError(f"Delivery challan {challan.dc_no} has no cartons sent.")

    figures = pending.challan_pending(db, challan, exclude_receipt_id=exclude_receipt_id)
    if cartons_returned > figures.pending_cartons + TOLERANCE:
        raise ValidationError(
            f"Cartons returned {cartons_returned} exceed pending cartons {figures.pending_cartons}."
        )

    products = list(challan.products)
    if details.product_cartons_received is not None:
        split = [float(value) for value in details.product_cartons_received]
        if len(split) != len(products):
            raise ValidationError(
                f"product_cartons_received needs {len(products)} values, one per challan product."
            )
        for product, figure, value in zip(products, figures.products, split):
            if value < 0:
                raise ValidationError(f"Cartons received for {product.product_name} must not be negative.")
            if value > figure.pending_qty + TOLERANCE:
                raise ValidationError(
                    f"Cartons received {value} for {product.product_name} exceed pending cartons {figure.pending_qty}."
                )
        if not pending.within_tolerance(sum(split), cartons_returned):
            raise ValidationError("Per-product cartons received must add up to cartons returned.")
    else:
        split = [cartons_returned * (product.carton_qty / cartons_sent) for product in products]

    for record in details.damaged_stock:
        if record.damaged_qty > record.received_qty + TOLERANCE:
            raise ValidationError(
                f"Damaged quantity {record.damaged_qty} for {record.material_name} cannot exceed "
                f"received quantity {record.received_qty}."
            )

    consumed = pending.challan_material_received(
        db,
        delivery_challan_id=challan.id,
        exclude_receipt_id=exclude_receipt_id,
    )
    lines: List[models.GoodsReceiptLine] = []
    records: List[models.GoodsReceiptProductCartons] = []
    for product, product_cartons in zip(products, split):
        records.append(
            models.GoodsReceiptProductCartons(
                challan_product_id=product.id,
                product_name=product.product_name,
                cartons_received=pending.round3(product_cartons),
            )
        )
        for material in product.materials:
            used, remaining = cartons.proportional_usage(product_cartons, product.carton_qty, material.total_qty)
            used = pending.round3(used)
            previous = consumed.get((product.id, material.material_name), 0.0)
            lines.append(
                models.GoodsReceiptLine(
                    material_name=material.material_name,
                    challan_product_id=product.id,
                    ordered_quantity=material.total_qty,
                    received_quantity=used,
                    extra_received_qty=0.0,
                    damaged_quantity=0.0,
                    unit_price=0.0,
                    total_price=0.0,
                    price_difference=0.0,
                    price_difference_pct=0.0,
                    previous_received=previous,
                    previous_extra_received=0.0,
                    total_received=previous + used,
                    balance_quantity=pending.round3(material.total_qty - (previous + used)),
                    used_qty=used,
                    remaining_qty=pending.round3(remaining),
                )
            )

    receipt_status = status.classify_cartons(figures.pending_cartons, cartons_returned)
    summary = {
        "cartons_sent": cartons_sent,
        "cartons_returned": cartons_returned,
        "carton_balance": pending.round3(figures.pending_cartons - cartons_returned),
    }
    return lines, records, receipt_status, summary


# ---------------------------------------------------------------------------
# Effects
# ---------------------------------------------------------------------------

def _stock_totals(receipt: models.GoodsReceipt) -> Dict[int, Tuple[float, float]]:
    """material_id -> (quantity received incl. extra, unit price)."""
    return {
        line.material_id: ((line.received_quantity or 0.0) + (line.extra_received_qty or 0.0), line.unit_price or 0.0)
        for line in receipt.lines
        if line.material_id is not None
    }


def _carton_totals(receipt: models.GoodsReceipt) -> Dict[int, Tuple[str, float]]:
    return {
        record.challan_product_id: (record.product_name, record.cartons_received or 0.0)
        for record in receipt.product_cartons
    }


def _damaged_records(receipt: models.GoodsReceipt, details: schemas.ReceiptDetails) -> List[dict]:
    if receipt.source_type == models.ReceiptSourceTypeEnum.JOB_WORK:
        return [record.model_dump() for record in details.damaged_stock]
    return [
        {
            "material_name": line.material.name if line.material else str(line.material_id),
            "received_qty": (line.received_quantity or 0.0) + (line.extra_received_qty or 0.0),
            "damaged_qty": line.damaged_quantity,
            "remarks": line.remarks,
        }
        for line in receipt.lines
        if (line.damaged_quantity or 0.0) > 0
    ]


def _enqueue_effects(
    db: Session,
    receipt: models.GoodsReceipt,
    details: schemas.ReceiptDetails,
    *,
    previous_stock: Optional[Dict[int, Tuple[float, float]]] = None,
    previous_cartons: Optional[Dict[int, Tuple[str, float]]] = None,
    had_damaged: bool = False,
    actor: Optional[str] = None,
) -> None:
    previous_stock = previous_stock or {}
    previous_cartons = previous_cartons or {}

    if receipt.source_type == models.ReceiptSourceTypeEnum.PURCHASE_ORDER:
        current = _stock_totals(receipt)
        for material_id in list(current) + [m for m in previous_stock if m not in current]:
            new_qty, new_price = current.get(material_id, (0.0, None))
            old_qty, old_price = previous_stock.get(material_id, (0.0, None))
            delta = new_qty - old_qty
            if abs(delta) < 1e-9:
                continue
            effects.enqueue(
                db,
                receipt,
                models.ReceiptEffectTypeEnum.STOCK_POST,
                {
                    "material_id": material_id,
                    "quantity": delta,
                    "unit_price": new_price if new_price is not None else old_price,
                },
            )
    else:
        unit_type = receipt.delivery_challan.unit_type
        current = _carton_totals(receipt)
        for product_id in list(current) + [p for p in previous_cartons if p not in current]:
            product_name, new_cartons = current.get(product_id, (None, 0.0))
            old_name, old_cartons = previous_cartons.get(product_id, (None, 0.0))
            delta = pending.round3(new_cartons - old_cartons)
            if delta == 0:
                continue
            effects.enqueue(
                db,
                receipt,
                models.ReceiptEffectTypeEnum.FINISHED_GOODS,
                {
                    "product_name": product_name or old_name,
                    "cartons": delta,
                    "unit_type": unit_type.value,
                },
            )

    damaged = _damaged_records(receipt, details)
    if damaged or had_damaged:
        effects.enqueue(db, receipt, models.ReceiptEffectTypeEnum.DAMAGED_STOCK, {"records": damaged})

    effects.enqueue(db, receipt, models.ReceiptEffectTypeEnum.SOURCE_SYNC, {"actor": actor})


# ---------------------------------------------------------------------------
# Create / update
# ---------------------------------------------------------------------------

def _apply_document_fields(receipt: models.GoodsReceipt, details: schemas.ReceiptDetails) -> None:
    for field in ("reference_type", "invoice_no", "invoice_date", "dc_no", "dc_date", "remarks"):
        value = getattr(details, field)
        if value is not None:
            setattr(receipt, field, value)


def _receipt_snapshot(receipt: models.GoodsReceipt) -> dict:
    return {
        "status": receipt.status.value if receipt.status else None,
        "lines": len(receipt.lines),
        "cartons_returned": receipt.cartons_returned,
    }


def _payload_hash(payload: schemas.ReceiptCreate) -> str:
    data = payload.model_dump(mode="json", exclude={"idempotency_key"})
    return hashlib.sha256(json.dumps(data, sort_keys=True).encode("utf-8")).hexdigest()


def _replayed_receipt(db: Session, payload: schemas.ReceiptCreate) -> Optional[models.GoodsReceipt]:
    if not payload.idempotency_key:
        return None
    existing = (
        db.query(models.ReceiptIdempotencyKey)
        .filter(
            models.ReceiptIdempotencyKey.scope == IDEMPOTENCY_SCOPE,
            models.ReceiptIdempotencyKey.key == payload.idempotency_key,
        )
        .first()
    )
    if not existing:
        return None
    if existing.payload_hash != _payload_hash(payload):
        raise HTTPException(
            status_code=http_status.HTTP_409_CONFLICT,
            detail="Idempotency key reuse with different payload.",
        )
    logger.info(
        "Replayed goods receipt submission",
        extra={"goods_receipt_id": existing.goods_receipt_id, "idempotency_key": payload.idempotency_key},
    )
    return existing.receipt


def create_receipt(
    db: Session,
    *,
    payload: schemas.ReceiptCreate,
    actor: Optional[str] = None,
) -> models.GoodsReceipt:
    received_by = (payload.received_by or "").strip()
    if not received_by:
        raise ValidationError("received_by is required.")
    job_work = payload.source_type == models.ReceiptSourceTypeEnum.JOB_WORK
    if job_work and payload.date_received is None:
        raise ValidationError("date_received is required for job-work receipts.")

    source = _get_source(db, payload.source_type, payload.source_id, lock=True)
    replayed = _replayed_receipt(db, payload)
    if replayed is not None:
        return replayed
    reason = _blocking_reason(source, _latest_for(db, payload.source_type, payload.source_id))
    if reason:
        raise ValidationError(reason)

    receipt = models.GoodsReceipt(
        source_type=payload.source_type,
        received_by=received_by,
        date_received=payload.date_received or date.today(),
        is_locked=False,
    )
    _apply_document_fields(receipt, payload)

    if job_work:
        lines, records, receipt_status, summary = _challan_lines(
            db,
            source,
            payload,
            cartons_returned=payload.cartons_returned,
        )
        receipt.delivery_challan = source
        receipt.reference_number = source.dc_no
        receipt.supplier_name = source.counterparty
        receipt.product_name = source.products[0].product_name if source.products else None
        receipt.cartons_sent = summary["cartons_sent"]
        receipt.cartons_returned = summary["cartons_returned"]
        receipt.carton_balance = summary["carton_balance"]
        receipt.product_cartons = records
    else:
        lines, receipt_status = _order_lines(db, source, payload.lines)
        receipt.purchase_order = source
        receipt.reference_number = source.po_number
        receipt.supplier_name = source.supplier_name

    receipt.grn_number = next_grn_number(db)
    receipt.status = receipt_status
    receipt.is_locked = status.is_terminal(receipt_status)
    receipt.lines = lines
    db.add(receipt)
    db.flush()
    if payload.idempotency_key:
        db.add(
            models.ReceiptIdempotencyKey(
                scope=IDEMPOTENCY_SCOPE,
                key=payload.idempotency_key,
                payload_hash=_payload_hash(payload),
                goods_receipt_id=receipt.id,
            )
        )

    _enqueue_effects(db, receipt, payload, actor=actor)
    failed = effects.apply_pending(db, receipt)

    audit_services.log_event(
        db,
        actor=actor or received_by,
        entity_type="goods_receipt",
        entity_id=str(receipt.id),
        action="create",
        after=_receipt_snapshot(receipt),
        metadata={"grn_number": receipt.grn_number, "failed_effects": len(failed)},
    )
    logger.info(
        "Goods receipt created",
        extra={
            "goods_receipt_id": receipt.id,
            "grn_number": receipt.grn_number,
            "source_type": receipt.source_type.value,
            "status": receipt.status.value,
            "failed_effects": len(failed),
        },
    )
    return receipt


def update_receipt(
    db: Session,
    *,
    receipt_id: int,
    payload: schemas.ReceiptUpdate,
    actor: Optional[str] = None,
) -> models.GoodsReceipt:
    receipt = get_receipt(db, receipt_id=receipt_id)
    status.ensure_editable(receipt)

    source = _get_source(db, receipt.source_type, receipt.source_id, lock=True)
    if source.status == SourceStatus.CANCELLED:
        raise ValidationError("Source document is cancelled; its receipts cannot be updated.")

    before = _receipt_snapshot(receipt)
    previous_stock = _stock_totals(receipt)
    previous_cartons = _carton_totals(receipt)
    had_damaged = bool(receipt.damaged_stock)

    if receipt.source_type == models.ReceiptSourceTypeEnum.JOB_WORK:
        cartons_returned = payload.cartons_returned
        if cartons_returned is None:
            cartons_returned = receipt.cartons_returned
        lines, records, new_status, summary = _challan_lines(
            db,
            source,
            payload,
            cartons_returned=cartons_returned,
            exclude_receipt_id=receipt.id,
        )
        receipt.cartons_sent = summary["cartons_sent"]
        receipt.cartons_returned = summary["cartons_returned"]
        receipt.carton_balance = summary["carton_balance"]
        receipt.product_cartons = records
    else:
        lines, new_status = _order_lines(db, source, payload.lines, exclude_receipt_id=receipt.id)

    status.ensure_transition(receipt.status, new_status)
    if payload.received_by and payload.received_by.strip():
        receipt.received_by = payload.received_by.strip()
    if payload.date_received is not None:
        receipt.date_received = payload.date_received
    _apply_document_fields(receipt, payload)
    receipt.status = new_status
    receipt.is_locked = status.is_terminal(new_status)
    receipt.lines = lines
    db.flush()

    _enqueue_effects(
        db,
        receipt,
        payload,
        previous_stock=previous_stock,
        previous_cartons=previous_cartons,
        had_damaged=had_damaged,
        actor=actor,
    )
    failed = effects.apply_pending(db, receipt)

    audit_services.log_event(
        db,
        actor=actor or receipt.received_by,
        entity_type="goods_receipt",
        entity_id=str(receipt.id),
        action="update",
        before=before,
        after=_receipt_snapshot(receipt),
        metadata={"grn_number": receipt.grn_number, "failed_effects": len(failed)},
    )
    return receipt


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def get_receipt(db: Session, *, receipt_id: int) -> models.GoodsReceipt:
    receipt = db.query(models.GoodsReceipt).filter(models.GoodsReceipt.id == receipt_id).first()
    if not receipt:
        raise NotFoundError(f"Goods receipt {receipt_id} not found.")
    return receipt


def list_receipts(
    db: Session,
    *,
    source_type: Optional[models.ReceiptSourceTypeEnum] = None,
    source_id: Optional[int] = None,
    status_filter: Optional[models.ReceiptStatusEnum] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[models.GoodsReceipt]:
    query = db.query(models.GoodsReceipt)
    if source_type is not None:
        query = query.filter(models.GoodsReceipt.source_type == source_type)
        if source_id is not None:
            column = (
                models.GoodsReceipt.delivery_challan_id
                if source_type == models.ReceiptSourceTypeEnum.JOB_WORK
                else models.GoodsReceipt.purchase_order_id
            )
            query = query.filter(column == source_id)
    if status_filter is not None:
        query = query.filter(models.GoodsReceipt.status == status_filter)
    return (
        query.order_by(models.GoodsReceipt.created_at.desc(), models.GoodsReceipt.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def supplier_price_comparison(
    db: Session,
    *,
    material_id: int,
    limit: int = 10,
) -> schemas.SupplierPriceComparisonRead:
    """
    Unit prices paid for a material, grouped by supplier.

    Covers the `limit` most recent receipts carrying the material; receipts
    without a supplier are left out. Suppliers are ordered by their most
    recent receipt.
    """
    material = stock_services.get_material(db, material_id=material_id)
    rows = (
        db.query(models.GoodsReceipt, models.GoodsReceiptLine)
        .join(models.GoodsReceiptLine, models.GoodsReceiptLine.goods_receipt_id == models.GoodsReceipt.id)
        .filter(models.GoodsReceiptLine.material_id == material_id)
        .order_by(models.GoodsReceipt.created_at.desc(), models.GoodsReceipt.id.desc())
        .limit(limit)
        .all()
    )

    grouped: Dict[str, List[schemas.SupplierPricePoint]] = {}
    for receipt, line in rows:
        supplier_name = (receipt.supplier_name or "").strip()
        if not supplier_name:
            continue
        grouped.setdefault(supplier_name, []).append(
            schemas.SupplierPricePoint(
                goods_receipt_id=receipt.id,
                grn_number=receipt.grn_number,
                date_received=receipt.date_received,
                unit_price=line.unit_price,
                price_difference_pct=line.price_difference_pct or 0.0,
            )
        )

    suppliers = [
        schemas.SupplierPricesRead(
            supplier_name=supplier_name,
            latest_unit_price=prices[0].unit_price,
            average_unit_price=round(sum(point.unit_price for point in prices) / len(prices), 4),
            prices=prices,
        )
        for supplier_name, prices in grouped.items()
    ]
    return schemas.SupplierPriceComparisonRead(
        material_id=material.id,
        material_name=material.name,
        suppliers=suppliers,
    )
