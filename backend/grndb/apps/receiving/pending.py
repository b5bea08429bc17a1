"""
Outstanding quantities against purchase orders and delivery challans.

Every figure is summed over the *other* receipts for the source document, so
a receipt being edited never counts against itself.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from grndb.apps.purchasing import models as purchasing_models

from . import models

TOLERANCE = 0.001


def round3(value: float) -> float:
    return round(value or 0.0, 3)


def within_tolerance(value: float, target: float) -> bool:
    return abs((value or 0.0) - (target or 0.0)) < TOLERANCE


@dataclass
class LinePending:
    line_id: int
    material_id: int
    material_name: Optional[str]
    ordered_quantity: float
    extra_allowed_qty: float
    previously_received: float
    previously_extra_received: float

    @property
    def pending_quantity(self) -> float:
        return self.ordered_quantity - self.previously_received

    @property
    def pending_extra_quantity(self) -> float:
        return self.extra_allowed_qty - self.previously_extra_received


@dataclass
class ProductPending:
    product_id: int
    product_name: str
    cartons_sent: float
    total_received: float

    @property
    def pending_qty(self) -> float:
        return round3(self.cartons_sent - self.total_received)


@dataclass
class ChallanPending:
    cartons_sent: float
    cartons_returned: float
    products: List[ProductPending] = field(default_factory=list)

    @property
    def pending_cartons(self) -> float:
        return round3(self.cartons_sent - self.cartons_returned)


def _receipts_query(
    db: Session,
    *,
    purchase_order_id: Optional[int] = None,
    delivery_challan_id: Optional[int] = None,
    exclude_receipt_id: Optional[int] = None,
):
    query = db.query(models.GoodsReceipt)
    if purchase_order_id is not None:
        query = query.filter(models.GoodsReceipt.purchase_order_id == purchase_order_id)
    if delivery_challan_id is not None:
        query = query.filter(models.GoodsReceipt.delivery_challan_id == delivery_challan_id)
    if exclude_receipt_id is not None:
        query = query.filter(models.GoodsReceipt.id != exclude_receipt_id)
    return query


def received_by_material(
    db: Session,
    *,
    purchase_order_id: int,
    exclude_receipt_id: Optional[int] = None,
) -> Dict[int, Tuple[float, float]]:
    """material_id -> (received, extra received) across receipts for the order."""
    query = (
        db.query(
            models.GoodsReceiptLine.material_id,
            func.coalesce(func.sum(models.GoodsReceiptLine.received_quantity), 0.0),
            func.coalesce(func.sum(models.GoodsReceiptLine.extra_received_qty), 0.0),
        )
        .join(models.GoodsReceipt, models.GoodsReceipt.id == models.GoodsReceiptLine.goods_receipt_id)
        .filter(models.GoodsReceipt.purchase_order_id == purchase_order_id)
    )
    if exclude_receipt_id is not None:
        query = query.filter(models.GoodsReceipt.id != exclude_receipt_id)
    rows = query.group_by(models.GoodsReceiptLine.material_id).all()
    return {material_id: (float(received), float(extra)) for material_id, received, extra in rows}


def order_pending(
    db: Session,
    order: purchasing_models.PurchaseOrder,
    *,
    exclude_receipt_id: Optional[int] = None,
) -> Dict[int, LinePending]:
    """Pending figures keyed by purchase order line id."""
    totals = received_by_material(db, purchase_order_id=order.id, exclude_receipt_id=exclude_receipt_id)
    result: Dict[int, LinePending] = {}
    for line in order.lines:
        received, extra = totals.get(line.material_id, (0.0, 0.0))
        result[line.id] = LinePending(
            line_id=line.id,
            material_id=line.material_id,
            material_name=line.material.name if line.material else None,
            ordered_quantity=line.quantity,
            extra_allowed_qty=line.extra_allowed_qty or 0.0,
            previously_received=received,
            previously_extra_received=extra,
        )
    return result


def _product_share(receipt: models.GoodsReceipt, product: purchasing_models.ChallanProduct, cartons_sent: float) -> float:
    for record in receipt.product_cartons:
        if record.challan_product_id == product.id:
            return record.cartons_received or 0.0
    if receipt.product_cartons or cartons_sent <= 0:
        return 0.0
    # no per-product split recorded: distribute by each product's share of cartons sent
    return (receipt.cartons_returned or 0.0) * (product.carton_qty / cartons_sent)


def challan_pending(
    db: Session,
    challan: purchasing_models.DeliveryChallan,
    *,
    exclude_receipt_id: Optional[int] = None,
) -> ChallanPending:
    receipts = _receipts_query(
        db,
        delivery_challan_id=challan.id,
        exclude_receipt_id=exclude_receipt_id,
    ).all()
    cartons_sent = challan.cartons_sent
    returned = round3(sum((receipt.cartons_returned or 0.0) for receipt in receipts))

    products = []
    for product in challan.products:
        received = sum(_product_share(receipt, product, cartons_sent) for receipt in receipts)
        products.append(
            ProductPending(
                product_id=product.id,
                product_name=product.product_name,
                cartons_sent=product.carton_qty,
                total_received=round3(received),
            )
        )
    return ChallanPending(cartons_sent=cartons_sent, cartons_returned=returned, products=products)


def challan_material_received(
    db: Session,
    *,
    delivery_challan_id: int,
    exclude_receipt_id: Optional[int] = None,
) -> Dict[Tuple[Optional[int], str], float]:
    """(challan product id, material name) -> quantity consumed across receipts."""
    query = (
        db.query(
            models.GoodsReceiptLine.challan_product_id,
            models.GoodsReceiptLine.material_name,
            func.coalesce(func.sum(models.GoodsReceiptLine.received_quantity), 0.0),
        )
        .join(models.GoodsReceipt, models.GoodsReceipt.id == models.GoodsReceiptLine.goods_receipt_id)
        .filter(models.GoodsReceipt.delivery_challan_id == delivery_challan_id)
    )
    if exclude_receipt_id is not None:
        query = query.filter(models.GoodsReceipt.id != exclude_receipt_id)
    rows = query.group_by(
        models.GoodsReceiptLine.challan_product_id,
        models.GoodsReceiptLine.material_name,
    ).all()
    totals: Dict[Tuple[Optional[int], str], float] = defaultdict(float)
    for product_id, material_name, used in rows:
        totals[(product_id, material_name)] += float(used)
    return dict(totals)


def latest_receipt(
    db: Session,
    *,
    purchase_order_id: Optional[int] = None,
    delivery_challan_id: Optional[int] = None,
) -> Optional[models.GoodsReceipt]:
    return (
        _receipts_query(db, purchase_order_id=purchase_order_id, delivery_challan_id=delivery_challan_id)
        .order_by(models.GoodsReceipt.created_at.desc(), models.GoodsReceipt.id.desc())
        .first()
    )


def source_receipts(
    db: Session,
    *,
    purchase_order_id: Optional[int] = None,
    delivery_challan_id: Optional[int] = None,
) -> List[models.GoodsReceipt]:
    return (
        _receipts_query(db, purchase_order_id=purchase_order_id, delivery_challan_id=delivery_challan_id)
        .order_by(models.GoodsReceipt.id.asc())
        .all()
    )
