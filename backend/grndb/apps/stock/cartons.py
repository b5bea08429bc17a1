from __future__ import annotations

from typing import Tuple

from grndb.errors import InsufficientStockError, ValidationError

from . import models


def _clamp(value: float) -> float:
    return value if value > 0 else 0.0


def recompute_total(stock: models.FinishedGoodStock) -> float:
    stock.available_cartons = _clamp(stock.available_cartons or 0.0)
    stock.available_pieces = _clamp(stock.available_pieces or 0.0)
    stock.broken_carton_pieces = _clamp(stock.broken_carton_pieces or 0.0)
    units_per_carton = stock.units_per_carton or 1
    stock.total_available = (
        stock.available_cartons * units_per_carton
        + stock.available_pieces
        + stock.broken_carton_pieces
    )
    return stock.total_available


def add(stock: models.FinishedGoodStock, cartons: float) -> models.FinishedGoodStock:
    if cartons < 0:
        raise ValidationError("Cartons to add must not be negative.")
    stock.available_cartons = (stock.available_cartons or 0.0) + cartons
    recompute_total(stock)
    return stock


def deduct(
    stock: models.FinishedGoodStock,
    unit: models.StockUnitEnum,
    quantity: float,
) -> models.FinishedGoodStock:
    """
    Remove cartons or pieces from a finished-good stock record.

    Pieces come out of broken-carton pieces first, then loose pieces, and only
    then are whole cartons broken open one at a time.
    """
    if quantity <= 0:
        raise ValidationError("Quantity to deduct must be greater than zero.")

    unit = models.StockUnitEnum(unit)
    units_per_carton = stock.units_per_carton or 1
    cartons = stock.available_cartons or 0.0
    pieces = stock.available_pieces or 0.0
    broken = stock.broken_carton_pieces or 0.0

    if unit == models.StockUnitEnum.CARTONS:
        if quantity > cartons:
            raise InsufficientStockError(
                f"Insufficient cartons for {stock.product_name}: available {cartons}, requested {quantity}."
            )
        stock.available_cartons = cartons - quantity
        recompute_total(stock)
        return stock

    total_pieces = cartons * units_per_carton + pieces + broken
    if quantity > total_pieces:
        raise InsufficientStockError(
            f"Insufficient pieces for {stock.product_name}: available {total_pieces}, requested {quantity}."
        )

    needed = quantity
    taken = min(broken, needed)
    broken -= taken
    needed -= taken

    taken = min(pieces, needed)
    pieces -= taken
    needed -= taken

    while needed > 0 and cartons >= 1:
        cartons -= 1
        broken += units_per_carton
        taken = min(broken, needed)
        broken -= taken
        needed -= taken

    if needed > 0:
        raise InsufficientStockError(
            f"Insufficient pieces for {stock.product_name}: short by {needed} after breaking cartons."
        )

    stock.available_cartons = cartons
    stock.available_pieces = pieces
    stock.broken_carton_pieces = broken
    recompute_total(stock)
    return stock


def proportional_usage(cartons_returned: float, cartons_sent: float, sent_qty: float) -> Tuple[float, float]:
    """Return (used, remaining) of `sent_qty` for a carton return."""
    if cartons_sent <= 0:
        raise ValidationError("Cartons sent must be greater than zero.")
    used = (cartons_returned / cartons_sent) * sent_qty
    return used, sent_qty - used
