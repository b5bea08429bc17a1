"""
Weighted-average cost ledger for raw and packing materials.

A material's price history always has the shape

    [INITIAL_STOCK] + [RECEIPT_EVENT, ...] + [AVERAGE_PRICE]

The trailing AVERAGE_PRICE entry is derived: it is dropped and rebuilt from
the INITIAL_STOCK and RECEIPT_EVENT entries on every post.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

from grndb.errors import ValidationError

from . import models

logger = logging.getLogger(__name__)

EVENT_ENTRY_TYPES = (
    models.PriceHistoryEntryEnum.INITIAL_STOCK,
    models.PriceHistoryEntryEnum.RECEIPT_EVENT,
)


def weighted_average(
    existing_qty: float,
    existing_price: float,
    added_qty: float,
    added_price: float,
) -> float:
    total = existing_qty + added_qty
    if total == 0:
        return 0.0
    return (existing_qty * existing_price + added_qty * added_price) / total


class MaterialLedger:
    def __init__(self, material: models.Material) -> None:
        self.material = material

    @property
    def entries(self) -> List[models.MaterialPriceHistory]:
        return list(self.material.price_history)

    def _next_sequence(self) -> int:
        sequences = [entry.sequence for entry in self.material.price_history if entry.sequence is not None]
        return (max(sequences) + 1) if sequences else 1

    def append_event(
        self,
        entry_type: models.PriceHistoryEntryEnum,
        *,
        quantity: float,
        unit_price: float,
        supplier_name: Optional[str] = None,
        reference_number: Optional[str] = None,
        receipt_number: Optional[str] = None,
        occurred_at: Optional[datetime] = None,
    ) -> models.MaterialPriceHistory:
        entry = models.MaterialPriceHistory(
            sequence=self._next_sequence(),
            entry_type=entry_type,
            occurred_at=occurred_at or datetime.now(timezone.utc),
            supplier_name=supplier_name,
            reference_number=reference_number,
            receipt_number=receipt_number,
            quantity=quantity,
            unit_price=unit_price,
            total_value=quantity * unit_price,
        )
        self.material.price_history.append(entry)
        return entry

    def recompute_average(self) -> float:
        """Average unit price over the initial stock and every receipt event."""
        total_qty = 0.0
        total_value = 0.0
        for entry in self.material.price_history:
            if entry.entry_type not in EVENT_ENTRY_TYPES:
                continue
            total_qty += entry.quantity or 0.0
            total_value += (entry.quantity or 0.0) * (entry.unit_price or 0.0)
        if total_qty == 0:
            return 0.0
        return total_value / total_qty

    def _refresh_average_entry(self, occurred_at: Optional[datetime]) -> models.MaterialPriceHistory:
        # sequence is taken before the stale entry is removed so the new
        # entry never collides with the row still pending deletion
        sequence = self._next_sequence()
        for entry in list(self.material.price_history):
            if entry.entry_type == models.PriceHistoryEntryEnum.AVERAGE_PRICE:
                self.material.price_history.remove(entry)

        total_qty = sum(
            (entry.quantity or 0.0)
            for entry in self.material.price_history
            if entry.entry_type in EVENT_ENTRY_TYPES
        )
        average = self.recompute_average()
        entry = models.MaterialPriceHistory(
            sequence=sequence,
            entry_type=models.PriceHistoryEntryEnum.AVERAGE_PRICE,
            occurred_at=occurred_at or datetime.now(timezone.utc),
            quantity=total_qty,
            unit_price=average,
            total_value=total_qty * average,
        )
        self.material.price_history.append(entry)
        return entry

    def open(self, *, quantity: float = 0.0, unit_price: float = 0.0, occurred_at: Optional[datetime] = None) -> None:
        if any(e.entry_type == models.PriceHistoryEntryEnum.INITIAL_STOCK for e in self.material.price_history):
            raise ValidationError(f"Ledger for material {self.material.name!r} is already opened.")
        self.material.quantity = quantity
        self.material.per_unit_price = unit_price
        self.append_event(
            models.PriceHistoryEntryEnum.INITIAL_STOCK,
            quantity=quantity,
            unit_price=unit_price,
            occurred_at=occurred_at,
        )
        self._refresh_average_entry(occurred_at)

    def post(
        self,
        quantity_added: float,
        unit_price: float,
        *,
        supplier_name: Optional[str] = None,
        reference_number: Optional[str] = None,
        receipt_number: Optional[str] = None,
        occurred_at: Optional[datetime] = None,
    ) -> float:
        """
        Add stock at `unit_price` and re-derive the weighted average.

        A negative `quantity_added` is an adjustment (a receipt edited down)
        and may not take the material below zero.
        """
        material = self.material
        existing_qty = material.quantity or 0.0
        existing_price = material.per_unit_price or 0.0
        if existing_qty + quantity_added < 0:
            raise ValidationError(
                f"Posting {quantity_added} to {material.name!r} would leave negative stock "
                f"(available {existing_qty})."
            )

        if not any(e.entry_type == models.PriceHistoryEntryEnum.INITIAL_STOCK for e in material.price_history):
            self.append_event(
                models.PriceHistoryEntryEnum.INITIAL_STOCK,
                quantity=existing_qty,
                unit_price=existing_price,
                occurred_at=occurred_at,
            )

        new_average = weighted_average(existing_qty, existing_price, quantity_added, unit_price)
        material.quantity = existing_qty + quantity_added
        material.per_unit_price = new_average

        self.append_event(
            models.PriceHistoryEntryEnum.RECEIPT_EVENT,
            quantity=quantity_added,
            unit_price=unit_price,
            supplier_name=supplier_name,
            reference_number=reference_number,
            receipt_number=receipt_number,
            occurred_at=occurred_at,
        )
        self._refresh_average_entry(occurred_at)

        logger.info(
            "Posted receipt to material ledger",
            extra={
                "material_id": material.id,
                "quantity_added": quantity_added,
                "unit_price": unit_price,
                "new_average": new_average,
                "receipt_number": receipt_number,
            },
        )
        return new_average
