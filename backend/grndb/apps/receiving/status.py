from __future__ import annotations

from typing import Dict, FrozenSet

from grndb.errors import ValidationError

from .models import GoodsReceipt, ReceiptStatusEnum
from .pending import TOLERANCE

_STATUS_TABLE: Dict[tuple, ReceiptStatusEnum] = {
    (True, True): ReceiptStatusEnum.COMPLETED,
    (True, False): ReceiptStatusEnum.NORMAL_COMPLETED,
    (False, True): ReceiptStatusEnum.EXTRA_COMPLETED,
    (False, False): ReceiptStatusEnum.PARTIAL,
}

# PARTIAL may move anywhere; every other status is terminal.
TRANSITIONS: Dict[ReceiptStatusEnum, FrozenSet[ReceiptStatusEnum]] = {
    ReceiptStatusEnum.PARTIAL: frozenset(ReceiptStatusEnum),
    ReceiptStatusEnum.COMPLETED: frozenset(),
    ReceiptStatusEnum.NORMAL_COMPLETED: frozenset(),
    ReceiptStatusEnum.EXTRA_COMPLETED: frozenset(),
}

EDIT_LOCKED_MESSAGE = "Only Partial status GRNs can be updated. Other GRNs are locked after submission."


class ReceiptLockedError(ValidationError):
    pass


def classify(normal_fully_matched: bool, extra_fully_matched: bool) -> ReceiptStatusEnum:
    return _STATUS_TABLE[(bool(normal_fully_matched), bool(extra_fully_matched))]


def classify_cartons(pending_cartons: float, cartons_returned: float) -> ReceiptStatusEnum:
    balance = round(pending_cartons - cartons_returned, 3)
    if abs(balance) < TOLERANCE:
        return ReceiptStatusEnum.COMPLETED
    return ReceiptStatusEnum.PARTIAL


def is_terminal(status: ReceiptStatusEnum) -> bool:
    return not TRANSITIONS[ReceiptStatusEnum(status)]


def ensure_editable(receipt: GoodsReceipt) -> None:
    if receipt.is_locked or is_terminal(receipt.status):
        raise ReceiptLockedError(EDIT_LOCKED_MESSAGE)


def ensure_transition(from_status: ReceiptStatusEnum, to_status: ReceiptStatusEnum) -> None:
    from_status = ReceiptStatusEnum(from_status)
    to_status = ReceiptStatusEnum(to_status)
    if to_status not in TRANSITIONS[from_status]:
        raise ReceiptLockedError(f"Cannot move a receipt from {from_status.value} to {to_status.value}.")
